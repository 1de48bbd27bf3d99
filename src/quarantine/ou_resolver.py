"""OU Resolver.

Finds the OU that directly contains an account. Organizations exposes no
"parent OU of account" lookup through the delegated role's permissions, so
the tree under the root is walked and each OU's accounts are listed.
"""

import logging
from collections import deque
from typing import Any, Iterator, Optional

from botocore.exceptions import BotoCoreError, ClientError

from .errors import AuthError, NotFoundError
from .logging_context import ContextLogger

logger = logging.getLogger(__name__)

# AWS Organizations allows at most five levels of OUs below the root.
MAX_OU_DEPTH = 5

_ACCESS_DENIED_CODES = {"AccessDeniedException", "AccessDenied", "AWSOrganizationsNotInUseException"}


class OUResolver:
    """Resolve the direct parent OU of an account."""

    def __init__(self, max_depth: int = MAX_OU_DEPTH, log: Optional[ContextLogger] = None):
        """Initialize OU Resolver.

        Args:
            max_depth: How many OU levels below the root to search
            log: Context logger for this invocation
        """
        if max_depth < 1:
            raise ValueError("max_depth must be at least 1")
        self.max_depth = max_depth
        self.log = log or ContextLogger(logger)

    def resolve_ou(self, session: Any, account_id: str, root_id: str) -> str:
        """Find the OU under root_id that directly contains account_id.

        Breadth-first over OUs; for each OU every page of accounts is read
        until the account is found.

        Args:
            session: ScopedSession (anything with .client("organizations"))
            account_id: Account to locate
            root_id: Organization root ID (or any parent to search below)

        Returns:
            OU ID

        Raises:
            NotFoundError: If no OU under root_id contains the account
            AuthError: If the directory denies access
        """
        if not account_id or not root_id:
            raise NotFoundError("account_id and root_id are required to resolve an OU")

        client = session.client("organizations")
        log = self.log.bind(account_id=account_id, stage="resolve")
        log.info(f"Resolving OU for account {account_id} under {root_id}")

        visited = 0
        queue: deque[tuple[str, int]] = deque((ou_id, 1) for ou_id in self._child_ous(client, root_id))

        while queue:
            ou_id, depth = queue.popleft()
            visited += 1

            if self._account_in_ou(client, account_id, ou_id):
                log.info(f"Account {account_id} found in OU {ou_id} (searched {visited} OUs)")
                return ou_id

            if depth < self.max_depth:
                queue.extend((child, depth + 1) for child in self._child_ous(client, ou_id))

        log.error(
            f"OU for account {account_id} not found under {root_id} "
            f"(searched {visited} OUs); the account may sit directly under the root "
            "or the hierarchy changed"
        )
        raise NotFoundError(f"OU ID for account {account_id} not found under {root_id}")

    def _child_ous(self, client: Any, parent_id: str) -> Iterator[str]:
        """Yield IDs of OUs directly under parent_id."""
        for page in self._paginate(client, "list_organizational_units_for_parent", parent_id):
            for ou in page.get("OrganizationalUnits", []):
                yield ou["Id"]

    def _account_in_ou(self, client: Any, account_id: str, ou_id: str) -> bool:
        """Check whether the account sits directly in ou_id."""
        for page in self._paginate(client, "list_accounts_for_parent", ou_id):
            for account in page.get("Accounts", []):
                if account.get("Id") == account_id:
                    return True
        return False

    def _paginate(self, client: Any, operation: str, parent_id: str) -> Iterator[dict[str, Any]]:
        """Iterate pages, translating API failures into resolver errors."""
        try:
            paginator = client.get_paginator(operation)
            for page in paginator.paginate(ParentId=parent_id):
                yield page
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code", "")
            if code in _ACCESS_DENIED_CODES:
                raise AuthError(
                    f"Access denied listing {parent_id} ({operation}): {e}",
                    cause=e,
                    stage="resolve",
                ) from e
            raise NotFoundError(f"Failed to list {parent_id} ({operation}): {e}", cause=e) from e
        except BotoCoreError as e:
            raise NotFoundError(f"Failed to list {parent_id} ({operation}): {e}", cause=e) from e
