"""Identity Broker for cross-account role assumption.

Exchanges the cross-account trust relationship for short-lived credentials
scoped to the management account's Organizations API. Credentials stay in
memory for the lifetime of the invocation and are never cached.
"""

import logging
import re
from datetime import datetime
from typing import Any, Optional

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from .config import single_attempt
from .errors import AuthError
from .logging_context import ContextLogger

logger = logging.getLogger(__name__)

ROLE_ARN_PATTERN = re.compile(
    r"^arn:(?P<partition>aws[a-zA-Z-]*):iam::(?P<account>\d{12}):role/(?P<name>[\w+=,.@/-]+)$"
)
# STS RoleSessionName: 2-64 chars of [\w+=,.@-]
_SESSION_NAME_INVALID = re.compile(r"[^\w+=,.@-]")


class ScopedSession:
    """Delegated credentials for a single invocation.

    Wraps a boto3 Session built from temporary credentials. The raw secrets
    are not exposed as attributes and are never serialized.
    """

    def __init__(
        self,
        session: boto3.Session,
        role_arn: str,
        session_name: str,
        expiration: Optional[datetime] = None,
        boto_config: Optional[BotoConfig] = None,
    ):
        self._session = session
        self.role_arn = role_arn
        self.session_name = session_name
        self.expiration = expiration
        self._boto_config = boto_config

    @property
    def account_id(self) -> str:
        return parse_role_arn(self.role_arn)[0]

    def client(self, service_name: str) -> Any:
        """Create a client using the delegated credentials."""
        if self._boto_config is not None:
            return self._session.client(service_name, config=self._boto_config)
        return self._session.client(service_name)

    def __repr__(self) -> str:
        return (
            f"ScopedSession(role_arn={self.role_arn!r}, "
            f"session_name={self.session_name!r}, expiration={self.expiration!r})"
        )


def parse_role_arn(role_arn: str) -> tuple[str, str]:
    """Parse an IAM role ARN into (account_id, role_name).

    Raises:
        AuthError: If the ARN is not an IAM role ARN
    """
    match = ROLE_ARN_PATTERN.match(role_arn or "")
    if not match:
        raise AuthError(f"Invalid IAM role ARN: {role_arn!r}")
    return match.group("account"), match.group("name")


def sanitize_session_name(session_name: str) -> str:
    """Coerce a free-form label into a valid RoleSessionName."""
    cleaned = _SESSION_NAME_INVALID.sub("-", session_name or "").strip("-")
    if len(cleaned) < 2:
        cleaned = "quarantine-session"
    return cleaned[:64]


class IdentityBroker:
    """Assume the cross-account organization role."""

    def __init__(
        self,
        sts_client: Any = None,
        trusted_account_ids: Optional[list[str]] = None,
        region: Optional[str] = None,
        boto_config: Optional[BotoConfig] = None,
        log: Optional[ContextLogger] = None,
    ):
        """Initialize Identity Broker.

        Args:
            sts_client: STS client (default: boto3.client("sts") with botocore retries disabled)
            trusted_account_ids: Accounts whose roles may be assumed; empty
                means any account other than the caller's
            region: Region for sessions built from assumed credentials
            boto_config: Client config (timeouts) for clients created from
                the returned session
            log: Context logger for this invocation
        """
        self.sts_client = sts_client or boto3.client("sts", config=single_attempt(boto_config))
        self.trusted_account_ids = set(trusted_account_ids or [])
        self.region = region
        self.boto_config = boto_config
        self.log = log or ContextLogger(logger)

    def assume_role(self, role_arn: str, session_name: str) -> ScopedSession:
        """Assume a role in another, pre-trusted account.

        Args:
            role_arn: Role in the management account
            session_name: Audit label recorded in CloudTrail

        Returns:
            ScopedSession with temporary credentials

        Raises:
            AuthError: On malformed ARN, untrusted or same-account role,
                or any STS/network failure. Never retried.
        """
        target_account, _ = parse_role_arn(role_arn)

        if self.trusted_account_ids and target_account not in self.trusted_account_ids:
            raise AuthError(f"Account {target_account} is not in the trusted account list")

        caller_account = self._get_caller_account()
        if caller_account == target_account:
            raise AuthError(
                f"Role {role_arn} is in the caller's own account {caller_account}; "
                "a cross-account role is required"
            )

        label = sanitize_session_name(session_name)
        self.log.info(f"Assuming role {role_arn} (session {label})")

        try:
            response = self.sts_client.assume_role(RoleArn=role_arn, RoleSessionName=label)
        except ClientError as e:
            raise AuthError(f"Failed to assume role {role_arn}: {e}", cause=e) from e
        except BotoCoreError as e:
            raise AuthError(f"Failed to reach STS for {role_arn}: {e}", cause=e) from e

        credentials = response.get("Credentials") or {}
        if not credentials.get("AccessKeyId"):
            raise AuthError(f"STS returned no credentials for {role_arn}")

        session = boto3.Session(
            aws_access_key_id=credentials["AccessKeyId"],
            aws_secret_access_key=credentials["SecretAccessKey"],
            aws_session_token=credentials["SessionToken"],
            region_name=self.region,
        )

        expiration = credentials.get("Expiration")
        self.log.info(f"Assumed role {role_arn}, credentials expire at {expiration}")

        return ScopedSession(
            session=session,
            role_arn=role_arn,
            session_name=label,
            expiration=expiration,
            boto_config=self.boto_config,
        )

    def _get_caller_account(self) -> str:
        """Get the account ID of the current (member) identity.

        Raises:
            AuthError: If the caller identity cannot be determined
        """
        try:
            return self.sts_client.get_caller_identity()["Account"]
        except (ClientError, BotoCoreError) as e:
            raise AuthError(f"Could not determine caller identity: {e}", cause=e) from e
