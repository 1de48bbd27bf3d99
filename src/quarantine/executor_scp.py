"""SCP Executor for quarantining OUs.

Attaches the pre-existing deny-all service control policy to an OU.
Attachment is idempotent; failures are reported, never retried.
"""

import logging
from typing import Any, Optional

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from .config import single_attempt
from .errors import AttachError, ValidationError
from .logging_context import ContextLogger
from .models import AttachResult

logger = logging.getLogger(__name__)

ALREADY_ATTACHED_CODE = "DuplicatePolicyAttachmentException"


class SCPExecutor:
    """Attach the deny-all SCP to a target OU."""

    def __init__(
        self,
        organizations_client: Any = None,
        dry_run: bool = False,
        boto_config: Optional[BotoConfig] = None,
        log: Optional[ContextLogger] = None,
    ):
        """Initialize SCP Executor.

        Args:
            organizations_client: Organizations client in the management account
                (default: boto3.client("organizations") with botocore retries disabled)
            dry_run: If True, simulate the attachment without calling AWS
            boto_config: Client config used when organizations_client is not given
            log: Context logger for this invocation
        """
        self.dry_run = dry_run
        self.organizations_client = organizations_client or boto3.client(
            "organizations", config=single_attempt(boto_config)
        )
        self.log = log or ContextLogger(logger)

    def quarantine(self, ou_id: str, deny_all_policy_id: str) -> AttachResult:
        """Attach the deny-all policy to the OU.

        Args:
            ou_id: Target OU ID
            deny_all_policy_id: ID of the deny-all SCP

        Returns:
            AttachResult (already_attached=True if the policy was already there)

        Raises:
            ValidationError: If ou_id or deny_all_policy_id is empty
            AttachError: On any other attachment failure (cause preserved)
        """
        if not isinstance(ou_id, str) or not ou_id.strip():
            raise ValidationError("Refusing to quarantine: ou_id is empty")
        if not isinstance(deny_all_policy_id, str) or not deny_all_policy_id.strip():
            raise ValidationError("Refusing to quarantine: deny_all_policy_id is empty")

        log = self.log.bind(ou_id=ou_id, stage="attach")

        if self.dry_run:
            log.info(f"DRY-RUN: Would attach {deny_all_policy_id} to OU {ou_id}")
            return AttachResult(policy_id=deny_all_policy_id, target_id=ou_id, dry_run=True)

        try:
            self.organizations_client.attach_policy(
                PolicyId=deny_all_policy_id, TargetId=ou_id
            )
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code", "")
            if code == ALREADY_ATTACHED_CODE:
                log.info(f"Policy {deny_all_policy_id} already attached to OU {ou_id}")
                return AttachResult(
                    policy_id=deny_all_policy_id, target_id=ou_id, already_attached=True
                )

            log.error(f"Error attaching {deny_all_policy_id} to OU {ou_id}: {code}")
            raise AttachError(
                f"Failed to attach {deny_all_policy_id} to {ou_id}: "
                f"{e.response.get('Error', {}).get('Message', str(e))}",
                cause=e,
            ) from e
        except BotoCoreError as e:
            log.error(f"Error attaching {deny_all_policy_id} to OU {ou_id}: {e}")
            raise AttachError(
                f"Failed to attach {deny_all_policy_id} to {ou_id}: {e}", cause=e
            ) from e

        log.info(f"Successfully attached Deny All SCP {deny_all_policy_id} to OU {ou_id}")
        return AttachResult(policy_id=deny_all_policy_id, target_id=ou_id)

    def list_attached_policies(self, target_id: str) -> list[str]:
        """List SCP IDs attached directly to a target.

        Raises:
            AttachError: If the listing fails
        """
        try:
            paginator = self.organizations_client.get_paginator("list_policies_for_target")
            policy_ids = []
            for page in paginator.paginate(TargetId=target_id, Filter="SERVICE_CONTROL_POLICY"):
                policy_ids.extend(p["Id"] for p in page.get("Policies", []))
            return policy_ids
        except ClientError as e:
            raise AttachError(f"Failed to list policies for {target_id}: {e}", cause=e) from e
