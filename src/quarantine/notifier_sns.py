"""SNS Notifier for quarantine outcomes.

Publishes a plain-text summary to the stakeholder topic in the management
account. Fire-and-forget like the Slack notifier.
"""

import json
import logging
from typing import Any, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .models import AttachResult, WorkflowResult

logger = logging.getLogger(__name__)


class SNSNotifier:
    """Publish quarantine outcomes to an SNS topic."""

    def __init__(self, topic_arn: str, sns_client: Any = None, region: Optional[str] = None):
        if not topic_arn or not topic_arn.strip():
            raise ValueError("topic_arn cannot be empty")

        self.topic_arn = topic_arn.strip()
        self.sns_client = sns_client or boto3.client("sns", region_name=region)

    def send_quarantine_applied(self, account_id: Optional[str], result: AttachResult) -> bool:
        subject = "OU quarantined" if not result.already_attached else "OU already quarantined"
        if result.dry_run:
            subject = "OU quarantine (dry-run)"

        message = {
            "status": result.status,
            "account_id": account_id,
            "ou_id": result.target_id,
            "policy_id": result.policy_id,
            "time": result.attached_at.isoformat(),
        }
        return self._publish(subject, message)

    def send_quarantine_failed(self, result: WorkflowResult) -> bool:
        return self._publish(
            "OU quarantine failed", result.model_dump(mode="json", exclude_none=True)
        )

    def _publish(self, subject: str, message: dict[str, Any]) -> bool:
        try:
            self.sns_client.publish(
                TopicArn=self.topic_arn,
                Subject=subject[:100],
                Message=json.dumps(message, indent=2, default=str),
            )
            logger.info(f"SNS notification sent to {self.topic_arn}")
            return True
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to send SNS notification: {e}")
            return False
