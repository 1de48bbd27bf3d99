"""Slack Notifier for quarantine outcomes.

Sends notifications to Slack using Incoming Webhooks.
Fire-and-forget: failures are logged and reported as False, never raised.
"""

import logging
from typing import Any, Optional

import requests

from .models import AttachResult, WorkflowResult

logger = logging.getLogger(__name__)


class SlackNotifier:
    """Send notifications to Slack via Incoming Webhook."""

    def __init__(self, webhook_url: str, timeout: int = 10):
        """Initialize Slack Notifier.

        Args:
            webhook_url: Slack Incoming Webhook URL
            timeout: HTTP request timeout in seconds (default: 10)

        Raises:
            ValueError: If webhook_url is empty
        """
        if not webhook_url or not webhook_url.strip():
            raise ValueError("webhook_url cannot be empty")

        self.webhook_url = webhook_url.strip()
        self.timeout = timeout

    def send_quarantine_applied(
        self, account_id: Optional[str], result: AttachResult, console_url: Optional[str] = None
    ) -> bool:
        """Notify that the deny-all policy is in place on the OU.

        Args:
            account_id: Account that breached its budget
            result: AttachResult from the executor
            console_url: Optional AWS Console URL for the OU

        Returns:
            True if notification sent successfully, False otherwise
        """
        payload = self._build_applied_payload(account_id, result, console_url)
        return self._send_to_slack(payload)

    def send_quarantine_failed(self, result: WorkflowResult) -> bool:
        """Notify that a quarantine run failed.

        Args:
            result: Failed WorkflowResult

        Returns:
            True if notification sent successfully, False otherwise
        """
        payload = self._build_failure_payload(result)
        return self._send_to_slack(payload)

    # =========================================================================
    # Payload Builders
    # =========================================================================

    def _build_applied_payload(
        self, account_id: Optional[str], result: AttachResult, console_url: Optional[str]
    ) -> dict[str, Any]:
        """Build Slack Block Kit payload for an applied quarantine."""
        if result.dry_run:
            header = "🔍 OU Quarantine (Dry-Run)"
        elif result.already_attached:
            header = "🔒 OU Already Quarantined"
        else:
            header = "🔒 OU Quarantined"

        blocks: list[dict[str, Any]] = [
            {
                "type": "header",
                "text": {"type": "plain_text", "text": header},
            },
            {
                "type": "section",
                "fields": [
                    {"type": "mrkdwn", "text": f"*Account:* `{account_id or 'unknown'}`"},
                    {"type": "mrkdwn", "text": f"*OU:* `{result.target_id}`"},
                    {"type": "mrkdwn", "text": f"*Policy:* `{result.policy_id}`"},
                    {
                        "type": "mrkdwn",
                        "text": f"*Time:* {result.attached_at.strftime('%Y-%m-%d %H:%M:%S UTC')}",
                    },
                ],
            },
        ]

        if console_url:
            blocks.append(
                {
                    "type": "actions",
                    "elements": [
                        {
                            "type": "button",
                            "text": {"type": "plain_text", "text": "View in AWS Console"},
                            "url": console_url,
                        }
                    ],
                }
            )

        blocks.append(
            {
                "type": "context",
                "elements": [
                    {
                        "type": "mrkdwn",
                        "text": "All accounts in this OU are denied API access until the policy is detached.",
                    }
                ],
            }
        )

        return {"blocks": blocks}

    def _build_failure_payload(self, result: WorkflowResult) -> dict[str, Any]:
        """Build Slack Block Kit payload for a failed run."""
        fields = [
            {"type": "mrkdwn", "text": f"*Stage:* {result.stage}"},
            {"type": "mrkdwn", "text": f"*Error:* {result.error_type or 'unknown'}"},
        ]
        if result.account_id:
            fields.append({"type": "mrkdwn", "text": f"*Account:* `{result.account_id}`"})
        if result.ou_id:
            fields.append({"type": "mrkdwn", "text": f"*OU:* `{result.ou_id}`"})

        blocks: list[dict[str, Any]] = [
            {
                "type": "header",
                "text": {"type": "plain_text", "text": "❌ OU Quarantine Failed"},
            },
            {"type": "section", "fields": fields},
            {
                "type": "section",
                "text": {"type": "mrkdwn", "text": f"*Message:*\n```{result.message}```"},
            },
        ]

        if result.error_code:
            blocks.append(
                {
                    "type": "context",
                    "elements": [
                        {"type": "mrkdwn", "text": f"AWS error code: `{result.error_code}`"}
                    ],
                }
            )

        return {"blocks": blocks}

    def _send_to_slack(self, payload: dict[str, Any]) -> bool:
        """Send payload to Slack webhook.

        Args:
            payload: Slack Block Kit payload

        Returns:
            True if sent successfully (HTTP 200), False otherwise
        """
        try:
            response = requests.post(
                self.webhook_url,
                json=payload,
                headers={"Content-Type": "application/json"},
                timeout=self.timeout,
            )
            response.raise_for_status()
            logger.info("Slack notification sent successfully")
            return True
        except requests.exceptions.RequestException as e:
            logger.error(f"Failed to send Slack notification: {e}")
            return False


def get_ou_console_url(ou_id: str) -> str:
    """Generate AWS Organizations console URL for an OU.

    Args:
        ou_id: Organizational unit ID

    Returns:
        Console URL for the OU's policies tab
    """
    return f"https://console.aws.amazon.com/organizations/v2/home/accounts/{ou_id}"
