"""Quarantine Event Forwarder.

Publishes a quarantine request from a member account onto the central
event bus owned by the management account. One publish attempt per call;
retries belong to the invoking trigger.
"""

import logging
from typing import Any, Optional
from uuid import uuid4

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from .config import single_attempt
from .errors import DeliveryError, ValidationError
from .logging_context import ContextLogger
from .models import DeliveryAck, QuarantineEvent

logger = logging.getLogger(__name__)


class QuarantineEventForwarder:
    """Send quarantine events to the central EventBridge bus."""

    def __init__(
        self,
        events_client: Any = None,
        dry_run: bool = False,
        boto_config: Optional[BotoConfig] = None,
        log: Optional[ContextLogger] = None,
    ):
        """Initialize the forwarder.

        Args:
            events_client: EventBridge client (default: boto3.client("events")
                with botocore retries disabled)
            dry_run: If True, log the event instead of publishing it
            boto_config: Client config used when events_client is not given
            log: Context logger for this invocation
        """
        if events_client is None:
            events_client = boto3.client("events", config=single_attempt(boto_config))
        self.events_client = events_client
        self.dry_run = dry_run
        self.log = log or ContextLogger(logger)

    def forward(self, account_id: str, ou_id: str, channel_ref: str) -> DeliveryAck:
        """Build and publish one quarantine event.

        Args:
            account_id: Account that breached its budget
            ou_id: OU that directly contains the account
            channel_ref: Central event bus name or ARN

        Returns:
            DeliveryAck with the EventBridge event ID

        Raises:
            ValidationError: If account_id or ou_id is missing/empty (nothing is sent)
            DeliveryError: If the publish fails or the entry is rejected
        """
        if not channel_ref:
            raise ValidationError("channel_ref is required to forward a quarantine event")

        event = QuarantineEvent.build(account_id, ou_id, channel=channel_ref)
        entry = event.to_put_events_entry()
        log = self.log.bind(account_id=account_id, ou_id=ou_id, stage="forward")

        log.info(f"Event payload for {channel_ref}: {entry}")

        if self.dry_run:
            log.info(f"DRY-RUN: Would publish quarantine event to {channel_ref}")
            return DeliveryAck(event_id=f"dry-run-{uuid4()}", channel=channel_ref, dry_run=True)

        try:
            response = self.events_client.put_events(Entries=[entry])
        except ClientError as e:
            raise DeliveryError(f"Failed to publish to {channel_ref}: {e}", cause=e) from e
        except BotoCoreError as e:
            raise DeliveryError(f"Failed to reach EventBridge for {channel_ref}: {e}", cause=e) from e

        entries = response.get("Entries") or [{}]
        result = entries[0]

        if response.get("FailedEntryCount", 0) or result.get("ErrorCode") or not result.get("EventId"):
            error_code = result.get("ErrorCode", "Unknown")
            raise DeliveryError(
                f"EventBridge rejected quarantine event for {channel_ref}: "
                f"{error_code} {result.get('ErrorMessage', '')}".strip()
            )

        log.info(f"Published quarantine event {result['EventId']} to {channel_ref}")
        return DeliveryAck(event_id=result["EventId"], channel=channel_ref)
