"""Account Quarantine Lambda (management account).

Target of the central event bus. Events are routed through the
CentralDispatcher; only budget alerts from the forwarder reach the
quarantine handler, which re-validates the payload and attaches the
deny-all SCP to the account's OU.
"""

import json
import logging
from typing import Any, Optional, Union
from uuid import uuid4

from botocore.exceptions import BotoCoreError, ClientError

from ..audit_store import AuditStore
from ..config import QuarantineConfig
from ..dispatcher import CentralDispatcher
from ..errors import ConfigError, QuarantineError
from ..executor_scp import SCPExecutor
from ..logging_context import ContextLogger, configure_logging, get_logger
from ..models import (
    BUDGET_ALERT_DETAIL_TYPE,
    FORWARDER_SOURCE,
    QuarantineEvent,
    QuarantineRecord,
    WorkflowResult,
)
from ..notifier_slack import SlackNotifier, get_ou_console_url
from ..notifier_sns import SNSNotifier


logger = logging.getLogger(__name__)

QUARANTINE_RULE_NAME = "budget-alert-quarantine"

Notifier = Union[SlackNotifier, SNSNotifier]


class QuarantineHandler:
    """Handle a routed budget alert: validate, attach, audit, notify."""

    def __init__(
        self,
        config: QuarantineConfig,
        executor: Optional[SCPExecutor] = None,
        audit_store: Optional[AuditStore] = None,
        notifiers: Optional[list[Notifier]] = None,
        log: Optional[ContextLogger] = None,
    ):
        """Initialize quarantine handler.

        Args:
            config: Quarantine configuration (deny_all_policy_id required)
            executor: SCP executor (creates new if None)
            audit_store: Audit store (created from config.audit_table_name if None)
            notifiers: Outcome notifiers (built from config if None)
            log: Context logger for this invocation

        Raises:
            ConfigError: If deny_all_policy_id is not configured
        """
        config.require("deny_all_policy_id")

        self.config = config
        self.log = log or ContextLogger(logger)
        self.executor = executor or SCPExecutor(
            dry_run=config.dry_run, boto_config=config.boto_config(), log=self.log
        )

        if audit_store is None and config.audit_table_name:
            audit_store = AuditStore(table_name=config.audit_table_name, region=config.aws_region)
        self.audit_store = audit_store

        self.notifiers = notifiers if notifiers is not None else build_notifiers(config)

    def handle(self, event: dict[str, Any]) -> WorkflowResult:
        """Quarantine the OU named in the event.

        Raises:
            ValidationError: If the payload lacks account_id or source_ou_id
            AttachError: If the SCP could not be attached
        """
        account_id, ou_id = _detail_ids(event)

        try:
            quarantine_event = QuarantineEvent.from_eventbridge(event)
            account_id = quarantine_event.detail.account_id
            ou_id = quarantine_event.detail.source_ou_id

            log = self.log.bind(account_id=account_id, ou_id=ou_id)
            log.info(f"Quarantine requested for account {account_id} in OU {ou_id}")

            result = self.executor.quarantine(ou_id, self.config.deny_all_policy_id)

        except QuarantineError as e:
            failure = WorkflowResult.from_error(e, account_id=account_id, ou_id=ou_id)
            if ou_id:
                self._audit(
                    account_id,
                    ou_id,
                    "failed",
                    error_code=e.error_code,
                    error_message=e.message,
                )
            self._notify_failure(failure)
            raise

        self._audit(account_id, ou_id, result.status)
        for notifier in self.notifiers:
            if isinstance(notifier, SlackNotifier):
                notifier.send_quarantine_applied(account_id, result, get_ou_console_url(ou_id))
            else:
                notifier.send_quarantine_applied(account_id, result)

        message = (
            f"Deny-all policy already attached to OU {ou_id}"
            if result.already_attached
            else f"Deny-all policy attached to OU {ou_id}"
        )
        return WorkflowResult(
            status="success",
            stage="attach",
            message=message,
            account_id=account_id,
            ou_id=ou_id,
            data={
                "policy_id": result.policy_id,
                "attach_status": result.status,
            },
        )

    def _audit(
        self,
        account_id: Optional[str],
        ou_id: str,
        status: str,
        error_code: Optional[str] = None,
        error_message: Optional[str] = None,
    ) -> None:
        if self.audit_store is None:
            return

        record = QuarantineRecord(
            record_id=f"qr-{uuid4()}",
            account_id=account_id,
            ou_id=ou_id,
            policy_id=self.config.deny_all_policy_id,
            status=status,
            error_code=error_code,
            error_message=error_message,
        )
        try:
            self.audit_store.save_record(record)
        except (ClientError, BotoCoreError) as e:
            # The audit trail never changes the outcome of the run
            self.log.error(f"Failed to audit quarantine record {record.record_id}: {e}")

    def _notify_failure(self, failure: WorkflowResult) -> None:
        for notifier in self.notifiers:
            notifier.send_quarantine_failed(failure)


def build_notifiers(config: QuarantineConfig) -> list[Notifier]:
    """Create the notifiers enabled in config."""
    notifiers: list[Notifier] = []
    if config.slack_webhook_url:
        notifiers.append(SlackNotifier(config.slack_webhook_url, timeout=config.api_timeout_seconds))
    if config.notification_topic_arn:
        notifiers.append(SNSNotifier(config.notification_topic_arn, region=config.aws_region))
    return notifiers


def build_dispatcher(
    handler: QuarantineHandler, log: Optional[ContextLogger] = None
) -> CentralDispatcher:
    """Create the dispatcher with the single quarantine rule registered."""
    dispatcher = CentralDispatcher(log=log)
    dispatcher.register(
        QUARANTINE_RULE_NAME, FORWARDER_SOURCE, BUDGET_ALERT_DETAIL_TYPE, handler.handle
    )
    return dispatcher


def process_event(event: dict[str, Any], dispatcher: CentralDispatcher) -> WorkflowResult:
    """Dispatch one event and turn the outcome into a WorkflowResult."""
    try:
        dispatch_result = dispatcher.dispatch(event)
    except QuarantineError as e:
        account_id, ou_id = _detail_ids(event)
        return WorkflowResult.from_error(e, account_id=account_id, ou_id=ou_id)

    if not dispatch_result.matched:
        source = event.get("source") if isinstance(event, dict) else None
        detail_type = event.get("detail-type") if isinstance(event, dict) else None
        return WorkflowResult(
            status="ignored",
            stage="dispatch",
            message=f"No rule for source={source!r} detail-type={detail_type!r}",
        )

    return dispatch_result.result


def lambda_handler(event: dict[str, Any], context: Any) -> dict[str, Any]:
    """Lambda handler for events from the central bus.

    Args:
        event: EventBridge event
        context: Lambda context

    Returns:
        Response dict with statusCode and a WorkflowResult body

    Environment Variables:
        DENY_ALL_POLICY_ID (or SCPId): ID of the deny-all SCP
        SLACK_WEBHOOK_URL / NOTIFICATION_TOPIC_ARN: Optional outcome notifications
        AUDIT_TABLE_NAME: Optional DynamoDB audit table
        DRY_RUN: If "true", skip the attachment (default: false)
    """
    config = QuarantineConfig.from_env()
    configure_logging(config.log_level)

    run_id = getattr(context, "aws_request_id", None) or str(uuid4())
    log = get_logger(__name__, run_id=run_id)
    log.info(f"Received event: {json.dumps(event, default=str)}")

    try:
        handler = QuarantineHandler(config, log=log)
    except ConfigError as e:
        log.error(f"Configuration error: {e}")
        return WorkflowResult(
            status="failed",
            stage="config",
            message=str(e),
            status_code=500,
            error_type=type(e).__name__,
        ).to_response()

    result = process_event(event, build_dispatcher(handler, log=log))

    if result.status == "failed":
        log.error(f"Quarantine failed at {result.stage}: {result.message}")

    return result.to_response()


def _detail_ids(event: dict[str, Any]) -> tuple[Optional[str], Optional[str]]:
    """Best-effort (account_id, source_ou_id) from a possibly malformed event."""
    detail = event.get("detail")
    if not isinstance(detail, dict):
        return None, None

    account_id = detail.get("account_id")
    ou_id = detail.get("source_ou_id")
    return (
        account_id if isinstance(account_id, str) and account_id else None,
        ou_id if isinstance(ou_id, str) and ou_id else None,
    )
