"""Budget Alert Forwarder Lambda (member account).

Triggered by the account's budget notification (SNS). Assumes the
cross-account organization role, resolves the account's OU and forwards a
quarantine request to the central event bus.
"""

import json
import logging
from typing import Any, Optional
from uuid import uuid4

from ..config import QuarantineConfig
from ..errors import ConfigError, DeliveryError, QuarantineError, ValidationError
from ..forwarder import QuarantineEventForwarder
from ..identity_broker import IdentityBroker
from ..logging_context import ContextLogger, configure_logging, get_logger
from ..models import BudgetSignal, WorkflowResult
from ..ou_resolver import OUResolver


logger = logging.getLogger(__name__)


def lambda_handler(event: dict[str, Any], context: Any) -> dict[str, Any]:
    """Lambda handler for budget-exceeded notifications.

    Args:
        event: Lambda event (SNS, EventBridge or direct format)
        context: Lambda context

    Returns:
        Response dict with statusCode and a WorkflowResult body

    Raises:
        DeliveryError: Publish failed; raised so the trigger's retry policy applies

    Environment Variables:
        CROSS_ACCOUNT_ROLE_ARN: Organization role in the management account
        CENTRAL_EVENT_BUS_ARN: Central event bus
        ORG_ROOT_ID: Organization root ID
        DRY_RUN: If "true", resolve but do not publish (default: false)
    """
    config = QuarantineConfig.from_env()
    configure_logging(config.log_level)

    run_id = getattr(context, "aws_request_id", None) or str(uuid4())
    log = get_logger(__name__, run_id=run_id)
    log.info(f"Received event: {json.dumps(event, default=str)}")

    account_id: Optional[str] = None
    try:
        config.require("cross_account_role_arn", "central_channel_ref", "org_root_id")

        signal = parse_signal(event, context)
        account_id = signal.account_id

        result = forward_budget_breach(signal, config, log=log.bind(account_id=account_id))
        return result.to_response()

    except ConfigError as e:
        log.error(f"Configuration error: {e}")
        return WorkflowResult(
            status="failed",
            stage="config",
            message=str(e),
            status_code=500,
            error_type=type(e).__name__,
        ).to_response()

    except DeliveryError as e:
        log.error(f"Delivery failed, surfacing to trigger for retry: {e.message}", exc_info=True)
        raise

    except QuarantineError as e:
        log.error(f"Quarantine forwarding failed at {e.stage}: {e.message}")
        return WorkflowResult.from_error(e, account_id=account_id).to_response()


def forward_budget_breach(
    signal: BudgetSignal,
    config: QuarantineConfig,
    broker: Optional[IdentityBroker] = None,
    resolver: Optional[OUResolver] = None,
    forwarder: Optional[QuarantineEventForwarder] = None,
    log: Optional[ContextLogger] = None,
) -> WorkflowResult:
    """Run identity → resolve → forward for one budget breach.

    Args:
        signal: Normalized budget signal
        config: Quarantine configuration (role, bus and root are required)
        broker: Identity broker (creates one if None)
        resolver: OU resolver (creates one if None)
        forwarder: Event forwarder (creates one if None)
        log: Context logger for this run

    Returns:
        Successful WorkflowResult

    Raises:
        AuthError: Role assumption or directory access failed
        NotFoundError: No OU contains the account
        ValidationError: Event could not be built
        DeliveryError: Publish failed
    """
    log = log or get_logger(__name__, account_id=signal.account_id)
    boto_config = config.boto_config()

    broker = broker or IdentityBroker(
        trusted_account_ids=config.trusted_account_ids,
        region=config.aws_region,
        boto_config=boto_config,
        log=log.bind(stage="identity"),
    )
    resolver = resolver or OUResolver(log=log)
    forwarder = forwarder or QuarantineEventForwarder(
        dry_run=config.dry_run, boto_config=boto_config, log=log
    )

    session = broker.assume_role(config.cross_account_role_arn, config.session_name)
    ou_id = resolver.resolve_ou(session, signal.account_id, config.org_root_id)
    ack = forwarder.forward(signal.account_id, ou_id, config.central_channel_ref)

    return WorkflowResult(
        status="success",
        stage="forward",
        message=f"Quarantine request for {signal.account_id} forwarded",
        account_id=signal.account_id,
        ou_id=ou_id,
        data={"event_id": ack.event_id, "channel": ack.channel, "dry_run": ack.dry_run},
    )


# ============================================================================
# Trigger parsing
# ============================================================================


def parse_signal(event: dict[str, Any], context: Any = None) -> BudgetSignal:
    """Parse a Lambda event into a BudgetSignal.

    Supports three formats:
    1. SNS: Budget notification (JSON or the plain-text email body) wrapped in SNS
    2. EventBridge: Budget notification event
    3. Direct: a notification dict (for testing)

    The member function only ever quarantines its own account, so the
    invoking account (from the context) wins; a signal naming a different
    account is rejected.

    Raises:
        ValidationError: If no account can be determined or accounts disagree
    """
    notification: dict[str, Any] = {}
    signal_account: Optional[str] = None

    records = event.get("Records") or []
    if records and records[0].get("EventSource") == "aws:sns":
        message = records[0].get("Sns", {}).get("Message", "")
        try:
            parsed = json.loads(message)
            notification = parsed if isinstance(parsed, dict) else {}
        except (json.JSONDecodeError, TypeError):
            notification = {"message": message}
        signal_account = extract_account_id(notification)

    elif "detail-type" in event:
        notification = event.get("detail") or {}
        signal_account = event.get("account") or extract_account_id(notification)

    else:
        notification = event
        signal_account = extract_account_id(notification)

    invoking_account = account_from_context(context)

    if invoking_account and signal_account and invoking_account != signal_account:
        raise ValidationError(
            f"Budget signal for account {signal_account} received by account {invoking_account}"
        )

    account_id = invoking_account or signal_account
    if not account_id:
        raise ValidationError("Could not determine account ID from event or context")

    calculated_spend = notification.get("calculatedSpend", {}) or {}
    actual_spend = calculated_spend.get("actualSpend", {}) or {}
    amount = actual_spend.get("amount")

    try:
        return BudgetSignal(
            account_id=account_id,
            budget_name=notification.get("budgetName"),
            amount=float(amount) if amount is not None else None,
            currency=actual_spend.get("unit", "USD"),
            details={
                k: notification[k]
                for k in ("threshold", "thresholdType", "notificationType", "time")
                if k in notification
            },
        )
    except ValueError as e:
        raise ValidationError(f"Invalid budget signal: {e}", cause=e) from e


def extract_account_id(notification: dict[str, Any]) -> Optional[str]:
    """Extract AWS account ID from a budget notification, if present.

    Tries notificationArn (arn:aws:budgets::123456789012:budget/...) then accountId.
    """
    notification_arn = notification.get("notificationArn")
    if isinstance(notification_arn, str) and notification_arn:
        parts = notification_arn.split(":")
        if len(parts) >= 5 and len(parts[4]) == 12 and parts[4].isdigit():
            return parts[4]

    account_id = notification.get("accountId")
    if isinstance(account_id, str) and len(account_id) == 12 and account_id.isdigit():
        return account_id

    return None


def account_from_context(context: Any) -> Optional[str]:
    """Account ID of the invoking function (arn:aws:lambda:region:ACCOUNT:function:name)."""
    function_arn = getattr(context, "invoked_function_arn", None)
    if not isinstance(function_arn, str):
        return None

    parts = function_arn.split(":")
    if len(parts) >= 5 and len(parts[4]) == 12 and parts[4].isdigit():
        return parts[4]
    return None
