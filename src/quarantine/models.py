"""
Data models for Budget Quarantine.

All models use Pydantic for validation and serialization.
These models are shared across all components (forwarder, dispatcher, executor, notifier, etc.).
"""

import json
from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from .errors import ValidationError


FORWARDER_SOURCE = "lambda.BudgetAlertForwarder"
BUDGET_ALERT_DETAIL_TYPE = "Budget Alert"


# ============================================================================
# Trigger Models
# ============================================================================


class BudgetSignal(BaseModel):
    """
    Spend-exceeded signal from AWS Budgets, normalized from SNS or EventBridge.

    Threshold evaluation happens upstream; this only carries what the
    workflow needs.
    """

    account_id: str = Field(..., description="12-digit AWS account ID")
    budget_name: Optional[str] = Field(default=None, description="Budget that fired")
    amount: Optional[float] = Field(default=None, ge=0, description="Actual spend")
    currency: str = Field(default="USD")
    received_at: datetime = Field(default_factory=datetime.utcnow)
    details: dict[str, Any] = Field(
        default_factory=dict, description="Additional metadata (threshold, time, etc.)"
    )

    @field_validator("account_id")
    @classmethod
    def validate_account_id(cls, v: str) -> str:
        """Validate AWS account ID is 12 digits."""
        if not v.isdigit() or len(v) != 12:
            raise ValueError("account_id must be a 12-digit string")
        return v


# ============================================================================
# Quarantine Event Models
# ============================================================================


class QuarantineDetail(BaseModel):
    """Payload of a quarantine request."""

    account_id: str = Field(..., min_length=1, description="Account that breached its budget")
    source_ou_id: str = Field(..., min_length=1, description="OU that directly contains it")

    @field_validator("account_id", "source_ou_id", mode="before")
    @classmethod
    def validate_non_blank(cls, v: Any) -> Any:
        """Reject whitespace-only identifiers."""
        if isinstance(v, str) and not v.strip():
            raise ValueError("must be a non-empty string")
        return v


class QuarantineEvent(BaseModel):
    """
    Unit of cross-account communication between forwarder and controller.

    Constructed once, published once, consumed once. It has no persisted identity.
    """

    model_config = ConfigDict(populate_by_name=True)

    source: str = Field(default=FORWARDER_SOURCE)
    detail_type: str = Field(default=BUDGET_ALERT_DETAIL_TYPE, alias="detail-type")
    detail: QuarantineDetail
    channel: Optional[str] = Field(default=None, description="Central event bus name or ARN")

    @classmethod
    def build(
        cls, account_id: Any, ou_id: Any, channel: Optional[str] = None
    ) -> "QuarantineEvent":
        """Create an event, raising ValidationError for missing or empty fields."""
        return cls.parse_detail(
            {"account_id": account_id, "source_ou_id": ou_id},
            channel=channel,
        )

    @classmethod
    def parse_detail(
        cls,
        detail: Any,
        source: str = FORWARDER_SOURCE,
        detail_type: str = BUDGET_ALERT_DETAIL_TYPE,
        channel: Optional[str] = None,
    ) -> "QuarantineEvent":
        """Validate a detail payload (dict or JSON string) into an event.

        Raises:
            ValidationError: If the detail is missing, not an object, or
                lacks a non-empty account_id / source_ou_id
        """
        if isinstance(detail, str):
            try:
                detail = json.loads(detail)
            except json.JSONDecodeError as e:
                raise ValidationError(f"Event detail is not valid JSON: {e}", cause=e) from e

        if not isinstance(detail, dict):
            raise ValidationError("Missing 'detail' field in the event")

        try:
            return cls(
                source=source,
                detail_type=detail_type,
                detail=QuarantineDetail(**{k: detail.get(k) for k in ("account_id", "source_ou_id")}),
                channel=channel,
            )
        except PydanticValidationError as e:
            fields = sorted({str(err["loc"][0]) for err in e.errors() if err["loc"]})
            raise ValidationError(
                f"Invalid event detail: missing or empty {', '.join(fields)}", cause=e
            ) from e

    @classmethod
    def from_eventbridge(cls, event: dict[str, Any]) -> "QuarantineEvent":
        """Parse an event as delivered by an EventBridge rule target."""
        return cls.parse_detail(
            event.get("detail"),
            source=event.get("source", ""),
            detail_type=event.get("detail-type", ""),
            channel=event.get("event-bus-name") or event.get("channel"),
        )

    def to_put_events_entry(self) -> dict[str, Any]:
        """Render as a PutEvents request entry."""
        entry: dict[str, Any] = {
            "Source": self.source,
            "DetailType": self.detail_type,
            "Detail": json.dumps(self.detail.model_dump()),
        }
        if self.channel:
            entry["EventBusName"] = self.channel
        return entry

    def to_wire(self) -> dict[str, Any]:
        """Render in the rule-matching shape (source / detail-type / detail)."""
        return {
            "source": self.source,
            "detail-type": self.detail_type,
            "detail": self.detail.model_dump(),
            "channel": self.channel,
        }


# ============================================================================
# Component Result Models
# ============================================================================


class DeliveryAck(BaseModel):
    """Acknowledgement of a single publish to the central bus."""

    event_id: str = Field(..., description="EventBridge event ID (or dry-run marker)")
    channel: str = Field(..., description="Bus the event was published to")
    dry_run: bool = Field(default=False)


class AttachResult(BaseModel):
    """Outcome of attaching the deny-all policy to an OU."""

    policy_id: str
    target_id: str
    already_attached: bool = Field(
        default=False, description="Policy was attached before this call"
    )
    dry_run: bool = Field(default=False)
    attached_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def status(self) -> Literal["attached", "already_attached", "dry_run"]:
        if self.dry_run:
            return "dry_run"
        return "already_attached" if self.already_attached else "attached"


class DispatchResult(BaseModel):
    """Result of routing one inbound event."""

    matched: bool = Field(..., description="Whether a rule matched")
    rule_name: Optional[str] = Field(default=None)
    result: Any = Field(default=None, description="Return value of the handler")


# ============================================================================
# Workflow Result Models
# ============================================================================


class WorkflowResult(BaseModel):
    """
    Structured outcome of one run.

    A failure at any stage is distinguishable from a successful (possibly
    idempotent) quarantine.
    """

    status: Literal["success", "ignored", "failed"] = Field(..., description="Run status")
    stage: str = Field(..., description="Last stage reached")
    message: str = Field(default="")
    status_code: int = Field(default=200)
    error_type: Optional[str] = Field(default=None)
    error_code: Optional[str] = Field(default=None, description="Underlying AWS error code")
    account_id: Optional[str] = Field(default=None)
    ou_id: Optional[str] = Field(default=None)
    data: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_error(cls, error: Any, **ids: Any) -> "WorkflowResult":
        """Build a failed result from a QuarantineError."""
        return cls(
            status="failed",
            stage=error.stage,
            message=error.message,
            status_code=error.status_code,
            error_type=type(error).__name__,
            error_code=error.error_code,
            **ids,
        )

    def to_response(self) -> dict[str, Any]:
        """Render as a Lambda response."""
        return {
            "statusCode": self.status_code,
            "body": self.model_dump_json(exclude_none=True),
        }


class QuarantineRecord(BaseModel):
    """
    Audit record of an executor run.

    Stored in DynamoDB for audit trail.
    """

    record_id: str = Field(..., description="Unique record ID")
    account_id: Optional[str] = Field(default=None)
    ou_id: str = Field(..., description="Target OU")
    policy_id: str = Field(..., description="Deny-all SCP ID")
    status: Literal["attached", "already_attached", "dry_run", "failed"]
    error_code: Optional[str] = Field(default=None)
    error_message: Optional[str] = Field(default=None)
    recorded_at: datetime = Field(default_factory=datetime.utcnow)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "record_id": "qr-abc123",
                "account_id": "111111111111",
                "ou_id": "ou-finance",
                "policy_id": "p-denyall",
                "status": "attached",
                "recorded_at": "2025-01-15T10:30:00Z",
            }
        }
    )
