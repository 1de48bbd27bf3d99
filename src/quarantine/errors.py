"""Error taxonomy for the quarantine workflow.

Each component raises its own error kind. Lambda handlers turn them into
structured failure results; nothing below the handler swallows them.
"""

from typing import Optional


class QuarantineError(Exception):
    """Base error for all quarantine workflow failures."""

    stage = "unknown"
    status_code = 500

    def __init__(
        self,
        message: str,
        cause: Optional[BaseException] = None,
        stage: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.cause = cause
        if stage:
            self.stage = stage

    @property
    def error_code(self) -> Optional[str]:
        """AWS error code of the underlying ClientError, if any."""
        response = getattr(self.cause, "response", None)
        if isinstance(response, dict):
            return response.get("Error", {}).get("Code")
        return None

    def to_dict(self) -> dict[str, Optional[str]]:
        return {
            "error_type": type(self).__name__,
            "stage": self.stage,
            "message": self.message,
            "error_code": self.error_code,
        }


class AuthError(QuarantineError):
    """Role assumption or directory authorization failed."""

    stage = "identity"
    status_code = 403


class NotFoundError(QuarantineError):
    """No OU under the root contains the account."""

    stage = "resolve"
    status_code = 404


class ValidationError(QuarantineError, ValueError):
    """Malformed quarantine event payload."""

    stage = "validate"
    status_code = 400


class DeliveryError(QuarantineError):
    """Publishing to the central event bus failed."""

    stage = "forward"
    status_code = 502


class AttachError(QuarantineError):
    """Attaching the deny-all policy failed for a reason other than already attached."""

    stage = "attach"
    status_code = 502


class ConfigError(ValueError):
    """Required configuration is missing or invalid."""
