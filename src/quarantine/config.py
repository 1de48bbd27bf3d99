"""
Configuration for Budget Quarantine.

Replaces scattered environment lookups with one explicit structure that is
passed into each component at construction.
"""

import logging
import os
from pathlib import Path
from typing import Any, Optional

import yaml
from botocore.config import Config as BotoConfig
from pydantic import BaseModel, Field, field_validator

from .errors import ConfigError

logger = logging.getLogger(__name__)


DEFAULT_SESSION_NAME = "BudgetAlertSession"


def single_attempt(boto_config: Optional[BotoConfig] = None) -> BotoConfig:
    """Client config that makes exactly one attempt per call (botocore retries off)."""
    retry_off = BotoConfig(retries={"total_max_attempts": 1, "mode": "standard"})
    return boto_config.merge(retry_off) if boto_config else retry_off


class QuarantineConfig(BaseModel):
    """Explicit configuration shared by the member and management sides."""

    deny_all_policy_id: Optional[str] = Field(
        default=None, description="ID of the existing deny-all SCP (p-xxxx)"
    )
    cross_account_role_arn: Optional[str] = Field(
        default=None, description="Role in the management account to assume"
    )
    central_channel_ref: Optional[str] = Field(
        default=None, description="Central event bus name or ARN"
    )
    org_root_id: Optional[str] = Field(
        default=None, description="Organization root ID (r-xxxx)"
    )

    session_name: str = Field(
        default=DEFAULT_SESSION_NAME, description="RoleSessionName used for audit"
    )
    trusted_account_ids: list[str] = Field(
        default_factory=list,
        description="Accounts whose roles may be assumed (empty = any other account)",
    )
    slack_webhook_url: Optional[str] = Field(default=None)
    notification_topic_arn: Optional[str] = Field(default=None)
    audit_table_name: Optional[str] = Field(default=None)
    dry_run: bool = Field(default=False, description="Skip publish/attach side effects")
    aws_region: str = Field(default="us-east-1")
    api_timeout_seconds: int = Field(default=10, gt=0)
    log_level: str = Field(default="INFO")

    @field_validator("deny_all_policy_id")
    @classmethod
    def validate_policy_id(cls, v: Optional[str]) -> Optional[str]:
        """Validate SCP id format."""
        if v is not None and not v.startswith("p-"):
            raise ValueError("deny_all_policy_id must start with 'p-'")
        return v

    @field_validator("org_root_id")
    @classmethod
    def validate_root_id(cls, v: Optional[str]) -> Optional[str]:
        """Validate organization root id format."""
        if v is not None and not v.startswith("r-"):
            raise ValueError("org_root_id must start with 'r-'")
        return v

    @field_validator("cross_account_role_arn")
    @classmethod
    def validate_role_arn(cls, v: Optional[str]) -> Optional[str]:
        """Validate role ARN shape (detailed checks happen in the identity broker)."""
        if v is not None and not v.startswith("arn:aws"):
            raise ValueError("cross_account_role_arn must be an ARN")
        return v

    @field_validator("trusted_account_ids")
    @classmethod
    def validate_trusted_accounts(cls, v: list[str]) -> list[str]:
        """Validate all trusted account IDs are 12 digits."""
        for account_id in v:
            if not account_id.isdigit() or len(account_id) != 12:
                raise ValueError(f"Invalid account_id: {account_id}. Must be 12 digits")
        return v

    @classmethod
    def from_env(cls, environ: Optional[dict[str, str]] = None) -> "QuarantineConfig":
        """Build configuration from Lambda environment variables.

        Args:
            environ: Mapping to read from (default: os.environ)

        Returns:
            QuarantineConfig instance
        """
        env = os.environ if environ is None else environ

        trusted = env.get("TRUSTED_ACCOUNT_IDS", "")

        return cls(
            deny_all_policy_id=env.get("DENY_ALL_POLICY_ID") or env.get("SCPId") or None,
            cross_account_role_arn=env.get("CROSS_ACCOUNT_ROLE_ARN") or None,
            central_channel_ref=env.get("CENTRAL_EVENT_BUS_ARN") or None,
            org_root_id=env.get("ORG_ROOT_ID") or None,
            session_name=env.get("SESSION_NAME") or DEFAULT_SESSION_NAME,
            trusted_account_ids=[a.strip() for a in trusted.split(",") if a.strip()],
            slack_webhook_url=env.get("SLACK_WEBHOOK_URL") or None,
            notification_topic_arn=env.get("NOTIFICATION_TOPIC_ARN") or None,
            audit_table_name=env.get("AUDIT_TABLE_NAME") or None,
            dry_run=env.get("DRY_RUN", "false").lower() == "true",
            aws_region=env.get("AWS_REGION", "us-east-1"),
            api_timeout_seconds=int(env.get("API_TIMEOUT_SECONDS", "10")),
            log_level=env.get("LOG_LEVEL", "INFO"),
        )

    @classmethod
    def from_yaml(cls, file_path: str | Path) -> "QuarantineConfig":
        """Load configuration from a YAML file.

        Raises:
            FileNotFoundError: If file doesn't exist
            yaml.YAMLError: If YAML is invalid
            pydantic.ValidationError: If validation fails
        """
        file_path = Path(file_path)

        if not file_path.exists():
            raise FileNotFoundError(f"Config file not found: {file_path}")

        logger.info(f"Loading config from {file_path}")

        with open(file_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        return cls(**data)

    def require(self, *fields: str) -> None:
        """Ensure the named fields are set.

        Raises:
            ConfigError: Listing every missing field
        """
        missing = [name for name in fields if not getattr(self, name)]
        if missing:
            raise ConfigError(f"Missing required configuration: {', '.join(missing)}")

    def boto_config(self, max_attempts: Optional[int] = None) -> BotoConfig:
        """Client config carrying the invocation deadline.

        Args:
            max_attempts: Total attempts per call (1 disables botocore retries)
        """
        kwargs: dict[str, Any] = {
            "region_name": self.aws_region,
            "connect_timeout": self.api_timeout_seconds,
            "read_timeout": self.api_timeout_seconds,
        }
        if max_attempts is not None:
            kwargs["retries"] = {"total_max_attempts": max_attempts, "mode": "standard"}
        return BotoConfig(**kwargs)
