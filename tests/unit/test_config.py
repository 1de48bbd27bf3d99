"""Tests for QuarantineConfig."""

import pytest
from pydantic import ValidationError as PydanticValidationError

from src.quarantine.config import DEFAULT_SESSION_NAME, QuarantineConfig
from src.quarantine.errors import ConfigError


class TestFromEnv:
    """Test building configuration from environment variables."""

    def test_full_environment(self):
        config = QuarantineConfig.from_env(
            {
                "DENY_ALL_POLICY_ID": "p-denyall",
                "CROSS_ACCOUNT_ROLE_ARN": "arn:aws:iam::999999999999:role/CrossAccountOrganizationRole",
                "CENTRAL_EVENT_BUS_ARN": "arn:aws:events:us-east-1:999999999999:event-bus/central",
                "ORG_ROOT_ID": "r-abc",
                "TRUSTED_ACCOUNT_IDS": "999999999999, 888888888888",
                "DRY_RUN": "TRUE",
                "API_TIMEOUT_SECONDS": "5",
            }
        )

        assert config.deny_all_policy_id == "p-denyall"
        assert config.org_root_id == "r-abc"
        assert config.trusted_account_ids == ["999999999999", "888888888888"]
        assert config.dry_run is True
        assert config.api_timeout_seconds == 5
        assert config.session_name == DEFAULT_SESSION_NAME

    def test_empty_environment(self):
        config = QuarantineConfig.from_env({})

        assert config.deny_all_policy_id is None
        assert config.cross_account_role_arn is None
        assert config.dry_run is False
        assert config.aws_region == "us-east-1"
        assert config.trusted_account_ids == []

    def test_legacy_scp_variable(self):
        """The management stack historically exported SCPId."""
        config = QuarantineConfig.from_env({"SCPId": "p-legacy"})
        assert config.deny_all_policy_id == "p-legacy"

    def test_reads_os_environ_by_default(self, monkeypatch):
        monkeypatch.setenv("ORG_ROOT_ID", "r-fromenv")
        assert QuarantineConfig.from_env().org_root_id == "r-fromenv"


class TestValidation:
    def test_invalid_policy_id(self):
        with pytest.raises(PydanticValidationError, match="p-"):
            QuarantineConfig(deny_all_policy_id="denyall")

    def test_invalid_root_id(self):
        with pytest.raises(PydanticValidationError, match="r-"):
            QuarantineConfig(org_root_id="ou-abc")

    def test_invalid_trusted_account(self):
        with pytest.raises(PydanticValidationError, match="12 digits"):
            QuarantineConfig(trusted_account_ids=["123"])


class TestRequire:
    def test_require_passes_when_set(self):
        config = QuarantineConfig(deny_all_policy_id="p-denyall")
        config.require("deny_all_policy_id")

    def test_require_lists_all_missing(self):
        config = QuarantineConfig(org_root_id="r-abc")

        with pytest.raises(ConfigError) as exc_info:
            config.require("cross_account_role_arn", "central_channel_ref", "org_root_id")

        message = str(exc_info.value)
        assert "cross_account_role_arn" in message
        assert "central_channel_ref" in message
        assert "org_root_id" not in message


class TestFromYaml:
    def test_load_yaml(self, tmp_path):
        path = tmp_path / "quarantine.yaml"
        path.write_text("deny_all_policy_id: p-denyall\norg_root_id: r-abc\ndry_run: true\n")

        config = QuarantineConfig.from_yaml(path)

        assert config.deny_all_policy_id == "p-denyall"
        assert config.dry_run is True

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            QuarantineConfig.from_yaml(tmp_path / "missing.yaml")


class TestBotoConfig:
    def test_timeouts_and_region(self):
        boto_config = QuarantineConfig(api_timeout_seconds=7, aws_region="eu-west-1").boto_config()

        assert boto_config.connect_timeout == 7
        assert boto_config.read_timeout == 7
        assert boto_config.region_name == "eu-west-1"

    def test_retries_disabled(self):
        boto_config = QuarantineConfig().boto_config(max_attempts=1)
        assert boto_config.retries["total_max_attempts"] == 1
