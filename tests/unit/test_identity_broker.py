"""Tests for Identity Broker."""

from unittest.mock import MagicMock

import boto3
import pytest
from botocore.exceptions import ClientError, EndpointConnectionError
from moto import mock_aws

from src.quarantine.config import QuarantineConfig
from src.quarantine.errors import AuthError
from src.quarantine.identity_broker import (
    IdentityBroker,
    ScopedSession,
    parse_role_arn,
    sanitize_session_name,
)
from tests.helpers import CROSS_ACCOUNT_ROLE_ARN, MANAGEMENT_ACCOUNT_ID


@pytest.fixture
def mock_sts():
    """Mock AWS STS for tests."""
    with mock_aws():
        yield boto3.client("sts", region_name="us-east-1")


def _sts_stub(caller_account="111111111111"):
    sts = MagicMock()
    sts.get_caller_identity.return_value = {"Account": caller_account}
    return sts


class TestParseRoleArn:
    def test_parse_role_arn(self):
        assert parse_role_arn(CROSS_ACCOUNT_ROLE_ARN) == (
            "999999999999",
            "CrossAccountOrganizationRole",
        )

    def test_parse_role_with_path(self):
        account, name = parse_role_arn("arn:aws:iam::999999999999:role/org/QuarantineRole")
        assert account == "999999999999"
        assert name == "org/QuarantineRole"

    @pytest.mark.parametrize(
        "arn",
        [
            "",
            "not-an-arn",
            "arn:aws:iam::999999999999:user/Someone",
            "arn:aws:iam::9999:role/Short",
        ],
    )
    def test_invalid_arn(self, arn):
        with pytest.raises(AuthError, match="Invalid IAM role ARN"):
            parse_role_arn(arn)


class TestSanitizeSessionName:
    def test_keeps_valid_name(self):
        assert sanitize_session_name("BudgetAlertSession") == "BudgetAlertSession"

    def test_replaces_invalid_characters(self):
        assert sanitize_session_name("budget alert/session") == "budget-alert-session"

    def test_truncates_to_64(self):
        assert len(sanitize_session_name("a" * 100)) == 64

    def test_fallback_for_empty(self):
        assert sanitize_session_name("") == "quarantine-session"


class TestIdentityBrokerInit:
    def test_default_client_disables_retries(self):
        broker = IdentityBroker(boto_config=QuarantineConfig(api_timeout_seconds=5).boto_config())

        config = broker.sts_client.meta.config
        assert config.retries["total_max_attempts"] == 1
        assert config.read_timeout == 5

    def test_default_client_without_config(self):
        broker = IdentityBroker()
        assert broker.sts_client.meta.config.retries["total_max_attempts"] == 1


class TestAssumeRole:
    """Test cross-account role assumption."""

    def test_assume_role_success(self, mock_sts):
        broker = IdentityBroker(sts_client=mock_sts, region="us-east-1")

        session = broker.assume_role(CROSS_ACCOUNT_ROLE_ARN, "BudgetAlertSession")

        assert isinstance(session, ScopedSession)
        assert session.role_arn == CROSS_ACCOUNT_ROLE_ARN
        assert session.session_name == "BudgetAlertSession"
        assert session.account_id == "999999999999"
        assert session.expiration is not None

    def test_repr_has_no_secrets(self, mock_sts):
        session = IdentityBroker(sts_client=mock_sts).assume_role(
            CROSS_ACCOUNT_ROLE_ARN, "BudgetAlertSession"
        )

        text = repr(session)
        assert CROSS_ACCOUNT_ROLE_ARN in text
        assert "SecretAccessKey" not in text
        assert "token" not in text.lower()

    def test_same_account_rejected(self, mock_sts):
        broker = IdentityBroker(sts_client=mock_sts)

        with pytest.raises(AuthError, match="own account"):
            broker.assume_role(
                f"arn:aws:iam::{MANAGEMENT_ACCOUNT_ID}:role/CrossAccountOrganizationRole",
                "BudgetAlertSession",
            )

    def test_untrusted_account_rejected_before_sts(self):
        sts = _sts_stub()
        broker = IdentityBroker(sts_client=sts, trusted_account_ids=["888888888888"])

        with pytest.raises(AuthError, match="not in the trusted account list"):
            broker.assume_role(CROSS_ACCOUNT_ROLE_ARN, "BudgetAlertSession")

        sts.assume_role.assert_not_called()

    def test_trusted_account_allowed(self):
        sts = _sts_stub()
        sts.assume_role.return_value = {
            "Credentials": {
                "AccessKeyId": "AKIAEXAMPLE",
                "SecretAccessKey": "secret",
                "SessionToken": "token",
            }
        }
        broker = IdentityBroker(sts_client=sts, trusted_account_ids=["999999999999"])

        session = broker.assume_role(CROSS_ACCOUNT_ROLE_ARN, "Budget Alert")

        sts.assume_role.assert_called_once_with(
            RoleArn=CROSS_ACCOUNT_ROLE_ARN, RoleSessionName="Budget-Alert"
        )
        assert session.expiration is None

    def test_access_denied_becomes_auth_error(self):
        sts = _sts_stub()
        sts.assume_role.side_effect = ClientError(
            {"Error": {"Code": "AccessDenied", "Message": "not authorized"}}, "AssumeRole"
        )

        with pytest.raises(AuthError) as exc_info:
            IdentityBroker(sts_client=sts).assume_role(CROSS_ACCOUNT_ROLE_ARN, "s1")

        assert exc_info.value.error_code == "AccessDenied"
        assert exc_info.value.stage == "identity"
        assert isinstance(exc_info.value.__cause__, ClientError)

    def test_network_failure_becomes_auth_error(self):
        sts = _sts_stub()
        sts.assume_role.side_effect = EndpointConnectionError(endpoint_url="https://sts")

        with pytest.raises(AuthError, match="Failed to reach STS"):
            IdentityBroker(sts_client=sts).assume_role(CROSS_ACCOUNT_ROLE_ARN, "s1")

    def test_caller_identity_failure(self):
        sts = MagicMock()
        sts.get_caller_identity.side_effect = ClientError(
            {"Error": {"Code": "ExpiredToken", "Message": "expired"}}, "GetCallerIdentity"
        )

        with pytest.raises(AuthError, match="caller identity"):
            IdentityBroker(sts_client=sts).assume_role(CROSS_ACCOUNT_ROLE_ARN, "s1")

    def test_missing_credentials(self):
        sts = _sts_stub()
        sts.assume_role.return_value = {}

        with pytest.raises(AuthError, match="no credentials"):
            IdentityBroker(sts_client=sts).assume_role(CROSS_ACCOUNT_ROLE_ARN, "s1")


class TestScopedSession:
    def test_client_uses_wrapped_session(self):
        inner = MagicMock()
        session = ScopedSession(inner, CROSS_ACCOUNT_ROLE_ARN, "s1")

        session.client("organizations")

        inner.client.assert_called_once_with("organizations")
