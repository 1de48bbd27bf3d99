"""Shared fixtures: mocked AWS credentials and a small organization."""

import json

import boto3
import pytest
from moto import mock_aws


@pytest.fixture(autouse=True)
def aws_credentials(monkeypatch):
    """Mock AWS credentials for boto3."""
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SECURITY_TOKEN", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")
    for name in (
        "DENY_ALL_POLICY_ID",
        "SCPId",
        "CROSS_ACCOUNT_ROLE_ARN",
        "CENTRAL_EVENT_BUS_ARN",
        "ORG_ROOT_ID",
        "SLACK_WEBHOOK_URL",
        "NOTIFICATION_TOPIC_ARN",
        "AUDIT_TABLE_NAME",
        "DRY_RUN",
        "TRUSTED_ACCOUNT_IDS",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def mock_org():
    """Mocked AWS Organizations with a finance OU, a nested OU and a deny-all SCP.

    Layout:
        root
        ├── finance            (member account)
        ├── engineering
        │   └── platform       (nested account)
        └── stray account      (directly under root)
    """
    with mock_aws():
        org = boto3.client("organizations", region_name="us-east-1")
        org.create_organization(FeatureSet="ALL")
        root_id = org.list_roots()["Roots"][0]["Id"]

        finance = org.create_organizational_unit(ParentId=root_id, Name="finance")
        engineering = org.create_organizational_unit(ParentId=root_id, Name="engineering")
        platform = org.create_organizational_unit(
            ParentId=engineering["OrganizationalUnit"]["Id"], Name="platform"
        )

        ids = {
            "root_id": root_id,
            "finance_ou": finance["OrganizationalUnit"]["Id"],
            "engineering_ou": engineering["OrganizationalUnit"]["Id"],
            "platform_ou": platform["OrganizationalUnit"]["Id"],
        }

        for key, name, parent in (
            ("member_account", "finance-prod", ids["finance_ou"]),
            ("nested_account", "platform-dev", ids["platform_ou"]),
            ("stray_account", "sandbox", None),
        ):
            status = org.create_account(AccountName=name, Email=f"{name}@example.com")
            account_id = status["CreateAccountStatus"]["AccountId"]
            if parent:
                org.move_account(
                    AccountId=account_id,
                    SourceParentId=root_id,
                    DestinationParentId=parent,
                )
            ids[key] = account_id

        policy = org.create_policy(
            Content=json.dumps(
                {
                    "Version": "2012-10-17",
                    "Statement": [{"Effect": "Deny", "Action": "*", "Resource": "*"}],
                }
            ),
            Description="Deny all API activity",
            Name="DenyAll",
            Type="SERVICE_CONTROL_POLICY",
        )
        ids["deny_all_policy_id"] = policy["Policy"]["PolicySummary"]["Id"]

        yield org, ids
