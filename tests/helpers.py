"""Test helpers shared across unit and integration tests."""

import json
from typing import Any


MANAGEMENT_ACCOUNT_ID = "123456789012"
CROSS_ACCOUNT_ROLE_ARN = "arn:aws:iam::999999999999:role/CrossAccountOrganizationRole"


def attached_policy_ids(org, target_id: str) -> list[str]:
    """SCP IDs attached directly to a target."""
    response = org.list_policies_for_target(TargetId=target_id, Filter="SERVICE_CONTROL_POLICY")
    return [p["Id"] for p in response["Policies"]]


class FakePaginatedClient:
    """Organizations stand-in that serves canned pages per (operation, ParentId)."""

    def __init__(self, pages: dict[tuple[str, str], list[dict]]):
        self.pages = pages
        self.calls: list[tuple[str, str]] = []

    def get_paginator(self, operation: str):
        client = self

        class _Paginator:
            def paginate(self, ParentId: str):
                client.calls.append((operation, ParentId))
                for page in client.pages.get((operation, ParentId), [{}]):
                    yield page

        return _Paginator()


class FakeSession:
    """Anything with .client(); returns the given client."""

    def __init__(self, client):
        self._client = client

    def client(self, service_name: str):
        return self._client


def delivered_event(entry: dict[str, Any], account: str, event_id: str = "evt-1") -> dict[str, Any]:
    """Shape a PutEvents entry the way EventBridge delivers it to a rule target."""
    return {
        "version": "0",
        "id": event_id,
        "detail-type": entry["DetailType"],
        "source": entry["Source"],
        "account": account,
        "time": "2025-01-15T10:30:00Z",
        "region": "us-east-1",
        "resources": [],
        "detail": json.loads(entry["Detail"]),
    }


def lambda_context(account_id: str, request_id: str = "req-123"):
    """Minimal Lambda context for a function in account_id."""

    class _Context:
        invoked_function_arn = (
            f"arn:aws:lambda:us-east-1:{account_id}:function:BudgetAlertForwarder"
        )
        aws_request_id = request_id

    return _Context()
