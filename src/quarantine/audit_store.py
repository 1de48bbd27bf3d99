"""Audit Store for persisting quarantine records to DynamoDB.

Keeps an audit trail of every attachment attempt, including the AWS error
behind a failure.
"""

import logging
from datetime import datetime
from typing import Any, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .models import QuarantineRecord


logger = logging.getLogger(__name__)


class AuditStore:
    """Store and retrieve quarantine records in DynamoDB."""

    def __init__(self, table_name: str, region: str = "us-east-1"):
        """Initialize Audit Store.

        Args:
            table_name: DynamoDB table name
            region: AWS region (default: us-east-1)
        """
        if not table_name:
            raise ValueError("table_name cannot be empty")

        self.table_name = table_name
        self.region = region

        self.dynamodb = boto3.resource("dynamodb", region_name=self.region)
        self.table = self.dynamodb.Table(self.table_name)

    def save_record(self, record: QuarantineRecord) -> bool:
        """Save quarantine record to DynamoDB.

        Args:
            record: QuarantineRecord to save

        Returns:
            True if saved successfully, False otherwise
        """
        try:
            self.table.put_item(Item=self._record_to_item(record))
            logger.info(f"Saved quarantine record {record.record_id} to audit store")
            return True

        except (ClientError, BotoCoreError) as e:
            logger.error(
                f"Failed to save quarantine record {record.record_id}: {e}",
                exc_info=True,
            )
            return False

    def get_record(self, record_id: str) -> Optional[QuarantineRecord]:
        """Retrieve record by ID.

        Returns:
            QuarantineRecord if found, None otherwise
        """
        try:
            response = self.table.get_item(Key={"record_id": record_id})

            if "Item" not in response:
                logger.warning(f"Quarantine record {record_id} not found")
                return None

            return self._item_to_record(response["Item"])

        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to get quarantine record {record_id}: {e}", exc_info=True)
            return None

    def query_records_by_ou(self, ou_id: str, limit: int = 100) -> list[QuarantineRecord]:
        """Query records for a specific OU, newest first.

        Args:
            ou_id: OU ID to query
            limit: Maximum number of results (default: 100)
        """
        try:
            response = self.table.query(
                IndexName="ou_id-recorded_at-index",
                KeyConditionExpression="ou_id = :ou",
                ExpressionAttributeValues={":ou": ou_id},
                Limit=limit,
                ScanIndexForward=False,
            )

            return [self._item_to_record(item) for item in response.get("Items", [])]

        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to query quarantine records for OU {ou_id}: {e}")
            return []

    # =========================================================================
    # Helpers
    # =========================================================================

    def _record_to_item(self, record: QuarantineRecord) -> dict[str, Any]:
        item: dict[str, Any] = {
            "record_id": record.record_id,
            "ou_id": record.ou_id,
            "policy_id": record.policy_id,
            "status": record.status,
            "recorded_at": record.recorded_at.isoformat(),
        }

        # DynamoDB rejects empty attribute values; only write what is set
        for key in ("account_id", "error_code", "error_message"):
            value = getattr(record, key)
            if value:
                item[key] = value

        return item

    def _item_to_record(self, item: dict[str, Any]) -> QuarantineRecord:
        return QuarantineRecord(
            record_id=item["record_id"],
            account_id=item.get("account_id"),
            ou_id=item["ou_id"],
            policy_id=item["policy_id"],
            status=item["status"],
            error_code=item.get("error_code"),
            error_message=item.get("error_message"),
            recorded_at=datetime.fromisoformat(item["recorded_at"]),
        )


def create_audit_table(
    table_name: str = "budget-quarantine-audit",
    region: str = "us-east-1",
) -> bool:
    """Create DynamoDB audit table with the OU index.

    Args:
        table_name: Table name to create
        region: AWS region

    Returns:
        True if created (or already exists), False otherwise
    """
    dynamodb = boto3.resource("dynamodb", region_name=region)

    try:
        table = dynamodb.create_table(
            TableName=table_name,
            KeySchema=[
                {"AttributeName": "record_id", "KeyType": "HASH"},
            ],
            AttributeDefinitions=[
                {"AttributeName": "record_id", "AttributeType": "S"},
                {"AttributeName": "ou_id", "AttributeType": "S"},
                {"AttributeName": "recorded_at", "AttributeType": "S"},
            ],
            GlobalSecondaryIndexes=[
                {
                    "IndexName": "ou_id-recorded_at-index",
                    "KeySchema": [
                        {"AttributeName": "ou_id", "KeyType": "HASH"},
                        {"AttributeName": "recorded_at", "KeyType": "RANGE"},
                    ],
                    "Projection": {"ProjectionType": "ALL"},
                }
            ],
            BillingMode="PAY_PER_REQUEST",
        )

        table.meta.client.get_waiter("table_exists").wait(TableName=table_name)

        logger.info(f"Created audit table {table_name}")
        return True

    except ClientError as e:
        if e.response["Error"]["Code"] == "ResourceInUseException":
            logger.info(f"Table {table_name} already exists")
            return True
        else:
            logger.error(f"Failed to create audit table: {e}")
            return False
