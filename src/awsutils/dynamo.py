"""DynamoDB table utilities.

Tables are created with a single string hash key ``id`` and on-demand
billing.
"""

import logging
import uuid
from datetime import datetime
from typing import Final

import boto3
from pydantic import BaseModel, Field

from awsutils.client import AWSClientWrapper, create_aws_client
from awsutils.config import get_settings
from awsutils.constants import DYNAMO_BILLING_MODE, DYNAMO_HASH_KEY
from awsutils.exceptions import DynamoDBError
from awsutils.session import create_session

logger: Final = logging.getLogger(__name__)


class DynamoParams(BaseModel):
    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    table_name: str | None = None
    created: datetime | None = None
    modified: datetime | None = None


class DynamoConnection:
    """Connection for DynamoDB table operations.

    Example:
        >>> conn = DynamoConnection(region="us-east-1")
        >>> await conn.create_table("events")
        >>> await conn.wait_for_table("events")
    """

    def __init__(
        self,
        region: str | None = None,
        client: AWSClientWrapper | None = None,
        session: boto3.Session | None = None,
        params: DynamoParams | None = None,
    ) -> None:
        self.region = region
        self.session = session
        self.client = client or create_aws_client("dynamodb", region=region, session=session)
        self.params = params or DynamoParams()
        logger.info(f"Initialized DynamoConnection for region {region or 'default'}")

    def get_region(self) -> str:
        """Return the region the DynamoDB client is bound to.

        Raises:
            DynamoDBError: If the client has no region.
        """
        region = self.client.region_name
        if not region:
            raise DynamoDBError("failed to retrieve region", service="dynamodb")
        return region

    async def get_tables(self) -> list[str]:
        """List every table name in the region, across all pages."""
        pages = await self.client.paginate("list_tables")
        tables = [name for page in pages for name in page.get("TableNames", [])]
        logger.debug(f"Found {len(tables)} table(s)")
        return tables

    async def create_table(self, table_name: str) -> str:
        """Create an on-demand table keyed by ``id``.

        Returns:
            The new table's status (normally ``CREATING``).

        Raises:
            ResourceExistsError: If the table already exists.
        """
        logger.info(f"Creating DynamoDB table {table_name}")

        try:
            response = await self.client.call(
                "create_table",
                TableName=table_name,
                AttributeDefinitions=[{"AttributeName": DYNAMO_HASH_KEY, "AttributeType": "S"}],
                KeySchema=[{"AttributeName": DYNAMO_HASH_KEY, "KeyType": "HASH"}],
                BillingMode=DYNAMO_BILLING_MODE,
            )
        except Exception as e:
            logger.error(f"Failed to create table {table_name}: {e}")
            raise

        return str(response.get("TableDescription", {}).get("TableStatus", ""))

    async def wait_for_table(
        self,
        table_name: str,
        delay: float | None = None,
        max_attempts: int | None = None,
    ) -> None:
        """Wait until a table exists and is active.

        Raises:
            TimeoutError: If the table is not active after ``max_attempts`` checks.
        """
        settings = get_settings()
        delay = settings.dynamo_table_wait_delay if delay is None else delay
        max_attempts = (
            settings.dynamo_table_wait_max_attempts if max_attempts is None else max_attempts
        )

        logger.info(f"Waiting for table {table_name} (every {delay}s, {max_attempts} attempts)")
        await self.client.wait(
            "table_exists", delay=delay, max_attempts=max_attempts, TableName=table_name
        )

    async def destroy_table(self, table_name: str) -> None:
        logger.warning(f"Deleting DynamoDB table {table_name} - THIS IS DESTRUCTIVE")

        try:
            await self.client.call("delete_table", TableName=table_name)
        except Exception as e:
            logger.error(f"Failed to delete table {table_name}: {e}")
            raise


def create_connection(
    region: str | None = None, params: DynamoParams | None = None
) -> DynamoConnection:
    session = create_session(region)
    return DynamoConnection(region=session.region_name, session=session, params=params)
