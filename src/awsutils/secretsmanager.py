"""Secrets Manager utilities.

Plain string secrets: create, update, read, delete and copy to other regions.
AWS error codes surface through the exception hierarchy with ``error_code``
set, so callers can branch on e.g. ``ResourceExistsError`` or
``ResourceNotFoundError``.
"""

import logging
from collections.abc import Sequence
from datetime import datetime
from typing import Any, Final

import boto3
from pydantic import BaseModel

from awsutils.client import AWSClientWrapper, create_aws_client
from awsutils.exceptions import AWSError, ResourceExistsError, SecretsManagerError
from awsutils.session import create_session

logger: Final = logging.getLogger(__name__)


class SecretParams(BaseModel):
    name: str | None = None
    description: str | None = None
    value: str | None = None
    created: datetime | None = None
    modified: datetime | None = None


class SecretsManagerConnection:
    """Connection for Secrets Manager operations.

    Example:
        >>> conn = SecretsManagerConnection(region="us-east-1")
        >>> await conn.create_or_update_secret("db-password", "primary db", "hunter2")
        >>> await conn.replicate_secret("db-password", "db-password", ["eu-west-1"])
    """

    def __init__(
        self,
        region: str | None = None,
        client: AWSClientWrapper | None = None,
        session: boto3.Session | None = None,
        params: SecretParams | None = None,
    ) -> None:
        self.region = region
        self.session = session
        self.client = client or create_aws_client("secretsmanager", region=region, session=session)
        self.params = params or SecretParams()
        logger.info(f"Initialized SecretsManagerConnection for region {region or 'default'}")

    async def create_secret(self, name: str, description: str, value: str) -> str:
        """Create a string secret.

        Returns:
            The new secret's ARN.

        Raises:
            ResourceExistsError: If a secret with ``name`` already exists.
        """
        return await self._create_secret(self.client, name, description, value)

    async def update_secret(self, name: str, value: str) -> str:
        """Store a new value for an existing secret.

        Returns:
            The secret's ARN.
        """
        return await self._update_secret(self.client, name, value)

    async def create_or_update_secret(self, name: str, description: str, value: str) -> str:
        """Create a secret, or update its value if it already exists."""
        return await self._create_or_update_secret(self.client, name, description, value)

    async def delete_secret(self, name: str, force_delete: bool = True) -> None:
        """Delete a secret.

        Args:
            name: Secret name or ARN.
            force_delete: Skip the recovery window. Defaults to True.
        """
        logger.warning(f"Deleting secret {name} (force={force_delete})")

        request: dict[str, Any] = {"SecretId": name}
        if force_delete:
            request["ForceDeleteWithoutRecovery"] = True

        try:
            await self.client.call("delete_secret", **request)
        except Exception as e:
            logger.error(f"Failed to delete secret {name}: {e}")
            raise

    async def get_secret(self, name: str) -> str:
        """Return the secret's current SecretString.

        Raises:
            ResourceNotFoundError: If the secret doesn't exist.
            SecretsManagerError: If the secret has no string value.
        """
        response = await self.client.call("get_secret_value", SecretId=name)
        value = response.get("SecretString")
        if value is None:
            raise SecretsManagerError(
                f"secret {name} has no string value",
                service="secretsmanager",
                operation="get_secret_value",
            )
        return str(value)

    async def replicate_secret(
        self, name: str, new_name: str, target_regions: Sequence[str]
    ) -> None:
        """Copy a secret's current value to ``new_name`` in each target region.

        Raises:
            SecretsManagerError: On the first region that fails, naming it.
        """
        value = await self.get_secret(name)
        description = f"Replica of {name}"

        for region in target_regions:
            logger.info(f"Replicating secret {name} to {new_name} in {region}")
            regional_client = create_aws_client("secretsmanager", region=region, session=self.session)

            try:
                await self._create_or_update_secret(regional_client, new_name, description, value)
            except AWSError as e:
                logger.error(f"Failed to replicate secret {name} to {region}: {e}")
                raise SecretsManagerError(
                    f"failed to replicate secret to region {region}: {e.message}",
                    service="secretsmanager",
                    operation="replicate_secret",
                    error_code=e.error_code,
                ) from e

    async def _create_secret(
        self, client: AWSClientWrapper, name: str, description: str, value: str
    ) -> str:
        logger.info(f"Creating secret {name}")

        try:
            response = await client.call(
                "create_secret", Name=name, Description=description, SecretString=value
            )
        except ResourceExistsError:
            logger.debug(f"Secret {name} already exists")
            raise
        except Exception as e:
            logger.error(f"Failed to create secret {name}: {e}")
            raise

        return str(response.get("ARN", ""))

    async def _update_secret(self, client: AWSClientWrapper, name: str, value: str) -> str:
        logger.info(f"Updating secret {name}")

        try:
            response = await client.call("put_secret_value", SecretId=name, SecretString=value)
        except Exception as e:
            logger.error(f"Failed to update secret {name}: {e}")
            raise

        return str(response.get("ARN", ""))

    async def _create_or_update_secret(
        self, client: AWSClientWrapper, name: str, description: str, value: str
    ) -> str:
        try:
            return await self._create_secret(client, name, description, value)
        except ResourceExistsError:
            return await self._update_secret(client, name, value)


def create_connection(
    region: str | None = None, params: SecretParams | None = None
) -> SecretsManagerConnection:
    session = create_session(region)
    return SecretsManagerConnection(region=session.region_name, session=session, params=params)
