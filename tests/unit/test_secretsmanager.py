"""Tests for Secrets Manager utilities."""

from unittest.mock import AsyncMock, Mock, patch

import pytest

from awsutils.exceptions import (
    ResourceExistsError,
    ResourceNotFoundError,
    SecretsManagerError,
)
from awsutils.secretsmanager import SecretsManagerConnection

ARN = "arn:aws:secretsmanager:us-east-1:123456789012:secret:db-abc123"


def exists_error() -> ResourceExistsError:
    return ResourceExistsError(
        "exists", service="secretsmanager", error_code="ResourceExistsException"
    )


class TestSecretsManagerConnection:
    """Test suite for SecretsManagerConnection."""

    @pytest.fixture
    def conn(self, mock_client: Mock) -> SecretsManagerConnection:
        return SecretsManagerConnection(client=mock_client)

    @pytest.mark.asyncio
    async def test_create_secret(self, conn: SecretsManagerConnection, mock_client: Mock) -> None:
        mock_client.call.return_value = {"ARN": ARN, "Name": "db"}

        assert await conn.create_secret("db", "database password", "hunter2") == ARN
        mock_client.call.assert_called_once_with(
            "create_secret", Name="db", Description="database password", SecretString="hunter2"
        )

    @pytest.mark.asyncio
    async def test_create_secret_exists(
        self, conn: SecretsManagerConnection, mock_client: Mock
    ) -> None:
        mock_client.call.side_effect = exists_error()

        with pytest.raises(ResourceExistsError):
            await conn.create_secret("db", "database password", "hunter2")

    @pytest.mark.asyncio
    async def test_update_secret(self, conn: SecretsManagerConnection, mock_client: Mock) -> None:
        mock_client.call.return_value = {"ARN": ARN}

        assert await conn.update_secret("db", "new-value") == ARN
        mock_client.call.assert_called_once_with(
            "put_secret_value", SecretId="db", SecretString="new-value"
        )

    @pytest.mark.asyncio
    async def test_create_or_update_falls_back_to_update(
        self, conn: SecretsManagerConnection, mock_client: Mock
    ) -> None:
        mock_client.call.side_effect = [exists_error(), {"ARN": ARN}]

        assert await conn.create_or_update_secret("db", "desc", "v2") == ARN
        operations = [c.args[0] for c in mock_client.call.call_args_list]
        assert operations == ["create_secret", "put_secret_value"]

    @pytest.mark.asyncio
    async def test_create_or_update_propagates_other_errors(
        self, conn: SecretsManagerConnection, mock_client: Mock
    ) -> None:
        mock_client.call.side_effect = SecretsManagerError(
            "limit", service="secretsmanager", error_code="LimitExceededException"
        )

        with pytest.raises(SecretsManagerError) as exc_info:
            await conn.create_or_update_secret("db", "desc", "v2")

        assert exc_info.value.error_code == "LimitExceededException"
        assert mock_client.call.call_count == 1

    @pytest.mark.asyncio
    async def test_delete_secret_forces_by_default(
        self, conn: SecretsManagerConnection, mock_client: Mock
    ) -> None:
        await conn.delete_secret("db")

        mock_client.call.assert_called_once_with(
            "delete_secret", SecretId="db", ForceDeleteWithoutRecovery=True
        )

    @pytest.mark.asyncio
    async def test_delete_secret_with_recovery_window(
        self, conn: SecretsManagerConnection, mock_client: Mock
    ) -> None:
        await conn.delete_secret("db", force_delete=False)

        mock_client.call.assert_called_once_with("delete_secret", SecretId="db")

    @pytest.mark.asyncio
    async def test_get_secret(self, conn: SecretsManagerConnection, mock_client: Mock) -> None:
        mock_client.call.return_value = {"Name": "db", "SecretString": "hunter2"}

        assert await conn.get_secret("db") == "hunter2"

    @pytest.mark.asyncio
    async def test_get_secret_binary_only(
        self, conn: SecretsManagerConnection, mock_client: Mock
    ) -> None:
        mock_client.call.return_value = {"Name": "db", "SecretBinary": b"\x00"}

        with pytest.raises(SecretsManagerError, match="no string value"):
            await conn.get_secret("db")

    @pytest.mark.asyncio
    async def test_get_secret_missing(
        self, conn: SecretsManagerConnection, mock_client: Mock
    ) -> None:
        mock_client.call.side_effect = ResourceNotFoundError(
            "missing", service="secretsmanager", error_code="ResourceNotFoundException"
        )

        with pytest.raises(ResourceNotFoundError):
            await conn.get_secret("db")


class TestReplicateSecret:
    """Test suite for cross-region replication."""

    @pytest.fixture
    def conn(self, mock_client: Mock) -> SecretsManagerConnection:
        mock_client.call.return_value = {"SecretString": "hunter2"}
        return SecretsManagerConnection(client=mock_client)

    @staticmethod
    def regional_client(*responses: object) -> Mock:
        client = Mock()
        client.call = AsyncMock(side_effect=list(responses))
        return client

    @pytest.mark.asyncio
    async def test_replicates_to_each_region(self, conn: SecretsManagerConnection) -> None:
        west = self.regional_client({"ARN": "arn-west"})
        south = self.regional_client(exists_error(), {"ARN": "arn-south"})

        with patch(
            "awsutils.secretsmanager.create_aws_client", side_effect=[west, south]
        ) as mock_create:
            await conn.replicate_secret("db", "db-copy", ["eu-west-1", "ap-south-1"])

        assert [c.kwargs["region"] for c in mock_create.call_args_list] == [
            "eu-west-1",
            "ap-south-1",
        ]
        west.call.assert_called_once_with(
            "create_secret", Name="db-copy", Description="Replica of db", SecretString="hunter2"
        )
        south.call.assert_called_with("put_secret_value", SecretId="db-copy", SecretString="hunter2")

    @pytest.mark.asyncio
    async def test_reads_source_once(
        self, conn: SecretsManagerConnection, mock_client: Mock
    ) -> None:
        clients = [self.regional_client({"ARN": "a"}), self.regional_client({"ARN": "b"})]

        with patch("awsutils.secretsmanager.create_aws_client", side_effect=clients):
            await conn.replicate_secret("db", "db", ["eu-west-1", "eu-west-2"])

        mock_client.call.assert_called_once_with("get_secret_value", SecretId="db")

    @pytest.mark.asyncio
    async def test_first_failure_names_region(self, conn: SecretsManagerConnection) -> None:
        failing = self.regional_client(
            SecretsManagerError("kms", service="secretsmanager", error_code="EncryptionFailure")
        )
        untouched = self.regional_client({"ARN": "never"})

        with patch(
            "awsutils.secretsmanager.create_aws_client", side_effect=[failing, untouched]
        ):
            with pytest.raises(SecretsManagerError, match="region eu-central-1") as exc_info:
                await conn.replicate_secret("db", "db", ["eu-central-1", "us-west-2"])

        assert exc_info.value.error_code == "EncryptionFailure"
        untouched.call.assert_not_called()
