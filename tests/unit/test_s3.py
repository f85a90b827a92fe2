"""Tests for S3 bucket and object utilities."""

from datetime import UTC, datetime
from pathlib import Path
from unittest.mock import Mock, call, patch

import pytest

from awsutils.exceptions import ResourceExistsError, S3Error
from awsutils.s3 import S3Connection


class TestS3Connection:
    """Test suite for S3Connection."""

    @pytest.fixture
    def conn(self, mock_client: Mock) -> S3Connection:
        return S3Connection(client=mock_client)

    def test_initialization_with_region(self) -> None:
        with patch("awsutils.s3.create_aws_client") as mock_create:
            conn = S3Connection(region="eu-west-1")

            assert conn.params.bucket_name is None
            mock_create.assert_called_once_with("s3", region="eu-west-1", session=None)

    @pytest.mark.asyncio
    async def test_create_bucket_in_us_east_1(self, conn: S3Connection, mock_client: Mock) -> None:
        await conn.create_bucket("my-bucket")

        mock_client.call.assert_called_once_with("create_bucket", Bucket="my-bucket")

    @pytest.mark.asyncio
    async def test_create_bucket_sends_location_constraint(
        self, conn: S3Connection, mock_client: Mock
    ) -> None:
        mock_client.region_name = "eu-west-1"

        await conn.create_bucket("my-bucket")

        mock_client.call.assert_called_once_with(
            "create_bucket",
            Bucket="my-bucket",
            CreateBucketConfiguration={"LocationConstraint": "eu-west-1"},
        )

    @pytest.mark.asyncio
    async def test_create_bucket_already_owned(self, conn: S3Connection, mock_client: Mock) -> None:
        mock_client.call.side_effect = ResourceExistsError(
            "owned", service="s3", error_code="BucketAlreadyOwnedByYou"
        )

        await conn.create_bucket("my-bucket")

    @pytest.mark.asyncio
    async def test_create_bucket_taken_by_someone_else(
        self, conn: S3Connection, mock_client: Mock
    ) -> None:
        mock_client.call.side_effect = ResourceExistsError(
            "taken", service="s3", error_code="BucketAlreadyExists"
        )

        with pytest.raises(ResourceExistsError) as exc_info:
            await conn.create_bucket("my-bucket")

        assert exc_info.value.error_code == "BucketAlreadyExists"

    @pytest.mark.asyncio
    async def test_wait_for_bucket(self, conn: S3Connection, mock_client: Mock) -> None:
        await conn.wait_for_bucket("my-bucket")

        mock_client.wait.assert_called_once_with("bucket_exists", Bucket="my-bucket")

    @pytest.mark.asyncio
    async def test_get_buckets(self, conn: S3Connection, mock_client: Mock) -> None:
        created = datetime(2024, 3, 1, tzinfo=UTC)
        mock_client.call.return_value = {
            "Buckets": [{"Name": "a", "CreationDate": created}, {"Name": "b"}]
        }

        buckets = await conn.get_buckets()

        assert [b.name for b in buckets] == ["a", "b"]
        assert buckets[0].creation_date == created
        assert buckets[1].creation_date is None

    @pytest.mark.asyncio
    async def test_empty_bucket_batches_deletes(
        self, conn: S3Connection, mock_client: Mock
    ) -> None:
        keys = [f"obj-{i}" for i in range(1500)]
        mock_client.paginate.return_value = [
            {"Contents": [{"Key": key} for key in keys[:1000]]},
            {"Contents": [{"Key": key} for key in keys[1000:]]},
        ]
        mock_client.call.return_value = {"Deleted": []}

        deleted = await conn.empty_bucket("my-bucket")

        assert deleted == 1500
        mock_client.paginate.assert_called_once_with("list_objects_v2", Bucket="my-bucket")
        assert mock_client.call.call_count == 2
        batch_sizes = [len(c.kwargs["Delete"]["Objects"]) for c in mock_client.call.call_args_list]
        assert batch_sizes == [1000, 500]

    @pytest.mark.asyncio
    async def test_empty_bucket_with_no_objects(
        self, conn: S3Connection, mock_client: Mock
    ) -> None:
        mock_client.paginate.return_value = [{"KeyCount": 0}]

        assert await conn.empty_bucket("my-bucket") == 0
        mock_client.call.assert_not_called()

    @pytest.mark.asyncio
    async def test_empty_bucket_reports_delete_errors(
        self, conn: S3Connection, mock_client: Mock
    ) -> None:
        mock_client.paginate.return_value = [{"Contents": [{"Key": "locked"}]}]
        mock_client.call.return_value = {
            "Errors": [{"Key": "locked", "Code": "AccessDenied", "Message": "Access Denied"}]
        }

        with pytest.raises(S3Error, match="failed to delete object locked") as exc_info:
            await conn.empty_bucket("my-bucket")

        assert exc_info.value.error_code == "AccessDenied"

    @pytest.mark.asyncio
    async def test_destroy_bucket_waits_for_deletion(
        self, conn: S3Connection, mock_client: Mock
    ) -> None:
        await conn.destroy_bucket("my-bucket")

        mock_client.call.assert_called_once_with("delete_bucket", Bucket="my-bucket")
        mock_client.wait.assert_called_once_with("bucket_not_exists", Bucket="my-bucket")

    @pytest.mark.asyncio
    async def test_upload_bucket_file(
        self, conn: S3Connection, mock_client: Mock, tmp_path: Path
    ) -> None:
        file_path = tmp_path / "report.csv"
        file_path.write_text("a,b\n")

        key = await conn.upload_bucket_file("my-bucket", file_path, key="reports/report.csv")

        assert key == "reports/report.csv"
        mock_client.call.assert_called_once_with(
            "upload_file",
            Filename=str(file_path),
            Bucket="my-bucket",
            Key="reports/report.csv",
        )

    @pytest.mark.asyncio
    async def test_upload_bucket_file_defaults_key_to_path(
        self, conn: S3Connection, mock_client: Mock, tmp_path: Path
    ) -> None:
        file_path = tmp_path / "notes.txt"
        file_path.write_text("hi")

        key = await conn.upload_bucket_file("my-bucket", str(file_path))

        assert key == str(file_path)

    @pytest.mark.asyncio
    async def test_upload_missing_file(self, conn: S3Connection, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            await conn.upload_bucket_file("my-bucket", tmp_path / "missing.txt")

    @pytest.mark.asyncio
    async def test_upload_bucket_dir(
        self, conn: S3Connection, mock_client: Mock, tmp_path: Path
    ) -> None:
        (tmp_path / "a.txt").write_text("a")
        (tmp_path / "sub").mkdir()
        (tmp_path / "sub" / "b.txt").write_text("b")

        keys = await conn.upload_bucket_dir("my-bucket", tmp_path)

        assert keys == [str(tmp_path / "a.txt"), str(tmp_path / "sub" / "b.txt")]
        assert mock_client.call.call_count == 2

    @pytest.mark.asyncio
    async def test_upload_bucket_dir_missing(self, conn: S3Connection, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            await conn.upload_bucket_dir("my-bucket", tmp_path / "nope")

    @pytest.mark.asyncio
    async def test_download_bucket_file(
        self, conn: S3Connection, mock_client: Mock, tmp_path: Path
    ) -> None:
        target = tmp_path / "nested" / "out.txt"

        result = await conn.download_bucket_file("my-bucket", "data/out.txt", target)

        assert result == target
        assert target.parent.is_dir()
        assert mock_client.call.call_args == call(
            "download_file", Bucket="my-bucket", Key="data/out.txt", Filename=str(target)
        )
