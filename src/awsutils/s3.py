"""S3 bucket and object utilities.

Bucket lifecycle (create, wait, empty, destroy) plus single-file and
directory transfers through the boto3 managed transfer methods.
"""

import logging
from collections.abc import Iterator
from datetime import datetime
from pathlib import Path
from typing import Any, Final

import boto3
from pydantic import BaseModel

from awsutils.client import AWSClientWrapper, create_aws_client
from awsutils.constants import S3_DEFAULT_REGION, S3_DELETE_BATCH_SIZE
from awsutils.exceptions import ResourceExistsError, S3Error
from awsutils.session import create_session

logger: Final = logging.getLogger(__name__)


class S3Params(BaseModel):
    bucket_name: str | None = None
    created: datetime | None = None
    modified: datetime | None = None


class S3Bucket(BaseModel):
    name: str
    creation_date: datetime | None = None


class S3Connection:
    """Connection for S3 bucket and object operations.

    Example:
        >>> conn = S3Connection(region="eu-west-1")
        >>> await conn.create_bucket("my-bucket")
        >>> await conn.upload_bucket_file("my-bucket", "report.csv")
    """

    def __init__(
        self,
        region: str | None = None,
        client: AWSClientWrapper | None = None,
        session: boto3.Session | None = None,
        params: S3Params | None = None,
    ) -> None:
        self.region = region
        self.session = session
        self.client = client or create_aws_client("s3", region=region, session=session)
        self.params = params or S3Params()
        logger.info(f"Initialized S3Connection for region {region or 'default'}")

    async def create_bucket(self, bucket_name: str) -> None:
        """Create a bucket in the client's region.

        A bucket already owned by the caller counts as created.

        Raises:
            ResourceExistsError: If another account owns the bucket name.
            S3Error: If AWS API call fails.
        """
        request: dict[str, Any] = {"Bucket": bucket_name}
        region = self.client.region_name or self.region
        if region and region != S3_DEFAULT_REGION:
            request["CreateBucketConfiguration"] = {"LocationConstraint": region}

        logger.info(f"Creating bucket {bucket_name} in {region or S3_DEFAULT_REGION}")

        try:
            await self.client.call("create_bucket", **request)
        except ResourceExistsError as e:
            if e.error_code == "BucketAlreadyOwnedByYou":
                logger.info(f"Bucket {bucket_name} already exists and is owned by you")
                return
            logger.error(f"Bucket name {bucket_name} is already taken: {e}")
            raise
        except Exception as e:
            logger.error(f"Failed to create bucket {bucket_name}: {e}")
            raise

        logger.info(f"Created bucket {bucket_name}")

    async def wait_for_bucket(self, bucket_name: str) -> None:
        logger.debug(f"Waiting for bucket {bucket_name} to exist")
        await self.client.wait("bucket_exists", Bucket=bucket_name)

    async def get_buckets(self) -> list[S3Bucket]:
        """List all buckets owned by the caller."""
        response = await self.client.call("list_buckets")
        buckets = [
            S3Bucket(name=data["Name"], creation_date=data.get("CreationDate"))
            for data in response.get("Buckets", [])
        ]
        for bucket in buckets:
            logger.info(f"Bucket: {bucket.name} (created {bucket.creation_date})")
        return buckets

    async def empty_bucket(self, bucket_name: str) -> int:
        """Delete every object in a bucket.

        Returns:
            Number of objects deleted.

        Raises:
            S3Error: If any object could not be deleted.
        """
        logger.warning(f"Emptying bucket {bucket_name} - THIS IS DESTRUCTIVE")

        pages = await self.client.paginate("list_objects_v2", Bucket=bucket_name)
        keys = [obj["Key"] for page in pages for obj in page.get("Contents", [])]

        deleted = 0
        for batch in _batches(keys, S3_DELETE_BATCH_SIZE):
            response = await self.client.call(
                "delete_objects",
                Bucket=bucket_name,
                Delete={"Objects": [{"Key": key} for key in batch], "Quiet": True},
            )
            errors = response.get("Errors", [])
            if errors:
                first = errors[0]
                logger.error(f"Failed to delete {len(errors)} object(s) from {bucket_name}")
                raise S3Error(
                    f"failed to delete object {first.get('Key')}: {first.get('Message')}",
                    service="s3",
                    operation="delete_objects",
                    error_code=first.get("Code"),
                )
            deleted += len(batch)

        logger.info(f"Deleted {deleted} object(s) from {bucket_name}")
        return deleted

    async def destroy_bucket(self, bucket_name: str) -> None:
        """Delete an empty bucket and wait until it is gone."""
        logger.warning(f"Deleting bucket {bucket_name} - THIS IS DESTRUCTIVE")

        try:
            await self.client.call("delete_bucket", Bucket=bucket_name)
            await self.client.wait("bucket_not_exists", Bucket=bucket_name)
        except Exception as e:
            logger.error(f"Failed to delete bucket {bucket_name}: {e}")
            raise

        logger.info(f"Deleted bucket {bucket_name}")

    async def upload_bucket_file(
        self, bucket_name: str, file_path: str | Path, key: str | None = None
    ) -> str:
        """Upload a local file.

        Args:
            bucket_name: Target bucket.
            file_path: Local file to upload.
            key: Object key. Defaults to ``file_path`` as given.

        Returns:
            The object key written.

        Raises:
            FileNotFoundError: If ``file_path`` is not an existing file.
        """
        path = Path(file_path)
        if not path.is_file():
            raise FileNotFoundError(f"file not found: {file_path}")

        object_key = key or str(file_path)
        logger.info(f"Uploading {path} to s3://{bucket_name}/{object_key}")
        await self.client.call("upload_file", Filename=str(path), Bucket=bucket_name, Key=object_key)
        return object_key

    async def upload_bucket_dir(self, bucket_name: str, dir_path: str | Path) -> list[str]:
        """Upload every regular file below ``dir_path``, keyed by its path.

        Returns:
            Keys written, in upload order.
        """
        root = Path(dir_path)
        if not root.is_dir():
            raise FileNotFoundError(f"directory not found: {dir_path}")

        keys: list[str] = []
        for path in sorted(root.rglob("*")):
            if path.is_file():
                keys.append(await self.upload_bucket_file(bucket_name, path))

        logger.info(f"Uploaded {len(keys)} file(s) from {root} to {bucket_name}")
        return keys

    async def download_bucket_file(
        self, bucket_name: str, key: str, file_path: str | Path
    ) -> Path:
        """Download an object to ``file_path``, creating parent directories."""
        path = Path(file_path)
        path.parent.mkdir(parents=True, exist_ok=True)

        logger.info(f"Downloading s3://{bucket_name}/{key} to {path}")
        await self.client.call("download_file", Bucket=bucket_name, Key=key, Filename=str(path))
        return path


def _batches(items: list[str], size: int) -> Iterator[list[str]]:
    for start in range(0, len(items), size):
        yield items[start : start + size]


def create_connection(region: str | None = None, params: S3Params | None = None) -> S3Connection:
    session = create_session(region)
    return S3Connection(region=session.region_name, session=session, params=params)
