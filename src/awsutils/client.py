"""AWS client wrapper with consistent error handling.

This module provides a wrapper around boto3 clients that runs the blocking SDK
call off the event loop and converts botocore errors into the exception
hierarchy defined in ``awsutils.exceptions``. Retries, pagination and waiters
stay with botocore; the wrapper only exposes them.
"""

import asyncio
import logging
from collections.abc import Callable
from typing import Any, Final, TypeVar

import boto3
from botocore.client import BaseClient
from botocore.exceptions import BotoCoreError, ClientError, WaiterError

from awsutils.config import get_settings
from awsutils.exceptions import (
    AWSError,
    DynamoDBError,
    EC2Error,
    IAMError,
    PermissionError,
    ResourceExistsError,
    ResourceNotFoundError,
    S3Error,
    SecretsManagerError,
    SSMError,
    ThrottlingError,
    TimeoutError,
    ValidationError,
)

logger: Final = logging.getLogger(__name__)

T = TypeVar("T")

SERVICE_ERRORS: Final[dict[str, type[AWSError]]] = {
    "ec2": EC2Error,
    "s3": S3Error,
    "iam": IAMError,
    "sts": IAMError,
    "ssm": SSMError,
    "dynamodb": DynamoDBError,
    "secretsmanager": SecretsManagerError,
}

THROTTLING_CODES: Final = frozenset(
    {
        "Throttling",
        "ThrottlingException",
        "RequestLimitExceeded",
        "TooManyRequestsException",
        "ProvisionedThroughputExceededException",
        "SlowDown",
    }
)

PERMISSION_CODES: Final = frozenset(
    {
        "UnauthorizedOperation",
        "AccessDenied",
        "AccessDeniedException",
        "InvalidClientTokenId",
        "ExpiredToken",
        "UnrecognizedClientException",
    }
)

NOT_FOUND_CODES: Final = frozenset(
    {
        "404",
        "NoSuchBucket",
        "NoSuchKey",
        "NoSuchEntity",
    }
)

EXISTS_CODES: Final = frozenset(
    {
        "ResourceExistsException",
        "ResourceInUseException",
        "BucketAlreadyExists",
        "BucketAlreadyOwnedByYou",
        "EntityAlreadyExists",
        "ParameterAlreadyExists",
    }
)

VALIDATION_CODES: Final = frozenset(
    {
        "ValidationError",
        "ValidationException",
        "MissingParameter",
        "MalformedPolicyDocument",
        "MalformedPolicyDocumentException",
    }
)


class AWSClientWrapper:
    """Wrapper for boto3 clients with consistent error handling.

    The wrapper converts boto3's synchronous calls to async operations by
    running them in the default executor, and converts every botocore failure
    into an ``AWSError`` subclass carrying the service, operation and AWS
    error code.

    Example:
        >>> wrapper = AWSClientWrapper("ec2", region="us-east-1")
        >>> result = await wrapper.call("describe_instances", InstanceIds=["i-123"])
    """

    def __init__(
        self,
        service_name: str,
        region: str | None = None,
        session: boto3.Session | None = None,
        **kwargs: Any,
    ) -> None:
        """Initialize AWS client wrapper.

        Args:
            service_name: AWS service name (e.g., 'ec2', 'ssm', 's3').
            region: AWS region name. If None, uses default from environment/config.
                Defaults to None.
            session: Optional boto3 session to build the client from. If None,
                the boto3 default session is used. Defaults to None.
            **kwargs: Additional arguments passed to the client factory.
        """
        self.service_name = service_name
        self.region = region
        if session is not None:
            self._client: BaseClient = session.client(service_name, region_name=region, **kwargs)
        else:
            self._client = boto3.client(  # type: ignore[call-overload]
                service_name, region_name=region, **kwargs
            )
        logger.info(f"Initialized AWS {service_name} client for region {region or 'default'}")

    @property
    def region_name(self) -> str | None:
        """Region the underlying client resolved to."""
        return self._client.meta.region_name

    async def call(self, operation: str, **kwargs: Any) -> Any:
        """Execute an AWS operation with error handling.

        Args:
            operation: boto3 client method name (e.g., 'describe_instances').
            **kwargs: Operation-specific parameters.

        Returns:
            The response from the AWS operation.

        Raises:
            ValidationError: For invalid parameters or input validation errors.
            ResourceNotFoundError: When requested resource doesn't exist.
            ResourceExistsError: When the resource being created already exists.
            PermissionError: For IAM permission/authorization errors.
            ThrottlingError: When AWS rate limits are still exceeded after SDK retries.
            TimeoutError: When the operation times out.
            AWSError: Service-specific subclass for any other AWS error.

        Example:
            >>> wrapper = AWSClientWrapper("s3")
            >>> result = await wrapper.call("list_buckets")
        """
        logger.debug(f"Calling {self.service_name}:{operation} with params: {list(kwargs.keys())}")
        client_method = getattr(self._client, operation)
        return await self._execute(operation, lambda: client_method(**kwargs))

    async def wait(
        self,
        waiter_name: str,
        delay: float | None = None,
        max_attempts: int | None = None,
        **kwargs: Any,
    ) -> None:
        """Block until a botocore waiter succeeds.

        Args:
            waiter_name: botocore waiter name (e.g., 'instance_status_ok').
            delay: Seconds between attempts. Defaults to the waiter's own delay.
            max_attempts: Maximum attempts. Defaults to the waiter's own limit.
            **kwargs: Parameters for the underlying describe call.

        Raises:
            TimeoutError: If the waiter runs out of attempts.
            AWSError: If the waiter hits a failure state or an AWS error.

        Example:
            >>> await wrapper.wait("bucket_exists", Bucket="my-bucket")
        """
        waiter_config: dict[str, Any] = {}
        if delay is not None:
            waiter_config["Delay"] = delay
        if max_attempts is not None:
            waiter_config["MaxAttempts"] = max_attempts
        if waiter_config:
            kwargs["WaiterConfig"] = waiter_config

        logger.debug(f"Waiting on {self.service_name}:{waiter_name}")
        waiter = self._client.get_waiter(waiter_name)
        await self._execute(waiter_name, lambda: waiter.wait(**kwargs))

    async def paginate(self, operation: str, **kwargs: Any) -> list[dict[str, Any]]:
        """Collect every page of a paginated operation.

        Args:
            operation: boto3 operation with a registered paginator.
            **kwargs: Operation parameters.

        Returns:
            List of response pages in order.

        Example:
            >>> pages = await wrapper.paginate("list_tables")
            >>> names = [n for page in pages for n in page["TableNames"]]
        """
        logger.debug(f"Paginating {self.service_name}:{operation}")
        paginator = self._client.get_paginator(operation)
        return await self._execute(operation, lambda: list(paginator.paginate(**kwargs)))

    async def _execute(self, operation: str, func: Callable[[], T]) -> T:
        """Run a blocking SDK callable in the executor and convert its errors."""
        operation_name = f"{self.service_name}:{operation}"

        try:
            loop = asyncio.get_running_loop()
            result = await loop.run_in_executor(None, func)
            logger.debug(f"Successfully completed {operation_name}")
            return result

        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code", "Unknown")
            error_message = e.response.get("Error", {}).get("Message", str(e))

            logger.warning(f"{operation_name} failed with {error_code}: {error_message}")

            raise self._convert_client_error(e, operation, error_code, error_message) from e

        except WaiterError as e:
            raise self._convert_waiter_error(e, operation) from e

        except BotoCoreError as e:
            logger.error(f"{operation_name} failed with BotoCoreError: {e}")

            if "timed out" in str(e).lower() or "timeout" in str(e).lower():
                raise TimeoutError(
                    f"Operation {operation} timed out",
                    service=self.service_name,
                    operation=operation,
                ) from e

            raise self._service_error_class(
                f"AWS operation failed: {e}",
                service=self.service_name,
                operation=operation,
            ) from e

        except Exception as e:
            logger.error(f"{operation_name} failed with unexpected error: {e}")
            raise self._service_error_class(
                f"Unexpected error during {operation}: {e}",
                service=self.service_name,
                operation=operation,
            ) from e

    def _convert_client_error(
        self, error: ClientError, operation: str, error_code: str, error_message: str
    ) -> AWSError:
        """Convert boto3 ClientError to appropriate custom exception.

        Args:
            error: The original ClientError from boto3.
            operation: The AWS operation name.
            error_code: AWS error code from the response.
            error_message: AWS error message from the response.

        Returns:
            Custom exception instance matching the error type.
        """
        details = {
            "error_code": error_code,
            "http_status": error.response.get("ResponseMetadata", {}).get("HTTPStatusCode"),
            "request_id": error.response.get("ResponseMetadata", {}).get("RequestId"),
        }

        error_class: type[AWSError]
        if error_code in THROTTLING_CODES:
            error_class = ThrottlingError
        elif error_code in PERMISSION_CODES:
            error_class = PermissionError
        # Not-found must come before the generic Invalid* check
        elif (
            error_code in NOT_FOUND_CODES
            or error_code.endswith("NotFound")
            or error_code.endswith("NotFoundException")
        ):
            error_class = ResourceNotFoundError
        elif error_code in EXISTS_CODES:
            error_class = ResourceExistsError
        elif error_code in VALIDATION_CODES or error_code.startswith("Invalid"):
            error_class = ValidationError
        else:
            error_class = self._service_error_class

        return error_class(
            error_message,
            service=self.service_name,
            operation=operation,
            error_code=error_code,
            details=details,
        )

    def _convert_waiter_error(self, error: WaiterError, waiter_name: str) -> AWSError:
        """Convert a botocore WaiterError.

        Exhausted attempts become ``TimeoutError``; a waiter that stopped on an
        AWS error or a failure state becomes the service error class.
        """
        reason = str(getattr(error, "reason", "") or error)
        last_response = getattr(error, "last_response", None) or {}
        error_code = last_response.get("Error", {}).get("Code")

        logger.error(f"{self.service_name}:{waiter_name} waiter failed: {reason}")

        if "max attempts exceeded" in reason.lower():
            return TimeoutError(
                f"Waiter {waiter_name} gave up: {reason}",
                service=self.service_name,
                operation=waiter_name,
                error_code=error_code,
            )

        return self._service_error_class(
            f"Waiter {waiter_name} failed: {reason}",
            service=self.service_name,
            operation=waiter_name,
            error_code=error_code,
        )

    @property
    def _service_error_class(self) -> type[AWSError]:
        """Service-specific error class, ``AWSError`` for unmapped services."""
        return SERVICE_ERRORS.get(self.service_name, AWSError)


def create_aws_client(
    service_name: str,
    region: str | None = None,
    session: boto3.Session | None = None,
    **kwargs: Any,
) -> AWSClientWrapper:
    """Factory function to create AWS client wrapper.

    Applies ``AWS_ENDPOINT_URL`` from settings when configured, which points
    every client at a local AWS emulator.

    Args:
        service_name: AWS service name (e.g., 'ec2', 'ssm').
        region: AWS region name. Defaults to None (uses default region).
        session: Optional boto3 session. Defaults to None.
        **kwargs: Additional arguments for the client factory.

    Returns:
        Configured AWSClientWrapper instance.

    Example:
        >>> ec2_client = create_aws_client("ec2", region="us-east-1")
        >>> result = await ec2_client.call("describe_vpcs")
    """
    endpoint_url = get_settings().aws_endpoint_url
    if endpoint_url:
        kwargs.setdefault("endpoint_url", endpoint_url)
    return AWSClientWrapper(service_name, region, session=session, **kwargs)
