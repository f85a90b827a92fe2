"""Custom exceptions for AWS operations.

This module defines a hierarchy of exceptions for AWS service operations,
providing clear error categorization and context for error handling. Every
botocore error that passes through ``AWSClientWrapper`` is converted into
one of these classes, keeping the original AWS error code on ``error_code``.
"""

from typing import Any


class AWSError(Exception):
    """Base exception for all AWS-related errors.

    Attributes:
        message: Human-readable error message.
        service: AWS service name (e.g., 'ec2', 'secretsmanager').
        operation: AWS operation name (e.g., 'describe_instances').
        error_code: AWS error code if available (e.g., 'ResourceExistsException').
        details: Additional error context as dictionary.
    """

    def __init__(
        self,
        message: str,
        service: str | None = None,
        operation: str | None = None,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize AWS error with context.

        Args:
            message: Human-readable error message.
            service: AWS service name. Defaults to None.
            operation: AWS operation name. Defaults to None.
            error_code: AWS error code if available. Defaults to None.
            details: Additional error context. Defaults to None.
        """
        super().__init__(message)
        self.message = message
        self.service = service
        self.operation = operation
        self.error_code = error_code
        self.details = details or {}

    def __str__(self) -> str:
        """Return formatted error string with context."""
        parts = [self.message]
        if self.service:
            parts.append(f"Service: {self.service}")
        if self.operation:
            parts.append(f"Operation: {self.operation}")
        if self.error_code:
            parts.append(f"Code: {self.error_code}")
        return " | ".join(parts)


class EC2Error(AWSError):
    """Exception raised for EC2 errors, including VPC and subnet lookups."""


class S3Error(AWSError):
    """Exception raised for S3 bucket and object errors."""


class IAMError(AWSError):
    """Exception raised for IAM and STS errors."""


class SSMError(AWSError):
    """Exception raised for Systems Manager errors.

    Covers Parameter Store operations, Run Command and agent status queries.
    """


class CommandFailedError(SSMError):
    """Raised when an SSM command finishes in a non-successful state.

    Attributes:
        status: Final invocation status (e.g., 'Failed', 'TimedOut').
        stderr: Standard error captured from the command.
    """

    def __init__(
        self,
        message: str,
        status: str | None = None,
        stderr: str | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.status = status
        self.stderr = stderr


class DynamoDBError(AWSError):
    """Exception raised for DynamoDB table errors."""


class SecretsManagerError(AWSError):
    """Exception raised for Secrets Manager errors.

    Codes such as EncryptionFailure, DecryptionFailure, LimitExceededException,
    InternalServiceError and PreconditionNotMetException surface as this class
    with ``error_code`` set.
    """


class ThrottlingError(AWSError):
    """Exception raised when AWS API rate limits are exceeded.

    botocore has already retried the call by the time this is raised.
    """


class ValidationError(AWSError):
    """Exception raised for input validation errors.

    Raised both for local argument checks made before calling AWS and for
    AWS-side validation failures (Invalid*, MissingParameter, ...).
    """


class ResourceNotFoundError(AWSError):
    """Exception raised when an AWS resource is not found."""


class NoRouteTableError(ResourceNotFoundError):
    """Raised when a subnet has no explicitly associated route table."""


class ResourceExistsError(AWSError):
    """Exception raised when creating a resource that already exists."""


class PermissionError(AWSError):
    """Exception raised for AWS permission/authorization errors."""


class TimeoutError(AWSError):
    """Exception raised when an AWS operation or wait times out.

    Raised for botocore waiter exhaustion as well as the SSM poll loops.
    """
