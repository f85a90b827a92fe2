"""Tests for AWS custom exceptions."""

import pytest

from awsutils.exceptions import (
    AWSError,
    CommandFailedError,
    DynamoDBError,
    EC2Error,
    IAMError,
    NoRouteTableError,
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


class TestAWSError:
    """Test suite for AWSError base exception."""

    def test_basic_error_creation(self) -> None:
        """Test creating basic AWSError with just a message."""
        error = AWSError("Something went wrong")

        assert str(error) == "Something went wrong"
        assert error.message == "Something went wrong"
        assert error.service is None
        assert error.operation is None
        assert error.error_code is None
        assert error.details == {}

    def test_error_with_full_context(self) -> None:
        """Test AWSError with complete context information."""
        error = AWSError(
            message="Secret already exists",
            service="secretsmanager",
            operation="create_secret",
            error_code="ResourceExistsException",
            details={"http_status": 400},
        )

        assert str(error) == (
            "Secret already exists | Service: secretsmanager | "
            "Operation: create_secret | Code: ResourceExistsException"
        )
        assert error.details["http_status"] == 400

    def test_error_with_partial_context(self) -> None:
        error = AWSError("Rate limit exceeded", service="ec2")

        assert str(error) == "Rate limit exceeded | Service: ec2"

    def test_error_can_be_raised_and_caught(self) -> None:
        with pytest.raises(AWSError, match="boom"):
            raise AWSError("boom")


class TestExceptionHierarchy:
    """Test that every exception derives from AWSError."""

    @pytest.mark.parametrize(
        "error_class",
        [
            EC2Error,
            S3Error,
            IAMError,
            SSMError,
            DynamoDBError,
            SecretsManagerError,
            ThrottlingError,
            ValidationError,
            ResourceNotFoundError,
            ResourceExistsError,
            PermissionError,
            TimeoutError,
        ],
    )
    def test_subclass_of_aws_error(self, error_class: type[AWSError]) -> None:
        error = error_class("failure", service="svc")

        assert isinstance(error, AWSError)
        assert error.service == "svc"

    def test_no_route_table_is_not_found(self) -> None:
        error = NoRouteTableError("no route table found for subnet subnet-1")

        assert isinstance(error, ResourceNotFoundError)

    def test_custom_errors_do_not_shadow_builtins_hierarchy(self) -> None:
        """The package TimeoutError is not the builtin TimeoutError."""
        assert not issubclass(TimeoutError, OSError)


class TestCommandFailedError:
    """Test suite for CommandFailedError."""

    def test_carries_status_and_stderr(self) -> None:
        error = CommandFailedError(
            "command failed",
            status="Failed",
            stderr="permission denied",
            service="ssm",
            operation="run_command",
        )

        assert isinstance(error, SSMError)
        assert error.status == "Failed"
        assert error.stderr == "permission denied"
        assert "Operation: run_command" in str(error)

    def test_defaults(self) -> None:
        error = CommandFailedError("command failed")

        assert error.status is None
        assert error.stderr is None
