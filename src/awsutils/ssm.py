"""Systems Manager utilities: Parameter Store, Run Command and agent status.

Commands are sent through the AWS-RunShellScript document and their status
is polled until it reaches a terminal state. Poll interval and attempt count
default to the values in settings.
"""

import asyncio
import logging
from collections.abc import Sequence
from datetime import datetime
from typing import Any, Final, Literal

import boto3
from pydantic import BaseModel, Field

from awsutils.client import AWSClientWrapper, create_aws_client
from awsutils.config import get_settings
from awsutils.constants import (
    SSM_AGENT_ONLINE,
    SSM_DOCUMENT_LINUX,
    SSM_INVOCATION_NOT_READY,
    SSM_PENDING_STATUSES,
    SSM_TERMINAL_STATUSES,
)
from awsutils.exceptions import (
    AWSError,
    CommandFailedError,
    TimeoutError,
    ValidationError,
)
from awsutils.session import create_session
from awsutils.utils.commands import normalize_commands

logger: Final = logging.getLogger(__name__)

ParameterType = Literal["String", "StringList", "SecureString"]


class SSMParams(BaseModel):
    name: str | None = None
    value: str | None = None
    type: ParameterType = "String"
    overwrite: bool = False


class ParameterMetadata(BaseModel):
    """Metadata returned by DescribeParameters (no value)."""

    name: str
    type: str | None = None
    version: int | None = None
    last_modified_date: datetime | None = None
    description: str | None = None
    tier: str | None = None


class SSMCommandInvocation(BaseModel):
    """Model representing an SSM command invocation on a specific instance.

    Attributes:
        command_id: SSM command ID.
        instance_id: EC2 instance ID where command was executed.
        status: Command status (Pending, InProgress, Success, Failed, etc.).
        status_details: Detailed status information.
        stdout: Standard output from the command (optional).
        stderr: Standard error from the command (optional).
        response_code: Exit code from the command (optional).
    """

    command_id: str
    instance_id: str
    status: str
    status_details: str | None = None
    stdout: str | None = None
    stderr: str | None = None
    response_code: int | None = None


class SSMCommand(BaseModel):
    """Model representing a sent SSM command.

    Attributes:
        command_id: Unique command ID assigned by SSM.
        instance_ids: Instances the command was sent to.
        document_name: SSM document name used for execution.
        parameters: Parameters passed to the document.
        status: Overall command status.
        requested_at: When the command was requested.
    """

    command_id: str
    instance_ids: list[str]
    document_name: str
    parameters: dict[str, Any] = Field(default_factory=dict)
    status: str
    requested_at: datetime | None = None


class SSMConnection:
    """Connection for SSM parameter, command and agent operations.

    Example:
        >>> conn = SSMConnection(region="us-east-1")
        >>> await conn.put_param("/app/db/host", "db.internal", overwrite=True)
        >>> output = await conn.run_command("i-1234567890abcdef0", ["uname -a"])
    """

    def __init__(
        self,
        region: str | None = None,
        client: AWSClientWrapper | None = None,
        session: boto3.Session | None = None,
        params: SSMParams | None = None,
    ) -> None:
        self.region = region
        self.session = session
        self.client = client or create_aws_client("ssm", region=region, session=session)
        self.params = params or SSMParams()
        logger.info(f"Initialized SSMConnection for region {region or 'default'}")

    # -------------------------------------------------------------------------
    # Parameter Store
    # -------------------------------------------------------------------------

    async def put_param(
        self,
        name: str,
        value: str,
        type: ParameterType = "String",
        overwrite: bool = False,
    ) -> int:
        """Create or update a parameter.

        Returns:
            The parameter version written.

        Raises:
            ResourceExistsError: If the parameter exists and ``overwrite`` is False.
        """
        logger.info(f"Putting parameter {name} (type={type}, overwrite={overwrite})")

        try:
            response = await self.client.call(
                "put_parameter", Name=name, Value=value, Type=type, Overwrite=overwrite
            )
        except Exception as e:
            logger.error(f"Failed to put parameter {name}: {e}")
            raise

        return int(response.get("Version", 0))

    async def get_param(self, name: str, with_decryption: bool = False) -> str:
        """Return a parameter value.

        Raises:
            ResourceNotFoundError: If the parameter doesn't exist.
        """
        response = await self.client.call(
            "get_parameter", Name=name, WithDecryption=with_decryption
        )
        return str(response["Parameter"]["Value"])

    async def delete_param(self, name: str) -> None:
        logger.warning(f"Deleting parameter {name}")

        try:
            await self.client.call("delete_parameter", Name=name)
        except Exception as e:
            logger.error(f"Failed to delete parameter {name}: {e}")
            raise

    async def list_all_parameters(self) -> list[ParameterMetadata]:
        pages = await self.client.paginate("describe_parameters")
        parameters = [
            ParameterMetadata(
                name=data["Name"],
                type=data.get("Type"),
                version=data.get("Version"),
                last_modified_date=data.get("LastModifiedDate"),
                description=data.get("Description"),
                tier=data.get("Tier"),
            )
            for page in pages
            for data in page.get("Parameters", [])
        ]
        logger.debug(f"Found {len(parameters)} parameter(s)")
        return parameters

    # -------------------------------------------------------------------------
    # Run Command
    # -------------------------------------------------------------------------

    async def send_command(
        self,
        instance_ids: Sequence[str],
        commands: str | Sequence[str],
        document_name: str = SSM_DOCUMENT_LINUX,
    ) -> SSMCommand:
        """Send shell commands to one or more instances.

        Args:
            instance_ids: Target instance IDs.
            commands: A command string, JSON array string or list of commands.
            document_name: SSM document. Defaults to AWS-RunShellScript.

        Raises:
            ValidationError: If instance_ids is empty or no commands remain.
            SSMError: If AWS API call fails.

        Example:
            >>> cmd = await conn.send_command(["i-123"], ["echo hello", "uptime"])
        """
        if not instance_ids:
            raise ValidationError("instance_ids cannot be empty", service="ssm")

        processed_commands = normalize_commands(commands)
        if not processed_commands:
            raise ValidationError("commands cannot be empty", service="ssm")

        logger.info(
            f"Sending {len(processed_commands)} command(s) to {len(instance_ids)} instance(s)"
        )

        try:
            response = await self.client.call(
                "send_command",
                InstanceIds=list(instance_ids),
                DocumentName=document_name,
                Parameters={"commands": processed_commands},
            )
        except Exception as e:
            logger.error(f"Failed to send command: {e}")
            raise

        command_data = response["Command"]
        command = SSMCommand(
            command_id=command_data["CommandId"],
            instance_ids=command_data.get("InstanceIds", list(instance_ids)),
            document_name=command_data.get("DocumentName", document_name),
            parameters=command_data.get("Parameters", {}),
            status=command_data.get("Status", "Pending"),
            requested_at=command_data.get("RequestedDateTime"),
        )
        logger.info(f"Command sent successfully: {command.command_id}")
        return command

    async def get_command_invocation(
        self, command_id: str, instance_id: str
    ) -> SSMCommandInvocation:
        """Get the status and output of a command on one instance."""
        logger.debug(f"Getting invocation status: {command_id} on {instance_id}")

        response = await self.client.call(
            "get_command_invocation", CommandId=command_id, InstanceId=instance_id
        )
        return SSMCommandInvocation(
            command_id=response["CommandId"],
            instance_id=response["InstanceId"],
            status=response["Status"],
            status_details=response.get("StatusDetails"),
            stdout=response.get("StandardOutputContent"),
            stderr=response.get("StandardErrorContent"),
            response_code=response.get("ResponseCode"),
        )

    async def wait_for_completion(
        self,
        command_id: str,
        instance_id: str,
        timeout: float | None = None,
        poll_interval: float | None = None,
    ) -> SSMCommandInvocation:
        """Poll a command invocation until it reaches a terminal status.

        An invocation that SSM has not registered yet counts as pending. Any
        other polling error is remembered and chained to the TimeoutError if
        the deadline passes.

        Args:
            command_id: SSM command ID.
            instance_id: EC2 instance ID.
            timeout: Seconds to wait. Defaults to the settings' command timeout.
            poll_interval: Seconds between polls. Defaults to settings.

        Returns:
            The invocation in its terminal status.

        Raises:
            TimeoutError: If no terminal status is seen before the deadline.
        """
        settings = get_settings()
        timeout = settings.ssm_command_timeout if timeout is None else timeout
        poll_interval = settings.ssm_command_poll_interval if poll_interval is None else poll_interval

        logger.info(
            f"Waiting for command {command_id} to complete on {instance_id} (timeout: {timeout}s)"
        )

        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        last_error: AWSError | None = None

        while True:
            try:
                invocation = await self.get_command_invocation(command_id, instance_id)
            except AWSError as e:
                if e.error_code == SSM_INVOCATION_NOT_READY:
                    logger.debug(f"Invocation {command_id} not registered yet")
                else:
                    logger.warning(f"Polling command {command_id} failed: {e}")
                    last_error = e
            else:
                if invocation.status in SSM_TERMINAL_STATUSES:
                    logger.info(f"Command {command_id} completed with status: {invocation.status}")
                    return invocation
                if invocation.status in SSM_PENDING_STATUSES:
                    logger.debug(f"Command {command_id} status: {invocation.status}")
                else:
                    logger.warning(
                        f"Command {command_id} reported unexpected status: {invocation.status}"
                    )

            if loop.time() + poll_interval > deadline:
                raise TimeoutError(
                    f"Command {command_id} did not complete within {timeout}s",
                    service="ssm",
                    operation="wait_for_completion",
                ) from last_error

            await asyncio.sleep(poll_interval)

    async def run_command(
        self,
        instance_id: str,
        commands: str | Sequence[str],
        timeout: float | None = None,
        poll_interval: float | None = None,
    ) -> str:
        """Run commands on one instance and return their standard output.

        Raises:
            CommandFailedError: If the command ends in any status but Success.
            TimeoutError: If the command doesn't finish in time.

        Example:
            >>> output = await conn.run_command("i-123", "cat /etc/os-release")
        """
        command = await self.send_command([instance_id], commands)
        invocation = await self.wait_for_completion(
            command.command_id, instance_id, timeout=timeout, poll_interval=poll_interval
        )

        if invocation.status != "Success":
            logger.error(
                f"Command {command.command_id} on {instance_id} ended with {invocation.status}"
            )
            raise CommandFailedError(
                f"command failed with status {invocation.status}: {invocation.stderr or ''}".rstrip(),
                status=invocation.status,
                stderr=invocation.stderr,
                service="ssm",
                operation="run_command",
            )

        return invocation.stdout or ""

    # -------------------------------------------------------------------------
    # Agent status
    # -------------------------------------------------------------------------

    async def agent_ready(
        self,
        instance_id: str,
        wait_time: float = 60.0,
        poll_interval: float | None = None,
    ) -> bool:
        """Wait until the SSM agent on an instance reports Online.

        Raises:
            TimeoutError: If the agent is not online within ``wait_time`` seconds.
        """
        poll_interval = (
            get_settings().ssm_agent_poll_interval if poll_interval is None else poll_interval
        )
        loop = asyncio.get_running_loop()
        deadline = loop.time() + wait_time

        logger.info(f"Waiting up to {wait_time}s for SSM agent on {instance_id}")

        while True:
            response = await self.client.call(
                "describe_instance_information",
                Filters=[{"Key": "InstanceIds", "Values": [instance_id]}],
            )
            for info in response.get("InstanceInformationList", []):
                if info.get("InstanceId") == instance_id and info.get("PingStatus") == SSM_AGENT_ONLINE:
                    logger.info(f"SSM agent on {instance_id} is online")
                    return True

            if loop.time() + poll_interval > deadline:
                raise TimeoutError("timed out", service="ssm", operation="agent_ready")

            await asyncio.sleep(poll_interval)

    async def check_aws_cli_installed(self, instance_id: str) -> bool:
        """Report whether the AWS CLI is on the instance's PATH."""
        try:
            output = await self.run_command(instance_id, "command -v aws")
        except CommandFailedError:
            logger.debug(f"AWS CLI not found on {instance_id}")
            return False

        installed = bool(output.strip())
        logger.debug(f"AWS CLI installed on {instance_id}: {installed}")
        return installed


def create_connection(region: str | None = None, params: SSMParams | None = None) -> SSMConnection:
    session = create_session(region)
    return SSMConnection(region=session.region_name, session=session, params=params)
