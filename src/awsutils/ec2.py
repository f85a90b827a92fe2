"""EC2 instance management utilities.

This module provides high-level utilities for launching, tagging, waiting on,
querying and terminating EC2 instances, and for looking up the newest public
AMI of a supported distribution. All operations use the AWSClientWrapper for
consistent error handling. VPC and subnet helpers live in ``awsutils.network``
and are reachable through ``EC2Connection.network``.
"""

import logging
from collections.abc import Sequence
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any, Final

import boto3
from pydantic import BaseModel, Field, field_validator

from awsutils.client import AWSClientWrapper, create_aws_client
from awsutils.constants import (
    AMI_NAME_PATTERNS,
    AMI_OWNERS,
    EC2_DEFAULT_VOLUME_SIZE,
    EC2_INSTANCE_STATES,
    EC2_PRODUCT_UUID_PATH,
    EC2_ROOT_DEVICE_NAME,
)
from awsutils.exceptions import EC2Error, ResourceNotFoundError, ValidationError
from awsutils.network import NetworkManager
from awsutils.session import create_session

logger: Final = logging.getLogger(__name__)


class EC2Params(BaseModel):
    """Parameters for launching an EC2 instance.

    ``key_name`` is accepted for completeness but never sent to RunInstances;
    instances are reached through SSM instead of SSH.
    """

    associate_public_ip_address: bool = False
    image_id: str | None = None
    instance_profile: str | None = None
    instance_type: str | None = None
    min_count: int = Field(default=1, ge=1)
    max_count: int = Field(default=1, ge=1)
    security_group_ids: list[str] = Field(default_factory=list)
    key_name: str | None = None
    subnet_id: str | None = None
    volume_size: int = Field(default=EC2_DEFAULT_VOLUME_SIZE, ge=1)
    instance_id: str | None = None
    instance_name: str | None = None
    public_ip: str | None = None


class AMIInfo(BaseModel):
    """Distribution, version and architecture of an AMI to look up.

    Attributes:
        distro: Distribution key (e.g., 'ubuntu', 'debian', 'kali', 'centos').
        version: Release (e.g., '22.04').
        architecture: Architecture as named by the publisher (e.g., 'amd64', 'x86_64').
        region: Region to search. If None, the connection's region is used.
    """

    distro: str
    version: str
    architecture: str
    region: str | None = None


class EC2Instance(BaseModel):
    """Model representing an EC2 instance with validated data.

    Attributes:
        instance_id: EC2 instance ID (e.g., 'i-1234567890abcdef0').
        instance_type: EC2 instance type (e.g., 't3.micro').
        state: Current instance state.
        availability_zone: Availability zone where instance is running.
        private_ip: Private IP address (optional).
        public_ip: Public IP address (optional).
        image_id: AMI the instance was launched from (optional).
        subnet_id: Subnet of the primary interface (optional).
        vpc_id: VPC of the instance (optional).
        launch_time: Instance launch timestamp (optional).
        tags: Dictionary of instance tags.
    """

    instance_id: str = Field(..., pattern=r"^i-[a-f0-9]{8,17}$")
    instance_type: str
    state: str
    availability_zone: str | None = None
    private_ip: str | None = None
    public_ip: str | None = None
    image_id: str | None = None
    subnet_id: str | None = None
    vpc_id: str | None = None
    launch_time: datetime | None = None
    tags: dict[str, str] = Field(default_factory=dict)

    @field_validator("state")
    @classmethod
    def validate_state(cls, v: str) -> str:
        """Validate instance state against known EC2 states.

        Raises:
            ValueError: If state is not a valid EC2 instance state.
        """
        if v not in EC2_INSTANCE_STATES:
            raise ValueError(
                f"Invalid instance state: {v}. Must be one of {sorted(EC2_INSTANCE_STATES)}"
            )
        return v

    @property
    def name(self) -> str | None:
        """Value of the ``Name`` tag."""
        return self.tags.get("Name")


class EC2Reservation(BaseModel):
    """Reservation returned by RunInstances."""

    reservation_id: str
    owner_id: str | None = None
    instances: list[EC2Instance] = Field(default_factory=list)

    @property
    def instance_ids(self) -> list[str]:
        return [instance.instance_id for instance in self.instances]


class EC2Connection:
    """Connection for EC2 instance operations.

    Holds the EC2 client, the optional boto3 session it was built from, the
    last reservation created through it and the default launch parameters.

    Example:
        >>> conn = EC2Connection(region="us-east-1")
        >>> reservation = await conn.create_instance(EC2Params(image_id="ami-123", ...))
        >>> await conn.wait_for_instance(reservation.instance_ids[0])
        >>> await conn.destroy_instance(reservation.instance_ids[0])
    """

    def __init__(
        self,
        region: str | None = None,
        client: AWSClientWrapper | None = None,
        session: boto3.Session | None = None,
        params: EC2Params | None = None,
    ) -> None:
        """Initialize EC2 connection.

        Args:
            region: AWS region name. If None, uses default from environment/config.
                Defaults to None.
            client: Optional pre-configured AWSClientWrapper. If None, creates a new one.
                Defaults to None.
            session: Optional boto3 session used to build clients. Defaults to None.
            params: Default launch parameters. Defaults to empty EC2Params.
        """
        self.region = region
        self.session = session
        self.client = client or create_aws_client("ec2", region=region, session=session)
        self.params = params or EC2Params()
        self.reservation: EC2Reservation | None = None
        self.network = NetworkManager(client=self.client)
        logger.info(f"Initialized EC2Connection for region {region or 'default'}")

    async def create_instance(self, params: EC2Params | None = None) -> EC2Reservation:
        """Launch instances described by ``params``.

        The instance gets a single EBS volume on /dev/sdh, one network
        interface in the requested subnet and a ``Name`` tag.

        Args:
            params: Launch parameters. Defaults to the connection's params.

        Returns:
            The reservation for the launched instances.

        Raises:
            ValidationError: If image ID or instance type is missing.
            EC2Error: If AWS API call fails.

        Example:
            >>> reservation = await conn.create_instance(
            ...     EC2Params(image_id="ami-123", instance_type="t3.micro", subnet_id="subnet-1")
            ... )
        """
        params = params or self.params
        if not params.image_id or not params.instance_type:
            raise ValidationError("image_id and instance_type are required", service="ec2")

        network_interface: dict[str, Any] = {
            "AssociatePublicIpAddress": params.associate_public_ip_address,
            "DeviceIndex": 0,
        }
        if params.subnet_id:
            network_interface["SubnetId"] = params.subnet_id
        if params.security_group_ids:
            network_interface["Groups"] = list(params.security_group_ids)

        request: dict[str, Any] = {
            "BlockDeviceMappings": [
                {
                    "DeviceName": EC2_ROOT_DEVICE_NAME,
                    "Ebs": {"VolumeSize": params.volume_size},
                }
            ],
            "ImageId": params.image_id,
            "InstanceType": params.instance_type,
            "MinCount": params.min_count,
            "MaxCount": params.max_count,
            "NetworkInterfaces": [network_interface],
        }
        if params.instance_profile:
            request["IamInstanceProfile"] = {"Name": params.instance_profile}
        if params.instance_name:
            request["TagSpecifications"] = [
                {
                    "ResourceType": "instance",
                    "Tags": [{"Key": "Name", "Value": params.instance_name}],
                }
            ]

        logger.info(
            f"Launching {params.max_count} {params.instance_type} instance(s) "
            f"from {params.image_id}"
        )

        try:
            response = await self.client.call("run_instances", **request)
        except Exception as e:
            logger.error(f"Failed to create instance: {e}")
            raise

        reservation = EC2Reservation(
            reservation_id=response["ReservationId"],
            owner_id=response.get("OwnerId"),
            instances=[self._parse_instance(data) for data in response.get("Instances", [])],
        )
        self.reservation = reservation
        logger.info(f"Launched instance(s): {reservation.instance_ids}")
        return reservation

    async def check_instance_exists(self, instance_id: str) -> None:
        """Confirm that an instance is visible to this connection.

        Raises:
            ResourceNotFoundError: If no instance has ``instance_id``.
            EC2Error: If AWS API call fails.
        """
        instances = await self.get_instances()
        if not any(instance.instance_id == instance_id for instance in instances):
            raise ResourceNotFoundError(
                f"instance {instance_id} does not exist",
                service="ec2",
                operation="describe_instances",
            )

    async def tag_instance(self, instance_id: str, tag_key: str, tag_value: str) -> None:
        """Add or overwrite a single tag on an instance.

        Example:
            >>> await conn.tag_instance("i-123", "Owner", "platform")
        """
        logger.info(f"Tagging {instance_id} with {tag_key}={tag_value}")

        try:
            await self.client.call(
                "create_tags",
                Resources=[instance_id],
                Tags=[{"Key": tag_key, "Value": tag_value}],
            )
        except Exception as e:
            logger.error(f"Failed to tag instance {instance_id}: {e}")
            raise

    async def destroy_instance(self, instance_id: str) -> dict[str, str]:
        """Terminate an instance.

        Warning:
            This operation is destructive and cannot be undone.

        Returns:
            Dictionary mapping instance IDs to their previous states.
        """
        logger.warning(f"Terminating instance {instance_id} - THIS IS DESTRUCTIVE")

        try:
            response = await self.client.call("terminate_instances", InstanceIds=[instance_id])
        except Exception as e:
            logger.error(f"Failed to terminate instance {instance_id}: {e}")
            raise

        state_changes: dict[str, str] = {}
        for instance in response.get("TerminatingInstances", []):
            state_changes[instance["InstanceId"]] = instance["PreviousState"]["Name"]

        logger.info(f"Terminated {len(state_changes)} instance(s)")
        return state_changes

    async def get_instances(
        self, filters: Sequence[dict[str, Any]] | None = None
    ) -> list[EC2Instance]:
        """Return every instance visible to the client, optionally filtered.

        Args:
            filters: AWS API filters in the format [{"Name": "...", "Values": [...]}].
                Defaults to None (all instances).

        Example:
            >>> filters = [{"Name": "tag:Name", "Values": ["web"]}]
            >>> instances = await conn.get_instances(filters)
        """
        kwargs: dict[str, Any] = {}
        if filters:
            kwargs["Filters"] = list(filters)

        try:
            pages = await self.client.paginate("describe_instances", **kwargs)
        except Exception as e:
            logger.error(f"Failed to describe instances: {e}")
            raise

        instances = [
            self._parse_instance(instance_data)
            for page in pages
            for reservation in page.get("Reservations", [])
            for instance_data in reservation.get("Instances", [])
        ]
        logger.info(f"Described {len(instances)} instance(s)")
        return instances

    async def get_running_instances(self) -> list[EC2Instance]:
        """Return all instances in the ``running`` state."""
        return await self.get_instances(
            filters=[{"Name": "instance-state-name", "Values": ["running"]}]
        )

    async def get_instances_running_longer_than(
        self, threshold: timedelta = timedelta(hours=24)
    ) -> list[EC2Instance]:
        """Return running instances launched more than ``threshold`` ago.

        Example:
            >>> stale = await conn.get_instances_running_longer_than(timedelta(hours=24))
        """
        cutoff = datetime.now(UTC) - threshold
        instances = await self.get_running_instances()
        return [
            instance
            for instance in instances
            if instance.launch_time is not None and instance.launch_time < cutoff
        ]

    async def wait_for_instance(self, instance_id: str) -> None:
        """Block until the instance passes its status checks.

        Raises:
            TimeoutError: If the SDK waiter gives up.
        """
        logger.info(f"Waiting for instance {instance_id} status to become ok")
        await self.client.wait("instance_status_ok", InstanceIds=[instance_id])
        logger.info(f"Instance {instance_id} is ready")

    async def get_instance(self, instance_id: str) -> EC2Instance:
        """Describe a single instance by ID.

        Raises:
            ResourceNotFoundError: If the instance doesn't exist.
        """
        response = await self.client.call("describe_instances", InstanceIds=[instance_id])
        for reservation in response.get("Reservations", []):
            for instance_data in reservation.get("Instances", []):
                return self._parse_instance(instance_data)

        raise ResourceNotFoundError(
            f"Instance {instance_id} not found",
            service="ec2",
            operation="describe_instances",
        )

    async def get_instance_state(self, instance_id: str) -> str:
        """Get the current state name of an instance (e.g., 'running')."""
        logger.debug(f"Getting state for instance {instance_id}")
        instance = await self.get_instance(instance_id)
        return instance.state

    async def get_instance_public_ip(self, instance_id: str) -> str:
        """Return the public IP associated with the instance's first interface.

        Raises:
            ResourceNotFoundError: If the instance doesn't exist.
            EC2Error: If the instance has no public IP association.
        """
        response = await self.client.call("describe_instances", InstanceIds=[instance_id])
        reservations = response.get("Reservations", [])
        if not reservations or not reservations[0].get("Instances"):
            raise ResourceNotFoundError(
                f"Instance {instance_id} not found",
                service="ec2",
                operation="describe_instances",
            )

        interfaces = reservations[0]["Instances"][0].get("NetworkInterfaces", [])
        public_ip = interfaces[0].get("Association", {}).get("PublicIp") if interfaces else None
        if not public_ip:
            raise EC2Error(
                f"Instance {instance_id} has no public IP address",
                service="ec2",
                operation="describe_instances",
            )
        return str(public_ip)

    def get_region(self) -> str:
        """Return the region the EC2 client is bound to.

        Raises:
            EC2Error: If the client has no region.
        """
        region = self.client.region_name
        if not region:
            raise EC2Error("failed to retrieve region", service="ec2")
        return region

    async def get_latest_ami(self, info: AMIInfo) -> str:
        """Find the newest public AMI for a distribution, version and architecture.

        Args:
            info: What to look up. ``info.region`` overrides the connection's region.

        Returns:
            The image ID with the most recent creation date.

        Raises:
            ValidationError: If the combination is not in the lookup table.
            ResourceNotFoundError: If AWS returns no matching images.

        Example:
            >>> ami = await conn.get_latest_ami(
            ...     AMIInfo(distro="ubuntu", version="22.04", architecture="amd64")
            ... )
        """
        owner = AMI_OWNERS.get(info.distro)
        if owner is None:
            raise ValidationError(f"unsupported distribution: {info.distro}", service="ec2")

        pattern = AMI_NAME_PATTERNS.get(info.distro, {}).get(info.version, {}).get(info.architecture)
        if pattern is None:
            raise ValidationError(
                "unsupported distribution/version/architecture: "
                f"{info.distro}/{info.version}/{info.architecture}",
                service="ec2",
            )

        name_pattern = pattern % info.version
        logger.debug(f"Searching images named {name_pattern} owned by {owner}")

        client = self.client
        if info.region and info.region != self.client.region_name:
            client = create_aws_client("ec2", region=info.region, session=self.session)

        response = await client.call(
            "describe_images",
            Filters=[{"Name": "name", "Values": [f"{name_pattern}*"]}],
            Owners=[owner],
        )

        images = response.get("Images", [])
        if not images:
            raise ResourceNotFoundError(
                f"no images found for distro: {info.distro}, version: {info.version}, "
                f"architecture: {info.architecture}",
                service="ec2",
                operation="describe_images",
            )

        latest = max(images, key=lambda image: _parse_creation_date(image.get("CreationDate")))
        logger.info(f"Latest {info.distro} {info.version} {info.architecture} AMI: {latest['ImageId']}")
        return str(latest["ImageId"])

    def _parse_instance(self, instance_data: dict[str, Any]) -> EC2Instance:
        """Parse AWS API instance data into EC2Instance model.

        Raises:
            ValidationError: If instance data doesn't match schema.
        """
        tags = {tag["Key"]: tag["Value"] for tag in instance_data.get("Tags", [])}

        try:
            return EC2Instance(
                instance_id=instance_data["InstanceId"],
                instance_type=instance_data["InstanceType"],
                state=instance_data["State"]["Name"],
                availability_zone=instance_data.get("Placement", {}).get("AvailabilityZone"),
                private_ip=instance_data.get("PrivateIpAddress"),
                public_ip=instance_data.get("PublicIpAddress"),
                image_id=instance_data.get("ImageId"),
                subnet_id=instance_data.get("SubnetId"),
                vpc_id=instance_data.get("VpcId"),
                launch_time=instance_data.get("LaunchTime"),
                tags=tags,
            )
        except Exception as e:
            logger.error(f"Failed to parse instance data: {e}")
            raise ValidationError(
                f"Invalid instance data: {e}",
                service="ec2",
                operation="parse_instance",
            ) from e


def _parse_creation_date(value: str | None) -> datetime:
    """Parse an image CreationDate; unparseable dates sort first."""
    if not value:
        return datetime.min.replace(tzinfo=UTC)
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return datetime.min.replace(tzinfo=UTC)
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


def is_ec2_instance() -> bool:
    """Report whether this process runs on an EC2 host.

    Checks for the DMI product UUID file that EC2 exposes.
    """
    return Path(EC2_PRODUCT_UUID_PATH).exists()


def create_connection(
    region: str | None = None, params: EC2Params | None = None
) -> EC2Connection:
    """Create an EC2Connection from a session built from settings.

    Example:
        >>> conn = create_connection(region="us-west-2")
    """
    session = create_session(region)
    return EC2Connection(region=session.region_name, session=session, params=params)
