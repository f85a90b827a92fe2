"""VPC, subnet and security group helpers.

These lookups all go through the EC2 API. ``NetworkManager`` is usually
reached as ``EC2Connection.network`` so it shares the connection's client.
"""

import logging
from typing import Any, Final

from pydantic import BaseModel, Field

from awsutils.client import AWSClientWrapper, create_aws_client
from awsutils.constants import INTERNET_GATEWAY_PREFIX, SUBNET_LOCATIONS
from awsutils.exceptions import (
    AWSError,
    EC2Error,
    NoRouteTableError,
    ResourceNotFoundError,
    ValidationError,
)

logger: Final = logging.getLogger(__name__)


def _name_tag(tags: list[dict[str, str]] | None) -> str | None:
    for tag in tags or []:
        if tag.get("Key") == "Name":
            return tag.get("Value")
    return None


class Vpc(BaseModel):
    vpc_id: str
    cidr_block: str | None = None
    is_default: bool = False
    state: str | None = None
    name: str | None = None


class Subnet(BaseModel):
    subnet_id: str
    vpc_id: str | None = None
    cidr_block: str | None = None
    availability_zone: str | None = None
    name: str | None = None


class SecurityGroup(BaseModel):
    group_id: str
    group_name: str | None = None
    vpc_id: str | None = None
    description: str | None = None
    tags: dict[str, str] = Field(default_factory=dict)


class NetworkManager:
    """Manager for VPC and subnet lookups.

    Example:
        >>> manager = NetworkManager(region="us-east-1")
        >>> vpc_id = await manager.get_vpc_id("default")
        >>> public = await manager.list_vpc_subnets(vpc_id, "public")
    """

    def __init__(self, region: str | None = None, client: AWSClientWrapper | None = None) -> None:
        self.region = region
        self.client = client or create_aws_client("ec2", region=region)
        logger.debug(f"Initialized NetworkManager for region {region or 'default'}")

    async def get_subnet_id(self, name: str) -> str:
        """Get the ID of the subnet whose ``Name`` tag is ``name``.

        Raises:
            ResourceNotFoundError: If no subnet carries the name.
            EC2Error: If the matching subnet has no ID.
        """
        response = await self.client.call(
            "describe_subnets", Filters=[{"Name": "tag:Name", "Values": [name]}]
        )
        subnets = response.get("Subnets", [])
        if not subnets:
            raise ResourceNotFoundError(
                f"no subnet found with the name: {name}",
                service="ec2",
                operation="describe_subnets",
            )

        subnet_id = subnets[0].get("SubnetId")
        if not subnet_id:
            raise EC2Error(f"subnet {name} has no subnet ID", service="ec2")

        await self._check_resource_existence("subnet", subnet_id)
        return str(subnet_id)

    async def get_subnet_route_table(self, subnet_id: str) -> dict[str, Any]:
        """Return the route table explicitly associated with a subnet.

        Raises:
            ValidationError: If ``subnet_id`` is empty.
            NoRouteTableError: If the subnet only uses the VPC main route table.
        """
        if not subnet_id:
            raise ValidationError("subnet ID must not be empty", service="ec2")

        response = await self.client.call(
            "describe_route_tables",
            Filters=[{"Name": "association.subnet-id", "Values": [subnet_id]}],
        )
        route_tables = response.get("RouteTables", [])
        if not route_tables:
            raise NoRouteTableError(
                f"no route table found for subnet {subnet_id}",
                service="ec2",
                operation="describe_route_tables",
            )
        return dict(route_tables[0])

    async def get_vpc_id(self, name: str) -> str:
        """Get a VPC ID by ``Name`` tag, or the default VPC when ``name`` is ``"default"``."""
        if name == "default":
            filters = [{"Name": "isDefault", "Values": ["true"]}]
            missing = "no default VPC found"
        else:
            filters = [{"Name": "tag:Name", "Values": [name]}]
            missing = "no VPC found with the provided name"

        response = await self.client.call("describe_vpcs", Filters=filters)
        vpcs = response.get("Vpcs", [])
        if not vpcs:
            raise ResourceNotFoundError(missing, service="ec2", operation="describe_vpcs")
        return str(vpcs[0]["VpcId"])

    async def is_subnet_public(self, subnet_id: str) -> bool:
        """Report whether a subnet routes through an internet gateway.

        A subnet without an explicitly associated route table is reported as
        private.

        Raises:
            ResourceNotFoundError: If the subnet doesn't exist.
            EC2Error: If the associated route table has no routes.
        """
        await self._check_resource_existence("subnet", subnet_id)

        try:
            route_table = await self.get_subnet_route_table(subnet_id)
        except NoRouteTableError:
            logger.debug(f"Subnet {subnet_id} has no explicit route table, treating as private")
            return False

        routes = route_table.get("Routes", [])
        if not routes:
            raise EC2Error(f"no routes found for subnet {subnet_id}", service="ec2")

        return any(
            str(route.get("GatewayId", "")).startswith(INTERNET_GATEWAY_PREFIX) for route in routes
        )

    async def list_security_groups_for_vpc(self, vpc_id: str) -> list[SecurityGroup]:
        await self._check_resource_existence("vpc", vpc_id)
        response = await self.client.call(
            "describe_security_groups", Filters=[{"Name": "vpc-id", "Values": [vpc_id]}]
        )
        return [_parse_security_group(group) for group in response.get("SecurityGroups", [])]

    async def list_security_groups_for_subnet(self, subnet_id: str) -> list[SecurityGroup]:
        """List security groups with an ingress rule covering the subnet's CIDR block."""
        subnet = await self._check_resource_existence("subnet", subnet_id)
        cidr_block = subnet.get("CidrBlock")
        if not cidr_block:
            raise EC2Error(f"subnet {subnet_id} has no CIDR block", service="ec2")

        response = await self.client.call(
            "describe_security_groups",
            Filters=[{"Name": "ip-permission.cidr", "Values": [cidr_block]}],
        )
        return [_parse_security_group(group) for group in response.get("SecurityGroups", [])]

    async def list_vpc_subnets(self, vpc_id: str, location: str = "all") -> list[Subnet]:
        """List subnets of a VPC.

        Args:
            vpc_id: VPC to inspect.
            location: ``public``, ``private`` or ``all``.

        Raises:
            ValidationError: If ``location`` is not one of the accepted values.
            ResourceNotFoundError: If the VPC doesn't exist.
            EC2Error: If a subnet's routing cannot be determined.
        """
        if location not in SUBNET_LOCATIONS:
            raise ValidationError(
                f"invalid location: {location}, must be one of {', '.join(SUBNET_LOCATIONS)}",
                service="ec2",
            )

        await self._check_resource_existence("vpc", vpc_id)

        response = await self.client.call(
            "describe_subnets", Filters=[{"Name": "vpc-id", "Values": [vpc_id]}]
        )
        subnets = [_parse_subnet(data) for data in response.get("Subnets", [])]
        if location == "all":
            return subnets

        selected: list[Subnet] = []
        for subnet in subnets:
            try:
                public = await self.is_subnet_public(subnet.subnet_id)
            except AWSError as e:
                logger.error(f"Failed to determine routing for subnet {subnet.subnet_id}: {e}")
                raise EC2Error(
                    f"error checking if subnet {subnet.subnet_id} is public: {e.message}",
                    service="ec2",
                ) from e

            if public == (location == "public"):
                selected.append(subnet)

        logger.debug(f"Found {len(selected)} {location} subnet(s) in {vpc_id}")
        return selected

    async def list_vpcs(self) -> list[Vpc]:
        response = await self.client.call("describe_vpcs")
        return [
            Vpc(
                vpc_id=data["VpcId"],
                cidr_block=data.get("CidrBlock"),
                is_default=data.get("IsDefault", False),
                state=data.get("State"),
                name=_name_tag(data.get("Tags")),
            )
            for data in response.get("Vpcs", [])
        ]

    async def _check_resource_existence(self, resource_type: str, resource_id: str) -> dict[str, Any]:
        """Describe a subnet or VPC by ID and return its description.

        Raises:
            ValidationError: For unsupported resource types.
            ResourceNotFoundError: If the resource doesn't exist.
        """
        if resource_type == "subnet":
            response = await self.client.call("describe_subnets", SubnetIds=[resource_id])
            resources = response.get("Subnets", [])
        elif resource_type == "vpc":
            response = await self.client.call("describe_vpcs", VpcIds=[resource_id])
            resources = response.get("Vpcs", [])
        else:
            raise ValidationError(f"unsupported resource type: {resource_type}", service="ec2")

        if not resources:
            raise ResourceNotFoundError(
                f"{resource_type} {resource_id} does not exist",
                service="ec2",
                operation=f"describe_{resource_type}s",
            )
        return dict(resources[0])


def _parse_subnet(data: dict[str, Any]) -> Subnet:
    return Subnet(
        subnet_id=data["SubnetId"],
        vpc_id=data.get("VpcId"),
        cidr_block=data.get("CidrBlock"),
        availability_zone=data.get("AvailabilityZone"),
        name=_name_tag(data.get("Tags")),
    )


def _parse_security_group(data: dict[str, Any]) -> SecurityGroup:
    return SecurityGroup(
        group_id=data["GroupId"],
        group_name=data.get("GroupName"),
        vpc_id=data.get("VpcId"),
        description=data.get("Description"),
        tags={tag["Key"]: tag["Value"] for tag in data.get("Tags", [])},
    )
