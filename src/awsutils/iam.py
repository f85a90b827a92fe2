"""IAM and STS utilities.

Caller identity lookup plus the role, managed policy and instance profile
operations needed to give EC2 instances an SSM-capable identity.
"""

import json
import logging
from datetime import datetime
from typing import Any, Final

import boto3
from pydantic import BaseModel, Field

from awsutils.client import AWSClientWrapper, create_aws_client
from awsutils.exceptions import IAMError, ResourceNotFoundError
from awsutils.session import create_session

logger: Final = logging.getLogger(__name__)


class AWSIdentity(BaseModel):
    """Result of STS GetCallerIdentity."""

    account: str
    arn: str
    user_id: str


class IAMRole(BaseModel):
    role_name: str
    role_id: str | None = None
    arn: str
    path: str = "/"
    description: str | None = None
    create_date: datetime | None = None
    assume_role_policy_document: dict[str, Any] | None = None


class InstanceProfile(BaseModel):
    """An instance profile and the names of the roles it carries."""

    instance_profile_name: str
    instance_profile_id: str | None = None
    arn: str
    path: str = "/"
    create_date: datetime | None = None
    roles: list[str] = Field(default_factory=list)


class AttachedPolicy(BaseModel):
    policy_name: str
    policy_arn: str


class IAMService:
    """Service for IAM roles, policies and instance profiles.

    STS and IAM use separate clients; both may be injected for testing.

    Example:
        >>> service = IAMService()
        >>> identity = await service.get_aws_identity()
        >>> print(identity.account)
    """

    def __init__(
        self,
        region: str | None = None,
        iam_client: AWSClientWrapper | None = None,
        sts_client: AWSClientWrapper | None = None,
        session: boto3.Session | None = None,
    ) -> None:
        self.region = region
        self.session = session
        self.iam_client = iam_client or create_aws_client("iam", region=region, session=session)
        self.sts_client = sts_client or create_aws_client("sts", region=region, session=session)
        logger.info(f"Initialized IAMService for region {region or 'default'}")

    async def get_aws_identity(self) -> AWSIdentity:
        """Return the account, ARN and user ID of the caller."""
        response = await self.sts_client.call("get_caller_identity")
        identity = AWSIdentity(
            account=response["Account"],
            arn=response["Arn"],
            user_id=response["UserId"],
        )
        logger.debug(f"Caller identity: {identity.arn}")
        return identity

    async def create_role(
        self,
        role_name: str,
        assume_role_policy: dict[str, Any],
        description: str | None = None,
    ) -> IAMRole:
        """Create a role with the given trust policy.

        Args:
            role_name: Name of the new role.
            assume_role_policy: Trust policy document, e.g. ``EC2_ASSUME_ROLE_POLICY``.
            description: Optional role description.

        Raises:
            ResourceExistsError: If the role already exists.
        """
        request: dict[str, Any] = {
            "RoleName": role_name,
            "AssumeRolePolicyDocument": json.dumps(assume_role_policy),
        }
        if description:
            request["Description"] = description

        logger.info(f"Creating IAM role {role_name}")

        try:
            response = await self.iam_client.call("create_role", **request)
        except Exception as e:
            logger.error(f"Failed to create role {role_name}: {e}")
            raise

        return _parse_role(response["Role"])

    async def get_role(self, role_name: str) -> IAMRole:
        response = await self.iam_client.call("get_role", RoleName=role_name)
        return _parse_role(response["Role"])

    async def delete_role(self, role_name: str) -> None:
        """Delete a role. Policies and profile memberships must be removed first."""
        logger.warning(f"Deleting IAM role {role_name}")

        try:
            await self.iam_client.call("delete_role", RoleName=role_name)
        except Exception as e:
            logger.error(f"Failed to delete role {role_name}: {e}")
            raise

    async def attach_role_policy(self, role_name: str, policy_arn: str) -> None:
        logger.info(f"Attaching {policy_arn} to role {role_name}")
        await self.iam_client.call("attach_role_policy", RoleName=role_name, PolicyArn=policy_arn)

    async def detach_role_policy(self, role_name: str, policy_arn: str) -> None:
        logger.info(f"Detaching {policy_arn} from role {role_name}")
        await self.iam_client.call("detach_role_policy", RoleName=role_name, PolicyArn=policy_arn)

    async def list_attached_role_policies(self, role_name: str) -> list[AttachedPolicy]:
        pages = await self.iam_client.paginate("list_attached_role_policies", RoleName=role_name)
        return [
            AttachedPolicy(policy_name=policy["PolicyName"], policy_arn=policy["PolicyArn"])
            for page in pages
            for policy in page.get("AttachedPolicies", [])
        ]

    async def get_instance_profile(self, profile_name: str) -> InstanceProfile:
        """Get an instance profile by name.

        Raises:
            ResourceNotFoundError: If the profile doesn't exist.
        """
        try:
            response = await self.iam_client.call(
                "get_instance_profile", InstanceProfileName=profile_name
            )
        except ResourceNotFoundError:
            logger.error(f"Instance profile {profile_name} not found")
            raise

        return _parse_instance_profile(response["InstanceProfile"])

    async def create_instance_profile(self, profile_name: str) -> InstanceProfile:
        logger.info(f"Creating instance profile {profile_name}")

        try:
            response = await self.iam_client.call(
                "create_instance_profile", InstanceProfileName=profile_name
            )
        except Exception as e:
            logger.error(f"Failed to create instance profile {profile_name}: {e}")
            raise

        return _parse_instance_profile(response["InstanceProfile"])

    async def delete_instance_profile(self, profile_name: str) -> None:
        logger.warning(f"Deleting instance profile {profile_name}")
        await self.iam_client.call("delete_instance_profile", InstanceProfileName=profile_name)

    async def add_role_to_instance_profile(self, profile_name: str, role_name: str) -> None:
        logger.info(f"Adding role {role_name} to instance profile {profile_name}")
        await self.iam_client.call(
            "add_role_to_instance_profile",
            InstanceProfileName=profile_name,
            RoleName=role_name,
        )

    async def remove_role_from_instance_profile(self, profile_name: str, role_name: str) -> None:
        logger.info(f"Removing role {role_name} from instance profile {profile_name}")
        await self.iam_client.call(
            "remove_role_from_instance_profile",
            InstanceProfileName=profile_name,
            RoleName=role_name,
        )


def _parse_role(data: dict[str, Any]) -> IAMRole:
    policy = data.get("AssumeRolePolicyDocument")
    # IAM returns the trust policy URL-decoded as a dict; JSON strings come from mocks and emulators
    if isinstance(policy, str):
        try:
            policy = json.loads(policy)
        except json.JSONDecodeError as e:
            raise IAMError(
                f"Invalid trust policy for role {data.get('RoleName')}: {e}",
                service="iam",
                operation="parse_role",
            ) from e
    return IAMRole(
        role_name=data["RoleName"],
        role_id=data.get("RoleId"),
        arn=data["Arn"],
        path=data.get("Path", "/"),
        description=data.get("Description"),
        create_date=data.get("CreateDate"),
        assume_role_policy_document=policy,
    )


def _parse_instance_profile(data: dict[str, Any]) -> InstanceProfile:
    return InstanceProfile(
        instance_profile_name=data["InstanceProfileName"],
        instance_profile_id=data.get("InstanceProfileId"),
        arn=data["Arn"],
        path=data.get("Path", "/"),
        create_date=data.get("CreateDate"),
        roles=[role["RoleName"] for role in data.get("Roles", [])],
    )


def create_connection(region: str | None = None) -> IAMService:
    session = create_session(region)
    return IAMService(region=session.region_name, session=session)
