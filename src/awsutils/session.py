"""Session management utilities for AWS interactions.

Sessions resolve credentials through the standard boto3 chain (environment,
shared config/credentials files, instance metadata). Only the profile and the
region come from settings.
"""

import logging
from typing import Final

import boto3
from botocore.exceptions import ProfileNotFound

from awsutils.config import get_settings
from awsutils.exceptions import ValidationError

logger: Final = logging.getLogger(__name__)


def create_session(region: str | None = None, profile: str | None = None) -> boto3.Session:
    """Create a boto3 Session from settings.

    Args:
        region: Region override. Defaults to ``AWS_REGION`` from settings, then to
            boto3's own resolution (``AWS_DEFAULT_REGION``, the profile's region).
        profile: Profile override. Defaults to ``AWS_PROFILE`` from settings.

    Returns:
        A boto3 Session bound to the resolved region.

    Raises:
        ValidationError: If the named profile does not exist.
    """
    settings = get_settings()
    region_name = region or settings.aws_region
    profile_name = profile or settings.aws_profile

    try:
        session = boto3.Session(profile_name=profile_name, region_name=region_name)
    except ProfileNotFound as e:
        raise ValidationError(f"AWS profile {profile_name} not found") from e

    logger.debug(
        f"Created session for region {session.region_name} (profile={profile_name or 'default'})"
    )
    return session
