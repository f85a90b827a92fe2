"""awsutils command line entry point.

``python -m awsutils`` prints the package version and the AWS identity the
current credentials resolve to.
"""

import asyncio
import logging
import sys

from awsutils.config import get_settings
from awsutils.exceptions import AWSError
from awsutils.iam import IAMService
from awsutils.session import create_session
from awsutils.version import __version__

logger = logging.getLogger(__name__)


def main() -> int:
    """Main entry point for the application.

    Returns:
        Exit code (0 for success, 1 if the identity lookup fails).
    """
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    print(f"awsutils {__version__}")

    try:
        session = create_session()
        service = IAMService(region=session.region_name, session=session)
        identity = asyncio.run(service.get_aws_identity())
    except AWSError as e:
        logger.error(f"Failed to get caller identity: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(f"Account: {identity.account}")
    print(f"ARN: {identity.arn}")
    print(f"UserId: {identity.user_id}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
