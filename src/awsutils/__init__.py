"""awsutils - thin async helpers around the AWS SDK.

Each service module (``ec2``, ``network``, ``s3``, ``iam``, ``ssm``,
``dynamo``, ``secretsmanager``) exposes a connection class wrapping a boto3
client. All SDK calls go through ``AWSClientWrapper``, which converts botocore
errors into the exceptions in ``awsutils.exceptions``.
"""

from awsutils.client import AWSClientWrapper, create_aws_client
from awsutils.exceptions import AWSError
from awsutils.session import create_session
from awsutils.version import __version__

__all__ = [
    "AWSClientWrapper",
    "AWSError",
    "__version__",
    "create_aws_client",
    "create_session",
]
