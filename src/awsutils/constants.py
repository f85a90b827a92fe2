"""Constants used throughout awsutils.

This module contains constants that do not depend on runtime configuration or
environment variables. For environment-based configuration, see the config
module.
"""

from typing import Final

# =============================================================================
# SSM (AWS Systems Manager) Configuration
# =============================================================================

SSM_DOCUMENT_LINUX: Final[str] = "AWS-RunShellScript"
"""SSM document name for executing shell scripts on Linux instances."""

SSM_COMMAND_POLL_INTERVAL: Final[float] = 5.0
"""Seconds between status polls for an SSM command."""

SSM_COMMAND_MAX_ATTEMPTS: Final[int] = 20
"""Status polls before an SSM command is reported as timed out."""

SSM_AGENT_POLL_INTERVAL: Final[float] = 0.5
"""Seconds between SSM agent ping status polls."""

SSM_AGENT_ONLINE: Final[str] = "Online"
"""PingStatus reported by a registered, reachable SSM agent."""

SSM_PENDING_STATUSES: Final[frozenset[str]] = frozenset({"Pending", "InProgress", "Delayed"})
"""Command invocation statuses that are not final."""

SSM_TERMINAL_STATUSES: Final[frozenset[str]] = frozenset(
    {"Success", "Failed", "TimedOut", "Cancelled", "Cancelling"}
)
"""Command invocation statuses after which polling stops."""

SSM_INVOCATION_NOT_READY: Final[str] = "InvocationDoesNotExist"
"""Error code returned while an invocation has not been registered yet."""

# =============================================================================
# EC2 Configuration
# =============================================================================

EC2_ROOT_DEVICE_NAME: Final[str] = "/dev/sdh"
"""Device name of the EBS volume attached to new instances."""

EC2_DEFAULT_VOLUME_SIZE: Final[int] = 8
"""Default EBS volume size in GiB."""

EC2_INSTANCE_STATES: Final[frozenset[str]] = frozenset(
    {"pending", "running", "shutting-down", "terminated", "stopping", "stopped"}
)

EC2_PRODUCT_UUID_PATH: Final[str] = "/sys/devices/virtual/dmi/id/product_uuid"
"""DMI file present on EC2 hosts."""

INTERNET_GATEWAY_PREFIX: Final[str] = "igw-"

SUBNET_LOCATIONS: Final[tuple[str, ...]] = ("public", "private", "all")

# =============================================================================
# AMI Lookup Tables
# =============================================================================

AMI_NAME_PATTERNS: Final[dict[str, dict[str, dict[str, str]]]] = {
    "ubuntu": {
        "22.04": {
            "amd64": "ubuntu/images/hvm-ssd/ubuntu-jammy-%s-amd64-server-*",
            "arm64": "ubuntu/images/hvm-ssd/ubuntu-jammy-%s-arm64-server-*",
        },
        "20.04": {
            "amd64": "ubuntu/images/hvm-ssd/ubuntu-focal-%s-amd64-server-*",
            "arm64": "ubuntu/images/hvm-ssd/ubuntu-focal-%s-arm64-server-*",
        },
        "18.04": {
            "amd64": "ubuntu/images/hvm-ssd/ubuntu-bionic-%s-amd64-server-*",
            "arm64": "ubuntu/images/hvm-ssd/ubuntu-bionic-%s-arm64-server-*",
        },
    },
    "centos": {
        "7": {
            "x86_64": "CentOS Linux %s x86_64 HVM EBS*",
            "arm64": "CentOS Linux %s arm64 HVM EBS*",
        },
        "8": {
            "x86_64": "CentOS %s AMI*",
            "arm64": "CentOS %s ARM64 AMI*",
        },
    },
    "debian": {
        "10": {
            "amd64": "debian-%s-buster-hvm-amd64-gp2*",
            "arm64": "debian-%s-buster-hvm-arm64-gp2*",
        },
    },
    "kali": {
        "2023.1": {
            "amd64": "kali-linux-%s-amd64*",
            "arm64": "kali-linux-%s-arm64*",
        },
    },
}
"""Image name patterns by distro, version and architecture.

``%s`` is replaced by the version before querying DescribeImages.
"""

AMI_OWNERS: Final[dict[str, str]] = {
    "ubuntu": "099720109477",  # Canonical
    "centos": "125523088429",  # CentOS
    "debian": "136693071363",  # Debian
    "kali": "679593333241",  # Kali Linux
}
"""Publisher account IDs by distro."""

# =============================================================================
# S3 Configuration
# =============================================================================

S3_DELETE_BATCH_SIZE: Final[int] = 1000
"""Maximum keys per DeleteObjects request."""

S3_DEFAULT_REGION: Final[str] = "us-east-1"
"""Region in which CreateBucket must not send a LocationConstraint."""

# =============================================================================
# DynamoDB Configuration
# =============================================================================

DYNAMO_HASH_KEY: Final[str] = "id"
DYNAMO_BILLING_MODE: Final[str] = "PAY_PER_REQUEST"

DYNAMO_TABLE_WAIT_DELAY: Final[float] = 5.0
"""Seconds between DescribeTable calls while waiting for a table."""

DYNAMO_TABLE_WAIT_MAX_ATTEMPTS: Final[int] = 18
"""DescribeTable calls before giving up on a table becoming active."""

# =============================================================================
# IAM Configuration
# =============================================================================

EC2_ASSUME_ROLE_POLICY: Final[dict[str, object]] = {
    "Version": "2012-10-17",
    "Statement": [
        {
            "Effect": "Allow",
            "Principal": {"Service": "ec2.amazonaws.com"},
            "Action": "sts:AssumeRole",
        }
    ],
}
"""Trust policy letting EC2 instances assume a role."""

SSM_MANAGED_INSTANCE_POLICY_ARN: Final[str] = (
    "arn:aws:iam::aws:policy/AmazonSSMManagedInstanceCore"
)
"""Managed policy required for an instance to register with SSM."""
