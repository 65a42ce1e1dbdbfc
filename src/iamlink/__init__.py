from __future__ import annotations

import enum
import typing

import boto3

GCP_TOKEN_CREATOR_ROLE = "roles/iam.serviceAccountTokenCreator"
MANDATORY_PERMISSIONS = frozenset(
    {
        "cloudasset.assets.searchAllIamPolicies",
        "iam.roles.get",
    }
)
REQUIRED_AWS_REGION = "us-east-1"

DEFAULT_AWS_ROLE_NAME = "iamlink-connection"
DEFAULT_AWS_MAX_SESSION_DURATION = 3600
DEFAULT_CUSTOM_ROLE_ID = "iamlinkConnection"
DEFAULT_CUSTOM_ROLE_TITLE = "iamlink connection"
DEFAULT_IDENTITY_DISPLAY_NAME = "iamlink connection"
DEFAULT_IDENTITY_NAME = "iamlink-connection"


class ValidationError(ValueError):
    """Malformed or missing connection input; raised before any resource is described."""


class ProvisioningError(RuntimeError):
    """A failure reported by the provisioning engine, passed through as-is."""


class CloudProvider(enum.StrEnum):
    AWS = "aws"
    GCP = "gcp"


class ScopeType(enum.StrEnum):
    ORGANIZATION = "organization"
    FOLDER = "folder"
    PROJECT = "project"


class RoleLevel(enum.StrEnum):
    ORGANIZATION = "organization"
    PROJECT = "project"


class ConnectionKinds(enum.StrEnum):
    AWS = "AWSConnectionConfig"
    GCP = "GCPConnectionConfig"


class TagKeys(enum.StrEnum):
    IAMLINK_CONNECTION = "iamlink/connection"
    IAMLINK_MANAGED_BY = "iamlink/managed-by"


class AWSCallerIdentity(typing.TypedDict):
    UserId: str
    Account: str
    Arn: str


def split_csv(value: str | None) -> list[str]:
    """Split a comma-delimited config value, dropping blanks.

    Pulumi stack config only carries scalar values, so list options arrive
    as ``a,b,c``.
    """
    if not value:
        return []

    return [item.strip() for item in value.split(",") if item.strip() != ""]


def join_csv(values: typing.Iterable[str]) -> str:
    return ",".join(sorted(set(values)))


def aws_whoami(exe_env: dict[str, str] | None = None) -> tuple[AWSCallerIdentity, bool]:
    session = boto3.Session(
        aws_access_key_id=exe_env.get("AWS_ACCESS_KEY_ID") if exe_env else None,
        aws_secret_access_key=exe_env.get("AWS_SECRET_ACCESS_KEY") if exe_env else None,
        aws_session_token=exe_env.get("AWS_SESSION_TOKEN") if exe_env else None,
        profile_name=exe_env.get("AWS_PROFILE") if exe_env else None,
    )
    sts_client = session.client("sts", region_name=REQUIRED_AWS_REGION)

    try:
        response = sts_client.get_caller_identity()
    except Exception:
        return typing.cast(AWSCallerIdentity, {}), False
    else:
        return response, True
