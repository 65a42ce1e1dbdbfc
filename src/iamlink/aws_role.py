from __future__ import annotations

import collections.abc
import dataclasses
import hashlib
import re
import typing

import iamlink

ACCOUNT_ID_REGEX = re.compile(r"^[0-9]{12}$")
ROLE_NAME_REGEX = re.compile(r"^[\w+=,.@-]{1,64}$")
PRINCIPAL_ARN_REGEX = re.compile(r"^arn:aws:iam::[0-9]{12}:(root|role/[\w+=,.@/-]+|user/[\w+=,.@/-]+)$")
EXTERNAL_ID_REGEX = re.compile(r"^[\w+=,.@:/-]{2,1224}$")
POLICY_ARN_REGEX = re.compile(r"^arn:aws:iam::(aws|[0-9]{12}):policy/[\w+=,.@/-]+$")
ACTION_REGEX = re.compile(r"^[a-z0-9-]+:[A-Za-z0-9*]+$")

MIN_SESSION_DURATION = 3600
MAX_SESSION_DURATION = 43200


def _check(field: str, value: str | None, regex: re.Pattern[str]) -> str:
    if not value:
        msg = f"{field} is required"
        raise iamlink.ValidationError(msg)

    if regex.match(value) is None:
        msg = f"{field} {value!r} is not valid"
        raise iamlink.ValidationError(msg)

    return value


def ensure_region(region: str | None) -> str:
    if region != iamlink.REQUIRED_AWS_REGION:
        msg = f"region {region!r} is not supported; connection roles are only provisioned in {iamlink.REQUIRED_AWS_REGION!r}"
        raise iamlink.ValidationError(msg)

    return region


def normalize_principal(principal: str) -> str:
    """Expand a bare account ID into the account root ARN."""
    if ACCOUNT_ID_REGEX.match(principal) is not None:
        return f"arn:aws:iam::{principal}:root"

    return principal


@dataclasses.dataclass(frozen=True)
class RoleRequest:
    account_id: str
    trusted_principal: str
    region: str = iamlink.REQUIRED_AWS_REGION
    role_name: str = iamlink.DEFAULT_AWS_ROLE_NAME
    external_id: str | None = None
    managed_policy_arns: collections.abc.Set[str] = frozenset()
    custom_actions: collections.abc.Set[str] = frozenset()
    max_session_duration: int = iamlink.DEFAULT_AWS_MAX_SESSION_DURATION

    def __post_init__(self):
        ensure_region(self.region)

        object.__setattr__(self, "managed_policy_arns", frozenset(self.managed_policy_arns))
        object.__setattr__(self, "custom_actions", frozenset(self.custom_actions))

        _check("accountId", self.account_id, ACCOUNT_ID_REGEX)
        _check("roleName", self.role_name, ROLE_NAME_REGEX)

        if not self.trusted_principal:
            msg = "trustedPrincipal is required"
            raise iamlink.ValidationError(msg)
        object.__setattr__(self, "trusted_principal", normalize_principal(self.trusted_principal))
        _check("trustedPrincipal", self.trusted_principal, PRINCIPAL_ARN_REGEX)

        if self.external_id is not None:
            _check("externalId", self.external_id, EXTERNAL_ID_REGEX)

        for arn in sorted(self.managed_policy_arns):
            _check("managedPolicyArns", arn, POLICY_ARN_REGEX)

        for action in sorted(self.custom_actions):
            _check("customActions", action, ACTION_REGEX)

        if not MIN_SESSION_DURATION <= self.max_session_duration <= MAX_SESSION_DURATION:
            msg = (
                f"maxSessionDuration {self.max_session_duration} must be between "
                f"{MIN_SESSION_DURATION} and {MAX_SESSION_DURATION} seconds"
            )
            raise iamlink.ValidationError(msg)

    @property
    def role_arn(self) -> str:
        return f"arn:aws:iam::{self.account_id}:role/{self.role_name}"


def build_trust_policy(trusted_principal: str, external_id: str | None = None) -> dict[str, typing.Any]:
    statement: dict[str, typing.Any] = {
        "Effect": "Allow",
        "Principal": {"AWS": trusted_principal},
        "Action": "sts:AssumeRole",
    }

    if external_id is not None:
        statement["Condition"] = {"StringEquals": {"sts:ExternalId": external_id}}

    return {
        "Version": "2012-10-17",
        "Statement": [statement],
    }


def build_inline_policy(actions: collections.abc.Iterable[str]) -> dict[str, typing.Any]:
    return {
        "Version": "2012-10-17",
        "Statement": [
            {
                "Sid": "ConnectionCustomActions",
                "Effect": "Allow",
                "Action": sorted(set(actions)),
                "Resource": "*",
            }
        ],
    }


@dataclasses.dataclass(frozen=True)
class IAMRole:
    key: str
    name: str
    arn: str
    assume_role_policy: dict[str, typing.Any]
    max_session_duration: int
    has_external_id: bool = False
    depends_on: tuple[str, ...] = ()


@dataclasses.dataclass(frozen=True)
class InlinePolicy:
    key: str
    name: str
    role_name: str
    policy: dict[str, typing.Any]
    depends_on: tuple[str, ...] = ()


@dataclasses.dataclass(frozen=True)
class PolicyAttachment:
    key: str
    role_name: str
    policy_arn: str
    depends_on: tuple[str, ...] = ()


@dataclasses.dataclass(frozen=True)
class RoleResourceSet:
    account_id: str
    region: str
    role: IAMRole
    inline_policy: InlinePolicy | None
    attachments: tuple[PolicyAttachment, ...]

    def __iter__(self) -> collections.abc.Iterator[IAMRole | InlinePolicy | PolicyAttachment]:
        yield self.role
        if self.inline_policy is not None:
            yield self.inline_policy
        yield from self.attachments

    def outputs(self) -> dict[str, str]:
        return {
            "role_arn": self.role.arn,
            "role_name": self.role.name,
            "account_id": self.account_id,
            "region": self.region,
        }


def attachment_key(policy_arn: str) -> str:
    """Resource key for a managed policy attachment, unique per ARN.

    The flattened policy path is suffixed with a short digest of the full ARN.
    """
    owner, _, path = policy_arn.removeprefix("arn:aws:iam::").partition(":policy/")
    digest = hashlib.sha256(policy_arn.encode(), usedforsecurity=False).hexdigest()[:8]
    return f"policy-attachment-{owner}-" + path.replace("/", "-") + f"-{digest}"


def resolve(request: RoleRequest) -> RoleResourceSet:
    role = IAMRole(
        key="role",
        name=request.role_name,
        arn=request.role_arn,
        assume_role_policy=build_trust_policy(request.trusted_principal, request.external_id),
        max_session_duration=request.max_session_duration,
        has_external_id=request.external_id is not None,
    )

    inline_policy = None
    if len(request.custom_actions) > 0:
        inline_policy = InlinePolicy(
            key="inline-policy",
            name=f"{request.role_name}-custom",
            role_name=request.role_name,
            policy=build_inline_policy(request.custom_actions),
            depends_on=(role.key,),
        )

    attachments = tuple(
        PolicyAttachment(
            key=attachment_key(arn),
            role_name=request.role_name,
            policy_arn=arn,
            depends_on=(role.key,),
        )
        for arn in sorted(request.managed_policy_arns)
    )

    return RoleResourceSet(
        account_id=request.account_id,
        region=request.region,
        role=role,
        inline_policy=inline_policy,
        attachments=attachments,
    )
