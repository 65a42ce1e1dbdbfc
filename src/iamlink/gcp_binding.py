"""Resolve a GCP connection request into the resources it needs.

A connection always gets a service account in its project and an
impersonation grant for the trusted principal. Permissions are bundled into
a custom role bound at the requested scope, and every predefined role gets
its own binding at that same scope.

Custom roles cannot be defined on folders, so folder-scoped connections
define theirs on the parent organization.
"""

from __future__ import annotations

import collections.abc
import dataclasses
import re
import typing

import iamlink

NUMERIC_ID_REGEX = re.compile(r"^[0-9]{12,20}$")
PROJECT_ID_REGEX = re.compile(r"^[a-z][a-z0-9-]{4,28}[a-z0-9]$")
SERVICE_ACCOUNT_ID_REGEX = re.compile(r"^[a-z][a-z0-9-]{4,28}[a-z0-9]$")
CUSTOM_ROLE_ID_REGEX = re.compile(r"^[a-zA-Z0-9_.]{3,64}$")
PERMISSION_REGEX = re.compile(r"^[a-zA-Z0-9_-]+(\.[a-zA-Z0-9_-]+){2,}$")
PREDEFINED_ROLE_REGEX = re.compile(r"^roles/[a-zA-Z0-9_.]+$")
MEMBER_REGEX = re.compile(r"^((user|serviceAccount|group|domain):\S+|principal(Set)?://\S+)$")


def _check(field: str, value: str | None, regex: re.Pattern[str]) -> str:
    if not value:
        msg = f"{field} is required"
        raise iamlink.ValidationError(msg)

    if regex.match(value) is None:
        msg = f"{field} {value!r} is not valid"
        raise iamlink.ValidationError(msg)

    return value


@dataclasses.dataclass(frozen=True)
class OrganizationScope:
    organization_id: str

    scope_type: typing.ClassVar[iamlink.ScopeType] = iamlink.ScopeType.ORGANIZATION
    role_level: typing.ClassVar[iamlink.RoleLevel] = iamlink.RoleLevel.ORGANIZATION

    def __post_init__(self):
        _check("organizationId", self.organization_id, NUMERIC_ID_REGEX)

    @property
    def scope_id(self) -> str:
        return self.organization_id

    @property
    def role_parent_id(self) -> str:
        return self.organization_id


@dataclasses.dataclass(frozen=True)
class FolderScope:
    organization_id: str
    folder_id: str

    scope_type: typing.ClassVar[iamlink.ScopeType] = iamlink.ScopeType.FOLDER
    role_level: typing.ClassVar[iamlink.RoleLevel] = iamlink.RoleLevel.ORGANIZATION

    def __post_init__(self):
        _check("organizationId", self.organization_id, NUMERIC_ID_REGEX)
        _check("folderId", self.folder_id, NUMERIC_ID_REGEX)

    @property
    def scope_id(self) -> str:
        return self.folder_id

    @property
    def role_parent_id(self) -> str:
        return self.organization_id


@dataclasses.dataclass(frozen=True)
class ProjectScope:
    project_id: str

    scope_type: typing.ClassVar[iamlink.ScopeType] = iamlink.ScopeType.PROJECT
    role_level: typing.ClassVar[iamlink.RoleLevel] = iamlink.RoleLevel.PROJECT

    def __post_init__(self):
        _check("projectId", self.project_id, PROJECT_ID_REGEX)

    @property
    def scope_id(self) -> str:
        return self.project_id

    @property
    def role_parent_id(self) -> str:
        return self.project_id


Scope = OrganizationScope | FolderScope | ProjectScope


def scope_for(
    scope_type: str | None,
    organization_id: str | None = None,
    folder_id: str | None = None,
    project_id: str | None = None,
) -> Scope:
    """Build the scope named by ``scope_type``, rejecting identifiers that belong to another scope."""
    if not scope_type:
        msg = "scopeType is required"
        raise iamlink.ValidationError(msg)

    try:
        st = iamlink.ScopeType(scope_type)
    except ValueError:
        msg = f"scopeType {scope_type!r} is not one of {[str(s) for s in iamlink.ScopeType]}"
        raise iamlink.ValidationError(msg) from None

    if st != iamlink.ScopeType.FOLDER and folder_id:
        msg = f"folderId is only valid with scopeType 'folder', not {str(st)!r}"
        raise iamlink.ValidationError(msg)

    if st == iamlink.ScopeType.ORGANIZATION:
        return OrganizationScope(
            organization_id=_check("organizationId", organization_id, NUMERIC_ID_REGEX),
        )

    if st == iamlink.ScopeType.FOLDER:
        return FolderScope(
            organization_id=_check("organizationId", organization_id, NUMERIC_ID_REGEX),
            folder_id=_check("folderId", folder_id, NUMERIC_ID_REGEX),
        )

    if organization_id:
        msg = "organizationId is only valid with scopeType 'organization' or 'folder'"
        raise iamlink.ValidationError(msg)

    return ProjectScope(project_id=_check("projectId", project_id, PROJECT_ID_REGEX))


@dataclasses.dataclass(frozen=True)
class BindingRequest:
    scope: Scope
    project_id: str
    trusted_principal: str
    identity_name: str = iamlink.DEFAULT_IDENTITY_NAME
    identity_display_name: str = iamlink.DEFAULT_IDENTITY_DISPLAY_NAME
    custom_role_id: str = iamlink.DEFAULT_CUSTOM_ROLE_ID
    custom_role_title: str = iamlink.DEFAULT_CUSTOM_ROLE_TITLE
    custom_permissions: collections.abc.Set[str] = frozenset()
    predefined_roles: collections.abc.Set[str] = frozenset()

    def __post_init__(self):
        # accept any iterable, keep set semantics
        object.__setattr__(self, "custom_permissions", frozenset(self.custom_permissions))
        object.__setattr__(self, "predefined_roles", frozenset(self.predefined_roles))

        if not isinstance(self.scope, Scope):
            msg = f"scope must be an organization, folder or project scope, not {self.scope!r}"
            raise iamlink.ValidationError(msg)

        _check("projectId", self.project_id, PROJECT_ID_REGEX)
        if isinstance(self.scope, ProjectScope) and self.scope.project_id != self.project_id:
            msg = f"project scope {self.scope.project_id!r} does not match projectId {self.project_id!r}"
            raise iamlink.ValidationError(msg)

        _check("identityName", self.identity_name, SERVICE_ACCOUNT_ID_REGEX)
        _check("customRoleId", self.custom_role_id, CUSTOM_ROLE_ID_REGEX)
        _check("trustedPrincipal", self.trusted_principal, MEMBER_REGEX)

        for permission in sorted(self.custom_permissions):
            _check("customPermissions", permission, PERMISSION_REGEX)

        for role in sorted(self.predefined_roles):
            _check("predefinedRoles", role, PREDEFINED_ROLE_REGEX)

    @property
    def scope_type(self) -> iamlink.ScopeType:
        return self.scope.scope_type

    @property
    def scope_id(self) -> str:
        return self.scope.scope_id


@dataclasses.dataclass(frozen=True)
class ServiceAccount:
    key: str
    project_id: str
    account_id: str
    display_name: str
    depends_on: tuple[str, ...] = ()

    @property
    def email(self) -> str:
        return f"{self.account_id}@{self.project_id}.iam.gserviceaccount.com"

    @property
    def name(self) -> str:
        return f"projects/{self.project_id}/serviceAccounts/{self.email}"

    @property
    def member(self) -> str:
        return f"serviceAccount:{self.email}"


@dataclasses.dataclass(frozen=True)
class CustomRole:
    key: str
    level: iamlink.RoleLevel
    parent_id: str
    role_id: str
    title: str
    permissions: tuple[str, ...]
    depends_on: tuple[str, ...] = ()

    @property
    def reference(self) -> str:
        if self.level == iamlink.RoleLevel.ORGANIZATION:
            return f"organizations/{self.parent_id}/roles/{self.role_id}"

        return f"projects/{self.parent_id}/roles/{self.role_id}"


@dataclasses.dataclass(frozen=True)
class RoleBinding:
    key: str
    scope_type: iamlink.ScopeType
    scope_id: str
    role: str
    member: str
    depends_on: tuple[str, ...] = ()


@dataclasses.dataclass(frozen=True)
class ImpersonationGrant:
    key: str
    service_account: str
    role: str
    member: str
    depends_on: tuple[str, ...] = ()


Resource = ServiceAccount | CustomRole | RoleBinding | ImpersonationGrant


@dataclasses.dataclass(frozen=True)
class ResourceSet:
    scope_type: iamlink.ScopeType
    scope_id: str
    identity: ServiceAccount
    custom_role: CustomRole | None
    custom_role_binding: RoleBinding | None
    predefined_role_bindings: tuple[RoleBinding, ...]
    impersonation: ImpersonationGrant

    @property
    def bindings(self) -> tuple[RoleBinding, ...]:
        if self.custom_role_binding is None:
            return self.predefined_role_bindings

        return (self.custom_role_binding, *self.predefined_role_bindings)

    def __iter__(self) -> collections.abc.Iterator[Resource]:
        yield self.identity
        if self.custom_role is not None:
            yield self.custom_role
        yield from self.bindings
        yield self.impersonation

    def outputs(self) -> dict[str, str | None]:
        return {
            "identity_email": self.identity.email,
            "identity_name": self.identity.name,
            "custom_role": self.custom_role.reference if self.custom_role is not None else None,
            "scope_type": str(self.scope_type),
            "scope_id": self.scope_id,
        }


def merge_permissions(custom_permissions: collections.abc.Iterable[str]) -> frozenset[str]:
    return frozenset(custom_permissions) | iamlink.MANDATORY_PERMISSIONS


def binding_key(role: str) -> str:
    return "role-binding-" + role.removeprefix("roles/").replace(".", "-")


def define_custom_role(
    request: BindingRequest,
    identity: ServiceAccount,
    permissions: collections.abc.Set[str],
) -> tuple[CustomRole | None, RoleBinding | None]:
    """Describe the custom role and its binding, or neither for an empty permission set."""
    if len(permissions) == 0:
        return None, None

    role = CustomRole(
        key="custom-role",
        level=request.scope.role_level,
        parent_id=request.scope.role_parent_id,
        role_id=request.custom_role_id,
        title=request.custom_role_title,
        permissions=tuple(sorted(permissions)),
        depends_on=(identity.key,),
    )

    binding = RoleBinding(
        key="custom-role-binding",
        scope_type=request.scope_type,
        scope_id=request.scope_id,
        role=role.reference,
        member=identity.member,
        depends_on=(identity.key, role.key),
    )

    return role, binding


def resolve(request: BindingRequest) -> ResourceSet:
    identity = ServiceAccount(
        key="service-account",
        project_id=request.project_id,
        account_id=request.identity_name,
        display_name=request.identity_display_name,
    )

    custom_role, custom_role_binding = define_custom_role(
        request,
        identity,
        merge_permissions(request.custom_permissions),
    )

    predefined_role_bindings = tuple(
        RoleBinding(
            key=binding_key(role),
            scope_type=request.scope_type,
            scope_id=request.scope_id,
            role=role,
            member=identity.member,
            depends_on=(identity.key,),
        )
        for role in sorted(request.predefined_roles)
    )

    impersonation = ImpersonationGrant(
        key="impersonation",
        service_account=identity.name,
        role=iamlink.GCP_TOKEN_CREATOR_ROLE,
        member=request.trusted_principal,
        depends_on=(identity.key,),
    )

    return ResourceSet(
        scope_type=request.scope_type,
        scope_id=request.scope_id,
        identity=identity,
        custom_role=custom_role,
        custom_role_binding=custom_role_binding,
        predefined_role_bindings=predefined_role_bindings,
        impersonation=impersonation,
    )
