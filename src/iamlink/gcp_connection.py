from __future__ import annotations

import dataclasses
import typing

import pulumi

import iamlink
import iamlink.connection
import iamlink.gcp_binding

# YAML reads bare numeric IDs as integers
ID_FIELDS = ("organization_id", "folder_id", "project_id")


@dataclasses.dataclass(frozen=True)
class GCPConnectionConfig:
    scope_type: str | None = None
    project_id: str | None = None
    trusted_principal: str | None = None
    organization_id: str | None = None
    folder_id: str | None = None
    identity_name: str = iamlink.DEFAULT_IDENTITY_NAME
    identity_display_name: str = iamlink.DEFAULT_IDENTITY_DISPLAY_NAME
    custom_role_id: str = iamlink.DEFAULT_CUSTOM_ROLE_ID
    custom_role_title: str = iamlink.DEFAULT_CUSTOM_ROLE_TITLE
    custom_permissions: list[str] = dataclasses.field(default_factory=list)
    predefined_roles: list[str] = dataclasses.field(default_factory=list)


class GCPConnection(iamlink.connection.AbstractConnection):
    cfg: GCPConnectionConfig

    @property
    def cloud_provider(self) -> iamlink.CloudProvider:
        return iamlink.CloudProvider.GCP

    @property
    def kind(self) -> iamlink.ConnectionKinds:
        return iamlink.ConnectionKinds.GCP

    def defaults(self) -> dict[str, typing.Any]:
        return {
            "custom_permissions": [],
            "predefined_roles": [],
        }

    def load_unique_config(self) -> None:
        for field in ID_FIELDS:
            if self.spec.get(field) is not None:
                self.spec[field] = str(self.spec[field])

        for field in ("custom_permissions", "predefined_roles"):
            self._coerce_list(field)

        self.cfg = self._config_from_spec(GCPConnectionConfig)

    def load_pulumi_config(self, config: pulumi.Config) -> None:
        self.cfg = GCPConnectionConfig(
            scope_type=config.get("scopeType"),
            project_id=config.get("projectId"),
            trusted_principal=config.get("trustedPrincipal"),
            organization_id=config.get("organizationId"),
            folder_id=config.get("folderId"),
            identity_name=config.get("identityName") or iamlink.DEFAULT_IDENTITY_NAME,
            identity_display_name=config.get("identityDisplayName") or iamlink.DEFAULT_IDENTITY_DISPLAY_NAME,
            custom_role_id=config.get("customRoleId") or iamlink.DEFAULT_CUSTOM_ROLE_ID,
            custom_role_title=config.get("customRoleTitle") or iamlink.DEFAULT_CUSTOM_ROLE_TITLE,
            custom_permissions=iamlink.split_csv(config.get("customPermissions")),
            predefined_roles=iamlink.split_csv(config.get("predefinedRoles")),
        )

    def pulumi_config(self) -> dict[str, str]:
        values = {
            "cloud": str(self.cloud_provider),
            "scopeType": self.cfg.scope_type,
            "projectId": self.cfg.project_id,
            "trustedPrincipal": self.cfg.trusted_principal,
            "organizationId": self.cfg.organization_id,
            "folderId": self.cfg.folder_id,
            "identityName": self.cfg.identity_name,
            "identityDisplayName": self.cfg.identity_display_name,
            "customRoleId": self.cfg.custom_role_id,
            "customRoleTitle": self.cfg.custom_role_title,
            "customPermissions": iamlink.join_csv(self.cfg.custom_permissions),
            "predefinedRoles": iamlink.join_csv(self.cfg.predefined_roles),
        }

        # unset keys are written as empty strings so stale stack values are cleared
        return {k: v or "" for k, v in values.items()}

    def secret_config_keys(self) -> frozenset[str]:
        return frozenset()

    def binding_request(self) -> iamlink.gcp_binding.BindingRequest:
        """Validate the loaded config into a binding request.

        Raises:
            iamlink.ValidationError: If a required identifier is missing or malformed

        """
        scope = iamlink.gcp_binding.scope_for(
            self.cfg.scope_type,
            organization_id=self.cfg.organization_id,
            folder_id=self.cfg.folder_id,
            project_id=self.cfg.project_id,
        )

        return iamlink.gcp_binding.BindingRequest(
            scope=scope,
            project_id=self.cfg.project_id or "",
            trusted_principal=self.cfg.trusted_principal or "",
            identity_name=self.cfg.identity_name,
            identity_display_name=self.cfg.identity_display_name,
            custom_role_id=self.cfg.custom_role_id,
            custom_role_title=self.cfg.custom_role_title,
            custom_permissions=self.cfg.custom_permissions,
            predefined_roles=self.cfg.predefined_roles,
        )

    def resolve(self) -> iamlink.gcp_binding.ResourceSet:
        return iamlink.gcp_binding.resolve(self.binding_request())
