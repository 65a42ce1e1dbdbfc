from __future__ import annotations

import typing

import pulumi
import pulumi_gcp as gcp

import iamlink
import iamlink.gcp_binding
import iamlink.gcp_connection


class GCPConnectionIdentity(pulumi.ComponentResource):
    connection: iamlink.gcp_connection.GCPConnection
    resource_set: iamlink.gcp_binding.ResourceSet
    name: str

    service_account: gcp.serviceaccount.Account
    custom_role: gcp.organizations.IAMCustomRole | gcp.projects.IAMCustomRole | None
    bindings: dict[str, pulumi.CustomResource]
    impersonation: gcp.serviceaccount.IAMMember

    @classmethod
    def autoload(cls) -> GCPConnectionIdentity:
        return cls(
            iamlink.gcp_connection.GCPConnection.from_pulumi_config(
                pulumi.get_stack(),
                pulumi.Config(),
            )
        )

    def __init__(self, connection: iamlink.gcp_connection.GCPConnection, *args, **kwargs):
        # resolve before registering anything so a bad config creates nothing
        resource_set = connection.resolve()

        super().__init__(
            f"iamlink:{self.__class__.__name__}",
            connection.name,
            *args,
            **kwargs,
        )

        self.connection = connection
        self.name = connection.name
        self.resource_set = resource_set
        self.bindings = {}

        pulumi.log.info(
            f"Resolved {self.name} at {self.resource_set.scope_type} {self.resource_set.scope_id}: "
            f"{len(self.resource_set.bindings)} binding(s)"
        )

        self._define_service_account()
        self._define_custom_role()
        self._define_bindings()
        self._define_impersonation()

        outputs: dict[str, typing.Any] = self.resource_set.outputs() | {
            "identity_email": self.service_account.email,
        }

        for key, value in outputs.items():
            pulumi.export(key, value)

        self.register_outputs(outputs)

    def _resource_name(self, key: str) -> str:
        return f"{self.name}-{key}"

    def _define_service_account(self):
        identity = self.resource_set.identity

        self.service_account = gcp.serviceaccount.Account(
            self._resource_name(identity.key),
            account_id=identity.account_id,
            display_name=identity.display_name,
            project=identity.project_id,
            opts=pulumi.ResourceOptions(parent=self),
        )

    def _define_custom_role(self):
        role = self.resource_set.custom_role
        if role is None:
            self.custom_role = None
            return

        pulumi.log.debug(f"Defining {role.level}-level custom role {role.reference}")

        opts = pulumi.ResourceOptions(parent=self, depends_on=[self.service_account])

        if role.level == iamlink.RoleLevel.ORGANIZATION:
            self.custom_role = gcp.organizations.IAMCustomRole(
                self._resource_name(role.key),
                org_id=role.parent_id,
                role_id=role.role_id,
                title=role.title,
                permissions=list(role.permissions),
                stage="GA",
                opts=opts,
            )
        else:
            self.custom_role = gcp.projects.IAMCustomRole(
                self._resource_name(role.key),
                project=role.parent_id,
                role_id=role.role_id,
                title=role.title,
                permissions=list(role.permissions),
                stage="GA",
                opts=opts,
            )

    def _define_bindings(self):
        for binding in self.resource_set.bindings:
            depends_on: list[pulumi.Resource] = [self.service_account]
            if self.custom_role is not None and binding == self.resource_set.custom_role_binding:
                depends_on.append(self.custom_role)

            opts = pulumi.ResourceOptions(parent=self, depends_on=depends_on)

            if binding.scope_type == iamlink.ScopeType.ORGANIZATION:
                self.bindings[binding.key] = gcp.organizations.IAMMember(
                    self._resource_name(binding.key),
                    org_id=binding.scope_id,
                    role=binding.role,
                    member=binding.member,
                    opts=opts,
                )
            elif binding.scope_type == iamlink.ScopeType.FOLDER:
                self.bindings[binding.key] = gcp.folder.IAMMember(
                    self._resource_name(binding.key),
                    folder=f"folders/{binding.scope_id}",
                    role=binding.role,
                    member=binding.member,
                    opts=opts,
                )
            else:
                self.bindings[binding.key] = gcp.projects.IAMMember(
                    self._resource_name(binding.key),
                    project=binding.scope_id,
                    role=binding.role,
                    member=binding.member,
                    opts=opts,
                )

    def _define_impersonation(self):
        grant = self.resource_set.impersonation

        self.impersonation = gcp.serviceaccount.IAMMember(
            self._resource_name(grant.key),
            service_account_id=self.service_account.name,
            role=grant.role,
            member=grant.member,
            opts=pulumi.ResourceOptions(parent=self, depends_on=[self.service_account]),
        )
