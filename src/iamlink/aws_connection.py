from __future__ import annotations

import dataclasses
import typing

import pulumi

import iamlink
import iamlink.aws_role
import iamlink.connection


@dataclasses.dataclass(frozen=True)
class AWSConnectionConfig:
    account_id: str | None = None
    trusted_principal: str | None = None
    region: str = iamlink.REQUIRED_AWS_REGION
    role_name: str = iamlink.DEFAULT_AWS_ROLE_NAME
    external_id: str | None = None
    managed_policy_arns: list[str] = dataclasses.field(default_factory=list)
    custom_actions: list[str] = dataclasses.field(default_factory=list)
    max_session_duration: int = iamlink.DEFAULT_AWS_MAX_SESSION_DURATION


class AWSConnection(iamlink.connection.AbstractConnection):
    cfg: AWSConnectionConfig

    @property
    def cloud_provider(self) -> iamlink.CloudProvider:
        return iamlink.CloudProvider.AWS

    @property
    def kind(self) -> iamlink.ConnectionKinds:
        return iamlink.ConnectionKinds.AWS

    def defaults(self) -> dict[str, typing.Any]:
        return {
            "managed_policy_arns": [],
            "custom_actions": [],
        }

    def load_unique_config(self) -> None:
        # YAML reads a bare account ID as an integer
        for field in ("account_id", "trusted_principal", "external_id"):
            if self.spec.get(field) is not None:
                self.spec[field] = str(self.spec[field])

        for field in ("managed_policy_arns", "custom_actions"):
            self._coerce_list(field)
        self._coerce_int("max_session_duration")

        self.cfg = self._config_from_spec(AWSConnectionConfig)

    def load_pulumi_config(self, config: pulumi.Config) -> None:
        self.cfg = AWSConnectionConfig(
            account_id=config.get("accountId"),
            trusted_principal=config.get("trustedPrincipal"),
            region=config.get("awsRegion") or iamlink.REQUIRED_AWS_REGION,
            role_name=config.get("roleName") or iamlink.DEFAULT_AWS_ROLE_NAME,
            external_id=config.get("externalId") or None,
            managed_policy_arns=iamlink.split_csv(config.get("managedPolicyArns")),
            custom_actions=iamlink.split_csv(config.get("customActions")),
            max_session_duration=config.get_int("maxSessionDuration") or iamlink.DEFAULT_AWS_MAX_SESSION_DURATION,
        )

    def pulumi_config(self) -> dict[str, str]:
        values = {
            "cloud": str(self.cloud_provider),
            "accountId": self.cfg.account_id,
            "trustedPrincipal": self.cfg.trusted_principal,
            "awsRegion": self.cfg.region,
            "roleName": self.cfg.role_name,
            "externalId": self.cfg.external_id,
            "managedPolicyArns": iamlink.join_csv(self.cfg.managed_policy_arns),
            "customActions": iamlink.join_csv(self.cfg.custom_actions),
            "maxSessionDuration": str(self.cfg.max_session_duration),
        }

        # unset keys are written as empty strings so stale stack values are cleared
        return {k: v or "" for k, v in values.items()}

    def secret_config_keys(self) -> frozenset[str]:
        return frozenset({"externalId"})

    def role_request(self) -> iamlink.aws_role.RoleRequest:
        return iamlink.aws_role.RoleRequest(
            account_id=self.cfg.account_id or "",
            trusted_principal=self.cfg.trusted_principal or "",
            region=self.cfg.region,
            role_name=self.cfg.role_name,
            external_id=self.cfg.external_id,
            managed_policy_arns=self.cfg.managed_policy_arns,
            custom_actions=self.cfg.custom_actions,
            max_session_duration=self.cfg.max_session_duration,
        )

    def resolve(self) -> iamlink.aws_role.RoleResourceSet:
        return iamlink.aws_role.resolve(self.role_request())
