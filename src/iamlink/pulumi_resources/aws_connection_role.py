from __future__ import annotations

import json
import typing

import pulumi
import pulumi_aws as aws

import iamlink
import iamlink.aws_connection
import iamlink.aws_role


class AWSConnectionRole(pulumi.ComponentResource):
    connection: iamlink.aws_connection.AWSConnection
    resource_set: iamlink.aws_role.RoleResourceSet
    required_tags: dict[str, str]
    name: str

    provider: aws.Provider
    role: aws.iam.Role
    inline_policy: aws.iam.RolePolicy | None
    attachments: dict[str, aws.iam.RolePolicyAttachment]

    @classmethod
    def autoload(cls) -> AWSConnectionRole:
        return cls(
            iamlink.aws_connection.AWSConnection.from_pulumi_config(
                pulumi.get_stack(),
                pulumi.Config(),
            )
        )

    def __init__(self, connection: iamlink.aws_connection.AWSConnection, *args, **kwargs):
        # region and identifiers are checked before anything is registered
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
        self.required_tags = connection.required_tags | {str(iamlink.TagKeys.IAMLINK_MANAGED_BY): __name__}
        self.attachments = {}

        pulumi.log.info(
            f"Resolved {self.name} in {self.resource_set.account_id}/{self.resource_set.region}: "
            f"{len(self.resource_set.attachments)} managed policy attachment(s)"
        )

        self._define_provider()
        self._define_role()
        self._define_inline_policy()
        self._define_attachments()

        outputs: dict[str, typing.Any] = self.resource_set.outputs() | {
            "role_arn": self.role.arn,
        }

        for key, value in outputs.items():
            pulumi.export(key, value)

        self.register_outputs(outputs)

    def _resource_name(self, key: str) -> str:
        return f"{self.name}-{key}"

    def _define_provider(self):
        self.provider = aws.Provider(
            self._resource_name("aws"),
            region=self.resource_set.region,
            allowed_account_ids=[self.resource_set.account_id],
            default_tags=aws.ProviderDefaultTagsArgs(tags=self.required_tags),
            opts=pulumi.ResourceOptions(parent=self),
        )

    def _define_role(self):
        role = self.resource_set.role

        assume_role_policy: str | pulumi.Output[str] = json.dumps(role.assume_role_policy)
        if role.has_external_id:
            # the trust policy embeds the external ID
            assume_role_policy = pulumi.Output.secret(assume_role_policy)

        self.role = aws.iam.Role(
            self._resource_name(role.key),
            aws.iam.RoleArgs(
                name=role.name,
                assume_role_policy=assume_role_policy,
                max_session_duration=role.max_session_duration,
                tags=self.required_tags | {"Name": role.name},
            ),
            opts=pulumi.ResourceOptions(parent=self, provider=self.provider),
        )

    def _define_inline_policy(self):
        policy = self.resource_set.inline_policy
        if policy is None:
            self.inline_policy = None
            return

        self.inline_policy = aws.iam.RolePolicy(
            self._resource_name(policy.key),
            name=policy.name,
            role=self.role.name,
            policy=json.dumps(policy.policy),
            opts=pulumi.ResourceOptions(parent=self, provider=self.provider, depends_on=[self.role]),
        )

    def _define_attachments(self):
        for attachment in self.resource_set.attachments:
            self.attachments[attachment.key] = aws.iam.RolePolicyAttachment(
                self._resource_name(attachment.key),
                role=self.role.name,
                policy_arn=attachment.policy_arn,
                opts=pulumi.ResourceOptions(parent=self, provider=self.provider, depends_on=[self.role]),
            )
