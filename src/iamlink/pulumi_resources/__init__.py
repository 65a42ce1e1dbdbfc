import pulumi

import iamlink
from iamlink.pulumi_resources import aws_connection_role, gcp_connection_identity

ConnectionComponent = (
    aws_connection_role.AWSConnectionRole
    | gcp_connection_identity.GCPConnectionIdentity
)


def autoload(config: pulumi.Config | None = None) -> ConnectionComponent:
    """Build the connection component for the current stack's ``cloud`` setting."""
    config = config or pulumi.Config()

    cloud = config.get("cloud") or str(iamlink.CloudProvider.GCP)
    if cloud not in iamlink.CloudProvider:
        msg = f"cloud {cloud!r} is not one of {[str(c) for c in iamlink.CloudProvider]}"
        raise iamlink.ValidationError(msg)

    if cloud == iamlink.CloudProvider.AWS:
        return aws_connection_role.AWSConnectionRole.autoload()

    return gcp_connection_identity.GCPConnectionIdentity.autoload()
