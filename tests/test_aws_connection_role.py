"""Tests for the AWSConnectionRole component."""

import json
from unittest.mock import MagicMock, patch

import pulumi
import pytest

import iamlink
import iamlink.aws_connection
import iamlink.aws_role
from iamlink.pulumi_resources.aws_connection_role import AWSConnectionRole

MODULE = "iamlink.pulumi_resources.aws_connection_role"


def _make_role_mock(**kwargs) -> MagicMock:
    """Build a minimal AWSConnectionRole mock around a resolved resource set."""
    request = iamlink.aws_role.RoleRequest(
        account_id="123456789012",
        trusted_principal="arn:aws:iam::210987654321:role/scanner",
        **kwargs,
    )

    m = MagicMock()
    m.name = "acme-aws"
    m.resource_set = iamlink.aws_role.resolve(request)
    m.required_tags = {"iamlink/connection": "acme-aws"}
    m.attachments = {}
    m._resource_name.side_effect = lambda key: f"acme-aws-{key}"
    return m


def test_define_provider_pins_region_and_account():
    mock = _make_role_mock()

    with patch(f"{MODULE}.aws.Provider") as mock_provider:
        AWSConnectionRole._define_provider(mock)

    kwargs = mock_provider.call_args.kwargs
    assert kwargs["region"] == "us-east-1"
    assert kwargs["allowed_account_ids"] == ["123456789012"]


def test_define_role_without_external_id():
    mock = _make_role_mock()

    with patch(f"{MODULE}.aws.iam.Role") as mock_role:
        AWSConnectionRole._define_role(mock)

    name, args = mock_role.call_args.args
    assert name == "acme-aws-role"
    assert args.name == "iamlink-connection"
    assert args.max_session_duration == 3600
    assert json.loads(args.assume_role_policy) == mock.resource_set.role.assume_role_policy
    assert args.tags == {"iamlink/connection": "acme-aws", "Name": "iamlink-connection"}


def test_define_role_with_external_id_is_secret():
    mock = _make_role_mock(external_id="f0c0fbdd-3cbe-4ed2-a67d-95c4b00533b6")

    with (
        patch(f"{MODULE}.aws.iam.Role") as mock_role,
        patch(f"{MODULE}.pulumi.Output.secret") as mock_secret,
    ):
        AWSConnectionRole._define_role(mock)

    policy = json.loads(mock_secret.call_args.args[0])
    assert policy["Statement"][0]["Condition"]["StringEquals"]["sts:ExternalId"] == "f0c0fbdd-3cbe-4ed2-a67d-95c4b00533b6"
    assert mock_role.call_args.args[1].assume_role_policy is mock_secret.return_value


def test_no_inline_policy_without_custom_actions():
    mock = _make_role_mock()

    with patch(f"{MODULE}.aws.iam.RolePolicy") as mock_policy:
        AWSConnectionRole._define_inline_policy(mock)

    assert mock_policy.call_count == 0
    assert mock.inline_policy is None


def test_inline_policy():
    mock = _make_role_mock(custom_actions=["iam:GetAccountAuthorizationDetails"])

    with patch(f"{MODULE}.aws.iam.RolePolicy") as mock_policy:
        AWSConnectionRole._define_inline_policy(mock)

    kwargs = mock_policy.call_args.kwargs
    assert kwargs["name"] == "iamlink-connection-custom"
    assert kwargs["role"] is mock.role.name
    assert json.loads(kwargs["policy"])["Statement"][0]["Action"] == ["iam:GetAccountAuthorizationDetails"]


def test_attachments_deduped():
    mock = _make_role_mock(
        managed_policy_arns=["arn:aws:iam::aws:policy/SecurityAudit", "arn:aws:iam::aws:policy/SecurityAudit"],
    )

    with patch(f"{MODULE}.aws.iam.RolePolicyAttachment") as mock_attachment:
        AWSConnectionRole._define_attachments(mock)

    assert mock_attachment.call_count == 1
    assert mock_attachment.call_args.kwargs["policy_arn"] == "arn:aws:iam::aws:policy/SecurityAudit"
    assert list(mock.attachments) == [iamlink.aws_role.attachment_key("arn:aws:iam::aws:policy/SecurityAudit")]


def test_wrong_region_registers_nothing():
    conn = iamlink.aws_connection.AWSConnection("acme-aws", load_yaml=False)
    conn.cfg = iamlink.aws_connection.AWSConnectionConfig(
        account_id="123456789012",
        trusted_principal="210987654321",
        region="us-west-2",
    )

    with (
        patch(f"{MODULE}.aws.Provider") as mock_provider,
        pytest.raises(iamlink.ValidationError, match="not supported"),
    ):
        AWSConnectionRole(conn)

    assert mock_provider.call_count == 0


@pulumi.runtime.test
def test_component(
    aws_connection: iamlink.aws_connection.AWSConnection,
    pulumi_mocks: type[pulumi.runtime.Mocks],
):
    pulumi.runtime.set_mocks(pulumi_mocks(), preview=False)

    component = AWSConnectionRole(aws_connection)

    assert component.required_tags == {
        "iamlink/connection": "acme-aws",
        "iamlink/managed-by": "iamlink.pulumi_resources.aws_connection_role",
    }
    assert component.inline_policy is not None
    assert list(component.attachments) == [iamlink.aws_role.attachment_key("arn:aws:iam::aws:policy/SecurityAudit")]

    def check(args):
        arn, max_session_duration = args
        assert arn == "arn:aws:iam::123456789012:role/iamlink-connection"
        assert max_session_duration == 3600

    return pulumi.Output.all(component.role.arn, component.role.max_session_duration).apply(check)
