"""Shared pytest fixtures for iamlink tests.

This module provides common fixtures used across test files:
- iamlink_root: Sets IAMLINK_ROOT environment variable
- write_connection: Writes a connection.yaml under IAMLINK_ROOT
- pulumi_mocks: Standard Pulumi mock class for resource tests
- gcp_connection: GCPConnection with sensible defaults
- aws_connection: AWSConnection with sensible defaults
"""

import pathlib
import typing

import pulumi
import pytest
import yaml

import iamlink.aws_connection
import iamlink.gcp_connection

# ============================================================================
# Environment Setup Fixtures
# ============================================================================


@pytest.fixture
def iamlink_root(monkeypatch: pytest.MonkeyPatch, tmp_path: pathlib.Path) -> pathlib.Path:
    """Set IAMLINK_ROOT environment variable to a temporary directory.

    Required for any test that loads connection.yaml files or uses the
    Paths class.
    """
    monkeypatch.setenv("IAMLINK_ROOT", str(tmp_path))
    return tmp_path


@pytest.fixture
def write_connection(iamlink_root: pathlib.Path) -> typing.Callable[..., pathlib.Path]:
    """Write ``connection.yaml`` for a named connection.

    Usage:
        def test_something(write_connection):
            write_connection("acme", "GCPConnectionConfig", {"scope_type": "project", ...})
    """

    def _write(name: str, kind: str | None, spec: dict[str, typing.Any]) -> pathlib.Path:
        d = iamlink_root / "__conn__" / name
        d.mkdir(parents=True, exist_ok=True)

        doc: dict[str, typing.Any] = {"apiVersion": "iamlink/v1", "spec": spec}
        if kind is not None:
            doc["kind"] = kind

        path = d / "connection.yaml"
        with path.open("w") as out:
            yaml.dump(doc, stream=out)

        return path

    return _write


# ============================================================================
# Pulumi Mock Fixtures
# ============================================================================


class StandardPulumiMocks(pulumi.runtime.Mocks):
    """Standard Pulumi mocks for testing Pulumi resources.

    Returns resource names as IDs and echoes back all inputs as outputs.
    Service accounts additionally get the ``email`` and ``name`` GCP computes
    for them, and IAM roles get their ``arn``.
    """

    def new_resource(self, args: pulumi.runtime.MockResourceArgs) -> tuple[str | None, dict[typing.Any, typing.Any]]:
        outputs = dict(args.inputs)

        if args.typ == "gcp:serviceaccount/account:Account":
            email = f"{args.inputs['accountId']}@{args.inputs['project']}.iam.gserviceaccount.com"
            outputs |= {"email": email, "name": f"projects/{args.inputs['project']}/serviceAccounts/{email}"}

        if args.typ == "aws:iam/role:Role":
            outputs |= {"arn": f"arn:aws:iam::123456789012:role/{args.inputs['name']}"}

        return args.name, outputs

    def call(
        self, args: pulumi.runtime.MockCallArgs
    ) -> dict[typing.Any, typing.Any] | tuple[dict[typing.Any, typing.Any], list[tuple[str, str]] | None]:
        """Mock function calls - returns empty dict."""
        return {}


@pytest.fixture
def pulumi_mocks() -> type[pulumi.runtime.Mocks]:
    """Returns the standard Pulumi mocks class.

    The mocks are not automatically set - call set_mocks() in your test or at
    module level.
    """
    return StandardPulumiMocks


# ============================================================================
# Connection Fixtures
# ============================================================================


@pytest.fixture
def gcp_connection() -> iamlink.gcp_connection.GCPConnection:
    """A folder-scoped GCPConnection named "acme-folder".

    - Organization: "123456789012", folder: "987654321098"
    - Service accounts live in project "acme-iam"
    - One extra permission, one predefined role
    """
    conn = iamlink.gcp_connection.GCPConnection("acme-folder", load_yaml=False)
    conn.cfg = iamlink.gcp_connection.GCPConnectionConfig(
        scope_type="folder",
        organization_id="123456789012",
        folder_id="987654321098",
        project_id="acme-iam",
        trusted_principal="serviceAccount:scanner@vendor-prod.iam.gserviceaccount.com",
        custom_permissions=["resourcemanager.folders.getIamPolicy"],
        predefined_roles=["roles/iam.securityReviewer"],
    )

    return conn


@pytest.fixture
def aws_connection() -> iamlink.aws_connection.AWSConnection:
    """An AWSConnection named "acme-aws" in account "123456789012" with one managed policy."""
    conn = iamlink.aws_connection.AWSConnection("acme-aws", load_yaml=False)
    conn.cfg = iamlink.aws_connection.AWSConnectionConfig(
        account_id="123456789012",
        trusted_principal="arn:aws:iam::210987654321:role/scanner",
        external_id="f0c0fbdd-3cbe-4ed2-a67d-95c4b00533b6",
        managed_policy_arns=["arn:aws:iam::aws:policy/SecurityAudit"],
        custom_actions=["access-analyzer:ListPolicyGenerations"],
    )

    return conn
