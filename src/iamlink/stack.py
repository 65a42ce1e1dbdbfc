from __future__ import annotations

import functools
import json
import os
import subprocess
import typing

import iamlink
import iamlink.aws_connection
import iamlink.connection
import iamlink.gcp_connection
import iamlink.paths

if typing.TYPE_CHECKING:
    import pathlib

Connection = iamlink.aws_connection.AWSConnection | iamlink.gcp_connection.GCPConnection

sh = functools.partial(
    subprocess.run,
    check=True,
    capture_output=True,
    text=True,
)


def load(name: str, paths: iamlink.paths.Paths | None = None) -> Connection:
    """Load the named connection, picking the cloud from the ``kind`` of its config file."""
    paths = paths or iamlink.paths.Paths()
    cfg_dict = iamlink.connection.read_connection_yaml(paths.connections / name / "connection.yaml")

    kind = cfg_dict.get("kind")
    if kind == iamlink.ConnectionKinds.AWS:
        return iamlink.aws_connection.AWSConnection(name, paths)
    if kind == iamlink.ConnectionKinds.GCP:
        return iamlink.gcp_connection.GCPConnection(name, paths)

    msg = f"connection {name!r} has kind {kind!r}, expected one of {[str(k) for k in iamlink.ConnectionKinds]}"
    raise iamlink.ValidationError(msg)


def pulumi_env(exe_env: dict[str, str] | None = None) -> dict[str, str]:
    env = (exe_env or os.environ).copy()

    if "IAMLINK_BACKEND_URL" in env:
        env.setdefault("PULUMI_BACKEND_URL", env["IAMLINK_BACKEND_URL"])

    return env


def pulumi(
    args: list[str],
    env: dict[str, str] | None = None,
    cwd: pathlib.Path | None = None,
) -> subprocess.CompletedProcess:
    """Run the pulumi CLI.

    Raises:
        iamlink.ProvisioningError: If pulumi exits non-zero; the message is pulumi's own stderr

    """
    try:
        return sh(["pulumi", *args], env=env, cwd=cwd or iamlink.paths.top())
    except subprocess.CalledProcessError as exc:
        msg = (exc.stderr or "").strip() or f"pulumi {args[0]} exited with status {exc.returncode}"
        raise iamlink.ProvisioningError(msg) from exc


def select_stack(stack: str, env: dict[str, str] | None = None) -> None:
    pulumi(["stack", "select", "--create", stack], env=env)


def config_set_args(connection: Connection, stack: str) -> list[list[str]]:
    secret_keys = connection.secret_config_keys()
    commands = []

    for key, value in sorted(connection.pulumi_config().items()):
        args = ["config", "set", "--stack", stack]
        if key in secret_keys and value != "":
            args.append("--secret")
        commands.append([*args, key, value])

    return commands


def configure(connection: Connection, stack: str, env: dict[str, str] | None = None) -> None:
    for args in config_set_args(connection, stack):
        pulumi(args, env=env)


def up(stack: str, env: dict[str, str] | None = None, *, preview: bool = False) -> str:
    if preview:
        return pulumi(["preview", "--stack", stack, "--non-interactive"], env=env).stdout

    return pulumi(["up", "--stack", stack, "--yes", "--skip-preview", "--non-interactive"], env=env).stdout


def destroy(stack: str, env: dict[str, str] | None = None) -> str:
    return pulumi(["destroy", "--stack", stack, "--yes", "--non-interactive"], env=env).stdout


def outputs(stack: str, env: dict[str, str] | None = None) -> dict[str, typing.Any]:
    return json.loads(pulumi(["stack", "output", "--stack", stack, "--json"], env=env).stdout)
