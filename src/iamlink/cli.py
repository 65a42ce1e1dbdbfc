from __future__ import annotations

import json
import typing

import click
import yaml

import iamlink
import iamlink.junkdrawer
import iamlink.stack


def _load(name: str) -> iamlink.stack.Connection:
    try:
        return iamlink.stack.load(name)
    except iamlink.ValidationError as exc:
        raise click.UsageError(str(exc)) from exc


def _resolve(connection: iamlink.stack.Connection) -> typing.Any:
    try:
        return connection.resolve()
    except iamlink.ValidationError as exc:
        raise click.UsageError(f"{connection.name}: {exc}") from exc


@click.group()
def cli():
    """Provision connection identities for IAM inventory access."""


@cli.command()
@click.argument("name")
@click.option("--output", "output_format", type=click.Choice(["text", "json", "yaml"]), default="text")
def plan(name: str, output_format: str):
    """Show the resources NAME resolves to, without touching any cloud."""
    connection = _load(name)
    resource_set = _resolve(connection)

    if output_format == "text":
        click.secho(f"{name} ({connection.cloud_provider})", bold=True)
        for resource in resource_set:
            click.echo(iamlink.junkdrawer.describe_resource(resource))
        return

    doc = {
        "connection": name,
        "cloud": str(connection.cloud_provider),
        "resources": iamlink.junkdrawer.resource_dicts(resource_set),
        "outputs": resource_set.outputs(),
    }

    if output_format == "json":
        click.echo(json.dumps(doc, indent=2, sort_keys=True))
    else:
        click.echo(yaml.safe_dump(doc, sort_keys=False))


@cli.command()
@click.argument("name")
@click.option("--stack", "stack_name", default=None, help="Pulumi stack name (defaults to NAME)")
@click.option("--preview", is_flag=True, help="Run pulumi preview instead of pulumi up")
@click.option("--start-at-step", default=None)
def up(name: str, stack_name: str | None, *, preview: bool, start_at_step: str | None):
    """Provision the connection identity for NAME."""
    stack_name = stack_name or name
    connection = _load(name)
    env = iamlink.stack.pulumi_env()

    def validate():
        _resolve(connection)

    def whoami():
        identity, ok = iamlink.aws_whoami(env)
        if not ok:
            msg = "unable to resolve AWS caller identity; check AWS credentials"
            raise click.ClickException(msg)
        if identity["Account"] != connection.cfg.account_id:
            msg = f"AWS credentials resolve to account {identity['Account']}, {name} targets {connection.cfg.account_id}"
            raise click.ClickException(msg)

    def configure():
        iamlink.stack.select_stack(stack_name, env=env)
        iamlink.stack.configure(connection, stack_name, env=env)

    def provision():
        click.echo(iamlink.stack.up(stack_name, env=env, preview=preview))
        if not preview:
            stack_outputs = iamlink.stack.outputs(stack_name, env=env)
            click.secho(json.dumps(stack_outputs, indent=2, sort_keys=True), fg="green")

    steps: list[tuple[str, typing.Callable[[], None]]] = [("validate", validate)]
    if connection.cloud_provider == iamlink.CloudProvider.AWS:
        steps.append(("whoami", whoami))
    steps += [("configure", configure), ("preview" if preview else "up", provision)]

    if start_at_step is not None:
        try:
            steps = iamlink.junkdrawer.filter_steps_after_start(start_at_step, steps)
        except ValueError as exc:
            msg = f"unknown step {start_at_step!r}; steps are {[s for s, _ in steps]}"
            raise click.UsageError(msg) from exc

    iamlink.junkdrawer.print_steps(steps)

    for step_name, step in steps:
        click.secho(f"=> {step_name}", fg="cyan", bold=True)
        try:
            step()
        except iamlink.ProvisioningError as exc:
            click.secho(str(exc), fg="red", err=True)
            msg = f"step {step_name!r} failed"
            raise click.ClickException(msg) from exc


@cli.command()
@click.argument("name")
@click.option("--stack", "stack_name", default=None, help="Pulumi stack name (defaults to NAME)")
@click.option("--yes", is_flag=True, help="Skip confirmation")
def destroy(name: str, stack_name: str | None, *, yes: bool):
    """Destroy the connection identity for NAME."""
    stack_name = stack_name or name

    if not yes:
        click.confirm(f"Destroy every resource in stack {stack_name!r}?", abort=True)

    env = iamlink.stack.pulumi_env()
    try:
        click.echo(iamlink.stack.destroy(stack_name, env=env))
    except iamlink.ProvisioningError as exc:
        click.secho(str(exc), fg="red", err=True)
        msg = f"destroy of {stack_name!r} failed"
        raise click.ClickException(msg) from exc

    click.secho(f"{stack_name} destroyed", fg="green")


if __name__ == "__main__":
    cli()
