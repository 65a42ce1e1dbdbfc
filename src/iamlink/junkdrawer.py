from __future__ import annotations

import dataclasses
import typing

import click

import iamlink.aws_role
import iamlink.gcp_binding


def print_steps(steps: list[tuple[str, typing.Any]]):
    click.secho(
        "∙ " + ("\n∙ ".join([name for name, _ in steps])) + "\n\n",
        fg="white",
        bold=True,
    )


def filter_steps_after_start(start_at_step: str, steps: list[tuple[str, typing.Any]]) -> list[tuple[str, typing.Any]]:
    if len(steps) == 0:
        return steps

    return steps[[name for (name, step) in steps].index(start_at_step) :]


def describe_resource(resource: typing.Any) -> str:
    """One-line summary of a resolved resource description."""
    match resource:
        case iamlink.gcp_binding.ServiceAccount():
            detail = resource.email
        case iamlink.gcp_binding.CustomRole():
            detail = f"{resource.reference} ({len(resource.permissions)} permissions)"
        case iamlink.gcp_binding.RoleBinding():
            detail = f"{resource.role} on {resource.scope_type} {resource.scope_id}"
        case iamlink.gcp_binding.ImpersonationGrant():
            detail = f"{resource.role} for {resource.member}"
        case iamlink.aws_role.IAMRole():
            detail = resource.arn
        case iamlink.aws_role.InlinePolicy():
            detail = f"{resource.name} ({len(resource.policy['Statement'][0]['Action'])} actions)"
        case iamlink.aws_role.PolicyAttachment():
            detail = resource.policy_arn
        case _:
            detail = ""

    return f"{resource.__class__.__name__:<20} {resource.key:<32} {detail}"


def resource_dicts(resources: typing.Iterable[typing.Any]) -> list[dict[str, typing.Any]]:
    return [{"type": r.__class__.__name__} | _plain(dataclasses.asdict(r)) for r in resources]


def _plain(value: typing.Any) -> typing.Any:
    # enums and tuples do not survive yaml.safe_dump
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, list | tuple):
        return [_plain(v) for v in value]
    if isinstance(value, str):
        return str(value)
    return value
