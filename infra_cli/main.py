from __future__ import annotations

import os
import sys

import click
import typer
from dotenv import load_dotenv
from rich.console import Console

from stacks.config import DeploymentConfig, DeploymentConfigError, stack_name_from_env
from stacks.outputs import STACK_OUTPUT_KEYS

from . import __version__
from .shared import GlobalOpts, OpError, UsageError, _account_session, _cf_outputs, _print_json

_ERROR_CONSOLE = Console(stderr=True)

app = typer.Typer(
    name="cf-infra",
    help="Inspect Common Fate deployment configuration and stack outputs.",
    no_args_is_help=True,
    add_completion=False,
)


def _rich_error(msg: str) -> None:
    _ERROR_CONSOLE.print(f"[bold red]error:[/bold red] {msg}")


def _bootstrap_env() -> None:
    # python-dotenv defaults: find .env, never override exported values.
    load_dotenv()


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"cf-infra {__version__}")
        raise typer.Exit(code=0)


def _ctx_global(ctx: typer.Context) -> GlobalOpts:
    if isinstance(ctx.obj, dict) and isinstance(ctx.obj.get("g"), GlobalOpts):
        return ctx.obj["g"]
    return GlobalOpts(stack=stack_name_from_env(), profile="", region="", pretty=True)


@app.callback()
def app_callback(
    ctx: typer.Context,
    stack: str = typer.Option("", "--stack", help="Stack name (env: CDK_STACK_NAME, default CommonFate-<STAGE>)"),
    profile: str = typer.Option("", "--profile", help="AWS profile (env: AWS_PROFILE)"),
    region: str = typer.Option("", "--region", help="AWS region (env: AWS_REGION)"),
    plain_json: bool = typer.Option(False, "--plain-json", help="Emit compact JSON output"),
    version: bool = typer.Option(False, "--version", callback=_version_callback, is_eager=True),
) -> None:
    del version
    _bootstrap_env()
    g = GlobalOpts(
        stack=stack.strip() or stack_name_from_env(),
        profile=profile.strip() or (os.environ.get("AWS_PROFILE") or "").strip(),
        region=region.strip() or (os.environ.get("AWS_REGION") or "").strip(),
        pretty=not plain_json,
    )
    ctx.obj = {"g": g}


@app.command("config")
def config_cmd(ctx: typer.Context) -> None:
    """Resolve the deployment configuration from the environment and print it."""
    g = _ctx_global(ctx)
    try:
        cfg = DeploymentConfig.from_env()
    except DeploymentConfigError as e:
        raise UsageError(str(e)) from e
    payload = cfg.to_dict()
    payload["app_name"] = cfg.app_name
    payload["stack_name"] = g.stack
    _print_json(payload, pretty=g.pretty)


@app.command("outputs")
def outputs_cmd(
    ctx: typer.Context,
    key: str = typer.Argument("", help="Print only this output's value"),
) -> None:
    """Print the deployed stack's CloudFormation outputs."""
    g = _ctx_global(ctx)
    outputs = _cf_outputs(_account_session(profile=g.profile, region=g.region), stack=g.stack)
    if not key:
        _print_json(outputs, pretty=g.pretty)
        return
    if key not in outputs:
        raise OpError(f"missing CloudFormation output {key!r} on stack {g.stack!r}")
    sys.stdout.write(outputs[key] + "\n")


@app.command("verify-outputs")
def verify_outputs_cmd(ctx: typer.Context) -> None:
    """Fail when the deployed stack lacks any of the published output keys."""
    g = _ctx_global(ctx)
    outputs = _cf_outputs(_account_session(profile=g.profile, region=g.region), stack=g.stack)
    missing = [k for k in STACK_OUTPUT_KEYS if k not in outputs]
    if missing:
        raise OpError(f"stack {g.stack!r} is missing outputs: {', '.join(missing)}")
    _print_json({"ok": True, "stack": g.stack, "outputs": len(STACK_OUTPUT_KEYS)}, pretty=g.pretty)


def main(argv: list[str] | None = None) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)
    try:
        result = app(args=argv, prog_name="cf-infra", standalone_mode=False)
        if result is None:
            return 0
        return int(result)
    except typer.Exit as e:
        return int(e.exit_code)
    except click.ClickException as e:
        _rich_error(e.format_message())
        return int(e.exit_code)
    except UsageError as e:
        _rich_error(str(e))
        return 2
    except OpError as e:
        _rich_error(str(e))
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
