"""CLI main entry point."""

import sys
from pathlib import Path

import click

from .application import DevstackApplication
from .commands.cluster import CLUSTER_COMMANDS
from .commands.environment import ENVIRONMENT_COMMANDS
from .commands.project import PROJECT_COMMANDS
from .commands.services import SERVICE_COMMANDS
from .config import load_config
from .formatters import Reporter
from .shared.logging import configure_logging, verbosity_to_level


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.option(
    "--project-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Project root (default: current directory)",
)
@click.option("-v", "--verbose", count=True, help="Increase verbosity (-v info, -vv debug)")
@click.option("--no-sudo", is_flag=True, help="Never re-run privileged steps through sudo")
@click.version_option(package_name="devstack-cli", prog_name="devstack")
@click.pass_context
def cli(ctx: click.Context, project_dir: Path | None, verbose: int, no_sudo: bool) -> None:
    """Development environment setup for the container engine stack.

    Detects and installs the toolchain, Docker, Compose, Minikube and kubectl,
    then manages the local cluster, the database services and migrations.
    """
    ctx.ensure_object(dict)
    ctx.obj["no_sudo"] = no_sudo
    ctx.obj.setdefault("argv", sys.argv[1:])

    if "app" not in ctx.obj:
        config = load_config(project_dir)
        configure_logging(level=verbosity_to_level(verbose, default=config.log_level))
        ctx.obj["config"] = config
        ctx.obj["app"] = DevstackApplication(config, reporter=ctx.obj.get("reporter"))

    ctx.obj["reporter"] = ctx.obj["app"].reporter


@cli.command("help")
@click.argument("command", required=False)
@click.pass_context
def help_command(ctx: click.Context, command: str | None) -> None:
    """Show help for devstack or one of its commands."""
    group = ctx.parent.command
    if command is None:
        click.echo(group.get_help(ctx.parent))
        return

    sub = group.get_command(ctx.parent, command)
    if sub is None:
        raise click.UsageError(f"No such command '{command}'.", ctx=ctx.parent)
    with click.Context(sub, info_name=command, parent=ctx.parent) as sub_ctx:
        click.echo(sub.get_help(sub_ctx))


for _command in (*ENVIRONMENT_COMMANDS, *CLUSTER_COMMANDS, *SERVICE_COMMANDS, *PROJECT_COMMANDS):
    cli.add_command(_command)


def main() -> None:
    """Main entry point."""
    cli(obj={})


if __name__ == "__main__":
    main()
