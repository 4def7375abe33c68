"""Service commands - database, cache, migrations and the full stack."""

import click

from ..decorators import handle_errors
from ..formatters import print_stack_status


@click.command("db-up")
@click.pass_obj
@handle_errors
def db_up(obj):
    """Start PostgreSQL and Redis and wait until they are ready."""
    obj["app"].bootstrapper.db_up()


@click.command("db-down")
@click.pass_obj
@handle_errors
def db_down(obj):
    """Stop PostgreSQL and Redis."""
    obj["app"].bootstrapper.db_down()


@click.command("db-status")
@click.pass_obj
@handle_errors
def db_status(obj):
    """Show the state of the database services."""
    app = obj["app"]
    print_stack_status(app.reporter.console, app.services.status())


@click.command("db-reset")
@click.pass_obj
@handle_errors
def db_reset(obj):
    """Delete all database data and recreate it from migrations."""
    obj["app"].bootstrapper.db_reset()


@click.command("migrate")
@click.pass_obj
@handle_errors
def migrate(obj):
    """Run database migrations."""
    obj["app"].bootstrapper.migrate()


@click.command("prepare-offline-queries")
@click.pass_obj
@handle_errors
def prepare_offline_queries(obj):
    """Generate SQLx offline query metadata."""
    obj["app"].bootstrapper.prepare_offline_queries()


@click.command("stack-up")
@click.pass_obj
@handle_errors
def stack_up(obj):
    """Build and run the whole application stack with compose."""
    app = obj["app"]
    app.reporter.info("Starting services with Docker Compose...")
    app.services.stack_up()


@click.command("stack-down")
@click.pass_obj
@handle_errors
def stack_down(obj):
    """Stop and remove the whole application stack."""
    app = obj["app"]
    app.reporter.info("Stopping Docker Compose services...")
    app.services.stack_down()
    app.reporter.success("Services stopped")


SERVICE_COMMANDS = [
    db_up,
    db_down,
    db_status,
    db_reset,
    migrate,
    prepare_offline_queries,
    stack_up,
    stack_down,
]
