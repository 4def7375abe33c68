"""Project commands - cargo tasks, image build and the dev server."""

import click

from ..decorators import handle_errors


@click.command("dev")
@click.pass_obj
@handle_errors
def dev(obj):
    """Start the database if needed, migrate and run the server."""
    obj["app"].bootstrapper.dev()


@click.command("build")
@click.pass_obj
@handle_errors
def build(obj):
    """Build the project (cargo build)."""
    app = obj["app"]
    app.reporter.info("Building project...")
    app.project.build()
    app.reporter.success("Build completed")


@click.command("test")
@click.pass_obj
@handle_errors
def test(obj):
    """Run the test suite (cargo test)."""
    app = obj["app"]
    app.reporter.info("Running tests...")
    app.project.test()
    app.reporter.success("Tests completed")


@click.command("format")
@click.pass_obj
@handle_errors
def format_code(obj):
    """Format the code (cargo fmt)."""
    app = obj["app"]
    app.reporter.info("Formatting code...")
    app.project.format()
    app.reporter.success("Code formatted")


@click.command("lint")
@click.pass_obj
@handle_errors
def lint(obj):
    """Lint the code (cargo clippy, warnings are errors)."""
    app = obj["app"]
    app.reporter.info("Running clippy...")
    app.project.lint()
    app.reporter.success("Linting completed")


@click.command("clean")
@click.pass_obj
@handle_errors
def clean(obj):
    """Remove build artifacts and prune unused Docker data."""
    app = obj["app"]
    app.reporter.info("Cleaning build artifacts...")
    if not app.project.clean():
        app.reporter.warning("docker system prune did not run")
    app.reporter.success("Clean completed")


@click.command("image-build")
@click.pass_obj
@handle_errors
def image_build(obj):
    """Build the application Docker image."""
    app = obj["app"]
    app.reporter.info(f"Building Docker image {app.project.image_name}...")
    app.project.image_build()
    app.reporter.success("Docker image built")


PROJECT_COMMANDS = [dev, build, test, format_code, lint, clean, image_build]
