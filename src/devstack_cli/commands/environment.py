"""Environment commands: dependency checks and the setup flows."""

import click

from ..bootstrap import cluster_registry, default_registry
from ..decorators import handle_errors


@click.command("check")
@click.pass_obj
@handle_errors
def check(obj):
    """Check that all required dependencies are installed."""
    app = obj["app"]
    report = app.bootstrapper.check(default_registry())
    report.raise_for_gaps()
    app.reporter.success("All required dependencies are installed")


@click.command("check-cluster-deps")
@click.pass_obj
@handle_errors
def check_cluster_deps(obj):
    """Check Minikube, kubectl and a running Docker daemon."""
    app = obj["app"]
    report = app.bootstrapper.check(cluster_registry())
    report.raise_for_gaps()
    app.reporter.success("All cluster dependencies are installed")


@click.command("setup")
@click.pass_obj
@handle_errors
def setup(obj):
    """Install missing dependencies, start the database and run migrations."""
    obj["app"].bootstrapper.setup()


@click.command("install-cluster-runtime")
@click.pass_obj
@handle_errors
def install_cluster_runtime(obj):
    """Install Minikube and kubectl, then start the cluster."""
    obj["app"].bootstrapper.install_cluster_runtime()


@click.command("setup-with-cluster")
@click.pass_obj
@handle_errors
def setup_with_cluster(obj):
    """Run setup, then install and start the local cluster."""
    obj["app"].bootstrapper.setup_with_cluster()


ENVIRONMENT_COMMANDS = [
    check,
    check_cluster_deps,
    setup,
    install_cluster_runtime,
    setup_with_cluster,
]
