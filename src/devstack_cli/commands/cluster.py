"""Cluster commands - local Minikube lifecycle."""

import click

from ..decorators import handle_errors
from ..formatters import print_cluster_description


@click.command("start-cluster")
@click.pass_obj
@handle_errors
def start_cluster(obj):
    """Start Minikube (retrying on failure)."""
    obj["app"].bootstrapper.start_cluster()


@click.command("stop-cluster")
@click.pass_obj
@handle_errors
def stop_cluster(obj):
    """Stop Minikube."""
    obj["app"].bootstrapper.stop_cluster()


@click.command("cluster-status")
@click.pass_obj
@handle_errors
def cluster_status(obj):
    """Show Minikube status, cluster info and nodes."""
    app = obj["app"]
    print_cluster_description(app.reporter.console, app.cluster.describe())


CLUSTER_COMMANDS = [start_cluster, stop_cluster, cluster_status]
