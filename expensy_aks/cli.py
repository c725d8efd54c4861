from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, NoReturn

import typer
import yaml

from expensy_aks.config import ProvisionSettings, load_settings
from expensy_aks.errors import MissingPrerequisitesError, ProvisioningException
from expensy_aks.logging_config import configure_logging, log_success
from expensy_aks.proc import AdapterCommandError, CommandRunner
from expensy_aks.provisioner import Provisioner, ProvisioningContext
from expensy_aks.services import manifests as manifest_service, prerequisites
from expensy_aks.services.kube_adapter import KubeAdapter
from expensy_aks.services.report import BANNER, render_monitoring, render_summary

configure_logging()
logger = logging.getLogger(__name__)
app = typer.Typer(help="Provision the Expensy AKS cluster", pretty_exceptions_show_locals=False)

# Replaced in tests with a fake runner.
command_runner: CommandRunner | None = None


def _exit_for_domain_error(exc: ProvisioningException) -> NoReturn:
    if isinstance(exc, MissingPrerequisitesError):
        logger.error("Missing required tools:")
        for tool in exc.missing:
            typer.echo(f"  - {tool}", err=True)
    else:
        logger.error("%s", exc)
    typer.echo(f"Error: {exc}", err=True)
    raise typer.Exit(code=1)


def _settings(ctx: typer.Context, **overrides: Any) -> ProvisionSettings:
    try:
        return load_settings(config_file=ctx.obj.get("config"), overrides=overrides)
    except ProvisioningException as e:
        _exit_for_domain_error(e)


def _provisioner(settings: ProvisionSettings) -> Provisioner:
    return Provisioner(settings, runner=command_runner)


@app.callback()
def main(
    ctx: typer.Context,
    config: Path | None = typer.Option(None, "--config", help="YAML file with settings overrides."),
    log_level: str | None = typer.Option(None, "--log-level", help="Log level (default: $EXPENSY_LOG_LEVEL or INFO)."),
) -> None:
    if log_level:
        configure_logging(level=log_level)
    ctx.obj = {"config": config}


@app.command("check")
def check() -> None:
    """Verify that az, kubectl and helm are installed."""
    try:
        prerequisites.check_prerequisites()
    except ProvisioningException as e:
        _exit_for_domain_error(e)


@app.command("show-config")
def show_config(
    ctx: typer.Context,
    resource_group: str | None = typer.Option(None, "--resource-group"),
    cluster_name: str | None = typer.Option(None, "--cluster-name"),
) -> None:
    """Print the resolved settings as YAML with passwords masked."""
    settings = _settings(ctx, resource_group=resource_group, cluster_name=cluster_name)
    typer.echo(yaml.safe_dump(settings.redacted(), sort_keys=False), nl=False)


@app.command("provision")
def provision(
    ctx: typer.Context,
    resource_group: str | None = typer.Option(None, "--resource-group"),
    cluster_name: str | None = typer.Option(None, "--cluster-name"),
    location: str | None = typer.Option(None, "--location"),
    node_count: int | None = typer.Option(None, "--node-count", min=1),
    node_vm_size: str | None = typer.Option(None, "--node-vm-size"),
    ip_attempts: int | None = typer.Option(None, "--ip-attempts", min=1, help="Polls for the ingress IP."),
    ip_interval: float | None = typer.Option(None, "--ip-interval", min=0, help="Seconds between IP polls."),
) -> None:
    """Create or verify the cluster, monitoring, secrets and ingress controller."""
    settings = _settings(
        ctx,
        resource_group=resource_group,
        cluster_name=cluster_name,
        location=location,
        node_count=node_count,
        node_vm_size=node_vm_size,
        ip_poll_attempts=ip_attempts,
        ip_poll_interval=ip_interval,
    )
    typer.echo(BANNER)
    try:
        report = _provisioner(settings).run()
    except ProvisioningException as e:
        _exit_for_domain_error(e)
    except KeyboardInterrupt:
        logger.error("Interrupted; resources created so far are left in place")
        raise typer.Exit(code=130)
    typer.echo(render_summary(report))


@app.command("verify-insights")
def verify_insights(
    ctx: typer.Context,
    resource_group: str | None = typer.Option(None, "--resource-group"),
    cluster_name: str | None = typer.Option(None, "--cluster-name"),
) -> None:
    """Report Container Insights addon and agent status."""
    settings = _settings(ctx, resource_group=resource_group, cluster_name=cluster_name)
    status = _provisioner(settings).verify_monitoring(ProvisioningContext(settings=settings))
    typer.echo(render_monitoring(status))


@app.command("ingress-ip")
def ingress_ip(
    ctx: typer.Context,
    ip_attempts: int | None = typer.Option(None, "--ip-attempts", min=1),
    ip_interval: float | None = typer.Option(None, "--ip-interval", min=0),
) -> None:
    """Wait for and print the ingress controller's external IP."""
    settings = _settings(ctx, ip_poll_attempts=ip_attempts, ip_poll_interval=ip_interval)
    run_ctx = ProvisioningContext(settings=settings)
    _provisioner(settings).poll_external_ip(run_ctx)
    typer.echo(run_ctx.external_ip or "pending")


@app.command("deploy-apps")
def deploy_apps(
    manifests_dir: Path = typer.Option(Path("k8s"), "--manifests-dir", help="Directory with application manifests."),
) -> None:
    """Apply the application manifests in dependency order."""
    try:
        applied = manifest_service.apply_manifests(KubeAdapter(runner=command_runner), manifests_dir)
    except FileNotFoundError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)
    except AdapterCommandError as e:
        logger.error("%s", e)
        typer.echo(f"Error: {e.detail or e}", err=True)
        raise typer.Exit(code=1)
    for path in applied:
        typer.echo(str(path))


@app.command("delete-cluster")
def delete_cluster(
    ctx: typer.Context,
    resource_group: str | None = typer.Option(None, "--resource-group"),
    cluster_name: str | None = typer.Option(None, "--cluster-name"),
    yes: bool = typer.Option(False, "--yes", help="Do not ask for confirmation."),
    wait: bool = typer.Option(False, "--wait", help="Block until the deletion has finished."),
) -> None:
    """Delete the AKS cluster. The resource group and workspace are kept."""
    settings = _settings(ctx, resource_group=resource_group, cluster_name=cluster_name)
    if not yes:
        typer.confirm(
            f"Delete cluster {settings.cluster_name} in resource group {settings.resource_group}?",
            abort=True,
        )
    try:
        result = _provisioner(settings).azure.delete_cluster(
            resource_group=settings.resource_group,
            cluster_name=settings.cluster_name,
            wait=wait,
        )
    except AdapterCommandError as e:
        logger.error("%s", e)
        typer.echo(f"Error: {e.detail or e}", err=True)
        raise typer.Exit(code=1)
    if result.changed:
        log_success(logger, "Deletion of %s requested", settings.cluster_name)
    else:
        logger.warning("Cluster %s does not exist", settings.cluster_name)


if __name__ == "__main__":
    app()
