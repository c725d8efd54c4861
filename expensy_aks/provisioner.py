from __future__ import annotations

from dataclasses import dataclass, field
import logging
import threading
import time
from typing import Any, Callable

from expensy_aks.config import (
    APP_NAMESPACE,
    INGRESS_CHART,
    INGRESS_RELEASE,
    INGRESS_REPO_NAME,
    INGRESS_REPO_URL,
    INGRESS_SERVICE,
    SECRET_NAME,
    WORKSPACE_RETENTION_DAYS,
    ProvisionSettings,
)
from expensy_aks.errors import StepFailedException
from expensy_aks.logging_config import log_success
from expensy_aks.proc import AdapterCommandError, CommandRunner
from expensy_aks.retry import PollResult, poll
from expensy_aks.services import prerequisites
from expensy_aks.services.azure_adapter import AzureAdapter, EnsureResult
from expensy_aks.services.helm_adapter import HelmAdapter
from expensy_aks.services.kube_adapter import KubeAdapter

logger = logging.getLogger(__name__)

INGRESS_RESOURCES = {
    "controller.resources.requests.cpu": "50m",
    "controller.resources.requests.memory": "90Mi",
    "controller.resources.limits.cpu": "200m",
    "controller.resources.limits.memory": "256Mi",
}

MONITORING_AGENT_PREFIXES = ("ama-logs", "omsagent")


@dataclass(frozen=True)
class MonitoringStatus:
    addon_enabled: bool
    workspace_id: str | None
    agent_daemonsets: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()

    @property
    def agent_running(self) -> bool:
        return bool(self.agent_daemonsets)


@dataclass
class ProvisioningContext:
    """State carried from one provisioning step to the next."""

    settings: ProvisionSettings
    workspace_id: str | None = None
    results: dict[str, EnsureResult] = field(default_factory=dict)
    monitoring: MonitoringStatus | None = None
    external_ip: str | None = None
    ip_attempts: int = 0
    warnings: list[str] = field(default_factory=list)

    def warn(self, message: str, *args: Any) -> None:
        logger.warning(message, *args)
        self.warnings.append(message % args if args else message)


@dataclass(frozen=True)
class ProvisionReport:
    resource_group: str
    cluster_name: str
    location: str
    workspace_name: str
    workspace_id: str | None
    ingress_namespace: str
    app_namespace: str
    external_ip: str | None
    warnings: tuple[str, ...] = ()

    @property
    def ip_pending(self) -> bool:
        return not self.external_ip


class Provisioner:
    """Runs the cluster setup sequence: each step checks state before changing it."""

    def __init__(
        self,
        settings: ProvisionSettings,
        *,
        runner: CommandRunner | None = None,
        azure: AzureAdapter | None = None,
        kube: KubeAdapter | None = None,
        helm: HelmAdapter | None = None,
        sleep: Callable[[float], None] = time.sleep,
        cancel: threading.Event | None = None,
        which: Callable[[str], str | None] | None = None,
    ) -> None:
        self.settings = settings
        self.azure = azure or AzureAdapter(runner=runner)
        self.kube = kube or KubeAdapter(runner=runner)
        self.helm = helm or HelmAdapter(runner=runner)
        self._sleep = sleep
        self._cancel = cancel
        self._which = which

    def run(self) -> ProvisionReport:
        ctx = ProvisioningContext(settings=self.settings)
        prerequisites.check_prerequisites(which=self._which)
        self.ensure_cluster(ctx)
        self.fetch_credentials(ctx)
        self.verify_connectivity(ctx)
        self.verify_monitoring(ctx)
        self.apply_namespace(ctx)
        self.apply_secrets(ctx)
        self.ensure_ingress_controller(ctx)
        self.poll_external_ip(ctx)
        log_success(logger, "Cluster setup completed")
        return self.summary(ctx)

    def ensure_workspace(self, ctx: ProvisioningContext) -> str:
        s = ctx.settings
        logger.info("Creating/verifying Log Analytics workspace: %s", s.workspace_name)
        with _step("ensure-workspace"):
            workspace_id = self.azure.get_workspace_id(
                resource_group=s.resource_group,
                workspace_name=s.workspace_name,
            )
            if workspace_id:
                log_success(logger, "Log Analytics workspace already exists")
                ctx.results["workspace"] = EnsureResult(name=s.workspace_name, exists=True, changed=False)
            else:
                logger.info("Creating Log Analytics workspace...")
                self.azure.create_resource_group(name=s.resource_group, location=s.location)
                workspace_id = self.azure.create_workspace(
                    resource_group=s.resource_group,
                    workspace_name=s.workspace_name,
                    location=s.location,
                    retention_days=WORKSPACE_RETENTION_DAYS,
                )
                log_success(logger, "Log Analytics workspace created")
                ctx.results["workspace"] = EnsureResult(name=s.workspace_name, exists=True, changed=True)
        ctx.workspace_id = workspace_id
        return workspace_id

    def ensure_cluster(self, ctx: ProvisioningContext) -> EnsureResult:
        s = ctx.settings
        workspace_id = ctx.workspace_id or self.ensure_workspace(ctx)
        logger.info("Creating/verifying AKS cluster: %s", s.cluster_name)
        with _step("ensure-cluster"):
            exists = self.azure.cluster_exists(resource_group=s.resource_group, cluster_name=s.cluster_name)
            if exists:
                logger.warning(
                    "Cluster %s already exists in resource group %s", s.cluster_name, s.resource_group
                )
                result = self._enable_monitoring(ctx, workspace_id)
            else:
                self.azure.create_resource_group(name=s.resource_group, location=s.location)
                result = self.azure.create_cluster(
                    resource_group=s.resource_group,
                    cluster_name=s.cluster_name,
                    location=s.location,
                    node_count=s.node_count,
                    node_vm_size=s.node_vm_size,
                    workspace_id=workspace_id,
                )
        ctx.results["cluster"] = result
        log_success(logger, "AKS cluster created/verified")
        return result

    def _enable_monitoring(self, ctx: ProvisioningContext, workspace_id: str) -> EnsureResult:
        s = ctx.settings
        try:
            result = self.azure.enable_monitoring(
                resource_group=s.resource_group,
                cluster_name=s.cluster_name,
                workspace_id=workspace_id,
            )
        except AdapterCommandError as exc:
            ctx.warn("Could not enable Container Insights on %s: %s", s.cluster_name, exc.detail or exc)
            return EnsureResult(name=s.cluster_name, exists=True, changed=False, detail=exc.detail)
        if not result.changed:
            logger.warning("Container Insights already enabled on %s", s.cluster_name)
        return result

    def fetch_credentials(self, ctx: ProvisioningContext) -> None:
        s = ctx.settings
        logger.info("Getting cluster credentials...")
        with _step("fetch-credentials"):
            self.azure.get_credentials(resource_group=s.resource_group, cluster_name=s.cluster_name)
        log_success(logger, "Credentials configured for kubectl")

    def verify_connectivity(self, ctx: ProvisioningContext) -> None:
        logger.info("Verifying connection to cluster...")
        with _step("verify-connectivity"):
            output = self.kube.cluster_info()
        logger.debug("cluster-info: %s", output.strip())
        log_success(logger, "Connected to cluster")

    def verify_monitoring(self, ctx: ProvisioningContext) -> MonitoringStatus:
        """Report Container Insights state. Problems are logged, never raised."""
        s = ctx.settings
        logger.info("Verifying Container Insights...")
        warnings: list[str] = []
        addon_enabled = False
        workspace_id = None
        try:
            profile = self.azure.get_monitoring_profile(resource_group=s.resource_group, cluster_name=s.cluster_name)
            addon_enabled = profile.enabled
            workspace_id = profile.workspace_id
            if not profile.enabled:
                warnings.append("omsagent addon not found")
            if workspace_id:
                logger.info("Container Insights workspace: %s", workspace_id)
            else:
                warnings.append("Workspace ID not found")
        except (AdapterCommandError, ValueError) as exc:
            warnings.append(f"Could not read addon profile: {exc}")

        agents: tuple[str, ...] = ()
        try:
            agents = tuple(
                name
                for name in self.kube.list_daemonsets(namespace="kube-system")
                if name.lower().startswith(MONITORING_AGENT_PREFIXES)
            )
            if not agents:
                warnings.append("Monitoring agent not yet deployed (may take a few minutes)")
        except (AdapterCommandError, ValueError) as exc:
            warnings.append(f"Could not list daemonsets: {exc}")

        for warning in warnings:
            ctx.warn(warning)
        status = MonitoringStatus(
            addon_enabled=addon_enabled,
            workspace_id=workspace_id,
            agent_daemonsets=agents,
            warnings=tuple(warnings),
        )
        ctx.monitoring = status
        log_success(logger, "Container Insights verification complete")
        return status

    def apply_namespace(self, ctx: ProvisioningContext) -> None:
        logger.info("Creating %s namespace...", APP_NAMESPACE)
        with _step("apply-namespace"):
            if ctx.settings.namespace_manifest is not None:
                self.kube.apply_file(ctx.settings.namespace_manifest)
            else:
                self.kube.apply_manifest(namespace_manifest(APP_NAMESPACE))
        log_success(logger, "Namespace created")

    def apply_secrets(self, ctx: ProvisioningContext) -> None:
        logger.info("Creating secrets in the cluster...")
        with _step("apply-secrets"):
            self.kube.upsert_generic_secret(
                name=SECRET_NAME,
                namespace=APP_NAMESPACE,
                literals=ctx.settings.secrets.as_literals(),
            )
        log_success(logger, "Secrets created/updated")

    def ensure_ingress_controller(self, ctx: ProvisioningContext) -> EnsureResult:
        namespace = ctx.settings.ingress_namespace
        logger.info("Installing NGINX Ingress Controller...")
        with _step("ensure-ingress-controller"):
            self.helm.repo_add(name=INGRESS_REPO_NAME, url=INGRESS_REPO_URL)
            self.helm.repo_update()
            existing = self.helm.find_release(release_name=INGRESS_RELEASE, namespace=namespace)
            if existing is not None:
                logger.warning(
                    "Ingress controller already installed (status=%s), skipping installation",
                    existing.status or "unknown",
                )
                result = EnsureResult(name=INGRESS_RELEASE, exists=True, changed=False)
            else:
                self.helm.install(
                    release_name=INGRESS_RELEASE,
                    chart_ref=INGRESS_CHART,
                    namespace=namespace,
                    create_namespace=True,
                    set_values=INGRESS_RESOURCES,
                )
                result = EnsureResult(name=INGRESS_RELEASE, exists=True, changed=True)
        ctx.results["ingress"] = result
        log_success(logger, "Ingress controller installed/verified")
        return result

    def poll_external_ip(self, ctx: ProvisioningContext) -> PollResult[str]:
        s = ctx.settings
        logger.info("Retrieving ingress controller IP address...")

        def probe() -> str | None:
            return self.kube.get_load_balancer_ip(service=INGRESS_SERVICE, namespace=s.ingress_namespace)

        def on_attempt(attempt: int, max_attempts: int) -> None:
            logger.info("Waiting for external IP (attempt %s/%s)...", attempt, max_attempts)

        outcome = poll(
            probe,
            max_attempts=s.ip_poll_attempts,
            interval=s.ip_poll_interval,
            sleep=self._sleep,
            cancel=self._cancel,
            on_attempt=on_attempt,
        )
        ctx.ip_attempts = outcome.attempts
        if outcome.succeeded:
            ctx.external_ip = outcome.value
            log_success(logger, "External IP assigned: %s", outcome.value)
        else:
            ctx.warn("External IP not assigned yet")
        return outcome

    def summary(self, ctx: ProvisioningContext) -> ProvisionReport:
        s = ctx.settings
        return ProvisionReport(
            resource_group=s.resource_group,
            cluster_name=s.cluster_name,
            location=s.location,
            workspace_name=s.workspace_name,
            workspace_id=ctx.workspace_id,
            ingress_namespace=s.ingress_namespace,
            app_namespace=APP_NAMESPACE,
            external_ip=ctx.external_ip,
            warnings=tuple(ctx.warnings),
        )


def namespace_manifest(name: str) -> dict[str, Any]:
    return {
        "apiVersion": "v1",
        "kind": "Namespace",
        "metadata": {"name": name, "labels": {"name": name}},
    }


class _step:
    """Turn a command failure inside a step into a hard ``StepFailedException``."""

    def __init__(self, name: str) -> None:
        self.name = name

    def __enter__(self) -> None:
        return None

    def __exit__(self, exc_type, exc, tb) -> bool:
        if isinstance(exc, (AdapterCommandError, ValueError)):
            logger.error("Step %s failed: %s", self.name, exc)
            raise StepFailedException(self.name, str(exc)) from exc
        return False
