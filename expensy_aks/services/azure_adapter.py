from __future__ import annotations

from dataclasses import dataclass
import json
import logging

from expensy_aks.proc import AdapterCommandError, CommandRunner, run_command

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EnsureResult:
    name: str
    exists: bool
    changed: bool
    detail: str | None = None


@dataclass(frozen=True)
class AddonProfile:
    enabled: bool
    workspace_id: str | None


class AzureAdapter:
    """Adapter for the ``az`` resource group, Log Analytics and AKS operations."""

    def __init__(self, *, runner: CommandRunner | None = None) -> None:
        self._runner = runner

    def create_resource_group(self, *, name: str, location: str) -> EnsureResult:
        logger.info("Creating resource group: %s", name)
        try:
            run_command(
                ["az", "group", "create", "--name", name, "--location", location, "--output", "none"],
                runner=self._runner,
                error_message=f"Failed to create resource group {name}",
            )
        except AdapterCommandError as exc:
            if exc.already_exists:
                logger.warning("Resource group already exists: %s", name)
                return EnsureResult(name=name, exists=True, changed=False, detail=exc.detail)
            raise
        return EnsureResult(name=name, exists=True, changed=True)

    def get_workspace_id(self, *, resource_group: str, workspace_name: str) -> str | None:
        try:
            result = run_command(
                [
                    "az",
                    "monitor",
                    "log-analytics",
                    "workspace",
                    "show",
                    "--resource-group",
                    resource_group,
                    "--workspace-name",
                    workspace_name,
                    "--query",
                    "id",
                    "--output",
                    "tsv",
                ],
                runner=self._runner,
                error_message=f"Failed to look up Log Analytics workspace {workspace_name}",
            )
        except AdapterCommandError as exc:
            if exc.not_found:
                logger.debug("Log Analytics workspace not found: %s", workspace_name)
                return None
            raise
        return result.stdout.strip() or None

    def create_workspace(
        self,
        *,
        resource_group: str,
        workspace_name: str,
        location: str,
        retention_days: int,
    ) -> str:
        result = run_command(
            [
                "az",
                "monitor",
                "log-analytics",
                "workspace",
                "create",
                "--resource-group",
                resource_group,
                "--workspace-name",
                workspace_name,
                "--location",
                location,
                "--retention-time",
                str(retention_days),
                "--query",
                "id",
                "--output",
                "tsv",
            ],
            runner=self._runner,
            error_message=f"Failed to create Log Analytics workspace {workspace_name}",
        )
        workspace_id = result.stdout.strip()
        if not workspace_id:
            raise ValueError(f"az returned no identifier for workspace {workspace_name}")
        return workspace_id

    def cluster_exists(self, *, resource_group: str, cluster_name: str) -> bool:
        try:
            run_command(
                [
                    "az",
                    "aks",
                    "show",
                    "--resource-group",
                    resource_group,
                    "--name",
                    cluster_name,
                    "--query",
                    "name",
                    "--output",
                    "tsv",
                ],
                runner=self._runner,
                error_message=f"Failed to look up AKS cluster {cluster_name}",
            )
            return True
        except AdapterCommandError as exc:
            if exc.not_found:
                logger.debug("AKS cluster not found: %s", cluster_name)
                return False
            raise

    def create_cluster(
        self,
        *,
        resource_group: str,
        cluster_name: str,
        location: str,
        node_count: int,
        node_vm_size: str,
        workspace_id: str,
    ) -> EnsureResult:
        logger.info(
            "Creating AKS cluster '%s' (nodes=%s size=%s location=%s)",
            cluster_name,
            node_count,
            node_vm_size,
            location,
        )
        run_command(
            [
                "az",
                "aks",
                "create",
                "--resource-group",
                resource_group,
                "--name",
                cluster_name,
                "--node-count",
                str(node_count),
                "--node-vm-size",
                node_vm_size,
                "--enable-managed-identity",
                "--generate-ssh-keys",
                "--location",
                location,
                "--enable-addons",
                "monitoring",
                "--workspace-resource-id",
                workspace_id,
                "--output",
                "none",
            ],
            runner=self._runner,
            error_message=f"Failed to create AKS cluster {cluster_name}",
        )
        return EnsureResult(name=cluster_name, exists=True, changed=True)

    def enable_monitoring(self, *, resource_group: str, cluster_name: str, workspace_id: str) -> EnsureResult:
        logger.info("Enabling Container Insights on cluster: %s", cluster_name)
        try:
            run_command(
                [
                    "az",
                    "aks",
                    "enable-addons",
                    "--resource-group",
                    resource_group,
                    "--name",
                    cluster_name,
                    "--addons",
                    "monitoring",
                    "--workspace-resource-id",
                    workspace_id,
                    "--output",
                    "none",
                ],
                runner=self._runner,
                error_message=f"Failed to enable monitoring addon on {cluster_name}",
            )
        except AdapterCommandError as exc:
            if exc.already_exists:
                logger.debug("Monitoring addon already enabled on %s", cluster_name)
                return EnsureResult(name=cluster_name, exists=True, changed=False, detail=exc.detail)
            raise
        return EnsureResult(name=cluster_name, exists=True, changed=True)

    def get_credentials(self, *, resource_group: str, cluster_name: str) -> None:
        run_command(
            [
                "az",
                "aks",
                "get-credentials",
                "--resource-group",
                resource_group,
                "--name",
                cluster_name,
                "--overwrite-existing",
            ],
            runner=self._runner,
            error_message=f"Failed to fetch credentials for {cluster_name}",
        )

    def get_monitoring_profile(self, *, resource_group: str, cluster_name: str) -> AddonProfile:
        result = run_command(
            [
                "az",
                "aks",
                "show",
                "--resource-group",
                resource_group,
                "--name",
                cluster_name,
                "--query",
                "addonProfiles.omsagent",
                "--output",
                "json",
            ],
            runner=self._runner,
            error_message=f"Failed to read addon profiles of {cluster_name}",
        )
        text = result.stdout.strip()
        if not text:
            return AddonProfile(enabled=False, workspace_id=None)
        try:
            payload = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ValueError(f"Invalid JSON from az aks show for cluster {cluster_name}") from exc
        if not isinstance(payload, dict):
            return AddonProfile(enabled=False, workspace_id=None)

        config = payload.get("config") or {}
        workspace_id = None
        if isinstance(config, dict):
            # az has used both capitalisations of this key across versions
            workspace_id = config.get("logAnalyticsWorkspaceResourceID") or config.get(
                "logAnalyticsWorkspaceResourceId"
            )
        return AddonProfile(
            enabled=bool(payload.get("enabled")),
            workspace_id=workspace_id if isinstance(workspace_id, str) and workspace_id else None,
        )

    def delete_cluster(self, *, resource_group: str, cluster_name: str, wait: bool) -> EnsureResult:
        logger.info("Deleting AKS cluster '%s' from resource group '%s'", cluster_name, resource_group)
        cmd = [
            "az",
            "aks",
            "delete",
            "--resource-group",
            resource_group,
            "--name",
            cluster_name,
            "--yes",
        ]
        if not wait:
            cmd.append("--no-wait")
        try:
            run_command(
                cmd,
                runner=self._runner,
                error_message=f"Failed to delete AKS cluster {cluster_name}",
            )
        except AdapterCommandError as exc:
            if exc.not_found:
                logger.debug("AKS cluster already absent: %s", cluster_name)
                return EnsureResult(name=cluster_name, exists=False, changed=False, detail=exc.detail)
            raise
        return EnsureResult(name=cluster_name, exists=False, changed=True)
