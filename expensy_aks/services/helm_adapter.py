from __future__ import annotations

from dataclasses import dataclass
import json
import logging
from typing import Mapping

from expensy_aks.proc import AdapterCommandError, CommandRunner, run_command

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HelmRelease:
    name: str
    namespace: str
    status: str | None = None


class HelmAdapter:
    """Adapter for Helm repository and release operations."""

    def __init__(self, *, runner: CommandRunner | None = None) -> None:
        self._runner = runner

    def repo_add(self, *, name: str, url: str) -> bool:
        """Register a chart repository; returns False if it was already registered."""
        logger.info("Adding Helm repository '%s' (%s)", name, url)
        try:
            run_command(
                ["helm", "repo", "add", name, url],
                runner=self._runner,
                error_message=f"Failed to add Helm repository {name}",
            )
        except AdapterCommandError as exc:
            if exc.already_exists:
                logger.warning("Helm repository already registered: %s", name)
                return False
            raise
        return True

    def repo_update(self) -> None:
        run_command(
            ["helm", "repo", "update"],
            runner=self._runner,
            error_message="Failed to update Helm repositories",
        )

    def list_releases(self, *, namespace: str) -> list[HelmRelease]:
        result = run_command(
            ["helm", "list", "--namespace", namespace, "--output", "json"],
            runner=self._runner,
            error_message=f"Failed to list Helm releases in {namespace}",
        )
        try:
            payload = json.loads(result.stdout or "[]")
        except json.JSONDecodeError as exc:
            raise ValueError(f"Invalid JSON from helm list in namespace {namespace}") from exc
        if not isinstance(payload, list):
            return []

        releases = []
        for entry in payload:
            if not isinstance(entry, dict) or not isinstance(entry.get("name"), str):
                continue
            releases.append(
                HelmRelease(
                    name=entry["name"],
                    namespace=entry.get("namespace") or namespace,
                    status=entry.get("status"),
                )
            )
        return releases

    def find_release(self, *, release_name: str, namespace: str) -> HelmRelease | None:
        """Look up a release by exact name."""
        for release in self.list_releases(namespace=namespace):
            if release.name == release_name:
                return release
        return None

    def install(
        self,
        *,
        release_name: str,
        chart_ref: str,
        namespace: str,
        create_namespace: bool,
        set_values: Mapping[str, str],
    ) -> None:
        logger.info("Installing Helm release '%s' (chart=%s) in namespace '%s'", release_name, chart_ref, namespace)
        cmd = ["helm", "install", release_name, chart_ref, "--namespace", namespace]
        if create_namespace:
            cmd.append("--create-namespace")
        for key, value in set_values.items():
            cmd.extend(["--set", f"{key}={value}"])
        run_command(
            cmd,
            runner=self._runner,
            error_message=f"Failed to install release {release_name}",
        )
