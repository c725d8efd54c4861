from __future__ import annotations

from dataclasses import dataclass
import json
import logging
from pathlib import Path
from typing import Any, Mapping

import yaml

from expensy_aks.config import REDACTED
from expensy_aks.proc import AdapterCommandError, CommandResult, CommandRunner, run_command

logger = logging.getLogger(__name__)

LOAD_BALANCER_IP_TEMPLATE = "{{ range .status.loadBalancer.ingress }}{{ .ip }}{{ end }}"
_FROM_LITERAL = "--from-literal="


@dataclass(frozen=True)
class ApplyResult:
    kind: str
    name: str
    namespace: str | None
    output: str


def redact_literals(command: list[str]) -> list[str]:
    """Mask the values of ``--from-literal=key=value`` arguments."""
    masked = []
    for arg in command:
        if arg.startswith(_FROM_LITERAL) and "=" in arg[len(_FROM_LITERAL):]:
            key = arg[len(_FROM_LITERAL):].split("=", 1)[0]
            arg = f"{_FROM_LITERAL}{key}={REDACTED}"
        masked.append(arg)
    return masked


class KubeAdapter:
    """Adapter for ``kubectl`` operations against the current kube context."""

    def __init__(self, *, runner: CommandRunner | None = None) -> None:
        self._runner = runner

    def cluster_info(self) -> str:
        result = run_command(
            ["kubectl", "cluster-info"],
            runner=self._runner,
            error_message="Failed to connect to cluster",
        )
        return result.stdout

    def apply_manifest(self, manifest: Mapping[str, Any] | str) -> ApplyResult:
        """Apply a manifest given as a mapping or YAML text via ``kubectl apply -f -``."""
        if isinstance(manifest, str):
            text = manifest
            document = yaml.safe_load(text)
        else:
            document = dict(manifest)
            text = yaml.safe_dump(document, sort_keys=False)
        if not isinstance(document, dict) or "kind" not in document:
            raise ValueError("manifest must be a single Kubernetes object with a kind")

        metadata = document.get("metadata") or {}
        kind = str(document["kind"])
        name = str(metadata.get("name", ""))
        namespace = metadata.get("namespace")
        logger.debug("Applying %s/%s namespace=%s", kind, name, namespace)
        result = run_command(
            ["kubectl", "apply", "-f", "-"],
            runner=self._runner,
            error_message=f"Failed to apply {kind} {name}",
            stdin=text,
        )
        return ApplyResult(kind=kind, name=name, namespace=namespace, output=result.stdout.strip())

    def apply_file(self, path: Path) -> CommandResult:
        return run_command(
            ["kubectl", "apply", "-f", str(path)],
            runner=self._runner,
            error_message=f"Failed to apply manifest {path}",
        )

    def render_generic_secret(self, *, name: str, namespace: str, literals: Mapping[str, str]) -> str:
        cmd = ["kubectl", "create", "secret", "generic", name]
        cmd.extend(f"{_FROM_LITERAL}{key}={value}" for key, value in literals.items())
        cmd.extend(["--namespace", namespace, "--dry-run=client", "--output", "yaml"])
        result = run_command(
            cmd,
            runner=self._runner,
            error_message=f"Failed to render secret {name}",
            redact=redact_literals,
        )
        return result.stdout

    def upsert_generic_secret(self, *, name: str, namespace: str, literals: Mapping[str, str]) -> ApplyResult:
        """Create or overwrite a generic secret by piping a client-side dry run into apply."""
        logger.info("Applying secret '%s' in namespace '%s' (%s keys)", name, namespace, len(literals))
        manifest = self.render_generic_secret(name=name, namespace=namespace, literals=literals)
        return self.apply_manifest(manifest)

    def get_load_balancer_ip(self, *, service: str, namespace: str) -> str | None:
        try:
            result = run_command(
                [
                    "kubectl",
                    "get",
                    "service",
                    service,
                    "--namespace",
                    namespace,
                    f"--template={LOAD_BALANCER_IP_TEMPLATE}",
                ],
                runner=self._runner,
                error_message=f"Failed to read load balancer status of {service}",
            )
        except AdapterCommandError as exc:
            logger.debug("Load balancer query for %s failed: %s", service, exc.detail)
            return None
        return result.stdout.strip() or None

    def list_daemonsets(self, *, namespace: str) -> list[str]:
        result = run_command(
            ["kubectl", "get", "daemonset", "--namespace", namespace, "--output", "json"],
            runner=self._runner,
            error_message=f"Failed to list daemonsets in {namespace}",
        )
        try:
            payload = json.loads(result.stdout or "{}")
        except json.JSONDecodeError as exc:
            raise ValueError(f"Invalid JSON from kubectl get daemonset in {namespace}") from exc
        items = payload.get("items", []) if isinstance(payload, dict) else []
        names = []
        for item in items:
            metadata = item.get("metadata", {}) if isinstance(item, dict) else {}
            name = metadata.get("name") if isinstance(metadata, dict) else None
            if isinstance(name, str):
                names.append(name)
        return names
