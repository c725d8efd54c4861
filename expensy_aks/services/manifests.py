from __future__ import annotations

import logging
from pathlib import Path

from expensy_aks.config import APP_NAMESPACE
from expensy_aks.logging_config import log_success
from expensy_aks.services.kube_adapter import KubeAdapter

logger = logging.getLogger(__name__)

# Dependencies first: the namespace and secrets before the workloads that read them.
APPLY_ORDER = ("namespace", "secrets", "mongo", "redis", "backend", "frontend", "ingress")
_MANIFEST_SUFFIXES = (".yaml", ".yml")


def _rank(path: Path) -> tuple[int, str]:
    stem = path.stem.lower()
    for index, prefix in enumerate(APPLY_ORDER):
        if stem.startswith(prefix):
            return index, path.name
    return len(APPLY_ORDER), path.name


def discover_manifests(directory: Path) -> list[Path]:
    """List manifests in apply order, leaving out templates."""
    if not directory.is_dir():
        raise FileNotFoundError(f"Manifest directory not found: {directory}")
    candidates = [
        path
        for path in directory.iterdir()
        if path.is_file() and path.suffix.lower() in _MANIFEST_SUFFIXES and "template" not in path.name.lower()
    ]
    return sorted(candidates, key=_rank)


def apply_manifests(kube: KubeAdapter, directory: Path) -> list[Path]:
    manifests = discover_manifests(directory)
    if not manifests:
        logger.warning("No manifests found in %s", directory)
        return []
    for path in manifests:
        logger.info("Applying %s", path.name)
        kube.apply_file(path)
    log_success(logger, "Applied %s manifests to namespace %s", len(manifests), APP_NAMESPACE)
    return manifests
