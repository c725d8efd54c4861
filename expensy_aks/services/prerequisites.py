from __future__ import annotations

import logging
import shutil
from typing import Callable

from expensy_aks.errors import MissingPrerequisitesError
from expensy_aks.logging_config import log_success

logger = logging.getLogger(__name__)

REQUIRED_TOOLS: tuple[tuple[str, str], ...] = (
    ("az", "Azure CLI (az)"),
    ("kubectl", "kubectl"),
    ("helm", "helm"),
)


def missing_tools(*, which: Callable[[str], str | None] = shutil.which) -> list[str]:
    return [label for executable, label in REQUIRED_TOOLS if which(executable) is None]


def check_prerequisites(*, which: Callable[[str], str | None] | None = None) -> None:
    logger.info("Checking prerequisites...")
    missing = missing_tools(which=which or shutil.which)
    if missing:
        raise MissingPrerequisitesError(missing)
    log_success(logger, "All prerequisites met")
