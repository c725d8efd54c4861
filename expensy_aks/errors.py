from __future__ import annotations


class ProvisioningException(Exception):
    pass


class ConfigurationException(ProvisioningException):
    pass


class MissingPrerequisitesError(ProvisioningException):
    def __init__(self, missing: list[str]) -> None:
        self.missing = list(missing)
        super().__init__(f"Missing required tools: {', '.join(self.missing)}")


class StepFailedException(ProvisioningException):
    """A provisioning step hit a hard failure; the sequence stops here."""

    def __init__(self, step: str, message: str) -> None:
        self.step = step
        super().__init__(f"{step}: {message}")
