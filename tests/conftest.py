import pytest
from typer.testing import CliRunner

from expensy_aks import cli
from expensy_aks.config import ProvisionSettings
from expensy_aks.services import prerequisites
from tests.fake_cloud import FakeCloud

_SETTINGS_ENV = (
    "RESOURCE_GROUP",
    "CLUSTER_NAME",
    "LOCATION",
    "NODE_COUNT",
    "NODE_VM_SIZE",
    "IP_POLL_ATTEMPTS",
    "IP_POLL_INTERVAL",
    "MONGO_USER",
    "MONGO_PASS",
    "REDIS_PASSWORD",
    "DATABASE_URI",
    "API_URL",
    "GRAFANA_USER",
    "GRAFANA_PASS",
    "EXPENSY_LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in _SETTINGS_ENV:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def settings() -> ProvisionSettings:
    return ProvisionSettings(ip_poll_attempts=5, ip_poll_interval=10.0)


@pytest.fixture
def sleeps() -> list[float]:
    return []


@pytest.fixture
def cloud() -> FakeCloud:
    return FakeCloud()


@pytest.fixture
def cli_runner(monkeypatch, cloud):
    monkeypatch.setattr(cli, "command_runner", cloud)
    monkeypatch.setattr(prerequisites.shutil, "which", lambda name: f"/usr/local/bin/{name}")
    monkeypatch.setenv("IP_POLL_INTERVAL", "0")
    return CliRunner(), cli.app
