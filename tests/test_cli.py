from __future__ import annotations

import yaml

from expensy_aks.services import prerequisites


def test_cli_check_reports_missing_tools(cli_runner, monkeypatch):
    runner, app = cli_runner
    monkeypatch.setattr(prerequisites.shutil, "which", lambda name: None if name == "az" else f"/bin/{name}")

    result = runner.invoke(app, ["check"])

    assert result.exit_code == 1
    assert "  - Azure CLI (az)" in result.output
    assert "  - kubectl" not in result.output


def test_cli_check_passes_with_all_tools(cli_runner):
    runner, app = cli_runner
    result = runner.invoke(app, ["check"])
    assert result.exit_code == 0


def test_cli_show_config_redacts_secrets(cli_runner, monkeypatch):
    runner, app = cli_runner
    monkeypatch.setenv("GRAFANA_PASS", "topsecret")

    result = runner.invoke(app, ["show-config", "--cluster-name", "aks-demo"])

    assert result.exit_code == 0
    data = yaml.safe_load(result.output)
    assert data["cluster_name"] == "aks-demo"
    assert data["workspace_name"] == "aks-demo-logs"
    assert data["secrets"]["grafana_pass"] == "********"
    assert "topsecret" not in result.output


def test_cli_show_config_reads_config_file(cli_runner, tmp_path):
    runner, app = cli_runner
    config_file = tmp_path / "cluster.yaml"
    config_file.write_text("resource_group: rg-file\nnode_count: 4\n")

    result = runner.invoke(app, ["--config", str(config_file), "show-config"])

    assert result.exit_code == 0
    data = yaml.safe_load(result.output)
    assert data["resource_group"] == "rg-file"
    assert data["node_count"] == 4


def test_cli_invalid_config_file_exits_1(cli_runner, tmp_path):
    runner, app = cli_runner
    config_file = tmp_path / "cluster.yaml"
    config_file.write_text("node_count: 0\n")

    result = runner.invoke(app, ["--config", str(config_file), "provision"])

    assert result.exit_code == 1
    assert "Error: Config file" in result.output
    assert "Traceback" not in result.output


def test_cli_provision_fresh_environment_prints_summary(cli_runner, cloud):
    runner, app = cli_runner

    result = runner.invoke(app, ["provision", "--node-count", "2"])

    assert result.exit_code == 0, result.output
    assert "Cluster Summary" in result.output
    assert "External IP: 20.50.60.70" in result.output
    assert "Resource Group: rg-expensy-aks" in result.output
    create = next(cmd for cmd in cloud.calls if cmd[:3] == ["az", "aks", "create"])
    assert create[create.index("--node-count") + 1] == "2"


def test_cli_provision_pending_ip_still_succeeds(cli_runner, cloud):
    runner, app = cli_runner
    cloud.ip_after = None

    result = runner.invoke(app, ["provision", "--ip-attempts", "3"])

    assert result.exit_code == 0, result.output
    assert "Status: Pending external IP assignment" in result.output
    assert cloud.ip_queries == 3


def test_cli_provision_missing_tools_touches_nothing(cli_runner, cloud, monkeypatch):
    runner, app = cli_runner
    monkeypatch.setattr(prerequisites.shutil, "which", lambda name: None)

    result = runner.invoke(app, ["provision"])

    assert result.exit_code == 1
    for tool in ("Azure CLI (az)", "kubectl", "helm"):
        assert f"  - {tool}" in result.output
    assert cloud.calls == []


def test_cli_provision_hard_failure_exits_1(cli_runner, cloud):
    runner, app = cli_runner
    cloud.fail("kubectl", "cluster-info", stderr="Unable to connect to the server")

    result = runner.invoke(app, ["provision"])

    assert result.exit_code == 1
    assert "Error: verify-connectivity" in result.output
    assert "Cluster Summary" not in result.output


def test_cli_provision_secret_failure_does_not_echo_values(cli_runner, cloud, monkeypatch):
    runner, app = cli_runner
    monkeypatch.setenv("GRAFANA_PASS", "gr4fana-pw")
    cloud.fail("kubectl", "create", "secret", stderr="error: failed to create secret")

    result = runner.invoke(app, ["provision"])

    assert result.exit_code == 1
    assert "Error: apply-secrets" in result.output
    assert "gr4fana-pw" not in result.output


def test_cli_ingress_ip_prints_pending(cli_runner, cloud):
    runner, app = cli_runner
    cloud.ip_after = None

    result = runner.invoke(app, ["ingress-ip", "--ip-attempts", "2"])

    assert result.exit_code == 0
    assert result.output.strip().splitlines()[-1] == "pending"


def test_cli_ingress_ip_prints_address(cli_runner):
    runner, app = cli_runner

    result = runner.invoke(app, ["ingress-ip"])

    assert result.exit_code == 0
    assert result.output.strip().splitlines()[-1] == "20.50.60.70"


def test_cli_verify_insights_reports_status(cli_runner, cloud):
    runner, app = cli_runner
    cloud.cluster_exists = True
    cloud.addon_enabled = True
    cloud.addon_workspace_id = "/subscriptions/0000/workspaces/aks-expensy-logs"

    result = runner.invoke(app, ["verify-insights"])

    assert result.exit_code == 0
    assert "Addon enabled: yes" in result.output
    assert "Agent daemonsets: ama-logs" in result.output


def test_cli_deploy_apps_applies_in_order(cli_runner, cloud, tmp_path):
    runner, app = cli_runner
    for name in ("frontend.yaml", "backend.yaml", "namespace.yaml", "secrets-template.yaml", "mongo.yaml", "extra.yml"):
        (tmp_path / name).write_text("kind: ConfigMap\n")

    result = runner.invoke(app, ["deploy-apps", "--manifests-dir", str(tmp_path)])

    assert result.exit_code == 0, result.output
    applied = [cmd[3].rsplit("/", 1)[-1] for cmd in cloud.calls]
    assert applied == ["namespace.yaml", "mongo.yaml", "backend.yaml", "frontend.yaml", "extra.yml"]


def test_cli_deploy_apps_missing_directory_exits_1(cli_runner, tmp_path):
    runner, app = cli_runner

    result = runner.invoke(app, ["deploy-apps", "--manifests-dir", str(tmp_path / "nope")])

    assert result.exit_code == 1
    assert "Manifest directory not found" in result.output


def test_cli_delete_cluster_with_yes(cli_runner, cloud):
    runner, app = cli_runner
    cloud.cluster_exists = True

    result = runner.invoke(app, ["delete-cluster", "--yes"])

    assert result.exit_code == 0
    assert cloud.calls == [
        ["az", "aks", "delete", "--resource-group", "rg-expensy-aks", "--name", "aks-expensy", "--yes", "--no-wait"]
    ]


def test_cli_delete_cluster_declined_confirmation_aborts(cli_runner, cloud):
    runner, app = cli_runner

    result = runner.invoke(app, ["delete-cluster"], input="n\n")

    assert result.exit_code == 1
    assert cloud.calls == []
