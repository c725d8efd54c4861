from __future__ import annotations

from expensy_aks.provisioner import MonitoringStatus, ProvisionReport
from expensy_aks.services.report import render_monitoring, render_summary


def _report(**overrides) -> ProvisionReport:
    values = dict(
        resource_group="rg-expensy-aks",
        cluster_name="aks-expensy",
        location="westeurope",
        workspace_name="aks-expensy-logs",
        workspace_id="/subscriptions/0000/workspaces/aks-expensy-logs",
        ingress_namespace="ingress-nginx",
        app_namespace="expensy",
        external_ip="20.1.2.3",
    )
    values.update(overrides)
    return ProvisionReport(**values)


def test_summary_with_ip_lists_next_steps() -> None:
    text = render_summary(_report())

    assert "External IP: 20.1.2.3" in text
    assert "1. Update your DNS records to point to: 20.1.2.3" in text
    assert "3. Access the ingress: http://20.1.2.3" in text
    assert "Pending" not in text
    assert "Delete cluster: az aks delete --resource-group rg-expensy-aks --name aks-expensy" in text


def test_summary_pending_ip_points_at_service_check() -> None:
    text = render_summary(_report(external_ip=None, warnings=("External IP not assigned yet",)))

    assert "Status: Pending external IP assignment" in text
    assert "kubectl get svc ingress-nginx-controller -n ingress-nginx" in text
    assert "Next steps:" not in text
    assert "  - External IP not assigned yet" in text


def test_monitoring_render_without_agent() -> None:
    text = render_monitoring(MonitoringStatus(addon_enabled=False, workspace_id=None))

    assert "Addon enabled: no" in text
    assert "Workspace: not found" in text
    assert "Agent daemonsets: none" in text
