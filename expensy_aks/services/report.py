from __future__ import annotations

from expensy_aks.provisioner import MonitoringStatus, ProvisionReport

BANNER = "\n".join(
    [
        "╔════════════════════════════════════════╗",
        "║   AKS Cluster Setup                    ║",
        "║   Expensy DevOps Project               ║",
        "╚════════════════════════════════════════╝",
    ]
)

_RULE = "=" * 32


def render_summary(report: ProvisionReport) -> str:
    lines = [
        "",
        _RULE,
        "Cluster Summary",
        _RULE,
        f"Resource Group: {report.resource_group}",
        f"Cluster Name: {report.cluster_name}",
        f"Location: {report.location}",
        f"Log Analytics Workspace: {report.workspace_name}",
        "",
        "Ingress Controller",
        f"Namespace: {report.ingress_namespace}",
    ]
    if report.ip_pending:
        lines.extend(
            [
                "Status: Pending external IP assignment",
                "Check status with:",
                f"  kubectl get svc ingress-nginx-controller -n {report.ingress_namespace}",
            ]
        )
    else:
        lines.extend(
            [
                f"External IP: {report.external_ip}",
                "",
                "Next steps:",
                f"1. Update your DNS records to point to: {report.external_ip}",
                "2. Deploy your applications: expensy-aks deploy-apps",
                f"3. Access the ingress: http://{report.external_ip}",
            ]
        )

    if report.warnings:
        lines.extend(["", "Warnings:"])
        lines.extend(f"  - {warning}" for warning in report.warnings)

    lines.extend(
        [
            "",
            "Useful commands:",
            f"  Get ingress IP: kubectl get svc -n {report.ingress_namespace}",
            "  Deploy apps: expensy-aks deploy-apps",
            f"  View pods: kubectl get pods -n {report.app_namespace}",
            f"  View services: kubectl get svc -n {report.app_namespace}",
            f"  Delete cluster: az aks delete --resource-group {report.resource_group} --name {report.cluster_name}",
            "",
        ]
    )
    return "\n".join(lines)


def render_monitoring(status: MonitoringStatus) -> str:
    lines = [
        _RULE,
        "Container Insights Status",
        _RULE,
        f"Addon enabled: {'yes' if status.addon_enabled else 'no'}",
        f"Workspace: {status.workspace_id or 'not found'}",
        f"Agent daemonsets: {', '.join(status.agent_daemonsets) or 'none'}",
    ]
    return "\n".join(lines)
