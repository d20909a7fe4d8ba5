import uuid
from typing import Any, Dict

import pulumi
from pulumi_azure_native import authorization, desktopvirtualization, monitor, network

from config import WorkspaceConfig
from resolution import (
    CategoryCatalog,
    ResolvedDiagnostics,
    needs_subscription_lookup,
    resolve_diagnostic_categories,
    resolve_private_endpoints,
    resolve_role_definition_id,
)


class AvdWorkspaceBuilder:
    def __init__(self, config: WorkspaceConfig):
        self.config = config
        self.resources: Dict[str, pulumi.CustomResource] = {}
        self.private_endpoints: Dict[str, network.PrivateEndpoint] = {}
        self.dns_zone_groups: Dict[str, network.PrivateDnsZoneGroup] = {}
        self.role_assignments: Dict[str, authorization.RoleAssignment] = {}
        self.role_definition_ids: Dict[str, str] = {}
        self.diagnostic_categories = None
        self.workspace = None

    def build(self):
        # Abort before anything is declared if the settings contradict each other
        self.config.check_preconditions()

        self._define_workspace()
        self._define_role_assignments()
        self._define_private_endpoints()
        self._define_diagnostic_setting()
        self._define_lock()

    def outputs(self) -> Dict[str, Any]:
        private_endpoints = {}
        for role, endpoint in self.private_endpoints.items():
            zone_group = self.dns_zone_groups.get(role)
            private_endpoints[role] = {
                "id": endpoint.id,
                "fqdn": pulumi.Output.all(
                    endpoint.custom_dns_configs,
                    zone_group.private_dns_zone_configs if zone_group else None,
                ).apply(lambda args: first_fqdn(*args)),
            }
        return {
            "workspace_id": self.workspace.id,
            "workspace_name": self.workspace.name,
            "private_endpoints": pulumi.Output.secret(private_endpoints),
            "role_assignment_ids": {key: ra.id for key, ra in self.role_assignments.items()},
        }

    def _define_workspace(self):
        cfg = self.config
        self.workspace = desktopvirtualization.Workspace(
            cfg.name,
            workspace_name=cfg.name,
            resource_group_name=cfg.resource_group_name,
            location=cfg.location,
            friendly_name=cfg.friendly_name,
            description=cfg.description,
            public_network_access="Enabled" if cfg.public_network_access_enabled else "Disabled",
            # The native provider models application group associations as workspace references
            application_group_references=list(cfg.application_group_ids.values()) or None,
            tags=cfg.tags or None,
        )
        self.resources["workspace"] = self.workspace
        pulumi.log.info(
            f"Created resource: {cfg.name} (desktopvirtualization.Workspace) with "
            f"{len(cfg.application_group_ids)} application group association(s)"
        )

    def _define_role_assignments(self):
        assignments = self.config.role_assignments
        if not assignments:
            return

        subscription_id = None
        if needs_subscription_lookup(a.role_definition_id_or_name for a in assignments.values()):
            subscription_id = authorization.get_client_config().subscription_id

        for key, assignment in assignments.items():
            role_definition_id = resolve_role_definition_id(
                assignment.role_definition_id_or_name, subscription_id
            )
            self.role_definition_ids[key] = role_definition_id

            assignment_name = role_assignment_name(
                self.config.resource_group_name,
                self.config.name,
                key,
                assignment.principal_id,
                role_definition_id,
            )
            role_assignment = authorization.RoleAssignment(
                f"{self.config.name}-ra-{key}",
                role_assignment_name=assignment_name,
                scope=self.workspace.id,
                role_definition_id=role_definition_id,
                principal_id=assignment.principal_id,
                principal_type=assignment.principal_type,
                description=assignment.description,
            )
            self.role_assignments[key] = role_assignment
            self.resources[f"role_assignment_{key}"] = role_assignment
            pulumi.log.info(f"Created resource: role assignment '{key}' ({role_definition_id})")

    def _define_private_endpoints(self):
        cfg = self.config
        endpoints = resolve_private_endpoints(cfg.private_endpoint_config, cfg.create_global_endpoint)

        for role, endpoint_cfg in endpoints.items():
            endpoint_name = f"pe-{cfg.name}-{role}"
            endpoint = network.PrivateEndpoint(
                endpoint_name,
                private_endpoint_name=endpoint_name,
                resource_group_name=cfg.resource_group_name,
                location=cfg.location,
                subnet=network.SubnetArgs(id=endpoint_cfg.subnet_id),
                private_link_service_connections=[
                    network.PrivateLinkServiceConnectionArgs(
                        name=f"psc-{cfg.name}-{role}",
                        private_link_service_id=self.workspace.id,
                        group_ids=[role],
                    )
                ],
                tags=cfg.tags or None,
            )
            self.private_endpoints[role] = endpoint
            self.resources[f"private_endpoint_{role}"] = endpoint
            pulumi.log.info(f"Created resource: {endpoint_name} (network.PrivateEndpoint)")

            if not endpoint_cfg.private_dns_zone_ids:
                pulumi.log.warn(
                    f"No private DNS zones given for '{endpoint_name}'; DNS records must be managed elsewhere."
                )
                continue

            zone_group = network.PrivateDnsZoneGroup(
                f"{endpoint_name}-dns",
                private_dns_zone_group_name=endpoint_cfg.private_dns_zone_group_name,
                private_endpoint_name=endpoint.name,
                resource_group_name=cfg.resource_group_name,
                private_dns_zone_configs=[
                    network.PrivateDnsZoneConfigArgs(
                        name=zone_id.rsplit("/", 1)[-1].replace(".", "-"),
                        private_dns_zone_id=zone_id,
                    )
                    for zone_id in endpoint_cfg.private_dns_zone_ids
                ],
            )
            self.dns_zone_groups[role] = zone_group
            self.resources[f"private_dns_zone_group_{role}"] = zone_group

    def _define_diagnostic_setting(self):
        diagnostics = self.config.diagnostics
        if not diagnostics.enabled:
            return

        listing = monitor.list_diagnostic_settings_category_output(resource_uri=self.workspace.id)
        self.diagnostic_categories = listing.apply(
            lambda result: resolve_diagnostic_categories(
                diagnostics.level,
                CategoryCatalog.from_listing(result.value),
                diagnostics.custom_logs,
                diagnostics.metrics,
            )
        )

        setting_name = self.config.diagnostic_setting_name
        setting = monitor.DiagnosticSetting(
            setting_name,
            name=setting_name,
            resource_uri=self.workspace.id,
            logs=self.diagnostic_categories.apply(_log_settings),
            metrics=self.diagnostic_categories.apply(
                lambda resolved: [monitor.DiagnosticsMetricSettingsArgs(category=m, enabled=True) for m in resolved.metrics]
            ),
            workspace_id=diagnostics.log_analytics_workspace_id,
            log_analytics_destination_type=diagnostics.log_analytics_destination_type,
            storage_account_id=diagnostics.storage_account_id,
            event_hub_authorization_rule_id=diagnostics.event_hub_authorization_rule_id,
            event_hub_name=diagnostics.event_hub_name,
        )
        self.resources["diagnostic_setting"] = setting
        pulumi.log.info(f"Created resource: {setting_name} (monitor.DiagnosticSetting, level={diagnostics.level})")

    def _define_lock(self):
        if self.config.lock is None:
            return

        lock_name = self.config.lock_name
        lock = authorization.ManagementLockByScope(
            lock_name,
            lock_name=lock_name,
            level=self.config.lock.kind,
            scope=self.workspace.id,
            notes=f"Locked ({self.config.lock.kind}) by the AVD workspace program.",
        )
        self.resources["lock"] = lock
        pulumi.log.info(f"Created resource: {lock_name} (authorization.ManagementLockByScope)")


def role_assignment_name(
    resource_group_name: str, workspace_name: str, key: str, principal_id: str, role_definition_id: str
) -> str:
    # Same entry, same name; a new role or principal gets a new assignment
    seed = f"{resource_group_name}/{workspace_name}/{key}/{principal_id.lower()}/{role_definition_id.lower()}"
    return str(uuid.uuid5(uuid.NAMESPACE_URL, seed))


def first_fqdn(custom_dns_configs, zone_configs):
    """
    FQDN of a private endpoint. Azure leaves customDnsConfigs empty when a DNS
    zone group is attached, so the zone group's record sets are the fallback.
    """
    for dns_config in custom_dns_configs or []:
        if getattr(dns_config, "fqdn", None):
            return dns_config.fqdn
    for zone_config in zone_configs or []:
        for record_set in getattr(zone_config, "record_sets", None) or []:
            for fqdn in getattr(record_set, "fqdns", None) or []:
                return fqdn
    return None

def _log_settings(resolved: ResolvedDiagnostics):
    logs = [monitor.DiagnosticsLogSettingsArgs(category_group=g, enabled=True) for g in resolved.log_category_groups]
    logs += [monitor.DiagnosticsLogSettingsArgs(category=c, enabled=True) for c in resolved.logs]
    return logs
