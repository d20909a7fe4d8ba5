"""
Tests for configuration loading, field validation and preconditions.
"""

from pathlib import Path

import pytest

from config import (
    DiagnosticsConfig,
    PreconditionError,
    PrivateEndpointConfig,
    RoleAssignmentConfig,
    WorkspaceConfig,
    load_config,
)

GUID = "11111111-2222-3333-4444-555555555555"


# ═══════════════════════════════════════════════════════════════════
#  Workspace name
# ═══════════════════════════════════════════════════════════════════


class TestWorkspaceName:
    """name must be 3-63 chars, alphanumeric at both ends."""

    @pytest.mark.parametrize("name", ["abc", "avd-ws-01", "A1b", "a" * 63, "x-" * 30 + "yz"])
    def test_valid_names(self, minimal_data, name):
        cfg = WorkspaceConfig.from_dict({**minimal_data, "name": name})
        assert cfg.name == name

    @pytest.mark.parametrize("name", ["a", "ab", "-bad-", "bad-", "-bad", "a" * 64, "has_underscore", "has space"])
    def test_invalid_names(self, minimal_data, name):
        with pytest.raises(ValueError, match="name must be 3-63 characters"):
            WorkspaceConfig.from_dict({**minimal_data, "name": name})


class TestWorkspaceFields:

    def test_defaults(self, minimal_data):
        cfg = WorkspaceConfig.from_dict(minimal_data)
        assert cfg.public_network_access_enabled is True
        assert cfg.role_assignments == {}
        assert cfg.private_endpoint_config is None
        assert cfg.create_global_endpoint is False
        assert cfg.diagnostics.level == "none"
        assert cfg.diagnostics.enabled is False
        assert cfg.diagnostics.metrics == ["AllMetrics"]
        assert cfg.lock is None
        assert cfg.diagnostic_setting_name == "diag-avd-ws-test"

    def test_resource_group_trailing_period(self, minimal_data):
        with pytest.raises(ValueError, match="must not end with a period"):
            WorkspaceConfig.from_dict({**minimal_data, "resource_group_name": "rg-test."})

    def test_friendly_name_too_long(self, minimal_data):
        with pytest.raises(ValueError, match="friendly_name"):
            WorkspaceConfig.from_dict({**minimal_data, "friendly_name": "f" * 65})

    def test_application_group_id_pattern(self, minimal_data):
        with pytest.raises(ValueError, match=r"application_group_ids\['desktop'\]"):
            WorkspaceConfig.from_dict({**minimal_data, "application_group_ids": {"desktop": "not-an-id"}})

    def test_unknown_key_rejected(self, minimal_data):
        with pytest.raises(ValueError, match="Unknown configuration key"):
            WorkspaceConfig.from_dict({**minimal_data, "private_endpoints": {}})

    def test_lock_default_name(self, minimal_data):
        cfg = WorkspaceConfig.from_dict({**minimal_data, "lock": {"kind": "ReadOnly"}})
        assert cfg.lock_name == "lock-avd-ws-test"

    def test_lock_kind_validated(self, minimal_data):
        with pytest.raises(ValueError, match="lock.kind"):
            WorkspaceConfig.from_dict({**minimal_data, "lock": {"kind": "Delete"}})

    @pytest.mark.parametrize("key", ["public_network_access_enabled", "create_global_endpoint"])
    def test_quoted_boolean_rejected(self, minimal_data, key):
        with pytest.raises(ValueError, match=f"{key} must be true or false"):
            WorkspaceConfig.from_dict({**minimal_data, key: "false"})

    @pytest.mark.parametrize("key", ["tags", "application_group_ids", "role_assignments"])
    def test_list_instead_of_mapping_rejected(self, minimal_data, key):
        with pytest.raises(ValueError, match=f"{key} must be a mapping"):
            WorkspaceConfig.from_dict({**minimal_data, key: ["a", "b"]})


# ═══════════════════════════════════════════════════════════════════
#  Role assignments
# ═══════════════════════════════════════════════════════════════════


class TestRoleAssignmentConfig:

    def test_guid_principal_accepted(self):
        ra = RoleAssignmentConfig(role_definition_id_or_name="Reader", principal_id=GUID)
        assert ra.principal_id == GUID

    def test_non_guid_principal_rejected(self, minimal_data):
        data = {
            **minimal_data,
            "role_assignments": {"bad": {"role_definition_id_or_name": "Reader", "principal_id": "not-a-guid"}},
        }
        with pytest.raises(ValueError, match="must be a GUID"):
            WorkspaceConfig.from_dict(data)

    def test_principal_type_validated(self):
        with pytest.raises(ValueError, match="principal_type"):
            RoleAssignmentConfig(role_definition_id_or_name="Reader", principal_id=GUID, principal_type="Robot")

    def test_unexpected_field_is_value_error(self, minimal_data):
        data = {
            **minimal_data,
            "role_assignments": {"x": {"role_definition_id_or_name": "Reader", "principal_id": GUID, "scope": "/"}},
        }
        with pytest.raises(ValueError, match=r"role_assignments\['x'\]"):
            WorkspaceConfig.from_dict(data)


# ═══════════════════════════════════════════════════════════════════
#  Private endpoints and public access
# ═══════════════════════════════════════════════════════════════════


class TestPrivateEndpointConfig:

    def test_subnet_pattern(self):
        with pytest.raises(ValueError, match="subnet resource ID"):
            PrivateEndpointConfig(subnet_id="/subscriptions/x/resourceGroups/y")

    def test_dns_zone_pattern(self, subnet_id):
        with pytest.raises(ValueError, match="private DNS zone resource ID"):
            PrivateEndpointConfig(subnet_id=subnet_id, private_dns_zone_ids=["privatelink.wvd.microsoft.com"])

    def test_defaults(self, subnet_id):
        pe = PrivateEndpointConfig(subnet_id=subnet_id)
        assert pe.private_dns_zone_ids == []
        assert pe.private_dns_zone_group_name == "default"


class TestPreconditions:

    def test_private_workspace_without_endpoint_fails(self, minimal_data):
        cfg = WorkspaceConfig.from_dict({**minimal_data, "public_network_access_enabled": False})
        with pytest.raises(PreconditionError, match="private_endpoint_config must be set"):
            cfg.check_preconditions()

    def test_private_workspace_with_endpoint_passes(self, minimal_data, subnet_id):
        cfg = WorkspaceConfig.from_dict({
            **minimal_data,
            "public_network_access_enabled": False,
            "private_endpoint_config": {"subnet_id": subnet_id},
        })
        cfg.check_preconditions()

    def test_public_workspace_needs_no_endpoint(self, minimal_data):
        WorkspaceConfig.from_dict(minimal_data).check_preconditions()


# ═══════════════════════════════════════════════════════════════════
#  Diagnostics
# ═══════════════════════════════════════════════════════════════════


class TestDiagnosticsConfig:

    def test_level_validated(self):
        with pytest.raises(ValueError, match="diagnostics_level must be one of"):
            DiagnosticsConfig(level="verbose")

    def test_enabled_requires_destination(self):
        with pytest.raises(ValueError, match="Exactly one diagnostic destination"):
            DiagnosticsConfig(level="all")

    def test_two_destinations_rejected(self, log_analytics_id):
        storage_id = log_analytics_id.replace(
            "Microsoft.OperationalInsights/workspaces/law", "Microsoft.Storage/storageAccounts/stlogs"
        )
        with pytest.raises(ValueError, match="got 2"):
            DiagnosticsConfig(level="audit", log_analytics_workspace_id=log_analytics_id, storage_account_id=storage_id)

    def test_custom_requires_logs(self, log_analytics_id):
        with pytest.raises(ValueError, match="diagnostics_custom_logs"):
            DiagnosticsConfig(level="custom", log_analytics_workspace_id=log_analytics_id)

    def test_event_hub_name_requires_rule(self):
        with pytest.raises(ValueError, match="requires diagnostics_event_hub_authorization_rule_id"):
            DiagnosticsConfig(event_hub_name="hub")

    def test_flat_keys_map_to_diagnostics(self, minimal_data, log_analytics_id):
        cfg = WorkspaceConfig.from_dict({
            **minimal_data,
            "diagnostics_level": "custom",
            "diagnostics_custom_logs": ["Feed", "Error"],
            "diagnostics_log_analytics_workspace_id": log_analytics_id,
            "diagnostics_setting_name": "to-law",
        })
        assert cfg.diagnostics.level == "custom"
        assert cfg.diagnostics.custom_logs == ["Feed", "Error"]
        assert cfg.diagnostics.destinations == [log_analytics_id]
        assert cfg.diagnostic_setting_name == "to-law"

    def test_none_needs_no_destination(self):
        assert DiagnosticsConfig().destinations == []


# ═══════════════════════════════════════════════════════════════════
#  YAML loading
# ═══════════════════════════════════════════════════════════════════


class TestLoadConfig:

    def test_missing_required_key(self, tmp_path: Path):
        path = tmp_path / "config.yaml"
        path.write_text("name: avd-ws\nlocation: westeurope\n")
        with pytest.raises(ValueError, match="Missing required configuration key: resource_group_name"):
            load_config(str(path))

    def test_basic_example(self, examples_dir: Path):
        cfg = load_config(str(examples_dir / "basic" / "config.yaml"))
        assert cfg.name == "avd-ws-basic"
        assert cfg.role_assignments == {}
        assert cfg.private_endpoint_config is None
        assert cfg.diagnostics.enabled is False

    def test_complete_example(self, examples_dir: Path):
        cfg = load_config(str(examples_dir / "complete" / "config.yaml"))
        assert cfg.public_network_access_enabled is False
        assert cfg.create_global_endpoint is True
        assert set(cfg.role_assignments) == {"readers", "operators"}
        assert len(cfg.application_group_ids) == 2
        assert cfg.diagnostics.level == "all"
        assert cfg.lock.kind == "CanNotDelete"
        cfg.check_preconditions()
