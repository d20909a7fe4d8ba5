# config.py
"""
Configuration data structures for the AVD workspace program.

The YAML file is flat: every key maps to a field of WorkspaceConfig, with the
diagnostics_* keys collected into a DiagnosticsConfig. Each dataclass checks
its own fields on construction and raises ValueError naming the single rule
that failed.
"""

import re
from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Optional

import yaml

NAME_PATTERN = re.compile(r"^[a-zA-Z0-9][a-zA-Z0-9-]{1,61}[a-zA-Z0-9]$")
RESOURCE_GROUP_PATTERN = re.compile(r"^[-\w\.\(\)]{1,90}$")
GUID_PATTERN = re.compile(
    r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$"
)

_RG_SCOPE = r"^/subscriptions/[^/]+/resourceGroups/[^/]+/providers/"
APPLICATION_GROUP_ID_PATTERN = re.compile(
    _RG_SCOPE + r"Microsoft\.DesktopVirtualization/applicationGroups/[^/]+$", re.IGNORECASE
)
SUBNET_ID_PATTERN = re.compile(
    _RG_SCOPE + r"Microsoft\.Network/virtualNetworks/[^/]+/subnets/[^/]+$", re.IGNORECASE
)
PRIVATE_DNS_ZONE_ID_PATTERN = re.compile(
    _RG_SCOPE + r"Microsoft\.Network/privateDnsZones/[^/]+$", re.IGNORECASE
)
LOG_ANALYTICS_WORKSPACE_ID_PATTERN = re.compile(
    _RG_SCOPE + r"Microsoft\.OperationalInsights/workspaces/[^/]+$", re.IGNORECASE
)
STORAGE_ACCOUNT_ID_PATTERN = re.compile(
    _RG_SCOPE + r"Microsoft\.Storage/storageAccounts/[^/]+$", re.IGNORECASE
)
EVENT_HUB_RULE_ID_PATTERN = re.compile(
    _RG_SCOPE + r"Microsoft\.EventHub/namespaces/[^/]+/authorizationRules/[^/]+$", re.IGNORECASE
)

PRINCIPAL_TYPES = ("User", "Group", "ServicePrincipal", "ForeignGroup", "Device")
DIAGNOSTICS_LEVELS = ("none", "all", "audit", "custom")
LOG_ANALYTICS_DESTINATION_TYPES = ("Dedicated", "AzureDiagnostics")
LOCK_KINDS = ("CanNotDelete", "ReadOnly")

REQUIRED_KEYS = ["name", "resource_group_name", "location"]


class PreconditionError(ValueError):
    """Raised when individually valid settings cannot be combined."""


def _build(cls, value, label: str):
    if not isinstance(value, dict):
        raise ValueError(f"{label} must be a mapping.")
    try:
        return cls(**value)
    except TypeError as e:
        raise ValueError(f"Invalid {label}: {e}") from e


def _require_match(pattern, value: str, message: str) -> None:
    if not isinstance(value, str) or not pattern.match(value):
        raise ValueError(message)


@dataclass
class RoleAssignmentConfig:
    role_definition_id_or_name: str
    principal_id: str
    principal_type: Optional[str] = None
    description: Optional[str] = None

    def __post_init__(self):
        if not self.role_definition_id_or_name:
            raise ValueError("role_definition_id_or_name must not be empty.")
        _require_match(
            GUID_PATTERN,
            self.principal_id,
            f"principal_id '{self.principal_id}' must be a GUID.",
        )
        if self.principal_type is not None and self.principal_type not in PRINCIPAL_TYPES:
            raise ValueError(
                f"principal_type must be one of {', '.join(PRINCIPAL_TYPES)}; got '{self.principal_type}'."
            )


@dataclass
class PrivateEndpointConfig:
    subnet_id: str
    private_dns_zone_ids: List[str] = field(default_factory=list)
    private_dns_zone_group_name: str = "default"

    def __post_init__(self):
        _require_match(
            SUBNET_ID_PATTERN,
            self.subnet_id,
            f"private_endpoint_config.subnet_id '{self.subnet_id}' is not a subnet resource ID.",
        )
        for zone_id in self.private_dns_zone_ids:
            _require_match(
                PRIVATE_DNS_ZONE_ID_PATTERN,
                zone_id,
                f"private_endpoint_config.private_dns_zone_ids entry '{zone_id}' is not a private DNS zone resource ID.",
            )
        if not self.private_dns_zone_group_name:
            raise ValueError("private_endpoint_config.private_dns_zone_group_name must not be empty.")


@dataclass
class DiagnosticsConfig:
    level: str = "none"
    custom_logs: List[str] = field(default_factory=list)
    metrics: List[str] = field(default_factory=lambda: ["AllMetrics"])
    log_analytics_workspace_id: Optional[str] = None
    log_analytics_destination_type: Optional[str] = None
    storage_account_id: Optional[str] = None
    event_hub_authorization_rule_id: Optional[str] = None
    event_hub_name: Optional[str] = None
    setting_name: Optional[str] = None

    def __post_init__(self):
        if self.level not in DIAGNOSTICS_LEVELS:
            raise ValueError(
                f"diagnostics_level must be one of {', '.join(DIAGNOSTICS_LEVELS)}; got '{self.level}'."
            )
        if self.level == "custom" and not self.custom_logs:
            raise ValueError("diagnostics_custom_logs must list at least one log category when diagnostics_level is 'custom'.")

        if self.log_analytics_workspace_id is not None:
            _require_match(
                LOG_ANALYTICS_WORKSPACE_ID_PATTERN,
                self.log_analytics_workspace_id,
                "diagnostics_log_analytics_workspace_id is not a Log Analytics workspace resource ID.",
            )
        if self.storage_account_id is not None:
            _require_match(
                STORAGE_ACCOUNT_ID_PATTERN,
                self.storage_account_id,
                "diagnostics_storage_account_id is not a storage account resource ID.",
            )
        if self.event_hub_authorization_rule_id is not None:
            _require_match(
                EVENT_HUB_RULE_ID_PATTERN,
                self.event_hub_authorization_rule_id,
                "diagnostics_event_hub_authorization_rule_id is not an Event Hub namespace authorization rule ID.",
            )
        if self.event_hub_name is not None and self.event_hub_authorization_rule_id is None:
            raise ValueError("diagnostics_event_hub_name requires diagnostics_event_hub_authorization_rule_id.")
        if (
            self.log_analytics_destination_type is not None
            and self.log_analytics_destination_type not in LOG_ANALYTICS_DESTINATION_TYPES
        ):
            raise ValueError(
                "diagnostics_log_analytics_destination_type must be one of "
                f"{', '.join(LOG_ANALYTICS_DESTINATION_TYPES)}."
            )

        if self.level != "none" and len(self.destinations) != 1:
            raise ValueError(
                "Exactly one diagnostic destination (Log Analytics workspace, storage account or "
                f"Event Hub authorization rule) must be set when diagnostics_level is '{self.level}'; "
                f"got {len(self.destinations)}."
            )

    @property
    def enabled(self) -> bool:
        return self.level != "none"

    @property
    def destinations(self) -> List[str]:
        candidates = [
            self.log_analytics_workspace_id,
            self.storage_account_id,
            self.event_hub_authorization_rule_id,
        ]
        return [c for c in candidates if c is not None]


@dataclass
class LockConfig:
    kind: str
    name: Optional[str] = None

    def __post_init__(self):
        if self.kind not in LOCK_KINDS:
            raise ValueError(f"lock.kind must be one of {', '.join(LOCK_KINDS)}; got '{self.kind}'.")


@dataclass
class WorkspaceConfig:
    name: str
    resource_group_name: str
    location: str
    friendly_name: Optional[str] = None
    description: Optional[str] = None
    public_network_access_enabled: bool = True
    tags: Dict[str, str] = field(default_factory=dict)
    application_group_ids: Dict[str, str] = field(default_factory=dict)
    role_assignments: Dict[str, RoleAssignmentConfig] = field(default_factory=dict)
    private_endpoint_config: Optional[PrivateEndpointConfig] = None
    create_global_endpoint: bool = False
    diagnostics: DiagnosticsConfig = field(default_factory=DiagnosticsConfig)
    lock: Optional[LockConfig] = None

    def __post_init__(self):
        for key in ("public_network_access_enabled", "create_global_endpoint"):
            if not isinstance(getattr(self, key), bool):
                raise ValueError(f"{key} must be true or false; got {getattr(self, key)!r}.")
        for key in ("tags", "application_group_ids", "role_assignments"):
            if not isinstance(getattr(self, key), dict):
                raise ValueError(f"{key} must be a mapping; got {type(getattr(self, key)).__name__}.")
        _require_match(
            NAME_PATTERN,
            self.name,
            "name must be 3-63 characters of letters, digits and hyphens, "
            "and must start and end with a letter or digit.",
        )
        _require_match(
            RESOURCE_GROUP_PATTERN,
            self.resource_group_name,
            "resource_group_name must be 1-90 characters of letters, digits, '-', '_', '.', '(' or ')'.",
        )
        if self.resource_group_name.endswith("."):
            raise ValueError("resource_group_name must not end with a period.")
        if not self.location:
            raise ValueError("location must not be empty.")
        if self.friendly_name is not None and len(self.friendly_name) > 64:
            raise ValueError("friendly_name must be at most 64 characters.")
        if self.description is not None and len(self.description) > 512:
            raise ValueError("description must be at most 512 characters.")
        for key, group_id in self.application_group_ids.items():
            _require_match(
                APPLICATION_GROUP_ID_PATTERN,
                group_id,
                f"application_group_ids['{key}'] is not a virtual desktop application group resource ID.",
            )

    def check_preconditions(self) -> None:
        """Reject combinations of settings that are valid one by one."""
        if not self.public_network_access_enabled and self.private_endpoint_config is None:
            raise PreconditionError(
                "private_endpoint_config must be set when public_network_access_enabled is false; "
                "the workspace would otherwise be unreachable."
            )

    @property
    def diagnostic_setting_name(self) -> str:
        return self.diagnostics.setting_name or f"diag-{self.name}"

    @property
    def lock_name(self) -> Optional[str]:
        if self.lock is None:
            return None
        return self.lock.name or f"lock-{self.name}"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WorkspaceConfig":
        data = dict(data)
        diagnostics_keys = {f"diagnostics_{f.name}" for f in fields(DiagnosticsConfig)}
        diagnostics_args = {
            key[len("diagnostics_"):]: data.pop(key) for key in list(data) if key in diagnostics_keys
        }

        known = {f.name for f in fields(cls)} - {"diagnostics"}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown configuration key(s): {', '.join(unknown)}")

        role_assignments = data.pop("role_assignments", None) or {}
        if not isinstance(role_assignments, dict):
            raise ValueError(f"role_assignments must be a mapping; got {type(role_assignments).__name__}.")
        data["role_assignments"] = {
            key: _build(RoleAssignmentConfig, value, f"role_assignments['{key}']")
            for key, value in role_assignments.items()
        }
        if data.get("private_endpoint_config") is not None:
            data["private_endpoint_config"] = _build(
                PrivateEndpointConfig, data["private_endpoint_config"], "private_endpoint_config"
            )
        if data.get("lock") is not None:
            data["lock"] = _build(LockConfig, data["lock"], "lock")
        for key in ("tags", "application_group_ids"):
            if data.get(key) is None:
                data.pop(key, None)

        return cls(diagnostics=_build(DiagnosticsConfig, diagnostics_args, "diagnostics settings"), **data)


def load_config(file_path: str) -> WorkspaceConfig:
    """Load and validate YAML configuration from the given file path."""
    with open(file_path, "r") as file:
        config_data = yaml.safe_load(file) or {}

    # Ensure required keys exist
    for key in REQUIRED_KEYS:
        if key not in config_data:
            raise ValueError(f"Missing required configuration key: {key}")

    return WorkspaceConfig.from_dict(config_data)
