# resolution.py
"""
Turns the user-facing settings into the concrete shapes the builder declares:
private endpoints per AVD sub-resource, diagnostic categories, and role
definition IDs.
"""

import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

import pulumi

from config import PrivateEndpointConfig

FEED_SUBRESOURCE = "feed"
GLOBAL_SUBRESOURCE = "global"

ROLE_DEFINITION_ID_PATTERN = re.compile(
    r"^(/subscriptions/[^/]+|/providers/Microsoft\.Management/managementGroups/[^/]+)?"
    r"/providers/Microsoft\.Authorization/roleDefinitions/[0-9a-fA-F-]{36}$",
    re.IGNORECASE,
)

# Built-in roles that make sense at workspace scope.
BUILTIN_ROLE_DEFINITIONS = {
    "owner": "8e3af657-a8ff-443c-a75c-2fe8c4bcb635",
    "contributor": "b24988ac-6180-42a0-ab88-20f7382dd24c",
    "reader": "acdd72a7-3385-48ef-bd42-f606fba81ae7",
    "user access administrator": "18d7d88d-d35e-4fb5-a5c3-7773c20a72d9",
    "desktop virtualization contributor": "082f0a83-3be5-4ba1-904c-961cca79b387",
    "desktop virtualization reader": "49a72310-ab8d-41df-bbb0-79b649203868",
    "desktop virtualization user": "1d18fff3-a72a-46b5-b4a9-0b38a3cd7e63",
    "desktop virtualization workspace contributor": "21efdde3-836f-432b-bf3d-3e8e734d4b2b",
    "desktop virtualization workspace reader": "0fa44ee9-7a7d-466b-9bb2-2bf446b1204d",
}


def resolve_private_endpoints(
    config: Optional[PrivateEndpointConfig], create_global_endpoint: bool
) -> Dict[str, PrivateEndpointConfig]:
    """
    Expand one shared endpoint config into the endpoints to create, keyed by
    sub-resource. Every workspace gets a feed endpoint; the global endpoint
    exists once per AVD deployment, so it is opt-in.
    """
    if config is None:
        return {}

    endpoints = {FEED_SUBRESOURCE: config}
    if create_global_endpoint:
        endpoints[GLOBAL_SUBRESOURCE] = config
    return endpoints


@dataclass
class CategoryCatalog:
    """Diagnostic categories a resource supports."""

    log_category_groups: List[str] = field(default_factory=list)
    logs: List[str] = field(default_factory=list)
    metrics: List[str] = field(default_factory=list)

    @classmethod
    def from_listing(cls, categories: Iterable) -> "CategoryCatalog":
        catalog = cls()
        for category in categories or []:
            name = getattr(category, "name", None)
            if not name:
                continue
            if getattr(category, "category_type", None) == "Metrics":
                catalog.metrics.append(name)
                continue
            catalog.logs.append(name)
            for group in getattr(category, "category_groups", None) or []:
                if group not in catalog.log_category_groups:
                    catalog.log_category_groups.append(group)
        return catalog


@dataclass
class ResolvedDiagnostics:
    log_category_groups: List[str] = field(default_factory=list)
    logs: List[str] = field(default_factory=list)
    metrics: List[str] = field(default_factory=list)

    @property
    def empty(self) -> bool:
        return not (self.log_category_groups or self.logs or self.metrics)


def resolve_diagnostic_categories(
    level: str,
    catalog: CategoryCatalog,
    custom_logs: Iterable[str] = (),
    metrics: Iterable[str] = ("AllMetrics",),
) -> ResolvedDiagnostics:
    """
    Map a diagnostics level onto the categories the catalog actually offers.

    Missing groups fall back or resolve to nothing; this never raises.
    """
    resolved = ResolvedDiagnostics()
    if level == "none":
        return resolved

    if level == "all":
        if "allLogs" in catalog.log_category_groups:
            resolved.log_category_groups = ["allLogs"]
        else:
            resolved.logs = list(catalog.logs)
    elif level == "audit":
        if "audit" in catalog.log_category_groups:
            resolved.log_category_groups = ["audit"]
        else:
            pulumi.log.debug("No 'audit' category group available; no logs will be routed.")
    elif level == "custom":
        resolved.logs = list(custom_logs)

    if catalog.metrics:
        resolved.metrics = list(metrics or [])
    else:
        pulumi.log.debug("Resource exposes no metric categories; skipping metrics.")

    return resolved


def is_role_definition_id(role: str) -> bool:
    return bool(ROLE_DEFINITION_ID_PATTERN.match(role))


def resolve_role_definition_id(role: str, subscription_id: Optional[str] = None) -> str:
    """Return a full role definition ID for either an ID or a built-in role name."""
    if is_role_definition_id(role):
        return role

    role_guid = BUILTIN_ROLE_DEFINITIONS.get(role.strip().lower())
    if role_guid is None:
        raise ValueError(
            f"Unknown built-in role '{role}'. Use a role definition resource ID or one of: "
            f"{', '.join(sorted(BUILTIN_ROLE_DEFINITIONS))}."
        )
    if not subscription_id:
        raise ValueError(f"A subscription ID is required to resolve built-in role '{role}'.")
    return f"/subscriptions/{subscription_id}/providers/Microsoft.Authorization/roleDefinitions/{role_guid}"


def needs_subscription_lookup(roles: Iterable[str]) -> bool:
    return any(not is_role_definition_id(role) for role in roles)
