"""
Shared test fixtures and configuration.
"""

from pathlib import Path

import pytest

SUBSCRIPTION = "00000000-0000-0000-0000-000000000000"
RG_SCOPE = f"/subscriptions/{SUBSCRIPTION}/resourceGroups/rg-test/providers"


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def examples_dir(project_root: Path) -> Path:
    """Return the directory holding the example configurations."""
    return project_root / "examples"


@pytest.fixture
def minimal_data() -> dict:
    """The smallest valid configuration."""
    return {
        "name": "avd-ws-test",
        "resource_group_name": "rg-test",
        "location": "westeurope",
    }


@pytest.fixture
def subnet_id() -> str:
    return f"{RG_SCOPE}/Microsoft.Network/virtualNetworks/vnet/subnets/snet-pe"


@pytest.fixture
def dns_zone_id() -> str:
    return f"{RG_SCOPE}/Microsoft.Network/privateDnsZones/privatelink.wvd.microsoft.com"


@pytest.fixture
def log_analytics_id() -> str:
    return f"{RG_SCOPE}/Microsoft.OperationalInsights/workspaces/law"
