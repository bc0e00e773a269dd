"""Feature definitions shipped with setconf."""
from ..config_engine.schema import Feature
from .dhcp_relay import DHCP_RELAY_GROUP
from .lldp import LLDP_INTERFACE
from .security_zone import SECURITY_ZONE

__all__ = [
    "DHCP_RELAY_GROUP",
    "LLDP_INTERFACE",
    "SECURITY_ZONE",
    "FEATURES",
    "get_feature",
]

# Feature registry
FEATURES: dict[str, Feature] = {
    feature.name: feature
    for feature in (LLDP_INTERFACE, SECURITY_ZONE, DHCP_RELAY_GROUP)
}


def get_feature(name: str) -> Feature:
    """Look up a feature by name."""
    if name not in FEATURES:
        raise KeyError(f"Unknown feature: {name}")
    return FEATURES[name]
