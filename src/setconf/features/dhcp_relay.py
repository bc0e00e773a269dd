"""DHCP relay groups, v4 (``forwarding-options dhcp-relay group``) or v6
(``forwarding-options dhcp-relay dhcpv6 group``).

The version field only selects the path. Fields that exist for one
protocol version only carry a variant guard on it.
"""
from ..config_engine.schema import (
    BlockModel,
    Feature,
    FieldKind,
    FieldSpec,
    ValueType,
    VariantGuard,
)

V4_ONLY = VariantGuard("version", ("v4",))
V6_ONLY = VariantGuard("version", ("v6",))

RELAY_INTERFACE = BlockModel(
    [
        FieldSpec("name"),
        FieldSpec("access_profile"),
        FieldSpec("description"),
        FieldSpec("exclude", value_type=ValueType.BOOL),
        FieldSpec("trace", value_type=ValueType.BOOL),
    ],
    identity="name",
)

RELAY_OPTION_82 = BlockModel([
    FieldSpec("circuit_id", value_type=ValueType.BOOL),
    FieldSpec("remote_id", value_type=ValueType.BOOL),
    FieldSpec("server_id_override", value_type=ValueType.BOOL),
])

DHCP_RELAY_GROUP_MODEL = BlockModel(
    [
        FieldSpec("name"),
        FieldSpec("version", default="v4", emit=False),
        FieldSpec("access_profile"),
        FieldSpec("active_server_group"),
        FieldSpec(
            "active_server_group_allow_server_change",
            value_type=ValueType.BOOL,
            keyword="active-server-group allow-server-change",
            variant=V4_ONLY,
        ),
        FieldSpec("authentication_password", keyword="authentication password"),
        FieldSpec("client_response_ttl", value_type=ValueType.INT, variant=V4_ONLY),
        FieldSpec("description"),
        FieldSpec("dynamic_profile"),
        FieldSpec(
            "dynamic_profile_aggregate_clients",
            value_type=ValueType.BOOL,
            keyword="dynamic-profile aggregate-clients",
            requires=("dynamic_profile",),
        ),
        FieldSpec(
            "dynamic_profile_aggregate_clients_action",
            keyword="dynamic-profile aggregate-clients",
            requires=("dynamic_profile_aggregate_clients",),
        ),
        FieldSpec("forward_only", value_type=ValueType.BOOL),
        FieldSpec(
            "forward_only_routing_instance",
            keyword="forward-only routing-instance",
            requires=("forward_only",),
        ),
        FieldSpec("interface", kind=FieldKind.SET, block=RELAY_INTERFACE),
        FieldSpec("maximum_hop_count", value_type=ValueType.INT, variant=V4_ONLY),
        FieldSpec("minimum_wait_time", value_type=ValueType.INT, variant=V4_ONLY),
        FieldSpec("relay_agent_option_79", value_type=ValueType.BOOL, variant=V6_ONLY),
        FieldSpec(
            "relay_option_82", kind=FieldKind.BLOCK, block=RELAY_OPTION_82,
            variant=V4_ONLY,
        ),
        FieldSpec(
            "route_suppression_access",
            value_type=ValueType.BOOL,
            keyword="route-suppression access",
            variant=V6_ONLY,
        ),
        FieldSpec(
            "route_suppression_destination",
            value_type=ValueType.BOOL,
            keyword="route-suppression destination",
            variant=V4_ONLY,
        ),
        FieldSpec("service_profile", variant=V6_ONLY),
    ],
    identity="name",
)

DHCP_RELAY_GROUP = Feature(
    name="forwardingoptions_dhcprelay_group",
    path="forwarding-options dhcp-relay group {name}",
    variant_paths={"v6": "forwarding-options dhcp-relay dhcpv6 group {name}"},
    discriminant="version",
    model=DHCP_RELAY_GROUP_MODEL,
)
