"""Security zones (``security zones security-zone <name>``).

Interfaces bound to the zone are managed on their own, so an update only
replaces the options listed in ZONE_OPTIONS and leaves them in place.
"""
from ..config_engine.schema import BlockModel, Feature, FieldKind, FieldSpec, ValueType

ADDRESS = BlockModel(
    [
        FieldSpec("name"),
        FieldSpec("network", keyword="", required=True),
        FieldSpec("description"),
    ],
    identity="name",
)

ADDRESS_SET = BlockModel(
    [
        FieldSpec("name"),
        FieldSpec("address", kind=FieldKind.SET),
        FieldSpec("address_set", kind=FieldKind.SET),
        FieldSpec("description"),
    ],
    identity="name",
)

SECURITY_ZONE_MODEL = BlockModel(
    [
        FieldSpec("name"),
        FieldSpec(
            "address_book", kind=FieldKind.SET, block=ADDRESS,
            keyword="address-book address",
        ),
        FieldSpec(
            "address_book_set", kind=FieldKind.SET, block=ADDRESS_SET,
            keyword="address-book address-set",
        ),
        FieldSpec("advance_policy_based_routing_profile"),
        FieldSpec("application_tracking", value_type=ValueType.BOOL),
        FieldSpec("description"),
        FieldSpec(
            "inbound_protocols", kind=FieldKind.SET,
            keyword="host-inbound-traffic protocols",
        ),
        FieldSpec(
            "inbound_services", kind=FieldKind.SET,
            keyword="host-inbound-traffic system-services",
        ),
        FieldSpec("reverse_reroute", value_type=ValueType.BOOL, keyword="enable-reverse-reroute"),
        FieldSpec("screen"),
        FieldSpec("source_identity_log", value_type=ValueType.BOOL),
        FieldSpec("tcp_rst", value_type=ValueType.BOOL),
    ],
    identity="name",
)

ZONE_OPTIONS = [
    "advance-policy-based-routing-profile",
    "description",
    "application-tracking",
    "host-inbound-traffic",
    "enable-reverse-reroute",
    "screen",
    "source-identity-log",
    "tcp-rst",
    "address-book",
]

SECURITY_ZONE = Feature(
    name="security_zone",
    path="security zones security-zone {name}",
    model=SECURITY_ZONE_MODEL,
    update_delete_paths=ZONE_OPTIONS,
)
