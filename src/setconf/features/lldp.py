"""LLDP per-interface settings (``protocols lldp interface <name>``)."""
from ..config_engine.schema import BlockModel, Feature, FieldKind, FieldSpec, ValueType

POWER_NEGOTIATION = BlockModel([
    FieldSpec("disable", value_type=ValueType.BOOL, exclusive_group="power_negotiation"),
    FieldSpec("enable", value_type=ValueType.BOOL, exclusive_group="power_negotiation"),
])

LLDP_INTERFACE_MODEL = BlockModel(
    [
        FieldSpec("name"),
        FieldSpec("disable", value_type=ValueType.BOOL, exclusive_group="state"),
        FieldSpec("enable", value_type=ValueType.BOOL, exclusive_group="state"),
        FieldSpec("power_negotiation", kind=FieldKind.BLOCK, block=POWER_NEGOTIATION),
        FieldSpec(
            "trap_notification_disable",
            value_type=ValueType.BOOL,
            keyword="trap-notification disable",
            exclusive_group="trap_notification",
        ),
        FieldSpec(
            "trap_notification_enable",
            value_type=ValueType.BOOL,
            keyword="trap-notification enable",
            exclusive_group="trap_notification",
        ),
    ],
    identity="name",
)

LLDP_INTERFACE = Feature(
    name="lldp_interface",
    path="protocols lldp interface {name}",
    model=LLDP_INTERFACE_MODEL,
)
