"""Config Engine - statement codec and transactional apply.

The Config Engine manages one feature object at a time on a device whose
configuration is a list of flat ``set`` statements:
- Compile a structured options tree into ordered statements
- Decompile existing statements back into the same tree
- Apply them with lock, replace, commit, verify and rollback on error

Usage:
    from setconf.config_engine import ConfigEngine
    from setconf.features import LLDP_INTERFACE

    engine = ConfigEngine(session)
    result = await engine.create(LLDP_INTERFACE, {
        "name": "ge-0/0/3",
        "disable": True,
        "power_negotiation": {"enable": True},
    })
    print(result.tree.to_dict())
"""

from .engine import ConfigEngine
from .schema import (
    ApplyResult,
    Block,
    BlockModel,
    ChangeType,
    DiffResult,
    Feature,
    FieldKind,
    FieldSpec,
    Operation,
    ValidationResult,
    ValueType,
    VariantGuard,
)
from .statement import Statement, escape, unescape
from .parser import ConfigParser, StatementParser, build_tree, compute_checksum, decompile
from .validator import ConfigValidator
from .diff import DiffEngine, summarize_diff
from .generator import StatementCompiler
from .executor import ApplyPlan, ApplyState, ConfigExecutor
from .resolver import ConfigResolver, strip_framing
from .coordinator import ReadCoordinator

__all__ = [
    # Main engine
    "ConfigEngine",
    # Schema classes
    "ApplyResult",
    "Block",
    "BlockModel",
    "ChangeType",
    "DiffResult",
    "Feature",
    "FieldKind",
    "FieldSpec",
    "Operation",
    "ValidationResult",
    "ValueType",
    "VariantGuard",
    # Statement text
    "Statement",
    "escape",
    "unescape",
    # Parsers
    "ConfigParser",
    "StatementParser",
    "build_tree",
    "compute_checksum",
    "decompile",
    # Components (for advanced use)
    "ConfigValidator",
    "DiffEngine",
    "summarize_diff",
    "StatementCompiler",
    "ApplyPlan",
    "ApplyState",
    "ConfigExecutor",
    "ConfigResolver",
    "strip_framing",
    "ReadCoordinator",
]
