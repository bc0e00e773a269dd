"""Schema definitions for the Config Engine.

Defines the field model that describes one feature's configuration, the
options tree (Block) bound to it, and the result dataclasses shared by the
compiler, the executor and the engine facade.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Optional

from ..errors import InternalError
from .statement import quote_token


class FieldKind(str, Enum):
    """Shape of a field value."""
    SCALAR = "scalar"
    LIST = "list"     # ordered, insertion order preserved
    SET = "set"       # unordered, emitted sorted
    BLOCK = "block"   # nested block, None when absent


class ValueType(str, Enum):
    """Type of scalar values (or of list/set items)."""
    STRING = "string"
    INT = "int"
    BOOL = "bool"     # presence flag, emitted as a bare keyword


class Operation(str, Enum):
    """Apply operation kind."""
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


@dataclass(frozen=True)
class VariantGuard:
    """Restrict a field to some values of a discriminant.

    The discriminant is looked up on the sibling field of the same name
    first, then in the compile/decompile context.
    """
    discriminant: str
    allowed: tuple[str, ...]

    def admits(self, value: Any) -> bool:
        # An unknown discriminant does not reject anything
        if value is None or value == "":
            return True
        return str(value) in self.allowed

    def resolve(self, block: "Block", context: Optional[dict[str, Any]] = None) -> Any:
        """Current discriminant value for a field of block."""
        if self.discriminant in block.model:
            value = block[self.discriminant]
            if value not in (None, ""):
                return value
        return (context or {}).get(self.discriminant)


@dataclass
class FieldSpec:
    """Description of one configurable field."""
    name: str
    kind: FieldKind = FieldKind.SCALAR
    value_type: ValueType = ValueType.STRING
    keyword: Optional[str] = None
    default: Any = None
    block: Optional["BlockModel"] = None
    required: bool = False
    exclusive_group: Optional[str] = None
    requires: tuple[str, ...] = ()
    variant: Optional[VariantGuard] = None
    emit: bool = True  # False: selects the path only, never a statement

    def __post_init__(self):
        if self.keyword is None:
            self.keyword = self.name.replace("_", "-")
        if self.kind == FieldKind.BLOCK and self.block is None:
            raise InternalError(f"block field {self.name} has no block model")
        if (self.kind == FieldKind.SCALAR and self.value_type == ValueType.BOOL
                and self.default is None):
            self.default = False
        self.requires = tuple(self.requires)

    @property
    def keyword_tokens(self) -> tuple[str, ...]:
        return tuple(self.keyword.split())

    @property
    def is_block_collection(self) -> bool:
        """True for identity-keyed repeated blocks."""
        return self.kind in (FieldKind.LIST, FieldKind.SET) and self.block is not None

    def empty_value(self) -> Any:
        """Value a freshly materialized block holds for this field."""
        if self.kind == FieldKind.SCALAR:
            return self.default
        if self.kind == FieldKind.LIST or self.is_block_collection:
            return []
        if self.kind == FieldKind.SET:
            return set()
        if self.kind == FieldKind.BLOCK:
            return None
        raise InternalError(f"unknown field kind {self.kind!r} for {self.name}")

    def is_unset(self, value: Any) -> bool:
        """True when value equals the sentinel for this field."""
        if self.kind == FieldKind.SCALAR:
            if value is None:
                return True
            if self.value_type != ValueType.BOOL and isinstance(value, bool):
                return False
            return value == self.default and type(value) is type(self.default)
        if self.kind == FieldKind.BLOCK:
            return value is None
        return not value

    def render_value(self, value: Any) -> str:
        """Render a scalar value (or list/set item) as one token."""
        if self.value_type == ValueType.BOOL:
            return "true" if value else "false"
        return str(value)


class BlockModel:
    """Ordered field declarations for one block.

    If identity is given, it names the field whose value keys repeated
    instances of the block; that field is rendered as a path token by the
    parent and never emitted as its own statement.
    """

    def __init__(self, fields: Iterable[FieldSpec], identity: Optional[str] = None):
        self.fields: list[FieldSpec] = list(fields)
        self.identity = identity
        self._by_name: dict[str, FieldSpec] = {}
        for spec in self.fields:
            if spec.name in self._by_name:
                raise InternalError(f"duplicate field name {spec.name}")
            self._by_name[spec.name] = spec

        if identity is not None and identity not in self._by_name:
            raise InternalError(f"identity field {identity} is not declared")

        # First keyword token -> fields, longest keyword first
        self._by_first_token: dict[str, list[FieldSpec]] = {}
        # Keywordless fields: the value follows the parent path directly
        self._positional: list[FieldSpec] = []
        for spec in self.statement_fields():
            if not spec.keyword_tokens:
                if spec.kind != FieldKind.SCALAR or spec.value_type == ValueType.BOOL:
                    raise InternalError(f"keywordless field {spec.name} must be a valued scalar")
                self._positional.append(spec)
                continue
            self._by_first_token.setdefault(spec.keyword_tokens[0], []).append(spec)
        for specs in self._by_first_token.values():
            specs.sort(key=lambda s: len(s.keyword_tokens), reverse=True)

    def __contains__(self, name: str) -> bool:
        return name in self._by_name

    def field(self, name: str) -> FieldSpec:
        try:
            return self._by_name[name]
        except KeyError:
            raise InternalError(f"unknown field {name}") from None

    @property
    def identity_field(self) -> Optional[FieldSpec]:
        return self._by_name[self.identity] if self.identity else None

    def statement_fields(self) -> list[FieldSpec]:
        """Fields that are emitted as statements, in declaration order."""
        return [
            spec for spec in self.fields
            if spec.emit and spec.name != self.identity
        ]

    def candidates(self, tokens: tuple[str, ...]) -> list[FieldSpec]:
        """Fields whose keyword prefixes tokens, longest match first.

        Keywordless fields come last, they match any value.
        """
        if not tokens:
            return []
        return [
            spec for spec in self._by_first_token.get(tokens[0], [])
            if tokens[:len(spec.keyword_tokens)] == spec.keyword_tokens
        ] + self._positional

    def new_block(self, **values: Any) -> "Block":
        return Block(self, values)


@dataclass(eq=False)
class Block:
    """One node of an options tree.

    Every declared field is materialized: missing values are filled with
    the field's empty value so that a default block compares equal to a
    freshly decompiled one.
    """
    model: BlockModel
    values: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        for name in self.values:
            if name not in self.model:
                raise InternalError(f"unknown field {name}")
        for spec in self.model.fields:
            if spec.name not in self.values:
                self.values[spec.name] = spec.empty_value()

    def __getitem__(self, name: str) -> Any:
        self.model.field(name)
        return self.values[name]

    def __setitem__(self, name: str, value: Any) -> None:
        self.model.field(name)
        self.values[name] = value

    def get(self, name: str, default: Any = None) -> Any:
        return self.values.get(name, default)

    def copy(self) -> "Block":
        """Shallow copy: field values are shared, the value mapping is not."""
        return Block(self.model, dict(self.values))

    @property
    def identity(self) -> Any:
        if self.model.identity is None:
            return None
        return self.values[self.model.identity]

    def is_set(self, name: str) -> bool:
        return not self.model.field(name).is_unset(self.values[name])

    @property
    def is_absent(self) -> bool:
        """True for a tree that describes no object (empty identity)."""
        if self.model.identity is not None:
            return self.identity in (None, "")
        return not any(self.is_set(spec.name) for spec in self.model.fields)

    def _normalized(self) -> dict[str, Any]:
        normalized = {}
        for spec in self.model.fields:
            value = self.values[spec.name]
            if spec.kind == FieldKind.SET and spec.block is not None:
                value = sorted(value, key=lambda b: str(b.identity))
            elif spec.kind == FieldKind.SET:
                value = set(value)
            normalized[spec.name] = value
        return normalized

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Block):
            return NotImplemented
        return self.model is other.model and self._normalized() == other._normalized()

    def to_dict(self) -> dict:
        """Convert set fields to plain data (inverse of build_tree)."""
        result: dict[str, Any] = {}
        for spec in self.model.fields:
            value = self.values[spec.name]
            if spec.is_unset(value):
                continue
            if spec.kind == FieldKind.BLOCK:
                result[spec.name] = value.to_dict()
            elif spec.is_block_collection:
                result[spec.name] = [item.to_dict() for item in value]
            elif spec.kind == FieldKind.SET:
                result[spec.name] = sorted(value, key=spec.render_value)
            elif spec.kind == FieldKind.LIST:
                result[spec.name] = list(value)
            else:
                result[spec.name] = value
        return result


@dataclass
class Feature:
    """Binds a root block model to its place in the device configuration.

    path is a template such as "protocols lldp interface {name}". When a
    discriminant is declared, variant_paths maps its values to alternative
    templates (e.g. a v6 group under dhcpv6).
    """
    name: str
    path: str
    model: BlockModel
    variant_paths: dict[str, str] = field(default_factory=dict)
    discriminant: Optional[str] = None
    update_delete_paths: list[str] = field(default_factory=list)

    def __post_init__(self):
        if self.model.identity is None:
            raise InternalError(f"feature {self.name} root model has no identity field")

    def variant_of(self, tree: Optional[Block] = None,
                   context: Optional[dict[str, Any]] = None) -> Optional[str]:
        if self.discriminant is None:
            return None
        if tree is not None and self.discriminant in tree.model:
            value = tree[self.discriminant]
            if value not in (None, ""):
                return str(value)
        if context and context.get(self.discriminant) not in (None, ""):
            return str(context[self.discriminant])
        return None

    def base_path(self, identity: Any, variant: Optional[str] = None) -> str:
        template = self.variant_paths.get(variant, self.path) if variant else self.path
        return template.format(name=quote_token(str(identity)))

    def delete_paths(self, identity: Any, variant: Optional[str] = None) -> list[str]:
        """Paths deleted before an update or by a delete."""
        base = self.base_path(identity, variant)
        if not self.update_delete_paths:
            return [base]
        return [f"{base} {rel}" for rel in self.update_delete_paths]

    def commit_message(self, operation: Operation) -> str:
        return f"{operation.value} resource {self.name}"


# --- Validation Results ---

@dataclass
class ValidationResult:
    """Result of tree validation."""
    valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


# --- Diff Results ---

class ChangeType(str, Enum):
    """Type of change in a diff."""
    CREATE = "create"
    MODIFY = "modify"
    DELETE = "delete"
    NO_CHANGE = "no_change"


@dataclass
class DiffResult:
    """Statement-level diff of one object, current vs desired."""
    feature: str
    identity: str
    change_type: ChangeType = ChangeType.NO_CHANGE
    statements_to_add: list[str] = field(default_factory=list)
    statements_to_remove: list[str] = field(default_factory=list)
    unchanged: list[str] = field(default_factory=list)

    @property
    def no_change(self) -> bool:
        """Check if there are any changes."""
        return self.change_type == ChangeType.NO_CHANGE

    @property
    def total_changes(self) -> int:
        """Total number of statement changes."""
        return len(self.statements_to_add) + len(self.statements_to_remove)


# --- Execution Results ---

@dataclass
class ApplyResult:
    """Result of one transactional apply."""
    feature: str
    identity: str
    operation: Operation
    success: bool = False
    offline: bool = False
    statements: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    error: Optional[str] = None
    rollback_performed: bool = False
    rollback_error: Optional[str] = None
    tree: Optional[Block] = None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "feature": self.feature,
            "identity": self.identity,
            "operation": self.operation.value,
            "success": self.success,
            "offline": self.offline,
            "statements": self.statements,
            "warnings": self.warnings,
            "error": self.error,
            "rollback_performed": self.rollback_performed,
            "rollback_error": self.rollback_error,
            "tree": self.tree.to_dict() if self.tree is not None else None,
        }
