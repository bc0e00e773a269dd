"""Pre-flight validation for options trees.

Catches every constraint violation before a single statement is produced,
so an apply never has to undo a half-compiled batch.
"""
from typing import Any, Optional

from ..errors import InternalError
from .schema import (
    Block,
    FieldKind,
    FieldSpec,
    ValidationResult,
    ValueType,
)

# Python types accepted for each scalar value type
SCALAR_TYPES = {
    ValueType.STRING: (str,),
    ValueType.INT: (int,),
    ValueType.BOOL: (bool,),
}


class ConfigValidator:
    """Validate an options tree against its block model."""

    def validate(
        self,
        tree: Block,
        context: Optional[dict[str, Any]] = None
    ) -> ValidationResult:
        """
        Validate a tree and all of its nested blocks.

        Checks:
        - value shapes and scalar types
        - variant guards against the sibling discriminant or context
        - exclusivity groups and field dependencies
        - required fields
        - empty and duplicate identities of repeated blocks

        Args:
            tree: Root block to validate
            context: Discriminant values for variant guards

        Returns:
            ValidationResult with valid flag, errors, and warnings
        """
        errors: list[str] = []
        warnings: list[str] = []

        self._validate_block(tree, "", context or {}, errors, warnings)

        return ValidationResult(
            valid=len(errors) == 0,
            errors=errors,
            warnings=warnings,
        )

    def _validate_block(
        self,
        block: Block,
        prefix: str,
        context: dict[str, Any],
        errors: list[str],
        warnings: list[str]
    ) -> None:
        groups: dict[str, list[str]] = {}

        for spec in block.model.fields:
            value = block.values[spec.name]
            label = prefix + spec.name

            if not self._check_shape(spec, value, label, errors):
                continue
            if spec.is_unset(value):
                if spec.required:
                    errors.append(f"{label} must be specified")
                continue

            # Variant compatibility
            if spec.variant is not None:
                current = spec.variant.resolve(block, context)
                if not spec.variant.admits(current):
                    errors.append(
                        f"{label} cannot be configured when "
                        f"{spec.variant.discriminant} = {current}"
                    )

            # Dependencies
            for needed in spec.requires:
                if not block.is_set(needed):
                    errors.append(f"{prefix}{needed} must be specified with {label}")

            if spec.exclusive_group:
                groups.setdefault(spec.exclusive_group, []).append(label)

            self._validate_children(spec, value, label, context, errors, warnings)

        for members in groups.values():
            if len(members) > 1:
                errors.append(f"only one of {', '.join(members)} can be configured")

    def _validate_children(
        self,
        spec: FieldSpec,
        value: Any,
        label: str,
        context: dict[str, Any],
        errors: list[str],
        warnings: list[str]
    ) -> None:
        if spec.kind == FieldKind.BLOCK:
            self._validate_block(value, f"{label}.", context, errors, warnings)
            return

        if spec.is_block_collection:
            seen: set[str] = set()
            for item in value:
                identity = item.identity
                if identity in (None, ""):
                    errors.append(f"{label} block with empty {item.model.identity}")
                    continue
                key = str(identity)
                if key in seen:
                    errors.append(
                        f"multiple blocks {spec.keyword} with the same name {key}"
                    )
                    continue
                seen.add(key)
                self._validate_block(item, f"{label}[{key}].", context, errors, warnings)
            return

        if spec.kind == FieldKind.LIST:
            rendered = [spec.render_value(item) for item in value]
            duplicates = sorted({item for item in rendered if rendered.count(item) > 1})
            if duplicates:
                warnings.append(
                    f"{label} has duplicate entries {', '.join(duplicates)}, "
                    f"the device keeps only one of each"
                )

    def _check_shape(
        self,
        spec: FieldSpec,
        value: Any,
        label: str,
        errors: list[str]
    ) -> bool:
        """Check value shape and types, returning False on mismatch."""
        if spec.kind == FieldKind.SCALAR:
            if spec.is_unset(value):
                return True
            if not self._scalar_ok(spec, value):
                errors.append(
                    f"{label} must be of type {spec.value_type.value}, "
                    f"got {type(value).__name__}"
                )
                return False
            return True

        if spec.kind == FieldKind.BLOCK:
            if value is None:
                return True
            if not isinstance(value, Block) or value.model is not spec.block:
                errors.append(f"{label} must be a {spec.name} block")
                return False
            return True

        if spec.kind not in (FieldKind.LIST, FieldKind.SET):
            raise InternalError(f"unknown field kind {spec.kind!r} for {label}")

        expected = list if spec.kind == FieldKind.LIST or spec.block is not None else (set, frozenset)
        if not isinstance(value, expected):
            errors.append(f"{label} must be a {spec.kind.value}")
            return False

        if spec.block is not None:
            for item in value:
                if not isinstance(item, Block) or item.model is not spec.block:
                    errors.append(f"{label} entries must be {spec.name} blocks")
                    return False
            return True

        for item in value:
            if not self._scalar_ok(spec, item):
                errors.append(
                    f"{label} entries must be of type {spec.value_type.value}, "
                    f"got {type(item).__name__}"
                )
                return False
        return True

    @staticmethod
    def _scalar_ok(spec: FieldSpec, value: Any) -> bool:
        if spec.value_type != ValueType.BOOL and isinstance(value, bool):
            return False
        return isinstance(value, SCALAR_TYPES[spec.value_type])
