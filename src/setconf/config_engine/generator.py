"""Statement compiler.

Turns a validated options tree into the ordered statement batch that
recreates it on the device.
"""
import logging
from typing import Any, Iterator, Optional

from ..errors import InternalError, ValidationError
from .schema import Block, FieldKind, FieldSpec, ValueType
from .statement import Statement
from .validator import ConfigValidator

logger = logging.getLogger(__name__)


class StatementCompiler:
    """Compile options trees into statements relative to a feature base path."""

    def __init__(self, validator: Optional[ConfigValidator] = None):
        self.validator = validator or ConfigValidator()
        self.warnings: list[str] = []

    def compile(
        self,
        tree: Block,
        context: Optional[dict[str, Any]] = None
    ) -> list[Statement]:
        """
        Compile a tree into statements.

        Order is parent before child, fields in declaration order, lists in
        insertion order and sets sorted by their rendered token. A present
        block with nothing to emit yields its bare path, the root included,
        so an empty tree still compiles to one (empty) statement.

        Args:
            tree: Root block to compile
            context: Discriminant values for variant guards

        Returns:
            List of statements relative to the feature base path

        Raises:
            ValidationError: If the tree violates any constraint
        """
        result = self.validator.validate(tree, context)
        self.warnings = list(result.warnings)
        for warning in result.warnings:
            logger.warning(f"Compile warning: {warning}")
        if not result.valid:
            raise ValidationError(result.errors, result.warnings)

        return list(self._emit_block(tree, ()))

    def compile_lines(
        self,
        tree: Block,
        base_path: str,
        context: Optional[dict[str, Any]] = None
    ) -> list[str]:
        """Compile and render as full ``set`` lines under base_path."""
        return [
            statement.render("set", base_path)
            for statement in self.compile(tree, context)
        ]

    def _emit_block(self, block: Block, prefix: tuple[str, ...]) -> Iterator[Statement]:
        emitted = False
        for spec in block.model.statement_fields():
            value = block.values[spec.name]
            if spec.is_unset(value):
                continue
            for statement in self._emit_field(spec, value, prefix):
                emitted = True
                yield statement

        if not emitted:
            yield Statement(prefix)

    def _emit_field(
        self,
        spec: FieldSpec,
        value: Any,
        prefix: tuple[str, ...]
    ) -> Iterator[Statement]:
        path = prefix + spec.keyword_tokens

        if spec.kind == FieldKind.SCALAR:
            if spec.value_type == ValueType.BOOL:
                yield Statement(path)
            else:
                yield Statement(path + (spec.render_value(value),))

        elif spec.kind == FieldKind.BLOCK:
            yield from self._emit_block(value, path)

        elif spec.is_block_collection:
            items = value
            if spec.kind == FieldKind.SET:
                items = sorted(value, key=lambda b: str(b.identity))
            for item in items:
                identity_spec = item.model.identity_field
                yield from self._emit_block(
                    item, path + (identity_spec.render_value(item.identity),)
                )

        elif spec.kind == FieldKind.LIST:
            for item in value:
                yield Statement(path + (spec.render_value(item),))

        elif spec.kind == FieldKind.SET:
            for token in sorted(spec.render_value(item) for item in value):
                yield Statement(path + (token,))

        else:
            raise InternalError(f"unknown field kind {spec.kind!r} for {spec.name}")
