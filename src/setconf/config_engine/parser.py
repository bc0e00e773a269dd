"""Parsers producing options trees.

StatementParser decompiles device statements back into a tree.
ConfigParser converts dict/YAML input into a typed tree.
"""
import hashlib
import json
import logging
from typing import Any, Iterable, Optional, Union

from ..errors import (
    ConversionError,
    InternalError,
    ParseError,
    UnrecognizedStatementError,
)
from .schema import Block, BlockModel, FieldKind, FieldSpec, ValueType
from .statement import Statement, TokenizeError

logger = logging.getLogger(__name__)


class StatementParser:
    """Decompile statements into an options tree.

    Statements are applied one by one with longest-prefix matching against
    the block model. Repeated blocks are found or created by identity, so
    statements of the same sibling may arrive in any order. Statements the
    model does not describe are collected on ``unrecognized``; in strict
    mode they make parse() fail instead.
    """

    def __init__(
        self,
        model: BlockModel,
        context: Optional[dict[str, Any]] = None,
        strict: bool = False
    ):
        self.model = model
        self.context = context or {}
        self.strict = strict
        self.unrecognized: list[str] = []

    def parse(self, statements: Iterable[Union[str, Statement]]) -> Block:
        """
        Build a tree from statements relative to the feature base path.

        Args:
            statements: Rendered lines or Statement objects

        Returns:
            Root block with every field materialized

        Raises:
            ConversionError: If a numeric value does not parse
            UnrecognizedStatementError: In strict mode, for unknown lines
        """
        root = self.model.new_block()
        for spec in self.model.fields:
            # Path-selecting fields are not in the statements
            if not spec.emit and spec.name in self.context:
                root[spec.name] = self.context[spec.name]

        self.unrecognized = []
        for raw in statements:
            if isinstance(raw, Statement):
                statement, text = raw, str(raw)
            else:
                text = raw.strip()
                try:
                    statement = Statement.parse(text)
                except TokenizeError:
                    self.unrecognized.append(text)
                    continue

            # Bare base path: the object exists with nothing below it
            if not statement.tokens:
                continue
            if not self._apply(root, statement.tokens, text):
                self.unrecognized.append(text)

        if self.unrecognized:
            if self.strict:
                raise UnrecognizedStatementError(self.unrecognized)
            logger.debug(f"Ignored {len(self.unrecognized)} unrecognized statement(s)")

        return root

    def _apply(self, block: Block, tokens: tuple[str, ...], text: str) -> bool:
        """Apply one statement to block, returning False if nothing matched."""
        for spec in block.model.candidates(tokens):
            if spec.variant is not None:
                if not spec.variant.admits(spec.variant.resolve(block, self.context)):
                    continue
            rest = tokens[len(spec.keyword_tokens):]
            if self._assign(block, spec, rest, text):
                return True
        return False

    def _assign(
        self,
        block: Block,
        spec: FieldSpec,
        rest: tuple[str, ...],
        text: str
    ) -> bool:
        if spec.kind == FieldKind.SCALAR:
            if spec.value_type == ValueType.BOOL:
                if rest:
                    return False
                block[spec.name] = True
                return True
            if not rest:
                return False
            block[spec.name] = self._convert(spec, " ".join(rest), text)
            return True

        if spec.kind == FieldKind.BLOCK:
            child = block[spec.name]
            if child is None:
                # Tentative until the remainder is accepted
                child = spec.block.new_block()
                if rest and not self._apply(child, rest, text):
                    return False
                block[spec.name] = child
                return True
            return not rest or self._apply(child, rest, text)

        if spec.is_block_collection:
            if not rest:
                return False
            identity_spec = spec.block.identity_field
            identity = self._convert(identity_spec, rest[0], text)
            for item in block[spec.name]:
                if item.identity == identity:
                    return len(rest) == 1 or self._apply(item, rest[1:], text)
            item = spec.block.new_block(**{identity_spec.name: identity})
            if len(rest) > 1 and not self._apply(item, rest[1:], text):
                return False
            block[spec.name].append(item)
            return True

        if spec.kind == FieldKind.LIST:
            if not rest:
                return False
            block[spec.name].append(self._convert(spec, " ".join(rest), text))
            return True

        if spec.kind == FieldKind.SET:
            if not rest:
                return False
            block[spec.name].add(self._convert(spec, " ".join(rest), text))
            return True

        raise InternalError(f"unknown field kind {spec.kind!r} for {spec.name}")

    @staticmethod
    def _convert(spec: FieldSpec, raw: str, text: str) -> Any:
        if spec.value_type == ValueType.INT:
            try:
                return int(raw)
            except ValueError:
                raise ConversionError(spec.name, text, raw, "int") from None
        if spec.value_type == ValueType.BOOL:
            return raw == "true"
        return raw


def decompile(
    statements: Iterable[Union[str, Statement]],
    model: BlockModel,
    context: Optional[dict[str, Any]] = None,
    strict: bool = False
) -> Block:
    """Decompile statements with a one-shot parser."""
    return StatementParser(model, context, strict).parse(statements)


class ConfigParser:
    """Parse caller input (dict/YAML) into typed options trees."""

    def parse(self, config: Optional[dict[str, Any]], model: BlockModel) -> Block:
        """
        Build a tree from a plain dict.

        Args:
            config: Field name -> value; nested blocks as dicts, repeated
                blocks as lists of dicts
            model: Block model describing config

        Returns:
            Root block

        Raises:
            ParseError: On unknown fields or wrongly shaped values
        """
        return self._parse_block(config, model, "")

    def _parse_block(
        self,
        config: Optional[dict[str, Any]],
        model: BlockModel,
        prefix: str
    ) -> Block:
        if config is None:
            config = {}
        if isinstance(config, Block):
            return config
        if not isinstance(config, dict):
            raise ParseError(
                f"Invalid block {prefix.rstrip('.') or 'root'}: "
                f"expected a mapping, got {type(config).__name__}"
            )

        block = model.new_block()
        for name, value in config.items():
            if name not in model:
                raise ParseError(f"Unknown field: {prefix}{name}")
            spec = model.field(name)
            block[name] = self._parse_value(spec, value, prefix + name)
        return block

    def _parse_value(self, spec: FieldSpec, value: Any, label: str) -> Any:
        if value is None:
            return spec.empty_value()

        if spec.kind == FieldKind.SCALAR:
            if isinstance(value, (dict, list, set, tuple)):
                raise ParseError(f"Invalid value for {label}: expected a scalar")
            return value

        if spec.kind == FieldKind.BLOCK:
            return self._parse_block(value, spec.block, f"{label}.")

        if not isinstance(value, (list, set, tuple, frozenset)):
            raise ParseError(f"Invalid value for {label}: expected a {spec.kind.value}")

        if spec.is_block_collection:
            return [
                self._parse_block(item, spec.block, f"{label}[{index}].")
                for index, item in enumerate(value)
            ]
        if spec.kind == FieldKind.LIST:
            return list(value)
        if spec.kind == FieldKind.SET:
            try:
                return set(value)
            except TypeError:
                raise ParseError(f"Invalid value for {label}: unhashable entries") from None

        raise InternalError(f"unknown field kind {spec.kind!r} for {label}")


def build_tree(config: Optional[dict[str, Any]], model: BlockModel) -> Block:
    """Convenience wrapper around ConfigParser.parse."""
    return ConfigParser().parse(config, model)


def compute_checksum(lines: list[str]) -> str:
    """
    Compute SHA256 checksum of a statement batch.

    Useful for comparing audit records of repeated applies.
    """
    batch = json.dumps(list(lines), separators=(",", ":"))
    hash_bytes = hashlib.sha256(batch.encode()).hexdigest()
    return f"sha256:{hash_bytes[:16]}"  # Short hash for readability
