"""Diff engine for comparing statement batches.

Computes which statements an apply would add or remove, which also makes
it the check that re-applying a tree is a no-op.
"""
from collections import Counter
from typing import Optional, Sequence, Union

from .schema import ChangeType, DiffResult
from .statement import Statement, TokenizeError


class DiffEngine:
    """Calculate differences between current and desired statements."""

    def calculate(
        self,
        feature: str,
        identity: str,
        current: Optional[Sequence[Union[str, Statement]]],
        desired: Optional[Sequence[Union[str, Statement]]]
    ) -> DiffResult:
        """
        Calculate the diff for one object.

        Args:
            feature: Feature name (for reporting)
            identity: Object identity (for reporting)
            current: Statements currently on the device, None if absent
            desired: Compiled statements, None to describe a delete

        Returns:
            DiffResult with statements to add and remove
        """
        current_lines = self._normalize(current)
        desired_lines = self._normalize(desired)
        result = DiffResult(feature=feature, identity=identity)

        if current is None and desired is None:
            return result

        if current is None:
            result.change_type = ChangeType.CREATE
            result.statements_to_add = desired_lines
            return result

        if desired is None:
            result.change_type = ChangeType.DELETE
            result.statements_to_remove = current_lines
            return result

        remaining = Counter(current_lines)
        for line in desired_lines:
            if remaining[line] > 0:
                remaining[line] -= 1
                result.unchanged.append(line)
            else:
                result.statements_to_add.append(line)

        kept = Counter(result.unchanged)
        for line in current_lines:
            if kept[line] > 0:
                kept[line] -= 1
            else:
                result.statements_to_remove.append(line)

        if result.statements_to_add or result.statements_to_remove:
            result.change_type = ChangeType.MODIFY

        return result

    @staticmethod
    def _normalize(statements: Optional[Sequence[Union[str, Statement]]]) -> list[str]:
        """Render statements canonically so quoting differences compare equal."""
        if not statements:
            return []
        lines = []
        for statement in statements:
            if not isinstance(statement, Statement):
                try:
                    statement = Statement.parse(statement)
                except TokenizeError:
                    # Compared verbatim
                    lines.append(statement.strip())
                    continue
            lines.append(str(statement))
        return lines


def summarize_diff(diff: DiffResult) -> str:
    """
    Create a human-readable summary of a diff.

    Useful for preview output and logging.
    """
    if diff.no_change:
        return (
            f"No changes needed - {diff.feature} {diff.identity} "
            f"matches desired state"
        )

    verb = {
        ChangeType.CREATE: "[+] Create",
        ChangeType.DELETE: "[-] Delete",
        ChangeType.MODIFY: "[~] Modify",
    }[diff.change_type]

    lines = [
        f"{verb} {diff.feature} {diff.identity} ({diff.total_changes} statement changes):"
    ]
    for line in diff.statements_to_remove:
        lines.append(f"      - {line or '(bare path)'}")
    for line in diff.statements_to_add:
        lines.append(f"      + {line or '(bare path)'}")

    return "\n".join(lines)
