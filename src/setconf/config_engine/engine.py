"""Main Config Engine - create, read, update and delete feature objects.

Provides a single entry point per operation:
1. Parsing caller input into an options tree
2. Compiling it into set/delete lines under the feature base path
3. Applying the lines transactionally (or to the offline set file)
4. Reading the object back through the read coordinator
"""
import logging
from typing import Any, Optional, Union

from ..config.settings import EngineSettings
from ..devices.base import DeviceSession
from ..errors import ParseError, ValidationError
from ..utils.audit_log import ChangeTracker, setup_audit_logging
from ..utils.logging_config import timed, timed_section_sync
from .coordinator import ReadCoordinator
from .diff import DiffEngine
from .executor import ApplyPlan, ConfigExecutor
from .generator import StatementCompiler
from .parser import ConfigParser
from .resolver import ConfigResolver
from .schema import ApplyResult, Block, DiffResult, Feature, Operation

logger = logging.getLogger(__name__)

TreeInput = Union[Block, dict[str, Any], None]


class ConfigEngine:
    """
    Config Engine bound to one device session.

    Owns the session reference, its read coordinator and its settings;
    nothing is shared between engines.

    Usage:
        engine = ConfigEngine(session, load_settings(device_id="srx-lab"))
        result = await engine.create(LLDP_INTERFACE, {"name": "ge-0/0/0", "disable": True})
        tree = await engine.read(LLDP_INTERFACE, "ge-0/0/0")
    """

    def __init__(
        self,
        session: DeviceSession,
        settings: Optional[EngineSettings] = None,
        user: str = "system",
    ):
        """
        Initialize the Config Engine.

        Args:
            session: Device session used for every call
            settings: Engine settings (defaults when omitted)
            user: User recorded in audit entries
        """
        self.session = session
        self.settings = settings or EngineSettings()
        if self.settings.audit_dir:
            setup_audit_logging(self.settings.audit_dir)

        self.parser = ConfigParser()
        self.compiler = StatementCompiler()
        self.diff_engine = DiffEngine()
        self.resolver = ConfigResolver(session, self.settings.command_timeout)
        self.coordinator = ReadCoordinator(self.resolver, self.settings.strict_parsing)
        self.executor = ConfigExecutor(
            session,
            self.settings,
            self.resolver,
            ChangeTracker(session.device_id, user),
        )

    @property
    def device_id(self) -> str:
        return self.session.device_id

    # --- Pure helpers ---

    def build(self, feature: Feature, tree: TreeInput) -> Block:
        """Turn caller input into a tree of feature's model."""
        if isinstance(tree, Block):
            if tree.model is not feature.model:
                raise ParseError(f"Tree does not belong to feature {feature.name}")
            return tree
        return self.parser.parse(tree, feature.model)

    def compile(
        self,
        feature: Feature,
        tree: TreeInput,
        context: Optional[dict[str, Any]] = None
    ) -> list[str]:
        """Compile a tree into full ``set`` lines without touching the device."""
        tree = self.build(feature, tree)
        identity = self._require_identity(feature, tree)
        ctx = self._context(feature, tree, context)
        base_path = feature.base_path(identity, feature.variant_of(tree, ctx))
        with timed_section_sync("compile", device_id=self.device_id, feature=feature.name):
            return self.compiler.compile_lines(tree, base_path, ctx)

    # --- Operations ---

    async def create(
        self,
        feature: Feature,
        tree: TreeInput,
        context: Optional[dict[str, Any]] = None
    ) -> ApplyResult:
        """
        Create a new object.

        Fails with AlreadyExistsError if the object is already on the device
        and with ConsistencyError if it cannot be found after the commit.

        Returns:
            ApplyResult whose tree is the object as read back from the device
            (the input tree when offline)
        """
        tree = self.build(feature, tree)
        identity = self._require_identity(feature, tree)
        ctx = self._context(feature, tree, context)
        variant = feature.variant_of(tree, ctx)
        base_path = feature.base_path(identity, variant)

        set_lines = self.compile(feature, tree, ctx)
        plan = ApplyPlan(
            operation=Operation.CREATE,
            feature=feature.name,
            identity=str(identity),
            base_path=base_path,
            description=feature.commit_message(Operation.CREATE),
            set_lines=set_lines,
            check_exists=True,
            warnings=list(self.compiler.warnings),
        )

        logger.info(f"Creating {feature.name} {identity} on {self.device_id}")
        if self.settings.offline_create:
            return self.executor.write_offline(plan, tree)
        return await self.executor.execute(
            plan, read_back=lambda: self.read(feature, identity, ctx)
        )

    @timed("read")
    async def read(
        self,
        feature: Feature,
        identity: Any,
        context: Optional[dict[str, Any]] = None
    ) -> Block:
        """
        Read an object back from the device.

        A missing object is not an error: the returned tree has every field
        at its default and an empty identity (``tree.is_absent``).
        """
        ctx = dict(context or {})
        base_path = feature.base_path(identity, feature.variant_of(None, ctx))
        tree, found = await self.coordinator.read(base_path, feature.model, ctx)
        if found:
            tree[feature.model.identity] = identity
        return tree

    async def update(
        self,
        feature: Feature,
        identity: Any,
        tree: TreeInput,
        context: Optional[dict[str, Any]] = None
    ) -> ApplyResult:
        """
        Replace an existing object.

        Deletes the paths the feature owns under the object and sets the
        compiled tree in the same commit.
        """
        tree = self.build(feature, tree).copy()
        id_field = feature.model.identity
        if tree.is_absent:
            tree[id_field] = identity
        elif tree.identity != identity:
            raise ValidationError([
                f"{id_field} {tree.identity} does not match updated object {identity}"
            ])
        ctx = self._context(feature, tree, context)
        variant = feature.variant_of(tree, ctx)
        base_path = feature.base_path(identity, variant)

        set_lines = self.compile(feature, tree, ctx)
        plan = ApplyPlan(
            operation=Operation.UPDATE,
            feature=feature.name,
            identity=str(identity),
            base_path=base_path,
            description=feature.commit_message(Operation.UPDATE),
            delete_lines=[f"delete {path}" for path in feature.delete_paths(identity, variant)],
            set_lines=set_lines,
            warnings=list(self.compiler.warnings),
        )

        logger.info(f"Updating {feature.name} {identity} on {self.device_id}")
        if self.settings.offline_update:
            return self.executor.write_offline(plan, tree)
        return await self.executor.execute(
            plan, read_back=lambda: self.read(feature, identity, ctx)
        )

    async def delete(
        self,
        feature: Feature,
        identity: Any,
        context: Optional[dict[str, Any]] = None
    ) -> ApplyResult:
        """Delete an object (deleting an absent object is not an error)."""
        ctx = dict(context or {})
        base_path = feature.base_path(identity, feature.variant_of(None, ctx))
        plan = ApplyPlan(
            operation=Operation.DELETE,
            feature=feature.name,
            identity=str(identity),
            base_path=base_path,
            description=feature.commit_message(Operation.DELETE),
            delete_lines=[f"delete {base_path}"],
        )

        logger.info(f"Deleting {feature.name} {identity} on {self.device_id}")
        if self.settings.offline_delete:
            return self.executor.write_offline(plan)
        return await self.executor.execute(plan)

    @timed("exists")
    async def exists(
        self,
        feature: Feature,
        identity: Any,
        context: Optional[dict[str, Any]] = None
    ) -> bool:
        """Check whether the object is configured on the device."""
        ctx = dict(context or {})
        base_path = feature.base_path(identity, feature.variant_of(None, ctx))
        return await self.resolver.exists(base_path)

    async def preview(
        self,
        feature: Feature,
        tree: TreeInput,
        context: Optional[dict[str, Any]] = None
    ) -> DiffResult:
        """
        Diff the compiled tree against what the device holds now.

        No lock is taken and nothing is sent. A preview of a tree identical to
        the device state reports no change.
        """
        tree = self.build(feature, tree)
        identity = self._require_identity(feature, tree)
        ctx = self._context(feature, tree, context)
        base_path = feature.base_path(identity, feature.variant_of(tree, ctx))

        desired = self.compiler.compile(tree, ctx)
        current = await self.coordinator.statements(base_path)
        return self.diff_engine.calculate(
            feature.name, str(identity), current or None, desired
        )

    # --- Internals ---

    @staticmethod
    def _require_identity(feature: Feature, tree: Block) -> Any:
        if tree.is_absent:
            raise ValidationError([f"{feature.model.identity} must be specified"])
        return tree.identity

    @staticmethod
    def _context(
        feature: Feature,
        tree: Block,
        context: Optional[dict[str, Any]]
    ) -> dict[str, Any]:
        ctx = dict(context or {})
        variant = feature.variant_of(tree, ctx)
        if feature.discriminant and variant is not None:
            ctx[feature.discriminant] = variant
        return ctx
