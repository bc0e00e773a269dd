"""Tests for the ConfigEngine facade against a fake device."""
import asyncio
import os

import pytest

from setconf.config import EngineSettings
from setconf.config_engine import ChangeType, ConfigEngine, Operation
from setconf.errors import (
    AlreadyExistsError,
    ConfigError,
    ParseError,
    UnrecognizedStatementError,
    ValidationError,
)
from setconf.features import DHCP_RELAY_GROUP, LLDP_INTERFACE, SECURITY_ZONE
from setconf.utils.audit_log import get_recent_changes

LLDP_BASE = "protocols lldp interface ge-0/0/3"
ZONE_BASE = "security zones security-zone trust"


@pytest.fixture
def engine(session, settings):
    return ConfigEngine(session, settings, user="tester")


class TestCreate:
    """Tests for create."""

    @pytest.mark.asyncio
    async def test_create_and_read_back(self, engine, session):
        """Create sends the compiled lines and returns the device tree."""
        result = await engine.create(LLDP_INTERFACE, {
            "name": "ge-0/0/3",
            "disable": True,
            "power_negotiation": {"enable": True},
        })

        assert result.success
        assert result.operation == Operation.CREATE
        assert result.statements == [
            f"set {LLDP_BASE} disable",
            f"set {LLDP_BASE} power-negotiation enable",
        ]
        assert session.calls[3] == ("commit_conf", "create resource lldp_interface")
        assert result.tree.to_dict() == {
            "name": "ge-0/0/3",
            "disable": True,
            "power_negotiation": {"enable": True},
        }

    @pytest.mark.asyncio
    async def test_create_empty_object(self, engine, session):
        """A tree with only its identity sets the bare path."""
        result = await engine.create(LLDP_INTERFACE, {"name": "ge-0/0/3"})
        assert result.statements == [f"set {LLDP_BASE}"]
        assert await engine.exists(LLDP_INTERFACE, "ge-0/0/3")

    @pytest.mark.asyncio
    async def test_create_existing(self, engine, session):
        """Create refuses to overwrite an existing object."""
        session.lines = [f"{LLDP_BASE} enable"]
        with pytest.raises(AlreadyExistsError):
            await engine.create(LLDP_INTERFACE, {"name": "ge-0/0/3", "disable": True})
        assert session.lines == [f"{LLDP_BASE} enable"]

    @pytest.mark.asyncio
    async def test_invalid_tree_touches_nothing(self, engine, session):
        """Validation errors happen before any session call."""
        with pytest.raises(ValidationError):
            await engine.create(LLDP_INTERFACE, {"name": "ge-0/0/3", "disable": True, "enable": True})
        assert session.calls == []

    @pytest.mark.asyncio
    async def test_identity_required(self, engine, session):
        """The identity field must be set."""
        with pytest.raises(ValidationError, match="name must be specified"):
            await engine.create(LLDP_INTERFACE, {"disable": True})
        assert session.calls == []

    @pytest.mark.asyncio
    async def test_dhcp_v6_path(self, engine, session):
        """The version selects the dhcpv6 path and is not sent."""
        result = await engine.create(DHCP_RELAY_GROUP, {
            "name": "g6",
            "version": "v6",
            "service_profile": "sp1",
        })
        assert result.statements == [
            "set forwarding-options dhcp-relay dhcpv6 group g6 service-profile sp1"
        ]
        assert result.tree["version"] == "v6"
        assert result.tree["service_profile"] == "sp1"

    @pytest.mark.asyncio
    async def test_wrong_model(self, engine):
        """A tree of another feature is rejected."""
        tree = SECURITY_ZONE.model.new_block(name="trust")
        with pytest.raises(ParseError):
            await engine.create(LLDP_INTERFACE, tree)


class TestRead:
    """Tests for read and exists."""

    @pytest.mark.asyncio
    async def test_read(self, engine, session):
        """Read decompiles the statements under the base path."""
        session.lines = [
            f"{ZONE_BASE} description \"lab zone\"",
            f"{ZONE_BASE} host-inbound-traffic system-services ssh",
            f"{ZONE_BASE} address-book address web 10.0.1.0/24",
            "security zones security-zone untrust tcp-rst",
        ]
        tree = await engine.read(SECURITY_ZONE, "trust")
        assert tree.to_dict() == {
            "name": "trust",
            "address_book": [{"name": "web", "network": "10.0.1.0/24"}],
            "description": "lab zone",
            "inbound_services": ["ssh"],
        }

    @pytest.mark.asyncio
    async def test_read_missing(self, engine):
        """A missing object is a default tree, not an error."""
        tree = await engine.read(LLDP_INTERFACE, "ge-0/0/9")
        assert tree.is_absent
        assert tree.to_dict() == {}

    @pytest.mark.asyncio
    async def test_read_strict(self, session):
        """Strict settings turn unknown lines into errors."""
        session.lines = [f"{LLDP_BASE} disable", f"{LLDP_BASE} vendor-knob 1"]
        engine = ConfigEngine(session, EngineSettings(strict_parsing=True))
        with pytest.raises(UnrecognizedStatementError):
            await engine.read(LLDP_INTERFACE, "ge-0/0/3")

    @pytest.mark.asyncio
    async def test_read_permissive_reports(self, engine, session):
        """Permissive reads keep the unknown lines for inspection."""
        session.lines = [f"{LLDP_BASE} disable", f"{LLDP_BASE} vendor-knob 1"]
        tree = await engine.read(LLDP_INTERFACE, "ge-0/0/3")
        assert tree["disable"] is True
        assert engine.coordinator.last_unrecognized == ["vendor-knob 1"]

    @pytest.mark.asyncio
    async def test_read_untokenizable_line(self, engine, session):
        """A line with an unterminated quote is skipped like any unknown line."""
        session.lines = [f"{LLDP_BASE} disable", f'{LLDP_BASE} foo "unterminated']
        tree = await engine.read(LLDP_INTERFACE, "ge-0/0/3")
        assert tree["disable"] is True
        assert engine.coordinator.last_unrecognized == ['foo "unterminated']

    @pytest.mark.asyncio
    async def test_read_untokenizable_line_strict(self, session):
        """Strict reads report an unterminated quote as unrecognized."""
        session.lines = [f"{LLDP_BASE} disable", f'{LLDP_BASE} foo "unterminated']
        engine = ConfigEngine(session, EngineSettings(strict_parsing=True))
        with pytest.raises(UnrecognizedStatementError):
            await engine.read(LLDP_INTERFACE, "ge-0/0/3")

    @pytest.mark.asyncio
    async def test_exists(self, engine, session):
        """exists() looks at the base path only."""
        session.lines = [f"{LLDP_BASE} disable"]
        assert await engine.exists(LLDP_INTERFACE, "ge-0/0/3")
        assert not await engine.exists(LLDP_INTERFACE, "ge-0/0/30")

    @pytest.mark.asyncio
    async def test_reads_serialized(self, engine, session):
        """Concurrent reads on one engine do not overlap."""
        session.command_delay = 0.01
        session.lines = [f"{LLDP_BASE} disable"]
        await asyncio.gather(*[engine.read(LLDP_INTERFACE, "ge-0/0/3") for _ in range(5)])
        assert session.max_in_flight == 1


class TestUpdate:
    """Tests for update."""

    @pytest.mark.asyncio
    async def test_update_replaces_object(self, engine, session):
        """Update deletes the object and sets the new tree in one commit."""
        session.lines = [f"{LLDP_BASE} disable", f"{LLDP_BASE} trap-notification enable"]
        result = await engine.update(LLDP_INTERFACE, "ge-0/0/3", {"enable": True})

        assert result.statements == [f"delete {LLDP_BASE}", f"set {LLDP_BASE} enable"]
        assert session.count("commit_conf") == 1
        assert session.lines == [f"{LLDP_BASE} enable"]
        assert result.tree.to_dict() == {"name": "ge-0/0/3", "enable": True}

    @pytest.mark.asyncio
    async def test_update_keeps_unowned_paths(self, engine, session):
        """Zone interfaces are left alone by a zone update."""
        session.lines = [
            f"{ZONE_BASE} description old",
            f"{ZONE_BASE} interfaces ge-0/0/0.0",
        ]
        result = await engine.update(SECURITY_ZONE, "trust", {"name": "trust", "tcp_rst": True})

        assert f"delete {ZONE_BASE} description" in result.statements
        assert f"delete {ZONE_BASE}" not in result.statements
        assert session.lines == [f"{ZONE_BASE} interfaces ge-0/0/0.0", f"{ZONE_BASE} tcp-rst"]
        assert result.tree["tcp_rst"] is True
        assert result.tree["description"] is None

    @pytest.mark.asyncio
    async def test_update_identity_mismatch(self, engine, session):
        """The tree identity must match the updated object."""
        with pytest.raises(ValidationError, match="does not match"):
            await engine.update(LLDP_INTERFACE, "ge-0/0/3", {"name": "ge-0/0/4"})
        assert session.calls == []

    @pytest.mark.asyncio
    async def test_update_leaves_caller_tree(self, engine, session):
        """The identity is filled into a copy of the caller's block."""
        session.lines = [f"{LLDP_BASE} disable"]
        tree = LLDP_INTERFACE.model.new_block(enable=True)

        await engine.update(LLDP_INTERFACE, "ge-0/0/3", tree)

        assert tree.is_absent
        assert session.lines == [f"{LLDP_BASE} enable"]


class TestDelete:
    """Tests for delete."""

    @pytest.mark.asyncio
    async def test_delete(self, engine, session):
        """Delete removes everything under the base path."""
        session.lines = [f"{LLDP_BASE} disable", "protocols lldp interface ge-0/0/30 disable"]
        result = await engine.delete(LLDP_INTERFACE, "ge-0/0/3")

        assert result.success
        assert result.statements == [f"delete {LLDP_BASE}"]
        assert session.lines == ["protocols lldp interface ge-0/0/30 disable"]
        assert session.calls[-2] == ("commit_conf", "delete resource lldp_interface")

    @pytest.mark.asyncio
    async def test_delete_v6_group(self, engine, session):
        """The context picks the dhcpv6 path."""
        session.lines = ["forwarding-options dhcp-relay dhcpv6 group g6 service-profile sp1"]
        await engine.delete(DHCP_RELAY_GROUP, "g6", {"version": "v6"})
        assert session.lines == []


class TestPreview:
    """Tests for preview."""

    @pytest.mark.asyncio
    async def test_preview_no_change(self, engine, session):
        """Previewing what the device holds reports no change."""
        config = {"name": "ge-0/0/3", "disable": True, "power_negotiation": {"enable": True}}
        await engine.create(LLDP_INTERFACE, config)
        calls = len(session.calls)

        diff = await engine.preview(LLDP_INTERFACE, config)

        assert diff.no_change
        assert session.call_names()[calls:] == ["command"]

    @pytest.mark.asyncio
    async def test_preview_modify(self, engine, session):
        """Differences are listed without touching the candidate."""
        session.lines = [f"{LLDP_BASE} disable"]
        diff = await engine.preview(LLDP_INTERFACE, {"name": "ge-0/0/3", "enable": True})
        assert diff.change_type == ChangeType.MODIFY
        assert diff.statements_to_add == ["enable"]
        assert diff.statements_to_remove == ["disable"]
        assert "config_lock" not in session.call_names()

    @pytest.mark.asyncio
    async def test_preview_create(self, engine):
        """An absent object previews as a create."""
        diff = await engine.preview(LLDP_INTERFACE, {"name": "ge-0/0/3", "disable": True})
        assert diff.change_type == ChangeType.CREATE

    @pytest.mark.asyncio
    async def test_preview_untokenizable_line(self, engine, session):
        """A line the device renders with a stray quote is listed for removal."""
        session.lines = [f"{LLDP_BASE} disable", f'{LLDP_BASE} foo "unterminated']
        diff = await engine.preview(LLDP_INTERFACE, {"name": "ge-0/0/3", "disable": True})
        assert diff.change_type == ChangeType.MODIFY
        assert diff.statements_to_remove == ['foo "unterminated']
        assert diff.statements_to_add == []


class TestOffline:
    """Tests for the offline set file."""

    @pytest.mark.asyncio
    async def test_offline_create(self, session, tmp_path):
        """Create appends to the set file instead of the device."""
        set_file = tmp_path / "device.set"
        engine = ConfigEngine(session, EngineSettings(offline_set_file=str(set_file)))

        result = await engine.create(LLDP_INTERFACE, {"name": "ge-0/0/3", "disable": True})
        await engine.create(LLDP_INTERFACE, {"name": "ge-0/0/4", "enable": True})

        assert result.offline
        assert result.success
        assert result.tree["disable"] is True
        assert session.calls == []
        assert set_file.read_text().splitlines() == [
            f"set {LLDP_BASE} disable",
            "set protocols lldp interface ge-0/0/4 enable",
        ]

    @pytest.mark.asyncio
    async def test_offline_permission(self, session, tmp_path):
        """A new set file is created with the configured permission."""
        set_file = tmp_path / "device.set"
        engine = ConfigEngine(session, EngineSettings(
            offline_set_file=str(set_file), file_permission="0600",
        ))
        await engine.create(LLDP_INTERFACE, {"name": "ge-0/0/3"})
        assert os.stat(set_file).st_mode & 0o777 == 0o600

    @pytest.mark.asyncio
    async def test_offline_update_and_delete(self, session, tmp_path):
        """Offline update and delete are opt-in."""
        set_file = tmp_path / "device.set"
        engine = ConfigEngine(session, EngineSettings(
            offline_set_file=str(set_file), offline_update=True, offline_delete=True,
        ))

        await engine.update(LLDP_INTERFACE, "ge-0/0/3", {"enable": True})
        await engine.delete(LLDP_INTERFACE, "ge-0/0/3")

        assert session.calls == []
        assert set_file.read_text().splitlines() == [
            f"delete {LLDP_BASE}",
            f"set {LLDP_BASE} enable",
            f"delete {LLDP_BASE}",
        ]

    @pytest.mark.asyncio
    async def test_offline_update_off_by_default(self, session, settings, tmp_path):
        """Without offline_update an update goes to the device."""
        settings.offline_set_file = str(tmp_path / "device.set")
        session.lines = [f"{LLDP_BASE} disable"]
        engine = ConfigEngine(session, settings)

        await engine.update(LLDP_INTERFACE, "ge-0/0/3", {"enable": True})

        assert session.count("commit_conf") == 1
        assert not (tmp_path / "device.set").exists()

    @pytest.mark.asyncio
    async def test_offline_missing_directory(self, session, tmp_path):
        """A set file in a missing directory is a config error."""
        engine = ConfigEngine(session, EngineSettings(
            offline_set_file=str(tmp_path / "missing" / "device.set"),
        ))
        with pytest.raises(ConfigError, match="does not exist"):
            await engine.create(LLDP_INTERFACE, {"name": "ge-0/0/3"})


class TestAuditTrail:
    """Tests for the audit trail written by the engine."""

    @pytest.mark.asyncio
    async def test_audit_file(self, session, settings, tmp_path, clean_audit_logger):
        """Every apply is recorded in the audit file."""
        settings.audit_dir = str(tmp_path)
        engine = ConfigEngine(session, settings, user="tester")
        await engine.create(LLDP_INTERFACE, {"name": "ge-0/0/3", "disable": True})
        await engine.delete(LLDP_INTERFACE, "ge-0/0/3")

        records = get_recent_changes(str(tmp_path / "audit.log"))
        assert [r.operation for r in records] == ["delete", "create"]
        assert records[1].user == "tester"
        assert records[1].after_state == {"name": "ge-0/0/3", "disable": True}
        assert records[1].checksum.startswith("sha256:")
