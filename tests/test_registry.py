from __future__ import annotations

import pytest

from shble.config import RulesConfig
from shble.registry import ConnectionRegistry
from shble.rules.models import AxisRuleText


@pytest.fixture
async def registry():
    reg = ConnectionRegistry(rules=RulesConfig(
        rows=AxisRuleText(separators="\\n"),
        columns=AxisRuleText(separators="\\s"),
    ))
    yield reg
    await reg.close_all()


class TestConnect:
    async def test_connect_creates_session(self, registry, viewer):
        session = registry.connect(1, viewer)
        assert 1 in registry
        assert len(registry) == 1
        assert registry.get(1) is session
        assert session.connection.is_open

    async def test_connect_twice_returns_same_session(self, registry, viewer):
        assert registry.connect(1, viewer) is registry.connect(1, viewer)

    async def test_sessions_get_distinct_connections(self, registry, viewer):
        a = registry.connect(1, viewer)
        b = registry.connect(2, viewer)
        assert a.connection.connection_id != b.connection.connection_id

    async def test_rules_are_copies_of_defaults(self, registry, viewer):
        a = registry.connect(1, viewer)
        b = registry.connect(2, viewer)
        a.rows.index_filters = "0"
        assert b.rows.index_filters == ""

    async def test_get_unknown(self, registry):
        assert registry.get(99) is None


class TestDisconnect:
    async def test_disconnect_closes_connection(self, registry, viewer):
        session = registry.connect(1, viewer)
        assert await registry.disconnect(1) is True
        assert 1 not in registry
        assert not session.connection.is_open

    async def test_disconnect_unknown(self, registry):
        assert await registry.disconnect(1) is False

    async def test_reconnect_starts_fresh(self, registry, viewer):
        first = registry.connect(1, viewer)
        first.rows.regex_filter = "x"
        await registry.disconnect(1)
        second = registry.connect(1, viewer)
        assert second is not first
        assert second.rows.regex_filter == ""

    async def test_close_all(self, registry, viewer):
        registry.connect(1, viewer)
        registry.connect(2, viewer)
        await registry.close_all()
        assert len(registry) == 0


class TestViewerSession:
    async def test_publish_output_transforms_and_sends(self, registry, viewer):
        session = registry.connect(1, viewer)
        table = await session.publish_output("a b\nc d\n")
        await session.connection.drain()
        assert table == [["a", "b"], ["c", "d"]]
        assert viewer.tables[0][1] == table
        assert session.last_output == "a b\nc d\n"

    async def test_rule_change_applies_to_next_publish(self, registry, viewer):
        session = registry.connect(1, viewer)
        session.columns.index_filters = "1"
        table = await session.publish_output("a b\nc d\n")
        assert table == [["b"], ["d"]]

    async def test_compile_rules_reports_issues(self, registry, viewer):
        session = registry.connect(1, viewer)
        session.rows.regex_filter = "("
        issues = []
        session.compile_rules(issues)
        assert [i.rule for i in issues] == ["("]

    async def test_axis_lookup(self, registry, viewer):
        session = registry.connect(1, viewer)
        assert session.axis("rows") is session.rows
        assert session.axis("columns") is session.columns
        with pytest.raises(KeyError):
            session.axis("diagonal")

    async def test_reset_rules(self, registry, viewer):
        session = registry.connect(1, viewer)
        session.rows.separators = ","
        registry.reset_rules(session)
        assert session.rows.separators == "\\n"
