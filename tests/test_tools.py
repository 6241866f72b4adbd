"""Tests for the MCP tool layer."""

import logging

import pytest

from olog_directory.models import Entry, Logbook
from olog_directory.tools import MUTATING_TOOLS, execute_tool, make_tools


def entry_args(entry_id, logbooks=(), tags=(), owner="ops"):
    return {
        "id": entry_id,
        "owner": owner,
        "subject": "Beam lost",
        "logbooks": [{"name": n, "owner": "ops"} for n in logbooks],
        "tags": [{"name": n} for n in tags],
    }


class TestToolDefinitions:
    """Tests for tool definitions."""

    def test_all_tools_defined(self, manager):
        tools = make_tools(manager)
        expected = {
            "entry_get", "entry_search", "entry_create", "entry_put", "entries_put",
            "entry_update", "entry_delete",
            "logbook_list", "logbook_get", "logbook_put", "logbooks_put", "logbook_update",
            "logbook_add_entry", "logbook_delete", "logbook_remove_entry",
            "tag_list", "tag_get", "tag_put", "tags_put", "tag_update",
            "tag_add_entry", "tag_delete", "tag_remove_entry",
        }
        assert set(tools) == expected
        assert MUTATING_TOOLS < expected

    def test_tool_schema(self, manager):
        tools = make_tools(manager)
        for name, tool in tools.items():
            assert tool["name"] == name
            assert tool["description"]
            schema = tool["inputSchema"]
            assert schema["type"] == "object"
            assert set(schema["required"]) <= set(schema["properties"])


class TestEntryTools:
    """Tests for entry tools."""

    @pytest.mark.asyncio
    async def test_put_and_get(self, manager):
        result = await execute_tool(manager, "entry_put", {"id": 7, "entry": entry_args(7, ["A"])})
        assert result["success"] is True
        assert result["entry"]["logbooks"][0]["name"] == "A"

        result = await execute_tool(manager, "entry_get", {"id": 7})
        assert result["success"] is True
        assert result["entry"]["subject"] == "Beam lost"
        assert result["entry"]["created"] is not None

    @pytest.mark.asyncio
    async def test_get_missing(self, manager):
        result = await execute_tool(manager, "entry_get", {"id": 99})
        assert result["success"] is False
        assert result["status"] == 404
        assert result["error_type"] == "not_found"

    @pytest.mark.asyncio
    async def test_create(self, manager):
        result = await execute_tool(manager, "entry_create", {"entry": entry_args(0, ["A"], ["T1"])})
        assert result["success"] is True
        assert result["entry"]["id"] > 0
        assert result["entry"]["tags"][0]["name"] == "T1"

    @pytest.mark.asyncio
    async def test_update_merges(self, manager, seeded_store):
        seeded_store.create(Entry(id=7, owner="ops", logbooks=[Logbook("A", "ops")]))
        result = await execute_tool(manager, "entry_update", {"id": 7, "entry": entry_args(7, ["B"], ["T1"])})
        assert [lb["name"] for lb in result["entry"]["logbooks"]] == ["A", "B"]
        assert [t["name"] for t in result["entry"]["tags"]] == ["T1"]

    @pytest.mark.asyncio
    async def test_update_missing(self, manager):
        result = await execute_tool(manager, "entry_update", {"id": 99, "entry": entry_args(99, ["A"])})
        assert result["status"] == 404

    @pytest.mark.asyncio
    async def test_put_forbidden(self, manager):
        result = await execute_tool(manager, "entry_put", {"id": 7, "entry": entry_args(7, owner="sci")})
        assert result["success"] is False
        assert result["status"] == 403
        assert "alice" in result["error"]

    @pytest.mark.asyncio
    async def test_put_id_mismatch(self, manager):
        result = await execute_tool(manager, "entry_put", {"id": 7, "entry": entry_args(8)})
        assert result["status"] == 400

    @pytest.mark.asyncio
    async def test_entries_put(self, manager):
        result = await execute_tool(
            manager, "entries_put", {"entries": [entry_args(1, ["A"]), entry_args(2, ["B"])]}
        )
        assert [e["id"] for e in result["entries"]] == [1, 2]

    @pytest.mark.asyncio
    async def test_search(self, manager):
        await execute_tool(manager, "entries_put", {"entries": [entry_args(1, ["A"]), entry_args(2, ["B"])]})
        result = await execute_tool(manager, "entry_search", {"criteria": {"logbook": "B"}})
        assert result["count"] == 1
        assert result["entries"][0]["id"] == 2

    @pytest.mark.asyncio
    async def test_search_unknown_key(self, manager):
        result = await execute_tool(manager, "entry_search", {"criteria": {"color": ["red"]}})
        assert result["status"] == 400

    @pytest.mark.asyncio
    async def test_delete(self, manager):
        await execute_tool(manager, "entry_put", {"id": 7, "entry": entry_args(7)})
        result = await execute_tool(manager, "entry_delete", {"id": 7})
        assert result["success"] is True
        result = await execute_tool(manager, "entry_delete", {"id": 7})
        assert result["status"] == 404


class TestLogbookAndTagTools:
    """Tests for logbook and tag tools."""

    @pytest.mark.asyncio
    async def test_logbook_list(self, manager):
        result = await execute_tool(manager, "logbook_list", {})
        assert result["count"] == 3
        assert [lb["name"] for lb in result["logbooks"]] == ["A", "B", "S"]

    @pytest.mark.asyncio
    async def test_logbook_put_with_entry_ids(self, manager):
        await execute_tool(manager, "entry_put", {"id": 1, "entry": entry_args(1)})
        result = await execute_tool(
            manager, "logbook_put", {"name": "new", "logbook": {"name": "new", "owner": "ops", "entries": [1]}}
        )
        assert result["success"] is True
        assert [e["id"] for e in result["logbook"]["entries"]] == [1]

    @pytest.mark.asyncio
    async def test_logbook_get_missing(self, manager):
        result = await execute_tool(manager, "logbook_get", {"name": "nope"})
        assert result["status"] == 404

    @pytest.mark.asyncio
    async def test_logbook_add_and_remove_entry(self, manager):
        await execute_tool(manager, "entry_put", {"id": 1, "entry": entry_args(1, ["A"])})
        await execute_tool(manager, "logbook_add_entry", {"name": "B", "id": 1})
        result = await execute_tool(manager, "entry_get", {"id": 1})
        assert [lb["name"] for lb in result["entry"]["logbooks"]] == ["A", "B"]

        await execute_tool(manager, "logbook_remove_entry", {"name": "A", "id": 1})
        result = await execute_tool(manager, "entry_get", {"id": 1})
        assert [lb["name"] for lb in result["entry"]["logbooks"]] == ["B"]

    @pytest.mark.asyncio
    async def test_logbook_delete_forbidden(self, manager):
        result = await execute_tool(manager, "logbook_delete", {"name": "S"})
        assert result["status"] == 403

    @pytest.mark.asyncio
    async def test_tag_tools(self, manager):
        await execute_tool(manager, "entry_put", {"id": 1, "entry": entry_args(1)})
        result = await execute_tool(manager, "tag_update", {"name": "T2", "tag": {"name": "T2", "entries": [1]}})
        assert [e["id"] for e in result["tag"]["entries"]] == [1]

        result = await execute_tool(manager, "tag_get", {"name": "T2"})
        assert result["tag"]["state"] == "Inactive"

        result = await execute_tool(manager, "tag_delete", {"name": "T2"})
        assert result["success"] is True
        result = await execute_tool(manager, "tag_get", {"name": "T2"})
        assert result["status"] == 404

    @pytest.mark.asyncio
    async def test_tag_update_without_payload(self, manager):
        result = await execute_tool(manager, "tag_update", {"name": "T1"})
        assert result["success"] is True
        assert result["tag"]["entries"] == []


class TestErrorHandling:
    """Tests for argument and dispatch errors."""

    @pytest.mark.asyncio
    async def test_unknown_tool(self, manager):
        result = await execute_tool(manager, "unknown_tool", {})
        assert result["success"] is False
        assert "Unknown tool" in result["error"]

    @pytest.mark.asyncio
    async def test_missing_argument(self, manager):
        result = await execute_tool(manager, "entry_get", {})
        assert result["status"] == 400
        assert "Missing required argument" in result["error"]

    @pytest.mark.asyncio
    async def test_bad_argument(self, manager):
        result = await execute_tool(manager, "entry_get", {"id": "seven"})
        assert result["status"] == 400
        assert result["error_type"] == "bad_request"

    @pytest.mark.asyncio
    async def test_bad_state(self, manager):
        result = await execute_tool(
            manager, "tag_put", {"name": "x", "tag": {"name": "x", "state": "Sleeping"}}
        )
        assert result["status"] == 400


class TestAuditLog:
    """Tests for audit logging of requests."""

    @pytest.mark.asyncio
    async def test_success_is_audited(self, manager, caplog):
        with caplog.at_level(logging.INFO, logger="olog_directory.audit"):
            await execute_tool(manager, "entry_put", {"id": 7, "entry": entry_args(7)})
        records = [r for r in caplog.records if r.name == "olog_directory.audit"]
        assert len(records) == 1
        assert records[0].getMessage().startswith("alice|entry_put|OK|data=")

    @pytest.mark.asyncio
    async def test_failure_is_audited(self, manager, caplog):
        with caplog.at_level(logging.INFO, logger="olog_directory.audit"):
            await execute_tool(manager, "logbook_delete", {"name": "S"})
        records = [r for r in caplog.records if r.name == "olog_directory.audit"]
        assert len(records) == 1
        assert records[0].levelno == logging.WARNING
        assert records[0].getMessage().startswith("alice|logbook_delete|ERROR|403|")

    @pytest.mark.asyncio
    async def test_reads_are_not_audited(self, manager, caplog):
        with caplog.at_level(logging.INFO, logger="olog_directory.audit"):
            await execute_tool(manager, "logbook_list", {})
        assert not [r for r in caplog.records if r.name == "olog_directory.audit"]
