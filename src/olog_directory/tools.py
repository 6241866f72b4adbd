"""MCP tool definitions wrapping the directory manager.

This is the resource layer: it turns tool arguments into model objects,
calls one manager operation, and turns the outcome (or the error) into a
result dictionary. Every request is written to the audit log.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from .errors import DirectoryError, NotFound
from .manager import DirectoryManager
from .models import Entry, Logbook, Tag

logger = logging.getLogger(__name__)
audit = logging.getLogger("olog_directory.audit")

ENTRY_SCHEMA = {
    "type": "object",
    "description": "Log entry: id, owner, subject, description, level, logbooks, tags",
    "properties": {
        "id": {"type": "integer"},
        "owner": {"type": "string", "description": "Owner group"},
        "subject": {"type": "string"},
        "description": {"type": "string"},
        "level": {"type": "string"},
        "logbooks": {
            "type": "array",
            "items": {"type": "object", "properties": {"name": {"type": "string"}, "owner": {"type": "string"}}},
        },
        "tags": {
            "type": "array",
            "items": {"type": "object", "properties": {"name": {"type": "string"}}},
        },
    },
}

ENTRY_REFS_SCHEMA = {
    "type": "array",
    "items": {"type": "integer"},
    "description": "Ids of the entries to associate",
}

LOGBOOK_SCHEMA = {
    "type": "object",
    "description": "Logbook: name, owner, state and the entries it holds",
    "properties": {
        "name": {"type": "string"},
        "owner": {"type": "string", "description": "Owner group"},
        "state": {"type": "string", "enum": ["Active", "Inactive"]},
        "entries": ENTRY_REFS_SCHEMA,
    },
}

TAG_SCHEMA = {
    "type": "object",
    "description": "Tag: name, state and the entries it labels",
    "properties": {
        "name": {"type": "string"},
        "state": {"type": "string", "enum": ["Active", "Inactive"]},
        "entries": ENTRY_REFS_SCHEMA,
    },
}

ID_PROPERTY = {"type": "integer", "description": "Entry id"}
NAME_PROPERTY = {"type": "string", "description": "Logbook or tag name"}

# Tools that change stored state; these go to the audit log at INFO
MUTATING_TOOLS = {
    "entry_create", "entry_put", "entries_put", "entry_update", "entry_delete",
    "logbook_put", "logbooks_put", "logbook_update", "logbook_add_entry",
    "logbook_delete", "logbook_remove_entry",
    "tag_put", "tags_put", "tag_update", "tag_add_entry", "tag_delete", "tag_remove_entry",
}


def _tool(name: str, description: str, properties: dict[str, Any], required: list[str]) -> dict:
    return {
        "name": name,
        "description": description,
        "inputSchema": {
            "type": "object",
            "properties": properties,
            "required": required,
        },
    }


def make_tools(manager: DirectoryManager) -> dict[str, dict]:
    """Create MCP tool definitions for the directory manager.

    Returns:
        Dict mapping tool names to their definitions.
    """
    tools = {}

    # ========== entries ==========
    tools["entry_get"] = _tool(
        "entry_get", "Return a single log entry with its logbooks and tags.",
        {"id": ID_PROPERTY}, ["id"],
    )
    tools["entry_search"] = _tool(
        "entry_search",
        "Find log entries by logbook, tag, search (subject/description) and owner patterns. "
        "'*' and '?' are wildcards; patterns under one key are alternatives, all keys must match.",
        {
            "criteria": {
                "type": "object",
                "additionalProperties": {"type": "array", "items": {"type": "string"}},
                "description": "e.g. {\"logbook\": [\"ops*\"], \"search\": [\"*beam*\"]}",
            },
        },
        ["criteria"],
    )
    tools["entry_create"] = _tool(
        "entry_create", "Create a new log entry. The id is assigned by the directory.",
        {"entry": ENTRY_SCHEMA}, ["entry"],
    )
    tools["entry_put"] = _tool(
        "entry_put",
        "Create or fully replace log entry <id>. Logbooks and tags in the payload replace the existing ones.",
        {"id": ID_PROPERTY, "entry": ENTRY_SCHEMA}, ["id", "entry"],
    )
    tools["entries_put"] = _tool(
        "entries_put", "Create or fully replace several log entries.",
        {"entries": {"type": "array", "items": ENTRY_SCHEMA}}, ["entries"],
    )
    tools["entry_update"] = _tool(
        "entry_update",
        "Merge the logbooks and tags of the payload into existing log entry <id>. Nothing is removed.",
        {"id": ID_PROPERTY, "entry": ENTRY_SCHEMA}, ["id", "entry"],
    )
    tools["entry_delete"] = _tool(
        "entry_delete", "Delete log entry <id>. Fails if it does not exist.",
        {"id": ID_PROPERTY}, ["id"],
    )

    # ========== logbooks ==========
    tools["logbook_list"] = _tool("logbook_list", "List all logbooks.", {}, [])
    tools["logbook_get"] = _tool(
        "logbook_get", "Return a logbook and its entries.", {"name": NAME_PROPERTY}, ["name"],
    )
    tools["logbook_put"] = _tool(
        "logbook_put",
        "Create or replace logbook <name>, attached exclusively to the entries in the payload. Owner is mandatory.",
        {"name": NAME_PROPERTY, "logbook": LOGBOOK_SCHEMA}, ["name", "logbook"],
    )
    tools["logbooks_put"] = _tool(
        "logbooks_put", "Create or replace several logbooks.",
        {"logbooks": {"type": "array", "items": LOGBOOK_SCHEMA}}, ["logbooks"],
    )
    tools["logbook_update"] = _tool(
        "logbook_update", "Add logbook <name> to the entries in the payload.",
        {"name": NAME_PROPERTY, "logbook": LOGBOOK_SCHEMA}, ["name", "logbook"],
    )
    tools["logbook_add_entry"] = _tool(
        "logbook_add_entry", "Add logbook <name> to the single entry <id>.",
        {"name": NAME_PROPERTY, "id": ID_PROPERTY}, ["name", "id"],
    )
    tools["logbook_delete"] = _tool(
        "logbook_delete", "Delete logbook <name> from all entries. Fails if it does not exist.",
        {"name": NAME_PROPERTY}, ["name"],
    )
    tools["logbook_remove_entry"] = _tool(
        "logbook_remove_entry", "Remove logbook <name> from the single entry <id>.",
        {"name": NAME_PROPERTY, "id": ID_PROPERTY}, ["name", "id"],
    )

    # ========== tags ==========
    tools["tag_list"] = _tool("tag_list", "List all tags.", {}, [])
    tools["tag_get"] = _tool(
        "tag_get", "Return a tag and its entries.", {"name": NAME_PROPERTY}, ["name"],
    )
    tools["tag_put"] = _tool(
        "tag_put", "Create or replace tag <name>, attached exclusively to the entries in the payload.",
        {"name": NAME_PROPERTY, "tag": TAG_SCHEMA}, ["name", "tag"],
    )
    tools["tags_put"] = _tool(
        "tags_put", "Create or replace several tags.",
        {"tags": {"type": "array", "items": TAG_SCHEMA}}, ["tags"],
    )
    tools["tag_update"] = _tool(
        "tag_update", "Add tag <name> to the entries in the payload.",
        {"name": NAME_PROPERTY, "tag": TAG_SCHEMA}, ["name"],
    )
    tools["tag_add_entry"] = _tool(
        "tag_add_entry", "Add tag <name> to the single entry <id>.",
        {"name": NAME_PROPERTY, "id": ID_PROPERTY}, ["name", "id"],
    )
    tools["tag_delete"] = _tool(
        "tag_delete", "Delete tag <name> from all entries. Fails if it does not exist.",
        {"name": NAME_PROPERTY}, ["name"],
    )
    tools["tag_remove_entry"] = _tool(
        "tag_remove_entry", "Remove tag <name> from the single entry <id>.",
        {"name": NAME_PROPERTY, "id": ID_PROPERTY}, ["name", "id"],
    )

    return tools


def _criteria(arguments: dict[str, Any]) -> dict[str, list[str]]:
    criteria = {}
    for key, value in arguments["criteria"].items():
        criteria[key] = [value] if isinstance(value, str) else list(value)
    return criteria


def _dispatch(manager: DirectoryManager, name: str, arguments: dict[str, Any]) -> dict[str, Any]:
    if name == "entry_get":
        entry = manager.find_entry(int(arguments["id"]))
        if entry is None:
            return NotFound(f"Log id '{arguments['id']}' does not exist").to_dict()
        return {"success": True, "entry": entry.to_dict()}

    elif name == "entry_search":
        entries = manager.find_entries(_criteria(arguments))
        return {"success": True, "count": len(entries), "entries": [e.to_dict() for e in entries]}

    elif name == "entry_create":
        entry = manager.create_entry(Entry.from_dict(arguments["entry"]))
        return {"success": True, "entry": entry.to_dict(), "message": f"Log {entry.id} created"}

    elif name == "entry_put":
        entry = manager.create_or_replace_entry(int(arguments["id"]), Entry.from_dict(arguments["entry"]))
        return {"success": True, "entry": entry.to_dict()}

    elif name == "entries_put":
        entries = manager.create_or_replace_entries([Entry.from_dict(e) for e in arguments["entries"]])
        return {"success": True, "entries": [e.to_dict() for e in entries]}

    elif name == "entry_update":
        entry = manager.update_entry(int(arguments["id"]), Entry.from_dict(arguments["entry"]))
        return {"success": True, "entry": entry.to_dict()}

    elif name == "entry_delete":
        manager.remove_existing_entry(int(arguments["id"]))
        return {"success": True, "message": f"Log {arguments['id']} deleted"}

    elif name == "logbook_list":
        logbooks = manager.list_logbooks()
        return {"success": True, "count": len(logbooks), "logbooks": [lb.to_dict() for lb in logbooks]}

    elif name == "logbook_get":
        logbook = manager.find_logbook(arguments["name"])
        if logbook is None:
            return NotFound(f"Logbook '{arguments['name']}' does not exist").to_dict()
        return {"success": True, "logbook": logbook.to_dict()}

    elif name == "logbook_put":
        logbook = manager.create_or_replace_logbook(arguments["name"], Logbook.from_dict(arguments["logbook"]))
        return {"success": True, "logbook": logbook.to_dict()}

    elif name == "logbooks_put":
        logbooks = manager.create_or_replace_logbooks([Logbook.from_dict(lb) for lb in arguments["logbooks"]])
        return {"success": True, "logbooks": [lb.to_dict() for lb in logbooks]}

    elif name == "logbook_update":
        logbook = manager.update_logbook(arguments["name"], Logbook.from_dict(arguments["logbook"]))
        return {"success": True, "logbook": logbook.to_dict()}

    elif name == "logbook_add_entry":
        manager.add_single_logbook(arguments["name"], int(arguments["id"]))
        return {"success": True, "message": f"Logbook {arguments['name']} added to log {arguments['id']}"}

    elif name == "logbook_delete":
        manager.remove_existing_logbook(arguments["name"])
        return {"success": True, "message": f"Logbook {arguments['name']} deleted"}

    elif name == "logbook_remove_entry":
        manager.remove_single_logbook(arguments["name"], int(arguments["id"]))
        return {"success": True, "message": f"Logbook {arguments['name']} removed from log {arguments['id']}"}

    elif name == "tag_list":
        tags = manager.list_tags()
        return {"success": True, "count": len(tags), "tags": [t.to_dict() for t in tags]}

    elif name == "tag_get":
        tag = manager.find_tag(arguments["name"])
        if tag is None:
            return NotFound(f"Tag '{arguments['name']}' does not exist").to_dict()
        return {"success": True, "tag": tag.to_dict()}

    elif name == "tag_put":
        tag = manager.create_or_replace_tag(arguments["name"], Tag.from_dict(arguments["tag"]))
        return {"success": True, "tag": tag.to_dict()}

    elif name == "tags_put":
        tags = manager.create_or_replace_tags([Tag.from_dict(t) for t in arguments["tags"]])
        return {"success": True, "tags": [t.to_dict() for t in tags]}

    elif name == "tag_update":
        payload = arguments.get("tag")
        tag = manager.update_tag(arguments["name"], Tag.from_dict(payload) if payload is not None else None)
        return {"success": True, "tag": tag.to_dict()}

    elif name == "tag_add_entry":
        manager.add_single_tag(arguments["name"], int(arguments["id"]))
        return {"success": True, "message": f"Tag {arguments['name']} added to log {arguments['id']}"}

    elif name == "tag_delete":
        manager.remove_existing_tag(arguments["name"])
        return {"success": True, "message": f"Tag {arguments['name']} deleted"}

    elif name == "tag_remove_entry":
        manager.remove_single_tag(arguments["name"], int(arguments["id"]))
        return {"success": True, "message": f"Tag {arguments['name']} removed from log {arguments['id']}"}

    return {
        "success": False,
        "error": f"Unknown tool: {name}",
    }


async def execute_tool(manager: DirectoryManager, name: str, arguments: dict[str, Any]) -> dict[str, Any]:
    """Execute a directory tool and return the result.

    Args:
        manager: DirectoryManager instance
        name: Tool name
        arguments: Tool arguments

    Returns:
        Result dict with success status and data or error
    """
    user = manager.users.current_user_name()
    try:
        result = _dispatch(manager, name, arguments)

    except DirectoryError as e:
        audit.warning("%s|%s|ERROR|%d|data=%s|cause=%s",
                       user, name, e.status, json.dumps(arguments, default=str), e)
        return e.to_dict()

    except KeyError as e:
        audit.warning("%s|%s|ERROR|400|cause=missing argument %s", user, name, e)
        return {
            "success": False,
            "error": f"Missing required argument: {e}",
            "error_type": "bad_request",
            "status": 400,
        }

    except (TypeError, ValueError) as e:
        audit.warning("%s|%s|ERROR|400|cause=%s", user, name, e)
        return {
            "success": False,
            "error": str(e),
            "error_type": "bad_request",
            "status": 400,
        }

    except Exception as e:
        logger.exception("%s|%s|ERROR|500|unexpected failure", user, name)
        return {
            "success": False,
            "error": str(e),
            "error_type": "unexpected_error",
            "status": 500,
        }

    if name in MUTATING_TOOLS and result.get("success"):
        audit.info("%s|%s|OK|data=%s", user, name, json.dumps(arguments, default=str))
    else:
        logger.debug("%s|%s|%s", user, name, "OK" if result.get("success") else "NOT OK")
    return result
