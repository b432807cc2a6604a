"""MCP tool definitions wrapping the diff journal."""

from __future__ import annotations

from typing import Any

from .engine import DiffJournal
from .errors import (
    CorruptedJournal,
    InvalidInput,
    JournalError,
    PatchApplicationError,
    StrictReplayMismatch,
)

FILE_PROPERTY = {
    "type": "string",
    "description": "Tracked file, relative to the root directory",
}


def make_tools(journal: DiffJournal) -> dict[str, dict]:
    """Create MCP tool definitions for the diff journal.

    Returns:
        Dict mapping tool names to their definitions.
    """

    tools = {}

    # ========== journal_append ==========
    tools["journal_append"] = {
        "name": "journal_append",
        "description": "Record a change to a tracked file as an attributed diff. Never rewrites earlier entries.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "file": FILE_PROPERTY,
                "actor": {
                    "type": "string",
                    "description": "Who/what is making this change",
                },
                "intent": {
                    "type": "string",
                    "description": "Why the change is being made",
                },
                "before": {
                    "type": "string",
                    "description": "File content before the change (empty for a new file)",
                },
                "after": {
                    "type": "string",
                    "description": "File content after the change",
                },
            },
            "required": ["file", "actor", "intent", "before", "after"],
        },
    }

    # ========== journal_materialize ==========
    tools["journal_materialize"] = {
        "name": "journal_materialize",
        "description": "Replay the full journal and write the file's current content.",
        "inputSchema": {
            "type": "object",
            "properties": {"file": FILE_PROPERTY},
            "required": ["file"],
        },
    }

    # ========== journal_rollback ==========
    tools["journal_rollback"] = {
        "name": "journal_rollback",
        "description": "Write the file's content as of a given seq. Later entries stay in the journal.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "file": FILE_PROPERTY,
                "seq": {
                    "type": "integer",
                    "minimum": 1,
                    "description": "Last entry to replay",
                },
            },
            "required": ["file", "seq"],
        },
    }

    # ========== journal_exists ==========
    tools["journal_exists"] = {
        "name": "journal_exists",
        "description": "Check whether a journal exists for a file.",
        "inputSchema": {
            "type": "object",
            "properties": {"file": FILE_PROPERTY},
            "required": ["file"],
        },
    }

    # ========== journal_inspect ==========
    tools["journal_inspect"] = {
        "name": "journal_inspect",
        "description": "Summarize a journal: entry count and seq range. Diagnostic only.",
        "inputSchema": {
            "type": "object",
            "properties": {"file": FILE_PROPERTY},
            "required": ["file"],
        },
    }

    # ========== journal_history ==========
    tools["journal_history"] = {
        "name": "journal_history",
        "description": "List who changed a file, when and why, in seq order.",
        "inputSchema": {
            "type": "object",
            "properties": {"file": FILE_PROPERTY},
            "required": ["file"],
        },
    }

    # ========== journal_verify ==========
    tools["journal_verify"] = {
        "name": "journal_verify",
        "description": "Check the journal's hash chain by replaying it strictly. Writes nothing.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "file": FILE_PROPERTY,
                "seq": {
                    "type": "integer",
                    "minimum": 1,
                    "description": "Verify only up to this seq",
                },
            },
            "required": ["file"],
        },
    }

    return tools


async def execute_tool(journal: DiffJournal, name: str, arguments: dict[str, Any]) -> dict[str, Any]:
    """Execute a journal tool and return the result.

    Args:
        journal: DiffJournal instance
        name: Tool name
        arguments: Tool arguments

    Returns:
        Result dict with success status and data or error
    """
    try:
        if name == "journal_append":
            entry = journal.append(
                file=arguments.get("file"),
                actor=arguments.get("actor"),
                intent=arguments.get("intent"),
                before=arguments.get("before"),
                after=arguments.get("after"),
            )
            return {
                "success": True,
                "file": entry.file,
                "seq": entry.seq,
                "timestamp": entry.timestamp,
                "base_hash": entry.base_hash,
                "message": f"Recorded {entry.file} seq {entry.seq}",
            }

        elif name == "journal_materialize":
            target = journal.materialize(arguments.get("file"))
            return {
                "success": True,
                "path": str(target),
                "message": f"Materialized {arguments['file']}",
            }

        elif name == "journal_rollback":
            target = journal.rollback(arguments.get("file"), arguments.get("seq"))
            return {
                "success": True,
                "path": str(target),
                "seq": arguments["seq"],
                "message": f"Rolled back {arguments['file']} to seq {arguments['seq']}",
            }

        elif name == "journal_exists":
            return {
                "success": True,
                "exists": journal.exists(arguments.get("file")),
            }

        elif name == "journal_inspect":
            summary = journal.inspect(arguments.get("file"))
            return {"success": True, **summary.to_dict()}

        elif name == "journal_history":
            entries = journal.history(arguments.get("file"))
            return {
                "success": True,
                "count": len(entries),
                "entries": [e.to_dict() for e in entries],
            }

        elif name == "journal_verify":
            report = journal.verify(arguments.get("file"), arguments.get("seq"))
            return {"success": True, "verified": True, **report.to_dict()}

        else:
            return {
                "success": False,
                "error": f"Unknown tool: {name}",
                "error_type": "unknown_tool",
            }

    except InvalidInput as e:
        return {
            "success": False,
            **e.to_dict(),
            "suggestion": "Check the arguments: files must be relative paths outside the journal directory",
        }

    except StrictReplayMismatch as e:
        return {
            "success": False,
            **e.to_dict(),
            "suggestion": "The journal was modified after it was written; restore it from a trusted copy",
        }

    except PatchApplicationError as e:
        return {
            "success": False,
            **e.to_dict(),
            "suggestion": "A recorded diff no longer applies; the journal needs manual repair",
        }

    except CorruptedJournal as e:
        return {
            "success": False,
            **e.to_dict(),
        }

    except JournalError as e:
        return {
            "success": False,
            "error": str(e),
            "error_type": "journal_error",
        }

    except Exception as e:
        return {
            "success": False,
            "error": str(e),
            "error_type": "unexpected_error",
        }
