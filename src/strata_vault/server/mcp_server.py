"""MCP server implementation for the Strata vault."""

import json
import logging
import uuid
from typing import Any, Callable, Dict, List, Optional

from mcp.server.fastmcp import FastMCP
from pydantic import ValidationError as PydanticValidationError

from strata_vault.config import config
from strata_vault.exceptions import StrataError, ValidationError
from strata_vault.models.schema import Connection, Entry, EntryMeta
from strata_vault.observability import timed_operation
from strata_vault.services.vault_service import VaultService

logger = logging.getLogger(__name__)

MAX_TITLE_LENGTH = 500
MAX_BODY_LENGTH = 1_000_000  # 1 MB


def _validate_input_lengths(
    title: Optional[str] = None, body: Optional[str] = None
) -> None:
    """Validate input string lengths at the MCP boundary."""
    if title and len(title) > MAX_TITLE_LENGTH:
        raise ValueError(
            f"Title exceeds maximum length of {MAX_TITLE_LENGTH} characters"
        )
    if body and len(body) > MAX_BODY_LENGTH:
        raise ValueError(
            f"Body exceeds maximum length of {MAX_BODY_LENGTH} characters"
        )


def _split_csv(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


def entry_to_wire(entry: EntryMeta) -> Dict[str, Any]:
    """Render an entry (or its metadata) with the field names the UI uses."""
    data = entry.model_dump(mode="json")
    sort_order = data.pop("sort_order", None)
    if sort_order is not None:
        data["sortOrder"] = sort_order
    return data


def entry_from_wire(data: Dict[str, Any]) -> Entry:
    """Build a full entry value from its wire form."""
    payload = dict(data)
    if "sortOrder" in payload:
        payload["sort_order"] = payload.pop("sortOrder")
    return Entry.model_validate(payload)


class StrataMcpServer:
    """MCP server for the Strata vault."""

    def __init__(self, service: Optional[VaultService] = None):
        """Initialize the MCP server.

        Args:
            service: Vault service to expose. Created from config if None.
        """
        self.mcp = FastMCP(config.server_name)
        self.vault_service = service or VaultService()
        self.initialize()
        self._register_tools()

    def initialize(self) -> None:
        """Initialize services."""
        self.vault_service.initialize()
        logger.info("Strata MCP server initialized")

    def format_error_response(self, error: Exception) -> str:
        """Format an error response in a consistent way.

        Args:
            error: The exception that occurred

        Returns:
            Formatted error message with appropriate level of detail
        """
        error_id = str(uuid.uuid4())[:8]

        if isinstance(error, StrataError):
            logger.error(
                f"[{error.code.name}] [{error_id}]: {error.message}",
                extra={"error_details": error.details},
            )
            return f"Error: {error.message}"
        elif isinstance(error, ValueError):
            logger.error(f"Validation error [{error_id}]: {str(error)}")
            return f"Error: Invalid input (ref: {error_id})"
        elif isinstance(error, (IOError, OSError)):
            logger.error(f"File system error [{error_id}]: {str(error)}", exc_info=True)
            return f"Error: A file system error occurred (ref: {error_id})"
        else:
            logger.error(f"Unexpected error [{error_id}]: {str(error)}", exc_info=True)
            return f"Error: An unexpected error occurred (ref: {error_id})"

    def _run(self, operation: str, action: Callable[[], Any], **context: Any) -> str:
        """Run one contract operation and render its result as JSON text."""
        try:
            with timed_operation(operation, **context) as op:
                result = action()
                if isinstance(result, list):
                    op["result_count"] = len(result)
            return json.dumps(result, ensure_ascii=False)
        except Exception as e:
            return self.format_error_response(e)

    def _register_tools(self) -> None:
        """Register MCP tools."""
        service = self.vault_service

        def maybe_entry(entry: Optional[EntryMeta]) -> Optional[Dict[str, Any]]:
            return entry_to_wire(entry) if entry is not None else None

        @self.mcp.tool(name="strata_list_entries")
        def strata_list_entries() -> str:
            """List metadata (no body) for every entry in the vault."""
            return self._run(
                "strata_list_entries",
                lambda: [entry_to_wire(e) for e in service.list_entries()],
            )

        @self.mcp.tool(name="strata_read_entry")
        def strata_read_entry(entry_id: str) -> str:
            """Read one entry including its body; returns null if it does not exist.
            Args:
                entry_id: ID of the entry
            """
            return self._run(
                "strata_read_entry",
                lambda: maybe_entry(service.read_entry(entry_id)),
                entry_id=entry_id,
            )

        @self.mcp.tool(name="strata_write_entry")
        def strata_write_entry(entry: str) -> str:
            """Write a full entry value, replacing any previous version.
            Args:
                entry: JSON object with every entry field, including the body
            """
            def action():
                try:
                    value = entry_from_wire(json.loads(entry))
                except (json.JSONDecodeError, PydanticValidationError) as e:
                    raise ValidationError(f"Invalid entry payload: {e}", field="entry") from e
                _validate_input_lengths(title=value.title, body=value.body)
                return entry_to_wire(service.write_entry(value))

            return self._run("strata_write_entry", action)

        @self.mcp.tool(name="strata_create_entry")
        def strata_create_entry(
            title: str = "",
            body: str = "",
            notebook: str = "",
            tags: Optional[str] = None,
            structure: Optional[str] = None,
            pressure: Optional[str] = None,
        ) -> str:
            """Create a new entry with a fresh ID.
            Args:
                title: Title of the entry
                body: Markdown body
                notebook: Notebook path, "Notebook" or "Notebook/Section"
                tags: Comma-separated list of tags (optional)
                structure: thought, idea, question, decision, system or insight
                pressure: low, medium or high
            """
            def action():
                _validate_input_lengths(title=title, body=body)
                return entry_to_wire(
                    service.create_entry(
                        title=title,
                        body=body,
                        notebook=notebook,
                        tags=_split_csv(tags),
                        structure=structure,
                        pressure=pressure,
                    )
                )

            return self._run("strata_create_entry", action, title=title[:30])

        def register_flag_tool(name: str, method: Callable, doc: str) -> None:
            def tool(entry_id: str) -> str:
                return self._run(name, lambda: maybe_entry(method(entry_id)), entry_id=entry_id)

            tool.__name__ = name
            tool.__doc__ = f"{doc}\n            Args:\n                entry_id: ID of the entry\n            "
            self.mcp.tool(name=name)(tool)

        register_flag_tool("strata_archive_entry", service.archive_entry, "Move an entry to the archive.")
        register_flag_tool("strata_trash_entry", service.trash_entry, "Move an entry to the trash.")
        register_flag_tool(
            "strata_restore_entry", service.restore_entry,
            "Take an entry out of both the trash and the archive.",
        )
        register_flag_tool("strata_pin_entry", service.pin_entry, "Pin an entry to the top of lists.")
        register_flag_tool("strata_unpin_entry", service.unpin_entry, "Unpin an entry.")

        @self.mcp.tool(name="strata_delete_entry")
        def strata_delete_entry(entry_id: str) -> str:
            """Permanently delete an entry and its connections.
            Args:
                entry_id: ID of the entry
            """
            return self._run(
                "strata_delete_entry",
                lambda: {"deleted": service.delete_entry_permanently(entry_id)},
                entry_id=entry_id,
            )

        @self.mcp.tool(name="strata_search_entries")
        def strata_search_entries(query: str) -> str:
            """Find entries whose title or body contains the query (case-insensitive).
            Args:
                query: Text to look for; must not be blank
            """
            def action():
                if not query.strip():
                    raise ValidationError("Search query cannot be empty", field="query")
                return [entry_to_wire(e) for e in service.search_entries(query)]

            return self._run("strata_search_entries", action, query=query[:30])

        @self.mcp.tool(name="strata_list_view")
        def strata_list_view(
            view: str = "all",
            name: Optional[str] = None,
            notebook: Optional[str] = None,
            section: Optional[str] = None,
        ) -> str:
            """List the entries of a view in display order.
            Args:
                view: all, pinned, archive, trash, notebook or tag
                name: Notebook value or tag for the notebook and tag views
                notebook: Optional notebook narrowing the all, pinned and archive views
                section: Optional section within the notebook
            """
            return self._run(
                "strata_list_view",
                lambda: [
                    entry_to_wire(e)
                    for e in service.list_view(view, name=name, notebook=notebook, section=section)
                ],
                view=view,
            )

        @self.mcp.tool(name="strata_list_notebooks")
        def strata_list_notebooks() -> str:
            """List the distinct notebook values used by entries."""
            return self._run("strata_list_notebooks", service.list_notebooks)

        @self.mcp.tool(name="strata_list_sections")
        def strata_list_sections(notebook: str) -> str:
            """List the sections of a notebook, General first.
            Args:
                notebook: Notebook name
            """
            return self._run(
                "strata_list_sections", lambda: service.list_sections(notebook),
                notebook=notebook,
            )

        @self.mcp.tool(name="strata_list_tags")
        def strata_list_tags() -> str:
            """List every tag used by entries."""
            return self._run("strata_list_tags", service.list_tags)

        @self.mcp.tool(name="strata_create_section")
        def strata_create_section(notebook: str, name: str) -> str:
            """Create a section in a notebook by adding an empty entry to it.
            Args:
                notebook: Notebook name
                name: New section name
            """
            return self._run(
                "strata_create_section",
                lambda: maybe_entry(service.create_section(notebook, name)),
                notebook=notebook,
            )

        @self.mcp.tool(name="strata_rename_section")
        def strata_rename_section(notebook: str, old_section: str, new_section: str) -> str:
            """Move every entry of a section to a new section name.
            Args:
                notebook: Notebook holding the section
                old_section: Current section name
                new_section: New section name
            """
            return self._run(
                "strata_rename_section",
                lambda: {"count": service.rename_section(notebook, old_section, new_section)},
                notebook=notebook,
            )

        @self.mcp.tool(name="strata_reorder_entries")
        def strata_reorder_entries(updates: str) -> str:
            """Apply manual sort positions.
            Args:
                updates: JSON list of {"id": ..., "sortOrder": ...} objects
            """
            def action():
                try:
                    items = json.loads(updates)
                    pairs = [(item["id"], item["sortOrder"]) for item in items]
                except (json.JSONDecodeError, KeyError, TypeError) as e:
                    raise ValidationError(f"Invalid reorder payload: {e}", field="updates") from e
                return {"count": service.reorder_entries(pairs)}

            return self._run("strata_reorder_entries", action)

        @self.mcp.tool(name="strata_move_entries")
        def strata_move_entries(entry_ids: str) -> str:
            """Renumber entries so they display in the given order.
            Args:
                entry_ids: Comma-separated entry IDs in their new order
            """
            return self._run(
                "strata_move_entries",
                lambda: [
                    {"id": entry_id, "sortOrder": order}
                    for entry_id, order in service.move_entries(_split_csv(entry_ids))
                ],
            )

        @self.mcp.tool(name="strata_get_connections")
        def strata_get_connections() -> str:
            """List every connection between entries."""
            return self._run(
                "strata_get_connections",
                lambda: [c.to_dict() for c in service.get_connections()],
            )

        @self.mcp.tool(name="strata_add_connection")
        def strata_add_connection(from_id: str, to_id: str) -> str:
            """Connect two entries (no-op if already connected either way).
            Args:
                from_id: One entry ID
                to_id: The other entry ID
            """
            return self._run(
                "strata_add_connection",
                lambda: {"added": service.add_connection(Connection(source=from_id, target=to_id))},
            )

        @self.mcp.tool(name="strata_remove_connection")
        def strata_remove_connection(from_id: str, to_id: str) -> str:
            """Remove the connection between two entries, in either direction.
            Args:
                from_id: One entry ID
                to_id: The other entry ID
            """
            return self._run(
                "strata_remove_connection",
                lambda: {"removed": service.remove_connection(from_id, to_id)},
            )

        @self.mcp.tool(name="strata_get_settings")
        def strata_get_settings() -> str:
            """Show the vault location."""
            return self._run("strata_get_settings", service.get_settings)

        @self.mcp.tool(name="strata_set_vault_path")
        def strata_set_vault_path(path: str) -> str:
            """Switch to another vault folder, creating its layout if needed.
            Args:
                path: Vault root directory
            """
            def action():
                if not path.strip():
                    raise ValidationError("Vault path cannot be empty", field="path")
                return service.set_vault_path(path.strip())

            return self._run("strata_set_vault_path", action)

    def run(self) -> None:
        """Run the MCP server."""
        self.mcp.run()
