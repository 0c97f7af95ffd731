"""Editor RPC handlers - block editing intents for open documents.

Every mutating handler returns the session state: the ordered block list,
the focused block id, undo/redo availability, the slash menu and the last
persistence error (if any).
"""

from __future__ import annotations

import logging
from typing import Any, Callable

from blockpad.document.editor import EditorEngine
from blockpad.rpc_validation import (
    ERROR_INTERNAL,
    ERROR_INVALID_PARAMS,
    ERROR_INVALID_REQUEST,
    ERROR_METHOD_NOT_FOUND,
    JSON,
    jsonrpc_error,
    jsonrpc_result,
    validate_id,
    validate_params_object,
)

from . import RpcError
from ._base import require_params, rpc_handler
from .sessions import EditorSessions

logger = logging.getLogger(__name__)


def _state(sessions: EditorSessions, document_id: str) -> dict[str, Any]:
    return sessions.get(document_id).state()


def _engine(sessions: EditorSessions, document_id: str) -> EditorEngine:
    return sessions.get(validate_id(document_id, "document_id")).engine


# =============================================================================
# Session Handlers
# =============================================================================


@require_params()
@rpc_handler("editor/open")
def handle_editor_open(
    sessions: EditorSessions,
    *,
    document_id: str | None = None,
    title: str = "",
) -> dict[str, Any]:
    """Open a document (creating one when no id is given)."""
    if document_id is not None:
        validate_id(document_id, "document_id")
    session = sessions.open(document_id, title=title)
    return session.state()


@require_params("document_id")
@rpc_handler("editor/close")
def handle_editor_close(sessions: EditorSessions, *, document_id: str) -> dict[str, Any]:
    persisted = sessions.close(validate_id(document_id, "document_id"))
    return {"document_id": document_id, "closed": True, "persisted": persisted}


@require_params("document_id")
@rpc_handler("editor/state")
def handle_editor_state(sessions: EditorSessions, *, document_id: str) -> dict[str, Any]:
    return _state(sessions, validate_id(document_id, "document_id"))


# =============================================================================
# Block Handlers
# =============================================================================


@require_params("document_id", "block_id")
@rpc_handler("editor/insert_after")
def handle_editor_insert_after(
    sessions: EditorSessions,
    *,
    document_id: str,
    block_id: str,
    type: str = "text",
    content: str = "",
) -> dict[str, Any]:
    """Insert a block after ``block_id``.

    Args:
        document_id: Open document
        block_id: Anchor block
        type: Block type tag for the new block
        content: Initial content

    Returns:
        Session state; the new block is focused.
    """
    _engine(sessions, document_id).insert_after(block_id, type, content)
    return _state(sessions, document_id)


@require_params("document_id", "block_id")
@rpc_handler("editor/delete")
def handle_editor_delete(
    sessions: EditorSessions, *, document_id: str, block_id: str
) -> dict[str, Any]:
    _engine(sessions, document_id).delete(block_id)
    return _state(sessions, document_id)


@require_params("document_id", "block_ids")
@rpc_handler("editor/delete_selection")
def handle_editor_delete_selection(
    sessions: EditorSessions,
    *,
    document_id: str,
    block_ids: list[str],
) -> dict[str, Any]:
    if not isinstance(block_ids, list):
        raise RpcError(code=ERROR_INVALID_PARAMS, message="block_ids must be a list")
    _engine(sessions, document_id).delete_selection(block_ids)
    return _state(sessions, document_id)


@require_params("document_id", "block_id", "type")
@rpc_handler("editor/convert")
def handle_editor_convert(
    sessions: EditorSessions, *, document_id: str, block_id: str, type: str
) -> dict[str, Any]:
    _engine(sessions, document_id).convert(block_id, type)
    return _state(sessions, document_id)


@require_params("document_id", "block_id", "content")
@rpc_handler("editor/update_content")
def handle_editor_update_content(
    sessions: EditorSessions, *, document_id: str, block_id: str, content: str
) -> dict[str, Any]:
    if not isinstance(content, str):
        raise RpcError(code=ERROR_INVALID_PARAMS, message="content must be a string")
    _engine(sessions, document_id).update_content(block_id, content)
    return _state(sessions, document_id)


@require_params("document_id", "block_id")
@rpc_handler("editor/indent")
def handle_editor_indent(
    sessions: EditorSessions, *, document_id: str, block_id: str
) -> dict[str, Any]:
    _engine(sessions, document_id).indent(block_id)
    return _state(sessions, document_id)


@require_params("document_id", "block_id")
@rpc_handler("editor/outdent")
def handle_editor_outdent(
    sessions: EditorSessions, *, document_id: str, block_id: str
) -> dict[str, Any]:
    _engine(sessions, document_id).outdent(block_id)
    return _state(sessions, document_id)


@require_params("document_id", "block_id")
@rpc_handler("editor/move")
def handle_editor_move(
    sessions: EditorSessions,
    *,
    document_id: str,
    block_id: str,
    before_id: str | None = None,
) -> dict[str, Any]:
    """Move a block before ``before_id`` (or to the end when omitted)."""
    moved = _engine(sessions, document_id).move(block_id, before_id)
    state = _state(sessions, document_id)
    state["moved"] = moved
    return state


# =============================================================================
# Focus / History Handlers
# =============================================================================


@require_params("document_id")
@rpc_handler("editor/focus_next")
def handle_editor_focus_next(sessions: EditorSessions, *, document_id: str) -> dict[str, Any]:
    _engine(sessions, document_id).focus_next()
    return _state(sessions, document_id)


@require_params("document_id")
@rpc_handler("editor/focus_previous")
def handle_editor_focus_previous(
    sessions: EditorSessions, *, document_id: str
) -> dict[str, Any]:
    _engine(sessions, document_id).focus_previous()
    return _state(sessions, document_id)


@require_params("document_id")
@rpc_handler("editor/undo")
def handle_editor_undo(sessions: EditorSessions, *, document_id: str) -> dict[str, Any]:
    _engine(sessions, document_id).undo()
    return _state(sessions, document_id)


@require_params("document_id")
@rpc_handler("editor/redo")
def handle_editor_redo(sessions: EditorSessions, *, document_id: str) -> dict[str, Any]:
    _engine(sessions, document_id).redo()
    return _state(sessions, document_id)


# =============================================================================
# Slash Menu Handlers
# =============================================================================


@require_params("document_id", "block_id")
@rpc_handler("editor/slash/open")
def handle_editor_slash_open(
    sessions: EditorSessions, *, document_id: str, block_id: str
) -> dict[str, Any]:
    _engine(sessions, document_id).open_slash_menu(block_id)
    return _state(sessions, document_id)


@require_params("document_id", "query")
@rpc_handler("editor/slash/filter")
def handle_editor_slash_filter(
    sessions: EditorSessions, *, document_id: str, query: str
) -> dict[str, Any]:
    _engine(sessions, document_id).filter_slash_menu(query)
    return _state(sessions, document_id)


@require_params("document_id", "delta")
@rpc_handler("editor/slash/move")
def handle_editor_slash_move(
    sessions: EditorSessions, *, document_id: str, delta: int
) -> dict[str, Any]:
    _engine(sessions, document_id).move_slash_selection(int(delta))
    return _state(sessions, document_id)


@require_params("document_id")
@rpc_handler("editor/slash/select")
def handle_editor_slash_select(
    sessions: EditorSessions, *, document_id: str, index: int | None = None
) -> dict[str, Any]:
    _engine(sessions, document_id).select_slash_menu_entry(index)
    return _state(sessions, document_id)


@require_params("document_id")
@rpc_handler("editor/slash/close")
def handle_editor_slash_close(sessions: EditorSessions, *, document_id: str) -> dict[str, Any]:
    _engine(sessions, document_id).close_slash_menu()
    return _state(sessions, document_id)


# =============================================================================
# Markdown Handlers
# =============================================================================


@require_params("document_id")
@rpc_handler("editor/export_markdown")
def handle_editor_export_markdown(
    sessions: EditorSessions, *, document_id: str
) -> dict[str, Any]:
    markdown = _engine(sessions, document_id).to_markdown()
    return {"document_id": document_id, "markdown": markdown}


@require_params("document_id", "markdown")
@rpc_handler("editor/import_markdown")
def handle_editor_import_markdown(
    sessions: EditorSessions, *, document_id: str, markdown: str
) -> dict[str, Any]:
    """Replace the document with blocks parsed from markdown (undoable)."""
    if not isinstance(markdown, str):
        raise RpcError(code=ERROR_INVALID_PARAMS, message="markdown must be a string")
    _engine(sessions, document_id).load_markdown(markdown)
    return _state(sessions, document_id)


# =============================================================================
# Dispatch
# =============================================================================


EDITOR_HANDLERS: dict[str, Callable[..., dict[str, Any]]] = {
    handler.rpc_method: handler  # type: ignore[attr-defined]
    for handler in (
        handle_editor_open,
        handle_editor_close,
        handle_editor_state,
        handle_editor_insert_after,
        handle_editor_delete,
        handle_editor_delete_selection,
        handle_editor_convert,
        handle_editor_update_content,
        handle_editor_indent,
        handle_editor_outdent,
        handle_editor_move,
        handle_editor_focus_next,
        handle_editor_focus_previous,
        handle_editor_undo,
        handle_editor_redo,
        handle_editor_slash_open,
        handle_editor_slash_filter,
        handle_editor_slash_move,
        handle_editor_slash_select,
        handle_editor_slash_close,
        handle_editor_export_markdown,
        handle_editor_import_markdown,
    )
}


def dispatch(sessions: EditorSessions, method: str, params: Any = None) -> dict[str, Any]:
    """Route one call to its handler.

    Raises:
        RpcError: Unknown method, malformed params, or a handler error.
    """
    handler = EDITOR_HANDLERS.get(method)
    if handler is None:
        raise RpcError(code=ERROR_METHOD_NOT_FOUND, message=f"Method not found: {method}")
    return handler(sessions, **validate_params_object(params))


def handle_request(sessions: EditorSessions, request: Any) -> JSON:
    """Answer a decoded JSON-RPC 2.0 request object."""
    if not isinstance(request, dict):
        return jsonrpc_error(req_id=None, code=ERROR_INVALID_REQUEST, message="Invalid Request")

    req_id = request.get("id")
    method = request.get("method")
    if not isinstance(method, str):
        return jsonrpc_error(req_id=req_id, code=ERROR_INVALID_REQUEST, message="method is required")

    try:
        result = dispatch(sessions, method, request.get("params"))
    except RpcError as e:
        return jsonrpc_error(req_id=req_id, code=e.code, message=e.message, data=e.data)
    except Exception as e:
        logger.error("Unhandled error dispatching %s: %s", method, e, exc_info=True)
        return jsonrpc_error(req_id=req_id, code=ERROR_INTERNAL, message="Internal error")
    return jsonrpc_result(req_id=req_id, result=result)
