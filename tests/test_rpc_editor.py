"""Tests for editor RPC handlers, sessions and error mapping."""

from __future__ import annotations

import sqlite3
from pathlib import Path

import pytest
import tenacity

from blockpad.document import blocks_db
from blockpad.document.persistence import PersistenceWriter
from blockpad.rpc_handlers import RpcError
from blockpad.rpc_handlers.editor import EDITOR_HANDLERS, dispatch, handle_request
from blockpad.rpc_handlers.sessions import EditorSessions


@pytest.fixture
def sessions(temp_data_dir: Path):
    """Sessions whose writers only flush on close."""
    registry = EditorSessions(
        writer_factory=lambda **callbacks: PersistenceWriter(
            delay=3600.0, wait=tenacity.wait_none(), **callbacks
        )
    )
    yield registry
    registry.close_all()


@pytest.fixture
def opened(sessions: EditorSessions) -> dict:
    return dispatch(sessions, "editor/open", {"title": "Scratch"})


class TestMethodTable:
    def test_all_intents_registered(self) -> None:
        expected = {
            "editor/open",
            "editor/close",
            "editor/state",
            "editor/insert_after",
            "editor/delete",
            "editor/delete_selection",
            "editor/convert",
            "editor/update_content",
            "editor/indent",
            "editor/outdent",
            "editor/move",
            "editor/focus_next",
            "editor/focus_previous",
            "editor/undo",
            "editor/redo",
            "editor/slash/open",
            "editor/slash/filter",
            "editor/slash/select",
            "editor/slash/close",
            "editor/export_markdown",
            "editor/import_markdown",
        }
        assert expected <= set(EDITOR_HANDLERS)


class TestEditorHandlers:
    """Test the intents end to end through dispatch."""

    def test_open_creates_seeded_document(self, opened: dict) -> None:
        assert len(opened["blocks"]) == 1
        assert opened["focused_block_id"] == opened["blocks"][0]["id"]
        assert opened["can_undo"] is False

    def test_open_twice_returns_same_session(self, sessions: EditorSessions, opened: dict) -> None:
        again = dispatch(sessions, "editor/open", {"document_id": opened["document_id"]})
        assert again["blocks"] == opened["blocks"]
        assert len(sessions) == 1

    def test_editing_flow(self, sessions: EditorSessions, opened: dict) -> None:
        doc_id = opened["document_id"]
        first = opened["blocks"][0]["id"]

        state = dispatch(
            sessions,
            "editor/update_content",
            {"document_id": doc_id, "block_id": first, "content": "# Title"},
        )
        assert state["blocks"][0]["type"] == "heading_1"

        state = dispatch(
            sessions,
            "editor/insert_after",
            {"document_id": doc_id, "block_id": first, "type": "bulleted_list", "content": "A"},
        )
        second = state["focused_block_id"]
        state = dispatch(
            sessions,
            "editor/insert_after",
            {"document_id": doc_id, "block_id": second, "type": "bulleted_list", "content": "B"},
        )

        result = dispatch(sessions, "editor/export_markdown", {"document_id": doc_id})
        assert result["markdown"] == "# Title\n- A\n- B"

        state = dispatch(sessions, "editor/indent", {"document_id": doc_id, "block_id": second})
        assert state["blocks"][1]["indent_level"] == 1

        state = dispatch(sessions, "editor/undo", {"document_id": doc_id})
        assert state["blocks"][1]["indent_level"] == 0
        assert state["can_redo"] is True

    def test_move_reports_change(self, sessions: EditorSessions, opened: dict) -> None:
        doc_id = opened["document_id"]
        first = opened["blocks"][0]["id"]
        dispatch(sessions, "editor/insert_after", {"document_id": doc_id, "block_id": first})

        state = dispatch(sessions, "editor/move", {"document_id": doc_id, "block_id": first})
        assert state["moved"] is True
        assert state["blocks"][-1]["id"] == first

        state = dispatch(
            sessions,
            "editor/move",
            {"document_id": doc_id, "block_id": first, "before_id": first},
        )
        assert state["moved"] is False

    def test_slash_flow(self, sessions: EditorSessions, opened: dict) -> None:
        doc_id = opened["document_id"]
        block_id = opened["blocks"][0]["id"]

        state = dispatch(sessions, "editor/slash/open", {"document_id": doc_id, "block_id": block_id})
        assert len(state["slash_menu"]["results"]) == 12

        state = dispatch(sessions, "editor/slash/filter", {"document_id": doc_id, "query": "head"})
        assert [r["name"] for r in state["slash_menu"]["results"]] == [
            "Heading 1",
            "Heading 2",
            "Heading 3",
        ]

        state = dispatch(sessions, "editor/slash/select", {"document_id": doc_id, "index": 2})
        assert state["blocks"][0]["type"] == "heading_3"
        assert state["slash_menu"] is None

    def test_import_markdown(self, sessions: EditorSessions, opened: dict) -> None:
        doc_id = opened["document_id"]
        state = dispatch(
            sessions,
            "editor/import_markdown",
            {"document_id": doc_id, "markdown": "## A\n- [x] done"},
        )
        assert [b["type"] for b in state["blocks"]] == ["heading_2", "check_list"]

    def test_close_persists(self, sessions: EditorSessions, opened: dict) -> None:
        doc_id = opened["document_id"]
        block_id = opened["blocks"][0]["id"]
        dispatch(
            sessions,
            "editor/update_content",
            {"document_id": doc_id, "block_id": block_id, "content": "saved"},
        )
        assert blocks_db.list_blocks(doc_id) == []

        result = dispatch(sessions, "editor/close", {"document_id": doc_id})
        assert result["persisted"] is True
        assert [b.content for b in blocks_db.list_blocks(doc_id)] == ["saved"]
        assert doc_id not in sessions

    def test_open_legacy_document_migrates(self, sessions: EditorSessions) -> None:
        legacy = blocks_db.create_document("Old", legacy_content="- one\n  - two")
        state = dispatch(sessions, "editor/open", {"document_id": legacy.id})
        assert [b["indent_level"] for b in state["blocks"]] == [0, 1]
        assert blocks_db.count_legacy_documents() == 0


class TestErrorMapping:
    """Domain errors become structured RpcErrors."""

    def test_unknown_block(self, sessions: EditorSessions, opened: dict) -> None:
        with pytest.raises(RpcError) as exc_info:
            dispatch(
                sessions,
                "editor/delete",
                {"document_id": opened["document_id"], "block_id": "block-nope"},
            )
        assert exc_info.value.code == -32003
        assert exc_info.value.data["resource_type"] == "block"

    def test_document_not_open(self, sessions: EditorSessions) -> None:
        with pytest.raises(RpcError) as exc_info:
            dispatch(sessions, "editor/state", {"document_id": "doc-nope"})
        assert exc_info.value.code == -32003

    def test_invalid_block_type(self, sessions: EditorSessions, opened: dict) -> None:
        with pytest.raises(RpcError) as exc_info:
            dispatch(
                sessions,
                "editor/convert",
                {
                    "document_id": opened["document_id"],
                    "block_id": opened["blocks"][0]["id"],
                    "type": "kanban",
                },
            )
        assert exc_info.value.code == -32000

    def test_missing_param(self, sessions: EditorSessions, opened: dict) -> None:
        with pytest.raises(RpcError) as exc_info:
            dispatch(sessions, "editor/indent", {"document_id": opened["document_id"]})
        assert exc_info.value.code == -32602
        assert exc_info.value.data == {"missing": ["block_id"]}

    def test_null_param_is_missing(self, sessions: EditorSessions, opened: dict) -> None:
        with pytest.raises(RpcError) as exc_info:
            dispatch(
                sessions,
                "editor/update_content",
                {"document_id": opened["document_id"], "block_id": None, "content": "x"},
            )
        assert exc_info.value.data == {"missing": ["block_id"]}

    def test_unexpected_param(self, sessions: EditorSessions, opened: dict) -> None:
        with pytest.raises(RpcError) as exc_info:
            dispatch(
                sessions,
                "editor/undo",
                {"document_id": opened["document_id"], "bogus": 1},
            )
        assert exc_info.value.code == -32602

    def test_unknown_method(self, sessions: EditorSessions) -> None:
        with pytest.raises(RpcError) as exc_info:
            dispatch(sessions, "editor/teleport", {})
        assert exc_info.value.code == -32601

    def test_slash_filter_without_menu(self, sessions: EditorSessions, opened: dict) -> None:
        with pytest.raises(RpcError) as exc_info:
            dispatch(
                sessions,
                "editor/slash/filter",
                {"document_id": opened["document_id"], "query": "x"},
            )
        assert exc_info.value.code == -32000


class TestPersistError:
    """Failed writes surface in session state until a later write lands."""

    def test_error_cleared_by_next_write(self, temp_data_dir: Path) -> None:
        calls: list[int] = []

        def apply(changes) -> None:
            calls.append(1)
            if len(calls) == 1:
                raise sqlite3.OperationalError("database is locked")
            blocks_db.apply_changes(changes)

        registry = EditorSessions(
            writer_factory=lambda **callbacks: PersistenceWriter(
                apply=apply, delay=3600.0, attempts=1, wait=tenacity.wait_none(), **callbacks
            )
        )
        opened = dispatch(registry, "editor/open", {"title": "Flaky"})
        doc_id = opened["document_id"]
        block_id = opened["blocks"][0]["id"]
        session = registry.get(doc_id)

        dispatch(
            registry,
            "editor/update_content",
            {"document_id": doc_id, "block_id": block_id, "content": "first"},
        )
        assert session.writer.flush() is False
        state = dispatch(registry, "editor/state", {"document_id": doc_id})
        assert state["persist_error"]["type"] == "storage"
        assert state["persist_error"]["recoverable"] is True

        dispatch(
            registry,
            "editor/update_content",
            {"document_id": doc_id, "block_id": block_id, "content": "second"},
        )
        assert session.writer.flush() is True
        state = dispatch(registry, "editor/state", {"document_id": doc_id})
        assert state["persist_error"] is None
        assert [b.content for b in blocks_db.list_blocks(doc_id)] == ["second"]

        registry.close_all()


class TestHandleRequest:
    def test_result_envelope(self, sessions: EditorSessions) -> None:
        response = handle_request(
            sessions,
            {"jsonrpc": "2.0", "id": 7, "method": "editor/open", "params": {"title": "T"}},
        )
        assert response["id"] == 7
        assert "result" in response

    def test_error_envelope(self, sessions: EditorSessions) -> None:
        response = handle_request(sessions, {"jsonrpc": "2.0", "id": 1, "method": "nope"})
        assert response["error"]["code"] == -32601

    def test_invalid_request(self, sessions: EditorSessions) -> None:
        assert handle_request(sessions, [1, 2])["error"]["code"] == -32600
        assert handle_request(sessions, {"id": 2})["error"]["code"] == -32600

    def test_params_must_be_object(self, sessions: EditorSessions) -> None:
        response = handle_request(sessions, {"id": 3, "method": "editor/open", "params": [1]})
        assert response["error"]["code"] == -32602
