"""Tracks the node whose editor is open.

While an editor is open the canvas is read-only: structural edits are
refused so a node cannot be deleted from under its own editor.
"""
from enum import Enum
from typing import Optional


class EditorState(str, Enum):
    IDLE = "idle"
    EDITING = "editing"


class SelectionController:

    def __init__(self) -> None:
        self.state = EditorState.IDLE
        self.editing_node_id: Optional[str] = None

    @property
    def interaction_suspended(self) -> bool:
        return self.state == EditorState.EDITING

    def open_editor(self, node_id: str) -> None:
        """Open (or switch) the editor and suspend structural interaction."""
        self.state = EditorState.EDITING
        self.editing_node_id = node_id

    def close_editor(self) -> None:
        self.state = EditorState.IDLE
        self.editing_node_id = None

    def as_dict(self) -> dict:
        return {
            "state": self.state.value,
            "editing_node_id": self.editing_node_id,
            "interaction_suspended": self.interaction_suspended,
        }
