"""Undo history and editor checkpoints."""

from .checkpoints import Checkpoint, CheckpointStore
from .undo import MAX_UNDO_ENTRIES, UndoEntry, UndoStack

__all__ = ["Checkpoint", "CheckpointStore", "MAX_UNDO_ENTRIES", "UndoEntry", "UndoStack"]
