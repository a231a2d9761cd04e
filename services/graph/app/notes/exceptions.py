# Domain exceptions raised by the notes service layer.
from __future__ import annotations

import uuid


class NoteTextInvalidError(Exception):
    def __init__(self, max_length: int) -> None:
        self.max_length = max_length
        super().__init__(f"Note text must be 1-{max_length} characters")


class NoteNotFoundError(Exception):
    def __init__(self, note_id: uuid.UUID) -> None:
        self.note_id = note_id
        super().__init__(f"Note {note_id} not found")


class NoteAccessDeniedError(Exception):
    """Raised when a user tries to retract someone else's note."""
    pass
