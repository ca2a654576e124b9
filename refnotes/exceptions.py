"""Custom exceptions for refnotes."""


class RefNotesError(Exception):
    """Base exception for reference note errors."""
    pass


class MissingCiteKeyError(RefNotesError):
    """Raised when entry text has no recognizable ``@type{key,`` header."""
    pass


class UnreadableNoteError(RefNotesError):
    """Raised when a note path does not resolve to a readable note."""
    pass


class ReferenceFolderMissingError(RefNotesError):
    """Raised when the configured reference folder does not exist."""
    pass
