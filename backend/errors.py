"""
Error types for Endurance Loop.

Every public operation either completes or raises exactly one of these.
All of them are recoverable: the session is never left half-changed.
"""


class EnduranceError(Exception):
    """Base class for all user-surfaced errors."""

    kind = "error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self):
        return {'error': self.kind, 'message': self.message}


class InvalidReference(EnduranceError):
    """The video reference does not resolve to a supported video id."""

    kind = "invalid_reference"

    def __init__(self, reference):
        super().__init__(f"Not a valid video URL or id: {reference!r}")
        self.reference = reference


class InvalidLoopWindow(EnduranceError):
    """Loop end is not after loop start, so the loop cannot start."""

    kind = "invalid_loop_window"

    def __init__(self, start: float, end: float):
        super().__init__(f"Loop end ({end:g}s) must be after loop start ({start:g}s)")
        self.start = start
        self.end = end


class DocumentParseError(EnduranceError):
    """An import document is malformed. The session was not touched."""

    kind = "document_parse_error"


class BackendUnavailable(EnduranceError):
    """
    A command was issued before the playback backend reported ready.

    Tracks swallow this one: the user can simply retry once the
    player has loaded.
    """

    kind = "backend_unavailable"
