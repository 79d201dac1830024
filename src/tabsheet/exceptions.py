class TabSheetError(Exception):
    """Base exception for tabsheet."""


class FetchError(TabSheetError):
    """Raised when an HTTP request fails."""

    def __init__(self, url: str, status_code: int):
        self.url = url
        self.status_code = status_code
        super().__init__(f"HTTP {status_code} fetching {url}")


class ParseError(TabSheetError):
    """Raised when expected content cannot be extracted from a page."""

    def __init__(self, url: str, reason: str):
        self.url = url
        self.reason = reason
        super().__init__(f"Parse error for {url}: {reason}")


class UnsupportedSiteError(TabSheetError):
    """Raised when no adapter matches the given URL."""

    def __init__(self, url: str):
        self.url = url
        super().__init__(f"No adapter found for URL: {url}")


# ---------------------------------------------------------------------------
# Chord grammar errors
# ---------------------------------------------------------------------------


class ChordError(TabSheetError):
    """Base class for chord grammar failures.

    These are never swallowed by the parsers: a bad chord token is either a
    caller bug or corrupt source data.
    """


class EmptyInputError(ChordError):
    """Raised when a chord token or a notation row is empty."""

    def __init__(self, what: str = "chord string"):
        super().__init__(f"Empty {what}")


class InvalidRootError(ChordError):
    def __init__(self, token: str):
        self.token = token
        super().__init__(f"Invalid chord {token!r}: must start with A-G")


class MultipleAccidentalsError(ChordError):
    def __init__(self, token: str):
        self.token = token
        super().__init__(f"Invalid chord {token!r}: multiple accidentals")


class InvalidModifierSequenceError(ChordError):
    def __init__(self, token: str, leftover: str):
        self.token = token
        self.leftover = leftover
        super().__init__(f"Invalid modifier sequence in {token!r}: {leftover!r}")


class InvalidBassNoteError(ChordError):
    def __init__(self, token: str):
        self.token = token
        super().__init__(f"Invalid bass note in {token!r}")


class InvalidCombinationError(ChordError):
    def __init__(self, token: str, message: str):
        self.token = token
        self.message = message
        super().__init__(f"Invalid chord {token!r}: {message}")


class StoreError(TabSheetError):
    """Raised by a cache store when the backing storage fails."""
