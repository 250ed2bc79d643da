"""Exceptions and warnings raised while decoding WLD documents.

All hard errors derive from WLDError (a ValueError, like the rest of the
format layer) and carry the offending fragment's index and name so a broken
asset can be traced back to the record that caused it.
"""


class WLDError(ValueError):
    """Base class for all WLD decode errors."""

    def __init__(self, message, fragment_index=None, fragment_name=None):
        self.message = message
        self.fragment_index = fragment_index
        self.fragment_name = fragment_name
        super().__init__(self._format())

    def _format(self):
        where = []
        if self.fragment_index is not None:
            where.append(f"fragment {self.fragment_index}")
        if self.fragment_name:
            where.append(f"{self.fragment_name!r}")
        if where:
            return f"{self.message} ({' '.join(where)})"
        return self.message


class MalformedInputError(WLDError):
    """The byte stream cannot be parsed as a WLD document."""


class OutOfRangeError(WLDError):
    """A fragment index is 0 or beyond the fragment count."""


class InvalidStringRefError(WLDError):
    """A string reference points outside the string table."""


class TypeMismatchError(WLDError):
    """A typed reference resolved to a fragment of another kind."""

    def __init__(self, expected, actual, fragment_index=None, fragment_name=None):
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Expected {expected}, found {actual}",
            fragment_index, fragment_name,
        )


class BrokenReferenceError(WLDError):
    """A required chain of references ends in a missing fragment."""


class DataIntegrityWarning(UserWarning):
    """Recoverable anomaly found while building a derived structure.

    Never raised by the library: instances are collected on the result's
    ``warnings`` list and logged.
    """

    def __init__(self, message, fragment_index=None, fragment_name=None):
        self.message = message
        self.fragment_index = fragment_index
        self.fragment_name = fragment_name
        text = message
        if fragment_index is not None:
            text = f"{message} (fragment {fragment_index}"
            text += f" {fragment_name!r})" if fragment_name else ")"
        super().__init__(text)
