"""WLD string hash decoding.

The string hash is a single blob of null-terminated names, XOR-obfuscated
with an 8-byte cyclic key. Fragments refer to names by *negated* byte offset
into the decoded blob: a name_ref of -12 is the string starting at offset 12.
A reference of 0 (or any positive value, which is a fragment index rather
than a name) means "no name".
"""

from .wld_constants import STRING_HASH_KEY
from .wld_errors import InvalidStringRefError


def decode_string_hash(data):
    """XOR-decode a string hash (or an encoded filename) into bytes."""
    key = STRING_HASH_KEY
    key_len = len(key)
    return bytes(b ^ key[i % key_len] for i, b in enumerate(data))


def encode_string_hash(data):
    """Inverse of decode_string_hash (the cipher is symmetric)."""
    return decode_string_hash(data)


class StringTable:
    """Decoded string hash with offset-based lookup.

    Decoded as latin-1 so byte offsets and character offsets are the same.
    """

    __slots__ = ('_text',)

    def __init__(self, raw):
        self._text = decode_string_hash(raw).decode("latin-1")

    def __len__(self):
        return len(self._text)

    def get(self, name_ref, fragment_index=None):
        """Resolve a name reference.

        Args:
            name_ref: raw i32 reference as stored in the fragment
            fragment_index: owning fragment, only used for error messages

        Returns:
            The referenced string, or None for the "no name" sentinel.

        Raises:
            InvalidStringRefError: if the offset lies outside the table
        """
        if name_ref is None or name_ref >= 0:
            return None
        offset = -name_ref
        if offset >= len(self._text):
            raise InvalidStringRefError(
                f"String offset {offset} outside table of {len(self._text)} bytes",
                fragment_index,
            )
        end = self._text.find("\0", offset)
        if end == -1:
            end = len(self._text)
        return self._text[offset:end]

