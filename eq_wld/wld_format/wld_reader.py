"""Full WLD binary reader.

Reads a WLD byte stream and produces the header, the decoded string table
and the ordered list of typed fragments. Any failure here aborts the whole
decode: a WLDDocument is only ever built from a completely parsed stream.
"""

import logging
import struct

from .wld_constants import HEADER_SIZE, FRAGMENT_HEADER_SIZE
from .wld_errors import MalformedInputError
from .wld_fragments import parse_fragment, RAW_FALLBACK_TYPES, UnknownFragment
from .wld_header import WLDHeader
from .wld_strings import StringTable

_log = logging.getLogger("wld_reader")


class WLDReader:
    """Reads and parses a complete WLD byte stream.

    Usage:
        reader = WLDReader(data)
        reader.read()
        # Access parsed data:
        #   reader.header - WLDHeader
        #   reader.strings - StringTable
        #   reader.fragments - list of Fragment (index i at position i - 1)
    """

    def __init__(self, data):
        self.data = bytes(data)
        self.view = memoryview(self.data)
        self.header = None
        self.strings = None
        self.fragments = []
        self.unknown_type_counts = {}

    def read(self):
        """Read and parse the entire byte stream."""
        file_size = len(self.data)
        if file_size < HEADER_SIZE:
            raise MalformedInputError(f"File too small: {file_size} bytes")

        # 1. Header (28 bytes)
        self.header = WLDHeader.read(self.data[:HEADER_SIZE])
        pos = HEADER_SIZE

        # 2. String hash
        hash_size = self.header.string_hash_size
        if pos + hash_size > file_size:
            raise MalformedInputError(
                f"Truncated WLD string hash: need {hash_size} bytes at {pos}, file is {file_size}"
            )
        self.strings = StringTable(self.view[pos:pos + hash_size])
        pos += hash_size

        # 3. Fragments
        self._read_fragments(pos)

        if self.unknown_type_counts:
            _log.debug("Uninterpreted fragment kinds: %s", {
                f"0x{type_id:02x}": count
                for type_id, count in sorted(self.unknown_type_counts.items())
            })
        return self

    def _read_fragments(self, pos):
        """Parse the fragment stream that follows the string hash."""
        file_size = len(self.data)
        old_format = self.header.is_old_format
        self.fragments = []

        for i in range(self.header.fragment_count):
            index = i + 1
            if pos + FRAGMENT_HEADER_SIZE > file_size:
                raise MalformedInputError(
                    f"Truncated WLD: header for fragment {index} of "
                    f"{self.header.fragment_count} at offset {pos}",
                    fragment_index=index,
                )
            size, type_id = struct.unpack_from("<II", self.data, pos)
            body_start = pos + FRAGMENT_HEADER_SIZE
            if size < 4 or body_start + size > file_size:
                raise MalformedInputError(
                    f"Fragment 0x{type_id:02x} size {size} exceeds stream at offset {pos}",
                    fragment_index=index,
                )

            body = self.view[body_start:body_start + size]
            try:
                fragment = parse_fragment(index, type_id, body, old_format)
            except struct.error as e:
                if type_id not in RAW_FALLBACK_TYPES:
                    raise MalformedInputError(
                        f"Cannot parse fragment type 0x{type_id:02x}: {e}",
                        fragment_index=index,
                    ) from e
                fragment = self._raw_fallback(index, type_id, body, e)
            except ValueError as e:
                if type_id not in RAW_FALLBACK_TYPES:
                    raise
                fragment = self._raw_fallback(index, type_id, body, e)

            if isinstance(fragment, UnknownFragment):
                self.unknown_type_counts[type_id] = self.unknown_type_counts.get(type_id, 0) + 1

            self.fragments.append(fragment)
            pos = body_start + size

        return pos

    @staticmethod
    def _raw_fallback(index, type_id, body, error):
        _log.warning("Keeping fragment %d (0x%02x) raw: %s", index, type_id, error)
        name_ref = struct.unpack_from("<i", body)[0]
        return UnknownFragment(index, name_ref, type_id=type_id, body=bytes(body[4:]))
