"""WLD file header parser."""

import struct
from .wld_constants import (
    HEADER_SIZE, WLD_MAGIC, WLD_VERSION_OLD, WLD_VERSION_NEW,
    H_MAGIC, H_VERSION, H_FRAGMENT_COUNT, H_REGION_COUNT,
    H_MAX_OBJECT_BYTES, H_STRING_HASH_SIZE, H_STRING_COUNT,
)
from .wld_errors import MalformedInputError


class WLDHeader:
    """Represents the 28-byte WLD file header."""

    def __init__(self):
        self.fields = [0] * 7

    @property
    def magic(self):
        return self.fields[H_MAGIC]

    @property
    def version(self):
        return self.fields[H_VERSION]

    @property
    def fragment_count(self):
        return self.fields[H_FRAGMENT_COUNT]

    @property
    def region_count(self):
        return self.fields[H_REGION_COUNT]

    @property
    def max_object_bytes(self):
        return self.fields[H_MAX_OBJECT_BYTES]

    @property
    def string_hash_size(self):
        return self.fields[H_STRING_HASH_SIZE]

    @property
    def string_count(self):
        return self.fields[H_STRING_COUNT]

    @property
    def is_old_format(self):
        """True for the original (pre-Luclin) version of the format."""
        return self.version == WLD_VERSION_OLD

    @classmethod
    def read(cls, data):
        """Read and parse a 28-byte WLD header from raw data.

        Args:
            data: bytes or memoryview of at least HEADER_SIZE bytes

        Returns:
            WLDHeader instance

        Raises:
            MalformedInputError: if data is too small, or the magic or
                version is not recognised
        """
        if len(data) < HEADER_SIZE:
            raise MalformedInputError(
                f"Data too small for WLD header: {len(data)} < {HEADER_SIZE}"
            )

        header = cls()
        header.fields = list(struct.unpack_from("<7I", data, 0))

        if header.magic != WLD_MAGIC:
            raise MalformedInputError(f"Invalid WLD magic: 0x{header.magic:08x}")
        if header.version not in (WLD_VERSION_OLD, WLD_VERSION_NEW):
            raise MalformedInputError(f"Unsupported WLD version: 0x{header.version:08x}")

        return header

    def write(self):
        """Serialize the header to 28 bytes."""
        return struct.pack("<7I", *self.fields)

    def __repr__(self):
        return (
            f"WLDHeader(version=0x{self.version:08x}, "
            f"fragments={self.fragment_count}, regions={self.region_count}, "
            f"stringHashSize={self.string_hash_size}, oldFormat={self.is_old_format})"
        )
