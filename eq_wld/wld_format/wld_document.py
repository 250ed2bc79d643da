"""Immutable WLD document and reference resolution.

A WLDDocument owns the parsed fragments and string table as one snapshot.
Nothing mutates it after construction, so one document can be shared by
any number of mesh, skeleton and animation extractions.

Fragment indices are 1-based, as in the format itself.
"""

from .wld_errors import OutOfRangeError, TypeMismatchError, InvalidStringRefError
from .wld_fragments import (
    Fragment, MESH_KINDS,
    MaterialDef, HierarchicalSpriteDef, ActorDef, Actor, Track, TrackDef,
)
from .wld_reader import WLDReader


def _safe_name(strings, fragment):
    try:
        return strings.get(fragment.name_ref, fragment.index)
    except InvalidStringRefError:
        return None


class WLDDocument:
    """Read-only query API over a parsed WLD."""

    __slots__ = ('header', 'strings', '_fragments', '_names_by_index', '_by_name')

    def __init__(self, header, strings, fragments):
        self.header = header
        self.strings = strings
        self._fragments = tuple(fragments)
        # Resolved once: every fragment's name, and name -> fragments with it.
        # An out-of-table name only fails when queried through get_string().
        self._names_by_index = tuple(_safe_name(strings, frag) for frag in self._fragments)
        by_name = {}
        for frag, name in zip(self._fragments, self._names_by_index):
            if name:
                by_name.setdefault(name, []).append(frag)
        self._by_name = {name: tuple(frags) for name, frags in by_name.items()}

    @classmethod
    def parse(cls, data):
        """Parse a WLD byte stream into a document.

        Raises:
            MalformedInputError: if the stream cannot be parsed
        """
        reader = WLDReader(data).read()
        return cls(reader.header, reader.strings, reader.fragments)

    # ---- Index access ----

    @property
    def fragment_count(self):
        return len(self._fragments)

    def __len__(self):
        return len(self._fragments)

    def __iter__(self):
        return iter(self._fragments)

    def get_by_index(self, index):
        """Get the fragment at a 1-based index.

        Raises:
            OutOfRangeError: if index is 0 or greater than the fragment count
        """
        if not 1 <= index <= len(self._fragments):
            raise OutOfRangeError(
                f"Fragment index {index} outside 1..{len(self._fragments)}",
                fragment_index=index,
            )
        return self._fragments[index - 1]

    # ---- Typed references ----

    def get(self, ref):
        """Resolve a FragmentRef of either form.

        Returns:
            The fragment, or None when ref is None or no fragment carries
            the referenced name.

        Raises:
            OutOfRangeError: for an index reference beyond the document
            TypeMismatchError: if the fragment is not of the ref's kind
            InvalidStringRefError: for a name reference outside the table
        """
        if ref is None:
            return None
        if ref.is_by_name:
            return self._get_by_name_ref(ref)
        fragment = self.get_by_index(ref.index)
        if not isinstance(fragment, ref.kind):
            raise TypeMismatchError(
                ref.kind_name, fragment.kind_name,
                fragment_index=fragment.index, fragment_name=self.name_of(fragment),
            )
        return fragment

    def get_typed(self, ref):
        """Alias of get(); kept for callers that want the typed name."""
        return self.get(ref)

    def _get_by_name_ref(self, ref):
        name = self.strings.get(ref.name_ref)
        if name is None:
            return None
        candidates = self._by_name.get(name, ())
        for fragment in candidates:
            if isinstance(fragment, ref.kind):
                return fragment
        if candidates:
            first = candidates[0]
            raise TypeMismatchError(
                ref.kind_name, first.kind_name,
                fragment_index=first.index, fragment_name=name,
            )
        return None

    # ---- Strings ----

    def get_string(self, name_ref, fragment_index=None):
        """Resolve a raw string reference (None for the no-name sentinel)."""
        return self.strings.get(name_ref, fragment_index)

    def name_of(self, fragment):
        """Name of a fragment of this document, or None."""
        return self._names_by_index[fragment.index - 1]

    def find_by_name(self, name, kind=Fragment):
        """First fragment called ``name`` that is of ``kind``, or None."""
        for fragment in self._by_name.get(name, ()):
            if isinstance(fragment, kind):
                return fragment
        return None

    # ---- Iteration ----

    def iter_of_kind(self, kind):
        """Lazily yield every fragment of ``kind`` in document order."""
        return (frag for frag in self._fragments if isinstance(frag, kind))

    def meshes(self):
        return self.iter_of_kind(MESH_KINDS)

    def materials(self):
        return self.iter_of_kind(MaterialDef)

    def skeletons(self):
        return self.iter_of_kind(HierarchicalSpriteDef)

    def actordefs(self):
        return self.iter_of_kind(ActorDef)

    def actor_instances(self):
        return self.iter_of_kind(Actor)

    def tracks(self):
        return self.iter_of_kind(Track)

    def track_defs(self):
        return self.iter_of_kind(TrackDef)

    def __repr__(self):
        return f"WLDDocument({self.header!r}, fragments={len(self._fragments)})"
