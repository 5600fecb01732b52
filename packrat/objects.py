# objects.py -- Access to base git objects
# Copyright (C) 2007 James Westby <jw+debian@jameswestby.net>
# Copyright (C) 2008-2013 Jelmer Vernooij <jelmer@jelmer.uk>
#
# SPDX-License-Identifier: Apache-2.0 OR GPL-2.0-or-later
# Packrat is dual-licensed under the Apache License, Version 2.0 and the GNU
# General Public License as published by the Free Software Foundation; version 2.0
# or (at your option) any later version. You can redistribute it and/or
# modify it under the terms of either of these two licenses.
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
#
# You should have received a copy of the licenses; if not, see
# <http://www.gnu.org/licenses/> for a copy of the GNU General Public License
# and <http://www.apache.org/licenses/LICENSE-2.0> for a copy of the Apache
# License, Version 2.0.
#

"""Access to base git objects."""

__all__ = [
    "OBJECT_CLASSES",
    "S_IFGITLINK",
    "ZERO_SHA",
    "Blob",
    "Commit",
    "ObjectID",
    "RawObjectID",
    "ShaFile",
    "Tag",
    "Tree",
    "TreeEntry",
    "decode_object",
    "format_timezone",
    "hex_to_sha",
    "object_class",
    "object_header",
    "parse_timezone",
    "parse_tree",
    "serialize_tree",
    "sha_to_hex",
    "sorted_tree_items",
    "valid_hexsha",
]

import binascii
import os
import stat
import zlib
from collections.abc import Iterable, Iterator
from hashlib import sha1
from io import BytesIO
from typing import NamedTuple

from .errors import InvalidFormat

# Hex-encoded object name, 40 bytes for SHA-1.
ObjectID = bytes
# Binary object name, 20 bytes for SHA-1.
RawObjectID = bytes

ZERO_SHA = b"0" * 40

# Header fields for commits
_TREE_HEADER = b"tree"
_PARENT_HEADER = b"parent"
_AUTHOR_HEADER = b"author"
_COMMITTER_HEADER = b"committer"
_ENCODING_HEADER = b"encoding"

# Header fields for objects
_OBJECT_HEADER = b"object"
_TYPE_HEADER = b"type"
_TAG_HEADER = b"tag"
_TAGGER_HEADER = b"tagger"


S_IFGITLINK = 0o160000

# Modes a tree entry may carry.
TREE_ENTRY_MODES = frozenset(
    [
        stat.S_IFREG | 0o644,
        stat.S_IFREG | 0o755,
        stat.S_IFLNK,
        stat.S_IFDIR,
        S_IFGITLINK,
    ]
)


def S_ISGITLINK(m: int) -> bool:
    """Check if a mode indicates a submodule.

    Args:
      m: Mode to check
    Returns: a ``boolean``
    """
    return stat.S_IFMT(m) == S_IFGITLINK


def sha_to_hex(sha: RawObjectID) -> ObjectID:
    """Takes a string and returns the hex of the sha within."""
    hexsha = binascii.hexlify(sha)
    if len(hexsha) != 40:
        raise ValueError(f"Incorrect length of sha1 string: {sha!r}")
    return hexsha


def hex_to_sha(hex: ObjectID | str) -> RawObjectID:
    """Takes a hex sha and returns a binary sha."""
    if len(hex) != 40:
        raise ValueError(f"Incorrect length of hexsha: {hex!r}")
    try:
        return binascii.unhexlify(hex)
    except (TypeError, binascii.Error) as exc:
        if not isinstance(hex, bytes):
            raise
        raise ValueError(exc.args[0]) from exc


def valid_hexsha(hex: bytes | str) -> bool:
    """Check whether a value is a well-formed 40-character hex object id."""
    if len(hex) != 40:
        return False
    try:
        binascii.unhexlify(hex)
    except (TypeError, binascii.Error):
        return False
    else:
        return True


def hex_to_filename(path: str, hex: ObjectID) -> str:
    """Takes a hex sha and returns its filename relative to the given path."""
    hex_str = hex.decode("ascii")
    return os.path.join(path, hex_str[:2], hex_str[2:])


def filename_to_hex(filename: str) -> ObjectID:
    """Takes an object filename and returns its corresponding hex sha."""
    names = filename.rsplit(os.path.sep, 2)[-2:]
    errmsg = f"Invalid object filename: {filename}"
    if len(names) != 2 or len(names[0]) != 2:
        raise ValueError(errmsg)
    base, rest = names
    if len(rest) != 38:
        raise ValueError(errmsg)
    hex = (base + rest).encode("ascii")
    if not valid_hexsha(hex):
        raise ValueError(errmsg)
    return hex


def object_header(num_type: int, length: int) -> bytes:
    """Return an object header for the given numeric type and text length."""
    cls = object_class(num_type)
    if cls is None:
        raise AssertionError(f"unsupported class type num: {num_type}")
    return cls.type_name + b" " + str(length).encode("ascii") + b"\0"


def decode_object(raw: bytes) -> tuple[bytes, bytes]:
    """Split a canonical ``<type> <size>\\0<content>`` string.

    Args:
      raw: Uncompressed object bytes, header included
    Returns: Tuple with type name and content
    Raises:
      InvalidFormat: if the header is missing, malformed, names an unknown
        type, or disagrees with the content length
    """
    end = raw.find(b"\0")
    if end < 0:
        raise InvalidFormat("object header is not NUL-terminated")
    header = raw[:end]
    content = raw[end + 1 :]
    try:
        type_name, size_text = header.split(b" ")
    except ValueError as exc:
        raise InvalidFormat(f"invalid object header {header!r}") from exc
    if object_class(type_name) is None:
        raise InvalidFormat(f"unknown object type {type_name!r}")
    if not size_text.isdigit() or (len(size_text) > 1 and size_text[:1] == b"0"):
        raise InvalidFormat(f"invalid object size {size_text!r}")
    if int(size_text) != len(content):
        raise InvalidFormat(
            f"object size mismatch: header says {int(size_text)}, "
            f"got {len(content)} bytes"
        )
    return type_name, content


def serializable_property(name: str, docstring: str | None = None) -> property:
    """A property that helps tracking whether serialization is necessary."""

    def set(obj: "ShaFile", value: object) -> None:
        obj._ensure_parsed()
        setattr(obj, "_" + name, value)
        obj._needs_serialization = True

    def get(obj: "ShaFile") -> object:
        obj._ensure_parsed()
        return getattr(obj, "_" + name)

    return property(get, set, doc=docstring)


def object_class(type: bytes | int) -> "type[ShaFile] | None":
    """Get the object class corresponding to the given type.

    Args:
      type: Either a type name string or a numeric type.
    Returns: The ShaFile subclass corresponding to the given type, or None if
      type is not a valid type name/number.
    """
    return _TYPE_MAP.get(type, None)


class ShaFile:
    """A git SHA file.

    Subclasses parse their body lazily: an object built from raw bytes keeps
    those bytes verbatim until one of its fields is assigned.
    """

    type_name: bytes
    type_num: int
    _needs_serialization: bool
    _needs_parsing: bool
    _chunked_text: list[bytes] | None
    _sha: "sha1 | None"

    def __init__(self) -> None:
        """Don't call this directly."""
        self._sha = None
        self._chunked_text = []
        self._needs_parsing = False
        self._needs_serialization = True

    def _deserialize(self, chunks: list[bytes]) -> None:
        raise NotImplementedError(self._deserialize)

    def _serialize(self) -> list[bytes]:
        raise NotImplementedError(self._serialize)

    def _ensure_parsed(self) -> None:
        if self._needs_parsing:
            assert self._chunked_text is not None
            self._deserialize(self._chunked_text)
            self._needs_parsing = False

    def as_raw_chunks(self) -> list[bytes]:
        """Return chunks with serialization of the object.

        Returns: List of strings, not necessarily one per line
        """
        if self._needs_serialization:
            self._sha = None
            self._chunked_text = self._serialize()
            self._needs_serialization = False
        assert self._chunked_text is not None
        return self._chunked_text

    def as_raw_string(self) -> bytes:
        """Return raw string with serialization of the object."""
        return b"".join(self.as_raw_chunks())

    def as_raw_object(self) -> bytes:
        """Return the canonical object bytes, type and size header included.

        This is the string the object's id is computed over.
        """
        return self._header() + self.as_raw_string()

    def as_legacy_object_chunks(self, compression_level: int = -1) -> Iterator[bytes]:
        """Return chunks representing the object in the loose-object format."""
        compobj = zlib.compressobj(compression_level)
        yield compobj.compress(self._header())
        for chunk in self.as_raw_chunks():
            yield compobj.compress(chunk)
        yield compobj.flush()

    def as_legacy_object(self, compression_level: int = -1) -> bytes:
        """Return the zlib-compressed loose-object representation."""
        return b"".join(self.as_legacy_object_chunks(compression_level))

    def as_pretty_string(self) -> str:
        """Return a string representing this object, fit for display."""
        return self.as_raw_string().decode("utf-8", "replace")

    def set_raw_string(self, text: bytes, sha: ObjectID | None = None) -> None:
        """Set the contents of this object from a serialized string."""
        if not isinstance(text, bytes):
            raise TypeError(f"Expected bytes for text, got {text!r}")
        self.set_raw_chunks([text], sha)

    def set_raw_chunks(self, chunks: list[bytes], sha: ObjectID | None = None) -> None:
        """Set the contents of this object from a list of chunks."""
        self._chunked_text = chunks
        if sha is None:
            self._sha = None
        else:
            self._sha = FixedSha(sha)  # type: ignore[assignment]
        self._needs_parsing = True
        self._needs_serialization = False

    @staticmethod
    def from_raw_string(
        type_num: int | bytes, string: bytes, sha: ObjectID | None = None
    ) -> "ShaFile":
        """Creates an object of the indicated type from the raw string given.

        Args:
          type_num: The numeric type or type name of the object.
          string: The raw uncompressed contents.
          sha: Optional known sha for the object
        """
        cls = object_class(type_num)
        if cls is None:
            raise InvalidFormat(f"unknown object type {type_num!r}")
        obj = cls()
        obj.set_raw_string(string, sha)
        return obj

    @staticmethod
    def from_raw_chunks(
        type_num: int, chunks: list[bytes], sha: ObjectID | None = None
    ) -> "ShaFile":
        """Creates an object of the indicated type from the raw chunks given.

        Args:
          type_num: The numeric type of the object.
          chunks: An iterable of the raw uncompressed contents.
          sha: Optional known sha for the object
        """
        cls = object_class(type_num)
        if cls is None:
            raise InvalidFormat(f"unknown object type {type_num!r}")
        obj = cls()
        obj.set_raw_chunks(chunks, sha)
        return obj

    @staticmethod
    def from_raw_object(raw: bytes) -> "ShaFile":
        """Create an object from its canonical header-prefixed bytes."""
        type_name, content = decode_object(raw)
        return ShaFile.from_raw_string(type_name, content)

    @classmethod
    def from_string(cls, string: bytes) -> "ShaFile":
        """Create a ShaFile from a string."""
        obj = cls()
        obj.set_raw_string(string)
        return obj

    def _header(self) -> bytes:
        return object_header(self.type_num, self.raw_length())

    def raw_length(self) -> int:
        """Returns the length of the raw string of this object."""
        return sum(map(len, self.as_raw_chunks()))

    def sha(self) -> "sha1 | FixedSha":
        """The SHA1 object that is the name of this object."""
        if self._sha is None or self._needs_serialization:
            new_sha = sha1()
            new_sha.update(self._header())
            for chunk in self.as_raw_chunks():
                new_sha.update(chunk)
            self._sha = new_sha
        return self._sha

    @property
    def id(self) -> ObjectID:
        """The hex SHA1 of this object."""
        return self.sha().hexdigest().encode("ascii")

    def copy(self) -> "ShaFile":
        """Create a new copy of this SHA1 object from its raw string."""
        return ShaFile.from_raw_string(self.type_num, self.as_raw_string(), self.id)

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self.id!r}>"

    def __ne__(self, other: object) -> bool:
        """Check whether this object does not match the other."""
        return not isinstance(other, ShaFile) or self.id != other.id

    def __eq__(self, other: object) -> bool:
        """Return True if the SHAs of the two objects match."""
        return isinstance(other, ShaFile) and self.id == other.id

    def __lt__(self, other: object) -> bool:
        """Return whether SHA of this object is less than the other."""
        if not isinstance(other, ShaFile):
            raise TypeError
        return self.id < other.id

    def __hash__(self) -> int:
        return hash(self.id)


class FixedSha:
    """SHA object that behaves like hashlib's but is given a fixed value."""

    __slots__ = ("_hexsha", "_sha")

    def __init__(self, hexsha: ObjectID) -> None:
        if not isinstance(hexsha, bytes):
            raise TypeError(f"Expected bytes for hexsha, got {hexsha!r}")
        self._hexsha = hexsha
        self._sha = hex_to_sha(hexsha)

    def digest(self) -> RawObjectID:
        """Return the raw SHA digest."""
        return self._sha

    def hexdigest(self) -> str:
        """Return the hex SHA digest."""
        return self._hexsha.decode("ascii")


class Blob(ShaFile):
    """A Git Blob object."""

    type_name = b"blob"
    type_num = 3

    def __init__(self) -> None:
        super().__init__()
        self._needs_serialization = False

    def _get_data(self) -> bytes:
        return self.as_raw_string()

    def _set_data(self, data: bytes) -> None:
        self.set_raw_string(data)

    data = property(
        _get_data, _set_data, doc="The text contained within the blob object."
    )

    def _get_chunked(self) -> list[bytes]:
        return self.as_raw_chunks()

    def _set_chunked(self, chunks: list[bytes]) -> None:
        self._chunked_text = chunks
        self._sha = None

    chunked = property(
        _get_chunked,
        _set_chunked,
        doc="The text in the blob object, as chunks (not necessarily lines)",
    )

    def _deserialize(self, chunks: list[bytes]) -> None:
        self._chunked_text = chunks

    def _serialize(self) -> list[bytes]:
        assert self._chunked_text is not None
        return self._chunked_text


def _parse_message(chunks: Iterable[bytes]) -> Iterator[tuple[bytes | None, bytes | None]]:
    """Parse a message with a list of fields and a body.

    Args:
      chunks: the raw chunks of the tag or commit object.
    Returns: iterator of tuples of (field, value), one per header line, in the
        order read from the text, possibly including duplicates. Includes a
        field named None for the freeform tag/commit text.
    """
    f = BytesIO(b"".join(chunks))
    k = None
    v = b""

    def _strip_last_newline(value: bytes) -> bytes:
        if value and value.endswith(b"\n"):
            return value[:-1]
        return value

    # Lines starting with a space continue the previous header's value.
    for line in f:
        if line.startswith(b" "):
            v += line[1:]
            continue
        if k is not None:
            yield (k, _strip_last_newline(v))
        if line == b"\n":
            break
        try:
            (k, v) = line.split(b" ", 1)
        except ValueError as exc:
            raise InvalidFormat(f"invalid header line {line!r}") from exc
    else:
        # End of file inside the headers: there is no message.
        if k is not None:
            yield (k, _strip_last_newline(v))
        yield (None, None)
        return

    yield (None, f.read())


def _format_message(
    headers: Iterable[tuple[bytes, bytes]], body: bytes | None
) -> Iterator[bytes]:
    for field, value in headers:
        lines = value.split(b"\n")
        yield field + b" " + lines[0] + b"\n"
        for line in lines[1:]:
            yield b" " + line + b"\n"
    yield b"\n"
    if body:
        yield body


class Tag(ShaFile):
    """A Git Tag object."""

    type_name = b"tag"
    type_num = 4

    _tagger: bytes | None
    _tag_time: int | None
    _tag_timezone: int | None
    _tag_timezone_neg_utc: bool | None
    _message: bytes | None

    def __init__(self) -> None:
        super().__init__()
        self._tagger = None
        self._tag_time = None
        self._tag_timezone = None
        self._tag_timezone_neg_utc = False
        self._message = None

    def _serialize(self) -> list[bytes]:
        headers = []
        headers.append((_OBJECT_HEADER, self._object_sha))
        headers.append((_TYPE_HEADER, self._object_class.type_name))
        headers.append((_TAG_HEADER, self._name))
        if self._tagger:
            if self._tag_time is None:
                headers.append((_TAGGER_HEADER, self._tagger))
            else:
                assert self._tag_timezone is not None
                headers.append(
                    (
                        _TAGGER_HEADER,
                        format_time_entry(
                            self._tagger,
                            self._tag_time,
                            (self._tag_timezone, bool(self._tag_timezone_neg_utc)),
                        ),
                    )
                )
        return list(_format_message(headers, self._message))

    def _deserialize(self, chunks: list[bytes]) -> None:
        """Grab the metadata attached to the tag."""
        self._tagger = None
        self._tag_time = None
        self._tag_timezone = None
        self._tag_timezone_neg_utc = False
        self._message = None
        for field, value in _parse_message(chunks):
            if field == _OBJECT_HEADER:
                self._object_sha = value
            elif field == _TYPE_HEADER:
                assert isinstance(value, bytes)
                obj_class = object_class(value)
                if not obj_class:
                    raise InvalidFormat(f"Not a known type: {value!r}")
                self._object_class = obj_class
            elif field == _TAG_HEADER:
                self._name = value
            elif field == _TAGGER_HEADER:
                assert value is not None
                (
                    self._tagger,
                    self._tag_time,
                    (self._tag_timezone, self._tag_timezone_neg_utc),
                ) = parse_time_entry(value)
            elif field is None:
                self._message = value
            else:
                raise InvalidFormat(f"Unknown field {field!r}")

    def _get_object(self) -> tuple["type[ShaFile]", ObjectID]:
        """Get the object pointed to by this tag.

        Returns: tuple of (object class, sha).
        """
        self._ensure_parsed()
        return (self._object_class, self._object_sha)

    def _set_object(self, value: tuple["type[ShaFile]", ObjectID]) -> None:
        self._ensure_parsed()
        (self._object_class, self._object_sha) = value
        self._needs_serialization = True

    object = property(_get_object, _set_object)

    name = serializable_property("name", "The name of this tag")
    tagger = serializable_property(
        "tagger", "Returns the name of the person who created this tag"
    )
    tag_time = serializable_property(
        "tag_time",
        "The creation timestamp of the tag.  As the number of seconds "
        "since the epoch",
    )
    tag_timezone = serializable_property(
        "tag_timezone", "The timezone that tag_time is in."
    )
    message = serializable_property("message", "the message attached to this tag")


class TreeEntry(NamedTuple):
    """Named tuple encapsulating a single tree entry."""

    path: bytes
    mode: int
    sha: ObjectID


def parse_tree(text: bytes) -> Iterator[tuple[bytes, int, ObjectID]]:
    """Parse a tree text.

    Args:
      text: Serialized text to parse
    Returns: iterator of tuples of (name, mode, sha)

    Raises:
      InvalidFormat: if the object was malformed in some way
    """
    count = 0
    length = len(text)
    while count < length:
        mode_end = text.find(b" ", count)
        if mode_end < 0:
            raise InvalidFormat("truncated tree entry: missing mode separator")
        mode_text = text[count:mode_end]
        try:
            mode = int(mode_text, 8)
        except ValueError as exc:
            raise InvalidFormat(f"Invalid mode {mode_text!r}") from exc
        name_end = text.find(b"\0", mode_end)
        if name_end < 0:
            raise InvalidFormat("truncated tree entry: missing name terminator")
        name = text[mode_end + 1 : name_end]
        count = name_end + 21
        sha = text[name_end + 1 : count]
        if len(sha) != 20:
            raise InvalidFormat("Sha has invalid length")
        hexsha = sha_to_hex(sha)
        yield (name, mode, hexsha)


def serialize_tree(items: Iterable[tuple[bytes, int, ObjectID]]) -> Iterator[bytes]:
    """Serialize the items in a tree to a text.

    Args:
      items: Sorted iterable over (name, mode, sha) tuples
    Returns: Serialized tree text as chunks
    """
    for name, mode, hexsha in items:
        yield (
            (f"{mode:04o}").encode("ascii") + b" " + name + b"\0" + hex_to_sha(hexsha)
        )


def sorted_tree_items(
    entries: dict[bytes, tuple[int, ObjectID]],
) -> Iterator[TreeEntry]:
    """Iterate over a tree entries dictionary in canonical order.

    Entries are ordered by the raw bytes of their names. Directories get no
    special treatment, so a directory ``a`` sorts before a file ``a.txt``.

    Args:
      entries: Dictionary mapping names to (mode, sha) tuples
    Returns: Iterator over (name, mode, hexsha)
    """
    for name in sorted(entries):
        mode, hexsha = entries[name]
        mode = int(mode)
        if not isinstance(hexsha, bytes):
            raise TypeError(f"Expected bytes for SHA, got {hexsha!r}")
        yield TreeEntry(name, mode, hexsha)


def _check_entry_name(name: bytes) -> None:
    if not name or b"/" in name or b"\0" in name:
        raise ValueError(f"invalid tree entry name {name!r}")
    if name in (b".", b"..", b".git"):
        raise ValueError(f"reserved tree entry name {name!r}")


class Tree(ShaFile):
    """A Git tree object."""

    type_name = b"tree"
    type_num = 2

    def __init__(self) -> None:
        super().__init__()
        self._entries: dict[bytes, tuple[int, ObjectID]] = {}

    def __contains__(self, name: bytes) -> bool:
        self._ensure_parsed()
        return name in self._entries

    def __getitem__(self, name: bytes) -> tuple[int, ObjectID]:
        self._ensure_parsed()
        return self._entries[name]

    def __setitem__(self, name: bytes, value: tuple[int, ObjectID]) -> None:
        """Set a tree entry by name.

        Args:
          name: The name of the entry, as a string.
          value: A tuple of (mode, hexsha), where mode is the mode of the
            entry as an integral type and hexsha is the hex SHA of the entry as
            a string.
        """
        mode, hexsha = value
        self.add(name, mode, hexsha)

    def __delitem__(self, name: bytes) -> None:
        self._ensure_parsed()
        del self._entries[name]
        self._needs_serialization = True

    def __len__(self) -> int:
        self._ensure_parsed()
        return len(self._entries)

    def __iter__(self) -> Iterator[bytes]:
        self._ensure_parsed()
        return iter(self._entries)

    def add(self, name: bytes, mode: int, hexsha: ObjectID) -> None:
        """Add an entry to the tree.

        Args:
          name: The name of the entry, as a string.
          mode: The mode of the entry as an integral type. Not all
            possible modes are supported by git; see TREE_ENTRY_MODES.
          hexsha: The hex SHA of the entry as a string.
        """
        _check_entry_name(name)
        if mode not in TREE_ENTRY_MODES:
            raise ValueError(f"invalid tree entry mode {mode:o}")
        if not valid_hexsha(hexsha):
            raise ValueError(f"invalid object id {hexsha!r}")
        self._ensure_parsed()
        self._entries[name] = mode, hexsha
        self._needs_serialization = True

    def iteritems(self) -> Iterator[TreeEntry]:
        """Iterate over entries in the order in which they would be serialized.

        Returns: Iterator over (name, mode, sha) tuples
        """
        self._ensure_parsed()
        return sorted_tree_items(self._entries)

    def items(self) -> list[TreeEntry]:
        """Return the sorted entries in this tree.

        Returns: List with (name, mode, sha) tuples
        """
        return list(self.iteritems())

    def _deserialize(self, chunks: list[bytes]) -> None:
        """Grab the entries in the tree."""
        parsed_entries = parse_tree(b"".join(chunks))
        self._entries = {n: (m, s) for n, m, s in parsed_entries}

    def _serialize(self) -> list[bytes]:
        return list(serialize_tree(self.iteritems()))

    def as_pretty_string(self) -> str:
        """Return a human-readable listing, one ``mode type sha\\tname`` per line."""
        text: list[str] = []
        for entry in self.iteritems():
            text.append(pretty_format_tree_entry(entry.path, entry.mode, entry.sha))
        return "".join(text)


def pretty_format_tree_entry(
    name: bytes, mode: int, hexsha: ObjectID, encoding: str = "utf-8"
) -> str:
    """Pretty format tree entry.

    Args:
      name: Name of the directory entry
      mode: Mode of entry
      hexsha: Hexsha of the referenced object
      encoding: Character encoding for the name
    Returns: string describing the tree entry
    """
    if S_ISGITLINK(mode):
        kind = "commit"
    elif stat.S_ISDIR(mode):
        kind = "tree"
    else:
        kind = "blob"
    return "{:04o} {} {}\t{}\n".format(
        mode,
        kind,
        hexsha.decode("ascii"),
        name.decode(encoding, "replace"),
    )


def parse_timezone(text: bytes) -> tuple[int, bool]:
    """Parse a timezone text fragment (e.g. '+0100').

    Args:
      text: Text to parse.
    Returns: Tuple with timezone as seconds difference to UTC
        and a boolean indicating whether this was a UTC timezone
        prefixed with a negative sign (-0000).
    """
    if text[:1] not in b"+-":
        raise ValueError(f"Timezone must start with + or - ({text!r})")
    sign = text[:1]
    offset = int(text[1:])
    if sign == b"-":
        offset = -offset
    unnecessary_negative_timezone = offset >= 0 and sign == b"-"
    signum = ((offset < 0) and -1) or 1
    offset = abs(offset)
    hours = int(offset / 100)
    minutes = offset % 100
    return (
        signum * (hours * 3600 + minutes * 60),
        unnecessary_negative_timezone,
    )


def format_timezone(offset: int, unnecessary_negative_timezone: bool = False) -> bytes:
    """Format a timezone for Git serialization.

    Args:
      offset: Timezone offset as seconds difference to UTC
      unnecessary_negative_timezone: Whether to use a minus sign for
        UTC or positive timezones (-0000 in commits)
    """
    if offset % 60 != 0:
        raise ValueError("Unable to handle non-minute offset.")
    if offset < 0 or unnecessary_negative_timezone:
        sign = "-"
        offset = -offset
    else:
        sign = "+"
    return ("%c%02d%02d" % (sign, offset / 3600, (offset / 60) % 60)).encode("ascii")  # noqa: UP031


def parse_time_entry(
    value: bytes,
) -> tuple[bytes, int | None, tuple[int | None, bool]]:
    """Parse event.

    Args:
      value: Bytes representing a git commit/tag line
    Raises:
      InvalidFormat in case of parsing error (malformed
      field date)
    Returns: Tuple of (author, time, (timezone, timezone_neg_utc))
    """
    try:
        sep = value.rindex(b"> ")
    except ValueError:
        return (value, None, (None, False))
    try:
        person = value[0 : sep + 1]
        rest = value[sep + 2 :]
        timetext, timezonetext = rest.rsplit(b" ", 1)
        time = int(timetext)
        timezone, timezone_neg_utc = parse_timezone(timezonetext)
    except ValueError as exc:
        raise InvalidFormat(str(exc)) from exc
    return person, time, (timezone, timezone_neg_utc)


def format_time_entry(
    person: bytes, time: int, timezone_info: tuple[int, bool]
) -> bytes:
    """Format an event."""
    (timezone, timezone_neg_utc) = timezone_info
    return b" ".join(
        [person, str(time).encode("ascii"), format_timezone(timezone, timezone_neg_utc)]
    )


class Commit(ShaFile):
    """A git commit object."""

    type_name = b"commit"
    type_num = 1

    def __init__(self) -> None:
        super().__init__()
        self._tree: ObjectID | None = None
        self._author: bytes | None = None
        self._committer: bytes | None = None
        self._parents: list[ObjectID] = []
        self._encoding: bytes | None = None
        self._extra: list[tuple[bytes, bytes | None]] = []
        self._author_timezone_neg_utc: bool | None = False
        self._commit_timezone_neg_utc: bool | None = False
        self._message: bytes | None = None

    def _deserialize(self, chunks: list[bytes]) -> None:
        self._parents = []
        self._extra = []
        self._tree = None
        author_info: tuple[bytes | None, int | None, tuple[int | None, bool | None]] = (
            None,
            None,
            (None, None),
        )
        commit_info: tuple[bytes | None, int | None, tuple[int | None, bool | None]] = (
            None,
            None,
            (None, None),
        )
        self._encoding = None
        self._message = None
        for field, value in _parse_message(chunks):
            if field == _TREE_HEADER:
                self._tree = value
            elif field == _PARENT_HEADER:
                assert value is not None
                self._parents.append(value)
            elif field == _AUTHOR_HEADER:
                assert value is not None
                author_info = parse_time_entry(value)
            elif field == _COMMITTER_HEADER:
                assert value is not None
                commit_info = parse_time_entry(value)
            elif field == _ENCODING_HEADER:
                self._encoding = value
            elif field is None:
                self._message = value
            else:
                self._extra.append((field, value))

        (
            self._author,
            self._author_time,
            (self._author_timezone, self._author_timezone_neg_utc),
        ) = author_info
        (
            self._committer,
            self._commit_time,
            (self._commit_timezone, self._commit_timezone_neg_utc),
        ) = commit_info

    def _serialize(self) -> list[bytes]:
        headers = []
        assert self._tree is not None
        headers.append((_TREE_HEADER, self._tree))
        for p in self._parents:
            headers.append((_PARENT_HEADER, p))
        headers.append(
            (
                _AUTHOR_HEADER,
                format_time_entry(
                    self._author,
                    self._author_time,
                    (self._author_timezone, bool(self._author_timezone_neg_utc)),
                ),
            )
        )
        headers.append(
            (
                _COMMITTER_HEADER,
                format_time_entry(
                    self._committer,
                    self._commit_time,
                    (self._commit_timezone, bool(self._commit_timezone_neg_utc)),
                ),
            )
        )
        if self.encoding:
            headers.append((_ENCODING_HEADER, self.encoding))
        for k, v in self._extra:
            assert v is not None
            headers.append((k, v))
        message = self._message or b""
        if not message.endswith(b"\n"):
            message += b"\n"
        return list(_format_message(headers, message))

    tree = serializable_property("tree", "Tree that is the state of this commit")

    def _get_parents(self) -> list[ObjectID]:
        """Return a list of parents of this commit."""
        self._ensure_parsed()
        return self._parents

    def _set_parents(self, value: list[ObjectID]) -> None:
        """Set a list of parents of this commit."""
        self._ensure_parsed()
        self._needs_serialization = True
        self._parents = value

    parents = property(
        _get_parents,
        _set_parents,
        doc="Parents of this commit, by their SHA1.",
    )

    def _get_extra(self) -> list[tuple[bytes, bytes | None]]:
        """Return extra settings of this commit."""
        self._ensure_parsed()
        return self._extra

    extra = property(
        _get_extra,
        doc="Extra header fields not understood (presumably added in a "
        "newer version of git). Kept verbatim so the object can "
        "be correctly reserialized. For private commit metadata, use "
        "pseudo-headers in Commit.message, rather than this field.",
    )

    author = serializable_property("author", "The name of the author of the commit")

    committer = serializable_property(
        "committer", "The name of the committer of the commit"
    )

    message = serializable_property(
        "message", "The commit message; serialized with a trailing newline"
    )

    commit_time = serializable_property(
        "commit_time",
        "The timestamp of the commit. As the number of seconds since the epoch.",
    )

    commit_timezone = serializable_property(
        "commit_timezone", "The zone the commit time is in"
    )

    author_time = serializable_property(
        "author_time",
        "The timestamp the commit was written. As the number of "
        "seconds since the epoch.",
    )

    author_timezone = serializable_property(
        "author_timezone", "Returns the zone the author time is in."
    )

    encoding = serializable_property("encoding", "Encoding of the commit message.")


OBJECT_CLASSES = (
    Commit,
    Tree,
    Blob,
    Tag,
)

_TYPE_MAP: dict[bytes | int, "type[ShaFile]"] = {}

for cls in OBJECT_CLASSES:
    _TYPE_MAP[cls.type_name] = cls
    _TYPE_MAP[cls.type_num] = cls
