# object_store.py -- Object store for git objects
# Copyright (C) 2008-2013 Jelmer Vernooij <jelmer@jelmer.uk>
#                         and others
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

"""Git object store interfaces and implementation."""

__all__ = [
    "BaseObjectStore",
    "DiskObjectStore",
    "MemoryObjectStore",
]

import os
import zlib
from collections.abc import Callable, Iterable, Iterator, Mapping
from typing import IO

from .errors import Corrupt, InvalidFormat, NotFound
from .file import FileLocked, GitFile, ensure_dir_exists
from .log_utils import getLogger
from .objects import (
    ZERO_SHA,
    ObjectID,
    RawObjectID,
    ShaFile,
    decode_object,
    filename_to_hex,
    hex_to_filename,
    object_class,
    object_header,
    sha_to_hex,
    valid_hexsha,
)
from .pack import unpack_pack_into

logger = getLogger(__name__)

INFODIR = "info"
PACKDIR = "pack"

PEELED_TAG_SUFFIX = b"^{}"


class BaseObjectStore:
    """Object store interface."""

    def determine_wants_all(self, refs: Mapping[bytes, ObjectID]) -> list[ObjectID]:
        """Determine which objects to ask for, given advertised refs.

        Every advertised ref is wanted, deduplicated in advertisement order.
        Peeled tag entries and the zero id are skipped.
        """
        wants: list[ObjectID] = []
        seen: set[ObjectID] = set()
        for ref, sha in refs.items():
            if ref.endswith(PEELED_TAG_SUFFIX) or sha == ZERO_SHA or sha in seen:
                continue
            seen.add(sha)
            wants.append(sha)
        return wants

    def contains_loose(self, sha: ObjectID | RawObjectID) -> bool:
        """Check if a particular object is present by SHA1 and is loose."""
        raise NotImplementedError(self.contains_loose)

    def __contains__(self, sha1: ObjectID | RawObjectID) -> bool:
        """Check if a particular object is present by SHA1."""
        return self.contains_loose(sha1)

    def get_raw(self, name: ObjectID | RawObjectID) -> tuple[int, bytes]:
        """Obtain the raw text for an object.

        Args:
          name: sha for the object.
        Returns: tuple with numeric type and object contents.
        Raises:
          NotFound: if the object is not in the store
        """
        raise NotImplementedError(self.get_raw)

    def get_raw_object(self, name: ObjectID | RawObjectID) -> bytes:
        """Obtain the canonical ``<type> <len>\\0<content>`` bytes of an object."""
        type_num, content = self.get_raw(name)
        return object_header(type_num, len(content)) + content

    def __getitem__(self, sha1: ObjectID | RawObjectID) -> ShaFile:
        """Obtain an object by SHA1."""
        type_num, uncomp = self.get_raw(sha1)
        return ShaFile.from_raw_string(type_num, uncomp, sha=_to_hexsha(sha1))

    def __iter__(self) -> Iterator[ObjectID]:
        """Iterate over the SHAs that are present in this store."""
        raise NotImplementedError(self.__iter__)

    def add_object(self, obj: ShaFile) -> ObjectID:
        """Add a single object to this object store.

        Returns: The id of the object
        """
        raise NotImplementedError(self.add_object)

    def add_raw_object(self, raw: bytes) -> ObjectID:
        """Add an object given as canonical header-prefixed bytes.

        Args:
          raw: Uncompressed object, ``<type> <len>\\0<content>``
        Returns: The id of the object
        Raises:
          InvalidFormat: if raw is not a well-formed object
        """
        type_name, content = decode_object(raw)
        return self.add_object(ShaFile.from_raw_string(type_name, content))

    def add_objects(
        self,
        objects: Iterable[ShaFile],
        progress: Callable[[bytes], None] | None = None,
    ) -> list[ObjectID]:
        """Add a set of objects to this object store.

        Args:
          objects: Iterable over ShaFile objects
          progress: Optional progress reporting function
        Returns: List of the ids added
        """
        return [self.add_object(obj) for obj in objects]

    def add_pack_data(
        self, f: IO[bytes], progress: Callable[[bytes], None] | None = None
    ) -> list[ObjectID]:
        """Decode a complete pack stream into this store.

        Args:
          f: Seekable file holding the pack, trailer included
          progress: Optional progress reporting function
        Returns: List of the ids of the objects written
        """
        return unpack_pack_into(f, self, progress=progress)

    def close(self) -> None:
        """Close any files opened by this object store."""


def _to_hexsha(sha: ObjectID | RawObjectID) -> ObjectID:
    if len(sha) == 40:
        if not valid_hexsha(sha):
            raise ValueError(f"Invalid sha {sha!r}")
        return sha.lower()
    elif len(sha) == 20:
        return sha_to_hex(sha)
    else:
        raise ValueError(f"Invalid sha {sha!r}")


class DiskObjectStore(BaseObjectStore):
    """Git-style object store that exists on disk as loose objects."""

    path: str | os.PathLike[str]

    def __init__(
        self,
        path: str | os.PathLike[str],
        *,
        loose_compression_level: int = -1,
        fsync_object_files: bool = False,
    ) -> None:
        """Open an object store.

        Args:
          path: Path of the object store.
          loose_compression_level: zlib compression level for loose objects
          fsync_object_files: If True, fsync object files when writing
        """
        super().__init__()
        self.path = path
        self.loose_compression_level = loose_compression_level
        self.fsync_object_files = fsync_object_files

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}({self.path!r})>"

    def _get_shafile_path(self, sha: ObjectID | RawObjectID) -> str:
        return hex_to_filename(os.fspath(self.path), _to_hexsha(sha))

    def contains_loose(self, sha: ObjectID | RawObjectID) -> bool:
        """Check if a particular object is present by SHA1 and is loose."""
        return os.path.exists(self._get_shafile_path(sha))

    def __iter__(self) -> Iterator[ObjectID]:
        """Iterate over the SHAs of all loose objects."""
        for base in sorted(os.listdir(self.path)):
            if len(base) != 2:
                continue
            for rest in sorted(os.listdir(os.path.join(self.path, base))):
                try:
                    yield filename_to_hex(os.path.join(base, rest))
                except ValueError:
                    # Lock files and other strays.
                    continue

    def get_raw(self, name: ObjectID | RawObjectID) -> tuple[int, bytes]:
        """Obtain the raw text for an object.

        Args:
          name: sha for the object.
        Returns: tuple with numeric type and object contents.
        Raises:
          NotFound: if there is no loose object with that name
          Corrupt: if the file does not inflate to a valid object
        """
        hexsha = _to_hexsha(name)
        path = self._get_shafile_path(hexsha)
        try:
            with open(path, "rb") as f:
                compressed = f.read()
        except FileNotFoundError as exc:
            raise NotFound(hexsha) from exc
        try:
            raw = zlib.decompress(compressed)
        except zlib.error as exc:
            raise Corrupt(f"object {hexsha.decode('ascii')} does not inflate: {exc}") from exc
        try:
            type_name, content = decode_object(raw)
        except InvalidFormat as exc:
            raise Corrupt(f"object {hexsha.decode('ascii')} is malformed: {exc}") from exc
        type_cls = object_class(type_name)
        assert type_cls is not None
        return type_cls.type_num, content

    def add_object(self, obj: ShaFile) -> ObjectID:
        """Add a single object to this object store.

        Args:
          obj: Object to add
        Returns: The id of the object
        """
        obj_id = obj.id
        path = self._get_shafile_path(obj_id)
        dir = os.path.dirname(path)
        try:
            os.mkdir(dir)
        except FileExistsError:
            pass
        if os.path.exists(path):
            return obj_id  # Already there, no need to write again
        try:
            f = GitFile(path, mask=0o444, fsync=self.fsync_object_files)
        except FileLocked:
            # Someone else is writing the same object, hence the same bytes.
            logger.debug("object %s is being written concurrently", obj_id.decode("ascii"))
            return obj_id
        with f:
            f.write(obj.as_legacy_object(compression_level=self.loose_compression_level))
        logger.debug("wrote %s %s", obj.type_name.decode("ascii"), obj_id.decode("ascii"))
        return obj_id

    @classmethod
    def init(cls, path: str | os.PathLike[str], **kwargs: object) -> "DiskObjectStore":
        """Initialize a new disk object store.

        Creates the objects directory with its ``info`` and ``pack``
        subdirectories.

        Args:
          path: Path where the object store should be created
          kwargs: Passed on to the constructor
        Returns:
          New DiskObjectStore instance
        """
        for subdir in (INFODIR, PACKDIR):
            ensure_dir_exists(os.path.join(path, subdir))
        return cls(path, **kwargs)  # type: ignore[arg-type]


class MemoryObjectStore(BaseObjectStore):
    """Object store that keeps all objects in memory."""

    def __init__(self) -> None:
        super().__init__()
        self._data: dict[ObjectID, ShaFile] = {}

    def contains_loose(self, sha: ObjectID | RawObjectID) -> bool:
        """Check if a particular object is present by SHA1 and is loose."""
        return _to_hexsha(sha) in self._data

    def __iter__(self) -> Iterator[ObjectID]:
        """Iterate over the SHAs that are present in this store."""
        return iter(self._data.keys())

    def __len__(self) -> int:
        return len(self._data)

    def get_raw(self, name: ObjectID | RawObjectID) -> tuple[int, bytes]:
        """Obtain the raw text for an object.

        Args:
          name: sha for the object.
        Returns: tuple with numeric type and object contents.
        """
        hexsha = _to_hexsha(name)
        try:
            obj = self._data[hexsha]
        except KeyError as exc:
            raise NotFound(hexsha) from exc
        return obj.type_num, obj.as_raw_string()

    def __getitem__(self, name: ObjectID | RawObjectID) -> ShaFile:
        """Retrieve a copy of an object by SHA."""
        hexsha = _to_hexsha(name)
        try:
            return self._data[hexsha].copy()
        except KeyError as exc:
            raise NotFound(hexsha) from exc

    def __delitem__(self, name: ObjectID) -> None:
        """Delete an object from this store, for testing only."""
        del self._data[_to_hexsha(name)]

    def add_object(self, obj: ShaFile) -> ObjectID:
        """Add a single object to this object store."""
        obj_id = obj.id
        self._data[obj_id] = obj.copy()
        return obj_id
