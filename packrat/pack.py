# pack.py -- For dealing with packed git objects.
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

"""Classes for decoding packed git objects.

A pack is the stream a server sends in answer to an upload-pack request:
a 12-byte header, a sequence of object records (some of them deltas
against other records or against objects the receiver already has) and a
trailing SHA-1 over everything before it.

Decoding happens in two passes over a seekable file. The first pass
(:class:`PackStreamReader`) walks the records once, remembering where
each starts and what it is based on, and verifies the trailer. The
second pass (:class:`DeltaChainIterator`) seeks back to every record and
inflates it exactly once, resolving delta chains from their bases out.
"""

__all__ = [
    "DELTA_TYPES",
    "OFS_DELTA",
    "PACK_SPOOL_FILE_MAX_SIZE",
    "REF_DELTA",
    "DeltaChainIterator",
    "PackInflater",
    "PackStreamReader",
    "UnpackedObject",
    "apply_delta",
    "chunks_length",
    "obj_sha",
    "read_pack_header",
    "read_zlib_chunks",
    "take_msb_bytes",
    "unpack_object",
    "unpack_pack_into",
]

import zlib
from collections import defaultdict, deque
from collections.abc import Callable, Iterable, Iterator
from hashlib import sha1
from io import BytesIO
from itertools import chain
from os import SEEK_END
from struct import unpack_from
from typing import IO, TYPE_CHECKING, Generic, TypeVar

from .errors import (
    ApplyDeltaError,
    ChecksumMismatch,
    Corrupt,
    NotFound,
    Truncated,
    UnresolvedDelta,
)
from .log_utils import getLogger
from .objects import (
    ObjectID,
    RawObjectID,
    ShaFile,
    object_class,
    object_header,
    sha_to_hex,
)

if TYPE_CHECKING:
    from .object_store import BaseObjectStore

logger = getLogger(__name__)

OFS_DELTA = 6
REF_DELTA = 7

DELTA_TYPES = (OFS_DELTA, REF_DELTA)

# Keep pack files under 16Mb in memory, otherwise write them out to disk
PACK_SPOOL_FILE_MAX_SIZE = 16 * 1024 * 1024

PACK_SIGNATURE = b"PACK"
SUPPORTED_PACK_VERSIONS = (2,)

_ZLIB_BUFSIZE = 65536

ResolveExtRefFn = Callable[[bytes], tuple[int, list[bytes]]]
ProgressFn = Callable[[bytes], None]

T = TypeVar("T")


def take_msb_bytes(read: Callable[[int], bytes]) -> list[int]:
    """Read bytes marked with most significant bit.

    Args:
      read: Read function
    Returns: List of the byte values read, the last one with its high bit
      clear.
    """
    ret: list[int] = []
    while len(ret) == 0 or ret[-1] & 0x80:
        b = read(1)
        if not b:
            raise Truncated("pack ended inside an object header")
        ret.append(b[0])
    return ret


class UnpackedObject:
    """Class encapsulating an object unpacked from a pack file.

    These objects should only be created from within unpack_object. Most
    members start out as empty and are filled in at various points by
    read_zlib_chunks, unpack_object and DeltaChainIterator.
    """

    __slots__ = [
        "_sha",  # Cached binary SHA.
        "decomp_chunks",  # Decompressed object chunks.
        "decomp_len",  # Decompressed length of this object.
        "delta_base",  # Delta base offset or SHA.
        "obj_chunks",  # Decompressed and delta-resolved chunks.
        "obj_type_num",  # Type of this object.
        "offset",  # Offset in its pack.
        "pack_type_num",  # Type of this object in the pack (may be a delta).
    ]

    obj_type_num: int | None
    obj_chunks: list[bytes] | None
    delta_base: None | bytes | int
    decomp_chunks: list[bytes]
    decomp_len: int | None
    offset: int | None
    pack_type_num: int
    _sha: bytes | None

    def __init__(
        self,
        pack_type_num: int,
        *,
        delta_base: None | bytes | int = None,
        decomp_len: int | None = None,
        sha: bytes | None = None,
        decomp_chunks: list[bytes] | None = None,
        offset: int | None = None,
    ) -> None:
        """Initialize an UnpackedObject.

        Args:
            pack_type_num: Type number of this object in the pack
            delta_base: Delta base (offset or SHA) if this is a delta object
            decomp_len: Decompressed length of this object
            sha: SHA hash of the object
            decomp_chunks: Decompressed chunks
            offset: Offset in the pack file
        """
        self.offset = offset
        self._sha = sha
        self.pack_type_num = pack_type_num
        self.delta_base = delta_base
        self.decomp_chunks: list[bytes] = decomp_chunks or []
        if decomp_chunks is not None and decomp_len is None:
            self.decomp_len = sum(map(len, decomp_chunks))
        else:
            self.decomp_len = decomp_len

        if pack_type_num in DELTA_TYPES:
            self.obj_type_num = None
            self.obj_chunks = None
        else:
            self.obj_type_num = pack_type_num
            self.obj_chunks = self.decomp_chunks

    def sha(self) -> RawObjectID:
        """Return the binary SHA of this object."""
        if self._sha is None:
            assert self.obj_type_num is not None and self.obj_chunks is not None
            self._sha = obj_sha(self.obj_type_num, self.obj_chunks)
        return self._sha

    def sha_file(self) -> ShaFile:
        """Return a ShaFile from this object."""
        assert self.obj_type_num is not None and self.obj_chunks is not None
        return ShaFile.from_raw_chunks(
            self.obj_type_num, self.obj_chunks, sha_to_hex(self.sha())
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, UnpackedObject):
            return False
        for slot in self.__slots__:
            if getattr(self, slot) != getattr(other, slot):
                return False
        return True

    def __ne__(self, other: object) -> bool:
        return not (self == other)

    def __repr__(self) -> str:
        data = [f"{s}={getattr(self, s)!r}" for s in self.__slots__]
        return "{}({})".format(self.__class__.__name__, ", ".join(data))


def read_zlib_chunks(
    read_some: Callable[[int], bytes],
    unpacked: UnpackedObject,
    buffer_size: int = _ZLIB_BUFSIZE,
) -> bytes:
    """Read zlib data from a buffer.

    The end of the compressed data is found by zlib itself; whatever was
    read beyond it is handed back to the caller.

    Args:
      read_some: Read function that returns at least one byte, but may
        return less than the requested size.
      unpacked: An UnpackedObject to write result data to. Its decomp_len
        must hold the declared size; decomp_chunks is filled in.
      buffer_size: Size of the read buffer.
    Returns: Leftover unused data from the decompression.

    Raises:
      Truncated: if input ended before the end of the zlib stream
      Corrupt: if the data does not inflate, or inflates to a size other
        than the declared one
    """
    if unpacked.decomp_len is None or unpacked.decomp_len <= -1:
        raise ValueError("non-negative zlib data stream size expected")
    decomp_obj = zlib.decompressobj()

    decomp_chunks = unpacked.decomp_chunks
    decomp_len = 0

    while not decomp_obj.eof:
        add = read_some(buffer_size)
        if not add:
            raise Truncated("EOF before end of zlib stream")
        try:
            decomp = decomp_obj.decompress(add)
        except zlib.error as exc:
            raise Corrupt(f"invalid zlib stream: {exc}") from exc
        decomp_len += len(decomp)
        decomp_chunks.append(decomp)

    if decomp_len != unpacked.decomp_len:
        raise Corrupt(
            f"decompressed data does not match expected size: "
            f"{decomp_len} != {unpacked.decomp_len}"
        )
    return decomp_obj.unused_data


def read_pack_header(read: Callable[[int], bytes]) -> tuple[int, int]:
    """Read the header of a pack file.

    Args:
      read: Read function
    Returns: Tuple of (pack version, number of objects).
    """
    header = read(12)
    if len(header) < 12:
        raise Truncated("file too short to contain pack")
    if header[:4] != PACK_SIGNATURE:
        raise Corrupt(f"Invalid pack header {header!r}")
    (version,) = unpack_from(b">L", header, 4)
    if version not in SUPPORTED_PACK_VERSIONS:
        raise Corrupt(f"Version was {version}")
    (num_objects,) = unpack_from(b">L", header, 8)
    return (version, num_objects)


def chunks_length(chunks: bytes | Iterable[bytes]) -> int:
    """Get the total length of a sequence of chunks.

    Args:
      chunks: Either a single bytes object or an iterable of bytes
    Returns: Total length in bytes
    """
    if isinstance(chunks, bytes):
        return len(chunks)
    else:
        return sum(map(len, chunks))


def unpack_object(
    read_all: Callable[[int], bytes],
    read_some: Callable[[int], bytes] | None = None,
    zlib_bufsize: int = _ZLIB_BUFSIZE,
) -> tuple[UnpackedObject, bytes]:
    """Unpack a Git object.

    Args:
      read_all: Read function that blocks until the number of requested
        bytes are read.
      read_some: Read function that returns at least one byte, but may not
        return the number of bytes requested.
      zlib_bufsize: An optional buffer size for zlib operations.
    Returns: A tuple of (unpacked, unused), where unused is the unused data
        leftover from decompression, and unpacked in an UnpackedObject with
        the following attrs set:

        * obj_chunks     (for non-delta types)
        * pack_type_num
        * delta_base     (for delta types)
        * decomp_chunks
        * decomp_len
    """
    if read_some is None:
        read_some = read_all

    raw = take_msb_bytes(read_all)
    type_num = (raw[0] >> 4) & 0x07
    size = raw[0] & 0x0F
    for i, byte in enumerate(raw[1:]):
        size += (byte & 0x7F) << ((i * 7) + 4)

    delta_base: int | bytes | None
    if type_num == OFS_DELTA:
        raw = take_msb_bytes(read_all)
        delta_base_offset = raw[0] & 0x7F
        for byte in raw[1:]:
            delta_base_offset += 1
            delta_base_offset <<= 7
            delta_base_offset += byte & 0x7F
        delta_base = delta_base_offset
    elif type_num == REF_DELTA:
        delta_base_obj = read_all(20)
        if len(delta_base_obj) != 20:
            raise Truncated("pack ended inside a delta base name")
        delta_base = delta_base_obj
    elif object_class(type_num) is not None:
        delta_base = None
    else:
        raise Corrupt(f"Invalid object type {type_num} in pack")

    unpacked = UnpackedObject(type_num, delta_base=delta_base, decomp_len=size)
    unused = read_zlib_chunks(read_some, unpacked, buffer_size=zlib_bufsize)
    return unpacked, unused


class PackStreamReader:
    """Class to read a pack stream.

    Every byte read is fed into a running SHA-1, except for the last 20
    which are kept aside as the candidate trailer.
    """

    def __init__(
        self,
        read_all: Callable[[int], bytes],
        read_some: Callable[[int], bytes] | None = None,
        zlib_bufsize: int = _ZLIB_BUFSIZE,
    ) -> None:
        """Initialize pack stream reader.

        Args:
            read_all: Function to read all requested bytes
            read_some: Function to read some bytes (optional)
            zlib_bufsize: Buffer size for zlib decompression
        """
        self.read_all = read_all
        if read_some is None:
            self.read_some = read_all
        else:
            self.read_some = read_some
        self.sha = sha1()
        self._offset = 0
        self._rbuf = BytesIO()
        # trailer is a deque to avoid memory allocation on small reads
        self._trailer: deque[int] = deque()
        self._zlib_bufsize = zlib_bufsize
        self._num_objects = 0

    def _read(self, read: Callable[[int], bytes], size: int) -> bytes:
        """Read up to size bytes using the given callback.

        As a side effect, update the verifier's hash (excluding the last
        20 bytes read, which is the pack checksum).

        Args:
          read: The read callback to read from.
          size: The maximum number of bytes to read; the particular
            behavior is callback-specific.
        Returns: Bytes read
        """
        data = read(size)

        # maintain a trailer of the last 20 bytes we've read
        n = len(data)
        if not n:
            return data
        self._offset += n
        tn = len(self._trailer)
        if n >= 20:
            to_pop = tn
            to_add = 20
        else:
            to_pop = max(n + tn - 20, 0)
            to_add = n
        self.sha.update(bytes(bytearray([self._trailer.popleft() for _ in range(to_pop)])))
        self._trailer.extend(data[-to_add:])

        # hash everything but the trailer
        self.sha.update(data[:-to_add])
        return data

    def _buf_len(self) -> int:
        buf = self._rbuf
        start = buf.tell()
        buf.seek(0, SEEK_END)
        end = buf.tell()
        buf.seek(start)
        return end - start

    @property
    def offset(self) -> int:
        """Return current offset in the stream."""
        return self._offset - self._buf_len()

    def read(self, size: int) -> bytes:
        """Read, blocking until size bytes are read."""
        buf_len = self._buf_len()
        if buf_len >= size:
            return self._rbuf.read(size)
        buf_data = self._rbuf.read()
        self._rbuf = BytesIO()
        data = buf_data + self._read(self.read_all, size - buf_len)
        if len(data) < size:
            raise Truncated(
                f"unexpected end of pack at offset {self._offset}: "
                f"wanted {size} bytes, got {len(data)}"
            )
        return data

    def recv(self, size: int) -> bytes:
        """Read up to size bytes, blocking until one byte is read."""
        buf_len = self._buf_len()
        if buf_len:
            data = self._rbuf.read(size)
            if size >= buf_len:
                self._rbuf = BytesIO()
            return data
        return self._read(self.read_some, size)

    def __len__(self) -> int:
        """Return the number of objects in this pack."""
        return self._num_objects

    def read_objects(self) -> Iterator[UnpackedObject]:
        """Read the objects in this pack file.

        Returns: Iterator over UnpackedObjects with the following members set:
            offset
            obj_type_num
            obj_chunks (for non-delta types)
            delta_base (for delta types)
            decomp_chunks
            decomp_len

        Raises:
          ChecksumMismatch: if the checksum of the pack contents does not
            match the checksum in the pack trailer.
          Truncated: if the stream ends before the last record or trailer.
          Corrupt: if a record cannot be decoded.
        """
        _pack_version, self._num_objects = read_pack_header(self.read)

        for _ in range(self._num_objects):
            offset = self.offset
            unpacked, unused = unpack_object(
                self.read,
                read_some=self.recv,
                zlib_bufsize=self._zlib_bufsize,
            )
            unpacked.offset = offset

            # prepend any unused data to current read buffer
            buf = BytesIO()
            buf.write(unused)
            buf.write(self._rbuf.read())
            buf.seek(0)
            self._rbuf = buf

            yield unpacked

        if self._buf_len() < 20:
            # The rest of the trailer is still on the wire; read() takes what
            # is buffered first.
            self.read(20)
        else:
            self._rbuf.read(20)

        pack_sha = bytes(bytearray(self._trailer))
        if pack_sha != self.sha.digest():
            raise ChecksumMismatch(sha_to_hex(pack_sha), self.sha.hexdigest())


def obj_sha(type: int, chunks: bytes | Iterable[bytes]) -> RawObjectID:
    """Compute the binary SHA of an object from its type and content."""
    sha = sha1()
    sha.update(object_header(type, chunks_length(chunks)))
    if isinstance(chunks, bytes):
        sha.update(chunks)
    else:
        for chunk in chunks:
            sha.update(chunk)
    return sha.digest()


class DeltaChainIterator(Generic[T]):
    """Abstract iterator over pack data based on delta chains.

    Each object in the pack is guaranteed to be inflated exactly once,
    regardless of how many objects reference it as a delta base. As a result,
    memory usage is proportional to the length of the longest delta chain.

    Subclasses override _result to define the result type of the iterator.
    """

    def __init__(
        self,
        file_obj: IO[bytes],
        *,
        resolve_ext_ref: ResolveExtRefFn | None = None,
    ) -> None:
        """Initialize DeltaChainIterator.

        Args:
            file_obj: Seekable file object to read pack data from
            resolve_ext_ref: Optional function to resolve bases that are
              not in the pack; raises KeyError for unknown names
        """
        self._file = file_obj
        self._resolve_ext_ref = resolve_ext_ref
        self._pending_ofs: dict[int, list[int]] = defaultdict(list)
        self._pending_ref: dict[bytes, list[int]] = defaultdict(list)
        self._full_ofs: list[tuple[int, int]] = []
        self._ext_refs: list[RawObjectID] = []
        self.num_objects = 0

    @classmethod
    def for_pack_file(
        cls,
        f: IO[bytes],
        resolve_ext_ref: ResolveExtRefFn | None = None,
    ) -> "DeltaChainIterator[T]":
        """Scan and verify a pack file, ready for resolution.

        This runs the first pass: every record is located and the trailer
        checksum is checked before anything is returned.

        Args:
          f: Seekable file object positioned anywhere; it is rewound
          resolve_ext_ref: Optional function to resolve external refs
        Returns:
          DeltaChainIterator instance
        """
        walker = cls(f, resolve_ext_ref=resolve_ext_ref)
        f.seek(0)
        reader = PackStreamReader(f.read)
        for unpacked in reader.read_objects():
            walker.record(unpacked)
        walker.num_objects = len(reader)
        return walker

    def record(self, unpacked: UnpackedObject) -> None:
        """Record an unpacked object for later processing.

        Args:
          unpacked: UnpackedObject to record
        """
        type_num = unpacked.pack_type_num
        offset = unpacked.offset
        assert offset is not None
        if type_num == OFS_DELTA:
            assert isinstance(unpacked.delta_base, int)
            base_offset = offset - unpacked.delta_base
            self._pending_ofs[base_offset].append(offset)
        elif type_num == REF_DELTA:
            assert isinstance(unpacked.delta_base, bytes)
            self._pending_ref[unpacked.delta_base].append(offset)
        else:
            self._full_ofs.append((offset, type_num))

    def _walk_all_chains(self) -> Iterator[T]:
        for offset, type_num in self._full_ofs:
            yield from self._follow_chain(offset, type_num, None)
        yield from self._walk_ref_chains()
        self._ensure_no_pending()

    def _ensure_no_pending(self) -> None:
        missing = [sha_to_hex(s) for s in self._pending_ref]
        missing.extend(
            f"offset {ofs}".encode("ascii") for ofs in sorted(self._pending_ofs)
        )
        if missing:
            raise UnresolvedDelta(missing)

    def _walk_ref_chains(self) -> Iterator[T]:
        if not self._resolve_ext_ref:
            return

        for base_sha, pending in sorted(self._pending_ref.items()):
            if base_sha not in self._pending_ref:
                continue
            try:
                type_num, chunks = self._resolve_ext_ref(base_sha)
            except KeyError:
                # Not an external ref, but may depend on one. Either it will
                # get popped via a _follow_chain call, or we will raise an
                # error below.
                continue
            self._ext_refs.append(base_sha)
            self._pending_ref.pop(base_sha)
            for new_offset in pending:
                yield from self._follow_chain(new_offset, type_num, chunks)

    def _result(self, unpacked: UnpackedObject) -> T:
        raise NotImplementedError

    def _resolve_object(
        self, offset: int, obj_type_num: int, base_chunks: list[bytes] | None
    ) -> UnpackedObject:
        self._file.seek(offset)
        unpacked, _ = unpack_object(self._file.read)
        unpacked.offset = offset
        if base_chunks is None:
            assert unpacked.pack_type_num == obj_type_num
        else:
            assert unpacked.pack_type_num in DELTA_TYPES
            unpacked.obj_type_num = obj_type_num
            unpacked.obj_chunks = apply_delta(base_chunks, unpacked.decomp_chunks)
        return unpacked

    def _follow_chain(
        self, offset: int, obj_type_num: int, base_chunks: list[bytes] | None
    ) -> Iterator[T]:
        todo = [(offset, obj_type_num, base_chunks)]
        while todo:
            (offset, obj_type_num, base_chunks) = todo.pop()
            unpacked = self._resolve_object(offset, obj_type_num, base_chunks)
            yield self._result(unpacked)

            assert unpacked.offset is not None
            assert unpacked.obj_type_num is not None
            assert unpacked.obj_chunks is not None
            unblocked = chain(
                self._pending_ofs.pop(unpacked.offset, []),
                self._pending_ref.pop(unpacked.sha(), []),
            )
            todo.extend(
                (new_offset, unpacked.obj_type_num, unpacked.obj_chunks)
                for new_offset in unblocked
            )

    def __iter__(self) -> Iterator[T]:
        """Iterate over objects in the pack."""
        return self._walk_all_chains()

    def ext_refs(self) -> list[RawObjectID]:
        """Return external references."""
        return self._ext_refs


class PackInflater(DeltaChainIterator[ShaFile]):
    """Delta chain iterator that yields ShaFile objects."""

    def _result(self, unpacked: UnpackedObject) -> ShaFile:
        return unpacked.sha_file()


def _get_delta_header_size(delta: bytes, index: int) -> tuple[int, int]:
    size = 0
    i = 0
    while True:
        if index >= len(delta):
            raise ApplyDeltaError("delta header truncated")
        cmd = delta[index]
        index += 1
        size |= (cmd & ~0x80) << i
        i += 7
        if not cmd & 0x80:
            break
    return size, index


def apply_delta(
    src_buf: bytes | list[bytes], delta: bytes | list[bytes]
) -> list[bytes]:
    """Based on the similar function in git's patch-delta.c.

    Args:
      src_buf: Source buffer
      delta: Delta instructions
    Returns: The reconstructed object as a list of chunks
    Raises:
      ApplyDeltaError: if the delta does not apply to src_buf
    """
    if not isinstance(src_buf, bytes):
        src_buf = b"".join(src_buf)
    if not isinstance(delta, bytes):
        delta = b"".join(delta)
    out = []
    index = 0
    delta_length = len(delta)

    src_size, index = _get_delta_header_size(delta, index)
    dest_size, index = _get_delta_header_size(delta, index)
    if src_size != len(src_buf):
        raise ApplyDeltaError(
            f"Unexpected source buffer size: {src_size} vs {len(src_buf)}"
        )
    while index < delta_length:
        cmd = delta[index]
        index += 1
        if cmd & 0x80:
            cp_off = 0
            for i in range(4):
                if cmd & (1 << i):
                    if index >= delta_length:
                        raise ApplyDeltaError("copy instruction truncated")
                    cp_off |= delta[index] << (i * 8)
                    index += 1
            cp_size = 0
            for i in range(3):
                if cmd & (1 << (4 + i)):
                    if index >= delta_length:
                        raise ApplyDeltaError("copy instruction truncated")
                    cp_size |= delta[index] << (i * 8)
                    index += 1
            if cp_size == 0:
                cp_size = 0x10000
            if cp_off + cp_size > src_size or cp_size > dest_size:
                raise ApplyDeltaError(
                    f"copy [{cp_off}:{cp_off + cp_size}] outside base of "
                    f"size {src_size}"
                )
            out.append(src_buf[cp_off : cp_off + cp_size])
        elif cmd != 0:
            if index + cmd > delta_length:
                raise ApplyDeltaError("insert instruction truncated")
            out.append(delta[index : index + cmd])
            index += cmd
        else:
            raise ApplyDeltaError("Invalid opcode 0")

    if dest_size != chunks_length(out):
        raise ApplyDeltaError("dest size incorrect")

    return out


def unpack_pack_into(
    f: IO[bytes],
    object_store: "BaseObjectStore",
    progress: ProgressFn | None = None,
) -> list[ObjectID]:
    """Decode a complete pack from a seekable file into an object store.

    The trailer checksum is verified over the whole pack before the first
    object is written. REF_DELTA bases missing from the pack are looked up
    in object_store.

    Args:
      f: Seekable file containing the pack
      object_store: Object store to add the objects to
      progress: Optional progress reporting function, called with bytes
    Returns: List of the ids of the objects written, in resolution order
    """

    def resolve_ext_ref(sha: bytes) -> tuple[int, list[bytes]]:
        try:
            type_num, content = object_store.get_raw(sha_to_hex(sha))
        except NotFound as exc:
            raise KeyError(sha) from exc
        return type_num, [content]

    inflater = PackInflater.for_pack_file(f, resolve_ext_ref=resolve_ext_ref)
    total = inflater.num_objects
    logger.debug("pack verified: %d objects", total)
    written: list[ObjectID] = []
    for i, obj in enumerate(inflater, 1):
        written.append(object_store.add_object(obj))
        if progress is not None:
            progress(f"Resolving objects: {i}/{total}\r".encode("ascii"))
    if progress is not None:
        progress(f"Resolving objects: done, {len(written)} objects.\n".encode("ascii"))
    if inflater.ext_refs():
        logger.debug(
            "resolved %d delta bases from the object store", len(inflater.ext_refs())
        )
    return written
