# utils.py -- Test utilities for Packrat.
# Copyright (C) 2010 Google, Inc.
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

"""Utility functions common to Packrat tests."""

import struct
import zlib
from hashlib import sha1
from typing import Any

from packrat.objects import Commit
from packrat.pack import OFS_DELTA, REF_DELTA

# Plain files are very frequently used in tests, so let the mode be very short.
F = 0o100644  # Shorthand mode for Files.


def make_commit(**attrs: Any) -> Commit:
    """Make a Commit object with a default set of members.

    Args:
      attrs: dict of attributes to overwrite from the default values.
    Returns: A newly initialized Commit object.
    """
    default_time = 1262304000  # 2010-01-01 00:00:00 UTC
    all_attrs = {
        "author": b"Test Author <test@nodomain.com>",
        "author_time": default_time,
        "author_timezone": 0,
        "committer": b"Test Committer <test@nodomain.com>",
        "commit_time": default_time,
        "commit_timezone": 0,
        "message": b"Test message.",
        "parents": [],
        "tree": b"0" * 40,
    }
    all_attrs.update(attrs)
    c = Commit()
    for name, value in all_attrs.items():
        setattr(c, name, value)
    return c


def pack_object_header(
    type_num: int, size: int, delta_base: int | bytes | None = None
) -> bytes:
    """Create a pack object header for the given object info.

    Args:
      type_num: Numeric type of the object.
      size: Uncompressed object size.
      delta_base: Distance back to the base for an offset delta, or the
        raw name of the base for a ref delta.
    Returns: The header bytes.
    """
    header = []
    c = (type_num << 4) | (size & 15)
    size >>= 4
    while size:
        header.append(c | 0x80)
        c = size & 0x7F
        size >>= 7
    header.append(c)
    if type_num == OFS_DELTA:
        assert isinstance(delta_base, int)
        ret = [delta_base & 0x7F]
        delta_base >>= 7
        while delta_base:
            delta_base -= 1
            ret.insert(0, 0x80 | (delta_base & 0x7F))
            delta_base >>= 7
        header.extend(ret)
    elif type_num == REF_DELTA:
        assert isinstance(delta_base, bytes) and len(delta_base) == 20
        return bytes(header) + delta_base
    return bytes(header)


def _encode_size(size: int) -> bytes:
    ret = []
    c = size & 0x7F
    size >>= 7
    while size:
        ret.append(c | 0x80)
        c = size & 0x7F
        size >>= 7
    ret.append(c)
    return bytes(ret)


def delta_header(src_size: int, dest_size: int) -> bytes:
    """Encode the source and target size varints that start a delta."""
    return _encode_size(src_size) + _encode_size(dest_size)


def copy_op(offset: int, size: int) -> bytes:
    """Encode a delta instruction copying size bytes at offset of the base."""
    op = 0x80
    args = []
    for i in range(4):
        if offset & (0xFF << (i * 8)):
            op |= 1 << i
            args.append((offset >> (i * 8)) & 0xFF)
    if size != 0x10000:
        for i in range(3):
            if size & (0xFF << (i * 8)):
                op |= 1 << (4 + i)
                args.append((size >> (i * 8)) & 0xFF)
    return bytes([op, *args])


def insert_op(data: bytes) -> bytes:
    """Encode a delta instruction inserting literal data."""
    assert 0 < len(data) < 0x80
    return bytes([len(data)]) + data


def build_pack(object_records: list[tuple[int, Any]], version: int = 2) -> bytes:
    """Build test pack data from a list of object records.

    Args:
      object_records: A list of (type_num, obj). For non-delta types, obj
        is the string of that object's data. For delta types, obj is a
        tuple of (base, delta), where base is either an index in
        object_records of the base for an offset delta, or a raw 20-byte
        name for a ref delta, and delta is the encoded delta.
      version: Pack version to put in the header.
    Returns: The pack, trailer included.
    """
    out = [b"PACK", struct.pack(">L", version), struct.pack(">L", len(object_records))]
    offsets: dict[int, int] = {}
    offset = 12
    for i, (type_num, obj) in enumerate(object_records):
        offsets[i] = offset
        if type_num == OFS_DELTA:
            base_index, data = obj
            header = pack_object_header(type_num, len(data), offset - offsets[base_index])
        elif type_num == REF_DELTA:
            base_ref, data = obj
            header = pack_object_header(type_num, len(data), base_ref)
        else:
            data = obj
            header = pack_object_header(type_num, len(data))
        record = header + zlib.compress(data)
        out.append(record)
        offset += len(record)
    body = b"".join(out)
    return body + sha1(body).digest()


def raw_sha(type_name: bytes, content: bytes) -> bytes:
    """Compute the binary object name of some content."""
    return sha1(type_name + b" " + str(len(content)).encode("ascii") + b"\0" + content).digest()
