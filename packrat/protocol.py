# protocol.py -- Shared parts of the git protocols
# Copyright (C) 2008 John Carr <john.carr@unrouted.co.uk>
# Copyright (C) 2008-2012 Jelmer Vernooij <jelmer@jelmer.uk>
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

"""Generic functions for talking the git smart server protocol."""

__all__ = [
    "CAPABILITIES_REF",
    "CAPABILITY_AGENT",
    "CAPABILITY_OFS_DELTA",
    "CAPABILITY_SIDE_BAND",
    "CAPABILITY_SIDE_BAND_64K",
    "MAX_PKT_PAYLOAD",
    "PEELED_TAG_SUFFIX",
    "SIDE_BAND_CHANNEL_DATA",
    "SIDE_BAND_CHANNEL_FATAL",
    "SIDE_BAND_CHANNEL_PROGRESS",
    "Protocol",
    "agent_string",
    "capability_agent",
    "demux_side_band",
    "extract_capabilities",
    "parse_capability",
    "pkt_line",
    "pkt_seq",
    "read_side_band_data",
]

from collections.abc import Callable, Iterable, Iterator

import packrat

from .errors import GitProtocolError, HangupException, RemoteError
from .log_utils import getLogger

logger = getLogger(__name__)

# pkt-lines are limited to 65520 bytes, four of which are the length.
MAX_PKT_LINE = 65520
MAX_PKT_PAYLOAD = MAX_PKT_LINE - 4

SIDE_BAND_CHANNEL_DATA = 1
SIDE_BAND_CHANNEL_PROGRESS = 2
SIDE_BAND_CHANNEL_FATAL = 3

CAPABILITY_AGENT = b"agent"
CAPABILITY_INCLUDE_TAG = b"include-tag"
CAPABILITY_MULTI_ACK = b"multi_ack"
CAPABILITY_MULTI_ACK_DETAILED = b"multi_ack_detailed"
CAPABILITY_NO_PROGRESS = b"no-progress"
CAPABILITY_OFS_DELTA = b"ofs-delta"
CAPABILITY_SHALLOW = b"shallow"
CAPABILITY_SIDE_BAND = b"side-band"
CAPABILITY_SIDE_BAND_64K = b"side-band-64k"
CAPABILITY_SYMREF = b"symref"
CAPABILITY_THIN_PACK = b"thin-pack"

COMMAND_DONE = b"done"
COMMAND_WANT = b"want"

# Placeholder ref advertised by servers with no refs at all.
CAPABILITIES_REF = b"capabilities^{}"
PEELED_TAG_SUFFIX = b"^{}"


def agent_string() -> bytes:
    """Return the agent string for this packrat version."""
    return ("packrat/" + ".".join(map(str, packrat.__version__))).encode("ascii")


def capability_agent() -> bytes:
    """Return the agent capability advertised to servers."""
    return CAPABILITY_AGENT + b"=" + agent_string()


def parse_capability(capability: bytes) -> tuple[bytes, bytes | None]:
    """Parse a capability string into name and value.

    Args:
      capability: Capability, e.g. ``b"agent=git/2.40"``
    Returns: Tuple of (name, value); value is None for bare capabilities
    """
    parts = capability.split(b"=", 1)
    if len(parts) == 1:
        return (parts[0], None)
    return (parts[0], parts[1])


def extract_capabilities(text: bytes) -> tuple[bytes, list[bytes]]:
    """Extract a capabilities list from a string, if present.

    Args:
      text: String to extract from
    Returns: Tuple with text with capabilities removed and list of capabilities
    """
    if b"\0" not in text:
        return text, []
    text, capabilities = text.rstrip().split(b"\0")
    return (text, capabilities.strip().split())


def pkt_line(data: bytes | None) -> bytes:
    """Wrap data in a pkt-line.

    Args:
      data: The data to wrap, as a str or None.
    Returns: The data prefixed with its length in pkt-line format; if data was
        None, returns the flush-pkt ('0000').
    """
    if data is None:
        return b"0000"
    if len(data) > MAX_PKT_PAYLOAD:
        raise ValueError(
            f"pkt-line payload of {len(data)} bytes exceeds {MAX_PKT_PAYLOAD}"
        )
    return f"{len(data) + 4:04x}".encode("ascii") + data


def pkt_seq(*seq: bytes | None) -> bytes:
    """Wrap a sequence of data in pkt-lines, followed by a flush-pkt.

    Args:
      seq: An iterable of strings to wrap.
    """
    return b"".join([pkt_line(s) for s in seq]) + pkt_line(None)


class Protocol:
    """Class for interacting with a remote git process over the wire.

    Parts of the git wire protocol use 'pkt-lines' to communicate. A pkt-line
    consists of the length of the line as a 4-byte hex string, followed by the
    payload data. The length includes the 4-byte header. The special line
    '0000' indicates the end of a section of input and is called a 'flush-pkt'.

    For details on the pkt-line format, see the cgit distribution:
        Documentation/technical/protocol-common.txt
    """

    def __init__(
        self,
        read: Callable[[int], bytes],
        write: Callable[[bytes], object] | None = None,
    ) -> None:
        """Initialize Protocol.

        Args:
          read: Function to read bytes from the transport
          write: Function to write bytes to the transport
        """
        self.read = read
        self.write = write

    def read_pkt_line(self) -> bytes | None:
        """Reads a pkt-line from the remote git process.

        Returns: The next string from the stream, without the length prefix, or
            None for a flush-pkt ('0000').
        Raises:
          HangupException: if the stream ends before the packet does
          GitProtocolError: if the length prefix is malformed
        """
        return self._read_pkt_contents(self.read(4))

    def _read_pkt_contents(self, sizestr: bytes) -> bytes | None:
        if len(sizestr) < 4:
            raise HangupException()
        try:
            size = int(sizestr, 16)
        except ValueError as exc:
            raise GitProtocolError(f"Invalid pkt-line length {sizestr!r}") from exc
        if size == 0:
            return None
        if size < 4 or size > MAX_PKT_LINE:
            raise GitProtocolError(f"Invalid pkt-line length {size}")
        pkt_contents = self.read(size - 4)
        if len(pkt_contents) + 4 != size:
            raise HangupException()
        return pkt_contents

    def read_pkt_seq(self) -> Iterator[bytes]:
        """Read a sequence of pkt-lines from the remote git process.

        Returns: Yields each line of data up to but not including the next
            flush-pkt.
        """
        pkt = self.read_pkt_line()
        while pkt is not None:
            yield pkt
            pkt = self.read_pkt_line()

    def read_pkt_lines(self) -> Iterator[bytes | None]:
        """Read pkt-lines until the stream ends.

        Flush-pkts are yielded as None. The stream may only end on a packet
        boundary.
        """
        while True:
            sizestr = self.read(4)
            if not sizestr:
                return
            yield self._read_pkt_contents(sizestr)

    def write_pkt_line(self, line: bytes | None) -> None:
        """Sends a pkt-line to the remote git process.

        Args:
          line: A string containing the data to send, without the length
            prefix.
        """
        assert self.write is not None
        self.write(pkt_line(line))


def read_side_band_data(pkt_seq: Iterable[bytes]) -> Iterator[tuple[int, bytes]]:
    """Read per-channel data.

    This requires the side-band or side-band-64k capability.

    Args:
      pkt_seq: Sequence of packets to read
    Returns: Iterator over (channel, payload) tuples; empty packets are
      skipped
    """
    for pkt in pkt_seq:
        if not pkt:
            continue
        channel = pkt[0]
        yield channel, pkt[1:]


def demux_side_band(
    pkt_seq: Iterable[bytes],
    pack_data: Callable[[bytes], object],
    progress: Callable[[bytes], None] | None = None,
) -> None:
    """Split a multiplexed upload-pack response into its channels.

    Args:
      pkt_seq: Sequence of packets, ending before the terminating flush-pkt
      pack_data: Called with every channel 1 payload, in order
      progress: Optional sink for channel 2 progress messages
    Raises:
      RemoteError: if the server reports a fatal error on channel 3
      GitProtocolError: for an unknown channel
    """
    for chan, data in read_side_band_data(pkt_seq):
        if chan == SIDE_BAND_CHANNEL_DATA:
            pack_data(data)
        elif chan == SIDE_BAND_CHANNEL_PROGRESS:
            logger.debug("remote: %s", data.decode("utf-8", "replace").rstrip())
            if progress is not None:
                progress(data)
        elif chan == SIDE_BAND_CHANNEL_FATAL:
            raise RemoteError(data.decode("utf-8", "replace").rstrip("\n"))
        else:
            raise GitProtocolError(f"Invalid sideband channel {chan}")
