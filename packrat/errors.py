# errors.py -- errors for packrat
# Copyright (C) 2007 James Westby <jw+debian@jameswestby.net>
# Copyright (C) 2009-2012 Jelmer Vernooij <jelmer@jelmer.uk>
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

"""Packrat-related exception classes.

The hierarchy is small on purpose:

 * NotFound          -- an object (or repository) does not exist
 * InvalidFormat     -- a serialized object is malformed
 * Corrupt           -- stored or transferred data fails validation
 * Truncated         -- input ended before the data was complete
 * UnresolvedDelta   -- a delta's base could not be located
 * RemoteError       -- the remote side or the network failed

InvalidFormat, Corrupt, Truncated and UnresolvedDelta derive from
FileFormatException.
"""

import binascii
from collections.abc import Sequence


class NotFound(Exception):
    """Indicates that a requested object is missing."""

    def __init__(self, sha: bytes, *args: object) -> None:
        """Initialize a NotFound exception.

        Args:
            sha: The SHA of the missing object.
            *args: Additional positional arguments.
        """
        self.sha = sha
        Exception.__init__(self, f"{sha.decode('ascii', 'replace')} not found")


class NotGitRepository(NotFound):
    """Indicates that no Git repository was found."""

    def __init__(self, path: str) -> None:
        """Initialize a NotGitRepository exception.

        Args:
            path: The path or URL that was expected to hold a repository.
        """
        self.sha = b""
        self.path = path
        Exception.__init__(self, f"No git repository was found at {path}")


class FileFormatException(Exception):
    """Base class for exceptions relating to reading git file formats."""


class InvalidFormat(FileFormatException):
    """Indicates an error parsing an object."""


class Corrupt(FileFormatException):
    """Stored or packed data failed validation."""


class ChecksumMismatch(Corrupt):
    """A checksum didn't match the expected contents."""

    def __init__(
        self,
        expected: bytes | str,
        got: bytes | str,
        extra: str | None = None,
    ) -> None:
        """Initialize a ChecksumMismatch exception.

        Args:
            expected: The expected checksum value (bytes or hex string).
            got: The actual checksum value (bytes or hex string).
            extra: Optional additional error information.
        """
        if isinstance(expected, bytes) and len(expected) == 20:
            expected_str = binascii.hexlify(expected).decode("ascii")
        else:
            expected_str = (
                expected if isinstance(expected, str) else expected.decode("ascii")
            )
        if isinstance(got, bytes) and len(got) == 20:
            got_str = binascii.hexlify(got).decode("ascii")
        else:
            got_str = got if isinstance(got, str) else got.decode("ascii")
        self.expected = expected_str
        self.got = got_str
        self.extra = extra
        message = f"Checksum mismatch: Expected {expected_str}, got {got_str}"
        if self.extra is not None:
            message += f"; {extra}"
        Exception.__init__(self, message)


class ApplyDeltaError(Corrupt):
    """Indicates that applying a delta failed."""


class Truncated(FileFormatException):
    """Input ended before a complete structure could be read."""


class UnresolvedDelta(FileFormatException):
    """Delta objects whose bases could not be found."""

    def __init__(self, shas: Sequence[bytes]) -> None:
        """Initialize an UnresolvedDelta exception.

        Args:
            shas: Hex SHAs (or offsets rendered as bytes) of the missing bases.
        """
        self.shas = list(shas)
        Exception.__init__(
            self,
            "unresolved delta bases: "
            + ", ".join(s.decode("ascii", "replace") for s in self.shas),
        )


class RemoteError(Exception):
    """The remote repository or the transport reported a failure."""


class GitProtocolError(RemoteError):
    """Git protocol exception."""

    def __eq__(self, other: object) -> bool:
        """Check equality between GitProtocolError instances.

        Args:
            other: The object to compare with.

        Returns:
            True if both are GitProtocolError instances with same args, False otherwise.
        """
        return isinstance(other, GitProtocolError) and self.args == other.args

    def __hash__(self) -> int:
        return hash(self.args)


class HangupException(GitProtocolError):
    """The remote side closed the stream unexpectedly."""

    def __init__(self, stderr_lines: Sequence[bytes] | None = None) -> None:
        """Initialize a HangupException.

        Args:
            stderr_lines: Optional list of error lines reported by the remote.
        """
        if stderr_lines:
            super().__init__(
                "\n".join(
                    line.decode("utf-8", "surrogateescape") for line in stderr_lines
                )
            )
        else:
            super().__init__("The remote server unexpectedly closed the connection.")
        self.stderr_lines = stderr_lines


class HTTPUnauthorized(RemoteError):
    """Raised when the server asks for credentials, which are not supported."""

    def __init__(self, www_authenticate: str | None, url: str) -> None:
        """Initialize HTTPUnauthorized exception.

        Args:
            www_authenticate: Value of the WWW-Authenticate header
            url: URL that requested authentication
        """
        Exception.__init__(self, f"No valid credentials provided for {url}")
        self.www_authenticate = www_authenticate
        self.url = url
