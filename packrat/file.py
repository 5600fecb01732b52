# file.py -- Safe access to git files
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


"""Atomic replacement of files in a git control directory.

Writes follow git's locking protocol: data goes to ``<name>.lock``, created
exclusively, and is renamed over ``<name>`` once complete. Readers never see
a partially written file. Reads need no locking and use plain ``open()``.
"""

__all__ = [
    "FileLocked",
    "GitFile",
    "ensure_dir_exists",
]

import os
from types import TracebackType

PathArg = str | os.PathLike[str]


def ensure_dir_exists(dirname: PathArg) -> None:
    """Create a directory and its parents unless it already exists."""
    os.makedirs(dirname, exist_ok=True)


class FileLocked(Exception):
    """Another writer holds the lock file."""

    def __init__(self, filename: str, lockfilename: str) -> None:
        self.filename = filename
        self.lockfilename = lockfilename
        super().__init__(filename, lockfilename)


class GitFile:
    """Write-only file that replaces its target atomically on close.

    Use it as a context manager. Leaving the ``with`` block normally renames
    the lock file into place. Leaving it through an exception removes the
    lock file and leaves the target untouched.

    Args:
      filename: Target path
      mask: Permission bits for the new file
      fsync: Whether to fsync the data before the rename
    Raises:
      FileLocked: if ``<filename>.lock`` already exists
    """

    def __init__(self, filename: PathArg, mask: int = 0o644, fsync: bool = False) -> None:
        self.filename = os.fspath(filename)
        self.lockfilename = self.filename + ".lock"
        self._fsync = fsync
        flags = os.O_WRONLY | os.O_CREAT | os.O_EXCL | getattr(os, "O_BINARY", 0)
        try:
            fd = os.open(self.lockfilename, flags, mask)
        except FileExistsError as exc:
            raise FileLocked(self.filename, self.lockfilename) from exc
        self._file = os.fdopen(fd, "wb")

    @property
    def closed(self) -> bool:
        return self._file.closed

    def write(self, data: bytes) -> int:
        return self._file.write(data)

    def close(self) -> None:
        """Rename the lock file over the target.

        Raises:
          OSError: if the data could not be written or renamed; the lock file
            is removed in that case
        """
        if self._file.closed:
            return
        try:
            self._file.flush()
            if self._fsync:
                os.fsync(self._file.fileno())
            self._file.close()
            os.replace(self.lockfilename, self.filename)
        except OSError:
            self._discard()
            raise

    def _discard(self) -> None:
        self._file.close()
        try:
            os.remove(self.lockfilename)
        except FileNotFoundError:
            pass

    def __enter__(self) -> "GitFile":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        if exc_type is None:
            self.close()
        else:
            self._discard()
