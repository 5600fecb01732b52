# log_utils.py -- Logging utilities for packrat
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

"""Logging utilities for packrat.

Packrat is used as a library as much as from the command line, so the
``packrat`` logger carries a no-op handler and stays silent until a caller
configures logging. Modules only need ``getLogger``, which this module
re-exports.

The ``GIT_TRACE`` environment variable is honoured by
:func:`default_logging_config`:

 * ``1``, ``2`` or ``true``: DEBUG output on stderr
 * an absolute path: DEBUG output appended to that file
 * anything else (or unset): normal INFO output
"""

import logging
import os
import sys

getLogger = logging.getLogger

TRACE_FORMAT = "%(asctime)s %(name)s %(levelname)s: %(message)s"


class _NullHandler(logging.Handler):
    """No-op logging handler to avoid unexpected logging warnings."""

    def emit(self, record: logging.LogRecord) -> None:
        pass


_NULL_HANDLER = _NullHandler()
_PACKRAT_LOGGER = getLogger("packrat")
_PACKRAT_LOGGER.addHandler(_NULL_HANDLER)


def _get_trace_target() -> str | int | None:
    """Work out where GIT_TRACE output should go.

    Returns:
      None if tracing is disabled, 2 for stderr, or a file path.
    """
    trace_value = os.environ.get("GIT_TRACE", "")
    if not trace_value or trace_value.lower() in ("0", "false"):
        return None
    if trace_value.lower() in ("1", "2", "true"):
        return 2
    if os.path.isabs(trace_value):
        return trace_value
    return None


def _configure_logging_from_trace() -> bool:
    """Configure logging based on GIT_TRACE.

    Returns: True if tracing was configured, False otherwise.
    """
    target = _get_trace_target()
    if target is None:
        return False
    if target == 2:
        logging.basicConfig(level=logging.DEBUG, stream=sys.stderr, format=TRACE_FORMAT)
        return True
    try:
        logging.basicConfig(
            level=logging.DEBUG, filename=target, filemode="a", format=TRACE_FORMAT
        )
    except OSError as e:
        sys.stderr.write(f"Warning: Failed to open GIT_TRACE file {target}: {e}\n")
        return False
    return True


def default_logging_config(fmt: str = "%(message)s") -> None:
    """Set up the default packrat loggers for command-line use.

    Args:
      fmt: Format string used when GIT_TRACE does not apply.
    """
    remove_null_handler()
    if not _configure_logging_from_trace():
        logging.basicConfig(level=logging.INFO, stream=sys.stderr, format=fmt)


def remove_null_handler() -> None:
    """Remove the null handler from the packrat loggers.

    Callers that set up logging themselves can call this first to avoid the
    overhead of the _NullHandler.
    """
    _PACKRAT_LOGGER.removeHandler(_NULL_HANDLER)
