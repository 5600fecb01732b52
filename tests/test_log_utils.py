# test_log_utils.py -- Tests for log_utils.py
# Copyright (C) 2025 Jelmer Vernooij <jelmer@jelmer.uk>
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

"""Tests for packrat.log_utils."""

import logging
import os

from packrat.log_utils import (
    _NULL_HANDLER,
    _PACKRAT_LOGGER,
    _configure_logging_from_trace,
    _get_trace_target,
    _NullHandler,
    default_logging_config,
    getLogger,
    remove_null_handler,
)

from . import TestCase


class LogUtilsTests(TestCase):
    """Tests for log_utils."""

    def setUp(self) -> None:
        super().setUp()
        self.original_handlers = list(_PACKRAT_LOGGER.handlers)
        root_logger = logging.getLogger()
        original_level = root_logger.level
        original_root_handlers = list(root_logger.handlers)

        def cleanup() -> None:
            for handler in root_logger.handlers:
                if handler not in original_root_handlers:
                    handler.close()
            root_logger.handlers = original_root_handlers
            root_logger.level = original_level
            _PACKRAT_LOGGER.handlers = self.original_handlers

        self.addCleanup(cleanup)
        # Reset root logger so basicConfig takes effect
        root_logger.handlers = []
        root_logger.level = logging.WARNING

    def test_null_handler(self) -> None:
        handler = _NullHandler()
        record = logging.LogRecord(
            name="test",
            level=logging.INFO,
            pathname="test_log_utils.py",
            lineno=1,
            msg="Test message",
            args=(),
            exc_info=None,
        )
        handler.emit(record)

    def test_library_logger_is_silent(self) -> None:
        self.assertIn(_NULL_HANDLER, self.original_handlers)

    def test_get_logger(self) -> None:
        logger = getLogger("packrat.test")
        self.assertIsInstance(logger, logging.Logger)
        self.assertEqual("packrat.test", logger.name)

    def test_remove_null_handler(self) -> None:
        if _NULL_HANDLER not in _PACKRAT_LOGGER.handlers:
            _PACKRAT_LOGGER.addHandler(_NULL_HANDLER)
        remove_null_handler()
        self.assertNotIn(_NULL_HANDLER, _PACKRAT_LOGGER.handlers)

    def test_default_logging_config(self) -> None:
        default_logging_config()
        self.assertNotIn(_NULL_HANDLER, _PACKRAT_LOGGER.handlers)
        root_logger = logging.getLogger()
        self.assertTrue(root_logger.handlers)
        self.assertEqual(logging.INFO, root_logger.level)

    def test_default_logging_config_with_trace(self) -> None:
        self.overrideEnv("GIT_TRACE", "1")
        default_logging_config()
        root_logger = logging.getLogger()
        self.assertTrue(root_logger.handlers)
        self.assertEqual(logging.DEBUG, root_logger.level)

    def test_get_trace_target_disabled(self) -> None:
        for value in (None, "", "0", "false", "FALSE"):
            self.overrideEnv("GIT_TRACE", value)
            self.assertIsNone(_get_trace_target(), value)

    def test_get_trace_target_stderr(self) -> None:
        for value in ("1", "2", "true", "TRUE"):
            self.overrideEnv("GIT_TRACE", value)
            self.assertEqual(2, _get_trace_target(), value)

    def test_get_trace_target_file(self) -> None:
        trace_file = os.path.join(self.make_tempdir(), "trace.log")
        self.overrideEnv("GIT_TRACE", trace_file)
        self.assertEqual(trace_file, _get_trace_target())

    def test_get_trace_target_other_values(self) -> None:
        # Any non-absolute path is treated as disabled
        self.overrideEnv("GIT_TRACE", "relative/path")
        self.assertIsNone(_get_trace_target())
        self.overrideEnv("GIT_TRACE", "5")
        self.assertIsNone(_get_trace_target())

    def test_configure_logging_from_trace_file(self) -> None:
        trace_file = os.path.join(self.make_tempdir(), "trace.log")
        self.overrideEnv("GIT_TRACE", trace_file)
        self.assertTrue(_configure_logging_from_trace())
        getLogger("packrat.test").debug("traced message")
        for handler in logging.getLogger().handlers:
            handler.flush()
        with open(trace_file) as f:
            self.assertIn("packrat.test DEBUG: traced message", f.read())

    def test_configure_logging_from_trace_unwritable(self) -> None:
        trace_file = os.path.join(self.make_tempdir(), "missing", "trace.log")
        self.overrideEnv("GIT_TRACE", trace_file)
        self.assertFalse(_configure_logging_from_trace())

    def test_configure_logging_from_trace_disabled(self) -> None:
        self.assertFalse(_configure_logging_from_trace())
        self.assertEqual([], logging.getLogger().handlers)
