# config.py - Reading and writing Git config files
# Copyright (C) 2011-2013 Jelmer Vernooij <jelmer@jelmer.uk>
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


"""Reading and writing Git configuration files.

Packrat reads a handful of settings: ``user.name``, ``user.email``,
``init.defaultBranch`` and the ``http.*`` options, the latter optionally
overridden per URL in ``[http "<url>"]`` sections. It writes the ``[core]``
block of a new repository.

Section and variable names are case-insensitive; subsection names are not.
When a variable is set more than once, the last value wins. Include
directives are not followed.
"""

__all__ = [
    "Config",
    "ConfigDict",
    "ConfigFile",
    "StackedConfig",
    "get_xdg_config_home_path",
    "parse_boolean",
]

import os
import re
import sys
from typing import IO

from .file import GitFile
from .log_utils import getLogger

logger = getLogger(__name__)

Name = bytes
NameLike = bytes | str
Section = tuple[bytes, ...]
SectionLike = bytes | str | tuple[bytes | str, ...]
Value = bytes
ValueLike = bytes | str

_SECTION_NAME_RE = re.compile(rb"[A-Za-z0-9.-]+")
_VARIABLE_NAME_RE = re.compile(rb"[A-Za-z][A-Za-z0-9-]*")

_ESCAPES = {
    b"\\": b"\\",
    b'"': b'"',
    b"n": b"\n",
    b"t": b"\t",
    b"b": b"\b",
}

_TRUE_VALUES = (b"true", b"yes", b"on", b"1")
_FALSE_VALUES = (b"false", b"no", b"off", b"0", b"")


def parse_boolean(value: Value) -> bool:
    """Interpret a config value the way git-config(1) does for booleans.

    Raises:
      ValueError: if the value is not a recognised boolean
    """
    if value.lower() in _TRUE_VALUES:
        return True
    if value.lower() in _FALSE_VALUES:
        return False
    raise ValueError(f"not a valid boolean string: {value!r}")


class Config:
    """A Git configuration."""

    def get(self, section: SectionLike, name: NameLike) -> Value:
        """Retrieve the contents of a configuration setting.

        Args:
          section: Tuple with section name and optional subsection name
          name: Variable name
        Returns:
          Contents of the setting
        Raises:
          KeyError: if the value is not set
        """
        raise NotImplementedError(self.get)

    def set(self, section: SectionLike, name: NameLike, value: ValueLike | bool) -> None:
        """Set a configuration value.

        Args:
          section: Tuple with section name and optional subsection name
          name: Name of the configuration value
          value: value of the setting
        """
        raise NotImplementedError(self.set)

    def get_boolean(
        self, section: SectionLike, name: NameLike, default: bool | None = None
    ) -> bool | None:
        """Retrieve a configuration setting as boolean.

        Returns: The parsed value, or ``default`` when the setting is absent
        """
        try:
            value = self.get(section, name)
        except KeyError:
            return default
        return parse_boolean(value)

    def get_http(self, name: NameLike, url: str | None = None) -> Value | None:
        """Look up an ``http.*`` setting.

        A value in ``[http "<url>"]`` takes precedence over one in ``[http]``.

        Returns: The value, or None when neither section sets it
        """
        sections: list[SectionLike] = []
        if url:
            sections.append((b"http", url.encode("utf-8")))
        sections.append((b"http",))
        for section in sections:
            try:
                return self.get(section, name)
            except KeyError:
                continue
        return None


class ConfigDict(Config):
    """Git configuration stored in a dictionary.

    Keys are lowercased section names, with the subsection appended as is;
    each maps to a dictionary of lowercased variable names.
    """

    def __init__(self, encoding: str | None = None) -> None:
        if encoding is None:
            encoding = sys.getdefaultencoding()
        self.encoding = encoding
        self._values: dict[Section, dict[Name, Value]] = {}

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self._values!r})"

    def _to_bytes(self, value: bytes | str) -> bytes:
        if isinstance(value, bytes):
            return value
        return value.encode(self.encoding)

    def _key(self, section: SectionLike, name: NameLike) -> tuple[Section, Name]:
        if not isinstance(section, tuple):
            section = (section,)
        parts = [self._to_bytes(part) for part in section]
        parts[0] = parts[0].lower()
        return tuple(parts), self._to_bytes(name).lower()

    def get(self, section: SectionLike, name: NameLike) -> Value:
        section_key, name_key = self._key(section, name)
        return self._values[section_key][name_key]

    def set(self, section: SectionLike, name: NameLike, value: ValueLike | bool) -> None:
        section_key, name_key = self._key(section, name)
        if isinstance(value, bool):
            value = b"true" if value else b"false"
        self._values.setdefault(section_key, {})[name_key] = self._to_bytes(value)


def _parse_value(text: bytes) -> Value:
    """Unquote and unescape the right-hand side of a setting.

    Whitespace outside quotes is collapsed at the ends and kept in the
    middle. An unquoted ``#`` or ``;`` starts a comment.

    Raises:
      ValueError: on an unknown escape or an unterminated quote
    """
    ret = bytearray()
    blank = b""
    in_quotes = False
    text = text.strip()
    i = 0
    while i < len(text):
        c = text[i : i + 1]
        if c == b"\\":
            escaped = text[i + 1 : i + 2]
            if escaped not in _ESCAPES:
                raise ValueError(f"invalid escape sequence in {text!r}")
            ret += blank + _ESCAPES[escaped]
            blank = b""
            i += 2
            continue
        if c == b'"':
            in_quotes = not in_quotes
        elif not in_quotes and c in (b"#", b";"):
            break
        elif not in_quotes and c in (b" ", b"\t"):
            blank += c
        else:
            ret += blank + c
            blank = b""
        i += 1
    if in_quotes:
        raise ValueError(f"missing end quote in {text!r}")
    return bytes(ret)


def _format_value(value: Value) -> bytes:
    escaped = (
        value.replace(b"\\", b"\\\\")
        .replace(b'"', b'\\"')
        .replace(b"\n", b"\\n")
        .replace(b"\t", b"\\t")
    )
    if value != value.strip(b" \t") or b"#" in value or b";" in value:
        return b'"' + escaped + b'"'
    return escaped


def _parse_section_header(line: bytes) -> tuple[Section, bytes]:
    """Parse a ``[section]``, ``[section "sub"]`` or ``[section.sub]`` header.

    Returns: Tuple of the section key and the rest of the line
    """
    end = line.find(b"]")
    quote = line.find(b'"')
    if quote != -1 and (end == -1 or quote < end):
        close = line.find(b'"', quote + 1)
        if close == -1:
            raise ValueError(f"unterminated subsection in {line!r}")
        end = line.find(b"]", close)
    if end == -1:
        raise ValueError(f"expected trailing ] in {line!r}")
    header, rest = line[1:end], line[end + 1 :]
    name, sep, subsection = header.partition(b" ")
    if not _SECTION_NAME_RE.fullmatch(name):
        raise ValueError(f"invalid section name {name!r}")
    if sep:
        subsection = subsection.strip()
        if len(subsection) < 2 or subsection[:1] != b'"' or subsection[-1:] != b'"':
            raise ValueError(f"invalid subsection {subsection!r}")
        subsection = subsection[1:-1].replace(b'\\"', b'"').replace(b"\\\\", b"\\")
        return (name.lower(), subsection), rest
    name, dot, subsection = name.partition(b".")
    if dot:
        return (name.lower(), subsection), rest
    return (name.lower(),), rest


def _ends_with_continuation(line: bytes) -> bool:
    trailing = len(line) - len(line.rstrip(b"\\"))
    return trailing % 2 == 1


class ConfigFile(ConfigDict):
    """A Git configuration file, like .git/config or ~/.gitconfig."""

    def __init__(self, encoding: str | None = None) -> None:
        super().__init__(encoding=encoding)
        self.path: str | None = None

    @classmethod
    def from_file(cls, f: IO[bytes]) -> "ConfigFile":
        """Read configuration from a file-like object.

        Raises:
          ValueError: if the file is not valid git-config syntax
        """
        ret = cls()
        data = f.read()
        if data.startswith(b"\xef\xbb\xbf"):
            data = data[3:]
        section: Section | None = None
        pending = b""
        for lineno, physical in enumerate(data.splitlines(), 1):
            line = pending + physical.lstrip()
            if _ends_with_continuation(line):
                pending = line[:-1]
                continue
            pending = b""
            if line.startswith(b"["):
                section, line = _parse_section_header(line)
                ret._values.setdefault(section, {})
                line = line.lstrip()
            if not line or line[:1] in (b"#", b";"):
                continue
            if section is None:
                raise ValueError(f"line {lineno}: setting {line!r} outside a section")
            name, eq, value = line.partition(b"=")
            if not eq:
                name = re.split(rb"[#;]", name, maxsplit=1)[0]
            name = name.strip()
            if not _VARIABLE_NAME_RE.fullmatch(name):
                raise ValueError(f"line {lineno}: invalid variable name {name!r}")
            ret._values[section][name.lower()] = _parse_value(value) if eq else b"true"
        if pending:
            raise ValueError("configuration ends with a line continuation")
        return ret

    @classmethod
    def from_path(cls, path: str | os.PathLike[str]) -> "ConfigFile":
        """Read configuration from a file on disk."""
        abs_path = os.fspath(path)
        with open(abs_path, "rb") as f:
            ret = cls.from_file(f)
        ret.path = abs_path
        return ret

    def write_to_path(self, path: str | os.PathLike[str] | None = None) -> None:
        """Write configuration to a file on disk."""
        if path is None:
            if self.path is None:
                raise ValueError("No path specified and no default path available")
            path = self.path
        with GitFile(path) as f:
            self.write_to_file(f)

    def write_to_file(self, f: IO[bytes] | GitFile) -> None:
        """Write configuration to a file-like object."""
        for section, values in self._values.items():
            if len(section) == 1:
                f.write(b"[" + section[0] + b"]\n")
            else:
                subsection = section[1].replace(b"\\", b"\\\\").replace(b'"', b'\\"')
                f.write(b"[" + section[0] + b' "' + subsection + b'"]\n')
            for name, value in values.items():
                f.write(b"\t" + name + b" = " + _format_value(value) + b"\n")


def get_xdg_config_home_path(*path_segments: str) -> str:
    """Get a path in the XDG config home directory."""
    xdg_config_home = os.environ.get(
        "XDG_CONFIG_HOME",
        os.path.expanduser("~/.config/"),
    )
    return os.path.join(xdg_config_home, *path_segments)


class StackedConfig(Config):
    """Configuration which reads from multiple config files.

    Args:
      backends: Config files to read from, most specific first
      writable: Optional config file that receives ``set`` calls
    """

    def __init__(
        self, backends: list[ConfigFile], writable: ConfigFile | None = None
    ) -> None:
        self.backends = backends
        self.writable = writable

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} for {self.backends!r}>"

    @classmethod
    def default(cls) -> "StackedConfig":
        """Create a StackedConfig with the user and system config files."""
        return cls(cls.default_backends())

    @classmethod
    def default_backends(cls) -> list[ConfigFile]:
        """Load the global and system configuration files that exist.

        ``GIT_CONFIG_GLOBAL`` replaces ``~/.gitconfig`` and the XDG file;
        ``GIT_CONFIG_SYSTEM`` replaces ``/etc/gitconfig``, which
        ``GIT_CONFIG_NOSYSTEM`` disables.
        """
        paths = []
        try:
            paths.append(os.environ["GIT_CONFIG_GLOBAL"])
        except KeyError:
            paths.append(os.path.expanduser("~/.gitconfig"))
            paths.append(get_xdg_config_home_path("git", "config"))

        try:
            paths.append(os.environ["GIT_CONFIG_SYSTEM"])
        except KeyError:
            if "GIT_CONFIG_NOSYSTEM" not in os.environ:
                paths.append("/etc/gitconfig")

        backends = []
        for path in paths:
            try:
                cf = ConfigFile.from_path(path)
            except FileNotFoundError:
                continue
            logger.debug("loaded gitconfig from %s", path)
            backends.append(cf)
        return backends

    def get(self, section: SectionLike, name: NameLike) -> Value:
        """Get value from the first backend that has it."""
        for backend in self.backends:
            try:
                return backend.get(section, name)
            except KeyError:
                pass
        raise KeyError(name)

    def set(self, section: SectionLike, name: NameLike, value: ValueLike | bool) -> None:
        """Set value in the writable backend."""
        if self.writable is None:
            raise NotImplementedError(self.set)
        self.writable.set(section, name, value)
