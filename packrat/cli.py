#
# packrat - Simple command-line interface to packrat
# Copyright (C) 2008-2011 Jelmer Vernooij <jelmer@jelmer.uk>
# vim: expandtab
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

"""Simple command-line interface to packrat.

This is a very simple command-line wrapper for packrat. It covers the
object plumbing commands plus clone and ls-remote over smart HTTP.
"""

__all__ = ["main"]

import argparse
import logging
import os
import signal
import sys
import types
from collections.abc import Sequence
from typing import BinaryIO, ClassVar

from . import porcelain
from .errors import FileFormatException, NotFound, RemoteError
from .log_utils import default_logging_config
from .repo import InvalidUserIdentity


class CommandError(Exception):
    """A command was invoked with invalid arguments."""


class _ArgumentParser(argparse.ArgumentParser):
    """Argument parser that reports usage errors as exceptions."""

    def error(self, message: str) -> None:  # type: ignore[override]
        self.print_usage(sys.stderr)
        raise CommandError(f"{self.prog}: {message}")


def signal_int(signal: int, frame: types.FrameType | None) -> None:
    """Handle interrupt signal by exiting.

    Args:
        signal: Signal number
        frame: Current stack frame
    """
    sys.exit(1)


def _stdout() -> BinaryIO:
    return getattr(sys.stdout, "buffer", sys.stdout)


class Command:
    """A packrat subcommand."""

    name: ClassVar[str]

    def _parser(self) -> argparse.ArgumentParser:
        return _ArgumentParser(prog=f"packrat {self.name}", description=self.__doc__)

    def run(self, args: Sequence[str]) -> int | None:
        """Run the command."""
        raise NotImplementedError(self.run)


class cmd_init(Command):
    """Create an empty Git repository."""

    name = "init"

    def run(self, args: Sequence[str]) -> None:
        """Execute the init command.

        Args:
            args: Command line arguments
        """
        parser = self._parser()
        parser.add_argument(
            "-b",
            "--initial-branch",
            type=str,
            help="Name of the branch HEAD points at",
        )
        parser.add_argument(
            "path", nargs="?", default=os.getcwd(), help="Repository path"
        )
        parsed_args = parser.parse_args(args)

        repo = porcelain.init(parsed_args.path, default_branch=parsed_args.initial_branch)
        with repo:
            logging.info(
                "Initialized empty Git repository in %s",
                os.path.abspath(repo.controldir()),
            )


class cmd_cat_file(Command):
    """Provide contents, type or size of a repository object."""

    name = "cat-file"

    def run(self, args: Sequence[str]) -> None:
        """Execute the cat-file command.

        Args:
            args: Command line arguments
        """
        parser = self._parser()
        group = parser.add_mutually_exclusive_group()
        group.add_argument(
            "-p",
            dest="mode",
            action="store_const",
            const="pretty",
            help="Pretty-print the object",
        )
        group.add_argument(
            "-t", dest="mode", action="store_const", const="type", help="Show type"
        )
        group.add_argument(
            "-s", dest="mode", action="store_const", const="size", help="Show size"
        )
        parser.add_argument("object", help="Object id")
        parsed_args = parser.parse_args(args)
        porcelain.cat_file(
            ".",
            parsed_args.object,
            outstream=_stdout(),
            mode=parsed_args.mode or "raw",
        )


class cmd_hash_object(Command):
    """Compute object ID and optionally create an object from a file."""

    name = "hash-object"

    def run(self, args: Sequence[str]) -> None:
        """Execute the hash-object command.

        Args:
            args: Command line arguments
        """
        parser = self._parser()
        parser.add_argument(
            "-w", action="store_true", help="Write the object into the object store"
        )
        parser.add_argument(
            "-t",
            dest="type",
            default="blob",
            choices=["blob", "tree", "commit", "tag"],
            help="Type of object to create",
        )
        parser.add_argument("path", help="File to hash")
        parsed_args = parser.parse_args(args)
        sha = porcelain.hash_object(
            parsed_args.path, write=parsed_args.w, object_type=parsed_args.type
        )
        _stdout().write(sha + b"\n")


class cmd_ls_tree(Command):
    """List the contents of a tree object."""

    name = "ls-tree"

    def run(self, args: Sequence[str]) -> None:
        """Execute the ls-tree command.

        Args:
            args: Command line arguments
        """
        parser = self._parser()
        parser.add_argument(
            "-r",
            "--recursive",
            action="store_true",
            help="Recursively list tree contents.",
        )
        parser.add_argument(
            "--name-only", action="store_true", help="Only display name."
        )
        parser.add_argument("treeish", help="Tree-ish to list")
        parsed_args = parser.parse_args(args)
        porcelain.ls_tree(
            ".",
            parsed_args.treeish,
            outstream=_stdout(),
            recursive=parsed_args.recursive,
            name_only=parsed_args.name_only,
        )


class cmd_write_tree(Command):
    """Create a tree object from the working directory."""

    name = "write-tree"

    def run(self, args: Sequence[str]) -> None:
        """Execute the write-tree command.

        Args:
            args: Command line arguments
        """
        parser = self._parser()
        parser.parse_args(args)
        _stdout().write(porcelain.write_tree(".") + b"\n")


class cmd_commit_tree(Command):
    """Create a new commit object from a tree."""

    name = "commit-tree"

    def run(self, args: Sequence[str]) -> None:
        """Execute the commit-tree command.

        Args:
            args: Command line arguments
        """
        parser = self._parser()
        parser.add_argument("--message", "-m", required=True, help="Commit message")
        parser.add_argument(
            "-p",
            dest="parents",
            action="append",
            default=[],
            help="Id of a parent commit",
        )
        parser.add_argument("tree", help="Tree SHA to commit")
        parsed_args = parser.parse_args(args)
        sha = porcelain.commit_tree(
            ".",
            tree=parsed_args.tree,
            message=parsed_args.message,
            parents=parsed_args.parents,
        )
        _stdout().write(sha + b"\n")


def _log_progress(data: bytes) -> None:
    for line in data.replace(b"\r", b"\n").splitlines():
        line = line.strip()
        if line:
            logging.info("remote: %s", line.decode("utf-8", "replace"))


class cmd_clone(Command):
    """Clone a repository into a new directory."""

    name = "clone"

    def run(self, args: Sequence[str]) -> None:
        """Execute the clone command.

        Args:
            args: Command line arguments
        """
        parser = self._parser()
        parser.add_argument(
            "--timeout", type=float, help="Timeout for HTTP requests in seconds"
        )
        parser.add_argument("source", help="Repository to clone from")
        parser.add_argument("target", nargs="?", help="Directory to clone into")
        parsed_args = parser.parse_args(args)

        repo = porcelain.clone(
            parsed_args.source,
            parsed_args.target,
            progress=_log_progress,
            timeout=parsed_args.timeout,
        )
        repo.close()


class cmd_ls_remote(Command):
    """List references in a remote repository."""

    name = "ls-remote"

    def run(self, args: Sequence[str]) -> None:
        """Execute the ls-remote command.

        Args:
            args: Command line arguments
        """
        parser = self._parser()
        parser.add_argument(
            "--symref", action="store_true", help="Show symbolic references"
        )
        parser.add_argument(
            "--timeout", type=float, help="Timeout for HTTP requests in seconds"
        )
        parser.add_argument("url", help="Remote URL to list references from")
        parsed_args = parser.parse_args(args)
        result = porcelain.ls_remote(parsed_args.url, timeout=parsed_args.timeout)

        outstream = _stdout()
        if parsed_args.symref:
            # Show symrefs first, like git does
            for ref, target in sorted(result.symrefs.items()):
                outstream.write(b"ref: " + target + b"\t" + ref + b"\n")

        for ref, sha in result.refs.items():
            outstream.write(sha + b"\t" + ref + b"\n")


commands: dict[str, type[Command]] = {
    cls.name: cls
    for cls in (
        cmd_cat_file,
        cmd_clone,
        cmd_commit_tree,
        cmd_hash_object,
        cmd_init,
        cmd_ls_remote,
        cmd_ls_tree,
        cmd_write_tree,
    )
}


def main(argv: Sequence[str] | None = None) -> int:
    """Main entry point for the packrat CLI.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code
    """
    if argv is None:
        argv = sys.argv[1:]

    default_logging_config()

    if not argv or argv[0] in ("-h", "--help"):
        parser = argparse.ArgumentParser(
            prog="packrat", description="Simple command-line interface to packrat"
        )
        parser.add_argument(
            "command",
            nargs="?",
            help=f"Command to run. Available: {', '.join(sorted(commands.keys()))}",
        )
        parser.print_help()
        return 1

    cmd = argv[0]
    try:
        cmd_kls = commands[cmd]
    except KeyError:
        logging.fatal("No such subcommand: %s", cmd)
        return 1
    try:
        return cmd_kls().run(argv[1:]) or 0
    except CommandError as e:
        logging.error("%s", e)
        return 1
    except (
        porcelain.Error,
        NotFound,
        FileFormatException,
        RemoteError,
        InvalidUserIdentity,
        OSError,
        ValueError,
    ) as e:
        logging.error("fatal: %s", e)
        return 1


def _main() -> None:
    signal.signal(signal.SIGINT, signal_int)

    sys.exit(main())


if __name__ == "__main__":
    _main()
