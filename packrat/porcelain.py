# porcelain.py -- Porcelain-like layer on top of packrat
# Copyright (C) 2013 Jelmer Vernooij <jelmer@jelmer.uk>
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

"""Simple wrapper that provides porcelain-like functions on top of packrat.

Currently implemented:
 * cat_file
 * clone
 * commit_tree
 * hash_object
 * init
 * ls_remote
 * ls_tree
 * write_tree

These functions are meant to behave similarly to the git subcommands.
Differences in behaviour are considered bugs.

Note: one of the consequences of this is that paths tend to be
interpreted relative to the current working directory rather than relative
to the repository root.

Functions should generally accept both unicode strings and bytestrings
"""

__all__ = [
    "Error",
    "cat_file",
    "clone",
    "commit_tree",
    "hash_object",
    "init",
    "ls_remote",
    "ls_tree",
    "open_repo_closing",
    "write_tree",
]

import os
import stat
import sys
import time
from collections.abc import Callable, Iterator
from contextlib import AbstractContextManager, closing, contextmanager
from typing import BinaryIO, TypeVar
from urllib.parse import urlparse

from .client import LsRemoteResult, get_transport_and_path
from .config import Config, StackedConfig
from .log_utils import getLogger
from .object_store import BaseObjectStore
from .objects import (
    Blob,
    Commit,
    ObjectID,
    ShaFile,
    Tag,
    Tree,
    object_class,
    pretty_format_tree_entry,
    valid_hexsha,
)
from .repo import CONTROLDIR, Repo, check_user_identity, get_user_identity

logger = getLogger(__name__)

DEFAULT_ENCODING = "utf-8"

default_bytes_out_stream: BinaryIO = getattr(sys.stdout, "buffer", None) or sys.stdout  # type: ignore[assignment]
default_bytes_err_stream: BinaryIO = getattr(sys.stderr, "buffer", None) or sys.stderr  # type: ignore[assignment]

RepoPath = str | os.PathLike[str] | Repo
T = TypeVar("T", bound=Repo)


class Error(Exception):
    """Porcelain-based error."""

    def __init__(self, msg: str) -> None:
        """Initialize Error with message."""
        super().__init__(msg)


@contextmanager
def _noop_context_manager(obj: T) -> Iterator[T]:
    """Context manager that has the same api as closing but does nothing."""
    yield obj


def open_repo_closing(path_or_repo: RepoPath) -> AbstractContextManager[Repo]:
    """Open an argument that can be a repository or a path for a repository.

    returns a context manager that will close the repo on exit if the argument
    is a path, else does nothing if the argument is a repo.
    """
    if isinstance(path_or_repo, Repo):
        return _noop_context_manager(path_or_repo)
    return closing(Repo(path_or_repo))


def _parse_object_id(sha: str | bytes) -> ObjectID:
    if isinstance(sha, str):
        sha = sha.encode("ascii", "replace")
    if not valid_hexsha(sha) or len(sha) != 40:
        raise Error(f"not a valid object name: {sha.decode('ascii', 'replace')}")
    return sha.lower()


def _resolve_tree(store: BaseObjectStore, treeish: str | bytes) -> Tree:
    """Look up a tree, peeling tags and commits."""
    obj: ShaFile = store[_parse_object_id(treeish)]
    while isinstance(obj, Tag):
        obj = store[obj.object[1]]
    if isinstance(obj, Commit):
        obj = store[obj.tree]
    if not isinstance(obj, Tree):
        raise Error(f"not a tree object: {obj.id.decode('ascii')}")
    return obj


def init(
    path: str | os.PathLike[str] = ".",
    *,
    default_branch: str | bytes | None = None,
    config: StackedConfig | None = None,
) -> Repo:
    """Create a new git repository.

    Args:
      path: Path to repository.
      default_branch: Name of the branch HEAD points at; falls back to
        init.defaultBranch and then "main".
      config: Configuration to read init.defaultBranch from
    Returns: A Repo instance
    """
    if not os.path.exists(path):
        os.mkdir(path)

    if isinstance(default_branch, str):
        default_branch = default_branch.encode(DEFAULT_ENCODING)
    return Repo.init(path, config=config, default_branch=default_branch)


def cat_file(
    repo: RepoPath,
    sha: str | bytes,
    outstream: BinaryIO = default_bytes_out_stream,
    mode: str = "raw",
) -> None:
    """Print the contents, type or size of an object.

    Args:
      repo: Path to the repository
      sha: Hex id of the object
      outstream: Stream to write to
      mode: One of "raw" (object contents), "pretty" (human-readable trees),
        "type" or "size"
    """
    with open_repo_closing(repo) as r:
        type_num, content = r.object_store.get_raw(_parse_object_id(sha))
        if mode == "type":
            cls = object_class(type_num)
            assert cls is not None
            outstream.write(cls.type_name + b"\n")
        elif mode == "size":
            outstream.write(b"%d\n" % len(content))
        elif mode == "pretty":
            obj = ShaFile.from_raw_string(type_num, content)
            if isinstance(obj, Tree):
                outstream.write(obj.as_pretty_string().encode(DEFAULT_ENCODING))
            else:
                outstream.write(content)
        elif mode == "raw":
            outstream.write(content)
        else:
            raise ValueError(f"unknown cat-file mode {mode!r}")


def hash_object(
    path: str | os.PathLike[str],
    repo: RepoPath | None = None,
    write: bool = False,
    object_type: str = "blob",
) -> ObjectID:
    """Compute the object id of a file's contents.

    Args:
      path: File to hash
      repo: Repository to write the object to
      write: Whether to store the object in the repository
      object_type: Type of object to create
    Returns: Hex object id
    """
    cls = object_class(object_type.encode("ascii"))
    if cls is None:
        raise Error(f"invalid object type {object_type!r}")
    with open(path, "rb") as f:
        obj = ShaFile.from_raw_string(cls.type_num, f.read())
    if write:
        with open_repo_closing(repo if repo is not None else ".") as r:
            return r.object_store.add_raw_object(obj.as_raw_object())
    return obj.id


def ls_tree(
    repo: RepoPath,
    treeish: str | bytes,
    outstream: BinaryIO = default_bytes_out_stream,
    recursive: bool = False,
    name_only: bool = False,
) -> None:
    """List contents of a tree.

    Args:
      repo: Path to the repository
      treeish: Tree id to list
      outstream: Output stream (defaults to stdout)
      recursive: Whether to recursively list files
      name_only: Only print item name
    """

    def list_tree(store: BaseObjectStore, tree: Tree, base: bytes) -> None:
        for name, mode, sha in tree.iteritems():
            if base:
                name = base + b"/" + name
            if stat.S_ISDIR(mode) and recursive:
                subtree = store[sha]
                assert isinstance(subtree, Tree)
                list_tree(store, subtree, name)
                continue
            if name_only:
                outstream.write(name + b"\n")
            else:
                outstream.write(
                    pretty_format_tree_entry(name, mode, sha).encode(DEFAULT_ENCODING)
                )

    with open_repo_closing(repo) as r:
        tree = _resolve_tree(r.object_store, treeish)
        list_tree(r.object_store, tree, b"")


def _blob_from_path_and_stat(fs_path: str, st: os.stat_result) -> tuple[Blob, int]:
    """Create a blob from a path and a stat object.

    Args:
      fs_path: Full file system path to file
      st: A stat object
    Returns: A `Blob` object and its tree entry mode
    """
    if stat.S_ISLNK(st.st_mode):
        blob = Blob.from_string(os.fsencode(os.readlink(fs_path)))
        return blob, stat.S_IFLNK
    with open(fs_path, "rb") as f:
        blob = Blob.from_string(f.read())
    if st.st_mode & stat.S_IXUSR:
        return blob, stat.S_IFREG | 0o755
    return blob, stat.S_IFREG | 0o644


def write_tree_from_directory(object_store: BaseObjectStore, root: str) -> ObjectID:
    """Store the contents of a directory as trees and blobs.

    Directories are visited in post-order with an explicit stack, so every
    subtree is stored before the tree that refers to it. Control
    directories and directories without any files are skipped.

    Args:
      object_store: Store to add the objects to
      root: Directory to snapshot
    Returns: Id of the root tree
    """
    tree_ids: dict[str, ObjectID] = {}
    # Entries are (path, listing); listing is None until the directory
    # has been expanded.
    stack: list[tuple[str, list[os.DirEntry[str]] | None]] = [(root, None)]
    while stack:
        path, listing = stack.pop()
        if listing is None:
            with os.scandir(path) as it:
                listing = [entry for entry in it if entry.name != CONTROLDIR]
            stack.append((path, listing))
            for entry in listing:
                if entry.is_dir(follow_symlinks=False):
                    stack.append((entry.path, None))
            continue

        tree = Tree()
        for entry in listing:
            name = os.fsencode(entry.name)
            st = entry.stat(follow_symlinks=False)
            if stat.S_ISDIR(st.st_mode):
                subtree_id = tree_ids.pop(entry.path, None)
                if subtree_id is None:
                    continue
                tree.add(name, stat.S_IFDIR, subtree_id)
            elif stat.S_ISREG(st.st_mode) or stat.S_ISLNK(st.st_mode):
                blob, mode = _blob_from_path_and_stat(entry.path, st)
                tree.add(name, mode, object_store.add_object(blob))
            else:
                logger.debug("skipping special file %s", entry.path)
        if len(tree) == 0 and path != root:
            continue
        tree_ids[path] = object_store.add_object(tree)
    return tree_ids[root]


def write_tree(repo: RepoPath) -> ObjectID:
    """Write the working directory of a repository as a tree object.

    Args:
      repo: Repository for which to write the tree
    Returns: Hex object id of the root tree
    """
    with open_repo_closing(repo) as r:
        return write_tree_from_directory(r.object_store, r.path)


def commit_tree(
    repo: RepoPath,
    tree: str | bytes,
    message: str | bytes,
    parents: list[str | bytes] | None = None,
    author: bytes | None = None,
    committer: bytes | None = None,
    commit_timestamp: int | None = None,
    commit_timezone: int | None = None,
) -> ObjectID:
    """Create a new commit object.

    Args:
      repo: Path to repository
      tree: An existing tree object
      message: Commit message
      parents: Ids of the parent commits
      author: Optional author name and email
      committer: Optional committer name and email
      commit_timestamp: Seconds since the epoch; defaults to now
      commit_timezone: Offset from UTC in seconds; defaults to local time
    Returns: Hex id of the new commit
    """
    with open_repo_closing(repo) as r:
        store = r.object_store
        tree_id = _parse_object_id(tree)
        if not isinstance(store[tree_id], Tree):
            raise Error(f"{tree_id.decode('ascii')} is not a valid tree object")
        parent_ids = []
        for parent in parents or []:
            parent_id = _parse_object_id(parent)
            if not isinstance(store[parent_id], Commit):
                raise Error(f"{parent_id.decode('ascii')} is not a valid commit")
            parent_ids.append(parent_id)

        config = r.get_config_stack()
        if committer is None:
            committer = get_user_identity(config, kind="COMMITTER")
        check_user_identity(committer)
        if author is None:
            author = get_user_identity(config, kind="AUTHOR")
        check_user_identity(author)

        if isinstance(message, str):
            message = message.encode(DEFAULT_ENCODING)
        if commit_timestamp is None:
            commit_timestamp = int(time.time())
        if commit_timezone is None:
            commit_timezone = time.localtime(commit_timestamp).tm_gmtoff

        c = Commit()
        c.tree = tree_id
        c.parents = parent_ids
        c.author = author
        c.committer = committer
        c.author_time = c.commit_time = commit_timestamp
        c.author_timezone = c.commit_timezone = commit_timezone
        c.message = message
        return store.add_object(c)


def ls_remote(
    remote: str | bytes,
    config: Config | None = None,
    timeout: float | None = None,
) -> LsRemoteResult:
    """List the refs in a remote.

    Args:
      remote: Remote repository location
      config: Configuration to use
      timeout: Optional timeout for HTTP requests in seconds
    Returns:
      LsRemoteResult object with refs and symrefs
    """
    if config is None:
        config = StackedConfig.default()
    remote_str = remote.decode() if isinstance(remote, bytes) else remote
    client, host_path = get_transport_and_path(remote_str, config=config, timeout=timeout)
    return client.ls_remote(host_path)


def _default_clone_target(source: str) -> str:
    path = urlparse(source).path.rstrip("/")
    target = path.split("/")[-1]
    if target.endswith(".git"):
        target = target[: -len(".git")]
    if not target:
        raise Error(f"unable to derive a directory name from {source}")
    return target


def clone(
    source: str | bytes,
    target: str | os.PathLike[str] | None = None,
    errstream: BinaryIO = default_bytes_err_stream,
    config: StackedConfig | None = None,
    progress: Callable[[bytes], None] | None = None,
    timeout: float | None = None,
) -> Repo:
    """Clone a remote git repository.

    All objects reachable from the advertised refs are fetched into a new
    repository. No refs are written and no working tree is checked out.

    Args:
      source: URL of the source repository
      target: Path to target repository (optional)
      errstream: Optional stream to write progress to
      config: Configuration to use
      progress: Optional progress function; defaults to writing to errstream
      timeout: Optional timeout for HTTP requests in seconds
    Returns: The new repository
    """
    if config is None:
        config = StackedConfig.default()
    source_str = source.decode() if isinstance(source, bytes) else source
    if target is None:
        target = _default_clone_target(source_str)
    if progress is None:

        def progress(data: bytes) -> None:
            errstream.write(data)

    client, path = get_transport_and_path(source_str, config=config, timeout=timeout)
    repo = init(target, config=config)
    try:
        result = client.fetch(path, repo.object_store, progress=progress)
    except BaseException:
        repo.close()
        raise
    logger.info(
        "Cloned %d refs from %s into %s", len(result.refs), source_str, repo.path
    )
    return repo
