# client.py -- Implementation of the client side git protocols
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

"""Client side support for the git smart HTTP protocol.

Only fetching is supported, and only over protocol v0/v1. The client
supports the following capabilities:

 * side-band-64k
 * side-band
 * ofs-delta
 * agent

Every fetch is a full clone: no ``have`` lines are ever sent.
"""

__all__ = [
    "FetchPackResult",
    "HttpGitClient",
    "LsRemoteResult",
    "check_for_proxy_bypass",
    "default_urllib3_manager",
    "default_user_agent_string",
    "encode_upload_pack_request",
    "get_transport_and_path",
    "read_pkt_refs",
]

import os
from collections.abc import Callable, Iterable, Iterator, Mapping
from tempfile import SpooledTemporaryFile
from typing import TYPE_CHECKING
from urllib.parse import urljoin, urlparse, urlunparse

import packrat

from .config import Config, parse_boolean
from .errors import GitProtocolError, HTTPUnauthorized, NotGitRepository
from .log_utils import getLogger
from .objects import ZERO_SHA, ObjectID, valid_hexsha
from .pack import PACK_SPOOL_FILE_MAX_SIZE
from .protocol import (
    CAPABILITIES_REF,
    CAPABILITY_AGENT,
    CAPABILITY_OFS_DELTA,
    CAPABILITY_SIDE_BAND,
    CAPABILITY_SIDE_BAND_64K,
    CAPABILITY_SYMREF,
    COMMAND_DONE,
    COMMAND_WANT,
    Protocol,
    capability_agent,
    demux_side_band,
    extract_capabilities,
    parse_capability,
    pkt_line,
)

if TYPE_CHECKING:
    import urllib3
    from urllib3.response import HTTPResponse

    from .object_store import BaseObjectStore

logger = getLogger(__name__)

UPLOAD_PACK_SERVICE = b"git-upload-pack"

# Read buffer size for raw (non side-band) pack data.
_RBUFSIZE = 65536

DetermineWantsFunc = Callable[[Mapping[bytes, ObjectID]], list[ObjectID]]


def read_pkt_refs(
    pkt_seq: Iterable[bytes | None],
) -> tuple[dict[bytes, ObjectID], set[bytes]]:
    """Read a reference advertisement.

    Args:
      pkt_seq: Sequence of pkt-line payloads, with None for flush-pkts
    Returns: Tuple of (refs, capabilities); refs maps ref names to hex
      object ids, in advertisement order
    Raises:
      GitProtocolError: if the server sent an error or a malformed line
    """
    server_capabilities: list[bytes] | None = None
    refs: dict[bytes, ObjectID] = {}
    for pkt in pkt_seq:
        if pkt is None:
            continue
        line = pkt.rstrip(b"\n")
        if not line or line.startswith(b"# ") or line == b"version 1":
            continue
        try:
            (sha, ref) = line.split(b" ", 1)
        except ValueError as exc:
            raise GitProtocolError(f"invalid ref line {line!r}") from exc
        if sha == b"ERR":
            raise GitProtocolError(ref.decode("utf-8", "replace"))
        if server_capabilities is None:
            (ref, server_capabilities) = extract_capabilities(ref)
        if not valid_hexsha(sha):
            raise GitProtocolError(f"invalid object id {sha!r} for {ref!r}")
        refs[ref] = sha

    if len(refs) == 0:
        return {}, set()
    if refs == {CAPABILITIES_REF: ZERO_SHA}:
        refs = {}
    assert server_capabilities is not None
    return refs, set(server_capabilities)


def encode_upload_pack_request(
    wants: Iterable[ObjectID], capabilities: Iterable[bytes]
) -> bytes:
    """Encode the body of an upload-pack request.

    The first want line carries the capabilities, sorted. No have lines are
    sent: the request ends with a flush-pkt and ``done``.

    Args:
      wants: Object ids to request; duplicates are dropped
      capabilities: Capabilities to request
    Returns: The request body
    Raises:
      ValueError: if there is nothing to request or an id is invalid
    """
    unique_wants = list(dict.fromkeys(wants))
    if not unique_wants:
        raise ValueError("no objects wanted")
    for want in unique_wants:
        if not valid_hexsha(want):
            raise ValueError(f"invalid object id {want!r}")
    first = COMMAND_WANT + b" " + unique_wants[0]
    caps = sorted(capabilities)
    if caps:
        first += b" " + b" ".join(caps)
    lines = [pkt_line(first + b"\n")]
    for want in unique_wants[1:]:
        lines.append(pkt_line(COMMAND_WANT + b" " + want + b"\n"))
    lines.append(pkt_line(None))
    lines.append(pkt_line(COMMAND_DONE + b"\n"))
    return b"".join(lines)


def _extract_symrefs_and_agent(
    capabilities: Iterable[bytes],
) -> tuple[dict[bytes, bytes], bytes | None]:
    """Extract symrefs and agent from capabilities.

    Args:
     capabilities: List of capabilities
    Returns:
     (symrefs, agent) tuple
    """
    symrefs = {}
    agent = None
    for capability in capabilities:
        k, v = parse_capability(capability)
        if k == CAPABILITY_SYMREF and v is not None and b":" in v:
            (src, dst) = v.split(b":", 1)
            symrefs[src] = dst
        if k == CAPABILITY_AGENT:
            agent = v
    return (symrefs, agent)


def _handle_upload_pack_tail(
    proto: Protocol,
    capabilities: set[bytes],
    pack_data: Callable[[bytes], object],
    progress: Callable[[bytes], None] | None = None,
    rbufsize: int = _RBUFSIZE,
) -> None:
    """Handle the response to an upload-pack request.

    Args:
      proto: Protocol object to read from
      capabilities: Set of negotiated capabilities
      pack_data: Function to call with pack data
      progress: Optional progress reporting function
      rbufsize: Read buffer size
    """
    pkt = proto.read_pkt_line()
    while pkt:
        parts = pkt.rstrip(b"\n").split(b" ")
        if parts[0] not in (b"ACK", b"NAK"):
            raise GitProtocolError(f"unexpected acknowledgement line {pkt!r}")
        if len(parts) < 3 or parts[2] not in (b"ready", b"continue", b"common"):
            break
        pkt = proto.read_pkt_line()
    if (
        CAPABILITY_SIDE_BAND_64K in capabilities
        or CAPABILITY_SIDE_BAND in capabilities
    ):
        demux_side_band(proto.read_pkt_seq(), pack_data, progress)
    else:
        while True:
            data = proto.read(rbufsize)
            if data == b"":
                break
            pack_data(data)


def default_user_agent_string() -> str:
    """Return the default user agent string for packrat."""
    # Hosting providers expect agents to start with "git/".
    return "git/packrat/{}".format(".".join([str(x) for x in packrat.__version__]))


def check_for_proxy_bypass(base_url: str | None) -> bool:
    """Check if the no_proxy environment variable exempts a URL from proxying."""
    if not base_url:
        return False
    no_proxy_str = os.environ.get("no_proxy") or os.environ.get("NO_PROXY")
    if not no_proxy_str:
        return False
    hostname = urlparse(base_url).hostname
    if not hostname:
        return False
    for no_proxy_value in no_proxy_str.split(","):
        no_proxy_value = no_proxy_value.strip().lower().lstrip(".")
        if not no_proxy_value:
            continue
        if no_proxy_value == "*":
            return True
        if hostname == no_proxy_value:
            return True
        # only match complete domains
        if hostname.endswith("." + no_proxy_value):
            return True
    return False


def default_urllib3_manager(
    config: Config | None,
    pool_manager_cls: type | None = None,
    proxy_manager_cls: type | None = None,
    base_url: str | None = None,
    timeout: float | None = None,
) -> "urllib3.ProxyManager | urllib3.PoolManager":
    """Return urllib3 connection pool manager.

    Honour detected proxy configurations.

    Args:
      config: `packrat.config.Config` instance with Git configuration.
      pool_manager_cls: Pool manager class to use
      proxy_manager_cls: Proxy manager class to use
      base_url: Base URL for proxy bypass checks and http.<url> sections
      timeout: Timeout for HTTP requests in seconds

    Returns:
      Either pool_manager_cls (defaults to `urllib3.ProxyManager`) instance for
      proxy configurations, proxy_manager_cls
      (defaults to `urllib3.PoolManager`) instance otherwise
    """
    proxy_server: str | None = None
    user_agent: str | None = None
    ssl_verify: bool | None = None

    for proxyname in ("https_proxy", "http_proxy", "all_proxy"):
        proxy_server = os.environ.get(proxyname)
        if proxy_server:
            break

    if proxy_server and check_for_proxy_bypass(base_url):
        proxy_server = None

    if config is not None:
        if not proxy_server:
            value = config.get_http(b"proxy", base_url)
            if value:
                proxy_server = value.decode("utf-8")

        value = config.get_http(b"useragent", base_url)
        if value is not None:
            user_agent = value.decode("utf-8")

        value = config.get_http(b"sslVerify", base_url)
        if value is not None:
            ssl_verify = parse_boolean(value)

        if timeout is None:
            value = config.get_http(b"timeout", base_url)
            if value is not None:
                timeout = float(value.decode("utf-8"))

    if user_agent is None:
        user_agent = default_user_agent_string()

    headers = {"User-agent": user_agent}

    kwargs: dict[str, str | float] = {
        "cert_reqs": "CERT_NONE" if ssl_verify is False else "CERT_REQUIRED",
    }
    if timeout is not None:
        kwargs["timeout"] = timeout

    import urllib3

    manager: urllib3.ProxyManager | urllib3.PoolManager
    if proxy_server:
        if proxy_manager_cls is None:
            proxy_manager_cls = urllib3.ProxyManager
        proxy_server_url = urlparse(proxy_server)
        if proxy_server_url.username is not None:
            proxy_headers = urllib3.make_headers(
                proxy_basic_auth=f"{proxy_server_url.username}:{proxy_server_url.password or ''}"
            )
        else:
            proxy_headers = {}
        logger.debug("using proxy %s", proxy_server_url.hostname)
        manager = proxy_manager_cls(
            proxy_server, proxy_headers=proxy_headers, headers=headers, **kwargs
        )
    else:
        if pool_manager_cls is None:
            pool_manager_cls = urllib3.PoolManager
        manager = pool_manager_cls(headers=headers, **kwargs)

    return manager


class FetchPackResult:
    """Result of a fetch-pack operation.

    Attributes:
      refs: Dictionary with all remote refs
      symrefs: Dictionary with remote symrefs
      agent: User agent string
    """

    def __init__(
        self,
        refs: dict[bytes, ObjectID],
        symrefs: dict[bytes, bytes],
        agent: bytes | None,
    ) -> None:
        """Initialize FetchPackResult.

        Args:
          refs: Dictionary with all remote refs
          symrefs: Dictionary with remote symrefs
          agent: User agent string
        """
        self.refs = refs
        self.symrefs = symrefs
        self.agent = agent

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, FetchPackResult):
            return NotImplemented
        return (
            self.refs == other.refs
            and self.symrefs == other.symrefs
            and self.agent == other.agent
        )

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.refs!r}, {self.symrefs!r}, {self.agent!r})"


class LsRemoteResult:
    """Result of a ls-remote operation.

    Attributes:
      refs: Dictionary with all remote refs
      symrefs: Dictionary with remote symrefs
    """

    def __init__(self, refs: dict[bytes, ObjectID], symrefs: dict[bytes, bytes]) -> None:
        self.refs = refs
        self.symrefs = symrefs

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, LsRemoteResult):
            return NotImplemented
        return self.refs == other.refs and self.symrefs == other.symrefs

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.refs!r}, {self.symrefs!r})"


def _wrap_urllib3_exceptions(
    func: Callable[..., bytes],
) -> Callable[..., bytes]:
    from urllib3.exceptions import HTTPError

    def wrapper(*args: object, **kwargs: object) -> bytes:
        try:
            return func(*args, **kwargs)
        except HTTPError as error:
            raise GitProtocolError(str(error)) from error

    return wrapper


class HttpGitClient:
    """Git client for the smart HTTP protocol, using urllib3."""

    def __init__(
        self,
        base_url: str,
        pool_manager: "urllib3.PoolManager | None" = None,
        config: Config | None = None,
        timeout: float | None = None,
    ) -> None:
        """Initialize HttpGitClient.

        Args:
          base_url: URL of the server, e.g. "https://example.com/"
          pool_manager: Optional urllib3 pool manager to issue requests with
          config: Optional configuration for http.* settings
          timeout: Optional timeout for HTTP requests in seconds
        """
        self._base_url = base_url.rstrip("/") + "/"
        self._timeout = timeout
        if pool_manager is None:
            self.pool_manager = default_urllib3_manager(
                config, base_url=base_url, timeout=timeout
            )
        else:
            self.pool_manager = pool_manager
        self.config = config

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._base_url!r})"

    def _get_url(self, path: str | bytes) -> str:
        if not isinstance(path, str):
            # urllib3 encodes invalid characters in the path using utf-8.
            path = path.decode("utf-8")
        return urljoin(self._base_url, path).rstrip("/") + "/"

    def get_url(self, path: str) -> str:
        """Get the HTTP URL for a path."""
        return self._get_url(path).rstrip("/")

    def _http_request(
        self,
        url: str,
        headers: dict[str, str] | None = None,
        data: bytes | None = None,
    ) -> tuple["HTTPResponse", Callable[[int], bytes]]:
        """Perform HTTP request.

        Args:
          url: Request URL.
          headers: Optional custom headers to override defaults.
          data: Request data; a POST is issued if set.

        Returns:
          Tuple (response, read), where response is an urllib3
          response object with additional content_type and
          redirect_location properties, and read is a consumable read
          method for the response data.

        Raises:
          NotGitRepository: if the server answers 404
          HTTPUnauthorized: if the server answers 401
          GitProtocolError: for other failures
        """
        import urllib3.exceptions

        req_headers = dict(self.pool_manager.headers)
        if headers is not None:
            req_headers.update(headers)
        req_headers["Pragma"] = "no-cache"

        request_kwargs: dict[str, object] = {
            "headers": req_headers,
            "preload_content": False,
        }
        if self._timeout is not None:
            request_kwargs["timeout"] = self._timeout

        try:
            if data is None:
                resp = self.pool_manager.request("GET", url, **request_kwargs)
            else:
                request_kwargs["body"] = data
                resp = self.pool_manager.request("POST", url, **request_kwargs)
        except urllib3.exceptions.HTTPError as e:
            raise GitProtocolError(str(e)) from e

        logger.debug("%s %s: %d", "GET" if data is None else "POST", url, resp.status)
        if resp.status == 404:
            raise NotGitRepository(url)
        if resp.status == 401:
            raise HTTPUnauthorized(resp.headers.get("WWW-Authenticate"), url)
        if resp.status != 200:
            raise GitProtocolError(f"unexpected http resp {resp.status} for {url}")

        resp.content_type = resp.headers.get("Content-Type")  # type: ignore[attr-defined]
        resp_url = resp.url
        resp.redirect_location = resp_url if resp_url != url else ""  # type: ignore[attr-defined]
        return resp, _wrap_urllib3_exceptions(resp.read)

    def _discover_references(
        self, service: bytes, base_url: str
    ) -> tuple[dict[bytes, ObjectID], set[bytes], str]:
        """Fetch the reference advertisement for a service.

        Returns: Tuple of (refs, server capabilities, effective base URL)
        """
        assert base_url[-1] == "/"
        tail = "info/refs?service={}".format(service.decode("ascii"))
        url = urljoin(base_url, tail)
        resp, read = self._http_request(url, {"Accept": "*/*"})
        try:
            if resp.redirect_location:
                # Something changed (redirect!), so let's update the base URL
                if not resp.redirect_location.endswith(tail):
                    raise GitProtocolError(
                        f"Redirected from URL {url} to URL {resp.redirect_location} without {tail}"
                    )
                base_url = urljoin(url, resp.redirect_location[: -len(tail)])
                logger.debug("following redirect to %s", base_url)

            expected_content_type = f"application/x-{service.decode('ascii')}-advertisement"
            if (
                not resp.content_type
                or resp.content_type.split(";")[0] != expected_content_type
            ):
                raise GitProtocolError(
                    f"{url} is not a smart HTTP server "
                    f"(content-type {resp.content_type!r})"
                )

            proto = Protocol(read)
            try:
                [pkt] = list(proto.read_pkt_seq())
            except ValueError as exc:
                raise GitProtocolError("unexpected number of packets received") from exc
            if pkt.rstrip(b"\n") != (b"# service=" + service):
                raise GitProtocolError(
                    f"unexpected first line {pkt!r} from smart server"
                )
            refs, server_capabilities = read_pkt_refs(proto.read_pkt_lines())
            logger.debug(
                "discovered %d refs and %d capabilities at %s",
                len(refs),
                len(server_capabilities),
                base_url,
            )
            return refs, server_capabilities, base_url
        finally:
            resp.close()

    def _smart_request(
        self, service: str, url: str, data: bytes
    ) -> tuple["HTTPResponse", Callable[[int], bytes]]:
        """Send a 'smart' HTTP request.

        This is a simple wrapper around _http_request that sets
        a couple of extra headers.
        """
        assert url[-1] == "/"
        url = urljoin(url, service)
        result_content_type = f"application/x-{service}-result"
        headers = {
            "Content-Type": f"application/x-{service}-request",
            "Accept": result_content_type,
            "Content-Length": str(len(data)),
        }
        resp, read = self._http_request(url, headers, data)
        if (
            not resp.content_type
            or resp.content_type.split(";")[0] != result_content_type
        ):
            resp.close()
            raise GitProtocolError(
                f"Invalid content-type from server: {resp.content_type}"
            )
        return resp, read

    def get_refs(self, path: str | bytes) -> tuple[dict[bytes, ObjectID], set[bytes]]:
        """Retrieve the current refs from a git smart server.

        Args:
          path: Path to the repo to fetch from (as bytestring or string)
        Returns: Tuple of (refs, server capabilities)
        """
        url = self._get_url(path)
        refs, server_capabilities, _ = self._discover_references(
            UPLOAD_PACK_SERVICE, url
        )
        return refs, server_capabilities

    def ls_remote(self, path: str | bytes) -> LsRemoteResult:
        """List the refs advertised by a git smart server, with their symrefs."""
        refs, server_capabilities = self.get_refs(path)
        symrefs, _agent = _extract_symrefs_and_agent(server_capabilities)
        return LsRemoteResult(refs, symrefs)

    def _negotiate_upload_pack_capabilities(
        self, server_capabilities: set[bytes]
    ) -> set[bytes]:
        negotiated_capabilities = set()
        if CAPABILITY_SIDE_BAND_64K in server_capabilities:
            negotiated_capabilities.add(CAPABILITY_SIDE_BAND_64K)
        elif CAPABILITY_SIDE_BAND in server_capabilities:
            negotiated_capabilities.add(CAPABILITY_SIDE_BAND)
        if CAPABILITY_OFS_DELTA in server_capabilities:
            negotiated_capabilities.add(CAPABILITY_OFS_DELTA)
        negotiated_capabilities.add(capability_agent())
        return negotiated_capabilities

    def fetch_pack(
        self,
        path: str | bytes,
        determine_wants: DetermineWantsFunc,
        pack_data: Callable[[bytes], object],
        progress: Callable[[bytes], None] | None = None,
    ) -> FetchPackResult:
        """Retrieve a pack from a git smart server.

        Args:
          path: Path to fetch from
          determine_wants: Callback that returns list of commits to fetch
          pack_data: Callback called for each bit of data in the pack
          progress: Callback for progress reports (strings)
        Returns:
          FetchPackResult object
        """
        url = self._get_url(path)
        refs, server_capabilities, url = self._discover_references(
            UPLOAD_PACK_SERVICE, url
        )
        negotiated_capabilities = self._negotiate_upload_pack_capabilities(
            server_capabilities
        )
        symrefs, agent = _extract_symrefs_and_agent(server_capabilities)
        wants = [cid for cid in determine_wants(refs) if cid != ZERO_SHA]
        if not wants:
            return FetchPackResult(refs, symrefs, agent)
        req_data = encode_upload_pack_request(wants, negotiated_capabilities)
        logger.debug(
            "requesting %d objects from %s (%d bytes)", len(wants), url, len(req_data)
        )
        resp, read = self._smart_request(
            UPLOAD_PACK_SERVICE.decode("ascii"), url, data=req_data
        )
        try:
            resp_proto = Protocol(read)
            _handle_upload_pack_tail(
                resp_proto, negotiated_capabilities, pack_data, progress
            )
            return FetchPackResult(refs, symrefs, agent)
        finally:
            resp.close()

    def fetch(
        self,
        path: str | bytes,
        target: "BaseObjectStore",
        determine_wants: DetermineWantsFunc | None = None,
        progress: Callable[[bytes], None] | None = None,
    ) -> FetchPackResult:
        """Fetch into a target object store.

        The pack is spooled to a temporary file and decoded once it has
        been received in full.

        Args:
          path: Path to fetch from (as bytestring)
          target: Target object store to fetch into
          determine_wants: Optional function to determine what refs to fetch.
            Receives dictionary of name->sha, should return
            list of shas to fetch. Defaults to all shas.
          progress: Optional progress function
        Returns:
          FetchPackResult object
        """
        if determine_wants is None:
            determine_wants = target.determine_wants_all
        with SpooledTemporaryFile(
            max_size=PACK_SPOOL_FILE_MAX_SIZE, prefix="incoming-"
        ) as f:
            result = self.fetch_pack(path, determine_wants, f.write, progress)
            if f.tell() == 0:
                return result
            logger.debug("received pack of %d bytes", f.tell())
            f.seek(0)
            target.add_pack_data(f, progress=progress)
        return result


def get_transport_and_path(
    location: str,
    config: Config | None = None,
    **kwargs: object,
) -> tuple[HttpGitClient, str]:
    """Obtain a git client from a URL.

    Args:
      location: URL of the repository, e.g. "https://example.com/repo.git"
      config: Optional configuration for the client
      kwargs: Extra arguments to pass to the client constructor
    Returns: Tuple with client instance and relative path.
    Raises:
      ValueError: for unsupported URL schemes
    """
    parsed = urlparse(location)
    if parsed.scheme not in ("http", "https"):
        raise ValueError(f"unsupported URL {location!r}: only http(s) is supported")
    if not parsed.hostname:
        raise ValueError(f"no host in URL {location!r}")
    netloc = parsed.hostname
    if parsed.port:
        netloc += f":{parsed.port}"
    if parsed.username is not None:
        logger.warning("ignoring credentials in %s", parsed.hostname)
    base_url = urlunparse((parsed.scheme, netloc, "/", "", "", ""))
    path = parsed.path or "/"
    return HttpGitClient(base_url, config=config, **kwargs), path  # type: ignore[arg-type]
