# backend.py -- Version control backends
# Copyright (C) 2026 The subfetch developers
#
# SPDX-License-Identifier: Apache-2.0 OR GPL-2.0-or-later
# subfetch is dual-licensed under the Apache License, Version 2.0 and the GNU
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

"""Version control backends.

The fetcher never talks to the git wire protocol or the object store
directly. Everything goes through a Backend, which resolves endpoints, reads
capability advertisements, fetches objects, checks out commits and reads
remote configuration. DulwichBackend implements this on top of dulwich.
"""

import enum
import functools
import os
import socket
from collections.abc import Callable, Mapping, Sequence
from contextlib import closing
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import urlparse

import urllib3
from dulwich import porcelain
from dulwich.client import (
    AbstractHttpGitClient,
    GitClient,
    HTTPProxyUnauthorized,
    HTTPUnauthorized,
    LocalGitClient,
    SubprocessWrapper,
    TraditionalGitClient,
    default_urllib3_manager,
    get_transport_and_path,
    negotiate_protocol_version,
    read_pkt_refs_v1,
    read_server_capabilities,
)
from dulwich.config import Config
from dulwich.errors import (
    ApplyDeltaError,
    ChecksumMismatch,
    FileFormatException,
    GitProtocolError,
    MissingCommitError,
    NotGitRepository,
    ObjectMissing,
    WrongObjectException,
)
from dulwich.protocol import Protocol
from dulwich.repo import Repo

from .context import Context
from .errors import AlreadyUpToDate
from .log_utils import getLogger
from .refspec import RefSpec

logger = getLogger(__name__)

# Exceptions the transport layer raises for remote or network failures.
TRANSPORT_ERRORS: tuple[type[Exception], ...] = (
    GitProtocolError,
    HTTPUnauthorized,
    HTTPProxyUnauthorized,
    NotGitRepository,
    urllib3.exceptions.HTTPError,
    OSError,
    ValueError,
)

# Exceptions raised when fetching objects fails. A commit the remote does not
# have shows up as a KeyError from the object store.
FETCH_ERRORS: tuple[type[Exception], ...] = (
    KeyError,
    ApplyDeltaError,
    ChecksumMismatch,
    FileFormatException,
    MissingCommitError,
    ObjectMissing,
    WrongObjectException,
    *TRANSPORT_ERRORS,
)

# Exceptions raised when a commit can not be checked out.
CHECKOUT_ERRORS: tuple[type[Exception], ...] = (
    porcelain.Error,
    KeyError,
    *TRANSPORT_ERRORS,
)

# A local object store can serve any object at any depth.
LOCAL_CAPABILITIES = frozenset(
    [b"allow-reachable-sha1-in-want", b"allow-tip-sha1-in-want", b"shallow"]
)

LOCAL_TAG_PREFIX = b"refs/tags/"
PEELED_TAG_SUFFIX = b"^{}"


class TagMode(enum.Enum):
    """Which tags to fetch alongside the requested refs."""

    NONE = "none"
    ALL = "all"


@dataclass(frozen=True)
class AuthMethod:
    """Credentials handed unchanged to the transport.

    Attributes:
      username: Username for HTTP or SSH
      password: Password for HTTP or SSH
      key_filename: SSH private key file
      ssh_command: Custom SSH command
    """

    username: str | None = None
    password: str | None = field(default=None, repr=False)
    key_filename: str | None = None
    ssh_command: str | None = None

    def transport_kwargs(self) -> dict[str, str]:
        """Keyword arguments for dulwich.client.get_transport_and_path."""
        kwargs = {
            "username": self.username,
            "password": self.password,
            "key_filename": self.key_filename,
            "ssh_command": self.ssh_command,
        }
        return {k: v for (k, v) in kwargs.items() if v is not None}


@dataclass
class Endpoint:
    """A resolved remote: the URL, a client able to talk to it and its path."""

    url: str
    client: GitClient
    path: str
    watchers: list[Callable[[], None]] = field(default_factory=list, repr=False)

    def release(self) -> None:
        """Stop aborting this endpoint's connections when the context is done."""
        while self.watchers:
            self.watchers.pop()()


class FetchSession:
    """An open upload-pack session that has not fetched anything.

    Sessions are context managers; leaving the block closes the session.
    """

    def advertised_capabilities(self) -> set[bytes]:
        """Return the capabilities the server announced."""
        raise NotImplementedError(self.advertised_capabilities)

    def close(self) -> None:
        """Release transport resources."""

    def __enter__(self) -> "FetchSession":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()


class ProtocolFetchSession(FetchSession):
    """Session over a pkt-line stream (git://, ssh, subprocess)."""

    def __init__(self, client: TraditionalGitClient, path: bytes) -> None:
        # Protocol v0 is requested so the v1 style capability list is sent.
        self._proto, _, self._stderr = client._connect(
            b"upload-pack", path, protocol_version=0
        )
        self._read = False

    def advertised_capabilities(self) -> set[bytes]:
        version = negotiate_protocol_version(self._proto)
        if version == 2:
            capabilities = read_server_capabilities(self._proto.read_pkt_seq())
        else:
            _refs, capabilities = read_pkt_refs_v1(self._proto.read_pkt_seq())
        self._read = True
        return set(capabilities)

    def close(self) -> None:
        try:
            if self._read:
                # Tell the server we do not want anything.
                self._proto.write_pkt_line(None)
        finally:
            self._proto.close()


class HttpFetchSession(FetchSession):
    """Session over smart HTTP; the advertisement is the info/refs request."""

    def __init__(self, client: AbstractHttpGitClient, path: bytes) -> None:
        self._client = client
        self._url = client._get_url(path)

    def advertised_capabilities(self) -> set[bytes]:
        result = self._client._discover_references(
            b"git-upload-pack", self._url, protocol_version=0
        )
        return set(result[1])

    def close(self) -> None:
        pool_manager = getattr(self._client, "pool_manager", None)
        if pool_manager is not None:
            pool_manager.clear()


class LocalFetchSession(FetchSession):
    """Session against a repository on the local filesystem."""

    def __init__(self, path: str) -> None:
        # Opening the repository validates the path.
        with closing(Repo(path)):
            pass

    def advertised_capabilities(self) -> set[bytes]:
        return set(LOCAL_CAPABILITIES)


class Backend:
    """Interface to the version control system."""

    def resolve_endpoint(
        self,
        url: str,
        auth: AuthMethod | None = None,
        ctx: Context | None = None,
    ) -> Endpoint:
        raise NotImplementedError(self.resolve_endpoint)

    def open_fetch_session(
        self, endpoint: Endpoint, auth: AuthMethod | None = None
    ) -> FetchSession:
        raise NotImplementedError(self.open_fetch_session)

    def fetch(
        self,
        repo: Any,
        remote_name: str,
        refspecs: Sequence[RefSpec],
        depth: int | None = None,
        tags: TagMode = TagMode.NONE,
        auth: AuthMethod | None = None,
        ctx: Context | None = None,
    ) -> None:
        """Fetch objects and update local references.

        Raises:
          AlreadyUpToDate: if there was nothing to fetch and no local
            reference changed
        """
        raise NotImplementedError(self.fetch)

    def checkout(self, repo: Any, commit_id: bytes, force: bool = True) -> None:
        raise NotImplementedError(self.checkout)

    def commit_exists(self, repo: Any, commit_id: bytes) -> bool:
        raise NotImplementedError(self.commit_exists)

    def remote_urls(self, repo: Any, remote_name: str) -> list[str]:
        """Return the configured URLs of a remote.

        Raises:
          KeyError: if the remote is not configured
        """
        raise NotImplementedError(self.remote_urls)


def _activity_checker(ctx: Context) -> Callable[[int, str], None]:
    def report_activity(nbytes: int, direction: str) -> None:
        ctx.check()

    return report_activity


def _progress_logger(ctx: Context | None) -> Callable[[bytes], None]:
    def progress(data: bytes) -> None:
        if ctx is not None:
            ctx.check()
        logger.debug("remote: %s", data.decode("utf-8", "replace").rstrip())

    return progress


def _abort_protocol(proto: Protocol) -> None:
    """Tear down the transport under proto so a blocked read returns."""
    owner = getattr(getattr(proto, "_close", None), "__self__", None)
    if isinstance(owner, SubprocessWrapper):
        owner.proc.kill()
        return
    reader = getattr(proto.read, "__self__", None)
    if reader is None or getattr(reader, "closed", True):
        return
    try:
        fd = os.dup(reader.fileno())
    except (OSError, ValueError):
        return
    try:
        sock = socket.socket(fileno=fd)
    except OSError:
        os.close(fd)
        return
    with sock:
        try:
            sock.shutdown(socket.SHUT_RDWR)
        except OSError as e:
            logger.debug("shutting down connection failed: %s", e)


def _watch_connections(
    client: TraditionalGitClient, ctx: Context, watchers: list[Callable[[], None]]
) -> None:
    """Abort every connection client opens once ctx is done."""
    connect = client._connect

    def _connect(
        cmd: bytes, path: str | bytes, protocol_version: int | None = None
    ) -> Any:
        proto, can_read, stderr = connect(cmd, path, protocol_version)
        watchers.append(ctx.on_done(functools.partial(_abort_protocol, proto)))
        return proto, can_read, stderr

    client._connect = _connect  # type: ignore[method-assign]


def _urllib3_manager(config: Config | None, url: str, timeout: float) -> Any:
    # A retry would restart the timeout, so failures surface right away.
    return default_urllib3_manager(
        config,
        pool_manager_cls=functools.partial(urllib3.PoolManager, retries=False),
        proxy_manager_cls=functools.partial(urllib3.ProxyManager, retries=False),
        base_url=url,
        timeout=timeout,
    )


class DulwichBackend(Backend):
    """Backend built on dulwich.

    Args:
      thin_packs: Whether to ask for thin packs
    """

    def __init__(self, thin_packs: bool = True) -> None:
        self.thin_packs = thin_packs

    def resolve_endpoint(
        self,
        url: str,
        auth: AuthMethod | None = None,
        ctx: Context | None = None,
        config: Config | None = None,
        include_tags: bool = False,
    ) -> Endpoint:
        kwargs: dict[str, Any] = {}
        if auth is not None:
            kwargs.update(auth.transport_kwargs())
        if ctx is not None:
            kwargs["report_activity"] = _activity_checker(ctx)
            remaining = ctx.remaining()
            if remaining is not None and urlparse(url).scheme in ("http", "https"):
                kwargs["pool_manager"] = _urllib3_manager(config, url, remaining)
        client, path = get_transport_and_path(
            url,
            config=config,
            operation="pull",
            thin_packs=self.thin_packs,
            quiet=True,
            include_tags=include_tags,
            **kwargs,
        )
        endpoint = Endpoint(url=url, client=client, path=path)
        if ctx is not None and isinstance(client, TraditionalGitClient):
            _watch_connections(client, ctx, endpoint.watchers)
        return endpoint

    def open_fetch_session(
        self, endpoint: Endpoint, auth: AuthMethod | None = None
    ) -> FetchSession:
        client = endpoint.client
        if isinstance(client, LocalGitClient):
            return LocalFetchSession(endpoint.path)
        if isinstance(client, AbstractHttpGitClient):
            return HttpFetchSession(client, endpoint.path.encode("utf-8"))
        if isinstance(client, TraditionalGitClient):
            return ProtocolFetchSession(client, endpoint.path.encode("utf-8"))
        raise ValueError(f"no capability advertisement for {endpoint.url}")

    def fetch(
        self,
        repo: Repo,
        remote_name: str,
        refspecs: Sequence[RefSpec],
        depth: int | None = None,
        tags: TagMode = TagMode.NONE,
        auth: AuthMethod | None = None,
        ctx: Context | None = None,
    ) -> None:
        urls = self.remote_urls(repo, remote_name)
        if not urls:
            raise ValueError(f"remote {remote_name} has no URL")
        url = urls[0]
        if ctx is not None:
            ctx.check()
        endpoint = self.resolve_endpoint(
            url,
            auth,
            ctx,
            config=repo.get_config_stack(),
            include_tags=tags is TagMode.ALL,
        )
        selected: dict[bytes, bytes] = {}
        wants: list[bytes] = []

        def determine_wants(
            refs: Mapping[bytes, bytes], depth: int | None = None
        ) -> list[bytes]:
            selected.update(_select_refs(refs, refspecs, tags))
            wants[:] = list(
                dict.fromkeys(repo.object_store.determine_wants_all(selected, depth))
            )
            logger.debug("fetching %d objects from %s", len(wants), url)
            return list(wants)

        try:
            endpoint.client.fetch(
                endpoint.path.encode("utf-8"),
                repo,
                determine_wants=determine_wants,
                progress=_progress_logger(ctx),
                depth=depth,
            )
        finally:
            endpoint.release()
        updated = _update_refs(repo, selected, b"fetch: from " + url.encode("utf-8"))
        if not wants and not updated:
            raise AlreadyUpToDate()

    def checkout(self, repo: Repo, commit_id: bytes, force: bool = True) -> None:
        porcelain.checkout(repo, commit_id.decode("ascii"), force=force)

    def commit_exists(self, repo: Repo, commit_id: bytes) -> bool:
        try:
            obj = repo.object_store[commit_id]
        except KeyError:
            return False
        return obj.type_name == b"commit"

    def remote_urls(self, repo: Repo, remote_name: str) -> list[str]:
        config = repo.get_config()
        section = (b"remote", remote_name.encode("utf-8"))
        if not config.has_section(section):
            raise KeyError(remote_name)
        try:
            urls = list(config.get_multivar(section, b"url"))
        except KeyError:
            urls = []
        return [url.decode("utf-8") for url in urls if url]


def _select_refs(
    refs: Mapping[bytes, bytes], refspecs: Sequence[RefSpec], tags: TagMode
) -> dict[bytes, bytes]:
    """Map local reference names to the remote SHAs they should point at."""
    selected = {}
    for spec in refspecs:
        if spec.is_exact_sha():
            selected[spec.dst] = spec.src
    for ref, sha in refs.items():
        if ref.endswith(PEELED_TAG_SUFFIX):
            continue
        for spec in refspecs:
            if not spec.is_exact_sha() and spec.matches(ref):
                selected[spec.translate(ref)] = sha
                break
        else:
            if tags is TagMode.ALL and ref.startswith(LOCAL_TAG_PREFIX):
                selected[ref] = sha
    return selected


def _update_refs(repo: Repo, selected: Mapping[bytes, bytes], message: bytes) -> list[bytes]:
    """Point local references at fetched objects.

    Returns: Names of the references that changed
    """
    updated = []
    for name, sha in selected.items():
        if sha not in repo.object_store:
            continue
        try:
            old = repo.refs[name]
        except KeyError:
            old = None
        if old == sha:
            continue
        repo.refs.set_if_equals(name, None, sha, message=message)
        updated.append(name)
    return updated
