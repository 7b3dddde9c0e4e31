# utils.py -- Test helpers for subfetch
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

"""Fakes and repository helpers shared by the subfetch tests."""

import os
from collections.abc import Callable, Sequence
from typing import Any

from dulwich import porcelain
from dulwich.repo import Repo

from subfetch.backend import AuthMethod, Backend, Endpoint, FetchSession, TagMode
from subfetch.capability import Capabilities, StrategyType, choose_strategy
from subfetch.context import Context
from subfetch.errors import AlreadyUpToDate
from subfetch.refspec import RefSpec
from subfetch.strategy import FetchRequest, Strategy

TEST_AUTHOR = b"Test User <test@example.com>"

COMMIT_A = "a" * 40
COMMIT_B = "b" * 40


class FakeSession(FetchSession):
    def __init__(self, capabilities: set[bytes], error: Exception | None = None) -> None:
        self.capabilities = capabilities
        self.error = error
        self.closed = False

    def advertised_capabilities(self) -> set[bytes]:
        if self.error is not None:
            raise self.error
        return self.capabilities

    def close(self) -> None:
        self.closed = True


class FetchCall:
    """Arguments of one FakeBackend.fetch() call."""

    def __init__(
        self,
        remote_name: str,
        refspecs: Sequence[RefSpec],
        depth: int | None,
        tags: TagMode,
        auth: AuthMethod | None,
    ) -> None:
        self.remote_name = remote_name
        self.refspecs = list(refspecs)
        self.depth = depth
        self.tags = tags
        self.auth = auth


class FakeBackend(Backend):
    """In-memory backend that records what it was asked to do.

    Args:
      remotes: Remote name to URL list
      capabilities: Capabilities the fake server advertises
    """

    def __init__(
        self,
        remotes: dict[str, list[str]] | None = None,
        capabilities: set[bytes] | None = None,
    ) -> None:
        if remotes is None:
            remotes = {"origin": ["https://example.com/repo.git"]}
        self.remotes = remotes
        self.capabilities = capabilities if capabilities is not None else set()
        self.resolve_error: Exception | None = None
        self.session_error: Exception | None = None
        self.advertisement_error: Exception | None = None
        self.sessions: list[FakeSession] = []
        self.resolved: list[tuple[str, AuthMethod | None]] = []
        self.fetches: list[FetchCall] = []
        self.checkouts: list[bytes] = []
        self.present: set[bytes] = set()
        # Called for every fetch; may raise or mark commits as present.
        self.on_fetch: Callable[[FetchCall], None] | None = None
        self.checkout_error: Exception | None = None

    def resolve_endpoint(
        self,
        url: str,
        auth: AuthMethod | None = None,
        ctx: Context | None = None,
    ) -> Endpoint:
        self.resolved.append((url, auth))
        if self.resolve_error is not None:
            raise self.resolve_error
        return Endpoint(url=url, client=None, path="/repo.git")  # type: ignore[arg-type]

    def open_fetch_session(
        self, endpoint: Endpoint, auth: AuthMethod | None = None
    ) -> FetchSession:
        if self.session_error is not None:
            raise self.session_error
        session = FakeSession(self.capabilities, self.advertisement_error)
        self.sessions.append(session)
        return session

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
        call = FetchCall(remote_name, refspecs, depth, tags, auth)
        self.fetches.append(call)
        if self.on_fetch is not None:
            self.on_fetch(call)

    def checkout(self, repo: Any, commit_id: bytes, force: bool = True) -> None:
        if self.checkout_error is not None:
            raise self.checkout_error
        self.checkouts.append(commit_id)

    def commit_exists(self, repo: Any, commit_id: bytes) -> bool:
        return commit_id in self.present

    def remote_urls(self, repo: Any, remote_name: str) -> list[str]:
        return list(self.remotes[remote_name])


def already_up_to_date(call: FetchCall) -> None:
    raise AlreadyUpToDate()


class FakeDetector:
    """Detector returning fixed capabilities and recording its calls."""

    def __init__(
        self,
        caps: Capabilities | None = None,
        strategy_type: StrategyType | None = None,
        error: Exception | None = None,
    ) -> None:
        self.caps = caps
        self.strategy_type = strategy_type
        self.error = error
        self.detect_calls: list[tuple[str, AuthMethod | None]] = []
        self.choose_calls: list[Capabilities | None] = []

    def detect(
        self, url: str, auth: AuthMethod | None = None, ctx: Context | None = None
    ) -> Capabilities | None:
        self.detect_calls.append((url, auth))
        if self.error is not None:
            raise self.error
        return self.caps

    def choose_strategy(self, caps: Capabilities | None) -> StrategyType:
        self.choose_calls.append(caps)
        if self.strategy_type is not None:
            return self.strategy_type
        return choose_strategy(caps)


class RecordingStrategy(Strategy):
    """Strategy that records executions and optionally fails."""

    def __init__(
        self, strategy_type: StrategyType, error: Exception | None = None
    ) -> None:
        super().__init__(backend=FakeBackend())
        self.strategy_type = strategy_type
        self.error = error
        self.executed: list[FetchRequest] = []

    def execute(self, ctx: Context, repo: Any, request: FetchRequest) -> None:
        self.executed.append(request)
        if self.error is not None:
            raise self.error


def make_source_repo(path: str, revisions: Sequence[bytes]) -> list[bytes]:
    """Create a repository at path with one commit per revision of a file.

    Returns: The commit ids, oldest first
    """
    porcelain.init(path).close()
    commits = []
    file_path = os.path.join(path, "file.txt")
    for i, contents in enumerate(revisions):
        with open(file_path, "wb") as f:
            f.write(contents)
        porcelain.add(path, [file_path])
        commits.append(
            porcelain.commit(
                path,
                message=b"Commit %d" % i,
                author=TEST_AUTHOR,
                committer=TEST_AUTHOR,
            )
        )
    return commits


def make_target_repo(path: str, remote_url: str | None, remote_name: str = "origin") -> Repo:
    """Create an empty repository with a remote pointing at remote_url.

    If remote_url is None, the remote section is created without a URL.
    """
    repo = Repo.init(path, mkdir=True)
    config = repo.get_config()
    section = (b"remote", remote_name.encode("utf-8"))
    if remote_url is not None:
        config.set(section, b"url", remote_url.encode("utf-8"))
    config.set(
        section,
        b"fetch",
        b"+refs/heads/*:refs/remotes/" + remote_name.encode("utf-8") + b"/*",
    )
    config.write_to_path()
    return repo
