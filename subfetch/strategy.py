# strategy.py -- Fetch strategies
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

"""Fetch strategies.

Each strategy turns one StrategyType into a sequence of backend fetch and
checkout calls that leave the working tree at the requested commit.
"""

from dataclasses import dataclass
from typing import Any

from .backend import (
    CHECKOUT_ERRORS,
    FETCH_ERRORS,
    AuthMethod,
    Backend,
    DulwichBackend,
    TagMode,
)
from .capability import StrategyType
from .context import Context
from .errors import AlreadyUpToDate, CheckoutError, CommitNotFoundError, FetchError
from .log_utils import getLogger
from .refspec import RefSpec, branches_refspec, is_hexsha

logger = getLogger(__name__)

# Maximum number of deepen attempts before giving up.
MAX_DEEPEN_ITERATIONS = 100

# Local reference that a commit fetched by SHA is stored under.
TEMP_REF = b"refs/heads/temp"


@dataclass(frozen=True)
class FetchRequest:
    """What to fetch.

    Attributes:
      commit: Hex SHA of the commit to check out; stored in lower case
    """

    commit: str

    def __post_init__(self) -> None:
        if not isinstance(self.commit, str):
            raise ValueError(f"commit id must be a str, not {self.commit!r}")
        commit = self.commit.lower()
        if not is_hexsha(commit.encode("ascii", "replace")):
            raise ValueError(f"not a full hex commit id: {self.commit!r}")
        object.__setattr__(self, "commit", commit)

    @property
    def commit_id(self) -> bytes:
        return self.commit.encode("ascii")


class Strategy:
    """Base class for fetch strategies.

    Args:
      auth: Authentication passed to every backend call
      backend: Backend to use; defaults to DulwichBackend
      remote_name: Name of the remote to fetch from
    """

    strategy_type: StrategyType

    def __init__(
        self,
        auth: AuthMethod | None = None,
        backend: Backend | None = None,
        remote_name: str = "origin",
    ) -> None:
        if backend is None:
            backend = DulwichBackend()
        self.auth = auth
        self.backend = backend
        self.remote_name = remote_name

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(remote_name={self.remote_name!r})"

    def execute(self, ctx: Context, repo: Any, request: FetchRequest) -> None:
        """Fetch request.commit into repo and check it out.

        Raises:
          FetchError: if fetching failed
          CheckoutError: if checking out failed
          CancellationError: if ctx was cancelled
        """
        raise NotImplementedError(self.execute)

    def _fetch(
        self,
        ctx: Context,
        repo: Any,
        refspecs: list[RefSpec],
        depth: int | None = None,
        tags: TagMode = TagMode.NONE,
    ) -> bool:
        """Run a single backend fetch.

        Returns: False if the remote had nothing new, True otherwise
        """
        ctx.check()
        try:
            self.backend.fetch(
                repo,
                self.remote_name,
                refspecs,
                depth=depth,
                tags=tags,
                auth=self.auth,
                ctx=ctx,
            )
        except AlreadyUpToDate:
            return False
        except FETCH_ERRORS as exc:
            # A connection torn down by cancellation reads as a fetch failure.
            ctx.check(exc)
            message = f"fetch from remote {self.remote_name!r}"
            if depth is not None:
                message += f" at depth {depth}"
            raise FetchError(f"{message}: {exc}") from exc
        return True

    def _checkout(self, ctx: Context, repo: Any, commit_id: bytes) -> None:
        ctx.check()
        try:
            self.backend.checkout(repo, commit_id, force=True)
        except CHECKOUT_ERRORS as exc:
            ctx.check(exc)
            raise CheckoutError(
                f"checkout of {commit_id.decode('ascii')} from remote "
                f"{self.remote_name!r} failed: {exc}"
            ) from exc


class ShallowSHAStrategy(Strategy):
    """Fetch only the requested commit, with depth 1.

    Needs both allow-reachable-sha1-in-want and shallow.
    """

    strategy_type = StrategyType.SHALLOW_SHA

    def execute(self, ctx: Context, repo: Any, request: FetchRequest) -> None:
        refspec = RefSpec(request.commit_id, TEMP_REF)
        self._fetch(ctx, repo, [refspec], depth=1)
        self._checkout(ctx, repo, request.commit_id)


class FullSHAStrategy(Strategy):
    """Fetch the requested commit with its full history.

    Used when the server supports allow-reachable-sha1-in-want but not
    shallow.
    """

    strategy_type = StrategyType.FULL_SHA

    def execute(self, ctx: Context, repo: Any, request: FetchRequest) -> None:
        refspec = RefSpec(request.commit_id, TEMP_REF)
        self._fetch(ctx, repo, [refspec])
        self._checkout(ctx, repo, request.commit_id)


class FullCloneStrategy(Strategy):
    """Fetch every branch and tag; the fallback when nothing else works."""

    strategy_type = StrategyType.FULL_CLONE

    def execute(self, ctx: Context, repo: Any, request: FetchRequest) -> None:
        self._fetch(ctx, repo, [branches_refspec(self.remote_name)], tags=TagMode.ALL)
        self._checkout(ctx, repo, request.commit_id)


class IncrementalDeepenStrategy(Strategy):
    """Fetch branch heads shallowly and deepen until the commit shows up.

    Used when the server supports shallow but not
    allow-reachable-sha1-in-want.

    Args:
      max_depth: Deepest history to try before giving up
    """

    strategy_type = StrategyType.INCREMENTAL_DEEPEN

    def __init__(
        self,
        auth: AuthMethod | None = None,
        backend: Backend | None = None,
        remote_name: str = "origin",
        max_depth: int = MAX_DEEPEN_ITERATIONS,
    ) -> None:
        super().__init__(auth=auth, backend=backend, remote_name=remote_name)
        self.max_depth = max_depth

    def execute(self, ctx: Context, repo: Any, request: FetchRequest) -> None:
        refspecs = [branches_refspec(self.remote_name)]
        for depth in range(1, self.max_depth + 1):
            if not self._fetch(ctx, repo, refspecs, depth=depth):
                logger.debug("nothing new at depth %d", depth)
            if self.backend.commit_exists(repo, request.commit_id):
                logger.debug("found %s at depth %d", request.commit, depth)
                self._checkout(ctx, repo, request.commit_id)
                return
        raise CommitNotFoundError(request.commit_id, self.max_depth)
