# fetcher.py -- Fetch a single commit from a remote
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

"""Fetch a single commit from a remote as cheaply as the server allows.

Example:

  >>> from dulwich.repo import Repo
  >>> from subfetch.context import Context
  >>> from subfetch.fetcher import Fetcher
  >>> from subfetch.strategy import FetchRequest
  >>> fetcher = Fetcher(Repo("path/to/submodule"))  # doctest: +SKIP
  >>> fetcher.fetch(Context(timeout=60), FetchRequest(commit_sha))  # doctest: +SKIP
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from .backend import AuthMethod, Backend, DulwichBackend
from .capability import CapabilityDetector, StrategyType
from .context import Context, background
from .errors import (
    ConfigurationError,
    FetcherError,
    StrategyError,
    StrategyNotFoundError,
    TransportError,
)
from .log_utils import getLogger
from .strategy import (
    FetchRequest,
    FullCloneStrategy,
    FullSHAStrategy,
    IncrementalDeepenStrategy,
    ShallowSHAStrategy,
    Strategy,
)

logger = getLogger(__name__)

DEFAULT_REMOTE_NAME = "origin"


@dataclass
class FetcherConfig:
    """Optional settings for a Fetcher.

    Attributes:
      remote_name: Remote to fetch from
      detector: Capability detector; defaults to a CapabilityDetector on
        the backend
      strategies: Strategies to dispatch to, as a mapping or a sequence;
        defaults to one of each built-in strategy
      auth: Authentication passed to every backend call
      backend: Backend to use; defaults to DulwichBackend
    """

    remote_name: str = DEFAULT_REMOTE_NAME
    detector: CapabilityDetector | None = None
    strategies: Mapping[StrategyType, Strategy] | Iterable[Strategy] | None = None
    auth: AuthMethod | None = None
    backend: Backend | None = None


def default_strategies(
    auth: AuthMethod | None = None,
    backend: Backend | None = None,
    remote_name: str = DEFAULT_REMOTE_NAME,
) -> dict[StrategyType, Strategy]:
    """Return one instance of each built-in strategy, keyed by type."""
    strategies: list[Strategy] = [
        cls(auth=auth, backend=backend, remote_name=remote_name)
        for cls in (
            ShallowSHAStrategy,
            FullSHAStrategy,
            IncrementalDeepenStrategy,
            FullCloneStrategy,
        )
    ]
    return build_registry(strategies)


def build_registry(
    strategies: Mapping[StrategyType, Strategy] | Iterable[Strategy],
) -> dict[StrategyType, Strategy]:
    """Build a strategy registry.

    Raises:
      ConfigurationError: if two strategies share a type
    """
    if isinstance(strategies, Mapping):
        return dict(strategies)
    registry: dict[StrategyType, Strategy] = {}
    for strategy in strategies:
        if strategy.strategy_type in registry:
            raise ConfigurationError(
                f"duplicate strategy for {strategy.strategy_type}"
            )
        registry[strategy.strategy_type] = strategy
    return registry


class Fetcher:
    """Fetches commits into a repository from one of its remotes.

    Args:
      repo: Repository to fetch into; owned by the caller
      config: Optional FetcherConfig
    Raises:
      ConfigurationError: if the remote does not exist or has no URL
    """

    def __init__(self, repo: Any, config: FetcherConfig | None = None) -> None:
        if config is None:
            config = FetcherConfig()
        self.repo = repo
        self.remote_name = config.remote_name
        self.auth = config.auth
        self.backend = config.backend if config.backend is not None else DulwichBackend()
        try:
            urls = self.backend.remote_urls(repo, self.remote_name)
        except KeyError as exc:
            raise ConfigurationError(
                f"remote {self.remote_name!r} not found"
            ) from exc
        if not urls:
            raise ConfigurationError(f"remote {self.remote_name!r} has no URLs")
        self.remote_url = urls[0]
        if config.detector is None:
            self.detector = CapabilityDetector(self.backend)
        else:
            self.detector = config.detector
        if config.strategies is None:
            self.strategies = default_strategies(
                self.auth, self.backend, self.remote_name
            )
        else:
            self.strategies = build_registry(config.strategies)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.repo!r}, remote_name={self.remote_name!r})"

    def fetch(self, ctx: Context | None, request: FetchRequest) -> None:
        """Fetch request.commit and check it out.

        Args:
          ctx: Cancellation context; None means never cancelled
          request: What to fetch
        Raises:
          CancellationError: if ctx was cancelled
          TransportError: if capability detection failed
          StrategyNotFoundError: if no strategy is registered for the
            chosen strategy type
          FetchError: if fetching failed
          CheckoutError: if checking out failed
          CommitNotFoundError: if deepening did not find the commit
          StrategyError: if a strategy failed in another way
        """
        if ctx is None:
            ctx = background()
        ctx.check()
        try:
            caps = self.detector.detect(self.remote_url, self.auth, ctx)
        except FetcherError:
            raise
        except Exception as exc:
            raise TransportError(
                f"detecting capabilities of remote {self.remote_name!r}: {exc}"
            ) from exc

        strategy_type = self.detector.choose_strategy(caps)
        try:
            strategy = self.strategies[strategy_type]
        except KeyError:
            raise StrategyNotFoundError(strategy_type) from None

        logger.info(
            "fetching %s from %s (%s) using %s",
            request.commit,
            self.remote_name,
            self.remote_url,
            strategy_type,
        )
        try:
            strategy.execute(ctx, self.repo, request)
        except FetcherError as exc:
            exc.strategy = strategy_type
            raise
        except Exception as exc:
            raise StrategyError(strategy_type, exc) from exc
        logger.info("checked out %s", request.commit)
