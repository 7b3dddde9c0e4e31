# errors.py -- errors for subfetch
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

"""subfetch-related exception classes."""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .capability import StrategyType


class FetcherError(Exception):
    """Base class for all errors raised while fetching a commit.

    Attributes:
      strategy: The strategy that was running when the error was raised, or
        None if the error happened before a strategy was chosen.
    """

    strategy: "StrategyType | None" = None

    def __str__(self) -> str:
        message = super().__str__()
        if self.strategy is None:
            return message
        return f"strategy {self.strategy}: {message}"


class ConfigurationError(FetcherError):
    """The fetcher was set up incorrectly."""


class StrategyNotFoundError(ConfigurationError):
    """No strategy is registered for the chosen strategy type."""

    def __init__(self, strategy_type: "StrategyType") -> None:
        """Initialize a StrategyNotFoundError.

        Args:
            strategy_type: The strategy type that has no registered strategy.
        """
        self.strategy_type = strategy_type
        super().__init__(f"no strategy registered for {strategy_type}")


class TransportError(FetcherError):
    """Talking to the remote failed while detecting its capabilities."""


class FetchError(FetcherError):
    """Fetching objects from the remote failed."""


class CheckoutError(FetcherError):
    """Checking out the fetched commit failed."""


class CommitNotFoundError(FetcherError):
    """The commit did not show up within the maximum deepen depth."""

    def __init__(self, commit_id: bytes, max_depth: int) -> None:
        """Initialize a CommitNotFoundError.

        Args:
            commit_id: Hex SHA of the commit that was searched for.
            max_depth: The last depth that was tried.
        """
        self.commit_id = commit_id
        self.max_depth = max_depth
        super().__init__(
            f"commit {commit_id.decode('ascii')} not found after "
            f"deepening to {max_depth}"
        )


class CancellationError(FetcherError):
    """The operation was cancelled or ran past its deadline."""


class StrategyError(FetcherError):
    """A strategy failed with an error that is not a FetcherError."""

    def __init__(self, strategy: "StrategyType", cause: BaseException) -> None:
        """Initialize a StrategyError.

        Args:
            strategy: The strategy that failed.
            cause: The original exception.
        """
        self.strategy = strategy
        self.cause = cause
        super().__init__(f"unexpected error: {cause}")


class AlreadyUpToDate(Exception):
    """Raised by a backend when a fetch had nothing new to transfer.

    This is not a failure; callers decide whether it matters.
    """
