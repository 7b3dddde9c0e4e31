# capability.py -- Server capability detection and strategy choice
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

"""Server capability detection and strategy choice.

The server's capability advertisement tells us whether it lets clients ask
for arbitrary commits (``allow-reachable-sha1-in-want``) and whether it can
send truncated history (``shallow``). Those two facts pick one of four fetch
strategies.
"""

import enum
from collections.abc import Iterable
from dataclasses import dataclass

from .backend import TRANSPORT_ERRORS, AuthMethod, Backend, DulwichBackend
from .context import Context
from .errors import TransportError
from .log_utils import getLogger

logger = getLogger(__name__)

CAPABILITY_ALLOW_REACHABLE_SHA1_IN_WANT = b"allow-reachable-sha1-in-want"
CAPABILITY_ALLOW_TIP_SHA1_IN_WANT = b"allow-tip-sha1-in-want"
CAPABILITY_SHALLOW = b"shallow"
CAPABILITY_FETCH = b"fetch"


class StrategyType(enum.IntEnum):
    """The fetch strategies, from cheapest to most expensive."""

    SHALLOW_SHA = 0
    FULL_SHA = 1
    INCREMENTAL_DEEPEN = 2
    FULL_CLONE = 3

    def __str__(self) -> str:
        return _STRATEGY_NAMES[self]


_STRATEGY_NAMES = {
    StrategyType.SHALLOW_SHA: "ShallowSHA",
    StrategyType.FULL_SHA: "FullSHA",
    StrategyType.INCREMENTAL_DEEPEN: "IncrementalDeepen",
    StrategyType.FULL_CLONE: "FullClone",
}


@dataclass(frozen=True)
class Capabilities:
    """Fetch related capabilities advertised by a git server."""

    allow_reachable_sha1_in_want: bool = False
    allow_tip_sha1_in_want: bool = False
    shallow: bool = False

    def can_fetch_by_sha(self) -> bool:
        return self.allow_reachable_sha1_in_want

    def can_fetch_shallow(self) -> bool:
        return self.shallow

    @classmethod
    def from_capability_list(cls, capabilities: Iterable[bytes]) -> "Capabilities":
        """Build a Capabilities from an advertised capability list.

        Both protocol v0/v1 flags and protocol v2 ``fetch=<features>``
        entries are understood.

        Args:
          capabilities: Capability strings as sent by the server
        Returns: A Capabilities instance
        """
        names = set()
        for capability in capabilities:
            name, _, value = capability.strip().partition(b"=")
            names.add(name)
            if name == CAPABILITY_FETCH:
                names.update(value.split())
        return cls(
            allow_reachable_sha1_in_want=CAPABILITY_ALLOW_REACHABLE_SHA1_IN_WANT in names,
            allow_tip_sha1_in_want=CAPABILITY_ALLOW_TIP_SHA1_IN_WANT in names,
            shallow=CAPABILITY_SHALLOW in names,
        )


def choose_strategy(caps: Capabilities | None) -> StrategyType:
    """Pick the cheapest strategy the capabilities allow.

    allow-tip-sha1-in-want does not influence the choice.

    Args:
      caps: Detected capabilities; None means no capabilities at all
    Returns: The strategy to use
    """
    if caps is None:
        caps = Capabilities()
    if caps.can_fetch_by_sha() and caps.can_fetch_shallow():
        return StrategyType.SHALLOW_SHA
    if caps.can_fetch_by_sha():
        return StrategyType.FULL_SHA
    if caps.can_fetch_shallow():
        return StrategyType.INCREMENTAL_DEEPEN
    return StrategyType.FULL_CLONE


def _transport_error(
    ctx: Context | None, message: str, exc: BaseException
) -> TransportError:
    # A connection torn down by cancellation reads as a transport failure.
    if ctx is not None:
        ctx.check(exc)
    return TransportError(message)


class CapabilityDetector:
    """Asks a git server which fetch capabilities it supports."""

    def __init__(self, backend: Backend | None = None) -> None:
        if backend is None:
            backend = DulwichBackend()
        self.backend = backend

    def detect(
        self,
        url: str,
        auth: AuthMethod | None = None,
        ctx: Context | None = None,
    ) -> Capabilities:
        """Retrieve the capabilities advertised by the server at url.

        This performs a single round trip and does not fetch any objects.

        Args:
          url: Remote URL
          auth: Authentication passed through to the backend
          ctx: Optional cancellation context
        Returns: The detected Capabilities
        Raises:
          TransportError: if the endpoint can not be resolved, the session
            can not be opened or the advertisement can not be read
          CancellationError: if ctx was cancelled
        """
        if ctx is not None:
            ctx.check()
        try:
            endpoint = self.backend.resolve_endpoint(url, auth, ctx)
        except TRANSPORT_ERRORS as exc:
            raise _transport_error(ctx, f"endpoint {url}: {exc}", exc) from exc
        try:
            try:
                session = self.backend.open_fetch_session(endpoint, auth)
            except TRANSPORT_ERRORS as exc:
                raise _transport_error(ctx, f"session {url}: {exc}", exc) from exc
            with session:
                try:
                    advertised = session.advertised_capabilities()
                except TRANSPORT_ERRORS as exc:
                    raise _transport_error(
                        ctx, f"advertised refs {url}: {exc}", exc
                    ) from exc
        finally:
            endpoint.release()
        caps = Capabilities.from_capability_list(advertised)
        logger.debug("capabilities of %s: %r", url, caps)
        return caps

    def choose_strategy(self, caps: Capabilities | None) -> StrategyType:
        return choose_strategy(caps)
