# context.py -- Cancellation contexts
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

"""Cancellation contexts.

A Context is handed to every operation that may touch the network. It can be
cancelled from another thread, and it may carry a deadline. Long running
operations call Context.check() at their suspension points. Code that blocks
in a read registers a callback with Context.on_done() that tears the
transport down, so the read returns as soon as the context is done.
"""

import threading
import time
from collections.abc import Callable

from .errors import CancellationError


class Context:
    """Cancellation signal with an optional deadline.

    Args:
      timeout: Seconds from now after which the context counts as expired,
        or None for no deadline.
    """

    def __init__(self, timeout: float | None = None) -> None:
        self._cancelled = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: list[Callable[[], None]] = []
        self._timer: threading.Timer | None = None
        if timeout is None:
            self.deadline = None
        else:
            self.deadline = time.monotonic() + timeout

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(deadline={self.deadline!r}, cancelled={self.cancelled!r})"

    def cancel(self) -> None:
        """Cancel the context. Safe to call from any thread."""
        self._cancelled.set()
        self._fire()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set() or self.expired

    @property
    def expired(self) -> bool:
        return self.deadline is not None and time.monotonic() >= self.deadline

    def remaining(self) -> float | None:
        """Seconds left until the deadline, or None without a deadline."""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def check(self, cause: BaseException | None = None) -> None:
        """Raise CancellationError if the context is done.

        Args:
          cause: Exception to chain to the CancellationError, typically the
            transport failure caused by aborting a blocked read
        Raises:
          CancellationError: if the context was cancelled or its deadline
            has passed
        """
        if self._cancelled.is_set():
            raise CancellationError("operation cancelled") from cause
        if self.expired:
            raise CancellationError("deadline exceeded") from cause

    def on_done(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Run callback once, when the context is cancelled or expires.

        If the context is already done, callback runs immediately.

        Args:
          callback: Function taking no arguments; it may run on another thread
        Returns: A function that unregisters callback
        """
        with self._lock:
            done = self.cancelled
            if not done:
                self._callbacks.append(callback)
                if self.deadline is not None and self._timer is None:
                    self._timer = threading.Timer(self.remaining(), self._fire)
                    self._timer.daemon = True
                    self._timer.start()
        if done:
            callback()
            return _noop

        def remove() -> None:
            with self._lock:
                if callback in self._callbacks:
                    self._callbacks.remove(callback)
                if not self._callbacks and self._timer is not None:
                    self._timer.cancel()
                    self._timer = None

        return remove

    def _fire(self) -> None:
        with self._lock:
            callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback()


def _noop() -> None:
    pass


def background() -> Context:
    """Return a context that is never cancelled unless asked to."""
    return Context()
