# refspec.py -- Ref-spec parsing
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

"""Ref-specs describe which remote references to fetch and where to store them.

A ref-spec has the form ``[+]<src>:<dst>``. Either side may contain a single
``*`` which matches any (possibly empty) sequence of characters. The source
may also be a full hex object id, in which case that object is requested
directly from the server.
"""

import re

HEXSHA_RE = re.compile(rb"^(?:[0-9a-f]{40}|[0-9a-f]{64})$")


def is_hexsha(value: bytes) -> bool:
    """Check whether value is a full hex object id (SHA-1 or SHA-256)."""
    return HEXSHA_RE.match(value) is not None


class RefSpec:
    """A single fetch ref-spec.

    Attributes:
      src: Remote side (reference name, pattern or object id)
      dst: Local reference name or pattern
      force: Whether non fast-forward updates are allowed
    """

    __slots__ = ("src", "dst", "force")

    def __init__(self, src: bytes, dst: bytes, force: bool = False) -> None:
        if not src or not dst:
            raise ValueError("ref-spec needs both a source and a destination")
        if src.count(b"*") > 1 or dst.count(b"*") > 1:
            raise ValueError(f"too many wildcards in ref-spec {src!r}:{dst!r}")
        if (b"*" in src) != (b"*" in dst):
            raise ValueError(
                f"wildcard must appear on both sides of ref-spec {src!r}:{dst!r}"
            )
        self.src = src
        self.dst = dst
        self.force = force

    @classmethod
    def parse(cls, spec: str | bytes) -> "RefSpec":
        """Parse a ref-spec string.

        Args:
          spec: Ref-spec, e.g. ``+refs/heads/*:refs/remotes/origin/*``
        Returns: A RefSpec
        Raises:
          ValueError: if spec is malformed
        """
        if isinstance(spec, str):
            spec = spec.encode("utf-8")
        force = spec.startswith(b"+")
        if force:
            spec = spec[1:]
        if spec.count(b":") != 1:
            raise ValueError(f"invalid ref-spec {spec!r}")
        src, dst = spec.split(b":")
        return cls(src, dst, force=force)

    def __bytes__(self) -> bytes:
        return (b"+" if self.force else b"") + self.src + b":" + self.dst

    def __str__(self) -> str:
        return bytes(self).decode("utf-8", "replace")

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}.parse({bytes(self)!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RefSpec):
            return NotImplemented
        return (self.src, self.dst, self.force) == (other.src, other.dst, other.force)

    def __hash__(self) -> int:
        return hash((self.src, self.dst, self.force))

    def is_wildcard(self) -> bool:
        return b"*" in self.src

    def is_exact_sha(self) -> bool:
        """Whether the source names an object id rather than a reference."""
        return is_hexsha(self.src)

    def matches(self, ref: bytes) -> bool:
        """Check whether a remote reference name is selected by this spec."""
        if not self.is_wildcard():
            return ref == self.src
        prefix, suffix = self.src.split(b"*")
        return (
            len(ref) >= len(prefix) + len(suffix)
            and ref.startswith(prefix)
            and ref.endswith(suffix)
        )

    def translate(self, ref: bytes) -> bytes:
        """Map a matching remote reference name to its local name.

        Raises:
          ValueError: if ref is not matched by this spec
        """
        if not self.matches(ref):
            raise ValueError(f"{ref!r} does not match ref-spec {bytes(self)!r}")
        if not self.is_wildcard():
            return self.dst
        prefix, suffix = self.src.split(b"*")
        middle = ref[len(prefix) : len(ref) - len(suffix)]
        return self.dst.replace(b"*", middle)


def branches_refspec(remote_name: str) -> RefSpec:
    """Return the ref-spec that maps all remote branches to tracking refs."""
    return RefSpec(
        b"refs/heads/*",
        b"refs/remotes/" + remote_name.encode("utf-8") + b"/*",
        force=True,
    )
