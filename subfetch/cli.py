# cli.py -- Command-line interface
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

"""Simple command-line interface to subfetch.

  subfetch fetch [options] REPO COMMIT
  subfetch detect [options] URL
"""

import argparse
import signal
import sys
import types
from collections.abc import Sequence

from dulwich.errors import NotGitRepository
from dulwich.repo import Repo

from .backend import AuthMethod
from .capability import CapabilityDetector
from .context import Context
from .errors import FetcherError
from .fetcher import Fetcher, FetcherConfig
from .log_utils import default_logging_config
from .strategy import FetchRequest


def signal_int(signal: int, frame: types.FrameType | None) -> None:
    """Handle interrupt signal by exiting.

    Args:
        signal: Signal number
        frame: Current stack frame
    """
    sys.exit(1)


def _add_auth_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--username", help="Username for authentication")
    parser.add_argument("--password", help="Password for authentication")
    parser.add_argument("--key-file", help="SSH private key file")
    parser.add_argument("--ssh-command", help="SSH command to use")
    parser.add_argument(
        "--timeout", type=float, help="Give up after this many seconds"
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Log debug messages"
    )


def _auth_from_args(args: argparse.Namespace) -> AuthMethod | None:
    auth = AuthMethod(
        username=args.username,
        password=args.password,
        key_filename=args.key_file,
        ssh_command=args.ssh_command,
    )
    if auth == AuthMethod():
        return None
    return auth


class Command:
    """A subfetch subcommand."""

    def run(self, args: Sequence[str]) -> int | None:
        """Run the command."""
        raise NotImplementedError(self.run)


class cmd_fetch(Command):
    """Fetch a commit into a repository and check it out."""

    def run(self, args: Sequence[str]) -> int | None:
        parser = argparse.ArgumentParser(prog="subfetch fetch")
        parser.add_argument(
            "--remote", default="origin", help="Remote to fetch from"
        )
        _add_auth_arguments(parser)
        parser.add_argument("repo", help="Path to the repository")
        parser.add_argument("commit", help="Full hex SHA of the commit")
        parsed_args = parser.parse_args(args)
        default_logging_config(parsed_args.verbose)

        try:
            request = FetchRequest(parsed_args.commit)
        except ValueError as e:
            print(f"error: {e}", file=sys.stderr)
            return 1
        try:
            repo = Repo(parsed_args.repo)
        except NotGitRepository as e:
            print(f"error: {e}", file=sys.stderr)
            return 1
        with repo:
            config = FetcherConfig(
                remote_name=parsed_args.remote, auth=_auth_from_args(parsed_args)
            )
            try:
                fetcher = Fetcher(repo, config)
                fetcher.fetch(Context(timeout=parsed_args.timeout), request)
            except FetcherError as e:
                print(f"error: {e}", file=sys.stderr)
                return 1
        return 0


class cmd_detect(Command):
    """Show the fetch capabilities of a remote and the chosen strategy."""

    def run(self, args: Sequence[str]) -> int | None:
        parser = argparse.ArgumentParser(prog="subfetch detect")
        _add_auth_arguments(parser)
        parser.add_argument("url", help="Remote URL")
        parsed_args = parser.parse_args(args)
        default_logging_config(parsed_args.verbose)

        detector = CapabilityDetector()
        try:
            caps = detector.detect(
                parsed_args.url,
                _auth_from_args(parsed_args),
                Context(timeout=parsed_args.timeout),
            )
        except FetcherError as e:
            print(f"error: {e}", file=sys.stderr)
            return 1
        print(f"allow-reachable-sha1-in-want: {caps.allow_reachable_sha1_in_want}")
        print(f"allow-tip-sha1-in-want: {caps.allow_tip_sha1_in_want}")
        print(f"shallow: {caps.shallow}")
        print(f"strategy: {detector.choose_strategy(caps)}")
        return 0


commands = {
    "detect": cmd_detect,
    "fetch": cmd_fetch,
}


def main(argv: Sequence[str] | None = None) -> int | None:
    """Main entry point for the subfetch CLI.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code or None
    """
    if argv is None:
        argv = sys.argv[1:]

    if not argv or argv[0] in ("-h", "--help"):
        print(f"usage: subfetch <{'|'.join(sorted(commands))}> [OPTIONS...]")
        return 1

    cmd = argv[0]
    try:
        cmd_kls = commands[cmd]
    except KeyError:
        print(f"No such subcommand: {cmd}", file=sys.stderr)
        return 1
    return cmd_kls().run(argv[1:])


def _main() -> None:
    signal.signal(signal.SIGINT, signal_int)
    sys.exit(main())


if __name__ == "__main__":
    _main()
