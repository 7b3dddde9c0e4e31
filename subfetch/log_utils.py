# log_utils.py -- Logging utilities for subfetch
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


"""Logging utilities for subfetch.

subfetch is used as a library, and library users may not want to see any
logging output. The ``subfetch`` logger therefore gets a no-op handler at
import time. Applications that want output call default_logging_config(),
which hands over to dulwich's configuration so GIT_TRACE works for both.
"""

import logging

from dulwich import log_utils as dulwich_log_utils

getLogger = logging.getLogger

_NULL_HANDLER = logging.NullHandler()
_SUBFETCH_LOGGER = getLogger("subfetch")
_SUBFETCH_LOGGER.addHandler(_NULL_HANDLER)


def default_logging_config(verbose: bool = False) -> None:
    """Set up the default subfetch and dulwich loggers.

    Args:
      verbose: Whether to log subfetch debug messages
    """
    remove_null_handler()
    dulwich_log_utils.default_logging_config()
    if verbose:
        _SUBFETCH_LOGGER.setLevel(logging.DEBUG)


def remove_null_handler() -> None:
    """Remove the null handler from the subfetch logger."""
    _SUBFETCH_LOGGER.removeHandler(_NULL_HANDLER)
