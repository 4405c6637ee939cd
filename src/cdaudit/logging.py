# Copyright 2026 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
#
# SPDX-License-Identifier: Apache-2.0

"""Structured logging for cdaudit.

Configures `structlog <https://www.structlog.org/>`_ with two output modes:

- **Console** (default): human-readable output, colored when stderr
  is a TTY.
- **JSON** (``--json-log``): Machine-readable, one JSON object per line.

Both modes write to stderr so stdout remains clean for the report
(e.g., ``cdaudit -o csv > report.csv``).  Records from the HTTP stack
(``httpx``, ``httpcore``) go through the same renderer.

Verbosity follows the repeated ``-v`` flag::

    ┌─────────┬─────────┬──────────────────────┐
    │ Flags   │ cdaudit │ httpx / httpcore     │
    ├─────────┼─────────┼──────────────────────┤
    │ -q      │ ERROR   │ ERROR                │
    │ (none)  │ WARNING │ WARNING              │
    │ -v      │ INFO    │ WARNING              │
    │ -vv     │ DEBUG   │ DEBUG (every request)│
    └─────────┴─────────┴──────────────────────┘

String values longer than :data:`MAX_VALUE_CHARS` are shortened, so a
pathological declared license does not flood the terminal.

Usage::

    from cdaudit.logging import configure_logging, get_logger

    configure_logging(verbosity=1)
    log = get_logger()
    log.info('loaded_dependencies', count=42)
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog

__all__ = [
    'MAX_VALUE_CHARS',
    'configure_logging',
    'get_logger',
    'level_for',
    'shorten_long_values',
]

#: Longest string value rendered in full.
MAX_VALUE_CHARS = 200

# Third-party loggers that log every request at INFO or DEBUG.
_HTTP_LOGGERS = ('httpx', 'httpcore')


def level_for(verbosity: int, *, quiet: bool = False) -> int:
    """Return the stdlib log level for a ``-v`` count.

    Args:
        verbosity: Number of ``-v`` flags given.
        quiet: ``-q`` was given; only errors are shown.

    Returns:
        A :mod:`logging` level constant.
    """
    if quiet:
        return logging.ERROR
    if verbosity <= 0:
        return logging.WARNING
    if verbosity == 1:
        return logging.INFO
    return logging.DEBUG


def _shorten(value: object) -> object:
    if isinstance(value, str) and len(value) > MAX_VALUE_CHARS:
        return f'{value[:MAX_VALUE_CHARS]}... ({len(value) - MAX_VALUE_CHARS} more chars)'
    if isinstance(value, list):
        return [_shorten(item) for item in value]
    return value


def shorten_long_values(
    logger: Any,  # noqa: ANN401
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Structlog processor: cut long string fields down to size.

    The event name is left alone.  Lists (such as per-dependency error
    messages) are shortened item by item.
    """
    return {k: v if k == 'event' else _shorten(v) for k, v in event_dict.items()}


def _renderer(json_log: bool) -> structlog.types.Processor:  # noqa: FBT001
    if json_log:
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())


def configure_logging(
    *,
    verbosity: int = 0,
    quiet: bool = False,
    json_log: bool = False,
) -> None:
    """Configure structlog for cdaudit.

    Should be called once at startup, before any logging calls.

    Args:
        verbosity: Number of ``-v`` flags (0 = warnings only).
        quiet: Only show errors.
        json_log: Use JSON output instead of console output.
    """
    level = level_for(verbosity, quiet=quiet)

    # structlog forwards events to the stdlib root logger.
    logging.basicConfig(
        format='%(message)s',
        stream=sys.stderr,
        level=level,
        force=True,
    )
    http_level = level if level <= logging.DEBUG else max(level, logging.WARNING)
    for name in _HTTP_LOGGERS:
        logging.getLogger(name).setLevel(http_level)

    shared_processors: list[structlog.types.Processor] = [  # type: ignore[assignment]
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt='iso'),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        shorten_long_values,
    ]

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # Plain stdlib records (httpx) get the same fields via foreign_pre_chain.
    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            _renderer(json_log),
        ],
    )
    for handler in logging.root.handlers:
        handler.setFormatter(formatter)


def get_logger(name: str = 'cdaudit') -> structlog.stdlib.BoundLogger:
    """Return a bound structlog logger.

    Args:
        name: Logger name, used for filtering and identification.

    Returns:
        A :class:`structlog.stdlib.BoundLogger` instance.
    """
    return structlog.get_logger(name)
