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

"""Shared async HTTP client and retry helper.

All network access goes through :func:`http_client` and
:func:`request_with_retry` so timeouts, pool limits and retry policy
live in one place.

Retry policy::

    transport error, 429, 5xx  → retry up to ``max_retries`` times
    delay                      = base × 2^attempt + uniform(0, RETRY_JITTER_MAX)
    anything else              → returned to the caller as-is

Usage::

    from cdaudit.net import http_client, request_with_retry

    async with http_client() as client:
        resp = await request_with_retry(client, 'GET', url)
"""

from __future__ import annotations

import asyncio
import random
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Final

import httpx

from cdaudit import __version__
from cdaudit.logging import get_logger

log = get_logger('cdaudit.net')

__all__ = [
    'DEFAULT_POOL_SIZE',
    'DEFAULT_TIMEOUT',
    'MAX_RETRIES',
    'RETRY_BASE_DELAY',
    'RETRY_JITTER_MAX',
    'http_client',
    'request_with_retry',
]

#: Maximum simultaneous connections per client.
DEFAULT_POOL_SIZE: Final[int] = 10

#: Per-request timeout in seconds.
DEFAULT_TIMEOUT: Final[float] = 30.0

#: Retries after the first attempt.
MAX_RETRIES: Final[int] = 3

#: First backoff delay in seconds.
RETRY_BASE_DELAY: Final[float] = 1.0

#: Upper bound of the random jitter added to each delay, in seconds.
RETRY_JITTER_MAX: Final[float] = 0.5

_RETRY_STATUS: Final[frozenset[int]] = frozenset({429, 500, 502, 503, 504})


@asynccontextmanager
async def http_client(
    *,
    pool_size: int = DEFAULT_POOL_SIZE,
    timeout: float = DEFAULT_TIMEOUT,
    transport: httpx.AsyncBaseTransport | None = None,
) -> AsyncIterator[httpx.AsyncClient]:
    """Yield a configured :class:`httpx.AsyncClient`.

    Args:
        pool_size: Maximum open connections.
        timeout: Per-request timeout in seconds.
        transport: Optional transport, e.g. :class:`httpx.MockTransport`
            in tests.
    """
    limits = httpx.Limits(max_connections=pool_size, max_keepalive_connections=pool_size)
    async with httpx.AsyncClient(
        limits=limits,
        timeout=httpx.Timeout(timeout),
        transport=transport,
        follow_redirects=True,
        headers={'User-Agent': f'cdaudit/{__version__}', 'Accept': 'application/json'},
    ) as client:
        yield client


async def request_with_retry(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    max_retries: int = MAX_RETRIES,
    base_delay: float = RETRY_BASE_DELAY,
) -> httpx.Response:
    """Send a request, retrying transient failures.

    Args:
        client: The client to send with.
        method: HTTP method.
        url: Absolute URL.
        max_retries: Retries after the first attempt.
        base_delay: First backoff delay in seconds.

    Returns:
        The final response.  A retryable status is returned once
        retries are exhausted.

    Raises:
        httpx.TransportError: If the last attempt failed to connect or
            timed out.
    """
    attempt = 0
    while True:
        try:
            response = await client.request(method, url)
        except httpx.TransportError as exc:
            if attempt >= max_retries:
                raise
            log.debug('http_retry', url=url, attempt=attempt + 1, error=str(exc))
        else:
            if response.status_code not in _RETRY_STATUS or attempt >= max_retries:
                return response
            log.debug('http_retry', url=url, attempt=attempt + 1, status=response.status_code)
        delay = base_delay * (2**attempt) + random.uniform(0, RETRY_JITTER_MAX)  # noqa: S311
        await asyncio.sleep(delay)
        attempt += 1
