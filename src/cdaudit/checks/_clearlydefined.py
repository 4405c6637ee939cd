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

"""Provenance lookup from the ClearlyDefined definitions API.

One ``GET`` per dependency::

    https://api.clearlydefined.io/definitions/crate/cratesio/-/{name}/{version}

Fields read from the definition::

    licensed.declared       → ProvenanceRecord.declared_license
    scores.effective        → ProvenanceRecord.effective_score
    licensed.score.total    → ProvenanceRecord.licensed_score

All lookups share one client and run concurrently under an
:class:`asyncio.Semaphore`.  Results are paired with their dependency
by object, so completion order does not matter.

Failure handling:

- Default: the first :class:`~cdaudit.errors.FetchError` cancels the
  remaining lookups and propagates.
- ``keep_going=True``: the failure is logged and the dependency keeps
  ``provenance=None`` (evaluated as missing license information).
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from dataclasses import replace
from typing import Any, Final

import httpx
import structlog

from cdaudit.dependency import Dependency, License, ProvenanceRecord
from cdaudit.errors import FetchError
from cdaudit.logging import get_logger
from cdaudit.net import DEFAULT_TIMEOUT, MAX_RETRIES, http_client, request_with_retry

log = get_logger('cdaudit.checks.clearlydefined')

__all__ = [
    'API_BASE_URL',
    'DEFAULT_CONCURRENCY',
    'definition_url',
    'fetch_all',
    'fetch_provenance',
    'parse_definition',
]

#: ClearlyDefined REST API root.
API_BASE_URL: Final[str] = 'https://api.clearlydefined.io'

#: Default maximum concurrent definition requests.
DEFAULT_CONCURRENCY: Final[int] = 8

# ClearlyDefined's placeholder when no license was found.
_NO_ASSERTION: Final[frozenset[str]] = frozenset({'', 'NOASSERTION', 'NONE'})


def definition_url(name: str, version: str, base_url: str = API_BASE_URL) -> str:
    """Return the definitions API URL for a crates.io crate."""
    return f'{base_url}/definitions/crate/cratesio/-/{name}/{version}'


def _as_int(value: object) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
        return 0
    return int(value)


def parse_definition(data: Any) -> ProvenanceRecord | None:  # noqa: ANN401
    """Extract a :class:`ProvenanceRecord` from a definition body.

    Args:
        data: Decoded JSON body.

    Returns:
        The record, or ``None`` if the body has neither a ``licensed``
        nor a ``scores`` section.
    """
    if not isinstance(data, dict):
        return None
    licensed = data.get('licensed')
    scores = data.get('scores')
    if not isinstance(licensed, dict) and not isinstance(scores, dict):
        return None
    licensed = licensed if isinstance(licensed, dict) else {}
    scores = scores if isinstance(scores, dict) else {}

    declared = licensed.get('declared')
    license_ = License(declared) if isinstance(declared, str) and declared.strip() not in _NO_ASSERTION else None

    licensed_score = licensed.get('score')
    total = licensed_score.get('total') if isinstance(licensed_score, dict) else None

    return ProvenanceRecord(
        declared_license=license_,
        effective_score=_as_int(scores.get('effective')),
        licensed_score=_as_int(total),
    )


async def fetch_provenance(
    client: httpx.AsyncClient,
    dep: Dependency,
    *,
    base_url: str = API_BASE_URL,
    max_retries: int = MAX_RETRIES,
) -> Dependency:
    """Fetch the definition for *dep* and attach its provenance.

    Raises:
        FetchError: On a network error, a non-200 status, or a body
            that is not JSON.
    """
    url = definition_url(dep.name, str(dep.version), base_url)
    try:
        resp = await request_with_retry(client, 'GET', url, max_retries=max_retries)
    except httpx.HTTPError as exc:
        raise FetchError(
            f'Failed to fetch provenance for {dep.name} {dep.version}: {exc}',
            hint='Check network access, or pass --keep-going to continue without it.',
        ) from exc
    if resp.status_code != 200:
        raise FetchError(
            f'ClearlyDefined returned HTTP {resp.status_code} for {dep.name} {dep.version}',
            hint='Pass --keep-going to treat failed lookups as missing provenance.',
        )
    try:
        data = resp.json()
    except ValueError as exc:
        raise FetchError(f'Invalid JSON from ClearlyDefined for {dep.name} {dep.version}') from exc
    return replace(dep, provenance=parse_definition(data))


async def fetch_all(
    dependencies: Sequence[Dependency],
    *,
    concurrency: int = DEFAULT_CONCURRENCY,
    keep_going: bool = False,
    client: httpx.AsyncClient | None = None,
    base_url: str = API_BASE_URL,
    max_retries: int = MAX_RETRIES,
    timeout: float = DEFAULT_TIMEOUT,
    log: structlog.stdlib.BoundLogger = log,
) -> list[Dependency]:
    """Fetch provenance for every dependency concurrently.

    Args:
        dependencies: Records to enrich.
        concurrency: Maximum simultaneous requests.
        keep_going: Record failures as missing provenance instead of
            aborting.
        client: Shared client; one is created when ``None``.
        base_url: API root, overridable for tests.
        max_retries: Retries per request.
        timeout: Per-request timeout when a client is created here.
        log: Logger for progress and failures.

    Returns:
        Enriched records in input order.

    Raises:
        FetchError: On the first failure unless *keep_going*.
    """
    sem = asyncio.Semaphore(concurrency)

    async def _do_one(c: httpx.AsyncClient, dep: Dependency) -> Dependency:
        async with sem:
            try:
                result = await fetch_provenance(c, dep, base_url=base_url, max_retries=max_retries)
            except FetchError as exc:
                if not keep_going:
                    raise
                log.warning('fetch_failed', name=dep.name, version=str(dep.version), error=exc.message)
                return dep
        log.info('dependency_fetched', name=dep.name, version=str(dep.version))
        return result

    async def _run(c: httpx.AsyncClient) -> list[Dependency]:
        tasks = [asyncio.ensure_future(_do_one(c, dep)) for dep in dependencies]
        try:
            return list(await asyncio.gather(*tasks))
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

    if client is not None:
        results = await _run(client)
    else:
        async with http_client(pool_size=concurrency, timeout=timeout) as c:
            results = await _run(c)
    log.info('fetched_all', count=len(results))
    return results
