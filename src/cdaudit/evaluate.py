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

r"""Apply score and license policy to dependency records.

:func:`evaluate` is pure over the collection: it returns new
:class:`~cdaudit.dependency.Dependency` records and never mutates its
input.  Each dependency is judged independently.

License outcome resolution (first match wins)::

    ┌───┬───────────────────────────────────┬──────────────────────────┐
    │ # │ Condition                         │ passed_license           │
    ├───┼───────────────────────────────────┼──────────────────────────┤
    │ 1 │ name is ignore-listed             │ IGNORE (score IGNORE too)│
    │ 2 │ no license check registered       │ FAIL (even approve-all)  │
    │ 3 │ approve-all                       │ PASS                     │
    │ 4 │ otherwise                         │ PASS iff test_license    │
    │   │                                   │ returns no errors        │
    └───┴───────────────────────────────────┴──────────────────────────┘

Usage::

    from cdaudit.evaluate import build_checks, evaluate, summarize

    checks = build_checks(policy, catalog)
    deps = evaluate(deps, policy, checks, catalog=catalog)
    summary = summarize(deps)
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, replace

import structlog

from cdaudit._types import Outcome
from cdaudit.checks._license_catalog import LicenseCatalog
from cdaudit.checks._license_policy import ApprovedLicenses, LicenseCheck, OsiApproved
from cdaudit.config import Policy
from cdaudit.dependency import Dependency
from cdaudit.logging import get_logger

__all__ = [
    'EvaluationSummary',
    'build_checks',
    'evaluate',
    'failed_only',
    'sort_dependencies',
    'summarize',
]


def build_checks(policy: Policy, catalog: LicenseCatalog | None = None) -> list[LicenseCheck]:
    """Return the license checks registered by *policy*, OSI first."""
    checks: list[LicenseCheck] = []
    if policy.approve_osi:
        checks.append(OsiApproved(catalog or LicenseCatalog.default()))
    if policy.approved_licenses:
        checks.append(ApprovedLicenses(policy.approved_licenses))
    return checks


def evaluate(
    dependencies: Iterable[Dependency],
    policy: Policy,
    checks: Sequence[LicenseCheck] | None = None,
    *,
    catalog: LicenseCatalog | None = None,
    log: structlog.stdlib.BoundLogger | None = None,
) -> list[Dependency]:
    """Compute score and license outcomes for every dependency.

    Args:
        dependencies: Records to judge.
        policy: Score threshold, ignore list and license policy.
        checks: License checks; defaults to :func:`build_checks`.
        catalog: Identifier oracle for parsing declared licenses.
        log: Logger for per-dependency diagnostics.

    Returns:
        Updated records in input order.
    """
    log = log or get_logger('cdaudit.evaluate')
    if checks is None:
        checks = build_checks(policy, catalog)
    return [_evaluate_one(dep, policy, checks, catalog, log) for dep in dependencies]


def _evaluate_one(
    dep: Dependency,
    policy: Policy,
    checks: Sequence[LicenseCheck],
    catalog: LicenseCatalog | None,
    log: structlog.stdlib.BoundLogger,
) -> Dependency:
    if dep.name in policy.ignore:
        log.debug('dependency_ignored', name=dep.name, version=str(dep.version))
        return replace(dep, passed_score=Outcome.IGNORE, passed_license=Outcome.IGNORE)

    score = dep.score(policy.score_kind)
    passed_score = Outcome.from_bool(score >= policy.required_score)

    errors: list[Exception] = []
    if not checks:
        passed_license = Outcome.FAIL
    elif policy.approve_all:
        passed_license = Outcome.PASS
    else:
        errors = dep.test_license(policy.lax, checks, catalog)
        passed_license = Outcome.from_bool(not errors)

    log.debug(
        'dependency_evaluated',
        name=dep.name,
        version=str(dep.version),
        score=score,
        passed_score=passed_score.value,
        passed_license=passed_license.value,
        errors=[str(e).partition('\n')[0] for e in errors],
    )
    return replace(dep, passed_score=passed_score, passed_license=passed_license)


@dataclass(frozen=True)
class EvaluationSummary:
    """Aggregate pass/fail counts.

    Attributes:
        total: Number of dependencies evaluated.
        failed: Number with an overall failure.
    """

    total: int
    failed: int

    @property
    def passed(self) -> bool:
        """Return ``True`` if no dependency failed."""
        return self.failed == 0


def summarize(dependencies: Sequence[Dependency]) -> EvaluationSummary:
    """Count overall failures in *dependencies*."""
    failed = sum(1 for dep in dependencies if not dep.passed())
    return EvaluationSummary(total=len(dependencies), failed=failed)


def sort_dependencies(dependencies: Iterable[Dependency]) -> list[Dependency]:
    """Return *dependencies* ordered by name, then version."""
    return sorted(dependencies)


def failed_only(dependencies: Iterable[Dependency]) -> list[Dependency]:
    """Return the dependencies that failed at least one check."""
    return [dep for dep in dependencies if not dep.passed()]
