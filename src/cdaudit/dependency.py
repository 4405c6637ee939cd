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

"""Per-package dependency record: identity, provenance and outcomes.

A :class:`Dependency` is created once per lockfile entry, enriched once
with a :class:`ProvenanceRecord` by the fetch step, and evaluated once.
Records are frozen; each stage returns an updated copy via
:func:`dataclasses.replace`.

Ordering and equality use ``(name, version)`` only, so two records for
the same package compare equal whatever their fetch results::

    Dependency('a', Version.parse('1.0.0')) < Dependency('a', Version.parse('2.0.0'))
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

import semver

from cdaudit._types import Outcome, ScoreKind, combine_overall
from cdaudit.checks._license_catalog import LicenseCatalog
from cdaudit.checks._license_policy import LicenseCheck, check_license
from cdaudit.errors import LicenseCheckError, MissingLicenseError
from cdaudit.spdx_expr import Expression, ParseError, parse

__all__ = [
    'Dependency',
    'License',
    'ProvenanceRecord',
]


@dataclass(frozen=True)
class License:
    """A declared license string exactly as the provenance service sent it.

    Parsing is deferred to :meth:`expression` because the strictness
    mode is a caller choice.
    """

    raw: str

    def __str__(self) -> str:
        return self.raw

    def expression(self, *, lax: bool = False, catalog: LicenseCatalog | None = None) -> Expression:
        """Parse the raw string as an SPDX expression.

        Args:
            lax: Accept aliases, wrong-case IDs and ``/`` as ``OR``.
            catalog: Identifier oracle.  Defaults to the bundled catalog.

        Raises:
            ParseError: If the string is not a valid expression in the
                requested mode.
        """
        catalog = catalog or LicenseCatalog.default()
        return parse(self.raw, lax=lax, resolve=catalog.resolve)


@dataclass(frozen=True)
class ProvenanceRecord:
    """ClearlyDefined data for one package version.

    Attributes:
        declared_license: The declared license, or ``None`` if the
            service has none.
        effective_score: Overall definition quality score.
        licensed_score: License-information quality score.
    """

    declared_license: License | None
    effective_score: int
    licensed_score: int

    def score(self, kind: ScoreKind) -> int:
        """Return the score selected by *kind*."""
        if kind is ScoreKind.LICENSED:
            return self.licensed_score
        return self.effective_score


@dataclass(frozen=True, order=True)
class Dependency:
    """A resolved package and its evaluation state.

    Attributes:
        name: Crate name.
        version: Resolved semantic version.
        provenance: Fetched provenance, or ``None`` if missing.
        passed_license: License outcome; ``IGNORE`` until evaluated.
        passed_score: Score outcome; ``IGNORE`` until evaluated.
    """

    name: str
    version: semver.Version
    provenance: ProvenanceRecord | None = field(default=None, compare=False)
    passed_license: Outcome = field(default=Outcome.IGNORE, compare=False)
    passed_score: Outcome = field(default=Outcome.IGNORE, compare=False)

    @property
    def declared_license(self) -> License | None:
        """Return the declared license, if provenance carries one."""
        if self.provenance is None:
            return None
        return self.provenance.declared_license

    def score(self, kind: ScoreKind) -> int:
        """Return the selected score, or ``0`` when provenance is missing."""
        if self.provenance is None:
            return 0
        return self.provenance.score(kind)

    def passed(self) -> bool:
        """Return ``True`` unless either outcome is ``FAIL``."""
        return combine_overall(self.passed_score, self.passed_license)

    def test_license(
        self,
        lax: bool,  # noqa: FBT001
        checks: Sequence[LicenseCheck],
        catalog: LicenseCatalog | None = None,
    ) -> list[Exception]:
        """Run every license check against the declared license.

        Args:
            lax: Parse the declared license in lax mode.
            checks: Registered license checks.
            catalog: Identifier oracle used for parsing.

        Returns:
            An empty list on success.  Otherwise a single
            :class:`MissingLicenseError` or :class:`ParseError`, or one
            :class:`LicenseCheckError` per failing check.
        """
        declared = self.declared_license
        if declared is None:
            return [MissingLicenseError()]
        try:
            expression = declared.expression(lax=lax, catalog=catalog)
        except ParseError as exc:
            return [exc]
        errors: list[Exception] = []
        for check in checks:
            try:
                check_license(check, expression)
            except LicenseCheckError as exc:
                errors.append(exc)
        return errors
