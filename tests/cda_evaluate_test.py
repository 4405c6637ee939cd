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

"""Tests for dependency records and the evaluator."""

from __future__ import annotations

import semver
from cdaudit._types import Outcome, ScoreKind
from cdaudit.checks._license_catalog import LicenseCatalog
from cdaudit.checks._license_policy import ApprovedLicenses, OsiApproved
from cdaudit.config import Policy
from cdaudit.dependency import Dependency, License, ProvenanceRecord
from cdaudit.errors import LicenseCheckError, MissingLicenseError
from cdaudit.evaluate import (
    EvaluationSummary,
    build_checks,
    evaluate,
    failed_only,
    sort_dependencies,
    summarize,
)
from cdaudit.spdx_expr import ParseError

_NO_DATA = object()


def _dep(
    name: str = 'leftpad',
    version: str = '1.0.0',
    *,
    license: str | None = 'MIT',  # noqa: A002
    effective: int = 90,
    licensed: int = 60,
    provenance: object = None,
) -> Dependency:
    """Build a dependency with provenance, or without when provenance is _NO_DATA."""
    record = None
    if provenance is not _NO_DATA:
        record = ProvenanceRecord(
            declared_license=License(license) if license is not None else None,
            effective_score=effective,
            licensed_score=licensed,
        )
    return Dependency(name=name, version=semver.Version.parse(version), provenance=record)


def _osi_policy(**kwargs: object) -> Policy:
    settings: dict[str, object] = {'required_score': 80, 'score_kind': ScoreKind.EFFECTIVE, 'approve_osi': True}
    settings.update(kwargs)
    return Policy(**settings)  # type: ignore[arg-type]


# ── Dependency ───────────────────────────────────────────────────────────


class TestDependency:
    """Tests for Dependency identity, ordering and scores."""

    def test_outcomes_start_ignored(self) -> None:
        """Both outcomes are IGNORE before evaluation."""
        dep = _dep()
        assert dep.passed_license is Outcome.IGNORE
        assert dep.passed_score is Outcome.IGNORE
        assert dep.passed()

    def test_equality_ignores_provenance(self) -> None:
        """Equality and hashing use name and version only."""
        a = _dep(license='MIT', effective=90)
        b = _dep(provenance=_NO_DATA)
        assert a == b
        assert hash(a) == hash(b)
        assert a != _dep(version='1.0.1')

    def test_sorting(self) -> None:
        """Records sort by name, then semantic version."""
        deps = [_dep('b', '1.0.0'), _dep('a', '2.0.0'), _dep('a', '10.0.0'), _dep('a', '1.0.0')]
        ordered = [(d.name, str(d.version)) for d in sort_dependencies(deps)]
        assert ordered == [('a', '1.0.0'), ('a', '2.0.0'), ('a', '10.0.0'), ('b', '1.0.0')]

    def test_score_kinds(self) -> None:
        """score() selects the requested kind."""
        dep = _dep(effective=90, licensed=55)
        assert dep.score(ScoreKind.EFFECTIVE) == 90
        assert dep.score(ScoreKind.LICENSED) == 55

    def test_missing_provenance_scores_zero(self) -> None:
        """Without provenance the score is 0."""
        assert _dep(provenance=_NO_DATA).score(ScoreKind.EFFECTIVE) == 0

    def test_license_keeps_raw_text(self) -> None:
        """License is not normalized at construction."""
        assert str(License('mit/apache-2.0')) == 'mit/apache-2.0'


class TestTestLicense:
    """Tests for Dependency.test_license()."""

    def test_pass(self) -> None:
        """No errors when every check passes."""
        checks = [OsiApproved(LicenseCatalog.default())]
        assert _dep(license='MIT OR Apache-2.0').test_license(False, checks) == []

    def test_missing_provenance(self) -> None:
        """Missing provenance gives one MissingLicenseError."""
        errors = _dep(provenance=_NO_DATA).test_license(False, [OsiApproved(LicenseCatalog.default())])
        assert len(errors) == 1
        assert isinstance(errors[0], MissingLicenseError)
        assert str(errors[0]) == 'missing license information'

    def test_missing_declared_license(self) -> None:
        """Provenance without a declared license is also missing."""
        errors = _dep(license=None).test_license(False, [])
        assert [type(e) for e in errors] == [MissingLicenseError]

    def test_parse_error_short_circuits(self) -> None:
        """A parse error is reported once and no check runs."""
        checks = [OsiApproved(LicenseCatalog.default()), ApprovedLicenses(frozenset({'MIT'}))]
        errors = _dep(license='MIT OR').test_license(False, checks)
        assert len(errors) == 1
        assert isinstance(errors[0], ParseError)

    def test_collects_every_failure(self) -> None:
        """Each failing check contributes one error."""
        checks = [OsiApproved(LicenseCatalog.default()), ApprovedLicenses(frozenset({'MIT'}))]
        errors = _dep(license='CC0-1.0').test_license(False, checks)
        assert len(errors) == 2
        assert all(isinstance(e, LicenseCheckError) for e in errors)
        assert 'not OSI approved' in str(errors[0])
        assert 'approved license list' in str(errors[1])

    def test_lax_mode(self) -> None:
        """Lax mode accepts slash-separated alternatives."""
        checks = [OsiApproved(LicenseCatalog.default())]
        dep = _dep(license='MIT/Apache-2.0')
        assert dep.test_license(True, checks) == []
        assert isinstance(dep.test_license(False, checks)[0], ParseError)

    def test_long_chain(self) -> None:
        """A declared license with thousands of operands is checked normally."""
        checks = [OsiApproved(LicenseCatalog.default())]
        assert _dep(license=' OR '.join(['CC0-1.0'] * 2000 + ['MIT'])).test_license(False, checks) == []

    def test_deep_nesting_is_parse_error(self) -> None:
        """Pathological nesting is reported as a parse error."""
        checks = [OsiApproved(LicenseCatalog.default())]
        errors = _dep(license='(' * 3000 + 'MIT' + ')' * 3000).test_license(False, checks)
        assert len(errors) == 1
        assert isinstance(errors[0], ParseError)


# ── Evaluator ────────────────────────────────────────────────────────────


class TestEvaluateScenarios:
    """End-to-end evaluation scenarios."""

    def test_leftpad_passes(self) -> None:
        """MIT with score 90 passes an OSI policy at 80."""
        (dep,) = evaluate([_dep(license='MIT', effective=90)], _osi_policy())
        assert dep.passed_score is Outcome.PASS
        assert dep.passed_license is Outcome.PASS
        assert dep.passed()

    def test_leftpad_low_score_fails(self) -> None:
        """Score 70 fails even though the license passes."""
        (dep,) = evaluate([_dep(license='MIT', effective=70)], _osi_policy())
        assert dep.passed_score is Outcome.FAIL
        assert dep.passed_license is Outcome.PASS
        assert not dep.passed()

    def test_missing_provenance(self) -> None:
        """Missing provenance fails both checks."""
        (dep,) = evaluate([_dep(provenance=_NO_DATA)], _osi_policy())
        assert dep.passed_license is Outcome.FAIL
        assert dep.passed_score is Outcome.FAIL

    def test_missing_provenance_zero_threshold(self) -> None:
        """A zero threshold passes even a missing score."""
        (dep,) = evaluate([_dep(provenance=_NO_DATA)], _osi_policy(required_score=0))
        assert dep.passed_score is Outcome.PASS

    def test_malformed_license_strict(self) -> None:
        """'MIT OR' fails the license check in strict mode."""
        (dep,) = evaluate([_dep(license='MIT OR')], _osi_policy())
        assert dep.passed_license is Outcome.FAIL

    def test_score_boundary(self) -> None:
        """score == required_score passes."""
        (dep,) = evaluate([_dep(effective=80)], _osi_policy())
        assert dep.passed_score is Outcome.PASS
        (dep,) = evaluate([_dep(effective=79)], _osi_policy())
        assert dep.passed_score is Outcome.FAIL

    def test_licensed_score_kind(self) -> None:
        """The licensed score is used when selected."""
        policy = _osi_policy(score_kind=ScoreKind.LICENSED)
        (dep,) = evaluate([_dep(effective=95, licensed=40)], policy)
        assert dep.passed_score is Outcome.FAIL


class TestPolicyResolution:
    """Tests for the license policy resolution order."""

    def test_ignore_list_wins(self) -> None:
        """Ignore-listed dependencies keep IGNORE for both outcomes."""
        deps = [_dep(license='MIT OR', effective=0), _dep('other', provenance=_NO_DATA)]
        policy = _osi_policy(ignore=frozenset({'leftpad', 'other'}), approve_all=True)
        for dep in evaluate(deps, policy):
            assert dep.passed_license is Outcome.IGNORE
            assert dep.passed_score is Outcome.IGNORE
            assert dep.passed()

    def test_no_checks_fails_license(self) -> None:
        """Without any license policy every license fails."""
        policy = Policy(required_score=0)
        deps = evaluate([_dep(license='MIT'), _dep('b', license='Apache-2.0')], policy)
        assert [d.passed_license for d in deps] == [Outcome.FAIL, Outcome.FAIL]

    def test_approve_all_passes_anything(self) -> None:
        """approve_all passes invalid, missing and non-OSI licenses once a check is registered."""
        deps = [
            _dep('a', license='MIT OR'),
            _dep('b', provenance=_NO_DATA),
            _dep('c', license='LicenseRef-Proprietary'),
        ]
        for dep in evaluate(deps, _osi_policy(required_score=0, approve_all=True)):
            assert dep.passed_license is Outcome.PASS

    def test_approve_all_without_checks_fails(self) -> None:
        """approve_all alone registers nothing, so every license fails."""
        deps = [_dep('a', license='MIT'), _dep('b', license='LicenseRef-Proprietary')]
        for dep in evaluate(deps, Policy(required_score=0, approve_all=True)):
            assert dep.passed_license is Outcome.FAIL
            assert not dep.passed()

    def test_approve_all_skips_checks(self) -> None:
        """approve_all short-circuits registered checks."""
        policy = _osi_policy(approve_all=True)
        (dep,) = evaluate([_dep(license='CC0-1.0')], policy)
        assert dep.passed_license is Outcome.PASS

    def test_explicit_checks_override_policy(self) -> None:
        """Passing checks explicitly replaces build_checks()."""
        policy = _osi_policy()
        (dep,) = evaluate([_dep(license='MIT')], policy, [ApprovedLicenses(frozenset({'Zlib'}))])
        assert dep.passed_license is Outcome.FAIL

    def test_input_not_modified(self) -> None:
        """evaluate() returns new records."""
        original = [_dep(effective=10)]
        result = evaluate(original, _osi_policy())
        assert original[0].passed_score is Outcome.IGNORE
        assert result[0].passed_score is Outcome.FAIL


class TestHelpers:
    """Tests for build_checks(), summarize() and failed_only()."""

    def test_build_checks_order(self) -> None:
        """OSI check comes first, then the approved list."""
        policy = Policy(approve_osi=True, approved_licenses=frozenset({'MIT'}))
        checks = build_checks(policy)
        assert isinstance(checks[0], OsiApproved)
        assert checks[1] == ApprovedLicenses(frozenset({'MIT'}))

    def test_build_checks_empty(self) -> None:
        """No checks without a license selection."""
        assert build_checks(Policy(approve_all=True)) == []

    def test_summarize(self) -> None:
        """Counts failed dependencies."""
        deps = evaluate([_dep('a', effective=90), _dep('b', effective=10)], _osi_policy())
        summary = summarize(deps)
        assert summary == EvaluationSummary(total=2, failed=1)
        assert not summary.passed

    def test_failed_only(self) -> None:
        """failed_only keeps failures."""
        deps = evaluate([_dep('a', effective=90), _dep('b', effective=10)], _osi_policy())
        assert [d.name for d in failed_only(deps)] == ['b']
