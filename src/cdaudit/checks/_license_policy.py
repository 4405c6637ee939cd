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

"""License policy predicates evaluated against a parsed SPDX expression.

The set of checks is closed: :class:`OsiApproved` and
:class:`ApprovedLicenses`.  Both are frozen dataclasses and
:func:`check_license` dispatches on the variant.

Leaf semantics::

    ┌──────────────────────┬──────────────────────┬──────────────────────┐
    │ Leaf                 │ OsiApproved          │ ApprovedLicenses     │
    ├──────────────────────┼──────────────────────┼──────────────────────┤
    │ MIT                  │ catalog says OSI     │ 'MIT' in ids         │
    │ GPL-2.0-only+        │ same as GPL-2.0-only │ same as GPL-2.0-only │
    │ LicenseRef-Custom    │ False                │ False                │
    └──────────────────────┴──────────────────────┴──────────────────────┘

Usage::

    from cdaudit.checks._license_policy import ApprovedLicenses, check_license

    check_license(ApprovedLicenses(frozenset({'MIT'})), parse('MIT OR GPL-3.0-only'))
"""

from __future__ import annotations

from dataclasses import dataclass, field

from cdaudit.checks._license_catalog import LicenseCatalog
from cdaudit.errors import LicenseCheckError
from cdaudit.spdx_expr import Expression, LicenseId, LicenseRef, license_ids

__all__ = [
    'ApprovedLicenses',
    'LicenseCheck',
    'OsiApproved',
    'check_license',
]


@dataclass(frozen=True)
class OsiApproved:
    """Pass when the expression is satisfiable with OSI-approved licenses only."""

    catalog: LicenseCatalog = field(compare=False, repr=False)


@dataclass(frozen=True)
class ApprovedLicenses:
    """Pass when the expression is satisfiable with the listed SPDX IDs only.

    Attributes:
        ids: Canonical SPDX identifiers the caller approves.
    """

    ids: frozenset[str]


LicenseCheck = OsiApproved | ApprovedLicenses

# license_ids() reports LicenseRef leaves with these prefixes.
_REF_PREFIXES = ('LicenseRef-', 'DocumentRef-', 'AdditionRef-')


def check_license(check: LicenseCheck, expression: Expression) -> None:
    """Evaluate one license check against *expression*.

    Args:
        check: The predicate to apply.
        expression: A parsed SPDX expression.

    Raises:
        LicenseCheckError: If the expression does not satisfy *check*.
    """
    if isinstance(check, OsiApproved):
        catalog = check.catalog

        def _osi(leaf: LicenseId | LicenseRef) -> bool:
            return isinstance(leaf, LicenseId) and catalog.is_osi_approved(leaf.id)

        if not expression.evaluate(_osi):
            rejected = sorted(i for i in license_ids(expression.root) if not catalog.is_osi_approved(i))
            raise LicenseCheckError(f'`{expression}` is not OSI approved (rejected: {", ".join(rejected)})')
        return

    if isinstance(check, ApprovedLicenses):
        ids = check.ids

        def _approved(leaf: LicenseId | LicenseRef) -> bool:
            return isinstance(leaf, LicenseId) and leaf.id in ids

        if not expression.evaluate(_approved):
            listed = ', '.join(sorted(ids))
            rejected = sorted(i for i in license_ids(expression.root) if i not in ids or i.startswith(_REF_PREFIXES))
            raise LicenseCheckError(
                f'`{expression}` is not in the approved license list ({listed}); rejected: {", ".join(rejected)}'
            )
        return

    raise TypeError(f'unknown license check: {check!r}')  # pragma: no cover
