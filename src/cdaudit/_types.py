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

"""Shared leaf-level types used across cdaudit.

This module must have **zero** imports from other ``cdaudit``
subpackages to avoid circular-import chains.  It is safe to import
from any module in the project.

Outcome algebra::

    ┌──────────────┬──────────────┬─────────────────┐
    │ score        │ license      │ combine_overall │
    ├──────────────┼──────────────┼─────────────────┤
    │ PASS/IGNORE  │ PASS/IGNORE  │ True            │
    │ FAIL         │ any          │ False           │
    │ any          │ FAIL         │ False           │
    └──────────────┴──────────────┴─────────────────┘
"""

from __future__ import annotations

import enum

__all__ = [
    'Outcome',
    'OutputFormat',
    'ScoreKind',
    'combine_overall',
]


class Outcome(enum.Enum):
    """Tri-state verdict of a single check.

    Declaration order is the display order; there is no arithmetic on
    outcomes.
    """

    PASS = 'pass'
    FAIL = 'fail'
    IGNORE = 'ignore'

    @classmethod
    def from_bool(cls, passed: bool) -> Outcome:
        """Map ``True`` to :attr:`PASS` and ``False`` to :attr:`FAIL`."""
        return cls.PASS if passed else cls.FAIL

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Outcome):
            return NotImplemented
        order = list(Outcome)
        return order.index(self) < order.index(other)


def combine_overall(score: Outcome, license: Outcome) -> bool:  # noqa: A002
    """Return ``False`` if either outcome is :attr:`Outcome.FAIL`.

    ``IGNORE`` never blocks: it combines with ``PASS`` or another
    ``IGNORE`` to an overall pass.
    """
    return Outcome.FAIL not in (score, license)


class ScoreKind(str, enum.Enum):
    """Which ClearlyDefined score a threshold is applied to."""

    EFFECTIVE = 'effective'
    LICENSED = 'licensed'


class OutputFormat(str, enum.Enum):
    """Report output formats."""

    TEXT = 'text'
    CSV = 'csv'
    MARKDOWN = 'markdown'
