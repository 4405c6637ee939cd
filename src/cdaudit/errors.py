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

"""Error types for cdaudit.

Two families:

- :class:`CdAuditError` and subclasses are **fatal**: configuration,
  lockfile and fetch problems that abort the run.  The CLI logs them
  (with the optional ``hint``) and exits with status 2.
- :class:`MissingLicenseError` and :class:`LicenseCheckError` are
  **recoverable**: they are collected per dependency by
  :meth:`cdaudit.dependency.Dependency.test_license` and folded into
  the license outcome.
"""

from __future__ import annotations

__all__ = [
    'CdAuditError',
    'ConfigError',
    'FetchError',
    'LicenseCheckError',
    'LockfileError',
    'MissingLicenseError',
    'UnknownLicenseError',
]


class CdAuditError(Exception):
    """Base class for fatal cdaudit errors.

    Attributes:
        message: Human-readable description.
        hint: Optional actionable fix instruction.
    """

    def __init__(self, message: str, *, hint: str = '') -> None:
        """Initialize with a message and an optional hint."""
        self.message = message
        self.hint = hint
        super().__init__(message)


class ConfigError(CdAuditError):
    """Invalid configuration file or command-line option."""


class UnknownLicenseError(ConfigError):
    """An approved license identifier is not in the SPDX catalog."""


class LockfileError(CdAuditError):
    """The lockfile is missing, unreadable, or malformed."""


class FetchError(CdAuditError):
    """A provenance lookup failed."""


class MissingLicenseError(ValueError):
    """The dependency has no declared license information."""

    def __init__(self) -> None:
        """Initialize with the fixed message."""
        super().__init__('missing license information')


class LicenseCheckError(ValueError):
    """A license expression did not satisfy a license check."""
