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

r"""SPDX license catalog: loads TOML data and answers identifier queries.

The catalog is the oracle behind license-expression parsing and the
OSI-approved check: given a string it returns a canonical SPDX
identifier (or ``None`` for unknown), and given an identifier it says
whether OSI approved it.

Key Concepts (ELI5)::

    ┌─────────────────────┬──────────────────────────────────────────────┐
    │ Concept              │ Plain-English                                │
    ├─────────────────────┼──────────────────────────────────────────────┤
    │ Canonical ID         │ The exact SPDX short identifier, e.g.       │
    │                      │ ``Apache-2.0`` (not ``apache2``).           │
    ├─────────────────────┼──────────────────────────────────────────────┤
    │ Strict lookup        │ Only the exact canonical ID is accepted.    │
    ├─────────────────────┼──────────────────────────────────────────────┤
    │ Lax lookup           │ Case-insensitive IDs and known aliases are  │
    │                      │ mapped to the canonical ID.                 │
    ├─────────────────────┼──────────────────────────────────────────────┤
    │ OSI approved         │ On the Open Source Initiative's list.       │
    └─────────────────────┴──────────────────────────────────────────────┘

Usage::

    from cdaudit.checks._license_catalog import LicenseCatalog

    catalog = LicenseCatalog.default()  # built-in data
    catalog = LicenseCatalog.load(user_toml=Path('license-overrides.toml'))

    catalog.resolve('MIT', lax=False)  # 'MIT'
    catalog.resolve('apache2', lax=True)  # 'Apache-2.0'
    catalog.is_osi_approved('CC0-1.0')  # False
    catalog.require('Bogus-1.0')  # raises UnknownLicenseError
"""

from __future__ import annotations

import functools
import sys
from dataclasses import dataclass, field
from pathlib import Path

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

from cdaudit.errors import UnknownLicenseError

__all__ = [
    'LicenseCatalog',
    'LicenseDataError',
    'LicenseInfo',
]


class LicenseDataError(Exception):
    """Raised when license TOML data fails validation.

    Attributes:
        errors: List of human-readable error strings.
    """

    def __init__(self, errors: list[str]) -> None:
        self.errors = errors
        bullet_list = '\n'.join(f'  - {e}' for e in errors)
        super().__init__(f'License database has {len(errors)} validation error(s):\n{bullet_list}')


_DATA_DIR = Path(__file__).resolve().parent.parent / 'data'
_LICENSES_TOML = _DATA_DIR / 'licenses.toml'


@dataclass(frozen=True)
class LicenseInfo:
    """Metadata for a single SPDX license.

    Attributes:
        spdx_id: Canonical SPDX identifier.
        name: Human-readable full name.
        osi_approved: Whether OSI has approved this license.
        deprecated: Whether SPDX deprecated this identifier.
        aliases: Case-insensitive strings that resolve to this ID in
            lax mode.
    """

    spdx_id: str
    name: str
    osi_approved: bool = False
    deprecated: bool = False
    aliases: tuple[str, ...] = ()


@dataclass
class LicenseCatalog:
    """Registry of known SPDX license identifiers.

    Attributes:
        licenses: Mapping from SPDX ID → :class:`LicenseInfo`.
    """

    licenses: dict[str, LicenseInfo] = field(default_factory=dict)
    _lax_index: dict[str, str] = field(default_factory=dict, init=False, repr=False)

    # ── Loading ──────────────────────────────────────────────────────

    @classmethod
    def load(
        cls,
        *,
        licenses_toml: Path | None = None,
        user_toml: Path | None = None,
    ) -> LicenseCatalog:
        """Load the catalog from TOML data files.

        Args:
            licenses_toml: Path to the license registry TOML.
                Defaults to the built-in ``data/licenses.toml``.
            user_toml: Optional user-provided TOML with additional
                licenses to merge on top of the built-in data.  It
                must exist.

        Returns:
            A validated :class:`LicenseCatalog`.

        Raises:
            LicenseDataError: If the data has type or consistency errors.
            OSError: If a data file cannot be read.
        """
        catalog = cls()
        catalog._load_licenses(licenses_toml or _LICENSES_TOML)  # noqa: SLF001
        if user_toml is not None:
            catalog._load_user_overrides(user_toml)  # noqa: SLF001
        catalog.validate()
        catalog._build_index()  # noqa: SLF001
        return catalog

    @classmethod
    @functools.cache
    def default(cls) -> LicenseCatalog:
        """Return the shared catalog built from the bundled data."""
        return cls.load()

    def _load_licenses(self, path: Path) -> None:
        """Parse ``licenses.toml`` and populate :attr:`licenses`."""
        with path.open('rb') as f:
            data = tomllib.load(f)
        errors: list[str] = []
        for spdx_id, info in data.items():
            if not isinstance(info, dict):
                errors.append(f'[{spdx_id}]: expected a table, got {type(info).__name__}')
                continue
            errors.extend(_validate_entry(spdx_id, info))
            self.licenses[spdx_id] = _info_from_table(spdx_id, info)
        if errors:
            raise LicenseDataError(errors)

    def _load_user_overrides(self, path: Path) -> None:
        """Merge user-provided TOML on top of built-in data.

        Expected format::

            [licenses."MyCustom-1.0"]
            name = "My Custom License"
            osi_approved = false
            aliases = ["my custom license"]
        """
        with path.open('rb') as f:
            data = tomllib.load(f)

        errors: list[str] = []
        for spdx_id, info in data.get('licenses', {}).items():
            if not isinstance(info, dict):
                errors.append(f'[licenses.{spdx_id}]: expected a table, got {type(info).__name__}')
                continue
            errors.extend(_validate_entry(spdx_id, info))
            existing = self.licenses.get(spdx_id)
            if existing:
                # User aliases extend built-in aliases.
                merged_aliases = set(existing.aliases)
                merged_aliases.update(info.get('aliases', ()))
                self.licenses[spdx_id] = LicenseInfo(
                    spdx_id=spdx_id,
                    name=info.get('name', existing.name),
                    osi_approved=info.get('osi_approved', existing.osi_approved),
                    deprecated=info.get('deprecated', existing.deprecated),
                    aliases=tuple(sorted(merged_aliases)),
                )
            else:
                self.licenses[spdx_id] = _info_from_table(spdx_id, info)
        if errors:
            raise LicenseDataError(errors)

    def _build_index(self) -> None:
        """Build the case-insensitive ID + alias lookup table."""
        index: dict[str, str] = {}
        for spdx_id, info in self.licenses.items():
            index[spdx_id.lower()] = spdx_id
        for spdx_id, info in self.licenses.items():
            for alias in info.aliases:
                # SPDX IDs take priority over aliases.
                index.setdefault(alias.lower(), spdx_id)
        self._lax_index = index

    # ── Queries ──────────────────────────────────────────────────────

    def known(self, spdx_id: str) -> bool:
        """Return ``True`` if *spdx_id* is an exact catalog identifier."""
        return spdx_id in self.licenses

    def is_osi_approved(self, spdx_id: str) -> bool:
        """Return ``True`` if *spdx_id* is known and OSI approved."""
        info = self.licenses.get(spdx_id)
        return info.osi_approved if info else False

    def license_id(self, text: str) -> str | None:
        """Return *text* if it is an exact SPDX identifier, else ``None``."""
        return text if text in self.licenses else None

    def resolve(self, text: str, lax: bool) -> str | None:  # noqa: FBT001
        """Map *text* to a canonical SPDX identifier.

        Signature matches :data:`cdaudit.spdx_expr.Resolver` so the
        method can be passed straight to :func:`cdaudit.spdx_expr.parse`.

        Args:
            text: A license identifier as written in an expression.
            lax: Also accept wrong-case identifiers and aliases.

        Returns:
            The canonical SPDX ID, or ``None`` if unknown.
        """
        exact = self.license_id(text)
        if exact is not None or not lax:
            return exact
        return self._lax_index.get(text.strip().lower())

    def require(self, text: str) -> str:
        """Return the exact SPDX identifier *text* or raise.

        Raises:
            UnknownLicenseError: If *text* is not an SPDX identifier.
        """
        spdx_id = self.license_id(text)
        if spdx_id is None:
            suggestion = self._lax_index.get(text.strip().lower())
            hint = f'Did you mean {suggestion!r}?' if suggestion else 'Use an SPDX short identifier, e.g. MIT.'
            raise UnknownLicenseError(f'Unknown license: {text}', hint=hint)
        return spdx_id

    def validate(self) -> None:
        """Validate the assembled catalog for consistency.

        Checks that no two licenses share the same alias
        (case-insensitive), and that no alias shadows another
        license's identifier.

        Raises:
            LicenseDataError: If any validation errors are found.
        """
        errors: list[str] = []
        ids_lower = {spdx_id.lower(): spdx_id for spdx_id in self.licenses}
        seen_aliases: dict[str, str] = {}
        for spdx_id, info in self.licenses.items():
            for alias in info.aliases:
                lower = alias.lower()
                if lower in seen_aliases and seen_aliases[lower] != spdx_id:
                    errors.append(f'Duplicate alias {alias!r} claimed by both {seen_aliases[lower]!r} and {spdx_id!r}')
                owner = ids_lower.get(lower)
                if owner is not None and owner != spdx_id:
                    errors.append(f'Alias {alias!r} of {spdx_id!r} shadows license identifier {owner!r}')
                seen_aliases[lower] = spdx_id
        if errors:
            raise LicenseDataError(errors)


def _validate_entry(spdx_id: str, info: dict[str, object]) -> list[str]:
    """Return type errors for one license table."""
    errors: list[str] = []
    if 'name' in info and not isinstance(info['name'], str):
        errors.append(f'[{spdx_id}].name: expected string, got {type(info["name"]).__name__}')
    for flag in ('osi_approved', 'deprecated'):
        if flag in info and not isinstance(info[flag], bool):
            errors.append(f'[{spdx_id}].{flag}: expected bool, got {type(info[flag]).__name__}')
    aliases = info.get('aliases', [])
    if not isinstance(aliases, list):
        errors.append(f'[{spdx_id}].aliases: expected list, got {type(aliases).__name__}')
    elif not all(isinstance(a, str) for a in aliases):
        errors.append(f'[{spdx_id}].aliases: all entries must be strings')
    return errors


def _info_from_table(spdx_id: str, info: dict[str, object]) -> LicenseInfo:
    aliases = info.get('aliases', ())
    return LicenseInfo(
        spdx_id=spdx_id,
        name=str(info.get('name', spdx_id)),
        osi_approved=info.get('osi_approved', False) is True,
        deprecated=info.get('deprecated', False) is True,
        aliases=tuple(a for a in aliases if isinstance(a, str)) if isinstance(aliases, list) else (),
    )
