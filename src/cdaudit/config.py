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

r"""Configuration: ``cdaudit.toml`` loading, CLI merging and the run policy.

Settings come from two layers, later wins::

    ┌─────────────────────────┬───────────────────────────────────────────┐
    │ Layer                   │ Source                                    │
    ├─────────────────────────┼───────────────────────────────────────────┤
    │ File                    │ ``[cdaudit]`` or ``[tool.cdaudit]`` in    │
    │                         │ ``cdaudit.toml`` (or ``--config PATH``).  │
    ├─────────────────────────┼───────────────────────────────────────────┤
    │ Command line            │ Flags given explicitly.  Scalars replace  │
    │                         │ the file value, lists are appended.       │
    └─────────────────────────┴───────────────────────────────────────────┘

The merged :class:`CdAuditConfig` is then turned into a :class:`Policy`
by :func:`build_policy`, which validates ``approve`` identifiers
against the SPDX catalog.

Example ``cdaudit.toml``::

    [cdaudit]
    score = 75
    score_type = "licensed"
    approve_osi = true
    approve = ["MIT", "Apache-2.0"]
    ignore = ["ring"]
    exclude = ["my-workspace-crate"]
    license_overrides = "license-overrides.toml"
"""

from __future__ import annotations

import sys
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

from cdaudit._types import OutputFormat, ScoreKind
from cdaudit.checks._license_catalog import LicenseCatalog, LicenseDataError
from cdaudit.errors import ConfigError

__all__ = [
    'CONFIG_FILENAME',
    'DEFAULT_CONCURRENCY',
    'DEFAULT_SCORE',
    'VALID_CONFIG_KEYS',
    'CdAuditConfig',
    'Policy',
    'build_policy',
    'load_catalog',
    'load_config',
    'resolve_config',
]

CONFIG_FILENAME = 'cdaudit.toml'
DEFAULT_SCORE = 80
DEFAULT_CONCURRENCY = 8


@dataclass(frozen=True)
class CdAuditConfig:
    """All settings that may appear in the configuration file.

    Attributes:
        score: Required score; ``0`` disables the score check.
        score_type: Which ClearlyDefined score the threshold applies to.
        ignore: Crate names exempt from all checks (still reported).
        exclude: Crate names dropped before fetching.
        approve_osi: Register the OSI-approved license check.
        approve: SPDX identifiers for the approved-license check.
        approve_all: Pass every license without evaluating the registered
            checks.  Has no effect unless a license check is registered.
        lax: Parse declared licenses in lax mode.
        link: Add provenance links (and badges) to the report.
        output_format: Report format.
        keep_going: Record fetch failures as missing provenance.
        concurrency: Maximum concurrent provenance requests.
        license_overrides: TOML file of extra licenses and aliases merged
            over the bundled catalog.
    """

    score: int = DEFAULT_SCORE
    score_type: ScoreKind = ScoreKind.EFFECTIVE
    ignore: tuple[str, ...] = ()
    exclude: tuple[str, ...] = ()
    approve_osi: bool = False
    approve: tuple[str, ...] = ()
    approve_all: bool = False
    lax: bool = False
    link: bool = False
    output_format: OutputFormat = OutputFormat.TEXT
    keep_going: bool = False
    concurrency: int = DEFAULT_CONCURRENCY
    license_overrides: Path | None = None


VALID_CONFIG_KEYS: frozenset[str] = frozenset(f.name for f in fields(CdAuditConfig))

_BOOL_KEYS = ('approve_osi', 'approve_all', 'lax', 'link', 'keep_going')
_LIST_KEYS = ('ignore', 'exclude', 'approve')


@dataclass(frozen=True)
class Policy:
    """Evaluation policy derived from the merged configuration.

    Attributes:
        required_score: Minimum score to pass; ``0`` always passes.
        score_kind: Which score to compare.
        ignore: Crate names whose outcomes stay ``IGNORE``.
        approve_osi: OSI-approved check is registered.
        approved_licenses: Canonical IDs for the approved-license check.
        approve_all: License outcome is ``PASS`` without running the
            checks, provided at least one check is registered.
        lax: Lax SPDX parsing.
    """

    required_score: int = DEFAULT_SCORE
    score_kind: ScoreKind = ScoreKind.EFFECTIVE
    ignore: frozenset[str] = field(default_factory=frozenset)
    approve_osi: bool = False
    approved_licenses: frozenset[str] = field(default_factory=frozenset)
    approve_all: bool = False
    lax: bool = False

    @property
    def has_license_checks(self) -> bool:
        """Return ``True`` if at least one license predicate is registered."""
        return self.approve_osi or bool(self.approved_licenses)

    @property
    def has_score_check(self) -> bool:
        """Return ``True`` if the score threshold is active."""
        return self.required_score > 0


def _parse_config(raw: dict[str, Any], *, section: str = 'cdaudit', base_dir: Path | None = None) -> CdAuditConfig:
    """Validate a raw ``[cdaudit]`` table and build a :class:`CdAuditConfig`.

    Relative ``license_overrides`` paths are taken from *base_dir*, the
    directory holding the config file.

    Raises:
        ConfigError: On unknown keys or wrongly typed values.
    """
    unknown = set(raw) - VALID_CONFIG_KEYS
    if unknown:
        raise ConfigError(
            f'Unknown key(s) in [{section}]: {", ".join(sorted(unknown))}',
            hint=f'Valid keys: {", ".join(sorted(VALID_CONFIG_KEYS))}',
        )

    kwargs: dict[str, Any] = {}

    for key in ('score', 'concurrency'):
        if key in raw:
            value = raw[key]
            minimum = 0 if key == 'score' else 1
            if isinstance(value, bool) or not isinstance(value, int) or value < minimum:
                qualifier = 'non-negative' if minimum == 0 else 'positive'
                raise ConfigError(f'{section}.{key} must be a {qualifier} integer, got {value!r}')
            kwargs[key] = value

    for key in _BOOL_KEYS:
        if key in raw:
            if not isinstance(raw[key], bool):
                raise ConfigError(f'{section}.{key} must be a boolean, got {type(raw[key]).__name__}')
            kwargs[key] = raw[key]

    for key in _LIST_KEYS:
        if key in raw:
            value = raw[key]
            if not isinstance(value, list):
                raise ConfigError(f'{section}.{key} must be a list of strings, got {type(value).__name__}')
            for i, item in enumerate(value):
                if not isinstance(item, str):
                    raise ConfigError(f'{section}.{key}[{i}] must be a string, got {type(item).__name__}')
            kwargs[key] = tuple(value)

    if 'score_type' in raw:
        kwargs['score_type'] = _parse_enum(ScoreKind, raw['score_type'], f'{section}.score_type')
    if 'output_format' in raw:
        kwargs['output_format'] = _parse_enum(OutputFormat, raw['output_format'], f'{section}.output_format')

    if 'license_overrides' in raw:
        value = raw['license_overrides']
        if not isinstance(value, str) or not value:
            raise ConfigError(f'{section}.license_overrides must be a path string, got {value!r}')
        kwargs['license_overrides'] = (base_dir or Path()) / value

    return CdAuditConfig(**kwargs)


def _parse_enum(enum_cls: type[ScoreKind] | type[OutputFormat], value: object, key: str) -> Any:  # noqa: ANN401
    allowed = [m.value for m in enum_cls]
    if not isinstance(value, str) or value not in allowed:
        raise ConfigError(f'{key} must be one of {", ".join(allowed)}, got {value!r}')
    return enum_cls(value)


def load_config(path: Path | None = None, *, cwd: Path | None = None) -> CdAuditConfig:
    """Load the configuration file.

    Args:
        path: Explicit config file.  It must exist.
        cwd: Directory searched for ``cdaudit.toml`` when *path* is
            ``None``.  Defaults to the current directory.

    Returns:
        The parsed configuration, or defaults when no file is found.

    Raises:
        ConfigError: If the file cannot be read, is not valid TOML, or
            has invalid settings.
    """
    if path is None:
        candidate = (cwd or Path.cwd()) / CONFIG_FILENAME
        if not candidate.is_file():
            return CdAuditConfig()
        path = candidate
    elif not path.is_file():
        raise ConfigError(f'Config file not found: {path}')

    try:
        data = tomllib.loads(path.read_text(encoding='utf-8'))
    except OSError as exc:
        raise ConfigError(f'Cannot read config file {path}: {exc}') from exc
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f'Invalid TOML in {path}: {exc}') from exc

    if 'cdaudit' in data:
        section, table = 'cdaudit', data['cdaudit']
    elif isinstance(data.get('tool'), dict) and 'cdaudit' in data['tool']:
        section, table = 'tool.cdaudit', data['tool']['cdaudit']
    else:
        return CdAuditConfig()

    if not isinstance(table, dict):
        raise ConfigError(f'{section} must be a table')
    return _parse_config(table, section=section, base_dir=path.parent)


def resolve_config(base: CdAuditConfig, **overrides: Any) -> CdAuditConfig:  # noqa: ANN401
    """Merge command-line values over *base*.

    ``None`` means "not given on the command line" and keeps the file
    value.  List settings are appended to the file's list.

    Raises:
        ConfigError: On an unknown setting name.
    """
    unknown = set(overrides) - VALID_CONFIG_KEYS
    if unknown:
        raise ConfigError(f'Unknown setting(s): {", ".join(sorted(unknown))}')
    changes: dict[str, Any] = {}
    for key, value in overrides.items():
        if value is None:
            continue
        if key in _LIST_KEYS:
            changes[key] = (*getattr(base, key), *value)
        else:
            changes[key] = value
    return replace(base, **changes)


def load_catalog(config: CdAuditConfig) -> LicenseCatalog:
    """Return the license catalog for *config*.

    The bundled catalog is shared; ``license_overrides`` builds a fresh
    one with the user's licenses and aliases merged in.

    Raises:
        ConfigError: If the overrides file is missing, unreadable or
            invalid.
    """
    path = config.license_overrides
    if path is None:
        return LicenseCatalog.default()
    if not path.is_file():
        raise ConfigError(f'License overrides file not found: {path}')
    try:
        return LicenseCatalog.load(user_toml=path)
    except OSError as exc:
        raise ConfigError(f'Cannot read license overrides {path}: {exc}') from exc
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f'Invalid TOML in {path}: {exc}') from exc
    except LicenseDataError as exc:
        raise ConfigError(f'Invalid license overrides in {path}', hint='; '.join(exc.errors)) from exc


def build_policy(config: CdAuditConfig, catalog: LicenseCatalog | None = None) -> Policy:
    """Build the evaluation :class:`Policy` from *config*.

    Raises:
        UnknownLicenseError: If an approved identifier is not an exact
            SPDX license identifier.
    """
    catalog = catalog or LicenseCatalog.default()
    approved = frozenset(catalog.require(spdx_id) for spdx_id in config.approve)
    return Policy(
        required_score=config.score,
        score_kind=config.score_type,
        ignore=frozenset(config.ignore),
        approve_osi=config.approve_osi,
        approved_licenses=approved,
        approve_all=config.approve_all,
        lax=config.lax,
    )
