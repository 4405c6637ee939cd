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

"""Parse ``Cargo.lock`` into dependency records.

``Cargo.lock`` is TOML with repeated ``[[package]]`` sections::

    version = 3

    [[package]]
    name = "serde"
    version = "1.0.197"
    source = "registry+https://github.com/rust-lang/crates.io-index"
    checksum = "..."
    dependencies = ["serde_derive"]

Key Concepts (ELI5)::

    ┌─────────────────────┬────────────────────────────────────────────────┐
    │ Concept             │ ELI5 Explanation                               │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ Lockfile            │ A snapshot of every crate version the build    │
    │                     │ uses, frozen at a point in time.               │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ Source              │ Where the crate came from.  Workspace members  │
    │                     │ have none.                                     │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ Exclude             │ Crates dropped before any lookup happens.      │
    └─────────────────────┴────────────────────────────────────────────────┘

Usage::

    from cdaudit.checks._lockfile import dependencies_from_lock, parse_cargo_lock, resolve_lockfile_path

    entries = parse_cargo_lock(resolve_lockfile_path(Path('Cargo.lock')))
    deps = dependencies_from_lock(entries, exclude={'my-crate'})
"""

from __future__ import annotations

import os
import sys
from collections.abc import Collection, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

import semver

from cdaudit.dependency import Dependency
from cdaudit.errors import LockfileError
from cdaudit.logging import get_logger

logger = get_logger(__name__)

__all__ = [
    'LockEntry',
    'dependencies_from_lock',
    'parse_cargo_lock',
    'resolve_lockfile_path',
]


@dataclass(frozen=True)
class LockEntry:
    """A single ``[[package]]`` entry from ``Cargo.lock``.

    Attributes:
        name: Crate name.
        version: Version string.
        source: Registry or git source; empty for workspace members.
    """

    name: str
    version: str
    source: str = ''


def resolve_lockfile_path(path: Path, *, environ: Mapping[str, str] | None = None) -> Path:
    """Resolve a relative lockfile path.

    Relative paths are joined to ``$CARGO_MANIFEST_DIR`` when set (as it
    is under ``cargo run``), otherwise to the current directory.
    """
    if path.is_absolute():
        return path
    env = os.environ if environ is None else environ
    manifest_dir = env.get('CARGO_MANIFEST_DIR')
    base = Path(manifest_dir) if manifest_dir else Path.cwd()
    return base / path


def parse_cargo_lock(lock_path: Path) -> list[LockEntry]:
    """Parse a ``Cargo.lock`` file.

    Args:
        lock_path: Path to the lockfile.

    Returns:
        Entries in file order.

    Raises:
        LockfileError: If the file is missing, unreadable, not TOML, or
            has a package without a name or version.
    """
    if not lock_path.is_file():
        raise LockfileError(
            f'Lockfile not found: {lock_path}',
            hint='Run `cargo generate-lockfile`, or pass --input PATH.',
        )
    try:
        data = tomllib.loads(lock_path.read_text(encoding='utf-8'))
    except OSError as exc:
        raise LockfileError(f'Cannot read {lock_path}: {exc}') from exc
    except tomllib.TOMLDecodeError as exc:
        raise LockfileError(f'Invalid TOML in {lock_path}: {exc}') from exc

    packages: list[dict[str, Any]] = data.get('package', [])
    if not isinstance(packages, list):
        raise LockfileError(f'{lock_path}: "package" must be an array of tables')

    entries: list[LockEntry] = []
    for i, pkg_raw in enumerate(packages):
        if not isinstance(pkg_raw, dict):
            raise LockfileError(f'{lock_path}: package[{i}] is not a table')
        name = pkg_raw.get('name')
        version = pkg_raw.get('version')
        if not isinstance(name, str) or not name:
            raise LockfileError(f'{lock_path}: package[{i}] has no name')
        if not isinstance(version, str) or not version:
            raise LockfileError(f'{lock_path}: package {name!r} has no version')
        source = pkg_raw.get('source', '')
        entries.append(LockEntry(name=name, version=version, source=source if isinstance(source, str) else ''))

    logger.info(
        'parsed_cargo_lock',
        path=str(lock_path),
        total=len(entries),
        workspace=sum(1 for e in entries if not e.source),
    )
    return entries


def dependencies_from_lock(entries: list[LockEntry], exclude: Collection[str] = ()) -> list[Dependency]:
    """Build unevaluated :class:`Dependency` records, skipping *exclude*.

    Raises:
        LockfileError: If a version is not valid semver.
    """
    deps: list[Dependency] = []
    for entry in entries:
        if entry.name in exclude:
            logger.debug('excluded_dependency', name=entry.name, version=entry.version)
            continue
        try:
            version = semver.Version.parse(entry.version)
        except ValueError as exc:
            raise LockfileError(f'Invalid version {entry.version!r} for {entry.name}: {exc}') from exc
        deps.append(Dependency(name=entry.name, version=version))
    return deps
