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

"""Tests for configuration loading, merging and policy building."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any

import pytest
from cdaudit._types import OutputFormat, ScoreKind
from cdaudit.checks._license_catalog import LicenseCatalog
from cdaudit.config import (
    CONFIG_FILENAME,
    DEFAULT_SCORE,
    VALID_CONFIG_KEYS,
    CdAuditConfig,
    Policy,
    _parse_config,
    build_policy,
    load_catalog,
    load_config,
    resolve_config,
)
from cdaudit.errors import ConfigError, UnknownLicenseError


class TestValidConfigKeys:
    """VALID_CONFIG_KEYS must match the CdAuditConfig dataclass."""

    def test_keys(self) -> None:
        """Test keys."""
        assert VALID_CONFIG_KEYS == frozenset({
            'score',
            'score_type',
            'ignore',
            'exclude',
            'approve_osi',
            'approve',
            'approve_all',
            'lax',
            'link',
            'output_format',
            'keep_going',
            'concurrency',
            'license_overrides',
        })


# ── _parse_config ────────────────────────────────────────────────────────


class TestParseConfig:
    """Tests for _parse_config()."""

    def test_empty_is_default(self) -> None:
        """Test empty is default."""
        assert _parse_config({}) == CdAuditConfig()

    def test_full(self) -> None:
        """Every key is read and lists become tuples."""
        cfg = _parse_config({
            'score': 60,
            'score_type': 'licensed',
            'ignore': ['ring'],
            'exclude': ['demo'],
            'approve_osi': True,
            'approve': ['MIT'],
            'approve_all': False,
            'lax': True,
            'link': True,
            'output_format': 'markdown',
            'keep_going': True,
            'concurrency': 2,
        })
        assert cfg == CdAuditConfig(
            score=60,
            score_type=ScoreKind.LICENSED,
            ignore=('ring',),
            exclude=('demo',),
            approve_osi=True,
            approve=('MIT',),
            lax=True,
            link=True,
            output_format=OutputFormat.MARKDOWN,
            keep_going=True,
            concurrency=2,
        )

    def test_unknown_key(self) -> None:
        """Unknown keys are rejected with the valid ones as a hint."""
        with pytest.raises(ConfigError, match=re.escape('Unknown key(s) in [cdaudit]: colour')) as excinfo:
            _parse_config({'colour': True})
        assert 'approve_osi' in excinfo.value.hint

    @pytest.mark.parametrize(
        ('raw', 'message'),
        [
            ({'score': -1}, 'cdaudit.score must be a non-negative integer'),
            ({'score': '80'}, 'cdaudit.score must be a non-negative integer'),
            ({'score': True}, 'cdaudit.score must be a non-negative integer'),
            ({'concurrency': 0}, 'cdaudit.concurrency must be a positive integer'),
            ({'lax': 'yes'}, 'cdaudit.lax must be a boolean'),
            ({'link': 1}, 'cdaudit.link must be a boolean'),
            ({'approve': 'MIT'}, 'cdaudit.approve must be a list of strings'),
            ({'ignore': ['a', 2]}, re.escape('cdaudit.ignore[1] must be a string')),
            ({'score_type': 'tool'}, 'cdaudit.score_type must be one of effective, licensed'),
            ({'output_format': 'html'}, 'cdaudit.output_format must be one of'),
        ],
    )
    def test_invalid_values(self, raw: dict[str, Any], message: str) -> None:
        """Wrongly typed values are rejected."""
        with pytest.raises(ConfigError, match=message):
            _parse_config(raw)

    def test_zero_score_allowed(self) -> None:
        """A score of 0 disables the threshold."""
        assert _parse_config({'score': 0}).score == 0

    def test_section_in_messages(self) -> None:
        """Test section in messages."""
        with pytest.raises(ConfigError, match=r'tool\.cdaudit\.lax'):
            _parse_config({'lax': 1}, section='tool.cdaudit')


# ── load_config ──────────────────────────────────────────────────────────


class TestLoadConfig:
    """Tests for load_config()."""

    def test_no_file_gives_defaults(self, tmp_path: Path) -> None:
        """Test no file gives defaults."""
        assert load_config(cwd=tmp_path) == CdAuditConfig()

    def test_discovers_in_cwd(self, tmp_path: Path) -> None:
        """cdaudit.toml in the directory is picked up."""
        (tmp_path / CONFIG_FILENAME).write_text('[cdaudit]\nscore = 50\napprove_osi = true\n')
        cfg = load_config(cwd=tmp_path)
        assert cfg.score == 50
        assert cfg.approve_osi is True

    def test_tool_section(self, tmp_path: Path) -> None:
        """[tool.cdaudit] is accepted too."""
        path = tmp_path / 'custom.toml'
        path.write_text('[tool.cdaudit]\napprove = ["MIT"]\n')
        assert load_config(path).approve == ('MIT',)

    def test_file_without_section(self, tmp_path: Path) -> None:
        """Test file without section."""
        path = tmp_path / 'other.toml'
        path.write_text('[tool.other]\nx = 1\n')
        assert load_config(path) == CdAuditConfig()

    def test_explicit_path_missing(self, tmp_path: Path) -> None:
        """An explicit config path must exist."""
        with pytest.raises(ConfigError, match='Config file not found'):
            load_config(tmp_path / 'nope.toml')

    def test_invalid_toml(self, tmp_path: Path) -> None:
        """Test invalid toml."""
        path = tmp_path / CONFIG_FILENAME
        path.write_text('[cdaudit\n')
        with pytest.raises(ConfigError, match='Invalid TOML'):
            load_config(path)

    def test_section_not_table(self, tmp_path: Path) -> None:
        """Test section not table."""
        path = tmp_path / CONFIG_FILENAME
        path.write_text('cdaudit = 3\n')
        with pytest.raises(ConfigError, match='cdaudit must be a table'):
            load_config(path)

    def test_errors_name_the_section(self, tmp_path: Path) -> None:
        """Test errors name the section."""
        path = tmp_path / CONFIG_FILENAME
        path.write_text('[tool.cdaudit]\nscore = -3\n')
        with pytest.raises(ConfigError, match=r'tool\.cdaudit\.score'):
            load_config(path)

    def test_license_overrides_relative_to_file(self, tmp_path: Path) -> None:
        """A relative license_overrides path is taken from the config file's directory."""
        path = tmp_path / 'conf' / CONFIG_FILENAME
        path.parent.mkdir()
        path.write_text('[cdaudit]\nlicense_overrides = "extra.toml"\n')
        assert load_config(path).license_overrides == tmp_path / 'conf' / 'extra.toml'

    def test_license_overrides_must_be_string(self, tmp_path: Path) -> None:
        """Test license overrides must be string."""
        path = tmp_path / CONFIG_FILENAME
        path.write_text('[cdaudit]\nlicense_overrides = 3\n')
        with pytest.raises(ConfigError, match='license_overrides must be a path string'):
            load_config(path)


# ── resolve_config ───────────────────────────────────────────────────────


class TestResolveConfig:
    """Tests for resolve_config()."""

    def test_none_keeps_file_value(self) -> None:
        """Test none keeps file value."""
        base = CdAuditConfig(score=50, lax=True)
        assert resolve_config(base, score=None, lax=None) == base

    def test_scalars_replace(self) -> None:
        """Test scalars replace."""
        base = CdAuditConfig(score=50)
        merged = resolve_config(base, score=0, output_format=OutputFormat.CSV)
        assert merged.score == 0
        assert merged.output_format is OutputFormat.CSV

    def test_lists_append(self) -> None:
        """Command-line lists extend the file's lists."""
        base = CdAuditConfig(approve=('MIT',), exclude=('demo',))
        merged = resolve_config(base, approve=['Apache-2.0'], exclude=None)
        assert merged.approve == ('MIT', 'Apache-2.0')
        assert merged.exclude == ('demo',)

    def test_false_flag_is_an_override(self) -> None:
        """Only None means not given."""
        assert resolve_config(CdAuditConfig(lax=True), lax=False).lax is False

    def test_unknown_setting(self) -> None:
        """Test unknown setting."""
        with pytest.raises(ConfigError, match='Unknown setting'):
            resolve_config(CdAuditConfig(), colour=True)


# ── build_policy ─────────────────────────────────────────────────────────


class TestBuildPolicy:
    """Tests for build_policy()."""

    def test_defaults(self) -> None:
        """Default settings: threshold on, no license policy."""
        policy = build_policy(CdAuditConfig())
        assert policy == Policy(required_score=DEFAULT_SCORE)
        assert policy.has_score_check
        assert not policy.has_license_checks

    def test_full(self) -> None:
        """Test full."""
        config = CdAuditConfig(
            score=0,
            score_type=ScoreKind.LICENSED,
            ignore=('ring', 'ring'),
            approve_osi=True,
            approve=('MIT', 'Apache-2.0'),
            lax=True,
        )
        policy = build_policy(config)
        assert policy == Policy(
            required_score=0,
            score_kind=ScoreKind.LICENSED,
            ignore=frozenset({'ring'}),
            approve_osi=True,
            approved_licenses=frozenset({'MIT', 'Apache-2.0'}),
            lax=True,
        )
        assert not policy.has_score_check
        assert policy.has_license_checks

    def test_approve_all_registers_no_check(self) -> None:
        """approve_all on its own leaves the run without license checks."""
        policy = build_policy(CdAuditConfig(approve_all=True))
        assert policy.approve_all
        assert not policy.has_license_checks

    def test_full_spdx_list_approvable(self) -> None:
        """Any identifier on the SPDX license list can be approved."""
        policy = build_policy(CdAuditConfig(approve=('CDLA-Permissive-2.0', 'Beerware')))
        assert policy.approved_licenses == frozenset({'CDLA-Permissive-2.0', 'Beerware'})


    def test_unknown_approved_license(self) -> None:
        """Approved identifiers must be exact SPDX IDs."""
        with pytest.raises(UnknownLicenseError, match='Unknown license: Bogus-1.0'):
            build_policy(CdAuditConfig(approve=('Bogus-1.0',)))

    def test_wrong_case_suggests_canonical(self) -> None:
        """Test wrong case suggests canonical."""
        with pytest.raises(UnknownLicenseError) as excinfo:
            build_policy(CdAuditConfig(approve=('mit',)))
        assert excinfo.value.hint == "Did you mean 'MIT'?"


# ── load_catalog ─────────────────────────────────────────────────────────


class TestLoadCatalog:
    """Tests for load_catalog()."""

    def test_default_is_shared(self) -> None:
        """Without overrides the bundled catalog is returned."""
        assert load_catalog(CdAuditConfig()) is LicenseCatalog.default()

    def test_overrides_merged(self, tmp_path: Path) -> None:
        """Override entries are known and approvable."""
        path = tmp_path / 'extra.toml'
        path.write_text('[licenses."Inhouse-1.0"]\nname = "In-house"\n')
        catalog = load_catalog(CdAuditConfig(license_overrides=path))
        assert catalog.known('Inhouse-1.0')
        assert not LicenseCatalog.default().known('Inhouse-1.0')
        policy = build_policy(CdAuditConfig(approve=('Inhouse-1.0',)), catalog)
        assert policy.approved_licenses == frozenset({'Inhouse-1.0'})

    def test_missing_file(self, tmp_path: Path) -> None:
        """Test missing file."""
        with pytest.raises(ConfigError, match='License overrides file not found'):
            load_catalog(CdAuditConfig(license_overrides=tmp_path / 'absent.toml'))

    def test_invalid_toml(self, tmp_path: Path) -> None:
        """Test invalid toml."""
        path = tmp_path / 'extra.toml'
        path.write_text('[licenses\n')
        with pytest.raises(ConfigError, match='Invalid TOML'):
            load_catalog(CdAuditConfig(license_overrides=path))

    def test_invalid_data_is_config_error(self, tmp_path: Path) -> None:
        """Validation errors surface as a ConfigError with the details as hint."""
        path = tmp_path / 'extra.toml'
        path.write_text('[licenses.Foo]\naliases = ["mit"]\n')
        with pytest.raises(ConfigError, match='Invalid license overrides') as excinfo:
            load_catalog(CdAuditConfig(license_overrides=path))
        assert 'shadows license identifier' in excinfo.value.hint
