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

r"""Render evaluated dependencies as Text, CSV or Markdown.

Columns, in order::

    Name │ Version │ Declared license │ [License check] │ Score │ [Score check]
                                          only with          CSV only, with
                                          license checks     a score threshold

Score-cell decoration is looked up in :data:`_SCORE_DECORATIONS`, keyed
by ``(format, link, score_check)``::

    ┌──────────┬──────┬─────────────┬──────────────────────────────────────┐
    │ Format   │ Link │ Score check │ Cell                                 │
    ├──────────┼──────┼─────────────┼──────────────────────────────────────┤
    │ markdown │ yes  │ no          │ [90](provenance)                     │
    │ markdown │ yes  │ yes         │ [![90](badge)](provenance)           │
    │ markdown │ no   │ yes         │ 90 ✅                                │
    │ text     │ no   │ yes         │ 90 ✅                                │
    │ text     │ yes  │ yes         │ 90 ✅ (provenance)                   │
    │ (other)  │      │             │ 90                                   │
    └──────────┴──────┴─────────────┴──────────────────────────────────────┘

Check cells are ``+``/``-``/empty in CSV and ✅/❌/➖ elsewhere.  The
badge colour and glyph follow the score outcome.

Usage::

    from cdaudit.report import ReportOptions, format_report, render

    options = ReportOptions.from_policy(policy, link=True)
    render(OutputFormat.MARKDOWN, deps, options)
    text = format_report(OutputFormat.CSV, deps, options)
"""

from __future__ import annotations

import csv
import sys
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from io import StringIO
from typing import TextIO

from rich import box
from rich.cells import cell_len
from rich.console import Console
from rich.table import Table
from rich.text import Text

from cdaudit._types import Outcome, OutputFormat, ScoreKind
from cdaudit.checks._license_catalog import LicenseCatalog
from cdaudit.config import Policy
from cdaudit.dependency import Dependency
from cdaudit.spdx_expr import ParseError

__all__ = [
    'BADGE_COLORS',
    'CSV_MARKS',
    'GLYPHS',
    'ReportOptions',
    'badge_url',
    'build_rows',
    'decorate_score',
    'format_report',
    'provenance_url',
    'render',
    'shield_escape',
]

PROVENANCE_URL = 'https://clearlydefined.io/definitions/crate/cratesio/-/{name}/{version}'
BADGE_URL = 'https://img.shields.io/badge/{name}_{version}-{score}-{color}'

GLYPHS: dict[Outcome, str] = {
    Outcome.PASS: '✅',
    Outcome.FAIL: '❌',
    Outcome.IGNORE: '➖',
}

CSV_MARKS: dict[Outcome, str] = {
    Outcome.PASS: '+',
    Outcome.FAIL: '-',
    Outcome.IGNORE: '',
}

BADGE_COLORS: dict[Outcome, str] = {
    Outcome.PASS: 'success',
    Outcome.FAIL: 'critical',
    Outcome.IGNORE: 'inactive',
}

_CHECK_STYLES: dict[Outcome, str] = {
    Outcome.PASS: 'green',
    Outcome.FAIL: 'red',
    Outcome.IGNORE: 'dim',
}


@dataclass(frozen=True)
class ReportOptions:
    """Flags that shape the report.

    Attributes:
        link: Add provenance links (Markdown badges when a score
            threshold is active).
        license_check: Show the license-check column.
        score_check: A score threshold is active.
        lax: Parse declared licenses in lax mode.
        score_kind: Which score the Score column shows.
        catalog: Identifier oracle; defaults to the bundled catalog.
    """

    link: bool = False
    license_check: bool = False
    score_check: bool = False
    lax: bool = False
    score_kind: ScoreKind = ScoreKind.EFFECTIVE
    catalog: LicenseCatalog | None = None

    @classmethod
    def from_policy(
        cls,
        policy: Policy,
        *,
        link: bool = False,
        catalog: LicenseCatalog | None = None,
    ) -> ReportOptions:
        """Derive report options from the evaluation policy."""
        return cls(
            link=link,
            license_check=policy.has_license_checks,
            score_check=policy.has_score_check,
            lax=policy.lax,
            score_kind=policy.score_kind,
            catalog=catalog,
        )


# ── URLs ─────────────────────────────────────────────────────────────


def provenance_url(dep: Dependency) -> str:
    """Return the ClearlyDefined definition page for *dep*."""
    return PROVENANCE_URL.format(name=dep.name, version=dep.version)


def shield_escape(value: str) -> str:
    """Escape ``-`` and ``_`` for a shields.io static badge path."""
    return value.replace('-', '--').replace('_', '__')


def badge_url(dep: Dependency, score: str) -> str:
    """Return a shields.io badge URL coloured by the score outcome."""
    return BADGE_URL.format(
        name=shield_escape(dep.name),
        version=shield_escape(str(dep.version)),
        score=score,
        color=BADGE_COLORS[dep.passed_score],
    )


# ── Cells ────────────────────────────────────────────────────────────

ScoreFormatter = Callable[[Dependency, str], str]


def _bare(dep: Dependency, score: str) -> str:  # noqa: ARG001
    return score


def _markdown_link(dep: Dependency, score: str) -> str:
    return f'[{score}]({provenance_url(dep)})'


def _markdown_badge(dep: Dependency, score: str) -> str:
    return f'[![{score}]({badge_url(dep, score)})]({provenance_url(dep)})'


def _with_glyph(dep: Dependency, score: str) -> str:
    return f'{score} {GLYPHS[dep.passed_score]}'


def _with_glyph_and_url(dep: Dependency, score: str) -> str:
    return f'{score} {GLYPHS[dep.passed_score]} ({provenance_url(dep)})'


_SCORE_DECORATIONS: dict[tuple[OutputFormat, bool, bool], ScoreFormatter] = {
    (OutputFormat.MARKDOWN, True, False): _markdown_link,
    (OutputFormat.MARKDOWN, True, True): _markdown_badge,
    (OutputFormat.MARKDOWN, False, True): _with_glyph,
    (OutputFormat.TEXT, False, True): _with_glyph,
    (OutputFormat.TEXT, True, True): _with_glyph_and_url,
}


def decorate_score(fmt: OutputFormat, dep: Dependency, score: str, *, link: bool, score_check: bool) -> str:
    """Return the Score cell for *dep* in format *fmt*."""
    formatter = _SCORE_DECORATIONS.get((fmt, link, score_check), _bare)
    return formatter(dep, score)


def _check_cell(fmt: OutputFormat, outcome: Outcome) -> str:
    if fmt is OutputFormat.CSV:
        return CSV_MARKS[outcome]
    return GLYPHS[outcome]


def _license_cell(fmt: OutputFormat, dep: Dependency, options: ReportOptions) -> str:
    declared = dep.declared_license
    if declared is None:
        return ''
    try:
        return str(declared.expression(lax=options.lax, catalog=options.catalog))
    except ParseError as exc:
        if fmt is OutputFormat.MARKDOWN:
            detail = exc.detail.replace('|', '\\|')
            return f'`invalid: {detail}`'
        return f'invalid: {exc.detail}'


def build_rows(
    fmt: OutputFormat,
    dependencies: Sequence[Dependency],
    options: ReportOptions,
) -> tuple[list[str], list[list[str]]]:
    """Return the header and the cell strings for every dependency."""
    show_score_check = fmt is OutputFormat.CSV and options.score_check

    header = ['Name', 'Version', 'Declared license']
    if options.license_check:
        header.append('License check')
    header.append('Score')
    if show_score_check:
        header.append('Score check')

    rows: list[list[str]] = []
    for dep in dependencies:
        score = str(dep.score(options.score_kind))
        row = [dep.name, str(dep.version), _license_cell(fmt, dep, options)]
        if options.license_check:
            row.append(_check_cell(fmt, dep.passed_license))
        row.append(decorate_score(fmt, dep, score, link=options.link, score_check=options.score_check))
        if show_score_check:
            row.append(_check_cell(fmt, dep.passed_score))
        rows.append(row)
    return header, rows


# ── Backends ─────────────────────────────────────────────────────────


def _csv_report(header: list[str], rows: list[list[str]]) -> str:
    buf = StringIO()
    writer = csv.writer(buf, lineterminator='\n')
    writer.writerow(header)
    writer.writerows(rows)
    return buf.getvalue()


def _markdown_report(header: list[str], rows: list[list[str]]) -> str:
    widths = [cell_len(h) for h in header]
    for row in rows:
        for i, cell in enumerate(row):
            widths[i] = max(widths[i], cell_len(cell))

    def _row_str(cells: Sequence[str]) -> str:
        parts = [f' {cell}{" " * (widths[i] - cell_len(cell))} ' for i, cell in enumerate(cells)]
        return '|' + '|'.join(parts) + '|'

    sep = '|' + '|'.join('-' * (w + 2) for w in widths) + '|'
    lines = [_row_str(header), sep]
    lines.extend(_row_str(row) for row in rows)
    return '\n'.join(lines) + '\n'


def _text_table(header: list[str], rows: list[list[str]], dependencies: Sequence[Dependency]) -> tuple[Table, int]:
    """Build the rich table and the console width it needs unwrapped."""
    table = Table(box=box.SQUARE, show_header=True, header_style='bold')
    widths = [cell_len(h) for h in header]
    for name in header:
        table.add_column(name, no_wrap=True)
    for dep, row in zip(dependencies, rows, strict=True):
        cells: list[Text] = []
        for i, cell in enumerate(row):
            widths[i] = max(widths[i], cell_len(cell))
            style = ''
            if header[i] == 'License check':
                style = _CHECK_STYLES[dep.passed_license]
            cells.append(Text(cell, style=style))
        table.add_row(*cells)
    needed = sum(w + 2 for w in widths) + len(widths) + 1
    return table, needed


def _print_text_report(
    header: list[str],
    rows: list[list[str]],
    dependencies: Sequence[Dependency],
    file: TextIO,
    *,
    color: bool | None = None,
) -> None:
    table, needed = _text_table(header, rows, dependencies)
    console = Console(
        file=file,
        force_terminal=color,
        no_color=color is False,
        width=needed + 8,
        highlight=False,
    )
    console.print(table)
    console.print(f'{len(dependencies)} dependencies processed', markup=False)


def format_report(
    fmt: OutputFormat,
    dependencies: Sequence[Dependency],
    options: ReportOptions,
) -> str:
    """Render the report to a string (no colour codes)."""
    header, rows = build_rows(fmt, dependencies, options)
    if fmt is OutputFormat.CSV:
        return _csv_report(header, rows)
    if fmt is OutputFormat.MARKDOWN:
        return _markdown_report(header, rows)
    buf = StringIO()
    _print_text_report(header, rows, dependencies, buf, color=False)
    return buf.getvalue()


def render(
    fmt: OutputFormat,
    dependencies: Sequence[Dependency],
    options: ReportOptions,
    *,
    file: TextIO | None = None,
) -> None:
    """Write the report to *file* (default: stdout).

    The Text format is coloured when *file* is a terminal.
    """
    out = file or sys.stdout
    if fmt is OutputFormat.TEXT:
        header, rows = build_rows(fmt, dependencies, options)
        _print_text_report(header, rows, dependencies, out)
        return
    out.write(format_report(fmt, dependencies, options))
    out.flush()
