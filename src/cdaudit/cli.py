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

"""Command-line entry point.

Pipeline::

    Cargo.lock ─► exclude ─► fetch (async) ─► evaluate ─► sort ─► [failed only] ─► render
                                                                                  │
                                                   hint (stderr) ◄── no license checks
                                                   exit status   ◄── summary

Exit codes:
    0  Every dependency passed (ignored ones count as passing).
    1  At least one dependency failed a score or license check.
    2  Configuration, lockfile or fetch error.

Usage::

    cdaudit --approve-osi -s 75
    cdaudit -L MIT -L Apache-2.0 -o markdown --link > DEPENDENCIES.md
    cargo cdaudit --lax --approve-osi      # as a cargo subcommand
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from collections.abc import Sequence
from pathlib import Path

from cdaudit import __version__
from cdaudit._types import OutputFormat, ScoreKind
from cdaudit.checks._clearlydefined import fetch_all
from cdaudit.checks._lockfile import dependencies_from_lock, parse_cargo_lock, resolve_lockfile_path
from cdaudit.config import CONFIG_FILENAME, build_policy, load_catalog, load_config, resolve_config
from cdaudit.errors import CdAuditError
from cdaudit.evaluate import build_checks, evaluate, failed_only, sort_dependencies, summarize
from cdaudit.logging import configure_logging, get_logger
from cdaudit.report import ReportOptions, render

__all__ = ['NO_LICENSE_POLICY_HINT', 'build_parser', 'main']

log = get_logger('cdaudit.cli')

NO_LICENSE_POLICY_HINT = (
    'You have no license checks. Try --approve-osi, --approve-all, '
    'or provide a manual selection using e.g. --approve <spdx-license>'
)

# Name cargo passes as the first argument to ``cargo-cdaudit``.
_CARGO_SUBCOMMAND = 'cdaudit'


def _non_negative_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f'invalid integer: {value!r}') from None
    if number < 0:
        raise argparse.ArgumentTypeError(f'must be >= 0, got {number}')
    return number


def _positive_int(value: str) -> int:
    number = _non_negative_int(value)
    if number == 0:
        raise argparse.ArgumentTypeError('must be >= 1')
    return number


def build_parser() -> argparse.ArgumentParser:
    """Return the ``cdaudit`` argument parser.

    Options that may also come from ``cdaudit.toml`` default to
    ``None`` so an omitted flag keeps the file value.
    """
    parser = argparse.ArgumentParser(
        prog='cdaudit',
        description='Check Cargo dependencies against ClearlyDefined license and score data.',
    )
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    parser.add_argument(
        '-i',
        '--input',
        type=Path,
        default=Path('Cargo.lock'),
        help='Lockfile to read (default: Cargo.lock, relative to $CARGO_MANIFEST_DIR if set).',
    )
    parser.add_argument(
        '-c',
        '--config',
        type=Path,
        default=None,
        help=f'Configuration file (default: ./{CONFIG_FILENAME} if present).',
    )

    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument('-v', '--verbose', action='count', default=0, help='Verbose mode, repeat to increase.')
    verbosity.add_argument('-q', '--quiet', action='store_true', help="Don't show any results.")
    parser.add_argument('--json-log', action='store_true', help='Log as JSON lines on stderr.')

    parser.add_argument(
        '-s',
        '--score',
        type=_non_negative_int,
        default=None,
        help='Score required to pass (default: 80, 0 disables the check).',
    )
    parser.add_argument(
        '-t',
        '--score-type',
        choices=[k.value for k in ScoreKind],
        default=None,
        help='Which score to test (default: effective).',
    )
    parser.add_argument('-f', '--failed', action='store_true', help='Show only failed dependencies.')
    parser.add_argument(
        '-x',
        '--exclude',
        action='append',
        default=None,
        metavar='NAME',
        help='Exclude a dependency completely (repeatable).',
    )
    parser.add_argument(
        '-n',
        '--ignore',
        action='append',
        default=None,
        metavar='NAME',
        help='Report but do not test a dependency (repeatable).',
    )
    parser.add_argument(
        '-o',
        '--output-format',
        choices=[f.value for f in OutputFormat],
        default=None,
        help='Report format (default: text).',
    )
    parser.add_argument('-l', '--link', action='store_true', default=None, help='Link scores to ClearlyDefined.')
    parser.add_argument('--lax', action='store_true', default=None, help='Lax parsing of SPDX expressions.')
    parser.add_argument('--approve-all', action='store_true', default=None, help='Approve all licenses.')
    parser.add_argument(
        '--approve-osi',
        action='store_true',
        default=None,
        help='Pass if a dependency has at least one OSI approved license.',
    )
    parser.add_argument(
        '-L',
        '--approve',
        action='append',
        default=None,
        metavar='SPDX_ID',
        help='Pass if a dependency has at least one of the approved licenses (repeatable).',
    )
    parser.add_argument(
        '--keep-going',
        action='store_true',
        default=None,
        help='Treat failed lookups as missing provenance instead of aborting.',
    )
    parser.add_argument(
        '--concurrency',
        type=_positive_int,
        default=None,
        help='Maximum concurrent ClearlyDefined requests (default: 8).',
    )
    parser.add_argument(
        '--license-overrides',
        type=Path,
        default=None,
        metavar='PATH',
        help='TOML file of extra licenses and aliases merged over the bundled SPDX catalog.',
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Run cdaudit and return the process exit status."""
    raw_args = list(sys.argv[1:] if argv is None else argv)
    if raw_args[:1] == [_CARGO_SUBCOMMAND]:
        raw_args = raw_args[1:]
    args = build_parser().parse_args(raw_args)

    configure_logging(verbosity=args.verbose, quiet=args.quiet, json_log=args.json_log)

    try:
        config = resolve_config(
            load_config(args.config),
            score=args.score,
            score_type=ScoreKind(args.score_type) if args.score_type else None,
            ignore=args.ignore,
            exclude=args.exclude,
            approve_osi=args.approve_osi,
            approve=args.approve,
            approve_all=args.approve_all,
            lax=args.lax,
            link=args.link,
            output_format=OutputFormat(args.output_format) if args.output_format else None,
            keep_going=args.keep_going,
            concurrency=args.concurrency,
            license_overrides=args.license_overrides,
        )
        catalog = load_catalog(config)
        policy = build_policy(config, catalog)

        lock_path = resolve_lockfile_path(args.input)
        log.info('loading_lockfile', path=str(lock_path))
        entries = parse_cargo_lock(lock_path)
        deps = dependencies_from_lock(entries, config.exclude)
        log.info('loaded_dependencies', count=len(deps), excluded=len(entries) - len(deps))

        deps = asyncio.run(fetch_all(deps, concurrency=config.concurrency, keep_going=config.keep_going))
    except CdAuditError as exc:
        log.error('cdaudit_error', error=exc.message, hint=exc.hint or None)
        return 2

    checks = build_checks(policy, catalog)
    deps = sort_dependencies(evaluate(deps, policy, checks, catalog=catalog, log=log))

    if not args.quiet:
        shown = deps
        if args.failed:
            shown = failed_only(deps)
            log.info('failed_dependencies', count=len(shown), required_score=policy.required_score)
        options = ReportOptions.from_policy(policy, link=config.link, catalog=catalog)
        render(config.output_format, shown, options)

    if not args.quiet and not policy.has_license_checks:
        print(NO_LICENSE_POLICY_HINT, file=sys.stderr)

    summary = summarize(deps)
    if summary.passed:
        return 0
    log.error(
        'dependencies_failed',
        failed=summary.failed,
        total=summary.total,
        summary=f'{summary.failed} dependencies out of {summary.total} failed at least one of the tests',
    )
    return 1
