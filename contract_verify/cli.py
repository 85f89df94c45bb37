#!/usr/bin/env python3
"""contract_verify/cli.py: command-line driver for contract-verify.

Usage examples
--------------
    # Check contracts from cppcheck dumps (cppcheck --dump Qx.h)
    contract-verify check src/contracts/Qx.h.dump

    # Sibling contracts may be referenced by scope prefix
    contract-verify check MyContract.h.dump --contracts-dir src/contracts

    # Check a recorded event stream (one JSON event per line)
    contract-verify check-events MyContract.events.jsonl

    # Show the built-in allow-lists
    contract-verify allowlist --kind io-types

Exit codes
----------
    0   Every module passed.
    1   At least one module has violations.
    2   Infrastructure failure (missing file, missing cppcheckdata, bad
        config) or a module aborted by an engine error.

``python -m contract_verify`` runs :func:`main` as well.
"""

from __future__ import annotations

import argparse
import functools
import logging
import sys
import textwrap
import time
from pathlib import Path
from typing import Iterator, List, Optional, Sequence, TextIO

from contract_verify import __version__
from contract_verify.config import VerifierConfig, load_config
from contract_verify.dump_walker import contract_name_for, walk_configuration
from contract_verify.errors import ConfigError
from contract_verify.events import Event, read_events
from contract_verify.registry import AllowListRegistry
from contract_verify.reporter import ValidationResult, write_results
from contract_verify.validator import ModuleInput, validate_batch

_log = logging.getLogger("contract_verify")

EXIT_OK: int = 0
EXIT_VIOLATION: int = 1
EXIT_INFRA: int = 2


# ===========================================================================
# Utility helpers
# ===========================================================================

def _configure_logging(verbosity: int) -> None:
    """Set up the ``contract_verify`` logger: 0 → WARNING, 1 → INFO, 2+ → DEBUG."""
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s [%(levelname)-5.5s] %(name)s: %(message)s",
            datefmt="%H:%M:%S",
        )
    )
    root = logging.getLogger("contract_verify")
    root.setLevel(level)
    root.addHandler(handler)


def _resolve_path(raw: str, label: str = "file") -> Path:
    """Absolute path of an input named on the command line.

    A missing input ends the run with ``EXIT_INFRA``.  Inputs that exist but
    cannot be read are left to the worker, which records them as an aborted
    module.
    """
    path = Path(raw).expanduser().resolve()
    if path.exists():
        return path
    _log.error("%s not found: %s", label, path)
    raise SystemExit(EXIT_INFRA)


def _open_output(dest: Optional[str]) -> TextIO:
    """Report stream: stdout for ``None`` / ``-``, else *dest* (parents created)."""
    if dest in (None, "-"):
        return sys.stdout
    target = Path(dest).expanduser().resolve()
    target.parent.mkdir(parents=True, exist_ok=True)
    return target.open("w", encoding="utf-8")


def _import_cppcheckdata():
    """Load cppcheck's ``cppcheckdata`` addon module for ``check``.

    ``check-events`` and ``allowlist`` never call this, so they run on a
    machine without cppcheck.
    """
    try:
        import cppcheckdata  # type: ignore[import-untyped]
    except ImportError:
        _log.error(
            "'check' needs cppcheckdata, which ships with cppcheck; "
            "put cppcheck's addons directory on PYTHONPATH or use check-events"
        )
        raise SystemExit(EXIT_INFRA)
    return cppcheckdata


def _build_registry(args: argparse.Namespace) -> AllowListRegistry:
    try:
        config: VerifierConfig = load_config(args.config)
        config = config.merged(
            scope_prefixes=args.scope_prefix or (),
            io_types=args.io_type or (),
            contracts_dir=args.contracts_dir,
        )
        return config.build_registry()
    except ConfigError as exc:
        _log.error("%s", exc)
        raise SystemExit(EXIT_INFRA)


def _finish(results: List[ValidationResult], args: argparse.Namespace,
            started: float) -> int:
    out = _open_output(args.output)
    colour = False if (args.no_colour or out is not sys.stdout) else None
    try:
        write_results(results, args.format, out, colour=colour)
    finally:
        if out is not sys.stdout:
            out.close()

    _log.info("Checked %d module(s) in %.3fs", len(results), time.monotonic() - started)
    if any(r.aborted for r in results):
        return EXIT_INFRA
    if any(not r.passed for r in results):
        return EXIT_VIOLATION
    return EXIT_OK


# ===========================================================================
# Sub-command implementations
# ===========================================================================

def cmd_check(args: argparse.Namespace) -> int:
    """Validate contracts from cppcheck ``.dump`` files.

    The source file analysed is the dump path without its ``.dump``
    suffix unless ``--source`` is given; tokens from other files (the
    framework headers) are not checked.
    """
    cppcheckdata = _import_cppcheckdata()
    registry = _build_registry(args)
    started = time.monotonic()

    if args.source and len(args.dump_files) > 1:
        _log.error("--source can only be used with a single dump file")
        return EXIT_INFRA

    modules: List[ModuleInput] = []
    for raw in args.dump_files:
        dump_path = _resolve_path(raw, "dump file")
        source = args.source or (
            str(dump_path)[: -len(".dump")] if dump_path.suffix == ".dump" else None
        )
        contract = contract_name_for(str(dump_path))

        _log.info("Parsing dump file: %s", dump_path)
        try:
            data = cppcheckdata.parsedump(str(dump_path))
        except Exception as exc:
            _log.error("Failed to parse dump file %s: %s", dump_path, exc)
            return EXIT_INFRA

        configurations = list(getattr(data, "configurations", []) or [])
        if not configurations:
            _log.warning("%s contains no configurations", dump_path)
        for cfg in configurations:
            name = contract
            if len(configurations) > 1:
                name = f"{contract}[{getattr(cfg, 'name', '') or 'default'}]"
            modules.append(ModuleInput(
                contract=name,
                events=functools.partial(walk_configuration, cfg, source),
            ))

    results = validate_batch(modules, registry, max_workers=args.jobs)
    return _finish(results, args, started)


def _file_events(path: str) -> Iterator[Event]:
    if path == "-":
        yield from read_events(sys.stdin)
        return
    with open(path, encoding="utf-8") as fh:
        yield from read_events(fh)


def cmd_check_events(args: argparse.Namespace) -> int:
    """Validate JSON-lines event streams."""
    registry = _build_registry(args)
    started = time.monotonic()

    modules: List[ModuleInput] = []
    for raw in args.event_files:
        path = raw if raw == "-" else str(_resolve_path(raw, "event file"))
        contract = "<stdin>" if raw == "-" else contract_name_for(path)
        modules.append(ModuleInput(
            contract=contract,
            events=functools.partial(_file_events, path),
        ))

    results = validate_batch(modules, registry, max_workers=args.jobs)
    return _finish(results, args, started)


def cmd_allowlist(args: argparse.Namespace) -> int:
    """Print the effective allow-lists, one entry per line."""
    registry = _build_registry(args)
    tables = {
        "macros": registry.known_macro_names,
        "prefixes": registry.scope_prefixes,
        "io-types": registry.io_types,
    }
    kinds = [args.kind] if args.kind else list(tables)
    out = _open_output(args.output)
    try:
        for kind in kinds:
            if len(kinds) > 1:
                out.write(f"# {kind}\n")
            for entry in sorted(tables[kind]):
                out.write(entry + "\n")
    finally:
        if out is not sys.stdout:
            out.close()
    return EXIT_OK


# ===========================================================================
# Argument parser construction
# ===========================================================================

def _build_parser() -> argparse.ArgumentParser:
    """Construct the full CLI argument parser with subcommands."""
    parser = argparse.ArgumentParser(
        prog="contract-verify",
        description=(
            "Check smart-contract sources against the contract authoring\n"
            "rules: declaration placement, IO struct field types, scope\n"
            "prefixes and sanctioned macros."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent("""\
            examples:
              contract-verify check Qx.h.dump
              contract-verify check MyContract.h.dump --contracts-dir src/contracts
              contract-verify check-events MyContract.events.jsonl -f json
        """),
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (-v info, -vv debug).",
    )

    subparsers = parser.add_subparsers(
        dest="command",
        title="commands",
        metavar="<command>",
    )

    def _add_registry_args(p: argparse.ArgumentParser) -> None:
        g = p.add_argument_group("allow-lists")
        g.add_argument(
            "-c", "--config",
            default=None,
            metavar="FILE",
            help="JSON configuration file.",
        )
        g.add_argument(
            "--scope-prefix",
            action="append",
            metavar="NAME",
            help="Accept NAME:: as a scope prefix (repeatable).",
        )
        g.add_argument(
            "--io-type",
            action="append",
            metavar="TYPE",
            help="Accept TYPE as an input/output field type (repeatable).",
        )
        g.add_argument(
            "--contracts-dir",
            default=None,
            metavar="DIR",
            help="Accept every contract found in DIR as a scope prefix.",
        )

    def _add_output_args(p: argparse.ArgumentParser) -> None:
        p.add_argument(
            "-o", "--output",
            default=None,
            metavar="FILE",
            help='Output file ("-" or omit for stdout).',
        )

    def _add_check_args(p: argparse.ArgumentParser) -> None:
        _add_output_args(p)
        p.add_argument(
            "-f", "--format",
            choices=["text", "gcc", "json"],
            default="text",
            help="Output format (default: text).",
        )
        p.add_argument(
            "--no-colour", "--no-color",
            dest="no_colour",
            action="store_true",
            help="Disable coloured text output.",
        )
        p.add_argument(
            "-j", "--jobs",
            type=int,
            default=None,
            metavar="N",
            help="Modules validated in parallel (default: min(cpus, 4)).",
        )
        _add_registry_args(p)

    # --- check -------------------------------------------------------------
    p_check = subparsers.add_parser(
        "check",
        help="Check contracts from cppcheck dump files.",
        description="Walk each cppcheck .dump file and check its contract.",
    )
    p_check.add_argument("dump_files", nargs="+", metavar="DUMP",
                         help="cppcheck dump file(s).")
    p_check.add_argument(
        "--source",
        default=None,
        metavar="FILE",
        help="Source file to check (default: dump path without .dump).",
    )
    _add_check_args(p_check)
    p_check.set_defaults(func=cmd_check)

    # --- check-events ------------------------------------------------------
    p_events = subparsers.add_parser(
        "check-events",
        help="Check JSON-lines event streams.",
        description="Run the rule engine over recorded walker events.",
    )
    p_events.add_argument("event_files", nargs="+", metavar="EVENTS",
                          help='Event file(s), "-" for stdin.')
    _add_check_args(p_events)
    p_events.set_defaults(func=cmd_check_events)

    # --- allowlist ---------------------------------------------------------
    p_allow = subparsers.add_parser(
        "allowlist",
        help="Print the effective allow-lists.",
    )
    p_allow.add_argument(
        "--kind",
        choices=["macros", "prefixes", "io-types"],
        default=None,
        help="Only print this table.",
    )
    _add_output_args(p_allow)
    _add_registry_args(p_allow)
    p_allow.set_defaults(func=cmd_allowlist)

    return parser


# ===========================================================================
# Main entry point
# ===========================================================================

def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the CLI and return its exit code."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    _configure_logging(args.verbose)

    if not hasattr(args, "func"):
        parser.print_help(sys.stderr)
        return EXIT_INFRA

    try:
        return args.func(args)
    except KeyboardInterrupt:
        _log.info("Interrupted by user.")
        return 130
    except SystemExit as exc:
        return exc.code if isinstance(exc.code, int) else EXIT_INFRA
    except Exception as exc:
        _log.error("Unhandled exception: %s", exc, exc_info=True)
        return EXIT_INFRA


if __name__ == "__main__":
    raise SystemExit(main())
