"""
Command line entry point — wires settings, trust store and value sets, then decodes.

Composition root: loads configuration, builds the concrete adapters
(trust store from a trust-list file, value-set registry) and hands them to
the decode pipeline. This is the ONLY place where settings are read and
files are opened; the pipeline itself is pure.

Exit codes:
  0  decoded; signature valid or not checked
  1  the token could not be decoded
  2  configuration problem (settings, trust list, value sets, input file)
  3  decoded, but the signature is invalid or its key is unknown
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import TextIO

import structlog
from pydantic import ValidationError

from dcc_decode import __version__
from dcc_decode.adapters.trust_list import load_trust_list
from dcc_decode.adapters.trust_store import TrustStore
from dcc_decode.adapters.valuesets import ValueSetRegistry
from dcc_decode.config import DecoderSettings
from dcc_decode.domain.models import DecodedCertificate, NotAttempted, Valid
from dcc_decode.pipeline import decode_token
from dcc_decode.railway import FailureDescription
from dcc_decode.render import render_json, render_text

EXIT_OK = 0
EXIT_DECODE_FAILURE = 1
EXIT_CONFIGURATION = 2
EXIT_NOT_VERIFIED = 3


def configure_structlog(log_level: str = "WARNING") -> None:
    """
    Configure structlog for human-readable console logging on stderr.

    stdout carries only the decoded certificate.
    """
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(colors=False),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, log_level.upper(), logging.WARNING)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dcc-decode",
        description="Decode an HC1 health certificate token and optionally verify its signature.",
    )
    parser.add_argument("source", nargs="?", default="-", help="file holding the token, or '-' for stdin")
    parser.add_argument("--json", action="store_true", help="print the certificate as JSON")
    parser.add_argument("--trust-list", type=Path, help="trust-list JSON file (overrides DCC_TRUST_LIST_PATH)")
    parser.add_argument("--valuesets", type=Path, help="value-set directory (overrides DCC_VALUESET_DIR)")
    parser.add_argument("--log-level", help="log level (overrides DCC_LOG_LEVEL)")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def read_token(source: str, stdin: TextIO) -> str:
    """First line of the source with its line ending removed."""
    if source == "-":
        line = stdin.readline()
    else:
        with Path(source).open(encoding="utf-8") as handle:
            line = handle.readline()
    return line.rstrip("\r\n")


def _exit_code(decoded: DecodedCertificate) -> int:
    if isinstance(decoded.outcome, (Valid, NotAttempted)):
        return EXIT_OK
    return EXIT_NOT_VERIFIED


def _report(error: FailureDescription) -> None:
    print(f"error: {error.describe()}", file=sys.stderr)  # noqa: T201


def main(argv: list[str] | None = None) -> int:
    """Parse arguments, decode one token, print it, and return the exit code."""
    args = build_parser().parse_args(argv)

    try:
        overrides = {"log_level": args.log_level} if args.log_level else {}
        settings = DecoderSettings(**overrides)
    except ValidationError as e:
        print(f"FATAL: Configuration error — {e}", file=sys.stderr)  # noqa: T201
        return EXIT_CONFIGURATION

    configure_structlog(settings.log_level)
    log = structlog.get_logger()

    trust_list_path = args.trust_list or settings.trust_list_path
    trust_store: TrustStore | None = None
    if trust_list_path is not None:
        loaded = load_trust_list(trust_list_path)
        if loaded.is_failure():
            _report(loaded.error())
            return EXIT_CONFIGURATION
        trust_store = TrustStore(loaded.value())
        log.info("app.trust_store_ready", path=str(trust_list_path), keys=len(trust_store))

    valueset_dir = args.valuesets or settings.valueset_dir
    valuesets: ValueSetRegistry | None = None
    if valueset_dir is not None:
        registry = ValueSetRegistry.load(valueset_dir)
        if registry.is_failure():
            _report(registry.error())
            return EXIT_CONFIGURATION
        valuesets = registry.value()

    try:
        token = read_token(args.source, sys.stdin)
    except OSError as e:
        print(f"error: cannot read {args.source}: {e.strerror or e}", file=sys.stderr)  # noqa: T201
        return EXIT_CONFIGURATION

    result = decode_token(token, trust_store=trust_store, limits=settings.limits())
    if result.is_failure():
        _report(result.error())
        return EXIT_DECODE_FAILURE

    decoded = result.value()
    output = render_json(decoded) if args.json else render_text(decoded, valuesets)
    print(output)  # noqa: T201
    return _exit_code(decoded)


if __name__ == "__main__":
    sys.exit(main())
