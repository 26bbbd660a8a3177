"""lsp-capfilter CLI entry point.

Usage: lsp-capfilter [options] <binary> <mode> <provider>... -- <args>...

Everything after the first "--" belongs to the language server and is
passed through untouched, even tokens that look like our own options.
"""
import argparse
import logging
import sys
from dataclasses import dataclass

from lsp_capfilter.diagnostics import configure_logging
from lsp_capfilter.domain.policy import ConfigurationError, FilterPolicy, Mode
from lsp_capfilter.interceptor.session import LaunchError, ProxySession

log = logging.getLogger(__name__)

ARGS_SEPARATOR = "--"

EPILOG = """\
mode:
    enable: allow only the specified providers
    disable: allow all providers except the specified ones

providers: language server capability without the "Provider" at the end
    codeAction codeLens completion definition documentFormatting
    documentHighlight documentRangeFormatting documentLink documentSymbol
    hover implementation references rename signatureHelp typeDefinition
    workspaceSymbol

examples:
    %(prog)s cquery disable completion codeAction --
    %(prog)s clangd enable completion codeAction -- --log=error
"""


@dataclass(frozen=True, slots=True)
class Invocation:
    """Everything the command line decided, before anything is launched."""
    binary: str
    args: tuple[str, ...]
    policy: FilterPolicy
    log_level: str
    log_file: str | None


def _mode_token(value: str) -> str:
    """argparse type: validate the mode token, keep it as text."""
    try:
        Mode.parse(value)
    except ConfigurationError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc
    return value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lsp-capfilter",
        usage="%(prog)s [options] <binary> <mode> <provider>... -- <args>...",
        description=(
            "Run a language server and hide some of the capabilities it "
            "advertises from the client."
        ),
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "binary",
        help="The language server binary.",
    )
    parser.add_argument(
        "mode", type=_mode_token, metavar="mode",
        help="enable or disable (see below).",
    )
    parser.add_argument(
        "providers", nargs="*", metavar="provider",
        help="Provider base names, e.g. completion or hover.",
    )
    parser.add_argument(
        "--log-level", default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Diagnostics verbosity on stderr (default: INFO, traces every frame)",
    )
    parser.add_argument(
        "--log-file", default=None,
        help="Write diagnostics to this file instead of stderr.",
    )
    return parser


def parse_args(argv: list[str]) -> Invocation:
    """Split argv at the first "--" and parse our half.

    -h/--help prints help and exits 0. Any configuration error, including
    a missing "--", prints usage and exits with status 2.
    """
    parser = build_parser()
    split = argv.index(ARGS_SEPARATOR) if ARGS_SEPARATOR in argv else len(argv)
    ours, theirs = argv[:split], argv[split + 1:]

    ns = parser.parse_args(ours)
    if split == len(argv):
        parser.error(f"missing {ARGS_SEPARATOR!r} before the language server arguments")
    return Invocation(
        binary=ns.binary,
        args=tuple(theirs),
        policy=FilterPolicy.from_tokens(ns.mode, ns.providers),
        log_level=ns.log_level,
        log_file=ns.log_file,
    )


def run(argv: list[str]) -> int:
    """Parse argv, run one session, return the process exit status."""
    invocation = parse_args(argv)
    try:
        listener = configure_logging(invocation.log_level, invocation.log_file)
    except OSError as exc:
        build_parser().error(f"cannot open log file: {exc}")
    try:
        log.info(
            "Running binary %s %s in mode %s",
            invocation.binary,
            list(invocation.args),
            invocation.policy.describe(),
        )
        session = ProxySession(invocation.binary, invocation.args, invocation.policy)
        try:
            return session.run()
        except LaunchError as exc:
            log.error("%s", exc)
            return 1
    finally:
        listener.stop()


def main() -> None:
    sys.exit(run(sys.argv[1:]))
