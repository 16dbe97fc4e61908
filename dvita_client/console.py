"""Interactive line-oriented shell for the DVITA client."""

from __future__ import annotations

import os
import shlex
import traceback

from . import cli

PROMPT = "dvita> "
EXIT_WORDS = {"exit", "quit"}

HELP_TEXT = """Commands:
  resolve <identifier>
  register <name> <account> <signer>
  unregister <name> <signer>
  transfer <token> <to> <amount> [from] [data] [signers]
  balanceOf <token> <identifierOrAddress>
  name <token> | decimals <token> | totalSupply <token>
  help | exit"""


def _should_debug() -> bool:
    return bool(int(os.environ.get("DVITA_DEBUG", "0") or 0))


def run_line(line: str, services: cli.ClientServices) -> bool | None:
    """Execute one console line; returns the command's success flag."""

    try:
        words = shlex.split(line)
    except ValueError as exc:
        print(f"error: {exc}")
        return False
    if not words:
        return None
    if words[0] == "help":
        print(HELP_TEXT)
        return True

    parser = cli.build_command_parser()
    try:
        args = parser.parse_args(words)
    except SystemExit:
        # argparse already printed the usage error.
        return False
    try:
        return cli.dispatch(args, services)
    except cli.REPORTED_ERRORS as exc:
        print(cli.format_error(exc))
    except Exception as exc:  # console keeps running after unexpected failures
        print(f"Unexpected error: {exc}")
        if _should_debug():
            traceback.print_exc()
    return False


def console_main(services: cli.ClientServices) -> None:
    print("DVITA client console. Type 'help' for commands, 'exit' to leave.")
    while True:
        try:
            line = services.input_func(PROMPT)
        except EOFError:
            print()
            break
        if line.strip().lower() in EXIT_WORDS:
            break
        run_line(line, services)
