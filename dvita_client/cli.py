"""Command-line interface for the DVITA client.

The CLI is a thin façade over the resolver, the token service and the
transaction pipeline. Every command that changes ledger state shows the fee
summary and relays only after an explicit ``yes``/``y``.
"""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Callable, Sequence

from .amounts import ScaleConversionError
from .assets import AssetLookup, AssetLookupError
from .config import ClientConfig, ConfigurationError, load_client_config, set_default_config_path
from .identifiers import ClassificationMismatch, is_domain_name, is_yes, require_domain_name
from .model import Account, TransactionDraft, parse_account
from .node import NodeInvoker, NodeRelay
from .pipeline import Aborted, TransactionPipeline, fee_summary
from .resolver import NameResolver, ResolutionFailure
from .rpc_client import DVitaRPCClient, RPCError, RPCTransportError, format_rpc_hint
from .tokens import TokenOperationError, TokenService
from .wallet import NodeWallet, WalletError

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

RELAY_PROMPT = "Relay tx(no|yes): "
RETRY_NOTE = "The failure may be temporary; reissue the command to retry."

InputFunc = Callable[[str], str]


class CLIError(RuntimeError):
    """Raised when CLI arguments are invalid."""


# Failures reported as "error: ..." without a traceback.
REPORTED_ERRORS = (
    CLIError,
    ConfigurationError,
    RPCError,
    RPCTransportError,
    ClassificationMismatch,
    ResolutionFailure,
    ScaleConversionError,
    AssetLookupError,
    TokenOperationError,
    WalletError,
)


@dataclass
class ClientServices:
    config: ClientConfig
    resolver: NameResolver
    tokens: TokenService
    input_func: InputFunc = input

    @property
    def address_version(self) -> int:
        return self.config.contracts.address_version


def build_services(config: ClientConfig, input_func: InputFunc = input) -> ClientServices:
    rpc = DVitaRPCClient(config.rpc)
    invoker = NodeInvoker(rpc)
    wallet = NodeWallet(rpc, config.contracts.address_version, config.wallet)
    pipeline = TransactionPipeline(invoker, wallet, NodeRelay(rpc))
    resolver = NameResolver(invoker, pipeline, config.contracts)
    tokens = TokenService(
        invoker,
        wallet,
        pipeline,
        resolver,
        AssetLookup(rpc, invoker),
        config.contracts,
    )
    return ClientServices(config=config, resolver=resolver, tokens=tokens, input_func=input_func)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="DVITA name resolution and token client")
    parser.add_argument("--config", help="Path to a YAML config file (default: ~/.dvita.yaml)")
    parser.add_argument("--rpc-url", help="Override RPC endpoint URL")
    parser.add_argument("--rpc-host", help="Override RPC host")
    parser.add_argument("--rpc-port", type=int, help="Override RPC port")
    parser.add_argument("--rpc-timeout", type=float, help="Override RPC timeout in seconds")
    subparsers = parser.add_subparsers(dest="command", required=True)
    _add_commands(subparsers)
    subparsers.add_parser("console", help="Launch the interactive command shell")
    return parser


def build_command_parser() -> argparse.ArgumentParser:
    """Parser for a single console line (no global options)."""

    parser = argparse.ArgumentParser(prog="", add_help=False)
    subparsers = parser.add_subparsers(dest="command", required=True)
    _add_commands(subparsers)
    return parser


def _add_commands(subparsers: argparse._SubParsersAction) -> None:
    resolve_parser = subparsers.add_parser(
        "resolve", help="Resolve a name to its registered address"
    )
    resolve_parser.add_argument("identifier", help="Name ending with .id.dvita.com or email-style name")

    register_parser = subparsers.add_parser("register", help="Register a name for an address")
    register_parser.add_argument("name", help="Name to register")
    register_parser.add_argument("account", help="Address or script hash the name points to")
    register_parser.add_argument("signer", help="Account paying for and signing the registration")

    unregister_parser = subparsers.add_parser("unregister", help="Remove a name registration")
    unregister_parser.add_argument("name", help="Registered name")
    unregister_parser.add_argument("signer", help="Account signing the removal")

    transfer_parser = subparsers.add_parser(
        "transfer", help="Transfer tokens to an address, a name or a social handle"
    )
    transfer_parser.add_argument("token", help="Token contract script hash or address")
    transfer_parser.add_argument("to", help="Recipient address, name or @handle")
    transfer_parser.add_argument("amount", help="Amount in token units, e.g. 1.5")
    transfer_parser.add_argument("from_account", nargs="?", metavar="from", help="Sender (default: wallet account)")
    transfer_parser.add_argument("data", nargs="?", help="Optional data passed to the token")
    transfer_parser.add_argument(
        "signers", nargs="?", help="Comma-separated additional signer accounts"
    )

    balance_parser = subparsers.add_parser(
        "balanceOf", aliases=["balance-of"], help="Show a token balance"
    )
    balance_parser.add_argument("token", help="Token contract script hash or address")
    balance_parser.add_argument("identifier", help="Address, name or @handle")

    for command, help_text in (
        ("name", "Show the contract name of a token"),
        ("decimals", "Show the decimals of a token"),
        ("totalSupply", "Show the total supply of a token"),
    ):
        meta_parser = subparsers.add_parser(command, help=help_text)
        meta_parser.add_argument("token", help="Token contract script hash or address")


def _parse_account_arg(value: str, address_version: int, label: str) -> Account:
    try:
        return parse_account(value, address_version)
    except ValueError as exc:
        raise CLIError(f"invalid {label}: {value}") from exc


def _parse_signers(raw: str | None, address_version: int) -> list[Account] | None:
    if not raw:
        return None
    pieces = [piece.strip() for piece in raw.split(",") if piece.strip()]
    return [_parse_account_arg(piece, address_version, "signer") for piece in pieces]


def _parse_amount(raw: str) -> Decimal:
    try:
        amount = Decimal(raw)
    except InvalidOperation as exc:
        raise CLIError(f"invalid decimal amount: {raw}") from exc
    if not amount.is_finite() or amount <= 0:
        raise CLIError(f"amount must be a positive number: {raw}")
    return amount


def make_approver(input_func: InputFunc) -> Callable[[TransactionDraft], bool]:
    def approve(draft: TransactionDraft) -> bool:
        print(fee_summary(draft))
        try:
            answer = input_func(RELAY_PROMPT)
        except EOFError:
            return False
        return is_yes(answer)

    return approve


def _report_pipeline_result(state, label: str) -> bool:
    if isinstance(state, Aborted):
        if state.declined:
            print("Cancelled.")
            return True
        print(f"{label} failed at {state.stage}: {state.reason}", file=sys.stderr)
        return False
    print(f"Signed and relayed transaction with hash={state.txid}")
    return True


def cmd_resolve(args: argparse.Namespace, services: ClientServices) -> bool:
    if not is_domain_name(args.identifier):
        raise ClassificationMismatch(
            "Input value is invalid - it should be either email or alphanumeric value ending with .id.dvita.com"
        )
    resolved = services.resolver.resolve_by_name(args.identifier)
    if resolved is None:
        print("<unknown address>")
        return False
    print(resolved.to_address(services.address_version))
    return True


def cmd_register(args: argparse.Namespace, services: ClientServices) -> bool:
    name = require_domain_name(args.name)
    account = _parse_account_arg(args.account, services.address_version, "account")
    signer = _parse_account_arg(args.signer, services.address_version, "signer")
    success = services.resolver.register_by_name(
        name, account, signer, make_approver(services.input_func)
    )
    if not success:
        print("Failed to register address", file=sys.stderr)
    return success


def cmd_unregister(args: argparse.Namespace, services: ClientServices) -> bool:
    name = require_domain_name(args.name)
    signer = _parse_account_arg(args.signer, services.address_version, "signer")
    success = services.resolver.unregister_by_name(
        name, signer, make_approver(services.input_func)
    )
    if not success:
        print("Failed to unregister address", file=sys.stderr)
    return success


def cmd_transfer(args: argparse.Namespace, services: ClientServices) -> bool:
    version = services.address_version
    token = _parse_account_arg(args.token, version, "token")
    amount = _parse_amount(args.amount)
    from_account = (
        _parse_account_arg(args.from_account, version, "sender") if args.from_account else None
    )
    state = services.tokens.transfer(
        token,
        args.to,
        amount,
        make_approver(services.input_func),
        from_account=from_account,
        data=args.data,
        signers=_parse_signers(args.signers, version),
    )
    return _report_pipeline_result(state, "Transfer")


def cmd_balance_of(args: argparse.Namespace, services: ClientServices) -> bool:
    token = _parse_account_arg(args.token, services.address_version, "token")
    balance = services.tokens.balance_of(token, args.identifier)
    print()
    print(balance)
    return True


def cmd_name(args: argparse.Namespace, services: ClientServices) -> bool:
    token = _parse_account_arg(args.token, services.address_version, "token")
    print(f"Result: {services.tokens.name(token)}")
    return True


def cmd_decimals(args: argparse.Namespace, services: ClientServices) -> bool:
    token = _parse_account_arg(args.token, services.address_version, "token")
    print(f"Result: {services.tokens.decimals(token)}")
    return True


def cmd_total_supply(args: argparse.Namespace, services: ClientServices) -> bool:
    token = _parse_account_arg(args.token, services.address_version, "token")
    print(f"Result: {services.tokens.total_supply(token)}")
    return True


COMMANDS = {
    "resolve": cmd_resolve,
    "register": cmd_register,
    "unregister": cmd_unregister,
    "transfer": cmd_transfer,
    "balanceOf": cmd_balance_of,
    "balance-of": cmd_balance_of,
    "name": cmd_name,
    "decimals": cmd_decimals,
    "totalSupply": cmd_total_supply,
}


def dispatch(args: argparse.Namespace, services: ClientServices) -> bool:
    handler = COMMANDS.get(args.command)
    if handler is None:  # pragma: no cover - argparse enforces choices
        raise CLIError(f"Unknown command: {args.command}")
    return handler(args, services)


def format_error(exc: Exception) -> str:
    hint = format_rpc_hint(exc) if isinstance(exc, RPCError) else None
    if hint:
        return f"error: {exc}\nHint: {hint}"
    if isinstance(exc, RPCTransportError) and exc.retryable:
        return f"error: {exc}\n{RETRY_NOTE}"
    return f"error: {exc}"


def _load_config(args: argparse.Namespace) -> ClientConfig:
    if args.config:
        set_default_config_path(args.config)
    overrides = {
        "endpoint": args.rpc_url,
        "host": args.rpc_host,
        "port": args.rpc_port,
        "timeout": args.rpc_timeout,
    }
    return load_client_config(overrides={k: v for k, v in overrides.items() if v is not None})


def main(argv: Sequence[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        services = build_services(_load_config(args))
        if args.command == "console":
            from .console import console_main

            console_main(services)
            return
        if not dispatch(args, services):
            parser.exit(1)
    except KeyboardInterrupt:  # pragma: no cover - interactive use
        logger.info("Interrupted by user")
    except REPORTED_ERRORS as exc:
        parser.exit(1, format_error(exc) + "\n")


if __name__ == "__main__":
    main(sys.argv[1:])
