"""Command-line interface for the cann-registry tooling.

Query commands print JSON. Builder commands print the unsigned transaction as
JSON, or as raw hex with ``--hex``, ready to be signed by an external wallet.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Sequence

from .chaingraph import ChaingraphError
from .config import ConfigurationError, load_registry_config, set_default_config_path
from .electrum_client import RPCError, RPCTransportError, format_rpc_hint
from .errors import (
    AddressError,
    ArtifactError,
    InvalidInputError,
    ResolutionError,
    TokenConservationError,
    TransactionDecodeError,
    UTXONotFoundError,
)
from .manager import RegistryManager
from .pricing import auction_price
from .records import revocation_record
from .transaction import Transaction

logger = logging.getLogger(__name__)

PENALTY_KINDS = ("invalid", "duplicate", "illegal")


class CLIError(RuntimeError):
    """Raised when CLI arguments are invalid."""


def _positive_int(raw: str) -> int:
    try:
        value = int(raw)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"expected an integer amount in sats, got {raw!r}") from exc
    if value <= 0:
        raise argparse.ArgumentTypeError("amount must be positive")
    return value


def _add_output_flag(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--hex",
        dest="as_hex",
        action="store_true",
        help="Print the raw unsigned transaction hex instead of JSON",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="cann-registry name registry CLI")
    parser.add_argument("--config", default=None, help="Path to a YAML config file (default: ~/.cann_registry.yaml)")
    parser.add_argument("--artifacts-dir", default=None, help="Directory holding the covenant artifact JSON files")
    parser.add_argument("--electrum-url", default=None, help="Electrum JSON-RPC endpoint (overrides CANN_ELECTRUM_URL)")
    parser.add_argument("--chaingraph-url", default=None, help="Chaingraph GraphQL endpoint")
    parser.add_argument("--network", default=None, help="mainnet, testnet, chipnet or regtest")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    name_info = subparsers.add_parser("name-info", help="show whether a name is registered, auctioning or free")
    name_info.add_argument("name")

    resolve = subparsers.add_parser("resolve", help="resolve the current owner of a claimed name")
    resolve.add_argument("name")
    strategy = resolve.add_mutually_exclusive_group()
    strategy.add_argument("--indexed", action="store_true", help="Use the Chaingraph index")
    strategy.add_argument("--linear", action="store_true", help="Replay transfers over the ledger (default)")

    lookup = subparsers.add_parser("lookup", help="list the names held by an address")
    lookup.add_argument("address")

    records = subparsers.add_parser("records", help="show the records published for a name")
    records.add_argument("name")
    records.add_argument("--raw", action="store_true", help="Print record strings instead of the parsed tree")

    subparsers.add_parser("auctions", help="list running auctions")
    subparsers.add_parser("past-auctions", help="list claimed auctions")

    price = subparsers.add_parser("price", help="show the current opening price or a name's minimum next bid")
    price.add_argument("--name", default=None, help="Show the minimum next bid for this name's auction")
    price.add_argument(
        "--registration-id",
        type=int,
        default=None,
        help="Price a given registration id offline instead of reading the counter",
    )

    create = subparsers.add_parser("create-auction", help="build a transaction opening an auction")
    create.add_argument("name")
    create.add_argument("--amount", type=_positive_int, required=True, help="Opening bid in sats")
    create.add_argument("--funding-address", required=True, help="P2PKH address paying for the bid")
    _add_output_flag(create)

    bid = subparsers.add_parser("bid", help="build a transaction outbidding a running auction")
    bid.add_argument("name")
    bid.add_argument("--amount", type=_positive_int, required=True, help="Bid in sats")
    bid.add_argument("--funding-address", required=True, help="P2PKH address paying for the bid")
    _add_output_flag(bid)

    claim = subparsers.add_parser("claim", help="build a transaction claiming a won auction")
    claim.add_argument("name")
    _add_output_flag(claim)

    add_records = subparsers.add_parser("add-records", help="build a transaction publishing records")
    add_records.add_argument("name")
    add_records.add_argument("--owner-address", required=True, help="Address holding the ownership token")
    add_records.add_argument(
        "--record",
        dest="records",
        action="append",
        default=[],
        help="Record string such as 'social.x=@alice'; repeat for several",
    )
    add_records.add_argument(
        "--revoke",
        action="append",
        default=[],
        help="Publish a revocation for this exact earlier record; repeatable",
    )
    _add_output_flag(add_records)

    penalize = subparsers.add_parser("penalize", help="build a transaction forfeiting an illegitimate auction")
    penalize.add_argument("name")
    penalize.add_argument("--kind", choices=PENALTY_KINDS, required=True)
    penalize.add_argument("--reward-to", required=True, help="Address receiving the forfeited bid")
    _add_output_flag(penalize)

    accumulate = subparsers.add_parser("accumulate", help="build a transaction returning parked tokens to the counter")
    accumulate.add_argument("--funding-address", required=True, help="P2PKH address paying the fee")
    _add_output_flag(accumulate)

    return parser


def _overrides(args: argparse.Namespace) -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    if args.artifacts_dir:
        overrides["artifacts_dir"] = args.artifacts_dir
    if args.electrum_url:
        overrides["electrum_url"] = args.electrum_url
    if args.chaingraph_url:
        overrides["chaingraph_url"] = args.chaingraph_url
    if args.network:
        overrides["network"] = args.network
    return overrides


def _config_from_args(args: argparse.Namespace):
    if args.config:
        set_default_config_path(Path(args.config))
    return load_registry_config(overrides=_overrides(args))


def _manager_from_args(args: argparse.Namespace) -> RegistryManager:
    return RegistryManager(_config_from_args(args))


def _print_json(data: Any) -> None:
    print(json.dumps(data, indent=2))


def _print_transaction(tx: Transaction, as_hex: bool) -> None:
    if as_hex:
        print(tx.to_hex())
    else:
        _print_json(tx.to_jsonable())


def cmd_price(args: argparse.Namespace) -> None:
    if args.registration_id is not None:
        config = _config_from_args(args)
        _print_json(
            {
                "registration_id": args.registration_id,
                "price": auction_price(args.registration_id, config.min_starting_bid),
            }
        )
        return
    manager = _manager_from_args(args)
    if args.name:
        _print_json(manager.minimum_bid(args.name))
    else:
        _print_json(manager.current_auction_price())


def cmd_add_records(args: argparse.Namespace) -> Transaction:
    records = list(args.records) + [revocation_record(record) for record in args.revoke]
    if not records:
        raise CLIError("Provide at least one --record or --revoke")
    return _manager_from_args(args).add_records(args.name, records, args.owner_address)


def cmd_penalize(args: argparse.Namespace) -> Transaction:
    manager = _manager_from_args(args)
    if args.kind == "invalid":
        return manager.penalize_invalid_name(args.name, args.reward_to)
    if args.kind == "duplicate":
        return manager.penalize_duplicate_auction(args.name, args.reward_to)
    return manager.penalize_illegal_auction(args.name, args.reward_to)


def run_command(args: argparse.Namespace) -> None:
    command = args.command
    if command == "price":
        cmd_price(args)
        return
    if command == "add-records":
        _print_transaction(cmd_add_records(args), args.as_hex)
        return
    if command == "penalize":
        _print_transaction(cmd_penalize(args), args.as_hex)
        return

    manager = _manager_from_args(args)
    if command == "name-info":
        _print_json(manager.get_name(args.name).to_jsonable())
    elif command == "resolve":
        ownership = manager.resolve_name(args.name, use_electrum=not args.indexed, use_chaingraph=args.indexed)
        _print_json(ownership.to_jsonable())
    elif command == "lookup":
        _print_json({"address": args.address, "names": manager.lookup_address(args.address)})
    elif command == "records":
        if args.raw:
            _print_json(manager.names.fetch_record_strings(args.name))
        else:
            _print_json(manager.fetch_records(args.name))
    elif command == "auctions":
        _print_json([auction.to_jsonable() for auction in manager.get_auctions()])
    elif command == "past-auctions":
        _print_json([auction.to_jsonable() for auction in manager.get_past_auctions()])
    elif command == "create-auction":
        _print_transaction(manager.create_auction(args.name, args.amount, args.funding_address), args.as_hex)
    elif command == "bid":
        _print_transaction(manager.create_bid(args.name, args.amount, args.funding_address), args.as_hex)
    elif command == "claim":
        _print_transaction(manager.claim_name(args.name), args.as_hex)
    elif command == "accumulate":
        _print_transaction(manager.accumulate(args.funding_address), args.as_hex)
    else:  # pragma: no cover - argparse enforces choices
        raise CLIError(f"Unknown command: {command}")


def main(argv: Sequence[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)
    try:
        run_command(args)
    except KeyboardInterrupt:  # pragma: no cover - interactive use
        logger.info("Interrupted by user")
    except RPCError as exc:
        hint = format_rpc_hint(exc)
        parser.exit(1, f"error: {exc}\n" + (f"hint: {hint}\n" if hint else ""))
    except (
        CLIError,
        ConfigurationError,
        RPCTransportError,
        ChaingraphError,
        ArtifactError,
        AddressError,
        TransactionDecodeError,
        InvalidInputError,
        UTXONotFoundError,
        ResolutionError,
        TokenConservationError,
    ) as exc:
        parser.exit(1, f"error: {exc}\n")


if __name__ == "__main__":
    main(sys.argv[1:])
