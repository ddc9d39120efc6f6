#!/usr/bin/env python3
"""
Unified CLI for the Safe Relay Toolkit.

Examples:
  - Block header
    safe-relay block-info --network gnosis --block-number 30000000

  - Proof bundle
    safe-relay proof --network gnosis --block-number 30000000 --account 0x... --key-address 0x...

  - Relay 1 wei from the main Safe, authorised from the source chain
    safe-relay send-native-token --controller-module 0x... --source-network gnosis --destination-network chiado
"""

import argparse
from typing import List, Optional

from rich.panel import Panel

from safe_relay_toolkit.commands.helpers import (
    console,
    handle_command_error,
    save_json_output,
)
from safe_relay_toolkit.commands.validation import (
    validate_block_number,
    validate_eth_address,
    validate_network,
)
from safe_relay_toolkit.proofs import RelayProofs
from safe_relay_toolkit.relay import RelayAction, RelayOrchestrator
from safe_relay_toolkit.shared.services.web3_service import Web3Service


def cmd_block_info(args: argparse.Namespace) -> None:
    network = validate_network(args.network)
    block_number = validate_block_number(args.block_number)

    console.print(Panel("Fetching Block Info", style="bold magenta"))
    info = RelayProofs.for_network(network).get_block_info(block_number)
    data = info.unwrap()

    filename = args.output or f"block_info_{network}_{block_number}.json"
    path = save_json_output(dict(data), filename)

    console.print(f'Block Hash: {data["block_hash"]}')
    console.print("[cyan]RLP Block Header:[/cyan]")
    console.print(f'[green]{data["rlp_block_header"]}[/green]')
    console.print(f"Saved block info → {path}")


def cmd_proof(args: argparse.Namespace) -> None:
    network = validate_network(args.network)
    block_number = validate_block_number(args.block_number)
    account = validate_eth_address(args.account, "account")
    key_address = validate_eth_address(args.key_address, "key_address")

    console.print(Panel("Building Proof Bundle", style="bold magenta"))
    result = RelayProofs.for_network(network).get_proof_bundle(
        block_number, account, key_address, args.slot
    )
    bundle = result.unwrap()

    filename = args.output or f"proof_{network}_{block_number}.json"
    path = save_json_output(bundle.to_dict(), filename)
    console.print(
        f"Proof verified locally (nonce {bundle.account_nonce}). "
        f"Saved → {path}"
    )


def cmd_send_native_token(args: argparse.Namespace) -> None:
    source_network = validate_network(args.source_network)
    destination_network = validate_network(args.destination_network)
    controller_module = validate_eth_address(
        args.controller_module, "controller_module"
    )

    source = Web3Service.from_network(source_network)
    destination = Web3Service.from_network(destination_network)
    orchestrator = RelayOrchestrator(source, destination, controller_module)

    console.print(
        Panel(
            f"Relaying {args.value} wei: {source_network} → "
            f"{destination_network}",
            style="bold magenta",
        )
    )
    session = orchestrator.relay(
        RelayAction(to=args.to or destination.address, value=args.value)
    )
    result = session.to_result()
    if not result.success:
        error = result.errors[0]
        console.print(
            f"[red]Relay failed in {error.source}:[/red] {error.message}"
        )
        raise SystemExit(1)

    console.print(f"Source chain tx: {session.source_tx_hash.hex()}")
    console.print(
        f"Destination chain tx: {session.destination_tx_hash.hex()}"
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="safe-relay",
        description="Proof-based cross-chain execution for Safe multisigs",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    block_info = subparsers.add_parser(
        "block-info", help="RLP encode a block header"
    )
    block_info.add_argument("--network", required=True)
    block_info.add_argument("--block-number", type=int, required=True)
    block_info.add_argument("--output", help="Output filename")
    block_info.set_defaults(func=cmd_block_info)

    proof = subparsers.add_parser(
        "proof", help="Build and verify a storage proof bundle"
    )
    proof.add_argument("--network", required=True)
    proof.add_argument("--block-number", type=int, required=True)
    proof.add_argument(
        "--account", required=True, help="Contract whose storage is proven"
    )
    proof.add_argument(
        "--key-address", required=True, help="Mapping key of the slot"
    )
    proof.add_argument(
        "--slot", type=int, default=0, help="Base slot of the mapping"
    )
    proof.add_argument("--output", help="Output filename")
    proof.set_defaults(func=cmd_proof)

    send = subparsers.add_parser(
        "send-native-token",
        help="Relay a native token transfer from the main Safe",
    )
    send.add_argument(
        "--controller-module", required=True, help="ControllerModule address"
    )
    send.add_argument("--source-network", required=True)
    send.add_argument("--destination-network", required=True)
    send.add_argument(
        "--to", help="Recipient (defaults to the signer address)"
    )
    send.add_argument("--value", type=int, default=1, help="Amount in wei")
    send.set_defaults(func=cmd_send_native_token)

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        args.func(args)
    except SystemExit:
        raise
    except Exception as e:
        handle_command_error(e, parser.print_usage)


if __name__ == "__main__":
    main()
