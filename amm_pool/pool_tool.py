"""
Pool Administration Tool

Command-line access to a local pool deployment. It writes a sample
configuration, bootstraps a demonstration pool (mints, vaults, a deposit and
a swap) in the accounts database, and reads pool records back out of it.
"""
import argparse
import json
from pathlib import Path

import nacl.signing
from solders.instruction import Instruction
from solders.pubkey import Pubkey

from amm_pool.accounts_db import AccountsDB
from amm_pool.config import Config
from amm_pool.crypto import find_pool_authority, generate_key_pair
from amm_pool.errors import error_from_code
from amm_pool.instruction import add_liquidity, initialize_pool, swap
from amm_pool.monitoring import Monitor
from amm_pool.runtime import LocalRuntime, Transaction


def open_runtime(config: Config, monitor: Monitor = None) -> LocalRuntime:
    db = AccountsDB(
        config.database.path,
        write_buffer_size=config.database.write_buffer_size,
        max_open_files=config.database.max_open_files,
        compression=config.database.compression,
    )
    return LocalRuntime(db, config.program.resolve_program_id(), monitor=monitor)


def submit(runtime: LocalRuntime, instruction: Instruction,
           *signing_keys: nacl.signing.SigningKey) -> bytes:
    """Sign and execute a single instruction."""
    tx = Transaction(instruction)
    for signing_key in signing_keys:
        tx.sign(signing_key)
    return runtime.process_transaction(tx)


def new_address() -> Pubkey:
    return generate_key_pair()[1]


def bootstrap_demo_pool(runtime: LocalRuntime, deposit_a: int, deposit_b: int,
                        swap_amount: int) -> dict:
    """
    Creates a pool with fresh mints, funds a user, deposits and swaps.

    Returns:
        Addresses of every account involved, keyed by role
    """
    program_id = runtime.program_id
    signing_key, user = generate_key_pair()

    pool = new_address()
    authority, _ = find_pool_authority(pool, program_id)

    addresses = {
        'pool': pool,
        'authority': authority,
        'user': user,
        'token_a_mint': new_address(),
        'token_b_mint': new_address(),
        'liquidity_mint': new_address(),
        'token_a_vault': new_address(),
        'token_b_vault': new_address(),
        'user_token_a': new_address(),
        'user_token_b': new_address(),
        'user_liquidity': new_address(),
    }

    # --- 1. Mints and token accounts ---
    runtime.create_mint(addresses['token_a_mint'], user)
    runtime.create_mint(addresses['token_b_mint'], user)
    runtime.create_mint(addresses['liquidity_mint'], authority)
    runtime.create_token_account(addresses['token_a_vault'], addresses['token_a_mint'], authority)
    runtime.create_token_account(addresses['token_b_vault'], addresses['token_b_mint'], authority)
    runtime.create_token_account(addresses['user_token_a'], addresses['token_a_mint'], user,
                                 amount=deposit_a + swap_amount)
    runtime.create_token_account(addresses['user_token_b'], addresses['token_b_mint'], user,
                                 amount=deposit_b)
    runtime.create_token_account(addresses['user_liquidity'], addresses['liquidity_mint'], user)
    runtime.create_pool_account(pool)

    # --- 2. Initialize, deposit, swap ---
    submit(runtime, initialize_pool(
        program_id, pool, authority,
        addresses['token_a_mint'], addresses['token_b_mint'],
        addresses['token_a_vault'], addresses['token_b_vault'],
        addresses['liquidity_mint'],
    ))
    submit(runtime, add_liquidity(
        program_id, pool,
        addresses['user_token_a'], addresses['user_token_b'],
        addresses['token_a_vault'], addresses['token_b_vault'],
        addresses['liquidity_mint'], addresses['user_liquidity'], user,
        deposit_a, deposit_b,
    ), signing_key)
    if swap_amount:
        submit(runtime, swap(
            program_id, pool,
            addresses['user_token_a'], addresses['user_token_b'],
            addresses['token_a_vault'], addresses['token_b_vault'], user,
            swap_amount, True,
        ), signing_key)

    return addresses


def generate_sample_config(output_path: str):
    """Generates a sample pool configuration file."""
    Config.default().to_file(output_path)
    print(f"\nGenerated sample configuration at: {output_path}")
    print("Please review and edit this file before running the other commands.")


def run_demo(config: Config, deposit_a: int, deposit_b: int, swap_amount: int):
    monitor = None
    if config.monitoring.enabled:
        monitor = Monitor(config.monitoring.host, config.monitoring.port)
        monitor.start_server()

    runtime = open_runtime(config, monitor)
    try:
        addresses = bootstrap_demo_pool(runtime, deposit_a, deposit_b, swap_amount)
        print("\nDemo pool created successfully!")
        for role, address in addresses.items():
            print(f"  - {role}: {address}")
        print(f"  - user token B balance: {runtime.token_balance(addresses['user_token_b'])}")
        print(json.dumps(runtime.get_amm_stats(addresses['pool']), indent=2))
    finally:
        runtime.db.close()
        if monitor:
            monitor.stop_server()


def inspect_pool(config: Config, pool: str):
    runtime = open_runtime(config)
    try:
        record = runtime.get_pool(Pubkey.from_string(pool))
        print(f"Pool {pool}")
        print(f"  - Authority: {record.authority} (bump {record.authority_bump})")
        print(f"  - Token A: mint {record.token_a_mint}, vault {record.token_a_vault}")
        print(f"  - Token B: mint {record.token_b_mint}, vault {record.token_b_vault}")
        print(f"  - Liquidity mint: {record.liquidity_mint}")
        print(json.dumps(runtime.get_amm_stats(Pubkey.from_string(pool)), indent=2))
    finally:
        runtime.db.close()


def list_pools(config: Config):
    runtime = open_runtime(config)
    try:
        pools = runtime.list_pools()
        print(f"{len(pools)} pool(s) under program {runtime.program_id}")
        for key, record in pools:
            print(f"  - {key}: {record.token_a_reserve} A / {record.token_b_reserve} B, "
                  f"{record.liquidity_supply} shares")
    finally:
        runtime.db.close()


def describe_error(code: int):
    """Prints the pool error behind a custom error code."""
    error = error_from_code(code)
    print(f"Error {code}: {error.__name__}")
    if error.__doc__:
        print(f"  {error.__doc__}")


def quote_swap(config: Config, pool: str, amount_in: int, a_to_b: bool):
    runtime = open_runtime(config)
    try:
        record = runtime.get_pool(Pubkey.from_string(pool))
        amount_out = record.get_swap_output(amount_in, a_to_b)
        direction = "A -> B" if a_to_b else "B -> A"
        print(f"Swap {amount_in} ({direction}) would return {amount_out}")
    finally:
        runtime.db.close()


def main(argv=None):
    parser = argparse.ArgumentParser(description="Liquidity Pool Administration Tool")
    parser.add_argument("--config", type=str, default=None, help="Path to config file")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # Command to generate a sample config
    parser_sample = subparsers.add_parser("sample-config", help="Generate a sample config.json")
    parser_sample.add_argument("--output", type=str, default="config.json", help="Output file path")

    # Command to bootstrap a demonstration pool
    parser_demo = subparsers.add_parser("demo", help="Create, fund and trade against a demo pool")
    parser_demo.add_argument("--deposit-a", type=int, default=1_000_000)
    parser_demo.add_argument("--deposit-b", type=int, default=4_000_000)
    parser_demo.add_argument("--swap", type=int, default=10_000, help="Token A to swap after depositing")

    # Command to print a pool record
    parser_inspect = subparsers.add_parser("inspect", help="Print a pool record")
    parser_inspect.add_argument("pool", type=str, help="Pool address (base58)")

    # Command to list pools
    subparsers.add_parser("pools", help="List the pools stored under the program")

    # Command to quote a swap
    parser_quote = subparsers.add_parser("quote", help="Simulate a swap against current reserves")
    parser_quote.add_argument("pool", type=str, help="Pool address (base58)")
    parser_quote.add_argument("amount_in", type=int)
    parser_quote.add_argument("--direction", choices=["a-to-b", "b-to-a"], default="a-to-b")

    # Command to explain a custom error code
    parser_error = subparsers.add_parser("error", help="Describe a pool error code")
    parser_error.add_argument("code", type=int)

    args = parser.parse_args(argv)

    if args.command == "sample-config":
        generate_sample_config(args.output)
        return
    if args.command == "error":
        describe_error(args.code)
        return

    config = Config.from_file(args.config) if args.config and Path(args.config).exists() else Config.default()
    config.logging.apply()

    if args.command == "demo":
        run_demo(config, args.deposit_a, args.deposit_b, args.swap)
    elif args.command == "inspect":
        inspect_pool(config, args.pool)
    elif args.command == "pools":
        list_pools(config)
    elif args.command == "quote":
        quote_swap(config, args.pool, args.amount_in, args.direction == "a-to-b")


if __name__ == '__main__':
    main()
