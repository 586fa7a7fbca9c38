"""
Account list validation.

Each operation receives a positional account list. The parsers below take
the accounts in order and check writability, ownership, the user's signer
flag and the token ledger's identity before any pool state is read.
"""
from dataclasses import dataclass
from typing import Sequence

from solders.pubkey import Pubkey

from amm_pool.accounts import AccountInfo, next_account_info
from amm_pool.errors import InvalidAccount, InvalidTokenPair, Unauthorized
from amm_pool.token_ledger import TOKEN_PROGRAM_ID, Mint, TokenAccount, TokenLedgerError


def check_writable(account: AccountInfo, name: str):
    if not account.is_writable:
        raise InvalidAccount(f"{name} must be writable")


def check_owner(account: AccountInfo, owner: Pubkey, name: str):
    if account.owner != owner:
        raise InvalidAccount(f"{name} is owned by {account.owner}, expected {owner}")


def check_token_account(account: AccountInfo, token_program: AccountInfo, name: str):
    """Writable account held by the token ledger."""
    check_writable(account, name)
    check_owner(account, token_program.key, name)


def check_signer(account: AccountInfo):
    if not account.is_signer:
        raise Unauthorized(f"{account.key} must sign")


def check_token_program(token_program: AccountInfo):
    if token_program.key != TOKEN_PROGRAM_ID:
        raise InvalidAccount(f"{token_program.key} is not the token program")


def check_distinct_mints(token_a_mint: AccountInfo, token_b_mint: AccountInfo):
    if token_a_mint.key == token_b_mint.key:
        raise InvalidTokenPair("Pool tokens must differ")


def check_identity(account: AccountInfo, expected: Pubkey, name: str):
    if account.key != expected:
        raise InvalidAccount(f"{name} {account.key} does not match pool record {expected}")


def load_token_account(account: AccountInfo, name: str) -> TokenAccount:
    try:
        return TokenAccount.unpack(account.data)
    except TokenLedgerError as e:
        raise InvalidAccount(f"{name}: {e}") from e


def load_mint(account: AccountInfo, name: str) -> Mint:
    try:
        return Mint.unpack(account.data)
    except TokenLedgerError as e:
        raise InvalidAccount(f"{name}: {e}") from e


def check_token_mint(account: AccountInfo, expected_mint: Pubkey, name: str):
    """The token account holds units of expected_mint."""
    mint = load_token_account(account, name).mint
    if mint != expected_mint:
        raise InvalidAccount(f"{name} holds {mint}, expected {expected_mint}")


def check_not_vault(account: AccountInfo, vaults: Sequence[Pubkey], name: str):
    """A user token account may not alias one of the pool's own vaults."""
    if account.key in vaults:
        raise InvalidAccount(f"{name} {account.key} is a pool vault")


# ==============================================================================
# PER-OPERATION ACCOUNT LISTS
# ==============================================================================

@dataclass
class InitializePoolAccounts:
    pool_state: AccountInfo
    authority: AccountInfo
    token_a_mint: AccountInfo
    token_b_mint: AccountInfo
    token_a_vault: AccountInfo
    token_b_vault: AccountInfo
    liquidity_mint: AccountInfo
    token_program: AccountInfo

    @classmethod
    def parse(cls, program_id: Pubkey, accounts: Sequence[AccountInfo]) -> 'InitializePoolAccounts':
        accounts_iter = iter(accounts)
        parsed = cls(*(next_account_info(accounts_iter) for _ in range(8)))

        check_writable(parsed.pool_state, "pool state")
        check_owner(parsed.pool_state, program_id, "pool state")

        # Authority is a derived signer, never written
        if parsed.authority.is_writable:
            raise InvalidAccount("authority must not be writable")

        check_owner(parsed.token_a_mint, parsed.token_program.key, "token A mint")
        check_owner(parsed.token_b_mint, parsed.token_program.key, "token B mint")
        check_distinct_mints(parsed.token_a_mint, parsed.token_b_mint)

        check_token_account(parsed.token_a_vault, parsed.token_program, "token A vault")
        check_token_account(parsed.token_b_vault, parsed.token_program, "token B vault")
        check_owner(parsed.liquidity_mint, parsed.token_program.key, "liquidity mint")

        check_token_program(parsed.token_program)
        return parsed


@dataclass
class AddLiquidityAccounts:
    pool_state: AccountInfo
    user_token_a: AccountInfo
    user_token_b: AccountInfo
    token_a_vault: AccountInfo
    token_b_vault: AccountInfo
    liquidity_mint: AccountInfo
    user_liquidity: AccountInfo
    token_program: AccountInfo
    user: AccountInfo

    @classmethod
    def parse(cls, program_id: Pubkey, accounts: Sequence[AccountInfo]) -> 'AddLiquidityAccounts':
        accounts_iter = iter(accounts)
        parsed = cls(*(next_account_info(accounts_iter) for _ in range(9)))

        check_writable(parsed.pool_state, "pool state")
        check_owner(parsed.pool_state, program_id, "pool state")
        check_token_account(parsed.user_token_a, parsed.token_program, "user token A")
        check_token_account(parsed.user_token_b, parsed.token_program, "user token B")
        check_token_account(parsed.token_a_vault, parsed.token_program, "token A vault")
        check_token_account(parsed.token_b_vault, parsed.token_program, "token B vault")
        check_token_account(parsed.liquidity_mint, parsed.token_program, "liquidity mint")
        check_token_account(parsed.user_liquidity, parsed.token_program, "user liquidity")

        check_signer(parsed.user)
        check_token_program(parsed.token_program)
        return parsed


@dataclass
class RemoveLiquidityAccounts:
    pool_state: AccountInfo
    user_liquidity: AccountInfo
    token_a_vault: AccountInfo
    token_b_vault: AccountInfo
    user_token_a: AccountInfo
    user_token_b: AccountInfo
    liquidity_mint: AccountInfo
    user: AccountInfo
    token_program: AccountInfo

    @classmethod
    def parse(cls, program_id: Pubkey, accounts: Sequence[AccountInfo]) -> 'RemoveLiquidityAccounts':
        accounts_iter = iter(accounts)
        parsed = cls(*(next_account_info(accounts_iter) for _ in range(9)))

        check_writable(parsed.pool_state, "pool state")
        check_owner(parsed.pool_state, program_id, "pool state")
        check_token_account(parsed.user_liquidity, parsed.token_program, "user liquidity")
        check_token_account(parsed.token_a_vault, parsed.token_program, "token A vault")
        check_token_account(parsed.token_b_vault, parsed.token_program, "token B vault")
        check_token_account(parsed.user_token_a, parsed.token_program, "user token A")
        check_token_account(parsed.user_token_b, parsed.token_program, "user token B")
        check_token_account(parsed.liquidity_mint, parsed.token_program, "liquidity mint")

        check_signer(parsed.user)
        check_token_program(parsed.token_program)
        return parsed


@dataclass
class SwapAccounts:
    pool_state: AccountInfo
    user_input_token: AccountInfo
    user_output_token: AccountInfo
    input_vault: AccountInfo
    output_vault: AccountInfo
    token_program: AccountInfo
    user: AccountInfo

    @classmethod
    def parse(cls, program_id: Pubkey, accounts: Sequence[AccountInfo]) -> 'SwapAccounts':
        accounts_iter = iter(accounts)
        parsed = cls(*(next_account_info(accounts_iter) for _ in range(7)))

        check_writable(parsed.pool_state, "pool state")
        check_owner(parsed.pool_state, program_id, "pool state")
        check_token_account(parsed.user_input_token, parsed.token_program, "user input token")
        check_token_account(parsed.user_output_token, parsed.token_program, "user output token")
        check_token_account(parsed.input_vault, parsed.token_program, "input vault")
        check_token_account(parsed.output_vault, parsed.token_program, "output vault")

        check_signer(parsed.user)
        check_token_program(parsed.token_program)
        return parsed
