"""
Instruction processor for the constant product liquidity pool.

Every handler follows the same order: validate the account list, load the
pool record, check identities and amounts, compute with amm_math, issue the
token ledger requests, and only then update and persist the record. A raise
at any step aborts the instruction; the host discards all of its effects.
"""
import logging
from typing import Sequence

from solders.pubkey import Pubkey

from amm_pool import amm_math
from amm_pool.accounts import AccountInfo
from amm_pool.crypto import find_pool_authority, pool_authority_seeds
from amm_pool.errors import AccountDataTooSmall, AlreadyInitialized, InvalidAccount, InvalidAmount
from amm_pool.instruction import (
    AddLiquidity,
    InitializePool,
    PoolInstruction,
    RemoveLiquidity,
    Swap,
    unpack_instruction,
)
from amm_pool.state import POOL_STATE_LEN, LiquidityPool, is_storage_empty
from amm_pool.token_ledger import TokenLedgerClient
from amm_pool.validation import (
    AddLiquidityAccounts,
    InitializePoolAccounts,
    RemoveLiquidityAccounts,
    SwapAccounts,
    check_identity,
    check_not_vault,
    check_token_mint,
    load_mint,
    load_token_account,
)

logger = logging.getLogger(__name__)


class Processor:
    """Executes pool instructions on behalf of one program id."""

    def __init__(self, program_id: Pubkey, ledger: TokenLedgerClient):
        self.program_id = program_id
        self.ledger = ledger

    def process(self, accounts: Sequence[AccountInfo], instruction_data: bytes) -> PoolInstruction:
        """
        Decode and execute a single instruction.

        Returns:
            The decoded instruction, once it has been fully applied
        """
        instruction = unpack_instruction(instruction_data)

        if isinstance(instruction, InitializePool):
            self._process_initialize_pool(accounts)
        elif isinstance(instruction, AddLiquidity):
            self._process_add_liquidity(accounts, instruction.amount_a, instruction.amount_b)
        elif isinstance(instruction, RemoveLiquidity):
            self._process_remove_liquidity(accounts, instruction.liquidity_amount)
        elif isinstance(instruction, Swap):
            self._process_swap(accounts, instruction.amount_in, instruction.a_to_b)
        else:
            raise TypeError(f"Unhandled instruction {instruction!r}")

        return instruction

    # ==========================================================================
    # INSTRUCTION HANDLERS
    # ==========================================================================

    def _process_initialize_pool(self, accounts: Sequence[AccountInfo]):
        """Create the pool record with zero reserves and supply."""
        ctx = InitializePoolAccounts.parse(self.program_id, accounts)

        if not is_storage_empty(ctx.pool_state.data):
            raise AlreadyInitialized(f"Pool {ctx.pool_state.key} already holds a record")
        if len(ctx.pool_state.data) < POOL_STATE_LEN:
            raise AccountDataTooSmall(
                f"Pool storage holds {len(ctx.pool_state.data)} bytes, record needs {POOL_STATE_LEN}"
            )

        authority, bump = find_pool_authority(ctx.pool_state.key, self.program_id)
        if ctx.authority.key != authority:
            raise InvalidAccount(f"Authority {ctx.authority.key} is not the pool authority {authority}")

        vault_a = load_token_account(ctx.token_a_vault, "token A vault")
        vault_b = load_token_account(ctx.token_b_vault, "token B vault")
        if vault_a.mint != ctx.token_a_mint.key or vault_b.mint != ctx.token_b_mint.key:
            raise InvalidAccount("Vaults must hold the pool's mints")
        if vault_a.owner != authority or vault_b.owner != authority:
            raise InvalidAccount("Vaults must be owned by the pool authority")

        liquidity_mint = load_mint(ctx.liquidity_mint, "liquidity mint")
        if liquidity_mint.mint_authority != authority:
            raise InvalidAccount("Liquidity mint must be minted by the pool authority")
        if liquidity_mint.supply != 0:
            raise InvalidAccount("Liquidity mint must start with zero supply")

        pool = LiquidityPool(
            authority=authority,
            token_a_mint=ctx.token_a_mint.key,
            token_b_mint=ctx.token_b_mint.key,
            token_a_vault=ctx.token_a_vault.key,
            token_b_vault=ctx.token_b_vault.key,
            liquidity_mint=ctx.liquidity_mint.key,
            liquidity_supply=0,
            token_a_reserve=0,
            token_b_reserve=0,
            authority_bump=bump,
        )
        pool.pack_into(ctx.pool_state.data)

        logger.info(f"Pool {ctx.pool_state.key} initialized: {pool.token_a_mint}/{pool.token_b_mint}")

    def _process_add_liquidity(self, accounts: Sequence[AccountInfo], amount_a: int, amount_b: int):
        """Deposit both tokens and mint liquidity shares to the depositor."""
        ctx = AddLiquidityAccounts.parse(self.program_id, accounts)
        pool = LiquidityPool.unpack(ctx.pool_state.data)

        check_identity(ctx.token_a_vault, pool.token_a_vault, "token A vault")
        check_identity(ctx.token_b_vault, pool.token_b_vault, "token B vault")
        check_identity(ctx.liquidity_mint, pool.liquidity_mint, "liquidity mint")
        check_token_mint(ctx.user_token_a, pool.token_a_mint, "user token A")
        check_token_mint(ctx.user_token_b, pool.token_b_mint, "user token B")
        vaults = (pool.token_a_vault, pool.token_b_vault)
        check_not_vault(ctx.user_token_a, vaults, "user token A")
        check_not_vault(ctx.user_token_b, vaults, "user token B")

        if amount_a == 0 or amount_b == 0:
            raise InvalidAmount("Cannot add zero liquidity")

        shares = amm_math.deposit_shares(
            amount_a, amount_b,
            pool.liquidity_supply, pool.token_a_reserve, pool.token_b_reserve,
        )
        if shares == 0:
            raise InvalidAmount("Liquidity addition too small")

        user = ctx.user.key
        self.ledger.transfer(ctx.user_token_a, ctx.token_a_vault, user, amount_a)
        self.ledger.transfer(ctx.user_token_b, ctx.token_b_vault, user, amount_b)
        self.ledger.mint_to(
            ctx.liquidity_mint, ctx.user_liquidity, pool.authority, shares,
            signer_seeds=self._authority_seeds(ctx.pool_state.key, pool),
        )

        pool.token_a_reserve = amm_math.checked_add(pool.token_a_reserve, amount_a)
        pool.token_b_reserve = amm_math.checked_add(pool.token_b_reserve, amount_b)
        pool.liquidity_supply = amm_math.checked_add(pool.liquidity_supply, shares)
        pool.pack_into(ctx.pool_state.data)

        logger.info(
            f"Add liquidity: {amount_a} A + {amount_b} B -> {shares} shares "
            f"(supply {pool.liquidity_supply})"
        )

    def _process_remove_liquidity(self, accounts: Sequence[AccountInfo], liquidity_amount: int):
        """Burn liquidity shares and return the proportional reserves."""
        ctx = RemoveLiquidityAccounts.parse(self.program_id, accounts)
        pool = LiquidityPool.unpack(ctx.pool_state.data)

        check_identity(ctx.token_a_vault, pool.token_a_vault, "token A vault")
        check_identity(ctx.token_b_vault, pool.token_b_vault, "token B vault")
        check_identity(ctx.liquidity_mint, pool.liquidity_mint, "liquidity mint")
        check_token_mint(ctx.user_token_a, pool.token_a_mint, "user token A")
        check_token_mint(ctx.user_token_b, pool.token_b_mint, "user token B")
        vaults = (pool.token_a_vault, pool.token_b_vault)
        check_not_vault(ctx.user_token_a, vaults, "user token A")
        check_not_vault(ctx.user_token_b, vaults, "user token B")

        if liquidity_amount == 0 or liquidity_amount > pool.liquidity_supply:
            raise InvalidAmount(
                f"Cannot remove {liquidity_amount} of {pool.liquidity_supply} shares"
            )

        amount_a, amount_b = amm_math.redemption_amounts(
            liquidity_amount, pool.liquidity_supply,
            pool.token_a_reserve, pool.token_b_reserve,
        )
        if amount_a == 0 or amount_b == 0:
            raise InvalidAmount("Liquidity removal too small")

        seeds = self._authority_seeds(ctx.pool_state.key, pool)
        self.ledger.burn(ctx.user_liquidity, ctx.liquidity_mint, ctx.user.key, liquidity_amount)
        self.ledger.transfer(ctx.token_a_vault, ctx.user_token_a, pool.authority, amount_a,
                             signer_seeds=seeds)
        self.ledger.transfer(ctx.token_b_vault, ctx.user_token_b, pool.authority, amount_b,
                             signer_seeds=seeds)

        pool.token_a_reserve = amm_math.checked_sub(pool.token_a_reserve, amount_a)
        pool.token_b_reserve = amm_math.checked_sub(pool.token_b_reserve, amount_b)
        pool.liquidity_supply = amm_math.checked_sub(pool.liquidity_supply, liquidity_amount)
        pool.pack_into(ctx.pool_state.data)

        logger.info(
            f"Remove liquidity: {liquidity_amount} shares -> {amount_a} A + {amount_b} B "
            f"(supply {pool.liquidity_supply})"
        )

    def _process_swap(self, accounts: Sequence[AccountInfo], amount_in: int, a_to_b: bool):
        """Swap amount_in of one pool token for the other."""
        ctx = SwapAccounts.parse(self.program_id, accounts)
        pool = LiquidityPool.unpack(ctx.pool_state.data)

        input_vault, output_vault = pool.vaults(a_to_b)
        input_mint, output_mint = pool.mints(a_to_b)
        check_identity(ctx.input_vault, input_vault, "input vault")
        check_identity(ctx.output_vault, output_vault, "output vault")
        check_token_mint(ctx.user_input_token, input_mint, "user input token")
        check_token_mint(ctx.user_output_token, output_mint, "user output token")
        check_not_vault(ctx.user_input_token, (input_vault, output_vault), "user input token")
        check_not_vault(ctx.user_output_token, (input_vault, output_vault), "user output token")

        if amount_in == 0:
            raise InvalidAmount("Swap amount_in must be positive")

        reserve_in, reserve_out = pool.reserves(a_to_b)
        amount_out = amm_math.swap_output(amount_in, reserve_in, reserve_out)
        if amount_out == 0:
            raise InvalidAmount("Swap output rounds to zero")

        self.ledger.transfer(ctx.user_input_token, ctx.input_vault, ctx.user.key, amount_in)
        self.ledger.transfer(
            ctx.output_vault, ctx.user_output_token, pool.authority, amount_out,
            signer_seeds=self._authority_seeds(ctx.pool_state.key, pool),
        )

        if a_to_b:
            pool.token_a_reserve = amm_math.checked_add(pool.token_a_reserve, amount_in)
            pool.token_b_reserve = amm_math.checked_sub(pool.token_b_reserve, amount_out)
        else:
            pool.token_b_reserve = amm_math.checked_add(pool.token_b_reserve, amount_in)
            pool.token_a_reserve = amm_math.checked_sub(pool.token_a_reserve, amount_out)
        pool.pack_into(ctx.pool_state.data)

        logger.info(
            f"Swap: {amount_in} {'A' if a_to_b else 'B'} -> {amount_out} "
            f"{'B' if a_to_b else 'A'}, k={pool.invariant}"
        )

    @staticmethod
    def _authority_seeds(pool_key: Pubkey, pool: LiquidityPool) -> list[bytes]:
        return pool_authority_seeds(pool_key, pool.authority_bump)


def process_instruction(program_id: Pubkey, accounts: Sequence[AccountInfo],
                        instruction_data: bytes, ledger: TokenLedgerClient) -> PoolInstruction:
    """Program entrypoint."""
    return Processor(program_id, ledger).process(accounts, instruction_data)
