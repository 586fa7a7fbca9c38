"""
Pool instructions: the closed set of operations, their wire encoding, and
builders for the account lists each one expects.
"""
from dataclasses import dataclass
from typing import ClassVar, Union

from construct import ConstructError, Int8ul, Int64ul, Struct
from solders.instruction import AccountMeta, Instruction
from solders.pubkey import Pubkey

from amm_pool.errors import InvalidInstructionData
from amm_pool.token_ledger import TOKEN_PROGRAM_ID

ADD_LIQUIDITY_LAYOUT = Struct(
    "amount_a" / Int64ul,
    "amount_b" / Int64ul,
)

REMOVE_LIQUIDITY_LAYOUT = Struct(
    "liquidity_amount" / Int64ul,
)

SWAP_LAYOUT = Struct(
    "amount_in" / Int64ul,
    "a_to_b" / Int8ul,
)


@dataclass(frozen=True)
class InitializePool:
    OPCODE: ClassVar[int] = 0


@dataclass(frozen=True)
class AddLiquidity:
    OPCODE: ClassVar[int] = 1
    amount_a: int
    amount_b: int


@dataclass(frozen=True)
class RemoveLiquidity:
    OPCODE: ClassVar[int] = 2
    liquidity_amount: int


@dataclass(frozen=True)
class Swap:
    OPCODE: ClassVar[int] = 3
    amount_in: int
    a_to_b: bool


PoolInstruction = Union[InitializePool, AddLiquidity, RemoveLiquidity, Swap]


def pack_instruction(instruction: PoolInstruction) -> bytes:
    """Encode an instruction as opcode byte + little-endian payload."""
    opcode = bytes([instruction.OPCODE])
    if isinstance(instruction, InitializePool):
        return opcode
    elif isinstance(instruction, AddLiquidity):
        return opcode + ADD_LIQUIDITY_LAYOUT.build(dict(
            amount_a=instruction.amount_a, amount_b=instruction.amount_b))
    elif isinstance(instruction, RemoveLiquidity):
        return opcode + REMOVE_LIQUIDITY_LAYOUT.build(dict(
            liquidity_amount=instruction.liquidity_amount))
    elif isinstance(instruction, Swap):
        return opcode + SWAP_LAYOUT.build(dict(
            amount_in=instruction.amount_in, a_to_b=1 if instruction.a_to_b else 0))
    raise TypeError(f"Not a pool instruction: {instruction!r}")


def unpack_instruction(data: bytes) -> PoolInstruction:
    """
    Decode instruction bytes.

    The payload must be exactly as long as the opcode's layout.

    Raises:
        InvalidInstructionData: on empty input, unknown opcode, wrong
            payload length or a bool byte other than 0/1
    """
    if not data:
        raise InvalidInstructionData("Empty instruction data")

    opcode, payload = data[0], bytes(data[1:])

    try:
        if opcode == InitializePool.OPCODE:
            _expect_length(payload, 0)
            return InitializePool()

        elif opcode == AddLiquidity.OPCODE:
            _expect_length(payload, ADD_LIQUIDITY_LAYOUT.sizeof())
            parsed = ADD_LIQUIDITY_LAYOUT.parse(payload)
            return AddLiquidity(amount_a=parsed.amount_a, amount_b=parsed.amount_b)

        elif opcode == RemoveLiquidity.OPCODE:
            _expect_length(payload, REMOVE_LIQUIDITY_LAYOUT.sizeof())
            parsed = REMOVE_LIQUIDITY_LAYOUT.parse(payload)
            return RemoveLiquidity(liquidity_amount=parsed.liquidity_amount)

        elif opcode == Swap.OPCODE:
            _expect_length(payload, SWAP_LAYOUT.sizeof())
            parsed = SWAP_LAYOUT.parse(payload)
            if parsed.a_to_b not in (0, 1):
                raise InvalidInstructionData(f"Invalid bool byte {parsed.a_to_b}")
            return Swap(amount_in=parsed.amount_in, a_to_b=bool(parsed.a_to_b))

    except ConstructError as e:
        raise InvalidInstructionData(f"Malformed payload for opcode {opcode}: {e}") from e

    raise InvalidInstructionData(f"Unknown opcode {opcode}")


def _expect_length(payload: bytes, length: int):
    if len(payload) != length:
        raise InvalidInstructionData(f"Expected {length} payload bytes, got {len(payload)}")


# ==============================================================================
# INSTRUCTION BUILDERS
# ==============================================================================

def initialize_pool(program_id: Pubkey, pool: Pubkey, authority: Pubkey,
                    token_a_mint: Pubkey, token_b_mint: Pubkey,
                    token_a_vault: Pubkey, token_b_vault: Pubkey,
                    liquidity_mint: Pubkey,
                    token_program_id: Pubkey = TOKEN_PROGRAM_ID) -> Instruction:
    accounts = [
        AccountMeta(pool, False, True),
        AccountMeta(authority, False, False),
        AccountMeta(token_a_mint, False, False),
        AccountMeta(token_b_mint, False, False),
        AccountMeta(token_a_vault, False, True),
        AccountMeta(token_b_vault, False, True),
        AccountMeta(liquidity_mint, False, False),
        AccountMeta(token_program_id, False, False),
    ]
    return Instruction(program_id, pack_instruction(InitializePool()), accounts)


def add_liquidity(program_id: Pubkey, pool: Pubkey,
                  user_token_a: Pubkey, user_token_b: Pubkey,
                  token_a_vault: Pubkey, token_b_vault: Pubkey,
                  liquidity_mint: Pubkey, user_liquidity: Pubkey, user: Pubkey,
                  amount_a: int, amount_b: int,
                  token_program_id: Pubkey = TOKEN_PROGRAM_ID) -> Instruction:
    accounts = [
        AccountMeta(pool, False, True),
        AccountMeta(user_token_a, False, True),
        AccountMeta(user_token_b, False, True),
        AccountMeta(token_a_vault, False, True),
        AccountMeta(token_b_vault, False, True),
        AccountMeta(liquidity_mint, False, True),
        AccountMeta(user_liquidity, False, True),
        AccountMeta(token_program_id, False, False),
        AccountMeta(user, True, False),
    ]
    data = pack_instruction(AddLiquidity(amount_a=amount_a, amount_b=amount_b))
    return Instruction(program_id, data, accounts)


def remove_liquidity(program_id: Pubkey, pool: Pubkey, user_liquidity: Pubkey,
                     token_a_vault: Pubkey, token_b_vault: Pubkey,
                     user_token_a: Pubkey, user_token_b: Pubkey,
                     liquidity_mint: Pubkey, user: Pubkey, liquidity_amount: int,
                     token_program_id: Pubkey = TOKEN_PROGRAM_ID) -> Instruction:
    accounts = [
        AccountMeta(pool, False, True),
        AccountMeta(user_liquidity, False, True),
        AccountMeta(token_a_vault, False, True),
        AccountMeta(token_b_vault, False, True),
        AccountMeta(user_token_a, False, True),
        AccountMeta(user_token_b, False, True),
        AccountMeta(liquidity_mint, False, True),
        AccountMeta(user, True, False),
        AccountMeta(token_program_id, False, False),
    ]
    data = pack_instruction(RemoveLiquidity(liquidity_amount=liquidity_amount))
    return Instruction(program_id, data, accounts)


def swap(program_id: Pubkey, pool: Pubkey,
         user_input_token: Pubkey, user_output_token: Pubkey,
         input_vault: Pubkey, output_vault: Pubkey, user: Pubkey,
         amount_in: int, a_to_b: bool,
         token_program_id: Pubkey = TOKEN_PROGRAM_ID) -> Instruction:
    accounts = [
        AccountMeta(pool, False, True),
        AccountMeta(user_input_token, False, True),
        AccountMeta(user_output_token, False, True),
        AccountMeta(input_vault, False, True),
        AccountMeta(output_vault, False, True),
        AccountMeta(token_program_id, False, False),
        AccountMeta(user, True, False),
    ]
    data = pack_instruction(Swap(amount_in=amount_in, a_to_b=a_to_b))
    return Instruction(program_id, data, accounts)
