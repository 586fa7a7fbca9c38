"""
Integer math for the constant product pool: x * y = k

All quantities are unsigned integers. Intermediate products are bounded to
128 bits and every result stored on-chain is bounded to 64 bits; leaving
either range raises ArithmeticOverflow instead of wrapping.
"""
import math

from amm_pool.errors import ArithmeticOverflow, InsufficientLiquidity

U64_MAX = 2**64 - 1
U128_MAX = 2**128 - 1

# Fee configuration (30 basis points = 0.30%)
FEE_NUMERATOR = 30
FEE_DENOMINATOR = 10_000

_LIMITS = {64: U64_MAX, 128: U128_MAX}


def _bounded(value: int, bits: int, operation: str) -> int:
    if value < 0 or value > _LIMITS[bits]:
        raise ArithmeticOverflow(f"{operation} leaves the u{bits} range")
    return value


def checked_add(a: int, b: int, bits: int = 64) -> int:
    return _bounded(a + b, bits, "addition")


def checked_sub(a: int, b: int, bits: int = 64) -> int:
    return _bounded(a - b, bits, "subtraction")


def checked_mul(a: int, b: int, bits: int = 64) -> int:
    return _bounded(a * b, bits, "multiplication")


def checked_div(a: int, b: int) -> int:
    if b == 0:
        raise ArithmeticOverflow("division by zero")
    return a // b


def checked_ceil_div(a: int, b: int) -> int:
    if b == 0:
        raise ArithmeticOverflow("division by zero")
    return -(-a // b)


def to_u64(value: int) -> int:
    """Narrow a 128-bit intermediate to u64."""
    return _bounded(value, 64, "narrowing")


def initial_shares(amount_a: int, amount_b: int) -> int:
    """
    Shares minted by the first deposit: the geometric mean of the amounts.

    Args:
        amount_a: Token A deposited
        amount_b: Token B deposited

    Returns:
        floor(sqrt(amount_a * amount_b))
    """
    return math.isqrt(checked_mul(amount_a, amount_b, bits=128))


def deposit_shares(amount_a: int, amount_b: int, supply: int,
                   reserve_a: int, reserve_b: int) -> int:
    """
    Calculate liquidity shares minted for a deposit.

    A deposit into an existing pool mints the smaller of the two
    proportional contributions, so an unbalanced deposit never dilutes
    the existing holders.

    Returns:
        Shares to mint (may be 0; the caller rejects that)
    """
    if supply == 0:
        shares = initial_shares(amount_a, amount_b)
    else:
        shares_a = checked_div(checked_mul(amount_a, supply, bits=128), reserve_a)
        shares_b = checked_div(checked_mul(amount_b, supply, bits=128), reserve_b)
        shares = min(shares_a, shares_b)
    return to_u64(shares)


def redemption_amounts(liquidity_amount: int, supply: int,
                       reserve_a: int, reserve_b: int) -> tuple[int, int]:
    """
    Calculate the reserves returned for burning liquidity_amount shares.

    Returns:
        (amount_a, amount_b), each rounded down
    """
    amount_a = checked_div(checked_mul(liquidity_amount, reserve_a, bits=128), supply)
    amount_b = checked_div(checked_mul(liquidity_amount, reserve_b, bits=128), supply)
    return to_u64(amount_a), to_u64(amount_b)


def amount_after_fee(amount_in: int) -> int:
    """Input left after the swap fee (keep 99.7% of input)."""
    kept = checked_mul(amount_in, FEE_DENOMINATOR - FEE_NUMERATOR)
    return checked_div(kept, FEE_DENOMINATOR)


def swap_output(amount_in: int, reserve_in: int, reserve_out: int) -> int:
    """
    Calculate swap output using constant product formula with fees.

    The new output reserve is rounded up, so the pool keeps
    (reserve_in + input_with_fee) * (reserve_out - output) >= reserve_in * reserve_out

    Args:
        amount_in: Amount of input asset (in smallest unit)
        reserve_in: Pool reserve of the input asset
        reserve_out: Pool reserve of the output asset

    Returns:
        Amount of output asset (in smallest unit)
    """
    if reserve_in == 0 or reserve_out == 0:
        raise InsufficientLiquidity("Empty pool")

    input_with_fee = amount_after_fee(amount_in)
    invariant = checked_mul(reserve_in, reserve_out, bits=128)
    new_reserve_in = checked_add(reserve_in, input_with_fee, bits=128)
    new_reserve_out = to_u64(checked_ceil_div(invariant, new_reserve_in))
    return checked_sub(reserve_out, new_reserve_out)
