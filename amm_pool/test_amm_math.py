"""
Pool math: share issuance, redemption and constant product swaps.
"""

import pytest

from amm_pool import amm_math
from amm_pool.amm_math import U64_MAX
from amm_pool.errors import ArithmeticOverflow, InsufficientLiquidity


class TestCheckedArithmetic:

    def test_add_overflows_u64(self):
        with pytest.raises(ArithmeticOverflow):
            amm_math.checked_add(U64_MAX, 1)

    def test_sub_underflows(self):
        with pytest.raises(ArithmeticOverflow):
            amm_math.checked_sub(5, 6)

    def test_mul_128_bit_range(self):
        assert amm_math.checked_mul(U64_MAX, U64_MAX, bits=128) == U64_MAX * U64_MAX
        with pytest.raises(ArithmeticOverflow):
            amm_math.checked_mul(U64_MAX, U64_MAX)

    def test_division_by_zero(self):
        with pytest.raises(ArithmeticOverflow):
            amm_math.checked_div(10, 0)
        with pytest.raises(ArithmeticOverflow):
            amm_math.checked_ceil_div(10, 0)

    def test_ceil_div(self):
        assert amm_math.checked_ceil_div(10, 5) == 2
        assert amm_math.checked_ceil_div(11, 5) == 3


class TestDepositShares:

    def test_first_deposit_is_geometric_mean(self):
        assert amm_math.deposit_shares(100, 400, 0, 0, 0) == 200

    def test_first_deposit_rounds_down(self):
        # sqrt(2 * 3) = 2.449...
        assert amm_math.deposit_shares(2, 3, 0, 0, 0) == 2

    def test_first_deposit_at_u64_limit(self):
        assert amm_math.initial_shares(U64_MAX, U64_MAX) == U64_MAX

    def test_proportional_deposit_takes_minimum(self):
        # shares_a = 50 * 200 / 100 = 100, shares_b = 100 * 200 / 400 = 50
        assert amm_math.deposit_shares(50, 100, 200, 100, 400) == 50

    def test_balanced_deposit(self):
        assert amm_math.deposit_shares(10, 40, 200, 100, 400) == 20

    def test_tiny_deposit_mints_nothing(self):
        assert amm_math.deposit_shares(1, 1, 10, 1000, 1000) == 0

    def test_shares_beyond_u64_rejected(self):
        with pytest.raises(ArithmeticOverflow):
            amm_math.deposit_shares(2, 2, U64_MAX, 1, 1)


class TestRedemption:

    def test_proportional_redemption(self):
        assert amm_math.redemption_amounts(50, 200, 100, 400) == (25, 100)

    def test_full_redemption_returns_everything(self):
        assert amm_math.redemption_amounts(200, 200, 100, 400) == (100, 400)

    def test_redemption_rounds_down(self):
        assert amm_math.redemption_amounts(1, 3, 10, 10) == (3, 3)


class TestSwapOutput:

    def test_fee_is_thirty_basis_points(self):
        assert amm_math.amount_after_fee(10_000) == 9_970
        assert amm_math.amount_after_fee(100) == 99

    def test_fee_multiplication_overflow(self):
        with pytest.raises(ArithmeticOverflow):
            amm_math.amount_after_fee(U64_MAX)

    def test_reference_swap(self):
        assert amm_math.swap_output(100, 1000, 1000) == 90

    def test_invariant_never_decreases(self):
        for amount_in, reserve_in, reserve_out in [
            (100, 1000, 1000),
            (1, 10**6, 10**6),
            (12345, 99999, 7777),
            (10**12, 10**15, 10**9),
        ]:
            out = amm_math.swap_output(amount_in, reserve_in, reserve_out)
            after_fee = amm_math.amount_after_fee(amount_in)
            assert (reserve_in + after_fee) * (reserve_out - out) >= reserve_in * reserve_out
            assert out < reserve_out

    def test_output_never_drains_reserve(self):
        out = amm_math.swap_output(U64_MAX // 10_000, 1, 1000)
        assert out < 1000

    def test_fee_swallowing_input_yields_zero(self):
        assert amm_math.swap_output(1, 1000, 1000) == 0

    def test_empty_reserves(self):
        with pytest.raises(InsufficientLiquidity):
            amm_math.swap_output(100, 0, 1000)
        with pytest.raises(InsufficientLiquidity):
            amm_math.swap_output(100, 1000, 0)

    def test_matches_closed_form(self):
        reserve_in, reserve_out, amount_in = 5_000_000, 3_000_000, 250_000
        after_fee = amount_in * 9970 // 10_000
        k = reserve_in * reserve_out
        expected = reserve_out - -(-k // (reserve_in + after_fee))
        assert amm_math.swap_output(amount_in, reserve_in, reserve_out) == expected
