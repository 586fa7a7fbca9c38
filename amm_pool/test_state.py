"""
Pool record encoding and decoding.
"""
from decimal import Decimal

import pytest
from solders.pubkey import Pubkey

from amm_pool.errors import AccountDataTooSmall, InvalidAccount, NotInitialized
from amm_pool.state import POOL_STATE_LEN, POOL_STATE_VERSION, LiquidityPool, is_storage_empty


@pytest.fixture
def pool():
    return LiquidityPool(
        authority=Pubkey.new_unique(),
        token_a_mint=Pubkey.new_unique(),
        token_b_mint=Pubkey.new_unique(),
        token_a_vault=Pubkey.new_unique(),
        token_b_vault=Pubkey.new_unique(),
        liquidity_mint=Pubkey.new_unique(),
        liquidity_supply=200,
        token_a_reserve=100,
        token_b_reserve=400,
        authority_bump=254,
    )


class TestRecordLayout:

    def test_record_length(self):
        # version + six identities + three u64 counters + bump
        assert POOL_STATE_LEN == 1 + 6 * 32 + 3 * 8 + 1

    def test_pack_is_fixed_width_little_endian(self, pool):
        data = pool.pack()
        assert len(data) == POOL_STATE_LEN
        assert data[0] == POOL_STATE_VERSION
        assert data[1:33] == bytes(pool.authority)
        assert data[193:201] == (200).to_bytes(8, 'little')
        assert data[201:209] == (100).to_bytes(8, 'little')
        assert data[209:217] == (400).to_bytes(8, 'little')
        assert data[217] == 254

    def test_unpack_restores_every_field(self, pool):
        assert LiquidityPool.unpack(pool.pack()) == pool

    def test_unpack_ignores_trailing_bytes(self, pool):
        assert LiquidityPool.unpack(pool.pack() + bytes(32)) == pool

    def test_pack_into_larger_buffer(self, pool):
        buffer = bytearray(POOL_STATE_LEN + 10)
        pool.pack_into(buffer)
        assert bytes(buffer[:POOL_STATE_LEN]) == pool.pack()
        assert buffer[POOL_STATE_LEN:] == bytearray(10)

    def test_pack_into_small_buffer(self, pool):
        with pytest.raises(AccountDataTooSmall):
            pool.pack_into(bytearray(POOL_STATE_LEN - 1))


class TestUninitializedStorage:

    def test_zeroed_storage_is_not_initialized(self):
        with pytest.raises(NotInitialized):
            LiquidityPool.unpack(bytes(POOL_STATE_LEN))

    def test_empty_storage_is_not_initialized(self):
        with pytest.raises(NotInitialized):
            LiquidityPool.unpack(b'')

    def test_short_garbage_is_too_small(self):
        with pytest.raises(AccountDataTooSmall):
            LiquidityPool.unpack(b'\x01' * 10)

    def test_unknown_version(self, pool):
        data = bytearray(pool.pack())
        data[0] = 7
        with pytest.raises(InvalidAccount):
            LiquidityPool.unpack(bytes(data))

    def test_is_storage_empty(self, pool):
        assert is_storage_empty(bytes(POOL_STATE_LEN))
        assert is_storage_empty(b'')
        assert not is_storage_empty(pool.pack())


class TestPoolViews:

    def test_direction_helpers(self, pool):
        assert pool.reserves(True) == (100, 400)
        assert pool.reserves(False) == (400, 100)
        assert pool.vaults(True) == (pool.token_a_vault, pool.token_b_vault)
        assert pool.vaults(False) == (pool.token_b_vault, pool.token_a_vault)
        assert pool.mints(False) == (pool.token_b_mint, pool.token_a_mint)

    def test_invariant_and_price(self, pool):
        assert pool.invariant == 40_000
        assert pool.current_price == Decimal(4)

    def test_empty_pool_price(self, pool):
        pool.token_a_reserve = 0
        assert pool.current_price == Decimal(0)

    def test_swap_quote_leaves_reserves(self, pool):
        pool.token_a_reserve = pool.token_b_reserve = 1000
        assert pool.get_swap_output(100, True) == 90
        assert pool.reserves(True) == (1000, 1000)
