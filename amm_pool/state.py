"""
AMM (Automated Market Maker) liquidity pool state.
Implements the fixed binary record kept in the pool's storage account.
"""
from dataclasses import dataclass
from decimal import Decimal

from construct import Bytes, ConstructError, Int8ul, Int64ul, Struct
from solders.pubkey import Pubkey

from amm_pool import amm_math
from amm_pool.errors import AccountDataTooSmall, InvalidAccount, NotInitialized

POOL_STATE_VERSION = 1

POOL_STATE_LAYOUT = Struct(
    "version" / Int8ul,
    "authority" / Bytes(32),
    "token_a_mint" / Bytes(32),
    "token_b_mint" / Bytes(32),
    "token_a_vault" / Bytes(32),
    "token_b_vault" / Bytes(32),
    "liquidity_mint" / Bytes(32),
    "liquidity_supply" / Int64ul,
    "token_a_reserve" / Int64ul,
    "token_b_reserve" / Int64ul,
    "authority_bump" / Int8ul,
)

POOL_STATE_LEN = POOL_STATE_LAYOUT.sizeof()


@dataclass
class LiquidityPool:
    """
    Represents the AMM liquidity pool state stored on-chain.

    Uses the constant product formula (Uniswap V2 style):
    token_a_reserve * token_b_reserve = k (constant)
    """
    authority: Pubkey
    token_a_mint: Pubkey
    token_b_mint: Pubkey
    token_a_vault: Pubkey
    token_b_vault: Pubkey
    liquidity_mint: Pubkey
    liquidity_supply: int = 0
    token_a_reserve: int = 0
    token_b_reserve: int = 0
    authority_bump: int = 0

    def pack(self) -> bytes:
        """Serialize into the fixed binary record."""
        return POOL_STATE_LAYOUT.build(dict(
            version=POOL_STATE_VERSION,
            authority=bytes(self.authority),
            token_a_mint=bytes(self.token_a_mint),
            token_b_mint=bytes(self.token_b_mint),
            token_a_vault=bytes(self.token_a_vault),
            token_b_vault=bytes(self.token_b_vault),
            liquidity_mint=bytes(self.liquidity_mint),
            liquidity_supply=self.liquidity_supply,
            token_a_reserve=self.token_a_reserve,
            token_b_reserve=self.token_b_reserve,
            authority_bump=self.authority_bump,
        ))

    def pack_into(self, buffer: bytearray):
        """Write the record over the start of an account buffer."""
        if len(buffer) < POOL_STATE_LEN:
            raise AccountDataTooSmall(
                f"Pool storage holds {len(buffer)} bytes, record needs {POOL_STATE_LEN}"
            )
        buffer[:POOL_STATE_LEN] = self.pack()

    @classmethod
    def unpack(cls, data: bytes) -> 'LiquidityPool':
        """
        Deserialize a pool record.

        Raises:
            NotInitialized: storage was never initialized
            InvalidAccount: storage holds an unknown record version
            AccountDataTooSmall: storage is shorter than a record
        """
        if len(data) < POOL_STATE_LEN:
            if not any(data):
                raise NotInitialized("Pool storage is empty")
            raise AccountDataTooSmall(f"Pool storage holds only {len(data)} bytes")

        try:
            parsed = POOL_STATE_LAYOUT.parse(bytes(data[:POOL_STATE_LEN]))
        except ConstructError as e:
            raise InvalidAccount(f"Malformed pool record: {e}") from e

        if parsed.version == 0:
            raise NotInitialized("Pool is not initialized")
        if parsed.version != POOL_STATE_VERSION:
            raise InvalidAccount(f"Unsupported pool record version {parsed.version}")

        return cls(
            authority=Pubkey.from_bytes(parsed.authority),
            token_a_mint=Pubkey.from_bytes(parsed.token_a_mint),
            token_b_mint=Pubkey.from_bytes(parsed.token_b_mint),
            token_a_vault=Pubkey.from_bytes(parsed.token_a_vault),
            token_b_vault=Pubkey.from_bytes(parsed.token_b_vault),
            liquidity_mint=Pubkey.from_bytes(parsed.liquidity_mint),
            liquidity_supply=parsed.liquidity_supply,
            token_a_reserve=parsed.token_a_reserve,
            token_b_reserve=parsed.token_b_reserve,
            authority_bump=parsed.authority_bump,
        )

    def reserves(self, a_to_b: bool) -> tuple[int, int]:
        """Returns (reserve_in, reserve_out) ordered by swap direction."""
        if a_to_b:
            return self.token_a_reserve, self.token_b_reserve
        return self.token_b_reserve, self.token_a_reserve

    def vaults(self, a_to_b: bool) -> tuple[Pubkey, Pubkey]:
        """Returns (input_vault, output_vault) ordered by swap direction."""
        if a_to_b:
            return self.token_a_vault, self.token_b_vault
        return self.token_b_vault, self.token_a_vault

    def mints(self, a_to_b: bool) -> tuple[Pubkey, Pubkey]:
        """Returns (input_mint, output_mint) ordered by swap direction."""
        if a_to_b:
            return self.token_a_mint, self.token_b_mint
        return self.token_b_mint, self.token_a_mint

    @property
    def invariant(self) -> int:
        return self.token_a_reserve * self.token_b_reserve

    @property
    def current_price(self) -> Decimal:
        """
        Price of one unit of token A in units of token B.

        Price = B Reserve / A Reserve
        """
        if self.token_a_reserve == 0:
            return Decimal(0)
        return Decimal(self.token_b_reserve) / Decimal(self.token_a_reserve)

    def get_swap_output(self, amount_in: int, a_to_b: bool) -> int:
        """Quote a swap against the current reserves without changing them."""
        reserve_in, reserve_out = self.reserves(a_to_b)
        return amm_math.swap_output(amount_in, reserve_in, reserve_out)

    def __repr__(self) -> str:
        """String representation for debugging."""
        return (
            f"LiquidityPool("
            f"token_a_reserve={self.token_a_reserve}, "
            f"token_b_reserve={self.token_b_reserve}, "
            f"lp_supply={self.liquidity_supply}, "
            f"price={self.current_price})"
        )


def is_storage_empty(data: bytes) -> bool:
    """A pool account that was allocated but never written."""
    return not any(data)
