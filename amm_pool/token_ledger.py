"""
External token ledger: the account layouts the pool reads, the client
interface it issues transfers through, and an in-process ledger used by
the local runtime.
"""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from construct import Bytes, ConstructError, Int8ul, Int32ul, Int64ul, Struct
from solders.pubkey import Pubkey

from amm_pool.accounts import AccountInfo
from amm_pool.amm_math import U64_MAX
from amm_pool.crypto import InvalidSeeds, create_program_address
from amm_pool.errors import ProgramError

logger = logging.getLogger(__name__)

TOKEN_PROGRAM_ID = Pubkey.from_string("TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA")

MINT_LAYOUT = Struct(
    "mint_authority_option" / Int32ul,
    "mint_authority" / Bytes(32),
    "supply" / Int64ul,
    "decimals" / Int8ul,
    "is_initialized" / Int8ul,
    "freeze_authority_option" / Int32ul,
    "freeze_authority" / Bytes(32),
)

TOKEN_ACCOUNT_LAYOUT = Struct(
    "mint" / Bytes(32),
    "owner" / Bytes(32),
    "amount" / Int64ul,
    "delegate_option" / Int32ul,
    "delegate" / Bytes(32),
    "state" / Int8ul,
    "is_native_option" / Int32ul,
    "is_native" / Int64ul,
    "delegated_amount" / Int64ul,
    "close_authority_option" / Int32ul,
    "close_authority" / Bytes(32),
)

MINT_LEN = MINT_LAYOUT.sizeof()
TOKEN_ACCOUNT_LEN = TOKEN_ACCOUNT_LAYOUT.sizeof()

ACCOUNT_STATE_UNINITIALIZED = 0
ACCOUNT_STATE_INITIALIZED = 1
ACCOUNT_STATE_FROZEN = 2


class TokenLedgerError(ProgramError):
    """Raised when the token ledger rejects a request."""
    pass


class InsufficientFunds(TokenLedgerError):
    pass


class MintMismatch(TokenLedgerError):
    pass


class OwnerMismatch(TokenLedgerError):
    pass


class MissingRequiredSignature(TokenLedgerError):
    pass


class InvalidTokenAccount(TokenLedgerError):
    pass


class TokenOverflow(TokenLedgerError):
    pass


def checked_amount_add(a: int, b: int) -> int:
    """Add token amounts, rejecting results beyond u64."""
    if a + b > U64_MAX:
        raise TokenOverflow("Token amount overflows u64")
    return a + b


@dataclass
class Mint:
    mint_authority: Optional[Pubkey]
    supply: int = 0
    decimals: int = 6
    is_initialized: bool = True

    def pack(self) -> bytes:
        return MINT_LAYOUT.build(dict(
            mint_authority_option=1 if self.mint_authority is not None else 0,
            mint_authority=bytes(self.mint_authority) if self.mint_authority is not None else bytes(32),
            supply=self.supply,
            decimals=self.decimals,
            is_initialized=1 if self.is_initialized else 0,
            freeze_authority_option=0,
            freeze_authority=bytes(32),
        ))

    @classmethod
    def unpack(cls, data: bytes) -> 'Mint':
        if len(data) != MINT_LEN:
            raise InvalidTokenAccount(f"Mint data must be {MINT_LEN} bytes, got {len(data)}")
        try:
            parsed = MINT_LAYOUT.parse(bytes(data))
        except ConstructError as e:
            raise InvalidTokenAccount(f"Malformed mint: {e}") from e
        if not parsed.is_initialized:
            raise InvalidTokenAccount("Mint is not initialized")
        authority = Pubkey.from_bytes(parsed.mint_authority) if parsed.mint_authority_option else None
        return cls(
            mint_authority=authority,
            supply=parsed.supply,
            decimals=parsed.decimals,
            is_initialized=True,
        )


@dataclass
class TokenAccount:
    mint: Pubkey
    owner: Pubkey
    amount: int = 0
    state: int = ACCOUNT_STATE_INITIALIZED

    def pack(self) -> bytes:
        return TOKEN_ACCOUNT_LAYOUT.build(dict(
            mint=bytes(self.mint),
            owner=bytes(self.owner),
            amount=self.amount,
            delegate_option=0,
            delegate=bytes(32),
            state=self.state,
            is_native_option=0,
            is_native=0,
            delegated_amount=0,
            close_authority_option=0,
            close_authority=bytes(32),
        ))

    @classmethod
    def unpack(cls, data: bytes) -> 'TokenAccount':
        if len(data) != TOKEN_ACCOUNT_LEN:
            raise InvalidTokenAccount(
                f"Token account data must be {TOKEN_ACCOUNT_LEN} bytes, got {len(data)}"
            )
        try:
            parsed = TOKEN_ACCOUNT_LAYOUT.parse(bytes(data))
        except ConstructError as e:
            raise InvalidTokenAccount(f"Malformed token account: {e}") from e
        if parsed.state == ACCOUNT_STATE_UNINITIALIZED:
            raise InvalidTokenAccount("Token account is not initialized")
        return cls(
            mint=Pubkey.from_bytes(parsed.mint),
            owner=Pubkey.from_bytes(parsed.owner),
            amount=parsed.amount,
            state=parsed.state,
        )

    @property
    def is_frozen(self) -> bool:
        return self.state == ACCOUNT_STATE_FROZEN


class TokenLedgerClient(ABC):
    """
    Synchronous requests to the external token ledger.

    Each call either completes before returning or raises, aborting the
    whole instruction. When the authority is a program-derived address,
    signer_seeds carries the seeds the calling program signs with.
    """

    @abstractmethod
    def transfer(self, source: AccountInfo, destination: AccountInfo,
                 authority: Pubkey, amount: int, signer_seeds: Sequence[bytes] = ()):
        ...

    @abstractmethod
    def mint_to(self, mint: AccountInfo, destination: AccountInfo,
                authority: Pubkey, amount: int, signer_seeds: Sequence[bytes] = ()):
        ...

    @abstractmethod
    def burn(self, source: AccountInfo, mint: AccountInfo,
             authority: Pubkey, amount: int, signer_seeds: Sequence[bytes] = ()):
        ...


class LocalTokenLedger(TokenLedgerClient):
    """
    In-process token ledger operating directly on the instruction's
    account buffers.

    Args:
        caller_program_id: Program whose derived addresses may sign via seeds
        signers: Addresses that signed the enclosing transaction
    """

    def __init__(self, caller_program_id: Pubkey, signers: Iterable[Pubkey] = (),
                 token_program_id: Pubkey = TOKEN_PROGRAM_ID):
        self.caller_program_id = caller_program_id
        self.signers = set(signers)
        self.token_program_id = token_program_id

    def transfer(self, source: AccountInfo, destination: AccountInfo,
                 authority: Pubkey, amount: int, signer_seeds: Sequence[bytes] = ()):
        source_state = self._load_token_account(source)
        destination_state = self._load_token_account(destination)

        if source_state.mint != destination_state.mint:
            raise MintMismatch(f"Cannot transfer {source_state.mint} into a {destination_state.mint} account")
        if source_state.owner != authority:
            raise OwnerMismatch(f"{authority} does not own {source.key}")
        self._authorize(authority, signer_seeds)

        if source_state.amount < amount:
            raise InsufficientFunds(f"{source.key} holds {source_state.amount}, needs {amount}")

        if source.key == destination.key:
            return

        source_state.amount -= amount
        destination_state.amount = checked_amount_add(destination_state.amount, amount)

        self._store(source, source_state)
        self._store(destination, destination_state)
        logger.debug(f"Transfer {amount} {source.key} -> {destination.key}")

    def mint_to(self, mint: AccountInfo, destination: AccountInfo,
                authority: Pubkey, amount: int, signer_seeds: Sequence[bytes] = ()):
        mint_state = self._load_mint(mint)
        destination_state = self._load_token_account(destination)

        if destination_state.mint != mint.key:
            raise MintMismatch(f"{destination.key} does not hold {mint.key}")
        if mint_state.mint_authority is None:
            raise OwnerMismatch(f"{mint.key} has a fixed supply")
        if mint_state.mint_authority != authority:
            raise OwnerMismatch(f"{authority} is not the mint authority of {mint.key}")
        self._authorize(authority, signer_seeds)

        mint_state.supply = checked_amount_add(mint_state.supply, amount)
        destination_state.amount = checked_amount_add(destination_state.amount, amount)

        self._store(mint, mint_state)
        self._store(destination, destination_state)
        logger.debug(f"Mint {amount} of {mint.key} -> {destination.key}")

    def burn(self, source: AccountInfo, mint: AccountInfo,
             authority: Pubkey, amount: int, signer_seeds: Sequence[bytes] = ()):
        source_state = self._load_token_account(source)
        mint_state = self._load_mint(mint)

        if source_state.mint != mint.key:
            raise MintMismatch(f"{source.key} does not hold {mint.key}")
        if source_state.owner != authority:
            raise OwnerMismatch(f"{authority} does not own {source.key}")
        self._authorize(authority, signer_seeds)

        if source_state.amount < amount:
            raise InsufficientFunds(f"{source.key} holds {source_state.amount}, needs {amount}")

        source_state.amount -= amount
        mint_state.supply -= amount

        self._store(source, source_state)
        self._store(mint, mint_state)
        logger.debug(f"Burn {amount} of {mint.key} from {source.key}")

    # ==========================================================================
    # HELPERS
    # ==========================================================================

    def _authorize(self, authority: Pubkey, signer_seeds: Sequence[bytes]):
        if signer_seeds:
            try:
                derived = create_program_address(list(signer_seeds), self.caller_program_id)
            except InvalidSeeds as e:
                raise MissingRequiredSignature(f"Invalid signer seeds: {e}") from e
            if derived != authority:
                raise MissingRequiredSignature(f"Seeds do not sign for {authority}")
            return
        if authority not in self.signers:
            raise MissingRequiredSignature(f"{authority} did not sign")

    def _check_writable(self, info: AccountInfo):
        if info.owner != self.token_program_id:
            raise InvalidTokenAccount(f"{info.key} is not owned by the token program")
        if not info.is_writable:
            raise InvalidTokenAccount(f"{info.key} is not writable")

    def _load_token_account(self, info: AccountInfo) -> TokenAccount:
        self._check_writable(info)
        state = TokenAccount.unpack(info.data)
        if state.is_frozen:
            raise InvalidTokenAccount(f"{info.key} is frozen")
        return state

    def _load_mint(self, info: AccountInfo) -> Mint:
        self._check_writable(info)
        return Mint.unpack(info.data)

    @staticmethod
    def _store(info: AccountInfo, state):
        info.data[:] = state.pack()
