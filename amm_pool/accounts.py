"""
Account records as stored by the runtime and as seen by the program.
"""
from dataclasses import dataclass, field
from typing import Iterator

from solders.pubkey import Pubkey

from amm_pool.errors import NotEnoughAccountKeys

# Owner of accounts nobody has claimed yet
SYSTEM_PROGRAM_ID = Pubkey.default()


@dataclass
class Account:
    """A stored account: owning program and raw data."""
    owner: Pubkey
    data: bytes = b''
    executable: bool = False

    def to_dict(self) -> dict:
        """
        Convert to dict for storage.
        """
        return {
            'owner': bytes(self.owner),
            'data': bytes(self.data),
            'executable': self.executable,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'Account':
        return cls(
            owner=Pubkey.from_bytes(data['owner']),
            data=bytes(data['data']),
            executable=bool(data.get('executable', False)),
        )


@dataclass
class AccountInfo:
    """
    An account as handed to the program for one instruction.

    data is a mutable buffer; writes are only kept if the whole
    instruction succeeds.
    """
    key: Pubkey
    owner: Pubkey
    data: bytearray = field(default_factory=bytearray)
    is_signer: bool = False
    is_writable: bool = False
    executable: bool = False

    def data_is_empty(self) -> bool:
        """True when the buffer has no bytes or only zero bytes."""
        return not any(self.data)

    def __repr__(self) -> str:
        flags = ("s" if self.is_signer else "-") + ("w" if self.is_writable else "-")
        return f"AccountInfo({self.key}, owner={self.owner}, {flags}, {len(self.data)} bytes)"


def next_account_info(accounts_iter: Iterator[AccountInfo]) -> AccountInfo:
    """Take the next account off a positional account list."""
    try:
        return next(accounts_iter)
    except StopIteration:
        raise NotEnoughAccountKeys("Instruction is missing required accounts") from None
