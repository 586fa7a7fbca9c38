"""
Local host runtime for the pool program.

Loads the accounts an instruction names from the accounts database, runs the
program against in-memory copies, and commits every modified account in a
single write batch only when the instruction succeeds. A failure at any step
leaves the database exactly as it was.
"""
import logging
import time
from typing import Optional

import msgpack
import nacl.signing
from solders.instruction import Instruction
from solders.pubkey import Pubkey

from amm_pool.accounts import SYSTEM_PROGRAM_ID, Account, AccountInfo
from amm_pool.accounts_db import AccountsDB
from amm_pool.crypto import generate_hash, public_key_to_address, sign, verify_signature
from amm_pool.errors import InvalidInstructionData
from amm_pool.instruction import unpack_instruction
from amm_pool.monitoring import Monitor
from amm_pool.processor import process_instruction
from amm_pool.state import POOL_STATE_LEN, LiquidityPool, is_storage_empty
from amm_pool.token_ledger import (
    TOKEN_PROGRAM_ID,
    LocalTokenLedger,
    Mint,
    TokenAccount,
    checked_amount_add,
)

logger = logging.getLogger(__name__)


class TransactionError(Exception):
    """Raised when the runtime rejects a transaction."""
    pass


class Transaction:
    def __init__(self, instruction: Instruction, timestamp: Optional[float] = None,
                 signatures: Optional[dict] = None):
        self.instruction = instruction
        self.timestamp = timestamp or time.time()
        self.signatures = signatures or {}

    def to_dict(self, include_signatures=True):
        data = {
            "program_id": bytes(self.instruction.program_id),
            "accounts": [
                [bytes(meta.pubkey), meta.is_signer, meta.is_writable]
                for meta in self.instruction.accounts
            ],
            "data": bytes(self.instruction.data),
            "timestamp": self.timestamp,
        }
        if include_signatures:
            data["signatures"] = {bytes(k): v for k, v in self.signatures.items()}
        return data

    def get_signing_data(self) -> bytes:
        """Returns the canonical byte representation for signing."""
        return msgpack.packb(self.to_dict(include_signatures=False), use_bin_type=True)

    def sign(self, signing_key: nacl.signing.SigningKey):
        """Adds the signature of one required signer."""
        address = public_key_to_address(signing_key.verify_key)
        if address not in self.required_signers:
            raise TransactionError(f"{address} is not a signer of this transaction")
        self.signatures[address] = sign(signing_key, self.get_signing_data())

    @property
    def required_signers(self) -> list[Pubkey]:
        return [meta.pubkey for meta in self.instruction.accounts if meta.is_signer]

    def verify_signatures(self) -> bool:
        """Every account marked as signer carries a valid signature."""
        signing_data = self.get_signing_data()
        for address in self.required_signers:
            signature = self.signatures.get(address)
            if signature is None or not verify_signature(address, signature, signing_data):
                return False
        return True

    @property
    def id(self) -> bytes:
        """The unique hash identifier of the transaction."""
        return generate_hash(self.get_signing_data())


class LocalRuntime:
    def __init__(self, db: AccountsDB, program_id: Pubkey, monitor: Optional[Monitor] = None):
        self.db = db
        self.program_id = program_id
        self.monitor = monitor
        self.total_transactions = 0

    # ==========================================================================
    # ACCOUNT SETUP
    # ==========================================================================

    def create_account(self, key: Pubkey, owner: Pubkey, space: int = 0,
                       data: Optional[bytes] = None) -> Account:
        """Allocate an account directly, outside of any transaction."""
        if self.db.exists(key):
            raise TransactionError(f"Account {key} already exists")
        account = Account(owner=owner, data=data if data is not None else bytes(space))
        self.db.put_account(key, account)
        return account

    def create_pool_account(self, key: Pubkey) -> Account:
        """Zeroed storage for a pool record, owned by the program."""
        return self.create_account(key, self.program_id, space=POOL_STATE_LEN)

    def create_mint(self, key: Pubkey, mint_authority: Optional[Pubkey], decimals: int = 6) -> Account:
        mint = Mint(mint_authority=mint_authority, supply=0, decimals=decimals)
        return self.create_account(key, TOKEN_PROGRAM_ID, data=mint.pack())

    def create_token_account(self, key: Pubkey, mint: Pubkey, owner: Pubkey,
                             amount: int = 0) -> Account:
        """Open a token account, funding it with freshly issued tokens."""
        mint_state = self.get_mint(mint)
        if self.db.exists(key):
            raise TransactionError(f"Account {key} already exists")

        mint_state.supply = checked_amount_add(mint_state.supply, amount)
        token_account = Account(
            owner=TOKEN_PROGRAM_ID,
            data=TokenAccount(mint=mint, owner=owner, amount=amount).pack(),
        )
        with self.db.write_batch() as batch:
            batch.put_account(mint, Account(owner=TOKEN_PROGRAM_ID, data=mint_state.pack()))
            batch.put_account(key, token_account)
        return token_account

    # ==========================================================================
    # QUERIES
    # ==========================================================================

    def get_account(self, key: Pubkey) -> Optional[Account]:
        return self.db.get_account(key)

    def _require(self, key: Pubkey) -> Account:
        account = self.db.get_account(key)
        if account is None:
            raise KeyError(f"Unknown account {key}")
        return account

    def get_mint(self, key: Pubkey) -> Mint:
        return Mint.unpack(self._require(key).data)

    def get_token_account(self, key: Pubkey) -> TokenAccount:
        return TokenAccount.unpack(self._require(key).data)

    def token_balance(self, key: Pubkey) -> int:
        return self.get_token_account(key).amount

    def get_pool(self, key: Pubkey) -> LiquidityPool:
        return LiquidityPool.unpack(self._require(key).data)

    def list_pools(self) -> list[tuple[Pubkey, LiquidityPool]]:
        """Initialized pool records stored under the program."""
        pools = []
        for key, account in self.db.iter_accounts(owner=self.program_id):
            if len(account.data) < POOL_STATE_LEN or is_storage_empty(account.data):
                continue
            pools.append((key, LiquidityPool.unpack(account.data)))
        return pools

    def get_amm_stats(self, key: Pubkey) -> dict:
        """Get current AMM pool statistics."""
        pool = self.get_pool(key)

        return {
            'token_a_reserve': str(pool.token_a_reserve),
            'token_b_reserve': str(pool.token_b_reserve),
            'liquidity_supply': str(pool.liquidity_supply),
            'invariant_k': str(pool.invariant),
            'current_price': str(pool.current_price),
        }

    # ==========================================================================
    # TRANSACTION PROCESSING
    # ==========================================================================

    def process_transaction(self, tx: Transaction) -> bytes:
        """
        Execute a signed transaction atomically.

        Returns:
            The transaction id

        Raises:
            TransactionError: the runtime rejected the transaction
            ProgramError: the program aborted the instruction
        """
        start = time.time()
        instruction = tx.instruction
        label = self._instruction_label(bytes(instruction.data))

        try:
            if instruction.program_id != self.program_id:
                raise TransactionError(f"Unknown program {instruction.program_id}")
            if not tx.verify_signatures():
                raise TransactionError("Invalid transaction signature")

            infos = self._load_accounts(instruction)
            originals = {info.key: bytes(info.data) for info in infos}
            ledger = LocalTokenLedger(self.program_id, signers=tx.required_signers)

            process_instruction(self.program_id, infos, bytes(instruction.data), ledger)
            changed = self._collect_changes(infos, originals)

            with self.db.write_batch() as batch:
                for info in changed:
                    batch.put_account(info.key, Account(
                        owner=info.owner, data=bytes(info.data), executable=info.executable))

        except Exception as e:
            # Nothing was committed; the accounts database is untouched
            logger.warning(f"Transaction {tx.id.hex()[:8]} failed: {e}")
            self._record(label, 'failed', start)
            raise

        self.total_transactions += 1
        self._record(label, 'success', start)
        if self.monitor:
            for info in changed:
                if info.owner == self.program_id:
                    self.monitor.observe_pool(info.key, LiquidityPool.unpack(info.data))

        logger.debug(f"Transaction {tx.id.hex()[:8]} committed {len(changed)} accounts")
        return tx.id

    def _load_accounts(self, instruction: Instruction) -> list[AccountInfo]:
        """
        Build the positional account list for an instruction.

        An address listed twice maps to one shared AccountInfo carrying the
        union of its flags.
        """
        loaded = {}
        infos = []
        for meta in instruction.accounts:
            info = loaded.get(meta.pubkey)
            if info is None:
                account = self.db.get_account(meta.pubkey)
                if account is None:
                    account = Account(owner=SYSTEM_PROGRAM_ID)
                info = AccountInfo(
                    key=meta.pubkey,
                    owner=account.owner,
                    data=bytearray(account.data),
                    executable=account.executable,
                )
                loaded[meta.pubkey] = info
            info.is_signer = info.is_signer or meta.is_signer
            info.is_writable = info.is_writable or meta.is_writable
            infos.append(info)
        return infos

    def _collect_changes(self, infos: list[AccountInfo], originals: dict) -> list[AccountInfo]:
        changed = []
        seen = set()
        for info in infos:
            if info.key in seen:
                continue
            seen.add(info.key)
            if bytes(info.data) == originals[info.key]:
                continue
            if not info.is_writable:
                raise TransactionError(f"Instruction modified read-only account {info.key}")
            if info.owner not in (self.program_id, TOKEN_PROGRAM_ID):
                raise TransactionError(f"Instruction modified {info.key} owned by {info.owner}")
            changed.append(info)
        return changed

    @staticmethod
    def _instruction_label(data: bytes) -> str:
        try:
            return type(unpack_instruction(data)).__name__
        except InvalidInstructionData:
            return 'Unknown'

    def _record(self, label: str, status: str, start: float):
        if self.monitor:
            self.monitor.record_instruction(label, status, time.time() - start)
