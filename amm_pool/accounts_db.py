"""
LevelDB-backed account store with atomic batch commits.
"""
import plyvel
import msgpack
import logging
from typing import Optional, Iterator
from contextlib import contextmanager

from solders.pubkey import Pubkey

from amm_pool.accounts import Account

logger = logging.getLogger(__name__)

ACCOUNT_PREFIX = b'account:'


def _account_key(key: Pubkey) -> bytes:
    return ACCOUNT_PREFIX + bytes(key)


def encode_account(account: Account) -> bytes:
    return msgpack.packb(account.to_dict(), use_bin_type=True)


def decode_account(raw: bytes) -> Account:
    return Account.from_dict(msgpack.unpackb(raw, raw=False))


class AccountBatch:
    """Pending account writes, applied together or not at all."""

    def __init__(self, batch):
        self._batch = batch
        self.count = 0

    def put_account(self, key: Pubkey, account: Account):
        self._batch.put(_account_key(key), encode_account(account))
        self.count += 1


class AccountsDB:
    def __init__(self, db_path: str, create_if_missing: bool = True,
                 write_buffer_size: int = 64 * 1024 * 1024,  # 64MB
                 max_open_files: int = 1000,
                 compression: Optional[str] = 'snappy'):
        """
        Open the account store.

        Args:
            db_path: Path to database directory
            create_if_missing: Create database if it doesn't exist
            write_buffer_size: Size of write buffer
            max_open_files: Maximum number of open files
            compression: LevelDB block compression, or None
        """
        try:
            self._db = plyvel.DB(
                db_path,
                create_if_missing=create_if_missing,
                write_buffer_size=write_buffer_size,
                max_open_files=max_open_files,
                compression=compression,
            )
            self._closed = False
            logger.info(f"Accounts database opened at {db_path}")
        except Exception as e:
            logger.error(f"Failed to open database at {db_path}: {e}")
            raise

    def _check_open(self):
        if self._closed:
            raise RuntimeError("Database is closed")

    def get_account(self, key: Pubkey) -> Optional[Account]:
        """
        Load an account.

        Returns None if the account doesn't exist.
        """
        self._check_open()
        try:
            raw = self._db.get(_account_key(key))
        except Exception as e:
            logger.error(f"Error getting account {key}: {e}")
            raise
        return decode_account(raw) if raw is not None else None

    def put_account(self, key: Pubkey, account: Account):
        """Store a single account."""
        self._check_open()
        try:
            self._db.put(_account_key(key), encode_account(account))
        except Exception as e:
            logger.error(f"Error putting account {key}: {e}")
            raise

    def exists(self, key: Pubkey) -> bool:
        """Check if an account exists."""
        return self.get_account(key) is not None

    @contextmanager
    def write_batch(self):
        """
        Context manager for atomic account writes.

        Nothing is written if the block raises.

        Example:
            with db.write_batch() as batch:
                batch.put_account(pool_key, pool_account)
                batch.put_account(vault_key, vault_account)
        """
        self._check_open()
        try:
            with self._db.write_batch(transaction=True) as batch:
                yield AccountBatch(batch)
        except Exception as e:
            logger.error(f"Error in batch write: {e}")
            raise

    def iter_accounts(self, owner: Optional[Pubkey] = None) -> Iterator[tuple[Pubkey, Account]]:
        """
        Iterate over stored accounts.

        Args:
            owner: Only yield accounts owned by this program

        Yields:
            Tuple of (address, account)
        """
        self._check_open()
        for raw_key, raw in self._db.iterator(prefix=ACCOUNT_PREFIX):
            account = decode_account(raw)
            if owner is not None and account.owner != owner:
                continue
            yield Pubkey.from_bytes(raw_key[len(ACCOUNT_PREFIX):]), account

    def close(self):
        """Close the database."""
        if not self._closed:
            try:
                self._db.close()
                self._closed = True
                logger.info("Accounts database closed")
            except Exception as e:
                logger.error(f"Error closing database: {e}")
                raise

    def is_closed(self) -> bool:
        """Check if database is closed."""
        return self._closed

    def __enter__(self):
        """Support context manager protocol."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Support context manager protocol."""
        self.close()
        return False
