"""
Account list validation, independent of pool state.
"""
import pytest
from solders.pubkey import Pubkey

from amm_pool.accounts import SYSTEM_PROGRAM_ID, AccountInfo
from amm_pool.errors import InvalidAccount, InvalidAmount, InvalidTokenPair, NotEnoughAccountKeys, Unauthorized
from amm_pool.token_ledger import TOKEN_PROGRAM_ID, Mint, TokenAccount
from amm_pool.validation import (
    SwapAccounts,
    check_distinct_mints,
    check_identity,
    check_not_vault,
    check_token_mint,
    load_mint,
)

PROGRAM_ID = Pubkey.new_unique()


def token_account(writable=True, owner=TOKEN_PROGRAM_ID, mint=None):
    data = TokenAccount(mint=mint or Pubkey.new_unique(), owner=Pubkey.new_unique()).pack()
    return AccountInfo(key=Pubkey.new_unique(), owner=owner, data=bytearray(data), is_writable=writable)


@pytest.fixture
def swap_accounts():
    return [
        AccountInfo(key=Pubkey.new_unique(), owner=PROGRAM_ID, is_writable=True),
        token_account(),
        token_account(),
        token_account(),
        token_account(),
        AccountInfo(key=TOKEN_PROGRAM_ID, owner=SYSTEM_PROGRAM_ID, executable=True),
        AccountInfo(key=Pubkey.new_unique(), owner=SYSTEM_PROGRAM_ID, is_signer=True),
    ]


class TestSwapAccounts:

    def test_parses_positions(self, swap_accounts):
        ctx = SwapAccounts.parse(PROGRAM_ID, swap_accounts)
        assert ctx.pool_state is swap_accounts[0]
        assert ctx.output_vault is swap_accounts[4]
        assert ctx.user is swap_accounts[6]

    def test_extra_accounts_ignored(self, swap_accounts):
        swap_accounts.append(token_account())
        SwapAccounts.parse(PROGRAM_ID, swap_accounts)

    def test_too_few_accounts(self, swap_accounts):
        with pytest.raises(NotEnoughAccountKeys):
            SwapAccounts.parse(PROGRAM_ID, swap_accounts[:6])

    def test_pool_must_belong_to_program(self, swap_accounts):
        with pytest.raises(InvalidAccount):
            SwapAccounts.parse(Pubkey.new_unique(), swap_accounts)

    def test_read_only_token_account(self, swap_accounts):
        swap_accounts[3].is_writable = False
        with pytest.raises(InvalidAccount):
            SwapAccounts.parse(PROGRAM_ID, swap_accounts)

    def test_token_account_outside_ledger(self, swap_accounts):
        swap_accounts[2] = token_account(owner=Pubkey.new_unique())
        with pytest.raises(InvalidAccount):
            SwapAccounts.parse(PROGRAM_ID, swap_accounts)

    def test_unsigned_user(self, swap_accounts):
        swap_accounts[6].is_signer = False
        with pytest.raises(Unauthorized):
            SwapAccounts.parse(PROGRAM_ID, swap_accounts)

    def test_structural_errors_come_before_signer(self, swap_accounts):
        swap_accounts[6].is_signer = False
        swap_accounts[0].is_writable = False
        with pytest.raises(InvalidAccount):
            SwapAccounts.parse(PROGRAM_ID, swap_accounts)


class TestChecks:

    def test_identity(self):
        info = token_account()
        check_identity(info, info.key, "vault")
        with pytest.raises(InvalidAccount):
            check_identity(info, Pubkey.new_unique(), "vault")

    def test_not_vault(self):
        info = token_account()
        check_not_vault(info, (Pubkey.new_unique(), Pubkey.new_unique()), "user token")
        with pytest.raises(InvalidAccount):
            check_not_vault(info, (Pubkey.new_unique(), info.key), "user token")

    def test_distinct_mints(self):
        a, b = token_account(), token_account()
        check_distinct_mints(a, b)
        with pytest.raises(InvalidTokenPair) as excinfo:
            check_distinct_mints(a, a)
        assert isinstance(excinfo.value, InvalidAmount)

    def test_token_mint(self):
        mint = Pubkey.new_unique()
        info = token_account(mint=mint)
        check_token_mint(info, mint, "user token")
        with pytest.raises(InvalidAccount):
            check_token_mint(info, Pubkey.new_unique(), "user token")

    def test_load_mint_rejects_token_account(self):
        with pytest.raises(InvalidAccount):
            load_mint(token_account(), "liquidity mint")

    def test_load_mint(self):
        authority = Pubkey.new_unique()
        info = AccountInfo(key=Pubkey.new_unique(), owner=TOKEN_PROGRAM_ID,
                           data=bytearray(Mint(mint_authority=authority).pack()))
        assert load_mint(info, "liquidity mint").mint_authority == authority
