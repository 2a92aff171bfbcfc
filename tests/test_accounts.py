"""
Test suite for the account store

Tests the Account record and the repository lookups the ledger relies on.
"""

import pytest
from decimal import Decimal

from sparesti.storage import InMemoryStorage, SQLiteStorage
from sparesti.locking import UnitOfWork
from sparesti.accounts import Account, AccountRepository


class TestAccount:
    """Test Account record behaviour"""

    def test_open_account_starts_empty(self):
        """Test that a new account has a zero balance and is keyed by number"""
        account = Account.open(1001, owner_id=7)

        assert account.id == "1001"
        assert account.account_nr == 1001
        assert account.owner_id == 7
        assert account.balance == Decimal('0.00')

    def test_alter_balance_with_signed_amounts(self):
        """Test that credits and debits both go through alter_balance"""
        account = Account.open(1001, owner_id=7)
        before = account.updated_at

        account.alter_balance(Decimal('250.00'))
        account.alter_balance(Decimal('-75.25'))

        assert account.balance == Decimal('174.75')
        assert account.updated_at >= before

    def test_balance_may_go_negative(self):
        """Test that the account itself does not forbid overdrafts"""
        account = Account.open(1001, owner_id=7)
        account.alter_balance(Decimal('-10.00'))
        assert account.balance == Decimal('-10.00')


class TestAccountRepository:
    """Test account persistence"""

    def make_storage(self):
        return InMemoryStorage()

    def setup_method(self):
        self.storage = self.make_storage()
        self.unit_of_work = UnitOfWork(self.storage)
        self.repository = AccountRepository(self.storage, self.unit_of_work)

    def test_save_and_find_by_number(self):
        """Test that a saved account round trips with its Decimal balance"""
        account = Account.open(1001, owner_id=7)
        account.alter_balance(Decimal('12.30'))
        self.repository.save(account)

        found = self.repository.find_by_number(1001)
        assert found.account_nr == 1001
        assert found.owner_id == 7
        assert found.balance == Decimal('12.30')
        assert isinstance(found.balance, Decimal)
        assert found.created_at == account.created_at

    def test_find_missing_account(self):
        assert self.repository.find_by_number(4040) is None

    def test_exists_by_number(self):
        self.repository.save(Account.open(1001, owner_id=7))
        assert self.repository.exists_by_number(1001)
        assert not self.repository.exists_by_number(2002)

    def test_find_all_by_owner(self):
        """Test owner lookup returns only that owner's accounts in number order"""
        self.repository.save(Account.open(3003, owner_id=7))
        self.repository.save(Account.open(1001, owner_id=7))
        self.repository.save(Account.open(2002, owner_id=8))

        accounts = self.repository.find_all_by_owner(7)
        assert [a.account_nr for a in accounts] == [1001, 3003]
        assert self.repository.find_all_by_owner(99) == []

    def test_find_with_lock_requires_unit_of_work(self):
        """Test that locked lookups only work inside a unit of work"""
        self.repository.save(Account.open(1001, owner_id=7))

        with pytest.raises(RuntimeError):
            self.repository.find_by_number_with_lock(1001)

        with self.unit_of_work.begin():
            account = self.repository.find_by_number_with_lock(1001)
            assert account.account_nr == 1001
            assert self.unit_of_work.holds_lock(1001)

        assert not self.unit_of_work.locks.is_locked(1001)

    def test_find_with_lock_on_missing_account(self):
        """Test that an unknown account number is locked and reported as None"""
        with self.unit_of_work.begin():
            assert self.repository.find_by_number_with_lock(4040) is None
            assert self.unit_of_work.holds_lock(4040)


class TestAccountRepositorySQLite(TestAccountRepository):
    """Run the repository checks against SQLite"""

    def make_storage(self):
        return SQLiteStorage(":memory:")
