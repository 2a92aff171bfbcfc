"""
Test suite for the transaction store
"""

from decimal import Decimal
from datetime import date, timedelta

from sparesti.storage import InMemoryStorage, SQLiteStorage
from sparesti.transactions import Transaction, TransactionRepository


class TestTransaction:
    """Test Transaction record behaviour"""

    def test_post_assigns_fresh_ids(self):
        first = Transaction.post(1001, Decimal('10.00'), "Food", "Lunch", date(2024, 5, 1))
        second = Transaction.post(1001, Decimal('10.00'), "Food", "Lunch", date(2024, 5, 1))
        assert first.id != second.id

    def test_credit_and_debit(self):
        """Test sign helpers"""
        credit = Transaction.post(1001, Decimal('10.00'), "Salary", "", date(2024, 5, 1))
        debit = Transaction.post(1001, Decimal('-10.00'), "Food", "", date(2024, 5, 1))

        assert credit.is_credit and not credit.is_debit
        assert debit.is_debit and not debit.is_credit


class TestTransactionRepository:
    """Test transaction persistence and lookups"""

    def make_storage(self):
        return InMemoryStorage()

    def setup_method(self):
        self.repository = TransactionRepository(self.make_storage())

    def test_save_and_find_by_account(self):
        """Test round trip and that other accounts are excluded"""
        saved = self.repository.save(
            Transaction.post(1001, Decimal('-42.50'), "Food", "Groceries", date(2024, 5, 2))
        )
        self.repository.save(Transaction.post(2002, Decimal('5.00'), "Gift", "", date(2024, 5, 2)))

        found = self.repository.find_by_account(1001)
        assert len(found) == 1
        assert found[0].id == saved.id
        assert found[0].amount == Decimal('-42.50')
        assert found[0].date == date(2024, 5, 2)
        assert found[0].description == "Groceries"
        assert self.repository.count() == 2

    def test_find_by_account_ordered_by_date(self):
        """Test that results come back oldest first"""
        for day in (15, 3, 9):
            self.repository.save(Transaction.post(1001, Decimal('1.00'), "", "", date(2024, 5, day)))

        dates = [t.date for t in self.repository.find_by_account(1001)]
        assert dates == [date(2024, 5, 3), date(2024, 5, 9), date(2024, 5, 15)]

    def test_find_by_account_since_is_inclusive(self):
        """Test that the recency window includes its first day"""
        since = date(2024, 5, 1)
        for offset in (-1, 0, 1):
            self.repository.save(
                Transaction.post(1001, Decimal('1.00'), "", "", since + timedelta(days=offset))
            )

        recent = self.repository.find_by_account_since(1001, since)
        assert [t.date for t in recent] == [since, since + timedelta(days=1)]

    def test_unknown_account_has_no_transactions(self):
        assert self.repository.find_by_account(4040) == []


class TestTransactionRepositorySQLite(TestTransactionRepository):
    """Run the repository checks against SQLite"""

    def make_storage(self):
        return SQLiteStorage(":memory:")
