"""
Transaction Store Module

Immutable transaction rows. Each row belongs to exactly one account and is
linked to it by account number rather than by an object reference.
"""

from decimal import Decimal
from datetime import date, datetime, timezone
from dataclasses import dataclass
from typing import Dict, List
import uuid

from .storage import StorageInterface, StorageRecord


@dataclass
class Transaction(StorageRecord):
    """
    A posted amount on one account

    Positive amounts are credits, negative amounts are debits.
    """
    account_nr: int
    amount: Decimal
    category: str
    description: str
    date: date

    @property
    def is_credit(self) -> bool:
        return self.amount > 0

    @property
    def is_debit(self) -> bool:
        return self.amount < 0

    @classmethod
    def post(cls, account_nr: int, amount: Decimal, category: str,
             description: str, date: date) -> 'Transaction':
        """Create a new transaction row with a fresh id"""
        now = datetime.now(timezone.utc)
        return cls(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            account_nr=account_nr,
            amount=amount,
            category=category,
            description=description,
            date=date
        )


class TransactionRepository:
    """Persistence for Transaction records"""

    def __init__(self, storage: StorageInterface):
        self.storage = storage
        self.table_name = "transactions"

    def find_by_account(self, account_nr: int) -> List[Transaction]:
        """All transactions of an account, oldest first"""
        transactions_data = self.storage.find(self.table_name, {"account_nr": account_nr})
        transactions = [self._transaction_from_dict(data) for data in transactions_data]
        transactions.sort(key=lambda txn: (txn.date, txn.created_at))
        return transactions

    def find_by_account_since(self, account_nr: int, since: date) -> List[Transaction]:
        """Transactions of an account dated on or after since"""
        return [txn for txn in self.find_by_account(account_nr) if txn.date >= since]

    def save(self, transaction: Transaction) -> Transaction:
        """Insert a transaction"""
        self.storage.save(self.table_name, transaction.id, transaction.to_dict())
        return transaction

    def count(self) -> int:
        return self.storage.count(self.table_name)

    def _transaction_from_dict(self, data: Dict) -> Transaction:
        """Convert dictionary to Transaction"""
        return Transaction(
            id=data['id'],
            created_at=datetime.fromisoformat(data['created_at']),
            updated_at=datetime.fromisoformat(data['updated_at']),
            account_nr=int(data['account_nr']),
            amount=Decimal(data['amount']),
            category=data['category'],
            description=data['description'],
            date=date.fromisoformat(data['date'])
        )
