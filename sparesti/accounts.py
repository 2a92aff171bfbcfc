"""
Account Store Module

Bank accounts keyed by their account number. An account's balance is only
ever changed through the ledger, which adds each posted transaction amount
to it while holding the account lock.
"""

from decimal import Decimal
from datetime import datetime, timezone
from dataclasses import dataclass
from typing import Dict, List, Optional

from .storage import StorageInterface, StorageRecord
from .locking import UnitOfWork


@dataclass
class Account(StorageRecord):
    """
    Bank account owned by a Sparesti user

    The record id is the account number as a string, which makes the
    account number unique within the store.
    """
    account_nr: int
    owner_id: int
    balance: Decimal = Decimal('0.00')

    def alter_balance(self, amount: Decimal) -> None:
        """Add a signed amount to the balance"""
        self.balance = self.balance + amount
        self.updated_at = datetime.now(timezone.utc)

    @classmethod
    def open(cls, account_nr: int, owner_id: int) -> 'Account':
        """Create a new, empty account"""
        now = datetime.now(timezone.utc)
        return cls(
            id=str(account_nr),
            created_at=now,
            updated_at=now,
            account_nr=account_nr,
            owner_id=owner_id,
            balance=Decimal('0.00')
        )


class AccountRepository:
    """Persistence for Account records"""

    def __init__(self, storage: StorageInterface, unit_of_work: UnitOfWork):
        self.storage = storage
        self.unit_of_work = unit_of_work
        self.table_name = "accounts"

    def find_by_number(self, account_nr: int) -> Optional[Account]:
        """Get account by account number"""
        account_dict = self.storage.load(self.table_name, str(account_nr))
        if account_dict:
            return self._account_from_dict(account_dict)
        return None

    def find_by_number_with_lock(self, account_nr: int) -> Optional[Account]:
        """
        Lock the account for the running unit of work, then load it

        The lock is keyed by account number, so it is taken even when the
        account does not exist and is released with the unit of work.

        Raises:
            RuntimeError: If no unit of work is active
        """
        self.unit_of_work.lock_account(account_nr)
        return self.find_by_number(account_nr)

    def exists_by_number(self, account_nr: int) -> bool:
        """Check if an account number is taken"""
        return self.storage.exists(self.table_name, str(account_nr))

    def find_all_by_owner(self, owner_id: int) -> List[Account]:
        """Get all accounts of an owner, ordered by account number"""
        accounts_data = self.storage.find(self.table_name, {"owner_id": owner_id})
        accounts = [self._account_from_dict(data) for data in accounts_data]
        accounts.sort(key=lambda account: account.account_nr)
        return accounts

    def save(self, account: Account) -> Account:
        """Insert or update an account"""
        self.storage.save(self.table_name, account.id, account.to_dict())
        return account

    def _account_from_dict(self, data: Dict) -> Account:
        """Convert dictionary to Account"""
        return Account(
            id=data['id'],
            created_at=datetime.fromisoformat(data['created_at']),
            updated_at=datetime.fromisoformat(data['updated_at']),
            account_nr=int(data['account_nr']),
            owner_id=int(data['owner_id']),
            balance=Decimal(data['balance'])
        )
