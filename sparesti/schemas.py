"""
Pydantic schemas for ledger input and output
"""

from decimal import Decimal
import datetime
from typing import Optional
from pydantic import BaseModel, Field

from .accounts import Account
from .transactions import Transaction


class AccountDto(BaseModel):
    account_nr: int = Field(..., description="Unique account number")
    owner_id: int = Field(..., description="Id of the owning user")
    balance: Decimal = Field(Decimal('0.00'), description="Signed account balance")

    @classmethod
    def from_account(cls, account: Account) -> 'AccountDto':
        return cls(
            account_nr=account.account_nr,
            owner_id=account.owner_id,
            balance=account.balance
        )


class TransactionDto(BaseModel):
    id: Optional[str] = None  # Assigned when posted
    account_nr: int
    amount: Decimal = Field(..., description="Positive = credit, negative = debit")
    category: str = ""
    description: str = ""
    date: Optional[datetime.date] = None  # Defaults to today when posted

    @classmethod
    def from_transaction(cls, transaction: Transaction) -> 'TransactionDto':
        return cls(
            id=transaction.id,
            account_nr=transaction.account_nr,
            amount=transaction.amount,
            category=transaction.category,
            description=transaction.description,
            date=transaction.date
        )


class TransferRequest(BaseModel):
    from_account_nr: int
    to_account_nr: int
    amount: Decimal = Field(..., ge=0, description="Amount moved; never negative")
