"""
Ledger Service

Applies transactions to accounts and keeps every balance equal to the sum
of the amounts posted to it. Each posting locks its account, updates the
balance and appends the transaction row as one unit of work; a transfer
runs both of its legs inside a single enclosing unit so a failure on
either leg leaves no trace on the other account.
"""

from decimal import Decimal
from datetime import date, timedelta
from typing import Callable, List, Optional

from pydantic import ValidationError as PydanticValidationError

from .config import SparestiConfig, get_config
from .storage import StorageInterface, create_storage
from .locking import AccountLockRegistry, UnitOfWork
from .accounts import Account, AccountRepository
from .transactions import Transaction, TransactionRepository
from .schemas import AccountDto, TransactionDto, TransferRequest
from .audit import AuditTrail, AuditEventType
from .exceptions import ConflictError, NotFoundError, ValidationError
from .money import AmountLike, format_amount, to_amount
from .logging_config import get_logger, log_action, setup_logging


DEPOSIT_CATEGORY = "Deposit"
WITHDRAWAL_CATEGORY = "Withdrawal"


class LedgerService:
    """
    Bank operations for Sparesti accounts

    Account numbers and owner ids are integers. Amounts are Decimals
    rounded to the configured precision; positive amounts credit an
    account and negative amounts debit it.
    """

    def __init__(
        self,
        storage: StorageInterface,
        audit_trail: Optional[AuditTrail] = None,
        config: Optional[SparestiConfig] = None,
        locks: Optional[AccountLockRegistry] = None,
        today: Optional[Callable[[], date]] = None
    ):
        self.storage = storage
        self.audit_trail = audit_trail
        self.config = config or get_config()
        self.unit_of_work = UnitOfWork(storage, locks)
        self.accounts = AccountRepository(storage, self.unit_of_work)
        self.transactions = TransactionRepository(storage)
        self._today = today or date.today
        self.logger = get_logger("sparesti.ledger")

    @classmethod
    def from_config(cls, config: Optional[SparestiConfig] = None) -> 'LedgerService':
        """Build a service with the logging, storage backend and audit trail the config selects"""
        config = config or get_config()
        setup_logging(config.log_level, log_format=config.log_format, log_file=config.log_file)
        storage = create_storage(config.database_url, timeout=config.sqlite_timeout_seconds)
        audit_trail = AuditTrail(storage) if config.enable_audit_logging else None
        return cls(storage, audit_trail=audit_trail, config=config)

    def create_account(self, account: Optional[AccountDto]) -> AccountDto:
        """
        Open a new account with a zero balance

        Any balance on the incoming DTO is ignored.

        Raises:
            ValidationError: If the account is missing
            ConflictError: If the account number is already taken
        """
        if account is None:
            raise ValidationError("Account parameter cannot be null")

        with self.unit_of_work.begin() as uow:
            uow.lock_account(account.account_nr)
            if self.accounts.exists_by_number(account.account_nr):
                self._reject("create_account", f"Account number {account.account_nr} already exists",
                             account.account_nr)
                raise ConflictError("Account number already exists")

            created = self.accounts.save(Account.open(account.account_nr, account.owner_id))
            uow.on_commit(lambda: self._account_created(created))

        return AccountDto.from_account(created)

    def open_account(self, account_nr: int, owner_id: int) -> AccountDto:
        """Shortcut for create_account from plain values"""
        return self.create_account(self._build(AccountDto, account_nr=account_nr, owner_id=owner_id))

    def get_account_details(self, account_nr: int) -> AccountDto:
        """
        Get a snapshot of one account

        Raises:
            NotFoundError: If the account does not exist
        """
        return AccountDto.from_account(self._find_account(account_nr))

    def get_user_accounts(self, owner_id: Optional[int]) -> List[AccountDto]:
        """
        Get every account of a user, ordered by account number

        Raises:
            ValidationError: If owner_id is missing
        """
        if owner_id is None:
            raise ValidationError("User id parameter cannot be null")
        return [AccountDto.from_account(a) for a in self.accounts.find_all_by_owner(owner_id)]

    def add_transaction(self, transaction: Optional[TransactionDto]) -> TransactionDto:
        """
        Post a transaction to its account

        The account lock is held from before the balance is read until the
        balance update and the new transaction row are committed together.
        When called inside another unit of work (as transfer_money does)
        the posting joins it and commits or rolls back with it.

        Raises:
            ValidationError: If the transaction is missing or malformed
            NotFoundError: If the account does not exist
        """
        if transaction is None:
            raise ValidationError("Transaction parameter cannot be null")

        amount = self._amount(transaction.amount)
        posted_on = transaction.date or self._today()

        with self.unit_of_work.begin() as uow:
            account = self.accounts.find_by_number_with_lock(transaction.account_nr)
            if account is None:
                self._reject("add_transaction", "Account not found", transaction.account_nr)
                raise NotFoundError("Account not found")

            account.alter_balance(amount)
            self.accounts.save(account)

            posted = self.transactions.save(Transaction.post(
                account_nr=account.account_nr,
                amount=amount,
                category=transaction.category,
                description=transaction.description,
                date=posted_on
            ))
            uow.on_commit(lambda: self._transaction_posted(posted, account))

        return TransactionDto.from_transaction(posted)

    def deposit(self, account_nr: int, amount: AmountLike, description: str = "") -> TransactionDto:
        """Credit a positive amount to an account"""
        value = self._positive_amount(amount)
        return self.add_transaction(self._build(
            TransactionDto, account_nr=account_nr, amount=value,
            category=DEPOSIT_CATEGORY, description=description
        ))

    def withdraw(self, account_nr: int, amount: AmountLike, description: str = "") -> TransactionDto:
        """Debit a positive amount from an account"""
        value = self._positive_amount(amount)
        return self.add_transaction(self._build(
            TransactionDto, account_nr=account_nr, amount=-value,
            category=WITHDRAWAL_CATEGORY, description=description
        ))

    def transfer_money(self, from_account_nr: int, to_account_nr: int,
                       amount: AmountLike) -> List[TransactionDto]:
        """
        Move money between two accounts as a debit and a credit transaction

        Both account locks are taken up front in account-number order, then
        the debit and credit legs are posted inside one unit of work. If
        either leg fails the whole transfer is rolled back.

        Returns:
            [debit leg, credit leg]

        Raises:
            ValidationError: If the amount is negative or an argument is missing
            NotFoundError: If either account does not exist
        """
        value = self._amount(amount)
        # Account numbers first; the sign gets its own message below
        request = self._build(TransferRequest, from_account_nr=from_account_nr,
                              to_account_nr=to_account_nr, amount=abs(value))
        if value < 0:
            self._reject("transfer_money", "Negative amount", request.from_account_nr)
            raise ValidationError("Cannot transfer a negative amount.")
        today = self._today()
        category = self.config.transfer_category

        debit = TransactionDto(
            account_nr=request.from_account_nr,
            amount=-value,
            category=category,
            description=f"Transferred to account: {request.to_account_nr}",
            date=today
        )
        credit = TransactionDto(
            account_nr=request.to_account_nr,
            amount=value,
            category=category,
            description=f"Transferred from account: {request.from_account_nr}",
            date=today
        )

        with self.unit_of_work.begin() as uow:
            uow.lock_accounts(request.from_account_nr, request.to_account_nr)
            legs = [self.add_transaction(debit), self.add_transaction(credit)]
            uow.on_commit(lambda: self._transfer_completed(request, value, legs))

        return legs

    def get_recent_transactions_by_account_nr(self, account_nr: int) -> List[TransactionDto]:
        """
        Transactions dated within the trailing window (30 days by default)

        The window is inclusive: with the default, a transaction dated
        exactly 30 days before today is included and one dated 31 days
        before is not.

        Raises:
            NotFoundError: If the account does not exist
        """
        account = self._find_account(account_nr)
        since = self._today() - timedelta(days=self.config.recent_transaction_days)
        return [TransactionDto.from_transaction(t)
                for t in self.transactions.find_by_account_since(account.account_nr, since)]

    def get_transactions_by_account_nr(self, account_nr: int) -> List[TransactionDto]:
        """
        Every transaction of an account, oldest first

        Raises:
            NotFoundError: If the account does not exist
        """
        account = self._find_account(account_nr)
        return [TransactionDto.from_transaction(t)
                for t in self.transactions.find_by_account(account.account_nr)]

    def get_transactions_by_owner(self, owner_id: Optional[int]) -> List[TransactionDto]:
        """
        Every transaction on every account of a user

        Raises:
            ValidationError: If owner_id is missing
        """
        if owner_id is None:
            raise ValidationError("User id parameter cannot be null")

        result = []
        for account in self.accounts.find_all_by_owner(owner_id):
            result.extend(TransactionDto.from_transaction(t)
                          for t in self.transactions.find_by_account(account.account_nr))
        return result

    def user_has_access_to_account(self, account_nr: int, owner_id: int) -> bool:
        """
        Check if a user may use an account number

        Unclaimed account numbers are open to anyone, so True does not mean
        the account exists. False only when another user owns the account.
        """
        account = self.accounts.find_by_number(account_nr)
        return account is None or account.owner_id == owner_id

    def account_exists(self, account_nr: int) -> bool:
        """Check if an account exists"""
        return self.accounts.exists_by_number(account_nr)

    def _find_account(self, account_nr: int) -> Account:
        account = self.accounts.find_by_number(account_nr)
        if account is None:
            raise NotFoundError("Account not found")
        return account

    def _amount(self, value: AmountLike) -> Decimal:
        try:
            return to_amount(value, self.config.amount_precision)
        except ValueError as e:
            raise ValidationError(str(e)) from e

    def _positive_amount(self, value: AmountLike) -> Decimal:
        amount = self._amount(value)
        if amount <= 0:
            raise ValidationError("Amount must be positive")
        return amount

    def _build(self, schema, **values):
        """Construct a pydantic schema, reporting bad input as ValidationError"""
        try:
            return schema(**values)
        except PydanticValidationError as e:
            raise ValidationError(str(e)) from e

    def _reject(self, action: str, reason: str, account_nr: int) -> None:
        log_action(
            self.logger, "warning", f"Rejected {action}: {reason}",
            action=action, resource=f"account:{account_nr}"
        )

    def _account_created(self, account: Account) -> None:
        log_action(
            self.logger, "info", "Account created",
            owner_id=account.owner_id, action="create_account",
            resource=f"account:{account.account_nr}"
        )
        if self.audit_trail:
            self.audit_trail.log_event(
                event_type=AuditEventType.ACCOUNT_CREATED,
                entity_type="account",
                entity_id=account.id,
                metadata={"owner_id": account.owner_id}
            )

    def _transaction_posted(self, transaction: Transaction, account: Account) -> None:
        log_action(
            self.logger, "info", f"Transaction posted: {format_amount(transaction.amount)}",
            owner_id=account.owner_id, action="add_transaction",
            resource=f"account:{account.account_nr}",
            extra={
                "transaction_id": transaction.id,
                "category": transaction.category,
                "balance": str(account.balance)
            }
        )
        if self.audit_trail:
            self.audit_trail.log_event(
                event_type=AuditEventType.TRANSACTION_POSTED,
                entity_type="transaction",
                entity_id=transaction.id,
                metadata={
                    "account_nr": transaction.account_nr,
                    "amount": transaction.amount,
                    "category": transaction.category,
                    "date": transaction.date,
                    "balance_after": account.balance
                }
            )

    def _transfer_completed(self, request: TransferRequest, amount: Decimal,
                            legs: List[TransactionDto]) -> None:
        log_action(
            self.logger, "info", f"Transfer completed: {format_amount(amount)}",
            action="transfer_money",
            resource=f"account:{request.from_account_nr}",
            extra={"to_account": request.to_account_nr}
        )
        if self.audit_trail:
            self.audit_trail.log_event(
                event_type=AuditEventType.TRANSFER_COMPLETED,
                entity_type="account",
                entity_id=str(request.from_account_nr),
                metadata={
                    "to_account_nr": request.to_account_nr,
                    "amount": amount,
                    "debit_transaction_id": legs[0].id,
                    "credit_transaction_id": legs[1].id
                }
            )
