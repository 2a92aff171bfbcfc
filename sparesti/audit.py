"""
Audit Trail Module

Append-only record of committed ledger changes. Each event stores the
SHA-256 digest of its predecessor, so editing or deleting a stored event
shows up when the chain is walked again.
"""

import hashlib
import json
import threading
from datetime import date, datetime, timezone
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Any
from enum import Enum
from decimal import Decimal
import uuid

from .storage import StorageInterface, StorageRecord


class AuditEventType(Enum):
    """Ledger changes that reach the audit trail"""
    ACCOUNT_CREATED = "account_created"
    TRANSACTION_POSTED = "transaction_posted"
    TRANSFER_COMPLETED = "transfer_completed"


def _plain(value: Any) -> Any:
    """Reduce ledger values (amounts, dates, enums) to JSON types"""
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {str(k): _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    return value


@dataclass
class AuditEvent(StorageRecord):
    """One link of the audit chain"""
    sequence: int       # 1 for the first event
    event_type: AuditEventType
    entity_type: str    # "account" or "transaction"
    entity_id: str
    previous_hash: str  # "" for the first event
    current_hash: str
    metadata: Dict[str, Any]

    def __post_init__(self):
        self.metadata = _plain(self.metadata or {})

    def digest(self) -> str:
        """SHA-256 over every field except current_hash"""
        payload = json.dumps({
            'id': self.id,
            'sequence': self.sequence,
            'created_at': self.created_at.isoformat(),
            'event_type': self.event_type.value,
            'entity_type': self.entity_type,
            'entity_id': self.entity_id,
            'previous_hash': self.previous_hash,
            'metadata': self.metadata
        }, sort_keys=True, separators=(',', ':'))
        return hashlib.sha256(payload.encode('utf-8')).hexdigest()

    def seal(self) -> None:
        self.current_hash = self.digest()

    @property
    def is_intact(self) -> bool:
        return self.current_hash == self.digest()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AuditEvent':
        data = dict(data)
        data['event_type'] = AuditEventType(data['event_type'])
        return super().from_dict(data)


@dataclass
class ChainReport:
    """Outcome of walking the audit chain"""
    total_events: int = 0
    tampered: List[str] = field(default_factory=list)      # ids whose digest no longer matches
    broken_links: List[str] = field(default_factory=list)  # ids whose predecessor is missing or altered

    @property
    def valid(self) -> bool:
        return not self.tampered and not self.broken_links


class AuditTrail:
    """
    Hash-chained audit trail stored alongside the ledger tables

    Events are only appended. The ledger calls log_event after a unit of
    work commits, so the chain never points at rolled-back rows.
    """

    def __init__(self, storage: StorageInterface, table_name: str = "audit_events"):
        self.storage = storage
        self.table_name = table_name
        self._lock = threading.Lock()

    def _events(self) -> List[AuditEvent]:
        events = [AuditEvent.from_dict(data) for data in self.storage.load_all(self.table_name)]
        return sorted(events, key=lambda e: e.sequence)

    def log_event(
        self,
        event_type: AuditEventType,
        entity_type: str,
        entity_id: str,
        metadata: Optional[Dict[str, Any]] = None
    ) -> AuditEvent:
        """Append an event linked to the current head of the chain"""
        with self._lock:
            events = self._events()
            head = events[-1] if events else None
            now = datetime.now(timezone.utc)

            event = AuditEvent(
                id=str(uuid.uuid4()),
                created_at=now,
                updated_at=now,
                sequence=head.sequence + 1 if head else 1,
                event_type=event_type,
                entity_type=entity_type,
                entity_id=str(entity_id),
                previous_hash=head.current_hash if head else "",
                current_hash="",
                metadata=metadata
            )
            event.seal()

            self.storage.save(self.table_name, event.id, event.to_dict())
            return event

    def get_events_by_type(self, event_type: AuditEventType) -> List[AuditEvent]:
        """Events of one type, oldest first"""
        return [e for e in self._events() if e.event_type == event_type]

    def verify_chain(self) -> ChainReport:
        """Recompute every digest and check each event points at its predecessor"""
        events = self._events()
        report = ChainReport(total_events=len(events))

        expected_previous = ""
        for event in events:
            if not event.is_intact:
                report.tampered.append(event.id)
            if event.previous_hash != expected_previous:
                report.broken_links.append(event.id)
            expected_previous = event.current_hash

        return report

    def count_events(self) -> int:
        return self.storage.count(self.table_name)
