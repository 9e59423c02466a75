"""Credit ledger with per-user serialization and generation charges."""

import logging
from collections import defaultdict
from threading import Lock
from typing import Optional, List, Dict
from weakref import WeakValueDictionary

from thumbforge.core.errors import InsufficientCreditsError, LedgerError
from thumbforge.core.models import CreditLedgerEntry, LedgerEntryType

logger = logging.getLogger(__name__)


GRANT_TYPES = (
    LedgerEntryType.PURCHASE,
    LedgerEntryType.BONUS,
    LedgerEntryType.REFERRAL_BONUS,
)


class CreditLedger:
    """Append-only credit ledger.

    A user's balance is always the sum of their entries; there is no
    separately stored balance to drift out of sync. Debits and refunds for
    the same user are serialized by a per-user lock, so a debit that would
    take the balance below zero is refused atomically.

    Example:
        ledger = CreditLedger()
        ledger.grant("user-1", 10)
        entry = ledger.charge("user-1", 2, generation_id="gen_abc")
        ledger.refund(entry.generation_id)
    """

    def __init__(self):
        self._entries: Dict[str, List[CreditLedgerEntry]] = defaultdict(list)
        # A lock lives only while some caller holds it
        self._user_locks: "WeakValueDictionary[str, Lock]" = WeakValueDictionary()
        self._registry_lock = Lock()

    def _lock_for(self, user_id: str) -> Lock:
        with self._registry_lock:
            lock = self._user_locks.get(user_id)
            if lock is None:
                lock = Lock()
                self._user_locks[user_id] = lock
            return lock

    def _balance_unlocked(self, user_id: str) -> int:
        return sum(entry.amount for entry in self._entries.get(user_id, []))

    def get_balance(self, user_id: str) -> int:
        """Current balance, derived from the user's entries."""
        with self._lock_for(user_id):
            return self._balance_unlocked(user_id)

    def get_entries(self, user_id: str) -> List[CreditLedgerEntry]:
        """All entries for a user, oldest first."""
        with self._lock_for(user_id):
            return list(self._entries.get(user_id, []))

    def grant(
        self,
        user_id: str,
        amount: int,
        entry_type: LedgerEntryType = LedgerEntryType.PURCHASE,
        description: str = ""
    ) -> CreditLedgerEntry:
        """Add credits to a user's balance.

        Raises:
            LedgerError: If the amount is not positive or the type is not a grant
        """
        if amount <= 0:
            raise LedgerError(f"Grant amount must be positive, got {amount}")
        if entry_type not in GRANT_TYPES:
            raise LedgerError(f"{entry_type.value} is not a grant type")

        entry = CreditLedgerEntry(
            user_id=user_id,
            amount=amount,
            type=entry_type,
            description=description or f"{entry_type.value.replace('_', ' ').capitalize()} of {amount} credits",
        )
        with self._lock_for(user_id):
            self._entries[user_id].append(entry)
        logger.info(f"Granted {amount} credits to {user_id} ({entry_type.value})")
        return entry

    def charge(
        self,
        user_id: str,
        amount: int,
        generation_id: Optional[str] = None,
        description: str = ""
    ) -> CreditLedgerEntry:
        """Atomically debit ``amount`` credits.

        Raises:
            LedgerError: If the amount is not positive
            InsufficientCreditsError: If the balance would go below zero
        """
        if amount <= 0:
            raise LedgerError(f"Charge amount must be positive, got {amount}")

        with self._lock_for(user_id):
            available = self._balance_unlocked(user_id)
            if available < amount:
                logger.warning(f"Insufficient credits for {user_id}: {amount} required, {available} available")
                raise InsufficientCreditsError(user_id, amount, available)

            entry = CreditLedgerEntry(
                user_id=user_id,
                amount=-amount,
                type=LedgerEntryType.USAGE,
                description=description or "Thumbnail generation",
                generation_id=generation_id,
            )
            self._entries[user_id].append(entry)

        logger.info(f"Charged {amount} credits to {user_id} (balance: {available - amount})")
        return entry

    def refund(self, user_id: str, generation_id: str, description: str = "") -> CreditLedgerEntry:
        """Return the credits charged for a generation.

        Raises:
            LedgerError: If there is no usage entry for the generation, or it
                was already refunded
        """
        with self._lock_for(user_id):
            entries = self._entries.get(user_id, [])
            usage = next(
                (e for e in entries
                 if e.generation_id == generation_id and e.type == LedgerEntryType.USAGE),
                None
            )
            if usage is None:
                raise LedgerError(f"No charge found for generation {generation_id}")
            if any(e.generation_id == generation_id and e.type == LedgerEntryType.REFUND for e in entries):
                raise LedgerError(f"Generation {generation_id} was already refunded")

            entry = CreditLedgerEntry(
                user_id=user_id,
                amount=-usage.amount,
                type=LedgerEntryType.REFUND,
                description=description or "Refund for failed generation",
                generation_id=generation_id,
            )
            self._entries[user_id].append(entry)

        logger.info(f"Refunded {entry.amount} credits to {user_id} for {generation_id}")
        return entry

    def get_usage_total(self, user_id: str) -> int:
        """Credits spent on generations that were not refunded."""
        entries = self.get_entries(user_id)
        used = -sum(e.amount for e in entries if e.type == LedgerEntryType.USAGE)
        refunded = sum(e.amount for e in entries if e.type == LedgerEntryType.REFUND)
        return used - refunded


class GenerationCharge:
    """Compensating transaction around one generation's credit debit.

    ``hold()`` debits the cost. Afterwards exactly one of ``settle()`` or
    ``refund()`` takes effect; a second refund is a no-op.

    Attributes:
        ledger: Ledger to debit and refund
        user_id: User being charged
        generation_id: Generation the charge belongs to
        amount: Credit cost
    """

    def __init__(self, ledger: CreditLedger, user_id: str, generation_id: str, amount: int):
        self.ledger = ledger
        self.user_id = user_id
        self.generation_id = generation_id
        self.amount = amount
        self.entry: Optional[CreditLedgerEntry] = None
        self.refund_entry: Optional[CreditLedgerEntry] = None
        self.settled = False

    @property
    def held(self) -> bool:
        return self.entry is not None

    def hold(self) -> CreditLedgerEntry:
        """Debit the cost.

        Raises:
            InsufficientCreditsError: If the user cannot afford it
        """
        if self.entry is not None:
            raise LedgerError(f"Charge for {self.generation_id} is already held")
        self.entry = self.ledger.charge(self.user_id, self.amount, generation_id=self.generation_id)
        return self.entry

    def settle(self) -> None:
        """Keep the debit; the generation was delivered."""
        if self.refund_entry is not None:
            raise LedgerError(f"Charge for {self.generation_id} was already refunded")
        self.settled = True

    def refund(self, reason: str = "") -> Optional[CreditLedgerEntry]:
        """Return the debit once. Returns None when nothing needs refunding."""
        if self.entry is None or self.settled or self.refund_entry is not None:
            return None
        description = f"Refund for failed generation: {reason}" if reason else ""
        self.refund_entry = self.ledger.refund(self.user_id, self.generation_id, description)
        return self.refund_entry
