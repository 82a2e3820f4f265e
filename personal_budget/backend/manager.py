import csv
import io
import logging
import time
from concurrent.futures import ThreadPoolExecutor, wait
from datetime import datetime
from decimal import Decimal
from threading import RLock

from .. import config
from .errors import MonthNotFound, StorageUnavailable, StoreNotReady, ValidationRejected
from .models import (
    CATEGORIES,
    Expense,
    MonthRecord,
    document_from_dict,
    document_to_dict,
    month_key,
    month_sort_key,
    new_expense_id,
    parse_amount,
    parse_month_key,
)

logger = logging.getLogger(__name__)


class BudgetManager:
    """In-memory budget document with write-behind persistence.

    Mutations update memory synchronously, then queue a full-document save
    on a single background worker. Reads never wait for saves.
    """

    def __init__(self, storage, default_budget=None, clock=datetime.now,
                 collection=config.COLLECTION, doc_id=config.DOCUMENT_ID,
                 save_attempts=config.SAVE_ATTEMPTS, retry_delay=config.SAVE_RETRY_DELAY):
        self.storage = storage
        self.default_budget = parse_amount(
            config.DEFAULT_BUDGET if default_budget is None else default_budget, 'default budget')
        self.collection = collection
        self.doc_id = doc_id
        self.save_attempts = max(1, int(save_attempts))
        self.retry_delay = retry_delay
        self._clock = clock
        self._document = None
        self._current_month = None
        self._lock = RLock()
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix='budget-save')
        self._pending = set()
        self._last_error = None
        self._last_saved_at = None

    # Lifecycle
    @property
    def ready(self):
        return self._document is not None

    @property
    def current_month(self):
        self._require_ready()
        return self._current_month

    def _require_ready(self):
        if self._document is None:
            raise StoreNotReady("Budget store used before initialize()")

    def _default_document(self):
        return {self._current_month: MonthRecord(budget=self.default_budget)}

    def initialize(self):
        """Load the budget document, creating it on first run."""
        with self._lock:
            self._current_month = month_key(self._clock())
            try:
                stored = self.storage.load(self.collection, self.doc_id)
                if stored is not None and not isinstance(stored, dict):
                    raise StorageUnavailable(f"Unexpected document type {type(stored).__name__}")
            except StorageUnavailable as e:
                # Work from memory; nothing is written until the next mutation
                logger.warning("Could not load budget document, using defaults: %s", e)
                self._document = self._default_document()
                return self._document

            if stored is None:
                logger.info("No budget document found, creating one for %s", self._current_month)
                self._document = self._default_document()
                self._persist()
                return self._document

            self._document = document_from_dict(stored)
            logger.info("Loaded budget document with %d month(s)", len(self._document))
            if self._current_month not in self._document:
                logger.info("Starting new month %s", self._current_month)
                self._document[self._current_month] = MonthRecord(budget=self.default_budget)
                self._persist()
            return self._document

    # Persistence
    def _persist(self):
        snapshot = document_to_dict(self._document)
        future = self._executor.submit(self._save_with_retry, snapshot)
        with self._lock:
            self._pending.add(future)
        future.add_done_callback(self._discard_pending)
        return future

    def _discard_pending(self, future):
        with self._lock:
            self._pending.discard(future)

    def _save_with_retry(self, snapshot):
        for attempt in range(1, self.save_attempts + 1):
            try:
                self.storage.save(self.collection, self.doc_id, snapshot)
            except StorageUnavailable as e:
                logger.warning("Save attempt %d/%d failed: %s", attempt, self.save_attempts, e)
                if attempt < self.save_attempts:
                    time.sleep(self.retry_delay)
                    continue
                logger.error("Budget document not saved after %d attempt(s)", self.save_attempts)
                with self._lock:
                    self._last_error = str(e)
                return False
            except Exception as e:
                logger.exception("Unexpected error saving budget document")
                with self._lock:
                    self._last_error = f"{type(e).__name__}: {e}"
                return False
            with self._lock:
                self._last_error = None
                self._last_saved_at = datetime.now()
            return True

    def save_status(self):
        with self._lock:
            return {
                'pending': sum(1 for f in self._pending if not f.done()),
                'last_error': self._last_error,
                'last_saved_at': self._last_saved_at.isoformat() if self._last_saved_at else None,
            }

    def flush(self, timeout=None):
        """Wait for queued saves. Returns False if any are still running after timeout."""
        with self._lock:
            futures = list(self._pending)
        _, not_done = wait(futures, timeout=timeout)
        return not not_done

    def close(self):
        self.flush()
        self._executor.shutdown(wait=True)

    # Mutations
    def _month_for_write(self, month):
        parse_month_key(month)
        record = self._document.get(month)
        if record is None:
            record = self._document[month] = MonthRecord(budget=self.default_budget)
        return record

    def add_expense(self, month, title, note, amount, category):
        self._require_ready()
        parse_month_key(month)
        title = title.strip() if isinstance(title, str) else ''
        if not title:
            raise ValidationRejected("Title is required")
        amount = parse_amount(amount)
        if amount < 0:
            raise ValidationRejected("amount must not be negative")
        if category not in CATEGORIES:
            raise ValidationRejected(f"Invalid category: {category}")
        note = '' if note is None else str(note)

        with self._lock:
            record = self._month_for_write(month)
            taken = {str(e.id) for e in record.expenses}
            expense_id = new_expense_id()
            while expense_id in taken:
                expense_id = new_expense_id()
            expense = Expense(id=expense_id, title=title, note=note, amount=amount, category=category)
            record.expenses.append(expense)
            self._persist()
        logger.info("Added expense %s (%s %s) to %s", expense.id, expense.category, expense.amount, month)
        return expense

    def delete_expense(self, month, expense_id):
        """Remove the expense with this id. Returns False when nothing matched."""
        self._require_ready()
        with self._lock:
            record = self._document.get(month)
            if record is None:
                # Unknown month: nothing to remove, and no month is created for it
                return False
            target = str(expense_id)
            index = next((i for i, e in enumerate(record.expenses) if str(e.id) == target), None)
            if index is not None:
                del record.expenses[index]
            self._persist()
        if index is None:
            logger.info("Expense %s not found in %s, nothing deleted", expense_id, month)
            return False
        return True

    def set_budget(self, month, new_budget):
        self._require_ready()
        parse_month_key(month)
        budget = parse_amount(new_budget, 'budget')
        if budget <= 0:
            raise ValidationRejected("budget must be greater than 0")
        with self._lock:
            record = self._month_for_write(month)
            record.budget = budget
            self._persist()
        logger.info("Budget for %s set to %s", month, budget)
        return budget

    # Reads
    def months(self):
        self._require_ready()
        return list(self._document)

    def get_month(self, month):
        self._require_ready()
        try:
            return self._document[month]
        except KeyError:
            raise MonthNotFound(f"No budget data for {month}") from None

    def spent(self, month):
        return self.get_month(month).spent

    def remaining(self, month):
        record = self.get_month(month)
        return record.budget - record.spent

    def category_totals(self, month):
        totals = {}
        for expense in self.get_month(month).expenses:
            totals[expense.category] = totals.get(expense.category, Decimal('0.00')) + expense.amount
        return totals

    def month_summary(self, month):
        record = self.get_month(month)
        return {
            'month': month,
            'budget': record.budget,
            'spent': record.spent,
            'remaining': record.budget - record.spent,
            'expenses': list(record.expenses),
            'category_totals': self.category_totals(month),
        }

    def history_view(self):
        """One entry per month, newest calendar month first."""
        self._require_ready()
        history = []
        for month in sorted(self._document, key=month_sort_key, reverse=True):
            record = self._document[month]
            history.append({
                'month': month,
                'budget': record.budget,
                'spent': record.spent,
                'category_totals': self.category_totals(month),
            })
        return history

    def export_csv(self, month):
        record = self.get_month(month)
        data = io.StringIO()
        # Excel needs BOM to recognize UTF-8
        data.write('\ufeff')
        w = csv.writer(data)
        w.writerow(('ID', 'Title', 'Note', 'Category', 'Amount'))
        for e in record.expenses:
            w.writerow((e.id, e.title, e.note, e.category, f"{e.amount:.2f}"))
        return data.getvalue()
