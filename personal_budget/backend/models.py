import logging
import math
import re
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import List

from .errors import ValidationRejected

logger = logging.getLogger(__name__)

CATEGORIES = ('Food', 'Sports', 'Groceries', 'Transportation', 'Miscellaneous')

MONTH_ABBRS = ('Jan', 'Feb', 'Mar', 'Apr', 'May', 'Jun',
               'Jul', 'Aug', 'Sep', 'Oct', 'Nov', 'Dec')

_MONTH_KEY_RE = re.compile(r'^([A-Z][a-z]{2})(\d{4})$')

CENTS = Decimal('0.01')
MAX_AMOUNT = Decimal('1e12')


def month_key(date: datetime) -> str:
    """Format a date as a MonthKey, e.g. 'Sep2025'."""
    return f"{MONTH_ABBRS[date.month - 1]}{date.year:04d}"


def parse_month_key(key):
    """Return (year, month) for a MonthKey or raise ValidationRejected."""
    match = _MONTH_KEY_RE.match(key) if isinstance(key, str) else None
    if not match or match.group(1) not in MONTH_ABBRS:
        raise ValidationRejected(f"Invalid month key: {key!r}")
    return int(match.group(2)), MONTH_ABBRS.index(match.group(1)) + 1


def month_sort_key(key):
    """Chronological sort key; unparseable keys sort before every real month."""
    try:
        year, month = parse_month_key(key)
    except ValidationRejected:
        return (0, 0, str(key))
    return (year, month, '')


def parse_amount(value, name='amount') -> Decimal:
    """Parse a raw user value (str/int/float/Decimal) into a cent-quantized Decimal."""
    if isinstance(value, bool) or value is None:
        raise ValidationRejected(f"{name} must be a number")
    if isinstance(value, float) and not math.isfinite(value):
        raise ValidationRejected(f"{name} must be a finite number")
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationRejected(f"{name} must be a number") from None
    if not amount.is_finite():
        raise ValidationRejected(f"{name} must be a finite number")
    if abs(amount) >= MAX_AMOUNT:
        raise ValidationRejected(f"{name} is out of range")
    try:
        return amount.quantize(CENTS, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise ValidationRejected(f"{name} is out of range") from None


def format_currency(amount) -> str:
    """Format a number as dollars with two decimals, e.g. '$1,995.50'."""
    amount = Decimal(amount).quantize(CENTS, rounding=ROUND_HALF_UP)
    sign = '-' if amount < 0 else ''
    return f"{sign}${abs(amount):,.2f}"


def _stored_decimal(value) -> Decimal:
    # Stored documents are not schema-checked; garbage amounts count as zero
    try:
        return parse_amount(value)
    except ValidationRejected:
        return Decimal('0.00')


def _stored_expenses(items):
    if not isinstance(items, list):
        if items:
            logger.warning("Ignoring malformed expense list in stored document")
        return []
    entries = [e for e in items if isinstance(e, dict)]
    if len(entries) != len(items):
        logger.warning("Skipping %d malformed expense(s) in stored document", len(items) - len(entries))
    return entries


def new_expense_id() -> str:
    return uuid.uuid4().hex


@dataclass
class Expense:
    title: str
    amount: Decimal
    category: str
    note: str = ''
    id: object = None

    def __post_init__(self):
        if self.id is None:
            self.id = new_expense_id()
        if self.note is None:
            self.note = ''

    def to_dict(self):
        return {
            'id': self.id,
            'title': self.title,
            'note': self.note,
            'amount': float(self.amount),
            'category': self.category,
        }

    @classmethod
    def from_dict(cls, data):
        return cls(
            id=data.get('id'),
            title=data.get('title', ''),
            note=data.get('note') or '',
            amount=_stored_decimal(data.get('amount', 0)),
            category=data.get('category', ''),
        )


@dataclass
class MonthRecord:
    budget: Decimal
    expenses: List[Expense] = field(default_factory=list)

    @property
    def spent(self) -> Decimal:
        return sum((e.amount for e in self.expenses), Decimal('0.00'))

    def to_dict(self):
        return {
            'budget': float(self.budget),
            'expenses': [e.to_dict() for e in self.expenses],
        }

    @classmethod
    def from_dict(cls, data):
        budget = _stored_decimal(data.get('budget', 0))
        return cls(
            budget=max(budget, Decimal('0.00')),
            expenses=[Expense.from_dict(e) for e in _stored_expenses(data.get('expenses'))],
        )


def document_from_dict(data):
    """Build the in-memory BudgetDocument (MonthKey -> MonthRecord) from stored JSON."""
    document = {}
    for key, value in data.items():
        if value is None:
            value = {}
        if not isinstance(value, dict):
            logger.warning("Skipping malformed month %r in stored document", key)
            continue
        document[key] = MonthRecord.from_dict(value)
    return document


def document_to_dict(document):
    return {key: record.to_dict() for key, record in document.items()}
