from datetime import datetime
from decimal import Decimal

import pytest

from personal_budget.backend.errors import ValidationRejected
from personal_budget.backend.models import (
    Expense,
    MonthRecord,
    document_from_dict,
    document_to_dict,
    format_currency,
    month_key,
    month_sort_key,
    parse_amount,
    parse_month_key,
)


def test_month_key_format():
    assert month_key(datetime(2025, 9, 1)) == 'Sep2025'
    assert month_key(datetime(2026, 1, 31)) == 'Jan2026'


def test_parse_month_key():
    assert parse_month_key('Dec2025') == (2025, 12)
    assert parse_month_key('Jan2026') == (2026, 1)


@pytest.mark.parametrize('key', ['', 'Sept2025', 'sep2025', 'Sep 2025', 'Foo2025', 'Sep25', None])
def test_parse_month_key_rejects_malformed(key):
    with pytest.raises(ValidationRejected):
        parse_month_key(key)


def test_month_sort_key_is_chronological():
    keys = ['Jan2026', 'Dec2025', 'Feb2025', 'Apr2025']
    assert sorted(keys, key=month_sort_key) == ['Feb2025', 'Apr2025', 'Dec2025', 'Jan2026']


def test_unparseable_keys_sort_before_real_months():
    assert sorted(['Mar2020', 'garbage'], key=month_sort_key) == ['garbage', 'Mar2020']


def test_parse_amount_accepts_raw_strings():
    assert parse_amount('12.5') == Decimal('12.50')
    assert parse_amount(' 4.50 ') == Decimal('4.50')
    assert parse_amount(3) == Decimal('3.00')
    assert parse_amount(0.1) == Decimal('0.10')


@pytest.mark.parametrize('value', ['abc', '', 'NaN', 'Infinity', float('nan'), float('inf'), None, True])
def test_parse_amount_rejects_non_finite(value):
    with pytest.raises(ValidationRejected):
        parse_amount(value)


def test_format_currency():
    assert format_currency(Decimal('1995.5')) == '$1,995.50'
    assert format_currency(Decimal('-12')) == '-$12.00'
    assert format_currency(0) == '$0.00'


def test_expense_gets_id_and_empty_note():
    expense = Expense(title='Lunch', amount=Decimal('12.50'), category='Food', note=None)
    assert expense.id
    assert expense.note == ''


def test_document_from_stored_json():
    stored = {
        'Sep2025': {
            'budget': 2000,
            'expenses': [
                {'id': 1757000000000, 'title': 'Coffee', 'note': '', 'amount': 4.5, 'category': 'Food'},
            ],
        },
    }
    document = document_from_dict(stored)
    record = document['Sep2025']
    assert record.budget == Decimal('2000')
    assert record.expenses[0].id == 1757000000000
    assert record.spent == Decimal('4.50')
    assert document_to_dict(document) == stored


def test_month_record_ignores_garbage_amounts():
    record = MonthRecord.from_dict({'budget': 'oops', 'expenses': [{'title': 'x', 'amount': 'y'}]})
    assert record.budget == Decimal('0')
    assert record.spent == Decimal('0')


@pytest.mark.parametrize('value', ['1e30', 1e30, '-1e26', '1000000000000', Decimal('1e40')])
def test_parse_amount_rejects_out_of_range(value):
    with pytest.raises(ValidationRejected, match='out of range'):
        parse_amount(value)


def test_parse_amount_accepts_large_realistic_amounts():
    assert parse_amount('999999999999.99') == Decimal('999999999999.99')


def test_document_from_dict_skips_malformed_entries():
    document = document_from_dict({
        'Aug2025': [1],
        'Jul2025': 'x',
        'Sep2025': {'budget': 1e30, 'expenses': [
            'junk',
            {'id': 'a', 'title': 'Lunch', 'amount': 12, 'category': 'Food'},
        ]},
        'Oct2025': {'budget': 10, 'expenses': 'nope'},
    })

    assert set(document) == {'Sep2025', 'Oct2025'}
    assert document['Sep2025'].budget == Decimal('0')
    assert [e.id for e in document['Sep2025'].expenses] == ['a']
    assert document['Oct2025'].expenses == []
