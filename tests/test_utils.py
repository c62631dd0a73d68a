from datetime import date

import pytest

from tgagro.utils import (ValidationError, group_by, index_by_id, parse_date, require_fields,
                          sort_by_date, to_number)


def test_to_number_accepts_api_and_form_values():
    assert to_number(12) == 12.0
    assert to_number('12.5') == 12.5
    assert to_number('12,5') == 12.5
    assert to_number('') is None
    assert to_number('abc') is None
    assert to_number(None) is None
    assert to_number(float('nan')) is None


def test_parse_date():
    assert parse_date('2024-01-15') == date(2024, 1, 15)
    assert parse_date('2024-01-15T03:00:00.000Z') == date(2024, 1, 15)
    assert parse_date('15/01/2024') is None
    assert parse_date(None) is None


def test_require_fields_names_missing_fields():
    with pytest.raises(ValidationError) as excinfo:
        require_fields({'brinco': ' ', 'lote_id': 1}, ['brinco', 'lote_id', 'peso_entrada_kg'])
    assert excinfo.value.fields == ['brinco', 'peso_entrada_kg']


def test_indexes_normalize_ids():
    records = [{'id': 1, 'lote_id': '2'}, {'id': '3', 'lote_id': 2}, {'id': 4, 'lote_id': None}]
    assert sorted(index_by_id(records)) == [1, 3, 4]
    groups = group_by(records, 'lote_id')
    assert [r['id'] for r in groups[2]] == [1, '3']
    assert [r['id'] for r in groups[None]] == [4]


def test_sort_by_date_puts_undated_records_last():
    records = [{'d': '2024-02-01'}, {'d': None}, {'d': '2024-01-01'}]
    assert [r['d'] for r in sort_by_date(records, 'd')] == ['2024-01-01', '2024-02-01', None]
    assert [r['d'] for r in sort_by_date(records, 'd', reverse=True)] == ['2024-02-01', '2024-01-01', None]
