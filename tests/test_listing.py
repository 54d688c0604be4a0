import pytest

from billing_admin.services.listing import filter_rows, paginate, parse_sort, resolve, sort_rows

ROWS = [
    {'transaction_id': 'TXN-000001', 'amount': 500, 'patient': {'first_name': 'Juan', 'last_name': 'Dela Cruz'}},
    {'transaction_id': 'TXN-000002', 'amount': None, 'patient': {'first_name': 'Liza', 'last_name': 'Soberano'}},
    {'transaction_id': 'TXN-000003', 'amount': 1200, 'patient': None},
]


def test_resolve_dotted_paths():
    assert resolve(ROWS[0], 'patient.first_name') == 'Juan'
    assert resolve(ROWS[2], 'patient.first_name') is None
    assert resolve(ROWS[0], 'missing.key') is None


def test_filter_rows_is_case_insensitive_over_fields():
    fields = ('transaction_id', 'patient.first_name', 'patient.last_name')
    assert [r['transaction_id'] for r in filter_rows(ROWS, 'SOBER', fields)] == ['TXN-000002']
    assert len(filter_rows(ROWS, 'txn-', fields)) == 3
    assert filter_rows(ROWS, 'nobody', fields) == []
    assert filter_rows(ROWS, '   ', fields) == ROWS


def test_sort_rows_puts_missing_values_last():
    ascending = sort_rows(ROWS, 'amount')
    assert [r['transaction_id'] for r in ascending] == ['TXN-000001', 'TXN-000003', 'TXN-000002']
    descending = sort_rows(ROWS, 'amount', descending=True)
    assert [r['transaction_id'] for r in descending] == ['TXN-000003', 'TXN-000001', 'TXN-000002']


def test_sort_rows_without_key_keeps_order():
    assert sort_rows(ROWS, None) == ROWS


def test_sort_strings_ignores_case():
    rows = [{'name': 'beta'}, {'name': 'Alpha'}, {'name': 'gamma'}]
    assert [r['name'] for r in sort_rows(rows, 'name')] == ['Alpha', 'beta', 'gamma']


@pytest.mark.parametrize(('raw', 'expected'), (
    ('-amount', ('amount', True)),
    ('amount', ('amount', False)),
    ('password', (None, False)),
    ('', (None, False)),
    (None, (None, False)),
))
def test_parse_sort(raw, expected):
    assert parse_sort(raw, ('amount', 'status')) == expected


def test_paginate_clamps_page():
    rows = [{'n': i} for i in range(35)]
    page = paginate(rows, 2, 15)
    assert [r['n'] for r in page.items][:2] == [15, 16]
    assert page.page_count == 3
    assert page.has_prev and page.has_next
    assert (page.first_index, page.last_index) == (16, 30)

    last = paginate(rows, 99, 15)
    assert last.page == 3
    assert len(last.items) == 5
    assert not last.has_next

    assert paginate(rows, 0, 15).page == 1
    assert paginate(rows, None, 15).page == 1


def test_paginate_empty():
    page = paginate([], 4, 15)
    assert page.page == 1
    assert page.page_count == 0
    assert page.items == []
    assert (page.first_index, page.last_index) == (0, 0)
    assert not page.has_next


def test_paginate_rejects_bad_page_size():
    with pytest.raises(ValueError):
        paginate(ROWS, 1, 0)
