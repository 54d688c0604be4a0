import pytest

from billing_admin.common.badges import Badge, badge, choices, humanize


@pytest.mark.parametrize(('kind', 'value', 'label', 'color'), (
    ('transaction_status', 'paid', 'Paid', 'green'),
    ('transaction_status', 'PENDING', 'Pending', 'yellow'),
    ('payment_method', 'hmo', 'HMO', 'indigo'),
    ('payment_method', 'bank_transfer', 'Bank Transfer', 'purple'),
    ('expense_status', 'approved', 'Approved', 'green'),
    ('expense_category', 'medical_supplies', 'Medical Supplies', 'green'),
    ('daily_type', 'doctor_payment', 'Doctor Payment', 'purple'),
))
def test_known_values(kind, value, label, color):
    b = badge(kind, value)
    assert (b.label, b.color) == (label, color)
    assert b.css_class == f'badge badge-{color}'


def test_unknown_value_falls_back_to_gray():
    assert badge('transaction_status', 'on_hold') == Badge('On Hold', 'gray')


def test_unknown_kind_raises():
    with pytest.raises(KeyError):
        badge('colour', 'paid')


def test_humanize():
    assert humanize('bank_transfer') == 'Bank Transfer'
    assert humanize('follow-up') == 'Follow Up'
    assert humanize(None) == '—'


def test_choices_follow_declaration_order():
    assert choices('doctor_payment_status') == [('pending', 'Pending'), ('paid', 'Paid'), ('cancelled', 'Cancelled')]
