from decimal import Decimal

import pytest

from medbook.models.pricing import Pricing
from medbook.scheduling.errors import PricingMissing, ValidationFailed
from medbook.scheduling.pricing import compute_payment_split, get_price, set_price


@pytest.mark.parametrize(
    ('price', 'deposit', 'balance'),
    [
        ('1000', '100.00', '900.00'),
        ('999.99', '100.00', '899.99'),
        ('0.05', '0.01', '0.04'),
        ('0', '0.00', '0.00'),
        (1250.5, '125.05', '1125.45'),
    ],
)
def test_compute_payment_split_rounds_deposit_half_up_and_conserves_total(price, deposit, balance) -> None:
    computed_deposit, computed_balance = compute_payment_split(price)

    assert computed_deposit == Decimal(deposit)
    assert computed_balance == Decimal(balance)
    assert computed_deposit + computed_balance == Decimal(str(price)).quantize(Decimal('0.01'))


def test_get_price_raises_when_provider_has_no_price(db, doctor_ref, service) -> None:
    with pytest.raises(PricingMissing) as exception_info:
        get_price(db, doctor_ref, service.id)

    assert exception_info.value.status_code == 422


def test_set_price_upserts_one_row_per_provider_and_service(db, doctor_ref, service) -> None:
    set_price(db, doctor_ref, service.id, '800')
    record = set_price(db, doctor_ref, service.id, Decimal('1200.50'))

    assert db.query(Pricing).count() == 1
    assert record.price == Decimal('1200.50')
    assert get_price(db, doctor_ref, service.id) == Decimal('1200.50')


def test_set_price_rejects_negative_prices(db, doctor_ref, service) -> None:
    with pytest.raises(ValidationFailed) as exception_info:
        set_price(db, doctor_ref, service.id, '-1')

    assert exception_info.value.detail == 'Price must be a non-negative number.'
    assert db.query(Pricing).count() == 0


def test_set_price_accepts_zero_for_free_services(db, doctor_ref, service) -> None:
    record = set_price(db, doctor_ref, service.id, '0')

    assert record.price == Decimal('0.00')
    assert get_price(db, doctor_ref, service.id) == Decimal('0.00')
