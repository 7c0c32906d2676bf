"""Price lookup and the deposit/balance split."""

from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy.orm import Session

from medbook.models.pricing import Pricing
from medbook.scheduling.errors import PricingMissing, ValidationFailed
from medbook.scheduling.providers import ProviderRef

DEPOSIT_RATE = Decimal('0.10')
CENTS = Decimal('0.01')


def compute_payment_split(price) -> tuple[Decimal, Decimal]:
    """Return ``(deposit, balance)``; they always add back up to ``price``."""
    total = Decimal(str(price)).quantize(CENTS, rounding=ROUND_HALF_UP)
    deposit = (total * DEPOSIT_RATE).quantize(CENTS, rounding=ROUND_HALF_UP)
    return deposit, total - deposit


def get_price(db: Session, provider: ProviderRef, service_id: int) -> Decimal:
    record = db.query(Pricing).filter(
        Pricing.provider_id == provider.id,
        Pricing.service_id == service_id,
    ).first()
    if record is None:
        raise PricingMissing()
    return Decimal(str(record.price))


def set_price(db: Session, provider: ProviderRef, service_id: int, price) -> Pricing:
    amount = Decimal(str(price))
    if amount < 0:
        raise ValidationFailed('Price must be a non-negative number.')

    record = db.query(Pricing).filter(
        Pricing.provider_id == provider.id,
        Pricing.service_id == service_id,
    ).first()
    if record is None:
        record = Pricing(provider_id=provider.id, service_id=service_id)
        db.add(record)

    record.price = amount.quantize(CENTS, rounding=ROUND_HALF_UP)
    db.commit()
    db.refresh(record)
    return record
