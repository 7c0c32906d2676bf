"""Pricing model definitions."""

from sqlalchemy import Column, ForeignKey, Integer, Numeric, UniqueConstraint

from medbook.database import Base, UTCDateTime, utcnow


class Pricing(Base):
    """Price a provider charges for one service."""
    __tablename__ = "pricing"
    __table_args__ = (UniqueConstraint("provider_id", "service_id", name="uq_pricing_provider_service"),)

    id = Column(Integer, primary_key=True)
    provider_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    service_id = Column(Integer, ForeignKey("services.id"), nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    created_at = Column(UTCDateTime, default=utcnow)
    updated_at = Column(UTCDateTime, default=utcnow, onupdate=utcnow)
