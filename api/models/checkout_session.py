"""CheckoutSession ORM model — a short-lived, price-snapshotted purchase intent."""

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import String, Numeric, DateTime, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from db.database import Base
from models.enums import BillingCycle, CheckoutSessionStatus, db_enum
from models.package import JSONType


class CheckoutSession(Base):
    __tablename__ = "checkout_sessions"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    session_token: Mapped[str] = mapped_column(
        String(36), unique=True, nullable=False, index=True,
        default=lambda: str(uuid.uuid4()),
    )
    package_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("packages.id"), nullable=False)
    shop_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("shops.id"), nullable=False, index=True)

    # Customer (optional until the provider checkout starts)
    email: Mapped[str | None] = mapped_column(String(255))
    name: Mapped[str | None] = mapped_column(String(255))

    # Pricing snapshot
    billing_cycle: Mapped[BillingCycle] = mapped_column(
        db_enum(BillingCycle, "billing_cycle"), nullable=False,
    )
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    platform_fee: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    custom_amount: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))
    metadata_: Mapped[dict] = mapped_column("metadata", JSONType, default=dict)

    status: Mapped[CheckoutSessionStatus] = mapped_column(
        db_enum(CheckoutSessionStatus, "checkout_session_status"),
        default=CheckoutSessionStatus.PENDING, index=True,
    )
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    stripe_checkout_session_id: Mapped[str | None] = mapped_column(String(255))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    package = relationship("Package", lazy="selectin")
    shop = relationship("Shop", lazy="selectin")

    @property
    def net_revenue(self) -> Decimal:
        return self.price - self.platform_fee
