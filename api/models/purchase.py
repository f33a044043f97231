"""Purchase ORM model — a time-bounded entitlement to a package."""

import math
import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import String, Numeric, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from db.database import Base
from models.enums import BillingCycle, PaymentMethod, PurchaseStatus, db_enum
from models.package import JSONType


class Purchase(Base):
    __tablename__ = "purchases"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    package_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("packages.id"), nullable=False)
    # Opaque identity from the auth layer; no users table here
    user_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)

    billing_cycle: Mapped[BillingCycle] = mapped_column(
        db_enum(BillingCycle, "billing_cycle"), nullable=False,
    )
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    status: Mapped[PurchaseStatus] = mapped_column(
        db_enum(PurchaseStatus, "purchase_status"), default=PurchaseStatus.PENDING, index=True,
    )

    # Payment
    payment_method: Mapped[PaymentMethod | None] = mapped_column(db_enum(PaymentMethod, "payment_method"))
    payment_id: Mapped[str | None] = mapped_column(String(255))
    customer_email: Mapped[str | None] = mapped_column(String(255))
    customer_name: Mapped[str | None] = mapped_column(String(255))

    # Entitlement window
    start_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    end_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    is_recurring: Mapped[bool] = mapped_column(Boolean, default=False)
    metadata_: Mapped[dict] = mapped_column("metadata", JSONType, default=dict)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    package = relationship("Package", lazy="selectin")

    def is_active(self, now: datetime | None = None) -> bool:
        now = now or datetime.utcnow()
        return (
            self.status == PurchaseStatus.COMPLETED
            and self.start_date <= now < self.end_date
        )

    def is_expired(self, now: datetime | None = None) -> bool:
        return (now or datetime.utcnow()) > self.end_date

    def days_remaining(self, now: datetime | None = None) -> int:
        remaining = self.end_date - (now or datetime.utcnow())
        return max(0, math.ceil(remaining.total_seconds() / 86400))
