"""Package ORM model — a sellable digital product with per-cycle prices."""

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import String, Integer, Numeric, Boolean, DateTime, ForeignKey, Text, JSON
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from db.database import Base

JSONType = JSON().with_variant(JSONB, "postgresql")


class Package(Base):
    __tablename__ = "packages"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    shop_id: Mapped[uuid.UUID | None] = mapped_column(ForeignKey("shops.id"), index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str | None] = mapped_column(String(255), index=True)
    description: Mapped[str | None] = mapped_column(Text)

    # Pricing (an unset field means the cycle is not offered)
    base_price: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))
    weekly_price: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))
    monthly_price: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))
    yearly_price: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))

    features: Mapped[list] = mapped_column(JSONType, default=list)
    image_url: Mapped[str | None] = mapped_column(String(500))
    images: Mapped[list] = mapped_column(JSONType, default=list)
    category: Mapped[str | None] = mapped_column(String(100))
    is_subscription: Mapped[bool] = mapped_column(Boolean, default=False)
    trial_days: Mapped[int | None] = mapped_column(Integer)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    shop = relationship("Shop", back_populates="packages", lazy="selectin")
