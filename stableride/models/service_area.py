import uuid
from datetime import datetime
from decimal import Decimal
from sqlalchemy import String, Float, Numeric, Boolean, JSON, Text, DateTime, ForeignKey, func
from sqlalchemy.orm import Mapped, mapped_column
from stableride.database import Base


class ServiceArea(Base):
    __tablename__ = "service_areas"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    # GeoJSON Polygon, [lng, lat] positions
    polygon: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    # {"lat": .., "lng": ..}
    center: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    radius_km: Mapped[float | None] = mapped_column(Float, nullable=True)
    surcharge_amount: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    surcharge_percentage: Mapped[Decimal | None] = mapped_column(Numeric(5, 2), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)
    restrictions: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    created_by: Mapped[str | None] = mapped_column(String, ForeignKey("admin_users.id"), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
