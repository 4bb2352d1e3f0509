import uuid
from datetime import datetime
from sqlalchemy import String, Boolean, Integer, JSON, DateTime, func
from sqlalchemy.orm import Mapped, mapped_column
from stableride.database import Base


class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    password_hash: Mapped[str | None] = mapped_column(String(255), nullable=True)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(20), nullable=True)

    is_driver: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)
    # OFFLINE | AVAILABLE | BUSY
    driver_status: Mapped[str | None] = mapped_column(String(20), nullable=True)
    vehicle_info: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    total_trips: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    stripe_customer_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    login_attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    locked_until: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
