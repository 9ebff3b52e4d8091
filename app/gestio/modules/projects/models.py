from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.gestio.models import Base

if TYPE_CHECKING:
    from app.gestio.modules.clients.models import Client


class Project(Base):
    __tablename__ = "projects"
    __table_args__ = (
        Index("idx_projects_company", "company_id"),
        Index("idx_projects_status", "status"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    company_id: Mapped[int] = mapped_column(ForeignKey("companies.id", ondelete="CASCADE"), nullable=False)
    client_id: Mapped[int | None] = mapped_column(ForeignKey("clients.id", ondelete="SET NULL"), nullable=True)
    owner_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    # PENDING_VALIDATION, IN_PROGRESS, COMPLETED, PUBLISHED, FUTURE, PERSONAL
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="PENDING_VALIDATION")
    start_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    end_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    total_price: Mapped[float | None] = mapped_column(Float, nullable=True)
    currency: Mapped[str] = mapped_column(String(8), nullable=False, default="XOF")
    is_fixed_price: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    client: Mapped["Client | None"] = relationship(lazy="selectin")


class Payment(Base):
    __tablename__ = "payments"
    __table_args__ = (
        Index("idx_payments_company", "company_id"),
        Index("idx_payments_project", "project_id"),
        Index("idx_payments_type_status", "payment_type", "status"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    company_id: Mapped[int] = mapped_column(ForeignKey("companies.id", ondelete="CASCADE"), nullable=False)
    project_id: Mapped[int | None] = mapped_column(ForeignKey("projects.id", ondelete="SET NULL"), nullable=True)
    client_id: Mapped[int | None] = mapped_column(ForeignKey("clients.id", ondelete="SET NULL"), nullable=True)

    payment_type: Mapped[str] = mapped_column(String(32), nullable=False)  # CLIENT, PRESTATAIRE, SUBSCRIPTION, OTHER
    amount: Mapped[float] = mapped_column(Float, nullable=False)
    date: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    payment_method: Mapped[str] = mapped_column(String(32), nullable=False, default="BANK_TRANSFER")
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="PENDING")
    reference: Mapped[str | None] = mapped_column(String(128), nullable=True)
    is_partial: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    part_number: Mapped[int | None] = mapped_column(Integer, nullable=True)
    total_parts: Mapped[int | None] = mapped_column(Integer, nullable=True)
    payee: Mapped[str | None] = mapped_column(String(255), nullable=True)  # service provider for PRESTATAIRE payments

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
