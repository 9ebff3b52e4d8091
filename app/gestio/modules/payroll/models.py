from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, Float, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.gestio.models import Base, JSONType

if TYPE_CHECKING:
    from app.gestio.models import User


class Payroll(Base):
    """One payslip per employee per calendar month."""

    __tablename__ = "payrolls"
    __table_args__ = (UniqueConstraint("user_id", "year", "month", name="uq_payrolls_user_year_month"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    period: Mapped[str] = mapped_column(String(64), nullable=False)  # e.g. "2026-03"
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    gross_pay: Mapped[float] = mapped_column(Float, nullable=False)
    net_pay: Mapped[float] = mapped_column(Float, nullable=False)
    taxes: Mapped[float] = mapped_column(Float, nullable=False)
    deductions: Mapped[float | None] = mapped_column(Float, nullable=True)
    additions: Mapped[float | None] = mapped_column(Float, nullable=True)
    issue_date: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    payment_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    reference: Mapped[str | None] = mapped_column(String(128), nullable=True)
    details: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    user: Mapped["User"] = relationship(lazy="selectin")
