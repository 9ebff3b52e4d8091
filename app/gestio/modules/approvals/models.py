from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.gestio.models import Base, JSONType

if TYPE_CHECKING:
    from app.gestio.models import User


class ApprovalRequest(Base):
    __tablename__ = "approval_requests"
    __table_args__ = (
        Index("idx_approval_requests_requester", "requester_id"),
        Index("idx_approval_requests_approver", "approver_id"),
        Index("idx_approval_requests_status", "status"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    requester_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    approver_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    request_type: Mapped[str] = mapped_column(String(128), nullable=False)  # e.g. "LEAVE", "EXPENSE"
    request_data: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="PENDING")  # PENDING, APPROVED, REJECTED
    comments: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    requester: Mapped["User"] = relationship(foreign_keys=[requester_id], lazy="selectin")
    approver: Mapped["User"] = relationship(foreign_keys=[approver_id], lazy="selectin")
