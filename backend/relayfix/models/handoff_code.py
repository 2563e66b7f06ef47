from __future__ import annotations
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import Integer, BigInteger, String, Boolean, ForeignKey, Index
from .base import Base


class HandoffCode(Base):
    __tablename__ = 'handoff_codes'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    repair_id: Mapped[int] = mapped_column(Integer, ForeignKey('repair_requests.id'), nullable=False, index=True)
    code: Mapped[str] = mapped_column(String(6), nullable=False)
    relay_point_id: Mapped[str] = mapped_column(String(64), nullable=False)
    # Same value as the token's issuedAt so both validation paths share one expiry clock
    created_at_ms: Mapped[int] = mapped_column(BigInteger, nullable=False)
    is_used: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    __table_args__ = (
        Index('ix_handoff_codes_code_relay', 'code', 'relay_point_id'),
    )
