from __future__ import annotations
from typing import Optional
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import Integer, String, Text, ForeignKey, DateTime, func
from .base import Base
from .repair_status import STATUS_IDS, RepairStatus

class RepairRequest(Base):
    __tablename__ = 'repair_requests'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    client_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    device_type: Mapped[str] = mapped_column(String(80), nullable=False)
    brand: Mapped[Optional[str]] = mapped_column(String(80), nullable=True)
    model: Mapped[Optional[str]] = mapped_column(String(80), nullable=True)
    problem_description: Mapped[str] = mapped_column(Text, nullable=False)
    status_id: Mapped[int] = mapped_column(Integer, ForeignKey('repair_statuses.id'), nullable=False, default=STATUS_IDS[RepairStatus.SUBMITTED], index=True)
    pre_diagnosis: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    estimated_cost_cents: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    technician_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, index=True)
    drop_off_relay_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, index=True)
    pickup_relay_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, index=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[str] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[str] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

# Status flow: SUBMITTED -> RECEIVED -> DIAGNOSED -> IN_REPAIR -> REPAIRED -> READY_FOR_PICKUP -> DELIVERED
# CANCELLED reachable from any non-terminal status. Status writes go through services.lifecycle only.
