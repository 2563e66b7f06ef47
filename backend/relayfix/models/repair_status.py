from __future__ import annotations
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import Integer, String
from .base import Base


class RepairStatus(Base):
    """Fixed lifecycle stage. Rows are seeded, never edited at runtime."""
    __tablename__ = 'repair_statuses'
    SUBMITTED = 'SUBMITTED'
    RECEIVED = 'RECEIVED'
    DIAGNOSED = 'DIAGNOSED'
    IN_REPAIR = 'IN_REPAIR'
    REPAIRED = 'REPAIRED'
    READY_FOR_PICKUP = 'READY_FOR_PICKUP'
    DELIVERED = 'DELIVERED'
    CANCELLED = 'CANCELLED'
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    code: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    label: Mapped[str] = mapped_column(String(64), nullable=False)
    description: Mapped[str] = mapped_column(String(255), nullable=False, default='')
    color: Mapped[str] = mapped_column(String(16), nullable=False, default='#6b7280')


# (id, code, label, description, color); ids are stable and referenced by repair_requests.status_id
STATUS_ROWS = (
    (1, RepairStatus.SUBMITTED, 'Submitted', 'Request created, device not yet dropped off', '#6b7280'),
    (2, RepairStatus.RECEIVED, 'Received at relay point', 'Device handed over at the drop-off relay point', '#3b82f6'),
    (3, RepairStatus.DIAGNOSED, 'Diagnosed', 'Technician has diagnosed the device', '#8b5cf6'),
    (4, RepairStatus.IN_REPAIR, 'In repair', 'Repair in progress', '#f59e0b'),
    (5, RepairStatus.REPAIRED, 'Repaired', 'Repair finished, awaiting return to a relay point', '#10b981'),
    (6, RepairStatus.READY_FOR_PICKUP, 'Ready for pickup', 'Device waiting at the pickup relay point', '#14b8a6'),
    (7, RepairStatus.DELIVERED, 'Delivered', 'Device collected by the client', '#22c55e'),
    (8, RepairStatus.CANCELLED, 'Cancelled', 'Request cancelled', '#ef4444'),
)

STATUS_IDS = {code: sid for sid, code, *_ in STATUS_ROWS}
STATUS_CODES = {sid: code for code, sid in STATUS_IDS.items()}
