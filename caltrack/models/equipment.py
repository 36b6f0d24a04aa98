from sqlalchemy import Column, Integer, String, Date, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from caltrack.core.security import utcnow
from caltrack.db.base import Base, SoftDeleteMixin
from caltrack.services.process_range import (
    parse_process_req_range,
    format_process_req_range,
)

# active, inactive, pending_calibration, in_calibration, retired
EQUIPMENT_STATUSES = {
    "active",
    "inactive",
    "pending_calibration",
    "in_calibration",
    "retired",
}


class Equipment(SoftDeleteMixin, Base):
    __tablename__ = "equipment"

    id = Column(Integer, primary_key=True, index=True)
    serial_number = Column(String(100), unique=True, index=True, nullable=False)
    description = Column(String(255), nullable=False)
    model = Column(String(100), nullable=True)
    manufacturer = Column(String(100), nullable=True)

    owner_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    plant_id = Column(Integer, ForeignKey("plants.id"), nullable=True)
    department_id = Column(Integer, ForeignKey("departments.id"), nullable=True)
    location_id = Column(Integer, ForeignKey("locations.id"), nullable=True)

    status = Column(String(30), nullable=False, default="active")
    last_calibration_date = Column(Date, nullable=True)
    next_calibration_due = Column(Date, nullable=True)

    # "inicio - fin" en una sola columna
    process_req_range = Column(String(100), nullable=True)

    created_at = Column(DateTime, default=utcnow)

    owner = relationship("User")
    plant = relationship("Plant")
    department = relationship("Department")
    location = relationship("Location")
    incoming_records = relationship("TrackIncoming", back_populates="equipment")

    @property
    def process_req_range_start(self) -> str | None:
        return parse_process_req_range(self.process_req_range)[0]

    @process_req_range_start.setter
    def process_req_range_start(self, value: str | None) -> None:
        self.process_req_range = format_process_req_range(
            value, self.process_req_range_end
        )

    @property
    def process_req_range_end(self) -> str | None:
        return parse_process_req_range(self.process_req_range)[1]

    @process_req_range_end.setter
    def process_req_range_end(self, value: str | None) -> None:
        self.process_req_range = format_process_req_range(
            self.process_req_range_start, value
        )
