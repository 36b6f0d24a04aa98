from sqlalchemy import Column, Integer, String, Boolean, Date, DateTime, ForeignKey, Text
from sqlalchemy.orm import relationship, synonym
from caltrack.db.base import Base, SoftDeleteMixin

# for_confirmation: solicitud de un empleado, falta que el técnico la confirme
# received -> (calibración) -> completed ; pending_calibration = siguiente ciclo
INCOMING_STATUSES = ("for_confirmation", "received", "pending_calibration", "completed")


class TrackIncoming(SoftDeleteMixin, Base):
    """
    Un check-in: el equipo entra a calibración.
    Se cierra cuando existe su TrackOutgoing (relación 1:1).
    """
    __tablename__ = "track_incoming"

    id = Column(Integer, primary_key=True, index=True)
    # nullable para registros antiguos sin recall
    recall_number = Column(String(20), unique=True, index=True, nullable=True)
    recall = Column(Boolean, nullable=False, default=False)

    equipment_id = Column(Integer, ForeignKey("equipment.id"), nullable=True)
    technician_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    location_id = Column(Integer, ForeignKey("locations.id"), nullable=False)
    received_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    employee_id_in = Column(Integer, ForeignKey("users.id"), nullable=False)

    description = Column(String(255), nullable=False)
    # Copia a nivel registro por si no hay Equipment enlazado
    serial_number = Column(String(100), nullable=True)
    model = Column(String(100), nullable=True)
    manufacturer = Column(String(100), nullable=True)

    cal_date = Column(Date, nullable=True)
    cal_due_date = Column(Date, nullable=False)
    due_date = synonym("cal_due_date")
    date_in = Column(DateTime, nullable=False, index=True)

    status = Column(String(30), nullable=False, default="received")
    notes = Column(Text, nullable=True)

    equipment = relationship("Equipment", back_populates="incoming_records")
    technician = relationship("User", foreign_keys=[technician_id])
    location = relationship("Location")
    received_by = relationship("User", foreign_keys=[received_by_id])
    employee_in = relationship("User", foreign_keys=[employee_id_in])
    outgoing = relationship(
        "TrackOutgoing",
        back_populates="incoming",
        uselist=False,
    )

    @property
    def is_released(self) -> bool:
        return self.outgoing is not None and self.outgoing.date_out is not None

    @property
    def date_out(self):
        return self.outgoing.date_out if self.outgoing is not None else None

    @property
    def cycle_time(self) -> int:
        # 0 mientras el ciclo siga abierto
        return self.outgoing.cycle_time if self.outgoing is not None else 0
