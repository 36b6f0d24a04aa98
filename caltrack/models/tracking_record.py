from sqlalchemy import Column, Integer, String, Boolean, Date, DateTime, ForeignKey, Text
from sqlalchemy.orm import relationship
from caltrack.db.base import Base


class TrackingRecord(Base):
    """
    Modelo antiguo de una sola tabla (entrada y salida en la misma fila).
    Solo lo usa el flujo de autoservicio del empleado.
    """
    __tablename__ = "tracking_records"

    id = Column(Integer, primary_key=True, index=True)
    recall_number = Column(String(30), unique=True, index=True, nullable=True)
    recall = Column(Boolean, nullable=False, default=False)
    description = Column(Text, nullable=True)

    equipment_id = Column(Integer, ForeignKey("equipment.id"), nullable=False)
    technician_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    location_id = Column(Integer, ForeignKey("locations.id"), nullable=True)

    due_date = Column(Date, nullable=True)
    date_in = Column(DateTime, nullable=True)
    employee_id_in = Column(Integer, ForeignKey("users.id"), nullable=True)
    cal_date = Column(Date, nullable=True)
    cal_due_date = Column(Date, nullable=True)
    date_out = Column(DateTime, nullable=True)
    employee_id_out = Column(Integer, ForeignKey("users.id"), nullable=True)
    cycle_time = Column(Integer, nullable=False, default=0)

    equipment = relationship("Equipment")
    technician = relationship("User", foreign_keys=[technician_id])
    location = relationship("Location")
    employee_in = relationship("User", foreign_keys=[employee_id_in])
    employee_out = relationship("User", foreign_keys=[employee_id_out])

    @property
    def is_open(self) -> bool:
        # salió y todavía no regresa
        return self.date_out is not None and self.date_in is None
