from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import relationship

from caltrack.core.security import utcnow
from caltrack.db.base import Base

class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(String(50), unique=True, index=True, nullable=False)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    pin_hash = Column(String(255), nullable=True)
    rol = Column(String(20), nullable=False, default="EMPLOYEE")
    department_id = Column(Integer, ForeignKey("departments.id"), nullable=True)
    plant_id = Column(Integer, ForeignKey("plants.id"), nullable=True)
    activo = Column(Boolean, default=True)
    fecha_registro = Column(DateTime, default=utcnow)

    department = relationship("Department")
    plant = relationship("Plant")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"
