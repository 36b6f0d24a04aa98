from sqlalchemy import Column, Integer, String, ForeignKey
from sqlalchemy.orm import relationship
from caltrack.db.base import Base, SoftDeleteMixin

class Location(SoftDeleteMixin, Base):
    __tablename__ = "locations"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    # Toda ubicación pertenece a un departamento (se valida en check-in/check-out)
    department_id = Column(Integer, ForeignKey("departments.id"), nullable=False)

    department = relationship("Department")
