from sqlalchemy import Column, Integer, String, ForeignKey
from sqlalchemy.orm import relationship
from caltrack.db.base import Base, SoftDeleteMixin

class Department(SoftDeleteMixin, Base):
    __tablename__ = "departments"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    plant_id = Column(Integer, ForeignKey("plants.id"), nullable=True)

    plant = relationship("Plant")
