from sqlalchemy import Column, Integer, String
from caltrack.db.base import Base, SoftDeleteMixin

class Plant(SoftDeleteMixin, Base):
    __tablename__ = "plants"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False, unique=True)
    address = Column(String(255), nullable=True)
