from sqlalchemy import Column, Integer, String, Boolean, Date, DateTime, ForeignKey, Text
from sqlalchemy.orm import relationship
from caltrack.db.base import Base, SoftDeleteMixin


class TrackOutgoing(SoftDeleteMixin, Base):
    """
    Cierre (liberación) de un TrackIncoming. Se crea una sola vez por ciclo.
    """
    __tablename__ = "track_outgoing"

    id = Column(Integer, primary_key=True, index=True)
    incoming_id = Column(
        Integer,
        ForeignKey("track_incoming.id"),
        unique=True,
        nullable=False,
    )

    cal_date = Column(Date, nullable=False)
    cal_due_date = Column(Date, nullable=False)
    date_out = Column(DateTime, nullable=False, index=True)

    employee_id_out = Column(Integer, ForeignKey("users.id"), nullable=True)
    released_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)

    # horas completas entre date_in y date_out, se guarda al cerrar
    cycle_time = Column(Integer, nullable=False, default=0)
    ct_reqd = Column(Integer, nullable=True)
    commit_etc = Column(Date, nullable=True)
    actual_etc = Column(Date, nullable=True)
    overdue = Column(Boolean, nullable=False, default=False)

    # for_pickup -> completed (al confirmar la recogida)
    status = Column(String(20), nullable=False, default="for_pickup")
    notes = Column(Text, nullable=True)

    incoming = relationship("TrackIncoming", back_populates="outgoing")
    employee_out = relationship("User", foreign_keys=[employee_id_out])
    released_by = relationship("User", foreign_keys=[released_by_id])

    @property
    def recall_number(self) -> str | None:
        return self.incoming.recall_number if self.incoming is not None else None
