from sqlalchemy import Column, DateTime
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class SoftDeleteMixin:
    """
    Los registros archivados no se borran: solo se marca deleted_at.
    """
    deleted_at = Column(DateTime, nullable=True, index=True)

    @property
    def is_archived(self) -> bool:
        return self.deleted_at is not None

    def archive(self, when) -> None:
        self.deleted_at = when

    def restore(self) -> None:
        self.deleted_at = None
