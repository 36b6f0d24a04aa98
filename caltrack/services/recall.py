"""
Generación de recall numbers únicos.

Se generan al azar y se vuelve a tirar mientras el valor ya exista.
Hay un límite de intentos para no quedarse en un ciclo infinito.
"""
import logging
import secrets
import string
from datetime import datetime

from sqlalchemy.orm import Session

from caltrack.core.config import settings
from caltrack.core.errors import RecallNumberExhausted
from caltrack.models.track_incoming import TrackIncoming
from caltrack.models.tracking_record import TrackingRecord

logger = logging.getLogger(__name__)

RECALL_ALPHABET = string.ascii_uppercase + string.digits
RECALL_MIN_LENGTH = 7
RECALL_MAX_LENGTH = 10


def random_recall_number() -> str:
    length = RECALL_MIN_LENGTH + secrets.randbelow(RECALL_MAX_LENGTH - RECALL_MIN_LENGTH + 1)
    return "".join(secrets.choice(RECALL_ALPHABET) for _ in range(length))


def random_legacy_recall_number(now: datetime) -> str:
    return f"RCL-{now:%y%m%d%H%M%S}-{10000 + secrets.randbelow(90000)}"


def recall_number_exists(db: Session, value: str) -> bool:
    return (
        db.query(TrackIncoming.id)
        .filter(TrackIncoming.recall_number == value)
        .first()
        is not None
    )


def _unique(candidates, exists, max_attempts: int) -> str:
    for attempt in range(1, max_attempts + 1):
        value = candidates()
        if not exists(value):
            return value
        logger.debug("Recall number %s repetido (intento %d)", value, attempt)

    logger.error("No se pudo generar un recall number en %d intentos", max_attempts)
    raise RecallNumberExhausted(
        f"No se pudo generar un recall number único en {max_attempts} intentos."
    )


def generate_recall_number(db: Session, max_attempts: int | None = None) -> str:
    """
    Recall number de 7 a 10 caracteres [A-Z0-9], único en track_incoming.
    """
    return _unique(
        random_recall_number,
        lambda value: recall_number_exists(db, value),
        max_attempts or settings.RECALL_MAX_ATTEMPTS,
    )


def generate_legacy_recall_number(
    db: Session,
    now: datetime,
    max_attempts: int | None = None,
) -> str:
    """
    Formato antiguo RCL-yymmddHHMMSS-NNNNN, único en tracking_records.
    """
    def exists(value: str) -> bool:
        return (
            db.query(TrackingRecord.id)
            .filter(TrackingRecord.recall_number == value)
            .first()
            is not None
        )

    return _unique(
        lambda: random_legacy_recall_number(now),
        exists,
        max_attempts or settings.RECALL_MAX_ATTEMPTS,
    )
