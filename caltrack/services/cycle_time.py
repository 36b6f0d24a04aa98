from datetime import datetime

SECONDS_PER_HOUR = 3600


def compute_cycle_time(start: datetime, end: datetime) -> int:
    """
    Horas completas entre start y end (end - start), truncando hacia cero.
    No redondea por días: 47h59m -> 47.
    """
    seconds = (end - start).total_seconds()
    return int(seconds / SECONDS_PER_HOUR)
