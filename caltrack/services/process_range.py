"""
Rango de requerimiento de proceso de un equipo.

Se guarda en una sola columna con el formato "inicio - fin"; estas
funciones lo separan y lo vuelven a armar.
"""

SEPARATOR = " - "


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


def parse_process_req_range(value: str | None) -> tuple[str | None, str | None]:
    """
    "10 - 50" -> ("10", "50")
    "10"      -> ("10", None)   (sin separador todo es el inicio)
    ""/None   -> (None, None)
    """
    if value is None or not value.strip():
        return None, None

    start, sep, end = value.partition(SEPARATOR)
    if not sep:
        return _clean(value), None
    return _clean(start), _clean(end)


def format_process_req_range(start: str | None, end: str | None) -> str | None:
    start, end = _clean(start), _clean(end)
    if start is None and end is None:
        return None
    if end is None:
        return start
    return f"{start or ''}{SEPARATOR}{end}"
