# caltrack/services/reports.py
"""
Reporte de seguimiento: una fila por TrackIncoming con su equipo, técnico,
ubicación, quien recibió y (si existe) la salida.
La tabla del front y las exportaciones usan exactamente la misma consulta.
"""
from datetime import datetime, time

from sqlalchemy import or_
from sqlalchemy.orm import Query, Session, joinedload

from caltrack.models.equipment import Equipment
from caltrack.models.location import Location
from caltrack.models.track_incoming import INCOMING_STATUSES, TrackIncoming
from caltrack.models.track_outgoing import TrackOutgoing
from caltrack.models.user import User
from caltrack.schemas.report import (
    FilterOption,
    FilterOptions,
    LocationRef,
    OutgoingRef,
    PersonRef,
    ReportFilters,
    ReportRow,
)

END_OF_DAY = time(23, 59, 59)


def status_label(status: str | None) -> str:
    """
    "pending_calibration" -> "Pending Calibration"
    """
    if not status:
        return ""
    return status.replace("_", " ").title()


LIKE_ESCAPE = "\\"


def _like(value: str) -> str:
    """
    Búsqueda "contiene": %, _ y \\ del usuario se buscan literalmente.
    """
    value = (
        value.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )
    return f"%{value}%"


def build_report_query(db: Session, filters: ReportFilters) -> Query:
    query = (
        db.query(TrackIncoming)
        .options(
            joinedload(TrackIncoming.equipment),
            joinedload(TrackIncoming.technician),
            joinedload(TrackIncoming.location),
            joinedload(TrackIncoming.employee_in),
            joinedload(TrackIncoming.outgoing).joinedload(TrackOutgoing.employee_out),
        )
        .filter(TrackIncoming.deleted_at.is_(None))
    )

    if filters.search:
        pattern = _like(filters.search)
        query = query.filter(
            or_(
                TrackIncoming.recall_number.ilike(pattern, escape=LIKE_ESCAPE),
                TrackIncoming.description.ilike(pattern, escape=LIKE_ESCAPE),
                TrackIncoming.equipment.has(
                    or_(
                        Equipment.serial_number.ilike(pattern, escape=LIKE_ESCAPE),
                        Equipment.description.ilike(pattern, escape=LIKE_ESCAPE),
                        Equipment.model.ilike(pattern, escape=LIKE_ESCAPE),
                        Equipment.manufacturer.ilike(pattern, escape=LIKE_ESCAPE),
                    )
                ),
            )
        )

    if filters.equipment_name:
        query = query.filter(
            TrackIncoming.equipment.has(
                Equipment.description.ilike(_like(filters.equipment_name), escape=LIKE_ESCAPE)
            )
        )

    if filters.recall_number:
        query = query.filter(
            TrackIncoming.recall_number.ilike(_like(filters.recall_number), escape=LIKE_ESCAPE)
        )

    if filters.status:
        query = query.filter(TrackIncoming.status == filters.status)

    if filters.technician_id is not None:
        query = query.filter(TrackIncoming.technician_id == filters.technician_id)

    if filters.location_id is not None:
        query = query.filter(TrackIncoming.location_id == filters.location_id)

    if filters.date_from:
        query = query.filter(
            TrackIncoming.date_in >= datetime.combine(filters.date_from, time.min)
        )

    # date_to incluye todo el día
    if filters.date_to:
        query = query.filter(
            TrackIncoming.date_in <= datetime.combine(filters.date_to, END_OF_DAY)
        )

    column = getattr(TrackIncoming, filters.sort_by)
    tie_breaker = TrackIncoming.id
    if filters.sort_direction == "asc":
        return query.order_by(column.asc(), tie_breaker.asc())
    return query.order_by(column.desc(), tie_breaker.desc())


def _person(user: User | None) -> PersonRef | None:
    if user is None:
        return None
    return PersonRef(id=user.id, employee_id=user.employee_id, name=user.full_name)


def to_report_row(record: TrackIncoming) -> ReportRow:
    """
    Si no hay Equipment enlazado se usan los datos copiados en el registro.
    """
    equipment = record.equipment
    outgoing = record.outgoing

    return ReportRow(
        id=record.id,
        recall_number=record.recall_number,
        equipment_description=equipment.description if equipment else record.description,
        equipment_serial=equipment.serial_number if equipment else record.serial_number,
        equipment_model=equipment.model if equipment else record.model,
        equipment_manufacturer=equipment.manufacturer if equipment else record.manufacturer,
        status=record.status,
        status_label=status_label(record.status),
        date_in=record.date_in,
        due_date=record.cal_due_date,
        technician=_person(record.technician),
        location=(
            LocationRef(id=record.location.id, name=record.location.name)
            if record.location
            else None
        ),
        employee_in=_person(record.employee_in),
        outgoing=(
            OutgoingRef(
                id=outgoing.id,
                date_out=outgoing.date_out,
                cal_date=outgoing.cal_date,
                cal_due_date=outgoing.cal_due_date,
                cycle_time=outgoing.cycle_time,
                status=outgoing.status,
                employee_out=_person(outgoing.employee_out),
            )
            if outgoing is not None and outgoing.deleted_at is None
            else None
        ),
        notes=record.notes,
    )


def generate_report(db: Session, filters: ReportFilters | None = None) -> list[ReportRow]:
    """
    Colección completa (sin paginar), ya filtrada y ordenada.
    """
    query = build_report_query(db, filters or ReportFilters())
    return [to_report_row(record) for record in query.all()]


def paginate_report(
    db: Session,
    filters: ReportFilters,
    page: int,
    per_page: int,
) -> tuple[list[ReportRow], int]:
    query = build_report_query(db, filters)
    total = query.enable_eagerloads(False).order_by(None).count()
    records = query.offset((page - 1) * per_page).limit(per_page).all()
    return [to_report_row(record) for record in records], total


def filter_options(db: Session) -> FilterOptions:
    """
    Opciones para los combos de filtros: solo técnicos y ubicaciones que
    aparecen en algún registro.
    """
    technicians = (
        db.query(User)
        .join(TrackIncoming, TrackIncoming.technician_id == User.id)
        .distinct()
        .order_by(User.first_name, User.last_name)
        .all()
    )
    locations = (
        db.query(Location)
        .join(TrackIncoming, TrackIncoming.location_id == Location.id)
        .distinct()
        .order_by(Location.name)
        .all()
    )
    return FilterOptions(
        technicians=[FilterOption(value=u.id, label=u.full_name) for u in technicians],
        locations=[FilterOption(value=loc.id, label=loc.name) for loc in locations],
        statuses=[FilterOption(value=s, label=status_label(s)) for s in INCOMING_STATUSES],
    )
