# caltrack/services/lifecycle.py
"""
Ciclo de calibración: check-in (entrada), check-out (salida) y edición
o confirmación de entradas abiertas.

Reglas principales:
- El departamento del usuario y el del payload deben coincidir con el de
  la ubicación.
- Un TrackIncoming solo se puede cerrar una vez.
- Cerrar un ciclo abre el siguiente en la misma transacción.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy.orm import Session, joinedload

from caltrack.core.errors import (
    AlreadyReleased,
    DuplicateSerial,
    NotAssigned,
    NotEditable,
    NotFound,
    OperationFailed,
    RequestNotConfirmed,
    TrackingError,
    ValidationFailed,
)
from caltrack.core.security import utcnow
from caltrack.models.equipment import Equipment
from caltrack.models.location import Location
from caltrack.models.track_incoming import TrackIncoming
from caltrack.models.track_outgoing import TrackOutgoing
from caltrack.models.user import User
from caltrack.schemas.tracking import CheckInInput, CheckOutInput, IncomingEditInput
from caltrack.services.cycle_time import compute_cycle_time
from caltrack.services.recall import generate_recall_number, recall_number_exists
from caltrack.services.validators import (
    active_user,
    ensure_handover_pin,
    ensure_payload_department,
    ensure_same_department,
    validate_check_in,
    validate_check_out,
)

logger = logging.getLogger(__name__)


@dataclass
class CheckInOutcome:
    equipment: Equipment
    incoming: TrackIncoming
    is_new_registration: bool


@dataclass
class CheckOutOutcome:
    closed: TrackIncoming
    outgoing: TrackOutgoing
    next_incoming: TrackIncoming

    @property
    def cycle_time_hours(self) -> int:
        return self.outgoing.cycle_time


def get_incoming(db: Session, incoming_id: int, include_archived: bool = False) -> TrackIncoming:
    query = (
        db.query(TrackIncoming)
        .options(
            joinedload(TrackIncoming.equipment),
            joinedload(TrackIncoming.location),
            joinedload(TrackIncoming.outgoing),
        )
        .filter(TrackIncoming.id == incoming_id)
    )
    if not include_archived:
        query = query.filter(TrackIncoming.deleted_at.is_(None))

    record = query.first()
    if record is None:
        raise NotFound("Registro de entrada no encontrado.")
    return record


# ======================== CHECK-IN ========================
def check_in(
    db: Session,
    user: User,
    data: CheckInInput,
    now: datetime | None = None,
) -> CheckInOutcome:
    """
    Recibe un equipo para calibración.
    Si es registro nuevo, crea el Equipment en la misma transacción.
    """
    now = now or utcnow()

    context = validate_check_in(db, data)
    ensure_same_department(user, context.location, "recibir")
    ensure_payload_department(data.department_id, context.location)
    ensure_handover_pin(user, context.received_by or user, data.confirmation_pin)

    try:
        equipment = context.equipment
        if data.is_new_registration:
            equipment = Equipment(
                serial_number=data.serial_number.strip(),
                description=data.description,
                manufacturer=data.manufacturer.strip(),
                model=data.model,
                owner_id=user.id,
                plant_id=data.plant_id,
                department_id=context.location.department_id,
                location_id=context.location.id,
                next_calibration_due=data.cal_due_date,
                process_req_range_start=data.process_req_range_start,
                process_req_range_end=data.process_req_range_end,
            )
            db.add(equipment)
            db.flush()

        equipment.status = "in_calibration"

        incoming = TrackIncoming(
            recall_number=data.recall_number or generate_recall_number(db),
            recall=bool(data.recall_number),
            equipment_id=equipment.id,
            technician_id=data.technician_id,
            location_id=context.location.id,
            received_by_id=data.received_by_id or user.id,
            employee_id_in=user.id,
            description=data.description,
            serial_number=equipment.serial_number,
            model=equipment.model,
            manufacturer=equipment.manufacturer,
            cal_date=data.cal_date,
            cal_due_date=data.cal_due_date,
            date_in=now,
            status="received",
            notes=data.notes,
        )
        db.add(incoming)
        db.commit()
    except TrackingError:
        db.rollback()
        raise
    except Exception as exc:
        db.rollback()
        logger.exception("Falló el check-in del equipo (usuario %s)", user.id)
        raise OperationFailed("No se pudo procesar la entrada del equipo.") from exc

    db.refresh(incoming)
    logger.info(
        "Check-in %s: equipo %s recibido por usuario %s",
        incoming.recall_number,
        equipment.id,
        user.id,
    )
    return CheckInOutcome(
        equipment=equipment,
        incoming=incoming,
        is_new_registration=data.is_new_registration,
    )


# ======================== CHECK-OUT ========================
def check_out(
    db: Session,
    user: User,
    incoming_id: int,
    data: CheckOutInput,
    now: datetime | None = None,
) -> CheckOutOutcome:
    """
    Libera un equipo: crea el TrackOutgoing, calcula el cycle time y abre
    el TrackIncoming del siguiente ciclo.
    """
    now = now or utcnow()
    validate_check_out(data, now.date())

    # FOR UPDATE: dos check-out simultáneos no pueden cerrar el mismo registro
    incoming = (
        db.query(TrackIncoming)
        .filter(
            TrackIncoming.id == incoming_id,
            TrackIncoming.deleted_at.is_(None),
        )
        .with_for_update()
        .first()
    )
    if incoming is None:
        db.rollback()
        raise NotFound("Registro de entrada no encontrado.")

    try:
        ensure_same_department(user, incoming.location, "liberar")
        if incoming.is_released:
            raise AlreadyReleased()
        if incoming.status == "for_confirmation":
            raise RequestNotConfirmed()
        if data.recall_number and recall_number_exists(db, data.recall_number):
            raise ValidationFailed({"recall_number": "El recall number ya está en uso."})
    except TrackingError as exc:
        db.rollback()
        logger.warning("Check-out rechazado para entrada %s: %s", incoming_id, exc.code)
        raise

    try:
        cycle_time = compute_cycle_time(incoming.date_in, now)

        outgoing = TrackOutgoing(
            incoming_id=incoming.id,
            cal_date=now.date(),
            cal_due_date=data.next_cal_due_date,
            date_out=now,
            employee_id_out=user.id,
            released_by_id=user.id,
            cycle_time=cycle_time,
            ct_reqd=data.ct_reqd,
            commit_etc=data.commit_etc,
            actual_etc=data.actual_etc,
            overdue=now.date() > incoming.cal_due_date,
            status="for_pickup",
            notes=data.notes,
        )
        db.add(outgoing)

        incoming.status = "completed"
        incoming.description = data.description
        incoming.recall = bool(data.recall_number)

        # El equipo queda recibido de inmediato para su siguiente ciclo
        next_incoming = TrackIncoming(
            recall_number=data.recall_number or generate_recall_number(db),
            recall=False,
            equipment_id=incoming.equipment_id,
            technician_id=incoming.technician_id,
            location_id=incoming.location_id,
            received_by_id=user.id,
            employee_id_in=user.id,
            description=data.description,
            serial_number=incoming.serial_number,
            model=incoming.model,
            manufacturer=incoming.manufacturer,
            cal_date=now.date(),
            cal_due_date=data.next_cal_due_date,
            date_in=now,
            status="pending_calibration",
        )
        db.add(next_incoming)

        equipment = incoming.equipment
        if equipment is not None:
            equipment.last_calibration_date = now.date()
            equipment.next_calibration_due = data.next_cal_due_date
            equipment.status = "active"

        db.commit()
    except TrackingError:
        db.rollback()
        raise
    except Exception as exc:
        db.rollback()
        logger.exception("Falló el check-out de la entrada %s", incoming_id)
        raise OperationFailed("No se pudo procesar la salida del equipo.") from exc

    db.refresh(incoming)
    db.refresh(next_incoming)
    logger.info(
        "Check-out %s: cycle time %dh, siguiente ciclo %s",
        incoming.recall_number,
        cycle_time,
        next_incoming.recall_number,
    )
    return CheckOutOutcome(closed=incoming, outgoing=incoming.outgoing, next_incoming=next_incoming)


# ======================== EDITAR / CONFIRMAR ========================
def _commit_changes(db: Session, action: str, incoming_id: int) -> None:
    try:
        db.commit()
    except Exception as exc:
        db.rollback()
        logger.exception("Falló %s de la entrada %s", action, incoming_id)
        raise OperationFailed(f"No se pudo completar {action}.") from exc


def _ensure_serial_available(db: Session, serial: str, equipment_id: int | None) -> None:
    query = db.query(Equipment.id).filter(Equipment.serial_number == serial)
    if equipment_id is not None:
        query = query.filter(Equipment.id != equipment_id)
    if query.first() is not None:
        raise DuplicateSerial(serial)


def edit_incoming(
    db: Session,
    user: User,
    incoming_id: int,
    data: IncomingEditInput,
) -> TrackIncoming:
    """
    Corrige una entrada pending_calibration.
    Con confirm=true también acepta una solicitud for_confirmation
    y la deja en pending_calibration.
    """
    record = get_incoming(db, incoming_id)
    confirming = data.confirm and record.status == "for_confirmation"
    if record.status != "pending_calibration" and not confirming:
        raise NotEditable(
            "Solo se pueden editar entradas pendientes de calibración "
            "o solicitudes por confirmar."
        )

    changes = data.model_dump(exclude_unset=True, exclude={"confirm"})

    errors: dict[str, str] = {}
    location = record.location
    if "location_id" in changes:
        location = db.get(Location, changes["location_id"])
        if location is None or location.is_archived:
            errors["location_id"] = "La ubicación seleccionada no existe."
    if "technician_id" in changes and active_user(db, changes["technician_id"]) is None:
        errors["technician_id"] = "El técnico seleccionado no existe."
    received_by_id = changes.get("received_by_id")
    if received_by_id is not None and active_user(db, received_by_id) is None:
        errors["received_by_id"] = "El empleado que recibe no existe."

    cal_date = changes.get("cal_date", record.cal_date)
    cal_due_date = changes.get("cal_due_date", record.cal_due_date)
    if cal_date is not None and cal_due_date < cal_date:
        errors["cal_due_date"] = "cal_due_date debe ser igual o posterior a cal_date."
    if errors:
        raise ValidationFailed(errors)

    ensure_same_department(user, location, "editar")

    equipment = record.equipment
    serial = changes.get("serial_number")
    if serial:
        changes["serial_number"] = serial = serial.strip()
        _ensure_serial_available(db, serial, equipment.id if equipment else None)

    # El técnico que edita queda como responsable y receptor
    if user.rol == "TECHNICIAN":
        changes["technician_id"] = user.id
        changes["received_by_id"] = user.id

    for field, value in changes.items():
        setattr(record, field, value)

    if confirming:
        record.status = "pending_calibration"
        if record.received_by_id is None:
            record.received_by_id = user.id

    if equipment is not None:
        for field in ("serial_number", "description", "model", "manufacturer"):
            if changes.get(field) is not None:
                setattr(equipment, field, changes[field])
        if "cal_due_date" in changes:
            equipment.next_calibration_due = changes["cal_due_date"]
        if "location_id" in changes:
            equipment.location_id = location.id
            equipment.department_id = location.department_id

    _commit_changes(db, "la edición", incoming_id)
    db.refresh(record)
    logger.info(
        "Entrada %s editada por usuario %s%s",
        incoming_id,
        user.id,
        " (solicitud confirmada)" if confirming else "",
    )
    return record


def confirm_request(
    db: Session,
    user: User,
    incoming_id: int,
    received_by_id: int | None = None,
) -> TrackIncoming:
    """
    El técnico asignado (o un ADMIN) acepta la solicitud de calibración
    de un empleado: for_confirmation -> pending_calibration.
    """
    if user.rol == "EMPLOYEE":
        raise NotAssigned("Los empleados no pueden confirmar solicitudes.")

    record = get_incoming(db, incoming_id)
    if user.rol == "TECHNICIAN" and user.id not in (record.technician_id, record.received_by_id):
        raise NotAssigned("No estás asignado a esta solicitud.")

    if record.status != "for_confirmation":
        raise NotEditable("La solicitud ya fue confirmada o no admite confirmación.")

    if received_by_id is not None and active_user(db, received_by_id) is None:
        raise ValidationFailed({"received_by_id": "El empleado que recibe no existe."})

    record.status = "pending_calibration"
    record.received_by_id = received_by_id or user.id
    _commit_changes(db, "la confirmación", incoming_id)
    db.refresh(record)

    logger.info("Solicitud %s confirmada por usuario %s", record.recall_number, user.id)
    return record


# ======================== CONSULTAS ========================
def _open_incoming_query(db: Session):
    return (
        db.query(TrackIncoming)
        .outerjoin(TrackOutgoing, TrackOutgoing.incoming_id == TrackIncoming.id)
        .options(joinedload(TrackIncoming.equipment), joinedload(TrackIncoming.location))
        .filter(TrackOutgoing.id.is_(None))
        .filter(TrackIncoming.deleted_at.is_(None))
    )


def list_overdue(db: Session, now: datetime | None = None) -> list[TrackIncoming]:
    """
    Ciclos abiertos cuya fecha de calibración ya venció.
    """
    today = (now or utcnow()).date()
    return (
        _open_incoming_query(db)
        .filter(TrackIncoming.cal_due_date < today)
        .order_by(TrackIncoming.cal_due_date.asc(), TrackIncoming.id.asc())
        .all()
    )


def list_due_soon(db: Session, days: int, now: datetime | None = None) -> list[TrackIncoming]:
    """
    Ciclos abiertos que vencen entre hoy y hoy + days.
    """
    today = (now or utcnow()).date()
    return (
        _open_incoming_query(db)
        .filter(TrackIncoming.cal_due_date >= today)
        .filter(TrackIncoming.cal_due_date <= today + timedelta(days=days))
        .order_by(TrackIncoming.cal_due_date.asc(), TrackIncoming.id.asc())
        .all()
    )


# ======================== ARCHIVAR / RESTAURAR ========================
def archive_incoming(db: Session, incoming_id: int, now: datetime | None = None) -> TrackIncoming:
    record = get_incoming(db, incoming_id)
    record.archive(now or utcnow())
    if record.outgoing is not None:
        record.outgoing.archive(record.deleted_at)
    db.commit()
    logger.info("Entrada %s archivada", incoming_id)
    return record


def restore_incoming(db: Session, incoming_id: int) -> TrackIncoming:
    record = get_incoming(db, incoming_id, include_archived=True)
    record.restore()
    if record.outgoing is not None:
        record.outgoing.restore()
    db.commit()
    db.refresh(record)
    logger.info("Entrada %s restaurada", incoming_id)
    return record
