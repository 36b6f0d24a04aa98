"""
Autoservicio del empleado (modelo antiguo de una sola tabla).

- release:  el empleado saca un equipo -> fila nueva con date_out.
- check_in: el empleado lo regresa -> se llena date_in en la fila abierta.
Las dos operaciones piden el PIN antes de tocar la base de datos.

Además el empleado puede pedir la calibración de un equipo: la solicitud
queda en for_confirmation hasta que el técnico la acepta.
"""
import logging
from datetime import datetime

from sqlalchemy.orm import Session

from caltrack.core.errors import (
    AlreadyReleased,
    DepartmentMismatch,
    DuplicateSerial,
    NoOpenRecord,
    NotEditable,
    NotFound,
    NotReadyForPickup,
    OperationFailed,
    TrackingError,
    ValidationFailed,
)
from caltrack.core.security import utcnow, verify_pin
from caltrack.models.equipment import Equipment
from caltrack.models.location import Location
from caltrack.models.track_incoming import TrackIncoming
from caltrack.models.track_outgoing import TrackOutgoing
from caltrack.models.tracking_record import TrackingRecord
from caltrack.models.user import User
from caltrack.schemas.employee import (
    CalibrationRequestInput,
    CalibrationRequestUpdate,
    ConfirmPinInput,
    EmployeeCheckInInput,
    EmployeeReleaseInput,
    PickupInput,
)
from caltrack.services.cycle_time import compute_cycle_time
from caltrack.services.recall import generate_legacy_recall_number, generate_recall_number
from caltrack.services.validators import active_user, ensure_handover_pin, ensure_same_department

logger = logging.getLogger(__name__)


def ensure_pin(user: User, pin: str) -> None:
    if not verify_pin(user, pin):
        logger.warning("PIN inválido para el empleado %s", user.employee_id)
        raise ValidationFailed({"pin": "PIN inválido."})


def _get_equipment(db: Session, equipment_id: int) -> Equipment:
    equipment = db.get(Equipment, equipment_id)
    if equipment is None or equipment.is_archived:
        raise NotFound("Equipo no encontrado.")
    return equipment


def _get_location(db: Session, location_id: int) -> Location:
    location = db.get(Location, location_id)
    if location is None or location.is_archived:
        raise ValidationFailed({"location_id": "La ubicación seleccionada no existe."})
    return location


def find_open_record(db: Session, equipment_id: int) -> TrackingRecord | None:
    return (
        db.query(TrackingRecord)
        .filter(TrackingRecord.equipment_id == equipment_id)
        .filter(TrackingRecord.date_out.isnot(None))
        .filter(TrackingRecord.date_in.is_(None))
        .order_by(TrackingRecord.date_out.desc())
        .first()
    )


def _commit(db: Session, action: str) -> None:
    try:
        db.commit()
    except Exception as exc:
        db.rollback()
        logger.exception("Falló %s", action)
        raise OperationFailed(f"No se pudo completar {action}.") from exc


# ======================== SALIDA (RELEASE) ========================
def employee_release(
    db: Session,
    user: User,
    data: EmployeeReleaseInput,
    now: datetime | None = None,
) -> TrackingRecord:
    now = now or utcnow()
    ensure_pin(user, data.pin)

    equipment = _get_equipment(db, data.equipment_id)
    location = _get_location(db, data.location_id)

    # Solo una salida abierta por equipo
    if find_open_record(db, equipment.id) is not None:
        raise AlreadyReleased("Este equipo ya está fuera y no ha sido regresado.")

    record = TrackingRecord(
        recall_number=generate_legacy_recall_number(db, now),
        recall=False,
        description=data.description or equipment.description,
        equipment_id=equipment.id,
        location_id=location.id,
        due_date=data.due_date,
        cal_due_date=data.due_date,
        date_out=now,
        employee_id_out=user.id,
        cycle_time=0,
    )
    db.add(record)
    _commit(db, "la salida del equipo")
    db.refresh(record)

    logger.info("Empleado %s sacó el equipo %s (%s)", user.employee_id, equipment.id, record.recall_number)
    return record


# ======================== ENTRADA (CHECK-IN) ========================
def employee_check_in(
    db: Session,
    user: User,
    data: EmployeeCheckInInput,
    now: datetime | None = None,
) -> TrackingRecord:
    now = now or utcnow()
    ensure_pin(user, data.pin)

    equipment = _get_equipment(db, data.equipment_id)
    if equipment.owner_id != user.id:
        raise ValidationFailed({"equipment_id": "El equipo no está asignado a este empleado."})
    location = _get_location(db, data.location_id)

    record = find_open_record(db, equipment.id)
    if record is None:
        raise NoOpenRecord("No hay una salida abierta para este equipo.")

    record.date_in = now
    record.employee_id_in = user.id
    record.location_id = location.id
    record.cycle_time = compute_cycle_time(record.date_out, now)
    _commit(db, "la entrada del equipo")
    db.refresh(record)

    logger.info(
        "Empleado %s regresó el equipo %s tras %dh",
        user.employee_id,
        equipment.id,
        record.cycle_time,
    )
    return record


# ======================== CONFIRMAR RECOGIDA ========================
def confirm_pickup(db: Session, outgoing_id: int, data: PickupInput) -> TrackOutgoing:
    """
    Un empleado del mismo departamento que entregó el equipo lo recoge.
    for_pickup -> completed
    """
    outgoing = db.get(TrackOutgoing, outgoing_id)
    if outgoing is None or outgoing.is_archived:
        raise NotFound("Registro de salida no encontrado.")

    employee = (
        db.query(User)
        .filter(User.employee_id == data.employee_id, User.activo.is_(True))
        .first()
    )
    if employee is None or not verify_pin(employee, data.pin):
        raise ValidationFailed({"pin": "Número de empleado o PIN inválido."})

    employee_in = outgoing.incoming.employee_in if outgoing.incoming else None
    if employee_in is not None:
        if employee.department_id is None or employee.department_id != employee_in.department_id:
            raise DepartmentMismatch(
                "Solo empleados del mismo departamento pueden recoger el equipo."
            )

    if outgoing.status != "for_pickup":
        raise NotReadyForPickup("Este equipo no está listo para recogerse.")

    outgoing.status = "completed"
    outgoing.employee_id_out = employee.id
    _commit(db, "la confirmación de recogida")

    db.refresh(outgoing)
    logger.info("Salida %s recogida por %s", outgoing_id, employee.employee_id)
    return outgoing


# ======================== SOLICITUD DE CALIBRACIÓN ========================
def _request_references(
    db: Session,
    technician_id: int | None,
    location_id: int | None,
) -> Location | None:
    errors: dict[str, str] = {}
    location = None
    if location_id is not None:
        location = db.get(Location, location_id)
        if location is None or location.is_archived:
            errors["location_id"] = "La ubicación seleccionada no existe."
    if technician_id is not None and active_user(db, technician_id) is None:
        errors["technician_id"] = "El técnico seleccionado no existe."
    if errors:
        raise ValidationFailed(errors)
    return location


def submit_calibration_request(
    db: Session,
    user: User,
    data: CalibrationRequestInput,
    now: datetime | None = None,
) -> TrackIncoming:
    """
    El empleado pide calibrar un equipo. Si el equipo no existe se registra
    a su nombre en la misma transacción.
    """
    now = now or utcnow()
    location = _request_references(db, data.technician_id, data.location_id)
    ensure_same_department(user, location, "solicitar la calibración de")

    equipment = None
    if data.equipment_id is not None:
        equipment = db.get(Equipment, data.equipment_id)
        if equipment is None or equipment.is_archived:
            raise ValidationFailed({"equipment_id": "El equipo seleccionado no existe."})
        if equipment.owner_id != user.id:
            raise ValidationFailed({"equipment_id": "El equipo no está asignado a este empleado."})
    else:
        serial = data.serial_number.strip()
        if db.query(Equipment.id).filter(Equipment.serial_number == serial).first() is not None:
            raise DuplicateSerial(serial)

    try:
        if equipment is None:
            equipment = Equipment(
                serial_number=data.serial_number.strip(),
                description=data.description,
                model=data.model,
                manufacturer=data.manufacturer,
                owner_id=user.id,
                plant_id=user.plant_id,
                department_id=location.department_id,
                location_id=location.id,
                status="pending_calibration",
                next_calibration_due=data.cal_due_date,
            )
            db.add(equipment)
            db.flush()

        request = TrackIncoming(
            recall_number=generate_recall_number(db),
            recall=False,
            equipment_id=equipment.id,
            technician_id=data.technician_id,
            location_id=location.id,
            employee_id_in=user.id,
            description=data.description,
            serial_number=equipment.serial_number,
            model=data.model or equipment.model,
            manufacturer=data.manufacturer or equipment.manufacturer,
            cal_due_date=data.cal_due_date,
            date_in=now,
            status="for_confirmation",
            notes=data.notes,
        )
        db.add(request)
        db.commit()
    except TrackingError:
        db.rollback()
        raise
    except Exception as exc:
        db.rollback()
        logger.exception("Falló la solicitud de calibración del empleado %s", user.employee_id)
        raise OperationFailed("No se pudo registrar la solicitud de calibración.") from exc

    db.refresh(request)
    logger.info("Empleado %s solicitó calibración (%s)", user.employee_id, request.recall_number)
    return request


def update_calibration_request(
    db: Session,
    user: User,
    incoming_id: int,
    data: CalibrationRequestUpdate,
) -> TrackIncoming:
    """
    Solo el empleado que la creó puede cambiarla, y solo mientras siga
    en for_confirmation.
    """
    request = db.get(TrackIncoming, incoming_id)
    if request is None or request.is_archived or request.employee_id_in != user.id:
        raise NotFound("Solicitud no encontrada.")
    if request.status != "for_confirmation":
        raise NotEditable("La solicitud ya fue confirmada y no se puede modificar.")

    changes = data.model_dump(exclude_unset=True)
    location = _request_references(db, changes.get("technician_id"), changes.get("location_id"))
    if location is not None:
        ensure_same_department(user, location, "solicitar la calibración de")

    for field, value in changes.items():
        setattr(request, field, value)

    equipment = request.equipment
    if equipment is not None:
        for field in ("description", "model", "manufacturer"):
            if changes.get(field) is not None:
                setattr(equipment, field, changes[field])
        if "cal_due_date" in changes:
            equipment.next_calibration_due = changes["cal_due_date"]

    _commit(db, "la edición de la solicitud")
    db.refresh(request)
    logger.info("Solicitud %s editada por %s", request.recall_number, user.employee_id)
    return request


def pending_requests(db: Session, user: User) -> list[TrackIncoming]:
    return (
        db.query(TrackIncoming)
        .filter(
            TrackIncoming.employee_id_in == user.id,
            TrackIncoming.status == "for_confirmation",
            TrackIncoming.deleted_at.is_(None),
        )
        .order_by(TrackIncoming.date_in.desc(), TrackIncoming.id.desc())
        .all()
    )


# ======================== CONFIRMAR CON PIN ========================
def confirm_employee_pin(
    db: Session,
    acting_user: User,
    data: ConfirmPinInput,
) -> tuple[User, bool]:
    """
    Verifica el PIN del empleado que entrega un equipo.
    ADMIN y TECHNICIAN no lo necesitan.
    """
    employee = (
        db.query(User)
        .filter(User.employee_id == data.employee_id, User.activo.is_(True))
        .first()
    )
    if employee is None:
        raise NotFound("Empleado no encontrado.")

    bypassed = ensure_handover_pin(acting_user, employee, data.pin, field="pin")
    logger.info(
        "PIN de %s confirmado por usuario %s%s",
        employee.employee_id,
        acting_user.id,
        " (sin PIN)" if bypassed else "",
    )
    return employee, bypassed
