"""
Validaciones previas al ciclo de calibración.

Todo lo que está aquí corre ANTES de abrir la transacción: si algo falla
no se escribe nada en la base de datos.
"""
from dataclasses import dataclass
from datetime import date

from sqlalchemy.orm import Session

from caltrack.core.errors import DepartmentMismatch, DuplicateSerial, ValidationFailed
from caltrack.core.security import verify_pin
from caltrack.models.equipment import Equipment
from caltrack.models.location import Location
from caltrack.models.user import User
from caltrack.schemas.tracking import CheckInInput, CheckOutInput
from caltrack.services.recall import recall_number_exists


@dataclass
class CheckInContext:
    location: Location
    equipment: Equipment | None
    received_by: User | None = None


# Roles que reciben equipos sin pedir el PIN del empleado
BYPASS_PIN_ROLES = ("ADMIN", "TECHNICIAN")


def active_user(db: Session, user_id: int) -> User | None:
    user = db.get(User, user_id)
    if user is None or not user.activo:
        return None
    return user


def validate_check_in(db: Session, data: CheckInInput) -> CheckInContext:
    errors: dict[str, str] = {}

    location = db.get(Location, data.location_id)
    if location is None or location.is_archived:
        errors["location_id"] = "La ubicación seleccionada no existe."

    if active_user(db, data.technician_id) is None:
        errors["technician_id"] = "El técnico seleccionado no existe."

    received_by = None
    if data.received_by_id is not None:
        received_by = active_user(db, data.received_by_id)
        if received_by is None:
            errors["received_by_id"] = "El empleado que recibe no existe."

    equipment = None
    if not data.is_new_registration:
        equipment = db.get(Equipment, data.equipment_id)
        if equipment is None or equipment.is_archived:
            errors["equipment_id"] = "El equipo seleccionado no existe."
            equipment = None

    if data.recall_number and recall_number_exists(db, data.recall_number):
        errors["recall_number"] = "El recall number ya está en uso."

    if errors:
        raise ValidationFailed(errors)

    if data.is_new_registration:
        serial = data.serial_number.strip()
        duplicated = (
            db.query(Equipment.id)
            .filter(Equipment.serial_number == serial)
            .first()
        )
        if duplicated is not None:
            raise DuplicateSerial(serial)

    return CheckInContext(location=location, equipment=equipment, received_by=received_by)


def validate_check_out(data: CheckOutInput, today: date) -> None:
    if data.next_cal_due_date <= today:
        raise ValidationFailed(
            {"next_cal_due_date": "La próxima fecha de calibración debe ser posterior a hoy."}
        )


def ensure_same_department(user: User, location: Location, action: str) -> None:
    """
    El usuario solo puede mover equipos de ubicaciones de su departamento.
    """
    if user.department_id is None or user.department_id != location.department_id:
        raise DepartmentMismatch(
            f"No puedes {action} este instrumento. El departamento no coincide."
        )


def ensure_payload_department(department_id: int, location: Location) -> None:
    if department_id != location.department_id:
        raise DepartmentMismatch(
            "El departamento seleccionado no corresponde al de la ubicación."
        )


def ensure_handover_pin(
    acting_user: User,
    employee: User,
    pin: str | None,
    field: str = "confirmation_pin",
) -> bool:
    """
    El empleado confirma la entrega con su PIN.
    Devuelve True si el rol del usuario actual evita pedirlo.
    """
    if acting_user.rol in BYPASS_PIN_ROLES:
        return True
    if not pin or not verify_pin(employee, pin):
        raise ValidationFailed({field: "PIN de confirmación inválido."})
    return False
