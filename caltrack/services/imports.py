"""
Carga masiva de catálogos, equipos y usuarios desde Excel (.xlsx).

La primera fila es el encabezado; los nombres de columna se comparan en
minúsculas y con "_" en lugar de espacios ("Serial Number" -> serial_number).
Cada archivo se importa completo o no se importa: si alguna fila tiene
errores se hace rollback y se reportan todas las filas con problema.
"""
import io
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Callable, Iterator

import openpyxl
from sqlalchemy.orm import Session

from caltrack.core.errors import OperationFailed, TrackingError, ValidationFailed
from caltrack.core.security import hash_password
from caltrack.models.department import Department
from caltrack.models.equipment import EQUIPMENT_STATUSES, Equipment
from caltrack.models.location import Location
from caltrack.models.plant import Plant
from caltrack.models.user import User
from caltrack.schemas.user import ALLOWED_ROLES

logger = logging.getLogger(__name__)

Row = dict[str, Any]


class RowError(ValueError):
    """Error de una sola fila; el mensaje se reporta tal cual."""


@dataclass
class ImportResult:
    kind: str
    created: int = 0
    errors: dict[str, str] = field(default_factory=dict)


def _header(value) -> str:
    return "_".join(str(value or "").strip().lower().split())


def read_rows(content: bytes) -> Iterator[tuple[int, Row]]:
    """
    Devuelve (número de fila, {columna: valor}) de la primera hoja.
    Las filas completamente vacías se saltan.
    """
    try:
        workbook = openpyxl.load_workbook(io.BytesIO(content), data_only=True)
    except Exception as exc:
        logger.warning("Archivo de importación inválido: %s", exc)
        raise ValidationFailed({"file": "El archivo no es un Excel (.xlsx) válido."}) from exc

    try:
        rows = workbook.active.iter_rows(values_only=True)
        header = next(rows, None)
        if header is None:
            return
        keys = [_header(value) for value in header]

        for row_number, values in enumerate(rows, start=2):
            if all(value is None or str(value).strip() == "" for value in values):
                continue
            yield row_number, dict(zip(keys, values))
    finally:
        workbook.close()


def _text(row: Row, *keys: str) -> str | None:
    for key in keys:
        value = row.get(key)
        if value is None:
            continue
        text = str(value).strip()
        if text:
            return text
    return None


def _required(row: Row, *keys: str) -> str:
    value = _text(row, *keys)
    if value is None:
        raise RowError(f"Falta la columna {keys[0]}.")
    return value


def parse_date(value) -> date | None:
    """Acepta celdas de fecha o texto yyyy-mm-dd, dd/mm/yyyy o dd.mm.yyyy."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    for fmt in ("%Y-%m-%d", "%d/%m/%Y", "%d.%m.%Y"):
        try:
            return datetime.strptime(str(value).strip(), fmt).date()
        except ValueError:
            continue
    raise RowError(f"Fecha inválida: {value}")


# ----------------- búsquedas por nombre ----------------- #
def _by_name(db: Session, model, name: str | None, label: str):
    if name is None:
        return None
    item = (
        db.query(model)
        .filter(model.name == name, model.deleted_at.is_(None))
        .first()
    )
    if item is None:
        raise RowError(f"{label} '{name}' no existe.")
    return item


def _department(db: Session, row: Row) -> Department | None:
    name = _text(row, "department_name", "department")
    return _by_name(db, Department, name, "Departamento")


def _plant(db: Session, row: Row) -> Plant | None:
    return _by_name(db, Plant, _text(row, "plant_name", "plant"), "Planta")


def _location_for(db: Session, name: str, department: Department | None) -> Location:
    query = db.query(Location).filter(Location.name == name, Location.deleted_at.is_(None))
    if department is not None:
        query = query.filter(Location.department_id == department.id)
    location = query.first()
    if location is None:
        raise RowError(f"Ubicación '{name}' no existe.")
    return location


# ======================== IMPORTADORES POR FILA ========================
def import_plant(db: Session, row: Row, seen: set) -> Plant:
    name = _required(row, "plant_name", "name")
    if name in seen or db.query(Plant.id).filter(Plant.name == name).first() is not None:
        raise RowError(f"La planta '{name}' ya existe.")
    seen.add(name)
    return Plant(name=name, address=_text(row, "address"))


def import_department(db: Session, row: Row, seen: set) -> Department:
    name = _required(row, "department_name", "name")
    plant = _plant(db, row)
    return Department(name=name, plant_id=plant.id if plant else None)


def import_location(db: Session, row: Row, seen: set) -> Location:
    name = _required(row, "location_name", "name")
    department = _department(db, row)
    if department is None:
        department_id = _text(row, "department_id")
        if department_id is None:
            raise RowError("Falta la columna department_name o department_id.")
        department = db.get(Department, int(float(department_id)))
        if department is None or department.is_archived:
            raise RowError(f"Departamento {department_id} no existe.")
    return Location(name=name, department_id=department.id)


def import_equipment(db: Session, row: Row, seen: set) -> Equipment:
    serial = _required(row, "serial_number", "serial")
    description = _required(row, "description")
    if serial in seen or (
        db.query(Equipment.id).filter(Equipment.serial_number == serial).first() is not None
    ):
        raise RowError(f"El serial '{serial}' ya existe.")
    seen.add(serial)

    plant = _plant(db, row)
    department = _department(db, row)
    location_name = _text(row, "location_name", "location")
    location = _location_for(db, location_name, department) if location_name else None

    owner = None
    owner_employee_id = _text(row, "owner_employee_id", "owner")
    if owner_employee_id is not None:
        owner = db.query(User).filter(User.employee_id == owner_employee_id).first()
        if owner is None:
            raise RowError(f"Empleado '{owner_employee_id}' no existe.")

    status = (_text(row, "status") or "active").lower()
    if status not in EQUIPMENT_STATUSES:
        raise RowError(f"Status inválido: {status}")

    equipment = Equipment(
        serial_number=serial,
        description=description,
        model=_text(row, "model"),
        manufacturer=_text(row, "manufacturer"),
        owner_id=owner.id if owner else None,
        plant_id=plant.id if plant else None,
        department_id=department.id if department else getattr(location, "department_id", None),
        location_id=location.id if location else None,
        status=status,
        last_calibration_date=parse_date(row.get("last_calibration_date")),
        next_calibration_due=parse_date(row.get("next_calibration_due")),
    )
    equipment.process_req_range_start = _text(row, "process_req_range_start")
    equipment.process_req_range_end = _text(row, "process_req_range_end")
    return equipment


def import_user(db: Session, row: Row, seen: set) -> User:
    employee_id = _required(row, "employee_id")
    first_name = _required(row, "first_name")
    last_name = _required(row, "last_name")
    email = _required(row, "email").lower()
    password = _required(row, "password")
    if len(password) < 6:
        raise RowError("La contraseña debe tener al menos 6 caracteres.")

    for key, column in ((employee_id, User.employee_id), (email, User.email)):
        if key in seen or db.query(User.id).filter(column == key).first() is not None:
            raise RowError(f"'{key}' ya está registrado.")
    seen.update({employee_id, email})

    rol = (_text(row, "rol", "role") or "EMPLOYEE").upper()
    if rol not in ALLOWED_ROLES:
        raise RowError(f"Rol inválido: {rol}")

    pin = _text(row, "pin")
    if pin is not None:
        # Excel guarda 1234 como número
        pin = pin[:-2] if pin.endswith(".0") else pin
        if not pin.isdigit() or not 4 <= len(pin) <= 8:
            raise RowError("El PIN debe tener entre 4 y 8 dígitos.")

    department = _department(db, row)
    plant = _plant(db, row)

    return User(
        employee_id=employee_id,
        first_name=first_name,
        last_name=last_name,
        email=email,
        password_hash=hash_password(password),
        pin_hash=hash_password(pin) if pin else None,
        rol=rol,
        department_id=department.id if department else None,
        plant_id=plant.id if plant else (department.plant_id if department else None),
        activo=True,
    )


IMPORTERS: dict[str, Callable[[Session, Row, set], Any]] = {
    "plants": import_plant,
    "departments": import_department,
    "locations": import_location,
    "equipment": import_equipment,
    "users": import_user,
}


# ======================== IMPORTAR ARCHIVO ========================
def import_workbook(db: Session, kind: str, content: bytes) -> ImportResult:
    """
    Importa todas las filas o ninguna.
    """
    importer = IMPORTERS.get(kind)
    if importer is None:
        raise ValueError(f"Tipo de importación no soportado: {kind}")

    result = ImportResult(kind=kind)
    seen: set = set()

    try:
        for row_number, row in read_rows(content):
            try:
                item = importer(db, row, seen)
            except ValueError as exc:
                result.errors[f"fila {row_number}"] = str(exc)
                continue
            db.add(item)
            # las filas siguientes ven lo que ya se importó (p. ej. una planta nueva)
            db.flush()
            result.created += 1

        if result.errors:
            raise ValidationFailed(result.errors, "El archivo tiene errores; no se importó nada.")
        db.commit()
    except TrackingError:
        db.rollback()
        logger.warning("Importación de %s rechazada: %d filas con error", kind, len(result.errors))
        raise
    except Exception as exc:
        db.rollback()
        logger.exception("Falló la importación de %s", kind)
        raise OperationFailed("No se pudo completar la importación.") from exc

    logger.info("Importación de %s: %d registros", kind, result.created)
    return result
