# caltrack/schemas/tracking.py
import re
from datetime import date, datetime
from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator, model_validator

from caltrack.schemas.equipment import EquipmentOut
from caltrack.schemas.user import UserSummary


def _strip_required(v: str) -> str:
    if not v or not v.strip():
        raise ValueError("La descripción es obligatoria")
    return v.strip()


RECALL_NUMBER_RE = re.compile(r"^[A-Z0-9]{7,10}$")


def _strip_optional(v: str | None) -> str | None:
    if v is None:
        return v
    return v.strip().upper() or None


def _normalize_recall(v: str | None) -> str | None:
    v = _strip_optional(v)
    if v is not None and not RECALL_NUMBER_RE.match(v):
        raise ValueError("El recall number debe tener de 7 a 10 caracteres A-Z o 0-9")
    return v


# ========== Entradas ==========
class CheckInInput(BaseModel):
    """Datos para recibir un equipo (check-in)"""
    equipment_id: int | None = None
    is_new_registration: bool = False

    technician_id: int
    location_id: int
    department_id: int
    received_by_id: int | None = None
    # PIN del empleado que entrega; ADMIN y TECHNICIAN no lo necesitan
    confirmation_pin: str | None = None

    cal_date: date
    cal_due_date: date
    description: str
    recall_number: str | None = None
    notes: str | None = None

    # Solo para registro de equipo nuevo
    serial_number: str | None = None
    manufacturer: str | None = None
    model: str | None = None
    plant_id: int | None = None
    process_req_range_start: str | None = None
    process_req_range_end: str | None = None

    @field_validator("description")
    @classmethod
    def validate_description(cls, v: str) -> str:
        return _strip_required(v)

    @field_validator("recall_number")
    @classmethod
    def normalize_recall(cls, v: str | None) -> str | None:
        return _normalize_recall(v)

    @model_validator(mode="after")
    def check_fields(self) -> "CheckInInput":
        if self.cal_due_date < self.cal_date:
            raise ValueError("cal_due_date debe ser igual o posterior a cal_date")

        if self.is_new_registration:
            if not self.serial_number or not self.serial_number.strip():
                raise ValueError("serial_number es obligatorio para equipo nuevo")
            if not self.manufacturer or not self.manufacturer.strip():
                raise ValueError("manufacturer es obligatorio para equipo nuevo")
        elif self.equipment_id is None:
            raise ValueError("equipment_id es obligatorio si no es registro nuevo")
        return self


class CheckOutInput(BaseModel):
    """Datos para liberar un equipo (check-out)"""
    next_cal_due_date: date
    description: str
    recall_number: str | None = None
    ct_reqd: int | None = Field(default=None, ge=0)
    commit_etc: date | None = None
    actual_etc: date | None = None
    notes: str | None = None

    @field_validator("description")
    @classmethod
    def validate_description(cls, v: str) -> str:
        return _strip_required(v)

    @field_validator("recall_number")
    @classmethod
    def normalize_recall(cls, v: str | None) -> str | None:
        return _normalize_recall(v)


class IncomingEditInput(BaseModel):
    """
    Edición de una entrada abierta (pending_calibration).
    Con confirm=true también confirma una solicitud for_confirmation.
    """
    technician_id: int | None = None
    location_id: int | None = None
    received_by_id: int | None = None
    description: str | None = None
    cal_date: date | None = None
    cal_due_date: date | None = None
    serial_number: str | None = None
    model: str | None = None
    manufacturer: str | None = None
    notes: str | None = None
    confirm: bool = False

    @field_validator("technician_id", "location_id", "description", "cal_due_date")
    @classmethod
    def reject_null(cls, v, info: ValidationInfo):
        if v is None:
            raise ValueError(f"{info.field_name} no puede ser null")
        if info.field_name == "description":
            return _strip_required(v)
        return v

    @model_validator(mode="after")
    def check_dates(self) -> "IncomingEditInput":
        if self.cal_date and self.cal_due_date and self.cal_due_date < self.cal_date:
            raise ValueError("cal_due_date debe ser igual o posterior a cal_date")
        return self


class ConfirmRequestInput(BaseModel):
    """El técnico acepta la solicitud del empleado."""
    received_by_id: int | None = None


# ========== Salidas ==========
class TrackOutgoingOut(BaseModel):
    id: int
    incoming_id: int
    recall_number: str | None = None
    cal_date: date
    cal_due_date: date
    date_out: datetime
    cycle_time: int
    ct_reqd: int | None = None
    commit_etc: date | None = None
    actual_etc: date | None = None
    overdue: bool
    status: str
    notes: str | None = None
    employee_out: UserSummary | None = None
    released_by: UserSummary | None = None

    model_config = ConfigDict(from_attributes=True)


class TrackIncomingOut(BaseModel):
    id: int
    recall_number: str | None = None
    recall: bool
    equipment_id: int | None = None
    technician_id: int
    location_id: int
    received_by_id: int | None = None
    employee_id_in: int
    description: str
    cal_date: date | None = None
    cal_due_date: date
    date_in: datetime
    date_out: datetime | None = None
    cycle_time: int
    status: str
    notes: str | None = None
    deleted_at: datetime | None = None
    equipment: EquipmentOut | None = None
    technician: UserSummary | None = None
    employee_in: UserSummary | None = None
    outgoing: TrackOutgoingOut | None = None

    model_config = ConfigDict(from_attributes=True)


class CheckInResult(BaseModel):
    message: str
    equipment: EquipmentOut
    incoming: TrackIncomingOut


class CheckOutResult(BaseModel):
    message: str
    closed: TrackIncomingOut
    cycle_time_hours: int
    next_incoming: TrackIncomingOut
