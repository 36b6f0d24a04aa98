from datetime import date, datetime
from pydantic import BaseModel, ConfigDict, ValidationInfo, field_validator

from caltrack.models.equipment import EQUIPMENT_STATUSES


def _normalize_status(v: str) -> str:
    v_norm = v.strip().lower()
    if v_norm not in EQUIPMENT_STATUSES:
        allowed = ", ".join(sorted(EQUIPMENT_STATUSES))
        raise ValueError(f"Status inválido. Debe ser uno de: {allowed}")
    return v_norm


# ----- BASE COMÚN -----
class EquipmentBase(BaseModel):
    serial_number: str
    description: str
    model: str | None = None
    manufacturer: str | None = None
    owner_id: int | None = None
    plant_id: int | None = None
    department_id: int | None = None
    location_id: int | None = None
    status: str = "active"
    last_calibration_date: date | None = None
    next_calibration_due: date | None = None
    process_req_range_start: str | None = None
    process_req_range_end: str | None = None

    @field_validator("status")
    @classmethod
    def validate_status(cls, v: str) -> str:
        return _normalize_status(v)


# ----- PARA CREAR EQUIPO -----
class EquipmentCreate(EquipmentBase):
    pass


# ----- PARA RESPUESTA -----
class EquipmentOut(EquipmentBase):
    id: int
    process_req_range: str | None = None
    created_at: datetime | None = None
    deleted_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


# ----- PARA ACTUALIZAR (PATCH) -----
class EquipmentUpdate(BaseModel):
    """
    Todos los campos son opcionales para permitir PATCH.
    """
    serial_number: str | None = None
    description: str | None = None
    model: str | None = None
    manufacturer: str | None = None
    owner_id: int | None = None
    plant_id: int | None = None
    department_id: int | None = None
    location_id: int | None = None
    status: str | None = None
    next_calibration_due: date | None = None
    process_req_range_start: str | None = None
    process_req_range_end: str | None = None

    @field_validator("serial_number", "description", "status")
    @classmethod
    def reject_null(cls, v: str | None, info: ValidationInfo) -> str | None:
        # Omitir el campo está bien; mandarlo en null no
        if v is None:
            raise ValueError(f"{info.field_name} no puede ser null")
        if info.field_name == "status":
            return _normalize_status(v)
        return v
