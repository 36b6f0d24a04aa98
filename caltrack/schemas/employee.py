from datetime import date, datetime
from pydantic import BaseModel, ConfigDict, ValidationInfo, field_validator, model_validator

from caltrack.schemas.user import UserSummary


class PinMixin(BaseModel):
    pin: str

    @field_validator("pin")
    @classmethod
    def validate_pin(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("El PIN es obligatorio")
        return v.strip()


class EmployeeReleaseInput(PinMixin):
    """El empleado saca un equipo (salida sin entrada previa)."""
    equipment_id: int
    location_id: int
    description: str | None = None
    due_date: date | None = None


class EmployeeCheckInInput(PinMixin):
    """El empleado regresa el equipo que tenía fuera."""
    equipment_id: int
    location_id: int


class PickupInput(PinMixin):
    employee_id: str


# ========== Solicitudes de calibración ==========
class CalibrationRequestInput(BaseModel):
    """
    El empleado pide calibrar un equipo suyo o uno que aún no está registrado.
    """
    equipment_id: int | None = None
    technician_id: int
    location_id: int
    description: str
    cal_due_date: date
    serial_number: str | None = None
    model: str | None = None
    manufacturer: str | None = None
    notes: str | None = None

    @field_validator("description")
    @classmethod
    def validate_description(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("La descripción es obligatoria")
        return v.strip()

    @model_validator(mode="after")
    def check_equipment(self) -> "CalibrationRequestInput":
        if self.equipment_id is None and not (self.serial_number or "").strip():
            raise ValueError("Indica equipment_id o serial_number")
        return self


class CalibrationRequestUpdate(BaseModel):
    technician_id: int | None = None
    location_id: int | None = None
    description: str | None = None
    cal_due_date: date | None = None
    model: str | None = None
    manufacturer: str | None = None
    notes: str | None = None

    @field_validator("technician_id", "location_id", "description", "cal_due_date")
    @classmethod
    def reject_null(cls, v, info: ValidationInfo):
        if v is None:
            raise ValueError(f"{info.field_name} no puede ser null")
        if info.field_name == "description":
            if not v.strip():
                raise ValueError("La descripción es obligatoria")
            return v.strip()
        return v


# ========== Confirmación con PIN ==========
class ConfirmPinInput(BaseModel):
    employee_id: str
    pin: str | None = None


class ConfirmPinResult(BaseModel):
    message: str
    bypassed_pin: bool
    employee: UserSummary


class TrackingRecordOut(BaseModel):
    id: int
    recall_number: str | None = None
    recall: bool
    description: str | None = None
    equipment_id: int
    location_id: int | None = None
    date_in: datetime | None = None
    date_out: datetime | None = None
    cycle_time: int
    employee_in: UserSummary | None = None
    employee_out: UserSummary | None = None

    model_config = ConfigDict(from_attributes=True)
