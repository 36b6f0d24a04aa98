from datetime import datetime
from pydantic import BaseModel, ConfigDict, field_validator


def _required_name(v: str | None) -> str:
    if v is None or not v.strip():
        raise ValueError("El nombre es obligatorio")
    return v.strip()


class PlantCreate(BaseModel):
    name: str
    address: str | None = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return _required_name(v)


class PlantUpdate(BaseModel):
    name: str | None = None
    address: str | None = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str | None) -> str:
        return _required_name(v)


class PlantOut(PlantCreate):
    id: int
    deleted_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class DepartmentCreate(BaseModel):
    name: str
    plant_id: int | None = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return _required_name(v)


class DepartmentUpdate(BaseModel):
    name: str | None = None
    plant_id: int | None = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str | None) -> str:
        return _required_name(v)


class DepartmentOut(DepartmentCreate):
    id: int
    deleted_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class LocationCreate(BaseModel):
    name: str
    department_id: int

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return _required_name(v)


class LocationUpdate(BaseModel):
    """
    Una ubicación siempre pertenece a un departamento: department_id
    se puede cambiar, pero no mandar en null.
    """
    name: str | None = None
    department_id: int | None = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str | None) -> str:
        return _required_name(v)

    @field_validator("department_id")
    @classmethod
    def validate_department(cls, v: int | None) -> int:
        if v is None:
            raise ValueError("department_id no puede ser null")
        return v


class LocationOut(LocationCreate):
    id: int
    deleted_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)
