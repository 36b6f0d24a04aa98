from datetime import datetime
from typing import Set
from pydantic import BaseModel, EmailStr, ConfigDict, ValidationInfo, field_validator

# Conjunto de roles válidos en TODO el sistema
ALLOWED_ROLES: Set[str] = {"ADMIN", "TECHNICIAN", "EMPLOYEE"}


def _normalize_rol(v: str) -> str:
    if not v:
        raise ValueError("El rol no puede estar vacío")

    rol_normalizado = v.strip().upper()

    if rol_normalizado not in ALLOWED_ROLES:
        roles_str = " - ".join(sorted(ALLOWED_ROLES))
        raise ValueError(f"Rol inválido. Debe ser uno de: {roles_str}")

    return rol_normalizado


class UserBase(BaseModel):
    employee_id: str
    first_name: str
    last_name: str
    email: EmailStr
    rol: str = "EMPLOYEE"
    department_id: int | None = None
    plant_id: int | None = None
    activo: bool = True

    @field_validator("rol")
    @classmethod
    def validate_rol(cls, v: str) -> str:
        """
        Normaliza y valida el rol (lo pasa a mayúsculas).
        """
        return _normalize_rol(v)


class UserCreate(UserBase):
    password: str
    pin: str | None = None

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("La contraseña no puede estar vacía")

        if len(v) < 6:
            raise ValueError("La contraseña debe tener al menos 6 caracteres")

        return v

    @field_validator("pin")
    @classmethod
    def validate_pin(cls, v: str | None) -> str | None:
        if v is None:
            return v
        if not v.isdigit() or not 4 <= len(v) <= 8:
            raise ValueError("El PIN debe tener entre 4 y 8 dígitos")
        return v


class UserOut(UserBase):
    id: int
    full_name: str
    fecha_registro: datetime

    # Para convertir automáticamente desde objetos SQLAlchemy
    model_config = ConfigDict(from_attributes=True)


class UserUpdate(BaseModel):
    """
    Todos los campos opcionales para PATCH.
    """
    first_name: str | None = None
    last_name: str | None = None
    rol: str | None = None
    department_id: int | None = None
    plant_id: int | None = None
    activo: bool | None = None

    @field_validator("first_name", "last_name", "rol")
    @classmethod
    def reject_null(cls, v: str | None, info: ValidationInfo) -> str | None:
        if v is None:
            raise ValueError(f"{info.field_name} no puede ser null")
        if info.field_name == "rol":
            return _normalize_rol(v)
        return v


class UserSummary(BaseModel):
    id: int
    employee_id: str
    full_name: str

    model_config = ConfigDict(from_attributes=True)
