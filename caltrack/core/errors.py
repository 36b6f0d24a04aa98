"""
Errores de dominio del ciclo de calibración.

Cada error sabe con qué código HTTP se responde, así el manejador de
main.py puede distinguir un 403 (departamento) de un 422 (datos mal
formados) o de un 409 (conflicto de estado).
"""
from fastapi import status


class TrackingError(Exception):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "tracking_error"

    def __init__(self, message: str, errors: dict[str, str] | None = None):
        super().__init__(message)
        self.message = message
        self.errors = errors or {}

    def to_dict(self) -> dict:
        body = {"error": self.code, "detail": self.message}
        if self.errors:
            body["errors"] = self.errors
        return body


class ValidationFailed(TrackingError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "validation_failed"

    def __init__(self, errors: dict[str, str], message: str = "Datos inválidos."):
        super().__init__(message, errors)


class DepartmentMismatch(TrackingError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "department_mismatch"


class NotFound(TrackingError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"


class StateConflict(TrackingError):
    status_code = status.HTTP_409_CONFLICT
    code = "state_conflict"


class AlreadyReleased(StateConflict):
    code = "already_released"

    def __init__(self, message: str = "Este equipo ya fue liberado."):
        super().__init__(message)


class NoOpenRecord(StateConflict):
    code = "no_open_record"


class NotReadyForPickup(StateConflict):
    code = "not_ready_for_pickup"


class DuplicateSerial(TrackingError):
    status_code = status.HTTP_409_CONFLICT
    code = "duplicate_serial"

    def __init__(self, serial_number: str):
        super().__init__(
            f"Ya existe un equipo con el serial {serial_number}.",
            {"serial_number": "El número de serie ya está registrado."},
        )


class RecallNumberExhausted(TrackingError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "recall_number_exhausted"


class OperationFailed(TrackingError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "operation_failed"


class NotEditable(StateConflict):
    code = "not_editable"


class RequestNotConfirmed(StateConflict):
    code = "request_not_confirmed"

    def __init__(self, message: str = "La solicitud del empleado aún no ha sido confirmada."):
        super().__init__(message)


class NotAssigned(TrackingError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "not_assigned"
