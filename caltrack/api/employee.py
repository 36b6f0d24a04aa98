from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from caltrack.db.session import get_db
from caltrack.models.tracking_record import TrackingRecord
from caltrack.schemas.employee import (
    CalibrationRequestInput,
    CalibrationRequestUpdate,
    ConfirmPinInput,
    ConfirmPinResult,
    EmployeeCheckInInput,
    EmployeeReleaseInput,
    PickupInput,
    TrackingRecordOut,
)
from caltrack.schemas.tracking import TrackIncomingOut, TrackOutgoingOut
from caltrack.schemas.user import UserSummary
from caltrack.services import employee as employee_service
from caltrack.core.roles import require_user

router = APIRouter(prefix="/employee", tags=["employee"])


# ------------------ SACAR EQUIPO ------------------ #
@router.post("/release", response_model=TrackingRecordOut, status_code=status.HTTP_201_CREATED)
def release(
    data: EmployeeReleaseInput,
    db: Session = Depends(get_db),
    current_user=Depends(require_user),
):
    """
    El empleado saca un equipo. Requiere PIN.
    """
    return employee_service.employee_release(db, current_user, data)


# ------------------ REGRESAR EQUIPO ------------------ #
@router.post("/check-in", response_model=TrackingRecordOut)
def check_in(
    data: EmployeeCheckInInput,
    db: Session = Depends(get_db),
    current_user=Depends(require_user),
):
    """
    El empleado regresa un equipo a su cargo. Requiere PIN.
    """
    return employee_service.employee_check_in(db, current_user, data)


# ------------------ CONFIRMAR RECOGIDA ------------------ #
@router.post("/pickup/{outgoing_id}", response_model=TrackOutgoingOut)
def confirm_pickup(
    outgoing_id: int,
    data: PickupInput,
    db: Session = Depends(get_db),
    current_user=Depends(require_user),
):
    return employee_service.confirm_pickup(db, outgoing_id, data)


# ------------------ MIS MOVIMIENTOS ------------------ #
@router.get("/records", response_model=list[TrackingRecordOut])
def my_records(
    db: Session = Depends(get_db),
    current_user=Depends(require_user),
):
    """
    Movimientos (salidas y entradas) hechos por el empleado actual.
    """
    return (
        db.query(TrackingRecord)
        .filter(
            (TrackingRecord.employee_id_out == current_user.id)
            | (TrackingRecord.employee_id_in == current_user.id)
        )
        .order_by(TrackingRecord.date_out.desc(), TrackingRecord.id.desc())
        .all()
    )


# ------------------ SOLICITAR CALIBRACIÓN ------------------ #
@router.post("/requests", response_model=TrackIncomingOut, status_code=status.HTTP_201_CREATED)
def submit_request(
    data: CalibrationRequestInput,
    db: Session = Depends(get_db),
    current_user=Depends(require_user),
):
    """
    Queda en for_confirmation hasta que el técnico la acepte.
    """
    return employee_service.submit_calibration_request(db, current_user, data)


@router.get("/requests/pending", response_model=list[TrackIncomingOut])
def my_pending_requests(
    db: Session = Depends(get_db),
    current_user=Depends(require_user),
):
    return employee_service.pending_requests(db, current_user)


@router.patch("/requests/{incoming_id}", response_model=TrackIncomingOut)
def update_request(
    incoming_id: int,
    data: CalibrationRequestUpdate,
    db: Session = Depends(get_db),
    current_user=Depends(require_user),
):
    return employee_service.update_calibration_request(db, current_user, incoming_id, data)


# ------------------ CONFIRMAR PIN DE ENTREGA ------------------ #
@router.post("/confirm-pin", response_model=ConfirmPinResult)
def confirm_pin(
    data: ConfirmPinInput,
    db: Session = Depends(get_db),
    current_user=Depends(require_user),
):
    employee, bypassed = employee_service.confirm_employee_pin(db, current_user, data)
    return ConfirmPinResult(
        message="Confirmado sin PIN." if bypassed else "PIN confirmado.",
        bypassed_pin=bypassed,
        employee=UserSummary.model_validate(employee),
    )
