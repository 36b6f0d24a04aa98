# caltrack/api/tracking.py
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session, joinedload

from caltrack.core.config import settings
from caltrack.db.session import get_db
from caltrack.models.track_incoming import TrackIncoming
from caltrack.schemas.equipment import EquipmentOut
from caltrack.schemas.tracking import (
    CheckInInput,
    CheckInResult,
    CheckOutInput,
    CheckOutResult,
    ConfirmRequestInput,
    IncomingEditInput,
    TrackIncomingOut,
)
from caltrack.services import lifecycle
from caltrack.core.roles import require_user, require_technician_or_admin, require_admin

router = APIRouter(prefix="/tracking", tags=["tracking"])


# ======================== CHECK-IN (ENTRADA) ========================
@router.post("/incoming", response_model=CheckInResult, status_code=status.HTTP_201_CREATED)
def check_in(
    data: CheckInInput,
    db: Session = Depends(get_db),
    current_user=Depends(require_technician_or_admin),
):
    """
    Recibe un equipo para calibración.
    Con is_new_registration=true también registra el equipo.
    """
    outcome = lifecycle.check_in(db, current_user, data)

    message = (
        "Equipo nuevo registrado y recibido correctamente."
        if outcome.is_new_registration
        else "Equipo recibido para calibración de rutina."
    )
    return CheckInResult(
        message=message,
        equipment=EquipmentOut.model_validate(outcome.equipment),
        incoming=TrackIncomingOut.model_validate(outcome.incoming),
    )


# ======================== CHECK-OUT (SALIDA) ========================
@router.post("/incoming/{incoming_id}/check-out", response_model=CheckOutResult)
def check_out(
    incoming_id: int,
    data: CheckOutInput,
    db: Session = Depends(get_db),
    current_user=Depends(require_technician_or_admin),
):
    """
    Libera el equipo, calcula el cycle time y abre el siguiente ciclo.
    """
    outcome = lifecycle.check_out(db, current_user, incoming_id, data)

    return CheckOutResult(
        message="Equipo liberado correctamente.",
        closed=TrackIncomingOut.model_validate(outcome.closed),
        cycle_time_hours=outcome.cycle_time_hours,
        next_incoming=TrackIncomingOut.model_validate(outcome.next_incoming),
    )


# ======================== EDITAR / CONFIRMAR ========================
@router.patch("/incoming/{incoming_id}", response_model=TrackIncomingOut)
def edit_incoming(
    incoming_id: int,
    data: IncomingEditInput,
    db: Session = Depends(get_db),
    current_user=Depends(require_technician_or_admin),
):
    """
    Corrige una entrada pending_calibration.
    Con confirm=true también acepta una solicitud for_confirmation.
    """
    return lifecycle.edit_incoming(db, current_user, incoming_id, data)


@router.post("/incoming/{incoming_id}/confirm", response_model=TrackIncomingOut)
def confirm_request(
    incoming_id: int,
    data: ConfirmRequestInput,
    db: Session = Depends(get_db),
    current_user=Depends(require_technician_or_admin),
):
    return lifecycle.confirm_request(db, current_user, incoming_id, data.received_by_id)


# ======================== LISTAR ENTRADAS ========================
@router.get("/incoming", response_model=list[TrackIncomingOut])
def list_incoming(
    equipment_id: int | None = None,
    open_only: bool = False,
    archived: bool = False,
    db: Session = Depends(get_db),
    current_user=Depends(require_user),
):
    """
    Historial de entradas, más recientes primero.
    open_only=true devuelve solo los ciclos sin salida.
    """
    query = db.query(TrackIncoming).options(
        joinedload(TrackIncoming.equipment),
        joinedload(TrackIncoming.outgoing),
    )

    if archived:
        query = query.filter(TrackIncoming.deleted_at.isnot(None))
    else:
        query = query.filter(TrackIncoming.deleted_at.is_(None))

    if equipment_id is not None:
        query = query.filter(TrackIncoming.equipment_id == equipment_id)

    if open_only:
        query = query.filter(~TrackIncoming.outgoing.has())

    return query.order_by(TrackIncoming.date_in.desc(), TrackIncoming.id.desc()).all()


# ======================== VENCIDOS / POR VENCER ========================
@router.get("/overdue", response_model=list[TrackIncomingOut])
def overdue(
    db: Session = Depends(get_db),
    current_user=Depends(require_user),
):
    return lifecycle.list_overdue(db)


@router.get("/due-soon", response_model=list[TrackIncomingOut])
def due_soon(
    days: int = Query(default=settings.DUE_SOON_DAYS, ge=0, le=365),
    db: Session = Depends(get_db),
    current_user=Depends(require_user),
):
    return lifecycle.list_due_soon(db, days)


# ======================== DETALLE ========================
@router.get("/incoming/{incoming_id}", response_model=TrackIncomingOut)
def get_incoming(
    incoming_id: int,
    db: Session = Depends(get_db),
    current_user=Depends(require_user),
):
    return lifecycle.get_incoming(db, incoming_id)


# ======================== ARCHIVAR / RESTAURAR (ADMIN) ========================
@router.delete("/incoming/{incoming_id}", status_code=status.HTTP_204_NO_CONTENT)
def archive_incoming(
    incoming_id: int,
    db: Session = Depends(get_db),
    current_user=Depends(require_admin),
):
    lifecycle.archive_incoming(db, incoming_id)
    return None


@router.post("/incoming/{incoming_id}/restore", response_model=TrackIncomingOut)
def restore_incoming(
    incoming_id: int,
    db: Session = Depends(get_db),
    current_user=Depends(require_admin),
):
    return lifecycle.restore_incoming(db, incoming_id)
