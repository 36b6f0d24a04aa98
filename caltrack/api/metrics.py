from datetime import date, datetime, time, timedelta
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import func
from sqlalchemy.orm import Session
from caltrack.core.security import utcnow
from caltrack.db.session import get_db
from caltrack.models.equipment import Equipment
from caltrack.models.location import Location
from caltrack.models.track_incoming import TrackIncoming
from caltrack.models.track_outgoing import TrackOutgoing
from caltrack.models.user import User
from caltrack.core.roles import require_technician_or_admin

router = APIRouter(prefix="/metrics", tags=["metrics"])


# ---------------------- DASHBOARD ---------------------------- #
@router.get("/dashboard")
def dashboard(
    db: Session = Depends(get_db),
    current_user=Depends(require_technician_or_admin),
):
    """
    Números generales para el tablero principal.
    """
    now = utcnow()
    active = db.query(TrackIncoming).filter(
        TrackIncoming.deleted_at.is_(None),
        TrackIncoming.status != "completed",
    )
    return {
        "total_equipment": db.query(func.count(Equipment.id))
        .filter(Equipment.deleted_at.is_(None))
        .scalar(),
        "active_requests": active.count(),
        "equipment_tracked": db.query(func.count(TrackIncoming.id))
        .filter(TrackIncoming.deleted_at.is_(None))
        .scalar(),
        "total_users": db.query(func.count(User.id)).scalar(),
        "overdue_equipment": active.filter(TrackIncoming.cal_due_date < now.date()).count(),
        "recent_updates": db.query(func.count(TrackIncoming.id))
        .filter(TrackIncoming.date_in >= now - timedelta(days=7))
        .scalar(),
    }


# ---------------------- INCOMING BY STATUS ---------------------- #
@router.get("/incoming-by-status")
def incoming_by_status(
    db: Session = Depends(get_db),
    current_user=Depends(require_technician_or_admin),
):
    """
    Conteo de entradas por status.
    """
    rows = (
        db.query(TrackIncoming.status, func.count(TrackIncoming.id))
        .filter(TrackIncoming.deleted_at.is_(None))
        .group_by(TrackIncoming.status)
        .all()
    )
    return {status: count for status, count in rows}


# ---------------------- THROUGHPUT --------------------------- #
@router.get("/throughput")
def throughput(
    from_date: str,
    to_date: str,
    db: Session = Depends(get_db),
    current_user=Depends(require_technician_or_admin),
):
    """
    Equipos liberados por día entre from_date y to_date (YYYY-MM-DD).
    """
    try:
        from_date_obj = datetime.strptime(from_date, "%Y-%m-%d").date()
        to_date_obj = datetime.strptime(to_date, "%Y-%m-%d").date()
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Formato de fecha incorrecto. Usa YYYY-MM-DD.",
        )

    rows = (
        db.query(TrackOutgoing.date_out)
        .filter(TrackOutgoing.deleted_at.is_(None))
        .filter(TrackOutgoing.date_out >= datetime.combine(from_date_obj, time.min))
        .filter(TrackOutgoing.date_out <= datetime.combine(to_date_obj, time.max))
        .all()
    )

    per_day: dict[date, int] = {}
    for (date_out,) in rows:
        per_day[date_out.date()] = per_day.get(date_out.date(), 0) + 1

    return [{"fecha": str(day), "equipos": per_day[day]} for day in sorted(per_day)]


# ------------------- CYCLE TIME POR UBICACIÓN ---------------------- #
@router.get("/cycle-time-by-location")
def cycle_time_by_location(
    db: Session = Depends(get_db),
    current_user=Depends(require_technician_or_admin),
):
    """
    Cycle time promedio (horas) por ubicación, usando el valor guardado
    al cerrar cada ciclo.
    """
    rows = (
        db.query(
            Location.id,
            Location.name,
            func.avg(TrackOutgoing.cycle_time),
            func.count(TrackOutgoing.id),
        )
        .join(TrackIncoming, TrackIncoming.location_id == Location.id)
        .join(TrackOutgoing, TrackOutgoing.incoming_id == TrackIncoming.id)
        .filter(TrackOutgoing.deleted_at.is_(None))
        .group_by(Location.id, Location.name)
        .order_by(Location.name)
        .all()
    )

    return [
        {
            "location_id": location_id,
            "location": name,
            "cycle_time_promedio_horas": float(avg_hours) if avg_hours is not None else None,
            "ciclos": count,
        }
        for location_id, name, avg_hours, count in rows
    ]
