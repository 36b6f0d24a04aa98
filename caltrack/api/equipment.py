from datetime import date
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from caltrack.core.security import utcnow
from caltrack.db.session import get_db
from caltrack.models.equipment import Equipment
from caltrack.schemas.equipment import EquipmentCreate, EquipmentOut, EquipmentUpdate
from caltrack.core.roles import (
    require_user,
    require_technician_or_admin,
    require_admin,
)

router = APIRouter(prefix="/equipment", tags=["equipment"])


def _get_equipment(db: Session, equipment_id: int, include_archived: bool = False) -> Equipment:
    equipment = db.get(Equipment, equipment_id)
    if not equipment or (equipment.is_archived and not include_archived):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Equipo no encontrado.",
        )
    return equipment


# ------------------ REGISTRAR EQUIPO (TECHNICIAN / ADMIN) ------------------ #
@router.post("/", response_model=EquipmentOut, status_code=status.HTTP_201_CREATED)
def create_equipment(
    equipment_in: EquipmentCreate,
    db: Session = Depends(get_db),
    current_user=Depends(require_technician_or_admin),
):
    """
    Registra un equipo nuevo.
    El serial debe ser único (incluye equipos archivados).
    """
    existing = (
        db.query(Equipment)
        .filter(Equipment.serial_number == equipment_in.serial_number)
        .first()
    )
    if existing:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="El serial ya existe.",
        )

    equipment = Equipment(**equipment_in.model_dump())
    db.add(equipment)
    db.commit()
    db.refresh(equipment)
    return equipment


# -------------- LISTAR EQUIPOS + filtros ---------------- #
@router.get("/", response_model=list[EquipmentOut])
def list_equipment(
    status_filter: str | None = None,
    department_id: int | None = None,
    location_id: int | None = None,
    due_before: date | None = None,
    archived: bool = False,
    db: Session = Depends(get_db),
    current_user=Depends(require_user),
):
    """
    Lista equipos con filtros opcionales:
    - status_filter
    - department_id / location_id
    - due_before (next_calibration_due <= fecha)
    - archived=true para ver solo los archivados
    """
    query = db.query(Equipment)

    if archived:
        query = query.filter(Equipment.deleted_at.isnot(None))
    else:
        query = query.filter(Equipment.deleted_at.is_(None))

    if status_filter:
        query = query.filter(Equipment.status == status_filter.strip().lower())

    if department_id:
        query = query.filter(Equipment.department_id == department_id)

    if location_id:
        query = query.filter(Equipment.location_id == location_id)

    if due_before:
        query = query.filter(Equipment.next_calibration_due <= due_before)

    return query.order_by(Equipment.id).all()


# ------ BUSCAR POR SERIAL (escáner de código de barras) ------- #
@router.get("/scan/{serial_number}", response_model=EquipmentOut)
def scan_equipment(
    serial_number: str,
    db: Session = Depends(get_db),
    current_user=Depends(require_user),
):
    equipment = (
        db.query(Equipment)
        .filter(
            Equipment.serial_number == serial_number,
            Equipment.deleted_at.is_(None),
        )
        .first()
    )
    if not equipment:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Equipo no encontrado.",
        )
    return equipment


# ------ OBTENER EQUIPO POR ID ------- #
@router.get("/{equipment_id}", response_model=EquipmentOut)
def get_equipment(
    equipment_id: int,
    db: Session = Depends(get_db),
    current_user=Depends(require_user),
):
    return _get_equipment(db, equipment_id)


# ---------- ACTUALIZAR EQUIPO (TECHNICIAN / ADMIN) ---------- #
@router.patch("/{equipment_id}", response_model=EquipmentOut)
def update_equipment(
    equipment_id: int,
    equipment_in: EquipmentUpdate,
    db: Session = Depends(get_db),
    current_user=Depends(require_technician_or_admin),
):
    """
    Actualiza un equipo (parcial): reasignación, cambio de status, rango, etc.
    """
    equipment = _get_equipment(db, equipment_id)

    data = equipment_in.model_dump(exclude_unset=True)

    # si quieren cambiar el serial, validar que no se repita
    if "serial_number" in data:
        existing = (
            db.query(Equipment)
            .filter(
                Equipment.serial_number == data["serial_number"],
                Equipment.id != equipment_id,
            )
            .first()
        )
        if existing:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Ya existe otro equipo con ese serial.",
            )

    for field, value in data.items():
        setattr(equipment, field, value)

    db.add(equipment)
    db.commit()
    db.refresh(equipment)
    return equipment


# ---------- ARCHIVAR EQUIPO (solo ADMIN) ---------- #
@router.delete("/{equipment_id}", status_code=status.HTTP_204_NO_CONTENT)
def archive_equipment(
    equipment_id: int,
    db: Session = Depends(get_db),
    current_user=Depends(require_admin),
):
    """
    Archiva un equipo (soft delete). Nunca se borra físicamente.
    """
    equipment = _get_equipment(db, equipment_id)
    equipment.archive(utcnow())
    db.commit()
    return None


# ---------- RESTAURAR EQUIPO (solo ADMIN) ---------- #
@router.post("/{equipment_id}/restore", response_model=EquipmentOut)
def restore_equipment(
    equipment_id: int,
    db: Session = Depends(get_db),
    current_user=Depends(require_admin),
):
    equipment = _get_equipment(db, equipment_id, include_archived=True)
    equipment.restore()
    db.commit()
    db.refresh(equipment)
    return equipment
