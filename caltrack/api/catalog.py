from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from caltrack.core.security import utcnow
from caltrack.db.session import get_db
from caltrack.models.plant import Plant
from caltrack.models.department import Department
from caltrack.models.location import Location
from caltrack.schemas.catalog import (
    PlantCreate,
    PlantOut,
    PlantUpdate,
    DepartmentCreate,
    DepartmentOut,
    DepartmentUpdate,
    LocationCreate,
    LocationOut,
    LocationUpdate,
)
from caltrack.core.roles import require_admin, require_user

router = APIRouter(prefix="/catalog", tags=["catalog"])


def _get_or_404(db: Session, model, item_id: int, detail: str, include_archived: bool = False):
    item = db.get(model, item_id)
    if not item or (item.is_archived and not include_archived):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=detail)
    return item


def _archived_filter(query, model, archived: bool):
    if archived:
        return query.filter(model.deleted_at.isnot(None))
    return query.filter(model.deleted_at.is_(None))


def _apply(db: Session, item, data: dict):
    for field, value in data.items():
        setattr(item, field, value)

    db.add(item)
    db.commit()
    db.refresh(item)
    return item


def _ensure_plant(db: Session, plant_id: int | None) -> None:
    if plant_id is not None:
        _get_or_404(db, Plant, plant_id, "Planta no encontrada.")


def _ensure_department(db: Session, department_id: int) -> None:
    _get_or_404(db, Department, department_id, "Departamento no encontrado.")


# ------------------ PLANTAS ------------------ #
@router.post("/plants", response_model=PlantOut, status_code=status.HTTP_201_CREATED)
def create_plant(
    plant_in: PlantCreate,
    db: Session = Depends(get_db),
    current_user=Depends(require_admin),
):
    existing = db.query(Plant).filter(Plant.name == plant_in.name).first()
    if existing:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Ya existe una planta con ese nombre.",
        )

    plant = Plant(**plant_in.model_dump())
    db.add(plant)
    db.commit()
    db.refresh(plant)
    return plant


@router.get("/plants", response_model=list[PlantOut])
def list_plants(
    archived: bool = False,
    db: Session = Depends(get_db),
    current_user=Depends(require_user),
):
    query = _archived_filter(db.query(Plant), Plant, archived)
    return query.order_by(Plant.name).all()


@router.patch("/plants/{plant_id}", response_model=PlantOut)
def update_plant(
    plant_id: int,
    plant_in: PlantUpdate,
    db: Session = Depends(get_db),
    current_user=Depends(require_admin),
):
    plant = _get_or_404(db, Plant, plant_id, "Planta no encontrada.")
    data = plant_in.model_dump(exclude_unset=True)

    if "name" in data:
        existing = (
            db.query(Plant)
            .filter(Plant.name == data["name"], Plant.id != plant_id)
            .first()
        )
        if existing:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Ya existe una planta con ese nombre.",
            )

    return _apply(db, plant, data)


@router.delete("/plants/{plant_id}", status_code=status.HTTP_204_NO_CONTENT)
def archive_plant(
    plant_id: int,
    db: Session = Depends(get_db),
    current_user=Depends(require_admin),
):
    plant = _get_or_404(db, Plant, plant_id, "Planta no encontrada.")
    plant.archive(utcnow())
    db.commit()
    return None


@router.post("/plants/{plant_id}/restore", response_model=PlantOut)
def restore_plant(
    plant_id: int,
    db: Session = Depends(get_db),
    current_user=Depends(require_admin),
):
    plant = _get_or_404(db, Plant, plant_id, "Planta no encontrada.", include_archived=True)
    plant.restore()
    db.commit()
    db.refresh(plant)
    return plant


# ------------------ DEPARTAMENTOS ------------------ #
@router.post("/departments", response_model=DepartmentOut, status_code=status.HTTP_201_CREATED)
def create_department(
    department_in: DepartmentCreate,
    db: Session = Depends(get_db),
    current_user=Depends(require_admin),
):
    _ensure_plant(db, department_in.plant_id)

    department = Department(**department_in.model_dump())
    db.add(department)
    db.commit()
    db.refresh(department)
    return department


@router.get("/departments", response_model=list[DepartmentOut])
def list_departments(
    plant_id: int | None = None,
    archived: bool = False,
    db: Session = Depends(get_db),
    current_user=Depends(require_user),
):
    query = _archived_filter(db.query(Department), Department, archived)
    if plant_id is not None:
        query = query.filter(Department.plant_id == plant_id)
    return query.order_by(Department.name).all()


@router.patch("/departments/{department_id}", response_model=DepartmentOut)
def update_department(
    department_id: int,
    department_in: DepartmentUpdate,
    db: Session = Depends(get_db),
    current_user=Depends(require_admin),
):
    department = _get_or_404(db, Department, department_id, "Departamento no encontrado.")
    data = department_in.model_dump(exclude_unset=True)
    _ensure_plant(db, data.get("plant_id"))
    return _apply(db, department, data)


@router.delete("/departments/{department_id}", status_code=status.HTTP_204_NO_CONTENT)
def archive_department(
    department_id: int,
    db: Session = Depends(get_db),
    current_user=Depends(require_admin),
):
    department = _get_or_404(db, Department, department_id, "Departamento no encontrado.")
    department.archive(utcnow())
    db.commit()
    return None


@router.post("/departments/{department_id}/restore", response_model=DepartmentOut)
def restore_department(
    department_id: int,
    db: Session = Depends(get_db),
    current_user=Depends(require_admin),
):
    department = _get_or_404(
        db, Department, department_id, "Departamento no encontrado.", include_archived=True
    )
    department.restore()
    db.commit()
    db.refresh(department)
    return department


# ------------------ UBICACIONES ------------------ #
@router.post("/locations", response_model=LocationOut, status_code=status.HTTP_201_CREATED)
def create_location(
    location_in: LocationCreate,
    db: Session = Depends(get_db),
    current_user=Depends(require_admin),
):
    _ensure_department(db, location_in.department_id)

    location = Location(**location_in.model_dump())
    db.add(location)
    db.commit()
    db.refresh(location)
    return location


@router.get("/locations", response_model=list[LocationOut])
def list_locations(
    department_id: int | None = None,
    archived: bool = False,
    db: Session = Depends(get_db),
    current_user=Depends(require_user),
):
    query = _archived_filter(db.query(Location), Location, archived)
    if department_id is not None:
        query = query.filter(Location.department_id == department_id)
    return query.order_by(Location.name).all()


@router.patch("/locations/{location_id}", response_model=LocationOut)
def update_location(
    location_id: int,
    location_in: LocationUpdate,
    db: Session = Depends(get_db),
    current_user=Depends(require_admin),
):
    location = _get_or_404(db, Location, location_id, "Ubicación no encontrada.")
    data = location_in.model_dump(exclude_unset=True)
    if "department_id" in data:
        _ensure_department(db, data["department_id"])
    return _apply(db, location, data)


@router.delete("/locations/{location_id}", status_code=status.HTTP_204_NO_CONTENT)
def archive_location(
    location_id: int,
    db: Session = Depends(get_db),
    current_user=Depends(require_admin),
):
    """
    Archivar una ubicación la saca de los check-in y check-out nuevos;
    el historial que la usa no cambia.
    """
    location = _get_or_404(db, Location, location_id, "Ubicación no encontrada.")
    location.archive(utcnow())
    db.commit()
    return None


@router.post("/locations/{location_id}/restore", response_model=LocationOut)
def restore_location(
    location_id: int,
    db: Session = Depends(get_db),
    current_user=Depends(require_admin),
):
    location = _get_or_404(
        db, Location, location_id, "Ubicación no encontrada.", include_archived=True
    )
    location.restore()
    db.commit()
    db.refresh(location)
    return location
