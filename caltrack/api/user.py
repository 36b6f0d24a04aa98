from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from caltrack.db.session import get_db
from caltrack.core.security import hash_password
from caltrack.models.user import User
from caltrack.schemas.user import UserOut, UserCreate, UserUpdate
from caltrack.core.roles import require_admin

router = APIRouter(prefix="/users", tags=["users"])


# ------------------ CREAR USUARIO (ADMIN) ------------------ #

@router.post("/", response_model=UserOut)
def create_user(
    user_in: UserCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    """
    Solo ADMIN puede crear usuarios (con cualquier rol).
    """
    existing_user = (
        db.query(User)
        .filter((User.email == user_in.email) | (User.employee_id == user_in.employee_id))
        .first()
    )
    if existing_user:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Ya existe un usuario con ese email o número de empleado."
        )

    data = user_in.model_dump(exclude={"password", "pin"})
    user = User(
        **data,
        password_hash=hash_password(user_in.password),
        pin_hash=hash_password(user_in.pin) if user_in.pin else None,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


# ------------------ LISTAR USUARIOS (ADMIN) ------------------ #
@router.get("/", response_model=list[UserOut])
def list_users(
    department_id: int | None = None,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    """
    Solo ADMIN puede listar los usuarios. Filtro opcional por departamento.
    """
    query = db.query(User)
    if department_id is not None:
        query = query.filter(User.department_id == department_id)
    return query.order_by(User.id).all()


# -------------------- OBTENER USUARIO POR ID (ADMIN) -------------------- #
@router.get("/{user_id}", response_model=UserOut)
def get_user(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    user = db.get(User, user_id)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Usuario no encontrado"
        )
    return user


# -------------------- ACTUALIZAR USUARIO (ADMIN) -------------------- #
@router.patch("/{user_id}", response_model=UserOut)
def update_user(
    user_id: int,
    user_in: UserUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    user = db.get(User, user_id)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Usuario no encontrado"
        )

    data = user_in.model_dump(exclude_unset=True)

    for field, value in data.items():
        setattr(user, field, value)

    db.add(user)
    db.commit()
    db.refresh(user)
    return user
