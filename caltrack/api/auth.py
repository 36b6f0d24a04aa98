from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer, OAuth2PasswordRequestForm
from sqlalchemy.orm import Session
from jose import jwt, JWTError
from caltrack.api import get_db
from caltrack.core.config import settings
from caltrack.core.security import hash_password, verify_password, create_access_token
from caltrack.schemas.user import UserCreate, UserOut
from caltrack.schemas.token import Token
from caltrack.models.user import User

router = APIRouter(prefix="/auth", tags=["auth"])

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="auth/login")


# ---------- REGISTRO ----------

@router.post("/register", response_model=UserOut)
def register(user_in: UserCreate, db: Session = Depends(get_db)):
    existing = (
        db.query(User)
        .filter((User.email == user_in.email) | (User.employee_id == user_in.employee_id))
        .first()
    )
    if existing:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="El email o número de empleado ya está registrado",
        )

    # El registro público siempre crea empleados; los roles los asigna un ADMIN
    user = User(
        employee_id=user_in.employee_id,
        first_name=user_in.first_name,
        last_name=user_in.last_name,
        email=user_in.email,
        password_hash=hash_password(user_in.password),
        pin_hash=hash_password(user_in.pin) if user_in.pin else None,
        rol="EMPLOYEE",
        department_id=user_in.department_id,
        plant_id=user_in.plant_id,
        activo=True,
    )

    db.add(user)
    db.commit()
    db.refresh(user)
    return user


# ---------- LOGIN ----------

@router.post("/login", response_model=Token)
def login(
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: Session = Depends(get_db),
):
    # Se acepta email o número de empleado en el campo "username"
    user = (
        db.query(User)
        .filter((User.email == form_data.username) | (User.employee_id == form_data.username))
        .first()
    )

    if not user or not verify_password(form_data.password, user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Credenciales inválidas",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.activo:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Usuario inactivo",
        )

    # Datos que irán dentro del JWT
    token_data = {"sub": str(user.id), "rol": user.rol}
    access_token = create_access_token(token_data)

    return Token(access_token=access_token)


# ---------- OBTENER USUARIO ACTUAL (para endpoints protegidos) ----------

def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> User:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Token inválido o expirado",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        payload = jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.ALGORITHM],
        )
        user_id: str | None = payload.get("sub")
        if user_id is None:
            raise credentials_exception
    except JWTError:
        raise credentials_exception

    user = db.get(User, int(user_id))
    if user is None or not user.activo:
        raise credentials_exception

    return user
