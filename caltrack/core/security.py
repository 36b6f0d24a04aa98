from datetime import datetime, timedelta, timezone
from jose import jwt
from passlib.hash import sha256_crypt
from caltrack.core.config import settings


def utcnow() -> datetime:
    """
    Hora actual en UTC, sin tzinfo (así se guarda en la BD).
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)


def hash_password(password: str) -> str:
    """
    Hashea una contraseña (o PIN) usando sha256_crypt (Passlib).
    """
    if not password or not password.strip():
        raise ValueError("La contraseña no puede estar vacía")

    return sha256_crypt.hash(password)


def verify_password(plain: str, hashed: str) -> bool:
    """
    Verifica una contraseña contra su hash.
    """
    if not plain or not hashed:
        return False

    return sha256_crypt.verify(plain, hashed)


def verify_pin(user, pin: str) -> bool:
    """
    Verifica el PIN de confirmación de un empleado.
    Si el empleado no tiene PIN propio se compara contra su contraseña.
    """
    hashed = user.pin_hash or user.password_hash
    return verify_password(pin, hashed)


def create_access_token(
    data: dict,
    expires_minutes: int | None = None,
) -> str:
    """
    Crea un JWT de acceso.
    """
    to_encode = data.copy()

    expire = utcnow() + timedelta(
        minutes=expires_minutes or settings.ACCESS_TOKEN_EXPIRE_MINUTES
    )
    to_encode.update({"exp": expire})

    encoded_jwt = jwt.encode(
        to_encode,
        settings.SECRET_KEY,
        algorithm=settings.ALGORITHM,
    )
    return encoded_jwt
