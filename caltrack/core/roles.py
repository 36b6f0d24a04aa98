from fastapi import Depends, HTTPException, status
from caltrack.api.auth import get_current_user
from caltrack.models.user import User


def require_user(current_user: User = Depends(get_current_user)) -> User:
    """
    Solo exige que el usuario esté autenticado.
    """
    return current_user


def require_admin(current_user: User = Depends(get_current_user)) -> User:
    """
    Solo permite usuarios con rol ADMIN.
    """
    if current_user.rol != "ADMIN":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="No tienes permiso, se requiere rol ADMIN.",
        )
    return current_user


def require_technician_or_admin(
    current_user: User = Depends(get_current_user),
) -> User:
    """
    Permite TECHNICIAN o ADMIN (los que reciben y liberan equipos).
    """
    if current_user.rol not in ("TECHNICIAN", "ADMIN"):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="No tienes permiso, se requiere rol TECHNICIAN o ADMIN.",
        )
    return current_user
