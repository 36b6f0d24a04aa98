from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status
from sqlalchemy.orm import Session

from caltrack.db.session import get_db
from caltrack.schemas.imports import ImportOut
from caltrack.services.imports import IMPORTERS, import_workbook
from caltrack.core.roles import require_admin

router = APIRouter(prefix="/imports", tags=["imports"])


# ------------------ IMPORTAR EXCEL (solo ADMIN) ------------------ #
@router.post("/{kind}", response_model=ImportOut, status_code=status.HTTP_201_CREATED)
def import_file(
    kind: str,
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    current_user=Depends(require_admin),
):
    """
    kind: plants, departments, locations, equipment o users.
    Si alguna fila falla no se importa nada (422 con los errores por fila).
    """
    if kind not in IMPORTERS:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Tipo de importación no soportado: {kind}",
        )

    content = file.file.read()
    result = import_workbook(db, kind, content)
    return ImportOut(kind=result.kind, created=result.created)
