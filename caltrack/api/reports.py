from datetime import date
from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.orm import Session

from caltrack.db.session import get_db
from caltrack.schemas.report import FilterOptions, ReportFilters, ReportPage
from caltrack.services import reports
from caltrack.services.exports import EXPORT_FORMATS, render_export
from caltrack.core.roles import require_user

router = APIRouter(prefix="/reports", tags=["reports"])


# ---------------------- TABLA DE REPORTES ---------------------- #
@router.get("/", response_model=ReportPage)
def list_reports(
    filters: ReportFilters = Depends(),
    page: int = Query(default=1, ge=1),
    per_page: int = Query(default=15, ge=1, le=200),
    db: Session = Depends(get_db),
    current_user=Depends(require_user),
):
    """
    Entradas con su salida (si existe), filtradas y paginadas.
    """
    rows, total = reports.paginate_report(db, filters, page, per_page)
    last_page = max(1, -(-total // per_page))
    return ReportPage(
        data=rows,
        total=total,
        page=page,
        per_page=per_page,
        last_page=last_page,
    )


# ---------------------- OPCIONES DE FILTROS ---------------------- #
@router.get("/filter-options", response_model=FilterOptions)
def get_filter_options(
    db: Session = Depends(get_db),
    current_user=Depends(require_user),
):
    return reports.filter_options(db)


# ---------------------- EXPORTAR ---------------------- #
@router.get("/export/{fmt}")
def export_reports(
    fmt: str,
    filters: ReportFilters = Depends(),
    db: Session = Depends(get_db),
    current_user=Depends(require_user),
):
    """
    Exporta el reporte completo (sin paginar) en csv, xlsx o pdf.
    """
    if fmt not in EXPORT_FORMATS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Formato de exportación inválido. Usa csv, xlsx o pdf.",
        )

    rows = reports.generate_report(db, filters)
    filename = f"tracking_reports_{date.today():%Y_%m_%d}.{fmt}"
    disposition = "inline" if fmt == "pdf" else "attachment"

    return Response(
        content=render_export(rows, fmt),
        media_type=EXPORT_FORMATS[fmt],
        headers={"Content-Disposition": f'{disposition}; filename="{filename}"'},
    )
