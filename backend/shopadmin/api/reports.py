"""Report endpoint with JSON and CSV output."""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response
from sqlmodel import Session

from .. import models
from ..auth import forbidden, require_permission
from ..database import get_session
from ..permissions import has_permission
from ..reports import REPORT_FORMATS, ReportService
from ..utils.csv_export import rows_to_csv
from ..utils.dates import date_window

router = APIRouter(prefix="/reports", tags=["reports"])


@router.get("")
def get_report(
    type: str = "sales",
    format: str = "json",
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    db: Session = Depends(get_session),
    user: models.User = Depends(require_permission("REPORTS", "READ")),
):
    """Build a report; `format=csv` downloads the rows and needs REPORTS:EXPORT."""
    if format not in REPORT_FORMATS:
        raise HTTPException(status_code=400, detail=f"invalid format; expected one of: {', '.join(REPORT_FORMATS)}")
    if format == "csv" and not has_permission(user.role, "REPORTS", "EXPORT"):
        raise forbidden("REPORTS", "EXPORT")
    start, end = date_window(start_date, end_date)
    svc = ReportService(db)
    try:
        report = svc.build(type, start, end)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if format == "csv":
        filename = f"{type}_report_{svc.now.date().isoformat()}.csv"
        return Response(
            content=rows_to_csv(report["data"]),
            media_type="text/csv",
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )
    return report
