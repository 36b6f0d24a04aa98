from datetime import date, datetime
from typing import Literal
from pydantic import BaseModel, field_validator


class ReportFilters(BaseModel):
    """
    Filtros del reporte. Todos opcionales y combinados con AND.
    Los mismos filtros los usan las exportaciones.
    """
    search: str | None = None
    equipment_name: str | None = None
    recall_number: str | None = None
    status: str | None = None
    technician_id: int | None = None
    location_id: int | None = None
    date_from: date | None = None
    date_to: date | None = None
    sort_by: Literal["date_in", "recall_number", "status", "cal_due_date", "id"] = "date_in"
    sort_direction: Literal["asc", "desc"] = "desc"

    @field_validator("search", "equipment_name", "recall_number", "status", mode="before")
    @classmethod
    def blank_to_none(cls, v):
        # "" en la query string = filtro no aplicado
        if isinstance(v, str) and not v.strip():
            return None
        return v


class PersonRef(BaseModel):
    id: int
    employee_id: str
    name: str


class LocationRef(BaseModel):
    id: int
    name: str


class OutgoingRef(BaseModel):
    id: int
    date_out: datetime
    cal_date: date
    cal_due_date: date
    cycle_time: int
    status: str
    employee_out: PersonRef | None = None


class ReportRow(BaseModel):
    id: int
    recall_number: str | None = None
    equipment_description: str | None = None
    equipment_serial: str | None = None
    equipment_model: str | None = None
    equipment_manufacturer: str | None = None
    status: str
    status_label: str
    date_in: datetime
    due_date: date | None = None
    technician: PersonRef | None = None
    location: LocationRef | None = None
    employee_in: PersonRef | None = None
    outgoing: OutgoingRef | None = None
    notes: str | None = None


class ReportPage(BaseModel):
    data: list[ReportRow]
    total: int
    page: int
    per_page: int
    last_page: int


class FilterOption(BaseModel):
    value: int | str
    label: str


class FilterOptions(BaseModel):
    technicians: list[FilterOption]
    locations: list[FilterOption]
    statuses: list[FilterOption]
