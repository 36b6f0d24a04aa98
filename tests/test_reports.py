from datetime import date, datetime

import pytest

from caltrack.models.track_incoming import TrackIncoming
from caltrack.schemas.report import ReportFilters
from caltrack.schemas.tracking import CheckOutInput
from caltrack.services import lifecycle
from caltrack.services.reports import filter_options, generate_report, paginate_report, status_label


@pytest.fixture()
def history(db, seed, new_check_in):
    """
    Tres equipos: uno liberado (con su siguiente ciclo abierto) y dos recibidos.
    """
    first = lifecycle.check_in(
        db, seed.technician, new_check_in(serial="SN-001"), now=datetime(2025, 1, 1, 9, 0)
    ).incoming
    lifecycle.check_out(
        db,
        seed.technician,
        first.id,
        CheckOutInput(next_cal_due_date=date(2026, 1, 3), description="Multímetro digital"),
        now=datetime(2025, 1, 3, 9, 0),
    )
    lifecycle.check_in(
        db,
        seed.technician,
        new_check_in(serial="PG-200", description="Manómetro", manufacturer="Ashcroft"),
        now=datetime(2025, 1, 10, 15, 0),
    )
    lifecycle.check_in(
        db,
        seed.technician,
        new_check_in(serial="TH-300", description="Termómetro", manufacturer="Omega"),
        now=datetime(2025, 2, 1, 8, 0),
    )
    return first


def test_status_label():
    assert status_label("pending_calibration") == "Pending Calibration"
    assert status_label("for_pickup") == "For Pickup"
    assert status_label("received") == "Received"
    assert status_label(None) == ""


def test_report_includes_outgoing_data(db, history):
    rows = generate_report(db)

    assert len(rows) == 4
    closed = next(row for row in rows if row.id == history.id)
    assert closed.status == "completed"
    assert closed.status_label == "Completed"
    assert closed.outgoing is not None
    assert closed.outgoing.cycle_time == 48
    assert closed.outgoing.status == "for_pickup"
    assert closed.equipment_serial == "SN-001"
    assert closed.technician.name == "Ana Ruiz"
    assert closed.location.name == "Laboratorio A"


def test_default_sort_is_newest_first(db, history):
    rows = generate_report(db)
    dates = [row.date_in for row in rows]
    assert dates == sorted(dates, reverse=True)


def test_sort_ascending_by_recall_number(db, history):
    rows = generate_report(db, ReportFilters(sort_by="recall_number", sort_direction="asc"))
    recalls = [row.recall_number for row in rows]
    assert recalls == sorted(recalls)


def test_search_matches_equipment_fields(db, history):
    rows = generate_report(db, ReportFilters(search="ashcroft"))
    assert [row.equipment_serial for row in rows] == ["PG-200"]

    rows = generate_report(db, ReportFilters(search="SN-00"))
    assert {row.equipment_serial for row in rows} == {"SN-001"}
    assert len(rows) == 2


def test_status_and_equipment_name_filters(db, history):
    rows = generate_report(db, ReportFilters(status="pending_calibration"))
    assert len(rows) == 1
    assert rows[0].equipment_serial == "SN-001"

    rows = generate_report(db, ReportFilters(equipment_name="termó"))
    assert [row.equipment_serial for row in rows] == ["TH-300"]


def test_date_to_covers_the_whole_day(db, history):
    rows = generate_report(
        db, ReportFilters(date_from=date(2025, 1, 10), date_to=date(2025, 1, 10))
    )
    assert [row.equipment_serial for row in rows] == ["PG-200"]


def test_blank_filters_are_ignored(db, history):
    filters = ReportFilters(search="  ", status="", recall_number="")
    assert len(generate_report(db, filters)) == 4


def test_search_wildcards_are_literal(db, history):
    assert generate_report(db, ReportFilters(search="_")) == []
    assert generate_report(db, ReportFilters(search="%")) == []
    assert generate_report(db, ReportFilters(search="\\")) == []


def test_search_finds_underscore_serial_only(db, seed, new_check_in, history):
    lifecycle.check_in(
        db, seed.technician, new_check_in(serial="PG_201"), now=datetime(2025, 3, 1, 8, 0)
    )

    rows = generate_report(db, ReportFilters(search="PG_2"))
    assert [row.equipment_serial for row in rows] == ["PG_201"]

    rows = generate_report(db, ReportFilters(recall_number="%"))
    assert rows == []


def test_report_is_repeatable(db, history):
    filters = ReportFilters(search="SN-001")
    assert generate_report(db, filters) == generate_report(db, filters)


def test_pagination(db, history):
    rows, total = paginate_report(db, ReportFilters(sort_by="id", sort_direction="asc"), 2, 3)
    assert total == 4
    assert len(rows) == 1
    assert rows[0].id == max(r.id for r in generate_report(db))


def test_record_fields_used_without_equipment(db, seed):
    db.add(
        TrackIncoming(
            recall_number="LEGACY1",
            technician_id=seed.technician.id,
            location_id=seed.lab.id,
            employee_id_in=seed.technician.id,
            description="Equipo histórico",
            serial_number="OLD-77",
            model="X1",
            manufacturer="Acme",
            cal_due_date=date(2024, 6, 1),
            date_in=datetime(2024, 1, 1),
            status="received",
        )
    )
    db.commit()

    [row] = generate_report(db)
    assert row.equipment_serial == "OLD-77"
    assert row.equipment_description == "Equipo histórico"
    assert row.equipment_manufacturer == "Acme"
    assert row.outgoing is None


def test_filter_options(db, seed, history):
    options = filter_options(db)

    assert [o.label for o in options.technicians] == ["Ana Ruiz"]
    assert [o.label for o in options.locations] == ["Laboratorio A"]
    assert [o.value for o in options.statuses] == [
        "for_confirmation",
        "received",
        "pending_calibration",
        "completed",
    ]
