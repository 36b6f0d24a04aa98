import re
from datetime import date, datetime, timedelta

import pytest
from pydantic import ValidationError as PydanticValidationError

from caltrack.core.errors import (
    AlreadyReleased,
    DepartmentMismatch,
    DuplicateSerial,
    NoOpenRecord,
    NotEditable,
    NotFound,
    NotReadyForPickup,
    ValidationFailed,
)
from caltrack.models.equipment import Equipment
from caltrack.models.track_incoming import TrackIncoming
from caltrack.models.tracking_record import TrackingRecord
from caltrack.schemas.employee import (
    CalibrationRequestInput,
    CalibrationRequestUpdate,
    ConfirmPinInput,
    EmployeeCheckInInput,
    EmployeeReleaseInput,
    PickupInput,
)
from caltrack.schemas.tracking import CheckOutInput
from caltrack.services import employee as employee_service
from caltrack.services import lifecycle

MORNING = datetime(2025, 2, 10, 8, 0, 0)


@pytest.fixture()
def owned_equipment(make_equipment, seed):
    return make_equipment(serial="EMP-1", owner=seed.employee)


def _release(seed, equipment, pin="4321"):
    return EmployeeReleaseInput(
        pin=pin,
        equipment_id=equipment.id,
        location_id=seed.lab.id,
        due_date=date(2025, 3, 1),
    )


def _return(seed, equipment, pin="4321"):
    return EmployeeCheckInInput(pin=pin, equipment_id=equipment.id, location_id=seed.lab.id)


# ---------------------- SALIDA / ENTRADA ---------------------- #
def test_release_then_check_in(db, seed, owned_equipment):
    record = employee_service.employee_release(
        db, seed.employee, _release(seed, owned_equipment), now=MORNING
    )

    assert re.match(r"^RCL-250210080000-\d{5}$", record.recall_number)
    assert record.date_out == MORNING
    assert record.employee_id_out == seed.employee.id
    assert record.description == "Calibrador vernier"
    assert record.due_date == date(2025, 3, 1)
    assert record.is_open

    returned = employee_service.employee_check_in(
        db, seed.employee, _return(seed, owned_equipment), now=MORNING + timedelta(hours=5, minutes=30)
    )

    assert returned.id == record.id
    assert returned.date_in == MORNING + timedelta(hours=5, minutes=30)
    assert returned.employee_id_in == seed.employee.id
    assert returned.cycle_time == 5
    assert not returned.is_open


def test_release_twice_is_rejected(db, seed, owned_equipment):
    employee_service.employee_release(db, seed.employee, _release(seed, owned_equipment), now=MORNING)

    with pytest.raises(AlreadyReleased):
        employee_service.employee_release(
            db, seed.employee, _release(seed, owned_equipment), now=MORNING + timedelta(hours=1)
        )

    assert db.query(TrackingRecord).count() == 1


def test_new_release_after_return(db, seed, owned_equipment):
    employee_service.employee_release(db, seed.employee, _release(seed, owned_equipment), now=MORNING)
    employee_service.employee_check_in(
        db, seed.employee, _return(seed, owned_equipment), now=MORNING + timedelta(hours=2)
    )

    employee_service.employee_release(
        db, seed.employee, _release(seed, owned_equipment), now=MORNING + timedelta(days=1)
    )

    assert db.query(TrackingRecord).count() == 2


def test_check_in_without_open_record(db, seed, owned_equipment):
    with pytest.raises(NoOpenRecord):
        employee_service.employee_check_in(db, seed.employee, _return(seed, owned_equipment), now=MORNING)


def test_wrong_pin_writes_nothing(db, seed, owned_equipment):
    with pytest.raises(ValidationFailed) as exc_info:
        employee_service.employee_release(
            db, seed.employee, _release(seed, owned_equipment, pin="0000"), now=MORNING
        )

    assert "pin" in exc_info.value.errors
    assert db.query(TrackingRecord).count() == 0


def test_check_in_of_equipment_owned_by_someone_else(db, seed, make_equipment):
    equipment = make_equipment(serial="TEC-1", owner=seed.technician)
    employee_service.employee_release(db, seed.technician, _release(seed, equipment, pin="1234"), now=MORNING)

    with pytest.raises(ValidationFailed) as exc_info:
        employee_service.employee_check_in(db, seed.employee, _return(seed, equipment), now=MORNING)

    assert "equipment_id" in exc_info.value.errors


def test_pin_falls_back_to_password(db, seed, make_equipment):
    equipment = make_equipment(serial="ADM-1", owner=seed.admin)

    record = employee_service.employee_release(
        db, seed.admin, _release(seed, equipment, pin="secreto123"), now=MORNING
    )

    assert record.employee_id_out == seed.admin.id


# ---------------------- RECOGIDA ---------------------- #
@pytest.fixture()
def released(db, seed, new_check_in):
    incoming = lifecycle.check_in(db, seed.technician, new_check_in(), now=datetime(2025, 1, 1)).incoming
    outcome = lifecycle.check_out(
        db,
        seed.technician,
        incoming.id,
        CheckOutInput(next_cal_due_date=date(2026, 1, 3), description="Calibrado"),
        now=datetime(2025, 1, 3),
    )
    return outcome.outgoing


def test_confirm_pickup(db, seed, released):
    outgoing = employee_service.confirm_pickup(
        db, released.id, PickupInput(employee_id="E-100", pin="4321")
    )

    assert outgoing.status == "completed"
    assert outgoing.employee_id_out == seed.employee.id


def test_pickup_twice_is_rejected(db, seed, released):
    employee_service.confirm_pickup(db, released.id, PickupInput(employee_id="E-100", pin="4321"))

    with pytest.raises(NotReadyForPickup):
        employee_service.confirm_pickup(db, released.id, PickupInput(employee_id="E-100", pin="4321"))


def test_pickup_from_other_department(db, seed, released):
    with pytest.raises(DepartmentMismatch):
        employee_service.confirm_pickup(db, released.id, PickupInput(employee_id="T-002", pin="9999"))

    db.refresh(released)
    assert released.status == "for_pickup"


def test_pickup_with_bad_pin(db, seed, released):
    with pytest.raises(ValidationFailed):
        employee_service.confirm_pickup(db, released.id, PickupInput(employee_id="E-100", pin="1111"))


# ---------------------- SOLICITUD DE CALIBRACIÓN ---------------------- #
def _request(seed, **overrides):
    data = dict(
        technician_id=seed.technician.id,
        location_id=seed.lab.id,
        description="Torquímetro",
        cal_due_date=date(2025, 6, 1),
        serial_number="REQ-1",
        manufacturer="Snap-on",
    )
    data.update(overrides)
    return CalibrationRequestInput(**data)


def test_request_for_new_equipment(db, seed):
    request = employee_service.submit_calibration_request(db, seed.employee, _request(seed), now=MORNING)

    assert request.status == "for_confirmation"
    assert request.employee_id_in == seed.employee.id
    assert request.received_by_id is None
    assert request.date_in == MORNING
    assert request.cal_date is None
    assert request.recall_number

    equipment = request.equipment
    assert equipment.serial_number == "REQ-1"
    assert equipment.owner_id == seed.employee.id
    assert equipment.status == "pending_calibration"
    assert equipment.department_id == seed.metrology.id


def test_request_for_owned_equipment(db, seed, owned_equipment, make_equipment):
    request = employee_service.submit_calibration_request(
        db, seed.employee, _request(seed, equipment_id=owned_equipment.id, serial_number=None)
    )
    assert request.equipment_id == owned_equipment.id
    assert db.query(Equipment).count() == 1

    foreign = make_equipment(serial="AJENO-1", owner=seed.technician)
    with pytest.raises(ValidationFailed) as exc_info:
        employee_service.submit_calibration_request(
            db, seed.employee, _request(seed, equipment_id=foreign.id, serial_number=None)
        )
    assert "equipment_id" in exc_info.value.errors


def test_request_rejections_write_nothing(db, seed, make_equipment):
    make_equipment(serial="REQ-1")

    with pytest.raises(DuplicateSerial):
        employee_service.submit_calibration_request(db, seed.employee, _request(seed))
    with pytest.raises(DepartmentMismatch):
        employee_service.submit_calibration_request(
            db, seed.employee, _request(seed, serial_number="REQ-2", location_id=seed.line.id)
        )

    assert db.query(TrackIncoming).count() == 0
    assert db.query(Equipment).count() == 1


def test_request_needs_equipment_or_serial(seed):
    with pytest.raises(PydanticValidationError):
        _request(seed, serial_number=None)


def test_request_is_editable_only_while_for_confirmation(db, seed):
    request = employee_service.submit_calibration_request(db, seed.employee, _request(seed))

    updated = employee_service.update_calibration_request(
        db,
        seed.employee,
        request.id,
        CalibrationRequestUpdate(description="Torquímetro 1/2", cal_due_date=date(2025, 7, 1)),
    )
    assert updated.description == "Torquímetro 1/2"
    assert updated.equipment.description == "Torquímetro 1/2"
    assert updated.equipment.next_calibration_due == date(2025, 7, 1)

    lifecycle.confirm_request(db, seed.technician, request.id)

    with pytest.raises(NotEditable):
        employee_service.update_calibration_request(
            db, seed.employee, request.id, CalibrationRequestUpdate(notes="otra vez")
        )


def test_request_of_someone_else_is_not_found(db, seed):
    request = employee_service.submit_calibration_request(db, seed.employee, _request(seed))

    with pytest.raises(NotFound):
        employee_service.update_calibration_request(
            db, seed.technician, request.id, CalibrationRequestUpdate(notes="no es mía")
        )


def test_pending_requests(db, seed):
    first = employee_service.submit_calibration_request(db, seed.employee, _request(seed), now=MORNING)
    second = employee_service.submit_calibration_request(
        db, seed.employee, _request(seed, serial_number="REQ-2"), now=MORNING + timedelta(hours=1)
    )
    lifecycle.confirm_request(db, seed.technician, first.id)

    assert [r.id for r in employee_service.pending_requests(db, seed.employee)] == [second.id]
    assert employee_service.pending_requests(db, seed.technician) == []


# ---------------------- CONFIRMAR PIN ---------------------- #
def test_confirm_pin_bypass_for_technician(db, seed):
    employee, bypassed = employee_service.confirm_employee_pin(
        db, seed.technician, ConfirmPinInput(employee_id="E-100")
    )
    assert employee.id == seed.employee.id
    assert bypassed is True


def test_confirm_pin_required_for_employee(db, seed):
    with pytest.raises(ValidationFailed) as exc_info:
        employee_service.confirm_employee_pin(db, seed.employee, ConfirmPinInput(employee_id="E-100"))
    assert "pin" in exc_info.value.errors

    with pytest.raises(ValidationFailed):
        employee_service.confirm_employee_pin(
            db, seed.employee, ConfirmPinInput(employee_id="E-100", pin="0000")
        )

    _, bypassed = employee_service.confirm_employee_pin(
        db, seed.employee, ConfirmPinInput(employee_id="E-100", pin="4321")
    )
    assert bypassed is False


def test_confirm_pin_unknown_employee(db, seed):
    with pytest.raises(NotFound):
        employee_service.confirm_employee_pin(db, seed.admin, ConfirmPinInput(employee_id="X-999"))
