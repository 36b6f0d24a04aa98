import pytest

from caltrack.models.equipment import Equipment
from caltrack.services.process_range import format_process_req_range, parse_process_req_range


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("10 - 50", ("10", "50")),
        ("0.5 psi - 150 psi", ("0.5 psi", "150 psi")),
        ("10", ("10", None)),
        ("", (None, None)),
        ("   ", (None, None)),
        (None, (None, None)),
    ],
)
def test_parse(raw, expected):
    assert parse_process_req_range(raw) == expected


def test_format():
    assert format_process_req_range(None, None) is None
    assert format_process_req_range("10", None) == "10"
    assert format_process_req_range("10", "50") == "10 - 50"


def test_equipment_accessors_write_single_column():
    equipment = Equipment(serial_number="PR-1", description="Manómetro")
    equipment.process_req_range_start = "0"
    equipment.process_req_range_end = "200"

    assert equipment.process_req_range == "0 - 200"
    assert equipment.process_req_range_start == "0"
    assert equipment.process_req_range_end == "200"
