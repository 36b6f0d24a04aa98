from caltrack.models.track_incoming import TrackIncoming


def _check_in_json(seed, **overrides):
    data = {
        "is_new_registration": True,
        "serial_number": "API-001",
        "manufacturer": "Fluke",
        "model": "87V",
        "description": "Multímetro digital",
        "technician_id": seed.technician.id,
        "location_id": seed.lab.id,
        "department_id": seed.metrology.id,
        "cal_date": "2025-01-01",
        "cal_due_date": "2025-12-31",
    }
    data.update(overrides)
    return data


def _check_out_json(**overrides):
    data = {"next_cal_due_date": "2099-01-01", "description": "Calibrado"}
    data.update(overrides)
    return data


def test_root(client):
    assert client.get("/").status_code == 200


# ---------------------- CHECK-IN ---------------------- #
def test_check_in_created(client, seed):
    res = client.post("/tracking/incoming", json=_check_in_json(seed))

    assert res.status_code == 201
    body = res.json()
    assert body["message"] == "Equipo nuevo registrado y recibido correctamente."
    assert body["equipment"]["serial_number"] == "API-001"
    assert body["incoming"]["status"] == "received"
    assert body["incoming"]["cycle_time"] == 0
    assert body["incoming"]["date_out"] is None


def test_check_in_department_mismatch(client, seed, acting_user, db):
    acting_user["user"] = seed.other_technician

    res = client.post("/tracking/incoming", json=_check_in_json(seed))

    assert res.status_code == 403
    assert res.json()["error"] == "department_mismatch"
    assert db.query(TrackIncoming).count() == 0


def test_check_in_duplicate_serial(client, seed):
    assert client.post("/tracking/incoming", json=_check_in_json(seed)).status_code == 201

    res = client.post("/tracking/incoming", json=_check_in_json(seed))

    assert res.status_code == 409
    body = res.json()
    assert body["error"] == "duplicate_serial"
    assert "serial_number" in body["errors"]


def test_check_in_invalid_dates(client, seed):
    res = client.post(
        "/tracking/incoming",
        json=_check_in_json(seed, cal_date="2025-06-01", cal_due_date="2025-01-01"),
    )
    assert res.status_code == 422


def test_check_in_unknown_location(client, seed):
    res = client.post("/tracking/incoming", json=_check_in_json(seed, location_id=999))

    assert res.status_code == 422
    assert "location_id" in res.json()["errors"]


def test_employee_role_cannot_check_in(client, seed, acting_user):
    acting_user["user"] = seed.employee

    res = client.post("/tracking/incoming", json=_check_in_json(seed))
    assert res.status_code == 403


# ---------------------- CHECK-OUT ---------------------- #
def test_check_out_then_conflict(client, seed):
    incoming_id = client.post("/tracking/incoming", json=_check_in_json(seed)).json()["incoming"]["id"]

    res = client.post(f"/tracking/incoming/{incoming_id}/check-out", json=_check_out_json())
    assert res.status_code == 200
    body = res.json()
    assert body["closed"]["status"] == "completed"
    assert body["closed"]["outgoing"]["status"] == "for_pickup"
    assert body["next_incoming"]["status"] == "pending_calibration"
    assert body["cycle_time_hours"] >= 0

    again = client.post(f"/tracking/incoming/{incoming_id}/check-out", json=_check_out_json())
    assert again.status_code == 409
    assert again.json()["error"] == "already_released"


def test_check_out_past_due_date(client, seed):
    incoming_id = client.post("/tracking/incoming", json=_check_in_json(seed)).json()["incoming"]["id"]

    res = client.post(
        f"/tracking/incoming/{incoming_id}/check-out",
        json=_check_out_json(next_cal_due_date="2000-01-01"),
    )
    assert res.status_code == 422
    assert "next_cal_due_date" in res.json()["errors"]


def test_check_out_missing_record(client):
    res = client.post("/tracking/incoming/999/check-out", json=_check_out_json())
    assert res.status_code == 404


def test_list_open_incoming(client, seed):
    incoming_id = client.post("/tracking/incoming", json=_check_in_json(seed)).json()["incoming"]["id"]
    client.post(f"/tracking/incoming/{incoming_id}/check-out", json=_check_out_json())

    open_rows = client.get("/tracking/incoming", params={"open_only": True}).json()
    assert [row["status"] for row in open_rows] == ["pending_calibration"]


def test_archive_requires_admin(client, seed, acting_user):
    incoming_id = client.post("/tracking/incoming", json=_check_in_json(seed)).json()["incoming"]["id"]

    assert client.delete(f"/tracking/incoming/{incoming_id}").status_code == 403

    acting_user["user"] = seed.admin
    assert client.delete(f"/tracking/incoming/{incoming_id}").status_code == 204
    assert client.get(f"/tracking/incoming/{incoming_id}").status_code == 404
    assert client.post(f"/tracking/incoming/{incoming_id}/restore").status_code == 200


# ---------------------- EMPLEADO ---------------------- #
def test_employee_release_with_bad_pin(client, seed, acting_user, make_equipment):
    equipment = make_equipment(serial="EMP-9", owner=seed.employee)
    acting_user["user"] = seed.employee

    res = client.post(
        "/employee/release",
        json={"pin": "0000", "equipment_id": equipment.id, "location_id": seed.lab.id},
    )
    assert res.status_code == 422
    assert "pin" in res.json()["errors"]

    res = client.post(
        "/employee/release",
        json={"pin": "4321", "equipment_id": equipment.id, "location_id": seed.lab.id},
    )
    assert res.status_code == 201
    assert res.json()["recall_number"].startswith("RCL-")

    assert len(client.get("/employee/records").json()) == 1


# ---------------------- REPORTES ---------------------- #
def test_reports_page_and_exports(client, seed):
    client.post("/tracking/incoming", json=_check_in_json(seed))

    page = client.get("/reports/", params={"search": "API-001"}).json()
    assert page["total"] == 1
    assert page["last_page"] == 1
    assert page["data"][0]["status_label"] == "Received"

    csv_res = client.get("/reports/export/csv")
    assert csv_res.status_code == 200
    assert csv_res.headers["content-type"].startswith("text/csv")
    assert "attachment" in csv_res.headers["content-disposition"]

    pdf_res = client.get("/reports/export/pdf")
    assert pdf_res.status_code == 200
    assert pdf_res.headers["content-disposition"].startswith("inline")

    assert client.get("/reports/export/docx").status_code == 400


def test_metrics(client, seed):
    client.post("/tracking/incoming", json=_check_in_json(seed))

    assert client.get("/metrics/incoming-by-status").json() == {"received": 1}
    dashboard = client.get("/metrics/dashboard").json()
    assert dashboard["total_equipment"] == 1
    assert dashboard["active_requests"] == 1


# ---------------------- EQUIPOS / USUARIOS ---------------------- #
def test_patch_equipment_rejects_explicit_null(client, make_equipment, db):
    equipment = make_equipment(serial="NUL-1")

    for field in ("serial_number", "description", "status"):
        res = client.patch(f"/equipment/{equipment.id}", json={field: None})
        assert res.status_code == 422, field

    db.refresh(equipment)
    assert equipment.serial_number == "NUL-1"
    assert equipment.description == "Calibrador vernier"
    assert equipment.status == "active"


def test_patch_equipment_omitted_fields_are_kept(client, make_equipment):
    equipment = make_equipment(serial="NUL-2")

    res = client.patch(f"/equipment/{equipment.id}", json={"model": None, "status": "Inactive"})

    assert res.status_code == 200
    body = res.json()
    assert body["model"] is None
    assert body["status"] == "inactive"
    assert body["serial_number"] == "NUL-2"


def test_patch_user_rejects_null_name(client, seed, acting_user):
    acting_user["user"] = seed.admin

    res = client.patch(f"/users/{seed.employee.id}", json={"first_name": None})
    assert res.status_code == 422


# ---------------------- SOLICITUDES DEL EMPLEADO ---------------------- #
def _request_json(seed, **overrides):
    data = {
        "technician_id": seed.technician.id,
        "location_id": seed.lab.id,
        "description": "Pie de rey",
        "cal_due_date": "2025-09-01",
        "serial_number": "REQ-API",
    }
    data.update(overrides)
    return data


def test_employee_request_flow(client, seed, acting_user):
    acting_user["user"] = seed.employee
    res = client.post("/employee/requests", json=_request_json(seed))
    assert res.status_code == 201
    request_id = res.json()["id"]
    assert res.json()["status"] == "for_confirmation"

    res = client.patch(f"/employee/requests/{request_id}", json={"notes": "Urgente"})
    assert res.status_code == 200
    assert [r["id"] for r in client.get("/employee/requests/pending").json()] == [request_id]

    # un empleado no puede confirmar
    assert client.post(f"/tracking/incoming/{request_id}/confirm", json={}).status_code == 403

    acting_user["user"] = seed.other_technician
    res = client.post(f"/tracking/incoming/{request_id}/confirm", json={})
    assert res.status_code == 403
    assert res.json()["error"] == "not_assigned"

    acting_user["user"] = seed.technician
    res = client.post(f"/tracking/incoming/{request_id}/check-out", json=_check_out_json())
    assert res.status_code == 409
    assert res.json()["error"] == "request_not_confirmed"

    res = client.post(f"/tracking/incoming/{request_id}/confirm", json={})
    assert res.status_code == 200
    assert res.json()["status"] == "pending_calibration"

    acting_user["user"] = seed.employee
    res = client.patch(f"/employee/requests/{request_id}", json={"notes": "tarde"})
    assert res.status_code == 409
    assert res.json()["error"] == "not_editable"
    assert client.get("/employee/requests/pending").json() == []


def test_edit_incoming_endpoint_confirms(client, seed, acting_user):
    acting_user["user"] = seed.employee
    request_id = client.post("/employee/requests", json=_request_json(seed)).json()["id"]

    acting_user["user"] = seed.technician
    assert client.patch(f"/tracking/incoming/{request_id}", json={"notes": "x"}).status_code == 409

    res = client.patch(
        f"/tracking/incoming/{request_id}",
        json={"confirm": True, "cal_date": "2025-01-05", "description": None},
    )
    assert res.status_code == 422

    res = client.patch(f"/tracking/incoming/{request_id}", json={"confirm": True, "cal_date": "2025-01-05"})
    assert res.status_code == 200
    assert res.json()["status"] == "pending_calibration"
    assert res.json()["cal_date"] == "2025-01-05"


def test_confirm_pin_endpoint(client, seed, acting_user):
    res = client.post("/employee/confirm-pin", json={"employee_id": "E-100"})
    assert res.status_code == 200
    assert res.json()["bypassed_pin"] is True
    assert res.json()["employee"]["full_name"] == "Marta Soto"

    acting_user["user"] = seed.employee
    res = client.post("/employee/confirm-pin", json={"employee_id": "E-100", "pin": "1111"})
    assert res.status_code == 422
    assert "pin" in res.json()["errors"]

    res = client.post("/employee/confirm-pin", json={"employee_id": "E-100", "pin": "4321"})
    assert res.json()["bypassed_pin"] is False

    assert client.post("/employee/confirm-pin", json={"employee_id": "NADIE"}).status_code == 404


def test_check_in_with_unsupported_recall_format(client, seed):
    res = client.post("/tracking/incoming", json=_check_in_json(seed, recall_number="RCL-1"))
    assert res.status_code == 422
