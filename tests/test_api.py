from decimal import Decimal


async def _create_structure(client, school, headers, installment_type="MONTHLY", amount="12000.00"):
    resp = await client.post(
        "/api/v1/fee-structures",
        json={
            "name": "Grade 5 Fees",
            "class_id": str(school.school_class.id),
            "academic_year_id": str(school.academic_year.id),
            "installment_type": installment_type,
            "items": [{"fee_type_id": str(school.tuition.id), "amount": amount}],
        },
        headers=headers,
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


async def test_requires_bearer_token(client, school):
    resp = await client.get("/api/v1/fee-types")
    assert resp.status_code == 401

    bad = await client.get("/api/v1/fee-types", headers={"Authorization": "Bearer not-a-jwt"})
    assert bad.status_code == 401


async def test_permission_is_checked_for_non_admin_roles(client, school, make_token):
    token = make_token(school.admin.id, school.tenant_id, role="ACCOUNTANT", permissions={"fees": {"read": True}})
    headers = {"Authorization": f"Bearer {token}"}

    assert (await client.get("/api/v1/fee-types", headers=headers)).status_code == 200
    resp = await client.post("/api/v1/fee-types", json={"name": "Lab"}, headers=headers)
    assert resp.status_code == 403


async def test_fee_type_endpoints(client, school, auth_headers):
    resp = await client.post("/api/v1/fee-types", json={"name": "Exam", "code": "exam"}, headers=auth_headers)
    assert resp.status_code == 201
    fee_type = resp.json()
    assert fee_type["code"] == "EXAM"

    dup = await client.post("/api/v1/fee-types", json={"name": "Exam"}, headers=auth_headers)
    assert dup.status_code == 409

    listed = await client.get("/api/v1/fee-types", headers=auth_headers)
    assert {ft["name"] for ft in listed.json()} == {"Exam", "Transport", "Tuition"}

    patched = await client.patch(
        f"/api/v1/fee-types/{fee_type['id']}", json={"is_active": False}, headers=auth_headers
    )
    assert patched.json()["is_active"] is False

    deleted = await client.delete(f"/api/v1/fee-types/{fee_type['id']}", headers=auth_headers)
    assert deleted.status_code == 204
    missing = await client.get(f"/api/v1/fee-types/{fee_type['id']}", headers=auth_headers)
    assert missing.status_code == 404


async def test_structure_endpoints(client, school, auth_headers):
    fs = await _create_structure(client, school, auth_headers, installment_type="QUARTERLY", amount="10000")
    assert Decimal(fs["total_amount"]) == Decimal("10000")
    assert len(fs["installments"]) == 4

    got = await client.get(f"/api/v1/fee-structures/{fs['id']}", headers=auth_headers)
    assert got.status_code == 200
    assert got.json()["items"][0]["fee_type_name"] == "Tuition"

    bad = await client.post(
        "/api/v1/fee-structures",
        json={
            "name": "Bad",
            "academic_year_id": str(school.academic_year.id),
            "installment_type": "WEEKLY",
            "items": [{"fee_type_id": str(school.tuition.id), "amount": "100"}],
        },
        headers=auth_headers,
    )
    assert bad.status_code == 422

    inst_id = fs["installments"][0]["id"]
    moved = await client.patch(
        f"/api/v1/fee-structures/installments/{inst_id}",
        json={"due_date": "2025-05-31"},
        headers=auth_headers,
    )
    assert moved.status_code == 200
    assert moved.json()["due_date"] == "2025-05-31"


async def test_payment_flow_over_http(client, school, auth_headers):
    fs = await _create_structure(client, school, auth_headers)
    assigned = await client.post(
        "/api/v1/fees/assign",
        json={"student_id": str(school.students[0].id), "fee_structure_id": fs["id"]},
        headers=auth_headers,
    )
    assert assigned.status_code == 201, assigned.text
    sf = assigned.json()
    assert sf["status"] == "PENDING"

    again = await client.post(
        "/api/v1/fees/assign",
        json={"student_id": str(school.students[0].id), "fee_structure_id": fs["id"]},
        headers=auth_headers,
    )
    assert again.status_code == 409

    paid = await client.post(
        "/api/v1/fees/payments",
        json={"student_fee_id": sf["id"], "amount": "1000.00", "payment_mode": "CASH"},
        headers=auth_headers,
    )
    assert paid.status_code == 201, paid.text
    body = paid.json()
    receipt = body["receipt"]
    assert receipt["receipt_number"].startswith("RCP")
    assert body["student_fee"]["status"] == "PARTIAL"
    assert body["payment"]["collected_by"] == str(school.admin.id)

    over = await client.post(
        "/api/v1/fees/payments",
        json={"student_fee_id": sf["id"], "amount": "11000.01", "payment_mode": "UPI"},
        headers=auth_headers,
    )
    assert over.status_code == 409

    zero = await client.post(
        "/api/v1/fees/payments",
        json={"student_fee_id": sf["id"], "amount": "0", "payment_mode": "CASH"},
        headers=auth_headers,
    )
    assert zero.status_code == 422

    discount = await client.post(
        "/api/v1/fees/discounts",
        json={"student_fee_id": sf["id"], "discount_type": "MERIT", "percentage": "10", "reason": "Topper"},
        headers=auth_headers,
    )
    assert discount.status_code == 201
    assert Decimal(discount.json()["amount"]) == Decimal("1200")

    detail = await client.get(f"/api/v1/fees/student-fees/{sf['id']}", headers=auth_headers)
    assert detail.status_code == 200
    d = detail.json()
    assert Decimal(d["outstanding_amount"]) == Decimal("9800")
    assert len(d["installments"]) == 12
    assert len(d["payments"]) == 1

    verified = await client.patch(
        f"/api/v1/fees/payments/{body['payment']['id']}/verify", json={}, headers=auth_headers
    )
    assert verified.status_code == 200
    assert verified.json()["is_verified"] is True

    by_number = await client.get(
        f"/api/v1/fees/receipts/by-number/{receipt['receipt_number']}", headers=auth_headers
    )
    assert by_number.json()["id"] == receipt["id"]

    cancel = await client.post(
        f"/api/v1/fees/receipts/{receipt['id']}/cancel",
        json={"cancel_reason": "Wrong student"},
        headers=auth_headers,
    )
    assert cancel.status_code == 200
    assert cancel.json()["is_cancelled"] is True
    twice = await client.post(
        f"/api/v1/fees/receipts/{receipt['id']}/cancel",
        json={"cancel_reason": "Wrong student"},
        headers=auth_headers,
    )
    assert twice.status_code == 409

    removed = await client.delete(f"/api/v1/fees/discounts/{discount.json()['id']}", headers=auth_headers)
    assert removed.status_code == 200
    assert removed.json()["is_active"] is False

    listing = await client.get(
        "/api/v1/fees/student-fees", params={"status": "PENDING"}, headers=auth_headers
    )
    page = listing.json()
    assert page["total"] == 1
    assert Decimal(page["data"][0]["outstanding_amount"]) == Decimal("12000")

    payments = await client.get("/api/v1/fees/payments", params={"student_fee_id": sf["id"]}, headers=auth_headers)
    assert payments.json()["total"] == 1
    assert payments.json()["data"][0]["receipt"]["is_cancelled"] is True


async def test_bulk_assign_endpoint(client, school, auth_headers):
    fs = await _create_structure(client, school, auth_headers, installment_type="ANNUAL", amount="5000")
    payload = {"student_ids": [str(s.id) for s in school.students], "fee_structure_id": fs["id"]}
    first = await client.post("/api/v1/fees/assign/bulk", json=payload, headers=auth_headers)
    assert first.json() == {"assigned": 3, "skipped": 0, "total": 3}
    second = await client.post("/api/v1/fees/assign/bulk", json=payload, headers=auth_headers)
    assert second.json() == {"assigned": 0, "skipped": 3, "total": 3}


async def test_other_tenant_sees_nothing(client, school, other_school, auth_headers, make_token):
    fs = await _create_structure(client, school, auth_headers)
    other_headers = {"Authorization": f"Bearer {make_token(other_school.admin.id, other_school.tenant_id)}"}
    resp = await client.get(f"/api/v1/fee-structures/{fs['id']}", headers=other_headers)
    assert resp.status_code == 404
    assert resp.json()["detail"] == "Fee structure not found"


async def test_reminder_endpoints(client, school, auth_headers):
    created = await client.post(
        "/api/v1/fees/reminders",
        json={"reminder_type": "BEFORE_DUE", "days_before": 3, "message": "Installment due in 3 days"},
        headers=auth_headers,
    )
    assert created.status_code == 201, created.text
    reminder = created.json()
    assert reminder["send_email"] is True

    bad = await client.post(
        "/api/v1/fees/reminders",
        json={"reminder_type": "BEFORE_DUE", "days_before": -1, "message": "x"},
        headers=auth_headers,
    )
    assert bad.status_code == 422

    listed = await client.get("/api/v1/fees/reminders", headers=auth_headers)
    assert [r["id"] for r in listed.json()] == [reminder["id"]]

    patched = await client.patch(
        f"/api/v1/fees/reminders/{reminder['id']}", json={"send_sms": True}, headers=auth_headers
    )
    assert patched.json()["send_sms"] is True

    students = await client.get(
        "/api/v1/fees/reminders/students",
        params={"reminder_type": "ON_DUE", "days_before": 0},
        headers=auth_headers,
    )
    assert students.status_code == 200
    assert students.json() == []
    by_rule = await client.get(f"/api/v1/fees/reminders/{reminder['id']}/students", headers=auth_headers)
    assert by_rule.status_code == 200

    deleted = await client.delete(f"/api/v1/fees/reminders/{reminder['id']}", headers=auth_headers)
    assert deleted.status_code == 204
    missing = await client.get(f"/api/v1/fees/reminders/{reminder['id']}", headers=auth_headers)
    assert missing.status_code == 404
