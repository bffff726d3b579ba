from datetime import datetime


def _setup_line(client, auth):
    r = client.post("/machines", json={"machine_code": "inj-01", "name": "Press 1"}, headers=auth)
    assert r.status_code == 201
    machine = r.json()
    r = client.post("/products", json={"name": "Bottle cap"}, headers=auth)
    assert r.status_code == 201
    product = r.json()
    r = client.post(
        "/links",
        json={"product_id": product["id"], "machine_id": machine["id"], "ideal_cycle_time_s": 12},
        headers=auth,
    )
    assert r.status_code == 201
    return machine, product, r.json()


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}


def test_missing_token_is_401_and_bad_token_is_403(client):
    assert client.get("/machines").status_code == 401
    r = client.get("/machines", headers={"Authorization": "Bearer nope"})
    assert r.status_code == 403


def test_catalog_flow(client, auth):
    machine, product, link = _setup_line(client, auth)
    assert machine["machine_code"] == "INJ-01"
    assert product["product_code"] == "PROD001"
    assert link["is_active"] is True

    dup = client.post("/machines", json={"machine_code": "INJ-01", "name": "again"}, headers=auth)
    assert dup.status_code == 409

    r = client.post("/scrap-reasons", json={"name": "Flash", "category": "visual"}, headers=auth)
    assert r.status_code == 201
    assert r.json()["code"] == "FLA01"


def test_order_lifecycle(client, auth):
    _machine, _product, link = _setup_line(client, auth)
    year = datetime.now().year

    r = client.post("/orders", json={"link_id": link["id"], "target_quantity": 10}, headers=auth)
    assert r.status_code == 201
    order = r.json()
    assert order["order_number"] == f"OP{year}0001"

    busy = client.post("/orders", json={"link_id": link["id"], "target_quantity": 5}, headers=auth)
    assert busy.status_code == 409

    bad = client.post("/orders", json={"link_id": link["id"], "target_quantity": 0}, headers=auth)
    assert bad.status_code == 422

    r = client.patch(f"/orders/{order['id']}", json={"produced_quantity": 10}, headers=auth)
    assert r.status_code == 200
    body = r.json()
    assert body["finished"] is True
    assert body["order"]["status"] == "finished"
    assert body["order"]["end_date"] is not None

    r = client.post("/orders", json={"link_id": link["id"], "target_quantity": 5}, headers=auth)
    second = r.json()
    assert second["order_number"] == f"OP{year}0002"

    r = client.post(f"/orders/{second['id']}/cancel", headers=auth)
    assert r.json()["status"] == "cancelled"
    assert client.patch(f"/orders/{second['id']}", json={"notes": "x"}, headers=auth).status_code == 409

    page = client.get("/orders?status=finished", headers=auth).json()
    assert page["total"] == 1
    assert client.get("/orders/99999", headers=auth).status_code == 404


def test_delete_finishes_order(client, auth):
    _machine, _product, link = _setup_line(client, auth)
    order = client.post(
        "/orders", json={"link_id": link["id"], "target_quantity": 10}, headers=auth
    ).json()
    r = client.delete(f"/orders/{order['id']}", headers=auth)
    assert r.status_code == 200
    assert r.json()["status"] == "finished"


def test_orders_are_tenant_isolated(client, auth, session):
    from oee_app.tenancy import create_tenant

    _machine, _product, link = _setup_line(client, auth)
    _other, other_token = create_tenant(session, "Rival")
    other = {"Authorization": f"Bearer {other_token}"}

    r = client.post("/orders", json={"link_id": link["id"], "target_quantity": 10}, headers=other)
    assert r.status_code == 404
    assert client.get("/machines", headers=other).json() == []


def test_inventory_endpoints(client, auth):
    r = client.post(
        "/inventory/items",
        json={"code": "res-pp", "name": "PP", "current_quantity": 50, "min_quantity": 10, "max_quantity": 200},
        headers=auth,
    )
    assert r.status_code == 201
    item = r.json()
    assert item["needs_attention"] is False

    r = client.patch(f"/inventory/items/{item['id']}", json={"current_quantity": 5}, headers=auth)
    assert r.json()["attention_reason"] == "low-stock"
    assert r.json()["max_quantity"] == 200

    attention = client.get("/inventory/items/attention", headers=auth).json()
    assert [i["code"] for i in attention] == ["RES-PP"]

    summary = client.get("/inventory/summary", headers=auth).json()
    assert summary == {"total_items": 1, "needing_attention": 1, "low_stock": 1, "all_ok": False}

    assert client.delete(f"/inventory/items/{item['id']}", headers=auth).status_code == 204
    assert client.get(f"/inventory/items/{item['id']}", headers=auth).status_code == 404


def test_shift_endpoints(client, auth):
    r = client.post(
        "/shifts",
        json={"name": "Night", "start_time": "22:00", "end_time": "06:00", "weekdays": [1, 2]},
        headers=auth,
    )
    assert r.status_code == 201
    shift = r.json()
    assert shift["duration_hours"] == 8.0

    r = client.patch(f"/shifts/{shift['id']}", json={"end_time": "07:30"}, headers=auth)
    assert r.json()["duration_hours"] == 9.5

    bad = client.post(
        "/shifts",
        json={"name": "Bad", "start_time": "8am", "end_time": "16:00", "weekdays": [1]},
        headers=auth,
    )
    assert bad.status_code == 422
    assert client.delete(f"/shifts/{shift['id']}", headers=auth).status_code == 204


def test_events_and_oee(client, auth):
    _setup_line(client, auth)
    start = "2025-05-05T00:00:00"
    end = "2025-05-06T00:00:00"

    for i in range(10):
        r = client.post(
            "/cycles",
            json={
                "machine_code": "INJ-01",
                "source_event_id": f"e{i}",
                "timestamp": f"2025-05-05T08:{i:02d}:00",
                "is_defective": i == 9,
            },
            headers=auth,
        )
        assert r.json()["status"] == "inserted"
    replay = client.post(
        "/cycles",
        json={"machine_code": "INJ-01", "source_event_id": "e0", "timestamp": "2025-05-05T08:00:00"},
        headers=auth,
    )
    assert replay.json()["status"] == "duplicate"

    r = client.post(
        "/stoppages",
        json={"machine_code": "INJ-01", "reason": "jam", "duration_seconds": 3600,
              "timestamp": "2025-05-05T10:00:00Z"},
        headers=auth,
    )
    assert r.status_code == 201
    stop_id = r.json()["id"]
    r = client.post(f"/stoppages/{stop_id}/classify", json={"reason": "Hydraulics"}, headers=auth)
    assert r.json()["classified"] is True

    r = client.post(
        "/scrap",
        json={"machine_code": "INJ-01", "category": "visual", "reason": "Flash",
              "quantity": 2, "severity": "low", "timestamp": "2025-05-05T09:00:00"},
        headers=auth,
    )
    assert r.status_code == 201
    assert client.post(
        "/scrap",
        json={"machine_code": "INJ-01", "category": "visual", "reason": "Flash",
              "quantity": 2, "severity": "extreme"},
        headers=auth,
    ).status_code == 422

    csv_resp = client.get("/scrap/export/csv", headers=auth)
    assert csv_resp.headers["content-type"].startswith("text/csv")
    assert "Flash" in csv_resp.text

    stats = client.get("/production/stats", headers=auth).json()
    assert stats["total_cycles"] == 10
    assert stats["conformity_rate"] == 90.0

    r = client.get(
        "/oee",
        params={"machine_code": "INJ-01", "start": start, "end": end, "hours_per_day": 8},
        headers=auth,
    )
    assert r.status_code == 200
    report = r.json()
    assert report["availability"] == 87.5
    assert report["quality"] == 90.0
    assert report["total_cycles"] == 10
    assert report["scrap_quantity"] == 2
    assert 0 <= report["oee"] <= 100

    assert client.get("/oee", params={"machine_code": "NOPE"}, headers=auth).status_code == 404
    assert client.get("/oee", params={"start": end, "end": start}, headers=auth).status_code == 400


def test_inventory_patch_with_nulls(client, auth):
    item = client.post(
        "/inventory/items",
        json={"code": "res-pe", "name": "PE", "current_quantity": 250, "min_quantity": 10,
              "max_quantity": 200},
        headers=auth,
    ).json()
    assert item["attention_reason"] == "high-stock"

    r = client.patch(f"/inventory/items/{item['id']}", json={"current_quantity": None}, headers=auth)
    assert r.status_code == 200
    assert r.json()["current_quantity"] == 250

    r = client.patch(f"/inventory/items/{item['id']}", json={"max_quantity": None}, headers=auth)
    assert r.status_code == 200
    assert r.json()["max_quantity"] is None
    assert r.json()["needs_attention"] is False

    bad = client.patch(f"/inventory/items/{item['id']}", json={"min_quantity": -1}, headers=auth)
    assert bad.status_code == 422
    bad = client.patch(f"/inventory/items/{item['id']}", json={"status": "gone"}, headers=auth)
    assert bad.status_code == 422


def test_shift_patch_with_nulls(client, auth):
    shift = client.post(
        "/shifts",
        json={"name": "Day", "start_time": "08:00", "end_time": "16:00", "weekdays": [1]},
        headers=auth,
    ).json()

    r = client.patch(f"/shifts/{shift['id']}", json={"end_time": None}, headers=auth)
    assert r.status_code == 200
    assert r.json()["end_time"] == "16:00"
    assert r.json()["duration_hours"] == 8.0

    bad = client.patch(f"/shifts/{shift['id']}", json={"end_time": "24:00"}, headers=auth)
    assert bad.status_code == 422
    bad = client.patch(f"/shifts/{shift['id']}", json={"weekdays": []}, headers=auth)
    assert bad.status_code == 422


def test_order_patch_with_nulls(client, auth):
    _machine, _product, link = _setup_line(client, auth)
    order = client.post(
        "/orders", json={"link_id": link["id"], "target_quantity": 10, "notes": "rush"}, headers=auth
    ).json()

    r = client.patch(f"/orders/{order['id']}", json={"produced_quantity": None}, headers=auth)
    assert r.status_code == 200
    assert r.json()["order"]["produced_quantity"] == 0
    assert r.json()["finished"] is False

    r = client.patch(f"/orders/{order['id']}", json={"notes": None}, headers=auth)
    assert r.json()["order"]["notes"] is None

    bad = client.patch(f"/orders/{order['id']}", json={"target_quantity": 0}, headers=auth)
    assert bad.status_code == 422
    bad = client.patch(f"/orders/{order['id']}", json={"produced_quantity": -2}, headers=auth)
    assert bad.status_code == 422


def test_catalog_edit_and_delete_endpoints(client, auth):
    machine, product, link = _setup_line(client, auth)

    r = client.patch(f"/machines/{machine['id']}", json={"status": "maintenance"}, headers=auth)
    assert r.json()["status"] == "maintenance"
    assert client.patch(
        f"/machines/{machine['id']}", json={"kind": "virtual"}, headers=auth
    ).status_code == 422
    # the link still points at the machine
    assert client.delete(f"/machines/{machine['id']}", headers=auth).status_code == 409

    r = client.patch(f"/products/{product['id']}", json={"name": "Cap v2"}, headers=auth)
    assert r.json()["name"] == "Cap v2"
    assert client.delete(f"/products/{product['id']}", headers=auth).status_code == 204
    assert client.get("/products", headers=auth).json() == []

    r = client.patch(f"/links/{link['id']}", json={"ideal_cycle_time_s": None}, headers=auth)
    assert r.json()["ideal_cycle_time_s"] == 12

    r = client.post("/stop-reasons", json={"name": "Jam", "category": "equipment"}, headers=auth)
    jam = r.json()
    dup = client.post("/stop-reasons", json={"name": "Jam", "category": "process"}, headers=auth)
    assert dup.status_code == 409
    r = client.patch(f"/stop-reasons/{jam['id']}", json={"color": "#112233"}, headers=auth)
    assert r.json()["color"] == "#112233"
    assert client.delete(f"/stop-reasons/{jam['id']}", headers=auth).status_code == 204
    assert client.get("/stop-reasons", headers=auth).json() == []

    r = client.post("/scrap-reasons", json={"name": "Flash", "category": "visual"}, headers=auth)
    flash = r.json()
    r = client.patch(f"/scrap-reasons/{flash['id']}", json={"severity": "high"}, headers=auth)
    assert r.json()["severity"] == "high"
    assert client.delete(f"/scrap-reasons/{flash['id']}", headers=auth).status_code == 204
    assert client.delete("/scrap-reasons/99999", headers=auth).status_code == 404


def test_event_edit_and_delete_endpoints(client, auth):
    _setup_line(client, auth)
    stop = client.post(
        "/stoppages",
        json={"machine_code": "INJ-01", "reason": "jam", "duration_seconds": 600},
        headers=auth,
    ).json()
    r = client.patch(f"/stoppages/{stop['id']}", json={"reason": "Heater"}, headers=auth)
    assert r.json()["classified"] is True
    assert client.patch(
        f"/stoppages/{stop['id']}", json={"duration_seconds": 0}, headers=auth
    ).status_code == 422
    assert client.delete(f"/stoppages/{stop['id']}", headers=auth).status_code == 204
    assert client.get("/stoppages", headers=auth).json() == []

    entry = client.post(
        "/scrap",
        json={"machine_code": "INJ-01", "category": "visual", "reason": "Flash",
              "quantity": 2, "severity": "low"},
        headers=auth,
    ).json()
    r = client.patch(f"/scrap/{entry['id']}", json={"quantity": 4, "severity": None}, headers=auth)
    assert r.json()["quantity"] == 4
    assert r.json()["severity"] == "low"
    assert client.patch(
        f"/scrap/{entry['id']}", json={"machine_code": "NOPE"}, headers=auth
    ).status_code == 404
    assert client.delete(f"/scrap/{entry['id']}", headers=auth).status_code == 204
    assert client.get("/scrap", headers=auth).json() == []
    assert client.delete(f"/scrap/{entry['id']}", headers=auth).status_code == 404


def test_purchase_request_endpoints(client, auth):
    item = client.post(
        "/inventory/items",
        json={"code": "res-pp", "name": "PP", "current_quantity": 5, "min_quantity": 10},
        headers=auth,
    ).json()

    r = client.post(
        "/inventory/purchase-requests",
        json={"item_id": item["id"], "quantity": 200, "priority": "high"},
        headers=auth,
    )
    assert r.status_code == 201
    request = r.json()
    assert request["status"] == "pending"

    assert client.post(
        "/inventory/purchase-requests", json={"item_id": item["id"], "quantity": 0}, headers=auth
    ).status_code == 422
    assert client.post(
        "/inventory/purchase-requests", json={"item_id": 99999, "quantity": 1}, headers=auth
    ).status_code == 404

    r = client.patch(
        f"/inventory/purchase-requests/{request['id']}",
        json={"status": "received", "quantity": None},
        headers=auth,
    )
    assert r.status_code == 200
    assert r.json()["quantity"] == 200
    assert r.json()["received_at"] is not None

    client.post("/inventory/purchase-requests", json={"item_id": item["id"], "quantity": 1}, headers=auth)
    page = client.get("/inventory/purchase-requests", headers=auth).json()
    assert page["total"] == 2
    pending = client.get("/inventory/purchase-requests?status=pending", headers=auth).json()
    assert pending["total"] == 1

    r = client.post("/inventory/purchase-requests/cleanup", headers=auth)
    assert r.json() == {"deleted": 1}
    remaining = pending["data"][0]["id"]
    assert client.delete(f"/inventory/purchase-requests/{remaining}", headers=auth).status_code == 204
    assert client.post("/inventory/purchase-requests/clear", headers=auth).json() == {"deleted": 0}
