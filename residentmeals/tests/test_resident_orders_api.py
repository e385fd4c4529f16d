import pytest
from fastapi.testclient import TestClient

from conftest import WEEK_END, WEEK_START
from residentmeals.api import dependencies
from residentmeals.api.api_run import app
from residentmeals.domain.errors import PaymentError
from residentmeals.infra.Menu_Repository import MenuRepository

ADMIN_HEADERS = {"X-User-Id": "admin-1", "X-User-Role": "admin"}
STAFF_HEADERS = {"X-User-Id": "staff-1", "X-User-Role": "nursing_home_user", "X-Facility-Id": "fac-riverdale"}

ORDER_BODY = {
    "residentId": "res-100",
    "weekStartDate": WEEK_START.isoformat(),
    "weekEndDate": WEEK_END.isoformat(),
    "meals": [
        {"day": "Monday", "mealType": "breakfast",
         "items": [{"id": "bk-eggs-on-bagel"}], "bagelType": "Sesame"},
        {"day": "Monday", "mealType": "lunch",
         "items": [{"id": "ln-salmon-wrap"}, {"id": "ln-side-brown-rice"}]},
    ],
}


@pytest.fixture
def client(lifecycle, data_dir):
    app.dependency_overrides[dependencies.get_lifecycle] = lambda: lifecycle
    app.dependency_overrides[dependencies.get_menu] = lambda: MenuRepository(data_dir / "menu_items.json")
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_menu_lists_active_items_in_display_order(client):
    resp = client.get("/api/nursing-homes/menu", params={"mealType": "dinner"})
    assert resp.status_code == 200, resp.text
    data = resp.json()["data"]
    names = [i["name"] for i in data["items"]]
    assert names == ["White Rice", "Cole Slaw", "Grilled Chicken Cutlets", "Salmon"]
    assert data["count"] == 4
    assert "Rugelach" not in names


def test_ordering_window(client):
    resp = client.get("/api/nursing-homes/resident-orders/ordering-window")
    assert resp.status_code == 200
    assert resp.json()["data"]["weekStartDate"] == WEEK_START.isoformat()


def test_requests_without_identity_are_rejected(client):
    resp = client.post("/api/nursing-homes/resident-orders", json=ORDER_BODY)
    assert resp.status_code == 403
    assert resp.json()["success"] is False


def test_create_update_and_pay(client, gateway):
    resp = client.post("/api/nursing-homes/resident-orders", json=ORDER_BODY, headers=STAFF_HEADERS)
    assert resp.status_code == 201, resp.text
    order = resp.json()["data"]
    assert order["status"] == "draft"
    assert order["total"] == "39.20"
    assert "captureToken" not in order

    resp = client.put(f"/api/nursing-homes/resident-orders/{order['id']}",
                      json={"notes": "Deliver to nurses' station"}, headers=STAFF_HEADERS)
    assert resp.status_code == 200, resp.text
    assert resp.json()["data"]["notes"] == "Deliver to nurses' station"

    url = f"/api/nursing-homes/resident-orders/{order['id']}/submit-and-pay"
    first = client.post(url, json={"paymentMethodId": "pm_card_visa"}, headers=STAFF_HEADERS)
    assert first.status_code == 200, first.text
    body = first.json()
    assert body["message"] == "Order submitted and payment processed successfully"
    assert body["data"]["status"] == "paid"

    second = client.post(url, headers=STAFF_HEADERS)
    assert second.status_code == 200
    assert second.json()["message"] == "Order already paid"
    assert second.json()["data"]["receipt"] == body["data"]["receipt"]
    assert len(gateway.captures) == 1

    resp = client.get("/api/nursing-homes/resident-orders", headers=STAFF_HEADERS)
    assert resp.json()["pagination"]["total"] == 1
    assert resp.json()["data"][0]["paymentStatus"] == "paid"


def test_invalid_meal_is_a_400(client):
    body = dict(ORDER_BODY, meals=[{"day": "Funday", "mealType": "lunch", "items": [{"id": "ln-salmon-wrap"}]}])
    resp = client.post("/api/nursing-homes/resident-orders", json=body, headers=ADMIN_HEADERS)
    assert resp.status_code == 400
    assert resp.json()["error"] == "Validation failed"


def test_too_many_items_is_a_400(client):
    meal = {"day": "Monday", "mealType": "lunch", "items": [{"id": "ln-salmon-wrap"}] * 11}
    resp = client.post("/api/nursing-homes/resident-orders", json=dict(ORDER_BODY, meals=[meal]),
                       headers=ADMIN_HEADERS)
    assert resp.status_code == 400


def test_declined_payment_is_a_402(client, gateway):
    order = client.post("/api/nursing-homes/resident-orders", json=ORDER_BODY, headers=ADMIN_HEADERS).json()["data"]
    gateway.outcome = PaymentError("Your card was declined.", code="card_declined")
    resp = client.post(f"/api/nursing-homes/resident-orders/{order['id']}/submit-and-pay", headers=ADMIN_HEADERS)
    assert resp.status_code == 402
    body = resp.json()
    assert body["error"] == "Payment failed"
    assert body["message"] == "Your card was declined."
    assert body["code"] == "card_declined"


def test_unassigned_resident_is_forbidden(client):
    resp = client.post("/api/nursing-homes/resident-orders", json=dict(ORDER_BODY, residentId="res-101"),
                       headers=STAFF_HEADERS)
    assert resp.status_code == 403


def test_missing_order_is_a_404(client):
    resp = client.get("/api/nursing-homes/resident-orders/nope", headers=ADMIN_HEADERS)
    assert resp.status_code == 404


def test_csv_export(client):
    order = client.post("/api/nursing-homes/resident-orders", json=ORDER_BODY, headers=ADMIN_HEADERS).json()["data"]
    resp = client.get(f"/api/nursing-homes/resident-orders/{order['id']}/export", headers=ADMIN_HEADERS)
    assert resp.status_code == 200
    assert order["orderNumber"] in resp.headers["content-disposition"]
    # Excel-readable CSV in place of an XLSX workbook
    assert resp.headers["content-type"].startswith("text/csv")
    assert resp.headers["content-disposition"].endswith('.csv"')
    assert resp.content.startswith(b"\xef\xbb\xbf")
    text = resp.content.decode("utf-8-sig")
    assert "Weekly Meal Order" in text
    assert "2 Eggs on Bagel" in text
    assert "Sesame" in text


def test_pdf_export(client):
    order = client.post("/api/nursing-homes/resident-orders", json=ORDER_BODY, headers=ADMIN_HEADERS).json()["data"]
    resp = client.get(f"/api/nursing-homes/resident-orders/{order['id']}/export",
                      params={"format": "pdf"}, headers=ADMIN_HEADERS)
    assert resp.status_code == 200
    assert resp.headers["content-type"] == "application/pdf"
    assert resp.content.startswith(b"%PDF")
