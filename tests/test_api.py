from fastapi.testclient import TestClient

from inventory_ledger.models.user import Role
from inventory_ledger.services import auth_service


def _seed(client: TestClient, product, warehouse, quantity: int) -> dict:
    response = client.post(
        "/api/stock/adjust",
        json={
            "productId": product.id,
            "warehouseId": warehouse.id,
            "adjustmentType": "add",
            "quantity": quantity,
            "reason": "Initial stock",
        },
    )
    assert response.status_code == 200, response.text
    return response.json()


def test_health(anon_client: TestClient) -> None:
    assert anon_client.get("/health").json() == {"status": "ok"}


def test_adjust_returns_committed_stock_and_movement(client: TestClient, product, warehouse) -> None:
    _seed(client, product, warehouse, 100)

    response = client.post(
        "/api/stock/adjust",
        json={
            "productId": product.id,
            "warehouseId": warehouse.id,
            "adjustmentType": "subtract",
            "quantity": 30,
            "reason": "Damaged Goods",
            "notes": "crushed pallet",
        },
    )

    assert response.status_code == 200, response.text
    payload = response.json()
    assert payload["message"] == "Stock adjusted successfully"
    assert payload["stock"]["quantity"] == 70
    assert payload["movement"]["quantityBefore"] == 100
    assert payload["movement"]["quantityChange"] == -30
    assert payload["movement"]["quantityAfter"] == 70
    assert payload["movement"]["notes"] == "Damaged Goods: crushed pallet"
    assert payload["movement"]["product"]["sku"] == "COLA-330"


def test_insufficient_stock_error_body(client: TestClient, product, warehouse) -> None:
    _seed(client, product, warehouse, 10)

    response = client.post(
        "/api/stock/adjust",
        json={
            "productId": product.id,
            "warehouseId": warehouse.id,
            "adjustmentType": "subtract",
            "quantity": 50,
            "reason": "Recount",
        },
    )

    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "InsufficientStock"
    assert body["available"] == 10
    assert body["requested"] == 50
    pair = client.get(f"/api/stock/product/{product.id}/warehouse/{warehouse.id}").json()
    assert pair["quantity"] == 10


def test_invalid_body_is_a_validation_error(client: TestClient, product, warehouse) -> None:
    response = client.post(
        "/api/stock/adjust",
        json={
            "productId": product.id,
            "warehouseId": warehouse.id,
            "adjustmentType": "multiply",
            "quantity": -1,
            "reason": "",
        },
    )
    assert response.status_code == 400
    assert response.json()["error"] == "ValidationError"


def test_unknown_product_is_404(client: TestClient, warehouse) -> None:
    response = client.get("/api/stock/product/does-not-exist")
    assert response.status_code == 404
    assert response.json()["error"] == "NotFound"


def test_requests_without_token_are_unauthorized(anon_client: TestClient) -> None:
    response = anon_client.get("/api/movements")
    assert response.status_code == 401
    assert response.json()["error"] == "Unauthorized"


def test_login_then_use_bearer_token(anon_client: TestClient, admin) -> None:
    response = anon_client.post("/api/auth/login", json={"username": "tester", "password": "s3cret"})
    assert response.status_code == 200, response.text
    token = response.json()["token"]

    anon_client.cookies.clear()
    me = anon_client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["displayName"] == "Tester"

    bad = anon_client.post("/api/auth/login", json={"username": "tester", "password": "wrong"})
    assert bad.status_code == 401


def test_transfer_endpoint(client: TestClient, product, warehouse, second_warehouse) -> None:
    _seed(client, product, warehouse, 50)

    response = client.post(
        "/api/stock/transfer",
        json={
            "productId": product.id,
            "fromWarehouseId": warehouse.id,
            "toWarehouseId": second_warehouse.id,
            "quantity": 20,
        },
    )

    assert response.status_code == 200, response.text
    payload = response.json()
    assert payload["sourceQuantityAfter"] == 30
    assert payload["destinationQuantityAfter"] == 20

    movements = client.get("/api/movements", params={"search": payload["transferRef"]}).json()
    assert movements["pagination"]["total"] == 2
    assert {m["referenceNumber"] for m in movements["data"]} == {payload["transferRef"]}

    same = client.post(
        "/api/stock/transfer",
        json={"productId": product.id, "fromWarehouseId": warehouse.id, "toWarehouseId": warehouse.id, "quantity": 1},
    )
    assert same.status_code == 400


def test_batch_endpoint_reports_each_item(client: TestClient, product, warehouse) -> None:
    _seed(client, product, warehouse, 5)
    base = {"productId": product.id, "warehouseId": warehouse.id, "reason": "Recount"}

    response = client.post(
        "/api/stock/adjust/batch",
        json=[
            {**base, "adjustmentType": "subtract", "quantity": 9},
            {**base, "adjustmentType": "add", "quantity": 2},
        ],
    )

    assert response.status_code == 200, response.text
    payload = response.json()
    assert payload["message"] == "Processed 2 adjustments: 1 succeeded, 1 failed"
    assert payload["results"][0]["status"] == "failed"
    assert payload["results"][0]["error"]["kind"] == "InsufficientStock"
    assert payload["results"][1]["quantityAfter"] == 7


def test_break_down_endpoint(client: TestClient, bulk_product, variant, warehouse) -> None:
    _seed(client, bulk_product, warehouse, 10)

    response = client.post(
        f"/api/products/{bulk_product.id}/break-down",
        json={"quantity": 2, "targetVariantId": variant.id},
    )

    assert response.status_code == 200, response.text
    payload = response.json()
    assert payload["bulkQuantityAfter"] == 8
    assert payload["variantQuantityAfter"] == 48
    assert payload["referenceNumber"].startswith("BRK-")


def test_stock_read_is_stable(client: TestClient, product, warehouse) -> None:
    _seed(client, product, warehouse, 12)
    url = f"/api/stock/product/{product.id}/warehouse/{warehouse.id}"

    first = client.get(url).json()
    second = client.get(url).json()

    assert first == second
    assert first["quantity"] == 12


def test_movement_stats_endpoint(client: TestClient, product, warehouse) -> None:
    _seed(client, product, warehouse, 3)

    stats = client.get("/api/movements/stats", params={"period": "week"}).json()
    assert stats["totalAdjustments"] == 1
    assert stats["netChange"] == 3

    assert client.get("/api/movements/stats", params={"period": "year"}).status_code == 400


def test_product_crud_and_money_as_strings(client: TestClient, warehouse) -> None:
    created = client.post(
        "/api/products",
        json={"sku": "TEA-1", "name": "Green Tea", "costPrice": "3.10", "sellingPrice": "4.95", "minStock": 2},
    )
    assert created.status_code == 201, created.text
    product = created.json()
    assert product["sellingPrice"] == "4.95"
    assert product["currentStock"] == 0

    duplicate = client.post("/api/products", json={"sku": "TEA-1", "name": "Again"})
    assert duplicate.status_code == 400

    updated = client.patch(f"/api/products/{product['id']}", json={"name": "Green Tea 500ml"})
    assert updated.json()["name"] == "Green Tea 500ml"

    low = client.get("/api/products/low-stock").json()
    assert [p["sku"] for p in low] == ["TEA-1"]

    listing = client.get("/api/products", params={"search": "tea"}).json()
    assert listing["pagination"]["total"] == 1

    removed = client.delete(f"/api/products/{product['id']}")
    assert removed.json()["isActive"] is False


def test_warehouse_listing_includes_totals(client: TestClient, product, warehouse, second_warehouse) -> None:
    _seed(client, product, warehouse, 8)

    listing = {w["code"]: w for w in client.get("/api/warehouses").json()}
    assert listing["MAIN"]["totalStock"] == 8
    assert listing["MAIN"]["productCount"] == 1
    assert listing["BACK"]["totalStock"] == 0

    assert client.delete(f"/api/warehouses/{warehouse.id}").status_code == 400
    response = client.put(f"/api/warehouses/{second_warehouse.id}/set-default")
    assert response.json()["isDefault"] is True


def test_inventory_report(client: TestClient, product, warehouse) -> None:
    _seed(client, product, warehouse, 4)

    report = client.get("/api/reports/inventory").json()

    assert report["totalProducts"] == 1
    assert report["totalUnits"] == 4
    assert report["totalValue"] == "6.00"
    assert report["lowStock"][0]["sku"] == "COLA-330"
    assert client.get("/api/reports/ledger-check").json() == {"checked": 1, "mismatches": []}


def test_staff_cannot_manage_warehouses(anon_client: TestClient, db) -> None:
    auth_service.create_user(db, "clerk", "pa55word", display_name="Clerk", role=Role.STAFF)
    token = anon_client.post("/api/auth/login", json={"username": "clerk", "password": "pa55word"}).json()["token"]
    anon_client.cookies.clear()
    headers = {"Authorization": f"Bearer {token}"}

    response = anon_client.post("/api/warehouses", json={"code": "NEW", "name": "New Site"}, headers=headers)

    assert response.status_code == 403
    assert response.json()["error"] == "Unauthorized"
    assert anon_client.get("/api/warehouses", headers=headers).json() == []
