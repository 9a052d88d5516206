"""Per-account cart operations."""
from bson import ObjectId

import carts


def lines(response):
    return {it["product_id"]: it["quantity"] for it in response.json()["data"]["items"]}


def test_get_cart_creates_empty_cart(client, shopper, db):
    user, headers = shopper
    resp = client.get("/cart", headers=headers)
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["items"] == []
    assert data["item_count"] == 0
    assert data["user_id"] == str(user["_id"])

    client.get("/cart", headers=headers)
    assert db["cart"].count_documents({"user_id": str(user["_id"])}) == 1


def test_cart_requires_authentication(client):
    resp = client.get("/cart")
    assert resp.status_code == 401
    assert resp.json()["success"] is False


def test_adding_same_product_twice_sums_quantity(client, shopper, make_product):
    _, headers = shopper
    pid = make_product(price=250)
    client.post("/cart/add", json={"product_id": pid, "quantity": 2}, headers=headers)
    resp = client.post("/cart/add", json={"product_id": pid, "quantity": 3}, headers=headers)
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert lines(resp) == {pid: 5}
    assert data["item_count"] == 5
    assert data["subtotal"] == 1250
    assert data["items"][0]["product"]["name"] == "Test Watch"


def test_add_rejects_inactive_or_unknown_product(client, shopper, make_product):
    _, headers = shopper
    pid = make_product(is_active=False)
    assert client.post("/cart/add", json={"product_id": pid}, headers=headers).status_code == 404
    missing = str(ObjectId())
    assert client.post("/cart/add", json={"product_id": missing}, headers=headers).status_code == 404


def test_add_rejects_zero_quantity(client, shopper, make_product):
    _, headers = shopper
    pid = make_product()
    assert client.post("/cart/add", json={"product_id": pid, "quantity": 0}, headers=headers).status_code == 400


def test_update_sets_quantity_and_zero_removes(client, shopper, make_product):
    _, headers = shopper
    a = make_product(name="A")
    b = make_product(name="B")
    client.post("/cart/add", json={"product_id": a, "quantity": 1}, headers=headers)
    client.post("/cart/add", json={"product_id": b, "quantity": 1}, headers=headers)

    resp = client.put("/cart/update", json={"product_id": a, "quantity": 4}, headers=headers)
    assert lines(resp) == {a: 4, b: 1}

    resp = client.put("/cart/update", json={"product_id": b, "quantity": 0}, headers=headers)
    assert lines(resp) == {a: 4}


def test_update_missing_line_or_cart(client, shopper, make_product):
    _, headers = shopper
    pid = make_product()
    resp = client.put("/cart/update", json={"product_id": pid, "quantity": 1}, headers=headers)
    assert resp.status_code == 404
    assert resp.json()["message"] == "Cart not found"

    client.get("/cart", headers=headers)
    resp = client.put("/cart/update", json={"product_id": pid, "quantity": 1}, headers=headers)
    assert resp.status_code == 404
    assert resp.json()["message"] == "Item not found in cart"


def test_remove_and_clear(client, shopper, make_product):
    _, headers = shopper
    a = make_product(name="A")
    b = make_product(name="B")
    client.post("/cart/add", json={"product_id": a, "quantity": 1}, headers=headers)
    client.post("/cart/add", json={"product_id": b, "quantity": 2}, headers=headers)

    resp = client.delete(f"/cart/item/{a}", headers=headers)
    assert lines(resp) == {b: 2}

    resp = client.delete("/cart/clear", headers=headers)
    assert resp.json()["data"]["items"] == []


def test_clear_without_cart(client, shopper):
    _, headers = shopper
    assert client.delete("/cart/clear", headers=headers).status_code == 404


def test_sync_takes_maximum_not_sum(client, shopper, make_product):
    _, headers = shopper
    pid = make_product()
    client.post("/cart/add", json={"product_id": pid, "quantity": 5}, headers=headers)
    resp = client.post("/cart/sync", json={"items": [{"product_id": pid, "quantity": 2}]}, headers=headers)
    assert lines(resp) == {pid: 5}

    resp = client.post("/cart/sync", json={"items": [{"product_id": pid, "quantity": 7}]}, headers=headers)
    assert lines(resp) == {pid: 7}


def test_sync_skips_inactive_and_missing_products(client, shopper, make_product):
    _, headers = shopper
    active = make_product(name="Active")
    inactive = make_product(name="Gone", is_active=False)
    resp = client.post("/cart/sync", json={"items": [
        {"product_id": active, "quantity": 1},
        {"product_id": inactive, "quantity": 1},
        {"product_id": str(ObjectId()), "quantity": 1},
    ]}, headers=headers)
    assert lines(resp) == {active: 1}


def test_lines_for_deleted_products_are_omitted(client, shopper, make_product, db):
    _, headers = shopper
    pid = make_product()
    client.post("/cart/add", json={"product_id": pid, "quantity": 1}, headers=headers)
    db["product"].delete_one({"_id": ObjectId(pid)})
    resp = client.get("/cart", headers=headers)
    assert resp.json()["data"]["items"] == []
    assert resp.json()["data"]["subtotal"] == 0


def test_adds_from_stale_cart_reads_keep_every_line(client, shopper, make_product, db, monkeypatch):
    user, headers = shopper
    a = make_product(name="A")
    b = make_product(name="B")
    client.get("/cart", headers=headers)
    stale = db["cart"].find_one({"user_id": str(user["_id"])})

    client.post("/cart/add", json={"product_id": a, "quantity": 3}, headers=headers)
    # a concurrent request still holds the empty cart it read earlier
    monkeypatch.setattr(carts, "_get_or_create", lambda database, user_id: dict(stale))
    client.post("/cart/add", json={"product_id": a, "quantity": 2}, headers=headers)
    resp = client.post("/cart/add", json={"product_id": b, "quantity": 1}, headers=headers)
    assert lines(resp) == {a: 5, b: 1}


def test_update_from_stale_cart_read_keeps_other_lines(client, shopper, make_product, db, monkeypatch):
    user, headers = shopper
    a = make_product(name="A")
    b = make_product(name="B")
    client.post("/cart/add", json={"product_id": a, "quantity": 1}, headers=headers)
    stale = db["cart"].find_one({"user_id": str(user["_id"])})
    client.post("/cart/add", json={"product_id": b, "quantity": 2}, headers=headers)

    monkeypatch.setattr(carts, "_get_existing", lambda database, user_id: dict(stale))
    resp = client.put("/cart/update", json={"product_id": a, "quantity": 4}, headers=headers)
    assert lines(resp) == {a: 4, b: 2}
    resp = client.put("/cart/update", json={"product_id": b, "quantity": 0}, headers=headers)
    assert lines(resp) == {a: 4}
