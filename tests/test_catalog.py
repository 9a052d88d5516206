"""Catalog listing, filtering and soft delete."""
import pytest

from catalog import ProductQuery


class TestProductQuery:
    def test_defaults_to_active_only(self):
        assert ProductQuery().to_filter() == {"is_active": True}

    def test_include_inactive_drops_active_clause(self):
        assert ProductQuery(include_inactive=True).to_filter() == {}

    def test_combines_clauses(self):
        filt = ProductQuery(search="oak", category="luxury", min_price=10, max_price=50).to_filter()
        clauses = filt["$and"]
        assert {"is_active": True} in clauses
        assert {"category": "luxury"} in clauses
        assert {"price": {"$gte": 10, "$lte": 50}} in clauses
        search = next(c for c in clauses if "$or" in c)
        assert [list(c)[0] for c in search["$or"]] == ["name", "brand", "description"]

    def test_search_text_is_escaped(self):
        filt = ProductQuery(search="a+b", include_inactive=True).to_filter()
        assert filt["$or"][0]["name"]["$regex"] == r"a\+b"

    def test_brands_are_any_of(self):
        filt = ProductQuery(brands=["Rolex", " ", "Omega"], include_inactive=True).to_filter()
        assert len(filt["$or"]) == 2

    def test_limit_is_bounded(self):
        with pytest.raises(ValueError):
            ProductQuery(limit=0)
        with pytest.raises(ValueError):
            ProductQuery(limit=101)


@pytest.fixture
def catalog_items(make_product):
    return {
        "oak": make_product(name="Royal Oak", brand="Audemars Piguet", price=45000, category="luxury"),
        "sub": make_product(name="Submariner", brand="Rolex", price=14500, category="diving",
                            description="Steel diver"),
        "speed": make_product(name="Speedmaster", brand="Omega", price=6800, category="chronograph",
                              is_new=True),
        "sea": make_product(name="Seamaster", brand="Omega", price=7200, category="diving", is_featured=True),
        "old": make_product(name="Retired Model", brand="Rolex", price=9000, category="classic", is_active=False),
    }


def names(response):
    return [p["name"] for p in response.json()["data"]]


def test_list_excludes_inactive(client, catalog_items):
    resp = client.get("/products")
    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["total"] == 4
    assert "Retired Model" not in names(resp)


def test_list_documents_expose_id(client, catalog_items):
    product = client.get("/products").json()["data"][0]
    assert "id" in product
    assert "_id" not in product


def test_search_is_case_insensitive_over_name_brand_description(client, catalog_items):
    assert sorted(names(client.get("/products", params={"search": "OMEGA"}))) == ["Seamaster", "Speedmaster"]
    assert names(client.get("/products", params={"search": "diver"})) == ["Submariner"]


def test_filter_by_category_and_price(client, catalog_items):
    resp = client.get("/products", params={"category": "diving", "max_price": 10000})
    assert names(resp) == ["Seamaster"]


def test_filter_by_multiple_brands(client, catalog_items):
    resp = client.get("/products", params=[("brand", "rolex"), ("brand", "audemars"), ("sort", "price-asc")])
    assert names(resp) == ["Submariner", "Royal Oak"]


def test_brands_accept_comma_separated(client, catalog_items):
    resp = client.get("/products", params={"brand": "Rolex,Omega", "sort": "price-desc"})
    assert names(resp) == ["Submariner", "Seamaster", "Speedmaster"]


def test_sort_by_name(client, catalog_items):
    resp = client.get("/products", params={"sort": "name-asc"})
    assert names(resp) == ["Royal Oak", "Seamaster", "Speedmaster", "Submariner"]


def test_pagination(client, catalog_items):
    resp = client.get("/products", params={"sort": "price-asc", "page": 2, "limit": 3})
    body = resp.json()
    assert names(resp) == ["Royal Oak"]
    assert body["page"] == 2
    assert body["limit"] == 3
    assert body["total_pages"] == 2


def test_invalid_query_uses_error_envelope(client, catalog_items):
    resp = client.get("/products", params={"sort": "random"})
    assert resp.status_code == 400
    assert resp.json()["success"] is False


def test_latest_featured_and_brands(client, catalog_items):
    assert names(client.get("/products/latest")) == ["Speedmaster"]
    assert names(client.get("/products/featured")) == ["Seamaster"]
    assert client.get("/products/brands").json()["data"] == ["Audemars Piguet", "Omega", "Rolex"]


def test_by_category(client, catalog_items):
    assert sorted(names(client.get("/products/category/diving"))) == ["Seamaster", "Submariner"]
    assert client.get("/products/category/unknown").status_code == 400


def test_search_endpoint(client, catalog_items):
    assert names(client.get("/products/search", params={"q": "royal"})) == ["Royal Oak"]


def test_get_product(client, catalog_items):
    resp = client.get(f"/products/{catalog_items['oak']}")
    assert resp.status_code == 200
    assert resp.json()["data"]["name"] == "Royal Oak"


def test_get_unknown_or_malformed_product(client, catalog_items):
    assert client.get("/products/64b7f0c2a1b2c3d4e5f60718").status_code == 404
    resp = client.get("/products/not-an-id")
    assert resp.status_code == 400
    assert resp.json()["message"] == "Invalid ID"


def test_soft_deleted_product_hidden_but_admin_visible(client, catalog_items, admin):
    _, headers = admin
    pid = catalog_items["sub"]
    resp = client.delete(f"/products/{pid}", headers=headers)
    assert resp.status_code == 200

    assert client.get(f"/products/{pid}").status_code == 404
    assert "Submariner" not in names(client.get("/products"))
    assert "Submariner" not in names(client.get("/products/search", params={"q": "submariner"}))

    resp = client.get(f"/admin/products/{pid}", headers=headers)
    assert resp.status_code == 200
    assert resp.json()["data"]["is_active"] is False


def test_admin_list_includes_inactive(client, catalog_items, admin):
    _, headers = admin
    body = client.get("/admin/products", headers=headers).json()
    assert body["total"] == 5


def test_create_and_update_product(client, admin):
    _, headers = admin
    payload = {
        "name": "Tank",
        "brand": "Cartier",
        "price": 3200,
        "description": "Rectangular dress watch.",
        "category": "classic",
        "specifications": {
            "case_material": "Steel",
            "case_size": "31mm",
            "dial_color": "Silver",
            "movement": "Quartz",
            "water_resistance": "30m",
            "strap_material": "Leather",
            "strap_color": "Black",
            "crystal": "Sapphire Crystal",
        },
        "stock": 4,
    }
    resp = client.post("/products", json=payload, headers=headers)
    assert resp.status_code == 201
    product = resp.json()["data"]
    assert product["is_active"] is True

    resp = client.put(f"/products/{product['id']}", json={"price": 3000, "stock": 2}, headers=headers)
    assert resp.status_code == 200
    assert resp.json()["data"]["price"] == 3000
    assert resp.json()["data"]["stock"] == 2
    assert resp.json()["data"]["name"] == "Tank"


def test_negative_stock_rejected(client, admin, make_product):
    _, headers = admin
    pid = make_product()
    resp = client.put(f"/products/{pid}", json={"stock": -1}, headers=headers)
    assert resp.status_code == 400


def test_update_missing_product(client, admin):
    _, headers = admin
    resp = client.put("/products/64b7f0c2a1b2c3d4e5f60718", json={"price": 1}, headers=headers)
    assert resp.status_code == 404


def test_product_writes_require_admin(client, shopper, make_product):
    _, headers = shopper
    pid = make_product()
    assert client.delete(f"/products/{pid}", headers=headers).status_code == 403
    assert client.delete(f"/products/{pid}").status_code == 401
