from core.extensions import db
from routes.orders import seed_shipping_methods
from routes.products import seed_categories, seed_products
from models.orderModels import ShippingMethod
from models.productModels import Category, Products


class TestCatalogue:
    def test_lists_active_products_only(self, client, seed):
        body = client.get("/api/products").get_json()
        assert {p["slug"] for p in body["products"]} == {"organic-tee", "linen-dress"}
        assert body["pagination"]["total"] == 2

    def test_parent_category_includes_subcategories(self, client, seed):
        body = client.get("/api/products?category=clothing").get_json()
        assert body["pagination"]["total"] == 2

        body = client.get("/api/products?subcategory=tops").get_json()
        assert [p["slug"] for p in body["products"]] == ["organic-tee"]

    def test_unknown_category_is_empty(self, client, seed):
        body = client.get("/api/products?category=shoes").get_json()
        assert body["products"] == []

    def test_filters(self, client, seed):
        assert [p["slug"] for p in client.get("/api/products?maxPrice=200").get_json()["products"]] == ["organic-tee"]
        assert [p["slug"] for p in client.get("/api/products?material=linen").get_json()["products"]] == ["linen-dress"]
        assert [p["slug"] for p in client.get("/api/products?featured=true").get_json()["products"]] == ["organic-tee"]
        assert [p["slug"] for p in client.get("/api/products?search=dress").get_json()["products"]] == ["linen-dress"]

    def test_sort_and_paging(self, client, seed):
        body = client.get("/api/products?sort=price_desc&limit=1").get_json()
        assert [p["slug"] for p in body["products"]] == ["linen-dress"]
        assert body["pagination"]["totalPages"] == 2

    def test_product_by_slug(self, client, seed):
        assert client.get("/api/products/organic-tee").get_json()["product"]["category"]["slug"] == "tops"
        assert client.get("/api/products/retired-scarf").status_code == 404

    def test_suggestions_need_two_characters(self, client, seed):
        assert client.get("/api/products/search/suggestions?q=t").get_json()["suggestions"] == []
        names = [s["name"] for s in client.get("/api/products/search/suggestions?q=tee").get_json()["suggestions"]]
        assert names == ["Organic Tee"]

    def test_related(self, client, seed):
        seed.retired.is_active = True
        db.session.commit()
        body = client.get(f"/api/products/related/{seed.dress.id}").get_json()
        assert [p["slug"] for p in body["products"]] == ["retired-scarf"]

    def test_featured_list(self, client, seed):
        assert len(client.get("/api/products/featured/list").get_json()["products"]) == 1


class TestCategories:
    def test_tree(self, client, seed):
        categories = client.get("/api/categories").get_json()["categories"]
        assert [c["slug"] for c in categories] == ["clothing"]
        assert [c["slug"] for c in categories[0]["subcategories"]] == ["tops"]

    def test_category_products(self, client, seed):
        body = client.get("/api/categories/tops/products").get_json()
        assert [p["slug"] for p in body["products"]] == ["organic-tee"]
        assert client.get("/api/categories/nope").status_code == 404


class TestSeedsAndHealth:
    def test_seeds_build_a_browsable_store(self, client):
        seed_categories()
        seed_products()
        seed_shipping_methods()
        seed_categories()

        assert Category.query.count() == 6
        assert Products.query.count() == 3
        assert ShippingMethod.query.count() == 2
        assert client.get("/api/products?category=clothing").get_json()["pagination"]["total"] == 2

    def test_health(self, client):
        assert client.get("/health").get_json() == {"status": "ok", "database": "ok"}
        assert client.get("/ping").status_code == 200

    def test_unknown_route(self, client):
        response = client.get("/api/nowhere")
        assert response.status_code == 404
        assert response.get_json()["code"] == "ROUTE_NOT_FOUND"
