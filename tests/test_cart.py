from core.extensions import db
from models.cartModels import CartItem


def _add(client, product, quantity=1, headers=None):
    return client.post("/api/cart/items", json={"productId": product.id, "quantity": quantity}, headers=headers or {})


class TestGuestCart:
    def test_empty_cart(self, client, seed):
        body = client.get("/api/cart").get_json()
        assert body["items"] == []
        assert body["shipping"] == 0
        assert body["total"] == 0

    def test_add_merges_lines(self, client, seed):
        _add(client, seed.tee)
        body = _add(client, seed.tee, 2).get_json()

        assert len(body["items"]) == 1
        assert body["items"][0]["quantity"] == 3
        assert body["itemCount"] == 3
        assert body["subtotal"] == 375.0
        assert body["tax"] == 30.0
        assert body["shipping"] == 0
        assert client.get("/api/cart/count").get_json()["count"] == 3

    def test_small_cart_pays_flat_shipping(self, client, seed):
        seed.tee.price = 20.0
        db.session.commit()
        body = _add(client, seed.tee).get_json()
        assert body["shipping"] == 5.99
        assert body["total"] == 27.59

    def test_rejects_bad_input(self, client, seed):
        assert _add(client, seed.tee, 0).status_code == 400
        assert _add(client, seed.tee, 100).status_code == 400
        assert _add(client, seed.retired).status_code == 404
        response = _add(client, seed.dress, 3)
        assert response.status_code == 400
        assert response.get_json()["message"] == "Insufficient stock"

    def test_update_and_remove(self, client, seed):
        item_id = _add(client, seed.tee).get_json()["items"][0]["id"]

        body = client.put(f"/api/cart/items/{item_id}", json={"quantity": 4}).get_json()
        assert body["items"][0]["quantity"] == 4

        assert client.put(f"/api/cart/items/{item_id}", json={"quantity": 11}).status_code == 400
        assert client.delete(f"/api/cart/items/{item_id}").get_json()["items"] == []
        assert client.delete(f"/api/cart/items/{item_id}").status_code == 404

    def test_carts_are_isolated_per_session(self, app, client, seed):
        _add(client, seed.tee)
        stranger = app.test_client()
        assert stranger.get("/api/cart").get_json()["items"] == []

    def test_clear(self, client, seed):
        _add(client, seed.tee)
        client.post("/api/cart/clear")
        assert client.get("/api/cart/count").get_json()["count"] == 0


class TestUserCart:
    def test_merge_guest_cart(self, client, seed, customer_headers):
        _add(client, seed.tee, 2)
        _add(client, seed.dress, 1, headers=customer_headers)
        _add(client, seed.tee, 1, headers=customer_headers)

        body = client.post("/api/cart/merge", headers=customer_headers).get_json()

        quantities = {item["product_id"]: item["quantity"] for item in body["items"]}
        assert quantities == {seed.tee.id: 3, seed.dress.id: 1}
        assert CartItem.query.filter(CartItem.user_id.is_(None)).count() == 0

    def test_merge_requires_login(self, client, seed):
        response = client.post("/api/cart/merge")
        assert response.status_code == 401
        assert response.get_json()["message"] == "User must be authenticated"

    def test_cannot_touch_another_users_line(self, client, seed, customer_headers, other_headers):
        item_id = _add(client, seed.tee, headers=customer_headers).get_json()["items"][0]["id"]
        response = client.put(f"/api/cart/items/{item_id}", json={"quantity": 2}, headers=other_headers)
        assert response.status_code == 404
