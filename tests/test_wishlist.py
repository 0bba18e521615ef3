from models.cartModels import CartItem
from models.wishlistModels import WishlistItem


class TestWishlist:
    def test_add_list_and_check(self, client, seed, customer_headers):
        response = client.post("/api/wishlist/items", json={"productId": seed.tee.id}, headers=customer_headers)
        assert response.status_code == 200

        body = client.get("/api/wishlist", headers=customer_headers).get_json()
        assert body["totalCount"] == 1
        assert body["items"][0]["product"]["category"]["slug"] == "tops"

        check = client.get(f"/api/wishlist/check/{seed.tee.id}", headers=customer_headers).get_json()
        assert check == {"isInWishlist": True}
        assert client.get("/api/wishlist/count", headers=customer_headers).get_json()["count"] == 1

    def test_duplicate(self, client, seed, customer_headers):
        client.post("/api/wishlist/items", json={"productId": seed.tee.id}, headers=customer_headers)
        response = client.post("/api/wishlist/items", json={"productId": seed.tee.id}, headers=customer_headers)
        assert response.status_code == 409

    def test_inactive_product(self, client, seed, customer_headers):
        response = client.post("/api/wishlist/items", json={"productId": seed.retired.id}, headers=customer_headers)
        assert response.status_code == 404
        assert response.get_json()["error"] == "Product not found or inactive"

    def test_remove_and_clear(self, client, seed, customer_headers):
        client.post("/api/wishlist/items", json={"productId": seed.tee.id}, headers=customer_headers)
        client.post("/api/wishlist/items", json={"productId": seed.dress.id}, headers=customer_headers)

        client.delete("/api/wishlist/items", json={"productId": seed.tee.id}, headers=customer_headers)
        assert client.get("/api/wishlist/count", headers=customer_headers).get_json()["count"] == 1

        client.delete("/api/wishlist/clear", headers=customer_headers)
        assert WishlistItem.query.count() == 0

    def test_move_to_cart(self, client, seed, customer_headers):
        client.post("/api/wishlist/items", json={"productId": seed.tee.id}, headers=customer_headers)

        response = client.post(
            "/api/wishlist/items/move", json={"productId": seed.tee.id, "quantity": 2}, headers=customer_headers
        )

        assert response.status_code == 200
        assert WishlistItem.query.count() == 0
        assert CartItem.query.filter_by(user_id=seed.customer.id).one().quantity == 2

    def test_move_missing(self, client, seed, customer_headers):
        response = client.post("/api/wishlist/items/move", json={"productId": seed.tee.id}, headers=customer_headers)
        assert response.status_code == 404

    def test_requires_login(self, client, seed):
        assert client.get("/api/wishlist").status_code == 401
