from inksoul.models.product import Product, ProductCategory

PRODUCTS = "/api/v1/products/"


def product_body(**overrides):
    body = {
        "name": "Midnight Koi Tee",
        "description": "Heavyweight tee with a hand-inked koi print.",
        "category": "T-Shirts",
        "product_code": "tsh-koi-001",
        "sku": "koi-tsh-001",
        "price": 34.0,
        "compare_price": 40.0,
        "stock": 25,
        "images": [{"url": "/images/koi-back.webp"}, {"url": "/images/koi-front.webp", "is_primary": True}],
    }
    body.update(overrides)
    return body


class TestCatalogue:

    def test_list_hides_inactive(self, client, make_product):
        make_product(name="Visible")
        make_product(name="Retired", is_active=False)

        data = client.get(PRODUCTS).json()

        assert [p["name"] for p in data["products"]] == ["Visible"]
        assert data["pagination"]["total"] == 1

    def test_filter_by_category_and_price(self, client, make_product):
        make_product(name="Cheap Socks", category=ProductCategory.SOCKS, price=8.0)
        make_product(name="Fancy Socks", category=ProductCategory.SOCKS, price=18.0)
        make_product(name="Tee", price=18.0)

        data = client.get(PRODUCTS, params={"category": "Socks", "min_price": 10}).json()
        assert [p["name"] for p in data["products"]] == ["Fancy Socks"]

    def test_search_and_sort(self, client, make_product):
        make_product(name="Koi Tee", price=30.0)
        make_product(name="Crane Tee", price=25.0)
        make_product(name="Plain Gloves", category=ProductCategory.GLOVES, description="Warm knit gloves for winter.")

        data = client.get(PRODUCTS, params={"search": "tee", "sort": "price", "order": "asc"}).json()
        assert [p["name"] for p in data["products"]] == ["Crane Tee", "Koi Tee"]

    def test_invalid_sort_field(self, client):
        assert client.get(PRODUCTS, params={"sort": "stock"}).status_code == 422

    def test_pagination(self, client, make_product):
        for _ in range(5):
            make_product()

        data = client.get(PRODUCTS, params={"page": 2, "limit": 2}).json()

        assert len(data["products"]) == 2
        assert data["pagination"]["total_pages"] == 3
        assert data["pagination"]["has_next_page"] is True
        assert data["pagination"]["has_prev_page"] is True

    def test_featured(self, client, make_product):
        make_product(name="Star", is_featured=True)
        make_product(name="Regular")
        make_product(name="Hidden Star", is_featured=True, is_active=False)

        assert [p["name"] for p in client.get(f"{PRODUCTS}featured").json()] == ["Star"]

    def test_categories(self, client, make_product):
        make_product(category=ProductCategory.SOCKS)
        make_product(category=ProductCategory.GLOVES)
        make_product(category=ProductCategory.SOCKS)

        assert client.get(f"{PRODUCTS}categories").json() == ["Gloves", "Socks"]

    def test_read_product(self, client, make_product):
        tee = make_product(compare_price=25.0, sizes=[{"name": "M", "stock": 3}, {"name": "L", "stock": 4}])

        data = client.get(f"{PRODUCTS}{tee.id}").json()

        assert data["name"] == tee.name
        assert data["discount_percentage"] == 20
        assert data["total_stock"] == 7
        assert data["reviews"] == []

    def test_read_missing_and_inactive(self, client, make_product):
        retired = make_product(is_active=False)

        assert client.get(f"{PRODUCTS}999").json()["detail"] == "Product not found"
        response = client.get(f"{PRODUCTS}{retired.id}")
        assert response.status_code == 404
        assert response.json()["detail"] == "Product is not available"


class TestAdminProducts:

    def test_create_product(self, client, admin, admin_headers):
        response = client.post(PRODUCTS, json=product_body(), headers=admin_headers)

        assert response.status_code == 201
        data = response.json()
        assert data["slug"] == "midnight-koi-tee"
        assert data["product_code"] == "TSH-KOI-001"
        assert data["sku"] == "KOI-TSH-001"
        assert data["primary_image"] == "/images/koi-front.webp"
        assert data["discount_percentage"] == 15

    def test_duplicate_code_and_sku(self, client, admin_headers):
        client.post(PRODUCTS, json=product_body(), headers=admin_headers)

        same_code = client.post(PRODUCTS, json=product_body(sku="OTHER-001"), headers=admin_headers)
        assert same_code.status_code == 400
        assert same_code.json()["detail"] == "Product with this code already exists"

        same_sku = client.post(PRODUCTS, json=product_body(product_code="OTHER-001"), headers=admin_headers)
        assert same_sku.status_code == 400
        assert same_sku.json()["detail"] == "Product with this SKU already exists"

    def test_same_name_gets_unique_slug(self, client, admin_headers):
        client.post(PRODUCTS, json=product_body(), headers=admin_headers)
        second = client.post(PRODUCTS, json=product_body(product_code="TSH-KOI-002", sku="KOI-TSH-002"), headers=admin_headers)
        assert second.json()["slug"] == "midnight-koi-tee-2"

    def test_create_requires_admin(self, client, customer_headers):
        assert client.post(PRODUCTS, json=product_body(), headers=customer_headers).status_code == 403

    def test_update_product(self, client, admin_headers, make_product):
        tee = make_product()

        response = client.put(f"{PRODUCTS}{tee.id}", json={"name": "Renamed Tee", "price": 22.5}, headers=admin_headers)

        assert response.status_code == 200
        assert response.json()["slug"] == "renamed-tee"
        assert response.json()["price"] == 22.5

    def test_update_rejects_rating_and_counters(self, client, admin_headers, make_product):
        tee = make_product()
        for body in ({"rating": 5}, {"num_reviews": 100}, {"sku": "NEW-SKU"}):
            assert client.put(f"{PRODUCTS}{tee.id}", json=body, headers=admin_headers).status_code == 422

    def test_delete_is_soft(self, client, session, admin_headers, make_product):
        tee = make_product()

        response = client.delete(f"{PRODUCTS}{tee.id}", headers=admin_headers)

        assert response.json() == {"message": "Product deleted successfully"}
        stored = session.get(Product, tee.id)
        session.refresh(stored)
        assert stored.is_active is False


class TestReviews:

    def test_add_review_updates_rating(self, client, session, customer_headers, other_headers, make_product):
        tee = make_product()

        first = client.post(f"{PRODUCTS}{tee.id}/reviews", json={"rating": 5, "comment": "Print is gorgeous."}, headers=customer_headers)
        client.post(f"{PRODUCTS}{tee.id}/reviews", json={"rating": 2, "comment": "Runs a size small."}, headers=other_headers)

        assert first.status_code == 201
        assert first.json()["name"] == "Test Customer"
        data = client.get(f"{PRODUCTS}{tee.id}").json()
        assert data["rating"] == 3.5
        assert data["num_reviews"] == 2
        assert len(data["reviews"]) == 2

    def test_one_review_per_user(self, client, customer_headers, make_product):
        tee = make_product()
        body = {"rating": 4, "comment": "Lovely soft cotton."}

        client.post(f"{PRODUCTS}{tee.id}/reviews", json=body, headers=customer_headers)
        response = client.post(f"{PRODUCTS}{tee.id}/reviews", json=body, headers=customer_headers)

        assert response.status_code == 400
        assert response.json()["detail"] == "You have already reviewed this product"

    def test_rating_out_of_range(self, client, customer_headers, make_product):
        tee = make_product()
        response = client.post(f"{PRODUCTS}{tee.id}/reviews", json={"rating": 6, "comment": "Better than perfect!"}, headers=customer_headers)
        assert response.status_code == 422
