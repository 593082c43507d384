from datetime import datetime, timedelta

from inksoul.core.config import settings
from inksoul.models.product import ProductCategory
from inksoul.services.product import SAMPLE_PRODUCTS
from tests.conftest import order_payload

ADMIN = "/api/v1/admin"


def paid_order(client, headers, lines, items_price):
    order = client.post("/api/v1/orders/", json=order_payload(lines, items_price), headers=headers).json()
    client.put(f"/api/v1/orders/{order['id']}/pay", json={"id": f"pay_{order['id']}", "status": "captured"}, headers=headers)
    return order


def report_window():
    now = datetime.utcnow()
    return {
        "start_date": (now - timedelta(days=1)).isoformat(),
        "end_date": (now + timedelta(days=1)).isoformat(),
    }


class TestDashboard:

    def test_dashboard(self, client, customer_headers, admin_headers, make_product):
        tee = make_product(name="Koi Tee", price=20.0)
        socks = make_product(name="Doodle Socks", price=10.0, category=ProductCategory.SOCKS)
        paid_order(client, customer_headers, [(tee, 3), (socks, 1)], 70.0)
        client.post("/api/v1/orders/", json=order_payload([(socks, 5)], 50.0), headers=customer_headers)

        response = client.get(f"{ADMIN}/dashboard", headers=admin_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["overview"]["total_users"] == 2
        assert data["overview"]["total_products"] == 2
        assert data["overview"]["total_orders"] == 2
        assert data["overview"]["total_revenue"] == 70.0
        assert len(data["recent_orders"]) == 2
        assert data["recent_orders"][0]["user_name"] == "Test Customer"
        assert data["top_products"][0] == {"product_id": tee.id, "name": "Koi Tee", "total_sold": 3, "revenue": 60.0}
        statuses = {entry["status"]: entry["count"] for entry in data["orders_by_status"]}
        assert statuses == {"pending": 1, "processing": 1}

    def test_dashboard_requires_admin(self, client, customer_headers):
        assert client.get(f"{ADMIN}/dashboard", headers=customer_headers).status_code == 403


class TestReports:

    def test_sales_report_counts_paid_orders(self, client, customer_headers, admin_headers, make_product):
        tee = make_product(price=20.0)
        paid_order(client, customer_headers, [(tee, 1)], 20.0)
        paid_order(client, customer_headers, [(tee, 2)], 40.0)
        client.post("/api/v1/orders/", json=order_payload([(tee, 1)], 20.0), headers=customer_headers)

        response = client.get(f"{ADMIN}/reports/sales", params=report_window(), headers=admin_headers)

        assert response.status_code == 200
        data = response.json()
        assert len(data["report"]) == 1
        bucket = data["report"][0]
        assert bucket["period"] == datetime.utcnow().strftime("%Y-%m-%d")
        assert bucket["total_sales"] == 60.0
        assert bucket["total_orders"] == 2
        assert bucket["total_items"] == 3
        assert bucket["avg_order_value"] == 30.0
        assert data["summary"]["total_sales"] == 60.0
        assert data["summary"]["period"]["group_by"] == "day"

    def test_sales_report_by_month(self, client, customer_headers, admin_headers, make_product):
        tee = make_product(price=20.0)
        paid_order(client, customer_headers, [(tee, 1)], 20.0)

        params = {**report_window(), "group_by": "month"}
        data = client.get(f"{ADMIN}/reports/sales", params=params, headers=admin_headers).json()

        assert [bucket["period"] for bucket in data["report"]] == [datetime.utcnow().strftime("%Y-%m")]

    def test_sales_report_empty(self, client, admin_headers):
        data = client.get(f"{ADMIN}/reports/sales", params=report_window(), headers=admin_headers).json()
        assert data["report"] == []
        assert data["summary"]["avg_order_value"] == 0.0

    def test_sales_report_rejects_reversed_window(self, client, admin_headers):
        window = report_window()
        params = {"start_date": window["end_date"], "end_date": window["start_date"]}
        response = client.get(f"{ADMIN}/reports/sales", params=params, headers=admin_headers)
        assert response.status_code == 400

    def test_sales_report_rejects_unknown_grouping(self, client, admin_headers):
        params = {**report_window(), "group_by": "week"}
        assert client.get(f"{ADMIN}/reports/sales", params=params, headers=admin_headers).status_code == 422

    def test_inventory_report(self, client, admin_headers, make_product):
        make_product(name="Plenty", stock=50, price=10.0)
        make_product(name="Running Low", stock=3, price=10.0)
        make_product(name="Sold Out", stock=0, price=10.0)
        make_product(name="Retired", stock=1, is_active=False)

        data = client.get(f"{ADMIN}/reports/inventory", params={"low_stock": 5}, headers=admin_headers).json()

        assert [p["name"] for p in data["low_stock_products"]] == ["Running Low"]
        assert [p["name"] for p in data["out_of_stock_products"]] == ["Sold Out"]
        assert data["summary"] == {"total_value": 530.0, "total_items": 53, "total_products": 3}
        assert data["category_stock"] == [
            {"category": "T-Shirts", "total_stock": 53, "total_products": 3, "total_value": 530.0}
        ]


class TestSeed:

    def test_seed_is_idempotent(self, client, admin_headers):
        first = client.post(f"{ADMIN}/seed", headers=admin_headers)
        second = client.post(f"{ADMIN}/seed", headers=admin_headers)

        assert first.json()["products_created"] == len(SAMPLE_PRODUCTS)
        assert second.json()["products_created"] == 0
        categories = client.get("/api/v1/products/categories").json()
        assert categories == sorted(category.value for category in ProductCategory)

    def test_seed_blocked_in_production(self, client, admin_headers, monkeypatch):
        monkeypatch.setattr(settings, "ENVIRONMENT", "production")

        response = client.post(f"{ADMIN}/seed", headers=admin_headers)

        assert response.status_code == 403
        assert response.json()["detail"] == "Seeding is not allowed in production"

    def test_seed_requires_admin(self, client, customer_headers):
        assert client.post(f"{ADMIN}/seed", headers=customer_headers).status_code == 403
