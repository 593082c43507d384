import logging
from collections import OrderedDict
from datetime import datetime, timedelta
from sqlalchemy import func, desc
from sqlmodel import Session, select

from inksoul.core.money import round_currency
from inksoul.models.order import Order, OrderItem
from inksoul.models.product import Product
from inksoul.models.user import User

logger = logging.getLogger(__name__)

PERIOD_FORMATS = {
    "day": "%Y-%m-%d",
    "month": "%Y-%m",
}

class ReportService:
    def __init__(self, session: Session):
        self.session = session

    def dashboard(self) -> dict:
        total_users = self.session.exec(select(func.count(User.id)).where(User.is_active == True)).one()  # noqa: E712
        total_products = self.session.exec(select(func.count(Product.id)).where(Product.is_active == True)).one()  # noqa: E712
        total_orders = self.session.exec(select(func.count(Order.id))).one()
        total_revenue = self.session.exec(select(func.sum(Order.total_price)).where(Order.is_paid == True)).one() or 0.0  # noqa: E712

        recent_orders = self.session.exec(
            select(Order).order_by(desc(Order.created_at), desc(Order.id)).limit(5)
        ).all()
        recent_orders_data = []
        for order in recent_orders:
            user = self.session.get(User, order.user_id)
            recent_orders_data.append({
                "id": order.id,
                "order_number": order.order_number,
                "user_name": user.name if user else "Unknown",
                "total_price": order.total_price,
                "status": order.status.value,
                "created_at": order.created_at.isoformat(),
            })

        total_sold = func.sum(OrderItem.quantity).label("total_sold")
        top_products = self.session.exec(
            select(
                OrderItem.product_id,
                func.max(OrderItem.name),
                total_sold,
                func.sum(OrderItem.price * OrderItem.quantity),
            )
            .join(Order, Order.id == OrderItem.order_id)
            .where(Order.is_paid == True)  # noqa: E712
            .group_by(OrderItem.product_id)
            .order_by(desc(total_sold))
            .limit(5)
        ).all()

        by_status = self.session.exec(
            select(Order.status, func.count(Order.id), func.sum(Order.total_price)).group_by(Order.status)
        ).all()

        now = datetime.utcnow()
        thirty_days_ago = now - timedelta(days=30)
        sixty_days_ago = now - timedelta(days=60)
        current = self.session.exec(select(func.count(Order.id)).where(Order.created_at >= thirty_days_ago)).one()
        previous = self.session.exec(
            select(func.count(Order.id)).where(Order.created_at >= sixty_days_ago, Order.created_at < thirty_days_ago)
        ).one()
        order_growth = round((current - previous) / previous * 100, 1) if previous else 0.0

        return {
            "overview": {
                "total_users": total_users,
                "total_products": total_products,
                "total_orders": total_orders,
                "total_revenue": round_currency(total_revenue),
                "order_growth": order_growth,
            },
            "recent_orders": recent_orders_data,
            "top_products": [
                {"product_id": product_id, "name": name, "total_sold": sold, "revenue": round_currency(revenue or 0)}
                for product_id, name, sold, revenue in top_products
            ],
            "orders_by_status": [
                {"status": status.value, "count": count, "revenue": round_currency(revenue or 0)}
                for status, count, revenue in by_status
            ],
        }

    def sales_report(self, start_date: datetime, end_date: datetime, group_by: str = "day") -> dict:
        """Paid orders between the two dates bucketed by day or month"""
        period_format = PERIOD_FORMATS.get(group_by, PERIOD_FORMATS["day"])
        orders = self.session.exec(
            select(Order)
            .where(Order.is_paid == True, Order.created_at >= start_date, Order.created_at <= end_date)  # noqa: E712
            .order_by(Order.created_at)
        ).all()

        buckets = OrderedDict()
        for order in orders:
            period = order.created_at.strftime(period_format)
            bucket = buckets.setdefault(period, {"period": period, "total_sales": 0.0, "total_orders": 0, "total_items": 0})
            bucket["total_sales"] += order.total_price
            bucket["total_orders"] += 1
            bucket["total_items"] += order.total_items

        report = []
        for bucket in buckets.values():
            bucket["total_sales"] = round_currency(bucket["total_sales"])
            bucket["avg_order_value"] = round_currency(bucket["total_sales"] / bucket["total_orders"])
            report.append(bucket)

        total_sales = round_currency(sum(bucket["total_sales"] for bucket in report))
        total_orders = sum(bucket["total_orders"] for bucket in report)
        return {
            "report": report,
            "summary": {
                "total_sales": total_sales,
                "total_orders": total_orders,
                "total_items": sum(bucket["total_items"] for bucket in report),
                "avg_order_value": round_currency(total_sales / total_orders) if total_orders else 0.0,
                "period": {"start_date": start_date.isoformat(), "end_date": end_date.isoformat(), "group_by": group_by},
            },
        }

    def inventory_report(self, low_stock: int = 10) -> dict:
        products = self.session.exec(select(Product).where(Product.is_active == True)).all()  # noqa: E712

        def summary(product: Product) -> dict:
            return {
                "id": product.id,
                "name": product.name,
                "category": product.category.value,
                "stock": product.stock,
                "price": product.price,
                "sku": product.sku,
            }

        categories = OrderedDict()
        for product in products:
            entry = categories.setdefault(product.category.value, {
                "category": product.category.value, "total_stock": 0, "total_products": 0, "total_value": 0.0,
            })
            entry["total_stock"] += product.stock
            entry["total_products"] += 1
            entry["total_value"] = round_currency(entry["total_value"] + product.stock * product.price)

        return {
            "low_stock_products": [summary(p) for p in products if 0 < p.stock <= low_stock],
            "out_of_stock_products": [summary(p) for p in products if p.stock == 0],
            "category_stock": list(categories.values()),
            "summary": {
                "total_value": round_currency(sum(p.stock * p.price for p in products)),
                "total_items": sum(p.stock for p in products),
                "total_products": len(products),
            },
        }
