import logging
from datetime import datetime
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlmodel import Session
from inksoul.core.config import settings
from inksoul.db.session import get_session
from inksoul.models.user import User
from inksoul.routers.auth import get_current_admin
from inksoul.services.product import seed_products
from inksoul.services.report import ReportService

logger = logging.getLogger(__name__)

router = APIRouter()

def get_report_service(session: Session = Depends(get_session)) -> ReportService:
    return ReportService(session)

@router.get("/dashboard")
def get_dashboard(admin: User = Depends(get_current_admin), service: ReportService = Depends(get_report_service)):
    """Headline counts, recent orders, best sellers and order growth over the last 30 days"""
    return service.dashboard()

@router.get("/reports/sales")
def get_sales_report(
    start_date: datetime,
    end_date: datetime,
    group_by: str = Query("day", pattern="^(day|month)$"),
    admin: User = Depends(get_current_admin),
    service: ReportService = Depends(get_report_service),
):
    if start_date > end_date:
        raise HTTPException(status_code=400, detail="start_date must be before end_date")
    return service.sales_report(start_date, end_date, group_by)

@router.get("/reports/inventory")
def get_inventory_report(
    low_stock: int = Query(10, ge=0),
    admin: User = Depends(get_current_admin),
    service: ReportService = Depends(get_report_service),
):
    return service.inventory_report(low_stock)

@router.post("/seed")
def seed_database(admin: User = Depends(get_current_admin), session: Session = Depends(get_session)):
    if settings.is_production:
        raise HTTPException(status_code=403, detail="Seeding is not allowed in production")

    created = seed_products(session, created_by=admin.id)
    logger.info("Admin %s seeded %s products", admin.id, created)
    return {"message": f"Database seeded successfully with {created} products", "products_created": created}
