from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from sqlmodel import Session
from pydantic import BaseModel, ConfigDict, Field
from inksoul.db.session import get_session
from inksoul.core.pagination import Pagination
from inksoul.models.product import ProductCategory, ProductRead, ProductReadWithReviews, ReviewRead
from inksoul.models.user import User
from inksoul.routers.auth import get_current_user, get_current_admin
from inksoul.services.product import ProductService

router = APIRouter()

class ProductCreate(BaseModel):
    name: str = Field(min_length=2, max_length=100)
    description: str = Field(min_length=10, max_length=2000)
    category: ProductCategory
    subcategory: str = ""
    brand: str = "InkSoul"
    product_code: str = Field(min_length=3, max_length=20)
    sku: str = Field(min_length=3, max_length=20)
    price: float = Field(ge=0)
    compare_price: Optional[float] = Field(default=None, ge=0)
    images: List[dict] = []
    colors: List[dict] = []
    sizes: List[dict] = []
    stock: int = Field(ge=0)
    weight: float = Field(default=0, ge=0)
    dimensions: dict = {"length": 0, "width": 0, "height": 0}
    material: str = ""
    care_instructions: str = ""
    tags: List[str] = []
    features: List[str] = []
    seo_title: Optional[str] = None
    seo_description: Optional[str] = None
    is_featured: bool = False

class ProductUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(default=None, min_length=2, max_length=100)
    description: Optional[str] = Field(default=None, min_length=10, max_length=2000)
    category: Optional[ProductCategory] = None
    subcategory: Optional[str] = None
    brand: Optional[str] = None
    price: Optional[float] = Field(default=None, ge=0)
    compare_price: Optional[float] = Field(default=None, ge=0)
    images: Optional[List[dict]] = None
    colors: Optional[List[dict]] = None
    sizes: Optional[List[dict]] = None
    stock: Optional[int] = Field(default=None, ge=0)
    weight: Optional[float] = Field(default=None, ge=0)
    dimensions: Optional[dict] = None
    material: Optional[str] = None
    care_instructions: Optional[str] = None
    tags: Optional[List[str]] = None
    features: Optional[List[str]] = None
    seo_title: Optional[str] = None
    seo_description: Optional[str] = None
    is_active: Optional[bool] = None
    is_featured: Optional[bool] = None

class ReviewCreate(BaseModel):
    rating: int = Field(ge=1, le=5)
    comment: str = Field(min_length=10, max_length=500)

class ProductPage(BaseModel):
    products: List[ProductRead]
    pagination: Pagination

def get_product_service(session: Session = Depends(get_session)) -> ProductService:
    return ProductService(session)

@router.get("/", response_model=ProductPage)
def read_products(
    page: int = Query(1, ge=1),
    limit: int = Query(12, ge=1, le=50),
    category: Optional[str] = None,
    min_price: Optional[float] = Query(None, ge=0),
    max_price: Optional[float] = Query(None, ge=0),
    search: Optional[str] = None,
    featured: Optional[bool] = None,
    sort: str = Query("created_at", pattern="^(name|price|rating|created_at)$"),
    order: str = Query("desc", pattern="^(asc|desc)$"),
    service: ProductService = Depends(get_product_service),
):
    products, total = service.list_products(
        page=page,
        limit=limit,
        category=category,
        min_price=min_price,
        max_price=max_price,
        search=search,
        featured=featured,
        sort=sort,
        order=order,
    )
    return {"products": products, "pagination": Pagination.build(page, limit, total)}

@router.get("/featured", response_model=List[ProductRead])
def read_featured(service: ProductService = Depends(get_product_service)):
    return service.get_featured()

@router.get("/categories", response_model=List[str])
def read_categories(service: ProductService = Depends(get_product_service)):
    return service.get_categories()

@router.get("/{product_id}", response_model=ProductReadWithReviews)
def read_product(product_id: int, service: ProductService = Depends(get_product_service)):
    return service.get_product(product_id)

@router.post("/", response_model=ProductRead, status_code=201)
def create_product(
    product_in: ProductCreate,
    admin: User = Depends(get_current_admin),
    service: ProductService = Depends(get_product_service),
):
    return service.create_product(product_in.model_dump(), created_by=admin.id)

@router.put("/{product_id}", response_model=ProductRead)
def update_product(
    product_id: int,
    product_in: ProductUpdate,
    admin: User = Depends(get_current_admin),
    service: ProductService = Depends(get_product_service),
):
    return service.update_product(product_id, product_in.model_dump(exclude_unset=True))

@router.delete("/{product_id}")
def delete_product(
    product_id: int,
    admin: User = Depends(get_current_admin),
    service: ProductService = Depends(get_product_service),
):
    service.delete_product(product_id)
    return {"message": "Product deleted successfully"}

@router.post("/{product_id}/reviews", response_model=ReviewRead, status_code=201)
def add_review(
    product_id: int,
    review_in: ReviewCreate,
    current_user: User = Depends(get_current_user),
    service: ProductService = Depends(get_product_service),
):
    return service.add_review(product_id, current_user, review_in.rating, review_in.comment)
