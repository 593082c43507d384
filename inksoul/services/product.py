import logging
from typing import List, Optional, Tuple
from datetime import datetime
from sqlalchemy import func, or_
from sqlmodel import Session, select
from fastapi import HTTPException

from inksoul.core.pagination import offset_for
from inksoul.core.updates import apply_allowed_updates, ForbiddenFieldError
from inksoul.models.product import Product, Review, ProductCategory, slugify
from inksoul.models.user import User

logger = logging.getLogger(__name__)

PRODUCT_UPDATABLE_FIELDS = (
    "name",
    "description",
    "category",
    "subcategory",
    "brand",
    "price",
    "compare_price",
    "images",
    "colors",
    "sizes",
    "stock",
    "weight",
    "dimensions",
    "material",
    "care_instructions",
    "tags",
    "features",
    "seo_title",
    "seo_description",
    "is_active",
    "is_featured",
)

SORT_FIELDS = {
    "name": Product.name,
    "price": Product.price,
    "rating": Product.rating,
    "created_at": Product.created_at,
}

FEATURED_LIMIT = 8

SAMPLE_PRODUCTS = [
    {
        "name": "Artistic Expression T-Shirt",
        "description": "Premium cotton t-shirt with a unique artistic print. Made for casual wear and for showing off your creative side.",
        "price": 29.99,
        "compare_price": 39.99,
        "category": ProductCategory.T_SHIRTS,
        "product_code": "TSH-ART-001",
        "sku": "ART-TSH-001",
        "stock": 50,
        "images": [{"url": "/images/products/artistic-tee.webp", "alt": "Artistic T-Shirt", "is_primary": True}],
        "colors": [
            {"name": "Black", "hex": "#000000", "stock": 20},
            {"name": "White", "hex": "#FFFFFF", "stock": 15},
            {"name": "Navy", "hex": "#000080", "stock": 15},
        ],
        "sizes": [
            {"name": "S", "stock": 10},
            {"name": "M", "stock": 20},
            {"name": "L", "stock": 15},
            {"name": "XL", "stock": 5},
        ],
        "material": "100% organic cotton",
        "tags": ["artistic", "casual", "cotton"],
        "is_featured": True,
    },
    {
        "name": "Hand-Inked Cotton Handkerchief",
        "description": "Soft cotton handkerchief printed with hand-drawn ink illustrations. Washable and colourfast.",
        "price": 9.99,
        "category": ProductCategory.HANDKERCHIEFS,
        "product_code": "HKF-INK-001",
        "sku": "INK-HKF-001",
        "stock": 120,
        "images": [{"url": "/images/products/ink-handkerchief.webp", "alt": "Inked Handkerchief", "is_primary": True}],
        "material": "Cotton lawn",
        "tags": ["gift", "cotton"],
    },
    {
        "name": "Doodle Crew Socks",
        "description": "Cushioned crew socks covered in playful doodles. One size fits most adults.",
        "price": 12.5,
        "category": ProductCategory.SOCKS,
        "product_code": "SCK-DDL-001",
        "sku": "DDL-SCK-001",
        "stock": 80,
        "images": [{"url": "/images/products/doodle-socks.webp", "alt": "Doodle Socks", "is_primary": True}],
        "material": "Combed cotton blend",
        "tags": ["socks", "fun"],
        "is_featured": True,
    },
    {
        "name": "Printed Knit Gloves",
        "description": "Warm knit gloves with a printed cuff pattern and touchscreen-friendly fingertips.",
        "price": 18.0,
        "category": ProductCategory.GLOVES,
        "product_code": "GLV-KNT-001",
        "sku": "KNT-GLV-001",
        "stock": 40,
        "images": [{"url": "/images/products/knit-gloves.webp", "alt": "Knit Gloves", "is_primary": True}],
        "material": "Acrylic wool blend",
        "tags": ["winter", "gloves"],
    },
    {
        "name": "Canvas Tote Bag",
        "description": "Heavy canvas tote with a custom ink print. Holds a laptop and groceries with room to spare.",
        "price": 22.0,
        "category": ProductCategory.ACCESSORIES,
        "product_code": "ACC-TOT-001",
        "sku": "TOT-ACC-001",
        "stock": 60,
        "images": [{"url": "/images/products/canvas-tote.webp", "alt": "Canvas Tote", "is_primary": True}],
        "material": "12oz cotton canvas",
        "tags": ["bag", "canvas"],
    },
]

class ProductService:
    def __init__(self, session: Session):
        self.session = session

    def list_products(
        self,
        page: int = 1,
        limit: int = 12,
        category: Optional[str] = None,
        min_price: Optional[float] = None,
        max_price: Optional[float] = None,
        search: Optional[str] = None,
        featured: Optional[bool] = None,
        sort: str = "created_at",
        order: str = "desc",
    ) -> Tuple[List[Product], int]:
        conditions = [Product.is_active == True]  # noqa: E712
        if category and category != "all":
            conditions.append(Product.category == category)
        if min_price is not None:
            conditions.append(Product.price >= min_price)
        if max_price is not None:
            conditions.append(Product.price <= max_price)
        if search:
            pattern = f"%{search}%"
            conditions.append(or_(Product.name.ilike(pattern), Product.description.ilike(pattern)))
        if featured:
            conditions.append(Product.is_featured == True)  # noqa: E712

        sort_column = SORT_FIELDS.get(sort, Product.created_at)
        sort_clause = sort_column.asc() if order == "asc" else sort_column.desc()

        total = self.session.exec(select(func.count(Product.id)).where(*conditions)).one()
        products = self.session.exec(
            select(Product)
            .where(*conditions)
            .order_by(sort_clause, Product.id)
            .offset(offset_for(page, limit))
            .limit(limit)
        ).all()
        return products, total

    def get_featured(self) -> List[Product]:
        return self.session.exec(
            select(Product)
            .where(Product.is_featured == True, Product.is_active == True)  # noqa: E712
            .limit(FEATURED_LIMIT)
        ).all()

    def get_categories(self) -> List[str]:
        categories = self.session.exec(
            select(Product.category).where(Product.is_active == True).distinct()  # noqa: E712
        ).all()
        return sorted(category.value if isinstance(category, ProductCategory) else category for category in categories)

    def get_product(self, product_id: int, include_inactive: bool = False) -> Product:
        product = self.session.get(Product, product_id)
        if not product:
            raise HTTPException(status_code=404, detail="Product not found")
        if not product.is_active and not include_inactive:
            raise HTTPException(status_code=404, detail="Product is not available")
        return product

    def _unique_slug(self, name: str) -> str:
        base = slugify(name) or "product"
        slug = base
        suffix = 2
        while self.session.exec(select(Product.id).where(Product.slug == slug)).first():
            slug = f"{base}-{suffix}"
            suffix += 1
        return slug

    def create_product(self, data: dict, created_by: Optional[int] = None) -> Product:
        data = dict(data)
        data["product_code"] = data["product_code"].strip().upper()
        data["sku"] = data["sku"].strip().upper()

        if self.session.exec(select(Product).where(Product.product_code == data["product_code"])).first():
            raise HTTPException(status_code=400, detail="Product with this code already exists")
        if self.session.exec(select(Product).where(Product.sku == data["sku"])).first():
            raise HTTPException(status_code=400, detail="Product with this SKU already exists")

        product = Product(**data, slug=self._unique_slug(data["name"]), created_by=created_by)
        self.session.add(product)
        self.session.commit()
        self.session.refresh(product)
        logger.info("Product %s (%s) created", product.id, product.sku)
        return product

    def update_product(self, product_id: int, changes: dict) -> Product:
        product = self.get_product(product_id, include_inactive=True)
        try:
            apply_allowed_updates(product, changes, PRODUCT_UPDATABLE_FIELDS)
        except ForbiddenFieldError as e:
            raise HTTPException(status_code=400, detail=str(e))

        if "name" in changes and slugify(product.name) != product.slug:
            product.slug = self._unique_slug(product.name)

        self.session.add(product)
        self.session.commit()
        self.session.refresh(product)
        return product

    def delete_product(self, product_id: int):
        """Soft delete, order snapshots still point at the row"""
        product = self.get_product(product_id, include_inactive=True)
        product.is_active = False
        product.updated_at = datetime.utcnow()
        self.session.add(product)
        self.session.commit()
        logger.info("Product %s deactivated", product.id)

    def add_review(self, product_id: int, user: User, rating: int, comment: str) -> Review:
        product = self.get_product(product_id)
        if any(review.user_id == user.id for review in product.reviews):
            raise HTTPException(status_code=400, detail="You have already reviewed this product")

        review = Review(user_id=user.id, name=user.name, rating=rating, comment=comment)
        product.reviews.append(review)
        product.calculate_average_rating()
        self.session.add(product)
        self.session.commit()
        self.session.refresh(review)
        return review

def seed_products(session: Session, created_by: Optional[int] = None) -> int:
    """Insert the sample catalogue, skipping products whose SKU already exists"""
    created = 0
    service = ProductService(session)
    for sample in SAMPLE_PRODUCTS:
        if session.exec(select(Product).where(Product.sku == sample["sku"])).first():
            continue
        product = Product(**sample, slug=service._unique_slug(sample["name"]), created_by=created_by)
        session.add(product)
        session.flush()
        created += 1
    session.commit()
    logger.info("Seeded %s sample products", created)
    return created
