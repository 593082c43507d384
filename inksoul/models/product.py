import re
from typing import Optional, List
from datetime import datetime
from enum import Enum
from sqlmodel import Field, Relationship, SQLModel, Column
from pydantic import computed_field
from sqlalchemy import JSON

class ProductCategory(str, Enum):
    T_SHIRTS = "T-Shirts"
    HANDKERCHIEFS = "Handkerchiefs"
    SOCKS = "Socks"
    GLOVES = "Gloves"
    ACCESSORIES = "Accessories"

class Size(str, Enum):
    XS = "XS"
    S = "S"
    M = "M"
    L = "L"
    XL = "XL"
    XXL = "XXL"
    ONE_SIZE = "One Size"

def slugify(name: str) -> str:
    slug = re.sub(r"[^a-zA-Z0-9]", "-", name.lower())
    slug = re.sub(r"-+", "-", slug)
    return slug.strip("-")

class Review(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)

    # References
    product_id: int = Field(foreign_key="product.id", index=True)
    user_id: int = Field(foreign_key="user.id", index=True)

    # Review Content
    name: str  # Reviewer display name at time of review
    rating: int = Field(ge=1, le=5)
    comment: str

    created_at: datetime = Field(default_factory=datetime.utcnow)

class Product(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)

    # Basic Info
    name: str = Field(index=True)
    slug: str = Field(index=True, unique=True)
    description: str
    category: ProductCategory = Field(index=True)
    subcategory: str = ""
    brand: str = "InkSoul"
    product_code: str = Field(unique=True)
    sku: str = Field(unique=True)

    # Pricing
    price: float = Field(ge=0)
    compare_price: Optional[float] = None

    # Images: [{"url", "alt", "is_primary", "color_code"}]
    images: List[dict] = Field(default=[], sa_column=Column(JSON))

    # Variants: colors [{"name", "hex", "stock"}], sizes [{"name", "stock"}]
    colors: List[dict] = Field(default=[], sa_column=Column(JSON))
    sizes: List[dict] = Field(default=[], sa_column=Column(JSON))

    # Inventory
    stock: int = Field(ge=0)

    # Physical
    weight: float = 0
    dimensions: dict = Field(default_factory=lambda: {"length": 0, "width": 0, "height": 0}, sa_column=Column(JSON))
    material: str = ""
    care_instructions: str = ""

    # Discovery
    tags: List[str] = Field(default=[], sa_column=Column(JSON))
    features: List[str] = Field(default=[], sa_column=Column(JSON))
    seo_title: Optional[str] = None
    seo_description: Optional[str] = None

    # Ratings
    rating: float = 0
    num_reviews: int = 0

    # Metadata
    is_active: bool = Field(default=True)
    is_featured: bool = Field(default=False)
    created_by: Optional[int] = Field(default=None, foreign_key="user.id")
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    reviews: List["Review"] = Relationship(
        sa_relationship_kwargs={"cascade": "all, delete-orphan", "order_by": "Review.id"}
    )

    def calculate_average_rating(self):
        if not self.reviews:
            self.rating = 0
            self.num_reviews = 0
        else:
            total = sum(review.rating for review in self.reviews)
            self.rating = round(total / len(self.reviews), 1)
            self.num_reviews = len(self.reviews)

    # Computed fields for frontend parity
    @computed_field
    @property
    def total_stock(self) -> int:
        total = self.stock
        if self.colors:
            total = sum(color.get("stock", 0) for color in self.colors)
        if self.sizes:
            total = sum(size.get("stock", 0) for size in self.sizes)
        return total

    @computed_field
    @property
    def discount_percentage(self) -> int:
        if self.compare_price and self.compare_price > self.price:
            return round((self.compare_price - self.price) / self.compare_price * 100)
        return 0

    @computed_field
    @property
    def primary_image(self) -> str:
        if not self.images:
            return ""
        primary = next((image for image in self.images if image.get("is_primary")), self.images[0])
        return primary.get("url", "")


class ReviewRead(SQLModel):
    id: int
    user_id: int
    name: str
    rating: int
    comment: str
    created_at: datetime

class ProductRead(SQLModel):
    id: int
    name: str
    slug: str
    description: str
    category: ProductCategory
    subcategory: str
    brand: str
    product_code: str
    sku: str
    price: float
    compare_price: Optional[float] = None
    images: List[dict] = []
    colors: List[dict] = []
    sizes: List[dict] = []
    stock: int
    weight: float
    dimensions: dict = {}
    material: str
    care_instructions: str
    tags: List[str] = []
    features: List[str] = []
    seo_title: Optional[str] = None
    seo_description: Optional[str] = None
    rating: float
    num_reviews: int
    is_active: bool
    is_featured: bool
    total_stock: int
    discount_percentage: int
    primary_image: str
    created_at: datetime
    updated_at: datetime

class ProductReadWithReviews(ProductRead):
    reviews: List[ReviewRead] = []
