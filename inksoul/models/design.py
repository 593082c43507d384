from typing import List, Optional
from datetime import datetime
from enum import Enum
from sqlmodel import Field, SQLModel, Column
from sqlalchemy import JSON
from pydantic import computed_field

class ProductType(str, Enum):
    TSHIRT = "tshirt"
    HOODIE = "hoodie"
    TANK = "tank"
    LONGSLEEVE = "longsleeve"
    MUG = "mug"
    POSTER = "poster"

class DesignSize(str, Enum):
    XS = "XS"
    S = "S"
    M = "M"
    L = "L"
    XL = "XL"
    XXL = "XXL"
    ONE_SIZE = "One Size"

class DesignStatus(str, Enum):
    DRAFT = "draft"
    PENDING_APPROVAL = "pending_approval"
    APPROVED = "approved"
    REJECTED = "rejected"
    ARCHIVED = "archived"

DESIGN_UPDATABLE_FIELDS = (
    "name",
    "design_data",
    "thumbnail",
    "product_type",
    "product_color",
    "size",
    "tags",
    "is_public",
)

class Design(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)

    # Ownership
    user_id: int = Field(foreign_key="user.id", index=True)
    product_id: Optional[int] = Field(default=None, foreign_key="product.id")

    # Canvas
    name: str = "Untitled Design"
    design_data: dict = Field(sa_column=Column(JSON))  # editor canvas state, {"objects": [...]}
    thumbnail: str
    mockups: List[dict] = Field(default=[], sa_column=Column(JSON))  # [{"angle", "image_url"}]

    # Product Options
    product_type: ProductType = Field(default=ProductType.TSHIRT)
    product_color: str = "#ffffff"
    size: DesignSize = Field(default=DesignSize.M)

    # Moderation
    status: DesignStatus = Field(default=DesignStatus.DRAFT, index=True)
    is_public: bool = Field(default=False)
    approval_notes: Optional[str] = None
    approved_by: Optional[int] = Field(default=None, foreign_key="user.id")
    approved_at: Optional[datetime] = None

    tags: List[str] = Field(default=[], sa_column=Column(JSON))
    order_count: int = 0

    # Timestamps
    created_at: datetime = Field(default_factory=datetime.utcnow, index=True)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @computed_field
    @property
    def complexity(self) -> str:
        objects = (self.design_data or {}).get("objects") or []
        if len(objects) <= 3:
            return "simple"
        if len(objects) <= 7:
            return "medium"
        return "complex"

    def update_status(self, new_status: DesignStatus, notes: str = "", approver: Optional[int] = None):
        self.status = new_status
        self.approval_notes = notes or ""
        if new_status == DesignStatus.APPROVED and approver:
            self.approved_by = approver
            self.approved_at = datetime.utcnow()
        self.updated_at = datetime.utcnow()


class DesignRead(SQLModel):
    id: int
    user_id: int
    product_id: Optional[int] = None
    name: str
    design_data: dict
    thumbnail: str
    mockups: List[dict] = []
    product_type: ProductType
    product_color: str
    size: DesignSize
    status: DesignStatus
    is_public: bool
    approval_notes: Optional[str] = None
    approved_by: Optional[int] = None
    approved_at: Optional[datetime] = None
    tags: List[str] = []
    order_count: int
    complexity: str
    created_at: datetime
    updated_at: datetime
