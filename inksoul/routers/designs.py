from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from sqlmodel import Session
from pydantic import BaseModel, ConfigDict, Field
from inksoul.db.session import get_session
from inksoul.models.design import DesignRead, DesignStatus, DesignSize, ProductType
from inksoul.models.user import User
from inksoul.routers.auth import get_current_user, get_current_admin
from inksoul.services.design import DesignService

router = APIRouter()

class DesignCreate(BaseModel):
    name: str = Field(default="Untitled Design", max_length=100)
    design_data: dict
    thumbnail: str
    product_id: Optional[int] = None
    product_type: ProductType = ProductType.TSHIRT
    product_color: str = "#ffffff"
    size: DesignSize = DesignSize.M
    tags: List[str] = []
    is_public: bool = False

class DesignUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(default=None, max_length=100)
    design_data: Optional[dict] = None
    thumbnail: Optional[str] = None
    product_type: Optional[ProductType] = None
    product_color: Optional[str] = None
    size: Optional[DesignSize] = None
    tags: Optional[List[str]] = None
    is_public: Optional[bool] = None

class ReviewNotes(BaseModel):
    notes: str = Field(default="", max_length=500)

def get_design_service(session: Session = Depends(get_session)) -> DesignService:
    return DesignService(session)

@router.get("/", response_model=List[DesignRead])
def list_my_designs(
    status: Optional[DesignStatus] = None,
    current_user: User = Depends(get_current_user),
    service: DesignService = Depends(get_design_service),
):
    return service.get_user_designs(current_user.id, status)

@router.get("/public", response_model=List[DesignRead])
def list_public_designs(limit: int = Query(20, ge=1, le=100), service: DesignService = Depends(get_design_service)):
    return service.get_public_designs(limit)

@router.get("/{design_id}", response_model=DesignRead)
def read_design(
    design_id: int,
    current_user: User = Depends(get_current_user),
    service: DesignService = Depends(get_design_service),
):
    return service.get_design(design_id, current_user)

@router.post("/", response_model=DesignRead, status_code=201)
def create_design(
    design_in: DesignCreate,
    current_user: User = Depends(get_current_user),
    service: DesignService = Depends(get_design_service),
):
    return service.create_design(current_user, design_in.model_dump())

@router.put("/{design_id}", response_model=DesignRead)
def update_design(
    design_id: int,
    design_in: DesignUpdate,
    current_user: User = Depends(get_current_user),
    service: DesignService = Depends(get_design_service),
):
    return service.update_design(design_id, current_user, design_in.model_dump(exclude_unset=True))

@router.delete("/{design_id}")
def delete_design(
    design_id: int,
    current_user: User = Depends(get_current_user),
    service: DesignService = Depends(get_design_service),
):
    service.delete_design(design_id, current_user)
    return {"message": "Design deleted successfully"}

@router.put("/{design_id}/approve", response_model=DesignRead)
def approve_design(
    design_id: int,
    data: Optional[ReviewNotes] = None,
    admin: User = Depends(get_current_admin),
    service: DesignService = Depends(get_design_service),
):
    return service.review_design(design_id, admin, approved=True, notes=data.notes if data else "")

@router.put("/{design_id}/reject", response_model=DesignRead)
def reject_design(
    design_id: int,
    data: Optional[ReviewNotes] = None,
    admin: User = Depends(get_current_admin),
    service: DesignService = Depends(get_design_service),
):
    return service.review_design(design_id, admin, approved=False, notes=data.notes if data else "")
