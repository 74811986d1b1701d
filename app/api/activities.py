from datetime import datetime
from decimal import Decimal

from fastapi import APIRouter, Depends, File, Form, Request, Response, UploadFile, status
from sqlalchemy.orm import Session

from app.api.deps import (
    can_create_in_company,
    can_delete_in_company,
    can_update_in_company,
    can_view_company,
    get_current_user,
)
from app.core.database import get_db
from app.core.storage import ImageStorage, get_image_storage
from app.models.activities import Activity
from app.models.companies import Company
from app.models.users import User
from app.schemas.activities import ActivityEditOut, ActivityOut
from app.services import activity_service

router = APIRouter(prefix="/companies/{company_id}/activities", tags=["activities"])


@router.get("", response_model=list[ActivityOut])
def list_activities(
    company: Company = Depends(can_view_company),
    db: Session = Depends(get_db),
) -> list[Activity]:
    return activity_service.list_activities(db, company.id)


@router.get("/guides", response_model=dict[int, str])
def list_guide_options(
    company: Company = Depends(can_create_in_company),
    db: Session = Depends(get_db),
) -> dict[int, str]:
    return activity_service.guide_options(db, company.id)


@router.post("", response_model=ActivityOut, status_code=status.HTTP_201_CREATED)
def create_activity(
    name: str = Form(..., min_length=1, max_length=255),
    description: str = Form(..., min_length=1),
    start_time: datetime = Form(...),
    price: Decimal = Form(..., ge=0, decimal_places=2),
    guide_id: int = Form(...),
    image: UploadFile | None = File(default=None),
    company: Company = Depends(can_create_in_company),
    db: Session = Depends(get_db),
    storage: ImageStorage = Depends(get_image_storage),
) -> Activity:
    return activity_service.create_activity(
        db,
        storage,
        company=company,
        guide_id=guide_id,
        name=name,
        description=description,
        start_time=start_time,
        price=price,
        image=image,
    )


@router.get("/{activity_id}", response_model=ActivityEditOut)
def get_activity(
    activity_id: int,
    request: Request,
    company: Company = Depends(can_update_in_company),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> ActivityEditOut:
    activity = activity_service.get_company_activity(
        db,
        actor=current_user,
        company_id=company.id,
        activity_id=activity_id,
        request=request,
    )
    return ActivityEditOut(
        activity=ActivityOut.model_validate(activity),
        guides=activity_service.guide_options(db, company.id),
    )


@router.put("/{activity_id}", response_model=ActivityOut)
def update_activity(
    activity_id: int,
    request: Request,
    name: str | None = Form(default=None, min_length=1, max_length=255),
    description: str | None = Form(default=None, min_length=1),
    start_time: datetime | None = Form(default=None),
    price: Decimal | None = Form(default=None, ge=0, decimal_places=2),
    guide_id: int | None = Form(default=None),
    image: UploadFile | None = File(default=None),
    company: Company = Depends(can_update_in_company),
    db: Session = Depends(get_db),
    storage: ImageStorage = Depends(get_image_storage),
    current_user: User = Depends(get_current_user),
) -> Activity:
    activity = activity_service.get_company_activity(
        db,
        actor=current_user,
        company_id=company.id,
        activity_id=activity_id,
        request=request,
    )
    changes = {
        "name": name,
        "description": description,
        "start_time": start_time,
        "price": price,
        "guide_id": guide_id,
    }
    return activity_service.update_activity(db, storage, activity, changes, image)


@router.delete("/{activity_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_activity(
    activity_id: int,
    request: Request,
    company: Company = Depends(can_delete_in_company),
    db: Session = Depends(get_db),
    storage: ImageStorage = Depends(get_image_storage),
    current_user: User = Depends(get_current_user),
) -> Response:
    activity = activity_service.get_company_activity(
        db,
        actor=current_user,
        company_id=company.id,
        activity_id=activity_id,
        request=request,
    )
    activity_service.delete_activity(db, storage, activity)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
