import hashlib
import logging
import mimetypes
from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from pathlib import Path
from typing import Any

from fastapi import HTTPException, Request, UploadFile, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.core.errors import field_error
from app.core.storage import ImageStorage
from app.models.activities import Activity
from app.models.companies import Company
from app.models.roles import Role
from app.models.users import User
from app.services.authorization_service import ensure_same_company

logger = logging.getLogger(__name__)

INVALID_GUIDE_MESSAGE = "The selected guide is invalid."
INVALID_IMAGE_MESSAGE = "The image field must be an image."


@dataclass(frozen=True)
class ImageUpload:
    data: bytes
    content_type: str
    suffix: str


def price_to_cents(price: Decimal) -> int:
    return int((price * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def guide_options(db: Session, company_id: int) -> dict[int, str]:
    """Guides that may be assigned to activities of ``company_id``."""
    rows = db.execute(
        select(User.id, User.name)
        .where(
            User.company_id == company_id,
            User.role_id == int(Role.GUIDE),
            User.deleted_at.is_(None),
        )
        .order_by(User.name)
    ).all()
    return {row.id: row.name for row in rows}


def list_activities(db: Session, company_id: int) -> list[Activity]:
    stmt = (
        select(Activity)
        .where(Activity.company_id == company_id)
        .order_by(Activity.start_time, Activity.id)
    )
    return list(db.execute(stmt).scalars())


def get_company_activity(
    db: Session,
    *,
    actor: User,
    company_id: int,
    activity_id: int,
    request: Request | None = None,
) -> Activity:
    activity = db.get(Activity, activity_id)
    if not activity:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Activity not found"
        )
    ensure_same_company(
        actor=actor,
        company_id=company_id,
        resource_company_id=activity.company_id,
        request=request,
    )
    return activity


def _ensure_company_guide(db: Session, company_id: int, guide_id: int) -> None:
    if guide_id not in guide_options(db, company_id):
        raise field_error("guide_id", INVALID_GUIDE_MESSAGE)


def _image_suffix(filename: str, content_type: str) -> str:
    suffix = Path(filename).suffix.lower()
    if suffix and suffix[1:].isalnum():
        return suffix
    return mimetypes.guess_extension(content_type) or ""


def read_image(image: UploadFile | None) -> ImageUpload | None:
    if image is None or not image.filename:
        return None

    content_type = (image.content_type or "").lower()
    if not content_type.startswith("image/"):
        raise field_error("image", INVALID_IMAGE_MESSAGE)

    max_bytes = get_settings().max_image_bytes
    data = image.file.read(max_bytes + 1)
    if len(data) > max_bytes:
        raise field_error(
            "image", f"The image field must not be greater than {max_bytes} bytes."
        )
    if not data:
        raise field_error("image", INVALID_IMAGE_MESSAGE)

    return ImageUpload(
        data=data,
        content_type=content_type,
        suffix=_image_suffix(image.filename, content_type),
    )


def _image_key(company_id: int, upload: ImageUpload) -> str:
    digest = hashlib.sha256(upload.data).hexdigest()
    return f"activities/{company_id}/{digest}{upload.suffix}"


def _image_in_use(db: Session, key: str, exclude_activity_id: int | None) -> bool:
    stmt = select(Activity.id).where(Activity.image == key)
    if exclude_activity_id is not None:
        stmt = stmt.where(Activity.id != exclude_activity_id)
    return db.execute(stmt.limit(1)).first() is not None


def _release_image(
    db: Session, storage: ImageStorage, key: str | None, activity_id: int | None
) -> None:
    # identical uploads share one blob, keep it while another activity uses it
    if key and not _image_in_use(db, key, activity_id):
        storage.delete(key)


def create_activity(
    db: Session,
    storage: ImageStorage,
    *,
    company: Company,
    guide_id: int,
    name: str,
    description: str,
    start_time: datetime,
    price: Decimal,
    image: UploadFile | None = None,
) -> Activity:
    _ensure_company_guide(db, company.id, guide_id)
    upload = read_image(image)

    image_key = None
    created_blob = False
    if upload:
        image_key = _image_key(company.id, upload)
        created_blob = not storage.exists(image_key)
        storage.store(upload.data, image_key, upload.content_type)

    activity = Activity(
        company_id=company.id,
        guide_id=guide_id,
        name=name.strip(),
        description=description,
        start_time=start_time,
        price=price_to_cents(price),
        image=image_key,
    )
    db.add(activity)
    try:
        db.commit()
    except Exception:
        db.rollback()
        if image_key and created_blob:
            storage.delete(image_key)
        raise
    db.refresh(activity)

    logger.info("Activity %s created for company %s", activity.id, company.id)
    return activity


def update_activity(
    db: Session,
    storage: ImageStorage,
    activity: Activity,
    changes: dict[str, Any],
    image: UploadFile | None = None,
) -> Activity:
    changes = {field: value for field, value in changes.items() if value is not None}
    if "guide_id" in changes:
        _ensure_company_guide(db, activity.company_id, changes["guide_id"])
    if "price" in changes:
        changes["price"] = price_to_cents(changes["price"])
    if "name" in changes:
        changes["name"] = changes["name"].strip()

    upload = read_image(image)
    previous_image = activity.image
    created_blob = False
    if upload:
        changes["image"] = _image_key(activity.company_id, upload)
        created_blob = not storage.exists(changes["image"])
        storage.store(upload.data, changes["image"], upload.content_type)

    for field, value in changes.items():
        setattr(activity, field, value)
    try:
        db.commit()
    except Exception:
        db.rollback()
        if created_blob:
            storage.delete(changes["image"])
        raise
    db.refresh(activity)

    if upload and previous_image != activity.image:
        _release_image(db, storage, previous_image, activity.id)

    logger.info("Activity %s updated", activity.id)
    return activity


def delete_activity(db: Session, storage: ImageStorage, activity: Activity) -> None:
    activity_id = activity.id
    image_key = activity.image
    db.delete(activity)
    db.commit()

    _release_image(db, storage, image_key, activity_id)
    logger.info("Activity %s deleted", activity_id)
