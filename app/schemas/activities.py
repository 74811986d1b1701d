from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class ActivityOut(BaseModel):
    id: int
    company_id: int
    guide_id: int
    name: str
    description: str
    start_time: datetime
    price: int = Field(description="Price in minor currency units (cents)")
    image: str | None

    model_config = ConfigDict(
        from_attributes=True,
    )


class ActivityEditOut(BaseModel):
    activity: ActivityOut
    guides: dict[int, str]
