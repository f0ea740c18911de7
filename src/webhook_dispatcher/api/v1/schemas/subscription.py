from __future__ import annotations

from pydantic import BaseModel, Field


class SubscribeRequest(BaseModel):
    # Only the known fields are kept; anything extra in the body is dropped.
    user_id: int
    event: str = Field(min_length=1, max_length=100)
    target_url: str = Field(min_length=1)


class SubscriptionResponse(BaseModel):
    id: int
    user_id: int
    event: str
    target_url: str

    model_config = {"from_attributes": True}
