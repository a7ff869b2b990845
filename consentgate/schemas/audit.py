import json
from datetime import datetime

from pydantic import BaseModel, ConfigDict, field_validator


class ConsentLogOut(BaseModel):
    id: int
    consent_id: str
    ip_hash: str
    categories: dict[str, bool]
    policy_version: str
    action_type: str
    user_agent: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_validator("categories", mode="before")
    @classmethod
    def parse_categories(cls, value):
        if isinstance(value, str):
            try:
                value = json.loads(value)
            except ValueError:
                return {}
        return value if isinstance(value, dict) else {}


class ConsentLogList(BaseModel):
    total: int
    logs: list[ConsentLogOut]


class ConsentStats(BaseModel):
    days: int
    total: int
    recent: int
    actions: dict[str, int]
    accept_rate: float | None = None
    reject_rate: float | None = None


class ErasureResponse(BaseModel):
    deleted: int
