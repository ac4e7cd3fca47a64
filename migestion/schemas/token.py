# migestion/schemas/token.py
from datetime import datetime

from pydantic import BaseModel, ConfigDict


class AccessClaims(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: str
    tenant_id: str
    email: str
    role: str


class RefreshClaims(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: str
    token_id: str


class TokenPair(BaseModel):
    model_config = ConfigDict(frozen=True)

    access_token: str
    refresh_token: str
    access_token_expires_at: datetime
    refresh_token_expires_at: datetime
