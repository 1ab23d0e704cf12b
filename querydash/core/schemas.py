from datetime import datetime
from typing import Optional, List, Dict, Any

from pydantic import BaseModel, ConfigDict, Field, EmailStr


# =========================
# USER
# =========================
class UserBase(BaseModel):
    email: EmailStr
    name: Optional[str] = Field(default=None, max_length=255)


class CreateUser(UserBase):
    password: str
    model_config = ConfigDict(from_attributes=True)


class UserLogin(BaseModel):
    email: EmailStr
    password: str


class UserResponse(UserBase):
    id: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


class PrincipalResponse(BaseModel):
    id: int
    email: str


# =========================
# DASHBOARD
# =========================
class DashboardCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    config: Dict[str, Any] = {}


class DashboardResponse(BaseModel):
    id: int
    user_id: int
    name: str
    description: Optional[str] = None
    config: Dict[str, Any] = {}
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


# =========================
# QUERY
# =========================
class TabularData(BaseModel):
    columns: List[str]
    rows: List[Dict[str, Any]]


class QueryExecuteRequest(BaseModel):
    # Length and emptiness are checked by the orchestrator so they map to 400
    naturalLanguage: str = ""


class QueryResultResponse(BaseModel):
    queryId: str
    dashboardId: str
    data: TabularData
    fromCache: bool
    timestamp: int


class QueryRecordResponse(BaseModel):
    id: int
    dashboard_id: int
    natural_language: str
    result: Optional[Dict[str, Any]] = None
    executed_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
