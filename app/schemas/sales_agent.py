"""Pydantic schemas for Sales Agents."""
from datetime import datetime
from typing import Optional, List
from uuid import UUID
from pydantic import BaseModel, Field, EmailStr

from app.schemas.base import BaseResponseSchema, BaseUpdateSchema, ListResponseSchema


class SalesAgentBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    agent_code: str = Field(..., min_length=1, max_length=30)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=20)
    notes: Optional[str] = None
    is_active: bool = True


class SalesAgentCreate(SalesAgentBase):
    pass


class SalesAgentUpdate(BaseUpdateSchema):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    agent_code: Optional[str] = Field(None, min_length=1, max_length=30)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=20)
    notes: Optional[str] = None
    is_active: Optional[bool] = None


class SalesAgentResponse(BaseResponseSchema):
    id: UUID
    name: str
    agent_code: str
    email: Optional[str] = None
    phone: Optional[str] = None
    notes: Optional[str] = None
    is_active: bool
    created_at: datetime
    updated_at: datetime


class SalesAgentListResponse(ListResponseSchema):
    items: List[SalesAgentResponse]
