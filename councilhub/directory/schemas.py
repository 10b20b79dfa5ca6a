from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field

from councilhub.directory.enums import ContactType


class ContactIn(BaseModel):
    contact_name: str = Field(..., min_length=1, max_length=200)
    organization: Optional[str] = Field(None, max_length=200)
    title: Optional[str] = Field(None, max_length=200)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=50)
    address: Optional[str] = Field(None, max_length=255)
    city: Optional[str] = Field(None, max_length=100)
    state: Optional[str] = Field(None, max_length=50)
    zip_code: Optional[str] = Field(None, max_length=20)
    website: Optional[str] = Field(None, max_length=500)
    notes: Optional[str] = None
    contact_type: ContactType = ContactType.CONTACT


class ContactOut(BaseModel):
    id: int
    contact_name: str
    organization: Optional[str]
    title: Optional[str]
    email: Optional[str]
    phone: Optional[str]
    address: Optional[str]
    city: Optional[str]
    state: Optional[str]
    zip_code: Optional[str]
    website: Optional[str]
    notes: Optional[str]
    contact_type: ContactType
    added_by_id: Optional[int]
    modified_by_id: Optional[int]

    class Config:
        from_attributes = True


class ImportResult(BaseModel):
    success: bool
    imported_count: int
    total_rows: int
    errors: List[str] = []
