"""
portal/schemas.py

Pydantic request schemas for the portal API.

Request bodies accept both the camelCase names the portal frontend sends
(`clientId`, `rejectionReason`, `isPrimary`) and snake_case names. Tenant ids in
bodies are only honoured for agency users; client sessions always act inside the
tenant fixed by their session.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from portal.db import to_iso
from portal.models import CampaignStatus, DealStage, InvoiceStatus, PostStatus


class RequestModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


def _strip(v):
    if isinstance(v, str):
        return v.strip()
    return v


def to_values(model: BaseModel, exclude_unset: bool = False) -> Dict[str, Any]:
    """Dump a request model into column values (enum values, ISO timestamps)."""
    values = {}
    for key, value in model.model_dump(exclude_unset=exclude_unset).items():
        if isinstance(value, Enum):
            value = value.value
        elif isinstance(value, datetime):
            value = to_iso(value)
        values[key] = value
    return values


# ========================================================================
# CLIENTS (tenants)
# ========================================================================

class ClientCreateRequest(RequestModel):
    name: str = Field(..., min_length=1, max_length=200)
    company_name: Optional[str] = Field(None, max_length=200)
    email: Optional[str] = Field(None, max_length=254)
    portal_enabled: bool = True
    campaigns_enabled: bool = True
    social_media_enabled: bool = True
    blogs_enabled: bool = True

    @field_validator("name", mode="before")
    @classmethod
    def trim_name(cls, v):
        """Trim whitespace from name."""
        return _strip(v)


class ClientUpdateRequest(RequestModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    company_name: Optional[str] = Field(None, max_length=200)
    email: Optional[str] = Field(None, max_length=254)
    status: Optional[str] = Field(None, pattern="^(active|inactive)$")
    portal_enabled: Optional[bool] = None
    campaigns_enabled: Optional[bool] = None
    social_media_enabled: Optional[bool] = None
    blogs_enabled: Optional[bool] = None


# ========================================================================
# BLOG POSTS
# ========================================================================

class BlogCreateRequest(RequestModel):
    """Title, content and client are required; slug is derived from the title."""
    client_id: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1, max_length=300)
    content: str = Field(..., min_length=1)
    excerpt: Optional[str] = None
    author: Optional[str] = Field(None, max_length=200)
    status: PostStatus = PostStatus.draft

    @field_validator("title", mode="before")
    @classmethod
    def trim_title(cls, v):
        """Trim whitespace from title."""
        return _strip(v)


class BlogUpdateRequest(RequestModel):
    title: str = Field(..., min_length=1, max_length=300)
    content: str = Field(..., min_length=1)
    excerpt: Optional[str] = None
    author: Optional[str] = Field(None, max_length=200)
    status: Optional[PostStatus] = None

    @field_validator("title", mode="before")
    @classmethod
    def trim_title(cls, v):
        """Trim whitespace from title."""
        return _strip(v)


class BulkActionRequest(RequestModel):
    """
    Bulk review request. Shape is validated loosely here; the operation reports
    empty ids or unknown actions as 400 with a specific message.
    """
    ids: List[str] = Field(default_factory=list)
    action: Optional[str] = None
    rejection_reason: Optional[str] = Field(None, max_length=2000)


# ========================================================================
# SOCIAL MEDIA POSTS
# ========================================================================

class SocialPostCreateRequest(RequestModel):
    """
    Platform, content style and client are checked together by the operation so
    a missing one reports a single message.
    """
    client_id: Optional[str] = None
    platform: Optional[str] = Field(None, max_length=40)
    content_style: Optional[str] = Field(None, max_length=20)
    caption: Optional[str] = None
    images: Optional[List[str]] = None
    video_url: Optional[str] = Field(None, max_length=1000)
    link: Optional[str] = Field(None, max_length=1000)
    timezone: Optional[str] = Field(None, max_length=64)
    status: PostStatus = PostStatus.draft
    scheduled_at: Optional[datetime] = None


class SocialPostUpdateRequest(RequestModel):
    platform: Optional[str] = Field(None, max_length=40)
    content_style: Optional[str] = Field(None, max_length=20)
    caption: Optional[str] = None
    images: Optional[List[str]] = None
    video_url: Optional[str] = Field(None, max_length=1000)
    link: Optional[str] = Field(None, max_length=1000)
    timezone: Optional[str] = Field(None, max_length=64)
    status: Optional[PostStatus] = None
    scheduled_at: Optional[datetime] = None


class ReviewRequest(RequestModel):
    action: Optional[str] = None
    rejection_reason: Optional[str] = Field(None, max_length=2000)


# ========================================================================
# CRM CONTACTS
# ========================================================================

class ContactCreateRequest(RequestModel):
    client_id: str = Field(..., min_length=1)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: Optional[str] = Field(None, max_length=254)
    phone: Optional[str] = Field(None, max_length=50)
    title: Optional[str] = Field(None, max_length=100)
    is_primary: bool = False


class ContactUpdateRequest(RequestModel):
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    email: Optional[str] = Field(None, max_length=254)
    phone: Optional[str] = Field(None, max_length=50)
    title: Optional[str] = Field(None, max_length=100)
    is_primary: Optional[bool] = None


# ========================================================================
# NOTIFICATIONS
# ========================================================================

class NotificationCreateRequest(RequestModel):
    title: str = Field(..., min_length=1, max_length=300)
    text: Optional[str] = None
    # None sends the notification to every client
    client_id: Optional[str] = None


class NotificationUpdateRequest(RequestModel):
    is_read: Optional[bool] = None
    title: Optional[str] = Field(None, min_length=1, max_length=300)
    text: Optional[str] = None
    client_id: Optional[str] = None


# ========================================================================
# INVOICES / PROJECTS
# ========================================================================

class InvoiceCreateRequest(RequestModel):
    client_id: str = Field(..., min_length=1)
    number: str = Field(..., min_length=1, max_length=50)
    amount: float = Field(..., ge=0)
    status: InvoiceStatus = InvoiceStatus.draft
    due_date: datetime


class ProjectCreateRequest(RequestModel):
    client_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    status: str = Field("active", max_length=30)

    @field_validator("name", mode="before")
    @classmethod
    def trim_name(cls, v):
        """Trim whitespace from name."""
        return _strip(v)


class ProjectUpdateRequest(RequestModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    status: Optional[str] = Field(None, max_length=30)


# ========================================================================
# CAMPAIGNS
# ========================================================================

class CampaignCreateRequest(RequestModel):
    client_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    type: str = Field("EMAIL", max_length=20)
    status: CampaignStatus = CampaignStatus.DRAFT
    scheduled_date: Optional[datetime] = None
    email_subject: Optional[str] = Field(None, max_length=300)
    email_body: Optional[str] = None
    from_name: Optional[str] = Field(None, max_length=200)
    from_email: Optional[str] = Field(None, max_length=254)
    reply_to_email: Optional[str] = Field(None, max_length=254)

    @field_validator("name", mode="before")
    @classmethod
    def trim_name(cls, v):
        """Trim whitespace from name."""
        return _strip(v)

    @field_validator("description", "email_subject", "email_body", "from_name", "from_email", "reply_to_email", mode="before")
    @classmethod
    def blank_to_none(cls, v):
        """Empty form fields are stored as NULL."""
        return None if v == "" else v


class CampaignUpdateRequest(RequestModel):
    """Agency users may change any field; client users only status and rejectionReason."""
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    type: Optional[str] = Field(None, max_length=20)
    status: Optional[CampaignStatus] = None
    rejection_reason: Optional[str] = Field(None, max_length=2000)
    scheduled_date: Optional[datetime] = None
    email_subject: Optional[str] = Field(None, max_length=300)
    email_body: Optional[str] = None
    from_name: Optional[str] = Field(None, max_length=200)
    from_email: Optional[str] = Field(None, max_length=254)
    reply_to_email: Optional[str] = Field(None, max_length=254)


# ========================================================================
# MESSAGES
# ========================================================================

class MessageCreateRequest(RequestModel):
    content: Optional[str] = None
    # Ignored for client users, who always write to their own client
    client_id: Optional[str] = None


# ========================================================================
# CRM DEALS / NOTES
# ========================================================================

class DealCreateRequest(RequestModel):
    client_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    value: Optional[float] = Field(None, ge=0)
    stage: DealStage = DealStage.prospecting
    probability: int = Field(0, ge=0, le=100)
    expected_close_date: Optional[datetime] = None


class DealUpdateRequest(RequestModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    value: Optional[float] = Field(None, ge=0)
    stage: Optional[DealStage] = None
    probability: Optional[int] = Field(None, ge=0, le=100)
    expected_close_date: Optional[datetime] = None
    actual_close_date: Optional[datetime] = None
    lost_reason: Optional[str] = None


class NoteCreateRequest(RequestModel):
    client_id: str = Field(..., min_length=1)
    title: Optional[str] = Field(None, max_length=300)
    content: str = Field(..., min_length=1)
    is_private: bool = False


class NoteUpdateRequest(RequestModel):
    title: Optional[str] = Field(None, max_length=300)
    content: Optional[str] = Field(None, min_length=1)
    is_private: Optional[bool] = None
