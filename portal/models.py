from enum import Enum
from typing import FrozenSet


# Enums
class Role(str, Enum):
    AGENCY_ADMIN = "AGENCY_ADMIN"
    AGENCY_STAFF = "AGENCY_STAFF"
    CLIENT_ADMIN = "CLIENT_ADMIN"
    CLIENT_USER = "CLIENT_USER"


class PostStatus(str, Enum):
    """Shared lifecycle for blog posts and social media posts."""
    draft = "draft"
    pending_review = "pending_review"
    approved = "approved"
    rejected = "rejected"
    published = "published"


class InvoiceStatus(str, Enum):
    draft = "draft"
    sent = "sent"
    paid = "paid"
    overdue = "overdue"
    cancelled = "cancelled"


class ClientStatus(str, Enum):
    active = "active"
    inactive = "inactive"


class CampaignStatus(str, Enum):
    DRAFT = "DRAFT"
    REVIEW = "REVIEW"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    SCHEDULED = "SCHEDULED"
    ACTIVE = "ACTIVE"
    PAUSED = "PAUSED"
    COMPLETED = "COMPLETED"


class DealStage(str, Enum):
    prospecting = "prospecting"
    qualification = "qualification"
    proposal = "proposal"
    negotiation = "negotiation"
    won = "won"
    lost = "lost"


class Platform(str, Enum):
    facebook = "facebook"
    instagram = "instagram"
    twitter = "twitter"
    linkedin = "linkedin"
    tiktok = "tiktok"


class ContentStyle(str, Enum):
    post = "post"
    story = "story"
    reel = "reel"
    carousel = "carousel"
    video = "video"
    tweet = "tweet"
    thread = "thread"
    poll = "poll"
    article = "article"
    igtv = "igtv"


# Role families
AGENCY_ROLES: FrozenSet[Role] = frozenset({Role.AGENCY_ADMIN, Role.AGENCY_STAFF})
CLIENT_ROLES: FrozenSet[Role] = frozenset({Role.CLIENT_ADMIN, Role.CLIENT_USER})
ALL_ROLES: FrozenSet[Role] = AGENCY_ROLES | CLIENT_ROLES

# Posts in these states may still be edited or deleted by the agency
EDITABLE_POST_STATUSES: FrozenSet[str] = frozenset({PostStatus.draft.value, PostStatus.rejected.value})
