"""
portal/tables.py

Relational schema (SQLAlchemy Core). Every tenant-owned table carries `client_id`.
Timestamps are fixed-width ISO-8601 UTC strings so that string order is time order.
"""

from sqlalchemy import (
    Boolean,
    Column,
    Float,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
)

metadata = MetaData()

clients = Table(
    "clients",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("name", String(200), nullable=False),
    Column("company_name", String(200)),
    Column("email", String(254), unique=True),
    Column("status", String(20), nullable=False, default="active"),
    Column("portal_enabled", Boolean, nullable=False, default=True),
    Column("campaigns_enabled", Boolean, nullable=False, default=True),
    Column("social_media_enabled", Boolean, nullable=False, default=True),
    Column("blogs_enabled", Boolean, nullable=False, default=True),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

users = Table(
    "users",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("email", String(254), unique=True, nullable=False),
    Column("name", String(200)),
    Column("password_hash", String(200)),
    Column("role", String(20), nullable=False),
    Column("client_id", String(36), ForeignKey("clients.id", ondelete="CASCADE")),
    Column("is_active", Boolean, nullable=False, default=True),
    Column("created_at", String(32), nullable=False),
)

blog_posts = Table(
    "blog_posts",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("client_id", String(36), ForeignKey("clients.id", ondelete="CASCADE"), nullable=False),
    Column("title", String(300), nullable=False),
    Column("slug", String(320), unique=True, nullable=False),
    Column("content", Text, nullable=False),
    Column("excerpt", Text),
    Column("author", String(200)),
    Column("status", String(20), nullable=False, default="draft"),
    Column("rejection_reason", Text),
    Column("published_at", String(32)),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
    Index("ix_blog_posts_client_status", "client_id", "status"),
)

social_posts = Table(
    "social_posts",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("client_id", String(36), ForeignKey("clients.id", ondelete="CASCADE"), nullable=False),
    Column("platform", String(40), nullable=False),
    Column("content_style", String(20), nullable=False, default="post"),
    Column("caption", Text),
    # JSON array of image URLs
    Column("images", Text),
    Column("video_url", String(1000)),
    Column("link", String(1000)),
    Column("timezone", String(64)),
    Column("status", String(20), nullable=False, default="draft"),
    Column("rejection_reason", Text),
    Column("scheduled_at", String(32)),
    Column("published_at", String(32)),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
    Index("ix_social_posts_sweep", "status", "scheduled_at"),
)

contacts = Table(
    "contacts",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("client_id", String(36), ForeignKey("clients.id", ondelete="CASCADE"), nullable=False),
    Column("first_name", String(100), nullable=False),
    Column("last_name", String(100), nullable=False),
    Column("email", String(254)),
    Column("phone", String(50)),
    Column("title", String(100)),
    Column("is_primary", Boolean, nullable=False, default=False),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
    Index("ix_contacts_client", "client_id"),
)

notifications = Table(
    "notifications",
    metadata,
    Column("id", String(36), primary_key=True),
    # NULL client_id means a global notification visible to every client
    Column("client_id", String(36), ForeignKey("clients.id", ondelete="CASCADE")),
    Column("title", String(300), nullable=False),
    Column("text", Text),
    Column("is_read", Boolean, nullable=False, default=False),
    Column("read_at", String(32)),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

invoices = Table(
    "invoices",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("client_id", String(36), ForeignKey("clients.id", ondelete="CASCADE"), nullable=False),
    Column("number", String(50), unique=True, nullable=False),
    Column("amount", Float, nullable=False),
    Column("status", String(20), nullable=False, default="draft"),
    Column("due_date", String(32), nullable=False),
    Column("paid_date", String(32)),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

projects = Table(
    "projects",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("client_id", String(36), ForeignKey("clients.id", ondelete="CASCADE"), nullable=False),
    Column("name", String(200), nullable=False),
    Column("description", Text),
    Column("status", String(30), nullable=False, default="active"),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

campaigns = Table(
    "campaigns",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("client_id", String(36), ForeignKey("clients.id", ondelete="CASCADE"), nullable=False),
    Column("name", String(200), nullable=False),
    Column("description", Text),
    Column("type", String(20), nullable=False, default="EMAIL"),
    Column("status", String(20), nullable=False, default="DRAFT"),
    Column("rejection_reason", Text),
    Column("scheduled_date", String(32)),
    Column("email_subject", String(300)),
    Column("email_body", Text),
    Column("from_name", String(200)),
    Column("from_email", String(254)),
    Column("reply_to_email", String(254)),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
    Index("ix_campaigns_client", "client_id"),
)

messages = Table(
    "messages",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("client_id", String(36), ForeignKey("clients.id", ondelete="CASCADE"), nullable=False),
    Column("sender_id", String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    Column("content", Text, nullable=False),
    Column("is_read", Boolean, nullable=False, default=False),
    Column("read_at", String(32)),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
    Index("ix_messages_client", "client_id"),
)

deals = Table(
    "deals",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("client_id", String(36), ForeignKey("clients.id", ondelete="CASCADE"), nullable=False),
    Column("name", String(200), nullable=False),
    Column("description", Text),
    Column("value", Float),
    Column("stage", String(30), nullable=False, default="prospecting"),
    Column("probability", Integer, nullable=False, default=0),
    Column("expected_close_date", String(32)),
    Column("actual_close_date", String(32)),
    Column("lost_reason", Text),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

notes = Table(
    "notes",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("client_id", String(36), ForeignKey("clients.id", ondelete="CASCADE"), nullable=False),
    # Author
    Column("user_id", String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    Column("title", String(300)),
    Column("content", Text, nullable=False),
    Column("is_private", Boolean, nullable=False, default=False),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

# Tables reachable through the generic Store API
TABLES = {t.name: t for t in metadata.sorted_tables}
