"""
Database Schema
---------------
SQLAlchemy Core table definitions for the marketplace.

Tables are declared once here and used by every service through
select/insert/update constructs, so the same statements run unchanged on
PostgreSQL (asyncpg) in production and SQLite (aiosqlite) in local runs and tests.

Conventions:
- primary keys are uuid4 strings (system_config is keyed by its config key)
- timestamps are naive UTC, produced by utc_now()
- status columns hold upper-case enum values, except help-desk tickets which
  keep their display form ("Open", "In Progress", ...)
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
)

metadata = MetaData()


def utc_now() -> datetime:
    """Current UTC time as a naive datetime."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_id() -> str:
    return str(uuid.uuid4())


organizations = Table(
    "organizations",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("name", String(200), nullable=False),
    Column("created_at", DateTime, nullable=False, default=utc_now),
)

users = Table(
    "users",
    metadata,
    Column("id", String(36), primary_key=True, default=new_id),
    Column("email", String(320), nullable=False, unique=True, index=True),
    Column("name", String(200), nullable=False),
    Column("password_hash", String(200), nullable=True),
    Column("phone", String(40), nullable=True),
    Column("role", String(20), nullable=False, default="CUSTOMER"),
    Column("status", String(30), nullable=False, default="ACTIVE"),
    Column("org_id", String(64), ForeignKey("organizations.id"), nullable=False),
    Column("email_verified", Boolean, nullable=False, default=False),
    Column("auth_provider", String(20), nullable=False, default="local"),
    Column("google_id", String(100), nullable=True),
    Column("last_login_at", DateTime, nullable=True),
    Column("created_at", DateTime, nullable=False, default=utc_now),
    Column("updated_at", DateTime, nullable=False, default=utc_now),
)

refresh_tokens = Table(
    "refresh_tokens",
    metadata,
    Column("id", String(36), primary_key=True, default=new_id),
    Column("user_id", String(36), ForeignKey("users.id"), nullable=False, index=True),
    Column("token", String(64), nullable=False, unique=True, index=True),
    Column("expires_at", DateTime, nullable=False),
    Column("revoked_at", DateTime, nullable=True),
    Column("created_at", DateTime, nullable=False, default=utc_now),
)

expert_applications = Table(
    "expert_applications",
    metadata,
    Column("id", String(36), primary_key=True, default=new_id),
    Column("user_id", String(36), ForeignKey("users.id"), nullable=False, unique=True),
    Column("org_id", String(64), nullable=False, index=True),
    Column("status", String(20), nullable=False, default="DRAFT"),
    Column("phone", String(40), nullable=True),
    Column("dob", String(20), nullable=True),
    Column("address", Text, nullable=True),
    Column("work_experience", Integer, nullable=True),
    Column("bio", Text, nullable=True),
    Column("domains", JSON, nullable=True),
    Column("skills", JSON, nullable=True),
    Column("availability", JSON, nullable=True),
    Column("hourly_rate", Float, nullable=True),
    Column("languages", JSON, nullable=True),
    Column("submitted_at", DateTime, nullable=True),
    Column("reviewed_at", DateTime, nullable=True),
    Column("reviewed_by", String(36), nullable=True),
    Column("rejection_reason", Text, nullable=True),
    Column("created_at", DateTime, nullable=False, default=utc_now),
    Column("updated_at", DateTime, nullable=False, default=utc_now),
)

expert_documents = Table(
    "expert_documents",
    metadata,
    Column("id", String(36), primary_key=True, default=new_id),
    Column("user_id", String(36), ForeignKey("users.id"), nullable=False, index=True),
    Column("application_id", String(36), nullable=True, index=True),
    Column("document_type", String(50), nullable=False, default="other"),
    Column("file_name", String(255), nullable=False),
    Column("file_type", String(120), nullable=False),
    Column("file_size", Integer, nullable=False),
    Column("object_key", String(500), nullable=False),
    Column("review_status", String(20), nullable=False, default="pending"),
    Column("application_status", String(20), nullable=False, default="draft"),
    Column("uploaded_at", DateTime, nullable=False, default=utc_now),
    Column("updated_at", DateTime, nullable=False, default=utc_now),
)

tasks = Table(
    "tasks",
    metadata,
    Column("id", String(36), primary_key=True, default=new_id),
    Column("title", String(200), nullable=False),
    Column("description", Text, nullable=True),
    Column("domain", String(100), nullable=True),
    Column("deadline", DateTime, nullable=True),
    Column("priority", String(10), nullable=False, default="MEDIUM"),
    Column("status", String(10), nullable=False, default="OPEN"),
    Column("created_by", String(36), ForeignKey("users.id"), nullable=False),
    Column("org_id", String(64), nullable=False, index=True),
    Column("created_at", DateTime, nullable=False, default=utc_now),
    Column("updated_at", DateTime, nullable=False, default=utc_now),
)

expert_tasks = Table(
    "expert_tasks",
    metadata,
    Column("id", String(36), primary_key=True, default=new_id),
    Column("task_id", String(36), ForeignKey("tasks.id"), nullable=False, index=True),
    Column("expert_id", String(36), ForeignKey("users.id"), nullable=False, index=True),
    Column("status", String(20), nullable=False, default="PENDING"),
    Column("assigned_at", DateTime, nullable=False, default=utc_now),
    Column("updated_at", DateTime, nullable=False, default=utc_now),
    Column("completed_at", DateTime, nullable=True),
    UniqueConstraint("task_id", "expert_id", name="uq_expert_tasks_task_expert"),
)

helpdesk_tickets = Table(
    "helpdesk_tickets",
    metadata,
    Column("id", String(36), primary_key=True, default=new_id),
    Column("ticket_number", String(40), nullable=False, unique=True),
    Column("subject", String(150), nullable=False),
    Column("category", String(100), nullable=True),
    Column("description", Text, nullable=False),
    Column("priority", String(10), nullable=False, default="MEDIUM"),
    Column("status", String(20), nullable=False, default="Open"),
    Column("raised_by", String(36), ForeignKey("users.id"), nullable=False, index=True),
    Column("assigned_to", String(36), nullable=True, index=True),
    Column("assigned_by", String(36), nullable=True),
    Column("locked_by", String(36), nullable=True),
    Column("org_id", String(64), nullable=False, index=True),
    Column("response_text", Text, nullable=True),
    Column("responder_id", String(36), nullable=True),
    Column("responded_at", DateTime, nullable=True),
    Column("edit_count", Integer, nullable=False, default=0),
    Column("is_edited", Boolean, nullable=False, default=False),
    Column("resolved_at", DateTime, nullable=True),
    Column("created_at", DateTime, nullable=False, default=utc_now),
    Column("updated_at", DateTime, nullable=False, default=utc_now),
)

notifications = Table(
    "notifications",
    metadata,
    Column("id", String(36), primary_key=True, default=new_id),
    Column("user_id", String(36), ForeignKey("users.id"), nullable=False, index=True),
    Column("type", String(40), nullable=False),
    Column("title", String(200), nullable=False),
    Column("message", Text, nullable=False),
    Column("link", String(300), nullable=True),
    Column("is_read", Boolean, nullable=False, default=False),
    Column("created_at", DateTime, nullable=False, default=utc_now),
)

activity_logs = Table(
    "activity_logs",
    metadata,
    Column("id", String(36), primary_key=True, default=new_id),
    Column("user_id", String(36), nullable=True, index=True),
    Column("org_id", String(64), nullable=True, index=True),
    Column("action", String(60), nullable=False),
    Column("entity_type", String(60), nullable=False),
    Column("entity_id", String(100), nullable=True),
    Column("details", JSON, nullable=True),
    Column("created_at", DateTime, nullable=False, default=utc_now),
)

system_config = Table(
    "system_config",
    metadata,
    Column("key", String(100), primary_key=True),
    Column("value", Text, nullable=False),
    Column("category", String(50), nullable=True),
    Column("description", Text, nullable=True),
    Column("updated_by", String(36), nullable=True),
    Column("updated_at", DateTime, nullable=False, default=utc_now),
)


DEFAULT_SYSTEM_CONFIG = [
    {
        "key": "maintenance_mode",
        "value": "false",
        "category": "system",
        "description": "Block every role except SUPERADMIN with a maintenance view",
    },
    {
        "key": "registration_open",
        "value": "true",
        "category": "auth",
        "description": "Allow self-service signup",
    },
    {
        "key": "expert_applications_open",
        "value": "true",
        "category": "features",
        "description": "Allow customers to submit expert applications",
    },
]
