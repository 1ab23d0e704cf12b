from sqlalchemy import (
    Column,
    ForeignKey,
    Integer,
    String,
    Float,
    Boolean,
    TIMESTAMP,
    Text,
    JSON,
)
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from querydash.core.database import Base


# =========================
# User
# =========================
class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)

    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    name = Column(String(255))

    created_at = Column(
        TIMESTAMP(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    updated_at = Column(
        TIMESTAMP(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    # Relationships
    dashboards = relationship(
        "Dashboard",
        back_populates="owner",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


# =========================
# Dashboard
# =========================
class Dashboard(Base):
    __tablename__ = "dashboards"

    id = Column(Integer, primary_key=True, autoincrement=True)

    user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    name = Column(String(255), nullable=False)
    description = Column(Text)
    config = Column(JSON, nullable=False, default=dict)

    created_at = Column(
        TIMESTAMP(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    updated_at = Column(
        TIMESTAMP(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    # Relationships
    owner = relationship("User", back_populates="dashboards")

    queries = relationship(
        "Query",
        back_populates="dashboard",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    alerts = relationship(
        "Alert",
        back_populates="dashboard",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


# =========================
# Query (durable record of every resolved NL query)
# =========================
class Query(Base):
    """
    Append-only log of executed natural-language queries.
    Only fresh executions land here; cache hits are not re-recorded.
    """

    __tablename__ = "queries"

    id = Column(Integer, primary_key=True, autoincrement=True)

    dashboard_id = Column(
        Integer,
        ForeignKey("dashboards.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    natural_language = Column(Text, nullable=False)
    sql_query = Column(Text)
    result = Column(JSON)

    executed_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
    created_at = Column(
        TIMESTAMP(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    # Relationships
    dashboard = relationship("Dashboard", back_populates="queries")


# =========================
# Alert
# =========================
class Alert(Base):
    __tablename__ = "alerts"

    id = Column(Integer, primary_key=True, autoincrement=True)

    dashboard_id = Column(
        Integer,
        ForeignKey("dashboards.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    name = Column(String(255), nullable=False)
    condition = Column(Text, nullable=False)
    threshold = Column(Float)
    is_active = Column(Boolean, default=True)

    created_at = Column(
        TIMESTAMP(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    updated_at = Column(
        TIMESTAMP(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    dashboard = relationship("Dashboard", back_populates="alerts")
