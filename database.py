"""Database module for Context Reminders.

This module defines SQLAlchemy models and database session management.
Reminder `details` is a JSON payload whose shape is selected by
`trigger_type`; see triggers.py for the accepted shapes.
"""

from sqlalchemy import create_engine, Column, String, DateTime, JSON, Boolean, Float, Index
from sqlalchemy.orm import declarative_base, sessionmaker

from config import settings

# SQLAlchemy Base
Base = declarative_base()


class Reminder(Base):
    """Reminder model - the only persisted reminder entity."""

    __tablename__ = "reminders"

    id = Column(String, primary_key=True, doc="Unique reminder ID (UUID), also the notification ID")
    user_id = Column(String, nullable=False, index=True, doc="Owning user account")

    title = Column(String, nullable=False, doc="Reminder title")
    category = Column(String, nullable=False, default="", doc="Free-text category label")

    trigger_type = Column(String, nullable=False, doc="time, location or condition")
    details = Column(JSON, nullable=False, default=dict, doc="Trigger payload matching trigger_type")

    is_recurring = Column(Boolean, nullable=False, default=False)
    recurring_interval = Column(String, nullable=True, doc="daily, weekly or monthly")

    # Set once a time reminder has fired; cleared on create/edit
    notified = Column(Boolean, nullable=False, default=False, index=True)

    # Present only on copies received through sharing
    shared_by = Column(String, nullable=True, doc="User ID of the sharer")
    shared_at = Column(DateTime(timezone=True), nullable=True, doc="Server time of the share")

    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index('idx_user_trigger', 'user_id', 'trigger_type'),
    )

    def __repr__(self):
        """String representation"""
        return (
            f"<Reminder(id={self.id}, user={self.user_id}, "
            f"title={self.title}, trigger={self.trigger_type}, notified={self.notified})>"
        )


class User(Base):
    """User account known to the reminder service."""

    __tablename__ = "users"

    id = Column(String, primary_key=True)
    email = Column(String, nullable=False, unique=True, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False)

    def __repr__(self):
        return f"<User(id={self.id}, email={self.email})>"


class DeviceLocation(Base):
    """Last position reported by a user's device."""

    __tablename__ = "device_locations"

    user_id = Column(String, primary_key=True)
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    reported_at = Column(DateTime(timezone=True), nullable=False)


# Database Engine Setup
engine = create_engine(
    settings.DATABASE_URL,
    connect_args={"check_same_thread": False} if "sqlite" in settings.DATABASE_URL else {},
    echo=False  # Set to True for SQL debugging
)

# Session Factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    """Database session dependency for FastAPI.

    Yields:
        Session: SQLAlchemy database session
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


# Create all tables
Base.metadata.create_all(bind=engine)
