from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, Integer, String, Text
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def utcnow():
    """Naive UTC timestamp, the form stored in every DateTime column."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


# PUBLIC_INTERFACE
class Reference(Base):
    """
    SQLAlchemy model for a cataloged UI reference.

    Tags are kept as a JSON array of strings. Screenshots point back at a
    reference through Screenshot.reference_id; there is no ORM relationship
    so that ownership stays a plain column the repository validates.
    """
    __tablename__ = "ui_references"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(Text, nullable=False)
    url = Column(Text, nullable=True)
    description = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    tags = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)


# PUBLIC_INTERFACE
class Screenshot(Base):
    """
    SQLAlchemy model for screenshot metadata. The binary itself lives in an
    external blob store addressed by file_path.
    """
    __tablename__ = "screenshots"

    id = Column(Integer, primary_key=True, index=True)
    reference_id = Column(Integer, nullable=True, index=True)
    filename = Column(String(255), nullable=False)
    original_filename = Column(String(255), nullable=False)
    file_path = Column(Text, nullable=False)
    file_size = Column(Integer, nullable=False)
    mime_type = Column(String(128), nullable=False)
    alt_text = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
