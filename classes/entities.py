# classes/entities.py
from sqlalchemy import Column, DateTime, String, JSON, func
from sqlalchemy.orm import Mapped, declarative_base, mapped_column

Base = declarative_base()


class TimestampMixin:
    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime,
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )


class CollectionDocument(Base, TimestampMixin):
    """
    The whole gallery (minerals, homePageLayout, layoutHistory) as one JSON
    document, read and replaced wholesale.
    """
    __tablename__ = "collection_document"

    document_id: Mapped[str] = mapped_column(String, primary_key=True)
    content: Mapped[dict] = mapped_column(JSON, nullable=False)
