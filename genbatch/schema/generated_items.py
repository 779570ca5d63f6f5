from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Index, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from genbatch.core.database import Base


class GeneratedItem(Base):
  """Durable copy of a generated item and the media produced for it."""

  __tablename__ = "generated_items"

  id: Mapped[str] = mapped_column(String, primary_key=True)
  kind: Mapped[str] = mapped_column(String, nullable=False, index=True)
  content: Mapped[str] = mapped_column(Text, nullable=False, default="")
  lang_code: Mapped[str | None] = mapped_column(String, nullable=True)
  # "metadata" is reserved on declarative classes, so the attribute is renamed.
  item_metadata: Mapped[dict] = mapped_column("metadata", JSONB, nullable=False, default=dict)
  media: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict)
  is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
  updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())


# Durable fallback lookups filter on metadata->>'batch_id'.
Index("ix_generated_items_batch_id", GeneratedItem.item_metadata["batch_id"].astext)
