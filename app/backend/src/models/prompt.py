"""Monthly prompt reference text."""

from __future__ import annotations

from sqlalchemy import Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class PromptReference(Base):
    """Curated market issue / trend text for a month."""

    __tablename__ = "prompt_references"
    __table_args__ = (UniqueConstraint("month", "kind", name="uq_prompt_references_month_kind"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    # YYYY-MM
    month: Mapped[str] = mapped_column(String(7), nullable=False, index=True)
    kind: Mapped[str] = mapped_column(String(32), nullable=False)
    contents: Mapped[str] = mapped_column(Text, nullable=False, default="")


__all__ = ["PromptReference"]
