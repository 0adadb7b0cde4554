"""SQLAlchemy model for the feasibility reporting table."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Float, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class FeasibilityReview(Base):
    """One row per feasibility review that survived reconciliation."""

    __tablename__ = "v_feasibility"

    key: Mapped[str] = mapped_column(String(64), primary_key=True)
    summary: Mapped[str | None] = mapped_column(Text, nullable=True)
    reviewer_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    reporter_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    project_name: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    resolution_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # Estimates are stored in seconds.
    design_estimate: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    development_estimate: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    development_pad_estimate: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    pe_estimate: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    pm_estimate: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    qa_estimate: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    issue_links: Mapped[str | None] = mapped_column(Text, nullable=True)
    worklog: Mapped[str | None] = mapped_column(Text, nullable=True)

    feasibility_timespent: Mapped[float | None] = mapped_column(Float, nullable=True)
    issue_links_timespent: Mapped[float | None] = mapped_column(Float, nullable=True)
    feasibility_estimate_total: Mapped[float | None] = mapped_column(Float, nullable=True)
    delta: Mapped[float | None] = mapped_column(Float, nullable=True)
    delta_percentage: Mapped[float | None] = mapped_column(Float, nullable=True)

    def __repr__(self) -> str:
        """Return a developer-friendly string representation."""

        return (
            f"<FeasibilityReview key={self.key} project={self.project_name} "
            f"delta={self.delta}>"
        )
