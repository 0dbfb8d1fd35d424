"""Request models: club registrations, join requests and lesson requests.

A ClubSubmission lives only until staff approve it (it becomes an
Organization) or decline it. Join and lesson requests keep their final status.
"""

import enum
from datetime import date, time

from sqlalchemy import Date, Enum, ForeignKey, Index, Integer, String, Text, Time, text
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, TimestampMixin, enum_values


class RequestStatus(enum.StrEnum):
    PENDING = "pending"
    APPROVED = "approved"
    DECLINED = "declined"


def _status_column() -> Mapped[RequestStatus]:
    return mapped_column(
        Enum(RequestStatus, name="request_status", values_callable=enum_values),
        default=RequestStatus.PENDING,
        nullable=False,
    )


class ClubSubmission(TimestampMixin, Base):
    """A pending club registration from the public form."""

    __tablename__ = "club_submissions"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str] = mapped_column(String(254), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(50))
    website: Mapped[str | None] = mapped_column(String(500))
    address: Mapped[str | None] = mapped_column(Text)
    city: Mapped[str] = mapped_column(String(100), nullable=False)
    state: Mapped[str] = mapped_column(String(100), nullable=False)
    zip: Mapped[str | None] = mapped_column(String(20))
    description: Mapped[str | None] = mapped_column(Text)
    courts: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    court_type: Mapped[str] = mapped_column(String(50), default="hard", nullable=False)
    status: Mapped[RequestStatus] = _status_column()

    submitted_by: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    submitter_email: Mapped[str] = mapped_column(String(254), nullable=False)
    submitter_name: Mapped[str] = mapped_column(String(200), nullable=False)

    def __repr__(self) -> str:
        return f"<ClubSubmission {self.name} by user={self.submitted_by}>"


class ClubJoinRequest(TimestampMixin, Base):
    __tablename__ = "club_join_requests"

    id: Mapped[int] = mapped_column(primary_key=True)
    organization_id: Mapped[int] = mapped_column(ForeignKey("organizations.id"), nullable=False)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    message: Mapped[str | None] = mapped_column(Text)
    status: Mapped[RequestStatus] = _status_column()

    __table_args__ = (
        # At most one pending request per user and club
        Index(
            "ix_join_requests_one_pending",
            "organization_id",
            "user_id",
            unique=True,
            postgresql_where=text("status = 'pending'"),
            sqlite_where=text("status = 'pending'"),
        ),
    )

    def __repr__(self) -> str:
        return f"<ClubJoinRequest user={self.user_id} org={self.organization_id} {self.status.value}>"


class LessonRequest(TimestampMixin, Base):
    __tablename__ = "lesson_requests"

    id: Mapped[int] = mapped_column(primary_key=True)
    organization_id: Mapped[int] = mapped_column(ForeignKey("organizations.id"), nullable=False)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    coach_id: Mapped[int | None] = mapped_column(ForeignKey("coaches.id", ondelete="SET NULL"))
    preferred_date: Mapped[date] = mapped_column(Date, nullable=False)
    preferred_time: Mapped[time | None] = mapped_column(Time)
    duration_minutes: Mapped[int] = mapped_column(Integer, default=60, nullable=False)
    message: Mapped[str | None] = mapped_column(Text)
    status: Mapped[RequestStatus] = _status_column()

    __table_args__ = (Index("ix_lesson_requests_org_status", "organization_id", "status"),)

    def __repr__(self) -> str:
        return f"<LessonRequest user={self.user_id} org={self.organization_id} {self.status.value}>"
