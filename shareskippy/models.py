"""
Database models for ShareSkippy.

A ``Profile`` is both the member's account and their public community
card. Dog owners and pet pals find each other through the community
feed, exchange messages and schedule meetings. Members advertising an
active ``AvailabilityPost`` are surfaced through the availability flow
instead of the general feed.

Every dependent row hangs off a profile with ``delete-orphan`` cascades
so that the deletion sweep can remove an account with a single
``session.delete``. Deletion requests and the deleted-email ledger are
deliberately not linked by foreign key; they outlive the profile.
"""

from __future__ import annotations

import enum
import uuid
from datetime import datetime
from typing import Optional

from werkzeug.security import generate_password_hash, check_password_hash

from . import db
from .util.timeutils import utcnow


def _new_id() -> str:
    # hex ids never contain the cursor separator
    return uuid.uuid4().hex


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class ProfileRole(enum.Enum):
    """Enumeration of community roles."""
    DOG_OWNER = "dog_owner"
    PETPAL = "petpal"
    BOTH = "both"


class PostType(enum.Enum):
    DOG_AVAILABLE = "dog_available"
    PETPAL_AVAILABLE = "petpal_available"


class MeetingStatus(enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class DeletionStatus(enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class Profile(db.Model):
    __allow_unmapped__ = True
    """A community member.

    Passwords are stored as salted hashes. ``updated_at`` doubles as the
    fallback recency signal for members with no recorded activity.
    """
    __tablename__ = "profiles"

    id: str = db.Column(db.String(32), primary_key=True, default=_new_id)
    email: str = db.Column(db.String(254), unique=True, nullable=False)
    password_hash: str = db.Column(db.String(256), nullable=False)
    first_name: str = db.Column(db.String(50), nullable=False, default="")
    last_name: str = db.Column(db.String(50), nullable=False, default="")
    phone_number: Optional[str] = db.Column(db.String(32))
    profile_photo_url: Optional[str] = db.Column(db.String(500))
    city: Optional[str] = db.Column(db.String(100))
    neighborhood: Optional[str] = db.Column(db.String(100))
    role: Optional[ProfileRole] = db.Column(
        db.Enum(ProfileRole, values_callable=_enum_values, name="profile_role")
    )
    bio: Optional[str] = db.Column(db.Text)
    display_lat: Optional[float] = db.Column(db.Float)
    display_lng: Optional[float] = db.Column(db.Float)
    created_at: datetime = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at: datetime = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    # Relationships. Collections stay unannotated so the mapper keeps them as lists.
    settings: Optional[UserSettings] = db.relationship(
        "UserSettings", back_populates="profile", uselist=False, cascade="all, delete-orphan"
    )
    dogs = db.relationship(
        "Dog", back_populates="owner", cascade="all, delete-orphan", order_by="Dog.id"
    )
    activities = db.relationship(
        "UserActivity", back_populates="profile", cascade="all, delete-orphan"
    )
    availability_posts = db.relationship(
        "AvailabilityPost", back_populates="owner", cascade="all, delete-orphan"
    )
    meetings_requested = db.relationship(
        "Meeting", foreign_keys="Meeting.requester_id", back_populates="requester",
        cascade="all, delete-orphan",
    )
    meetings_received = db.relationship(
        "Meeting", foreign_keys="Meeting.recipient_id", back_populates="recipient",
        cascade="all, delete-orphan",
    )
    messages_sent = db.relationship(
        "Message", foreign_keys="Message.sender_id", back_populates="sender", cascade="all, delete-orphan"
    )
    messages_received = db.relationship(
        "Message", foreign_keys="Message.recipient_id", back_populates="recipient", cascade="all, delete-orphan"
    )
    views_received = db.relationship(
        "ProfileView", foreign_keys="ProfileView.viewed_profile_id", cascade="all, delete-orphan"
    )
    views_made = db.relationship(
        "ProfileView", foreign_keys="ProfileView.viewer_id", cascade="all, delete-orphan"
    )

    def set_password(self, password: str) -> None:
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        return check_password_hash(self.password_hash, password)

    @property
    def display_name(self) -> str:
        """First name plus last initial, as shown on community cards."""
        initial = f" {self.last_name[0]}." if self.last_name else ""
        return f"{self.first_name}{initial}".strip()

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def is_complete(self) -> bool:
        """Whether bio, role and phone number are all filled in."""
        return bool(
            (self.bio or "").strip()
            and self.role is not None
            and (self.phone_number or "").strip()
        )

    @property
    def notifications_enabled(self) -> bool:
        # a missing settings row means the defaults apply
        return self.settings is None or bool(self.settings.email_notifications)

    @property
    def first_dog_name(self) -> Optional[str]:
        return self.dogs[0].name if self.dogs else None

    def __repr__(self) -> str:
        return f"<Profile {self.email}>"


class UserSettings(db.Model):
    __allow_unmapped__ = True
    """Per-member email preferences and campaign bookkeeping."""
    __tablename__ = "user_settings"

    id: int = db.Column(db.Integer, primary_key=True)
    profile_id: str = db.Column(db.String(32), db.ForeignKey("profiles.id"), unique=True, nullable=False)
    email_notifications: bool = db.Column(db.Boolean, nullable=False, default=True)
    follow_up_email_sent: bool = db.Column(db.Boolean, nullable=False, default=False)
    follow_up_email_sent_at: Optional[datetime] = db.Column(db.DateTime)

    profile: Profile = db.relationship("Profile", back_populates="settings")


class Dog(db.Model):
    __allow_unmapped__ = True
    __tablename__ = "dogs"

    id: int = db.Column(db.Integer, primary_key=True)
    owner_id: str = db.Column(db.String(32), db.ForeignKey("profiles.id"), nullable=False)
    name: str = db.Column(db.String(50), nullable=False)

    owner: Profile = db.relationship("Profile", back_populates="dogs")

    def __repr__(self) -> str:
        return f"<Dog {self.name}>"


class UserActivity(db.Model):
    __allow_unmapped__ = True
    """An observed activity event, used to derive last-online-at."""
    __tablename__ = "user_activity"

    id: int = db.Column(db.Integer, primary_key=True)
    profile_id: str = db.Column(db.String(32), db.ForeignKey("profiles.id"), nullable=False, index=True)
    occurred_at: datetime = db.Column(db.DateTime, nullable=False, default=utcnow)

    profile: Profile = db.relationship("Profile", back_populates="activities")


class AvailabilityPost(db.Model):
    __allow_unmapped__ = True
    """A member's availability announcement."""
    __tablename__ = "availability_posts"

    id: int = db.Column(db.Integer, primary_key=True)
    owner_id: str = db.Column(db.String(32), db.ForeignKey("profiles.id"), nullable=False, index=True)
    title: str = db.Column(db.String(200), nullable=False)
    post_type: PostType = db.Column(
        db.Enum(PostType, values_callable=_enum_values, name="post_type"), nullable=False
    )
    is_active: bool = db.Column(db.Boolean, nullable=False, default=True)
    created_at: datetime = db.Column(db.DateTime, nullable=False, default=utcnow)

    owner: Profile = db.relationship("Profile", back_populates="availability_posts")


class Meeting(db.Model):
    __allow_unmapped__ = True
    """A meeting proposed by ``requester`` to ``recipient``."""
    __tablename__ = "meetings"

    id: int = db.Column(db.Integer, primary_key=True)
    requester_id: str = db.Column(db.String(32), db.ForeignKey("profiles.id"), nullable=False, index=True)
    recipient_id: str = db.Column(db.String(32), db.ForeignKey("profiles.id"), nullable=False, index=True)
    availability_id: Optional[int] = db.Column(
        db.Integer, db.ForeignKey("availability_posts.id", ondelete="SET NULL")
    )
    title: str = db.Column(db.String(200), nullable=False)
    description: Optional[str] = db.Column(db.Text)
    meeting_place: str = db.Column(db.String(255), nullable=False)
    start_datetime: datetime = db.Column(db.DateTime, nullable=False)
    end_datetime: datetime = db.Column(db.DateTime, nullable=False)
    status: MeetingStatus = db.Column(
        db.Enum(MeetingStatus, values_callable=_enum_values, name="meeting_status"),
        nullable=False,
        default=MeetingStatus.PENDING,
    )
    reminder_sent: bool = db.Column(db.Boolean, nullable=False, default=False)
    # per participant, so a partial failure is retried without repeats
    requester_reminded: bool = db.Column(db.Boolean, nullable=False, default=False)
    recipient_reminded: bool = db.Column(db.Boolean, nullable=False, default=False)
    created_at: datetime = db.Column(db.DateTime, nullable=False, default=utcnow)

    requester: Profile = db.relationship(
        "Profile", foreign_keys=[requester_id], back_populates="meetings_requested"
    )
    recipient: Profile = db.relationship(
        "Profile", foreign_keys=[recipient_id], back_populates="meetings_received"
    )
    availability: Optional[AvailabilityPost] = db.relationship("AvailabilityPost")

    def involves(self, profile_id: str) -> bool:
        return profile_id in (self.requester_id, self.recipient_id)

    def other_party(self, profile_id: str) -> Profile:
        return self.recipient if profile_id == self.requester_id else self.requester

    def __repr__(self) -> str:
        return f"<Meeting {self.id} {self.status.value}>"


class Message(db.Model):
    __allow_unmapped__ = True
    __tablename__ = "messages"

    id: int = db.Column(db.Integer, primary_key=True)
    sender_id: str = db.Column(db.String(32), db.ForeignKey("profiles.id"), nullable=False, index=True)
    recipient_id: str = db.Column(db.String(32), db.ForeignKey("profiles.id"), nullable=False, index=True)
    content: str = db.Column(db.Text, nullable=False)
    created_at: datetime = db.Column(db.DateTime, nullable=False, default=utcnow)

    sender: Profile = db.relationship("Profile", foreign_keys=[sender_id], back_populates="messages_sent")
    recipient: Profile = db.relationship("Profile", foreign_keys=[recipient_id], back_populates="messages_received")


class ProfileView(db.Model):
    __allow_unmapped__ = True
    __tablename__ = "profile_views"

    id: int = db.Column(db.Integer, primary_key=True)
    viewed_profile_id: str = db.Column(db.String(32), db.ForeignKey("profiles.id"), nullable=False, index=True)
    viewer_id: str = db.Column(db.String(32), db.ForeignKey("profiles.id"), nullable=False)
    created_at: datetime = db.Column(db.DateTime, nullable=False, default=utcnow)


class AccountDeletionRequest(db.Model):
    __allow_unmapped__ = True
    """A scheduled account deletion, processed by the cron sweep."""
    __tablename__ = "account_deletion_requests"

    id: int = db.Column(db.Integer, primary_key=True)
    # no foreign key: the request outlives the profile it deletes
    profile_id: str = db.Column(db.String(32), nullable=False, index=True)
    reason: Optional[str] = db.Column(db.String(500))
    status: DeletionStatus = db.Column(
        db.Enum(DeletionStatus, values_callable=_enum_values, name="deletion_status"),
        nullable=False,
        default=DeletionStatus.PENDING,
    )
    requested_at: datetime = db.Column(db.DateTime, nullable=False, default=utcnow)
    scheduled_deletion_date: datetime = db.Column(db.DateTime, nullable=False)
    processed_at: Optional[datetime] = db.Column(db.DateTime)
    error: Optional[str] = db.Column(db.String(500))


class DeletedEmail(db.Model):
    __allow_unmapped__ = True
    """Email addresses of deleted accounts; these cannot register again."""
    __tablename__ = "deleted_emails"

    id: int = db.Column(db.Integer, primary_key=True)
    email: str = db.Column(db.String(254), unique=True, nullable=False)
    original_profile_id: str = db.Column(db.String(32), nullable=False)
    deletion_reason: Optional[str] = db.Column(db.String(500))
    deleted_at: datetime = db.Column(db.DateTime, nullable=False, default=utcnow)
