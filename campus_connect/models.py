from __future__ import annotations

from datetime import datetime

from flask_login import UserMixin
from werkzeug.security import check_password_hash, generate_password_hash

from .extensions import db, login_manager


ROLE_STUDENT = "STUDENT"
ROLE_ADMIN = "ADMIN"

CATEGORY_TYPES = ("event", "club")


def iso(value: datetime | None) -> str | None:
    if value is None:
        return None
    return value.isoformat()


class User(db.Model, UserMixin):
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(80), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    role = db.Column(db.String(20), default=ROLE_STUDENT, nullable=False)  # STUDENT/ADMIN
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    def set_password(self, password: str) -> None:
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        if not self.password_hash:
            return False
        return check_password_hash(self.password_hash, password)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "username": self.username,
            "role": self.role,
            "createdAt": iso(self.created_at),
        }


@login_manager.user_loader
def load_user(user_id: str):
    return db.session.get(User, int(user_id))


class Category(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(80), unique=True, nullable=False)
    value = db.Column(db.String(80), unique=True, nullable=False)  # slug used by filters
    type = db.Column(db.String(10), nullable=False)  # event/club

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "value": self.value, "type": self.type}


class Event(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=False)
    date = db.Column(db.DateTime, nullable=False, index=True)
    time = db.Column(db.String(40), nullable=False)  # display string, e.g. "10:00 AM"
    location = db.Column(db.String(200), nullable=False)
    image_url = db.Column(db.String(500), nullable=False)
    created_by = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    creator = db.relationship("User")
    category_links = db.relationship("EventCategory", back_populates="event")
    registrations = db.relationship("EventRegistration", back_populates="event")


class EventCategory(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    event_id = db.Column(db.Integer, db.ForeignKey("event.id"), nullable=False, index=True)
    category_id = db.Column(db.Integer, db.ForeignKey("category.id"), nullable=False)

    event = db.relationship("Event", back_populates="category_links")
    category = db.relationship("Category")

    __table_args__ = (db.UniqueConstraint("event_id", "category_id", name="uq_event_category"),)


class EventRegistration(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    event_id = db.Column(db.Integer, db.ForeignKey("event.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False, index=True)
    registered_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    event = db.relationship("Event", back_populates="registrations")
    user = db.relationship("User")

    __table_args__ = (db.UniqueConstraint("event_id", "user_id", name="uq_registration_event_user"),)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "eventId": self.event_id,
            "userId": self.user_id,
            "registeredAt": iso(self.registered_at),
        }


class Club(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), unique=True, nullable=False)
    description = db.Column(db.Text, nullable=False)
    category = db.Column(db.String(80), nullable=False)  # free-text tag, not a relation
    created_by = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    creator = db.relationship("User")
    memberships = db.relationship("ClubMembership", back_populates="club")
    meetings = db.relationship("ClubMeeting", back_populates="club", order_by="ClubMeeting.date")


class ClubMembership(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    club_id = db.Column(db.Integer, db.ForeignKey("club.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False, index=True)
    joined_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    club = db.relationship("Club", back_populates="memberships")
    user = db.relationship("User")

    __table_args__ = (db.UniqueConstraint("club_id", "user_id", name="uq_membership_club_user"),)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "clubId": self.club_id,
            "userId": self.user_id,
            "joinedAt": iso(self.joined_at),
        }


class ClubMeeting(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    club_id = db.Column(db.Integer, db.ForeignKey("club.id"), nullable=False, index=True)
    date = db.Column(db.DateTime, nullable=False)
    time = db.Column(db.String(40), nullable=False)
    location = db.Column(db.String(200), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    club = db.relationship("Club", back_populates="meetings")


# Ledger tables keep entity_id as a plain integer so history outlives the entity.
class ActivityPoint(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False, index=True)
    points = db.Column(db.Integer, nullable=False)
    activity_type = db.Column(db.String(40), nullable=False)  # event_registration/club_membership
    entity_id = db.Column(db.Integer, nullable=False)
    description = db.Column(db.String(255), nullable=False)
    awarded_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    user = db.relationship("User")

    __table_args__ = (db.CheckConstraint("points > 0", name="ck_activity_point_positive"),)


class UserActivity(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False)
    activity_type = db.Column(db.String(40), nullable=False)
    entity_id = db.Column(db.Integer, nullable=False)
    entity_name = db.Column(db.String(200), nullable=False)  # snapshot at write time
    points = db.Column(db.Integer, nullable=True)
    timestamp = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    user = db.relationship("User")

    __table_args__ = (db.Index("ix_user_activity_user_ts", "user_id", "timestamp"),)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "userId": self.user_id,
            "activityType": self.activity_type,
            "entityId": self.entity_id,
            "entityName": self.entity_name,
            "points": self.points,
            "timestamp": iso(self.timestamp),
        }


class AdminAuditLog(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    admin_user_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False, index=True)
    action = db.Column(db.String(80), nullable=False)
    target_type = db.Column(db.String(40), nullable=True)
    target_id = db.Column(db.Integer, nullable=True)
    detail = db.Column(db.Text, nullable=True)
    ip_address = db.Column(db.String(64), nullable=True)
    user_agent = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    admin = db.relationship("User")
