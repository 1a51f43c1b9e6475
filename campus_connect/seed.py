from __future__ import annotations

import os
from datetime import datetime, timedelta

from flask import current_app

from .extensions import db
from .models import ROLE_ADMIN, ROLE_STUDENT, Category, Club, ClubMeeting, Event, EventCategory, User


DEFAULT_CATEGORIES = (
    ("Career", "career", "event"),
    ("Workshop", "workshop", "event"),
    ("Cultural", "cultural", "event"),
    ("Academic", "academic", "event"),
    ("Sports", "sports", "event"),
    ("Coding", "coding", "club"),
    ("Chess", "chess", "club"),
    ("Music", "music", "club"),
    ("Basketball", "basketball", "club"),
    ("Literature", "literature", "club"),
    ("Art", "art", "club"),
    ("Photography", "photography", "club"),
    ("Volunteer", "volunteer", "club"),
    ("International", "international", "club"),
)


def ensure_seed_data() -> None:
    _ensure_admin_user()
    _ensure_categories()


def _ensure_admin_user() -> None:
    username = os.getenv("ADMIN_USERNAME", "admin")
    admin = User.query.filter_by(username=username).first()
    if admin:
        if not admin.is_admin:
            admin.role = ROLE_ADMIN
            db.session.commit()
        return

    admin = User(username=username, role=ROLE_ADMIN, created_at=datetime.utcnow())
    admin.set_password(os.getenv("ADMIN_PASSWORD", "admin123"))
    db.session.add(admin)
    db.session.commit()


def _ensure_categories() -> None:
    for name, value, kind in DEFAULT_CATEGORIES:
        row = Category.query.filter_by(value=value).first()
        if not row:
            db.session.add(Category(name=name, value=value, type=kind))

    db.session.commit()


def _next_weekday(today: datetime, weekday: int) -> datetime:
    return today + timedelta(days=(weekday - today.weekday()) % 7)


def seed_demo_data(*, now: datetime | None = None) -> bool:
    """Create a demo student, events and clubs. Returns False if content already exists."""
    now = now or datetime.utcnow()
    if Event.query.first() or Club.query.first():
        current_app.logger.info("Demo content already present, skipping")
        return False

    ensure_seed_data()
    admin = User.query.filter_by(role=ROLE_ADMIN).order_by(User.id.asc()).first()

    if not User.query.filter_by(username="student").first():
        student = User(username="student", role=ROLE_STUDENT)
        student.set_password("student123")
        db.session.add(student)

    events = (
        (
            "Spring Career Fair",
            "Connect with over 50 top employers looking to hire students across all majors.",
            7,
            "10:00 AM",
            "Student Union Ballroom",
            "https://images.unsplash.com/photo-1540575467063-178a50c2df87?auto=format&fit=crop&w=600&h=300",
            "career",
        ),
        (
            "Full-Stack Development Workshop",
            "Learn the fundamentals of modern web development in this hands-on workshop.",
            9,
            "2:00 PM",
            "Engineering Building, Room 305",
            "https://images.unsplash.com/photo-1515187029135-18ee286d815b?auto=format&fit=crop&w=600&h=300",
            "workshop",
        ),
        (
            "International Culture Festival",
            "Celebrate diversity with performances, food, and activities from around the world.",
            12,
            "5:30 PM",
            "Campus Green",
            "https://images.unsplash.com/photo-1544928147-79a2dbc1f389?auto=format&fit=crop&w=600&h=300",
            "cultural",
        ),
    )
    for title, description, days, time, location, image_url, category_value in events:
        event = Event(
            title=title,
            description=description,
            date=now + timedelta(days=days),
            time=time,
            location=location,
            image_url=image_url,
            created_by=admin.id,
        )
        db.session.add(event)
        db.session.flush()
        category = Category.query.filter_by(value=category_value).first()
        if category:
            db.session.add(EventCategory(event_id=event.id, category_id=category.id))

    clubs = (
        ("Coding Club", "Weekly meetups to learn programming languages and collaborate on projects.", "coding",
         now + timedelta(days=1), "6:00 PM", "Computer Science Building, Room 101"),
        ("Chess Club", "From beginners to masters, join us to improve your chess skills and make friends.", "chess",
         _next_weekday(now, 4), "4:00 PM", "Student Center, Game Room"),
        ("Music Society", "For all music enthusiasts to perform, learn and share their passion for music.", "music",
         _next_weekday(now, 5), "3:00 PM", "Arts Building, Music Room"),
        ("Basketball Team", "Recreational and competitive basketball for all skill levels.", "basketball",
         now + timedelta(hours=2), "7:30 PM", "University Gym, Court 2"),
    )
    for name, description, category, meeting_date, time, location in clubs:
        club = Club(name=name, description=description, category=category, created_by=admin.id)
        db.session.add(club)
        db.session.flush()
        db.session.add(ClubMeeting(club_id=club.id, date=meeting_date, time=time, location=location))

    db.session.commit()
    current_app.logger.info("Seeded %s demo events and %s demo clubs", len(events), len(clubs))
    return True
