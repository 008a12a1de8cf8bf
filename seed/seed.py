"""Seed script for demo data.

Running this script populates the database with a handful of community
members spread around San Francisco, some activity history, an active
availability post and a confirmed meeting for tomorrow, so that the
feed, the reminder cron and the follow-up cron all have something to
work with. Run it with ``python -m seed.seed`` from the repository
root.
"""
from __future__ import annotations

from datetime import timedelta

from shareskippy import create_app, db
from shareskippy.models import (
    AvailabilityPost,
    Dog,
    Meeting,
    MeetingStatus,
    PostType,
    Profile,
    ProfileRole,
    UserActivity,
    UserSettings,
)
from shareskippy.util.timeutils import start_of_day, utcnow

MEMBERS = [
    ("maya@example.com", "Maya", "Lopez", ProfileRole.DOG_OWNER, "Mission", 37.7599, -122.4148, "Biscuit",
     "Biscuit is a two-year-old corgi who loves the beach and anyone holding a tennis ball."),
    ("sam@example.com", "Sam", "Okafor", ProfileRole.PETPAL, "Noe Valley", 37.7502, -122.4337, None,
     "Grew up with labs, can't have a dog in my apartment, happy to walk yours on weekends."),
    ("priya@example.com", "Priya", "Nair", ProfileRole.BOTH, "Sunset", 37.7534, -122.4944, "Mochi",
     "Mochi and I are always up for a long walk at Ocean Beach. I also pet-sit for neighbours."),
    ("leo@example.com", "Leo", "Schmidt", ProfileRole.DOG_OWNER, "Richmond", 37.7800, -122.4640, "Otto",
     "Otto is a gentle senior greyhound looking for calm walking buddies."),
    ("jade@example.com", "Jade", "Kim", ProfileRole.PETPAL, "Bernal Heights", 37.7389, -122.4152, None,
     ""),  # incomplete profile, hidden from the feed
]


def run_seeds() -> None:
    """Insert demo members, activity, a post and a meeting."""
    app = create_app()
    with app.app_context():
        db.create_all()
        now = utcnow()
        profiles = []
        for index, (email, first, last, role, hood, lat, lng, dog, bio) in enumerate(MEMBERS):
            profile = Profile(
                email=email,
                first_name=first,
                last_name=last,
                role=role,
                city="San Francisco",
                neighborhood=hood,
                display_lat=lat,
                display_lng=lng,
                bio=bio,
                phone_number="+1 415 555 01%02d" % index,
                created_at=now - timedelta(days=7),
                updated_at=now - timedelta(days=index + 1),
            )
            profile.set_password("password")
            profile.settings = UserSettings()
            if dog:
                profile.dogs.append(Dog(name=dog))
            profile.activities.append(UserActivity(occurred_at=now - timedelta(hours=index * 3)))
            profiles.append(profile)
        db.session.add_all(profiles)
        db.session.flush()

        maya, sam, priya = profiles[0], profiles[1], profiles[2]
        priya.availability_posts.append(
            AvailabilityPost(title="Mochi needs a Saturday walk", post_type=PostType.DOG_AVAILABLE)
        )
        tomorrow = start_of_day(now) + timedelta(days=1, hours=17)
        db.session.add(
            Meeting(
                requester_id=sam.id,
                recipient_id=maya.id,
                title="Beach walk with Biscuit",
                meeting_place="Crissy Field",
                start_datetime=tomorrow,
                end_datetime=tomorrow + timedelta(hours=1),
                status=MeetingStatus.CONFIRMED,
            )
        )
        db.session.commit()
        print("Seed data inserted successfully.")


if __name__ == "__main__":
    run_seeds()
