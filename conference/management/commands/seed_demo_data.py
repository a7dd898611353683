# conference/management/commands/seed_demo_data.py
"""
Seed demo data for a fresh database.

    python manage.py migrate
    python manage.py seed_demo_data --conference-slug demo-conference

Creates a superuser, a conference admin with a membership, a handful of
countries, tracks, topics and submissions with authors and reviews, so the
submission report has something to export. Safe to run twice: existing rows
are reused and only missing submissions are added.
"""

from __future__ import annotations

from datetime import timedelta

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand
from django.db import transaction
from django.utils import timezone

from conference.models import (
    Author,
    Conference,
    ConferenceAdminMembership,
    Country,
    Profile,
    Review,
    Submission,
    SubmissionStatus,
    Topic,
    Track,
)

DEMO_COUNTRIES = [
    ("id", "Indonesia"),
    ("nl", "Netherlands"),
    ("us", "United States"),
    ("jp", "Japan"),
]

DEMO_STATUSES = [
    SubmissionStatus.ACCEPTED,
    SubmissionStatus.ON_REVIEW,
    SubmissionStatus.DECLINED,
    SubmissionStatus.QUEUED,
]


class Command(BaseCommand):
    help = "Seeds demo data (superuser, a conference admin, membership, and demo submissions)."

    def add_arguments(self, parser):
        parser.add_argument("--superuser-username", default="admin")
        parser.add_argument("--superuser-email", default="admin@example.com")
        parser.add_argument("--superuser-password", default="admin12345")
        parser.add_argument("--skip-superuser", action="store_true", help="Skip creating the superuser")

        parser.add_argument("--conference-admin-username", default="confadmin")
        parser.add_argument("--conference-admin-email", default="confadmin@example.com")
        parser.add_argument("--conference-admin-password", default="confadmin12345")

        parser.add_argument("--conference-slug", default="demo-conference")
        parser.add_argument("--conference-name", default="Demo Conference")
        parser.add_argument("--submissions", type=int, default=12)
        parser.add_argument("--reviewers", type=int, default=3)

    def _user(self, User, username: str, email: str, password: str, **flags):
        user, created = User.objects.get_or_create(username=username, defaults={"email": email, **flags})
        if created:
            user.set_password(password)
            user.save()
            self.stdout.write(self.style.SUCCESS(f"Created user: {user.username}"))
        else:
            self.stdout.write(f"User exists: {user.username}")
        return user

    @transaction.atomic
    def handle(self, *args, **opts):
        User = get_user_model()

        if not opts["skip_superuser"]:
            self._user(
                User,
                opts["superuser_username"],
                opts["superuser_email"],
                opts["superuser_password"],
                is_staff=True,
                is_superuser=True,
            )
        else:
            self.stdout.write("Skipping superuser creation (per --skip-superuser)")

        conference, _ = Conference.objects.get_or_create(
            slug=opts["conference_slug"],
            defaults={"name": opts["conference_name"]},
        )
        self.stdout.write(self.style.SUCCESS(f"Conference ready: {conference.slug}"))

        ca = self._user(
            User,
            opts["conference_admin_username"],
            opts["conference_admin_email"],
            opts["conference_admin_password"],
            is_staff=True,
        )
        ConferenceAdminMembership.objects.update_or_create(user=ca, defaults={"conference": conference})
        self.stdout.write(self.style.SUCCESS("ConferenceAdminMembership ready"))

        for code, name in DEMO_COUNTRIES:
            Country.objects.get_or_create(id=code, defaults={"name": name})

        track, _ = Track.objects.get_or_create(conference=conference, title="Main Track")
        topics = [
            Topic.objects.get_or_create(conference=conference, name=name)[0]
            for name in ("Databases", "Machine Learning", "Networks")
        ]

        reviewers = [
            self._user(User, f"reviewer{i}", f"reviewer{i}@example.com", "reviewer12345")
            for i in range(1, opts["reviewers"] + 1)
        ]
        for i, reviewer in enumerate(reviewers, start=1):
            if not reviewer.first_name:
                reviewer.first_name = "Reviewer"
                reviewer.last_name = str(i)
                reviewer.save(update_fields=["first_name", "last_name"])

        existing = Submission.objects.filter(conference=conference).count()
        to_make = max(0, opts["submissions"] - existing)
        now = timezone.now()

        for i in range(existing, existing + to_make):
            submitter = self._user(User, f"author{i + 1}", f"author{i + 1}@example.com", "author12345")
            submitter.first_name = "Author"
            submitter.last_name = str(i + 1)
            submitter.save(update_fields=["first_name", "last_name"])
            country = DEMO_COUNTRIES[i % len(DEMO_COUNTRIES)][0]
            Profile.objects.update_or_create(
                user=submitter,
                defaults={"meta": {"affiliation": "Demo University", "phone": "+1-555-0100", "country": country}},
            )

            submission = Submission.objects.create(
                conference=conference,
                user=submitter,
                status=DEMO_STATUSES[i % len(DEMO_STATUSES)],
                track=track,
                meta={
                    "title": f"Demo Paper {i + 1}",
                    "abstract": f"<p>Abstract of demo paper {i + 1} &amp; friends.</p>",
                    "keywords": ["demo", f"paper-{i + 1}"],
                },
            )
            submission.topics.set(topics[: (i % len(topics)) + 1])

            author = Author.objects.create(
                submission=submission,
                given_name="Author",
                family_name=str(i + 1),
                email=submitter.email,
                order=0,
            )
            submission.meta["primary_contact_id"] = author.pk
            submission.save(update_fields=["meta"])

            # Vary the number of reviews so the reviewer columns expand unevenly
            for j, reviewer in enumerate(reviewers[: i % (len(reviewers) + 1)]):
                Review.objects.create(
                    submission=submission,
                    reviewer=reviewer,
                    score=(i + j) % 5 + 1,
                    date_completed=now - timedelta(days=j) if j % 2 == 0 else None,
                )

        total = Submission.objects.filter(conference=conference).count()
        self.stdout.write(self.style.SUCCESS(f"Submissions ready (total={total})"))

        self.stdout.write("")
        self.stdout.write(self.style.SUCCESS("Seed complete"))
        self.stdout.write(f"Conference admin login: {opts['conference_admin_username']} / {opts['conference_admin_password']}")
        self.stdout.write(f"Conference slug: {opts['conference_slug']}")
