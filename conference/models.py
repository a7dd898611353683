from django.conf import settings
from django.contrib.auth.models import User
from django.db import models

from conference.services.text_utils import squish


def user_full_name(user) -> str:
    """Squished "first last" for a Django user; empty string when no user."""
    if user is None:
        return ""
    return squish(f"{user.first_name or ''} {user.last_name or ''}")


class Conference(models.Model):
    """
    Scope of every report. The slug ends up in download filenames and in the
    per-conference YAML config path.
    """

    slug = models.SlugField(unique=True)
    name = models.CharField(max_length=255, blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = "Conference"
        verbose_name_plural = "Conferences"

    def __str__(self) -> str:
        return self.name or self.slug


class ConferenceAdminMembership(models.Model):
    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name="conference_membership")
    conference = models.ForeignKey(Conference, on_delete=models.CASCADE, related_name="admin_memberships")

    def __str__(self) -> str:
        return f"{self.user.username} -> {self.conference.slug}"


class Country(models.Model):
    # ISO-3166 alpha-2, lower or upper case as stored in profile meta
    id = models.CharField(primary_key=True, max_length=8)
    name = models.CharField(max_length=255)

    class Meta:
        ordering = ("name",)
        verbose_name_plural = "Countries"

    def __str__(self) -> str:
        return self.name


class Profile(models.Model):
    """Free-form metadata bag for a user (affiliation, phone, country)."""

    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name="profile")
    meta = models.JSONField(default=dict, blank=True)

    def __str__(self) -> str:
        return f"Profile for {self.user.username}"

    def get_meta(self, key: str, default=None):
        return (self.meta or {}).get(key, default)


class Track(models.Model):
    conference = models.ForeignKey(Conference, on_delete=models.CASCADE, related_name="tracks")
    title = models.CharField(max_length=255)

    def __str__(self) -> str:
        return self.title


class Topic(models.Model):
    conference = models.ForeignKey(Conference, on_delete=models.CASCADE, related_name="topics")
    name = models.CharField(max_length=255)

    def __str__(self) -> str:
        return self.name


class SubmissionStatus(models.TextChoices):
    INCOMPLETE = "Incomplete", "Incomplete"
    QUEUED = "Queued", "Queued"
    ON_REVIEW = "On Review", "On Review"
    REVISION_REQUIRED = "Revision Required", "Revision Required"
    EDITING = "Editing", "Editing"
    ACCEPTED = "Accepted", "Accepted"
    DECLINED = "Declined", "Declined"
    WITHDRAWN = "Withdrawn", "Withdrawn"
    PUBLISHED = "Published", "Published"
    ON_PAYMENT = "On Payment", "On Payment"
    PAYMENT_DECLINED = "Payment Declined", "Payment Declined"


class Submission(models.Model):
    """
    A paper submitted to a conference.
    Title, abstract, keywords and primary_contact_id live in the `meta` bag.
    """

    conference = models.ForeignKey(Conference, on_delete=models.CASCADE, related_name="submissions")
    user = models.ForeignKey(
        User,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="submissions",
    )

    status = models.CharField(
        max_length=40,
        choices=SubmissionStatus.choices,
        default=SubmissionStatus.INCOMPLETE,
        db_index=True,
    )

    meta = models.JSONField(default=dict, blank=True)

    track = models.ForeignKey(Track, null=True, blank=True, on_delete=models.SET_NULL, related_name="submissions")
    topics = models.ManyToManyField(Topic, blank=True, related_name="submissions")
    editors = models.ManyToManyField(User, blank=True, related_name="edited_submissions")

    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self) -> str:
        return f"{self.conference.slug} submission #{self.id}"

    def get_meta(self, key: str, default=None):
        return (self.meta or {}).get(key, default)


class Author(models.Model):
    submission = models.ForeignKey(Submission, on_delete=models.CASCADE, related_name="authors")
    given_name = models.CharField(max_length=255)
    family_name = models.CharField(max_length=255, blank=True, default="")
    email = models.EmailField(blank=True, default="")
    affiliation = models.CharField(max_length=255, blank=True, default="")
    order = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ("order", "id")

    def __str__(self) -> str:
        return self.full_name

    @property
    def full_name(self) -> str:
        return squish(f"{self.given_name or ''} {self.family_name or ''}")


class Review(models.Model):
    submission = models.ForeignKey(Submission, on_delete=models.CASCADE, related_name="reviews")
    reviewer = models.ForeignKey(User, on_delete=models.CASCADE, related_name="reviews")
    score = models.IntegerField(null=True, blank=True)
    date_completed = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ("id",)

    def __str__(self) -> str:
        return f"Review #{self.id} of submission #{self.submission_id}"


class AdminAuditLog(models.Model):
    ACTION_ADD = "add"
    ACTION_CHANGE = "change"
    ACTION_DELETE = "delete"
    ACTION_ACTION = "action"  # e.g. export_xlsx

    ACTION_CHOICES = (
        (ACTION_ADD, "Add"),
        (ACTION_CHANGE, "Change"),
        (ACTION_DELETE, "Delete"),
        (ACTION_ACTION, "Action"),
    )

    created_at = models.DateTimeField(auto_now_add=True)

    actor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="admin_audit_logs",
    )

    action = models.CharField(max_length=16, choices=ACTION_CHOICES)

    model_label = models.CharField(max_length=128)
    object_id = models.CharField(max_length=64, blank=True, default="")
    object_repr = models.TextField(blank=True, default="")

    changes = models.JSONField(default=dict, blank=True)

    path = models.TextField(blank=True, default="")
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    user_agent = models.TextField(blank=True, default="")

    # Export filters, column selection, row count
    extra = models.JSONField(default=dict, blank=True)

    class Meta:
        ordering = ("-created_at",)

    def __str__(self) -> str:
        return f"{self.created_at} {self.action} {self.model_label}#{self.object_id}"
