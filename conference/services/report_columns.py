# conference/services/report_columns.py
"""
Column catalog for the submission report.

Every column maps a stable key to a header label and a resolver. Resolvers
only read what the export queryset already loaded: each column declares the
select_related / prefetch_related lookups it needs, and the export pipeline
batch-loads the union of those before iterating rows.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, Union

from django.db.models import Prefetch

from conference.models import Country, Review, Submission, user_full_name
from conference.services.text_utils import join_keywords, join_values, strip_html

logger = logging.getLogger(__name__)

# Name of the queryset annotation carrying the completed-review average.
AVG_SCORE_ATTR = "reviews_avg_score"

REVIEWERS_KEY = "reviewers"

Lookup = Union[str, Prefetch]


def reviews_prefetch() -> Prefetch:
    """Reviews in load order (id ascending) with their reviewer user."""
    return Prefetch("reviews", queryset=Review.objects.select_related("reviewer").order_by("id"))


class CountryLookup:
    """
    Country id -> name, loaded with a single query the first time it is used.
    Unknown ids resolve to None.
    """

    def __init__(self, names: Optional[Dict[str, str]] = None):
        self._names = names

    def _load(self) -> Dict[str, str]:
        if self._names is None:
            self._names = {str(pk).lower(): name for pk, name in Country.objects.values_list("id", "name")}
            logger.debug("Loaded %d countries for report lookup", len(self._names))
        return self._names

    def name_for(self, country_id: Any) -> Optional[str]:
        if country_id in (None, ""):
            return None
        return self._load().get(str(country_id).lower())


@dataclass
class ReportLookups:
    countries: CountryLookup = field(default_factory=CountryLookup)


Resolver = Callable[[Submission, ReportLookups], Any]


@dataclass(frozen=True)
class Column:
    key: str
    label: str
    resolver: Resolver
    select_related: Tuple[str, ...] = ()
    prefetch_related: Tuple[Callable[[], Lookup], ...] = ()


# ----------------------------
# Resolvers
# ----------------------------
def _profile_meta(submission: Submission, key: str) -> Any:
    user = submission.user
    if user is None:
        return None
    # reverse one-to-one raises an AttributeError subclass when missing
    profile = getattr(user, "profile", None)
    if profile is None:
        return None
    return profile.get_meta(key)


def _submitter_name(submission: Submission, lookups: ReportLookups) -> Optional[str]:
    if submission.user is None:
        return None
    return user_full_name(submission.user)


def _submitter_email(submission: Submission, lookups: ReportLookups) -> Optional[str]:
    if submission.user is None:
        return None
    return submission.user.email or None


def _correspondence_author(submission: Submission):
    contact_id = submission.get_meta("primary_contact_id")
    if contact_id in (None, ""):
        return None
    for author in submission.authors.all():
        if str(author.pk) == str(contact_id):
            return author
    return None


def _correspondence_name(submission: Submission, lookups: ReportLookups) -> Optional[str]:
    author = _correspondence_author(submission)
    if author is not None:
        return author.full_name
    return _submitter_name(submission, lookups)


def _correspondence_email(submission: Submission, lookups: ReportLookups) -> Optional[str]:
    author = _correspondence_author(submission)
    if author is not None:
        return author.email or None
    return _submitter_email(submission, lookups)


def round_score(avg: Any) -> Optional[float]:
    """One decimal, halves rounded away from zero (2.25 -> 2.3)."""
    if avg is None:
        return None
    return float(Decimal(str(avg)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def _average_score(submission: Submission, lookups: ReportLookups) -> Optional[float]:
    if hasattr(submission, AVG_SCORE_ATTR):
        avg = getattr(submission, AVG_SCORE_ATTR)
    else:
        scores = [r.score for r in submission.reviews.all() if r.date_completed and r.score is not None]
        avg = (sum(scores) / len(scores)) if scores else None

    return round_score(avg)


def _track(submission: Submission, lookups: ReportLookups) -> Optional[str]:
    track = submission.track
    return track.title if track is not None else None


_SUBMITTER = ("user",)
_SUBMITTER_PROFILE = ("user", "user__profile")


CATALOG: List[Column] = [
    Column("id", "ID", lambda s, _: s.pk),
    Column(
        "authors",
        "Authors",
        lambda s, _: join_values((a.full_name for a in s.authors.all()), ", "),
        prefetch_related=(lambda: "authors",),
    ),
    Column(
        "editors",
        "Editors",
        lambda s, _: join_values((user_full_name(u) for u in s.editors.all()), ", "),
        prefetch_related=(lambda: "editors",),
    ),
    Column(
        REVIEWERS_KEY,
        "Reviewers",
        lambda s, _: join_values((user_full_name(r.reviewer) for r in s.reviews.all()), ", "),
        prefetch_related=(reviews_prefetch,),
    ),
    Column("submitter_name", "Submitter Name", _submitter_name, select_related=_SUBMITTER),
    Column("submitter_email", "Submitter Email", _submitter_email, select_related=_SUBMITTER),
    Column(
        "submitter_affiliation",
        "Submitter Affiliation",
        lambda s, _: _profile_meta(s, "affiliation"),
        select_related=_SUBMITTER_PROFILE,
    ),
    Column(
        "submitter_phone",
        "Submitter Phone",
        lambda s, _: _profile_meta(s, "phone"),
        select_related=_SUBMITTER_PROFILE,
    ),
    Column(
        "submitter_country_id",
        "Submitter Country ID",
        lambda s, _: _profile_meta(s, "country"),
        select_related=_SUBMITTER_PROFILE,
    ),
    Column(
        "submitter_country",
        "Submitter Country",
        lambda s, lookups: lookups.countries.name_for(_profile_meta(s, "country")),
        select_related=_SUBMITTER_PROFILE,
    ),
    Column(
        "correspondance_author_name",
        "Correspondence Author Name",
        _correspondence_name,
        select_related=_SUBMITTER,
        prefetch_related=(lambda: "authors",),
    ),
    Column(
        "correspondance_author_email",
        "Correspondence Author Email",
        _correspondence_email,
        select_related=_SUBMITTER,
        prefetch_related=(lambda: "authors",),
    ),
    Column("title", "Submission Title", lambda s, _: s.get_meta("title")),
    Column("status", "Submission Status", lambda s, _: s.status or None),
    Column("track", "Track", _track, select_related=("track",)),
    Column("keywords", "Keywords", lambda s, _: join_keywords(s.get_meta("keywords"))),
    Column(
        "topics",
        "Topics",
        lambda s, _: join_values((t.name for t in s.topics.all()), ","),
        prefetch_related=(lambda: "topics",),
    ),
    Column("abstract", "Abstract", lambda s, _: strip_html(s.get_meta("abstract"))),
    Column("average_score", "Average Score", _average_score),
    Column("review_score", "Review Score", _average_score),
]

DEFAULT_COLUMNS: List[str] = [
    "id",
    "authors",
    "submitter_name",
    "submitter_email",
    "submitter_affiliation",
    "submitter_country_id",
    "submitter_country",
    "title",
    "status",
    "keywords",
    "topics",
    "abstract",
    "review_score",
]


class ColumnRegistry:
    """Ordered key -> Column mapping; unknown keys resolve to None."""

    def __init__(self, columns: Optional[Iterable[Column]] = None, lookups: Optional[ReportLookups] = None):
        self._columns: Dict[str, Column] = {c.key: c for c in (CATALOG if columns is None else columns)}
        self.lookups = lookups or ReportLookups()

    def __contains__(self, key: str) -> bool:
        return key in self._columns

    def keys(self) -> List[str]:
        return list(self._columns.keys())

    def choices(self) -> List[Tuple[str, str]]:
        return [(c.key, c.label) for c in self._columns.values()]

    def label(self, key: str) -> str:
        column = self._columns.get(key)
        if column is None:
            return key.replace("_", " ").title()
        return column.label

    def resolve(self, key: str, submission: Submission) -> Any:
        column = self._columns.get(key)
        if column is None:
            return None
        return column.resolver(submission, self.lookups)

    def relations_for(self, keys: Iterable[str]) -> Tuple[List[str], List[Lookup]]:
        """
        Union of select_related / prefetch_related lookups needed by `keys`,
        in first-seen order. Prefetches are de-duplicated by their target path.
        """
        select: List[str] = []
        prefetch: Dict[str, Lookup] = {}
        for key in keys:
            column = self._columns.get(key)
            if column is None:
                continue
            for name in column.select_related:
                if name not in select:
                    select.append(name)
            for make in column.prefetch_related:
                lookup = make()
                target = lookup.prefetch_to if isinstance(lookup, Prefetch) else lookup
                prefetch.setdefault(target, lookup)
        return select, list(prefetch.values())


def user_display_name(user) -> Optional[str]:
    """Squished reviewer name for the expanded reviewer columns."""
    if user is None:
        return None
    return user_full_name(user) or None
