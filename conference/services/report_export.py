# conference/services/report_export.py
"""
Submission report export pipeline.

    statuses + columns
      -> status-filtered queryset (relations for the chosen columns batch-loaded)
      -> reviewer expansion width (one aggregate query)
      -> header, then one row per submission streamed into a write-only workbook
      -> temp file read back into memory and deleted

Rows are never collected in a list: submissions come from
``QuerySet.iterator(chunk_size=...)`` and go straight into the workbook.
"""
from __future__ import annotations

import enum
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable, List, Optional, Sequence, Tuple

from django.conf import settings
from django.core.files.storage import FileSystemStorage
from django.db.models import Avg, Count, F, Max, Q, QuerySet
from django.utils import timezone
from openpyxl import Workbook
from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE

from conference.models import Conference, Submission, SubmissionStatus
from conference.services.report_columns import (
    AVG_SCORE_ATTR,
    REVIEWERS_KEY,
    ColumnRegistry,
    reviews_prefetch,
    user_display_name,
)

logger = logging.getLogger(__name__)

XLSX_CONTENT_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


# ----------------------------
# Dynamic column expansion
# ----------------------------
@dataclass(frozen=True)
class ColumnPlan:
    """
    The physical column layout of one export.
    Fixed keys resolve through the registry; when `expand_reviewers` is set,
    `max_reviews` name/score pairs follow them. `keys` doubles as the header row.
    """

    fixed_keys: Tuple[str, ...]
    expand_reviewers: bool = False
    max_reviews: int = 0

    @property
    def reviewer_keys(self) -> List[str]:
        keys: List[str] = []
        for i in range(1, self.max_reviews + 1):
            keys.extend([f"reviewer_{i}_name", f"reviewer_{i}_score"])
        return keys

    @property
    def keys(self) -> List[str]:
        return list(self.fixed_keys) + self.reviewer_keys

    def __len__(self) -> int:
        return len(self.fixed_keys) + 2 * self.max_reviews


def max_review_count(queryset: QuerySet) -> int:
    """Largest number of reviews on any submission in `queryset`; 0 when empty."""
    result = (
        queryset.order_by()
        .annotate(review_count=Count("reviews"))
        .aggregate(max_reviews=Max("review_count"))
    )
    return int(result["max_reviews"] or 0)


def expand_columns(keys: Sequence[str], max_reviews: int = 0, expand: bool = True) -> ColumnPlan:
    """
    With `expand` off, "reviewers" stays a single joined-names column.
    """
    if not expand or REVIEWERS_KEY not in keys:
        return ColumnPlan(fixed_keys=tuple(keys))

    fixed = tuple(k for k in keys if k != REVIEWERS_KEY)
    return ColumnPlan(fixed_keys=fixed, expand_reviewers=True, max_reviews=max(0, int(max_reviews)))


# ----------------------------
# Row building
# ----------------------------
def build_row(plan: ColumnPlan, registry: ColumnRegistry, submission: Submission) -> List[Any]:
    row = [registry.resolve(key, submission) for key in plan.fixed_keys]

    if plan.expand_reviewers:
        cells: List[Any] = []
        # cap at the header width even if reviews were added after the aggregate ran
        for review in list(submission.reviews.all())[: plan.max_reviews]:
            cells.extend([user_display_name(review.reviewer), review.score])
        cells.extend([None] * (2 * plan.max_reviews - len(cells)))
        row.extend(cells)

    return row


# ----------------------------
# Writer
# ----------------------------
def _clean_cell(value: Any) -> Any:
    if isinstance(value, str):
        return ILLEGAL_CHARACTERS_RE.sub("", value)
    return value


class SubmissionReportWriter:
    """Row-at-a-time XLSX writer on top of openpyxl's write-only workbook."""

    def __init__(self, path: Path | str, sheet_title: str = "Submissions"):
        self.path = Path(path)
        self.rows_written = 0
        self._workbook = Workbook(write_only=True)
        self._sheet = self._workbook.create_sheet(title=sheet_title)
        self._closed = False

    def write_row(self, values: Iterable[Any]) -> None:
        self._sheet.append([_clean_cell(v) for v in values])
        self.rows_written += 1

    def close(self) -> None:
        if self._closed:
            return
        self._workbook.save(str(self.path))
        self._closed = True

    def __enter__(self) -> "SubmissionReportWriter":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is None:
            self.close()


def get_export_storage() -> FileSystemStorage:
    location = Path(settings.REPORT_EXPORT_ROOT)
    location.mkdir(parents=True, exist_ok=True)
    return FileSystemStorage(location=str(location))


def temp_export_name(user=None) -> str:
    # uuid keeps overlapping exports from one operator apart
    owner = getattr(user, "pk", None) or "anon"
    return f"{owner}_{uuid.uuid4().hex}_submission_export.xlsx"


def report_filename(conference: Conference, now: Optional[datetime] = None) -> str:
    now = timezone.localtime(now or timezone.now())
    return f"submissions-{conference.pk}-{now.strftime('%Y%m%d-%H%M%S')}.xlsx"


# ----------------------------
# Pipeline
# ----------------------------
class ExportState(str, enum.Enum):
    IDLE = "idle"
    FILTER_APPLIED = "filter_applied"
    COLUMNS_RESOLVED = "columns_resolved"
    WRITING = "writing"
    FINALIZED = "finalized"
    DELIVERED = "delivered"


@dataclass
class ExportResult:
    filename: str
    content: bytes
    row_count: int
    column_count: int
    header: List[str]


def _dedupe(values: Iterable[str]) -> List[str]:
    out: List[str] = []
    for v in values:
        if v not in out:
            out.append(v)
    return out


class SubmissionReportExport:
    """
    One export job. Lives for a single request; any failure aborts it and
    propagates to the caller, nothing is delivered partially.
    """

    def __init__(
        self,
        *,
        conference: Conference,
        statuses: Iterable[str],
        columns: Iterable[str],
        user=None,
        registry: Optional[ColumnRegistry] = None,
        storage: Optional[FileSystemStorage] = None,
        chunk_size: Optional[int] = None,
        expand_reviewers: bool = True,
    ):
        self.conference = conference
        self.statuses = _dedupe(statuses)
        self.columns = _dedupe(columns)
        self.user = user
        self.registry = registry or ColumnRegistry()
        self.storage = storage
        self.chunk_size = chunk_size or getattr(settings, "SUBMISSION_REPORT_CHUNK_SIZE", 500)
        self.expand_reviewers = expand_reviewers

        self.state = ExportState.IDLE
        self.plan: Optional[ColumnPlan] = None
        self._base_qs: Optional[QuerySet] = None

        self._validate()

    def _validate(self) -> None:
        if not self.statuses:
            raise ValueError("At least one submission status is required")
        if not self.columns:
            raise ValueError("At least one column is required")

        valid_statuses = set(SubmissionStatus.values)
        unknown_statuses = [s for s in self.statuses if s not in valid_statuses]
        if unknown_statuses:
            raise ValueError(f"Unknown submission status: {', '.join(unknown_statuses)}")

        unknown_columns = [c for c in self.columns if c not in self.registry]
        if unknown_columns:
            raise ValueError(f"Unknown report column: {', '.join(unknown_columns)}")

    def apply_filter(self) -> QuerySet:
        self._base_qs = Submission.objects.filter(conference=self.conference, status__in=self.statuses)
        self.state = ExportState.FILTER_APPLIED
        return self._base_qs

    def resolve_columns(self) -> ColumnPlan:
        if self._base_qs is None:
            self.apply_filter()

        max_reviews = 0
        if self.expand_reviewers and REVIEWERS_KEY in self.columns:
            max_reviews = max_review_count(self._base_qs)
            logger.debug(
                "Reviewer expansion for %s: %d pair(s)", self.conference.slug, max_reviews
            )

        self.plan = expand_columns(self.columns, max_reviews, expand=self.expand_reviewers)
        self.state = ExportState.COLUMNS_RESOLVED
        return self.plan

    def queryset(self) -> QuerySet:
        if self.plan is None:
            self.resolve_columns()

        select, prefetch = self.registry.relations_for(self.plan.fixed_keys)
        if self.plan.expand_reviewers:
            targets = {getattr(p, "prefetch_to", p) for p in prefetch}
            if "reviews" not in targets:
                prefetch.append(reviews_prefetch())

        qs = self._base_qs.annotate(
            **{AVG_SCORE_ATTR: Avg("reviews__score", filter=Q(reviews__date_completed__isnull=False))}
        )
        if select:
            qs = qs.select_related(*select)
        if prefetch:
            qs = qs.prefetch_related(*prefetch)
        return qs.order_by(F(AVG_SCORE_ATTR).desc(nulls_last=True), "id")

    def write(self, path: Path) -> Tuple[int, List[str]]:
        qs = self.queryset()
        header = self.plan.keys

        self.state = ExportState.WRITING
        with SubmissionReportWriter(path) as writer:
            writer.write_row(header)
            for submission in qs.iterator(chunk_size=self.chunk_size):
                writer.write_row(build_row(self.plan, self.registry, submission))
        self.state = ExportState.FINALIZED

        return writer.rows_written - 1, header

    def run(self, now: Optional[datetime] = None) -> ExportResult:
        logger.info(
            "Submission report export started: conference=%s statuses=%s columns=%s",
            self.conference.slug,
            self.statuses,
            self.columns,
        )

        storage = self.storage or get_export_storage()
        name = temp_export_name(self.user)
        path = Path(storage.path(name))

        try:
            row_count, header = self.write(path)
            content = path.read_bytes()
        finally:
            if storage.exists(name):
                storage.delete(name)

        self.state = ExportState.DELIVERED
        filename = report_filename(self.conference, now)

        logger.info(
            "Submission report export finished: conference=%s rows=%d columns=%d bytes=%d",
            self.conference.slug,
            row_count,
            len(header),
            len(content),
        )
        return ExportResult(
            filename=filename,
            content=content,
            row_count=row_count,
            column_count=len(header),
            header=header,
        )


def export_submission_report(
    *,
    conference: Conference,
    statuses: Iterable[str],
    columns: Iterable[str],
    user=None,
    expand_reviewers: bool = True,
    now: Optional[datetime] = None,
) -> ExportResult:
    return SubmissionReportExport(
        conference=conference,
        statuses=statuses,
        columns=columns,
        user=user,
        expand_reviewers=expand_reviewers,
    ).run(now=now)
