import io
import os
import re
from datetime import datetime, timedelta, timezone as dt_timezone

import pytest
from django.db import connection
from django.test.utils import CaptureQueriesContext
from django.utils import timezone
from openpyxl import load_workbook

from conference.models import Submission, SubmissionStatus
from conference.services import report_export
from conference.services.report_columns import ColumnRegistry
from conference.services.report_export import (
    ColumnPlan,
    ExportState,
    SubmissionReportExport,
    SubmissionReportWriter,
    build_row,
    expand_columns,
    export_submission_report,
    max_review_count,
    report_filename,
    temp_export_name,
)
from conference.tests.factories import (
    AuthorFactory,
    ConferenceFactory,
    CountryFactory,
    ProfileFactory,
    ReviewFactory,
    SubmissionFactory,
    TopicFactory,
    UserFactory,
)

ACCEPTED = SubmissionStatus.ACCEPTED
DONE = timezone.now() - timedelta(days=1)


def _read_rows(content: bytes):
    wb = load_workbook(io.BytesIO(content))
    ws = wb.worksheets[0]
    return [list(r) for r in ws.iter_rows(values_only=True)]


# ---------------------------------------------------------------------------
# Column expansion
# ---------------------------------------------------------------------------

def test_expand_columns_without_reviewers_keeps_selection():
    plan = expand_columns(["id", "title"], max_reviews=5)
    assert plan == ColumnPlan(fixed_keys=("id", "title"))
    assert plan.keys == ["id", "title"]
    assert len(plan) == 2


def test_expand_columns_with_reviewers_appends_pairs():
    plan = expand_columns(["id", "reviewers", "title"], max_reviews=2)
    assert plan.expand_reviewers is True
    assert plan.fixed_keys == ("id", "title")
    assert plan.keys == [
        "id",
        "title",
        "reviewer_1_name",
        "reviewer_1_score",
        "reviewer_2_name",
        "reviewer_2_score",
    ]
    assert len(plan) == 6


def test_expand_columns_disabled_keeps_reviewers_as_one_column():
    plan = expand_columns(["id", "reviewers"], max_reviews=3, expand=False)
    assert plan == ColumnPlan(fixed_keys=("id", "reviewers"))
    assert len(plan) == 2


def test_expand_columns_zero_reviews_drops_reviewers_key():
    plan = expand_columns(["reviewers", "id"], max_reviews=0)
    assert plan.keys == ["id"]
    assert len(plan) == 1


@pytest.mark.django_db
def test_max_review_count(conference):
    assert max_review_count(Submission.objects.filter(conference=conference)) == 0

    a = SubmissionFactory(conference=conference)
    b = SubmissionFactory(conference=conference, status=SubmissionStatus.DECLINED)
    ReviewFactory(submission=a)
    ReviewFactory.create_batch(3, submission=b)

    assert max_review_count(Submission.objects.filter(conference=conference)) == 3
    assert max_review_count(Submission.objects.filter(conference=conference, status=ACCEPTED)) == 1


# ---------------------------------------------------------------------------
# Row building
# ---------------------------------------------------------------------------

@pytest.mark.django_db
def test_build_row_pads_missing_reviewer_slots():
    sub = SubmissionFactory()
    ReviewFactory(submission=sub, reviewer=UserFactory(first_name="Rita", last_name=" Reviewer"), score=4)

    plan = expand_columns(["id", "reviewers"], max_reviews=3)
    row = build_row(plan, ColumnRegistry(), sub)

    assert len(row) == len(plan) == 7
    assert row == [sub.pk, "Rita Reviewer", 4, None, None, None, None]


@pytest.mark.django_db
def test_build_row_caps_reviews_at_plan_width():
    sub = SubmissionFactory()
    ReviewFactory.create_batch(3, submission=sub)

    plan = expand_columns(["reviewers"], max_reviews=2)
    assert len(build_row(plan, ColumnRegistry(), sub)) == 4


@pytest.mark.django_db
def test_build_row_without_expansion_uses_registry_only(submission):
    plan = expand_columns(["id", "bogus"])
    assert build_row(plan, ColumnRegistry(), submission) == [submission.pk, None]


# ---------------------------------------------------------------------------
# Writer + helpers
# ---------------------------------------------------------------------------

def test_writer_streams_rows_and_strips_illegal_characters(tmp_path):
    path = tmp_path / "out.xlsx"
    with SubmissionReportWriter(path) as writer:
        writer.write_row(["ID", "Abstract"])
        writer.write_row([1, "bell\x07 char"])
        writer.write_row([2, None])

    assert writer.rows_written == 3
    rows = _read_rows(path.read_bytes())
    assert rows == [["ID", "Abstract"], [1, "bell char"], [2, None]]


def test_temp_export_names_are_unique_per_call():
    user = UserFactory.build(id=7)
    a = temp_export_name(user)
    b = temp_export_name(user)
    assert a != b
    assert a.startswith("7_") and a.endswith(".xlsx")
    assert temp_export_name(None).startswith("anon_")


def test_report_filename_is_conference_scoped_and_timestamped():
    conference = ConferenceFactory.build(id=42, slug="icse-2026")
    now = datetime(2026, 3, 4, 5, 6, 7, tzinfo=dt_timezone.utc)
    assert report_filename(conference, now) == "submissions-42-20260304-050607.xlsx"


# ---------------------------------------------------------------------------
# Full export
# ---------------------------------------------------------------------------

@pytest.mark.django_db
def test_end_to_end_accepted_only_three_columns(conference, export_root):
    accepted = SubmissionFactory(conference=conference, status=ACCEPTED, meta={"title": "Winner"})
    for score in (5, 5, 4):
        ReviewFactory(submission=accepted, score=score, date_completed=DONE)
    SubmissionFactory(conference=conference, status=SubmissionStatus.DECLINED)
    SubmissionFactory(conference=conference, status=SubmissionStatus.ON_REVIEW)

    result = export_submission_report(
        conference=conference,
        statuses=[ACCEPTED],
        columns=["id", "title", "average_score"],
    )

    rows = _read_rows(result.content)
    assert rows[0] == ["id", "title", "average_score"]
    assert len(rows) == 2
    assert rows[1] == [accepted.pk, "Winner", 4.7]
    assert result.row_count == 1
    assert result.column_count == 3
    assert re.fullmatch(rf"submissions-{conference.pk}-\d{{8}}-\d{{6}}\.xlsx", result.filename)

    # temp file is gone
    assert os.listdir(export_root) == []


@pytest.mark.django_db
def test_reviewer_expansion_widths_match_header(conference):
    three = SubmissionFactory(conference=conference)
    for i in range(3):
        ReviewFactory(submission=three, score=i + 1)
    one = SubmissionFactory(conference=conference)
    ReviewFactory(submission=one, reviewer=UserFactory(first_name="Solo", last_name="Rev"), score=2)
    SubmissionFactory(conference=conference)

    result = export_submission_report(
        conference=conference,
        statuses=[ACCEPTED],
        columns=["id", "reviewers", "status"],
    )
    rows = _read_rows(result.content)

    header = rows[0]
    assert header == [
        "id",
        "status",
        "reviewer_1_name",
        "reviewer_1_score",
        "reviewer_2_name",
        "reviewer_2_score",
        "reviewer_3_name",
        "reviewer_3_score",
    ]
    assert all(len(r) == len(header) for r in rows)

    by_id = {r[0]: r for r in rows[1:]}
    assert by_id[one.pk][2:] == ["Solo Rev", 2, None, None, None, None]
    assert by_id[three.pk][3::2] == [1, 2, 3]


@pytest.mark.django_db
def test_reviewers_requested_but_no_reviews_adds_no_columns(conference):
    SubmissionFactory(conference=conference)
    result = export_submission_report(conference=conference, statuses=[ACCEPTED], columns=["reviewers", "id"])
    rows = _read_rows(result.content)
    assert rows[0] == ["id"]
    assert len(rows[1]) == 1


@pytest.mark.django_db
def test_reviewers_single_column_joins_names_and_skips_aggregate(conference):
    sub = SubmissionFactory(conference=conference)
    ReviewFactory(submission=sub, reviewer=UserFactory(first_name="Ada", last_name="One"))
    ReviewFactory(submission=sub, reviewer=UserFactory(first_name="Bo", last_name="Two"))

    job = SubmissionReportExport(
        conference=conference,
        statuses=[ACCEPTED],
        columns=["id", "reviewers"],
        expand_reviewers=False,
    )
    with CaptureQueriesContext(connection) as ctx:
        plan = job.resolve_columns()
    assert plan.max_reviews == 0
    assert len(ctx.captured_queries) == 0

    result = job.run()
    assert _read_rows(result.content) == [["id", "reviewers"], [sub.pk, "Ada One, Bo Two"]]


@pytest.mark.django_db
def test_no_matching_submissions_gives_header_only(conference):
    SubmissionFactory(conference=conference, status=SubmissionStatus.DECLINED)
    result = export_submission_report(conference=conference, statuses=[ACCEPTED], columns=["id", "reviewers"])
    assert _read_rows(result.content) == [["id"]]
    assert result.row_count == 0


@pytest.mark.django_db
def test_rows_ordered_by_average_score_desc_nulls_last(conference):
    low = SubmissionFactory(conference=conference)
    ReviewFactory(submission=low, score=2, date_completed=DONE)
    unscored = SubmissionFactory(conference=conference)
    high = SubmissionFactory(conference=conference)
    ReviewFactory(submission=high, score=5, date_completed=DONE)

    result = export_submission_report(conference=conference, statuses=[ACCEPTED], columns=["id", "review_score"])
    rows = _read_rows(result.content)[1:]
    assert rows == [[high.pk, 5.0], [low.pk, 2.0], [unscored.pk, None]]


@pytest.mark.django_db
def test_other_conferences_are_not_exported(conference):
    mine = SubmissionFactory(conference=conference)
    SubmissionFactory(conference=ConferenceFactory())
    result = export_submission_report(conference=conference, statuses=[ACCEPTED], columns=["id"])
    assert _read_rows(result.content)[1:] == [[mine.pk]]


def _seed_rows(conference, n):
    CountryFactory(id="nl", name="Netherlands")
    topic = TopicFactory(conference=conference)
    for _ in range(n):
        user = ProfileFactory(meta={"country": "nl", "affiliation": "Uni"}).user
        sub = SubmissionFactory(conference=conference, user=user)
        AuthorFactory.create_batch(2, submission=sub)
        ReviewFactory.create_batch(2, submission=sub, date_completed=DONE)
        sub.editors.add(UserFactory())
        sub.topics.add(topic)


@pytest.mark.django_db
def test_query_count_does_not_grow_with_rows(conference):
    columns = [
        "id",
        "authors",
        "editors",
        "reviewers",
        "submitter_name",
        "submitter_country",
        "correspondance_author_email",
        "track",
        "topics",
        "average_score",
    ]

    _seed_rows(conference, 2)
    with CaptureQueriesContext(connection) as small:
        export_submission_report(conference=conference, statuses=[ACCEPTED], columns=columns)

    _seed_rows(conference, 5)
    with CaptureQueriesContext(connection) as large:
        export_submission_report(conference=conference, statuses=[ACCEPTED], columns=columns)

    assert len(large.captured_queries) == len(small.captured_queries)


@pytest.mark.django_db
def test_export_walks_through_states(conference):
    job = SubmissionReportExport(conference=conference, statuses=[ACCEPTED], columns=["id"])
    assert job.state is ExportState.IDLE

    job.apply_filter()
    assert job.state is ExportState.FILTER_APPLIED

    job.resolve_columns()
    assert job.state is ExportState.COLUMNS_RESOLVED

    job.run()
    assert job.state is ExportState.DELIVERED


@pytest.mark.django_db
def test_duplicate_columns_and_statuses_are_collapsed(conference):
    SubmissionFactory(conference=conference)
    job = SubmissionReportExport(conference=conference, statuses=[ACCEPTED, ACCEPTED], columns=["id", "id", "title"])
    assert job.columns == ["id", "title"]
    assert job.statuses == [ACCEPTED]


@pytest.mark.django_db
@pytest.mark.parametrize(
    "statuses,columns,match",
    [
        ([], ["id"], "status"),
        ([ACCEPTED], [], "column"),
        (["Nope"], ["id"], "Unknown submission status"),
        ([ACCEPTED], ["id", "nope"], "Unknown report column"),
    ],
)
def test_invalid_job_input_raises(conference, statuses, columns, match):
    with pytest.raises(ValueError, match=match):
        SubmissionReportExport(conference=conference, statuses=statuses, columns=columns)


@pytest.mark.django_db
def test_write_failure_propagates_and_leaves_no_temp_file(conference, export_root, monkeypatch):
    SubmissionFactory(conference=conference)

    def boom(self):
        raise OSError("disk full")

    monkeypatch.setattr(report_export.SubmissionReportWriter, "close", boom)

    with pytest.raises(OSError, match="disk full"):
        export_submission_report(conference=conference, statuses=[ACCEPTED], columns=["id"])

    assert os.listdir(export_root) == []


@pytest.mark.django_db
def test_export_logs_start_and_finish(conference, caplog):
    SubmissionFactory(conference=conference)
    with caplog.at_level("INFO", logger="conference.services.report_export"):
        export_submission_report(conference=conference, statuses=[ACCEPTED], columns=["id"])

    assert "export started" in caplog.text
    assert "rows=1" in caplog.text
