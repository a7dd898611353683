import io
import logging

from django.contrib.auth.decorators import login_required
from django.http import FileResponse, Http404
from django.shortcuts import render

from .admin.audit import EXPORT_ACTION, log_admin_audit
from .forms import SubmissionReportForm
from .models import AdminAuditLog, Conference
from .services.config_loader import get_report_config
from .services.report_export import XLSX_CONTENT_TYPE, export_submission_report

logger = logging.getLogger(__name__)


def _can_view_conference_admin_page(request, conference: Conference) -> bool:
    user = request.user
    if not user or not user.is_authenticated:
        return False
    if user.is_superuser:
        return True

    membership = getattr(user, "conference_membership", None)
    return bool(user.is_staff and membership and membership.conference_id == conference.id)


@login_required
def submission_report_view(request, conference_slug: str):
    """
    URL: /conferences/<slug>/admin/submission-report

    GET renders the status/column form (pre-ticked from the conference's
    report config). A valid POST runs the export and returns the XLSX as an
    attachment; an invalid POST re-renders the form with errors.
    """
    try:
        conference = Conference.objects.get(slug=conference_slug)
    except Conference.DoesNotExist:
        raise Http404("Conference not found")

    if not _can_view_conference_admin_page(request, conference):
        raise Http404("Page not found")

    config = get_report_config(conference_slug)

    if request.method == "POST":
        form = SubmissionReportForm(request.POST)
        if form.is_valid():
            statuses = form.cleaned_data["status"]
            columns = form.cleaned_data["columns"]

            result = export_submission_report(
                conference=conference,
                statuses=statuses,
                columns=columns,
                user=request.user,
                expand_reviewers=not form.cleaned_data.get("reviewers_single_column"),
            )

            log_admin_audit(
                request=request,
                action=AdminAuditLog.ACTION_ACTION,
                obj=conference,
                extra={
                    "action": EXPORT_ACTION,
                    "model": "conference.submission",
                    "statuses": list(statuses),
                    "columns": list(columns),
                    "count": result.row_count,
                },
            )

            return FileResponse(
                io.BytesIO(result.content),
                as_attachment=True,
                filename=result.filename,
                content_type=XLSX_CONTENT_TYPE,
            )

        logger.debug("Submission report form invalid for %s: %s", conference.slug, form.errors.as_json())
    else:
        form = SubmissionReportForm(
            initial={
                "columns": config.default_columns,
                "status": config.default_statuses,
            }
        )

    return render(
        request,
        "conference/submission_report.html",
        {
            "conference": conference,
            "conference_slug": conference_slug,
            "form": form,
            "title": config.title,
        },
    )
