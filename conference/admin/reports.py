# conference/admin/reports.py
from __future__ import annotations

from django.contrib import admin
from django.db.models import Count
from django.http import Http404
from django.template.response import TemplateResponse
from django.urls import path

from conference.admin.common import _is_superuser, _membership_conference_id
from conference.models import Conference


def admin_reports_hub_view(request):
    """
    Lists the conferences the operator may export, each linking to its
    submission report page. Superusers see every conference, conference
    admins only their own.
    """
    user = request.user
    if not user or not user.is_authenticated or not user.is_staff:
        raise Http404("Page not found")

    conferences = Conference.objects.annotate(submission_count=Count("submissions")).order_by("name", "slug")

    if not _is_superuser(user):
        conference_id = _membership_conference_id(user)
        if not conference_id:
            raise Http404("Page not found")
        conferences = conferences.filter(id=conference_id)

    context = admin.site.each_context(request)
    context.update({"conferences": list(conferences), "title": "Reports"})
    return TemplateResponse(request, "admin/reports_hub.html", context)


_original_admin_get_urls = admin.site.get_urls


def _admin_get_urls():
    urls = _original_admin_get_urls()
    custom = [
        path("reports/", admin.site.admin_view(admin_reports_hub_view), name="reports_hub"),
    ]
    return custom + urls


admin.site.get_urls = _admin_get_urls
