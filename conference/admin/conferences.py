# conference/admin/conferences.py
from __future__ import annotations

from django.contrib import admin
from django.db.models import Count
from django.urls import reverse
from django.utils.html import format_html

from conference.admin.common import _is_superuser, _membership_conference_id
from conference.models import (
    Conference,
    ConferenceAdminMembership,
    Country,
    Profile,
    Topic,
    Track,
)


class _ConferenceScopedMixin:
    """Non-superusers only see rows of the conference they administer."""

    conference_lookup = "conference_id"

    def get_queryset(self, request):
        qs = super().get_queryset(request)
        if _is_superuser(request.user):
            return qs
        conference_id = _membership_conference_id(request.user)
        if not conference_id:
            return qs.none()
        return qs.filter(**{self.conference_lookup: conference_id})


@admin.register(Conference)
class ConferenceAdmin(_ConferenceScopedMixin, admin.ModelAdmin):
    conference_lookup = "id"
    list_display = ("slug", "name", "submission_count", "report_link", "created_at")
    search_fields = ("slug", "name")
    readonly_fields = ("created_at",)

    def get_queryset(self, request):
        qs = super().get_queryset(request)
        return qs.annotate(submission_count=Count("submissions"))

    def submission_count(self, obj: Conference) -> int:
        return getattr(obj, "submission_count", 0)

    submission_count.short_description = "Submissions"
    submission_count.admin_order_field = "submission_count"

    def report_link(self, obj: Conference):
        url = reverse("submission_report", kwargs={"conference_slug": obj.slug})
        return format_html("<a href='{}'>Submission report</a>", url)

    report_link.short_description = "Report"

    def has_add_permission(self, request):
        return _is_superuser(request.user)

    def has_delete_permission(self, request, obj=None):
        return _is_superuser(request.user)


@admin.register(ConferenceAdminMembership)
class ConferenceAdminMembershipAdmin(admin.ModelAdmin):
    list_display = ("user", "conference")
    search_fields = ("user__username", "user__email", "conference__slug")

    def has_module_permission(self, request):
        return _is_superuser(request.user)

    def has_view_permission(self, request, obj=None):
        return _is_superuser(request.user)


@admin.register(Country)
class CountryAdmin(admin.ModelAdmin):
    list_display = ("id", "name")
    search_fields = ("id", "name")


@admin.register(Profile)
class ProfileAdmin(admin.ModelAdmin):
    list_display = ("user",)
    search_fields = ("user__username", "user__email")


@admin.register(Track)
class TrackAdmin(_ConferenceScopedMixin, admin.ModelAdmin):
    list_display = ("title", "conference")
    list_filter = ("conference",)


@admin.register(Topic)
class TopicAdmin(_ConferenceScopedMixin, admin.ModelAdmin):
    list_display = ("name", "conference")
    list_filter = ("conference",)
