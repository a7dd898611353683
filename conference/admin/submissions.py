# conference/admin/submissions.py
from __future__ import annotations

import json

from django import forms
from django.contrib import admin
from django.db.models import Avg, Q

from conference.admin.common import (
    _has_conference_membership,
    _is_superuser,
    _membership_conference_id,
)
from conference.models import Author, Review, Submission
from conference.services.report_columns import AVG_SCORE_ATTR, round_score
from conference.services.text_utils import strip_html


class PrettyJSONWidget(forms.Textarea):
    def format_value(self, value):
        if value in (None, "", {}):
            return ""
        try:
            if isinstance(value, str):
                value = json.loads(value)
            return json.dumps(value, indent=2, sort_keys=True, ensure_ascii=False)
        except (TypeError, ValueError):
            return super().format_value(value)


class SubmissionAdminForm(forms.ModelForm):
    class Meta:
        model = Submission
        fields = "__all__"
        widgets = {
            "meta": PrettyJSONWidget(
                attrs={
                    "rows": 14,
                    "style": "font-family: ui-monospace, Menlo, Consolas, monospace; white-space: pre;",
                }
            )
        }


class AuthorInline(admin.TabularInline):
    model = Author
    extra = 0
    fields = ("order", "given_name", "family_name", "email", "affiliation")


class ReviewInline(admin.TabularInline):
    model = Review
    extra = 0
    fields = ("reviewer", "score", "date_completed")


@admin.register(Submission)
class SubmissionAdmin(admin.ModelAdmin):
    form = SubmissionAdminForm
    inlines = [AuthorInline, ReviewInline]
    list_display = ("id", "title", "status", "track", "average_score", "created_at")
    list_filter = ("status", "conference", "track")
    search_fields = ("conference__slug", "user__username", "user__email", "authors__family_name")
    readonly_fields = ("created_at", "abstract_text")
    filter_horizontal = ("topics", "editors")

    # ----------------------------
    # Permissions
    # ----------------------------
    def has_module_permission(self, request):
        return _is_superuser(request.user) or (
            _has_conference_membership(request.user) and request.user.is_staff
        )

    def has_view_permission(self, request, obj=None):
        if obj is None:
            return self.has_module_permission(request)
        if _is_superuser(request.user):
            return True
        return obj.conference_id == _membership_conference_id(request.user)

    def has_change_permission(self, request, obj=None):
        return self.has_view_permission(request, obj)

    def has_add_permission(self, request):
        return _is_superuser(request.user)

    def has_delete_permission(self, request, obj=None):
        return _is_superuser(request.user)

    def get_readonly_fields(self, request, obj=None):
        fields = tuple(super().get_readonly_fields(request, obj))
        if _is_superuser(request.user):
            return fields
        # scoped admins cannot move a submission to another conference
        return fields + ("conference",)

    def get_queryset(self, request):
        qs = super().get_queryset(request).select_related("conference", "track")
        qs = qs.annotate(
            **{AVG_SCORE_ATTR: Avg("reviews__score", filter=Q(reviews__date_completed__isnull=False))}
        )
        if _is_superuser(request.user):
            return qs
        conference_id = _membership_conference_id(request.user)
        if not conference_id:
            return qs.none()
        return qs.filter(conference_id=conference_id)

    # ----------------------------
    # Display helpers
    # ----------------------------
    def title(self, obj: Submission) -> str:
        return obj.get_meta("title") or "—"

    title.short_description = "Title"

    def average_score(self, obj: Submission):
        score = round_score(getattr(obj, AVG_SCORE_ATTR, None))
        return score if score is not None else "—"

    average_score.short_description = "Average score"
    average_score.admin_order_field = AVG_SCORE_ATTR

    def abstract_text(self, obj: Submission) -> str:
        return strip_html(obj.get_meta("abstract")) or ""

    abstract_text.short_description = "Abstract (plain text)"
