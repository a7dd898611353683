# conference/admin/audit.py
from __future__ import annotations

from typing import Any

from django.contrib import admin

from conference.admin.common import _is_superuser, _membership_conference_id
from conference.models import AdminAuditLog

EXPORT_ACTION = "export_xlsx"


def log_admin_audit(*, request, action: str, obj=None, extra: dict[str, Any] | None = None):
    """
    Stores one audit row for `obj` with the request's actor, path, address and
    user agent. Exports put their filters and row count in `extra`.
    """
    user = getattr(request, "user", None)
    meta = obj._meta if obj is not None else None

    return AdminAuditLog.objects.create(
        actor=user if user is not None and user.is_authenticated else None,
        action=action,
        model_label=f"{meta.app_label}.{meta.model_name}" if meta else "",
        object_id=str(obj.pk) if obj is not None else "",
        object_repr=str(obj) if obj is not None else "",
        extra=extra or {},
        path=getattr(request, "path", "") or "",
        ip_address=request.META.get("REMOTE_ADDR"),
        user_agent=request.META.get("HTTP_USER_AGENT", ""),
    )


@admin.register(AdminAuditLog)
class SubmissionExportLogAdmin(admin.ModelAdmin):
    """
    Read-only trail of submission report downloads. Conference admins see
    the exports of their own conference.
    """

    actions = None
    list_display = ("created_at", "actor", "conference", "row_count", "status_list", "column_count")
    list_filter = ("created_at",)
    search_fields = ("object_repr", "actor__username", "actor__email")
    fields = ("created_at", "actor", "conference", "status_list", "column_list", "row_count", "ip_address")
    readonly_fields = fields

    def get_queryset(self, request):
        qs = (
            super()
            .get_queryset(request)
            .filter(action=AdminAuditLog.ACTION_ACTION, extra__action=EXPORT_ACTION)
            .select_related("actor")
        )
        if _is_superuser(request.user):
            return qs
        conference_id = _membership_conference_id(request.user)
        if not conference_id:
            return qs.none()
        return qs.filter(model_label="conference.conference", object_id=str(conference_id))

    def has_module_permission(self, request):
        return _is_superuser(request.user) or (
            request.user.is_staff and _membership_conference_id(request.user) is not None
        )

    def has_view_permission(self, request, obj=None):
        if obj is None or _is_superuser(request.user):
            return self.has_module_permission(request)
        return obj.object_id == str(_membership_conference_id(request.user))

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False

    def conference(self, obj: AdminAuditLog) -> str:
        return obj.object_repr

    conference.short_description = "Conference"

    def row_count(self, obj: AdminAuditLog):
        return obj.extra.get("count")

    row_count.short_description = "Rows"

    def status_list(self, obj: AdminAuditLog) -> str:
        return ", ".join(obj.extra.get("statuses") or [])

    status_list.short_description = "Statuses"

    def column_list(self, obj: AdminAuditLog) -> str:
        return ", ".join(obj.extra.get("columns") or [])

    column_list.short_description = "Columns"

    def column_count(self, obj: AdminAuditLog) -> int:
        return len(obj.extra.get("columns") or [])

    column_count.short_description = "Column count"
