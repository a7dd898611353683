# conference/admin/common.py
from __future__ import annotations

from django.contrib import admin
from django.contrib.auth.models import Group


# ----------------------------
# Admin UI simplification
# ----------------------------
admin.site.site_header = "Conference Panel"
admin.site.site_title = "Conference Panel"

try:
    admin.site.unregister(Group)
except admin.sites.NotRegistered:
    pass


# ----------------------------
# Helpers
# ----------------------------
def _is_superuser(user) -> bool:
    return bool(user and user.is_active and user.is_superuser)


def _membership_conference_id(user):
    m = getattr(user, "conference_membership", None)
    return getattr(m, "conference_id", None) if m else None


def _has_conference_membership(user) -> bool:
    return _membership_conference_id(user) is not None
