# conference/admin/__init__.py

from django.contrib import admin as admin

from .common import _is_superuser, _membership_conference_id, _has_conference_membership

from .audit import EXPORT_ACTION, log_admin_audit, SubmissionExportLogAdmin
from .conferences import (
    ConferenceAdmin,
    ConferenceAdminMembershipAdmin,
    CountryAdmin,
    ProfileAdmin,
    TopicAdmin,
    TrackAdmin,
)
from .reports import admin_reports_hub_view
from .submissions import SubmissionAdmin, PrettyJSONWidget

__all__ = [
    "admin",
    "_is_superuser",
    "_membership_conference_id",
    "_has_conference_membership",
    "log_admin_audit",
    "EXPORT_ACTION",
    "SubmissionExportLogAdmin",
    "ConferenceAdmin",
    "ConferenceAdminMembershipAdmin",
    "CountryAdmin",
    "ProfileAdmin",
    "TopicAdmin",
    "TrackAdmin",
    "admin_reports_hub_view",
    "SubmissionAdmin",
    "PrettyJSONWidget",
]
