from django.urls import path
from django.views.generic import RedirectView

from . import views


urlpatterns = [
    # Submission report export (conference-admin-only)
    path(
        "conferences/<slug:conference_slug>/admin/submission-report",
        views.submission_report_view,
        name="submission_report",
    ),

    # Short alias forwarding to the canonical URL
    path(
        "conferences/<slug:conference_slug>/submission-report",
        RedirectView.as_view(pattern_name="submission_report", permanent=False),
    ),
]
