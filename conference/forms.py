from __future__ import annotations

from django import forms

from conference.models import SubmissionStatus
from conference.services.report_columns import ColumnRegistry


class SubmissionReportForm(forms.Form):
    """
    Status filter + column selection. Columns keep the order they were
    submitted in, which is the order they appear in the file.
    """

    status = forms.MultipleChoiceField(
        label="Select Submission Status that you want to export",
        choices=SubmissionStatus.choices,
        widget=forms.CheckboxSelectMultiple,
        required=True,
    )
    columns = forms.MultipleChoiceField(
        label="Select Columns to be exported",
        choices=(),
        widget=forms.CheckboxSelectMultiple,
        required=True,
    )
    reviewers_single_column = forms.BooleanField(
        label="Keep reviewers in a single column",
        help_text="Unticked, each reviewer gets a name and a score column.",
        required=False,
        initial=False,
    )

    def __init__(self, *args, registry: ColumnRegistry | None = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.registry = registry or ColumnRegistry()
        self.fields["columns"].choices = self.registry.choices()
