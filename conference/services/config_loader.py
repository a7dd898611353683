from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from django.conf import settings

from conference.models import SubmissionStatus
from conference.services.report_columns import CATALOG, DEFAULT_COLUMNS

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReportConfig:
    raw: Dict[str, Any]

    @property
    def _report(self) -> Dict[str, Any]:
        report = self.raw.get("report") or {}
        return report if isinstance(report, dict) else {}

    @property
    def default_columns(self) -> List[str]:
        """
        Columns pre-ticked on the report form. Unknown keys are dropped;
        an empty or missing list falls back to DEFAULT_COLUMNS.
        """
        raw = self._report.get("default_columns")
        if not isinstance(raw, list):
            return list(DEFAULT_COLUMNS)

        known = {c.key for c in CATALOG}
        cols = [str(k) for k in raw if str(k) in known]
        dropped = [str(k) for k in raw if str(k) not in known]
        if dropped:
            logger.warning("Ignoring unknown report columns in config: %s", ", ".join(dropped))
        return cols or list(DEFAULT_COLUMNS)

    @property
    def default_statuses(self) -> List[str]:
        raw = self._report.get("default_statuses")
        if not isinstance(raw, list):
            return []
        valid = set(SubmissionStatus.values)
        return [str(s) for s in raw if str(s) in valid]

    @property
    def title(self) -> str:
        return str(self._report.get("title") or "Submission Report")


DEFAULT_REPORT_CONFIG = ReportConfig(raw={})


def load_report_config(conference_slug: str) -> Optional[ReportConfig]:
    """
    Loads configs/reports/<conference_slug>.yaml.
    Returns None if file doesn't exist.
    """
    base_dir = Path(settings.BASE_DIR)
    path = base_dir / "configs" / "reports" / f"{conference_slug}.yaml"

    if not path.exists():
        return None

    with path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    if not isinstance(raw, dict):
        logger.warning("Report config %s is not a mapping; using defaults", path)
        raw = {}

    return ReportConfig(raw=raw)


def get_report_config(conference_slug: str) -> ReportConfig:
    return load_report_config(conference_slug) or DEFAULT_REPORT_CONFIG
