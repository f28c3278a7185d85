from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import datetime
from typing import Tuple

import pytz

# NOTE:
# - Paths may be relative; they resolve against the process working directory.
# - You can override ANY value with environment variables if you prefer.
#
# Suggested env overrides:
#   ROSTER_STORE_PATH        (roster JSON file)
#   ROSTER_OUTPUT_DIR        (xlsx exports)
#   ROSTER_TZ                (default Asia/Shanghai)
#   ROSTER_DIRECT_LABEL      (label operators pick for "no supervisor")
#   ROSTER_HEADER_SCAN_ROWS  (int)
#   ROSTER_DETAIL_LIMIT      (int)
#   ROSTER_PORT              (default 8000)


@dataclass(frozen=True)
class RosterSettings:
    # Persisted system-of-record roster.
    store_path: str = os.environ.get("ROSTER_STORE_PATH", os.path.join("data", "roster.json"))

    # Output folder for diff / integrity exports (xlsx).
    output_dir: str = os.environ.get("ROSTER_OUTPUT_DIR", "output")

    # "Current month" is taken in this timezone when no month is given
    timezone: str = os.environ.get("ROSTER_TZ", "Asia/Shanghai")

    # Confirmed parent that means company-direct (stored as an empty parent)
    company_direct_label: str = os.environ.get("ROSTER_DIRECT_LABEL", "公司直营")

    # Cell values that mean "no person" in the HR export
    placeholder_names: Tuple[str, ...] = field(default_factory=lambda: ("#N/A", "N/A", "-"))

    # Header row auto-detection window
    header_scan_rows: int = int(os.environ.get("ROSTER_HEADER_SCAN_ROWS", "15"))

    # Max detail rows returned by the integrity check
    integrity_detail_limit: int = int(os.environ.get("ROSTER_DETAIL_LIMIT", "100"))

    port: int = int(os.environ.get("ROSTER_PORT", "8000"))


DEFAULT_SETTINGS = RosterSettings()


def current_month(settings: RosterSettings = DEFAULT_SETTINGS) -> int:
    tz = pytz.timezone(settings.timezone)
    return datetime.now(tz).month
