"""
Runtime configuration, read from environment variables.
"""

import json
import os
from dataclasses import dataclass

from .schedule import DEFAULT_SCHEDULE, CommissionSchedule


@dataclass(frozen=True)
class Settings:
    environment: str = "dev"
    database_url: str = "sqlite:///cvd_invoices.db"
    invoice_due_days: int = 30
    schedule_path: str | None = None

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            environment=os.environ.get("ENVIRONMENT", "dev"),
            database_url=os.environ.get("DATABASE_URL", "sqlite:///cvd_invoices.db"),
            invoice_due_days=int(os.environ.get("INVOICE_DUE_DAYS", 30)),
            schedule_path=os.environ.get("CVD_SCHEDULE_PATH") or None,
        )

    def load_schedule(self) -> CommissionSchedule:
        """Default schedule unless a JSON override file is configured."""
        if not self.schedule_path:
            return DEFAULT_SCHEDULE
        with open(self.schedule_path, encoding="utf-8") as f:
            return CommissionSchedule.from_dict(json.load(f))
