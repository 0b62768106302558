"""
Finance Report Export with Concurrency Control

Writes payment transactions to an Excel workbook under a file lock so that
several Celery workers can export at the same time. Rows are keyed by
payment id: exporting a transaction twice updates it in place.
"""

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import pandas as pd
from filelock import FileLock, Timeout

from marketplace.core.config import get_settings

logger = logging.getLogger(__name__)

REPORT_FILENAME = "finance_transactions.xlsx"


class ReportManager:
    """Excel finance report manager."""

    COLUMNS = [
        "payment_id",
        "order_id",
        "restaurant",
        "client_email",
        "amount",
        "platform_commission",
        "status",
        "payment_method",
        "transaction_id",
        "created_at",
        "exported_at",
    ]

    @classmethod
    def _paths(cls) -> tuple[Path, Path]:
        directory = Path(get_settings().reports_directory)
        if not directory.exists():
            directory.mkdir(parents=True, exist_ok=True)
            logger.info(f"Created reports directory: {directory}")
        report = directory / REPORT_FILENAME
        return report, report.with_name(report.name + ".lock")

    @classmethod
    def _load(cls, file_path: Path) -> pd.DataFrame:
        if file_path.exists():
            return pd.read_excel(file_path, engine="openpyxl", dtype={"payment_id": str})
        return pd.DataFrame(columns=cls.COLUMNS)

    @classmethod
    def export_transactions(cls, rows: list[dict[str, Any]]) -> dict[str, Any]:
        """Merge rows into the workbook; returns a status dict."""
        report, lock_path = cls._paths()
        timeout = get_settings().report_lock_timeout
        result = {
            "success": False,
            "message": "",
            "rows": len(rows),
            "file": str(report),
            "exported_at": None,
        }

        try:
            with FileLock(str(lock_path), timeout=timeout):
                df = cls._load(report)

                export_time = datetime.now(timezone.utc).isoformat()
                incoming = pd.DataFrame(
                    [{**{c: row.get(c) for c in cls.COLUMNS}, "exported_at": export_time} for row in rows],
                    columns=cls.COLUMNS,
                )

                if df.empty:
                    merged = incoming
                elif incoming.empty:
                    merged = df
                else:
                    merged = pd.concat([df, incoming], ignore_index=True)
                merged = merged.drop_duplicates(subset=["payment_id"], keep="last")
                merged.to_excel(str(report), index=False, engine="openpyxl")

                logger.info(f"{len(rows)} transactions exported to {report}")
                result["success"] = True
                result["message"] = f"{len(rows)} transactions exported"
                result["total_rows"] = len(merged)
                result["exported_at"] = export_time

        except Timeout:
            result["message"] = f"Lock timeout ({timeout}s)"
            logger.error(f"Lock timeout on {report}")

        return result

    @classmethod
    def get_all_rows(cls) -> list[dict[str, Any]]:
        report, _ = cls._paths()
        if not report.exists():
            return []
        return cls._load(report).to_dict("records")

    @classmethod
    def clear(cls) -> bool:
        report, lock_path = cls._paths()
        removed = False
        for f in (report, lock_path):
            if f.exists():
                f.unlink()
                removed = True
        logger.info("Finance report cleared")
        return removed
