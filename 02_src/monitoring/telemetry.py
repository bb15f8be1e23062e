"""
Telemetry sinks for alerts and metric snapshots.

Sinks hand data to an external persistence or notification system. Writes
are never retried; CostMonitor drops failures so they cannot affect requests.
"""
import json
import logging
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Any, Dict

from .models import Alert, UsageMetrics

logger = logging.getLogger(__name__)


class TelemetrySink(ABC):
    """Abstract destination for alerts and metric snapshots."""

    @abstractmethod
    def record_alert(self, alert: Alert) -> None:
        pass

    @abstractmethod
    def record_metrics(self, metrics: UsageMetrics) -> None:
        pass


class LoggingTelemetrySink(TelemetrySink):
    """Writes alerts and snapshots to the application log."""

    def record_alert(self, alert: Alert) -> None:
        logger.warning(f"AI service alert: {alert.to_dict()}")

    def record_metrics(self, metrics: UsageMetrics) -> None:
        logger.debug(f"AI service metrics for {metrics.key}: {metrics.to_dict()}")


class JsonlTelemetrySink(TelemetrySink):
    """
    Appends alerts and snapshots to JSONL files.

    Structure:
        {log_dir}/monitoring/alerts.jsonl
        {log_dir}/monitoring/metrics.jsonl
    """

    def __init__(self, log_dir: str):
        self.log_dir = log_dir

    def record_alert(self, alert: Alert) -> None:
        self._append("alerts.jsonl", {**alert.to_dict(), "status": "alert"})

    def record_metrics(self, metrics: UsageMetrics) -> None:
        log_entry = {
            "timestamp": datetime.now().isoformat(),
            **metrics.to_dict(),
            "status": "snapshot",
        }
        self._append("metrics.jsonl", log_entry)

    def _append(self, filename: str, log_entry: Dict[str, Any]):
        log_path = Path(self.log_dir) / "monitoring" / filename
        log_path.parent.mkdir(parents=True, exist_ok=True)

        with open(log_path, "a", encoding="utf-8") as f:
            f.write(json.dumps(log_entry, ensure_ascii=False) + "\n")
