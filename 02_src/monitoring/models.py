"""
Data models for usage monitoring.

Defines per-(provider, model) usage metrics, alerts and cost reports.
"""
from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class AlertType(str, Enum):
    """Kinds of usage alerts."""

    COST_THRESHOLD = "COST_THRESHOLD"
    ERROR_RATE = "ERROR_RATE"
    LATENCY = "LATENCY"
    QUOTA_WARNING = "QUOTA_WARNING"


class AlertSeverity(str, Enum):
    """Alert severity levels."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"

    @property
    def is_urgent(self) -> bool:
        return self in (AlertSeverity.HIGH, AlertSeverity.CRITICAL)


@dataclass(frozen=True)
class Alert:
    """Point-in-time alert fact."""

    type: AlertType
    severity: AlertSeverity
    message: str
    provider: str
    model: str
    threshold: float
    current_value: float
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "severity": self.severity.value,
            "message": self.message,
            "provider": self.provider,
            "model": self.model,
            "threshold": self.threshold,
            "current_value": self.current_value,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class UsageMetrics:
    """
    Accumulated counters for one (provider, model) pair.

    Mutated only by CostMonitor; counters never decrease.
    """

    provider: str
    model: str
    request_count: int = 0
    success_count: int = 0
    error_count: int = 0
    total_tokens: int = 0
    total_cost: float = 0.0
    average_latency_ms: float = 0.0
    last_request: Optional[datetime] = None
    last_error: Optional[str] = None

    @property
    def key(self) -> str:
        return f"{self.provider}:{self.model}"

    @property
    def error_rate(self) -> float:
        if not self.request_count:
            return 0.0
        return self.error_count / self.request_count

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["error_rate"] = self.error_rate
        data["last_request"] = self.last_request.isoformat() if self.last_request else None
        return data


@dataclass(frozen=True)
class CostOptimization:
    """Cost saving recommendation for one (provider, model) pair."""

    provider: str
    model: str
    current_cost: float
    optimized_cost: float
    savings: float
    recommendations: List[str]


@dataclass(frozen=True)
class UsageSummary:
    total_requests: int
    total_cost: float
    average_latency_ms: float
    error_rate: float


@dataclass(frozen=True)
class UsageReport:
    """Aggregated usage across all providers."""

    summary: UsageSummary
    by_provider: Dict[str, UsageMetrics]
    cost_breakdown: Dict[str, float]
    optimizations: List[CostOptimization]
