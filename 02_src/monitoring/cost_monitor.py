"""
Cost & usage monitor.

Accumulates per-(provider, model) counters, prices every call and raises
threshold alerts for cost, error rate and latency.
"""
import copy
import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional

from .models import (
    Alert,
    AlertSeverity,
    AlertType,
    CostOptimization,
    UsageMetrics,
    UsageReport,
    UsageSummary,
)
from .pricing import Pricing
from .telemetry import LoggingTelemetrySink, TelemetrySink

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AlertThresholds:
    """Alert rule configuration."""

    daily_cost_limit: float = 100.0
    cost_warning_ratio: float = 0.8
    error_rate_threshold: float = 0.05
    error_rate_critical_threshold: float = 0.10
    latency_threshold_ms: float = 10000.0


class CostMonitor:
    """
    Tracks usage and cost per (provider, model).

    Each key has its own lock, so updates for different providers or models
    never block each other. The daily cost accumulator is separate from the
    cumulative counters and is cleared only by reset_daily().
    """

    def __init__(
        self,
        thresholds: Optional[AlertThresholds] = None,
        pricing: Optional[Pricing] = None,
        sink: Optional[TelemetrySink] = None,
    ):
        """
        Args:
            thresholds: Alert thresholds (defaults: $100/day, 5% errors, 10s latency)
            pricing: Per-token rate table
            sink: Destination for alerts and snapshots (default: application log)
        """
        self.thresholds = thresholds or AlertThresholds()
        self.pricing = pricing or Pricing()
        self.sink = sink or LoggingTelemetrySink()

        self._metrics: Dict[str, UsageMetrics] = {}
        self._daily_cost: Dict[str, float] = {}
        self._locks: Dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def _lock_for(self, key: str) -> threading.Lock:
        lock = self._locks.get(key)
        if lock is None:
            with self._registry_lock:
                lock = self._locks.setdefault(key, threading.Lock())
        return lock

    def track(
        self,
        provider: str,
        model: str,
        success: bool,
        prompt_tokens: int,
        completion_tokens: int,
        latency_ms: float,
        error: Optional[str] = None,
    ) -> List[Alert]:
        """
        Record one provider call.

        Args:
            provider: Provider identifier
            model: Model identifier
            success: Whether the call succeeded
            prompt_tokens: Input tokens (0 for failures)
            completion_tokens: Output tokens (0 for failures)
            latency_ms: Call duration
            error: Error message for failed calls

        Returns:
            Alerts raised by this call, in rule order cost, error-rate, latency
        """
        key = f"{provider}:{model}"
        cost = self.pricing.calculate_cost(provider, model, prompt_tokens, completion_tokens)

        with self._lock_for(key):
            metrics = self._metrics.get(key)
            if metrics is None:
                metrics = UsageMetrics(provider=provider, model=model)
                self._metrics[key] = metrics

            metrics.request_count += 1
            if success:
                metrics.success_count += 1
            else:
                metrics.error_count += 1
                metrics.last_error = error

            metrics.total_tokens += prompt_tokens + completion_tokens
            metrics.last_request = datetime.now()

            n = metrics.request_count
            metrics.average_latency_ms = (metrics.average_latency_ms * (n - 1) + latency_ms) / n

            metrics.total_cost += cost
            daily_cost = self._daily_cost.get(key, 0.0) + cost
            self._daily_cost[key] = daily_cost

            snapshot = copy.copy(metrics)

        alerts = self._check_alerts(snapshot, daily_cost)
        for alert in alerts:
            self._process_alert(alert)

        self._publish_metrics(snapshot)
        return alerts

    def _check_alerts(self, metrics: UsageMetrics, daily_cost: float) -> List[Alert]:
        """Evaluate alert rules in fixed order: cost, error rate, latency."""
        alerts: List[Alert] = []
        limits = self.thresholds

        if daily_cost > limits.daily_cost_limit * limits.cost_warning_ratio:
            over_limit = daily_cost > limits.daily_cost_limit
            alerts.append(
                Alert(
                    type=AlertType.COST_THRESHOLD,
                    severity=AlertSeverity.CRITICAL if over_limit else AlertSeverity.HIGH,
                    message=(
                        f"Daily cost for {metrics.key} "
                        f"{'exceeded' if over_limit else 'approaching'} limit"
                    ),
                    provider=metrics.provider,
                    model=metrics.model,
                    threshold=limits.daily_cost_limit,
                    current_value=daily_cost,
                )
            )

        error_rate = metrics.error_rate
        if error_rate > limits.error_rate_threshold:
            alerts.append(
                Alert(
                    type=AlertType.ERROR_RATE,
                    severity=(
                        AlertSeverity.CRITICAL
                        if error_rate > limits.error_rate_critical_threshold
                        else AlertSeverity.HIGH
                    ),
                    message=f"High error rate detected for {metrics.key}",
                    provider=metrics.provider,
                    model=metrics.model,
                    threshold=limits.error_rate_threshold,
                    current_value=error_rate,
                )
            )

        if metrics.average_latency_ms > limits.latency_threshold_ms:
            alerts.append(
                Alert(
                    type=AlertType.LATENCY,
                    severity=AlertSeverity.MEDIUM,
                    message=f"High latency detected for {metrics.key}",
                    provider=metrics.provider,
                    model=metrics.model,
                    threshold=limits.latency_threshold_ms,
                    current_value=metrics.average_latency_ms,
                )
            )

        return alerts

    def _process_alert(self, alert: Alert):
        """Surface urgent alerts synchronously and forward every alert to the sink."""
        if alert.severity.is_urgent:
            critical = alert.severity is AlertSeverity.CRITICAL
            log = logger.critical if critical else logger.error
            prefix = "CRITICAL AI ALERT" if critical else "AI ALERT"
            log(f"{prefix}: {alert.message} ({alert.current_value:.4f} > {alert.threshold})")

        try:
            self.sink.record_alert(alert)
        except Exception as e:
            logger.error(f"Failed to record AI alert: {e}")

    def _publish_metrics(self, metrics: UsageMetrics):
        try:
            self.sink.record_metrics(metrics)
        except Exception as e:
            logger.error(f"Failed to record AI metrics: {e}")

    def reset_daily(self):
        """
        Reset daily cost tracking.

        Clears only the daily cost accumulator; request, error and total cost
        counters keep growing. Must be called by an external scheduler.
        """
        with self._registry_lock:
            keys = list(self._daily_cost.keys())

        for key in keys:
            with self._lock_for(key):
                self._daily_cost[key] = 0.0

        logger.info("Daily AI cost tracking reset")

    def get_daily_cost(self, provider: str, model: str) -> float:
        return self._daily_cost.get(f"{provider}:{model}", 0.0)

    def get_metrics(self, provider: Optional[str] = None, model: Optional[str] = None) -> List[UsageMetrics]:
        """
        Snapshot of current metrics.

        Args:
            provider: Optional provider filter
            model: Optional model filter

        Returns:
            Copies of the matching UsageMetrics records
        """
        result = []
        for key, metrics in list(self._metrics.items()):
            if provider is not None and metrics.provider != provider:
                continue
            if model is not None and metrics.model != model:
                continue
            with self._lock_for(key):
                result.append(copy.copy(metrics))
        return result

    def get_cost_optimizations(self) -> List[CostOptimization]:
        """
        Analyze optimization opportunities per (provider, model).

        Heuristics:
        - gpt-4-turbo-preview with fast responses -> cheaper model (30%)
        - more than 100 requests -> more aggressive caching (15%)
        - more than 2000 tokens per request -> shorter prompts (10%)

        Returns:
            Recommendations for keys where at least one heuristic applies
        """
        optimizations = []

        for metrics in self.get_metrics():
            current_cost = self.get_daily_cost(metrics.provider, metrics.model)
            optimized_cost = current_cost
            recommendations = []

            if metrics.provider == "openai" and metrics.model == "gpt-4-turbo-preview":
                if metrics.average_latency_ms < 2000:
                    optimized_cost *= 0.7
                    recommendations.append(
                        "Consider using GPT-3.5 Turbo for faster queries to reduce costs by 30%"
                    )

            if metrics.request_count > 100:
                optimized_cost *= 0.85
                recommendations.append("Implement aggressive caching to reduce redundant requests by 15%")

            if metrics.request_count and metrics.total_tokens / metrics.request_count > 2000:
                optimized_cost *= 0.9
                recommendations.append("Optimize prompts to reduce average token usage by 10%")

            if recommendations:
                optimizations.append(
                    CostOptimization(
                        provider=metrics.provider,
                        model=metrics.model,
                        current_cost=current_cost,
                        optimized_cost=optimized_cost,
                        savings=current_cost - optimized_cost,
                        recommendations=recommendations,
                    )
                )

        return optimizations

    def get_usage_report(self) -> UsageReport:
        """
        Get comprehensive usage report.

        Returns:
            UsageReport with summary, per-key metrics, cost breakdown and
            optimization recommendations
        """
        metrics = self.get_metrics()
        count = len(metrics)

        summary = UsageSummary(
            total_requests=sum(m.request_count for m in metrics),
            total_cost=sum(m.total_cost for m in metrics),
            average_latency_ms=sum(m.average_latency_ms for m in metrics) / count if count else 0.0,
            error_rate=sum(m.error_rate for m in metrics) / count if count else 0.0,
        )

        return UsageReport(
            summary=summary,
            by_provider={m.key: m for m in metrics},
            cost_breakdown={m.key: m.total_cost for m in metrics},
            optimizations=self.get_cost_optimizations(),
        )
