"""
PerformanceMonitor - per-operation timing and error-rate tracking.

Metrics are keyed by "service:operation". Slow operations and high error
rates raise alerts (loguru warnings) at most once per cooldown window.
Slow alerts can be switched off when the caller already warns per call.
Metrics untouched for an hour are dropped.
"""

import time
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Callable, Literal

from loguru import logger

HealthStatus = Literal["healthy", "warning", "critical"]

SLOW_QUERY_THRESHOLD_MS = 1000.0
ERROR_RATE_THRESHOLD = 0.1
ALERT_COOLDOWN = timedelta(minutes=5)
METRIC_RETENTION = timedelta(hours=1)
IDLE_WARNING_AFTER = timedelta(minutes=10)
MIN_SAMPLES_FOR_ERROR_RATE = 10


@dataclass
class OperationMetric:
    count: int = 0
    total_ms: float = 0.0
    min_ms: float = float("inf")
    max_ms: float = 0.0
    errors: int = 0
    last_updated: float = 0.0

    @property
    def avg_ms(self) -> float:
        return self.total_ms / self.count if self.count else 0.0

    @property
    def error_rate(self) -> float:
        return self.errors / self.count if self.count else 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "count": self.count,
            "avg_ms": self.avg_ms,
            "min_ms": 0.0 if self.min_ms == float("inf") else self.min_ms,
            "max_ms": self.max_ms,
            "total_ms": self.total_ms,
            "error_rate": self.error_rate,
            "last_updated": self.last_updated,
        }


@dataclass
class AlertState:
    threshold: float
    count: int = 0
    last_alert: float | None = None


@dataclass
class ServiceHealth:
    status: HealthStatus
    metrics: dict[str, dict[str, Any]] = field(default_factory=dict)
    issues: list[str] = field(default_factory=list)


class PerformanceMonitor:
    """
    Collects operation timings.

    Usage:
        monitor = PerformanceMonitor()
        monitor.record_metric("profile", "getById", 42.0, success=True)
        monitor.get_service_health("profile").status  # "healthy"
    """

    def __init__(
        self,
        slow_threshold_ms: float = SLOW_QUERY_THRESHOLD_MS,
        error_rate_threshold: float = ERROR_RATE_THRESHOLD,
        alert_cooldown: timedelta = ALERT_COOLDOWN,
        clock: Callable[[], float] = time.time,
        slow_alerts: bool = True,
    ):
        self._metrics: dict[str, OperationMetric] = {}
        self._alerts: dict[str, AlertState] = {}
        self._slow_threshold_ms = slow_threshold_ms
        self._error_rate_threshold = error_rate_threshold
        self._alert_cooldown = alert_cooldown.total_seconds()
        self._clock = clock
        self._slow_alerts = slow_alerts

    def record_metric(
        self,
        service: str,
        operation: str,
        duration_ms: float,
        success: bool,
    ) -> None:
        """Record one completed operation. Never raises."""
        try:
            key = f"{service}:{operation}"
            now = self._clock()

            metric = self._metrics.setdefault(key, OperationMetric(last_updated=now))
            metric.count += 1
            metric.total_ms += duration_ms
            metric.min_ms = min(metric.min_ms, duration_ms)
            metric.max_ms = max(metric.max_ms, duration_ms)
            metric.last_updated = now
            if not success:
                metric.errors += 1

            if self._slow_alerts and duration_ms > self._slow_threshold_ms:
                self._alert(
                    f"slow:{key}",
                    self._slow_threshold_ms,
                    lambda n: f"Slow query alert: {service}.{operation} took "
                    f"{round(duration_ms)}ms ({n} occurrences)",
                )

            if metric.count > MIN_SAMPLES_FOR_ERROR_RATE:
                error_rate = metric.error_rate
                if error_rate > self._error_rate_threshold:
                    self._alert(
                        f"error:{key}",
                        self._error_rate_threshold,
                        lambda n: f"Error rate alert: {service}.{operation} has "
                        f"{error_rate:.1%} error rate ({n} occurrences)",
                    )

            self._cleanup_old_metrics(now)
        except Exception as e:
            logger.warning(f"Failed to record performance metric: {e}")

    def _alert(
        self, key: str, threshold: float, message: Callable[[int], str]
    ) -> None:
        now = self._clock()
        alert = self._alerts.setdefault(key, AlertState(threshold=threshold))
        alert.count += 1
        if alert.last_alert is None or now - alert.last_alert > self._alert_cooldown:
            logger.warning(message(alert.count))
            alert.last_alert = now

    def _cleanup_old_metrics(self, now: float) -> None:
        cutoff = now - METRIC_RETENTION.total_seconds()
        for key in [k for k, m in self._metrics.items() if m.last_updated < cutoff]:
            del self._metrics[key]

    def get_performance_stats(
        self, service: str | None = None
    ) -> dict[str, dict[str, Any]]:
        """Aggregated stats per "service:operation", optionally for one service."""
        return {
            key: metric.to_dict()
            for key, metric in self._metrics.items()
            if service is None or key.split(":", 1)[0] == service
        }

    def get_service_health(self, service: str) -> ServiceHealth:
        stats = self.get_performance_stats(service)
        issues: list[str] = []
        status: HealthStatus = "healthy"
        now = self._clock()

        for operation, metric in stats.items():
            if metric["avg_ms"] > self._slow_threshold_ms:
                issues.append(
                    f"Slow operation: {operation} ({round(metric['avg_ms'])}ms avg)"
                )
                status = "warning" if status == "healthy" else "critical"

            if metric["error_rate"] > self._error_rate_threshold:
                issues.append(
                    f"High error rate: {operation} ({metric['error_rate']:.1%})"
                )
                status = "critical"

            if now - metric["last_updated"] > IDLE_WARNING_AFTER.total_seconds():
                issues.append(f"No recent activity: {operation}")
                if status == "healthy":
                    status = "warning"

        return ServiceHealth(status=status, metrics=stats, issues=issues)

    def get_system_health(self) -> dict[str, Any]:
        services: dict[str, ServiceHealth] = {}
        total_operations = 0
        total_ms = 0.0
        total_errors = 0
        slow_operations = 0

        for key, metric in self._metrics.items():
            service = key.split(":", 1)[0]
            if service not in services:
                services[service] = self.get_service_health(service)

            total_operations += metric.count
            total_ms += metric.total_ms
            total_errors += metric.errors
            if metric.avg_ms > self._slow_threshold_ms:
                slow_operations += 1

        avg_ms = total_ms / total_operations if total_operations else 0.0
        error_rate = total_errors / total_operations if total_operations else 0.0

        status: HealthStatus = "healthy"
        if error_rate > self._error_rate_threshold or slow_operations > 5:
            status = "critical"
        elif error_rate > self._error_rate_threshold / 2 or slow_operations > 2:
            status = "warning"

        return {
            "status": status,
            "services": services,
            "summary": {
                "total_operations": total_operations,
                "avg_response_ms": avg_ms,
                "error_rate": error_rate,
                "slow_operations": slow_operations,
            },
        }

    def reset_metrics(self, service: str | None = None) -> None:
        if service is None:
            self._metrics.clear()
            return
        for key in [k for k in self._metrics if k.split(":", 1)[0] == service]:
            del self._metrics[key]

    def export_metrics(self) -> dict[str, Any]:
        return {
            "metrics": {k: m.to_dict() for k, m in self._metrics.items()},
            "timestamp": self._clock(),
            "summary": self.get_system_health()["summary"],
        }

    def get_recommendations(self) -> dict[str, list[str]]:
        recommendations: dict[str, list[str]] = {
            "critical": [],
            "warning": [],
            "info": [],
        }

        for operation, metric in self.get_performance_stats().items():
            avg_ms = metric["avg_ms"]
            error_rate = metric["error_rate"]

            if error_rate > self._error_rate_threshold:
                recommendations["critical"].append(
                    f"Fix high error rate in {operation}: {error_rate:.1%}"
                )
            if avg_ms > self._slow_threshold_ms * 2:
                recommendations["critical"].append(
                    f"Optimize slow operation {operation}: {round(avg_ms)}ms avg"
                )
            if avg_ms > self._slow_threshold_ms:
                recommendations["warning"].append(
                    f"Consider optimizing {operation}: {round(avg_ms)}ms avg"
                )
            if error_rate > self._error_rate_threshold / 2:
                recommendations["warning"].append(
                    f"Monitor error rate in {operation}: {error_rate:.1%}"
                )
            if metric["count"] > 1000:
                recommendations["info"].append(
                    f"High volume operation {operation}: {metric['count']} calls"
                )

        return recommendations
