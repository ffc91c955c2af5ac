"""Tests for PerformanceMonitor."""

from datetime import timedelta

import pytest

from yardpass.services.performance import PerformanceMonitor


@pytest.fixture
def monitor(clock):
    return PerformanceMonitor(clock=clock)


class TestRecordMetric:
    def test_aggregates(self, monitor):
        monitor.record_metric("profile", "getById", 10.0, success=True)
        monitor.record_metric("profile", "getById", 30.0, success=False)

        stats = monitor.get_performance_stats()["profile:getById"]
        assert stats["count"] == 2
        assert stats["avg_ms"] == 20.0
        assert stats["min_ms"] == 10.0
        assert stats["max_ms"] == 30.0
        assert stats["error_rate"] == 0.5

    def test_filter_by_service(self, monitor):
        monitor.record_metric("profile", "getById", 1.0, True)
        monitor.record_metric("event", "list", 1.0, True)
        assert list(monitor.get_performance_stats("event")) == ["event:list"]

    def test_slow_alert_respects_cooldown(self, monitor, clock, log_messages):
        monitor.record_metric("event", "list", 1500.0, True)
        monitor.record_metric("event", "list", 1500.0, True)
        alerts = [m for m in log_messages if "Slow query alert" in m]
        assert len(alerts) == 1

        clock.advance(timedelta(minutes=6).total_seconds())
        monitor.record_metric("event", "list", 1500.0, True)
        alerts = [m for m in log_messages if "Slow query alert" in m]
        assert len(alerts) == 2
        assert "(3 occurrences)" in alerts[-1]

    def test_slow_alerts_can_be_disabled(self, clock, log_messages):
        monitor = PerformanceMonitor(clock=clock, slow_alerts=False)
        monitor.record_metric("event", "list", 1500.0, True)

        assert not any("Slow query alert" in m for m in log_messages)
        assert monitor.get_performance_stats()["event:list"]["max_ms"] == 1500.0

    def test_error_rate_alert_after_enough_samples(self, monitor, log_messages):
        for _ in range(11):
            monitor.record_metric("auth", "signIn", 5.0, success=False)
        assert any("Error rate alert: auth.signIn" in m for m in log_messages)

    def test_old_metrics_dropped(self, monitor, clock):
        monitor.record_metric("event", "list", 1.0, True)
        clock.advance(timedelta(hours=2).total_seconds())
        monitor.record_metric("profile", "get", 1.0, True)
        assert "event:list" not in monitor.get_performance_stats()


class TestHealth:
    def test_healthy(self, monitor):
        monitor.record_metric("event", "list", 10.0, True)
        health = monitor.get_service_health("event")
        assert health.status == "healthy"
        assert health.issues == []

    def test_slow_is_warning(self, monitor):
        monitor.record_metric("event", "list", 2000.0, True)
        health = monitor.get_service_health("event")
        assert health.status == "warning"
        assert health.issues[0].startswith("Slow operation: event:list")

    def test_errors_are_critical(self, monitor):
        monitor.record_metric("event", "list", 10.0, False)
        assert monitor.get_service_health("event").status == "critical"

    def test_idle_is_warning(self, monitor, clock):
        monitor.record_metric("event", "list", 10.0, True)
        clock.advance(timedelta(minutes=11).total_seconds())
        health = monitor.get_service_health("event")
        assert health.status == "warning"
        assert "No recent activity: event:list" in health.issues

    def test_system_health_summary(self, monitor):
        monitor.record_metric("event", "list", 10.0, True)
        monitor.record_metric("profile", "get", 30.0, True)

        system = monitor.get_system_health()
        assert system["status"] == "healthy"
        assert set(system["services"]) == {"event", "profile"}
        assert system["summary"]["total_operations"] == 2
        assert system["summary"]["avg_response_ms"] == 20.0


class TestMaintenance:
    def test_reset_one_service(self, monitor):
        monitor.record_metric("event", "list", 1.0, True)
        monitor.record_metric("profile", "get", 1.0, True)
        monitor.reset_metrics("event")
        assert list(monitor.get_performance_stats()) == ["profile:get"]

    def test_reset_all(self, monitor):
        monitor.record_metric("event", "list", 1.0, True)
        monitor.reset_metrics()
        assert monitor.get_performance_stats() == {}

    def test_export(self, monitor):
        monitor.record_metric("event", "list", 1.0, True)
        exported = monitor.export_metrics()
        assert "event:list" in exported["metrics"]
        assert exported["summary"]["total_operations"] == 1

    def test_recommendations(self, monitor):
        monitor.record_metric("event", "list", 2500.0, False)
        recs = monitor.get_recommendations()
        assert any("Fix high error rate in event:list" in r for r in recs["critical"])
        assert any("Optimize slow operation event:list" in r for r in recs["critical"])
        assert any("Consider optimizing event:list" in r for r in recs["warning"])
