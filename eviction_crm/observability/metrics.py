"""Prometheus metrics for observability."""

from prometheus_client import Counter, Gauge, Info, REGISTRY, generate_latest


class MetricsCollector:
    """Centralized metrics collection for the CRM operational services."""

    def __init__(self):
        # Application info
        self.app_info = Info(
            "crm_app",
            "Application information",
        )

        # Error handling
        self.app_errors = Counter(
            "crm_app_errors_total",
            "Application errors handled",
            ["category", "severity"],
        )
        self.recovery_attempts = Counter(
            "crm_recovery_attempts_total",
            "Error recovery attempts",
            ["category", "result"],  # result: success/failure
        )

        # Email delivery
        self.emails_sent = Counter(
            "crm_emails_sent_total",
            "Emails delivered by the transport",
            ["attempt"],  # attempt: first/retry
        )
        self.emails_failed = Counter(
            "crm_emails_failed_total",
            "Email delivery failures",
            ["transient"],
        )
        self.emails_dropped = Counter(
            "crm_emails_dropped_total",
            "Queued emails dropped after exhausting retries",
        )
        self.email_queue_depth = Gauge(
            "crm_email_retry_queue_depth",
            "Emails waiting in the retry queue",
        )

        # Deployments
        self.deployments = Counter(
            "crm_deployments_total",
            "Deployments by final status",
            ["environment", "status"],
        )
        self.deployment_events = Counter(
            "crm_deployment_events_total",
            "Deployment events recorded",
            ["type"],
        )

    def set_app_info(self, version: str, environment: str):
        """Set application info labels."""
        self.app_info.info({
            "version": version,
            "environment": environment,
        })

    def record_app_error(self, category: str, severity: str):
        """Record a handled application error."""
        self.app_errors.labels(category=category, severity=severity).inc()

    def record_recovery(self, category: str, success: bool):
        """Record the outcome of a recovery attempt."""
        self.recovery_attempts.labels(
            category=category, result="success" if success else "failure"
        ).inc()

    def record_email_sent(self, retry: bool = False):
        """Record a delivered email."""
        self.emails_sent.labels(attempt="retry" if retry else "first").inc()

    def record_email_failed(self, transient: bool):
        """Record a failed delivery."""
        self.emails_failed.labels(transient=str(transient).lower()).inc()

    def record_email_dropped(self):
        """Record an email abandoned after max attempts."""
        self.emails_dropped.inc()

    def update_email_queue_depth(self, depth: int):
        """Update retry queue depth gauge."""
        self.email_queue_depth.set(depth)

    def record_deployment(self, environment: str, status: str):
        """Record a deployment reaching a final status."""
        self.deployments.labels(environment=environment, status=status).inc()

    def record_deployment_event(self, event_type: str):
        """Record a deployment event."""
        self.deployment_events.labels(type=event_type).inc()

    def get_metrics(self) -> bytes:
        """Get all metrics in Prometheus format."""
        return generate_latest(REGISTRY)


# Global metrics instance
metrics = MetricsCollector()
