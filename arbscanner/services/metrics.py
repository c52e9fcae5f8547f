from typing import Dict, Optional
from prometheus_client import (
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    start_http_server
)
import logging

from ..models.quote import Venue

class MetricsService:
    def __init__(
        self,
        port: Optional[int] = None,
        registry: Optional[CollectorRegistry] = None
    ):
        self.logger = logging.getLogger(__name__)
        self.port = port
        self.registry = registry or CollectorRegistry()

        # Initialize metrics
        self._init_metrics()

        if port:
            start_http_server(port, registry=self.registry)
            self.logger.info(f"Metrics server started on port {port}")

    def _init_metrics(self):
        """Initialize Prometheus metrics."""
        # Quote metrics
        self.quote_requests = Counter(
            'scanner_quote_requests_total',
            'Quote requests sent to a venue',
            ['venue'],
            registry=self.registry
        )
        self.quote_failures = Counter(
            'scanner_quote_failures_total',
            'Failed quote requests',
            ['venue', 'reason'],
            registry=self.registry
        )
        self.cache_lookups = Counter(
            'scanner_quote_cache_lookups_total',
            'Quote cache lookups',
            ['result'],
            registry=self.registry
        )

        # Opportunity metrics
        self.opportunities_found = Counter(
            'scanner_opportunities_found_total',
            'Accepted round-trip paths',
            registry=self.registry
        )
        self.opportunities_created = Counter(
            'scanner_opportunities_created_total',
            'Opportunity records created',
            registry=self.registry
        )
        self.opportunities_executed = Counter(
            'scanner_opportunities_executed_total',
            'Opportunities marked executed',
            registry=self.registry
        )

        # Session metrics
        self.scan_cycles = Counter(
            'scanner_scan_cycles_total',
            'Completed scan cycles',
            registry=self.registry
        )
        self.cycle_duration = Histogram(
            'scanner_cycle_duration_seconds',
            'Time taken by a scan cycle',
            buckets=[1, 5, 15, 30, 60, 120, 300],
            registry=self.registry
        )
        self.active_sessions = Gauge(
            'scanner_active_sessions',
            'Running scan sessions',
            registry=self.registry
        )

    def record_quote_request(self, venue: Venue):
        self.quote_requests.labels(venue=venue.value).inc()

    def record_quote_failure(self, venue: Venue, reason: str):
        self.quote_failures.labels(venue=venue.value, reason=reason).inc()

    def record_cache_lookup(self, hit: bool):
        self.cache_lookups.labels(result="hit" if hit else "miss").inc()

    def record_opportunity_found(self, created: bool = False):
        """Record an accepted path and whether it created a new record."""
        self.opportunities_found.inc()
        if created:
            self.opportunities_created.inc()

    def record_opportunity_executed(self):
        self.opportunities_executed.inc()

    def record_cycle(self, seconds: float):
        """Record a completed scan cycle."""
        self.scan_cycles.inc()
        self.cycle_duration.observe(seconds)

    def update_active_sessions(self, count: int):
        self.active_sessions.set(count)

    def _value(self, name: str, labels: Optional[Dict] = None) -> float:
        return self.registry.get_sample_value(name, labels or {}) or 0.0

    def get_current_metrics(self) -> Dict:
        """Get current metrics values."""
        return {
            "quotes": {
                venue.value: {
                    "requests": self._value(
                        'scanner_quote_requests_total', {'venue': venue.value}
                    )
                }
                for venue in Venue
            },
            "cache": {
                "hits": self._value('scanner_quote_cache_lookups_total', {'result': 'hit'}),
                "misses": self._value('scanner_quote_cache_lookups_total', {'result': 'miss'})
            },
            "opportunities": {
                "found": self._value('scanner_opportunities_found_total'),
                "created": self._value('scanner_opportunities_created_total'),
                "executed": self._value('scanner_opportunities_executed_total')
            },
            "sessions": {
                "active": self._value('scanner_active_sessions'),
                "cycles": self._value('scanner_scan_cycles_total')
            }
        }
