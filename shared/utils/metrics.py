"""Prometheus metrics for the Pesapal gateway.

Counters are registered on the default ``prometheus_client`` registry
and exposed by the ``/metrics`` route in :mod:`api.health`.

Example::

    from shared.utils.metrics import pesapal_api_requests_total

    pesapal_api_requests_total.labels(endpoint="GetIpnList", outcome="ok").inc()
"""

from prometheus_client import Counter

# Calls to authenticated Pesapal endpoints, by endpoint name and outcome
pesapal_api_requests_total = Counter(
    "pesapal_api_requests_total",
    "Total authenticated requests sent to the Pesapal API",
    ["endpoint", "outcome"],
)

# Token requests (cache misses) and their outcome
pesapal_token_requests_total = Counter(
    "pesapal_token_requests_total",
    "Total Pesapal auth token requests",
    ["outcome"],
)

# IPN notifications received on the webhook route
pesapal_webhooks_total = Counter(
    "pesapal_webhooks_total",
    "Total Pesapal webhook notifications received",
    ["method", "outcome"],
)


__all__ = [
    "pesapal_api_requests_total",
    "pesapal_token_requests_total",
    "pesapal_webhooks_total",
]
