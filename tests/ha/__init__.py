"""
High Availability Testing Suite

Runs the failover harness against a live cluster behind its load balancer.
"""

__all__ = [
    "test_harness_failover",
]
