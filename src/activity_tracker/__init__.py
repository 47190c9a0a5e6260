"""
User activity tracker.

Publishes user events (logins, page views, actions) to per-type Kafka
topics and consumes them back with at-least-once delivery.
"""

__version__ = "1.0.0"
