"""
Monitoring package initializer.

This package exposes Prometheus metrics and helper decorators for tracking the
dispatcher's request outcomes, classifier activity and package latency.
"""

from .metrics import (
    REQUEST_COUNT,
    CLASSIFICATION_COUNT,
    TRAINING_COUNT,
    PACKAGE_CALL_TIME,
    ERROR_COUNT,
    RPC_CONNECTIONS,
    track_latency,
    track_errors,
)

__all__ = [
    'REQUEST_COUNT',
    'CLASSIFICATION_COUNT',
    'TRAINING_COUNT',
    'PACKAGE_CALL_TIME',
    'ERROR_COUNT',
    'RPC_CONNECTIONS',
    'track_latency',
    'track_errors',
]
