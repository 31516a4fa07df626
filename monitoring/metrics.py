"""
Core metrics and monitoring decorators for the Ava dispatcher.

This module defines Prometheus metrics and decorators for tracking:
- Request outcomes
- Classification and training activity
- Package call latency
- Error rates
- Remote invocation connections
"""

import time
import functools
import logging
from typing import Optional, Callable
from prometheus_client import Counter, Histogram

logger = logging.getLogger(__name__)

# Request metrics
REQUEST_COUNT = Counter(
    'ava_requests_total',
    'Total number of utterances handled',
    ['outcome']  # replied, fallback, trained, rejected, failed
)

# Classifier metrics
CLASSIFICATION_COUNT = Counter(
    'ava_classifications_total',
    'Total number of classifications by winning label',
    ['label']
)

TRAINING_COUNT = Counter(
    'ava_trainings_total',
    'Total number of labeled examples added to the classifier'
)

# Package metrics
PACKAGE_CALL_TIME = Histogram(
    'ava_package_call_duration_seconds',
    'Time spent waiting for a package to answer',
    ['package'],
    buckets=[0.1, 0.5, 1.0, 2.0, 5.0, 10.0, float("inf")]
)

# Error metrics
ERROR_COUNT = Counter(
    'ava_errors_total',
    'Total number of errors',
    ['type', 'location']  # type: e.g., 'package', 'storage', 'rpc'; location: specific component
)

# Remote invocation metrics
RPC_CONNECTIONS = Counter(
    'ava_rpc_connections_total',
    'Total number of connections accepted by the remote invocation listener'
)


def track_latency(metric: Histogram, labels: Optional[Callable] = None) -> Callable:
    """
    A decorator factory that tracks the execution time of a function using a Prometheus Histogram.

    Args:
        metric (Histogram): The Prometheus Histogram to record the timing in
        labels (Callable, optional): Called with the decorated function's positional
            arguments, returns the metric labels dictionary

    Returns:
        Callable: The decorated function
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            start_time = time.time()
            try:
                return func(*args, **kwargs)
            finally:
                duration = time.time() - start_time
                if labels:
                    metric.labels(**labels(*args)).observe(duration)
                else:
                    metric.observe(duration)
                logger.debug(
                    f"Function {func.__name__} execution time: {duration:.2f} seconds",
                    extra={'duration': duration, 'function': func.__name__}
                )
        return wrapper
    return decorator


def track_errors(error_type: str, location: str) -> Callable:
    """
    A decorator factory that counts exceptions escaping a function, then re-raises them.

    Args:
        error_type (str): Type of error (e.g., 'package', 'storage')
        location (str): Where the error occurred

    Returns:
        Callable: The decorated function

    Example:
        @track_errors('storage', 'interaction_logger')
        def save(self, record):
            ...
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except Exception as e:
                ERROR_COUNT.labels(type=error_type, location=location).inc()
                logger.error(
                    f"Error in {location} ({error_type}): {str(e)}",
                    extra={'error_type': error_type, 'location': location}
                )
                raise
        return wrapper
    return decorator
