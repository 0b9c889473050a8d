"""Request instrumentation, metrics exposition and structured logging.

Metrics live on an explicitly constructed ``RequestMetrics`` object that the
lifecycle hands to the instrumentation interceptor and to the metrics route.
"""
