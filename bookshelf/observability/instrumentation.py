from __future__ import annotations

from time import perf_counter
from typing import Any, Callable

from bookshelf.observability.metrics import MetricEvent, RequestMetrics

ERROR_STATUS = 400


class RequestInstrumentation:
    """Times every HTTP request and counts failed ones.

    A request fails when the downstream app raises or answers with a status
    >= 400. The exception or response is passed on unchanged; one
    ``MetricEvent`` is recorded per request on every exit path.
    """

    def __init__(
        self,
        app: Callable[..., Any],
        metrics: RequestMetrics,
        clock: Callable[[], float] = perf_counter,
    ) -> None:
        self.app = app
        self.metrics = metrics
        self._clock = clock

    async def __call__(self, scope: dict[str, Any], receive: Callable[..., Any], send: Callable[..., Any]) -> None:
        if scope.get("type") != "http":
            await self.app(scope, receive, send)
            return

        start = self._clock()
        status_code: int | None = None
        failed = False

        async def send_wrapper(message: dict[str, Any]) -> None:
            nonlocal status_code
            if message.get("type") == "http.response.start":
                status_code = int(message.get("status", 500))
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        except Exception:
            failed = True
            raise
        finally:
            if status_code is not None and status_code >= ERROR_STATUS:
                failed = True
            elapsed = max(self._clock() - start, 0.0)
            self.metrics.record(MetricEvent(duration=elapsed, failed=failed))


def instrumentation(metrics: RequestMetrics) -> Callable[[Any], RequestInstrumentation]:
    """Interceptor factory: given the next ASGI app, return the timed one."""

    def interceptor(app: Any) -> RequestInstrumentation:
        return RequestInstrumentation(app, metrics)

    return interceptor
