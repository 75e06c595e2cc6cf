import logging
import time
from contextvars import ContextVar

from sqlalchemy import event
from starlette.types import ASGIApp, Message, Receive, Scope, Send

logger = logging.getLogger(__name__)

# SQL statements run so far by the current request.
query_count_var: ContextVar[int] = ContextVar("query_count", default=0)


def install_query_counter(engine) -> None:
    """Count every statement *engine* executes against ``query_count_var``.

    Call once per engine: ``database.py`` for the app, ``conftest.py`` for
    the test engine.
    """

    @event.listens_for(engine.sync_engine, "before_cursor_execute")
    def _bump(conn, cursor, statement, parameters, context, executemany):
        query_count_var.set(query_count_var.get() + 1)


class TimingMiddleware:
    """
    Stamp each HTTP response with ``X-Response-Time-Ms`` and
    ``X-Query-Count`` and log the requests slower than *slow_request_ms*.

    Written as plain ASGI: the counter lives in a ContextVar, and
    ``BaseHTTPMiddleware`` would run the endpoint in a task that cannot
    see its updates.
    """

    def __init__(self, app: ASGIApp, slow_request_ms: float = 500.0) -> None:
        self.app = app
        self.slow_request_ms = slow_request_ms

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        query_count_var.set(0)
        started = time.perf_counter()

        async def send_with_timing(message: Message) -> None:
            if message["type"] == "http.response.start":
                elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
                queries = query_count_var.get()
                message["headers"] = [
                    *message.get("headers", []),
                    (b"x-response-time-ms", str(elapsed_ms).encode()),
                    (b"x-query-count", str(queries).encode()),
                ]
                if elapsed_ms > self.slow_request_ms:
                    logger.warning(
                        "Slow request %s %s: %.1f ms, %d queries",
                        scope["method"], scope["path"], elapsed_ms, queries,
                    )
            await send(message)

        await self.app(scope, receive, send_with_timing)
