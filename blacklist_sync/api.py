"""Flask application serving the stored blacklist and its statistics."""

from __future__ import annotations

from time import monotonic

from flask import Flask, Response, g, jsonify, request

from .errors import PoolUnavailable, StoreError
from .logging_conf import component_logger
from .store import EntryStore

JSON = "application/json"
TEXT = "text/plain"


def _wants_text() -> bool:
    """Content negotiation: text only when the client prefers it; JSON otherwise."""

    if not request.headers.get("Accept"):
        return False
    return request.accept_mimetypes.best_match([JSON, TEXT], default=JSON) == TEXT


def _plain(body: str) -> Response:
    return Response(body, status=200, mimetype=TEXT)


def create_app(store: EntryStore) -> Flask:
    app = Flask(__name__)
    app.config["STORE"] = store
    logger = component_logger("api")

    @app.before_request
    def _start_timer() -> None:
        g.request_started = monotonic()

    @app.after_request
    def _log_request(response: Response) -> Response:
        started = g.get("request_started")
        elapsed = (monotonic() - started) * 1000 if started is not None else 0.0
        logger.info(
            "request",
            remote=request.remote_addr or "-",
            method=request.method,
            path=request.full_path.rstrip("?"),
            status=response.status_code,
            length=response.content_length,
            referer=request.referrer or "-",
            user_agent=request.user_agent.string or "-",
            duration_ms=round(elapsed, 3),
        )
        return response

    @app.errorhandler(StoreError)
    @app.errorhandler(PoolUnavailable)
    def _store_failure(exc: Exception):
        logger.error("request_failed", path=request.path, error=str(exc))
        return Response("Internal Server Error", status=500, mimetype=TEXT)

    @app.get("/api/blacklist")
    def blacklist():
        # entries of an unknown family have no textual form
        addresses = [a for a in (entry.to_plain() for entry in store.list_all()) if a]
        if _wants_text():
            return _plain("\n".join(addresses))
        return jsonify(addresses)

    @app.get("/api/health")
    def health():
        return _plain("true")

    @app.get("/api/system_health")
    def system_health():
        with store.pool.acquire():
            pass
        return _plain("true")

    @app.get("/stats/count")
    def count():
        total = store.count()
        if _wants_text():
            return _plain(str(total))
        return jsonify({"count": total})

    @app.get("/stats/countPerDay")
    def count_per_day():
        buckets = store.grouped_by_day()
        if _wants_text():
            return _plain(
                "\n".join(
                    f"{bucket.count} {bucket.window_start} {bucket.window_end}"
                    for bucket in buckets
                )
            )
        return jsonify([bucket.as_dict() for bucket in buckets])

    return app


__all__ = ["create_app"]
