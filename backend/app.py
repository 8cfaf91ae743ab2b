# backend/app.py
"""
Weather API passthrough with a shared HTTP response cache.
- One GET route per configured upstream (api.weather.gov, radar, ...)
- Freshness from Cache-Control, heuristic TTL from Last-Modified
- Request coalescing: one upstream fetch per cache key at a time
- Background sweep of long-expired entries
"""

import atexit
import logging

from flask import Flask, request, jsonify
from flask_cors import CORS

from config import Settings, settings as default_settings
from passthrough.errors import UnknownUpstreamError, register_error_handlers
from passthrough.handlers import handle_cache_stats, handle_clear, handle_passthrough
from proxycache.store import HttpCache

# Configure logging
logging.basicConfig(
    level=getattr(logging, default_settings.log_level, logging.INFO),
    format='%(asctime)s [%(threadName)s] %(levelname)s: %(message)s'
)
logger = logging.getLogger(__name__)


def create_app(settings: Settings = None, start_sweeper: bool = True) -> Flask:
    settings = settings or default_settings

    app = Flask(__name__)
    CORS(app, origins=settings.cors_origins)
    register_error_handlers(app)

    # ========================================================================
    # CACHE LIFECYCLE
    # ========================================================================
    cache = HttpCache(
        sweep_interval_seconds=settings.sweep_interval,
        sweep_grace_seconds=settings.sweep_grace,
    )
    if start_sweeper:
        cache.start()
    atexit.register(cache.destroy)
    app.extensions["http_cache"] = cache

    logger.info("Passthrough upstreams: %s", ", ".join(
        f"/{name} -> {base}" for name, base in settings.upstreams.items()))

    # ========================================================================
    # API ROUTES
    # ========================================================================

    @app.route("/health", methods=["GET"])
    def health():
        """Health check endpoint."""
        return jsonify({
            "status": "ok",
            "service": "wxproxy",
            "upstreams": sorted(settings.upstreams),
        })

    @app.route("/cache/stats", methods=["GET"])
    def cache_stats():
        return jsonify(handle_cache_stats(cache))

    @app.route("/cache", methods=["DELETE"])
    def cache_clear():
        """Drop one entry (?key=/api/points/...) or, without a key, all of them."""
        body, status = handle_clear(cache, request.args.get("key"))
        return jsonify(body), status

    @app.route("/<upstream>/<path:subpath>", methods=["GET"])
    def passthrough(upstream, subpath):
        base_url = settings.upstreams.get(upstream)
        if base_url is None:
            raise UnknownUpstreamError(upstream, settings.upstreams)
        return handle_passthrough(
            cache, base_url, subpath, request,
            fetch_timeout=settings.upstream_timeout,
            user_agent=settings.user_agent,
        )

    return app


# ============================================================================
# MAIN
# ============================================================================

if __name__ == "__main__":
    app = create_app()
    logger.info(f"Starting wxproxy on {default_settings.host}:{default_settings.port}")
    app.run(host=default_settings.host, port=default_settings.port,
            debug=False, use_reloader=False, threaded=True)
