# heliocal/main.py
from __future__ import annotations

import logging
import os
import traceback
from time import perf_counter
from typing import Any, Dict, Final, Optional

from flask import Flask, Response, jsonify, request
from flask_cors import CORS
from prometheus_client import CONTENT_TYPE_LATEST, REGISTRY, Counter, Gauge, Histogram, generate_latest
from werkzeug.exceptions import BadRequest, HTTPException
from werkzeug.middleware.proxy_fix import ProxyFix

from heliocal.core.assembler import CalendarConfig, CalendarGenerationError, generate_calendar
from heliocal.core.ephemeris_adapter import EphemerisError, EphemerisProvider, SkyfieldEphemeris
from heliocal.core.validators import ValidationError, parse_calendar_payload
from heliocal.utils.config import AttrDict, calendar_config, ephemeris_config, load_config
from heliocal.version import VERSION

log = logging.getLogger(__name__)

# ───────────────────────── Prometheus ─────────────────────────
MET_REQUESTS: Final = Counter("heliocal_api_requests_total", "API requests", ["route"])
MET_GENERATION_ERRORS: Final = Counter("heliocal_generation_errors_total", "Failed calendar generations", ["stage"])
MET_FALLBACKS: Final = Counter("heliocal_birthday_fallback_total", "Calendars that used the birth-instant fallback")
GAUGE_APP_UP: Final = Gauge("heliocal_app_up", "1 if app is running")
REQ_LATENCY: Final = Histogram("heliocal_request_seconds", "API request latency", ["route"])

_TRACKED_ROUTES = ("/", "/health", "/healthz", "/metrics", "/api/calendar")

# ───────────────────────── helpers: logging & errors ─────────────────────────
def _configure_logging(app: Flask) -> None:
    gerr = logging.getLogger("gunicorn.error")
    if gerr.handlers:
        app.logger.handlers = gerr.handlers
        app.logger.setLevel(gerr.level)
        logging.getLogger("heliocal").handlers = gerr.handlers
        logging.getLogger("heliocal").setLevel(gerr.level)
    else:
        logging.basicConfig(level=os.environ.get("LOG_LEVEL", "INFO"))

def _register_errors(app: Flask) -> None:
    @app.errorhandler(ValidationError)
    def _validation(e: ValidationError):
        app.logger.info("Validation failed at %s: %s", request.path, e)
        return jsonify(ok=False, error="validation_error", errors=e.errors()), 400

    @app.errorhandler(CalendarGenerationError)
    def _generation(e: CalendarGenerationError):
        MET_GENERATION_ERRORS.labels(stage=e.stage).inc()
        app.logger.error("Calendar generation failed: %s", e)
        return jsonify(
            ok=False,
            error="generation_error",
            year=e.year,
            instant=e.instant,
            stage=e.stage,
            message=e.message,
        ), 502

    @app.errorhandler(HTTPException)
    def _http(e: HTTPException):
        app.logger.warning("HTTP %s at %s %s: %s", e.code, request.method, request.path, e.description)
        return jsonify(
            ok=False,
            error="http_error",
            code=e.code,
            name=e.name,
            message=e.description,
            path=request.path,
        ), e.code

    @app.errorhandler(Exception)
    def _any(e: Exception):
        tb = traceback.format_exc()
        app.logger.error("UNHANDLED %s at %s %s\n%s", type(e).__name__, request.method, request.path, tb)
        return jsonify(
            ok=False,
            error="internal_error",
            type=type(e).__name__,
            message=str(e),
            path=request.path,
        ), 500

# ───────────────────────── health & utils ─────────────────────────
def _register_health(app: Flask) -> None:
    @app.route("/", methods=["GET"])
    def root():
        return jsonify(ok=True, service="heliocal", version=VERSION, health="/health"), 200

    @app.route("/health", methods=["GET"])
    @app.route("/healthz", methods=["GET"])
    def health():
        return jsonify(ok=True, status="ok"), 200

def _metrics_auth_ok() -> bool:
    auth = request.authorization
    user = os.getenv("METRICS_USER", "")
    pw = os.getenv("METRICS_PASS", "")
    return bool(
        auth and auth.type == "basic" and auth.username == user and auth.password == pw and user and pw
    )

def _body_json() -> Dict[str, Any]:
    data = request.get_json(force=True, silent=True)
    if not isinstance(data, dict):
        raise BadRequest("JSON body must be an object")
    return data

# ───────────────────────── calendar API ─────────────────────────
def _register_calendar_api(app: Flask) -> None:
    @app.post("/api/calendar")
    def calendar_handler():
        params = parse_calendar_payload(_body_json())
        year = generate_calendar(
            **params,
            provider=app.extensions["heliocal.provider"],
            config=app.extensions["heliocal.calendar_config"],
        )
        if year.birthday_fallback:
            MET_FALLBACKS.inc()
        return jsonify({"ok": True, "calendar": year.to_dict()}), 200

# ───────────────────────── app factory ─────────────────────────
def create_app(
    provider: Optional[EphemerisProvider] = None,
    calendar_cfg: Optional[CalendarConfig] = None,
) -> Flask:
    app = Flask(__name__)
    app.json.sort_keys = False
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1)  # type: ignore

    _configure_logging(app)

    cfg_path = os.environ.get("HELIOCAL_CONFIG", "config/defaults.yaml")
    try:
        app.cfg = load_config(cfg_path)  # type: ignore[attr-defined]
    except OSError as e:
        app.logger.info("Config %s not loaded (%s); using defaults", cfg_path, e)
        app.cfg = AttrDict(ephemeris=AttrDict(), calendar=AttrDict())  # type: ignore[attr-defined]

    if provider is None:
        try:
            provider = SkyfieldEphemeris(ephemeris_config(app.cfg))  # type: ignore[attr-defined]
        except EphemerisError as e:
            raise RuntimeError(f"invalid ephemeris configuration: {e}") from e
    app.extensions["heliocal.provider"] = provider
    app.extensions["heliocal.calendar_config"] = calendar_cfg or calendar_config(app.cfg)  # type: ignore[attr-defined]

    for route in _TRACKED_ROUTES:
        MET_REQUESTS.labels(route=route).inc(0)
        REQ_LATENCY.labels(route=route).observe(0.0)
    GAUGE_APP_UP.set(1.0)

    @app.before_request
    def _before():
        p = request.path or ""
        if p in _TRACKED_ROUTES:
            MET_REQUESTS.labels(route=p).inc()
            request._t0 = perf_counter()  # type: ignore[attr-defined]

    @app.after_request
    def _after(resp):
        p = request.path or ""
        if p in _TRACKED_ROUTES and hasattr(request, "_t0"):
            REQ_LATENCY.labels(route=p).observe(perf_counter() - request._t0)  # type: ignore[attr-defined]
        return resp

    _register_health(app)
    _register_errors(app)
    _register_calendar_api(app)

    # /metrics (Basic Auth)
    @app.route("/metrics", methods=["GET"])
    def metrics_endpoint():
        if not _metrics_auth_ok():
            return Response("Unauthorized", 401, {"WWW-Authenticate": 'Basic realm="metrics"'})
        GAUGE_APP_UP.set(1.0)
        return Response(generate_latest(REGISTRY), mimetype=CONTENT_TYPE_LATEST)

    # CORS for browser rendering layers
    allowed_origin = os.environ.get("CORS_ALLOW_ORIGIN") or "*"
    CORS(
        app,
        resources={r"/.*": {"origins": allowed_origin}},
        supports_credentials=False,
        methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
        max_age=600,
    )

    app.logger.info("heliocal %s initialized; provider=%s", VERSION, type(provider).__name__)
    return app

# ───────────────────────── app instance ─────────────────────────
app = create_app()

if __name__ == "__main__":
    app.run(host="0.0.0.0", port=int(os.environ.get("PORT", 5000)))
