import logging
import time
from typing import Optional

from quart import Quart, jsonify, request
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from .auth.identity import HeaderIdentityProvider, IdentityError
from .common.config import settings
from .common.database import Database, get_database
from .common.kafka_client import close_producer
from .common.metrics import REQUEST_COUNT, REQUEST_LATENCY, normalize_endpoint
from .common.redis_client import close_redis
from .common.result import INTERNAL_ERROR_MESSAGE, ErrorKind, Failure
from .inventory.controller import bp as inventory_bp
from .orders.controller import bp as orders_bp
from .orders.service import OrderService
from .realtime.controller import bp as realtime_bp

log = logging.getLogger(__name__)


def create_app(database: Optional[Database] = None, init_schema: bool = True) -> Quart:
    app = Quart(__name__)

    db = database or get_database()
    app.extensions["database"] = db
    app.extensions["order_service"] = OrderService(db)
    app.extensions["identity_provider"] = HeaderIdentityProvider(db)

    # Blueprints
    app.register_blueprint(inventory_bp)
    app.register_blueprint(orders_bp)
    app.register_blueprint(realtime_bp)

    @app.errorhandler(IdentityError)
    async def identity_error(e: IdentityError):
        return jsonify(Failure(ErrorKind.UNAUTHORIZED, e.message).to_dict()), 401

    @app.errorhandler(500)
    async def internal_error(e):
        log.error(
            "Unhandled error on %s %s", request.method, request.path,
            exc_info=getattr(e, "original_exception", None) or e,
        )
        return jsonify(Failure(ErrorKind.INTERNAL, INTERNAL_ERROR_MESSAGE).to_dict()), 500

    @app.before_request
    async def before_request():
        request._start_time = time.time()
        log.info("[Instance %s] %s %s", settings.INSTANCE_ID, request.method, request.path)

    @app.after_request
    async def after_request(response):
        start = getattr(request, "_start_time", None)
        if start is not None:
            endpoint = normalize_endpoint(request.path)
            REQUEST_LATENCY.labels(endpoint=endpoint).observe(time.time() - start)
            REQUEST_COUNT.labels(
                method=request.method,
                endpoint=endpoint,
                status=str(response.status_code)
            ).inc()
        response.headers["X-Instance-ID"] = settings.INSTANCE_ID
        return response

    @app.get("/metrics")
    async def metrics():
        data = generate_latest()
        return app.response_class(data, mimetype=CONTENT_TYPE_LATEST)

    @app.get("/health")
    async def health():
        return jsonify({"status": "ok"})

    @app.get("/")
    async def index():
        return jsonify({"message": "API rodando"})

    @app.before_serving
    async def startup():
        logging.basicConfig(level=settings.LOG_LEVEL)
        if init_schema:
            log.info("Initializing database...")
            await db.init()
            log.info("Database ready.")

    @app.after_serving
    async def shutdown():
        if settings.KAFKA_ENABLED:
            await close_producer()
        if settings.REDIS_ENABLED:
            await close_redis()
        await db.dispose()
        log.info("Shutdown complete.")

    return app
