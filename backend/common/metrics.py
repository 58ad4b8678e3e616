from prometheus_client import Counter, Histogram

# HTTP
REQUEST_COUNT = Counter("http_requests_total", "Total HTTP requests", ["method", "endpoint", "status"])
REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["endpoint"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.075, 0.1, 0.25, 0.5, 0.75, 1.0, 2.5, 5.0, 7.5, 10.0, float("inf"))
)

# Order engine
ORDERS_CREATED = Counter("orders_created_total", "Orders successfully created")
ORDER_TRANSITIONS = Counter("order_transitions_total", "Applied order status transitions", ["status"])
ORDER_FAILURES = Counter("order_failures_total", "Rejected order operations", ["operation", "kind"])


def normalize_endpoint(path: str) -> str:
    """Group dynamic routes to keep label cardinality low."""
    if path.startswith("/api/orders/all"):
        return "/api/orders/all"
    if path.startswith("/api/orders/"):
        return "/api/orders/<id>"
    if path.startswith("/api/products/"):
        return "/api/products/<id>"
    if path.startswith("/static/"):
        return "/static/*"
    return path
