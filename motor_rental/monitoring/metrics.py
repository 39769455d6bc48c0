from prometheus_client import Counter, Gauge, Histogram, Info, start_http_server
from prometheus_fastapi_instrumentator import Instrumentator

# Business metrics
rentals_total = Counter(
    "motor_rental_rentals_total",
    "Total number of rental lifecycle transitions",
    ["service", "status"],  # status=active/extended/completed/removed
)

fines_amount_total = Counter(
    "motor_rental_fines_amount_total",
    "Total fines charged on completion",
    ["service", "completion_status"],  # completion_status=on_time/late
)

overdue_rentals_current = Gauge(
    "motor_rental_overdue_rentals_current",
    "Open rentals past their agreed return at the last recalculation",
    ["service"],
)

overdue_sweep_duration_seconds = Histogram(
    "motor_rental_overdue_sweep_duration_seconds",
    "Duration of an overdue sweep",
    ["service"],
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0],
)

business_rule_rejections_total = Counter(
    "motor_rental_business_rule_rejections_total",
    "Operations rejected by a business rule",
    ["service", "error_type"],
)

worker_errors_total = Counter(
    "motor_rental_worker_errors_total",
    "Total worker errors",
    ["service", "error_type"],
)

# Application info
app_info = Info("motor_rental_app_info", "Application information")


def setup_instrumentator() -> Instrumentator:
    instrumentator = Instrumentator(
        should_group_status_codes=False,
        should_ignore_untemplated=True,
        should_respect_env_var=False,
        should_instrument_requests_inprogress=True,
        excluded_handlers=["/metrics", "/api/v1/health"],
        inprogress_name="http_requests_inprogress",
        inprogress_labels=True,
    )
    return instrumentator


def init_app_info(version: str = "1.0.0", component: str = "api"):
    app_info.info(
        {"version": version, "service": MetricsCollector.SERVICE_NAME, "component": component}
    )


def start_metrics_server(port: int = 8001):
    start_http_server(port)


class MetricsCollector:
    SERVICE_NAME = "motor-rental"

    @staticmethod
    def record_rental(status: str):
        rentals_total.labels(service=MetricsCollector.SERVICE_NAME, status=status).inc()

    @staticmethod
    def record_fine(completion_status: str, amount: int):
        fines_amount_total.labels(
            service=MetricsCollector.SERVICE_NAME,
            completion_status=completion_status,
        ).inc(amount)

    @staticmethod
    def record_overdue_count(count: int):
        overdue_rentals_current.labels(service=MetricsCollector.SERVICE_NAME).set(count)

    @staticmethod
    def record_overdue_sweep(duration: float, overdue: int):
        overdue_sweep_duration_seconds.labels(
            service=MetricsCollector.SERVICE_NAME
        ).observe(duration)
        overdue_rentals_current.labels(service=MetricsCollector.SERVICE_NAME).set(overdue)

    @staticmethod
    def record_rejection(error_type: str):
        business_rule_rejections_total.labels(
            service=MetricsCollector.SERVICE_NAME,
            error_type=error_type,
        ).inc()

    @staticmethod
    def record_worker_error(error_type: str):
        worker_errors_total.labels(
            service=MetricsCollector.SERVICE_NAME,
            error_type=error_type,
        ).inc()
