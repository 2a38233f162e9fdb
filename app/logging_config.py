import logging

HEALTH_PATH = "/api/health"


class HealthCheckFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        msg = record.getMessage()
        return HEALTH_PATH not in msg


def setup_logging(level="INFO"):
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(levelname)s - %(message)s",
    )
    for logger_name in ["uvicorn.access"]:
        logger = logging.getLogger(logger_name)
        if not any(isinstance(f, HealthCheckFilter) for f in logger.filters):
            logger.addFilter(HealthCheckFilter())
