import logging


def setup_logging(level: str = "INFO") -> logging.Logger:
    """Configure root logging once for the process."""
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    # uvicorn's access log duplicates the request-id middleware output
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    return logging.getLogger("app")
