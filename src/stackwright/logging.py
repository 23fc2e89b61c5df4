import logging
from contextlib import contextmanager
from typing import Any, Iterator, Literal

import structlog

LogFormat = Literal["json", "console"]


def configure_logging(level: int | str = logging.INFO, fmt: LogFormat = "json") -> None:
    """Route structlog through stdlib logging.

    ``json`` emits one object per line for log shippers; ``console`` is the
    coloured key=value rendering for people watching a run.
    """

    if isinstance(level, str):
        level = logging.getLevelName(level.upper())

    renderer: Any = (
        structlog.dev.ConsoleRenderer() if fmt == "console" else structlog.processors.JSONRenderer()
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            renderer,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(level=level, format="%(message)s")


@contextmanager
def run_context(stack: str, run_id: str, operation: str) -> Iterator[structlog.stdlib.BoundLogger]:
    """Tag every log line emitted during one run with its stack and run id.

    The fields live in context variables, so engine steps and backend calls
    started inside the block carry them too.
    """

    with structlog.contextvars.bound_contextvars(stack=stack, run_id=run_id, operation=operation):
        yield structlog.get_logger()
