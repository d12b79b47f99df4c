import logging
from typing import Any, MutableMapping, Optional, Tuple

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(level: str = "info") -> None:
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)


class ContextLogger(logging.LoggerAdapter):
    """Logger handle carrying the key/value context of one request.

    A handle is created per tool invocation and passed down explicitly, so
    concurrent requests never share context.
    """

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> Tuple[Any, MutableMapping[str, Any]]:
        context = " ".join(f"{key}={value}" for key, value in self.extra.items() if value not in (None, ""))
        if context:
            msg = f"{msg} [{context}]"
        return msg, kwargs

    def bind(self, **context: Any) -> "ContextLogger":
        merged = dict(self.extra)
        merged.update(context)
        return ContextLogger(self.logger, merged)


def request_logger(tool: str, logger: Optional[logging.Logger] = None, **context: Any) -> ContextLogger:
    base = logger or logging.getLogger("fleet_inspector.tools")
    return ContextLogger(base, {"tool": tool, **context})
