"""
Structured logging for the dashboard backend.

Every log line is an event name followed by ``key=value`` pairs, or a single
JSON object when ``json_output`` is enabled (useful behind a log shipper).
The [Logger][phoenixd_dashboard.core.logger.Logger] wrapper attaches its
keyword arguments to the record as ``structured_kv``; the
[StructuredFormatter][phoenixd_dashboard.core.logger.StructuredFormatter]
installed by the CLI renders them. Plain ``logging.getLogger()`` calls made
from the models and utils layers go through the same formatter, so the whole
process speaks one format.

Examples:
    ```python
    from phoenixd_dashboard.core.logger import Logger

    logger = Logger("upstream")
    logger.info("upstream_connected", url="ws://phoenixd:9740/websocket")
    # info upstream upstream_connected url=ws://phoenixd:9740/websocket
    ```
"""

from __future__ import annotations

import datetime
import json
import logging
from typing import Any, ClassVar


def _truncate(value: Any, max_value_length: int | None) -> str:
    s = str(value)
    if max_value_length and len(s) > max_value_length:
        return s[:max_value_length] + f"...<truncated {len(s) - max_value_length} chars>"
    return s


def format_kv_pairs(
    kwargs: dict[str, Any],
    max_value_length: int | None = 1000,
    prefix: str = " ",
) -> str:
    """Render a mapping as space-separated ``key=value`` pairs.

    Values longer than ``max_value_length`` are cut short. Values that are
    empty or contain whitespace, ``=`` or quotes are wrapped in double quotes
    with backslashes and double quotes escaped, so the line stays parseable.

    Args:
        kwargs: Pairs to render, in insertion order.
        max_value_length: Truncation limit per value (``None`` disables it).
        prefix: Prepended to a non-empty result.

    Returns:
        The rendered pairs, or an empty string for an empty mapping.
    """
    if not kwargs:
        return ""

    parts = []
    for key, value in kwargs.items():
        s = _truncate(value, max_value_length)
        if not s or any(ch in s for ch in (" ", "=", '"', "'")):
            escaped = s.replace("\\", "\\\\").replace('"', '\\"')
            parts.append(f'{key}="{escaped}"')
        else:
            parts.append(f"{key}={s}")
    return prefix + " ".join(parts)


class StructuredFormatter(logging.Formatter):
    """Root-handler formatter producing ``level name message key=value ...``.

    Records created by [Logger][phoenixd_dashboard.core.logger.Logger] carry
    their pairs in ``structured_kv``; records from plain stdlib loggers have
    none and are rendered with the same prefix.
    """

    def format(self, record: logging.LogRecord) -> str:
        line = f"{record.levelname.lower()} {record.name} {record.getMessage()}"
        pairs: dict[str, Any] = getattr(record, "structured_kv", {})
        if pairs:
            line += format_kv_pairs(pairs)
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


class Logger:
    """Thin structured wrapper around a stdlib ``logging.Logger``.

    Each method takes an event name plus arbitrary keyword arguments, which
    end up as ``key=value`` pairs (or JSON fields).

    Examples:
        ```python
        logger = Logger("hub")
        logger.info("subscriber_registered", subscribers=3)
        logger.warning("subscriber_dropped", reason="send_timeout")
        ```
    """

    _DEFAULT_MAX_VALUE_LENGTH: ClassVar[int] = 1000

    def __init__(
        self,
        name: str,
        *,
        json_output: bool = False,
        max_value_length: int | None = None,
    ) -> None:
        """Create a logger bound to ``logging.getLogger(name)``.

        Args:
            name: Logger name, usually the component or service name.
            json_output: Emit one JSON object per line instead of pairs.
            max_value_length: Per-value truncation limit (default 1000).
        """
        self._logger = logging.getLogger(name)
        self._json_output = json_output
        self._max_value_length = (
            self._DEFAULT_MAX_VALUE_LENGTH if max_value_length is None else max_value_length
        )

    @property
    def name(self) -> str:
        return self._logger.name

    def _to_json(self, msg: str, level: str, kwargs: dict[str, Any]) -> str:
        record = {
            "timestamp": datetime.datetime.now(datetime.UTC).isoformat(),
            "level": level,
            "service": self._logger.name,
            "message": msg,
            **kwargs,
        }
        return json.dumps(record, default=str)

    def _emit(
        self,
        level: int,
        msg: str,
        kwargs: dict[str, Any],
        *,
        exc_info: bool = False,
    ) -> None:
        if not self._logger.isEnabledFor(level):
            return
        if self._json_output:
            self._logger.log(
                level,
                self._to_json(msg, logging.getLevelName(level).lower(), kwargs),
                exc_info=exc_info,
            )
            return
        extra = {}
        if kwargs:
            extra["structured_kv"] = {k: self._clip(v) for k, v in kwargs.items()}
        self._logger.log(level, msg, extra=extra, exc_info=exc_info)

    def _clip(self, value: Any) -> Any:
        # Keep the original type unless the value actually needs cutting
        if self._max_value_length and len(str(value)) > self._max_value_length:
            return _truncate(value, self._max_value_length)
        return value

    def debug(self, msg: str, **kwargs: Any) -> None:
        self._emit(logging.DEBUG, msg, kwargs)

    def info(self, msg: str, **kwargs: Any) -> None:
        self._emit(logging.INFO, msg, kwargs)

    def warning(self, msg: str, **kwargs: Any) -> None:
        self._emit(logging.WARNING, msg, kwargs)

    def error(self, msg: str, **kwargs: Any) -> None:
        self._emit(logging.ERROR, msg, kwargs)

    def critical(self, msg: str, **kwargs: Any) -> None:
        self._emit(logging.CRITICAL, msg, kwargs)

    def exception(self, msg: str, **kwargs: Any) -> None:
        """Log at ERROR level with the active exception's traceback attached."""
        self._emit(logging.ERROR, msg, kwargs, exc_info=True)
