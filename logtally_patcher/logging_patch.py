"""Counting wrappers for logging calls.

Nothing here replaces a shared binding.  Callers hand in the callables they
want counted and get back new wrapped objects:

* ``intercept({"error": fn, ...})``  -> ``InterceptedSources`` capability
* ``wrap_logger(logging.getLogger())`` -> ``TalliedLogger`` view of a logger
* ``TallyHandler``                    -> ``logging.Handler`` that counts every
  emitted record, for code that logs through its own module loggers
"""

from __future__ import annotations

import functools
import logging
import threading
from typing import Any, Callable, Iterable, Iterator, Mapping, Optional

from logtally.config import METHOD_CATEGORIES, TRACKED_METHODS, is_enabled
from logtally_patcher.event_buffer import EventBuffer, OriginResolver

_logger = logging.getLogger(__name__)

# Depth of wrapped calls in progress on this thread.  TallyHandler skips
# records emitted inside them since the wrapper already counted the call.
_counted_call = threading.local()


# ---------------------------------------------------------------------------
# Generic callable wrapper
# ---------------------------------------------------------------------------

def _wrap_callable(
    original: Callable[..., Any],
    category: str,
    buffer: EventBuffer,
    resolve_origin: Optional[OriginResolver],
    *,
    logger_method: bool = False,
) -> Callable[..., Any]:
    """Wrap *original* so each call is counted under *category*.

    With *logger_method* the wrapper bumps ``stacklevel`` so records still
    point at the code that called the wrapper.
    """

    @functools.wraps(original)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            buffer.record_call(category, args, resolve_origin)
        except Exception as exc:
            # Counting must never change what the wrapped call does.
            _logger.debug("Failed to count %s call: %s", category, exc)
        depth = getattr(_counted_call, "depth", 0)
        _counted_call.depth = depth + 1
        if logger_method:
            kwargs["stacklevel"] = kwargs.get("stacklevel", 1) + 1
        try:
            return original(*args, **kwargs)
        finally:
            _counted_call.depth = depth

    return wrapper


class InterceptedSources(Mapping[str, Callable[..., Any]]):
    """Read-only bundle of wrapped event sources.

    Sources are reachable both as attributes (``sources.error(...)``) and as
    mapping items (``sources["error"](...)``).
    """

    def __init__(self, wrapped: Mapping[str, Callable[..., Any]], buffer: EventBuffer) -> None:
        self._wrapped = dict(wrapped)
        self.buffer = buffer

    def __getitem__(self, category: str) -> Callable[..., Any]:
        return self._wrapped[category]

    def __iter__(self) -> Iterator[str]:
        return iter(self._wrapped)

    def __len__(self) -> int:
        return len(self._wrapped)

    def __getattr__(self, name: str) -> Callable[..., Any]:
        try:
            return self.__dict__["_wrapped"][name]
        except KeyError:
            raise AttributeError(name) from None


def intercept(
    sources: Mapping[str, Callable[..., Any]],
    buffer: EventBuffer | None = None,
    resolve_origin: Optional[OriginResolver] = None,
    *,
    enabled: bool | None = None,
) -> InterceptedSources:
    """Return counting wrappers for each ``category -> callable`` in *sources*.

    Parameters
    ----------
    sources:
        Category name to original callable.
    buffer:
        Buffer to count into; defaults to ``EventBuffer.get()``.
    resolve_origin:
        Zero-argument callable returning the current origin.  Failures
        are mapped to ``<unknown>``.
    enabled:
        Overrides the ``LOGTALLY_ENABLED`` environment flag.  When
        disabled the originals are returned untouched.
    """
    buf = buffer if buffer is not None else EventBuffer.get()
    active = is_enabled() if enabled is None else enabled
    if not active:
        return InterceptedSources(sources, buf)
    wrapped = {
        category: _wrap_callable(fn, category, buf, resolve_origin)
        for category, fn in sources.items()
    }
    return InterceptedSources(wrapped, buf)


# ---------------------------------------------------------------------------
# logging.Logger view
# ---------------------------------------------------------------------------

def method_category(method: str) -> str:
    """Category a logger method is counted under."""
    return METHOD_CATEGORIES.get(method, method)


class TalliedLogger:
    """A ``logging.Logger`` whose tracked methods are counted.

    Untracked attributes are delegated to the wrapped logger, so the view
    can be handed to code expecting a logger.
    """

    def __init__(self, logger: logging.Logger, sources: InterceptedSources) -> None:
        self._logger = logger
        self._sources = sources

    @property
    def wrapped(self) -> logging.Logger:
        return self._logger

    @property
    def buffer(self) -> EventBuffer:
        return self._sources.buffer

    def __getattr__(self, name: str) -> Any:
        sources = self.__dict__.get("_sources")
        if sources is not None and name in sources:
            return sources[name]
        return getattr(self.__dict__["_logger"], name)

    def __repr__(self) -> str:
        return f"<TalliedLogger {self._logger.name!r}>"


def wrap_logger(
    logger: logging.Logger,
    methods: Iterable[str] = TRACKED_METHODS,
    buffer: EventBuffer | None = None,
    resolve_origin: Optional[OriginResolver] = None,
    *,
    enabled: bool | None = None,
) -> TalliedLogger:
    """Return a counted view of *logger*.  *logger* itself is not modified."""
    buf = buffer if buffer is not None else EventBuffer.get()
    active = is_enabled() if enabled is None else enabled
    wrapped: dict[str, Callable[..., Any]] = {}
    for method in methods:
        original = getattr(logger, method)
        if active:
            wrapped[method] = _wrap_callable(
                original, method_category(method), buf, resolve_origin, logger_method=True
            )
        else:
            wrapped[method] = original
    return TalliedLogger(logger, InterceptedSources(wrapped, buf))


# ---------------------------------------------------------------------------
# logging.Handler
# ---------------------------------------------------------------------------

class TallyHandler(logging.Handler):
    """Count every record that reaches this handler.

    The category is the lower-cased level name and the primary payload is
    ``record.msg`` (the format string, before ``%`` interpolation).
    Records emitted from inside a wrapped call are skipped because the
    wrapper has counted that call already.
    """

    def __init__(
        self,
        buffer: EventBuffer | None = None,
        resolve_origin: Optional[OriginResolver] = None,
        level: int = logging.NOTSET,
    ) -> None:
        super().__init__(level)
        self.buffer = buffer if buffer is not None else EventBuffer.get()
        self.resolve_origin = resolve_origin

    def emit(self, record: logging.LogRecord) -> None:
        if getattr(_counted_call, "depth", 0):
            return
        try:
            self.buffer.record_call(
                record.levelname.lower(), (record.msg,), self.resolve_origin
            )
        except Exception:
            self.handleError(record)
