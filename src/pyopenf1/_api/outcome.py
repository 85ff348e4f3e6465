"""Classification of window responses into a tagged outcome.

The API signals "this range is too big" either as a 4xx body such as
``{"detail": "Too much data. Please narrow your query."}`` or, through
some proxies, as an error whose message carries the same text.  Both
shapes collapse here into :attr:`OutcomeKind.TOO_LARGE` so the fetcher
only ever dispatches on the tag.
"""

from __future__ import annotations

import dataclasses
import enum
import logging
from collections.abc import Sequence
from typing import Any, Generic, TypeVar

from pydantic import ValidationError

from pyopenf1._constants import TOO_MUCH_DATA_MARKER
from pyopenf1._retry import is_retryable
from pyopenf1.models.telemetry import TelemetrySample

_logger = logging.getLogger(__name__)

S = TypeVar("S", bound=TelemetrySample)


class OutcomeKind(enum.Enum):
    OK = "ok"
    TOO_LARGE = "too_large"
    RETRYABLE = "retryable"
    FATAL = "fatal"


@dataclasses.dataclass(frozen=True)
class WindowOutcome(Generic[S]):
    """Result of one window request.

    Exactly one of ``samples`` (``OK``), ``reason`` (``TOO_LARGE``) or
    ``error`` (``RETRYABLE``/``FATAL``) is meaningful.
    """

    kind: OutcomeKind
    samples: Sequence[S] = ()
    reason: str = ""
    error: BaseException | None = None

    @classmethod
    def ok(cls, samples: Sequence[S]) -> WindowOutcome[S]:
        return cls(OutcomeKind.OK, samples=samples)

    @classmethod
    def too_large(cls, reason: str) -> WindowOutcome[S]:
        return cls(OutcomeKind.TOO_LARGE, reason=reason)

    @classmethod
    def failed(cls, error: BaseException) -> WindowOutcome[S]:
        kind = OutcomeKind.RETRYABLE if is_retryable(error) else OutcomeKind.FATAL
        return cls(kind, error=error)

    @property
    def is_ok(self) -> bool:
        return self.kind is OutcomeKind.OK


def rejection_detail(body: Any) -> str | None:
    """Return the ``detail`` text of a rejection-shaped body, else ``None``."""
    if isinstance(body, dict):
        detail = body.get("detail")
        if isinstance(detail, str):
            return detail
    return None


def is_too_much_data(text: str) -> bool:
    return TOO_MUCH_DATA_MARKER in text.lower()


def parse_samples(items: list[Any], model: type[S]) -> list[S]:
    """Validate raw items, dropping those without a usable identity."""
    samples: list[S] = []
    for item in items:
        try:
            samples.append(model.model_validate(item))
        except ValidationError:
            _logger.debug("Dropping malformed %s item: %r", model.__name__, item)
    return samples


def classify_body(body: Any, model: type[S]) -> WindowOutcome[S]:
    """Classify a response body that came back without an exception."""
    if isinstance(body, list):
        return WindowOutcome.ok(parse_samples(body, model))

    detail = rejection_detail(body)
    if detail is not None and is_too_much_data(detail):
        return WindowOutcome.too_large(detail)
    if isinstance(body, str) and is_too_much_data(body):
        return WindowOutcome.too_large(body)

    # Anything else ("No results found.", empty body, stray text) is an
    # empty window.
    _logger.debug("Window body is not a list, treating as empty: %r", body if detail is None else detail)
    return WindowOutcome.ok([])


def classify_error(exc: BaseException) -> WindowOutcome[Any]:
    """Classify an exception that escaped every retry layer."""
    message = str(exc)
    if is_too_much_data(message):
        return WindowOutcome.too_large(message)
    return WindowOutcome.failed(exc)
