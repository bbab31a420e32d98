"""
Operation strings and the output-format decision.

An operation string is the last path segment of a request, e.g.
``width=100,format=webp,quality=80``. Keys are order-insensitive and the
last occurrence of a duplicated key wins. Only ``width``, ``height``,
``format`` and ``quality`` mean anything; other keys are carried but ignored.

The output format is chosen by an ordered list of rules; the first rule that
returns a decision wins:

  1. HEIC source (declared type, ``.heic`` key, or octet-stream) → JPEG q80
  2. explicit ``format`` → the matching encoder, quality only if lossy
  3. nothing requested → keep the decoded format
"""
from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

HEIC_QUALITY = 80

_HEIC_CONTENT_TYPES = {"image/heic", "application/octet-stream"}


class OutputFormat(Enum):
    """Encoders the service can produce: (mime type, Pillow format, lossy)."""

    JPEG = ("image/jpeg", "JPEG", True)
    WEBP = ("image/webp", "WEBP", True)
    AVIF = ("image/avif", "AVIF", True)
    GIF = ("image/gif", "GIF", False)
    PNG = ("image/png", "PNG", False)

    def __init__(self, content_type: str, pillow_format: str, lossy: bool) -> None:
        self.content_type = content_type
        self.pillow_format = pillow_format
        self.lossy = lossy


# Values accepted for format=...; anything else falls back to JPEG
_REQUESTED_FORMATS: dict[str, OutputFormat] = {
    "jpeg": OutputFormat.JPEG,
    "webp": OutputFormat.WEBP,
    "avif": OutputFormat.AVIF,
    "gif": OutputFormat.GIF,
    "png": OutputFormat.PNG,
}


@dataclass(frozen=True)
class Operations:
    """Parsed operation string. ``raw`` is kept verbatim for cache keys."""

    raw: str
    params: dict[str, str]

    @property
    def width(self) -> int | None:
        return _int_param(self.params, "width")

    @property
    def height(self) -> int | None:
        return _int_param(self.params, "height")

    @property
    def quality(self) -> int | None:
        return _int_param(self.params, "quality")

    @property
    def format(self) -> str | None:
        return self.params.get("format") or None

    def mentions(self, name: str) -> bool:
        """Substring check on the raw string, as used for the SVG passthrough."""
        return name in self.raw

    def as_query_string(self) -> str:
        return self.raw.replace(",", "&")


@dataclass(frozen=True)
class OutputDecision:
    """``format`` of None means: keep the decoded format and original content type."""

    format: OutputFormat | None
    quality: int | None = None


def parse_operations(raw: str) -> Operations:
    params: dict[str, str] = {}
    for pair in raw.split(","):
        if not pair:
            continue
        key, _, value = pair.partition("=")
        params[key] = value
    return Operations(raw=raw, params=params)


def _int_param(params: dict[str, str], name: str) -> int | None:
    """Return the integer value of ``name``; raises ValueError on garbage."""
    value = params.get(name)
    if not value:
        return None
    return int(value)


def is_heic_source(content_type: str | None, source_key: str) -> bool:
    return content_type in _HEIC_CONTENT_TYPES or source_key.lower().endswith(".heic")


# ── Decision rules ───────────────────────────────────────────────────────────

DecisionRule = Callable[[str | None, str, Operations], "OutputDecision | None"]


def _heic_rule(content_type: str | None, source_key: str, ops: Operations) -> OutputDecision | None:
    if is_heic_source(content_type, source_key):
        return OutputDecision(OutputFormat.JPEG, HEIC_QUALITY)
    return None


def _requested_format_rule(
    content_type: str | None, source_key: str, ops: Operations
) -> OutputDecision | None:
    if ops.format is None:
        return None
    fmt = _REQUESTED_FORMATS.get(ops.format, OutputFormat.JPEG)
    return OutputDecision(fmt, ops.quality if fmt.lossy else None)


def _passthrough_rule(
    content_type: str | None, source_key: str, ops: Operations
) -> OutputDecision | None:
    return OutputDecision(None)


DECISION_RULES: tuple[DecisionRule, ...] = (
    _heic_rule,
    _requested_format_rule,
    _passthrough_rule,
)


def decide_output(content_type: str | None, source_key: str, ops: Operations) -> OutputDecision:
    for rule in DECISION_RULES:
        decision = rule(content_type, source_key, ops)
        if decision is not None:
            return decision
    raise AssertionError("passthrough rule always matches")
