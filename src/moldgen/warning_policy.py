"""Coded warnings for settings that are repaired instead of rejected.

Tiling never fails on an out-of-range count, an unusable color or a dangling
field-map entry.  It repairs the value and reports it under one of the codes in
``WARNING_CODES``.  A ``WarningPolicy`` decides per code whether the report is
dropped, issued as a ``MoldgenWarning`` or escalated to a ``ValidationError``.
"""

from __future__ import annotations

import logging
import warnings
from dataclasses import dataclass

from moldgen.errors import ValidationError

logger = logging.getLogger(__name__)

WARNING_CODES: dict[str, str] = {
    "W01": "value clamped",
    "W02": "color fallback",
    "W03": "field map fallback",
}

KNOWN_CODES: frozenset[str] = frozenset(WARNING_CODES)


def describe_codes() -> str:
    """One-line summary of the warning codes, e.g. for CLI help."""
    return ", ".join(f"{code} {meaning}" for code, meaning in WARNING_CODES.items())


class MoldgenWarning(UserWarning):
    """A repaired setting, tagged with its warning code."""

    def __init__(self, code: str, detail: str) -> None:
        self.code = code
        self.meaning = WARNING_CODES[code]
        self.detail = detail
        super().__init__(f"[{code} {self.meaning}] {detail}")


@dataclass(frozen=True)
class WarningPolicy:
    """Per-code handling of repair warnings."""

    warn_as_error: frozenset[str] = frozenset()
    suppress: frozenset[str] = frozenset()

    def __post_init__(self) -> None:
        unknown = (self.warn_as_error | self.suppress) - KNOWN_CODES
        if unknown:
            raise ValueError(f"Unknown warning code(s): {sorted(unknown)}")
        both = self.warn_as_error & self.suppress
        if both:
            raise ValueError(f"Cannot both suppress and escalate {sorted(both)}")

    @classmethod
    def from_options(
        cls, warn_as_error: str | None = None, suppress: str | None = None
    ) -> WarningPolicy | None:
        """Build a policy from comma-separated code lists; None when both are unset."""
        if warn_as_error is None and suppress is None:
            return None
        return cls(
            warn_as_error=parse_code_list(warn_as_error or ""),
            suppress=parse_code_list(suppress or ""),
        )

    def action(self, code: str) -> str:
        if code in self.suppress:
            return "suppress"
        if code in self.warn_as_error:
            return "error"
        return "warn"


def emit_warning(code: str, detail: str, *, policy: WarningPolicy | None = None) -> None:
    """Report a repaired setting under *code*.

    Raises:
        ValidationError: If the policy escalates *code*.
        ValueError: If *code* is not one of ``WARNING_CODES``.
    """
    if code not in WARNING_CODES:
        raise ValueError(f"Unknown warning code: {code!r}")

    action = policy.action(code) if policy is not None else "warn"
    if action == "suppress":
        logger.debug("Suppressed %s (%s): %s", code, WARNING_CODES[code], detail)
        return
    if action == "error":
        raise ValidationError(f"[{code} {WARNING_CODES[code]}] {detail}")

    warnings.warn(MoldgenWarning(code, detail), stacklevel=2)


def parse_code_list(raw: str) -> frozenset[str]:
    """Parse a comma-separated code list such as ``"W01,w03"``; ``"all"`` selects every code.

    Raises:
        ValueError: For an unknown code.
    """
    codes: set[str] = set()
    for token in raw.split(","):
        token = token.strip().upper()
        if not token:
            continue
        if token == "ALL":
            codes.update(KNOWN_CODES)
            continue
        if token not in KNOWN_CODES:
            raise ValueError(f"Unknown warning code: {token!r} (known: {describe_codes()})")
        codes.add(token)
    return frozenset(codes)
