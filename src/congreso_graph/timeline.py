"""Procedural timeline reconstruction from the ``TRAMITACIONSEGUIDA`` narrative.

The narrative alternates phase names and date clauses, one per line::

    Comisión de Igualdad
    desde 12/12/2023 hasta 15/12/2023
    Pleno
    desde 20/02/2024

A line matching a date clause becomes an event labelled with the phase name
in effect; any other non-blank line becomes the new phase name.  Matching is
anchored to the ``desde <date>`` shape, so prose that happens to say "desde"
or "hasta" stays a label.  Events keep narrative order; nothing is re-sorted
by date.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import date

from .models import TimelineEvent
from .normalize import parse_spanish_date

LOGGER = logging.getLogger(__name__)

DEFAULT_LABEL = "Tramitación"

_DATE = r"(\d{1,2}/\d{1,2}/\d{4})"


@dataclass(frozen=True)
class TimelineRule:
    name: str
    pattern: re.Pattern[str]
    has_end: bool


# Evaluated in order; the first rule whose pattern matches owns the line.
TIMELINE_RULES: tuple[TimelineRule, ...] = (
    TimelineRule(
        "range",
        re.compile(rf"\bdesde\s+{_DATE}\s+hasta\s+{_DATE}", re.IGNORECASE),
        has_end=True,
    ),
    TimelineRule("start_only", re.compile(rf"\bdesde\s+{_DATE}", re.IGNORECASE), has_end=False),
)


@dataclass
class TimelineResult:
    events: list[TimelineEvent] = field(default_factory=list)
    skipped_lines: list[str] = field(default_factory=list)  # date clause with a bad date


def match_line(line: str) -> tuple[TimelineRule, re.Match[str]] | None:
    """Return the first rule matching *line*, with its match, or ``None``."""
    for rule in TIMELINE_RULES:
        m = rule.pattern.search(line)
        if m:
            return rule, m
    return None


def _dates(rule: TimelineRule, m: re.Match[str]) -> tuple[date, date | None] | None:
    start = parse_spanish_date(m.group(1))
    if start is None:
        return None
    if not rule.has_end:
        return start, None
    end = parse_spanish_date(m.group(2))
    if end is None:
        return None
    return start, end


def extract_timeline(expediente: str, procedure_text: str | None) -> TimelineResult:
    """Derive the ordered events of one initiative's narrative."""
    result = TimelineResult()
    if not procedure_text:
        return result

    label = DEFAULT_LABEL
    for raw_line in procedure_text.splitlines():
        line = raw_line.strip()
        if not line:
            continue
        hit = match_line(line)
        if hit is None:
            label = line
            continue
        rule, m = hit
        dates = _dates(rule, m)
        if dates is None:
            LOGGER.debug("%s: skipping timeline line with invalid date: %r", expediente, line)
            result.skipped_lines.append(line)
            continue
        start, end = dates
        result.events.append(
            TimelineEvent(
                expediente=expediente,
                event_label=label,
                start_date=start,
                end_date=end,
                raw_description=line,
                order=len(result.events) + 1,
            )
        )
    return result
