"""Heuristic legislative-stage classifier.

The export carries no event log, only free text (outcome, current situation,
processing narrative) and a competent-committee field, so the stage is
decided by an ordered rule table rather than by state transitions.  Rules are
evaluated in :data:`STAGE_RULES` order and the first one with a firing signal
wins; nothing matching means ``proposed``.

All matching runs over :func:`~congreso_graph.normalize.normalize_text`
output, so keywords are written accent-free.  A keyword matches at the start
of a word and may be a stem (``aprob`` covers *aprobado*, *aprobada*,
*aprobación*).

The classifier is advisory: missing text is simply non-matching and
:func:`classify_stage` never raises.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass, field

from .models import Initiative, Stage, StageClassification
from .normalize import normalize_text

LOGGER = logging.getLogger(__name__)

# Field names used in signals and in the ``reason`` audit trail.
OUTCOME = "outcome"
SITUATION = "situation"
PROCEDURE = "procedure"
COMMITTEE = "committee"


@dataclass(frozen=True)
class Signal:
    """Keyword stems looked up in one field, or a populated-field check."""

    field: str
    keywords: tuple[str, ...] = ()
    populated: bool = False

    def matches(self, text: str) -> list[str]:
        """Keywords (or ``"<populated>"``) that fire against normalized *text*."""
        if self.populated:
            return ["<populated>"] if text else []
        return [kw for kw in self.keywords if _keyword_re(kw).search(text)]


@dataclass(frozen=True)
class StageRule:
    name: str
    stage: Stage
    step: int
    signals: tuple[Signal, ...] = field(default_factory=tuple)


_PUBLICATION = ("boe", "boletin oficial del estado", "publicacion", "entrada en vigor")
_VOTE = ("votacion", "voto")
_COMMITTEE = ("comision", "ponencia", "dictamen", "enmiendas parciales")

STAGE_RULES: tuple[StageRule, ...] = (
    StageRule(
        "published",
        Stage.PUBLISHED,
        5,
        (Signal(SITUATION, _PUBLICATION), Signal(PROCEDURE, _PUBLICATION)),
    ),
    StageRule("passed", Stage.PASSED, 4, (Signal(OUTCOME, ("aprob", "convalid")),)),
    StageRule("rejected", Stage.REJECTED, 4, (Signal(OUTCOME, ("rechaz", "derogad")),)),
    StageRule("withdrawn", Stage.WITHDRAWN, 4, (Signal(OUTCOME, ("retirad", "retiro")),)),
    StageRule("voting", Stage.VOTING, 4, (Signal(SITUATION, _VOTE), Signal(PROCEDURE, _VOTE))),
    StageRule(
        "committee",
        Stage.COMMITTEE,
        3,
        (
            Signal(SITUATION, _COMMITTEE),
            Signal(PROCEDURE, _COMMITTEE),
            Signal(COMMITTEE, populated=True),
        ),
    ),
    StageRule(
        "debating",
        Stage.DEBATING,
        2,
        (
            Signal(SITUATION, ("pleno", "debate", "toma en consideracion")),
            Signal(PROCEDURE, ("totalidad",)),
        ),
    ),
    StageRule("closed", Stage.CLOSED, 1, (Signal(SITUATION, ("cerrad", "caducad")),)),
)

DEFAULT_STAGE = Stage.PROPOSED
DEFAULT_STEP = 1

_KEYWORD_CACHE: dict[str, re.Pattern[str]] = {}


def _keyword_re(keyword: str) -> re.Pattern[str]:
    pattern = _KEYWORD_CACHE.get(keyword)
    if pattern is None:
        pattern = re.compile(r"(?<![a-z0-9])" + re.escape(keyword))
        _KEYWORD_CACHE[keyword] = pattern
    return pattern


def stage_fields(initiative: Initiative) -> dict[str, str]:
    """Normalized text of every field the rules look at."""
    return {
        OUTCOME: normalize_text(initiative.outcome),
        SITUATION: normalize_text(initiative.current_situation),
        PROCEDURE: normalize_text(initiative.procedure_text),
        COMMITTEE: normalize_text(initiative.committee),
    }


def evaluate_rule(rule: StageRule, texts: dict[str, str]) -> list[dict[str, str]]:
    """Every (field, keyword) pair of *rule* that fires; empty when it does not apply."""
    hits: list[dict[str, str]] = []
    for signal in rule.signals:
        for keyword in signal.matches(texts.get(signal.field, "")):
            hits.append({"field": signal.field, "keyword": keyword})
    return hits


def classify_stage(
    initiative: Initiative, rules: Iterable[StageRule] = STAGE_RULES
) -> StageClassification:
    """Assign exactly one stage and step to *initiative*.

    ``reason`` records the winning rule, the signals that made it fire, and
    the names of lower-priority rules that would also have fired.
    """
    texts = stage_fields(initiative)
    winner: StageRule | None = None
    matched: list[dict[str, str]] = []
    also: list[str] = []
    for rule in rules:
        hits = evaluate_rule(rule, texts)
        if not hits:
            continue
        if winner is None:
            winner, matched = rule, hits
        else:
            also.append(rule.name)

    if winner is None:
        return StageClassification(
            expediente=initiative.expediente,
            stage=DEFAULT_STAGE,
            step=DEFAULT_STEP,
            reason={"rule": "default", "matched": [], "also_matched": []},
        )
    return StageClassification(
        expediente=initiative.expediente,
        stage=winner.stage,
        step=winner.step,
        reason={"rule": winner.name, "matched": matched, "also_matched": also},
    )
