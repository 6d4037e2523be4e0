"""Record normalization: raw export entries → canonical :class:`Initiative`.

**Dates** in the exports are Spanish ``DD/MM/YYYY`` text; a handful of the
approved-laws dumps use ISO.  Anything else becomes ``None``.

**Text comparison** (similarity, stage keywords) always goes through
:func:`normalize_text`: lower-case, diacritics stripped, trimmed, so
``"Comisión"`` and ``"comision"`` compare equal.

**Cross-reference fields** are free text lists of expedientes separated by
whitespace, commas or newlines.
"""

from __future__ import annotations

import logging
import re
import unicodedata
from datetime import date, datetime

from .models import UNKNOWN, Initiative, SkipReason, SkipRecord
from .raw import RawInitiative

LOGGER = logging.getLogger(__name__)

_DATE_FORMATS = [
    "%d/%m/%Y",  # 12/12/2023 (all initiative exports)
    "%Y-%m-%d",  # ISO (approved-laws dump)
    "%d/%m/%Y %H:%M:%S",  # 12/12/2023 00:00:00 (occasional)
]

_RE_KEY_SEPARATORS = re.compile(r"[\s,]+")
_RE_WHITESPACE = re.compile(r"\s+")


def parse_spanish_date(text: str | None) -> date | None:
    """Parse a day/month/year date; ``None`` when absent or not a real date.

    Examples::

        >>> parse_spanish_date("12/12/2023")
        datetime.date(2023, 12, 12)
        >>> parse_spanish_date("1/2/2024")
        datetime.date(2024, 2, 1)
        >>> parse_spanish_date("31/02/2024") is None
        True
    """
    if not text:
        return None
    text = text.strip()
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    LOGGER.debug("parse_spanish_date: unparseable date %r", text)
    return None


def normalize_text(text: str | None) -> str:
    """Lower-case, strip diacritics and trim.

    >>> normalize_text("  Ley de Protección  ")
    'ley de proteccion'
    """
    if not text:
        return ""
    decomposed = unicodedata.normalize("NFD", text.lower())
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return unicodedata.normalize("NFC", stripped).strip()


def split_keys(text: str | None) -> list[str]:
    """Split a cross-reference field into expedientes, order and repeats kept."""
    if not text:
        return []
    return [token for token in _RE_KEY_SEPARATORS.split(text) if token]


def _clean(text: str | None, default: str = "") -> str:
    if text is None:
        return default
    text = text.strip()
    return text if text else default


def _clean_inline(text: str | None, default: str = "") -> str:
    """Collapse internal whitespace for single-line fields (subject, promoter)."""
    return _RE_WHITESPACE.sub(" ", _clean(text, default))


# ── Procedure-type categorization ────────────────────────────────────────────
# The Congress groups legislative procedures into a handful of processing
# tracks; the export only carries the pieces (type, processing mode, author).

_BILL_KINDS = (
    "proyecto de ley",
    "proposicion de ley",
    "proposicion de ley de grupos parlamentarios del congreso",
)
_AUTONOMOUS_REGIONS = ("cataluna", "galicia", "andalucia", "cantabria", "canarias", "vasco")
_CONSTITUTIONAL_BODIES = (
    "defensor del pueblo",
    "cgpj",
    "organo consultivo",
    "organo constitucional",
    "tribunal constitucional",
    "consejo de estado",
    "parlamento europeo",
)


def procedure_type(raw: RawInitiative) -> str:
    """Classify the Congress processing track of a raw entry.

    Returns one of ``tramitacion_ordinaria`` (default), ``tramitacion_urgente``,
    ``tramitacion_especial_mayoria_reforzada``,
    ``tramitacion_iniciativas_autonomicas``,
    ``tramitacion_iniciativas_populares``,
    ``tramitacion_organos_constitucionales`` or ``ley_aprobada``.
    """
    kind = normalize_text(raw.kind)
    mode = normalize_text(raw.processing_type)
    promoter = normalize_text(raw.promoter)
    subject = normalize_text(raw.subject)

    is_bill = any(k in kind for k in _BILL_KINDS)
    if is_bill and mode in ("", "normal"):
        return "tramitacion_ordinaria"
    if "senado" in promoter and "proposicion de ley" in kind:
        return "tramitacion_ordinaria"
    if is_bill and mode == "urgente":
        return "tramitacion_urgente"
    if "decreto-ley" in kind or "decreto ley" in kind:
        return "tramitacion_urgente"
    if "proyecto de ley" in subject and "decreto-ley" in subject:
        return "tramitacion_urgente"
    if any(
        phrase in kind or phrase in subject
        for phrase in ("reforma constitucional", "reforma de la constitucion")
    ):
        return "tramitacion_especial_mayoria_reforzada"
    if "comunidad autonoma" in promoter or (
        "parlamento" in promoter and any(r in promoter for r in _AUTONOMOUS_REGIONS)
    ):
        return "tramitacion_iniciativas_autonomicas"
    if "propuesta de reforma de estatuto de autonomia" in kind:
        return "tramitacion_iniciativas_autonomicas"
    if (
        "popular" in promoter
        or re.search(r"\bilp\b", promoter)
        or "iniciativa legislativa popular" in kind
        or "iniciativa legislativa popular" in subject
    ):
        return "tramitacion_iniciativas_populares"
    if any(body in promoter for body in _CONSTITUTIONAL_BODIES):
        return "tramitacion_organos_constitucionales"
    if "leyes" in kind or raw.key_field == "NUMERO_LEY":
        return "ley_aprobada"
    return "tramitacion_ordinaria"


# ── Record normalization ─────────────────────────────────────────────────────


def normalize_record(raw: RawInitiative, *, source: str = "") -> Initiative | SkipRecord:
    """Turn one raw entry into an :class:`Initiative`, or a skip when it has no key.

    Pure: never logs at WARNING and never raises for data problems; the
    orchestrator decides what to do with a :class:`SkipRecord`.
    """
    key = _clean(raw.expediente)
    if not key:
        return SkipRecord(
            reason=SkipReason.MISSING_KEY,
            source=source,
            detail=f"no expediente (subject={_clean_inline(raw.subject)[:60]!r})",
        )

    return Initiative(
        expediente=key,
        kind=_clean_inline(raw.kind, UNKNOWN),
        subject=_clean_inline(raw.subject),
        promoter=_clean_inline(raw.promoter, UNKNOWN),
        submission_date=parse_spanish_date(raw.submission_date),
        qualification_date=parse_spanish_date(raw.qualification_date),
        legislature=_clean(raw.legislature),
        committee=_clean(raw.committee),
        rapporteurs=_clean(raw.rapporteurs),
        deadlines=_clean(raw.deadlines),
        procedure_text=_clean(raw.procedure_text),
        outcome=_clean(raw.outcome),
        current_situation=_clean(raw.current_situation),
        related_keys=split_keys(raw.related),
        origin_keys=split_keys(raw.origin),
        supertype=_clean(raw.supertype),
        grouping=_clean(raw.grouping),
        processing_type=_clean(raw.processing_type),
        bocg_links=_clean(raw.bocg_links),
        ds_links=_clean(raw.ds_links),
        procedure_type=procedure_type(raw),
        source_file=source,
    )
