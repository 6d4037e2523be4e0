"""AI titles and narrative analysis: the boundary with the text-generation service.

Enrichment is optional and runs after classification, never inside the
similarity or classification loops.  Collaborator failures are *degraded*:
the affected initiative simply gets no title/analysis this run and the
failure is counted.  Generated text is stored verbatim apart from trimming
and capitalizing the first letter.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Protocol

import anthropic

from .errors import EnrichmentError
from .models import Initiative, StageClassification

LOGGER = logging.getLogger(__name__)

TITLE = "title"
ANALYSIS = "analysis"

_SYSTEM_PROMPTS = {
    TITLE: (
        "Eres un periodista parlamentario. Escribe un título breve (máximo 12 palabras), "
        "claro y neutral, en español, para la iniciativa legislativa descrita. "
        "Responde solo con el título."
    ),
    ANALYSIS: (
        "Eres un analista parlamentario. Explica en un párrafo breve y neutral, en español, "
        "qué propone la iniciativa y en qué punto de la tramitación se encuentra. "
        "Usa solo la información proporcionada."
    ),
}


@dataclass(frozen=True)
class EvidenceSnippet:
    source: str  # news | social | legal
    text: str
    url: str = ""


@dataclass(frozen=True)
class EnrichmentPrompt:
    purpose: str  # TITLE | ANALYSIS
    expediente: str
    kind: str
    subject: str
    promoter: str
    stage: str
    evidence: tuple[EvidenceSnippet, ...] = ()

    def render(self) -> str:
        lines = [
            f"Expediente: {self.expediente}",
            f"Tipo: {self.kind}",
            f"Autor: {self.promoter}",
            f"Objeto: {self.subject}",
            f"Fase: {self.stage}",
        ]
        if self.evidence:
            lines.append("Contexto adicional:")
            lines.extend(f"- [{e.source}] {e.text}" for e in self.evidence)
        return "\n".join(lines)


class EvidenceProvider(Protocol):
    def snippets(self, expediente: str) -> list[EvidenceSnippet]: ...


class TextGenerator(Protocol):
    def generate(self, prompt: EnrichmentPrompt) -> str: ...


class NullEvidenceProvider:
    def snippets(self, expediente: str) -> list[EvidenceSnippet]:
        return []


class AnthropicTextGenerator:
    """Titles and analyses through the Anthropic Messages API."""

    def __init__(
        self, model: str = "claude-haiku-4-5", api_key: str | None = None, max_tokens: int = 400
    ) -> None:
        self.model = model
        self.max_tokens = max_tokens
        self._client = anthropic.Anthropic(api_key=api_key or os.environ.get("ANTHROPIC_API_KEY"))

    def generate(self, prompt: EnrichmentPrompt) -> str:
        try:
            response = self._client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                system=_SYSTEM_PROMPTS[prompt.purpose],
                messages=[{"role": "user", "content": prompt.render()}],
            )
        except anthropic.APIStatusError as exc:
            raise EnrichmentError(
                f"{prompt.expediente}: API error {exc.status_code}",
                retryable=exc.status_code in (429, 500, 502, 503, 529),
            ) from exc
        except anthropic.APIConnectionError as exc:
            raise EnrichmentError(f"{prompt.expediente}: connection failed", retryable=True) from exc
        return "".join(block.text for block in response.content if block.type == "text")


def build_text_generator(model: str) -> TextGenerator | None:
    """Anthropic generator, or ``None`` (enrichment skipped) when it cannot be set up."""
    try:
        return AnthropicTextGenerator(model=model)
    except anthropic.AnthropicError as exc:
        LOGGER.warning("AI enrichment disabled: %s", exc)
        return None


def tidy(text: str) -> str:
    """Trim and capitalize the first letter; nothing else is touched.

    >>> tidy("  ley de costas ")
    'Ley de costas'
    """
    text = text.strip()
    return text[:1].upper() + text[1:]


@dataclass
class Enrichment:
    title: str | None = None
    analysis: str | None = None


@dataclass
class EnrichmentResult:
    by_expediente: dict[str, Enrichment] = field(default_factory=dict)
    generated: int = 0
    failed: int = 0
    evidence_failed: int = 0
    retryable: int = 0  # failures the service flagged as transient


def _prompt(
    purpose: str,
    initiative: Initiative,
    classification: StageClassification | None,
    evidence: tuple[EvidenceSnippet, ...],
) -> EnrichmentPrompt:
    return EnrichmentPrompt(
        purpose=purpose,
        expediente=initiative.expediente,
        kind=initiative.kind,
        subject=initiative.subject,
        promoter=initiative.promoter,
        stage=classification.stage.value if classification else "",
        evidence=evidence,
    )


def enrich(
    initiatives: Iterable[Initiative],
    classifications: dict[str, StageClassification],
    generator: TextGenerator,
    evidence: EvidenceProvider | None = None,
    *,
    purposes: tuple[str, ...] = (TITLE, ANALYSIS),
) -> EnrichmentResult:
    """Generate titles/analyses; any collaborator failure omits that piece only."""
    evidence = evidence or NullEvidenceProvider()
    result = EnrichmentResult()
    for initiative in initiatives:
        if not initiative.subject:
            continue
        try:
            snippets = tuple(evidence.snippets(initiative.expediente))
        except Exception as exc:  # evidence is optional context
            LOGGER.warning("Evidence lookup failed for %s: %s", initiative.expediente, exc)
            result.evidence_failed += 1
            snippets = ()

        enrichment = Enrichment()
        for purpose in purposes:
            prompt = _prompt(
                purpose, initiative, classifications.get(initiative.expediente), snippets
            )
            try:
                text = tidy(generator.generate(prompt))
            except EnrichmentError as exc:
                LOGGER.warning(
                    "Could not generate %s for %s (%s): %s",
                    purpose,
                    initiative.expediente,
                    "transient" if exc.retryable else "permanent",
                    exc,
                )
                result.failed += 1
                result.retryable += int(exc.retryable)
                continue
            except Exception as exc:
                LOGGER.warning(
                    "Could not generate %s for %s: %s", purpose, initiative.expediente, exc
                )
                result.failed += 1
                continue
            if not text:
                result.failed += 1
                continue
            setattr(enrichment, purpose, text)
            result.generated += 1
        if enrichment.title or enrichment.analysis:
            result.by_expediente[initiative.expediente] = enrichment
    LOGGER.info(
        "Enrichment: %d generated, %d failed (%d transient)",
        result.generated,
        result.failed,
        result.retryable,
    )
    return result
