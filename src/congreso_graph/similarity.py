"""Pairwise subject similarity and ``similar`` edges.

Score is one minus the normalized Levenshtein distance over the normalized
subject (:func:`~congreso_graph.normalize.normalize_text`)::

    score(a, b) = 1 - lev(a, b) / max(len(a), len(b))

Every unordered pair is scored exactly once and both directed edges are
materialized from that single score, so ``A→B`` and ``B→A`` always agree.

**Scaling limit:** the comparison is O(n²) in working-set size.  That is fine
for the daily batches (hundreds to low thousands of initiatives); two cheap
filters keep it there:

- identical normalized subjects short-circuit to ``1.0``;
- a length-ratio pre-filter: ``min(len)/max(len)`` is the best score two
  strings of those lengths can reach, so pairs below the threshold are never
  handed to the distance routine.

The distance itself runs through rapidfuzz with a ``score_cutoff`` so
hopeless pairs bail out early.  Beyond tens of thousands of initiatives this
needs blocking or an index instead of a full scan.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field

from rapidfuzz.distance import Levenshtein

from .models import EdgeKind, Initiative, RelationshipEdge
from .normalize import normalize_text

LOGGER = logging.getLogger(__name__)

DEFAULT_THRESHOLD = 0.6
# Float slack so a score that equals the threshold on paper is not lost to rounding.
_EPS = 1e-9


def similarity(a: str, b: str) -> float:
    """Similarity of two already-normalized strings, in ``[0, 1]``.

    Empty input scores ``0.0`` against everything, itself included.

    >>> similarity("ley de costas", "ley de costas")
    1.0
    >>> round(similarity("abcd", "abce"), 2)
    0.75
    """
    if not a or not b:
        return 0.0
    if a == b:
        return 1.0
    return 1.0 - Levenshtein.distance(a, b) / max(len(a), len(b))


@dataclass(frozen=True)
class PairScore:
    left: str
    right: str
    score: float


@dataclass
class SimilarityStats:
    subjects: int = 0  # initiatives with a non-empty subject
    empty_subjects: int = 0
    pairs_considered: int = 0
    prefiltered: int = 0  # rejected by the length-ratio bound
    identical: int = 0
    compared: int = 0  # full distance computations
    matches: int = 0

    def merge(self, other: SimilarityStats) -> None:
        self.pairs_considered += other.pairs_considered
        self.prefiltered += other.prefiltered
        self.identical += other.identical
        self.compared += other.compared
        self.matches += other.matches


@dataclass
class SimilarityResult:
    pairs: list[PairScore] = field(default_factory=list)
    edges: list[RelationshipEdge] = field(default_factory=list)
    stats: SimilarityStats = field(default_factory=SimilarityStats)

    def neighbours(self, expediente: str) -> list[RelationshipEdge]:
        """Outgoing ``similar`` edges of one initiative, best first."""
        return [e for e in self.edges if e.source_expediente == expediente]


class SimilarityEngine:
    """Full-recompute similarity over a working set.

    ``workers > 1`` spreads rows of the comparison triangle over a thread
    pool; every worker fills its own buffer and the buffers are merged in row
    order, so the output is identical to a single-threaded run.
    """

    def __init__(self, threshold: float = DEFAULT_THRESHOLD, workers: int = 1) -> None:
        if not 0.0 <= threshold <= 1.0:
            raise ValueError(f"threshold must be within [0, 1], got {threshold}")
        self.threshold = threshold
        self.workers = max(1, workers)

    # ── Scoring ──────────────────────────────────────────────────────────

    def score_pair(self, a: str, b: str, stats: SimilarityStats) -> float | None:
        """Score two normalized subjects; ``None`` when below the threshold."""
        stats.pairs_considered += 1
        if a == b:
            stats.identical += 1
            return 1.0
        shorter, longer = sorted((len(a), len(b)))
        if shorter / longer + _EPS < self.threshold:
            stats.prefiltered += 1
            return None
        max_distance = math.floor((1.0 - self.threshold) * longer + _EPS)
        stats.compared += 1
        distance = Levenshtein.distance(a, b, score_cutoff=max_distance)
        if distance > max_distance:
            return None
        score = 1.0 - distance / longer
        if score + _EPS < self.threshold:
            return None
        return score

    def _score_rows(
        self, rows: list[int], keys: list[str], texts: list[str]
    ) -> tuple[dict[int, list[PairScore]], SimilarityStats]:
        buffer: dict[int, list[PairScore]] = {}
        stats = SimilarityStats()
        for i in rows:
            found: list[PairScore] = []
            for j in range(i + 1, len(keys)):
                score = self.score_pair(texts[i], texts[j], stats)
                if score is not None:
                    found.append(PairScore(keys[i], keys[j], score))
            stats.matches += len(found)
            buffer[i] = found
        return buffer, stats

    # ── Public API ───────────────────────────────────────────────────────

    def compute(self, initiatives: Mapping[str, Initiative]) -> SimilarityResult:
        """Score every unordered pair of the working set and build the edges."""
        result = SimilarityResult()
        keys: list[str] = []
        texts: list[str] = []
        for key, initiative in initiatives.items():
            text = normalize_text(initiative.subject)
            if not text:
                result.stats.empty_subjects += 1
                continue
            keys.append(key)
            texts.append(text)
        result.stats.subjects = len(keys)

        if self.workers == 1 or len(keys) < 2:
            buffers = [self._score_rows(list(range(len(keys))), keys, texts)]
        else:
            # Interleave rows so each worker gets a fair share of the triangle.
            chunks = [list(range(w, len(keys), self.workers)) for w in range(self.workers)]
            with ThreadPoolExecutor(max_workers=self.workers) as pool:
                buffers = list(pool.map(lambda rows: self._score_rows(rows, keys, texts), chunks))

        by_row: dict[int, list[PairScore]] = {}
        for buffer, stats in buffers:
            by_row.update(buffer)
            result.stats.merge(stats)
        for i in sorted(by_row):
            result.pairs.extend(by_row[i])

        result.edges = self._materialize(result.pairs, initiatives)
        LOGGER.info(
            "Similarity: %d subjects, %d pairs, %d compared, %d prefiltered, %d matches (≥ %.2f)",
            result.stats.subjects,
            result.stats.pairs_considered,
            result.stats.compared,
            result.stats.prefiltered,
            result.stats.matches,
            self.threshold,
        )
        return result

    @staticmethod
    def _materialize(
        pairs: list[PairScore], initiatives: Mapping[str, Initiative]
    ) -> list[RelationshipEdge]:
        outgoing: dict[str, list[tuple[str, float]]] = {}
        for pair in pairs:
            outgoing.setdefault(pair.left, []).append((pair.right, pair.score))
            outgoing.setdefault(pair.right, []).append((pair.left, pair.score))

        edges: list[RelationshipEdge] = []
        for source in initiatives:
            targets = outgoing.get(source)
            if not targets:
                continue
            targets.sort(key=lambda t: (-t[1], t[0]))
            edges.extend(
                RelationshipEdge(source, target, EdgeKind.SIMILAR, score)
                for target, score in targets
            )
        return edges


def compute_similarity(
    initiatives: Mapping[str, Initiative],
    *,
    threshold: float = DEFAULT_THRESHOLD,
    workers: int = 1,
) -> SimilarityResult:
    return SimilarityEngine(threshold, workers).compute(initiatives)
