"""Tests for the rule-table stage classifier."""

from __future__ import annotations

import pytest

from congreso_graph.models import Stage
from congreso_graph.stages import (
    COMMITTEE,
    OUTCOME,
    SITUATION,
    STAGE_RULES,
    Signal,
    classify_stage,
    evaluate_rule,
)


class TestRuleTable:
    def test_priority_order(self) -> None:
        assert [r.name for r in STAGE_RULES] == [
            "published",
            "passed",
            "rejected",
            "withdrawn",
            "voting",
            "committee",
            "debating",
            "closed",
        ]

    def test_steps(self) -> None:
        steps = {r.name: r.step for r in STAGE_RULES}
        assert steps["published"] == 5
        assert steps["passed"] == steps["rejected"] == steps["withdrawn"] == steps["voting"] == 4
        assert steps["committee"] == 3
        assert steps["debating"] == 2

    def test_each_rule_fires_on_its_own(self) -> None:
        texts = {OUTCOME: "rechazado", SITUATION: "", "procedure": "", COMMITTEE: ""}
        rejected = next(r for r in STAGE_RULES if r.name == "rejected")
        assert evaluate_rule(rejected, texts) == [{"field": OUTCOME, "keyword": "rechaz"}]


class TestSignal:
    def test_word_start_stem(self) -> None:
        assert Signal(OUTCOME, ("aprob",)).matches("aprobada con modificaciones") == ["aprob"]

    def test_not_mid_word(self) -> None:
        assert Signal(SITUATION, ("voto",)).matches("devoto") == []

    def test_populated(self) -> None:
        assert Signal(COMMITTEE, populated=True).matches("comision de hacienda") == ["<populated>"]
        assert Signal(COMMITTEE, populated=True).matches("") == []


class TestClassifyStage:
    def test_approved_outcome(self, make_initiative) -> None:
        result = classify_stage(make_initiative(outcome="Aprobada"))
        assert (result.stage, result.step) == (Stage.PASSED, 4)
        assert result.reason["rule"] == "passed"
        assert {"field": "outcome", "keyword": "aprob"} in result.reason["matched"]

    def test_committee_situation(self, make_initiative) -> None:
        result = classify_stage(make_initiative(current_situation="Comisión de Justicia"))
        assert (result.stage, result.step) == (Stage.COMMITTEE, 3)

    def test_default_proposed(self, make_initiative) -> None:
        result = classify_stage(make_initiative())
        assert (result.stage, result.step) == (Stage.PROPOSED, 1)
        assert result.reason == {"rule": "default", "matched": [], "also_matched": []}

    def test_publication_beats_approval(self, make_initiative) -> None:
        result = classify_stage(
            make_initiative(
                outcome="Aprobado con modificaciones",
                procedure_text="Pleno\ndesde 01/02/2024\nPublicación en el BOE",
            )
        )
        assert result.stage is Stage.PUBLISHED
        assert result.step == 5
        assert "passed" in result.reason["also_matched"]

    def test_entry_into_force(self, make_initiative) -> None:
        result = classify_stage(make_initiative(current_situation="Entrada en vigor"))
        assert result.stage is Stage.PUBLISHED

    @pytest.mark.parametrize(
        ("outcome", "stage"),
        [
            ("Rechazado", Stage.REJECTED),
            ("Retirado", Stage.WITHDRAWN),
            ("Convalidado", Stage.PASSED),
        ],
    )
    def test_outcome_vocabulary(self, make_initiative, outcome: str, stage: Stage) -> None:
        result = classify_stage(make_initiative(outcome=outcome))
        assert result.stage is stage
        assert result.step == 4

    def test_voting_beats_committee(self, make_initiative) -> None:
        result = classify_stage(
            make_initiative(current_situation="Pleno Votación", committee="Comisión de Hacienda")
        )
        assert result.stage is Stage.VOTING
        assert "committee" in result.reason["also_matched"]

    def test_populated_committee_field(self, make_initiative) -> None:
        result = classify_stage(make_initiative(committee="Comisión de Defensa"))
        assert result.stage is Stage.COMMITTEE
        assert {"field": "committee", "keyword": "<populated>"} in result.reason["matched"]

    def test_rapporteur_in_narrative(self, make_initiative) -> None:
        result = classify_stage(make_initiative(procedure_text="Informe de la Ponencia"))
        assert result.stage is Stage.COMMITTEE

    def test_plenary_debate(self, make_initiative) -> None:
        result = classify_stage(make_initiative(current_situation="Pleno Toma en consideración"))
        assert (result.stage, result.step) == (Stage.DEBATING, 2)

    def test_totality_debate_in_narrative(self, make_initiative) -> None:
        result = classify_stage(make_initiative(procedure_text="Debate de totalidad"))
        assert result.stage is Stage.DEBATING

    def test_closed(self, make_initiative) -> None:
        result = classify_stage(make_initiative(current_situation="Cerrado"))
        assert (result.stage, result.step) == (Stage.CLOSED, 1)

    def test_missing_text_never_raises(self, make_initiative) -> None:
        initiative = make_initiative()
        initiative.outcome = None  # type: ignore[assignment]
        initiative.current_situation = None  # type: ignore[assignment]
        assert classify_stage(initiative).stage is Stage.PROPOSED
