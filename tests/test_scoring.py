"""Tests for the health score aggregator."""

from __future__ import annotations

import pytest

from cmsaudit.engine import Finding
from cmsaudit.scoring import MAX_REPEAT_PENALTY, grade_for, rule_deduction, summarize


def _finding(code: str, severity: str, agent: str = "security", line: int = 1) -> Finding:
    return Finding(
        plugin="umbraco",
        agent=agent,
        code=code,
        severity=severity,  # type: ignore[arg-type]
        title=code,
        path="a.cs",
        line=line,
        fingerprint=f"{code}-{line}",
    )


class TestGrades:
    @pytest.mark.parametrize(
        ("score", "grade"),
        [(100, "A"), (90, "A"), (89, "B"), (80, "B"), (79, "C"), (70, "C"), (69, "D"), (60, "D"), (59, "F"), (0, "F")],
    )
    def test_boundaries(self, score: int, grade: str) -> None:
        assert grade_for(score) == grade


class TestDeductions:
    def test_single_occurrence(self) -> None:
        assert rule_deduction("critical", 1) == 15
        assert rule_deduction("warning", 1) == 5
        assert rule_deduction("info", 1) == 1

    def test_repeats_add_capped_penalty(self) -> None:
        assert rule_deduction("warning", 3) == 7
        assert rule_deduction("warning", 100) == 5 + MAX_REPEAT_PENALTY


class TestSummarize:
    def test_clean_run(self) -> None:
        card = summarize([], ["security", "quality"])
        assert card.score == 100
        assert card.grade == "A"
        assert card.counts == {"critical": 0, "warning": 0, "info": 0}
        assert set(card.agents) == {"security", "quality"}
        assert card.total == 0

    def test_mixed_findings(self) -> None:
        findings = [
            _finding("SEC-001", "critical"),
            _finding("SEC-003", "warning", line=1),
            _finding("SEC-003", "warning", line=2),
            _finding("QUAL-002", "info", agent="quality"),
        ]
        card = summarize(findings, ["security", "quality"])
        # 15 + (5 + 1) + 1
        assert card.score == 78
        assert card.grade == "C"
        assert card.counts == {"critical": 1, "warning": 2, "info": 1}
        assert card.agents["security"].score == 79
        assert card.agents["quality"].score == 99
        assert card.agents["quality"].counts["info"] == 1

    def test_floor_at_zero(self) -> None:
        findings = [_finding(f"SEC-{i:03d}", "critical") for i in range(10)]
        card = summarize(findings, ["security"])
        assert card.score == 0
        assert card.grade == "F"

    def test_to_dict(self) -> None:
        card = summarize([_finding("SEC-001", "critical")], ["security"])
        data = card.to_dict()
        assert data["score"] == 85
        assert data["grade"] == "B"
        assert data["agents"]["security"]["score"] == 85
