"""Aggregator: turns findings into a health score and grade.

Each distinct violated rule costs a fixed amount by severity; repeated
occurrences of the same rule add a small, capped surcharge so one noisy rule
cannot sink the score on its own.
"""

from __future__ import annotations

from collections import Counter, defaultdict
from dataclasses import dataclass, field
from typing import Any

from cmsaudit.core import SEVERITIES
from cmsaudit.engine import Finding

SEVERITY_WEIGHTS: dict[str, int] = {"critical": 15, "warning": 5, "info": 1}
REPEAT_PENALTY = 1
MAX_REPEAT_PENALTY = 5

GRADE_THRESHOLDS: tuple[tuple[int, str], ...] = ((90, "A"), (80, "B"), (70, "C"), (60, "D"))


def grade_for(score: int) -> str:
    for threshold, grade in GRADE_THRESHOLDS:
        if score >= threshold:
            return grade
    return "F"


def rule_deduction(severity: str, occurrences: int) -> int:
    extra = min(max(occurrences - 1, 0) * REPEAT_PENALTY, MAX_REPEAT_PENALTY)
    return SEVERITY_WEIGHTS[severity] + extra


def _deductions(findings: list[Finding]) -> int:
    by_rule: Counter[tuple[str, str]] = Counter((f.code, f.severity) for f in findings)
    return sum(rule_deduction(severity, count) for (_code, severity), count in by_rule.items())


def _score(findings: list[Finding]) -> int:
    return max(0, 100 - _deductions(findings))


@dataclass
class AgentScore:
    agent: str
    score: int
    grade: str
    counts: dict[str, int]


@dataclass
class ScoreCard:
    score: int
    grade: str
    counts: dict[str, int]
    agents: dict[str, AgentScore] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return sum(self.counts.values())

    def to_dict(self) -> dict[str, Any]:
        return {
            "score": self.score,
            "grade": self.grade,
            "counts": self.counts,
            "agents": {
                name: {"score": a.score, "grade": a.grade, "counts": a.counts} for name, a in self.agents.items()
            },
        }


def _counts(findings: list[Finding]) -> dict[str, int]:
    counter = Counter(f.severity for f in findings)
    return {s: counter.get(s, 0) for s in SEVERITIES}


def summarize(findings: list[Finding], agents: list[str]) -> ScoreCard:
    """Score the whole run and each agent in *agents* (agents without findings score 100)."""
    per_agent: dict[str, list[Finding]] = defaultdict(list)
    for f in findings:
        per_agent[f.agent].append(f)
    overall = _score(findings)
    card = ScoreCard(score=overall, grade=grade_for(overall), counts=_counts(findings))
    for name in agents:
        agent_findings = per_agent.get(name, [])
        score = _score(agent_findings)
        card.agents[name] = AgentScore(agent=name, score=score, grade=grade_for(score), counts=_counts(agent_findings))
    return card
