from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping

from avara.services.normalize import as_text_list
from avara.services.synthesis import SynthesisMode, Synthesizer

logger = logging.getLogger(__name__)

INDUSTRY_QUESTION = (
    "Which specific industry or sub-sector are you focusing on? "
    "(e.g. 'B2B SaaS for logistics', 'D2C sustainable fashion')"
)
REGION_QUESTION = (
    "Which country or region are you mainly targeting first? "
    "(e.g. 'Sri Lanka', 'UK', 'Colombo urban area')"
)
PROBLEM_QUESTION = "Can you describe the main problem your target users face in more detail?"
SOLUTION_QUESTION = "Do you already have a proposed solution in mind?"
NICHE_QUESTION = (
    "Within your industry and region, which specific niche or segment are you most interested in? "
    "(e.g. 'busy university students in Colombo', 'small retail shops in Galle Road')"
)


@dataclass(frozen=True)
class IntakeQuality:
    is_weak: bool
    clarifying_questions: list[str] = field(default_factory=list)


def _text(intake: Mapping[str, Any], key: str) -> str:
    value = intake.get(key)
    return value.strip() if isinstance(value, str) else ""


def rule_questions(intake: Mapping[str, Any]) -> tuple[bool, list[str]]:
    """Cheap checks on intake completeness.

    The niche question is always included; it only reaches the founder
    when the intake is weak or the model is off.
    """
    weak = False
    questions: list[str] = []
    if len(_text(intake, "industry")) < 3:
        weak = True
        questions.append(INDUSTRY_QUESTION)
    if len(_text(intake, "region")) < 2:
        weak = True
        questions.append(REGION_QUESTION)
    if len(_text(intake, "problem")) < 10:
        weak = True
        questions.append(PROBLEM_QUESTION)
    if len(_text(intake, "solution")) < 10:
        weak = True
        questions.append(SOLUTION_QUESTION)
    questions.append(NICHE_QUESTION)
    return weak, questions


def assess_intake_quality(intake: Mapping[str, Any], synthesizer: Synthesizer | None = None) -> IntakeQuality:
    weak, questions = rule_questions(intake)

    if synthesizer is None or not synthesizer.enabled:
        return IntakeQuality(is_weak=weak, clarifying_questions=questions)
    if not weak:
        return IntakeQuality(is_weak=False, clarifying_questions=[])

    result = synthesizer.synthesize(
        SynthesisMode.intake_quality,
        {"intake": dict(intake), "ruleQuestions": questions},
    )
    refined = as_text_list(result.get("clarifyingQuestions"))
    if not refined:
        logger.info("Intake quality refinement empty; using rule questions")
    return IntakeQuality(is_weak=True, clarifying_questions=refined or questions)


__all__ = ["IntakeQuality", "assess_intake_quality", "rule_questions"]
