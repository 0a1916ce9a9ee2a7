"""Coerce loosely-typed synthesis output into a strictly-shaped research doc.

Nothing in here raises. Malformed input degrades to conservative defaults
so a bad model response can never reach the store in an invalid shape.
"""

from __future__ import annotations

import math
from typing import Any, Iterable, Mapping

PROBLEM_STATES = ("validated", "unvalidated", "unclear", "none")
SOLUTION_STATES = ("validated", "unvalidated", "none", "unclear")
PERSONA_TYPES = ("primary", "secondary", "future")
PEST_KEYS = ("political", "economic", "social", "technological", "environmental", "legal")
SWOT_KEYS = ("strengths", "weaknesses", "opportunities", "threats")

DEFAULT_NEXT_STEP = "Review this research with Avara and choose your next high-signal experiment."
DEFAULT_ETA_DAYS = 30

# meta keys copied through as-is when the model provides them
_META_PASSTHROUGH = ("industryRecommendation", "problemRefinement", "experimentHints", "reliability")


def as_text(value: Any, default: str = "") -> str:
    if value is None or isinstance(value, (dict, list, tuple, set)):
        return default
    if isinstance(value, bool):
        return "true" if value else "false"
    text = str(value)
    return text if text else default


def as_number(value: Any) -> float | None:
    if isinstance(value, bool) or value is None:
        return None
    try:
        num = float(value)
    except (TypeError, ValueError):
        return None
    return num if math.isfinite(num) else None


def as_int(value: Any, default: int) -> int:
    if isinstance(value, bool):
        return default
    if isinstance(value, str):
        value = value.strip()
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError):
        num = as_number(value)
        return int(num) if num is not None else default


def one_of(value: Any, allowed: Iterable[str], default: str) -> str:
    return value if isinstance(value, str) and value in tuple(allowed) else default


def as_text_list(value: Any) -> list[str]:
    if not isinstance(value, (list, tuple)):
        return []
    return [text for text in (as_text(v) for v in value) if text]


def _as_dict(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}


def _as_list(value: Any) -> list[Any]:
    return list(value) if isinstance(value, (list, tuple)) else []


def _joined(value: Any) -> str:
    if isinstance(value, (list, tuple)):
        return ", ".join(as_text_list(value))
    return as_text(value)


def _dedupe_by_id(items: list[dict[str, Any]]) -> list[dict[str, Any]]:
    # Later duplicates win but keep the slot of the first occurrence.
    order: list[str] = []
    by_id: dict[str, dict[str, Any]] = {}
    for item in items:
        if item["id"] not in by_id:
            order.append(item["id"])
        by_id[item["id"]] = item
    return [by_id[i] for i in order]


def normalize_summary(raw: Any) -> dict[str, Any]:
    data = _as_dict(raw)
    problem = _as_dict(data.get("problem"))
    solution = _as_dict(data.get("solution"))
    gtm = _as_dict(data.get("gtm"))
    return {
        "problem": {
            "state": one_of(problem.get("state"), PROBLEM_STATES, "unclear"),
            "notes": as_text(problem.get("notes")),
        },
        "solution": {
            "state": one_of(solution.get("state"), SOLUTION_STATES, "none"),
            "notes": as_text(solution.get("notes")),
        },
        "nextStep": as_text(data.get("nextStep"), DEFAULT_NEXT_STEP),
        "etaDays": as_int(data.get("etaDays"), DEFAULT_ETA_DAYS),
        "gtm": {
            "strategy": as_text(gtm.get("strategy")),
            "summary": as_text(gtm.get("summary")),
            "channels": as_text_list(gtm.get("channels")),
            "confidence": as_number(gtm.get("confidence")),
        },
    }


def normalize_sections(raw: Any) -> list[dict[str, Any]]:
    out = []
    for idx, item in enumerate(_as_list(raw)):
        s = _as_dict(item)
        out.append(
            {
                "id": as_text(s.get("id"), f"section_{idx}"),
                "title": as_text(s.get("title"), "Untitled"),
                "kind": as_text(s.get("kind"), "generic"),
                "html": as_text(s.get("html"), "<p>Empty</p>"),
            }
        )
    return _dedupe_by_id(out)


def normalize_experiments(raw: Any) -> list[dict[str, Any]]:
    out = []
    for idx, item in enumerate(_as_list(raw)):
        e = _as_dict(item)
        out.append(
            {
                "id": as_text(e.get("id"), f"exp_{idx}"),
                "title": as_text(e.get("title"), "Experiment"),
                "hypothesis": as_text(e.get("hypothesis")),
                "metric": as_text(e.get("metric")),
                "status": as_text(e.get("status"), "planned"),
            }
        )
    return _dedupe_by_id(out)


def normalize_personas(raw: Any) -> list[dict[str, Any]]:
    out = []
    for idx, item in enumerate(_as_list(raw)):
        p = _as_dict(item)
        confidence = as_number(p.get("confidence"))
        persona: dict[str, Any] = {
            "id": as_text(p.get("id"), f"persona_{idx}"),
            "type": one_of(p.get("type"), PERSONA_TYPES, "primary" if idx == 0 else "secondary"),
            "title": as_text(p.get("title")),
            "description": as_text(p.get("description")),
            "confidence": None if confidence is None else max(0.0, min(1.0, confidence)),
        }
        for stamp in ("updatedBy", "updatedAt"):
            if p.get(stamp):
                persona[stamp] = as_text(p.get(stamp))
        out.append(persona)
    return _dedupe_by_id(out)


def normalize_competitors(raw: Any) -> list[dict[str, Any]]:
    out = []
    for item in _as_list(raw):
        c = _as_dict(item)
        out.append(
            {
                "name": as_text(c.get("name")),
                "positioning": as_text(c.get("positioning")),
                "strengths": _joined(c.get("strengths")),
                "weaknesses": _joined(c.get("weaknesses")),
                "overlap": as_text(c.get("overlap")),
            }
        )
    return [c for c in out if c["name"] or c["positioning"]]


def normalize_timeline(raw: Any) -> list[dict[str, Any]]:
    out = []
    for idx, item in enumerate(_as_list(raw)):
        t = _as_dict(item)
        eta = as_number(t.get("etaDays"))
        out.append(
            {
                "label": as_text(t.get("label"), f"Milestone {idx + 1}"),
                "etaDays": None if eta is None else int(eta),
            }
        )
    return out


def normalize_analysis(raw: Any) -> dict[str, Any]:
    data = _as_dict(raw)
    pest = _as_dict(data.get("pest"))
    swot = _as_dict(data.get("swot"))
    return {
        "pest": {key: as_text(pest.get(key)) for key in PEST_KEYS},
        "swot": {key: as_text_list(swot.get(key)) for key in SWOT_KEYS},
    }


def normalize_spa(raw: Any) -> dict[str, Any] | None:
    data = _as_dict(raw)
    if not data:
        return None
    spa: dict[str, Any] = {}
    for key in ("sizeScore", "painScore", "accessibilityScore"):
        num = as_number(data.get(key))
        spa[key] = None if num is None else max(0.0, min(1.0, num))
    spa["commentary"] = as_text(data.get("commentary"))
    return spa


def normalize_meta(raw: Any) -> dict[str, Any]:
    data = _as_dict(raw)
    meta: dict[str, Any] = {
        "spa": normalize_spa(data.get("spa")),
        "clarifyingQuestions": as_text_list(data.get("clarifyingQuestions")),
    }
    if isinstance(data.get("needMoreInput"), bool):
        meta["needMoreInput"] = data["needMoreInput"]
    for key in _META_PASSTHROUGH:
        if data.get(key) not in (None, "", [], {}):
            meta[key] = data[key]
    return meta


def normalize_research_doc(raw: Any, *, project_id: str | None = None) -> dict[str, Any]:
    """Return a fully-shaped research doc body for any input, including None."""
    data = _as_dict(raw)
    return {
        "projectId": project_id,
        "summary": normalize_summary(data.get("summary")),
        "sections": normalize_sections(data.get("sections")),
        "experiments": normalize_experiments(data.get("experiments")),
        "personas": normalize_personas(data.get("personas")),
        "competitors": normalize_competitors(data.get("competitors")),
        "timeline": normalize_timeline(data.get("timeline")),
        "analysis": normalize_analysis(data.get("analysis")),
        "meta": normalize_meta(data.get("meta")),
    }


__all__ = [
    "as_int",
    "as_number",
    "as_text",
    "as_text_list",
    "normalize_analysis",
    "normalize_competitors",
    "normalize_experiments",
    "normalize_meta",
    "normalize_personas",
    "normalize_research_doc",
    "normalize_sections",
    "normalize_spa",
    "normalize_summary",
    "normalize_timeline",
    "one_of",
]
