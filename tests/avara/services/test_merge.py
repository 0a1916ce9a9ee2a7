from avara.services.merge import (
    apply_intake_patch,
    apply_research_patch,
    merge_by_id,
    merge_sections,
)

NOW = "2026-01-01T00:00:00+00:00"


def test_merge_sections_overwrites_and_appends():
    existing = [{"id": "a", "html": "old", "title": "A"}, {"id": "b", "html": "b"}]
    incoming = [{"id": "a", "html": "new"}, {"id": "c", "html": "c"}]

    merged = merge_sections(existing, incoming)

    assert [s["id"] for s in merged] == ["a", "b", "c"]
    assert merged[0] == {"id": "a", "html": "new"}


def test_merge_sections_is_idempotent():
    a = [{"id": "x", "html": "1"}, {"id": "y", "html": "2"}]
    b = [{"id": "y", "html": "3"}, {"id": "z", "html": "4"}]
    once = merge_sections(a, b)
    assert merge_sections(once, b) == once


def test_merge_by_id_combines_and_skips_entries_without_id():
    merged = merge_by_id([{"id": "p1", "title": "Student", "confidence": 0.4}], [{"id": "p1", "confidence": 0.8}, {"title": "anon"}])
    assert merged == [{"id": "p1", "title": "Student", "confidence": 0.8}]


def test_research_patch_strategies_are_asymmetric():
    doc = {
        "summary": {"nextStep": "old", "etaDays": 30},
        "sections": [{"id": "s1", "html": "keep"}],
        "competitors": [{"name": "A"}, {"name": "B"}],
        "personas": [{"id": "p1", "title": "Student"}],
        "core": {"locked": True},
    }
    patch = {
        "summary": {"nextStep": "new"},
        "sections": [{"id": "s2", "html": "added"}],
        "competitors": [{"name": "C"}],
        "personas": [{"id": "p1", "description": "busy"}],
        "core": {"locked": False},
    }

    out = apply_research_patch(doc, patch, actor="assistant", now=NOW)

    assert out["summary"] == {"nextStep": "new", "etaDays": 30}
    assert [s["id"] for s in out["sections"]] == ["s1", "s2"]
    assert out["competitors"] == [{"name": "C"}]
    assert out["personas"] == [
        {"id": "p1", "title": "Student", "description": "busy", "updatedBy": "assistant", "updatedAt": NOW}
    ]
    # not patchable
    assert out["core"] == {"locked": True}
    # the input is never mutated
    assert doc["summary"]["nextStep"] == "old"


def test_patch_ignores_wrong_types_and_keeps_absent_fields():
    doc = {"sections": [{"id": "s1"}], "timeline": [{"label": "M1"}]}
    out = apply_research_patch(doc, {"sections": {"id": "s2"}, "summary": "text"})
    assert out == doc


def test_intake_patch_spreads_one_level():
    ctx = {"intake": {"industry": "EdTech", "region": "UK"}, "meta": {}, "state": "draft"}
    out = apply_intake_patch(ctx, {"intake": {"region": "Sri Lanka"}, "state": "gtm_ready"})
    assert out["intake"] == {"industry": "EdTech", "region": "Sri Lanka"}
    assert out["state"] == "draft"
