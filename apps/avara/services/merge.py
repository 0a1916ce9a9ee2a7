"""Schema-driven patch application for research docs and project contexts.

Each patchable field carries an explicit `MergeStrategy`. Identity-bearing
collections merge by ``id``, bulk derived collections are replaced, and
object fields are spread-merged one level deep. Fields absent from a patch
are never removed.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Mapping

from avara.core.utils import utcnow_iso

logger = logging.getLogger(__name__)


class MergeStrategy(str, Enum):
    MERGE_BY_ID = "merge_by_id"
    REPLACE = "replace"
    SHALLOW_MERGE = "shallow_merge"


@dataclass(frozen=True)
class FieldRule:
    strategy: MergeStrategy
    # stamp merged entries with updatedBy/updatedAt
    stamp: bool = False


PatchSchema = Mapping[str, FieldRule]

RESEARCH_PATCH_SCHEMA: PatchSchema = {
    "summary": FieldRule(MergeStrategy.SHALLOW_MERGE),
    "sections": FieldRule(MergeStrategy.MERGE_BY_ID),
    "personas": FieldRule(MergeStrategy.MERGE_BY_ID, stamp=True),
    "experiments": FieldRule(MergeStrategy.MERGE_BY_ID),
    "competitors": FieldRule(MergeStrategy.REPLACE),
    "timeline": FieldRule(MergeStrategy.REPLACE),
    "meta": FieldRule(MergeStrategy.SHALLOW_MERGE),
}

INTAKE_PATCH_SCHEMA: PatchSchema = {
    "intake": FieldRule(MergeStrategy.SHALLOW_MERGE),
    "meta": FieldRule(MergeStrategy.SHALLOW_MERGE),
}


def merge_by_id(
    existing: Iterable[Mapping[str, Any]] | None,
    incoming: Iterable[Mapping[str, Any]] | None,
    *,
    combine: bool = True,
    stamp: Mapping[str, Any] | None = None,
) -> list[dict[str, Any]]:
    """Keyed union of two entry lists.

    Existing order is kept and unseen ids are appended in incoming order.
    With `combine`, a matched entry is spread-merged with the incoming one;
    without it the incoming entry replaces the existing one whole. Incoming
    entries without an id cannot be matched and are skipped.
    """
    merged: list[dict[str, Any]] = []
    index: dict[str, int] = {}
    for item in existing or []:
        if not isinstance(item, Mapping):
            continue
        entry = dict(item)
        key = entry.get("id")
        if isinstance(key, str) and key in index:
            merged[index[key]] = entry
            continue
        if isinstance(key, str):
            index[key] = len(merged)
        merged.append(entry)

    for item in incoming or []:
        if not isinstance(item, Mapping):
            continue
        key = item.get("id")
        if not isinstance(key, str) or not key:
            logger.debug("Skipping patch entry without id: %s", item)
            continue
        if key in index:
            base = merged[index[key]] if combine else {}
            entry = {**base, **item}
        else:
            entry = dict(item)
            index[key] = len(merged)
            merged.append(entry)
        if stamp:
            entry.update(stamp)
        merged[index[key]] = entry
    return merged


def merge_sections(
    existing: Iterable[Mapping[str, Any]] | None,
    incoming: Iterable[Mapping[str, Any]] | None,
) -> list[dict[str, Any]]:
    """Merge synthesis sections into a doc: same id overwrites, new ids append.

    Idempotent: ``merge_sections(merge_sections(a, b), b) == merge_sections(a, b)``.
    """
    return merge_by_id(existing, incoming, combine=False)


def _apply_field(current: Any, value: Any, rule: FieldRule, *, actor: str, now: str) -> tuple[bool, Any]:
    if rule.strategy is MergeStrategy.SHALLOW_MERGE:
        if not isinstance(value, Mapping):
            return False, current
        base = current if isinstance(current, Mapping) else {}
        return True, {**base, **value}

    if rule.strategy is MergeStrategy.MERGE_BY_ID:
        if not isinstance(value, list):
            return False, current
        stamp = {"updatedBy": actor, "updatedAt": now} if rule.stamp else None
        base = current if isinstance(current, list) else []
        return True, merge_by_id(base, value, combine=True, stamp=stamp)

    if rule.strategy is MergeStrategy.REPLACE:
        if not isinstance(value, list):
            return False, current
        return True, [dict(v) if isinstance(v, Mapping) else v for v in value]

    return False, current


def apply_patch(
    target: Mapping[str, Any] | None,
    patch: Mapping[str, Any] | None,
    schema: PatchSchema,
    *,
    actor: str = "assistant",
    now: str | None = None,
) -> dict[str, Any]:
    """Return a copy of `target` with `patch` applied per `schema`.

    Fields outside the schema and values of the wrong shape are ignored.
    """
    result = copy.deepcopy(dict(target or {}))
    if not isinstance(patch, Mapping):
        return result
    now = now or utcnow_iso()

    for name, value in patch.items():
        rule = schema.get(name)
        if rule is None:
            logger.debug("Ignoring unpatchable field %s", name)
            continue
        applied, merged = _apply_field(result.get(name), copy.deepcopy(value), rule, actor=actor, now=now)
        if applied:
            result[name] = merged
        else:
            logger.debug("Ignoring %s patch with unexpected type %s", name, type(value).__name__)
    return result


def apply_research_patch(doc: Mapping[str, Any], patch: Mapping[str, Any] | None, **kwargs: Any) -> dict[str, Any]:
    return apply_patch(doc, patch, RESEARCH_PATCH_SCHEMA, **kwargs)


def apply_intake_patch(context: Mapping[str, Any], patch: Mapping[str, Any] | None, **kwargs: Any) -> dict[str, Any]:
    return apply_patch(context, patch, INTAKE_PATCH_SCHEMA, **kwargs)


__all__ = [
    "FieldRule",
    "INTAKE_PATCH_SCHEMA",
    "MergeStrategy",
    "RESEARCH_PATCH_SCHEMA",
    "apply_intake_patch",
    "apply_patch",
    "apply_research_patch",
    "merge_by_id",
    "merge_sections",
]
