# tabletop_engine/game/rules/phases/render.py
"""
Render phase: hooks contribute RenderSections, which are ordered and packed into
a CheckRecord. Producing HTML from the sections is left to the caller.
"""
import logging
from typing import Any, Dict, List, Optional

from tabletop_engine.game.models.check_models import (
    CheckRecord, CheckResult, CheckType, ItemData, RenderSection, TargetResult
)
from tabletop_engine.game.rules.hooks import HookBus, HookEvent, RenderCheckPayload

logger = logging.getLogger(__name__)

ATTRIBUTE_CHECK_TEMPLATE = "attribute-check"
ACCURACY_ROLL_TEMPLATE = "accuracy-roll"
DISPLAY_ROLL_TEMPLATE = "display-roll"
TARGETED_INDIVIDUALS_TEMPLATE = "targeted-individuals"

TARGET_RESULT_CLASSES = {
    TargetResult.CRIT: "target-crit",
    TargetResult.HIT: "target-hit",
    TargetResult.MISS: "target-miss",
    TargetResult.FUMBLE: "target-fumble",
}


def sort_sections(sections: List[RenderSection]) -> List[RenderSection]:
    # sorted() is stable: equal orders keep the order the hooks added them
    return sorted(sections, key=lambda s: s.order)


class RenderPhase:

    def __init__(self, hooks: HookBus):
        self._hooks = hooks

    async def render(self, result: CheckResult, actor: Any, item: Optional[ItemData] = None) -> CheckRecord:
        payload = RenderCheckPayload(result=result, actor=actor, item=item)
        await self._hooks.call_all(HookEvent.RENDER_CHECK, payload)

        sections = sort_sections(payload.sections)
        actor_ref = getattr(actor, "ref", None) or result.actor_ref
        item_ref = item.ref if item is not None else result.item_ref
        flags: Dict[str, Any] = {
            "roll_type": "checks",
            "check_type": result.type.value,
            "actor_ref": actor_ref,
            "item_ref": item_ref,
            "check_result": result.model_dump(mode="json"),
        }
        flags.update(payload.flags)

        record = CheckRecord(
            actor_ref=actor_ref,
            item_ref=item_ref,
            check_type=result.type,
            sections=sections,
            content_order=[s.template for s in sections],
            rolls=([result.roll] + list(result.additional_rolls)) if result.roll is not None else [],
            flags=flags,
            result=result,
        )
        logger.debug(f"RenderPhase: Rendered check {result.id} with sections {record.content_order}.")
        return record


# Built-in section providers

def success_level(successes: int) -> str:
    if successes <= 0:
        return "failure"
    if successes == 1:
        return "partial"
    if successes == 2:
        return "success"
    return "critical"


def result_class(successes: int, critical: bool = False) -> str:
    if critical or successes >= 3:
        return "critical-success"
    if successes <= 0:
        return "failure"
    if successes == 1:
        return "partial-success"
    return "success"


def _check_label(result: CheckResult, item: Optional[ItemData]) -> str:
    if result.type == CheckType.SKILL:
        skill_name = (result.additional_data.get("skill") or {}).get("name") or (item.name if item else "")
        return f"{skill_name or 'Skill'} Check"
    attribute = result.primary.attribute if result.primary and result.primary.attribute else "Attribute"
    return f"{attribute.upper()} Check"


def attribute_check_section(payload: RenderCheckPayload) -> None:
    result = payload.result
    if result.type not in (CheckType.ATTRIBUTE, CheckType.SKILL):
        return
    payload.sections.append(RenderSection(
        template=ATTRIBUTE_CHECK_TEMPLATE,
        order=10,
        data={
            "check_label": _check_label(result, payload.item),
            "successes": result.final_result,
            "result_class": result_class(result.final_result, result.critical),
            "success_level": success_level(result.final_result),
            "has_successes": result.final_result > 0,
            "has_crit": result.critical,
            "is_skill_check": result.type == CheckType.SKILL,
            "primary": result.primary.model_dump() if result.primary else None,
            "secondary": result.secondary.model_dump() if result.secondary else None,
            "roll_results": result.additional_data.get("roll_results", []),
            "total_dice": result.additional_data.get("total_dice"),
            "modifiers": [m.model_dump() for m in result.modifiers],
        },
    ))


def accuracy_roll_section(payload: RenderCheckPayload) -> None:
    result = payload.result
    if result.type not in (CheckType.ACCURACY, CheckType.INITIATIVE):
        return
    if result.type == CheckType.INITIATIVE:
        label = "Initiative Roll"
    else:
        label = payload.item.name if payload.item and payload.item.name else "Accuracy Roll"
    payload.sections.append(RenderSection(
        template=ACCURACY_ROLL_TEMPLATE,
        order=10,
        data={
            "check_label": label,
            "final_result": result.final_result,
            "total_bonus": result.additional_data.get("total_bonus", 0),
            "advantage_state": result.advantage_state.value if result.advantage_state else None,
            "roll_results": result.additional_data.get("roll_results", []),
            "dice_with_status": result.additional_data.get("dice_with_status"),
            "critical": result.critical,
            "fumble": result.fumble,
            "auto_success": result.auto_success,
            "formula": result.roll.formula if result.roll else None,
        },
    ))


def display_roll_section(payload: RenderCheckPayload) -> None:
    result = payload.result
    if result.type != CheckType.DISPLAY:
        return
    label = result.additional_data.get("label") or (payload.item.name if payload.item and payload.item.name else "Display")
    payload.sections.append(RenderSection(
        template=DISPLAY_ROLL_TEMPLATE,
        order=10,
        data={
            "check_label": label,
            "has_roll": result.roll is not None,
            "roll_total": result.roll.total if result.roll is not None else result.final_result,
            "roll_formula": result.roll.formula if result.roll is not None else result.additional_data.get("formula"),
            "description": payload.item.description if payload.item else None,
        },
    ))


def targeted_individuals_section(payload: RenderCheckPayload) -> None:
    result = payload.result
    if result.type != CheckType.ACCURACY:
        return
    targets = result.targeted_individuals or []
    payload.sections.append(RenderSection(
        template=TARGETED_INDIVIDUALS_TEMPLATE,
        order=15,
        data={
            "has_targets": bool(targets),
            "targets": [
                {
                    "actor_ref": t.actor_ref,
                    "token_ref": t.token_ref,
                    "name": t.name,
                    "result": t.result.value,
                    "result_class": TARGET_RESULT_CLASSES.get(t.result, "target-unknown"),
                }
                for t in targets
            ],
        },
    ))


def register_default_sections(hooks: HookBus) -> None:
    """Subscribes the built-in section providers to RENDER_CHECK."""
    hooks.on(HookEvent.RENDER_CHECK, attribute_check_section)
    hooks.on(HookEvent.RENDER_CHECK, accuracy_roll_section)
    hooks.on(HookEvent.RENDER_CHECK, display_roll_section)
    hooks.on(HookEvent.RENDER_CHECK, targeted_individuals_section)
