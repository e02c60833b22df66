# tabletop_engine/game/rules/checks_pipeline.py
"""
Entry point for rolling checks.

Every operation runs prepare -> process -> render strictly in sequence and returns
the rendered CheckRecord:

    pipeline = ChecksPipeline(settings=load_settings())
    record = await pipeline.attribute_check(actor, ["pow", "dex"])
    record.result.final_result  # number of successes
"""
import logging
from typing import Dict, Optional, Sequence, Union

from tabletop_engine.config import EngineSettings
from tabletop_engine.game.contracts import ActorAccessor
from tabletop_engine.game.models.check_models import (
    AdvantageState, Check, CheckRecord, CheckResult, CheckType, ItemData, SkillData, TargetedIndividual, TargetResult
)
from tabletop_engine.game.models.dice_models import DiceOutcome
from tabletop_engine.game.rules.check_context import CheckContext, TargetContext
from tabletop_engine.game.rules.dice_roller import DiceRoller, RandomDiceRoller
from tabletop_engine.game.rules.hooks import HookBus, HookRegistry
from tabletop_engine.game.rules.phases.prepare import CheckConfig, PreparePhase
from tabletop_engine.game.rules.phases.process import ProcessPhase
from tabletop_engine.game.rules.phases.render import RenderPhase, register_default_sections
from tabletop_engine.game.rules.reroll import RerollOptions, reroll_result

logger = logging.getLogger(__name__)


class ChecksPipeline:

    def __init__(
        self,
        settings: Optional[EngineSettings] = None,
        hooks: Optional[HookBus] = None,
        roller: Optional[DiceRoller] = None,
        register_defaults: bool = True,
    ):
        self.settings = settings or EngineSettings()
        self.hooks = hooks or HookBus(self.settings.hook_error_mode)
        self.registry = HookRegistry(self.settings.hook_error_mode)
        self.roller = roller or RandomDiceRoller(max_dice=self.settings.max_dice, max_faces=self.settings.max_faces)
        self._prepare_phase = PreparePhase(self.hooks, self.registry, self.settings)
        self._process_phase = ProcessPhase(self.hooks, self.roller, self.settings)
        self._render_phase = RenderPhase(self.hooks)
        if register_defaults:
            register_default_sections(self.hooks)
        logger.info("ChecksPipeline: Initialized.")

    # --- Phases ---

    async def prepare_check(self, check_type: Union[CheckType, str], context: CheckContext,
                            config: Optional[CheckConfig] = None) -> Check:
        return await self._prepare_phase.prepare(check_type, context, config)

    async def process_check(self, check: Check, context: CheckContext) -> CheckResult:
        return await self._process_phase.process(check, context)

    async def render_check(self, result: CheckResult, actor: ActorAccessor,
                           item: Optional[ItemData] = None) -> CheckRecord:
        return await self._render_phase.render(result, actor, item)

    async def _run(self, check_type: CheckType, context: CheckContext, config: Optional[CheckConfig]) -> CheckRecord:
        check = await self.prepare_check(check_type, context, config)
        result = await self.process_check(check, context)
        return await self.render_check(result, context.actor, context.item)

    # --- Operations ---

    async def attribute_check(self, actor: ActorAccessor, attributes: Sequence[str],
                              config: Optional[CheckConfig] = None) -> CheckRecord:
        """Dice-pool check over one or two attributes, e.g. ['pow', 'dex']."""
        primary, secondary = _split_attributes(attributes)
        context = CheckContext(actor=actor, primary=primary, secondary=secondary)
        return await self._run(CheckType.ATTRIBUTE, context, config)

    async def skill_check(self, actor: ActorAccessor, attributes: Sequence[str], skill: SkillData,
                          config: Optional[CheckConfig] = None) -> CheckRecord:
        """Dice-pool check: skill ticks plus the governing attribute's tick."""
        primary, secondary = _split_attributes(attributes)
        context = CheckContext(actor=actor, primary=primary, secondary=secondary, skill=skill)
        return await self._run(CheckType.SKILL, context, config)

    async def accuracy_check(self, actor: ActorAccessor, item: ItemData,
                             advantage_state: Optional[AdvantageState] = None,
                             targets: Optional[Sequence[TargetContext]] = None,
                             config: Optional[CheckConfig] = None) -> CheckRecord:
        context = CheckContext(actor=actor, item=item, advantage_state=advantage_state, targets=list(targets or []))
        return await self._run(CheckType.ACCURACY, context, config)

    async def initiative_check(self, actor: ActorAccessor, attribute: str,
                               advantage_state: Optional[AdvantageState] = None,
                               config: Optional[CheckConfig] = None) -> CheckRecord:
        context = CheckContext(actor=actor, attribute=attribute, advantage_state=advantage_state)
        return await self._run(CheckType.INITIATIVE, context, config)

    async def display_check(self, actor: ActorAccessor, item: Optional[ItemData] = None,
                            roll: Optional[DiceOutcome] = None,
                            config: Optional[CheckConfig] = None) -> CheckRecord:
        """Shows an item without rolling. A pre-rolled outcome may be attached."""
        context = CheckContext(actor=actor, item=item, roll=roll)
        return await self._run(CheckType.DISPLAY, context, config)

    async def reroll(self, result: CheckResult, actor: ActorAccessor, item: Optional[ItemData] = None,
                     options: Optional[RerollOptions] = None,
                     targets: Optional[Sequence[TargetContext]] = None) -> CheckRecord:
        """
        Rerolls a result into a new CheckResult and renders it. ``targets`` supplies
        current avoid values for re-judging targeted individuals.
        """
        avoid_by_ref: Dict[str, Optional[int]] = {t.actor.ref: t.actor.get_stat_value("avoid") for t in targets or []}
        updated = await reroll_result(result, actor, self.roller, self.settings, options, avoid_by_ref)
        return await self.render_check(updated, actor, item)

    async def retarget(self, result: CheckResult, actor: ActorAccessor, item: Optional[ItemData],
                       targets: Sequence[TargetContext]) -> CheckRecord:
        """Re-renders a result against new targets, each inheriting the first original target's outcome."""
        inherited = result.targeted_individuals[0].result if result.targeted_individuals else TargetResult.HIT
        updated = result.model_copy(deep=True)
        updated.targeted_individuals = [
            TargetedIndividual(actor_ref=t.actor.ref, token_ref=t.token_ref, name=t.actor.name, result=inherited)
            for t in targets
        ]
        logger.info(f"ChecksPipeline: Retargeted check {result.id} to {len(targets)} target(s) as '{inherited.value}'.")
        return await self.render_check(updated, actor, item)


def _split_attributes(attributes: Union[str, Sequence[str]]):
    if isinstance(attributes, str):
        return attributes, None
    attributes = list(attributes)
    primary = attributes[0] if attributes else None
    secondary = attributes[1] if len(attributes) > 1 else None
    return primary, secondary
