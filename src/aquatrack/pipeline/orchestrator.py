"""Plan generation orchestration.

Composes the engine stages into a single plan:

    resolve setup -> decision tables -> derived quantities -> product roles
    -> contexts -> phase sequence -> phase expansion -> checklists -> plan

Generation is a pure function of its inputs. The generation timestamp is an
argument (``generated_at_iso``); nothing here reads a clock, touches the
filesystem or keeps state between calls.
"""

import copy
import logging
from typing import Optional, Union

from aquatrack.contracts import assert_plan_output
from aquatrack.engine import calculators
from aquatrack.engine.context import build_placeholder_map, build_rules_context, build_template_context
from aquatrack.engine.dosing import build_dosing_reference, resolve_ammonia_solution_percent, resolve_targets
from aquatrack.engine.expanders import (
    ExpansionContext,
    FallbackExpander,
    PlaylistExpander,
    RulesetExpander,
    TemplateExpander,
    expand_phases,
)
from aquatrack.engine.products import product_notes, resolve_effective_catalog, select_products_by_role
from aquatrack.engine.render import average_range, format_number, round_to
from aquatrack.engine.selection import decide_selection
from aquatrack.engine.sequencer import build_phase_sequence, phase_sequence_document
from aquatrack.pipeline.checklists import generate_checklists
from aquatrack.schemas.catalog import ProductCatalog
from aquatrack.schemas.package import PLAN_SCHEMA, SETUP_SCHEMA, EnginePackage
from aquatrack.schemas.resolve import resolve_setup, warning_note
from aquatrack.schemas.targets import UserTargets

__all__ = [
    'PlanOrchestrator',
    'generate_plan',
    'generate_phase_list',
    'generate_phases_from_templates',
    'generate_phases_from_playlists',
]

logger = logging.getLogger(__name__)

DEFAULT_GENERATED_AT_ISO = "1970-01-01T00:00:00.000Z"
DEFAULT_ACKNOWLEDGEMENT_TEXT = (
    "The selected cycling mode deviates from the recommendation and must be acknowledged."
)


class PlanState:
    """Intermediate results shared by every plan document.

    Built once per call by ``PlanOrchestrator.prepare``; never reused
    across calls.
    """

    def __init__(self, setup, notes, selection, skeletons, derived, limits, targets,
                 ammonia_solution_percent, dosing_reference, role_map, role_notes,
                 replacements, template_context, rules_context):
        self.setup = setup
        self.notes = notes
        self.selection = selection
        self.skeletons = skeletons
        self.derived = derived
        self.limits = limits
        self.targets = targets
        self.ammonia_solution_percent = ammonia_solution_percent
        self.dosing_reference = dosing_reference
        self.role_map = role_map
        self.role_notes = role_notes
        self.replacements = replacements
        self.template_context = template_context
        self.rules_context = rules_context

    def expansion_context(self) -> ExpansionContext:
        return ExpansionContext(
            skeletons=self.skeletons,
            cycling_mode=self.selection.user_selected_cycling_mode,
            replacements=self.replacements,
            template_context=self.template_context,
            rules_context=self.rules_context,
            role_map=self.role_map,
        )


class PlanOrchestrator:
    """Generates protocol plans for one engine package and product catalog.

    This is the main entry point for plan generation. The package and the
    catalog are validated once at construction; every ``generate`` call is
    independent.

    **Phase expansion priority:**

    1. Protocol ruleset (argument, else ``engine_package.protocol_ruleset``)
    2. Phase templates (argument, else ``engine_package.phase_templates``)
    3. Phase playlists with an atom library (argument, else the package's)
    4. The shipped template pack for the cycling mode

    The first strategy that yields phases supplies them.

    **Notes:**

    Questionable input never raises. It is reported in ``plan["notes"]`` as
    ``warning`` notes; an unacknowledged deviation from the recommended
    cycling mode adds a ``blocking`` note and sets ``selection.blocked``.
    The plan is still generated in full; the caller decides whether to
    gate on it.

    Example usage::

        from aquatrack.config import load_engine_package, load_product_catalog
        from aquatrack.pipeline import PlanOrchestrator

        orchestrator = PlanOrchestrator(load_engine_package(), load_product_catalog())
        plan = orchestrator.generate(setup, generated_at_iso="2026-01-05T09:00:00Z")
    """

    def __init__(self, engine_package: Union[EnginePackage, dict],
                 product_catalog: Union[ProductCatalog, dict, None] = None):
        """Initialize with the engine package and product catalog.

        Parameters
        ----------
        engine_package : EnginePackage or dict
            Decision tables, limits, calculator framework, template packs,
            schema versions and worksheets

        product_catalog : ProductCatalog or dict, optional
            Static product catalog. Ignored for a setup with enabled user
            products. Defaults to an empty catalog.
        """
        self.package = EnginePackage.model_validate(engine_package)
        if product_catalog is None:
            product_catalog = ProductCatalog()
        self.catalog = ProductCatalog.model_validate(product_catalog)

    def prepare(self, raw_setup, user_targets=None) -> PlanState:
        """Run every stage up to (not including) phase expansion."""
        setup, notes = resolve_setup(raw_setup)
        selection = decide_selection(setup, self.package)
        skeletons = build_phase_sequence(
            setup, selection.user_selected_cycling_mode, selection.user_selected_dark_start
        )

        net_volume = calculators.net_volume(setup.tank_profile)
        percent_range = list(setup.water_source_profile.weekly_water_change_percent_target)
        derived = {
            "net_water_volume_l": net_volume,
            "weekly_water_change_percent_range": percent_range,
            "weekly_water_change_volume_l_range": calculators.weekly_change_volume_range(net_volume, percent_range),
            "photoperiod_hours_initial": setup.user_preferences.photoperiod_hours_initial,
            "photoperiod_hours_post_cycle": setup.user_preferences.photoperiod_hours_post_cycle,
        }

        if isinstance(user_targets, dict):
            user_targets = UserTargets.model_validate(user_targets)
        limits = self.package.limits
        target_info = resolve_targets(limits, user_targets)
        targets = {**limits, **target_info["effective"]}

        framework = self.package.calculator
        ammonia_percent = resolve_ammonia_solution_percent(setup)
        dosing_reference = build_dosing_reference(
            setup,
            framework,
            net_volume,
            derived["weekly_water_change_volume_l_range"],
            target_info["gh_range"],
            target_info["kh_target"],
            ammonia_percent,
        )

        products, selected_ids = resolve_effective_catalog(setup, self.catalog)
        role_map, role_notes = select_products_by_role(products, selected_ids)

        replacements = build_placeholder_map(
            derived,
            dosing_reference,
            targets,
            framework.defaults,
            ammonia_percent,
            role_map,
            selection.user_selected_cycling_mode,
        )
        template_context = build_template_context(
            setup, derived, targets, framework.defaults, dosing_reference, role_map
        )
        rules_context = build_rules_context(setup, selection, role_map)

        return PlanState(
            setup=setup,
            notes=notes,
            selection=selection,
            skeletons=skeletons,
            derived=derived,
            limits=limits,
            targets=targets,
            ammonia_solution_percent=ammonia_percent,
            dosing_reference=dosing_reference,
            role_map=role_map,
            role_notes=role_notes,
            replacements=replacements,
            template_context=template_context,
            rules_context=rules_context,
        )

    def _collect_notes(self, state: PlanState, blocked: bool) -> list[dict]:
        notes = list(state.notes)
        if blocked:
            policy = self.package.override_policy
            notes.append({
                "type": "blocking",
                "message": policy.get("acknowledgement_text") or DEFAULT_ACKNOWLEDGEMENT_TEXT,
            })
        if any(value is None for value in state.dosing_reference["ammonia_ml_range"]):
            notes.append(warning_note(
                "Ammonia dosing requires calibration for solution_percent "
                f"{format_number(state.ammonia_solution_percent)}."
            ))
        notes.extend(state.role_notes)
        notes.extend(product_notes(state.role_map))
        return notes

    def generate(self, raw_setup, protocol_ruleset=None, user_targets=None,
                 override_acknowledged: bool = False,
                 generated_at_iso: str = DEFAULT_GENERATED_AT_ISO,
                 phase_templates=None, phase_playlists=None, atom_library=None) -> dict:
        """Generate a complete plan document.

        Parameters
        ----------
        raw_setup : dict
            Setup document; omitted fields take their documented defaults
        protocol_ruleset : dict, optional
            ``{"phases": [...], "rules": [...]}``
        user_targets : UserTargets or dict, optional
            App-level targets; replace the package's parameter limits
        override_acknowledged : bool
            Whether the user acknowledged a non-recommended cycling mode
        generated_at_iso : str
            Timestamp written to ``meta``; defaults to the Unix epoch
        phase_templates, phase_playlists, atom_library : optional
            Data for the template and playlist strategies

        Returns
        -------
        dict
            Plan with ``meta``, ``selection``, ``derived``,
            ``global_reference``, ``phase_sequence``, ``phases``,
            ``phase_checklists``, ``worksheets`` and ``notes``

        Raises
        ------
        ContractViolation
            If the phase sequence or the finished plan breaks an engine
            invariant (a defect, not bad input)
        """
        state = self.prepare(raw_setup, user_targets)
        selection = state.selection
        blocked = selection.requires_override_acknowledgement and not override_acknowledged
        notes = self._collect_notes(state, blocked)

        expanders = [
            RulesetExpander(protocol_ruleset or self.package.protocol_ruleset),
            TemplateExpander(phase_templates or self.package.phase_templates),
            PlaylistExpander(
                phase_playlists or self.package.phase_playlists,
                atom_library or self.package.atom_library,
            ),
            FallbackExpander(self.package),
        ]
        strategy, phases = expand_phases(expanders, state.expansion_context())

        derived = state.derived
        plan = {
            "meta": {
                "setup_version": self.package.schema_version(SETUP_SCHEMA),
                "plan_version": self.package.schema_version(PLAN_SCHEMA),
                "generated_at_iso": generated_at_iso,
                "expansion_strategy": strategy,
            },
            "selection": {
                "recommended_cycling_mode": selection.recommended_cycling_mode,
                "user_selected_cycling_mode": selection.user_selected_cycling_mode,
                "recommended_dark_start": selection.recommended_dark_start,
                "user_selected_dark_start": selection.user_selected_dark_start,
                "dark_start_preference": selection.dark_start_preference,
                "risk_score_1_to_5": selection.risk_score_1_to_5,
                "user_choice_risk_score_1_to_5": selection.user_choice_risk_score_1_to_5,
                "reason_codes": list(selection.reason_codes),
                "user_choice_reason_codes": list(selection.user_choice_reason_codes),
                "dark_start_reason_codes": list(selection.dark_start_reason_codes),
                "requires_override_acknowledgement": selection.requires_override_acknowledgement,
                "override_acknowledged": override_acknowledged,
                "blocked": blocked,
            },
            "derived": {
                "net_water_volume_l": round_to(derived["net_water_volume_l"], 2),
                "weekly_water_change_percent_range": list(derived["weekly_water_change_percent_range"]),
                "weekly_water_change_volume_l_range": round_to(
                    average_range(derived["weekly_water_change_volume_l_range"]), 2
                ),
                "photoperiod_hours_initial": derived["photoperiod_hours_initial"],
                "photoperiod_hours_post_cycle": derived["photoperiod_hours_post_cycle"],
            },
            "global_reference": {
                "targets": copy.deepcopy(state.targets),
                "parameter_limits": copy.deepcopy(state.limits),
                "dosing_reference": state.dosing_reference,
            },
            "phase_sequence": phase_sequence_document(state.skeletons),
            "phases": phases,
            "phase_checklists": generate_checklists(phases),
            "worksheets": copy.deepcopy(self.package.generic_worksheets),
            "notes": notes,
        }

        assert_plan_output(plan)
        logger.info(
            "Generated plan: mode=%s, %d phases via %s, %d notes%s",
            selection.user_selected_cycling_mode, len(phases), strategy, len(notes),
            " (blocked)" if blocked else ""
        )
        return plan

    def phase_list(self, raw_setup, generated_at_iso: str = DEFAULT_GENERATED_AT_ISO) -> dict:
        """Phase skeletons only: ``{meta, phases}``."""
        state = self.prepare(raw_setup)
        return {
            "meta": {"generated_at_iso": generated_at_iso},
            "phases": phase_sequence_document(state.skeletons),
        }

    def phases_from_templates(self, raw_setup, phase_templates=None, user_targets=None,
                              generated_at_iso: str = DEFAULT_GENERATED_AT_ISO) -> dict:
        """Expand the phase sequence with phase templates only."""
        state = self.prepare(raw_setup, user_targets)
        expander = TemplateExpander(phase_templates or self.package.phase_templates)
        phases = [phase.model_dump() for phase in expander.expand(state.expansion_context())]
        return {"meta": {"generated_at_iso": generated_at_iso}, "phases": phases}

    def phases_from_playlists(self, raw_setup, phase_playlists=None, atom_library=None,
                              user_targets=None,
                              generated_at_iso: str = DEFAULT_GENERATED_AT_ISO) -> dict:
        """Expand the phase sequence with playlists over an atom library only."""
        state = self.prepare(raw_setup, user_targets)
        expander = PlaylistExpander(
            phase_playlists or self.package.phase_playlists,
            atom_library or self.package.atom_library,
        )
        phases = [phase.model_dump() for phase in expander.expand(state.expansion_context())]
        return {"meta": {"generated_at_iso": generated_at_iso}, "phases": phases}


def generate_plan(setup, product_catalog, engine_package, protocol_ruleset=None,
                  user_targets=None, override_acknowledged: bool = False,
                  generated_at_iso: str = DEFAULT_GENERATED_AT_ISO) -> dict:
    """Generate a plan in one call. See ``PlanOrchestrator.generate``."""
    orchestrator = PlanOrchestrator(engine_package, product_catalog)
    return orchestrator.generate(
        setup,
        protocol_ruleset=protocol_ruleset,
        user_targets=user_targets,
        override_acknowledged=override_acknowledged,
        generated_at_iso=generated_at_iso,
    )


def generate_phase_list(setup, engine_package,
                        generated_at_iso: str = DEFAULT_GENERATED_AT_ISO) -> dict:
    return PlanOrchestrator(engine_package).phase_list(setup, generated_at_iso)


def generate_phases_from_templates(setup, product_catalog, engine_package, phase_templates,
                                   user_targets=None,
                                   generated_at_iso: str = DEFAULT_GENERATED_AT_ISO) -> dict:
    return PlanOrchestrator(engine_package, product_catalog).phases_from_templates(
        setup, phase_templates, user_targets, generated_at_iso
    )


def generate_phases_from_playlists(setup, product_catalog, engine_package, phase_playlists,
                                   atom_library, user_targets=None,
                                   generated_at_iso: str = DEFAULT_GENERATED_AT_ISO) -> dict:
    return PlanOrchestrator(engine_package, product_catalog).phases_from_playlists(
        setup, phase_playlists, atom_library, user_targets, generated_at_iso
    )
