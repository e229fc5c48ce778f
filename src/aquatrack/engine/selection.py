"""Cycling-mode and dark-start selection.

Runs the package's decision tables against the resolved setup and derives
the recommended and effective choices, the risk score and whether the
user's deviation from the recommendation needs an acknowledgement.

The cycling-mode table is evaluated twice: once with the user's actual
preference (user-choice reasons and risk) and once with the preference
forced to ``auto`` (the recommendation and the reported risk score).
"""

import logging
from typing import Union

from pydantic import Field

from aquatrack.engine.conditions import evaluate_override_policy
from aquatrack.engine.decision_table import evaluate_decision_table
from aquatrack.schemas.normalized import FrozenModel, NormalizedSetup
from aquatrack.schemas.package import CYCLING_MODE_TABLE, DARK_START_TABLE, EnginePackage

logger = logging.getLogger(__name__)

DEFAULT_CYCLING_MODE = "fishless_ammonia"
DEFAULT_RISK_SCORE = 2


class Selection(FrozenModel):
    """Outcome of the selection decision tables for one setup."""
    recommended_cycling_mode: str
    user_selected_cycling_mode: str
    recommended_dark_start: bool
    user_selected_dark_start: bool
    dark_start_preference: Union[bool, str]
    risk_score_1_to_5: Union[int, float]
    user_choice_risk_score_1_to_5: Union[int, float]
    reason_codes: list = Field(default_factory=list)
    user_choice_reason_codes: list = Field(default_factory=list)
    dark_start_reason_codes: list = Field(default_factory=list)
    requires_override_acknowledgement: bool = False

    def override_context(self) -> dict:
        return {
            "user_selected_cycling_mode": self.user_selected_cycling_mode,
            "recommended_cycling_mode": self.recommended_cycling_mode,
            "risk_score_1_to_5": self.risk_score_1_to_5,
        }


def cycling_context(setup: NormalizedSetup) -> dict:
    return {
        "cycling_mode_preference": setup.user_preferences.cycling_mode_preference,
        "shrimp_planned": setup.shrimp_planned,
        "risk_tolerance": setup.user_preferences.risk_tolerance,
        "tap_kh_status": setup.tap_kh_status,
        "ammonia_available": setup.ammonia_available,
    }


def dark_start_context(setup: NormalizedSetup) -> dict:
    preferences = setup.user_preferences
    return {
        "dark_start": preferences.dark_start is True,
        "goal_profile": preferences.goal_profile,
        "high_light": preferences.photoperiod_hours_initial >= 8,
        "aquasoil": setup.tank_profile.substrate.type == "aquasoil",
    }


def _risk(result: dict):
    risk_score = result.get("risk_score_1_to_5")
    return DEFAULT_RISK_SCORE if risk_score is None else risk_score


def decide_selection(setup: NormalizedSetup, package: EnginePackage) -> Selection:
    """Evaluate the selection decision tables.

    Parameters
    ----------
    setup : NormalizedSetup
        Resolved setup
    package : EnginePackage
        Supplies the cycling-mode and dark-start tables and the override
        policy

    Returns
    -------
    Selection
        Recommended and effective choices. ``requires_override_acknowledgement``
        is evaluated here; whether the plan is blocked also depends on the
        caller's acknowledgement state.
    """
    cycling_table = package.decision_table(CYCLING_MODE_TABLE)
    context = cycling_context(setup)
    chosen = evaluate_decision_table(cycling_table, context)
    recommended = evaluate_decision_table(cycling_table, {**context, "cycling_mode_preference": "auto"})
    dark = evaluate_decision_table(package.decision_table(DARK_START_TABLE), dark_start_context(setup))

    preferences = setup.user_preferences
    recommended_mode = recommended.get("recommended_cycling_mode") or DEFAULT_CYCLING_MODE
    selected_mode = (
        preferences.cycling_mode_preference
        if preferences.cycling_mode_preference != "auto"
        else recommended_mode
    )

    recommended_dark_start = bool(dark.get("recommended_dark_start"))
    preference = preferences.dark_start
    selected_dark_start = recommended_dark_start if preference == "auto" else bool(preference)

    risk_score = _risk(recommended)

    selection = Selection(
        recommended_cycling_mode=recommended_mode,
        user_selected_cycling_mode=selected_mode,
        recommended_dark_start=recommended_dark_start,
        user_selected_dark_start=selected_dark_start,
        dark_start_preference=preference,
        risk_score_1_to_5=risk_score,
        user_choice_risk_score_1_to_5=_risk(chosen),
        reason_codes=list(recommended.get("reason_codes") or []),
        user_choice_reason_codes=list(chosen.get("reason_codes") or []),
        dark_start_reason_codes=list(dark.get("reason_codes") or []),
    )
    requires_ack = evaluate_override_policy(package.override_policy, selection.override_context())
    logger.info(
        "Selected cycling mode %s (recommended %s), dark start %s, risk %s",
        selected_mode, recommended_mode, selected_dark_start, risk_score
    )
    return selection.model_copy(update={"requires_override_acknowledgement": requires_ack})
