"""UserTargets: app-level water parameter targets.

The app stores targets as ``{min, max}`` ranges (temperature, pH, GH, KH,
nitrate) and scalar maxima (ammonia, nitrite). The engine works with the
parameter-limits shape ``{target_range: [lo, hi], target: x}``; this
module maps one onto the other.
"""

from typing import Optional

from pydantic import Field

from aquatrack.schemas.base import InputModel


class TargetRange(InputModel):
    min: float
    max: float

    @property
    def midpoint(self) -> float:
        return (self.min + self.max) / 2

    def as_list(self) -> list[float]:
        return [self.min, self.max]


class UserTargets(InputModel):
    """User-facing targets, as saved by the settings screen.

    ``pH`` is accepted under its app spelling as well as ``ph``.
    """
    temperature: TargetRange
    ph: TargetRange = Field(alias="pH")
    gh: TargetRange
    kh: TargetRange
    nitrate: TargetRange
    ammonia: Optional[float] = 0
    nitrite: Optional[float] = 0

    def to_engine_targets(self) -> dict:
        """Convert to the engine's parameter-limits shape.

        GH and KH also get a scalar ``target`` at the middle of the range.

        Returns
        -------
        dict
            Keys ``temperature_c``, ``ph_co2_on``, ``gh_dgh``, ``kh_dkh``,
            ``ammonia_ppm``, ``nitrite_ppm``, ``nitrate_ppm``
        """
        return {
            "temperature_c": {"target_range": self.temperature.as_list()},
            "ph_co2_on": {"target_range": self.ph.as_list()},
            "gh_dgh": {"target_range": self.gh.as_list(), "target": self.gh.midpoint},
            "kh_dkh": {"target_range": self.kh.as_list(), "target": self.kh.midpoint},
            "ammonia_ppm": {"target": self.ammonia},
            "nitrite_ppm": {"target": self.nitrite},
            "nitrate_ppm": {"target_range": self.nitrate.as_list()},
        }
