"""Barrier configurations and the selectable component options."""
from __future__ import annotations

from typing import Dict, List

from .domain_models import BarrierConfiguration, ComponentKind

DOUBLE_W_BEAM = BarrierConfiguration(
    name="double_w_beam",
    label="Double W-Beam",
    multipliers={
        ComponentKind.W_BEAM: 2,
        ComponentKind.POST: 2,
        ComponentKind.SPACER: 4,
    },
    default_fastener_weight_kg=4.0,
)

SINGLE_THRIE_BEAM = BarrierConfiguration(
    name="single_thrie_beam",
    label="Single Thrie-Beam",
    multipliers={
        ComponentKind.THRIE_BEAM: 1,
        ComponentKind.POST: 2,
        ComponentKind.SPACER: 2,
    },
    default_fastener_weight_kg=3.0,
)

CONFIGURATIONS: Dict[str, BarrierConfiguration] = {
    DOUBLE_W_BEAM.name: DOUBLE_W_BEAM,
    SINGLE_THRIE_BEAM.name: SINGLE_THRIE_BEAM,
}

HEX_BOLT_WEIGHT_KG = 0.135
BUTTON_BOLT_WEIGHT_KG = 0.145


def _steps(start: float, stop: float, step: float) -> List[float]:
    count = int(round((stop - start) / step))
    return [round(start + i * step, 2) for i in range(count + 1)]


RAIL_THICKNESS_MM = _steps(2.0, 3.0, 0.05)
POST_SPACER_THICKNESS_MM = _steps(4.0, 5.0, 0.05)
COATING_GSM = [350.0, 400.0, 450.0, 500.0, 550.0]
POST_LENGTH_MM = _steps(1100.0, 3000.0, 100.0)

SPACER_LENGTH_MM: Dict[str, List[float]] = {
    DOUBLE_W_BEAM.name: [330.0, 360.0],
    SINGLE_THRIE_BEAM.name: [530.0, 550.0],
}


class UnknownConfiguration(KeyError):
    """Raised when a barrier configuration name is not recognised."""


def get_configuration(name: str) -> BarrierConfiguration:
    try:
        return CONFIGURATIONS[name]
    except KeyError:
        raise UnknownConfiguration(name) from None


def component_options(configuration: BarrierConfiguration, kind: ComponentKind) -> Dict[str, List[float]]:
    """Return thickness, length and coating choices for a component."""
    configuration.multiplier_for(kind)

    if kind.is_rail:
        return {"thickness": RAIL_THICKNESS_MM, "length": [], "coating_gsm": COATING_GSM}
    if kind is ComponentKind.POST:
        lengths = POST_LENGTH_MM
    else:
        lengths = SPACER_LENGTH_MM[configuration.name]
    return {"thickness": POST_SPACER_THICKNESS_MM, "length": lengths, "coating_gsm": COATING_GSM}
