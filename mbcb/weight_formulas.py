"""Closed-form weight formulas for crash-barrier components.

Every component is modelled as a flat steel blank of known developed width
(girth) folded into its profile. Zinc is applied to both faces of the blank
at the selected coating mass per face.
"""
from __future__ import annotations

from typing import Dict

from .domain_models import ComponentKind, ComponentWeightResult

STEEL_DENSITY_KG_M3 = 7850.0
COATED_FACES = 2

# Developed width of each profile, in mm.
GIRTH_MM: Dict[ComponentKind, float] = {
    ComponentKind.W_BEAM: 483.0,
    ComponentKind.THRIE_BEAM: 749.0,
    ComponentKind.POST: 350.0,  # 150 x 75 lipped channel
    ComponentKind.SPACER: 300.0,  # 150 x 75 channel
}


def black_material_weight_kg(girth_mm: float, thickness_mm: float, length_m: float) -> float:
    return (girth_mm / 1000) * (thickness_mm / 1000) * length_m * STEEL_DENSITY_KG_M3


def zinc_weight_kg(girth_mm: float, length_m: float, coating_gsm: float) -> float:
    return COATED_FACES * (girth_mm / 1000) * length_m * coating_gsm / 1000


def _blank_weights(kind: ComponentKind, thickness_mm: float, length_m: float, coating_gsm: float) -> ComponentWeightResult:
    girth = GIRTH_MM[kind]
    return ComponentWeightResult(
        black_material_weight_kg=black_material_weight_kg(girth, thickness_mm, length_m),
        zinc_weight_kg=zinc_weight_kg(girth, length_m, coating_gsm),
    )


def w_beam_weights(thickness_mm: float, coating_gsm: float) -> ComponentWeightResult:
    """Weight of one running metre of W-beam rail."""
    return _blank_weights(ComponentKind.W_BEAM, thickness_mm, 1.0, coating_gsm)


def thrie_beam_weights(thickness_mm: float, coating_gsm: float) -> ComponentWeightResult:
    """Weight of one running metre of thrie-beam rail."""
    return _blank_weights(ComponentKind.THRIE_BEAM, thickness_mm, 1.0, coating_gsm)


def post_weights(thickness_mm: float, length_mm: float, coating_gsm: float) -> ComponentWeightResult:
    return _blank_weights(ComponentKind.POST, thickness_mm, length_mm / 1000, coating_gsm)


def spacer_weights(thickness_mm: float, length_mm: float, coating_gsm: float) -> ComponentWeightResult:
    return _blank_weights(ComponentKind.SPACER, thickness_mm, length_mm / 1000, coating_gsm)


__all__ = [
    "GIRTH_MM",
    "STEEL_DENSITY_KG_M3",
    "black_material_weight_kg",
    "zinc_weight_kg",
    "w_beam_weights",
    "thrie_beam_weights",
    "post_weights",
    "spacer_weights",
]
