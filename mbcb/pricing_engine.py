"""Core weight, cost and tax calculations for MBCB quotations."""
from __future__ import annotations

import logging
from typing import Callable, Dict, Mapping

from . import weight_formulas
from .catalog import BUTTON_BOLT_WEIGHT_KG, HEX_BOLT_WEIGHT_KG
from .domain_models import (
    AssemblyWeights,
    BarrierConfiguration,
    CommercialInputs,
    ComponentKind,
    ComponentSpec,
    ComponentWeightResult,
    ComponentWeights,
    CostBreakdown,
    FastenerSelection,
    ManualFasteners,
    QuoteInputs,
    QuoteResult,
    TaxResult,
)

logger = logging.getLogger(__name__)

SGST_RATE = 0.09
CGST_RATE = 0.09
IGST_RATE = 0.18


class PricingError(ValueError):
    """Base class for input problems the user can fix and resubmit."""


class IncompleteSpecification(PricingError):
    """Raised when a component is missing a thickness, length or coating."""


class MissingRate(PricingError):
    """Raised when a cost is requested without a positive rate per kg."""


class UnreachableTargetPrice(PricingError):
    """Raised when no positive rate per kg produces the requested price."""


def _is_positive(value: float | None) -> bool:
    return value is not None and value > 0


def _positive_or_zero(value: float | None) -> float:
    return float(value) if value is not None and value > 0 else 0.0


def validate_component_spec(kind: ComponentKind, spec: ComponentSpec | None) -> ComponentSpec:
    """Return ``spec`` if it has every dimension ``kind`` needs."""

    spec = spec or ComponentSpec()
    if kind.is_rail:
        if not (_is_positive(spec.thickness_mm) and _is_positive(spec.coating_gsm)):
            raise IncompleteSpecification(f"Thickness and Coating GSM are required for {kind.label}.")
    elif not (
        _is_positive(spec.thickness_mm) and _is_positive(spec.length_mm) and _is_positive(spec.coating_gsm)
    ):
        raise IncompleteSpecification(f"Thickness, Length and Coating GSM are required for {kind.label}.")
    return spec


def compute_component_weight(kind: ComponentKind, spec: ComponentSpec | None) -> ComponentWeightResult:
    """Compute black and zinc weights for one component.

    Rails (W-beam, thrie-beam) are weighed per running metre and ignore
    ``length_mm``. Posts and spacers need all three dimensions.
    """

    spec = validate_component_spec(kind, spec)

    if kind is ComponentKind.W_BEAM:
        return weight_formulas.w_beam_weights(spec.thickness_mm, spec.coating_gsm)
    if kind is ComponentKind.THRIE_BEAM:
        return weight_formulas.thrie_beam_weights(spec.thickness_mm, spec.coating_gsm)
    if kind is ComponentKind.POST:
        return weight_formulas.post_weights(spec.thickness_mm, spec.length_mm, spec.coating_gsm)
    return weight_formulas.spacer_weights(spec.thickness_mm, spec.length_mm, spec.coating_gsm)


def compute_fastener_weight(
    selection: FastenerSelection,
    configuration: BarrierConfiguration,
) -> float:
    if isinstance(selection, ManualFasteners):
        return selection.hex_bolt_qty * HEX_BOLT_WEIGHT_KG + selection.button_bolt_qty * BUTTON_BOLT_WEIGHT_KG
    return configuration.default_fastener_weight_kg


def compute_assembly_weights(
    components: Mapping[ComponentKind, ComponentWeights],
    configuration: BarrierConfiguration,
    fasteners: FastenerSelection,
) -> AssemblyWeights:
    """Roll component weights up to one set and one running metre.

    Manual fasteners price the bolts alone, so component weights are
    ignored in that mode whatever their inclusion flags say.
    """

    fastener_weight = compute_fastener_weight(fasteners, configuration)
    manual = isinstance(fasteners, ManualFasteners)

    black = 0.0
    zinc = 0.0
    total = 0.0
    if not manual:
        for kind, selection in components.items():
            multiplier = configuration.multiplier_for(kind)
            if not selection.included or selection.weight is None:
                continue
            black += selection.weight.black_material_weight_kg * multiplier
            zinc += selection.weight.zinc_weight_kg * multiplier
            total += selection.weight.total_weight_kg * multiplier

    return AssemblyWeights(
        total_set_weight_kg=total + fastener_weight,
        black_weight_per_set_kg=black,
        zinc_weight_per_set_kg=zinc,
        fastener_weight_kg=fastener_weight,
        running_metres_per_set=configuration.running_metres_per_set,
        manual_fasteners=manual,
    )


def compute_cost_breakdown(
    weight_basis_kg: float,
    commercial: CommercialInputs,
    *,
    manual_fasteners: bool = False,
) -> CostBreakdown:
    """Apply commercial rates to a weight basis.

    In default mode ``weight_basis_kg`` is the weight per running metre and
    ``final_total`` stays ``None`` until a positive quantity is known. In
    manual-fastener mode it is the absolute fastener weight, installation
    does not apply and ``final_total`` needs no quantity.
    """

    if not _is_positive(commercial.rate_per_kg):
        raise MissingRate("Rate per kg must be a positive number.")

    rate = float(commercial.rate_per_kg)
    transport_rate = _positive_or_zero(commercial.transport_cost_per_kg) if commercial.include_transport else 0.0

    material_cost = weight_basis_kg * rate
    transport_cost = weight_basis_kg * transport_rate

    if manual_fasteners:
        total = material_cost + transport_cost
        return CostBreakdown(
            weight_basis_kg=weight_basis_kg,
            rate_per_kg=rate,
            material_cost_per_rm=material_cost,
            transport_cost_per_rm=transport_cost,
            installation_cost_per_rm=0.0,
            total_cost_per_rm=total,
            quantity_rm=None,
            final_total=total,
            manual_fasteners=True,
        )

    installation_cost = (
        _positive_or_zero(commercial.installation_cost_per_rm) if commercial.include_installation else 0.0
    )
    total_per_rm = material_cost + transport_cost + installation_cost
    quantity = commercial.quantity_rm if _is_positive(commercial.quantity_rm) else None
    final_total = total_per_rm * quantity if quantity is not None else None

    return CostBreakdown(
        weight_basis_kg=weight_basis_kg,
        rate_per_kg=rate,
        material_cost_per_rm=material_cost,
        transport_cost_per_rm=transport_cost,
        installation_cost_per_rm=installation_cost,
        total_cost_per_rm=total_per_rm,
        quantity_rm=quantity,
        final_total=final_total,
        manual_fasteners=False,
    )


def compute_tax(final_total: float | None, is_intra_state: bool) -> TaxResult | None:
    """Split GST into SGST + CGST (intra-state) or IGST (inter-state)."""

    if final_total is None or final_total <= 0:
        return None

    if is_intra_state:
        return TaxResult(
            final_total=final_total,
            is_intra_state=True,
            sgst=final_total * SGST_RATE,
            cgst=final_total * CGST_RATE,
            igst=0.0,
        )
    return TaxResult(
        final_total=final_total,
        is_intra_state=False,
        sgst=0.0,
        cgst=0.0,
        igst=final_total * IGST_RATE,
    )


def is_intra_state(place_of_supply: str | None, home_state: str) -> bool:
    if not place_of_supply or not home_state:
        return False
    return home_state.strip().lower() in place_of_supply.strip().lower()


def solve_rate_for_target_price(
    target_price: float,
    weight_basis_kg: float,
    commercial: CommercialInputs,
    *,
    manual_fasteners: bool = False,
) -> float:
    """Return the rate per kg at which the total cost hits ``target_price``.

    ``target_price`` is per running metre, or absolute in manual-fastener
    mode. Transport and installation are treated as fixed costs.
    """

    if weight_basis_kg <= 0:
        raise UnreachableTargetPrice("Cannot calculate rate - total weight is zero.")

    transport_rate = _positive_or_zero(commercial.transport_cost_per_kg) if commercial.include_transport else 0.0
    fixed_costs = weight_basis_kg * transport_rate
    if not manual_fasteners and commercial.include_installation:
        fixed_costs += _positive_or_zero(commercial.installation_cost_per_rm)

    target_material_cost = target_price - fixed_costs
    if target_material_cost <= 0:
        raise UnreachableTargetPrice("Target price is lower than the fixed transport and installation costs.")

    return target_material_cost / weight_basis_kg


WeightResolver = Callable[[ComponentKind, ComponentSpec | None], ComponentWeightResult | None]


def price_quote(inputs: QuoteInputs, resolve_weight: WeightResolver | None = None) -> QuoteResult:
    """Run the whole pipeline on one input snapshot.

    ``resolve_weight`` replaces the closed-form formulas, e.g. with a
    reference table lookup. It may return ``None`` when it has no answer.
    """

    configuration = inputs.configuration
    resolver = resolve_weight or compute_component_weight
    manual = isinstance(inputs.fasteners, ManualFasteners)

    weights: Dict[ComponentKind, ComponentWeights] = {}
    errors: Dict[ComponentKind, str] = {}
    for kind, selection in inputs.components.items():
        configuration.multiplier_for(kind)
        if manual or not selection.included:
            weights[kind] = ComponentWeights(weight=None, included=False)
            continue
        try:
            weight = resolver(kind, selection.spec)
        except IncompleteSpecification as exc:
            errors[kind] = str(exc)
            weight = None
        else:
            if weight is None:
                errors[kind] = f"No matching {kind.label} row found."
        weights[kind] = ComponentWeights(weight=weight, included=True)

    assembly = compute_assembly_weights(weights, configuration, inputs.fasteners)

    cost: CostBreakdown | None = None
    cost_error: str | None = None
    try:
        cost = compute_cost_breakdown(assembly.cost_basis_kg, inputs.commercial, manual_fasteners=manual)
    except MissingRate as exc:
        cost_error = str(exc)

    tax = compute_tax(cost.final_total if cost else None, inputs.is_intra_state)

    logger.debug(
        "Priced %s quote: %.3f kg/set, final total %s",
        configuration.name,
        assembly.total_set_weight_kg,
        cost.final_total if cost else None,
        extra={"quote_configuration": configuration.name},
    )

    return QuoteResult(
        configuration=configuration,
        component_weights=weights,
        component_errors=errors,
        assembly=assembly,
        cost=cost,
        cost_error=cost_error,
        tax=tax,
    )


__all__ = [
    "PricingError",
    "IncompleteSpecification",
    "MissingRate",
    "UnreachableTargetPrice",
    "validate_component_spec",
    "compute_component_weight",
    "compute_fastener_weight",
    "compute_assembly_weights",
    "compute_cost_breakdown",
    "compute_tax",
    "is_intra_state",
    "solve_rate_for_target_price",
    "price_quote",
]
