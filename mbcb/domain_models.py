"""Domain models for MBCB pricing inputs and results."""
from __future__ import annotations

import enum
from dataclasses import asdict, dataclass, field
from typing import Dict, Mapping, Union


class ComponentKind(str, enum.Enum):
    W_BEAM = "w_beam"
    THRIE_BEAM = "thrie_beam"
    POST = "post"
    SPACER = "spacer"

    @property
    def is_rail(self) -> bool:
        """Rails are priced per running metre and carry no length."""
        return self in (ComponentKind.W_BEAM, ComponentKind.THRIE_BEAM)

    @property
    def label(self) -> str:
        return _KIND_LABELS[self]


_KIND_LABELS = {
    ComponentKind.W_BEAM: "W-Beam",
    ComponentKind.THRIE_BEAM: "Thrie-Beam",
    ComponentKind.POST: "Post",
    ComponentKind.SPACER: "Spacer",
}


@dataclass(frozen=True)
class ComponentSpec:
    thickness_mm: float | None = None
    coating_gsm: float | None = None
    length_mm: float | None = None  # post and spacer only


@dataclass(frozen=True)
class ComponentWeightResult:
    black_material_weight_kg: float
    zinc_weight_kg: float

    @property
    def total_weight_kg(self) -> float:
        return self.black_material_weight_kg + self.zinc_weight_kg


@dataclass(frozen=True)
class ComponentSelection:
    spec: ComponentSpec | None = None
    included: bool = True


@dataclass(frozen=True)
class ComponentWeights:
    weight: ComponentWeightResult | None = None
    included: bool = True


@dataclass(frozen=True)
class DefaultFasteners:
    """Fastener weight taken from the active barrier configuration."""


@dataclass(frozen=True)
class ManualFasteners:
    hex_bolt_qty: int = 0
    button_bolt_qty: int = 0

    def __post_init__(self) -> None:
        if self.hex_bolt_qty < 0 or self.button_bolt_qty < 0:
            raise ValueError("Bolt quantities cannot be negative.")


FastenerSelection = Union[DefaultFasteners, ManualFasteners]


@dataclass(frozen=True)
class BarrierConfiguration:
    name: str
    label: str
    multipliers: Mapping[ComponentKind, int]
    default_fastener_weight_kg: float
    running_metres_per_set: float = 4.0

    @property
    def component_kinds(self) -> tuple[ComponentKind, ...]:
        return tuple(self.multipliers)

    def multiplier_for(self, kind: ComponentKind) -> int:
        try:
            return self.multipliers[kind]
        except KeyError:
            raise ValueError(f"{kind.label} is not part of the {self.label} configuration.") from None


@dataclass(frozen=True)
class AssemblyWeights:
    total_set_weight_kg: float
    black_weight_per_set_kg: float
    zinc_weight_per_set_kg: float
    fastener_weight_kg: float
    running_metres_per_set: float
    manual_fasteners: bool = False

    @property
    def weight_per_rm_kg(self) -> float:
        return self.total_set_weight_kg / self.running_metres_per_set

    @property
    def black_weight_per_rm_kg(self) -> float:
        return self.black_weight_per_set_kg / self.running_metres_per_set

    @property
    def zinc_weight_per_rm_kg(self) -> float:
        return self.zinc_weight_per_set_kg / self.running_metres_per_set

    @property
    def cost_basis_kg(self) -> float:
        """Weight that commercial rates apply to: per rm, or the absolute fastener weight."""
        if self.manual_fasteners:
            return self.fastener_weight_kg
        return self.weight_per_rm_kg


@dataclass(frozen=True)
class CommercialInputs:
    rate_per_kg: float | None = None
    transport_cost_per_kg: float | None = None
    installation_cost_per_rm: float | None = None
    quantity_rm: float | None = None
    include_transport: bool = False
    include_installation: bool = False


@dataclass(frozen=True)
class CostBreakdown:
    """Costs per running metre, or absolute costs in manual-fastener mode."""

    weight_basis_kg: float
    rate_per_kg: float
    material_cost_per_rm: float
    transport_cost_per_rm: float
    installation_cost_per_rm: float
    total_cost_per_rm: float
    quantity_rm: float | None = None
    final_total: float | None = None
    manual_fasteners: bool = False


@dataclass(frozen=True)
class TaxResult:
    final_total: float
    is_intra_state: bool
    sgst: float
    cgst: float
    igst: float

    @property
    def total_tax(self) -> float:
        return self.sgst + self.cgst + self.igst

    @property
    def total_with_tax(self) -> float:
        return self.final_total + self.sgst + self.cgst + self.igst


@dataclass(frozen=True)
class QuoteInputs:
    configuration: BarrierConfiguration
    components: Mapping[ComponentKind, ComponentSelection] = field(default_factory=dict)
    fasteners: FastenerSelection = DefaultFasteners()
    commercial: CommercialInputs = CommercialInputs()
    is_intra_state: bool = False


@dataclass(frozen=True)
class QuoteResult:
    configuration: BarrierConfiguration
    component_weights: Mapping[ComponentKind, ComponentWeights]
    component_errors: Mapping[ComponentKind, str]
    assembly: AssemblyWeights
    cost: CostBreakdown | None = None
    cost_error: str | None = None
    tax: TaxResult | None = None

    @property
    def is_complete(self) -> bool:
        return self.tax is not None

    def as_payload(self) -> Dict[str, object]:
        """Return a JSON-safe snapshot for rendering and persistence."""
        parts: Dict[str, object] = {}
        for kind in self.configuration.component_kinds:
            selection = self.component_weights.get(kind, ComponentWeights(included=False))
            part: Dict[str, object] = {"included": selection.included, "found": selection.weight is not None}
            if selection.weight is not None:
                part.update(
                    {
                        "weight_black_material_kg": selection.weight.black_material_weight_kg,
                        "weight_zinc_added_kg": selection.weight.zinc_weight_kg,
                        "total_weight_kg": selection.weight.total_weight_kg,
                    }
                )
            if kind in self.component_errors:
                part["error"] = self.component_errors[kind]
            parts[kind.value] = part

        assembly = self.assembly
        payload: Dict[str, object] = {
            "configuration": self.configuration.name,
            "parts": parts,
            "totals": {
                "fastener_weight_kg": assembly.fastener_weight_kg,
                "manual_fasteners": assembly.manual_fasteners,
                "total_set_weight_kg": assembly.total_set_weight_kg,
                "weight_per_rm_kg": assembly.weight_per_rm_kg,
                "black_weight_per_set_kg": assembly.black_weight_per_set_kg,
                "zinc_weight_per_set_kg": assembly.zinc_weight_per_set_kg,
                "black_weight_per_rm_kg": assembly.black_weight_per_rm_kg,
                "zinc_weight_per_rm_kg": assembly.zinc_weight_per_rm_kg,
            },
            "cost": asdict(self.cost) if self.cost is not None else None,
            "cost_error": self.cost_error,
            "tax": None,
            "complete": self.is_complete,
        }
        if self.tax is not None:
            tax = asdict(self.tax)
            tax.update({"total_tax": self.tax.total_tax, "total_with_tax": self.tax.total_with_tax})
            payload["tax"] = tax
        return payload
