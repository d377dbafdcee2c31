"""Staged confirmation of a quotation in progress.

A quote moves through components, fasteners, commercials and quantity.
Each stage can be confirmed or reopened on its own; reopening a stage
never resets the stages after it. The current stage is always derived
from the flags and the latest tax result, never from history.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass, replace
from typing import Tuple


class QuoteStage(str, enum.Enum):
    SPECIFYING_COMPONENTS = "specifying_components"
    SPECIFYING_FASTENERS = "specifying_fasteners"
    SPECIFYING_COMMERCIALS = "specifying_commercials"
    SPECIFYING_QUANTITY = "specifying_quantity"
    COMPLETE = "complete"


_STAGE_FLAGS = {
    QuoteStage.SPECIFYING_COMPONENTS: "components_confirmed",
    QuoteStage.SPECIFYING_FASTENERS: "fasteners_confirmed",
    QuoteStage.SPECIFYING_COMMERCIALS: "commercials_confirmed",
    QuoteStage.SPECIFYING_QUANTITY: "quantity_confirmed",
}


@dataclass(frozen=True)
class QuoteProgress:
    components_confirmed: bool = False
    fasteners_confirmed: bool = False
    commercials_confirmed: bool = False
    quantity_confirmed: bool = False
    manual_fasteners: bool = False

    @property
    def applicable_stages(self) -> Tuple[QuoteStage, ...]:
        # Manual fasteners disable component selection and have no quantity step.
        if self.manual_fasteners:
            return (QuoteStage.SPECIFYING_FASTENERS, QuoteStage.SPECIFYING_COMMERCIALS)
        return (
            QuoteStage.SPECIFYING_COMPONENTS,
            QuoteStage.SPECIFYING_FASTENERS,
            QuoteStage.SPECIFYING_COMMERCIALS,
            QuoteStage.SPECIFYING_QUANTITY,
        )

    def is_confirmed(self, stage: QuoteStage) -> bool:
        return getattr(self, _STAGE_FLAGS[stage])

    def _set(self, stage: QuoteStage, value: bool) -> "QuoteProgress":
        if stage not in self.applicable_stages:
            raise ValueError(f"Stage {stage.value} does not apply to this quote.")
        return replace(self, **{_STAGE_FLAGS[stage]: value})

    def confirm(self, stage: QuoteStage) -> "QuoteProgress":
        return self._set(stage, True)

    def edit(self, stage: QuoteStage) -> "QuoteProgress":
        return self._set(stage, False)

    def with_manual_fasteners(self, manual: bool) -> "QuoteProgress":
        return replace(self, manual_fasteners=manual)

    def current_stage(self, tax_available: bool) -> QuoteStage:
        stages = self.applicable_stages
        for stage in stages:
            if not self.is_confirmed(stage):
                return stage
        if tax_available:
            return QuoteStage.COMPLETE
        return stages[-1]
