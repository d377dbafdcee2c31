import io
import itertools
import json
import logging

from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import TestCase, override_settings
from django.urls import reverse

from .catalog import DOUBLE_W_BEAM, SINGLE_THRIE_BEAM, component_options, get_configuration, UnknownConfiguration
from .domain_models import (
    CommercialInputs,
    ComponentKind,
    ComponentSelection,
    ComponentSpec,
    ComponentWeightResult,
    ComponentWeights,
    DefaultFasteners,
    ManualFasteners,
    QuoteInputs,
)
from .logging_config import JSONFormatter, build_logging_config
from .pricing_engine import (
    IncompleteSpecification,
    MissingRate,
    UnreachableTargetPrice,
    compute_assembly_weights,
    compute_component_weight,
    compute_cost_breakdown,
    compute_fastener_weight,
    compute_tax,
    is_intra_state,
    price_quote,
    solve_rate_for_target_price,
)
from .reference_table import (
    ReferenceTableError,
    distinct_values,
    find_reference_row,
    load_reference_table,
    reference_component_weight,
)
from .state import clear_reference_table, get_reference_table, set_reference_table
from .templatetags.mbcb_extras import indian_units, per_set
from .workflow import QuoteProgress, QuoteStage

W_BEAM_SPEC = ComponentSpec(thickness_mm=2.5, coating_gsm=450)
POST_SPEC = ComponentSpec(thickness_mm=4.5, length_mm=1800, coating_gsm=450)
SPACER_SPEC = ComponentSpec(thickness_mm=4.5, length_mm=330, coating_gsm=450)

REFERENCE_CSV = (
    "material_code,section,material_description,thickness,length,coating_gsm,"
    "weight_black_material,weight_zinc_added\n"
    "WB-25-450,W-Beam Section,W-Beam 2.5mm,2.5,,450,9.5,0.43\n"
    "PO-45-1800,W-Beam Section,C-Post 4.5mm,4.5,1800,450,22.3,0.57\n"
    "SP-45-330,W-Beam Section,Spacer 4.5mm,4.5,330,450,3.5,0.09\n"
    "TB-25-450,Thrie Beam Section,Thrie-Beam 2.5mm,2.5,,450,14.7,0.67\n"
    "BR-30,W-Beam Section,Bracket,3.0,,450,1.0,0.1\n"
)


def _double_w_beam_weights(included=(True, True, True)):
    return {
        ComponentKind.W_BEAM: ComponentWeights(compute_component_weight(ComponentKind.W_BEAM, W_BEAM_SPEC), included[0]),
        ComponentKind.POST: ComponentWeights(compute_component_weight(ComponentKind.POST, POST_SPEC), included[1]),
        ComponentKind.SPACER: ComponentWeights(compute_component_weight(ComponentKind.SPACER, SPACER_SPEC), included[2]),
    }


class ComponentWeightTests(TestCase):
    def test_w_beam_weight_per_running_metre(self):
        result = compute_component_weight(ComponentKind.W_BEAM, W_BEAM_SPEC)

        self.assertAlmostEqual(result.black_material_weight_kg, 9.478875)
        self.assertAlmostEqual(result.zinc_weight_kg, 0.4347)
        self.assertAlmostEqual(result.total_weight_kg, 9.913575)

    def test_post_and_spacer_weights(self):
        post = compute_component_weight(ComponentKind.POST, POST_SPEC)
        spacer = compute_component_weight(ComponentKind.SPACER, SPACER_SPEC)

        self.assertAlmostEqual(post.black_material_weight_kg, 22.25475)
        self.assertAlmostEqual(post.zinc_weight_kg, 0.567)
        self.assertAlmostEqual(spacer.black_material_weight_kg, 3.497175)
        self.assertAlmostEqual(spacer.zinc_weight_kg, 0.0891)

    def test_total_is_exact_sum_of_black_and_zinc(self):
        for kind, spec in [
            (ComponentKind.W_BEAM, W_BEAM_SPEC),
            (ComponentKind.THRIE_BEAM, W_BEAM_SPEC),
            (ComponentKind.POST, POST_SPEC),
            (ComponentKind.SPACER, SPACER_SPEC),
        ]:
            result = compute_component_weight(kind, spec)
            self.assertEqual(result.total_weight_kg, result.black_material_weight_kg + result.zinc_weight_kg)

    def test_weight_is_deterministic(self):
        results = {compute_component_weight(ComponentKind.POST, POST_SPEC) for _ in range(5)}
        self.assertEqual(len(results), 1)

    def test_rail_ignores_length(self):
        with_length = ComponentSpec(thickness_mm=2.5, coating_gsm=450, length_mm=4000)
        self.assertEqual(
            compute_component_weight(ComponentKind.W_BEAM, with_length),
            compute_component_weight(ComponentKind.W_BEAM, W_BEAM_SPEC),
        )

    def test_missing_fields_raise_incomplete_specification(self):
        with self.assertRaises(IncompleteSpecification):
            compute_component_weight(ComponentKind.W_BEAM, ComponentSpec(thickness_mm=2.5))
        with self.assertRaises(IncompleteSpecification):
            compute_component_weight(ComponentKind.POST, ComponentSpec(thickness_mm=4.5, coating_gsm=450))
        with self.assertRaises(IncompleteSpecification):
            compute_component_weight(ComponentKind.SPACER, None)
        with self.assertRaises(IncompleteSpecification):
            compute_component_weight(ComponentKind.SPACER, ComponentSpec(thickness_mm=0, length_mm=330, coating_gsm=450))


class FastenerWeightTests(TestCase):
    def test_default_weight_comes_from_configuration(self):
        self.assertEqual(compute_fastener_weight(DefaultFasteners(), DOUBLE_W_BEAM), 4.0)
        self.assertEqual(compute_fastener_weight(DefaultFasteners(), SINGLE_THRIE_BEAM), 3.0)

    def test_manual_weight_from_bolt_counts(self):
        weight = compute_fastener_weight(ManualFasteners(hex_bolt_qty=20, button_bolt_qty=15), DOUBLE_W_BEAM)
        self.assertAlmostEqual(weight, 4.875)

    def test_manual_weight_is_linear(self):
        single = compute_fastener_weight(ManualFasteners(hex_bolt_qty=7, button_bolt_qty=11), DOUBLE_W_BEAM)
        double = compute_fastener_weight(ManualFasteners(hex_bolt_qty=14, button_bolt_qty=22), DOUBLE_W_BEAM)
        self.assertAlmostEqual(double, 2 * single)

    def test_negative_quantities_rejected(self):
        with self.assertRaises(ValueError):
            ManualFasteners(hex_bolt_qty=-1)


class AssemblyWeightTests(TestCase):
    def test_default_mode_total_for_every_inclusion_combination(self):
        w_beam = compute_component_weight(ComponentKind.W_BEAM, W_BEAM_SPEC).total_weight_kg
        post = compute_component_weight(ComponentKind.POST, POST_SPEC).total_weight_kg
        spacer = compute_component_weight(ComponentKind.SPACER, SPACER_SPEC).total_weight_kg

        for included in itertools.product([True, False], repeat=3):
            assembly = compute_assembly_weights(_double_w_beam_weights(included), DOUBLE_W_BEAM, DefaultFasteners())
            expected = (
                2 * w_beam * included[0]
                + 2 * post * included[1]
                + 4 * spacer * included[2]
                + 4.0
            )
            self.assertAlmostEqual(assembly.total_set_weight_kg, expected)
            self.assertEqual(assembly.weight_per_rm_kg * 4, assembly.total_set_weight_kg)

    def test_example_set_weight(self):
        assembly = compute_assembly_weights(_double_w_beam_weights(), DOUBLE_W_BEAM, DefaultFasteners())

        self.assertAlmostEqual(assembly.total_set_weight_kg, 83.81575)
        self.assertAlmostEqual(assembly.weight_per_rm_kg, 20.9539375)
        self.assertAlmostEqual(assembly.black_weight_per_set_kg, 2 * 9.478875 + 2 * 22.25475 + 4 * 3.497175)
        self.assertAlmostEqual(assembly.zinc_weight_per_set_kg, 2 * 0.4347 + 2 * 0.567 + 4 * 0.0891)
        self.assertAlmostEqual(assembly.black_weight_per_rm_kg * 4, assembly.black_weight_per_set_kg)

    def test_manual_mode_ignores_components(self):
        fasteners = ManualFasteners(hex_bolt_qty=20, button_bolt_qty=15)
        heavy = {ComponentKind.POST: ComponentWeights(ComponentWeightResult(100.0, 5.0), True)}
        light = {ComponentKind.POST: ComponentWeights(ComponentWeightResult(1.0, 0.1), True)}

        first = compute_assembly_weights(heavy, DOUBLE_W_BEAM, fasteners)
        second = compute_assembly_weights(light, DOUBLE_W_BEAM, fasteners)

        self.assertEqual(first.total_set_weight_kg, second.total_set_weight_kg)
        self.assertAlmostEqual(first.total_set_weight_kg, 4.875)
        self.assertEqual(first.black_weight_per_set_kg, 0.0)
        self.assertTrue(first.manual_fasteners)
        self.assertAlmostEqual(first.cost_basis_kg, 4.875)

    def test_nothing_included_and_no_fasteners_is_zero(self):
        assembly = compute_assembly_weights(
            _double_w_beam_weights((False, False, False)), DOUBLE_W_BEAM, ManualFasteners()
        )
        self.assertEqual(assembly.total_set_weight_kg, 0.0)
        self.assertEqual(assembly.weight_per_rm_kg, 0.0)
        self.assertEqual(assembly.zinc_weight_per_rm_kg, 0.0)

    def test_thrie_beam_multipliers(self):
        thrie = compute_component_weight(ComponentKind.THRIE_BEAM, W_BEAM_SPEC)
        post = compute_component_weight(ComponentKind.POST, POST_SPEC)
        spacer = compute_component_weight(
            ComponentKind.SPACER, ComponentSpec(thickness_mm=4.5, length_mm=530, coating_gsm=450)
        )
        weights = {
            ComponentKind.THRIE_BEAM: ComponentWeights(thrie, True),
            ComponentKind.POST: ComponentWeights(post, True),
            ComponentKind.SPACER: ComponentWeights(spacer, True),
        }

        assembly = compute_assembly_weights(weights, SINGLE_THRIE_BEAM, DefaultFasteners())

        self.assertAlmostEqual(thrie.black_material_weight_kg, 14.699125)
        self.assertAlmostEqual(
            assembly.total_set_weight_kg,
            thrie.total_weight_kg + 2 * post.total_weight_kg + 2 * spacer.total_weight_kg + 3.0,
        )

    def test_component_outside_configuration_rejected(self):
        weights = {ComponentKind.W_BEAM: ComponentWeights(ComponentWeightResult(1.0, 0.1), True)}
        with self.assertRaises(ValueError):
            compute_assembly_weights(weights, SINGLE_THRIE_BEAM, DefaultFasteners())


class CostBreakdownTests(TestCase):
    def test_default_mode_costs(self):
        commercial = CommercialInputs(
            rate_per_kg=65,
            transport_cost_per_kg=2,
            installation_cost_per_rm=50,
            quantity_rm=500,
            include_transport=True,
            include_installation=True,
        )

        cost = compute_cost_breakdown(20.0, commercial)

        self.assertAlmostEqual(cost.material_cost_per_rm, 1300.0)
        self.assertAlmostEqual(cost.transport_cost_per_rm, 40.0)
        self.assertAlmostEqual(cost.installation_cost_per_rm, 50.0)
        self.assertAlmostEqual(cost.total_cost_per_rm, 1390.0)
        self.assertAlmostEqual(cost.final_total, 695_000.0)

    def test_excluded_transport_and_installation_cost_nothing(self):
        commercial = CommercialInputs(rate_per_kg=65, transport_cost_per_kg=2, installation_cost_per_rm=50, quantity_rm=10)

        cost = compute_cost_breakdown(20.0, commercial)

        self.assertEqual(cost.transport_cost_per_rm, 0.0)
        self.assertEqual(cost.installation_cost_per_rm, 0.0)
        self.assertAlmostEqual(cost.final_total, 13_000.0)

    def test_final_total_waits_for_quantity(self):
        cost = compute_cost_breakdown(20.0, CommercialInputs(rate_per_kg=65))

        self.assertAlmostEqual(cost.total_cost_per_rm, 1300.0)
        self.assertIsNone(cost.quantity_rm)
        self.assertIsNone(cost.final_total)

        cost = compute_cost_breakdown(20.0, CommercialInputs(rate_per_kg=65, quantity_rm=0))
        self.assertIsNone(cost.final_total)

    def test_missing_or_non_positive_rate(self):
        for rate in (None, 0, -5):
            with self.assertRaises(MissingRate):
                compute_cost_breakdown(20.0, CommercialInputs(rate_per_kg=rate, quantity_rm=10))

    def test_manual_mode_uses_absolute_weight(self):
        commercial = CommercialInputs(
            rate_per_kg=80, installation_cost_per_rm=50, include_installation=True, quantity_rm=500
        )

        cost = compute_cost_breakdown(4.875, commercial, manual_fasteners=True)

        self.assertAlmostEqual(cost.material_cost_per_rm, 390.0)
        self.assertEqual(cost.installation_cost_per_rm, 0.0)
        self.assertAlmostEqual(cost.final_total, 390.0)
        self.assertIsNone(cost.quantity_rm)

    def test_manual_mode_with_transport(self):
        commercial = CommercialInputs(rate_per_kg=80, transport_cost_per_kg=4, include_transport=True)

        cost = compute_cost_breakdown(4.875, commercial, manual_fasteners=True)

        self.assertAlmostEqual(cost.transport_cost_per_rm, 19.5)
        self.assertAlmostEqual(cost.final_total, 409.5)


class TaxTests(TestCase):
    def test_intra_state_splits_sgst_and_cgst(self):
        tax = compute_tax(1000.0, is_intra_state=True)

        self.assertAlmostEqual(tax.sgst, 90.0)
        self.assertAlmostEqual(tax.cgst, 90.0)
        self.assertEqual(tax.igst, 0.0)
        self.assertAlmostEqual(tax.total_with_tax, 1180.0)

    def test_inter_state_uses_igst(self):
        tax = compute_tax(390.0, is_intra_state=False)

        self.assertAlmostEqual(tax.igst, 70.2)
        self.assertEqual(tax.sgst + tax.cgst, 0.0)
        self.assertAlmostEqual(tax.total_with_tax, 460.2)

    def test_exactly_one_tax_regime_applies(self):
        for final_total, intra in itertools.product([0.01, 1.0, 390.0, 681_002.96875], [True, False]):
            tax = compute_tax(final_total, intra)
            self.assertNotEqual(tax.sgst + tax.cgst > 0, tax.igst > 0)
            self.assertAlmostEqual(tax.total_with_tax - final_total, tax.sgst + tax.cgst + tax.igst)

    def test_no_tax_on_unknown_or_non_positive_total(self):
        self.assertIsNone(compute_tax(None, True))
        self.assertIsNone(compute_tax(0.0, True))
        self.assertIsNone(compute_tax(-10.0, False))

    def test_place_of_supply_matching(self):
        self.assertTrue(is_intra_state("Hyderabad, TELANGANA", "Telangana"))
        self.assertFalse(is_intra_state("Maharashtra", "Telangana"))
        self.assertFalse(is_intra_state("", "Telangana"))
        self.assertFalse(is_intra_state(None, "Telangana"))


class RateSolverTests(TestCase):
    def test_rate_reproduces_target_price(self):
        commercial = CommercialInputs(
            transport_cost_per_kg=2,
            installation_cost_per_rm=50,
            include_transport=True,
            include_installation=True,
        )

        rate = solve_rate_for_target_price(1500.0, 20.0, commercial)

        self.assertAlmostEqual(rate, 70.5)
        cost = compute_cost_breakdown(
            20.0,
            CommercialInputs(
                rate_per_kg=rate,
                transport_cost_per_kg=2,
                installation_cost_per_rm=50,
                include_transport=True,
                include_installation=True,
            ),
        )
        self.assertAlmostEqual(cost.total_cost_per_rm, 1500.0)

    def test_manual_mode_ignores_installation(self):
        commercial = CommercialInputs(installation_cost_per_rm=50, include_installation=True)
        rate = solve_rate_for_target_price(390.0, 4.875, commercial, manual_fasteners=True)
        self.assertAlmostEqual(rate, 80.0)

    def test_target_below_fixed_costs(self):
        commercial = CommercialInputs(installation_cost_per_rm=50, include_installation=True)
        with self.assertRaises(UnreachableTargetPrice):
            solve_rate_for_target_price(40.0, 20.0, commercial)

    def test_zero_weight(self):
        with self.assertRaises(UnreachableTargetPrice):
            solve_rate_for_target_price(1500.0, 0.0, CommercialInputs())


class PriceQuoteTests(TestCase):
    def _example_inputs(self, **commercial):
        values = {"rate_per_kg": 65, "quantity_rm": 500}
        values.update(commercial)
        return QuoteInputs(
            configuration=DOUBLE_W_BEAM,
            components={
                ComponentKind.W_BEAM: ComponentSelection(W_BEAM_SPEC),
                ComponentKind.POST: ComponentSelection(POST_SPEC),
                ComponentKind.SPACER: ComponentSelection(SPACER_SPEC),
            },
            commercial=CommercialInputs(**values),
            is_intra_state=True,
        )

    def test_example_scenario(self):
        result = price_quote(self._example_inputs())

        self.assertAlmostEqual(result.assembly.total_set_weight_kg, 83.81575)
        self.assertAlmostEqual(result.cost.material_cost_per_rm, 20.9539375 * 65)
        self.assertAlmostEqual(result.cost.final_total, 20.9539375 * 65 * 500)
        self.assertAlmostEqual(result.tax.sgst, result.cost.final_total * 0.09)
        self.assertAlmostEqual(result.tax.cgst, result.cost.final_total * 0.09)
        self.assertEqual(result.tax.igst, 0.0)
        self.assertTrue(result.is_complete)

    def test_manual_scenario(self):
        inputs = QuoteInputs(
            configuration=DOUBLE_W_BEAM,
            components={ComponentKind.W_BEAM: ComponentSelection(W_BEAM_SPEC)},
            fasteners=ManualFasteners(hex_bolt_qty=20, button_bolt_qty=15),
            commercial=CommercialInputs(rate_per_kg=80),
            is_intra_state=False,
        )

        result = price_quote(inputs)

        self.assertAlmostEqual(result.assembly.fastener_weight_kg, 4.875)
        self.assertAlmostEqual(result.cost.material_cost_per_rm, 390.0)
        self.assertAlmostEqual(result.cost.final_total, 390.0)
        self.assertAlmostEqual(result.tax.igst, 70.2)
        self.assertAlmostEqual(result.tax.total_with_tax, 460.2)
        self.assertFalse(result.component_weights[ComponentKind.W_BEAM].included)

    def test_incomplete_component_is_reported_not_fatal(self):
        inputs = QuoteInputs(
            configuration=DOUBLE_W_BEAM,
            components={
                ComponentKind.W_BEAM: ComponentSelection(W_BEAM_SPEC),
                ComponentKind.POST: ComponentSelection(ComponentSpec(thickness_mm=4.5)),
            },
            commercial=CommercialInputs(rate_per_kg=65, quantity_rm=10),
        )

        result = price_quote(inputs)

        self.assertIn(ComponentKind.POST, result.component_errors)
        self.assertAlmostEqual(result.assembly.total_set_weight_kg, 2 * 9.913575 + 4.0)

    def test_missing_rate_leaves_cost_and_tax_absent(self):
        result = price_quote(self._example_inputs(rate_per_kg=None))

        self.assertIsNone(result.cost)
        self.assertIsNone(result.tax)
        self.assertEqual(result.cost_error, "Rate per kg must be a positive number.")
        self.assertFalse(result.is_complete)

    def test_repeated_pricing_is_identical(self):
        first = price_quote(self._example_inputs())
        second = price_quote(self._example_inputs())

        self.assertEqual(first, second)
        self.assertEqual(first.as_payload(), second.as_payload())

    def test_custom_weight_resolver(self):
        fixed = ComponentWeightResult(10.0, 1.0)
        result = price_quote(self._example_inputs(), resolve_weight=lambda kind, spec: fixed)

        self.assertAlmostEqual(result.assembly.total_set_weight_kg, 2 * 11 + 2 * 11 + 4 * 11 + 4)

    def test_resolver_without_answer_is_reported(self):
        result = price_quote(self._example_inputs(), resolve_weight=lambda kind, spec: None)

        self.assertEqual(set(result.component_errors), {ComponentKind.W_BEAM, ComponentKind.POST, ComponentKind.SPACER})
        self.assertEqual(result.assembly.total_set_weight_kg, 4.0)

    def test_payload_is_json_serialisable(self):
        payload = price_quote(self._example_inputs()).as_payload()

        decoded = json.loads(json.dumps(payload))
        self.assertEqual(decoded["configuration"], "double_w_beam")
        self.assertTrue(decoded["parts"]["post"]["found"])
        self.assertTrue(decoded["complete"])

    def test_debug_log_carries_configuration(self):
        with self.assertLogs("mbcb.pricing_engine", level="DEBUG") as captured:
            price_quote(self._example_inputs())

        self.assertEqual(captured.records[-1].quote_configuration, "double_w_beam")


class WorkflowTests(TestCase):
    def test_stages_advance_in_order(self):
        progress = QuoteProgress()
        self.assertEqual(progress.current_stage(False), QuoteStage.SPECIFYING_COMPONENTS)

        progress = progress.confirm(QuoteStage.SPECIFYING_COMPONENTS)
        self.assertEqual(progress.current_stage(False), QuoteStage.SPECIFYING_FASTENERS)

        progress = progress.confirm(QuoteStage.SPECIFYING_FASTENERS).confirm(QuoteStage.SPECIFYING_COMMERCIALS)
        self.assertEqual(progress.current_stage(False), QuoteStage.SPECIFYING_QUANTITY)

        progress = progress.confirm(QuoteStage.SPECIFYING_QUANTITY)
        self.assertEqual(progress.current_stage(False), QuoteStage.SPECIFYING_QUANTITY)
        self.assertEqual(progress.current_stage(True), QuoteStage.COMPLETE)

    def test_edit_reopens_only_that_stage(self):
        progress = QuoteProgress(True, True, True, True)

        edited = progress.edit(QuoteStage.SPECIFYING_FASTENERS)

        self.assertEqual(edited.current_stage(True), QuoteStage.SPECIFYING_FASTENERS)
        self.assertTrue(edited.is_confirmed(QuoteStage.SPECIFYING_QUANTITY))
        self.assertTrue(progress.is_confirmed(QuoteStage.SPECIFYING_FASTENERS))

    def test_manual_fasteners_skip_components_and_quantity(self):
        progress = QuoteProgress(manual_fasteners=True)
        self.assertEqual(progress.current_stage(False), QuoteStage.SPECIFYING_FASTENERS)

        with self.assertRaises(ValueError):
            progress.confirm(QuoteStage.SPECIFYING_COMPONENTS)

        progress = progress.confirm(QuoteStage.SPECIFYING_FASTENERS).confirm(QuoteStage.SPECIFYING_COMMERCIALS)
        self.assertEqual(progress.current_stage(True), QuoteStage.COMPLETE)

    def test_complete_cannot_be_confirmed(self):
        with self.assertRaises(ValueError):
            QuoteProgress().confirm(QuoteStage.COMPLETE)


class CatalogTests(TestCase):
    def test_option_lists(self):
        rail = component_options(DOUBLE_W_BEAM, ComponentKind.W_BEAM)
        self.assertEqual(rail["thickness"][0], 2.0)
        self.assertEqual(rail["thickness"][-1], 3.0)
        self.assertEqual(len(rail["thickness"]), 21)
        self.assertEqual(rail["length"], [])

        post = component_options(DOUBLE_W_BEAM, ComponentKind.POST)
        self.assertEqual(post["length"][0], 1100)
        self.assertEqual(post["length"][-1], 3000)

        self.assertEqual(component_options(DOUBLE_W_BEAM, ComponentKind.SPACER)["length"], [330.0, 360.0])
        self.assertEqual(component_options(SINGLE_THRIE_BEAM, ComponentKind.SPACER)["length"], [530.0, 550.0])

    def test_unknown_configuration(self):
        self.assertIs(get_configuration("double_w_beam"), DOUBLE_W_BEAM)
        with self.assertRaises(UnknownConfiguration):
            get_configuration("triple_beam")


class ReferenceTableTests(TestCase):
    def setUp(self):
        self.table = load_reference_table(io.StringIO(REFERENCE_CSV))

    def test_unrecognised_descriptions_are_dropped(self):
        self.assertEqual(len(self.table), 4)

    def test_find_row_matches_floats(self):
        row = find_reference_row(self.table, ComponentKind.POST, thickness=4.5, coating_gsm=450.0, length=1800)
        self.assertEqual(row["material_code"], "PO-45-1800")

        self.assertIsNone(find_reference_row(self.table, ComponentKind.POST, 4.5, 450, length=2000))

    def test_thrie_description_is_not_a_w_beam(self):
        row = find_reference_row(self.table, ComponentKind.W_BEAM, 2.5, 450)
        self.assertEqual(row["material_code"], "WB-25-450")

        row = find_reference_row(self.table, ComponentKind.THRIE_BEAM, 2.5, 450, section="Thrie Beam Section")
        self.assertEqual(row["material_code"], "TB-25-450")

    def test_component_weight_from_table(self):
        result = reference_component_weight(self.table, ComponentKind.SPACER, SPACER_SPEC)

        self.assertAlmostEqual(result.black_material_weight_kg, 3.5)
        self.assertAlmostEqual(result.zinc_weight_kg, 0.09)

    def test_distinct_values(self):
        self.assertEqual(distinct_values(self.table, ComponentKind.POST, "length"), [1800.0])
        self.assertEqual(distinct_values(self.table, ComponentKind.W_BEAM, "thickness"), [2.5])
        with self.assertRaises(ValueError):
            distinct_values(self.table, ComponentKind.POST, "weight_black_material")

    def test_missing_columns(self):
        with self.assertRaises(ReferenceTableError):
            load_reference_table(io.StringIO("material_code,thickness\nA,2.5\n"))

    def test_non_numeric_weights(self):
        csv_content = REFERENCE_CSV.replace("9.5,0.43", "heavy,0.43")
        with self.assertRaises(ReferenceTableError):
            load_reference_table(io.StringIO(csv_content))

    def test_no_component_rows(self):
        header = REFERENCE_CSV.splitlines()[0]
        with self.assertRaises(ReferenceTableError):
            load_reference_table(io.StringIO(header + "\nBR-30,W-Beam Section,Bracket,3.0,,450,1.0,0.1\n"))


class TemplateFilterTests(TestCase):
    def test_indian_units(self):
        self.assertEqual(indian_units(999), "999")
        self.assertEqual(indian_units(12345), "12,345")
        self.assertEqual(indian_units(99999), "99,999")
        self.assertEqual(indian_units(250000), "2.5 Lakhs")
        self.assertEqual(indian_units(35_000_000), "3.5 Crores")
        self.assertEqual(indian_units("n/a"), "")

    def test_per_set(self):
        assembly = compute_assembly_weights({}, DOUBLE_W_BEAM, DefaultFasteners())

        self.assertEqual(per_set(20.5, assembly), 82.0)
        self.assertEqual(per_set(None, assembly), "")
        self.assertEqual(per_set(20.5, None), "")


class LoggingConfigTests(TestCase):
    def test_build_logging_config(self):
        config = build_logging_config("debug", json_output=True)
        self.assertEqual(config["root"]["level"], "DEBUG")
        self.assertEqual(config["handlers"]["console"]["formatter"], "json")

        self.assertEqual(build_logging_config("chatty")["root"]["level"], "INFO")

    def test_json_formatter(self):
        record = logging.LogRecord("mbcb.views", logging.INFO, __file__, 10, "Priced %s", ("quote",), None)
        record.quote_configuration = "double_w_beam"

        entry = json.loads(JSONFormatter().format(record))

        self.assertEqual(entry["message"], "Priced quote")
        self.assertEqual(entry["level"], "INFO")
        self.assertEqual(entry["quote_configuration"], "double_w_beam")


EXAMPLE_BODY = {
    "configuration": "double_w_beam",
    "components": {
        "w_beam": {"thickness_mm": 2.5, "coating_gsm": 450},
        "post": {"thickness_mm": 4.5, "length_mm": 1800, "coating_gsm": 450},
        "spacer": {"thickness_mm": 4.5, "length_mm": 330, "coating_gsm": 450},
    },
    "fasteners": {"mode": "default"},
    "commercial": {"rate_per_kg": 65, "quantity_rm": 500},
    "place_of_supply": "Telangana",
}


@override_settings(MBCB_REFERENCE_TABLE_PATH="", MBCB_HOME_STATE="Telangana")
class CalculateViewTests(TestCase):
    def setUp(self):
        clear_reference_table()

    def tearDown(self):
        clear_reference_table()

    def _post(self, body):
        return self.client.post(reverse("calculate"), data=json.dumps(body), content_type="application/json")

    def test_example_scenario(self):
        response = self._post(EXAMPLE_BODY)

        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertAlmostEqual(data["totals"]["total_set_weight_kg"], 83.81575)
        self.assertAlmostEqual(data["totals"]["weight_per_rm_kg"], 20.9539375)
        self.assertAlmostEqual(data["cost"]["final_total"], 20.9539375 * 65 * 500, places=4)
        self.assertTrue(data["tax"]["is_intra_state"])
        self.assertEqual(data["tax"]["igst"], 0.0)
        self.assertTrue(data["complete"])

    def test_manual_fasteners_inter_state(self):
        body = dict(
            EXAMPLE_BODY,
            fasteners={"mode": "manual", "hex_bolt_qty": 20, "button_bolt_qty": 15},
            commercial={"rate_per_kg": 80},
            place_of_supply="Maharashtra",
        )

        data = self._post(body).json()

        self.assertAlmostEqual(data["totals"]["fastener_weight_kg"], 4.875)
        self.assertAlmostEqual(data["cost"]["final_total"], 390.0)
        self.assertAlmostEqual(data["tax"]["igst"], 70.2)
        self.assertAlmostEqual(data["tax"]["total_with_tax"], 460.2)
        self.assertFalse(data["parts"]["w_beam"]["included"])

    def test_incomplete_part_and_missing_rate(self):
        body = dict(
            EXAMPLE_BODY,
            components={"post": {"thickness_mm": 4.5, "coating_gsm": 450}},
            commercial={},
        )

        data = self._post(body).json()

        self.assertFalse(data["parts"]["post"]["found"])
        self.assertIn("Length", data["parts"]["post"]["error"])
        self.assertIsNone(data["cost"])
        self.assertEqual(data["cost_error"], "Rate per kg must be a positive number.")
        self.assertIsNone(data["tax"])

    def test_suggested_rate(self):
        data = self._post(dict(EXAMPLE_BODY, target_price=2000)).json()

        self.assertAlmostEqual(data["suggested_rate_per_kg"], 2000 / 20.9539375)

    def test_invalid_requests(self):
        response = self.client.post(reverse("calculate"), data="{not json", content_type="application/json")
        self.assertEqual(response.status_code, 400)

        self.assertEqual(self._post(dict(EXAMPLE_BODY, configuration="triple_beam")).status_code, 400)
        self.assertEqual(self._post(dict(EXAMPLE_BODY, components={"thrie_beam": {}})).status_code, 400)
        self.assertEqual(self._post(dict(EXAMPLE_BODY, commercial={"rate_per_kg": "cheap"})).status_code, 400)
        self.assertEqual(
            self._post(dict(EXAMPLE_BODY, fasteners={"mode": "manual", "hex_bolt_qty": -2})).status_code, 400
        )
        self.assertEqual(self._post([1, 2]).status_code, 400)

    def test_non_finite_numbers_rejected(self):
        response = self._post(dict(EXAMPLE_BODY, commercial={"rate_per_kg": 65, "quantity_rm": "inf"}))
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"], "Quantity (rm) must be a number.")

        response = self._post(dict(EXAMPLE_BODY, commercial={"rate_per_kg": "nan", "quantity_rm": 500}))
        self.assertEqual(response.status_code, 400)

        response = self.client.post(
            reverse("calculate"),
            data='{"commercial": {"rate_per_kg": 65, "quantity_rm": Infinity}}',
            content_type="application/json",
        )
        self.assertEqual(response.status_code, 400)

    def test_get_not_allowed(self):
        self.assertEqual(self.client.get(reverse("calculate")).status_code, 405)

    def test_table_source_requires_table(self):
        response = self._post(dict(EXAMPLE_BODY, weight_source="table"))
        self.assertEqual(response.status_code, 409)

    def test_table_source_uses_reference_weights(self):
        set_reference_table(load_reference_table(io.StringIO(REFERENCE_CSV)))

        data = self._post(dict(EXAMPLE_BODY, weight_source="table")).json()

        self.assertAlmostEqual(data["parts"]["w_beam"]["total_weight_kg"], 9.93)
        self.assertAlmostEqual(
            data["totals"]["total_set_weight_kg"], 2 * 9.93 + 2 * 22.87 + 4 * 3.59 + 4.0
        )


@override_settings(MBCB_REFERENCE_TABLE_PATH="")
class OptionsViewTests(TestCase):
    def setUp(self):
        clear_reference_table()

    def tearDown(self):
        clear_reference_table()

    def test_catalog_options(self):
        response = self.client.get(reverse("component_options", args=["single_thrie_beam", "spacer"]))

        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual(data["source"], "catalog")
        self.assertEqual(data["length"], [530.0, 550.0])

    def test_reference_table_options(self):
        set_reference_table(load_reference_table(io.StringIO(REFERENCE_CSV)))

        data = self.client.get(reverse("component_options", args=["double_w_beam", "post"])).json()

        self.assertEqual(data["source"], "reference_table")
        self.assertEqual(data["length"], [1800.0])

    def test_unknown_options(self):
        self.assertEqual(
            self.client.get(reverse("component_options", args=["single_thrie_beam", "w_beam"])).status_code, 404
        )
        self.assertEqual(self.client.get(reverse("component_options", args=["nope", "post"])).status_code, 404)


@override_settings(MBCB_REFERENCE_TABLE_PATH="", MBCB_HOME_STATE="Telangana")
class QuoteFormViewTests(TestCase):
    def setUp(self):
        clear_reference_table()

    def tearDown(self):
        clear_reference_table()

    def _form(self, **overrides):
        data = {
            "configuration": "double_w_beam",
            "w_beam_included": "on",
            "w_beam_thickness": "2.5",
            "w_beam_coating": "450",
            "post_included": "on",
            "post_thickness": "4.5",
            "post_length": "1800",
            "post_coating": "450",
            "spacer_included": "on",
            "spacer_thickness": "4.5",
            "spacer_length": "330",
            "spacer_coating": "450",
            "fastener_mode": "default",
            "rate_per_kg": "65",
            "quantity_rm": "500",
            "place_of_supply": "Hyderabad, Telangana",
            "specifying_components_confirmed": "on",
            "specifying_fasteners_confirmed": "on",
            "specifying_commercials_confirmed": "on",
            "specifying_quantity_confirmed": "on",
        }
        data.update(overrides)
        return data

    def test_get_renders_form(self):
        response = self.client.get(reverse("quote_form"))

        self.assertEqual(response.status_code, 200)
        self.assertContains(response, "Double W-Beam quotation")

    def test_home_redirects_to_form(self):
        self.assertRedirects(self.client.get(reverse("home")), reverse("quote_form"))

    def test_complete_quote(self):
        response = self.client.post(reverse("quote_form"), self._form())

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.context["stage"], "complete")
        self.assertAlmostEqual(response.context["result"].assembly.total_set_weight_kg, 83.81575)
        self.assertContains(response, "Quotation priced successfully.")

    def test_quantity_pending(self):
        response = self.client.post(
            reverse("quote_form"), self._form(quantity_rm="", specifying_quantity_confirmed="")
        )

        self.assertEqual(response.context["stage"], "specifying_quantity")
        self.assertIsNone(response.context["result"].cost.final_total)

    def test_invalid_number_shows_message(self):
        response = self.client.post(reverse("quote_form"), self._form(rate_per_kg="abc"))

        self.assertContains(response, "Rate per kg must be a number.")
        self.assertIsNone(response.context["result"])

    def test_missing_rate_after_confirming_commercials(self):
        response = self.client.post(reverse("quote_form"), self._form(rate_per_kg=""))

        self.assertContains(response, "Rate per kg must be a positive number.")
        self.assertEqual(response.context["stage"], "specifying_quantity")

    def test_suggested_rate(self):
        response = self.client.post(reverse("quote_form"), self._form(target_price="2000"))

        self.assertAlmostEqual(response.context["suggested_rate"], 2000 / 20.9539375)

    def test_unknown_configuration(self):
        response = self.client.post(reverse("quote_form"), self._form(configuration="triple"))
        self.assertEqual(response.status_code, 400)

    def test_posted_values_and_confirmations_are_kept(self):
        response = self.client.post(
            reverse("quote_form"),
            {
                "configuration": "double_w_beam",
                "post_included": "on",
                "post_thickness": "4.5",
                "fastener_mode": "manual",
                "hex_bolt_qty": "20",
                "rate_per_kg": "65",
                "specifying_fasteners_confirmed": "on",
            },
        )

        self.assertContains(response, 'name="rate_per_kg" value="65"')
        self.assertContains(response, 'name="post_thickness" value="4.5"')
        self.assertContains(response, 'name="hex_bolt_qty" value="20"')
        self.assertContains(response, 'name="fastener_mode" value="manual" checked')
        self.assertContains(response, 'name="specifying_fasteners_confirmed" value="on" checked')
        self.assertContains(response, 'name="specifying_commercials_confirmed" value="on" >')
        self.assertContains(response, 'name="w_beam_included" value="on" >')
        self.assertEqual(response.context["stage"], "specifying_commercials")

    def test_reference_table_drives_weights_and_options(self):
        set_reference_table(load_reference_table(io.StringIO(REFERENCE_CSV)))

        response = self.client.get(reverse("quote_form"))
        self.assertContains(response, '<option value="1800.0">')
        self.assertEqual(response.context["weight_source"], "reference_table")

        response = self.client.post(reverse("quote_form"), self._form())
        self.assertAlmostEqual(
            response.context["result"].assembly.total_set_weight_kg, 2 * 9.93 + 2 * 22.87 + 4 * 3.59 + 4.0
        )

        response = self.client.post(reverse("quote_form"), self._form(post_length="2000"))
        self.assertContains(response, "No matching Post row found.")


@override_settings(MBCB_REFERENCE_TABLE_PATH="")
class ReferenceUploadViewTests(TestCase):
    def setUp(self):
        clear_reference_table()

    def tearDown(self):
        clear_reference_table()

    def test_upload_table(self):
        upload = SimpleUploadedFile("weights.csv", REFERENCE_CSV.encode("utf-8"), content_type="text/csv")

        response = self.client.post(reverse("reference_upload"), {"table_file": upload})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.context["row_count"], 4)
        self.assertIsNotNone(get_reference_table())
        self.assertContains(response, "Reference weight table uploaded successfully.")

    def test_rejects_non_csv(self):
        upload = SimpleUploadedFile("weights.xlsx", b"binary", content_type="application/octet-stream")

        response = self.client.post(reverse("reference_upload"), {"table_file": upload})

        self.assertContains(response, "The uploaded file must be a .csv file.")
        self.assertIsNone(get_reference_table())

    def test_reports_bad_table(self):
        upload = SimpleUploadedFile("weights.csv", b"material_code,thickness\nA,2.5\n", content_type="text/csv")

        response = self.client.post(reverse("reference_upload"), {"table_file": upload})

        self.assertContains(response, "CSV is missing required columns")
        self.assertIsNone(get_reference_table())

    def test_reports_non_utf8_upload(self):
        content = (REFERENCE_CSV + "PO-45-2000,W-Beam Section,Post \xe9tir\xe9,4.5,2000,450,24.7,0.63\n").encode("latin-1")
        upload = SimpleUploadedFile("weights.csv", content, content_type="text/csv")

        response = self.client.post(reverse("reference_upload"), {"table_file": upload})

        self.assertEqual(response.status_code, 200)
        self.assertContains(response, "Could not read reference table")
        self.assertIsNone(get_reference_table())
