import json
import logging
import math
from typing import Dict, Mapping

from django.conf import settings
from django.contrib import messages
from django.http import HttpResponseBadRequest, JsonResponse
from django.shortcuts import redirect, render
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_POST

from .catalog import CONFIGURATIONS, DOUBLE_W_BEAM, UnknownConfiguration, component_options, get_configuration
from .domain_models import (
    BarrierConfiguration,
    CommercialInputs,
    ComponentKind,
    ComponentSelection,
    ComponentSpec,
    DefaultFasteners,
    FastenerSelection,
    ManualFasteners,
    QuoteInputs,
    QuoteResult,
)
from .pricing_engine import (
    PricingError,
    is_intra_state,
    price_quote,
    solve_rate_for_target_price,
    validate_component_spec,
)
from .reference_table import (
    ReferenceTableError,
    distinct_values,
    load_reference_table,
    reference_component_weight,
)
from .state import get_reference_table, set_reference_table
from .workflow import QuoteProgress, QuoteStage

logger = logging.getLogger(__name__)


def _optional_float(value, field_name: str) -> float | None:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValueError(f"{field_name} must be a number.")
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{field_name} must be a number.") from exc
    if not math.isfinite(number):
        raise ValueError(f"{field_name} must be a number.")
    return number


def _optional_int(value, field_name: str) -> int:
    if value is None or value == "":
        return 0
    if isinstance(value, bool):
        raise ValueError(f"{field_name} must be a whole number.")
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{field_name} must be a whole number.") from exc
    if not number.is_integer():
        raise ValueError(f"{field_name} must be a whole number.")
    if number < 0:
        raise ValueError(f"{field_name} cannot be negative.")
    return int(number)


def _flag(value) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "on", "yes"}
    return bool(value)


def _parse_kind(name: str, configuration: BarrierConfiguration) -> ComponentKind:
    try:
        kind = ComponentKind(name)
    except ValueError as exc:
        raise ValueError(f"Unknown component: {name}.") from exc
    configuration.multiplier_for(kind)
    return kind


def _parse_fasteners(mode, hex_qty, button_qty) -> FastenerSelection:
    if mode in (None, "", "default"):
        return DefaultFasteners()
    if mode != "manual":
        raise ValueError("Fastener mode must be 'default' or 'manual'.")
    return ManualFasteners(
        hex_bolt_qty=_optional_int(hex_qty, "Hex bolt quantity"),
        button_bolt_qty=_optional_int(button_qty, "Button bolt quantity"),
    )


def _parse_commercial(data: Mapping) -> CommercialInputs:
    return CommercialInputs(
        rate_per_kg=_optional_float(data.get("rate_per_kg"), "Rate per kg"),
        transport_cost_per_kg=_optional_float(data.get("transport_cost_per_kg"), "Transport cost per kg"),
        installation_cost_per_rm=_optional_float(data.get("installation_cost_per_rm"), "Installation cost per rm"),
        quantity_rm=_optional_float(data.get("quantity_rm"), "Quantity (rm)"),
        include_transport=_flag(data.get("include_transport", False)),
        include_installation=_flag(data.get("include_installation", False)),
    )


def _table_resolver(table, section: str | None):
    def resolve(kind: ComponentKind, spec: ComponentSpec | None):
        return reference_component_weight(table, kind, validate_component_spec(kind, spec), section=section)

    return resolve


def _suggested_rate(result: QuoteResult, commercial: CommercialInputs, target_price: float | None) -> float | None:
    if target_price is None:
        return None
    return solve_rate_for_target_price(
        target_price,
        result.assembly.cost_basis_kg,
        commercial,
        manual_fasteners=result.assembly.manual_fasteners,
    )


def _options_for(configuration: BarrierConfiguration, kind: ComponentKind, table) -> Dict[str, list]:
    if table is None:
        return component_options(configuration, kind)
    return {
        "thickness": distinct_values(table, kind, "thickness"),
        "length": [] if kind.is_rail else distinct_values(table, kind, "length"),
        "coating_gsm": distinct_values(table, kind, "coating_gsm"),
    }


def _home_state() -> str:
    return getattr(settings, "MBCB_HOME_STATE", "Telangana")


@csrf_exempt
@require_POST
def calculate_view(request):
    """Price a quote snapshot posted as JSON."""
    try:
        body = json.loads(request.body or b"{}")
    except (json.JSONDecodeError, UnicodeDecodeError):
        return JsonResponse({"error": "Request body must be valid JSON."}, status=400)
    if not isinstance(body, dict):
        return JsonResponse({"error": "Request body must be a JSON object."}, status=400)

    try:
        configuration = get_configuration(body.get("configuration") or DOUBLE_W_BEAM.name)
    except UnknownConfiguration as exc:
        return JsonResponse({"error": f"Unknown configuration: {exc.args[0]}"}, status=400)

    try:
        components: Dict[ComponentKind, ComponentSelection] = {}
        raw_components = body.get("components") or {}
        if not isinstance(raw_components, dict):
            raise ValueError("components must be an object.")
        for name, raw in raw_components.items():
            kind = _parse_kind(name, configuration)
            raw = raw or {}
            spec = ComponentSpec(
                thickness_mm=_optional_float(raw.get("thickness_mm"), f"{kind.label} thickness"),
                coating_gsm=_optional_float(raw.get("coating_gsm"), f"{kind.label} coating GSM"),
                length_mm=None if kind.is_rail else _optional_float(raw.get("length_mm"), f"{kind.label} length"),
            )
            components[kind] = ComponentSelection(spec=spec, included=_flag(raw.get("included", True)))

        raw_fasteners = body.get("fasteners") or {}
        fasteners = _parse_fasteners(
            raw_fasteners.get("mode"),
            raw_fasteners.get("hex_bolt_qty"),
            raw_fasteners.get("button_bolt_qty"),
        )
        commercial = _parse_commercial(body.get("commercial") or {})
        target_price = _optional_float(body.get("target_price"), "Target price")
    except (ValueError, AttributeError) as exc:
        logger.info("Rejected calculate request: %s", exc)
        return JsonResponse({"error": str(exc)}, status=400)

    resolver = None
    if body.get("weight_source") == "table":
        table = get_reference_table()
        if table is None:
            return JsonResponse({"error": "No reference weight table has been uploaded."}, status=409)
        resolver = _table_resolver(table, body.get("section"))

    inputs = QuoteInputs(
        configuration=configuration,
        components=components,
        fasteners=fasteners,
        commercial=commercial,
        is_intra_state=is_intra_state(body.get("place_of_supply"), _home_state()),
    )
    result = price_quote(inputs, resolve_weight=resolver)
    payload = result.as_payload()

    if target_price is not None:
        try:
            payload["suggested_rate_per_kg"] = _suggested_rate(result, commercial, target_price)
        except PricingError as exc:
            payload["suggested_rate_error"] = str(exc)

    return JsonResponse(payload)


@require_GET
def options_view(request, configuration_name: str, kind_name: str):
    try:
        configuration = get_configuration(configuration_name)
        kind = _parse_kind(kind_name, configuration)
    except UnknownConfiguration:
        return JsonResponse({"error": f"Unknown configuration: {configuration_name}"}, status=404)
    except ValueError as exc:
        return JsonResponse({"error": str(exc)}, status=404)

    table = get_reference_table()
    options = _options_for(configuration, kind, table)
    source = "catalog" if table is None else "reference_table"

    return JsonResponse({"configuration": configuration.name, "component": kind.value, "source": source, **options})


def home(request):
    return redirect("quote_form")


def _progress_from_post(post, manual: bool) -> QuoteProgress:
    progress = QuoteProgress(manual_fasteners=manual)
    for stage in progress.applicable_stages:
        if _flag(post.get(f"{stage.value}_confirmed")):
            progress = progress.confirm(stage)
    return progress


def quote_form_view(request):
    configuration_name = request.POST.get("configuration") or request.GET.get("configuration") or DOUBLE_W_BEAM.name
    try:
        configuration = get_configuration(configuration_name)
    except UnknownConfiguration:
        return HttpResponseBadRequest("Unknown configuration.")

    table = get_reference_table()
    post = request.POST if request.method == "POST" else {}
    context: dict[str, object] = {
        "configurations": list(CONFIGURATIONS.values()),
        "configuration": configuration,
        "component_kinds": [
            {
                "kind": kind,
                "options": _options_for(configuration, kind, table),
                "values": {
                    "included": _flag(post.get(f"{kind.value}_included")) if post else True,
                    "thickness": post.get(f"{kind.value}_thickness", ""),
                    "length": post.get(f"{kind.value}_length", ""),
                    "coating": post.get(f"{kind.value}_coating", ""),
                },
            }
            for kind in configuration.component_kinds
        ],
        "weight_source": "reference_table" if table is not None else "formulas",
        "form_values": {},
        "result": None,
        "stage": QuoteStage.SPECIFYING_COMPONENTS.value,
    }

    if request.method == "POST":
        try:
            components = {
                kind: ComponentSelection(
                    spec=ComponentSpec(
                        thickness_mm=_optional_float(post.get(f"{kind.value}_thickness"), f"{kind.label} thickness"),
                        coating_gsm=_optional_float(post.get(f"{kind.value}_coating"), f"{kind.label} coating GSM"),
                        length_mm=None
                        if kind.is_rail
                        else _optional_float(post.get(f"{kind.value}_length"), f"{kind.label} length"),
                    ),
                    included=_flag(post.get(f"{kind.value}_included")),
                )
                for kind in configuration.component_kinds
            }
            fasteners = _parse_fasteners(
                post.get("fastener_mode"), post.get("hex_bolt_qty"), post.get("button_bolt_qty")
            )
            commercial = _parse_commercial(post)
            target_price = _optional_float(post.get("target_price"), "Target price")
        except ValueError as exc:
            logger.info("Rejected quote form: %s", exc)
            messages.error(request, str(exc))
        else:
            place_of_supply = post.get("place_of_supply") or ""
            result = price_quote(
                QuoteInputs(
                    configuration=configuration,
                    components=components,
                    fasteners=fasteners,
                    commercial=commercial,
                    is_intra_state=is_intra_state(place_of_supply, _home_state()),
                ),
                resolve_weight=_table_resolver(table, None) if table is not None else None,
            )
            for error in result.component_errors.values():
                messages.error(request, error)
            if result.cost_error and _flag(post.get(f"{QuoteStage.SPECIFYING_COMMERCIALS.value}_confirmed")):
                messages.error(request, result.cost_error)

            if target_price is not None:
                try:
                    context["suggested_rate"] = _suggested_rate(result, commercial, target_price)
                except PricingError as exc:
                    messages.error(request, str(exc))

            progress = _progress_from_post(post, isinstance(fasteners, ManualFasteners))
            context.update(
                {
                    "result": result,
                    "payload": result.as_payload(),
                    "stage": progress.current_stage(result.tax is not None).value,
                }
            )
            if result.is_complete:
                messages.success(request, "Quotation priced successfully.")

        context["form_values"] = post

    return render(request, "mbcb/quote_form.html", context)


def reference_upload_view(request):
    context: dict[str, object] = {}

    if request.method == "POST":
        table_file = request.FILES.get("table_file")
        if not table_file:
            messages.error(request, "Please select a reference table CSV file to upload.")
        elif not table_file.name.lower().endswith(".csv"):
            messages.error(request, "The uploaded file must be a .csv file.")
        else:
            try:
                table = load_reference_table(table_file)
            except ReferenceTableError as exc:
                messages.error(request, str(exc))
            else:
                set_reference_table(table)
                context["row_count"] = len(table)
                messages.success(request, "Reference weight table uploaded successfully.")

    table = get_reference_table()
    context.setdefault("row_count", len(table) if table is not None else 0)
    return render(request, "mbcb/reference_upload.html", context)
