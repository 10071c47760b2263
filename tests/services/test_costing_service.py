"""Tests for CostingService (formula lookup, validation and roll-up)."""

from decimal import Decimal

import pytest
import yaml

from mfg_config import get_active_config
from mfg_kernel.exceptions import (
    ComponentNotFoundError,
    FormulaNotFoundError,
    InvalidInputError,
    UnresolvedConversionError,
)
from mfg_services import CostingService

COMPONENTS = [
    {"id": "OIL", "name": "Olive oil", "base_unit": "g", "cost_per_base_unit": "0.023"},
    {"id": "SHEA", "name": "Shea butter", "base_unit": "g", "cost_per_base_unit": "0.02"},
    {"id": "JAR", "name": "Jar", "base_unit": "each", "cost_per_base_unit": "0.50"},
]

FORMULAS = {
    "F-100": {
        "id": "F-100",
        "name": "Body oil",
        "version": 3,
        "lines": [
            {"line_id": "L1", "component_ref": "OIL", "quantity": "500", "unit": "g", "yield_pct": "95"},
        ],
    },
    "F-200": {
        "id": "F-200",
        "lines": [
            {"line_id": "L1", "component_ref": "SHEA", "quantity": "100", "unit": "ml"},
            {"line_id": "L2", "component_ref": "JAR", "quantity": "1", "unit": "each", "line_kind": "packaging"},
        ],
    },
    "F-BAD": {
        "id": "F-BAD",
        "lines": [
            {"line_id": "L1", "component_ref": "GHOST", "quantity": "1", "unit": "g"},
        ],
    },
}


class TestCostFormula:
    def setup_method(self):
        self.service = CostingService()

    def test_costs_formula_from_records(self):
        breakdown = self.service.cost_formula("F-100", FORMULAS, COMPONENTS, batch_quantity=1)

        assert breakdown.formula_id == "F-100"
        assert breakdown.unit_cost == Decimal("12.11")
        assert breakdown.target_price == Decimal("48.44")
        assert breakdown.gross_margin_pct == Decimal("75.0")

    def test_unknown_formula(self):
        with pytest.raises(FormulaNotFoundError) as exc_info:
            self.service.cost_formula("F-404", FORMULAS, COMPONENTS, batch_quantity=1)
        assert exc_info.value.formula_id == "F-404"

    def test_unknown_component(self, captured_logs):
        with pytest.raises(ComponentNotFoundError) as exc_info:
            self.service.cost_formula("F-BAD", FORMULAS, COMPONENTS, batch_quantity=1)

        assert exc_info.value.component_id == "GHOST"
        logs = captured_logs()
        assert not any(r["message"] == "rollup_started" for r in logs)
        warning = [r for r in logs if r["message"] == "component_not_found"]
        assert warning and warning[0]["formula_id"] == "F-BAD"

    def test_unresolved_lines_reported(self):
        breakdown = self.service.cost_formula("F-200", FORMULAS, COMPONENTS, batch_quantity=1)

        assert breakdown.requires_density == ("SHEA",)
        assert breakdown.packaging_subtotal == Decimal("0.50")

    def test_zero_density_leaves_only_that_line_unresolved(self):
        components = [
            {"id": "OIL", "base_unit": "g", "cost_per_base_unit": "0.02", "density_g_per_ml": 0},
            {"id": "WATER", "base_unit": "g", "cost_per_base_unit": "0.001"},
        ]
        formula = {
            "id": "F-300",
            "lines": [
                {"line_id": "L1", "component_ref": "OIL", "quantity": "100", "unit": "ml"},
                {"line_id": "L2", "component_ref": "WATER", "quantity": "500", "unit": "g"},
            ],
        }

        breakdown = self.service.roll_up(formula, components, batch_quantity=10)

        assert breakdown.requires_density == ("OIL",)
        assert [lc.component_id for lc in breakdown.lines] == ["WATER"]
        assert breakdown.materials == Decimal("0.50")
        assert breakdown.unit_cost == Decimal("0.05")
        assert not breakdown.is_complete

    def test_require_complete(self):
        with pytest.raises(UnresolvedConversionError) as exc_info:
            self.service.cost_formula(
                "F-200", FORMULAS, COMPONENTS, batch_quantity=1, require_complete=True
            )
        assert exc_info.value.requires_density == ["SHEA"]

    def test_components_keyed_by_id(self):
        keyed = {c["id"]: c for c in COMPONENTS}

        breakdown = self.service.cost_formula("F-100", FORMULAS, keyed, batch_quantity=1)

        assert breakdown.unit_cost == Decimal("12.11")

    def test_malformed_record_rejected(self):
        formulas = {"F": {"id": "F", "lines": [{"line_id": "L1", "component_ref": "OIL", "quantity": "-5", "unit": "g"}]}}

        with pytest.raises(InvalidInputError):
            self.service.cost_formula("F", formulas, COMPONENTS, batch_quantity=1)

    def test_logs_formula_costed(self, captured_logs):
        self.service.cost_formula("F-100", FORMULAS, COMPONENTS, batch_quantity=1)

        costed = [r for r in captured_logs() if r["message"] == "formula_costed"]
        assert len(costed) == 1
        assert costed[0]["formula_id"] == "F-100"
        assert costed[0]["formula_version"] == "3"
        assert costed[0]["config_checksum"] == self.service.config.checksum


class TestConfiguration:
    def test_uses_active_config(self):
        assert CostingService().pricing.markup_multiple == get_active_config().markup_multiple

    def test_injected_config(self, tmp_path):
        path = tmp_path / "retail.yaml"
        path.write_text(yaml.safe_dump({"costing": {"markup_multiple": 3}}))
        service = CostingService(get_active_config(path))

        breakdown = service.estimate_unit_cost(ingredients_cost=Decimal("10"), batch_qty=Decimal("10"))

        assert breakdown.unit_cost == Decimal("1.00")
        assert breakdown.target_price == Decimal("3.00")


class TestPricingOperations:
    def setup_method(self):
        self.service = CostingService()

    def test_estimate_unit_cost(self):
        breakdown = self.service.estimate_unit_cost(
            ingredients_cost=Decimal("200"),
            packaging_cost=Decimal("50"),
            labor_rate=Decimal("20"),
            labor_hours=Decimal("2"),
            overhead_pct=Decimal("0.15"),
            waste_pct=Decimal("0.05"),
            batch_qty=Decimal("1000"),
        )

        assert breakdown.total == Decimal("348.00")
        assert breakdown.unit_cost == Decimal("0.35")
        assert breakdown.target_price == Decimal("1.40")

    def test_analyze_pricing(self):
        result = self.service.analyze_pricing(Decimal("2.50"), fixed_costs=Decimal("1500"))

        assert result.target_price == Decimal("10.00")
        assert result.break_even_units == Decimal("200")

    def test_break_even(self):
        result = self.service.break_even(
            fixed_costs=Decimal("1000"), unit_cost=Decimal("4"), selling_price=Decimal("7")
        )

        assert result.contribution_margin == Decimal("3")
        assert result.break_even_units == Decimal("334")
        assert result.break_even_revenue == Decimal("2338")


class TestPackPricing:
    def setup_method(self):
        self.service = CostingService()

    def test_pack_priced_component_rolled_up(self):
        components = [
            {"id": "OIL", "base_unit": "g", "pack_price": "23", "pack_size_value": "1000", "pack_size_unit": "g"},
        ]

        breakdown = self.service.cost_formula("F-100", FORMULAS, components, batch_quantity=1)

        assert breakdown.lines[0].cost_per_base_unit == Decimal("0.023")
        assert breakdown.unit_cost == Decimal("12.11")

    def test_unconvertible_pack_flagged_as_missing_price(self):
        components = [
            {"id": "OIL", "base_unit": "g", "pack_price": "23", "pack_size_value": "1", "pack_size_unit": "l"},
        ]

        breakdown = self.service.cost_formula("F-100", FORMULAS, components, batch_quantity=1)

        assert breakdown.missing_prices == ("OIL",)
        assert breakdown.unit_cost == Decimal("0.00")

    def test_explicit_price_wins_over_pack(self):
        components = [
            {
                "id": "OIL",
                "base_unit": "g",
                "cost_per_base_unit": "0.023",
                "pack_price": "99",
                "pack_size_value": "1",
                "pack_size_unit": "g",
            },
        ]

        breakdown = self.service.cost_formula("F-100", FORMULAS, components, batch_quantity=1)

        assert breakdown.unit_cost == Decimal("12.11")

    def test_cost_per_base_unit(self):
        assert self.service.cost_per_base_unit("9.10", "1000", "ml", "g", density="0.91") == Decimal("0.01")

    def test_amortize_feeds_pricing(self):
        tooling = self.service.amortize(Decimal("600"), 200)

        result = self.service.analyze_pricing(Decimal("2.00") + tooling)

        assert tooling == Decimal("3")
        assert result.target_price == Decimal("20.00")
