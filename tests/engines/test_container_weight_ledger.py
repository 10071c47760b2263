"""
Tests for the pure container weight ledger.

Covers:
- Tare resolution (refined over calculated)
- Net weight and auto-empty on capture
- Negative net rejection
- Status moves and container registration
"""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from mfg_engines.container_weight import (
    BACKSTOCK_LOCATION,
    PRODUCTION_LOCATION,
    ContainerWeightLedger,
    resolve_tare,
)
from mfg_kernel.domain.dtos import ContainerSnapshot, ContainerStatus, MeasurementType
from mfg_kernel.exceptions import InvalidInputError, NegativeNetWeightError

NOW = datetime(2024, 3, 1, 9, 30, tzinfo=timezone.utc)
ACTOR = "9a3c7f0e-8e57-4c44-9d0a-3e7d7f4f2b11"


def _container(**overrides):
    fields = dict(
        container_id="c-1",
        weight_unit="g",
        status=ContainerStatus.ACTIVE,
        calculated_tare_weight=Decimal("120"),
        current_gross_weight=Decimal("1000"),
        current_net_weight=Decimal("880"),
        location="Production Floor",
        version=3,
    )
    fields.update(overrides)
    return ContainerSnapshot(**fields)


class TestResolveTare:
    def test_calculated_tare(self):
        assert resolve_tare(_container()) == Decimal("120")

    def test_refined_tare_wins(self):
        assert resolve_tare(_container(refined_tare_weight=Decimal("118"))) == Decimal("118")

    def test_refined_zero_counts(self):
        assert resolve_tare(_container(refined_tare_weight=Decimal("0"))) == Decimal("0")

    def test_no_tare_is_zero(self):
        assert resolve_tare(_container(calculated_tare_weight=None)) == Decimal("0")


class TestCaptureWeight:
    """Scale readings against a container snapshot."""

    def setup_method(self):
        self.ledger = ContainerWeightLedger()

    def _capture(self, container, gross, **kwargs):
        kwargs.setdefault("actor_id", ACTOR)
        kwargs.setdefault("measured_at", NOW)
        return self.ledger.capture_weight(container, gross, **kwargs)

    def test_net_from_gross_and_tare(self):
        capture = self._capture(_container(), Decimal("825"))

        assert capture.container.current_gross_weight == Decimal("825")
        assert capture.container.current_net_weight == Decimal("705")
        assert capture.container.status == ContainerStatus.ACTIVE
        assert not capture.status_changed
        assert capture.measurement.tare_weight_used == Decimal("120")
        assert capture.measurement.net_weight == Decimal("705")

    def test_version_increments(self):
        capture = self._capture(_container(version=3), Decimal("825"))

        assert capture.container.version == 4
        assert capture.measurement.container_version == 4

    def test_input_snapshot_untouched(self):
        original = _container()
        self._capture(original, Decimal("825"))

        assert original.current_net_weight == Decimal("880")
        assert original.version == 3

    def test_uses_refined_tare(self):
        capture = self._capture(_container(refined_tare_weight=Decimal("125")), Decimal("825"))

        assert capture.container.current_net_weight == Decimal("700")
        assert capture.measurement.tare_weight_used == Decimal("125")

    def test_zero_net_empties_container(self):
        capture = self._capture(_container(), Decimal("120"))

        assert capture.container.current_net_weight == Decimal("0")
        assert capture.container.status == ContainerStatus.EMPTY
        assert capture.previous_status == ContainerStatus.ACTIVE
        assert capture.status_changed

    def test_archived_stays_archived(self):
        capture = self._capture(_container(status=ContainerStatus.ARCHIVED), Decimal("120"))

        assert capture.container.status == ContainerStatus.ARCHIVED
        assert not capture.status_changed

    def test_negative_net_rejected(self, captured_logs):
        with pytest.raises(NegativeNetWeightError) as exc_info:
            self._capture(_container(), Decimal("100"))

        exc = exc_info.value
        assert exc.net_weight == Decimal("-20")
        assert exc.tare_weight == Decimal("120")
        assert exc.unit == "g"
        assert "Net weight is negative" in str(exc)
        assert any(r["message"] == "weight_capture_negative_net" for r in captured_logs())

    def test_measurement_fields(self):
        capture = self._capture(
            _container(),
            "825",
            measurement_type="production_use",
            notes="batch B-7",
            source="scale",
            batch_id="B-7",
            unit="G",
        )

        m = capture.measurement
        assert m.measurement_type == MeasurementType.PRODUCTION_USE
        assert m.measured_by == ACTOR
        assert m.measured_at == NOW
        assert m.source == "scale"
        assert m.batch_id == "B-7"
        assert m.notes == "batch B-7"
        assert capture.container.last_weighed_at == NOW
        assert capture.container.last_weighed_by == ACTOR

    def test_unit_mismatch_rejected(self):
        with pytest.raises(InvalidInputError) as exc_info:
            self._capture(_container(), Decimal("825"), unit="ml")
        assert exc_info.value.field == "unit"

    @pytest.mark.parametrize("gross", [Decimal("-1"), None, "heavy", Decimal("NaN")])
    def test_invalid_gross_rejected(self, gross):
        with pytest.raises(InvalidInputError):
            self._capture(_container(), gross)

    def test_actor_required(self):
        with pytest.raises(InvalidInputError) as exc_info:
            self.ledger.capture_weight(_container(), Decimal("825"), measured_at=NOW)
        assert exc_info.value.field == "actor_id"

    def test_time_required(self):
        with pytest.raises(InvalidInputError) as exc_info:
            self.ledger.capture_weight(_container(), Decimal("825"), actor_id=ACTOR)
        assert exc_info.value.field == "measured_at"

    def test_unknown_measurement_type_rejected(self):
        with pytest.raises(InvalidInputError):
            self._capture(_container(), Decimal("825"), measurement_type="guess")


class TestStatusMoves:
    def setup_method(self):
        self.ledger = ContainerWeightLedger()

    def test_move_to_production(self):
        moved = self.ledger.move_to_production(
            _container(status=ContainerStatus.BACKSTOCK, location=BACKSTOCK_LOCATION)
        )

        assert moved.status == ContainerStatus.ACTIVE
        assert moved.location == PRODUCTION_LOCATION
        assert moved.version == 4

    def test_move_to_backstock(self):
        moved = self.ledger.move_to_backstock(_container())

        assert moved.status == ContainerStatus.BACKSTOCK
        assert moved.location == BACKSTOCK_LOCATION

    def test_set_status_keeps_location(self):
        moved = self.ledger.set_status(_container(), "quarantine")

        assert moved.status == ContainerStatus.QUARANTINE
        assert moved.location == "Production Floor"
        assert moved.current_net_weight == Decimal("880")

    def test_unknown_status_rejected(self):
        with pytest.raises(InvalidInputError) as exc_info:
            self.ledger.set_status(_container(), "lost")
        assert exc_info.value.field == "status"


class TestOpenContainer:
    def setup_method(self):
        self.ledger = ContainerWeightLedger()

    def test_tare_from_label(self):
        capture = self.ledger.open_container(
            container_id="c-9",
            weight_unit="g",
            initial_gross_weight=Decimal("1120"),
            intended_net_weight=Decimal("1000"),
            actor_id=ACTOR,
            measured_at=NOW,
            item_id="ITEM-1",
        )

        assert capture.container.calculated_tare_weight == Decimal("120")
        assert capture.container.current_net_weight == Decimal("1000")
        assert capture.container.status == ContainerStatus.BACKSTOCK
        assert capture.container.location == BACKSTOCK_LOCATION
        assert capture.container.version == 1
        assert capture.measurement.measurement_type == MeasurementType.INITIAL_SETUP
        assert capture.measurement.container_version == 1

    def test_intended_above_gross_rejected(self):
        with pytest.raises(InvalidInputError) as exc_info:
            self.ledger.open_container(
                container_id="c-9",
                weight_unit="g",
                initial_gross_weight=Decimal("900"),
                intended_net_weight=Decimal("1000"),
                actor_id=ACTOR,
                measured_at=NOW,
            )
        assert exc_info.value.field == "intended_net_weight"


    def test_zero_intended_net_opens_empty(self):
        capture = self.ledger.open_container(
            container_id="c-9",
            weight_unit="g",
            initial_gross_weight=Decimal("120"),
            intended_net_weight=Decimal("0"),
            actor_id=ACTOR,
            measured_at=NOW,
        )

        assert capture.container.status == ContainerStatus.EMPTY
        assert capture.container.calculated_tare_weight == Decimal("120")
        assert capture.measurement.net_weight == Decimal("0")

    def test_zero_intended_net_keeps_archived(self):
        capture = self.ledger.open_container(
            container_id="c-9",
            weight_unit="g",
            initial_gross_weight=Decimal("120"),
            intended_net_weight=Decimal("0"),
            actor_id=ACTOR,
            measured_at=NOW,
            status=ContainerStatus.ARCHIVED,
        )

        assert capture.container.status == ContainerStatus.ARCHIVED
