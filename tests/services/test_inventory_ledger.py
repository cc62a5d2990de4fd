"""
Tests for InventoryLedger - FIFO layers per material.

Tests cover:
- Receipts (base and purchase units) and validation
- Availability and valuation queries
- FIFO consumption against the database and in memory
- No partial mutation across a multi-material consumption
- consume() is not idempotent
- Stock adjustments: new layers, reductions at a unit cost, shortfalls
"""

from datetime import UTC, datetime
from decimal import Decimal
from uuid import uuid4

import pytest

from garment_kernel.domain.clock import DeterministicClock
from garment_kernel.domain.values import Money, Quantity
from garment_kernel.exceptions import (
    CurrencyMismatchError,
    InsufficientInventoryError,
    InsufficientStockAtCostError,
    InvalidQuantityError,
    MaterialNotFoundError,
    UnitMismatchError,
)
from garment_services.inventory_ledger import InventoryLedger, StockAdjustment


def _q(value) -> Decimal:
    return Decimal(value).quantize(Decimal("0.0001"))


class TestReceive:
    def test_receive_creates_layer(self, erp, make_material):
        fabric = make_material()
        layer = erp.ledger.receive(
            fabric.material_id, Quantity.of(100, "m"), Money.of("2.00", "USD"), transaction_ref="PO-1"
        )

        assert layer.quantity_available == Decimal("100")
        assert layer.unit == "m"
        assert layer.transaction_ref == "PO-1"
        assert erp.ledger.available_quantity(fabric.material_id) == Decimal("100")

    def test_purchase_unit_converted(self, erp, make_material):
        fabric = make_material(purchase_unit="roll", conversion_factor="50")
        layer = erp.ledger.receive(
            fabric.material_id, Quantity.of(2, "roll"), Money.of("100.00", "USD")
        )

        assert layer.unit == "m"
        assert layer.quantity_available == Decimal("100")
        assert layer.unit_cost.amount == Decimal("2")

    def test_unknown_unit_rejected(self, erp, make_material):
        fabric = make_material()
        with pytest.raises(UnitMismatchError):
            erp.ledger.receive(fabric.material_id, Quantity.of(1, "kg"), Money.of("1", "USD"))

    def test_unknown_material_rejected(self, erp):
        with pytest.raises(MaterialNotFoundError):
            erp.ledger.receive(uuid4(), Quantity.of(1, "m"), Money.of("1", "USD"))

    @pytest.mark.parametrize("quantity", [0, -5])
    def test_non_positive_quantity_rejected(self, erp, make_material, quantity):
        fabric = make_material()
        with pytest.raises(InvalidQuantityError):
            erp.ledger.receive(fabric.material_id, Quantity.of(quantity, "m"), Money.of("1", "USD"))

    def test_foreign_currency_rejected(self, erp, make_material):
        fabric = make_material()
        with pytest.raises(CurrencyMismatchError):
            erp.ledger.receive(fabric.material_id, Quantity.of(1, "m"), Money.of("1", "EUR"))


class TestQueries:
    def test_layers_in_fifo_order(self, erp, make_material, stock):
        fabric = make_material()
        stock(fabric, (5, "2.00"), (5, "3.00"))

        layers = erp.ledger.get_layers(fabric.material_id)
        assert [layer.unit_cost.amount for layer in layers] == [Decimal("2.00"), Decimal("3.00")]

    def test_explicit_receipt_time_orders_layers(self, erp, make_material):
        fabric = make_material()
        erp.ledger.receive(
            fabric.material_id, Quantity.of(1, "m"), Money.of("9.00", "USD"),
            received_at=datetime(2030, 1, 1, tzinfo=UTC),
        )
        erp.ledger.receive(
            fabric.material_id, Quantity.of(1, "m"), Money.of("1.00", "USD"),
            received_at=datetime(2020, 1, 1, tzinfo=UTC),
        )

        consumption = erp.ledger.consume(fabric.material_id, Quantity.of(1, "m"))
        assert consumption.average_unit_cost.amount == Decimal("1.00")

    def test_check_availability_names_material(self, erp, make_material, stock):
        fabric = make_material("Poplin")
        stock(fabric, (3, "1.00"))

        with pytest.raises(InsufficientInventoryError) as exc_info:
            erp.ledger.check_availability(
                fabric.material_id, Quantity.of(4, "m"), material_name="Poplin"
            )
        assert str(exc_info.value).startswith("Insufficient inventory for Poplin.")

    def test_inventory_valuation(self, erp, make_material, stock):
        fabric = make_material()
        stock(fabric, (5, "2.00"), (5, "3.00"))

        valuation = erp.ledger.inventory_valuation(fabric.material_id)
        assert valuation.quantity == Decimal("10")
        assert valuation.value.amount == Decimal("25.00")
        assert valuation.layer_count == 2
        assert valuation.average_unit_cost.amount == Decimal("2.5")

    def test_empty_valuation(self, erp, make_material):
        valuation = erp.ledger.inventory_valuation(make_material().material_id)
        assert valuation.quantity == 0
        assert valuation.average_unit_cost.is_zero


class TestConsume:
    def test_worked_example(self, erp, make_material, stock):
        fabric = make_material()
        stock(fabric, (5, "2.00"), (5, "3.00"))

        consumption = erp.ledger.consume(fabric.material_id, Quantity.of(7, "m"))

        assert consumption.total_cost.amount == Decimal("16.00")
        assert _q(consumption.average_unit_cost.amount) == Decimal("2.2857")
        remaining = erp.ledger.get_layers(fabric.material_id, include_depleted=True)
        assert [layer.quantity_available for layer in remaining] == [Decimal("0"), Decimal("3")]
        assert erp.ledger.available_quantity(fabric.material_id) == Decimal("3")

    def test_depleted_layers_hidden_by_default(self, erp, make_material, stock):
        fabric = make_material()
        stock(fabric, (5, "2.00"), (5, "3.00"))
        erp.ledger.consume(fabric.material_id, Quantity.of(5, "m"))

        assert len(erp.ledger.get_layers(fabric.material_id)) == 1

    def test_not_idempotent(self, erp, make_material, stock):
        fabric = make_material()
        stock(fabric, (10, "1.00"))

        erp.ledger.consume(fabric.material_id, Quantity.of(4, "m"))
        erp.ledger.consume(fabric.material_id, Quantity.of(4, "m"))

        assert erp.ledger.available_quantity(fabric.material_id) == Decimal("2")

    def test_insufficient_leaves_layers_untouched(self, erp, make_material, stock):
        fabric = make_material()
        stock(fabric, (5, "2.00"), (1, "3.00"))

        with pytest.raises(InsufficientInventoryError):
            erp.ledger.consume(fabric.material_id, Quantity.of(7, "m"))

        layers = erp.ledger.get_layers(fabric.material_id)
        assert [layer.quantity_available for layer in layers] == [Decimal("5"), Decimal("1")]

    def test_consume_many_is_all_or_nothing(self, erp, make_material, stock):
        fabric = make_material("Fabric")
        trim = make_material("Trim")
        stock(fabric, (10, "1.00"))
        stock(trim, (1, "1.00"))

        with pytest.raises(InsufficientInventoryError) as exc_info:
            erp.ledger.consume_many(
                [
                    (fabric.material_id, Quantity.of(4, "m")),
                    (trim.material_id, Quantity.of(2, "m")),
                ]
            )

        assert exc_info.value.material_id == trim.material_id
        assert erp.ledger.available_quantity(fabric.material_id) == Decimal("10")

    def test_repeated_material_draws_from_planned_state(self, erp, make_material, stock):
        fabric = make_material()
        stock(fabric, (5, "2.00"), (5, "3.00"))

        first, second = erp.ledger.consume_many(
            [
                (fabric.material_id, Quantity.of(4, "m")),
                (fabric.material_id, Quantity.of(4, "m")),
            ]
        )

        assert first.total_cost.amount == Decimal("8.00")
        # 1 @ 2.00 + 3 @ 3.00
        assert second.total_cost.amount == Decimal("11.00")

    def test_consumption_logged(self, erp, make_material, stock, captured_logs):
        fabric = make_material()
        stock(fabric, (5, "2.00"))
        erp.ledger.consume(fabric.material_id, Quantity.of(2, "m"))

        records = [r for r in captured_logs() if r["message"] == "inventory_consumed"]
        assert records[0]["material_id"] == str(fabric.material_id)
        assert records[0]["layers_touched"] == 1


class TestAdjust:
    def test_positive_delta_adds_adjustment_layer(self, erp, make_material, stock):
        fabric = make_material()
        stock(fabric, (5, "2.00"))

        result = erp.ledger.adjust(
            fabric.material_id, [StockAdjustment(Money.of("2.50", "USD"), Quantity.of(3, "m"))]
        )

        (created,) = result.layers_created
        assert created.transaction_ref == "ADJ"
        assert created.unit_cost == Money.of("2.50", "USD")
        assert result.reductions == ()
        layers = erp.ledger.get_layers(fabric.material_id)
        assert [layer.quantity_available for layer in layers] == [Decimal("5"), Decimal("3")]

    def test_new_layer(self, erp, make_material):
        fabric = make_material()

        result = erp.ledger.adjust(
            fabric.material_id,
            [],
            new_layer=StockAdjustment(Money.of("4.00", "USD"), Quantity.of(7, "m")),
            transaction_ref="COUNT-2024-03",
        )

        assert result.net_change == Decimal("7")
        assert result.layers_created[0].transaction_ref == "COUNT-2024-03"
        assert erp.ledger.inventory_valuation(fabric.material_id).value.amount == Decimal("28.00")

    def test_negative_delta_reduces_layers_at_that_cost_oldest_first(
        self, erp, make_material, stock
    ):
        fabric = make_material()
        stock(fabric, (4, "2.00"), (5, "3.00"), (6, "2.00"))

        result = erp.ledger.adjust(
            fabric.material_id, [StockAdjustment(Money.of("2.00", "USD"), Quantity.of(-5, "m"))]
        )

        (reduction,) = result.reductions
        assert [take.quantity_taken for take in reduction.layers_consumed] == [
            Decimal("4"),
            Decimal("1"),
        ]
        layers = erp.ledger.get_layers(fabric.material_id, include_depleted=True)
        assert [layer.quantity_available for layer in layers] == [
            Decimal("0"),
            Decimal("5"),
            Decimal("5"),
        ]

    def test_shortfall_at_cost_changes_nothing(self, erp, make_material, stock):
        fabric = make_material()
        stock(fabric, (5, "2.00"), (10, "3.00"))

        with pytest.raises(InsufficientStockAtCostError) as exc_info:
            erp.ledger.adjust(
                fabric.material_id,
                [
                    StockAdjustment(Money.of("4.00", "USD"), Quantity.of(3, "m")),
                    StockAdjustment(Money.of("2.00", "USD"), Quantity.of(-6, "m")),
                ],
            )

        error = exc_info.value
        assert isinstance(error, InsufficientInventoryError)
        assert error.code == "INSUFFICIENT_STOCK_AT_COST"
        assert (error.available, error.required) == (Decimal("5"), Decimal("6"))
        layers = erp.ledger.get_layers(fabric.material_id)
        assert [layer.quantity_available for layer in layers] == [Decimal("5"), Decimal("10")]

    def test_other_costs_do_not_cover_a_reduction(self, erp, make_material, stock):
        fabric = make_material()
        stock(fabric, (10, "3.00"))

        with pytest.raises(InsufficientStockAtCostError):
            erp.ledger.adjust(
                fabric.material_id, [StockAdjustment(Money.of("2.00", "USD"), Quantity.of(-1, "m"))]
            )

    def test_purchase_unit_reduction_converted(self, erp, make_material):
        fabric = make_material(purchase_unit="roll", conversion_factor="50")
        erp.ledger.receive(fabric.material_id, Quantity.of(2, "roll"), Money.of("100.00", "USD"))

        erp.ledger.adjust(
            fabric.material_id,
            [StockAdjustment(Money.of("100.00", "USD"), Quantity.of(-1, "roll"))],
        )

        assert erp.ledger.available_quantity(fabric.material_id) == Decimal("50")

    def test_zero_delta_ignored(self, erp, make_material, stock):
        fabric = make_material()
        stock(fabric, (5, "2.00"))

        result = erp.ledger.adjust(
            fabric.material_id, [StockAdjustment(Money.of("2.00", "USD"), Quantity.of(0, "m"))]
        )

        assert result.net_change == 0
        assert erp.ledger.available_quantity(fabric.material_id) == Decimal("5")

    def test_non_positive_new_layer_rejected(self, erp, make_material):
        fabric = make_material()
        with pytest.raises(InvalidQuantityError):
            erp.ledger.adjust(
                fabric.material_id,
                [],
                new_layer=StockAdjustment(Money.of("1.00", "USD"), Quantity.of(-2, "m")),
            )

    def test_adjustment_logged(self, erp, make_material, stock, captured_logs):
        fabric = make_material()
        stock(fabric, (10, "1.00"))

        erp.ledger.adjust(
            fabric.material_id,
            [
                StockAdjustment(Money.of("1.50", "USD"), Quantity.of(2, "m")),
                StockAdjustment(Money.of("1.00", "USD"), Quantity.of(-3, "m")),
            ],
        )

        (record,) = [r for r in captured_logs() if r["message"] == "inventory_adjusted"]
        assert record["layers_created"] == 1
        assert record["layers_reduced"] == 1
        assert Decimal(record["net_change"]) == Decimal("-1")


class TestInMemoryLedger:
    def _ledger(self) -> InventoryLedger:
        return InventoryLedger(
            clock=DeterministicClock(datetime(2024, 1, 1, tzinfo=UTC)),
        )

    def test_worked_example_in_memory(self):
        ledger = self._ledger()
        material_id = uuid4()
        ledger.receive(
            material_id, Quantity.of(5, "m"), Money.of("2.00", "USD"),
            received_at=datetime(2024, 1, 1, 1, tzinfo=UTC),
        )
        ledger.receive(
            material_id, Quantity.of(5, "m"), Money.of("3.00", "USD"),
            received_at=datetime(2024, 1, 1, 2, tzinfo=UTC),
        )

        consumption = ledger.consume(material_id, Quantity.of(7, "m"))

        assert consumption.total_cost.amount == Decimal("16.00")
        assert [
            layer.quantity_available
            for layer in ledger.get_layers(material_id, include_depleted=True)
        ] == [Decimal("0"), Decimal("3")]

    def test_unknown_material_has_no_stock(self):
        ledger = self._ledger()
        material_id = uuid4()
        assert ledger.available_quantity(material_id) == 0
        with pytest.raises(InsufficientInventoryError):
            ledger.consume(material_id, Quantity.of(1, "m"))

    def test_adjust_in_memory(self):
        ledger = self._ledger()
        material_id = uuid4()
        ledger.receive(material_id, Quantity.of(5, "m"), Money.of("2.00", "USD"))

        ledger.adjust(
            material_id,
            [StockAdjustment(Money.of("2.00", "USD"), Quantity.of(-2, "m"))],
            new_layer=StockAdjustment(Money.of("2.20", "USD"), Quantity.of(4, "m")),
        )

        # Both layers carry the fixed clock time
        assert sorted(layer.quantity_available for layer in ledger.get_layers(material_id)) == [
            Decimal("3"),
            Decimal("4"),
        ]
