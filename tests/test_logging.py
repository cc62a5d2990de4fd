"""
Tests for structured logging (garment_kernel/logging_config.py) and the
engine trace records built on it (garment_engines/tracer.py).
"""

import json
import logging
from datetime import UTC, datetime
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from garment_engines.tracer import compute_input_fingerprint
from garment_engines.valuation.fifo import InventoryLayer, plan_fifo_consumption
from garment_kernel.domain.values import Money, Quantity
from garment_kernel.exceptions import InsufficientInventoryError
from garment_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture
def json_logs():
    """
    Fresh logging configuration writing JSON into a buffer.

    Returns ``read()`` which parses every line emitted so far.  The
    suite-wide configuration is restored afterwards.
    """
    reset_logging()
    LogContext.clear()
    stream = StringIO()
    configure_logging(level=logging.DEBUG, stream=stream)

    def read() -> list[dict]:
        return [json.loads(line) for line in stream.getvalue().splitlines() if line]

    yield read

    LogContext.clear()
    reset_logging()
    configure_logging(level=logging.DEBUG, stream=StringIO())


class TestStructuredFormatter:
    def test_one_json_object_per_record(self, json_logs):
        get_logger("services.inventory_ledger").info("inventory_layer_received")
        get_logger("services.inventory_ledger").info("inventory_consumed")

        first, second = json_logs()
        assert first["message"] == "inventory_layer_received"
        assert second["message"] == "inventory_consumed"
        assert first["logger"] == "garment_erp.services.inventory_ledger"
        assert first["level"] == "INFO"
        assert datetime.fromisoformat(first["ts"]).tzinfo is not None

    def test_extra_values_are_rendered(self, json_logs):
        material_id = uuid4()
        get_logger("test").info(
            "inventory_consumed",
            extra={"material_id": material_id, "quantity": Decimal("2.50"), "layers_touched": 2},
        )

        (record,) = json_logs()
        assert record["material_id"] == str(material_id)
        assert record["quantity"] == "2.50"
        assert record["layers_touched"] == 2

    def test_context_fields_are_merged(self, json_logs):
        with LogContext.bind(correlation_id="req-7", issue_id="GI-000003"):
            get_logger("test").info("goods_issue_posted")

        (record,) = json_logs()
        assert record["correlation_id"] == "req-7"
        assert record["issue_id"] == "GI-000003"

    def test_plain_exception(self, json_logs):
        try:
            raise ValueError("bad row")
        except ValueError:
            get_logger("test").error("failed", exc_info=True)

        (record,) = json_logs()
        assert record["exc_type"] == "ValueError"
        assert record["exc_message"] == "bad row"
        assert "Traceback" in record["traceback"]

    def test_erp_exception_attributes_flattened(self, json_logs):
        try:
            raise InsufficientInventoryError(
                "mat-1", Decimal("5"), Decimal("7"), unit="m", material_name="Denim"
            )
        except InsufficientInventoryError:
            get_logger("test").error("goods_issue_post_failed", exc_info=True)

        (record,) = json_logs()
        assert record["exc_code"] == "INSUFFICIENT_INVENTORY"
        assert record["exc_material_name"] == "Denim"
        assert (record["exc_available"], record["exc_required"]) == ("5", "7")

    def test_formatter_usable_standalone(self):
        record = logging.LogRecord("garment_erp.x", logging.WARNING, __file__, 1, "odd", None, None)
        assert json.loads(StructuredFormatter().format(record))["level"] == "WARNING"


class TestLogContext:
    def test_bind_nests_and_restores(self):
        LogContext.clear()
        with LogContext.bind(bom_id="bom-1"):
            with LogContext.bind(issue_id="gi-1"):
                assert LogContext.get_all() == {"bom_id": "bom-1", "issue_id": "gi-1"}
            assert LogContext.get_all() == {"bom_id": "bom-1"}
        assert LogContext.get_all() == {}

    def test_bind_restores_after_exception(self):
        LogContext.set(correlation_id="outer")
        with pytest.raises(RuntimeError):
            with LogContext.bind(correlation_id="inner"):
                raise RuntimeError("inside")
        assert LogContext.get_all() == {"correlation_id": "outer"}
        LogContext.clear()

    def test_only_known_fields(self):
        with pytest.raises(KeyError):
            LogContext.set(journal_id="nope")


class TestConfigureLogging:
    def test_second_call_is_ignored(self, json_logs):
        extra_stream = StringIO()
        configure_logging(stream=extra_stream)

        get_logger("test").info("once")

        assert [r["message"] for r in json_logs()] == ["once"]
        assert extra_stream.getvalue() == ""

    def test_level_name_accepted(self):
        reset_logging()
        stream = StringIO()
        configure_logging(level="warning", stream=stream)
        try:
            get_logger("test").info("hidden")
            get_logger("test").warning("shown")
            assert [json.loads(line)["message"] for line in stream.getvalue().splitlines()] == ["shown"]
        finally:
            reset_logging()
            configure_logging(level=logging.DEBUG, stream=StringIO())


class TestEngineTrace:
    def _layers(self, material_id):
        return [
            InventoryLayer(
                layer_id=uuid4(),
                material_id=material_id,
                created_at=datetime(2024, 1, 1, tzinfo=UTC),
                quantity_on_hand=Decimal("5"),
                quantity_available=Decimal("5"),
                unit_cost=Money.of("2.00", "USD"),
                unit="m",
            )
        ]

    def test_planner_emits_trace(self, json_logs):
        material_id = uuid4()
        plan_fifo_consumption(material_id, self._layers(material_id), Quantity.of(2, "m"))

        (trace,) = [r for r in json_logs() if r["message"] == "ENGINE_TRACE"]
        assert trace["engine_name"] == "fifo_consumption"
        assert len(trace["input_fingerprint"]) == 16
        assert trace["function"] == "plan_fifo_consumption"

    def test_fingerprint_depends_only_on_named_fields(self):
        base = {"required": Quantity.of(2, "m"), "currency": "USD"}
        same = {"required": Quantity.of("2", "m"), "currency": "EUR"}
        other = {"required": Quantity.of(3, "m"), "currency": "USD"}

        assert compute_input_fingerprint(("required",), base) == compute_input_fingerprint(
            ("required",), same
        )
        assert compute_input_fingerprint(("required",), base) != compute_input_fingerprint(
            ("required",), other
        )
