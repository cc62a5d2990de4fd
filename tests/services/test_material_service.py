"""
Tests for MaterialService (material master maintenance).
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from garment_kernel.domain.values import Money
from garment_kernel.exceptions import (
    CurrencyMismatchError,
    InvalidConversionFactorError,
    MaterialNotFoundError,
)


class TestCreateMaterial:
    def test_create_and_get(self, erp):
        created = erp.materials.create_material(
            "Denim 12oz", "m", cost_per_unit="4.25", code="FAB-001"
        )

        fetched = erp.materials.get_material(created.material_id)
        assert fetched.name == "Denim 12oz"
        assert fetched.code == "FAB-001"
        assert fetched.base_unit == "m"
        assert fetched.cost_per_unit == Money.of("4.25", "USD")
        assert fetched.label == "FAB-001 Denim 12oz"

    def test_unpriced_material(self, erp):
        created = erp.materials.create_material("Care label", "pcs")
        assert created.cost_per_unit is None

    def test_purchase_unit_and_factor(self, erp):
        created = erp.materials.create_material(
            "Sewing thread", "m", purchase_unit="cone", conversion_factor="5000"
        )
        assert created.purchase_unit == "cone"
        assert created.conversion_factor == Decimal("5000")

    def test_invalid_factor_rejected(self, erp):
        with pytest.raises(InvalidConversionFactorError):
            erp.materials.create_material("Thread", "m", purchase_unit="cone", conversion_factor=0)

    def test_same_unit_factor_must_be_one(self, erp):
        with pytest.raises(InvalidConversionFactorError):
            erp.materials.create_material("Thread", "m", purchase_unit="m", conversion_factor=2)

    def test_suspicious_factor_logged(self, erp, captured_logs):
        erp.materials.create_material(
            "Fine yarn", "g", purchase_unit="ton", conversion_factor="1000000"
        )
        warnings = [r for r in captured_logs() if r["message"] == "conversion_factor_suspicious"]
        assert len(warnings) == 1

    def test_foreign_currency_cost_rejected(self, erp):
        with pytest.raises(CurrencyMismatchError):
            erp.materials.create_material("Silk", "m", cost_per_unit=Money.of("9", "EUR"))

    def test_blank_name_rejected(self, erp):
        with pytest.raises(ValueError):
            erp.materials.create_material("  ", "m")


class TestLookup:
    def test_unknown_material(self, erp):
        missing = uuid4()
        with pytest.raises(MaterialNotFoundError) as exc_info:
            erp.materials.get_material(missing)
        assert exc_info.value.material_id == missing
        assert erp.materials.find_material(missing) is None

    def test_resolve_many_skips_unknown(self, erp, make_material):
        fabric = make_material("Fabric")
        resolved = erp.materials.resolve_many([fabric.material_id, uuid4()])
        assert list(resolved) == [fabric.material_id]

    def test_list_excludes_inactive_by_default(self, erp, make_material):
        active = make_material("Active")
        retired = make_material("Retired")
        erp.materials.deactivate(retired.material_id)

        names = [m.name for m in erp.materials.list_materials()]
        assert "Active" in names
        assert "Retired" not in names
        all_names = [m.name for m in erp.materials.list_materials(include_inactive=True)]
        assert {"Active", "Retired"} <= set(all_names)
        assert active.material_id != retired.material_id


class TestUpdateCost:
    def test_update_cost(self, erp, make_material):
        fabric = make_material(cost="1.00")
        updated = erp.materials.update_cost(fabric.material_id, "1.35")
        assert updated.cost_per_unit.amount == Decimal("1.35")

    def test_clear_cost(self, erp, make_material):
        fabric = make_material(cost="1.00")
        assert erp.materials.update_cost(fabric.material_id, None).cost_per_unit is None

    def test_negative_cost_rejected(self, erp, make_material):
        fabric = make_material()
        with pytest.raises(ValueError):
            erp.materials.update_cost(fabric.material_id, "-1")
