"""BOM expansion and material requirement calculation."""

from garment_engines.bom.expander import BOMExpansion, ExpandedLine, expand_bom
from garment_engines.bom.requirements import (
    MaterialRequirement,
    RequirementCalculation,
    calculate_requirements,
    calculate_variant_requirements,
)
from garment_engines.bom.types import (
    DEFAULT_WASTE_POLICY,
    BOMHeader,
    BOMLine,
    ByCategory,
    ByColor,
    BySize,
    ConsumptionSpec,
    General,
    Material,
    ProductVariant,
    UnresolvedLine,
    VariantConsumption,
    WastePolicy,
    consumption_spec,
    effective_quantity,
)

__all__ = [
    "BOMExpansion",
    "ExpandedLine",
    "expand_bom",
    "MaterialRequirement",
    "RequirementCalculation",
    "calculate_requirements",
    "calculate_variant_requirements",
    "DEFAULT_WASTE_POLICY",
    "BOMHeader",
    "BOMLine",
    "ByCategory",
    "ByColor",
    "BySize",
    "ConsumptionSpec",
    "General",
    "Material",
    "ProductVariant",
    "UnresolvedLine",
    "VariantConsumption",
    "WastePolicy",
    "consumption_spec",
    "effective_quantity",
]
