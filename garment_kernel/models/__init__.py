"""ORM models.  Importing this package registers every table on ``Base.metadata``."""

from garment_kernel.models.bom import BOMHeaderModel, BOMLineModel, BOMLineVariantModel
from garment_kernel.models.goods_issue import (
    GoodsIssueLayerTakeModel,
    GoodsIssueLineModel,
    GoodsIssueModel,
)
from garment_kernel.models.inventory import InventoryLayerModel
from garment_kernel.models.material import MaterialModel
from garment_kernel.models.sequence import SequenceCounter

__all__ = [
    "BOMHeaderModel",
    "BOMLineModel",
    "BOMLineVariantModel",
    "GoodsIssueLayerTakeModel",
    "GoodsIssueLineModel",
    "GoodsIssueModel",
    "InventoryLayerModel",
    "MaterialModel",
    "SequenceCounter",
]
