"""
Garment ERP services: material master, BOMs, the FIFO inventory ledger and
goods issues, wired together by ``ErpServices``.
"""

from garment_services.bom_service import BOMLineInput, BOMService
from garment_services.container import ErpServices
from garment_services.goods_issue_service import (
    GoodsIssue,
    GoodsIssueLine,
    GoodsIssueService,
    IssueLineRequest,
    MaterialAvailability,
    PostedIssue,
    PostedIssueLine,
    RecordedTake,
)
from garment_services.inventory_ledger import (
    InventoryLedger,
    InventoryValuation,
    MaterialLockRegistry,
    StockAdjustment,
    StockAdjustmentResult,
)
from garment_services.material_service import MaterialService

__all__ = [
    "BOMLineInput",
    "BOMService",
    "ErpServices",
    "GoodsIssue",
    "GoodsIssueLine",
    "GoodsIssueService",
    "InventoryLedger",
    "InventoryValuation",
    "IssueLineRequest",
    "MaterialAvailability",
    "MaterialLockRegistry",
    "MaterialService",
    "PostedIssue",
    "PostedIssueLine",
    "RecordedTake",
    "StockAdjustment",
    "StockAdjustmentResult",
]
