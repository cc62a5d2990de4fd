"""
Typed exception hierarchy for the garment ERP core.

Every error raised by the kernel, engines and services is a subclass of
``GarmentErpError``.  Each class carries a static, machine-readable ``code``
and stores its context as attributes, so callers catch by type and read
structured data instead of parsing messages:

    try:
        issues.post_issue(issue_id)
    except InsufficientInventoryError as e:
        notify(e.material_name, e.available, e.required)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    GarmentErpError (base)
    |
    +-- ValidationError
    |   +-- InvalidQuantityError
    |   +-- UnitMismatchError
    |   +-- InvalidConversionFactorError
    |   +-- CurrencyMismatchError
    |   +-- InvalidCurrencyError
    |
    +-- BOMError
    |   +-- InvalidBOMError
    |   |   +-- WastePercentageError
    |   +-- UnresolvedMaterialError
    |   +-- BOMNotFoundError
    |
    +-- InventoryError
    |   +-- MaterialNotFoundError
    |   +-- InsufficientInventoryError
    |       +-- InsufficientStockAtCostError
    |
    +-- IssueError
    |   +-- IssueNotFoundError
    |   +-- IssueLineNotFoundError
    |   +-- IssueStateError
    |   +-- EmptyIssueError
    |
    +-- ConcurrencyError
    |   +-- MaterialLockTimeoutError
    |
    +-- ConfigurationError

===============================================================================
ERROR CODES
===============================================================================

Category     | Code                       | When raised
-------------|----------------------------|------------------------------------
Validation   | INVALID_QUANTITY           | Negative target, non-positive issue qty
             | UNIT_MISMATCH              | Unit is not the material's base/purchase unit
             | INVALID_CONVERSION_FACTOR  | Factor <= 0, or != 1 for identical units
             | CURRENCY_MISMATCH          | Money arithmetic across currencies
             | INVALID_CURRENCY           | Not a known ISO 4217 code
-------------|----------------------------|------------------------------------
BOM          | INVALID_BOM                | Output quantity <= 0, malformed line
             | INVALID_WASTE_PERCENTAGE   | Waste < 0 or above the policy maximum
             | UNRESOLVED_MATERIAL        | Line references an unknown material
             | BOM_NOT_FOUND              | BOM id does not exist
-------------|----------------------------|------------------------------------
Inventory    | MATERIAL_NOT_FOUND         | Material id does not exist
             | INSUFFICIENT_INVENTORY     | Requested > available layers
             | INSUFFICIENT_STOCK_AT_COST | Reduction > stock held at that unit cost
-------------|----------------------------|------------------------------------
Issue        | ISSUE_NOT_FOUND            | Goods issue id does not exist
             | ISSUE_LINE_NOT_FOUND       | Line id not on the goods issue
             | INVALID_ISSUE_STATE        | Post/cancel/edit of a non-pending issue
             | EMPTY_ISSUE                | Goods issue without lines
-------------|----------------------------|------------------------------------
Concurrency  | MATERIAL_LOCK_TIMEOUT      | Per-material lock not acquired in time
-------------|----------------------------|------------------------------------
Config       | CONFIGURATION_ERROR        | Invalid configuration value or file
"""

from collections.abc import Sequence
from decimal import Decimal
from typing import Any


class GarmentErpError(Exception):
    """
    Base exception for all garment ERP errors.

    Subclasses must define a ``code`` class attribute.
    """

    code: str = "GARMENT_ERP_ERROR"


# Validation


class ValidationError(GarmentErpError):
    """Base exception for rejected input values."""

    code: str = "VALIDATION_ERROR"


class InvalidQuantityError(ValidationError):
    """A quantity is outside its permitted range."""

    code: str = "INVALID_QUANTITY"

    def __init__(self, field: str, value: Decimal, reason: str):
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid {field} {value}: {reason}")


class UnitMismatchError(ValidationError):
    """A quantity is expressed in a unit the material does not use."""

    code: str = "UNIT_MISMATCH"

    def __init__(self, expected: str, actual: str, material_id: Any = None):
        self.expected = expected
        self.actual = actual
        self.material_id = material_id
        target = f" for material {material_id}" if material_id is not None else ""
        super().__init__(f"Unit mismatch{target}: expected {expected}, got {actual}")


class InvalidConversionFactorError(ValidationError):
    """Unit conversion factor is unusable."""

    code: str = "INVALID_CONVERSION_FACTOR"

    def __init__(self, factor: Decimal, reason: str):
        self.factor = factor
        self.reason = reason
        super().__init__(f"Invalid conversion factor {factor}: {reason}")


class CurrencyMismatchError(ValidationError):
    """Money arithmetic mixed two currencies."""

    code: str = "CURRENCY_MISMATCH"

    def __init__(self, currency1: str, currency2: str):
        self.currency1 = currency1
        self.currency2 = currency2
        super().__init__(f"Currency mismatch: {currency1} vs {currency2}")


class InvalidCurrencyError(ValidationError):
    """Currency code is not in the registry."""

    code: str = "INVALID_CURRENCY"

    def __init__(self, currency: str):
        self.currency = currency
        super().__init__(f"Invalid ISO 4217 currency code: '{currency}'")


# Bill of materials


class BOMError(GarmentErpError):
    """Base exception for bill-of-materials errors."""

    code: str = "BOM_ERROR"


class InvalidBOMError(BOMError):
    """BOM cannot be costed or expanded as defined."""

    code: str = "INVALID_BOM"

    def __init__(self, bom_id: Any, reason: str):
        self.bom_id = bom_id
        self.reason = reason
        super().__init__(f"Invalid BOM {bom_id}: {reason}")


class WastePercentageError(InvalidBOMError):
    """Waste percentage outside the configured policy."""

    code: str = "INVALID_WASTE_PERCENTAGE"

    def __init__(self, waste_percentage: Decimal, maximum: Decimal, bom_id: Any = None):
        self.waste_percentage = waste_percentage
        self.maximum = maximum
        if waste_percentage < 0:
            reason = f"waste percentage {waste_percentage} is negative"
        else:
            reason = (
                f"waste percentage {waste_percentage} exceeds the allowed "
                f"maximum of {maximum}"
            )
        super().__init__(bom_id, reason)


class UnresolvedMaterialError(BOMError):
    """One or more BOM lines reference a material that does not resolve."""

    code: str = "UNRESOLVED_MATERIAL"

    def __init__(self, bom_id: Any, material_ids: Sequence[Any]):
        self.bom_id = bom_id
        self.material_ids = tuple(material_ids)
        listed = ", ".join(str(m) for m in self.material_ids)
        super().__init__(f"BOM {bom_id} references unresolved materials: {listed}")


class BOMNotFoundError(BOMError):
    """BOM with the given id was not found."""

    code: str = "BOM_NOT_FOUND"

    def __init__(self, bom_id: Any):
        self.bom_id = bom_id
        super().__init__(f"BOM not found: {bom_id}")


# Inventory


class InventoryError(GarmentErpError):
    """Base exception for inventory errors."""

    code: str = "INVENTORY_ERROR"


class MaterialNotFoundError(InventoryError):
    """Material with the given id was not found."""

    code: str = "MATERIAL_NOT_FOUND"

    def __init__(self, material_id: Any):
        self.material_id = material_id
        super().__init__(f"Material not found: {material_id}")


class InsufficientInventoryError(InventoryError):
    """Requested consumption exceeds the available layer quantity."""

    code: str = "INSUFFICIENT_INVENTORY"

    def __init__(
        self,
        material_id: Any,
        available: Decimal,
        required: Decimal,
        unit: str | None = None,
        material_name: str | None = None,
    ):
        self.material_id = material_id
        self.available = available
        self.required = required
        self.unit = unit
        self.material_name = material_name
        label = material_name or str(material_id)
        suffix = f" {unit}" if unit else ""
        super().__init__(
            f"Insufficient inventory for {label}. "
            f"Available: {available}{suffix}, Required: {required}{suffix}"
        )

    @property
    def shortfall(self) -> Decimal:
        return self.required - self.available


class InsufficientStockAtCostError(InsufficientInventoryError):
    """A stock reduction exceeds what is held at the requested unit cost."""

    code: str = "INSUFFICIENT_STOCK_AT_COST"

    def __init__(
        self,
        material_id: Any,
        unit_cost: Any,
        available: Decimal,
        required: Decimal,
        unit: str | None = None,
    ):
        self.material_id = material_id
        self.unit_cost = unit_cost
        self.available = available
        self.required = required
        self.unit = unit
        self.material_name = None
        suffix = f" {unit}" if unit else ""
        InventoryError.__init__(
            self,
            f"Insufficient stock at cost {unit_cost} for {material_id}. "
            f"Available: {available}{suffix}, Reduction: {required}{suffix}",
        )


# Goods issues


class IssueError(GarmentErpError):
    """Base exception for goods issue errors."""

    code: str = "ISSUE_ERROR"


class IssueNotFoundError(IssueError):
    """Goods issue with the given id was not found."""

    code: str = "ISSUE_NOT_FOUND"

    def __init__(self, issue_id: Any):
        self.issue_id = issue_id
        super().__init__(f"Goods issue not found: {issue_id}")


class IssueLineNotFoundError(IssueError):
    """Line is not part of the given goods issue."""

    code: str = "ISSUE_LINE_NOT_FOUND"

    def __init__(self, issue_id: Any, line_id: Any):
        self.issue_id = issue_id
        self.line_id = line_id
        super().__init__(f"Line {line_id} not found on goods issue {issue_id}")


class IssueStateError(IssueError):
    """Action not permitted in the issue's current status."""

    code: str = "INVALID_ISSUE_STATE"

    def __init__(self, issue_id: Any, current_status: str, action: str):
        self.issue_id = issue_id
        self.current_status = current_status
        self.action = action
        super().__init__(
            f"Cannot {action} goods issue {issue_id}: status is {current_status}"
        )


class EmptyIssueError(IssueError):
    """Goods issue has no lines."""

    code: str = "EMPTY_ISSUE"

    def __init__(self, issue_id: Any = None):
        self.issue_id = issue_id
        super().__init__("Goods issue must have at least one line")


# Concurrency


class ConcurrencyError(GarmentErpError):
    """Base exception for concurrency errors."""

    code: str = "CONCURRENCY_ERROR"


class MaterialLockTimeoutError(ConcurrencyError):
    """Per-material consumption lock was not acquired within the timeout."""

    code: str = "MATERIAL_LOCK_TIMEOUT"

    def __init__(self, material_id: Any, timeout: float):
        self.material_id = material_id
        self.timeout = timeout
        super().__init__(
            f"Timed out after {timeout}s waiting for inventory lock on material {material_id}"
        )


# Configuration


class ConfigurationError(GarmentErpError):
    """Configuration value or file is invalid."""

    code: str = "CONFIGURATION_ERROR"

    def __init__(self, message: str, source: str | None = None):
        self.source = source
        super().__init__(f"{source}: {message}" if source else message)
