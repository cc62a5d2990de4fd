"""
garment_services.container -- DI container for the garment ERP services.

Responsibility:
    Creates every service exactly once for a Session and wires them
    together from an ``ErpConfig``.  No service constructs another service
    internally.

Architecture position:
    Services -- top of the service layer; the only place where services are
    composed.

Invariants enforced:
    - Single-instance lifecycle: one ledger, one sequence service and so on
      per container.
    - Every service shares the same Session and Clock, so a goods issue and
      the layers it consumes are written in one transaction.

Usage:
    config = get_active_config()
    with session_scope() as session:
        erp = ErpServices(session, config, locks=locks)
        erp.ledger.receive(fabric_id, Quantity.of(500, "m"), Money.of("2.00", "USD"))
        erp.issues.issue_goods([IssueLineRequest(fabric_id, 120)])
"""

from __future__ import annotations

from sqlalchemy.orm import Session

from garment_config.schema import ErpConfig
from garment_kernel.domain.clock import Clock, SystemClock
from garment_kernel.services.sequence_service import SequenceService
from garment_services.bom_service import BOMService
from garment_services.goods_issue_service import GoodsIssueService
from garment_services.inventory_ledger import InventoryLedger, MaterialLockRegistry
from garment_services.material_service import MaterialService


class ErpServices:
    """Central factory for the garment ERP services.

    Contract:
        Receives a Session, an ErpConfig, and optional Clock and
        MaterialLockRegistry.  Share one lock registry between containers
        that run on different threads, otherwise in-process consumption is
        not serialized across them.

    Non-goals:
        - Does NOT manage transaction boundaries (caller's responsibility).
    """

    def __init__(
        self,
        session: Session,
        config: ErpConfig | None = None,
        clock: Clock | None = None,
        locks: MaterialLockRegistry | None = None,
    ) -> None:
        self.session = session
        self.config = config or ErpConfig.with_defaults()
        self.clock = clock or SystemClock()
        self.locks = locks or MaterialLockRegistry(
            timeout=self.config.issues.lock_timeout_seconds
        )
        currency = self.config.currency

        self.sequences = SequenceService(session)
        self.materials = MaterialService(session, self.clock, currency=currency)
        self.boms = BOMService(
            session,
            self.materials,
            clock=self.clock,
            currency=currency,
            waste_policy=self.config.waste_policy.to_policy(),
            strict=self.config.strict_bom_resolution,
        )
        self.ledger = InventoryLedger(
            session, clock=self.clock, locks=self.locks, currency=currency
        )
        self.issues = GoodsIssueService(
            session,
            ledger=self.ledger,
            materials=self.materials,
            boms=self.boms,
            sequences=self.sequences,
            clock=self.clock,
            settings=self.config.issues,
        )
