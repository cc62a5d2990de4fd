"""
Module: garment_engines
Responsibility:
    Pure calculation engines: unit conversion, BOM expansion, material
    requirements, FIFO consumption planning and the goods issue workflow.

Architecture position:
    Engines -- zero I/O.  May import garment_kernel domain values,
    exceptions and logging.  MUST NOT import garment_services.

Invariants enforced:
    - Engines never read the clock; timestamps arrive as data.
    - Decimal-only arithmetic.
    - Identical inputs produce identical outputs.

Usage:
    from garment_engines.bom import expand_bom, calculate_requirements
    from garment_engines.valuation import plan_fifo_consumption
"""
