"""`Aquatrack` - protocol plan generation for new aquarium setups.

Subpackages:
- schemas: Setup, catalog and engine-package models
- contracts: Fail-fast invariants between engine stages
- engine: Conditions, decision tables, rendering, dosing, phase expansion
- pipeline: Plan orchestrator and checklists
- scheduling: Task cadence and due-date computation
- cli: Command-line plan generation

Modules:
- config: Shipped data bundle and JSON loading
"""

__version__ = "0.1.0"
