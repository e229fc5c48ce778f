"""Pydantic schemas for the Aquatrack plan engine.

This package provides typed models for everything the engine reads. All
input coercion, defaulting and normalization happens at schema validation
time via Pydantic; engine stages only ever see resolved models.

Exports
-------
resolve_setup : function
    Single entrypoint for setup normalization
NormalizedSetup : class
    Fully-defaulted, immutable setup
SetupInput : class
    User-facing setup document (forgiving, minimal)
ProductCatalog, Product, UserProduct : class
    Catalog entries and user-declared products
EnginePackage : class
    Decision tables, limits, calculators and templates bundle
UserTargets : class
    App-level water parameter targets
CLIConfig : class
    Command-line arguments
"""

from aquatrack.schemas.resolve import resolve_setup, deep_merge
from aquatrack.schemas.normalized import NormalizedSetup
from aquatrack.schemas.setup import SetupInput, UserProduct
from aquatrack.schemas.catalog import ProductCatalog, Product, DoseModel, EffectModel, ProductConstraints
from aquatrack.schemas.package import EnginePackage, CalculatorFramework
from aquatrack.schemas.targets import UserTargets
from aquatrack.schemas.cli import CLIConfig

__all__ = [
    'resolve_setup',
    'deep_merge',
    'NormalizedSetup',
    'SetupInput',
    'UserProduct',
    'ProductCatalog',
    'Product',
    'DoseModel',
    'EffectModel',
    'ProductConstraints',
    'EnginePackage',
    'CalculatorFramework',
    'UserTargets',
    'CLIConfig',
]
