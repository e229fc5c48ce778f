"""Command-line interface modules for Aquatrack plan generation.

This package contains core execution logic, making scripts/ optional and deletable.
"""

from aquatrack.cli.invoke import main, run_plan

__all__ = ['main', 'run_plan']
