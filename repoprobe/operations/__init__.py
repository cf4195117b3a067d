"""Per-phase operations driven by the pipeline coordinator."""

from .complexity import ComplexityAnalyzer
from .diagrams import DiagramGenerator, generic_diagrams, parse_diagrams
from .logic import BusinessLogicExtractor
from .planning import ModulePlan, PhasePlanner
from .reporting import ReportBuilder

__all__ = [
    "BusinessLogicExtractor",
    "ComplexityAnalyzer",
    "DiagramGenerator",
    "ModulePlan",
    "PhasePlanner",
    "ReportBuilder",
    "generic_diagrams",
    "parse_diagrams",
]
