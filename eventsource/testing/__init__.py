from .aggregate_scenario import AggregateScenario
from .core import Result, Scenario, matches_set_fields

__all__ = [
    "AggregateScenario",
    "Result",
    "Scenario",
    "matches_set_fields",
]
