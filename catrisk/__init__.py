"""Catastrophe risk event simulation"""

from ._version import __version__

# Use lazy imports to keep package import light (matplotlib, scipy)
# Direct imports are defined but modules are imported only when accessed

__all__ = [
    "__version__",
    "BetaRisk",
    "BetaRiskSimulation",
    "CatEvent",
    "CatRisk",
    "CatRiskConfig",
    "CatSimulation",
    "ConfigurationError",
    "EventSet",
    "EventSetSimulation",
    "LossSummary",
    "create_cat_risk",
    "create_simulation",
    "load_config",
    "load_event_set",
    "simulate_path_losses",
    "summarize_losses",
]

_CAT_RISK_NAMES = {
    "BetaRisk",
    "BetaRiskSimulation",
    "CatEvent",
    "CatRisk",
    "CatSimulation",
    "EventSet",
    "EventSetSimulation",
    "create_cat_risk",
    "create_simulation",
    "load_event_set",
}


def __getattr__(name):
    """Lazy import modules on first attribute access."""
    if name in _CAT_RISK_NAMES:
        from . import cat_risk

        return getattr(cat_risk, name)
    elif name == "CatRiskConfig" or name == "load_config":
        from . import config

        return getattr(config, name)
    elif name == "ConfigurationError":
        from .exceptions import ConfigurationError

        return ConfigurationError
    elif name in ["LossSummary", "simulate_path_losses", "summarize_losses"]:
        from . import analysis

        return getattr(analysis, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
