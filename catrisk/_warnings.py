"""Custom warning classes for the catrisk package.

These warning classes allow users to programmatically filter, suppress,
or capture warnings using Python's standard ``warnings`` module.

Example:
    Silence out-of-window events when loading a large historical catalogue::

        import warnings
        from catrisk._warnings import DataQualityWarning

        warnings.filterwarnings("ignore", category=DataQualityWarning)
"""


class CatRiskWarning(UserWarning):
    """Base class for all catrisk warnings."""


class DataQualityWarning(CatRiskWarning):
    """Recoverable anomalies found in event data.

    Raised when an event set contains entries that cannot take part in a
    replay, such as events dated outside the observation window.
    """
