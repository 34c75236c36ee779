"""Exceptions raised while building catastrophe risk models."""

from typing import List


class ConfigurationError(ValueError):
    """Raised when model parameters or simulation windows are invalid.

    Construction is rejected outright; no partially built model is returned.

    Attributes:
        issues: List of specific configuration problems found.

    Examples:
        Inspecting the problems::

            try:
                BetaRisk(max_loss=-1.0, years=10, mean=5.0, std_dev=2.0)
            except ConfigurationError as e:
                for issue in e.issues:
                    print(f"  - {issue}")
    """

    def __init__(self, issues: List[str]) -> None:
        self.issues = issues
        bullet_list = "\n".join(f"  - {issue}" for issue in issues)
        super().__init__(
            f"Configuration has {len(issues)} critical "
            f"{'issue' if len(issues) == 1 else 'issues'}:\n{bullet_list}"
        )
