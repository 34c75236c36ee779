"""Catastrophe risk models and the loss-event simulations they spawn.

A :class:`CatRisk` is an immutable, reusable model of catastrophe losses.
Given a ``[start, end)`` date window it produces a fresh :class:`CatSimulation`,
a stateful iterator that emits one path of loss events per yearly sub-period
of the window until the window is exhausted.

Two models are provided:

- :class:`EventSet` replays a historical (or synthetic) event catalogue,
  restarting it once the history is used up and the window runs on.
- :class:`BetaRisk` samples a compound Poisson process with Beta-distributed
  severities scaled by a maximum loss.

Examples:
    Replaying a historical catalogue::

        events = [CatEvent(date(1992, 8, 24), 26.5e9), CatEvent(date(2005, 8, 29), 125e9)]
        risk = EventSet(events, date(1990, 1, 1), date(2010, 1, 1))
        simulation = risk.new_simulation(date(2025, 1, 1), date(2028, 1, 1))
        for path in simulation:
            print(simulation.period_start, sum(event.loss for event in path))

    Parametric losses with a fixed seed::

        risk = BetaRisk(max_loss=1_000.0, years=2.0, mean=150.0, std_dev=220.0, seed=42)
        path: List[CatEvent] = []
        simulation = risk.new_simulation(date(2025, 1, 1), date(2035, 1, 1))
        while simulation.next_path(path):
            ...

Note:
    Simulations mutate their cursor and random generator in place and must not
    be shared across threads. Build one simulation per worker from the shared
    model instead.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
import datetime
from fractions import Fraction
import logging
from pathlib import Path
import threading
from typing import TYPE_CHECKING, Any, Iterator, List, Optional, Sequence, Tuple, Union
import warnings

import numpy as np
import pandas as pd
from scipy import stats

from ._warnings import DataQualityWarning
from .day_count import (
    add_years,
    count_periods,
    date_at_position,
    day_count,
    to_date,
    year_fraction,
    year_position,
    years_between,
)
from .exceptions import ConfigurationError

if TYPE_CHECKING:
    from .config import CatRiskConfig

logger = logging.getLogger(__name__)

DateLike = Union[datetime.date, str, pd.Timestamp]


@dataclass(frozen=True, order=True)
class CatEvent:
    """A single catastrophe occurrence.

    Attributes:
        date: Calendar date of the event.
        loss: Non-negative loss amount, in the currency of the bond trigger.
    """

    date: datetime.date
    loss: float


EventPath = List[CatEvent]


class CatSimulation(ABC):
    """Stateful generator of loss paths over a ``[start, end)`` window.

    Each successful :meth:`next_path` call covers the next yearly sub-period
    ``[start + k years, min(start + (k + 1) years, end))``. The final
    sub-period is shorter than a year when the window is not a whole number
    of years long.

    Attributes:
        start: First date of the window.
        end: End of the window (exclusive).
        n_periods: Number of paths the window yields.
        period_start: Start of the most recently emitted sub-period.
        period_end: End of the most recently emitted sub-period.
    """

    def __init__(self, start: DateLike, end: DateLike):
        """Bind the simulation to a window.

        Args:
            start: First date of the window.
            end: End of the window (exclusive).

        Raises:
            ConfigurationError: If start is after end.
        """
        self.start = to_date(start)
        self.end = to_date(end)
        if self.start > self.end:
            raise ConfigurationError(
                [f"Simulation start {self.start} must not be after end {self.end}"]
            )

        self.n_periods = count_periods(self.start, self.end)
        self.period_start: Optional[datetime.date] = None
        self.period_end: Optional[datetime.date] = None
        self._period_index = 0

    @property
    def paths_remaining(self) -> int:
        """Number of paths still to be emitted."""
        return self.n_periods - self._period_index

    def next_path(self, path: EventPath) -> bool:
        """Overwrite ``path`` with the events of the next sub-period.

        Args:
            path: Buffer to fill. It is cleared first, so it is left empty
                once the window is exhausted.

        Returns:
            True if a path was produced, False when no sub-periods remain.
        """
        path.clear()
        if self._period_index >= self.n_periods:
            return False

        period_start = add_years(self.start, self._period_index)
        period_end = min(add_years(self.start, self._period_index + 1), self.end)
        path.extend(self._generate_events(self._period_index, period_start, period_end))

        self.period_start = period_start
        self.period_end = period_end
        self._period_index += 1

        logger.debug(
            f"{self.__class__.__name__} path {self._period_index}/{self.n_periods} "
            f"[{period_start}, {period_end}): {len(path)} events"
        )
        return True

    @abstractmethod
    def _generate_events(
        self, period_index: int, period_start: datetime.date, period_end: datetime.date
    ) -> EventPath:
        """Produce the date-sorted events of one sub-period.

        Args:
            period_index: Zero-based index of the sub-period in the window.
            period_start: First date of the sub-period.
            period_end: End of the sub-period (exclusive).

        Returns:
            Events dated within ``[period_start, period_end)``.
        """

    def __iter__(self) -> Iterator[EventPath]:
        return self

    def __next__(self) -> EventPath:
        path: EventPath = []
        if not self.next_path(path):
            raise StopIteration
        return path


class CatRisk(ABC):
    """Factory of independent catastrophe loss simulations."""

    @abstractmethod
    def new_simulation(self, start: DateLike, end: DateLike) -> CatSimulation:
        """Create a simulation scoped to the window ``[start, end)``.

        Args:
            start: First date of the window.
            end: End of the window (exclusive).

        Returns:
            A fresh simulation positioned before its first path.
        """


@dataclass(frozen=True)
class _ReplayEntry:
    """An in-window historical event located on the history's year axis."""

    position: Fraction
    year: int
    offset: int
    event: CatEvent


def _replay_template(
    events: Sequence[CatEvent], events_start: datetime.date, events_end: datetime.date
) -> Tuple[_ReplayEntry, ...]:
    """Index the events of ``[events_start, events_end)`` by year position."""
    template = []
    for event in events:
        if not events_start <= event.date < events_end:
            continue
        year = years_between(events_start, event.date)
        template.append(
            _ReplayEntry(
                position=year_position(events_start, event.date),
                year=year,
                offset=day_count(add_years(events_start, year), event.date),
                event=event,
            )
        )
    return tuple(template)


class EventSetSimulation(CatSimulation):
    """Deterministic replay of an event catalogue.

    The observation window ``[events_start, events_end)`` is laid end to end
    along the simulation window, measured in anniversary years from
    ``start`` and ``events_start`` respectively. A fractional final history
    year is part of the template, and the template restarts only once it is
    used up. A window as long as the history therefore replays each event
    exactly once.

    A historical event keeps its day offset from the start of its history
    year. When the matching simulation year is a day shorter (leap year in
    the history only) the offset is clamped so the event stays inside its
    sub-period.

    Attributes:
        history_years: Length of the observation window in years.
    """

    def __init__(
        self,
        events: Tuple[CatEvent, ...],
        events_start: DateLike,
        events_end: DateLike,
        start: DateLike,
        end: DateLike,
        template: Optional[Tuple[_ReplayEntry, ...]] = None,
    ):
        """Initialize the replay.

        Args:
            events: Date-sorted events, shared with the owning event set.
            events_start: First date of the observation window.
            events_end: End of the observation window (exclusive).
            start: First date of the simulation window.
            end: End of the simulation window (exclusive).
            template: Precomputed replay index of ``events``; built here when
                omitted.

        Raises:
            ConfigurationError: If the history is shorter than one year or
                the simulation window is reversed.
        """
        super().__init__(start, end)
        self.events = events
        self.events_start = to_date(events_start)
        self.events_end = to_date(events_end)

        if self.events_end <= self.events_start:
            self.history_years = Fraction(0)
        else:
            self.history_years = year_position(self.events_start, self.events_end)
        if self.history_years < 1:
            raise ConfigurationError(
                [
                    f"Event history [{self.events_start}, {self.events_end}) holds no whole "
                    "year to replay"
                ]
            )

        if template is None:
            template = _replay_template(events, self.events_start, self.events_end)
        self.template = template
        self.window_years = year_position(self.start, self.end)

        self._cycle = 0
        self._cursor = 0

    def _generate_events(
        self, period_index: int, period_start: datetime.date, period_end: datetime.date
    ) -> EventPath:
        lo = Fraction(period_index)
        hi = min(lo + 1, self.window_years)
        last_offset = day_count(period_start, period_end) - 1

        template = self.template
        path: EventPath = []
        while True:
            base = self._cycle * self.history_years
            if base + self.history_years <= lo:
                self._cycle += 1
                self._cursor = 0
                continue

            i = self._cursor
            while i < len(template) and base + template[i].position < lo:
                i += 1
            while i < len(template) and base + template[i].position < hi:
                entry = template[i]
                year_start = date_at_position(self.start, base + entry.year)
                offset = day_count(period_start, year_start) + entry.offset
                offset = min(max(offset, 0), last_offset)
                path.append(
                    CatEvent(period_start + datetime.timedelta(days=offset), entry.event.loss)
                )
                i += 1
            self._cursor = i

            if base + self.history_years < hi:
                # History used up inside this sub-period, continue from its start
                self._cycle += 1
                self._cursor = 0
                continue
            return path


class EventSet(CatRisk):
    """Catastrophe risk described by an observed event catalogue.

    The catalogue is stored once as an immutable tuple and shared by reference
    with every simulation the event set creates.

    Attributes:
        events: Date-sorted tuple of events.
        events_start: First date of the observation window.
        events_end: End of the observation window (exclusive).
    """

    def __init__(
        self,
        events: Sequence[Union[CatEvent, Tuple[Any, float]]],
        events_start: DateLike,
        events_end: DateLike,
    ):
        """Initialize the event set.

        Args:
            events: Events sorted by date, as :class:`CatEvent` objects or
                ``(date, loss)`` pairs.
            events_start: First date of the observation window.
            events_end: End of the observation window (exclusive).

        Raises:
            ConfigurationError: If the window is reversed, or the events are
                empty, unsorted or carry negative losses.
        """
        self.events_start = to_date(events_start)
        self.events_end = to_date(events_end)

        if isinstance(events, tuple) and all(isinstance(e, CatEvent) for e in events):
            self.events: Tuple[CatEvent, ...] = events
        else:
            self.events = tuple(
                e if isinstance(e, CatEvent) else CatEvent(to_date(e[0]), float(e[1]))
                for e in events
            )

        issues = []
        if self.events_start > self.events_end:
            issues.append(
                f"Events start {self.events_start} must not be after events end {self.events_end}"
            )
        if not self.events:
            issues.append("Event set must contain at least one event")
        if any(not np.isfinite(e.loss) or e.loss < 0 for e in self.events):
            issues.append("Event losses must be finite and non-negative")
        if any(later.date < earlier.date for earlier, later in zip(self.events, self.events[1:])):
            issues.append("Events must be sorted by date")
        if issues:
            raise ConfigurationError(issues)

        outside = sum(
            1 for e in self.events if not self.events_start <= e.date < self.events_end
        )
        if outside:
            warnings.warn(
                f"{outside} events fall outside [{self.events_start}, {self.events_end}) "
                "and will never be replayed",
                DataQualityWarning,
                stacklevel=2,
            )

        self._template = _replay_template(self.events, self.events_start, self.events_end)

        logger.debug(
            f"Initialized EventSet with {len(self.events)} events over "
            f"[{self.events_start}, {self.events_end})"
        )

    @classmethod
    def from_frame(
        cls,
        frame: pd.DataFrame,
        events_start: DateLike,
        events_end: DateLike,
        date_column: str = "date",
        loss_column: str = "loss",
    ) -> "EventSet":
        """Build an event set from a DataFrame of dated losses.

        Rows are sorted by date (stable) before the event set is created.

        Args:
            frame: Table with one row per event.
            events_start: First date of the observation window.
            events_end: End of the observation window (exclusive).
            date_column: Name of the column holding event dates.
            loss_column: Name of the column holding losses.

        Returns:
            The event set.

        Raises:
            ConfigurationError: If a column is missing or the data are invalid.
        """
        missing = [c for c in (date_column, loss_column) if c not in frame.columns]
        if missing:
            raise ConfigurationError([f"Event table is missing column(s): {', '.join(missing)}"])

        ordered = frame.assign(**{date_column: pd.to_datetime(frame[date_column])}).sort_values(
            date_column, kind="stable"
        )
        events = tuple(
            CatEvent(timestamp.date(), float(loss))
            for timestamp, loss in zip(ordered[date_column], ordered[loss_column])
        )
        return cls(events, events_start, events_end)

    def new_simulation(self, start: DateLike, end: DateLike) -> EventSetSimulation:
        """Create a replay of the catalogue over ``[start, end)``.

        Raises:
            ConfigurationError: If the history cannot be periodized or the
                window is reversed.
        """
        return EventSetSimulation(
            self.events, self.events_start, self.events_end, start, end, template=self._template
        )


def load_event_set(
    path: Union[str, Path],
    events_start: DateLike,
    events_end: DateLike,
    date_column: str = "date",
    loss_column: str = "loss",
) -> EventSet:
    """Load an event set from a CSV file.

    Args:
        path: CSV file with a date column and a loss column.
        events_start: First date of the observation window.
        events_end: End of the observation window (exclusive).
        date_column: Name of the column holding event dates.
        loss_column: Name of the column holding losses.

    Returns:
        The event set.

    Raises:
        FileNotFoundError: If the file does not exist.
        ConfigurationError: If the data are invalid.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Event file not found: {path}")

    frame = pd.read_csv(path)
    logger.info(f"Loaded {len(frame)} events from {path}")
    return EventSet.from_frame(frame, events_start, events_end, date_column, loss_column)


class BetaRiskSimulation(CatSimulation):
    """Compound Poisson loss simulation with Beta severities.

    In each sub-period the event count is Poisson with mean
    ``lam * year_fraction``, event dates are uniform over the days of the
    sub-period, and severities are ``max_loss * X / (X + Y)`` with
    ``X ~ Gamma(alpha)`` and ``Y ~ Gamma(beta)``.

    The random generator belongs to this instance alone.
    """

    def __init__(
        self,
        start: DateLike,
        end: DateLike,
        max_loss: float,
        lam: float,
        alpha: float,
        beta: float,
        seed: Optional[Union[int, np.random.SeedSequence]] = None,
    ):
        """Initialize the simulation.

        Args:
            start: First date of the window.
            end: End of the window (exclusive).
            max_loss: Severity scale.
            lam: Expected number of events per year.
            alpha: First Beta shape parameter.
            beta: Second Beta shape parameter.
            seed: Random seed for reproducibility.

        Raises:
            ConfigurationError: If a parameter is out of range.
        """
        super().__init__(start, end)

        issues = []
        if max_loss <= 0:
            issues.append(f"Max loss must be positive, got {max_loss}")
        if lam < 0:
            issues.append(f"Arrival rate must be non-negative, got {lam}")
        if alpha <= 0 or beta <= 0:
            issues.append(f"Beta shape parameters must be positive, got ({alpha}, {beta})")
        if issues:
            raise ConfigurationError(issues)

        self.max_loss = max_loss
        self.lam = lam
        self.alpha = alpha
        self.beta = beta
        self.rng = np.random.default_rng(seed)

    def generate_beta(self, size: Optional[int] = None) -> Union[float, np.ndarray]:
        """Draw severities as a ratio of Gamma variates scaled by the max loss.

        Args:
            size: Number of draws, or None for a single float.

        Returns:
            Severity or array of severities in ``[0, max_loss]``.
        """
        x = self.rng.gamma(self.alpha, size=size)
        y = self.rng.gamma(self.beta, size=size)
        severity = self.max_loss * x / (x + y)
        return float(severity) if size is None else severity

    def _generate_events(
        self, period_index: int, period_start: datetime.date, period_end: datetime.date
    ) -> EventPath:
        fraction = year_fraction(period_start, period_end)
        n_events = int(self.rng.poisson(self.lam * fraction))
        if n_events == 0:
            return []

        offsets = np.sort(self.rng.integers(0, day_count(period_start, period_end), size=n_events))
        severities = self.generate_beta(n_events)
        return [
            CatEvent(period_start + datetime.timedelta(days=int(offset)), float(severity))
            for offset, severity in zip(offsets, severities)
        ]


class BetaRisk(CatRisk):
    """Parametric catastrophe risk calibrated to annual loss moments.

    Events arrive at rate ``lam = 1 / years``. Severities follow
    ``max_loss * Beta(alpha, beta)``, with the shape parameters chosen so the
    compound Poisson annual loss has the requested mean and standard
    deviation:

    - ``E[S] = mean / lam`` and ``E[S^2] = std_dev^2 / lam``
    - ``m = E[S] / max_loss`` and ``v = E[S^2] / max_loss^2 - m^2``
    - ``nu = m (1 - m) / v - 1``, ``alpha = m nu``, ``beta = (1 - m) nu``

    Examples:
        One event every four years, annual loss mean 50 and std dev 150::

            risk = BetaRisk(max_loss=1_000.0, years=4.0, mean=50.0, std_dev=150.0)
            risk.expected_severity  # 200.0
    """

    def __init__(
        self,
        max_loss: float,
        years: float,
        mean: float,
        std_dev: float,
        seed: Optional[Union[int, np.random.SeedSequence]] = None,
    ):
        """Calibrate the model.

        Args:
            max_loss: Severity scale; no single event exceeds it.
            years: Average number of years between events.
            mean: Mean annual aggregate loss.
            std_dev: Standard deviation of the annual aggregate loss.
            seed: Seed from which every simulation's generator is derived.

        Raises:
            ConfigurationError: If a parameter is non-positive or no Beta
                severity can match the requested moments.
        """
        issues = []
        if max_loss <= 0:
            issues.append(f"Max loss must be positive, got {max_loss}")
        if years <= 0:
            issues.append(f"Years between events must be positive, got {years}")
        if mean <= 0:
            issues.append(f"Mean annual loss must be positive, got {mean}")
        if std_dev <= 0:
            issues.append(f"Standard deviation must be positive, got {std_dev}")
        if issues:
            raise ConfigurationError(issues)

        lam = 1.0 / years
        normalized_mean = mean / lam / max_loss
        normalized_var = std_dev**2 / lam / max_loss**2 - normalized_mean**2

        if normalized_mean >= 1.0:
            issues.append(
                f"Mean severity {mean / lam} implied by annual mean {mean} must be less than "
                f"the maximum loss {max_loss}"
            )
        elif not 0.0 < normalized_var < normalized_mean * (1.0 - normalized_mean):
            issues.append(
                f"Standard deviation {std_dev} cannot be reached with Beta severities capped "
                f"at {max_loss} and annual mean {mean}"
            )
        if issues:
            raise ConfigurationError(issues)

        nu = normalized_mean * (1.0 - normalized_mean) / normalized_var - 1.0
        self._max_loss = float(max_loss)
        self._lam = lam
        self._alpha = normalized_mean * nu
        self._beta = (1.0 - normalized_mean) * nu

        self._seed_sequence = np.random.SeedSequence(seed)
        self._spawn_lock = threading.Lock()

        logger.debug(
            f"Initialized BetaRisk: lambda={self._lam:.4f}, alpha={self._alpha:.4f}, "
            f"beta={self._beta:.4f}, max_loss={self._max_loss:,.2f}"
        )

    @property
    def max_loss(self) -> float:
        return self._max_loss

    @property
    def lam(self) -> float:
        """Expected number of events per year."""
        return self._lam

    @property
    def alpha(self) -> float:
        return self._alpha

    @property
    def beta(self) -> float:
        return self._beta

    @property
    def expected_severity(self) -> float:
        """Mean loss of a single event."""
        return self._max_loss * self._alpha / (self._alpha + self._beta)

    @property
    def expected_annual_loss(self) -> float:
        return self._lam * self.expected_severity

    @property
    def annual_loss_std(self) -> float:
        """Standard deviation of the annual aggregate loss, ``sqrt(lam E[S^2])``."""
        dist = self.severity_distribution()
        return float(np.sqrt(self._lam * dist.moment(2)))

    def severity_distribution(self) -> Any:
        """Frozen scipy distribution of single-event severities."""
        return stats.beta(self._alpha, self._beta, scale=self._max_loss)

    def new_simulation(
        self,
        start: DateLike,
        end: DateLike,
        seed: Optional[Union[int, np.random.SeedSequence]] = None,
    ) -> BetaRiskSimulation:
        """Create a parametric simulation over ``[start, end)``.

        Args:
            start: First date of the window.
            end: End of the window (exclusive).
            seed: Explicit seed. When omitted a child of the model's seed
                sequence is used, so each simulation gets an independent
                stream that is still reproducible from the model seed.

        Returns:
            A simulation owning its own random generator.
        """
        if seed is None:
            with self._spawn_lock:
                seed = self._seed_sequence.spawn(1)[0]
        return BetaRiskSimulation(
            start, end, self._max_loss, self._lam, self._alpha, self._beta, seed=seed
        )


def create_cat_risk(config: "CatRiskConfig") -> CatRisk:
    """Factory function to create a catastrophe risk model from configuration.

    Args:
        config: Validated model configuration.

    Returns:
        EventSet or BetaRisk instance.

    Raises:
        ValueError: If the model type is not recognized.
        ConfigurationError: If the configured parameters are invalid.
        FileNotFoundError: If an event file does not exist.
    """

    def build_beta() -> CatRisk:
        beta = config.beta
        assert beta is not None
        return BetaRisk(beta.max_loss, beta.years, beta.mean, beta.std_dev, seed=beta.random_seed)

    def build_event_set() -> CatRisk:
        event_set = config.event_set
        assert event_set is not None
        return load_event_set(
            event_set.events_file,
            event_set.events_start,
            event_set.events_end,
            date_column=event_set.date_column,
            loss_column=event_set.loss_column,
        )

    model_map = {
        "beta": build_beta,
        "event_set": build_event_set,
    }

    if config.model not in model_map:
        raise ValueError(
            f"Unknown model type: {config.model}. Choose from: {list(model_map.keys())}"
        )

    risk = model_map[config.model]()
    logger.info(f"Created {risk.__class__.__name__} from '{config.model}' configuration")
    return risk


def create_simulation(config: "CatRiskConfig") -> CatSimulation:
    """Create the model described by ``config`` and a simulation over its window.

    Raises:
        ConfigurationError: If the configuration has no simulation window.
    """
    if config.window is None:
        raise ConfigurationError(["Configuration does not define a simulation window"])
    return create_cat_risk(config).new_simulation(config.window.start, config.window.end)
