"""Tests for the parametric Poisson / Beta catastrophe model."""

from datetime import date

import numpy as np
import pytest
from scipy import stats

from catrisk.analysis import simulate_path_losses
from catrisk.cat_risk import BetaRisk, BetaRiskSimulation, CatEvent
from catrisk.exceptions import ConfigurationError


def collect_paths(simulation):
    """Drain a simulation into (period_start, period_end, events) tuples."""
    paths = []
    path = []
    while simulation.next_path(path):
        paths.append((simulation.period_start, simulation.period_end, list(path)))
    return paths


class TestBetaRiskCalibration:
    """Test moment matching of the model parameters."""

    def test_arrival_rate(self, beta_risk):
        """Test that events arrive once per `years` on average."""
        assert beta_risk.lam == pytest.approx(0.5)
        assert beta_risk.max_loss == 1_000.0

    def test_severity_moments(self, beta_risk):
        """Test the implied single-event severity."""
        assert beta_risk.expected_severity == pytest.approx(300.0)
        assert beta_risk.alpha / (beta_risk.alpha + beta_risk.beta) == pytest.approx(0.3)

        dist = beta_risk.severity_distribution()
        assert dist.mean() == pytest.approx(300.0)
        assert dist.std() == pytest.approx(np.sqrt(0.0068) * 1_000.0)

    def test_annual_moments_match_inputs(self, beta_risk):
        """Test that the compound Poisson moments reproduce mean and std dev."""
        assert beta_risk.expected_annual_loss == pytest.approx(150.0)
        assert beta_risk.annual_loss_std == pytest.approx(220.0)

    def test_shape_parameters(self):
        """Test the closed form of alpha and beta."""
        risk = BetaRisk(max_loss=1_000.0, years=4.0, mean=50.0, std_dev=150.0)
        # m = 0.2, v = 0.05, nu = 0.16 / 0.05 - 1
        assert risk.alpha == pytest.approx(0.2 * 2.2)
        assert risk.beta == pytest.approx(0.8 * 2.2)
        assert risk.expected_severity == pytest.approx(200.0)


class TestBetaRiskValidation:
    """Test rejection of invalid parameters."""

    @pytest.mark.parametrize(
        "kwargs, message",
        [
            ({"max_loss": -1.0}, "Max loss must be positive"),
            ({"years": 0.0}, "Years between events must be positive"),
            ({"mean": 0.0}, "Mean annual loss must be positive"),
            ({"std_dev": 0.0}, "Standard deviation must be positive"),
        ],
    )
    def test_non_positive_parameters(self, kwargs, message):
        """Test that each parameter must be positive."""
        params = {"max_loss": 1_000.0, "years": 2.0, "mean": 150.0, "std_dev": 220.0}
        params.update(kwargs)
        with pytest.raises(ConfigurationError, match=message):
            BetaRisk(**params)

    def test_multiple_issues_reported(self):
        """Test that all invalid parameters are listed together."""
        with pytest.raises(ConfigurationError) as exc_info:
            BetaRisk(max_loss=-1.0, years=0.0, mean=1.0, std_dev=1.0)
        assert len(exc_info.value.issues) == 2

    def test_mean_severity_above_max_loss(self):
        """Test that the implied severity must stay below the max loss."""
        with pytest.raises(ConfigurationError, match="must be less than the maximum loss"):
            BetaRisk(max_loss=100.0, years=2.0, mean=60.0, std_dev=80.0)

    @pytest.mark.parametrize("std_dev", [200.0, 400.0])
    def test_unreachable_std_dev(self, std_dev):
        """Test that too small or too large deviations are rejected."""
        with pytest.raises(ConfigurationError, match="cannot be reached"):
            BetaRisk(max_loss=1_000.0, years=2.0, mean=150.0, std_dev=std_dev)

    def test_simulation_rejects_bad_shapes(self):
        """Test direct construction of a simulation with invalid shapes."""
        with pytest.raises(ConfigurationError, match="shape parameters"):
            BetaRiskSimulation(date(2020, 1, 1), date(2021, 1, 1), 1_000.0, 0.5, 0.0, 1.0)

    def test_simulation_rejects_reversed_window(self, beta_risk):
        """Test that a reversed window is rejected."""
        with pytest.raises(ConfigurationError):
            beta_risk.new_simulation(date(2021, 1, 1), date(2020, 1, 1))


class TestBetaRiskSimulation:
    """Test path generation."""

    def test_path_count(self, beta_risk):
        """Test one path per whole or partial year."""
        assert len(collect_paths(beta_risk.new_simulation(date(2020, 1, 1), date(2030, 1, 1)))) == 10
        assert len(collect_paths(beta_risk.new_simulation(date(2020, 1, 1), date(2030, 7, 1)))) == 11

    def test_short_window(self, beta_risk):
        """Test that a window under one year yields exactly one path."""
        sim = beta_risk.new_simulation(date(2020, 3, 1), date(2020, 9, 1))
        path = []
        assert sim.next_path(path) is True
        assert sim.next_path(path) is False
        assert path == []

    def test_zero_length_window(self, beta_risk):
        """Test that an empty window yields nothing."""
        sim = beta_risk.new_simulation(date(2020, 1, 1), date(2020, 1, 1))
        assert sim.next_path([]) is False

    def test_events_sorted_and_bounded(self, beta_risk):
        """Test dates within the sub-period and severities within [0, max_loss]."""
        sim = beta_risk.new_simulation(date(2020, 5, 17), date(2070, 2, 1))
        n_events = 0
        for period_start, period_end, events in collect_paths(sim):
            dates = [e.date for e in events]
            assert dates == sorted(dates)
            for event in events:
                assert isinstance(event, CatEvent)
                assert period_start <= event.date < period_end
                assert 0.0 <= event.loss <= beta_risk.max_loss
            n_events += len(events)
        assert n_events > 0

    def test_same_seed_same_paths(self):
        """Test that identical parameters and seed give identical paths."""
        risk1 = BetaRisk(max_loss=1_000.0, years=2.0, mean=150.0, std_dev=220.0, seed=7)
        risk2 = BetaRisk(max_loss=1_000.0, years=2.0, mean=150.0, std_dev=220.0, seed=7)

        paths1 = collect_paths(risk1.new_simulation(date(2020, 1, 1), date(2040, 1, 1)))
        paths2 = collect_paths(risk2.new_simulation(date(2020, 1, 1), date(2040, 1, 1)))
        assert paths1 == paths2

    def test_explicit_seed(self, beta_risk):
        """Test that an explicit seed overrides the model seed stream."""
        paths1 = collect_paths(beta_risk.new_simulation(date(2020, 1, 1), date(2040, 1, 1), seed=3))
        paths2 = collect_paths(beta_risk.new_simulation(date(2020, 1, 1), date(2040, 1, 1), seed=3))
        assert paths1 == paths2

    def test_simulations_are_independent(self, beta_risk):
        """Test that successive simulations draw from different streams."""
        sim1 = beta_risk.new_simulation(date(2020, 1, 1), date(2070, 1, 1))
        sim2 = beta_risk.new_simulation(date(2020, 1, 1), date(2070, 1, 1))
        assert sim1.rng is not sim2.rng
        assert collect_paths(sim1) != collect_paths(sim2)

    def test_generate_beta(self, beta_risk):
        """Test scalar and vector severity draws."""
        sim = beta_risk.new_simulation(date(2020, 1, 1), date(2021, 1, 1), seed=1)
        single = sim.generate_beta()
        assert isinstance(single, float)
        assert 0.0 <= single <= 1_000.0

        draws = sim.generate_beta(5_000)
        assert draws.shape == (5_000,)
        assert np.mean(draws) == pytest.approx(300.0, rel=0.03)


class TestBetaRiskConvergence:
    """Test statistical properties of simulated annual losses."""

    @pytest.fixture
    def annual_losses(self):
        """Annual aggregate losses from 200 simulations of 50 calendar years."""
        risk = BetaRisk(max_loss=1_000.0, years=2.0, mean=150.0, std_dev=220.0, seed=12345)
        return np.concatenate(
            [
                simulate_path_losses(risk.new_simulation(date(2000, 1, 1), date(2050, 1, 1)))
                for _ in range(200)
            ]
        )

    def test_annual_mean_converges(self, annual_losses):
        """Test that the aggregate annual mean matches the calibration target."""
        assert len(annual_losses) == 10_000
        assert np.mean(annual_losses) == pytest.approx(150.0, rel=0.05)

    def test_annual_std_converges(self, annual_losses):
        """Test that the aggregate annual std dev matches the calibration target."""
        assert np.std(annual_losses, ddof=1) == pytest.approx(220.0, rel=0.05)

    def test_event_frequency(self, annual_losses):
        """Test that loss-free years occur with Poisson probability exp(-lambda)."""
        share_without_loss = np.mean(annual_losses == 0.0)
        expected = stats.poisson.pmf(0, 0.5)
        assert share_without_loss == pytest.approx(expected, abs=0.02)
