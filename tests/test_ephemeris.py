"""
Test suite for Ephemeris.

Tests cover:
- Construction preconditions
- Prolongation (grid, idempotence, t_min/t_max, non-finite times)
- Two-body scenarios against closed-form motion
- forget_before
- Fixed-step and adaptive-step flows of massless particles
"""

import logging
import math
import pytest
import numpy as np
from kinema import (
    Ephemeris, FixedStepParameters, AdaptiveStepParameters, MassiveBody,
    DegreesOfFreedom, DiscreteTrajectory, KeplerOrbit, KeplerianElements,
    SymplecticPartitionedRungeKutta, TaylorIntegrator
)

LOW = 1e-8
HIGH = 1e-6


def at_rest(position):
    return DegreesOfFreedom(position, [0.0, 0.0, 0.0])


@pytest.fixture
def infall():
    """Two unit bodies 2 apart, released at rest."""
    bodies = [MassiveBody(1.0, name="A"), MassiveBody(1.0, name="B")]
    ephemeris = Ephemeris(bodies, [at_rest([-1, 0, 0]), at_rest([1, 0, 0])], 0.0,
                          FixedStepParameters(0.01), LOW, HIGH)
    return ephemeris, bodies


@pytest.fixture
def central_body():
    """A single unit body at rest at the origin."""
    body = MassiveBody(1.0, name="central")
    ephemeris = Ephemeris([body], [at_rest([0, 0, 0])], 0.0,
                          FixedStepParameters(0.01), LOW, HIGH)
    return ephemeris, body


def circular_particle(t0=0.0):
    trajectory = DiscreteTrajectory()
    trajectory.append(t0, DegreesOfFreedom([1.0, 0.0, 0.0], [0.0, 1.0, 0.0]))
    return trajectory


class TestConstruction:
    """Test constructor preconditions."""

    def test_empty_bodies(self):
        with pytest.raises(ValueError, match="at least one"):
            Ephemeris([], [], 0.0, FixedStepParameters(1.0), LOW, HIGH)

    def test_size_mismatch(self):
        with pytest.raises(ValueError):
            Ephemeris([MassiveBody(1.0)], [at_rest([0, 0, 0])] * 2, 0.0,
                      FixedStepParameters(1.0), LOW, HIGH)

    def test_none_body(self):
        with pytest.raises(ValueError):
            Ephemeris([None], [at_rest([0, 0, 0])], 0.0,
                      FixedStepParameters(1.0), LOW, HIGH)

    def test_duplicate_body(self):
        body = MassiveBody(1.0)
        with pytest.raises(ValueError, match="more than once"):
            Ephemeris([body, body], [at_rest([0, 0, 0]), at_rest([1, 0, 0])], 0.0,
                      FixedStepParameters(1.0), LOW, HIGH)

    def test_not_a_body(self):
        with pytest.raises(TypeError):
            Ephemeris([1.0], [at_rest([0, 0, 0])], 0.0,
                      FixedStepParameters(1.0), LOW, HIGH)

    def test_array_initial_state(self):
        body = MassiveBody(1.0)
        ephemeris = Ephemeris([body], [np.array([1, 2, 3, 0, 0, 0])], 5.0,
                              FixedStepParameters(1.0), LOW, HIGH)
        t, dof = ephemeris.trajectory(body).last()
        assert t == 5.0
        np.testing.assert_array_equal(dof.position, [1, 2, 3])

    def test_initial_range(self, infall):
        """The initial state alone gives an empty query range."""
        ephemeris, bodies = infall
        assert ephemeris.t_min() == 0.0
        assert ephemeris.t_max() == 0.0
        assert ephemeris.bodies == tuple(bodies)
        assert ephemeris.step == 0.01

    def test_unknown_body(self, infall):
        ephemeris, _ = infall
        with pytest.raises(ValueError, match="not part"):
            ephemeris.trajectory(MassiveBody(1.0))

    @pytest.mark.parametrize("step", [0.0, -1.0])
    def test_invalid_step(self, step):
        with pytest.raises(ValueError):
            FixedStepParameters(step)

    def test_invalid_adaptive_tolerances(self):
        with pytest.raises(ValueError):
            AdaptiveStepParameters(0.0, 1e-6)


class TestProlong:
    """Test prolong()."""

    def test_reaches_t(self, infall):
        ephemeris, _ = infall
        ephemeris.prolong(0.505)
        assert ephemeris.t_max() >= 0.505
        assert ephemeris.t_max() < 0.505 + ephemeris.step + 1e-12
        assert ephemeris.last_state.time == ephemeris.t_max()

    def test_samples_on_grid(self, infall):
        ephemeris, bodies = infall
        ephemeris.prolong(0.5)
        t, _ = ephemeris.trajectory(bodies[0]).last()
        assert t / ephemeris.step == pytest.approx(round(t / ephemeris.step), abs=1e-9)

    def test_idempotent(self, infall):
        ephemeris, bodies = infall
        ephemeris.prolong(0.5)
        t_max = ephemeris.t_max()
        last = ephemeris.trajectory(bodies[1]).last()
        ephemeris.prolong(0.25)
        ephemeris.prolong(t_max)
        assert ephemeris.t_max() == t_max
        assert ephemeris.trajectory(bodies[1]).last()[0] == last[0]

    @pytest.mark.parametrize("t", [math.inf, -math.inf, math.nan])
    def test_non_finite_time(self, infall, t):
        ephemeris, _ = infall
        t_max = ephemeris.t_max()
        with pytest.raises(ValueError, match="finite"):
            ephemeris.prolong(t)
        assert ephemeris.t_max() == t_max

    def test_consistent_ranges(self, infall):
        """Every body can be queried over [t_min(), t_max())."""
        ephemeris, bodies = infall
        ephemeris.prolong(1.0)
        for body in bodies:
            trajectory = ephemeris.trajectory(body)
            assert trajectory.t_min <= ephemeris.t_min()
            assert trajectory.t_max >= ephemeris.t_max()

    def test_infall(self, infall):
        """Equal bodies fall symmetrically towards their barycentre."""
        ephemeris, (a, b) = infall
        ephemeris.prolong(1.0)
        previous_separation = math.inf
        for t in np.linspace(0.0, 1.0, 11, endpoint=False):
            qa = ephemeris.trajectory(a).evaluate_position(t)
            qb = ephemeris.trajectory(b).evaluate_position(t)
            va = ephemeris.trajectory(a).evaluate_velocity(t)
            vb = ephemeris.trajectory(b).evaluate_velocity(t)
            np.testing.assert_allclose(qa + qb, np.zeros(3), atol=1e-9)
            assert qa[0] < 0 < qb[0]
            assert qa[1] == pytest.approx(0.0, abs=1e-12)
            # Relative energy: |v_rel|² / 2 - (μa + μb) / d = -2 / 2
            separation = np.linalg.norm(qb - qa)
            assert separation < previous_separation
            previous_separation = separation
            energy = 0.5 * np.dot(vb - va, vb - va) - 2.0 / separation
            assert energy == pytest.approx(-1.0, abs=1e-4)
        assert previous_separation < 2.0

    def test_circular_orbit_matches_kepler(self):
        """A light satellite follows the Kepler orbit over one period."""
        primary = MassiveBody(1.0, name="primary")
        secondary = MassiveBody(1e-3, name="secondary")
        orbit = KeplerOrbit(primary, secondary, 0.0, KeplerianElements(1.0, 0.1))
        relative = orbit.primocentric_state_vectors(0.0)
        ratio = secondary.gravitational_parameter / orbit.gravitational_parameter
        primary_dof = DegreesOfFreedom(-ratio * relative.position,
                                       -ratio * relative.velocity)
        secondary_dof = primary_dof + relative
        ephemeris = Ephemeris([primary, secondary], [primary_dof, secondary_dof], 0.0,
                              FixedStepParameters(0.01), LOW, HIGH)

        period = orbit.orbital_period()
        ephemeris.prolong(period)
        for t in [0.25 * period, 0.5 * period, 0.99 * period]:
            actual = (ephemeris.trajectory(secondary).evaluate_position(t)
                      - ephemeris.trajectory(primary).evaluate_position(t))
            expected = orbit.primocentric_state_vectors(t).position
            np.testing.assert_allclose(actual, expected, atol=1e-5)

    def test_taylor_integrator(self):
        """Bodies may be integrated by the Taylor integrator."""
        bodies = [MassiveBody(1.0), MassiveBody(1.0)]
        ephemeris = Ephemeris(bodies,
                              [DegreesOfFreedom([-1, 0, 0], [0, -0.5, 0]),
                               DegreesOfFreedom([1, 0, 0], [0, 0.5, 0])],
                              0.0, FixedStepParameters(0.01, TaylorIntegrator()),
                              LOW, HIGH)
        ephemeris.prolong(2.0)
        q = ephemeris.trajectory(bodies[1]).evaluate_position(math.pi / 2)
        np.testing.assert_allclose(q, [math.cos(math.pi / 4), math.sin(math.pi / 4), 0],
                                   atol=1e-6)


class TestForgetBefore:
    """Test forget_before()."""

    def test_t_min_moves(self, infall):
        ephemeris, bodies = infall
        ephemeris.prolong(1.0)
        ephemeris.forget_before(0.5)
        assert ephemeris.t_min() == 0.5
        with pytest.raises(ValueError):
            ephemeris.trajectory(bodies[0]).evaluate_position(0.4)

    def test_monotonic(self, infall):
        ephemeris, _ = infall
        ephemeris.prolong(1.0)
        ephemeris.forget_before(0.5)
        ephemeris.forget_before(0.2)
        assert ephemeris.t_min() == 0.5

    def test_after_t_max_raises(self, infall):
        ephemeris, _ = infall
        ephemeris.prolong(1.0)
        with pytest.raises(ValueError):
            ephemeris.forget_before(10.0)


class TestGravitationalAcceleration:
    """Test compute_gravitational_acceleration()."""

    def test_between_equal_bodies(self, infall):
        ephemeris, _ = infall
        ephemeris.prolong(0.1)
        np.testing.assert_allclose(
            ephemeris.compute_gravitational_acceleration(0.0, [0.0, 0.0, 0.0]),
            np.zeros(3), atol=1e-12)

    def test_shapes(self, central_body):
        ephemeris, _ = central_body
        ephemeris.prolong(0.1)
        single = ephemeris.compute_gravitational_acceleration(0.0, [2.0, 0.0, 0.0])
        np.testing.assert_allclose(single, [-0.25, 0.0, 0.0])
        several = ephemeris.compute_gravitational_acceleration(
            0.0, [[2.0, 0.0, 0.0], [0.0, 1.0, 0.0]])
        np.testing.assert_allclose(several, [[-0.25, 0, 0], [0, -1.0, 0]])


class TestFlowWithFixedStep:
    """Test flow_with_fixed_step()."""

    def test_circular_orbit(self, central_body):
        ephemeris, _ = central_body
        particle = circular_particle()
        ephemeris.flow_with_fixed_step([particle], [Ephemeris.NO_INTRINSIC_ACCELERATION],
                                       math.pi)
        t, dof = particle.last()
        assert t <= math.pi
        assert t > math.pi - ephemeris.step
        np.testing.assert_allclose(dof.position, [math.cos(t), math.sin(t), 0],
                                   atol=1e-7)
        assert ephemeris.t_max() > math.pi

    def test_several_particles(self, central_body):
        ephemeris, _ = central_body
        first = circular_particle()
        second = DiscreteTrajectory()
        second.append(0.0, DegreesOfFreedom([0.0, 4.0, 0.0], [-0.5, 0.0, 0.0]))
        ephemeris.flow_with_fixed_step(
            [first, second], [Ephemeris.NO_INTRINSIC_ACCELERATION] * 2, 1.0)
        assert first.last()[0] == second.last()[0]
        _, dof = second.last()
        assert np.linalg.norm(dof.position) == pytest.approx(4.0, abs=1e-7)

    def test_intrinsic_acceleration(self, central_body):
        """A constant push far from the body gives uniform acceleration."""
        ephemeris, _ = central_body
        particle = DiscreteTrajectory()
        particle.append(0.0, at_rest([1e6, 0.0, 0.0]))
        push = lambda t: np.array([0.0, 1.0, 0.0])
        ephemeris.flow_with_fixed_step([particle], [push], 2.0,
                                       FixedStepParameters(0.1))
        t, dof = particle.last()
        assert t == pytest.approx(2.0)
        assert dof.position[1] == pytest.approx(0.5 * t**2, rel=1e-9)
        assert dof.velocity[1] == pytest.approx(t, rel=1e-9)

    def test_leapfrog_parameters(self, central_body):
        ephemeris, _ = central_body
        particle = circular_particle()
        ephemeris.flow_with_fixed_step(
            [particle], [Ephemeris.NO_INTRINSIC_ACCELERATION], 1.0,
            FixedStepParameters(0.001, SymplecticPartitionedRungeKutta.leapfrog()))
        t, dof = particle.last()
        np.testing.assert_allclose(dof.position, [math.cos(t), math.sin(t), 0],
                                   atol=1e-6)

    def test_nothing_to_do(self, central_body):
        ephemeris, _ = central_body
        particle = circular_particle()
        ephemeris.flow_with_fixed_step([particle], [Ephemeris.NO_INTRINSIC_ACCELERATION],
                                       0.001)
        assert len(particle) == 1

    def test_mismatched_sizes(self, central_body):
        ephemeris, _ = central_body
        with pytest.raises(ValueError):
            ephemeris.flow_with_fixed_step([circular_particle()], [], 1.0)

    def test_different_last_times(self, central_body):
        ephemeris, _ = central_body
        late = DiscreteTrajectory()
        late.append(0.5, at_rest([2.0, 0.0, 0.0]))
        with pytest.raises(ValueError, match="same time"):
            ephemeris.flow_with_fixed_step(
                [circular_particle(), late],
                [Ephemeris.NO_INTRINSIC_ACCELERATION] * 2, 1.0)

    @pytest.mark.parametrize("t", [math.inf, math.nan])
    def test_non_finite_time(self, central_body, t):
        ephemeris, _ = central_body
        particle = circular_particle()
        with pytest.raises(ValueError, match="finite"):
            ephemeris.flow_with_fixed_step([particle],
                                           [Ephemeris.NO_INTRINSIC_ACCELERATION], t)
        assert len(particle) == 1

    def test_before_t_min(self, central_body):
        ephemeris, _ = central_body
        ephemeris.prolong(1.0)
        ephemeris.forget_before(0.5)
        with pytest.raises(ValueError, match="t_min"):
            ephemeris.flow_with_fixed_step([circular_particle()],
                                           [Ephemeris.NO_INTRINSIC_ACCELERATION], 1.0)


class TestFlowWithAdaptiveStep:
    """Test flow_with_adaptive_step()."""

    def test_circular_orbit(self, central_body):
        ephemeris, _ = central_body
        particle = circular_particle()
        reached = ephemeris.flow_with_adaptive_step(
            particle, Ephemeris.NO_INTRINSIC_ACCELERATION, math.pi,
            AdaptiveStepParameters(1e-10, 1e-10))
        assert reached
        t, dof = particle.last()
        assert t == pytest.approx(math.pi)
        np.testing.assert_allclose(dof.position, [-1.0, 0.0, 0.0], atol=1e-6)

    def test_step_budget(self, central_body, caplog):
        """Running out of steps is reported, not raised."""
        ephemeris, _ = central_body
        particle = circular_particle()
        with caplog.at_level(logging.INFO, logger="kinema.ephemeris"):
            reached = ephemeris.flow_with_adaptive_step(
                particle, Ephemeris.NO_INTRINSIC_ACCELERATION, 10.0,
                AdaptiveStepParameters(1e-10, 1e-10), max_ephemeris_steps=2)
        assert not reached
        assert len(particle) == 3
        assert particle.last()[0] < 10.0
        assert "ran out of steps" in caplog.text

    def test_resume_after_budget(self, central_body):
        ephemeris, _ = central_body
        particle = circular_particle()
        parameters = AdaptiveStepParameters(1e-10, 1e-10)
        ephemeris.flow_with_adaptive_step(particle, Ephemeris.NO_INTRINSIC_ACCELERATION,
                                          1.0, parameters, max_ephemeris_steps=1)
        assert ephemeris.flow_with_adaptive_step(
            particle, Ephemeris.NO_INTRINSIC_ACCELERATION, 1.0, parameters)
        assert particle.last()[0] == pytest.approx(1.0)

    def test_already_there(self, central_body):
        ephemeris, _ = central_body
        particle = circular_particle()
        assert ephemeris.flow_with_adaptive_step(
            particle, Ephemeris.NO_INTRINSIC_ACCELERATION, 0.0,
            AdaptiveStepParameters(1e-10, 1e-10))
        assert len(particle) == 1

    @pytest.mark.parametrize("t", [math.inf, math.nan])
    def test_non_finite_time(self, central_body, t):
        ephemeris, _ = central_body
        particle = circular_particle()
        with pytest.raises(ValueError, match="finite"):
            ephemeris.flow_with_adaptive_step(
                particle, Ephemeris.NO_INTRINSIC_ACCELERATION, t,
                AdaptiveStepParameters(1e-10, 1e-10))
        assert len(particle) == 1

    def test_intrinsic_acceleration(self, central_body):
        ephemeris, _ = central_body
        particle = DiscreteTrajectory()
        particle.append(0.0, at_rest([1e6, 0.0, 0.0]))
        ephemeris.flow_with_adaptive_step(
            particle, lambda t: np.array([0.0, 0.0, 2.0]), 3.0,
            AdaptiveStepParameters(1e-9, 1e-9))
        _, dof = particle.last()
        assert dof.position[2] == pytest.approx(9.0, rel=1e-9)


class TestRepresentation:

    def test_repr(self, infall):
        ephemeris, _ = infall
        text = repr(ephemeris)
        assert "Ephemeris" in text
        assert "'A'" in text
