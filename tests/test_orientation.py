import math
import random

import numpy as np
import pytest

from dice_roller.dice import catalog
from dice_roller.dice.errors import UnknownFaceError
from dice_roller.dice.orientation import (
    OrientationResolver,
    angular_distance,
    nearest_equivalent,
    settle_step,
    spin_step,
)


def test_spin_step_integrates_velocity_and_decays_it():
    orientation = np.array([0.0, 1.0, -1.0])
    velocity = np.array([2.0, -4.0, 1.0])

    next_orientation, next_velocity = spin_step(orientation, velocity, 0.5, decay=0.992)

    np.testing.assert_allclose(next_orientation, [1.0, -1.0, -0.5])
    np.testing.assert_allclose(next_velocity, [1.984, -3.968, 0.992])


def test_settle_step_moves_five_percent_of_the_way():
    current = np.array([1.0, 0.0, -2.0])
    target = np.array([0.0, 2.0, -2.0])

    np.testing.assert_allclose(settle_step(current, target), [0.95, 0.1, -2.0])


def test_nearest_equivalent_picks_the_closest_full_turn():
    target = np.array([0.0, math.pi / 2, -1.0])
    current = np.array([2 * math.pi + 0.1, -3 * math.pi / 2 - 0.2, 11.0])

    shifted = nearest_equivalent(target, current)

    turns = (shifted - target) / (2 * math.pi)
    np.testing.assert_allclose(turns, [1.0, -1.0, 2.0], atol=1e-9)
    assert angular_distance(shifted, current) <= math.pi


@pytest.mark.parametrize("die_id", [kind.id for kind in catalog.list_dice_kinds()])
def test_settle_strictly_approaches_and_converges(die_id):
    resolver = OrientationResolver(die_id, rng=random.Random(3))
    resolver.begin_free_spin()
    for _ in range(90):
        resolver.tick(1 / 60)

    face = catalog.lookup(die_id).faces[-1]
    resolver.set_target_face(face)
    assert not resolver.has_converged()

    previous = resolver.remaining_distance()
    ticks = 0
    while not resolver.has_converged():
        resolver.tick(1 / 60)
        ticks += 1
        current = resolver.remaining_distance()
        assert current < previous
        previous = current
        assert ticks <= 200

    assert resolver.target_face == face


def test_converged_pose_matches_the_catalog_face():
    resolver = OrientationResolver("d6", tolerance=1e-6)
    resolver.begin_free_spin(velocity=(3.0, -2.0, 1.0))
    for _ in range(120):
        resolver.tick(1 / 60)

    resolver.set_target_face(4)
    while not resolver.has_converged():
        resolver.tick(1 / 60)

    expected = np.array(catalog.lookup("d6").orientation_for(4))
    wrapped = np.mod(resolver.orientation - expected + math.pi, 2 * math.pi) - math.pi
    np.testing.assert_allclose(wrapped, 0.0, atol=1e-5)


def test_free_spin_winds_down():
    resolver = OrientationResolver("d20")
    resolver.begin_free_spin(velocity=(4.0, 0.0, -4.0))
    start = resolver.orientation

    resolver.tick(0.1)

    assert not np.allclose(resolver.orientation, start)
    np.testing.assert_allclose(resolver.velocity, [4.0 * 0.992, 0.0, -4.0 * 0.992])
    assert resolver.remaining_distance() == math.inf
    assert not resolver.has_converged()


def test_random_spin_speed_is_bounded():
    resolver = OrientationResolver("d8", rng=random.Random(11))

    velocity = resolver.begin_free_spin()

    assert np.all(np.abs(velocity) <= 4.0)


def test_unknown_face_keeps_previous_target():
    resolver = OrientationResolver("d20")
    target = resolver.set_target_face(20)

    with pytest.raises(UnknownFaceError):
        resolver.set_target_face(21)

    assert resolver.target_face == 20
    np.testing.assert_allclose(resolver.target, target)
    resolver.tick(1 / 60)


def test_percentile_targets_use_tens():
    resolver = OrientationResolver("d100")

    resolver.set_target_face(0)
    with pytest.raises(UnknownFaceError):
        resolver.set_target_face(5)


def test_hold_converges_immediately():
    resolver = OrientationResolver("d12")
    resolver.begin_free_spin(velocity=(1.0, 1.0, 1.0))
    resolver.tick(0.2)

    resolver.hold()

    assert resolver.has_converged()
    np.testing.assert_allclose(resolver.velocity, 0.0)


def test_switching_die_clears_target():
    resolver = OrientationResolver("d6")
    resolver.set_target_face(3)

    resolver.set_die("d%")

    assert resolver.die_id == "d100"
    assert resolver.target is None


@pytest.mark.parametrize("kwargs", [{"decay": 1.0}, {"decay": 0.0}, {"settle_factor": 0.0}, {"tolerance": 0.0}])
def test_invalid_tuning_is_rejected(kwargs):
    with pytest.raises(ValueError):
        OrientationResolver("d6", **kwargs)
