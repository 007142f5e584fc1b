from __future__ import annotations

import math
import threading

import numpy as np
import pytest

from galaxy_display import GalaxyDisplay, replace, rotation_about_vertical
from galaxy_parameters import GalaxyParameters, ParameterError
from generate_galaxy import generate_galaxy


@pytest.fixture
def display(small_params):
    d = GalaxyDisplay(small_params, seed=1)
    d.regenerate()
    yield d
    d.close()


def test_replace_releases_previous(small_params):
    first = replace(None, generate_galaxy(small_params, seed=1))
    assert len(first.geometry.points) == small_params.count

    second = replace(first, generate_galaxy(small_params, seed=2))

    assert first.released
    assert not first.geometry.has_points()
    assert not second.released
    assert len(second.geometry.points) == small_params.count


def test_regenerate_builds_a_fresh_cloud(display):
    old = display.current
    new = display.regenerate()

    assert new is not old
    assert old.released
    assert not np.array_equal(old.cloud.positions, new.cloud.positions)


def test_generation_param_commit_regenerates(display):
    old = display.current
    display.on_parameter_committed("arms", 6)

    assert display.params.arms == 6
    assert display.current is not old
    assert display.cloud.count == display.params.count


def test_display_only_commit_keeps_cloud(display):
    old = display.current
    display.on_parameter_committed("rotationSpeed", 1.0)
    display.on_parameter_committed("size", 0.05)

    assert display.current is old
    assert display.params.size == pytest.approx(0.05)


def test_rejected_commit_keeps_previous_state(display):
    old_params = display.params
    old = display.current

    with pytest.raises(ParameterError):
        display.on_parameter_committed("arms", 0)

    assert display.params is old_params
    assert display.current is old


def test_update_parameters_regenerates_once(display):
    display.update_parameters(count=1000, insideColor="#ffffff")
    assert display.cloud.count == 1000
    assert display.cloud.sun.color == (1.0, 1.0, 1.0)


def test_tick_accumulates_rotation():
    d = GalaxyDisplay(GalaxyParameters(count=100, rotation_speed=0.5))
    d.tick(1.0)
    assert d.tick(2.0) == pytest.approx(1.5)


def test_rotation_about_vertical_axis():
    rotation = rotation_about_vertical(math.pi / 2)
    np.testing.assert_allclose(rotation @ [1.0, 0.0, 0.0], [0.0, 0.0, -1.0], atol=1e-12)
    np.testing.assert_allclose(rotation @ [0.0, 1.0, 0.0], [0.0, 1.0, 0.0], atol=1e-12)


def test_rotated_points_keep_radius_and_height(display):
    display.tick(10.0)
    rotated = display.rotated_points()
    original = display.cloud.points()

    np.testing.assert_allclose(rotated[:, 1], original[:, 1], atol=1e-6)
    np.testing.assert_allclose(
        np.linalg.norm(rotated, axis=1), np.linalg.norm(original, axis=1), rtol=1e-5
    )


def test_geometries_do_not_touch_displayed_buffers(display):
    display.tick(100.0)
    galaxy, sun = display.geometries()

    np.testing.assert_allclose(np.asarray(galaxy.points), display.rotated_points(), atol=1e-5)
    np.testing.assert_allclose(np.asarray(display.current.geometry.points), display.cloud.points(), atol=1e-6)
    assert sun.has_vertices()


def test_close_releases_current(small_params):
    d = GalaxyDisplay(small_params, seed=3)
    shown = d.regenerate()
    d.close()

    assert shown.released
    assert d.current is None
    assert d.geometries() == []


def test_overlapping_commits_keep_every_edit(small_params):
    d = GalaxyDisplay(small_params, seed=4)
    d.regenerate()
    edits = [("arms", 6), ("spin", 1.5), ("radius", 4.0), ("randomness", 0.1)]

    threads = [
        threading.Thread(target=d.on_parameter_committed, args=edit) for edit in edits
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert d.params.arms == 6
    assert d.params.spin == pytest.approx(1.5)
    assert d.params.radius == pytest.approx(4.0)
    assert d.params.randomness == pytest.approx(0.1)
    d.close()
