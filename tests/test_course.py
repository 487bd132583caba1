from __future__ import annotations

import pytest

from arnav.sensors.course import CourseEstimator

from conftest import BASE, offset


def test_needs_two_fixes():
    est = CourseEstimator()
    assert est.estimate() == (False, 0.0)
    est.push_fix(BASE.lat, BASE.lon, 0.0)
    assert est.estimate().has_course is False


def test_stationary_has_no_course():
    est = CourseEstimator(window_s=5.0, min_speed_mps=0.5)
    for t, (n, e) in enumerate([(0.0, 0.0), (0.4, 0.3), (0.2, 0.8)]):
        p = offset(BASE, north_m=n, east_m=e)
        est.push_fix(p.lat, p.lon, t * 2.5)
    course = est.estimate()
    assert course.has_course is False
    assert course.course_deg == 0.0


def test_walking_east_gives_course():
    est = CourseEstimator(window_s=5.0, min_speed_mps=0.5)
    for t in range(5):
        p = offset(BASE, east_m=1.4 * t)
        est.push_fix(p.lat, p.lon, float(t))
    course = est.estimate()
    assert course.has_course
    assert course.course_deg == pytest.approx(90.0, abs=0.1)


def test_window_evicts_old_fixes():
    est = CourseEstimator(window_s=5.0)
    for t in range(10):
        p = offset(BASE, north_m=1.5 * t)
        est.push_fix(p.lat, p.lon, float(t))
    # fixes at t=4..9 remain (9 - 4 == 5 is not older than the window)
    assert len(est) == 6
    assert est.estimate().course_deg == pytest.approx(0.0, abs=0.1)


def test_course_follows_turn_after_window():
    est = CourseEstimator(window_s=3.0)
    p = BASE
    t = 0.0
    for _ in range(4):
        p = offset(p, north_m=1.5)
        t += 1.0
        est.push_fix(p.lat, p.lon, t)
    for _ in range(5):
        p = offset(p, east_m=-1.5)
        t += 1.0
        est.push_fix(p.lat, p.lon, t)
    assert est.estimate().course_deg == pytest.approx(270.0, abs=0.5)


def test_identical_timestamps_do_not_divide_by_zero():
    est = CourseEstimator()
    a = offset(BASE, north_m=10.0)
    est.push_fix(BASE.lat, BASE.lon, 1.0)
    est.push_fix(a.lat, a.lon, 1.0)
    course = est.estimate()
    assert course.has_course
    assert course.course_deg == pytest.approx(0.0, abs=0.1)


def test_clear():
    est = CourseEstimator()
    est.push_fix(BASE.lat, BASE.lon, 0.0)
    est.clear()
    assert len(est) == 0
