"""
Test suite for TypeInfo weights and the DualLPChecker cases.

All instances are small enough that the heaviest patterns can be worked
out by hand; the expected values below are exact.
"""

import sys
import os
sys.path.append(os.path.dirname(os.path.abspath(__file__)))

from fractions import Fraction

import pytest

from models import ContractViolation, ContractViolationError, Infeasible, Resolved, TypeInfo
from feasibility import AllowAll, MutualExclusion
from bisection import SearchMode, VerifyMode
from dual_lp import DualLPChecker, SUPER_HARMONIC, SUPER_HARMONIC_Y3_MAX, THRESHOLD_SLACK


F = Fraction


def small_r_types():
    return [TypeInfo(F(1, 3), F(1, 10), bluefit=2, redfit=1, needs=1, leaves=0)]


def medium_r_types(red=F(1, 10)):
    return [TypeInfo(F(2, 5), F(0), bluefit=2),
            TypeInfo(F(1, 3), red, bluefit=2, redfit=1, needs=1, leaves=0)]


# ----------------------------------------------------------------------
# TypeInfo
# ----------------------------------------------------------------------

def test_type_weights():
    t = TypeInfo(F(1, 4), F(1, 10), bluefit=3, redfit=2, needs=2, leaves=1)
    assert t.blue_weight == F(3, 10)
    assert t.red_weight == F(1, 20)
    assert t.weight_w(1) == F(7, 20)
    assert t.weight_w(2) == F(7, 20)
    assert t.weight_w(3) == F(3, 10)
    assert t.weight_v(1) == F(1, 20)
    assert t.weight_v(2) == F(7, 20)

    blue_only = TypeInfo(F(1, 5), F(0), bluefit=4)
    assert blue_only.red_weight == 0
    assert blue_only.weight_w(5) == F(1, 4)
    assert blue_only.weight_v(0) == 0
    assert blue_only.weight_v(1) == F(1, 4)


def test_omega():
    r_type = TypeInfo(F(1, 3), F(1, 10), bluefit=2, redfit=1, needs=1, leaves=2)
    assert r_type.omega(r_type, F(1, 20), F(1, 10), F(0)) == F(13, 22)

    needs_leftover = TypeInfo(F(1, 4), F(1, 10), bluefit=3, redfit=2, needs=2, leaves=1)
    assert needs_leftover.omega(r_type, F(0), F(1, 10), F(1, 2)) == F(41, 200)

    plain = TypeInfo(F(1, 5), F(0), bluefit=4)
    assert plain.omega(r_type, F(1, 20), F(1, 10), F(1, 2)) == F(1, 4)


def test_type_info_contract():
    with pytest.raises(ContractViolationError):
        TypeInfo(F(0), F(0), bluefit=1)
    with pytest.raises(ContractViolationError):
        TypeInfo(F(1, 3), F(0), bluefit=0)
    with pytest.raises(ContractViolationError):
        TypeInfo(F(1, 3), F(1, 10), bluefit=2, redfit=0)


# ----------------------------------------------------------------------
# case construction
# ----------------------------------------------------------------------

def test_sand_and_threshold():
    checker = DualLPChecker(small_r_types(), [F(0), F(1, 4)], F(8, 5))
    assert checker.sand_expansion == F(3, 2)
    assert checker.weight_threshold == F(8, 5) - THRESHOLD_SLACK


def test_small_r_case():
    checker = DualLPChecker(small_r_types(), [F(0), F(1, 4)], F(8, 5))
    case = checker.build_case(1)
    assert case.sizes == [F(2, 3), F(1, 2), F(1, 3)]
    assert isinstance(case.predicate, AllowAll)
    assert case.weights_at(F(3, 16)) == [F(1), F(13, 16), F(11, 20)]


def test_small_r_case_bisects_to_feasible_y3():
    # y3 = 3/16: {1/3, 1/2} weighs 129/80 > 8/5 and gets lighter for larger y3;
    # y3 = 9/32: 1/2 drops below sand and {1/3: 2} weighs exactly 8/5
    checker = DualLPChecker(small_r_types(), [F(0), F(1, 4)], F(8, 5))
    result = checker.check_case(1)
    assert isinstance(result, Resolved)
    assert result.value == F(9, 32)
    assert result.iterations == 2
    assert result.pattern.weight_incl_filler(checker.sand_expansion) == F(8, 5)


def test_medium_r_simple_case():
    checker = DualLPChecker(medium_r_types(), [F(0), F(2, 5)], F(17, 10))
    assert checker.weight_of_q1(1) == F(33, 20)
    case = checker.build_case(1)
    assert case.sizes == [F(2, 3), F(3, 5), F(1, 2), F(2, 5), F(1, 3)]
    assert isinstance(case.predicate, AllowAll)
    assert case.post_check is None
    assert case.extras == {}


def test_medium_r_extended_case():
    checker = DualLPChecker(medium_r_types(), [F(0), F(2, 5)], F(8, 5))
    case = checker.build_case(1)
    assert isinstance(case.predicate, MutualExclusion)
    assert (case.predicate.size_a, case.predicate.size_b) == (F(3, 5), F(1, 3))
    assert case.extras == {"y1": F(1, 20), "y2": F(1, 10)}
    assert case.weights_at(F(3, 16)) == [F(1), F(1), F(13, 16), F(1, 2), F(13, 22)]
    assert case.post_check is not None


def test_medium_r_extended_case_equal_components():
    # heaviest pattern is {1/3: 2} (37/22), whose w- and v-weight coincide
    checker = DualLPChecker(medium_r_types(), [F(0), F(2, 5)], F(8, 5))
    result = checker.check_case(1)
    assert isinstance(result, Infeasible)
    assert "equal" in result.reason
    assert result.pattern.entries() == [(F(1, 3), F(13, 22), 2)]
    assert result.pattern.weight_incl_filler(checker.sand_expansion) == F(37, 22)


def test_medium_r_without_red_items_needs_no_check():
    checker = DualLPChecker(medium_r_types(red=F(0)), [F(0), F(2, 5)], F(8, 5))
    assert checker.build_case(1) is None
    result = checker.check_case(1)
    assert isinstance(result, Resolved)
    assert result.value is None


def test_q3():
    checker = DualLPChecker(medium_r_types(), [F(0), F(2, 5)], F(8, 5))
    weight = checker.weight_of_q3(1, 1, F(1, 20), F(3, 16))
    assert weight == F(2833, 1760)

    q3, components = checker.compare_with_q3(None, 1, 1, F(1, 20), F(3, 16))
    assert components == checker.q3_components(1, 1)
    assert q3.sizes() == [F(3, 5), F(1, 3)]
    assert q3.weight_incl_filler(checker.sand_expansion) == weight

    heavier = checker.loop.evaluate(checker.build_case(1), F(3, 16))
    pattern, components = checker.compare_with_q3(heavier, 1, 1, F(1, 20), F(3, 16))
    assert pattern is heavier
    assert components is None


def test_q3_below_threshold_is_ignored():
    checker = DualLPChecker(medium_r_types(), [F(0), F(2, 5)], F(17, 10))
    assert checker.compare_with_q3(None, 1, 1, F(0), F(0)) == (None, None)


def q3_types():
    return [TypeInfo(F(9, 20), F(0), bluefit=2),
            TypeInfo(F(1, 3), F(1, 10), bluefit=2, redfit=1, needs=1, leaves=0)]


def test_q3_uses_its_own_components():
    checker = DualLPChecker(q3_types(), [F(0), F(2, 5)], F(42, 25))
    assert checker.q3_components(1, 1) == (F(13, 8), F(69, 40))
    assert checker.weight_of_q3(1, 1, F(9, 200), F(0)) == F(457, 275)

    q3, components = checker.compare_with_q3(None, 1, 1, F(9, 200), F(3, 16))
    assert q3.weight_incl_filler(checker.sand_expansion) == F(14789, 8800)
    # the r item of q3 is blue while the case item of its type is red
    assert components != checker.build_case(1).components(q3)


def test_extended_case_resolves_when_q3_is_heaviest():
    # at the first center q3 wins; it gets lighter as y3 decreases, so the
    # loop must move down although the case items would point up
    checker = DualLPChecker(q3_types(), [F(0), F(2, 5)], F(42, 25))
    result = checker.check_case(1)
    assert isinstance(result, Resolved)
    assert result.value == F(21, 128)
    assert result.iterations == 4
    assert result.pattern is None
    assert result.extras == {"y1": F(9, 200), "y2": F(9, 100)}


def test_extended_case_rejects_small_y1():
    strategy = VerifyMode({1: F(1, 40)}, {1: F(1, 10)}, {1: F(3, 16)})
    checker = DualLPChecker(medium_r_types(), [F(0), F(2, 5)], F(8, 5), strategy=strategy)
    result = checker.check_case(1)
    assert isinstance(result, ContractViolation)


def test_weight_of_q1_needs_a_larger_type():
    checker = DualLPChecker(small_r_types(), [F(0), F(2, 5)], F(8, 5))
    with pytest.raises(ContractViolationError):
        checker.weight_of_q1(0)
    assert isinstance(checker.check_case(1), ContractViolation)


def test_necessary_cases():
    checker = DualLPChecker(small_r_types(), [F(0), F(1, 4), F(1, 3)], F(2))
    assert not checker.is_necessary_case(0)
    assert checker.is_necessary_case(1)
    assert not checker.is_necessary_case(2)
    assert checker.types_for_red_class(1) == [0]
    with pytest.raises(ContractViolationError):
        checker.type_of_r(2)


# ----------------------------------------------------------------------
# whole runs
# ----------------------------------------------------------------------

def test_case_without_r():
    checker = DualLPChecker(small_r_types(), [F(0), F(1, 4)], F(8, 5))
    result = checker.check_without_r()
    # {1/2} plus sand: 1 + 1/2 * 3/2
    assert isinstance(result, Infeasible)
    assert result.pattern.weight_incl_filler(checker.sand_expansion) == F(7, 4)

    relaxed = DualLPChecker(small_r_types(), [F(0), F(1, 4)], F(2))
    assert isinstance(relaxed.check_without_r(), Resolved)


def test_run_search_mode():
    report = DualLPChecker(small_r_types(), [F(0), F(1, 4)], F(2)).run()
    assert report.success
    assert list(report.results) == ["K+1", 1]
    assert report.y3 == {1: F(3, 16)}
    assert report.failed_case() is None


def test_run_stops_at_first_failure():
    report = DualLPChecker(small_r_types(), [F(0), F(1, 4)], F(8, 5)).run()
    assert not report.success
    assert not report.contract_violation
    assert list(report.results) == ["K+1"]
    assert report.failed_case()[0] == "K+1"


def verify_types():
    return [TypeInfo(F(1, 3), F(1, 10), bluefit=2, redfit=1, needs=1),
            TypeInfo(F(1, 11), F(0), bluefit=10)]


def test_run_verify_mode():
    strategy = VerifyMode({}, {}, {1: F(1, 5)})
    report = DualLPChecker(verify_types(), [F(0), F(1, 4)], F(3), strategy=strategy).run()
    assert report.success
    assert report.y3 == {1: F(1, 5)}


def test_run_verify_mode_rejects_bad_parameters():
    strategy = VerifyMode({}, {}, {1: F(1, 5)})
    report = DualLPChecker(small_r_types(), [F(0), F(1, 4)], F(3), strategy=strategy).run()
    assert not report.success
    assert report.contract_violation
    assert list(report.results) == ["parameters"]


@pytest.mark.parametrize("types,red_spaces", [
    ([TypeInfo(F(1, 11), F(0), bluefit=10), TypeInfo(F(1, 3), F(0), bluefit=2)], [F(0)]),
    (verify_types(), [F(0), F(0)]),
    (verify_types(), [F(1, 4), F(0)]),
    ([TypeInfo(F(1, 3), F(0), bluefit=2), TypeInfo(F(1, 10), F(0), bluefit=9)], [F(0)]),
    ([TypeInfo(F(1, 3), F(1, 3), bluefit=2, redfit=1), TypeInfo(F(1, 11), F(0), bluefit=10)], [F(0)]),
    ([TypeInfo(F(9, 20), F(0), bluefit=2), TypeInfo(F(1, 3), F(0), bluefit=2),
      TypeInfo(F(1, 11), F(0), bluefit=10)], [F(0)]),
])
def test_validate_parameters(types, red_spaces):
    with pytest.raises(ContractViolationError):
        DualLPChecker(types, red_spaces, F(3)).validate_parameters()


def test_validate_parameters_accepts_valid_input():
    DualLPChecker(verify_types(), [F(0), F(1, 4)], F(3)).validate_parameters()


# ----------------------------------------------------------------------
# Super Harmonic
# ----------------------------------------------------------------------

def super_harmonic_types():
    return [TypeInfo(F(1, 3), F(1, 10), bluefit=2, redfit=1, needs=1, leaves=1),
            TypeInfo(F(1, 11), F(0), bluefit=10)]


def test_unknown_family():
    with pytest.raises(ContractViolationError):
        DualLPChecker(super_harmonic_types(), [F(0), F(1, 4)], F(2), family="harmonic++")


def test_super_harmonic_case_uses_types_only():
    checker = DualLPChecker(super_harmonic_types(), [F(0), F(1, 4)], F(83, 75), family=SUPER_HARMONIC)
    case = checker.build_case(1)
    assert case.sizes == [F(1, 3), F(1, 11)]
    assert isinstance(case.predicate, AllowAll)
    assert case.post_check is None


def test_super_harmonic_searches_the_unit_interval():
    checker = DualLPChecker(super_harmonic_types(), [F(0), F(1, 4)], F(83, 75), family=SUPER_HARMONIC)
    result = checker.check_case(1)
    assert isinstance(result, Resolved)
    assert result.value == F(19, 32)
    assert result.iterations == 2

    # the feasible values lie above 3/8
    narrow = DualLPChecker(super_harmonic_types(), [F(0), F(1, 4)], F(83, 75),
                           strategy=SearchMode(), family=SUPER_HARMONIC)
    assert isinstance(narrow.check_case(1), Infeasible)


def test_super_harmonic_case_without_r_has_no_large_items():
    types = [TypeInfo(F(1, 3), F(1, 10), bluefit=2, redfit=1, needs=1)]
    harmonic = DualLPChecker(types, [F(0), F(1, 4)], F(8, 5))
    assert isinstance(harmonic.check_without_r(), Infeasible)

    checker = DualLPChecker(types, [F(0), F(1, 4)], F(8, 5), family=SUPER_HARMONIC)
    assert isinstance(checker.check_without_r(), Resolved)
    report = checker.run()
    assert report.success
    assert report.y3 == {1: F(3, 16)}
    assert report.y1 == {}


def test_super_harmonic_verify_bound_on_y3():
    y3 = {1: F(11, 20)}
    strategy = VerifyMode({}, {}, y3, y3_max=SUPER_HARMONIC_Y3_MAX)
    checker = DualLPChecker(super_harmonic_types(), [F(0), F(1, 4)], F(83, 75),
                            strategy=strategy, family=SUPER_HARMONIC)
    assert isinstance(checker.check_case(1), ContractViolation)

    harmonic_bound = DualLPChecker(super_harmonic_types(), [F(0), F(1, 4)], F(83, 75),
                                   strategy=VerifyMode({}, {}, y3), family=SUPER_HARMONIC)
    assert isinstance(harmonic_bound.check_case(1), Resolved)


def test_super_harmonic_skips_medium_gap_check():
    types = [TypeInfo(F(9, 20), F(0), bluefit=2), TypeInfo(F(1, 3), F(0), bluefit=2),
             TypeInfo(F(1, 11), F(0), bluefit=10)]
    with pytest.raises(ContractViolationError):
        DualLPChecker(types, [F(0)], F(3)).validate_parameters()
    DualLPChecker(types, [F(0)], F(3), family=SUPER_HARMONIC).validate_parameters()
