import pytest

from rate_projector import (
    BOR_APPROVED_RATES,
    FISCAL_YEARS,
    INFLATION_RECOVERY_MULTIPLIER,
    ProjectionInput,
    effective_annual_rate,
    format_pct,
    project,
    project_with_approved_rates,
    project_with_custom_fallback,
    rate_gap,
)

APPROVED = {"FY25": 5.5, "FY26": 5.0, "FY27": 4.5, "FY28": 6.0, "FY29": 9.0}


@pytest.mark.parametrize("target_year", ["FY25", "FY24", "FY31", "", "fy30"])
def test_unsupported_target_year_returns_starting_rate(target_year):
    for result in (
        project_with_approved_rates(4192.0, 3748.55, APPROVED, target_year),
        project_with_custom_fallback(4192.0, 3748.55, APPROVED, 5.0, target_year),
    ):
        assert result.projected_rate == 4192.0
        assert len(result.breakdown) == 1
        step = result.breakdown[0]
        assert (step.year, step.rate, step.applied_rate_label) == ("FY25", 4192.0, "Starting Rate")
        assert result.inflation_adjusted_baseline == pytest.approx(3748.55 * 1.415)


def test_approved_rates_walk_to_fy29():
    result = project_with_approved_rates(1000.0, 800.0, APPROVED, "FY29")

    assert len(result.breakdown) == 5
    assert result.breakdown[0].applied_rate_label == "Starting Rate"
    assert result.breakdown[0].rate == 1000.0
    assert result.breakdown[1].rate == pytest.approx(1050.0)
    assert result.breakdown[1].applied_rate_label == "5% (BOR)"
    assert result.breakdown[2].applied_rate_label == "4.5% (BOR)"
    assert result.projected_rate == pytest.approx(1000 * 1.05 * 1.045 * 1.06 * 1.09)
    assert [s.year for s in result.breakdown] == ["FY25", "FY26", "FY27", "FY28", "FY29"]


def test_start_year_increase_is_not_applied():
    result = project_with_approved_rates(1000.0, 0.0, APPROVED, "FY26")
    assert result.projected_rate == pytest.approx(1050.0)


def test_approved_only_holds_rate_for_unapproved_year():
    result = project_with_approved_rates(1000.0, 800.0, APPROVED, "FY30")

    fy29 = result.breakdown[-2]
    fy30 = result.breakdown[-1]
    assert fy30.year == "FY30"
    assert fy30.rate == fy29.rate
    assert fy30.applied_rate_label == "No BOR Rate"
    assert result.projected_rate == fy29.rate


def test_custom_fallback_applies_custom_only_after_approved_years():
    result = project_with_custom_fallback(1000.0, 800.0, APPROVED, 5.0, "FY30")

    labels = [s.applied_rate_label for s in result.breakdown]
    assert labels == [
        "Starting Rate",
        "5% (BOR)",
        "4.5% (BOR)",
        "6% (BOR)",
        "9% (BOR)",
        "5% (Custom)",
    ]
    fy29_rate = result.breakdown[4].rate
    assert result.breakdown[5].rate == pytest.approx(fy29_rate * 1.05)
    assert result.projected_rate == result.breakdown[5].rate


def test_custom_rate_never_overrides_approved_year():
    low = project_with_custom_fallback(1000.0, 800.0, APPROVED, 0.0, "FY29")
    high = project_with_custom_fallback(1000.0, 800.0, APPROVED, 40.0, "FY29")
    bor = project_with_approved_rates(1000.0, 800.0, APPROVED, "FY29")

    assert low.projected_rate == high.projected_rate == bor.projected_rate


@pytest.mark.parametrize("baseline", [0.0, 1.0, 2987.57, 3748.55, 10_000.0])
def test_inflation_adjusted_baseline_uses_fixed_multiplier(baseline):
    for target in FISCAL_YEARS + ("FY40",):
        result = project_with_custom_fallback(4000.0, baseline, APPROVED, 3.0, target)
        assert result.inflation_adjusted_baseline == baseline * INFLATION_RECOVERY_MULTIPLIER


@pytest.mark.parametrize(
    "current_rate,baseline_rate,target",
    [
        (4192.0, 3748.55, "FY30"),
        (5305.56, 3748.55, "FY25"),
        (3341.0, 2987.57, "FY27"),
        (3500.0, 2500.0, "FY30"),
        (1000.0, 10_000.0, "FY99"),
    ],
)
def test_recovery_fields_are_consistent(current_rate, baseline_rate, target):
    result = project_with_custom_fallback(current_rate, baseline_rate, APPROVED, 5.0, target)

    assert result.fully_recovered == (result.projected_rate >= result.inflation_adjusted_baseline)
    assert result.still_to_recover == pytest.approx(
        max(0.0, result.inflation_adjusted_baseline - result.projected_rate)
    )
    assert result.fully_recovered == (result.still_to_recover == 0)


def test_single_room_recovers_by_fy30():
    # 4192 current single vs. 3748.55 * 1.415 ~= 5304.2
    result = project_with_custom_fallback(4192.0, 3748.55, BOR_APPROVED_RATES, 5.0, "FY30")
    assert result.fully_recovered
    assert result.still_to_recover == 0.0


def test_projections_are_deterministic():
    a = project_with_custom_fallback(3341.0, 2987.57, APPROVED, 3.5, "FY30")
    b = project_with_custom_fallback(3341.0, 2987.57, APPROVED, 3.5, "FY30")
    assert a == b

    c = project_with_approved_rates(3341.0, 2987.57, APPROVED, "FY28")
    d = project_with_approved_rates(3341.0, 2987.57, APPROVED, "FY28")
    assert c == d


def test_projected_rate_non_decreasing_with_later_target():
    previous = 0.0
    for target in FISCAL_YEARS:
        result = project_with_custom_fallback(3500.0, 2500.0, APPROVED, 2.0, target)
        assert result.projected_rate >= previous
        previous = result.projected_rate


def test_approved_only_rate_non_decreasing_with_later_target():
    previous = 0.0
    for target in FISCAL_YEARS:
        result = project_with_approved_rates(3500.0, 2500.0, APPROVED, target)
        assert result.projected_rate >= previous
        previous = result.projected_rate

    # FY30 has no approved rate and holds the FY29 value
    assert result.breakdown[-1].applied_rate_label == "No BOR Rate"
    assert result.projected_rate == result.breakdown[-2].rate


def test_injected_year_sequence():
    years = ("FY30", "FY31", "FY32")
    result = project_with_custom_fallback(
        1000.0, 500.0, {"FY31": 10.0}, 20.0, "FY32", years=years
    )

    assert [s.year for s in result.breakdown] == ["FY30", "FY31", "FY32"]
    assert result.projected_rate == pytest.approx(1000 * 1.10 * 1.20)

    outside = project_with_custom_fallback(1000.0, 500.0, {}, 20.0, "FY29", years=years)
    assert outside.projected_rate == 1000.0
    assert outside.breakdown[0].year == "FY30"


def test_project_dispatches_on_allow_custom():
    inputs = ProjectionInput(
        current_rate=1000.0,
        baseline_rate=800.0,
        custom_annual_rate_pct=10.0,
        target_year="FY30",
    )
    what_if = project(inputs, APPROVED)
    bor_only = project(inputs, APPROVED, allow_custom=False)

    assert what_if.breakdown[-1].applied_rate_label == "10% (Custom)"
    assert bor_only.breakdown[-1].applied_rate_label == "No BOR Rate"
    assert what_if.projected_rate == pytest.approx(bor_only.projected_rate * 1.10)


def test_breakdown_frame_columns():
    frame = project_with_approved_rates(1000.0, 800.0, APPROVED, "FY27").breakdown_frame()

    assert list(frame.columns) == ["Year", "Rate", "Applied Rate"]
    assert frame["Year"].tolist() == ["FY25", "FY26", "FY27"]


def test_effective_annual_rate_prefers_approved():
    assert effective_annual_rate("FY28", APPROVED, 12.0) == 6.0
    assert effective_annual_rate("FY30", APPROVED, 12.0) == 12.0


def test_rate_gap():
    gap, pct = rate_gap(5305.56, 4192.0)
    assert gap == pytest.approx(1113.56)
    assert pct == pytest.approx(1113.56 / 4192.0 * 100.0)

    assert rate_gap(100.0, 0.0) == (100.0, 0.0)


def test_format_pct():
    assert format_pct(5.0) == "5"
    assert format_pct(5.5) == "5.5"
    assert format_pct(9) == "9"
