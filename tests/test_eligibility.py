"""
Eligibility scoring: turnover bands, advisory criteria, the overall mean,
and bulk rescoring.
"""

from datetime import date

from ingestion.models import CompanyProfile, Requirements, TenderRecord
from scoring.eligibility import (
    keywords_for,
    rank_tenders,
    rescore_all,
    score,
    score_tender,
    turnover_score,
)


def _tender(title="Supply of goods", turnover="", description="", **req):
    return TenderRecord(
        title=title,
        description=description,
        requirements=Requirements(turnover=turnover, **req),
    )


def test_construction_scenario_meets_everything(construction_profile):
    tender = _tender("Construction of District Court Building", turnover="3 crores")
    result = score(tender, construction_profile)

    turnover, sector = result.criteria
    assert (turnover.criterion, turnover.score, turnover.met) == ("turnover", 100, True)
    assert turnover.reason == "requirement met"
    assert (sector.criterion, sector.score, sector.met) == ("business_sector", 100, True)
    assert result.overall_score == 100


def test_turnover_shortfall_scenario(construction_profile):
    tender = _tender("Supply of Laboratory Chemicals", turnover="15 crores")
    result = score(tender, construction_profile)

    turnover, sector = result.criteria
    assert turnover.score == 30 and not turnover.met
    assert sector.score == 60 and not sector.met
    assert result.overall_score == 45


def test_turnover_bands_exact_boundaries():
    assert turnover_score(0, 100)[0] == 0
    assert turnover_score(1, 100)[0] == 30
    assert turnover_score(49.99, 100)[0] == 30
    assert turnover_score(50, 100)[0] == 70
    assert turnover_score(79.99, 100)[0] == 70
    assert turnover_score(80, 100)[0] == 90
    assert turnover_score(99.99, 100)[0] == 90
    assert turnover_score(100, 100)[0] == 100
    assert turnover_score(500, 100)[0] == 100


def test_turnover_reasons():
    assert turnover_score(10, 0) == (100, True, "no turnover requirement - exempted")
    assert turnover_score(0, 100) == (0, False, "not eligible")
    assert turnover_score(100, 100) == (100, True, "requirement met")


def test_no_requirement_always_exempt():
    for capability in (0, 1, 5_00_000, 10**12):
        assert turnover_score(capability, 0)[0] == 100


def test_turnover_score_is_monotonic():
    for requirement in (1, 250_000, 30_000_000):
        previous = -1
        for step in range(0, 301):
            capability = requirement * step / 200
            points = turnover_score(capability, requirement)[0]
            assert points >= previous, (capability, requirement)
            previous = points


def test_unparseable_requirement_counts_as_exempt(construction_profile):
    result = score(_tender(turnover="As per tender document"), construction_profile)
    assert result.criteria[0].score == 100
    assert result.criteria[0].requirement_text == "As per tender document"


def test_empty_profile_is_neutral():
    result = score(_tender(turnover="3 crores"), CompanyProfile())
    assert result.overall_score == 50
    assert result.criteria == []
    assert score(_tender(), None).overall_score == 50


def test_turnover_only_profile():
    profile = CompanyProfile(turnover_amount=1_00_00_000)
    result = score(_tender(turnover="2 crore"), profile)
    assert [c.criterion for c in result.criteria] == ["turnover"]
    assert result.overall_score == 70


def test_zero_turnover_profile_with_sectors():
    profile = CompanyProfile(business_sectors=["Software"])
    result = score(_tender("Software maintenance", turnover="1 crore"), profile)
    assert [c.score for c in result.criteria] == [0, 100]
    assert result.overall_score == 50


def test_project_types():
    profile = CompanyProfile(turnover_amount=10**9, project_types=["mobile", "web"])
    hit = score(_tender("Development of Android app for citizen services"), profile)
    miss = score(_tender("Supply of office furniture"), profile)

    assert hit.criteria[1].criterion == "project_type"
    assert hit.criteria[1].score == 100
    assert "mobile" in hit.criteria[1].reason
    assert miss.criteria[1].score == 40
    assert miss.overall_score == 70


def test_project_type_keywords_from_requirements():
    profile = CompanyProfile(turnover_amount=10**9, project_types=["tax collection"])
    tender = _tender("Municipal services", category="Property Tax software")
    assert score(tender, profile).criteria[1].score == 100


def test_unknown_project_type_uses_its_own_name():
    assert keywords_for("Drone Survey") == ("drone survey",)
    assert "android" in keywords_for(" Mobile ")

    profile = CompanyProfile(turnover_amount=10**9, project_types=["drone survey"])
    assert score(_tender("Drone survey of mining lease"), profile).criteria[1].score == 100


def test_certifications():
    profile = CompanyProfile(turnover_amount=10**9, certifications=["ISO 27001", "CMMI Level 3"])
    hit = score(_tender("Data centre operations", description="Bidder must hold iso 27001"), profile)
    miss = score(_tender("Data centre operations"), profile)
    assert hit.criteria[1].score == 100 and hit.criteria[1].met
    assert miss.criteria[1].score == 70 and not miss.criteria[1].met


def test_overall_rounds_half_up():
    profile = CompanyProfile(
        turnover_amount=90,
        business_sectors=["Healthcare"],
        project_types=["hardware"],
        certifications=["ISO 9001"],
    )
    tender = _tender("Annual maintenance", turnover="100", description="ISO 9001 required")
    result = score(tender, profile)
    assert [c.score for c in result.criteria] == [90, 60, 40, 100]
    assert result.overall_score == 73


def test_overall_always_integer_in_range(construction_profile):
    profiles = [
        construction_profile,
        CompanyProfile(turnover_amount=1, project_types=["x"], certifications=["y"]),
        CompanyProfile(business_sectors=["a"]),
    ]
    for profile in profiles:
        for turnover in ("", "0", "1", "1 crore", "999 crore", "garbage"):
            result = score(_tender(turnover=turnover), profile)
            assert isinstance(result.overall_score, int)
            assert 0 <= result.overall_score <= 100


def test_score_is_deterministic(construction_profile):
    tender = _tender("Construction of hostel", turnover="4 crores")
    assert score(tender, construction_profile) == score(tender, construction_profile)


def test_score_never_raises_on_garbage():
    profile = CompanyProfile(turnover_amount=5, business_sectors=["IT"])
    tender = TenderRecord(title="", description=None)
    assert score(tender, profile).overall_score in range(0, 101)


def test_score_tender_returns_copy(construction_profile):
    tender = _tender("Construction of hostel")
    scored = score_tender(tender, construction_profile)
    assert tender.score is None
    assert scored.score.overall_score == 100
    assert scored.id == tender.id


def test_rescore_all_after_profile_change(store, construction_profile):
    court = _tender("Construction of District Court Building", turnover="15 crores")
    store.create(score_tender(court, construction_profile))
    assert store.get(court.id).overall_score == 65

    richer = CompanyProfile(turnover_amount=2_00_00_00_000, business_sectors=["Construction"])
    assert rescore_all(store, richer) == 1
    assert store.get(court.id).overall_score == 100


def test_rank_tenders():
    a = TenderRecord(title="A", deadline=date(2025, 9, 1))
    b = TenderRecord(title="B", deadline=date(2025, 8, 1))
    c = TenderRecord(title="C")
    d = TenderRecord(title="D")
    profile = CompanyProfile(turnover_amount=10, business_sectors=["zzz"])
    a, b = score_tender(a, profile), score_tender(b, profile)       # 80 each
    ranked = rank_tenders([c, a, b, d], min_score=0)
    assert [t.title for t in ranked][:2] == ["B", "A"]
    assert [t.title for t in rank_tenders([c, a, b], min_score=60)] == ["B", "A"]


def test_requirement_field_names_do_not_match_certifications():
    profile = CompanyProfile(turnover_amount=10**9, certifications=["MSME", "Startup"])
    result = score(_tender("Supply of office furniture"), profile)
    assert result.criteria[1].score == 70
    assert not result.criteria[1].met


def test_sheet_name_is_not_tender_text():
    profile = CompanyProfile(turnover_amount=10**9, project_types=["software"])
    tender = _tender("Supply of office furniture", sheet="Software Tenders")
    assert score(tender, profile).criteria[1].score == 40


def test_requirement_values_still_count():
    profile = CompanyProfile(turnover_amount=10**9, certifications=["MSME"])
    tender = _tender("Supply of office furniture", msme_exemption="Yes, MSME exempted")
    assert score(tender, profile).criteria[1].score == 100

    extra = TenderRecord(
        title="Supply of office furniture",
        requirements=Requirements(extra={"Remarks": "Bidders with ISO 9001 preferred"}),
    )
    iso = CompanyProfile(turnover_amount=10**9, certifications=["ISO 9001"])
    assert score(extra, iso).criteria[1].score == 100


def test_turnover_requirement_with_leading_year_count():
    profile = CompanyProfile(turnover_amount=1_00_00_000)
    tender = _tender(turnover="Average annual turnover of last 3 years: 5 Crore")
    turnover = score(tender, profile).criteria[0]
    assert turnover.score == 30
    assert not turnover.met
