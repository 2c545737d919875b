"""Unit tests for lead scoring, lenient coercion and sheet parsing."""

import pytest

from homemates.coerce import split_list, to_date, to_int, to_seconds, to_text
from homemates.db.models import Property, PropertyStatus
from homemates.leads.matching import MATCH_THRESHOLD, MatchPreferences, score_match
from homemates.tabular import TableParseError, data_health, pick, read_table, to_records
from homemates_shared.schemas import is_e164, normalize_phone


def make_listing(**overrides) -> Property:
    values = {
        "property_code": "GAC-001",
        "title": "2 BHK",
        "city": "Hyderabad",
        "locality": "Gachibowli",
        "rent": 28000,
        "bedrooms": 2,
        "amenities": "Parking;Lift",
        "status": PropertyStatus.AVAILABLE.value,
    }
    values.update(overrides)
    return Property(**values)


def make_prefs(**overrides) -> MatchPreferences:
    values = {
        "city": "Hyderabad",
        "localities": ["Gachibowli"],
        "budget_max": 30000,
        "bedrooms": 2,
        "amenities": ["parking"],
    }
    values.update(overrides)
    return MatchPreferences(**values)


class TestScoreMatch:
    """Tests for score_match."""

    def test_perfect_match(self):
        assert score_match(make_prefs(), make_listing()) == 1.0

    def test_empty_preferences_give_full_credit(self):
        assert score_match(MatchPreferences(), make_listing()) == 1.0

    def test_unavailable_property_scores_zero(self):
        listing = make_listing(status=PropertyStatus.BOOKED.value)
        assert score_match(make_prefs(), listing) == 0.0

    def test_other_city_scores_zero(self):
        assert score_match(make_prefs(city="Pune"), make_listing()) == 0.0

    def test_city_compare_ignores_case(self):
        assert score_match(make_prefs(city=" hyderabad "), make_listing()) == 1.0

    def test_far_over_budget_scores_zero(self):
        """More than 25% over the maximum is a hard reject."""
        assert score_match(make_prefs(budget_max=20000), make_listing(rent=25001)) == 0.0

    def test_slightly_over_budget_partial_credit(self):
        score = score_match(make_prefs(budget_max=20000), make_listing(rent=22500))
        # budget component halves: 1 - 2500 / 5000
        assert score == pytest.approx(0.35 + 0.15 + 0.20 + 0.15)

    def test_wrong_locality_loses_locality_weight(self):
        score = score_match(make_prefs(localities=["Kondapur"]), make_listing())
        assert score == pytest.approx(0.65)

    def test_one_bedroom_off_half_credit(self):
        score = score_match(make_prefs(bedrooms=3), make_listing())
        assert score == pytest.approx(0.9)

    def test_missing_rent_half_budget_credit(self):
        score = score_match(make_prefs(), make_listing(rent=None))
        assert score == pytest.approx(0.85)

    def test_amenities_fraction(self):
        score = score_match(make_prefs(amenities=["Parking", "Gym"]), make_listing())
        assert score == pytest.approx(0.925, abs=0.01)

    def test_threshold(self):
        assert 0 < MATCH_THRESHOLD < 1


class TestCoerce:
    """Tests for lenient form and sheet value conversion."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("2 BHK", 2),
            ("₹25,000", 25000),
            ("", None),
            (None, None),
            (float("nan"), None),
            (3.0, 3),
            ("abc", None),
            ("1.5", 1),
        ],
    )
    def test_to_int(self, value, expected):
        assert to_int(value) == expected

    def test_to_text(self):
        assert to_text("  hi ") == "hi"
        assert to_text("   ") is None
        assert to_text(9876543210.0) == "9876543210"

    def test_split_list(self):
        assert split_list("Parking; Lift, Gym | Pool") == ["Parking", "Lift", "Gym", "Pool"]
        assert split_list(None) == []

    def test_to_date(self):
        assert to_date("2026-11-01").isoformat() == "2026-11-01"
        assert to_date("") is None
        assert to_date("soon") is None

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (12, 12.0),
            ("4.5", 4.5),
            ("00:00:03", 3.0),
            ("01:03", 63.0),
            ("1:00:00", 3600.0),
            ("", None),
            ("soon", None),
            ("1:2:3:4", None),
        ],
    )
    def test_to_seconds(self, value, expected):
        assert to_seconds(value) == expected


class TestPhoneNormalization:
    """Tests for normalize_phone and is_e164."""

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("9876543210", "+919876543210"),
            ("098765 43210", "+919876543210"),
            ("+91 98765-43210", "+919876543210"),
            ("0091 9876543210", "+919876543210"),
            ("+1 (415) 555-1234", "+14155551234"),
            ("919876543210", "+919876543210"),
        ],
    )
    def test_normalize(self, raw, expected):
        assert normalize_phone(raw) == expected

    def test_no_digits(self):
        assert normalize_phone("call me") is None
        assert normalize_phone(None) is None

    def test_e164(self):
        assert is_e164("+919876543210")
        assert not is_e164("9876543210")
        assert not is_e164("+0123456789")


class TestTabular:
    """Tests for CSV parsing and data health."""

    CSV = b"Name,Mobile,Budget\nA,098765,100\n,,\nA,098765,100\nB, ,200\n"

    def test_cells_stay_text(self):
        """Leading zeros survive parsing."""
        frame = read_table(self.CSV, "sheet.csv")
        assert frame.iloc[0]["Mobile"] == "098765"

    def test_data_health(self):
        health = data_health(read_table(self.CSV, "sheet.csv"))
        assert health["total_rows"] == 4
        assert health["empty_rows"] == 1
        assert health["duplicate_rows"] == 1
        assert health["valid_rows"] == 2
        assert health["missing_values"]["Mobile"] == 2
        assert health["columns"] == ["Name", "Mobile", "Budget"]

    def test_records_skip_empty_rows(self):
        records = to_records(read_table(self.CSV, "sheet.csv"))
        assert len(records) == 3
        assert records[2]["Mobile"] is None

    def test_pick_matches_normalized_names(self):
        row = {"Must Need amenities": "Gym", "BHKtype": "2"}
        assert pick(row, "must_need_amenities") == "Gym"
        assert pick(row, "bedrooms", "bhktype") == "2"
        assert pick(row, "missing") is None

    def test_unsupported_extension(self):
        with pytest.raises(TableParseError):
            read_table(b"x", "sheet.pdf")

    def test_empty_file(self):
        with pytest.raises(TableParseError):
            read_table(b"", "sheet.csv")

    @pytest.mark.parametrize("filename", ["sheet.xlsx", "sheet.xls"])
    def test_corrupt_excel(self, filename):
        with pytest.raises(TableParseError):
            read_table(b"name,phone\nPriya,9876543210\n", filename)
