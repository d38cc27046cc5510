from dashboard.filters import count_by
from dashboard.filters import filter_rows
from dashboard.filters import filter_status
from dashboard.filters import search_rows
from dashboard.formatting import format_currency
from dashboard.formatting import format_date
from dashboard.formatting import format_datetime
from dashboard.formatting import format_estimate
from dashboard.formatting import format_long_date
from dashboard.formatting import parse_tags
from dashboard.formatting import tags_text


ROWS = [
    {"client_name": "Budi Santoso", "client_email": "budi@contoh.id", "status": "new"},
    {"client_name": "Siti Aminah", "client_email": "SITI@contoh.id", "status": "contacted"},
    {"client_name": "Andi", "client_email": None, "status": "new"},
]


def test_currency_uses_indonesian_grouping():
    assert format_currency(250000) == "Rp 250.000"
    assert format_currency("1234.5") == "Rp 1.234,5"
    assert format_currency(-1000) == "-Rp 1.000"
    assert format_currency(0) == "Rp 0"
    assert format_currency(99, "USD") == "USD 99"


def test_estimate_dash_for_zero():
    assert format_estimate(None) == "-"
    assert format_estimate(0) == "-"
    assert format_estimate(5000000) == "Rp 5.000.000"


def test_dates():
    assert format_date("2026-10-19") == "19/10/2026"
    assert format_date("") == ""
    assert format_date("bukan tanggal") == ""
    assert format_long_date("2026-10-19") == "19 Oktober 2026"
    assert format_datetime("2026-10-19T03:04:00+00:00") == "19/10/2026 10.04"


def test_tags():
    assert parse_tags("ai, web ,ai,, ") == ["ai", "web"]
    assert parse_tags(["a", None, " b "]) == ["a", "b"]
    assert parse_tags(None) == []
    assert tags_text(["x", "y"]) == "x, y"


def test_search_is_case_insensitive():
    assert [r["client_name"] for r in search_rows(ROWS, "siti@", ("client_email",))] == ["Siti Aminah"]
    assert search_rows(ROWS, "", ("client_name",)) == ROWS
    assert search_rows(ROWS, None, ("client_name",)) == ROWS
    assert search_rows(ROWS, "  ", ("client_name",)) == []
    assert search_rows(ROWS, "zzz", ("client_name",)) == []


def test_status_filter_and_combination():
    assert filter_status(ROWS, "all") == ROWS
    assert len(filter_status(ROWS, "new")) == 2
    assert filter_rows(ROWS, query="budi", fields=("client_name",), status="contacted") == []
    assert count_by(ROWS, "status") == {"new": 2, "contacted": 1}


def test_search_keeps_surrounding_spaces():
    rows = [{"client_name": "Smithson"}, {"client_name": "Budi Smith"}]
    assert search_rows(rows, " smith", ("client_name",)) == [{"client_name": "Budi Smith"}]
    assert search_rows(rows, "SMITH", ("client_name",)) == rows
