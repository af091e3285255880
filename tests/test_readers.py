from datetime import date

from lendcase.domain.underwriting.readers import (
    read_bool,
    read_date,
    read_int,
    read_number,
    read_percent_ratio,
    read_positive_number,
    read_string,
    read_timestamp,
    read_years,
    to_number,
)


def test_to_number_strips_currency_formatting() -> None:
    assert to_number("$1,250,000") == 1250000.0
    assert to_number(" 42.5 ") == 42.5
    assert to_number(7) == 7.0


def test_to_number_rejects_missing_and_non_numeric_values() -> None:
    assert to_number(None) is None
    assert to_number(True) is None
    assert to_number("") is None
    assert to_number("n/a") is None
    assert to_number(float("nan")) is None
    assert to_number({"amount": 1}) is None


def test_read_number_uses_first_parseable_alias() -> None:
    record = {"amount": "unknown", "loanAmount": "250,000"}

    assert read_number(record, ("amount", "loanAmount")) == 250000.0
    assert read_number(record, "missing") is None
    assert read_number(["not", "a", "mapping"], "amount") is None


def test_read_positive_number_skips_zero_and_negative_values() -> None:
    record = {"arv": 0, "afterRepairValue": -5, "borrowerArv": "410000"}

    assert read_positive_number(record, ("arv", "afterRepairValue")) is None
    assert (
        read_positive_number(record, ("arv", "afterRepairValue", "borrowerArv"))
        == 410000.0
    )


def test_read_int_rounds_numeric_strings() -> None:
    assert read_int({"creditScore": "719.6"}, "creditScore") == 720
    assert read_int({"creditScore": None}, "creditScore") is None


def test_read_string_trims_and_skips_blank_values() -> None:
    record = {"name": "   ", "borrowerName": "  Dana  ", "flag": True}

    assert read_string(record, ("name", "borrowerName")) == "Dana"
    assert read_string(record, "flag") is None


def test_read_bool_accepts_common_string_spellings() -> None:
    assert read_bool({"funded": "yes"}, "funded") is True
    assert read_bool({"funded": "0"}, "funded") is False
    assert read_bool({"funded": "maybe"}, "funded") is None


def test_read_date_handles_plain_and_timestamped_iso_values() -> None:
    assert read_date({"d": "2026-04-15"}, "d") == date(2026, 4, 15)
    assert read_date({"d": "2026-04-15T23:30:00-05:00"}, "d") == date(2026, 4, 16)
    assert read_date({"d": "2026-02-30"}, "d") is None
    assert read_date({"d": "next week"}, "d") is None


def test_read_timestamp_prefers_iso_parsing_over_digits() -> None:
    iso = read_timestamp({"updatedAt": "2026-02-01T00:00:00Z"}, "updatedAt")
    epoch = read_timestamp({"updatedAt": 1769904000000}, "updatedAt")

    assert iso == 1769904000000
    assert epoch == 1769904000000
    assert read_timestamp({"updatedAt": "garbage"}, "updatedAt") is None


def test_read_years_extracts_leading_number_from_text() -> None:
    assert read_years({"yearsInvesting": "about 5 years"}, "yearsInvesting") == 5.0
    assert read_years({"yearsInvesting": 3}, "yearsInvesting") == 3.0
    assert read_years({"yearsInvesting": "several"}, "yearsInvesting") is None


def test_read_percent_ratio_normalizes_percent_inputs() -> None:
    assert read_percent_ratio({"ltv": "80%"}, "ltv") == 0.8
    assert read_percent_ratio({"ltv": 0.65}, "ltv") == 0.65
