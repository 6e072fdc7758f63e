import datetime as dt

from receipt_scanner.utils.helpers import is_number, round_money, today_iso, today_locale_string


def test_today_locale_string_has_no_padding():
    assert today_locale_string(dt.date(2024, 3, 7)) == "3/7/2024"


def test_today_iso():
    assert today_iso(dt.date(2024, 3, 7)) == "2024-03-07"


def test_round_money_rounds_halves_up():
    assert round_money(0.125) == 0.13
    assert round_money(1.099) == 1.1
    assert round_money(12.0) == 12.0


def test_is_number_rejects_bools_strings_and_non_finite():
    assert is_number(3)
    assert is_number(0.0)
    assert not is_number(True)
    assert not is_number("3.50")
    assert not is_number(None)
    assert not is_number(float("nan"))
    assert not is_number(float("inf"))
    assert not is_number(float("-inf"))
