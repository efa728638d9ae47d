from race_sync.classes.entry_validator import WillPayColumns, has_valid_entry_data, is_valid_will_pay_value


def _row(will_pay_2, will_pay_1_p3, width=14):
    row = [""] * width
    row[11] = will_pay_2
    row[13] = will_pay_1_p3
    return row


def test_is_valid_will_pay_value():
    assert is_valid_will_pay_value("$1.00")
    assert not is_valid_will_pay_value("")
    assert not is_valid_will_pay_value(None)
    assert not is_valid_will_pay_value(" sc ")


def test_entry_with_both_will_pays_is_valid():
    assert has_valid_entry_data(_row(25.4, 12), _row("$25.40", "$12.00"))


def test_scratched_entry_is_invalid():
    assert not has_valid_entry_data(_row("SC", 12), _row("SC", "$12.00"))
    assert not has_valid_entry_data(_row(25.4, "N/A"), _row("$25.40", "N/A"))


def test_short_rows_are_invalid():
    assert not has_valid_entry_data([1, 2, 3], [1, 2, 3])
    assert not has_valid_entry_data(None, None)


def test_custom_columns():
    columns = WillPayColumns(will_pay_2=0, will_pay_1_p3=1)
    assert has_valid_entry_data([5, 6], None, columns)
