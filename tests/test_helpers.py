from datetime import datetime

import pytest

from core.helpers import DB_INT_MAX, format_date, in_db_range, parse_int, split_message


def test_format_date():
    assert format_date(datetime(2024, 3, 9, 17, 5)) == "09/03/2024"
    assert format_date(None) == "N/A"


@pytest.mark.parametrize("text,expected", [
    ("50", 50),
    (" 1,000 ", 1000),
    ("-5", -5),
    ("+7", 7),
    ("12.5", None),
    ("²", None),
    ("5²", None),
    ("٣", None),
    ("abc", None),
    ("", None),
    (None, None),
])
def test_parse_int(text, expected):
    assert parse_int(text) == expected


def test_split_keeps_blocks_whole():
    blocks = ["a" * 40 + "\n" for _ in range(10)]
    chunks = split_message(blocks, header="H\n", footer="F", limit=100)
    assert all(len(c) <= 100 for c in chunks)
    assert "".join(chunks) == "H\n" + "".join(blocks) + "F"
    assert chunks[0].startswith("H\n")
    assert chunks[-1].endswith("F")
    for chunk in chunks:
        body = chunk.replace("H\n", "").replace("F", "")
        assert len(body) % 41 == 0


def test_split_slices_oversized_block():
    chunks = split_message(["x" * 250], limit=100)
    assert [len(c) for c in chunks] == [100, 100, 50]


def test_split_short_listing_is_one_message():
    assert split_message(["a", "b"], header="h", footer="f") == ["habf"]


def test_in_db_range():
    assert in_db_range(1) and in_db_range(DB_INT_MAX)
    assert not in_db_range(None)
    assert not in_db_range(0)
    assert not in_db_range(DB_INT_MAX + 1)


def test_split_oversized_block_on_line_breaks():
    block = "".join(f"<b>Name {i}:</b> value\n" for i in range(20))
    chunks = split_message([block], limit=100)
    assert all(len(c) <= 100 for c in chunks)
    assert "".join(chunks) == block
    for chunk in chunks:
        assert chunk.count("<b>") == chunk.count("</b>")


def test_split_single_long_line_drops_markup():
    chunks = split_message(["<b>" + "a" * 250 + "</b>"], limit=100)
    assert "".join(chunks) == "a" * 250
    assert all("<" not in c for c in chunks)


def test_split_never_cuts_an_entity():
    block = "a" * 97 + "&amp;" + "b" * 120
    chunks = split_message([block], limit=100)
    assert chunks[0] == "a" * 97
    assert chunks[1].startswith("&amp;")
    assert "".join(chunks) == block
