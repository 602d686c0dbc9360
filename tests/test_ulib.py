import io

from xvkit.ulib import RtcDate, atoi, gets, strcmp


def test_strcmp_equal():
    assert strcmp("abc", "abc") == 0


def test_strcmp_orders():
    assert strcmp("abc", "abd") < 0
    assert strcmp("b", "a") > 0
    assert strcmp("ab", "abc") < 0
    assert strcmp("abc", "ab") > 0


def test_strcmp_unsigned_bytes():
    assert strcmp(b"\xff", b"a") > 0


def test_strcmp_stops_at_nul():
    assert strcmp(b"ab\0x", b"ab\0y") == 0


def test_atoi_digits():
    assert atoi("123") == 123
    assert atoi("42abc") == 42


def test_atoi_no_sign_or_space():
    assert atoi("-7") == 0
    assert atoi(" 5") == 0
    assert atoi("") == 0


def test_gets_lines():
    stream = io.BytesIO(b"hello\nworld")
    assert gets(stream, 100) == b"hello\n"
    assert gets(stream, 100) == b"world"
    assert gets(stream, 100) == b""


def test_gets_limit():
    stream = io.BytesIO(b"abcdef")
    assert gets(stream, 4) == b"abc"
    assert gets(stream, 4) == b"def"


def test_gets_carriage_return():
    stream = io.BytesIO(b"ab\rcd")
    assert gets(stream, 10) == b"ab\r"


def test_gets_text_stream():
    stream = io.StringIO("line\nrest")
    assert gets(stream, 50) == "line\n"


def test_rtcdate_fields():
    d = RtcDate(second=1, minute=2, hour=3, day=4, month=5, year=2021)
    assert (d.second, d.minute, d.hour, d.day, d.month, d.year) == (1, 2, 3, 4, 5, 2021)