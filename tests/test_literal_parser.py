import math

import pytest

from auvio_podcast.utils.literal_parser import LiteralSyntaxError, parse_literal, parse_literal_at


def test_object_with_mixed_keys_and_trailing_comma():
    value = parse_literal("{a:1,'b':\"two\",\"c d\":[1,2,],3:null,}")
    assert value == {"a": 1, "b": "two", "c d": [1, 2], "3": None}


def test_minifier_shorthands():
    assert parse_literal("[!0,!1,void 0,undefined]") == [True, False, None, None]


def test_numbers():
    assert parse_literal("[0x1F,-2.5e3,.5,+7,0b101,1_000]") == [31, -2500.0, 0.5, 7, 5, 1000]
    assert parse_literal("-Infinity") == -math.inf
    assert math.isnan(parse_literal("NaN"))


def test_string_escapes():
    assert parse_literal(r"'café \x41\n\'q\''") == "café A\n'q'"
    assert parse_literal(r'"🎧"') == "\U0001F3A7"
    assert parse_literal("`plain template`") == "plain template"


def test_comments_between_tokens():
    assert parse_literal("{/* a */ key: // trailing\n 'v'}") == {"key": "v"}


def test_parse_literal_at_returns_end_position():
    source = 'x={RTBF:{apiVersion:"v2.8"}};rest'
    value, end = parse_literal_at(source, source.index("{", 3))
    assert value == {"apiVersion": "v2.8"}
    assert source[end:] == "};rest"


@pytest.mark.parametrize("text", [
    "{a:b}",
    "{a:f()}",
    "`${name}`",
    "[1,,2]",
    "{a:1",
    "'unterminated",
    "{a:1} extra",
])
def test_rejects_non_literal_expressions(text):
    with pytest.raises(LiteralSyntaxError):
        parse_literal(text)


def test_error_reports_position():
    with pytest.raises(LiteralSyntaxError) as exc_info:
        parse_literal("{apiVersion:env.VERSION}")
    assert exc_info.value.position == 12
