import pytest

from climateboard.errors import MalformedResponseError, UpstreamError
from climateboard.services.json_repair import (
    extract_json_block,
    lenient_decode,
    repair_json,
    strict_decode,
)


def test_malformed_js_literal_in_fence():
    text = "Sure! ```json {title: 'x', val: 1,} ``` "
    assert lenient_decode(text) == {"title": "x", "val": 1}


def test_plain_json_passes_through():
    assert lenient_decode('{"alerts": []}') == {"alerts": []}


def test_prefers_json_fence_over_surrounding_braces():
    text = 'Note {ignored}\n```json\n{"a": 1}\n```\nthanks {also ignored}'
    assert extract_json_block(text) == '{"a": 1}'


def test_unlabelled_fence():
    assert lenient_decode('```\n{"a": [1, 2,]}\n```') == {"a": [1, 2]}


def test_bare_object_in_prose():
    assert lenient_decode('Here you go: {"a": {"b": 2}} Hope that helps!') == {"a": {"b": 2}}


def test_top_level_array():
    assert lenient_decode("Result: [{type: 'health'},]") == [{"type": "health"}]


def test_string_contents_are_not_rewritten():
    text = '{"description": "Stay hydrated, note: drink water", "tip": "a, }"}'
    assert repair_json(text) == text

    broken = "{description: 'Wear a hat, note: UV is high',}"
    assert lenient_decode(broken) == {"description": "Wear a hat, note: UV is high"}


def test_nested_keys_and_literals():
    text = "{outer: {inner: true, other: null,}, list: [1, 2, ],}"
    assert lenient_decode(text) == {"outer": {"inner": True, "other": None}, "list": [1, 2]}


def test_single_quoted_string_with_double_quote_inside():
    assert lenient_decode("{quote: 'say \"hi\"'}") == {"quote": 'say "hi"'}


def test_escaped_single_quote():
    assert lenient_decode(r"{text: 'it\'s hot'}") == {"text": "it's hot"}


def test_no_json_raises():
    with pytest.raises(MalformedResponseError):
        lenient_decode("I cannot help with that.")


def test_unrepairable_raises_network_equivalent_error():
    with pytest.raises(UpstreamError):
        lenient_decode("{this is: not (json)}")


def test_strict_decode_does_not_repair():
    assert strict_decode('```json\n{"a": 1}\n```') == {"a": 1}
    with pytest.raises(MalformedResponseError):
        strict_decode("{a: 1,}")
