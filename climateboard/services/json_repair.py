"""Best-effort decoding of JSON embedded in LLM replies.

Models often wrap JSON in markdown fences, leave trailing commas, or emit
JS-style object literals (bare keys, single quotes). ``lenient_decode`` tries
a plain parse first and only then applies ``repair_json``. When the reply
still doesn't parse, MalformedResponseError is raised and callers fall back
to default content.

Decoders are plain ``str -> Any`` callables so a stricter one can be swapped
in once the upstream output format is reliable.
"""

import json
import re
from collections.abc import Callable
from typing import Any

from climateboard.errors import MalformedResponseError

Decoder = Callable[[str], Any]

_JSON_FENCE = re.compile(r"```json\s*([\s\S]*?)\s*```", re.IGNORECASE)
_ANY_FENCE = re.compile(r"```[a-zA-Z]*\s*([\s\S]*?)\s*```")
_IDENT_START = re.compile(r"[A-Za-z_$]")
_IDENT_CHAR = re.compile(r"[A-Za-z0-9_$]")
_LITERALS = {"true", "false", "null"}


def extract_json_block(text: str) -> str:
    """Pull the JSON candidate out of a free-text reply."""
    for pattern in (_JSON_FENCE, _ANY_FENCE):
        match = pattern.search(text)
        if match:
            return match.group(1).strip()

    starts = [i for i in (text.find("{"), text.find("[")) if i != -1]
    if not starts:
        raise MalformedResponseError("No JSON found in AI response")
    start = min(starts)
    end = text.rfind("}" if text[start] == "{" else "]")
    if end <= start:
        raise MalformedResponseError("No JSON found in AI response")
    return text[start:end + 1]


def _read_string(text: str, i: int) -> tuple[str, int]:
    """Read a quoted string starting at ``text[i]``; return it re-quoted as JSON."""
    quote = text[i]
    i += 1
    chars = []
    while i < len(text):
        c = text[i]
        if c == "\\" and i + 1 < len(text):
            nxt = text[i + 1]
            # \' is not a valid JSON escape
            chars.append("'" if nxt == "'" else c + nxt)
            i += 2
            continue
        if c == quote:
            i += 1
            break
        if c == '"' and quote == "'":
            chars.append('\\"')
        elif c == "\n":
            chars.append("\\n")
        else:
            chars.append(c)
        i += 1
    return '"' + "".join(chars) + '"', i


def _next_significant(text: str, i: int) -> str:
    while i < len(text) and text[i].isspace():
        i += 1
    return text[i] if i < len(text) else ""


def repair_json(text: str) -> str:
    """Quote bare keys, normalise single quotes and drop trailing commas.

    Works on tokens, so nothing inside a string literal is ever rewritten.
    """
    out = []
    i = 0
    n = len(text)
    while i < n:
        c = text[i]
        if c in "\"'":
            literal, i = _read_string(text, i)
            out.append(literal)
            continue
        if c == ",":
            if _next_significant(text, i + 1) in ("}", "]"):
                i += 1
                continue
            out.append(c)
            i += 1
            continue
        if _IDENT_START.match(c):
            j = i + 1
            while j < n and _IDENT_CHAR.match(text[j]):
                j += 1
            word = text[i:j]
            if _next_significant(text, j) == ":" and word not in _LITERALS:
                out.append(f'"{word}"')
            else:
                out.append(word)
            i = j
            continue
        out.append(c)
        i += 1
    return "".join(out)


def strict_decode(text: str) -> Any:
    """Extract and parse without any repair."""
    try:
        return json.loads(extract_json_block(text))
    except json.JSONDecodeError as e:
        raise MalformedResponseError(f"AI response is not valid JSON: {e}") from e


def lenient_decode(text: str) -> Any:
    """Extract, parse, and on failure repair then parse again."""
    candidate = extract_json_block(text)
    try:
        return json.loads(candidate)
    except json.JSONDecodeError:
        pass
    try:
        return json.loads(repair_json(candidate))
    except json.JSONDecodeError as e:
        raise MalformedResponseError(f"AI response is not valid JSON after repair: {e}") from e
