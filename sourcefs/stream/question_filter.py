"""
Removal of an echoed question from the start of a model's answer.

Models sometimes open with a restatement of the question before answering.
The question is reduced to its core (leading ``@resource`` mentions dropped,
whitespace collapsed) and matched against the start of the answer,
ignoring case and treating any run of whitespace as a single space.

* A full match is removed together with the whitespace that follows it.
  A match that runs straight into more word characters (``"what is x"``
  against ``"what is xylophone"``) is not an echo.
* While streaming, an answer that is still a prefix of the core question is
  withheld, since it may turn out to be an echo.
* Once the answer is final nothing is withheld.
"""

from __future__ import annotations

import re

_LEADING_MENTIONS = re.compile(r"^(?:\s*@\S+)+")
_WHITESPACE = re.compile(r"\s+")


def extract_core_question(question: str | None) -> str:
    """Normalize a question for echo matching. Returns "" when there is nothing to match."""
    if not question:
        return ""
    core = _LEADING_MENTIONS.sub("", question)
    return _WHITESPACE.sub(" ", core).strip()


def _match_length(text: str, core: str) -> int | None:
    """
    Match ``core`` against the start of ``text``.

    Returns:
        The number of characters of ``text`` consumed by a full match, -1 when
        ``text`` ended before ``core`` did, or None on a mismatch.
    """
    i = 0
    while i < len(text) and text[i].isspace():
        i += 1

    j = 0
    while j < len(core):
        if i >= len(text):
            return -1
        if core[j] == " ":
            if not text[i].isspace():
                return None
            while i < len(text) and text[i].isspace():
                i += 1
            j += 1
            continue
        if text[i].lower() != core[j].lower():
            return None
        i += 1
        j += 1

    return i


def strip_question_from_start(text: str, core_question: str, final: bool = False) -> str:
    """
    Strip an echoed ``core_question`` from the start of ``text``.

    Args:
        text: Answer accumulated so far.
        core_question: Output of ``extract_core_question``.
        final: Whether ``text`` is the complete answer.

    Returns:
        The answer without the echo. While streaming this may be a shorter
        string (possibly empty) that grows as more text arrives.
    """
    if not core_question:
        return text

    consumed = _match_length(text, core_question)
    if consumed is None:
        return text
    if consumed == -1:
        return text if final else ""

    rest = text[consumed:]
    if rest and not rest[0].isspace() and core_question[-1].isalnum() and rest[0].isalnum():
        return text
    if not rest.strip() and not final:
        # Undecided until a character past the echo arrives
        return ""
    return rest.lstrip()
