"""Token count estimation for messages and summaries."""

import re

_TOKEN_RE = re.compile(r"\w+|[^\w\s]", re.UNICODE)


def estimate_tokens(text: str) -> int:
    """
    Estimate the token count of `text`.

    Counts word runs and standalone punctuation, which tracks BPE token
    counts closely enough for window sizing.
    """
    if not text:
        return 0
    return len(_TOKEN_RE.findall(text))
