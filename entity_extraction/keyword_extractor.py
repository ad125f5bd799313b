"""
Keyword and phrase extraction.

Frequency-weighted keywords and repeated n-grams with stopword filtering.
"""

import math
import re
from collections import Counter
from typing import Dict, List


STOPWORDS = frozenset("""
the a an and or but in on at to for of with by from as is was are were been be
have has had do does did will would could should may might can this that these
those it its they them their we us our you your he him his she her i me my mine
what which who whom when where why how all each every both few more most other
some such no not only same so than too very just also now here there then if
else because while although though after before above below between under over
through during out into about any being get got getting let make made put say
said see saw seen take took taken tell told think thought use used using want
wanted way well
""".split())

_NON_KEYWORD = re.compile(r"[^\w\s-]")
_NON_WORD = re.compile(r"[^\w\s]")
_DIGITS = re.compile(r"\d+")


def tokenize(text: str) -> List[str]:
    """Lowercase tokens that survive the keyword filters, in scan order."""
    words = _NON_KEYWORD.sub(" ", text.lower()).split()
    return [
        word for word in words
        if len(word) > 2 and word not in STOPWORDS and not _DIGITS.fullmatch(word)
    ]


def extract_keywords(text: str, max_keywords: int = 20) -> List[str]:
    """
    Top keywords scored by ``count * (1 + ln(len(word)))``.

    Ties keep first-occurrence order.
    """
    freq = Counter(tokenize(text))
    scored = sorted(
        freq.items(),
        key=lambda item: item[1] * (1 + math.log(len(item[0]))),
        reverse=True,
    )
    return [word for word, _ in scored[:max_keywords]]


def extract_phrases(text: str, n: int = 2) -> List[str]:
    """Repeated n-grams (not made solely of stopwords), top 10 by count."""
    words = _NON_WORD.sub(" ", text.lower()).split()
    counts: Dict[str, int] = {}
    for i in range(len(words) - n + 1):
        gram = words[i:i + n]
        if all(w in STOPWORDS for w in gram):
            continue
        phrase = " ".join(gram)
        counts[phrase] = counts.get(phrase, 0) + 1

    repeated = [(phrase, count) for phrase, count in counts.items() if count > 1]
    repeated.sort(key=lambda item: item[1], reverse=True)
    return [phrase for phrase, _ in repeated[:10]]
