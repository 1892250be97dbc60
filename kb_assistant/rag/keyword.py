"""Keyword overlap scoring, used when retrieval runs without embeddings."""
import math
import re
from collections import Counter
from typing import List

TOKEN_PATTERN = re.compile(r"[^\W_]+")

STOP_WORDS = frozenset(
    """
    a an and are as at be but by can do does for from has have how i if in
    is it its me my no not of on or our so that the their there this to us
    was we what when where which who why will with you your
    """.split()
)


def tokenize(text: str) -> List[str]:
    """Lowercase word tokens without stop words or single characters."""
    return [
        t for t in TOKEN_PATTERN.findall(text.lower())
        if len(t) > 1 and t not in STOP_WORDS
    ]


class KeywordScorer:
    """Scores passages by how many distinct query terms they contain.

    Total term frequency only breaks ties between passages that match the
    same number of distinct terms.
    """

    frequency_weight = 0.1

    def score(self, query: str, texts: List[str]) -> List[float]:
        terms = set(tokenize(query))
        if not terms:
            return [0.0] * len(texts)

        scores = []
        for text in texts:
            counts = Counter(tokenize(text))
            matched = [t for t in terms if counts[t]]
            if not matched:
                scores.append(0.0)
                continue
            occurrences = sum(counts[t] for t in matched)
            scores.append(len(matched) + self.frequency_weight * math.log1p(occurrences))
        return scores

    def top_k(self, query: str, texts: List[str], k: int) -> List[tuple]:
        """Best (index, score) pairs with a positive score, ties in corpus order."""
        scores = self.score(query, texts)
        ranked = sorted(
            (i for i, s in enumerate(scores) if s > 0),
            key=lambda i: -scores[i],
        )
        return [(i, scores[i]) for i in ranked[:k]]
