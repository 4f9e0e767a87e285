import re

TAG_WEIGHT = 0.9
DESCRIPTION_WEIGHT = 0.1
MIN_SCORE = 0.1
MIN_WORD_LENGTH = 4

_WORD_SPLIT = re.compile(r"[^\w]+")


def jaccard(a, b):
    """|A & B| / |A | B|; two empty sets score 0 rather than 1."""
    a, b = set(a), set(b)
    union = a | b
    if not union:
        return 0.0
    return len(a & b) / len(union)


def tag_set(tags):
    return {t.strip().lower() for t in tags or [] if t and t.strip()}


def description_words(text):
    return {w for w in _WORD_SPLIT.split((text or "").lower()) if len(w) >= MIN_WORD_LENGTH}


def similarity_score(tags_a, desc_a, tags_b, desc_b):
    return (
        TAG_WEIGHT * jaccard(tag_set(tags_a), tag_set(tags_b))
        + DESCRIPTION_WEIGHT * jaccard(description_words(desc_a), description_words(desc_b))
    )


def rank_similar(target, candidates):
    """Score candidates against target and keep those above MIN_SCORE, best first.

    target and candidates are (key, tags, description) tuples; candidates are
    expected newest first and that order breaks ties.
    """
    target_key, target_tags, target_desc = target
    scored = []
    for key, tags, desc in candidates:
        if key == target_key:
            continue
        score = similarity_score(target_tags, target_desc, tags, desc)
        if score > MIN_SCORE:
            scored.append((key, score))
    # sorted() is stable so equal scores keep the incoming order
    return sorted(scored, key=lambda item: item[1], reverse=True)
