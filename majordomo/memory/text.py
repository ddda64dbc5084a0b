"""Keyword/entity extraction and vector helpers for memories."""

import re

import numpy as np

STOP_WORDS = frozenset("""
a an the is are was were be been being have has had do does did will would
could should may might must to of in for on with at by from as into through
during and but if or because that this i me my we our you your he she it they
""".split())

MAX_TERMS = 10

_NON_WORD = re.compile(r"[^a-z0-9\s]")
_PROPER_NOUN = re.compile(r"^[A-Z][a-z]+")


def extract_keywords(text: str) -> list[str]:
    """Lowercase content words, stop words removed, first 10 kept."""
    words = _NON_WORD.sub(" ", text.lower()).split()
    return [w for w in words if len(w) > 2 and w not in STOP_WORDS][:MAX_TERMS]


def extract_entities(text: str) -> list[str]:
    """Capitalized words, unique in order of appearance."""
    seen: list[str] = []
    for word in text.split():
        m = _PROPER_NOUN.match(word)
        if m and m.group(0) not in seen:
            seen.append(m.group(0))
    return seen[:MAX_TERMS]


def cosine_similarity(a: list[float] | np.ndarray, b: list[float] | np.ndarray) -> float:
    va = np.asarray(a, dtype=np.float32)
    vb = np.asarray(b, dtype=np.float32)
    if va.shape != vb.shape:
        return 0.0
    norm_a = float(np.linalg.norm(va))
    norm_b = float(np.linalg.norm(vb))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return float(np.dot(va, vb) / (norm_a * norm_b))


def embedding_to_blob(embedding: list[float] | None) -> bytes | None:
    if embedding is None:
        return None
    return np.array(embedding, dtype=np.float32).tobytes()


def blob_to_embedding(blob: bytes | None) -> list[float] | None:
    if not blob:
        return None
    return np.frombuffer(blob, dtype=np.float32).tolist()
