"""Cosine similarity helpers shared by the vector store variants."""

from typing import Sequence

import numpy as np

from docqa.exceptions import DimensionMismatch

Vector = Sequence[float]


def as_vector(values: Vector | np.ndarray) -> np.ndarray:
    return np.asarray(values, dtype=np.float64).reshape(-1)


def cosine_similarity(a: Vector | np.ndarray, b: Vector | np.ndarray) -> float:
    """Cosine similarity ``dot(a, b) / (|a| * |b|)``.

    Defined as 0.0 when either vector has zero norm.

    Raises:
        DimensionMismatch: If the vectors have different lengths.
    """
    va = as_vector(a)
    vb = as_vector(b)
    if va.shape[0] != vb.shape[0]:
        raise DimensionMismatch(va.shape[0], vb.shape[0])

    denominator = float(np.linalg.norm(va)) * float(np.linalg.norm(vb))
    if denominator == 0.0:
        return 0.0
    return float(np.clip(np.dot(va, vb) / denominator, -1.0, 1.0))


def normalize_rows(matrix: np.ndarray) -> np.ndarray:
    """L2-normalise each row; zero rows stay zero."""
    norms = np.linalg.norm(matrix, axis=1, keepdims=True)
    safe = np.where(norms == 0.0, 1.0, norms)
    return matrix / safe


def cosine_scores(query: Vector | np.ndarray, unit_matrix: np.ndarray) -> np.ndarray:
    """Cosine similarity of ``query`` against every row of a row-normalised matrix."""
    q = as_vector(query)
    if unit_matrix.shape[0] == 0:
        return np.zeros(0, dtype=np.float64)
    if q.shape[0] != unit_matrix.shape[1]:
        raise DimensionMismatch(unit_matrix.shape[1], q.shape[0])

    norm = float(np.linalg.norm(q))
    if norm == 0.0:
        return np.zeros(unit_matrix.shape[0], dtype=np.float64)
    return np.clip(unit_matrix @ (q / norm), -1.0, 1.0)


def rank_descending(scores: np.ndarray) -> np.ndarray:
    """Indices ordered by score, highest first; ties keep insertion order."""
    return np.argsort(-scores, kind="stable")
