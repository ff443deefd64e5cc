"""Maximal Marginal Relevance selection.

Pure top-k similarity search clusters near-duplicate chunks when a
document repeats a topic. MMR picks, one at a time, the candidate that
maximises ``lambda * relevance - (1 - lambda) * redundancy`` where
redundancy is the highest cosine similarity to anything already picked.
``lambda_mult=1`` degenerates to plain relevance ranking, ``0`` maximises
diversity after the seed.
"""

import numpy as np

from .similarity import normalize_rows

DEFAULT_LAMBDA = 0.5
DEFAULT_CANDIDATE_MULTIPLIER = 3


def maximal_marginal_relevance(
    relevance: np.ndarray,
    candidate_vectors: np.ndarray,
    top_k: int,
    lambda_mult: float = DEFAULT_LAMBDA,
) -> list[int]:
    """Select up to ``top_k`` candidate indices in selection order.

    Args:
        relevance: Query similarity of each candidate, sorted descending.
        candidate_vectors: One row per candidate, aligned with ``relevance``.
        top_k: Number of candidates to select.
        lambda_mult: Trade-off between relevance (1.0) and diversity (0.0).

    Returns:
        Indices into the candidate pool. The first is always the most
        relevant candidate; ties on MMR score go to the earlier candidate.
    """
    n = len(relevance)
    if n == 0 or top_k <= 0:
        return []

    unit = normalize_rows(np.asarray(candidate_vectors, dtype=np.float64))
    pairwise = np.clip(unit @ unit.T, -1.0, 1.0)

    selected = [0]
    remaining = list(range(1, n))
    # Highest similarity of each candidate to the selected set so far.
    redundancy = pairwise[0].copy()

    while len(selected) < top_k and remaining:
        best_pos = 0
        best_score = -np.inf
        for pos, idx in enumerate(remaining):
            score = lambda_mult * relevance[idx] - (1 - lambda_mult) * redundancy[idx]
            if score > best_score:
                best_score = score
                best_pos = pos

        chosen = remaining.pop(best_pos)
        selected.append(chosen)
        redundancy = np.maximum(redundancy, pairwise[chosen])

    return selected
