"""
Rank Selection Example
======================
"""
import numpy as np
from precision_lab import (
    estimate_correlation,
    spectral_decomposition,
    regularized_precision,
    build_graph,
    detect_communities,
    marchenko_pastur_rank,
    select_rank_by_variance,
)


def generate_factor_returns(T=500, p=30, k_true=3, seed=42):
    rng = np.random.default_rng(seed)
    factors = rng.standard_normal((T, k_true))
    loadings = np.zeros((k_true, p))
    for k in range(k_true):
        loadings[k, k::k_true] = 1.0
    idio = rng.standard_normal((T, p)) * 0.7
    return factors @ loadings + idio


def main(T=500, p=30, k_true=3, quantile=0.85, seed=42, **kwargs):
    print("=" * 70)
    print(f"Running Rank Selection Example (T={T}, p={p})")
    print("=" * 70)

    returns = generate_factor_returns(T=T, p=p, k_true=k_true, seed=seed)
    corr = estimate_correlation(returns)
    decomp = spectral_decomposition(corr)

    rank_mp = marchenko_pastur_rank(decomp, corr.n_observations)
    rank_var = select_rank_by_variance(decomp, target_explained=0.90)
    print(f"\n1. Top eigenvalues: {np.round(decomp.eigenvalues[:5], 3)}")
    print(f"   Marchenko-Pastur rank: {rank_mp}")
    print(f"   90% variance rank:     {rank_var}")

    print("\n2. Communities by rank")
    groups_by_rank = {}
    for rank in sorted({1, rank_mp, rank_var}):
        precision = regularized_precision(decomp, rank)
        graph = build_graph(precision, quantile)
        assignment = detect_communities(graph)
        groups_by_rank[rank] = assignment.n_groups
        print(f"   rank={rank:2d}  edges={graph.n_edges:3d}  groups={assignment.n_groups}")

    print("\n" + "=" * 70)
    print("Rank selection complete!")
    print("=" * 70)

    return {"mp_rank": rank_mp, "variance_rank": rank_var, "groups": groups_by_rank}


if __name__ == "__main__":
    main()
