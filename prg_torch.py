#!/usr/bin/env python3
"""
Partial Relative Gain in PyTorch (differentiable)
==================================================
Same algebra as prg.py on torch tensors, so that the PRG can be
differentiated with respect to the DC-gain matrix. The sensitivity
dPRG/dG0 shows which gain entries a pairing decision hinges on when
the gains are uncertain.
"""

import numpy as np
import torch
from typing import Sequence

from prg import PartialRelativeGain


def partial_relative_gain_torch(G: torch.Tensor, rows: Sequence[int],
                                columns: Sequence[int], k: int) -> torch.Tensor:
    """
    PRG of G for an already validated loop ordering.

    Args:
        G: DC-gain matrix (n × n)
        rows: Row ordering, closed outputs last (zero-based)
        columns: Column ordering, closed inputs last (zero-based)
        k: Number of closed loops

    Returns:
        (n-k) × (n-k) PRG tensor
    """
    r = torch.as_tensor(rows, dtype=torch.long, device=G.device)
    c = torch.as_tensor(columns, dtype=torch.long, device=G.device)
    G_r = G.index_select(0, r).index_select(1, c)

    n_ol = G.shape[0] - k
    G11 = G_r[:n_ol, :n_ol]
    if k > 0:
        G12 = G_r[:n_ol, n_ol:]
        G21 = G_r[n_ol:, :n_ol]
        G22 = G_r[n_ol:, n_ol:]
        CLgain = G11 - G12 @ torch.linalg.solve(G22, G21)
    else:
        CLgain = G11

    return CLgain * torch.linalg.inv(CLgain).T


def prg_sensitivity(G0, outCL, inCL, one_based: bool = True) -> np.ndarray:
    """
    Jacobian of the PRG with respect to the gain matrix.

    Inputs are validated, and the singular cases rejected, by the NumPy
    engine before any tensor work.

    Returns:
        Array J of shape (n-k, n-k, n, n) with J[i, j, a, b] = dPRG[i, j] / dG0[a, b]
    """
    engine = PartialRelativeGain(G0, one_based=one_based)
    result = engine.compute(outCL, inCL)

    off = 1 if one_based else 0
    rows = np.concatenate([result.open_outputs, result.closed_outputs]) - off
    columns = np.concatenate([result.open_inputs, result.closed_inputs]) - off
    k = len(result.closed_outputs)

    G_t = torch.as_tensor(engine.G0, dtype=torch.float64)
    J = torch.autograd.functional.jacobian(
        lambda X: partial_relative_gain_torch(X, rows, columns, k), G_t)
    return J.detach().numpy()
