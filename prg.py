#!/usr/bin/env python3
"""
Partial Relative Gain (PRG)
===========================
Implements the Partial Relative Gain of K.E. Haeggblom (1997), "Partial
relative gain: a new tool for control structure selection".

Given a DC-gain matrix G0 (rows = outputs, columns = inputs) and a set of
loops under perfect control, each loop pairing output outCL[i] with input
inCL[i], the remaining open-loop gains are the Schur complement

    CLgain = G11 - G12 · (G22 \\ G21)

of the reordered matrix

    G0[rows, columns] = [G11 G12]    open rows / open columns first,
                        [G21 G22]    closed rows / closed columns last,

and the PRG is the relative gain array of CLgain:

    PRG = CLgain ∘ inv(CLgain)^T    (elementwise product).

With no closed loops the PRG reduces to the classical RGA.
"""

import numpy as np
from scipy import linalg
from typing import Tuple, Dict
from dataclasses import dataclass


class ShapeError(ValueError):
    """Raised when a matrix or index vector has the wrong shape or length."""


class SingularMatrixError(np.linalg.LinAlgError):
    """Raised when a matrix that must be inverted is numerically singular.

    Attributes:
        stage: 'closed_block' if G22 (the closed-loop block) is singular,
            'reduced_gain' if the reduced open-loop gain CLgain is singular.
    """

    def __init__(self, msg: str, stage: str):
        super().__init__(msg)
        self.stage = stage


def _as_index_vector(name: str, idx) -> np.ndarray:
    """Check that idx is a 1D vector of integral values; return it as ints."""
    arr = np.asarray(idx)
    if sum(d > 1 for d in arr.shape) > 1:
        raise ShapeError(f"{name} must be a 1D vector, got shape {arr.shape}")
    arr = arr.reshape(-1)
    if arr.size == 0:
        return np.zeros(0, dtype=int)

    if arr.dtype == np.bool_ or not (np.issubdtype(arr.dtype, np.integer)
                                     or np.issubdtype(arr.dtype, np.floating)):
        raise TypeError(f"{name} must contain real integral indices, got dtype {arr.dtype}")
    if np.issubdtype(arr.dtype, np.floating):
        if not np.all(np.isfinite(arr)) or np.any(arr != np.round(arr)):
            raise TypeError(f"{name} must contain integral values, got {arr.tolist()}")
    return arr.astype(int)


def _to_zero_based(name: str, arr: np.ndarray, n: int, one_based: bool) -> np.ndarray:
    """Shift to zero-based indices, rejecting out-of-range and repeated ones."""
    zero_based = arr - (1 if one_based else 0)
    if np.any(zero_based < 0) or np.any(zero_based >= n):
        lo, hi = (1, n) if one_based else (0, n - 1)
        raise ValueError(f"{name} indices must lie in [{lo}, {hi}], got {arr.tolist()}")
    if len(np.unique(zero_based)) != len(zero_based):
        raise ValueError(f"{name} must not contain duplicate indices, got {arr.tolist()}")
    return zero_based


def check_inputs(G0, outCL, inCL,
                 one_based: bool = True) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Validate the gain matrix and the closed-loop index vectors.

    Args:
        G0: DC-gain matrix (n x n), real floating point
        outCL: Indices of the outputs under perfect control
        inCL: Indices of the inputs closing those loops, paired positionally
        one_based: Whether the indices count from 1 (default) or from 0

    Returns:
        (G, out_idx, in_idx): float64 copy of G0 and zero-based index arrays

    Raises:
        TypeError: G0 is not floating point, or indices are not integral
        ShapeError: G0 not square, indices not 1D, length mismatch,
            or as many closed loops as rows
        ValueError: G0 not finite, indices out of range or repeated
    """
    G = np.asarray(G0)
    if not np.issubdtype(G.dtype, np.floating):
        raise TypeError(f"G0 must be a matrix of floating point elements, got dtype {G.dtype}")
    if G.ndim != 2 or G.shape[0] != G.shape[1]:
        raise ShapeError(f"G0 must have the same number of rows and columns, got shape {G.shape}")
    if not np.all(np.isfinite(G)):
        raise ValueError("G0 must contain only finite values")
    n = G.shape[0]

    out_arr = _as_index_vector("outCL", outCL)
    in_arr = _as_index_vector("inCL", inCL)

    if len(out_arr) != len(in_arr):
        raise ShapeError(f"outCL and inCL must have the same length, "
                         f"got {len(out_arr)} and {len(in_arr)}")
    k = len(out_arr)
    if k > n:
        raise ShapeError(f"Cannot close {k} loops on a {n}x{n} gain matrix")
    if k == n:
        raise ShapeError(f"Closing all {n} loops leaves no open input/output pair")

    out_idx = _to_zero_based("outCL", out_arr, n, one_based)
    in_idx = _to_zero_based("inCL", in_arr, n, one_based)
    return G.astype(np.float64), out_idx, in_idx


def loop_ordering(n: int, out_idx: np.ndarray, in_idx: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """
    Row and column orderings that move the closed loops to the end.

    Open indices keep their relative order; closed ones are appended in
    the order given, so closed row n-k+i is paired with closed column n-k+i.
    """
    closed_rows = out_idx.tolist()
    closed_cols = in_idx.tolist()
    rows = [r for r in range(n) if r not in closed_rows] + closed_rows
    columns = [c for c in range(n) if c not in closed_cols] + closed_cols
    return np.array(rows, dtype=int), np.array(columns, dtype=int)


def partition(G: np.ndarray, rows: np.ndarray, columns: np.ndarray,
              k: int) -> Tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
    """Reorder G and split it into (G11, G12, G21, G22) at n - k."""
    G_r = G[np.ix_(rows, columns)]
    n_ol = G.shape[0] - k
    G11 = G_r[:n_ol, :n_ol]
    G12 = G_r[:n_ol, n_ol:]
    G21 = G_r[n_ol:, :n_ol]
    G22 = G_r[n_ol:, n_ol:]
    return G11, G12, G21, G22


def _equilibrate(M: np.ndarray) -> np.ndarray:
    """Scale each row, then each column, of M to unit max-abs entry."""
    r = np.max(np.abs(M), axis=1, keepdims=True)
    r[r == 0] = 1.0
    M = M / r
    c = np.max(np.abs(M), axis=0, keepdims=True)
    c[c == 0] = 1.0
    return M / c


def _check_invertible(M: np.ndarray, what: str, stage: str):
    # Rank of the equilibrated matrix: output/input units must not decide singularity
    rank = np.linalg.matrix_rank(_equilibrate(M))
    if rank < M.shape[0]:
        raise SingularMatrixError(f"{what} is singular, rank = {rank} < {M.shape[0]}", stage)


def closed_loop_gain(G11: np.ndarray, G12: np.ndarray,
                     G21: np.ndarray, G22: np.ndarray) -> np.ndarray:
    """
    Open-loop gains left after closing the G22 loops under perfect control.

    CLgain = G11 - G12 · (G22 \\ G21)

    Raises:
        SingularMatrixError: G22 is singular (stage 'closed_block')
    """
    if G22.shape[0] == 0:
        return G11.copy()

    _check_invertible(G22, "Closed-loop block G22", "closed_block")
    try:
        X = linalg.solve(G22, G21)
    except linalg.LinAlgError as e:
        raise SingularMatrixError(f"Closed-loop block G22 is singular: {e}", "closed_block") from e
    if not np.all(np.isfinite(X)):
        raise SingularMatrixError("Closed-loop block G22 is too ill-conditioned to solve", "closed_block")

    return G11 - G12 @ X


def relative_gain_array(G: np.ndarray) -> np.ndarray:
    """
    Relative gain array G ∘ inv(G)^T.

    Raises:
        SingularMatrixError: G is singular (stage 'reduced_gain')
    """
    G = np.asarray(G, dtype=np.float64)
    _check_invertible(G, "Reduced gain matrix", "reduced_gain")
    try:
        G_inv = linalg.inv(G)
    except linalg.LinAlgError as e:
        raise SingularMatrixError(f"Reduced gain matrix is singular: {e}", "reduced_gain") from e
    if not np.all(np.isfinite(G_inv)):
        raise SingularMatrixError("Reduced gain matrix is too ill-conditioned to invert", "reduced_gain")

    return G * G_inv.T


@dataclass
class PRGResult:
    """Result container for a PRG computation.

    Row i of `prg` belongs to output open_outputs[i] and column j to input
    open_inputs[j]; labels use the caller's index convention.
    """
    prg: np.ndarray
    closed_loop_gain: np.ndarray
    open_outputs: np.ndarray
    open_inputs: np.ndarray
    closed_outputs: np.ndarray
    closed_inputs: np.ndarray

    def element(self, output: int, inp: int) -> float:
        """PRG entry for a given (output, input) pair, by label."""
        i = np.flatnonzero(self.open_outputs == output)
        j = np.flatnonzero(self.open_inputs == inp)
        if len(i) == 0 or len(j) == 0:
            raise KeyError(f"({output}, {inp}) is not an open output/input pair")
        return float(self.prg[i[0], j[0]])


class PartialRelativeGain:
    """
    PRG engine for a fixed DC-gain matrix.

    The gain matrix is validated and copied once; each call to compute()
    works on its own reordered copy.
    """

    def __init__(self, G0, one_based: bool = True, verbose: bool = False):
        """
        Args:
            G0: DC-gain matrix (n x n), real floating point
            one_based: Whether loop indices count from 1 (default) or 0
            verbose: Print progress information
        """
        self.G0, _, _ = check_inputs(G0, [], [], one_based=one_based)
        self.n = self.G0.shape[0]
        self.one_based = one_based
        self.verbose = verbose

    def _log(self, msg: str):
        """Print message if verbose."""
        if self.verbose:
            print(msg)

    @property
    def _offset(self) -> int:
        return 1 if self.one_based else 0

    def compute(self, outCL, inCL) -> PRGResult:
        """
        Compute the PRG for closing outputs outCL with inputs inCL.

        Args:
            outCL: Outputs under perfect control
            inCL: Inputs used to close them, paired positionally with outCL

        Returns:
            PRGResult with the (n-k) x (n-k) PRG and its labels
        """
        G, out_idx, in_idx = check_inputs(self.G0, outCL, inCL, one_based=self.one_based)
        k = len(out_idx)
        n_ol = self.n - k

        rows, columns = loop_ordering(self.n, out_idx, in_idx)
        G11, G12, G21, G22 = partition(G, rows, columns, k)

        off = self._offset
        self._log(f"Closing {k} loop(s): outputs {(out_idx + off).tolist()} "
                  f"with inputs {(in_idx + off).tolist()}")

        CLgain = closed_loop_gain(G11, G12, G21, G22)
        prg = relative_gain_array(CLgain)
        if self.verbose:
            self._log(f"  Reduced gain {n_ol}x{n_ol}, cond = {np.linalg.cond(CLgain):.3e}")

        return PRGResult(
            prg=prg,
            closed_loop_gain=CLgain,
            open_outputs=rows[:n_ol] + off,
            open_inputs=columns[:n_ol] + off,
            closed_outputs=rows[n_ol:] + off,
            closed_inputs=columns[n_ol:] + off,
        )

    def rga(self) -> np.ndarray:
        """Classical relative gain array (no loops closed)."""
        return self.compute([], []).prg

    def single_loop_prgs(self) -> Dict[Tuple[int, int], PRGResult]:
        """
        PRG for every single loop (output i, input j) closed on its own.

        Loops with zero DC gain cannot be closed and are skipped.

        Returns:
            Dict mapping (output, input) labels to PRGResult
        """
        off = self._offset
        results = {}
        for i in range(self.n):
            for j in range(self.n):
                if self.G0[i, j] == 0.0:
                    self._log(f"Skipping loop ({i + off}, {j + off}): zero gain")
                    continue
                results[(i + off, j + off)] = self.compute([i + off], [j + off])
        return results


def PRG(G0, outCL, inCL, one_based: bool = True) -> np.ndarray:
    """
    Partial Relative Gain of G0 with outputs outCL closed by inputs inCL.

    Example (Petlyuk column, Haeggblom 1997, Eq. 31):
        PRG(petlyuk_gain(), [1, 3], [1, 3]) is 2x2, outputs {2, 4} x inputs {2, 4}

    Args:
        G0: DC-gain matrix (n x n)
        outCL: Indices of the outputs under perfect control
        inCL: Indices of the inputs closing the loops
        one_based: Whether indices count from 1 (default) or 0

    Returns:
        (n-k) x (n-k) PRG array
    """
    engine = PartialRelativeGain(G0, one_based=one_based)
    return engine.compute(outCL, inCL).prg
