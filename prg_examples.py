#!/usr/bin/env python3
"""
Example: Partial Relative Gains of a Petlyuk Distillation Column
================================================================
Reproduces the PRG examples of K.E. Haeggblom (1997) for the DC-gain
matrix of a Petlyuk column:
1. Eq. 28 - loop output 1 / input 1 closed
2. Eq. 29 - loop output 3 / input 1 closed
3. Eq. 30 - loop output 4 / input 2 closed
4. Eq. 31 - loops outputs 1,3 / inputs 1,3 closed
"""

import sys
import numpy as np
import matplotlib.pyplot as plt

from prg import PartialRelativeGain, PRGResult


# (equation, outCL, inCL), 1-based indices
HAGGBLOM_EXAMPLES = [
    ("Eq. 28", [1], [1]),
    ("Eq. 29", [3], [1]),
    ("Eq. 30", [4], [2]),
    ("Eq. 31", [1, 3], [1, 3]),
]


def petlyuk_gain() -> np.ndarray:
    """DC-gain matrix of the Petlyuk column (4 outputs x 4 inputs)."""
    return np.array([[153.45, -179.34, 0.23, 0.03],
                     [-157.67, 184.75, -0.10, 21.63],
                     [24.63, -28.97, -0.23, -0.1],
                     [-4.8, 6.09, 0.13, -2.41]])


def plot_prg(result: PRGResult, ax=None, title: str = None):
    """
    Heat map of a PRG, annotated with its values.

    Rows are labelled with the open outputs and columns with the open inputs.

    Returns:
        The matplotlib Axes drawn on
    """
    if ax is None:
        _, ax = plt.subplots(figsize=(5, 4))

    prg = result.prg
    # Signed log scale: relative gains can span several decades
    scaled = np.sign(prg) * np.log10(1.0 + np.abs(prg))
    lim = max(np.max(np.abs(scaled)), 1e-12)
    im = ax.imshow(scaled, cmap="RdBu_r", vmin=-lim, vmax=lim)

    ax.set_xticks(range(prg.shape[1]))
    ax.set_xticklabels([f"u{j}" for j in result.open_inputs])
    ax.set_yticks(range(prg.shape[0]))
    ax.set_yticklabels([f"y{i}" for i in result.open_outputs])
    ax.set_xlabel("Input")
    ax.set_ylabel("Output")

    for i in range(prg.shape[0]):
        for j in range(prg.shape[1]):
            ax.text(j, i, f"{prg[i, j]:.3g}", ha="center", va="center", fontsize=9)

    if title is None:
        closed = ", ".join(f"y{o}-u{u}" for o, u in zip(result.closed_outputs, result.closed_inputs))
        title = f"PRG, closed: {closed}" if closed else "RGA"
    ax.set_title(title)
    ax.figure.colorbar(im, ax=ax, label="sign(λ)·log10(1+|λ|)")
    return ax


def main(plot: bool = False):
    """Print (and optionally plot) the Petlyuk column examples."""
    np.set_printoptions(precision=4, suppress=True)

    print("=" * 60)
    print("Partial Relative Gain: Petlyuk column (Haeggblom 1997)")
    print("=" * 60)

    engine = PartialRelativeGain(petlyuk_gain(), verbose=True)

    print("\nRGA (no loops closed):")
    print(engine.rga())

    results = []
    for eq, outCL, inCL in HAGGBLOM_EXAMPLES:
        print(f"\n{eq}: outputs {outCL} closed with inputs {inCL}")
        result = engine.compute(outCL, inCL)
        print(f"   open outputs {result.open_outputs.tolist()}, open inputs {result.open_inputs.tolist()}")
        print(result.prg)
        results.append((eq, result))

    if plot:
        fig, axes = plt.subplots(1, len(results), figsize=(5 * len(results), 4))
        for ax, (eq, result) in zip(np.atleast_1d(axes), results):
            plot_prg(result, ax=ax, title=eq)
        fig.tight_layout()
        plt.show()

    return results


def cli():
    """Console entry point: prg-examples [--plot]"""
    main(plot="--plot" in sys.argv[1:])


if __name__ == "__main__":
    cli()
