"""
precision_lab Examples Package
==============================

Runnable walkthroughs of the precision graph pipeline.

Examples
--------
block_sweep : module
    Synthetic sector blocks, one precision matrix, a parallel threshold sweep.
rank_selection : module
    Reading the correlation spectrum to pick the truncation rank.

Quick Start
-----------
    $ python -m examples.block_sweep
    $ python -m examples.rank_selection

Or import as modules:

    >>> from examples import run_example
    >>> snapshots = run_example("block_sweep")
"""

__all__ = [
    "block_sweep",
    "rank_selection",
    "list_examples",
    "run_example",
]


def list_examples():
    """
    List all available examples with descriptions.

    Returns
    -------
    dict
        Dictionary mapping example names to their descriptions.
    """
    return {
        "block_sweep": (
            "Simulated sector blocks, a rank-N precision matrix and a "
            "threshold sweep run on a thread pool."
        ),
        "rank_selection": (
            "Marchenko-Pastur and explained-variance rank suggestions, and "
            "how the graph changes with the rank."
        ),
    }


def run_example(name, *args, **kwargs):
    """
    Dynamically import and run an example.

    Parameters
    ----------
    name : str
        Name of the example to run (without .py extension).
    *args, **kwargs
        Arguments to pass to the example's main() function.

    Returns
    -------
    result
        Return value from the example's main() function.
    """
    import importlib

    valid_examples = list_examples().keys()
    if name not in valid_examples:
        raise ValueError(
            f"Unknown example '{name}'. Valid examples: {', '.join(valid_examples)}"
        )

    module = importlib.import_module(f"examples.{name}")

    if hasattr(module, "main"):
        return module.main(*args, **kwargs)
    else:
        raise AttributeError(
            f"Example '{name}' does not have a main() function"
        )
