"""
preprocessing.py - Price Cleaning and Return Computation

Small helpers that turn a raw (T, S) price panel into the clean returns
matrix the pipeline expects:

    prices --forward_fill--> filled --drop leading gaps--> log_returns
"""

from __future__ import annotations

import numpy as np
import pandas as pd
from loguru import logger

from .errors import InvalidInputError


def forward_fill(prices: np.ndarray) -> np.ndarray:
    """
    Replace each NaN with the last observed value in its column.

    Leading NaNs (before a column's first observation) are left in place.
    """
    P = np.asarray(prices, dtype=float)
    if P.ndim != 2:
        raise InvalidInputError(f"Prices must be 2D array, got shape {P.shape}")

    return np.array(pd.DataFrame(P).ffill(), dtype=float)


def log_returns(prices: np.ndarray) -> np.ndarray:
    """
    Log returns r_t = log(P_t) - log(P_{t-1}), shape (T - 1, S).

    Raises
    ------
    InvalidInputError
        If prices are not 2D, have fewer than 2 rows, or contain
        non-positive values.
    """
    P = np.asarray(prices, dtype=float)
    if P.ndim != 2:
        raise InvalidInputError(f"Prices must be 2D array, got shape {P.shape}")
    if P.shape[0] < 2:
        raise InvalidInputError(f"Need at least 2 price rows, got {P.shape[0]}")
    if np.any(P[~np.isnan(P)] <= 0):
        raise InvalidInputError("Prices must be strictly positive for log returns")
    return np.diff(np.log(P), axis=0)


def prices_to_returns(prices: np.ndarray) -> np.ndarray:
    """
    Forward-fill, drop rows before every column has a price, log-difference.

    Returns
    -------
    ndarray (T', S)
        Log returns without missing values.

    Raises
    ------
    InvalidInputError
        If a column never has a price or fewer than 2 complete rows remain.
    """
    filled = forward_fill(prices)
    complete = ~np.any(np.isnan(filled), axis=1)
    if not np.any(complete):
        raise InvalidInputError("No row has a price for every series")

    first = int(np.argmax(complete))
    if first:
        logger.debug(f"Dropping {first} leading row(s) with missing prices")
    returns = log_returns(filled[first:])
    logger.info(f"Computed log returns: {returns.shape[0]} x {returns.shape[1]}")
    return returns
