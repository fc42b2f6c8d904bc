"""
Result Store Persistence Layer

This module persists the fetched `ResultStore` between the fetch and render
phases. Data is serialized as indented JSON so files stay human-diffable.

Responsibilities:
-----------------
- Write the store to a file, or to stdout when no path is given.
- Read a store back and validate it against the `ResultStore` model.

Functions:
----------
- `save_results(store, path=None)`: Serializes the store.
- `load_results(path) -> ResultStore`: Parses and validates a persisted store.

Failure handling:
-----------------
Read and write failures are logged and raised as `SerializationError`.

Usage:
------
    save_results(store, Path("results.json"))
    store = load_results(Path("results.json"))
"""


import logging
import sys
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from transit_heatmap.core.data_types import ResultStore
from transit_heatmap.core.exceptions import SerializationError

logger = logging.getLogger(__name__)

def save_results(store: ResultStore, path: Optional[Path] = None) -> None:
    """
    Saves the result store as JSON.

    Args:
        store (ResultStore): Fetched results and the sampled area.
        path (Optional[Path]): Target file; stdout when None.

    Raises:
        SerializationError: If the file cannot be written.
    """
    data = store.to_json()

    if path is None:
        sys.stdout.write(data + "\n")
        sys.stdout.flush()
        return

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            f.write(data + "\n")
    except OSError as e:
        logger.error(f"Failed to save results to '{path}': {e}", exc_info=True)
        raise SerializationError(f"Failed to save results to '{path}': {e}") from e

    logger.info(f"Saved {len(store.results)} results to '{path}'.")

def load_results(path: Path) -> ResultStore:
    """
    Loads a result store written by `save_results`.

    Args:
        path (Path): JSON file to read.

    Returns:
        ResultStore: The validated store.

    Raises:
        SerializationError: If the file is missing, unreadable or not a valid store.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            store = ResultStore.from_json(f.read())
    except OSError as e:
        logger.error(f"Failed to read results from '{path}': {e}")
        raise SerializationError(f"Failed to read results from '{path}': {e}") from e
    except ValidationError as e:
        logger.error(f"'{path}' is not a valid results file: {e}")
        raise SerializationError(f"'{path}' is not a valid results file: {e}") from e

    logger.info(f"Loaded {len(store.results)} results from '{path}'.")
    return store
