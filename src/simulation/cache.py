"""
Flat-file cache for simulated datasets.

The table is written as CSV and the ground truth plus metadata as a JSON
sidecar next to it (`data.csv` → `data.csv.json`), so a dataset simulated once
can be reloaded by later analyses.
"""

import json
import logging
from pathlib import Path
from typing import Callable, Union

import pandas as pd

from simulation.simulator import SimulatedDataset

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def _sidecar(path: Path) -> Path:
    return path.with_name(path.name + ".json")


def save_dataset(dataset: SimulatedDataset, path: PathLike) -> Path:
    """
    Write a simulated dataset to CSV with a JSON metadata sidecar.

    Parameters
    ----------
    dataset : SimulatedDataset
        Dataset to store
    path : str or Path
        Target CSV path. Parent directories are created.

    Returns
    -------
    Path
        The CSV path written.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    dataset.data.to_csv(path, index=False)
    metadata = {
        "family": dataset.family,
        "scenario": dataset.scenario,
        "truth": dataset.truth,
        "n_obs": dataset.n_obs,
    }
    _sidecar(path).write_text(json.dumps(metadata, indent=2))

    logger.info("Saved %s dataset (%d rows) to %s", dataset.scenario, dataset.n_obs, path)
    return path


def load_dataset(path: PathLike) -> SimulatedDataset:
    """
    Read a dataset written by `save_dataset`.

    Raises
    ------
    FileNotFoundError
        If the CSV or its sidecar is missing.
    ValueError
        If the row count does not match the stored metadata.
    """
    path = Path(path)
    sidecar = _sidecar(path)
    if not path.exists():
        raise FileNotFoundError(f"Dataset file not found: {path}")
    if not sidecar.exists():
        raise FileNotFoundError(f"Dataset metadata not found: {sidecar}")

    data = pd.read_csv(path)
    metadata = json.loads(sidecar.read_text())

    if len(data) != metadata["n_obs"]:
        raise ValueError(
            f"{path} has {len(data)} rows but metadata records {metadata['n_obs']}"
        )

    return SimulatedDataset(
        data=data,
        truth=metadata["truth"],
        family=metadata["family"],
        scenario=metadata["scenario"],
    )


def load_or_simulate(
    path: PathLike,
    simulate: Callable[[], SimulatedDataset],
    refresh: bool = False,
) -> SimulatedDataset:
    """
    Reuse a cached dataset, or simulate and cache it.

    Parameters
    ----------
    path : str or Path
        CSV cache path
    simulate : Callable[[], SimulatedDataset]
        Called when no cache exists (or refresh is requested)
    refresh : bool
        Ignore an existing cache and simulate again. Default False.
    """
    path = Path(path)
    if path.exists() and not refresh:
        logger.info("Loading cached dataset from %s", path)
        return load_dataset(path)

    dataset = simulate()
    save_dataset(dataset, path)
    return dataset
