"""
Data simulation module.

Generates synthetic datasets from known ground truth so fitted models can be
checked for parameter recovery:
- DataSimulator: Gaussian, log-Gaussian, skew-normal, logistic, nonlinear
  growth and AR(1) scenarios
- SimulatedDataset: table + ground truth + family
- Flat-file cache: save/load a dataset across re-executions

**Usage:**
```python
from simulation import DataSimulator, load_or_simulate

sim = DataSimulator(n_obs=200, random_seed=42)
dataset = load_or_simulate(
    "data/lognormal.csv",
    lambda: sim.lognormal_linear(intercept=1.0, slope=0.2, sigma=0.4),
)
dataset.data.head()
dataset.truth  # {"Intercept": 1.0, "b_x": 0.2, "sigma": 0.4}
```
"""

from simulation.simulator import DataSimulator, SimulatedDataset
from simulation.cache import save_dataset, load_dataset, load_or_simulate

__all__ = [
    "DataSimulator",
    "SimulatedDataset",
    "save_dataset",
    "load_dataset",
    "load_or_simulate",
]
