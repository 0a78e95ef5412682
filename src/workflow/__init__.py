"""
Workflow module: configuration, logging and the end-to-end pipeline.

**Usage:**
```python
from simulation import DataSimulator
from inference import ModelBuilder, LinearPredictor
from workflow import BayesianWorkflow, WorkflowConfig, SamplerConfig, setup_logging

setup_logging("INFO")
dataset = DataSimulator(n_obs=100, random_seed=1).gaussian_linear(1.0, 0.5, 1.0)
config = WorkflowConfig(sampler=SamplerConfig(chains=4, iter=2000, warmup=1000))

result = BayesianWorkflow(
    "linear", ModelBuilder("gaussian", {"mu": LinearPredictor(["x"])}), config
).run(dataset)
result.recovery
result.classical
```
"""

from workflow.config import SamplerConfig, WorkflowConfig
from workflow.logging_config import setup_logging
from workflow.pipeline import BayesianWorkflow, WorkflowResult, compare_workflows

__all__ = [
    "SamplerConfig",
    "WorkflowConfig",
    "setup_logging",
    "BayesianWorkflow",
    "WorkflowResult",
    "compare_workflows",
]
