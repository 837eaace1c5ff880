"""`drawsum` - memory-bounded summaries of posterior-predictive draws.

Subpackages:
- engine: Row indexing, draw emission, columnar store, aggregation, joining
- pipeline: Orchestrator and chunk tracking
- schemas: Pydantic configuration layers
- contracts: Error taxonomy and stage contracts
"""

__version__ = "0.1.0"
