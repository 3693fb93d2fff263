"""
stratum: dependency-aware declarative resource reconciler.

Resources are declared in a document together with the references between
them. stratum builds a dependency graph, diffs it against recorded state,
produces a reviewable plan and applies it through per-type providers,
recording state after every confirmed provider operation.

Example:
    from stratum import Document, LocalStateStore, Orchestrator, default_registry

    orchestrator = Orchestrator(
        state=LocalStateStore("stratum.state.json"),
        registry=default_registry(region="us-east-1"),
    )
    with orchestrator.session():
        plan = orchestrator.plan(Document.from_file("stack.yaml"))
        result = orchestrator.apply(plan)
    print(result.summary())
"""

from .document import Document
from .exceptions import (
    ApplyError,
    CyclicDependencyError,
    DocumentError,
    GraphError,
    ImmutableIdentifierError,
    InvalidTransitionError,
    LockContentionError,
    MalformedDocumentError,
    PermanentProviderError,
    ProviderError,
    ReferenceFaultError,
    ResourceNotFoundError,
    StalePlanError,
    StateCorruptionError,
    StateError,
    StratumError,
    TransientProviderError,
    UnknownResourceTypeError,
    UnresolvedReferenceError,
    ValidationError,
)
from .executor import ExecutionResult, ProviderExecutor
from .graph import ResourceGraph, build_graph
from .models import EngineOptions, Reference, ResourceNode, RetryPolicy, StateRecord
from .orchestrator import (
    ApplyResult,
    ApplyStatus,
    NodeOutcome,
    Orchestrator,
    OrchestratorState,
    OutcomeStatus,
)
from .plan import ChangeAction, Plan, PlanMetadata, PlannedChange
from .providers import DiffPolicy, Provider, ProviderRegistry, default_registry
from .resolver import apply_order, destroy_order
from .state import DynamoDBStateStore, LocalStateStore, MemoryStateStore, StateStore

__version__ = "0.1.0"

__all__ = [
    "__version__",
    # Core
    "Document",
    "Orchestrator",
    "OrchestratorState",
    "Plan",
    "PlanMetadata",
    "PlannedChange",
    "ChangeAction",
    "ApplyResult",
    "ApplyStatus",
    "NodeOutcome",
    "OutcomeStatus",
    "EngineOptions",
    "RetryPolicy",
    # Graph
    "ResourceGraph",
    "ResourceNode",
    "Reference",
    "build_graph",
    "apply_order",
    "destroy_order",
    # State
    "StateRecord",
    "StateStore",
    "MemoryStateStore",
    "LocalStateStore",
    "DynamoDBStateStore",
    # Providers
    "Provider",
    "DiffPolicy",
    "ProviderRegistry",
    "ProviderExecutor",
    "ExecutionResult",
    "default_registry",
    # Exceptions
    "StratumError",
    "DocumentError",
    "GraphError",
    "StateError",
    "ProviderError",
    "ApplyError",
    "ValidationError",
    "MalformedDocumentError",
    "UnresolvedReferenceError",
    "ReferenceFaultError",
    "UnknownResourceTypeError",
    "CyclicDependencyError",
    "LockContentionError",
    "StateCorruptionError",
    "ImmutableIdentifierError",
    "StalePlanError",
    "TransientProviderError",
    "PermanentProviderError",
    "ResourceNotFoundError",
    "InvalidTransitionError",
]
