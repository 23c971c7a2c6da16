"""Contract for the node persistence backend."""
from abc import ABC, abstractmethod

from flowbuilder.models.graph import BuilderContext, NodeRecord


class NodeStore(ABC):
    """Abstract base class for node persistence backends.

    Every method raises PersistenceError when the backend call fails.
    """

    @abstractmethod
    async def create_node(self, record: NodeRecord) -> int:
        """Durably create a node and return its backend id."""
        pass

    @abstractmethod
    async def delete_node(self, backend_id: int, context: BuilderContext) -> None:
        """Delete a node by backend id."""
        pass

    @abstractmethod
    async def list_nodes(self, context: BuilderContext) -> list[NodeRecord]:
        """List every node of the context's workflow."""
        pass

    @abstractmethod
    async def update_node(
        self,
        backend_id: int,
        fields: dict,
        context: BuilderContext,
    ) -> None:
        """Update record fields of a node in place."""
        pass

    @abstractmethod
    async def save_output(self, context: BuilderContext, output: str) -> None:
        """Store the latest run output on the workflow record."""
        pass

    @abstractmethod
    async def set_published(self, context: BuilderContext, published: bool) -> None:
        """Publish or unpublish the workflow."""
        pass
