"""Handler protocol and registry for pipeline steps."""

from __future__ import annotations

from typing import Dict, Iterable, List, Mapping, Optional, Protocol, Sequence, runtime_checkable

from bones.core.errors import UnknownHandler
from bones.domain.models import Step

REPO_REFERENCE_KEY = "REPO_REFERENCE"

# Error detail carrying an artifact a handler produced before it failed.
PARTIAL_ARTIFACT_DETAIL = "artifact"


@runtime_checkable
class Handler(Protocol):
    """Capability that performs one step's work against one external system."""

    @property
    def name(self) -> str:
        """Handler key referenced by manifest steps (e.g. 'source-repo')."""
        ...

    @property
    def artifact_key(self) -> Optional[str]:
        """Context key that receives the artifact returned by create, if any."""
        ...

    async def create(
        self,
        project_name: str,
        repo_reference: Optional[str],
        template_source: str,
        template_path: str,
        data: Mapping[str, str],
        *,
        step: Optional[Step] = None,
    ) -> Optional[str]:
        """Provision this capability; returns the produced artifact, if any."""
        ...

    async def destroy(
        self,
        project_name: str,
        repo_reference: Optional[str],
        *,
        step: Optional[Step] = None,
    ) -> None:
        """Tear down what create provisioned."""
        ...


class HandlerRegistry:
    """In-memory dispatch table from handler key to handler.

    Performs no retries; each handler owns its retry policy.
    """

    def __init__(self) -> None:
        self._handlers: Dict[str, Handler] = {}

    def register(self, handler: Handler, *, aliases: Iterable[str] = ()) -> None:
        """Register a handler under its name and any aliases."""
        for key in (handler.name, *aliases):
            if not key:
                raise ValueError("Handler key is required")
            self._handlers[key] = handler

    def get(self, key: str) -> Handler:
        """Get a handler by key, raising UnknownHandler when absent."""
        handler = self._handlers.get(key)
        if handler is None:
            raise UnknownHandler(key, self.list())
        return handler

    def resolve(self, steps: Sequence[Step]) -> List[Handler]:
        """Resolve every step's handler up front, in step order."""
        return [self.get(step.handler) for step in steps]

    def list(self) -> List[str]:
        """List all registered handler keys."""
        return list(self._handlers.keys())

    def __contains__(self, key: object) -> bool:
        return key in self._handlers
