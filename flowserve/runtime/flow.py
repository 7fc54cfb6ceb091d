"""
flow.py - The pluggable computation served by a flow endpoint.

A Flow declares the pydantic model its input must satisfy and an async
``process`` that does the work, publishing events and storing assets through
the FlowRun it is handed. The server knows nothing else about it.

Two ways to define a flow:

    # From a coroutine function
    async def generate(input: StoryInput, run: FlowRun) -> None:
        run.publish_event(StoryEvent(type="started"))

    story_flow = Flow(input_model=StoryInput, event_model=StoryEvent, process=generate)

    # By subclassing
    class StoryFlow(Flow[StoryInput, StoryEvent]):
        input_model = StoryInput
        event_model = StoryEvent

        async def process(self, input: StoryInput, run: FlowRun) -> None:
            ...
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Awaitable, Callable, Generic, Optional, Type, TypeVar

from pydantic import BaseModel

if TYPE_CHECKING:
    from .flow_run import FlowRun

InputT = TypeVar("InputT", bound=BaseModel)
EventT = TypeVar("EventT")

ProcessFn = Callable[[Any, "FlowRun"], Awaitable[None]]


class Flow(Generic[InputT, EventT]):
    """Schema-typed asynchronous computation.

    Attributes:
        input_model: Pydantic model the request body must validate against.
        event_model: Optional model of the events the flow publishes. Used for
            documentation and typing only; events are not re-validated.
        name: Human readable name, used in logs.
    """

    input_model: Type[InputT]
    event_model: Optional[Type[Any]] = None
    name: str = "flow"

    def __init__(
        self,
        input_model: Optional[Type[InputT]] = None,
        process: Optional[ProcessFn] = None,
        event_model: Optional[Type[Any]] = None,
        name: Optional[str] = None,
    ):
        if input_model is not None:
            self.input_model = input_model
        if event_model is not None:
            self.event_model = event_model
        if name is not None:
            self.name = name
        elif process is not None:
            self.name = getattr(process, "__name__", self.name)
        self._process_fn = process

        if getattr(self, "input_model", None) is None:
            raise TypeError(f"{type(self).__name__} requires an input_model")

    def parse_input(self, raw: Any) -> InputT:
        """Validate raw JSON input.

        Raises:
            pydantic.ValidationError: If the input does not match input_model.
        """
        return self.input_model.model_validate(raw)

    async def process(self, input: InputT, run: "FlowRun") -> None:
        """Run the flow for one validated input.

        Subclasses override this; function-backed flows delegate to the
        ``process`` callable given at construction.
        """
        if self._process_fn is None:
            raise NotImplementedError(f"{type(self).__name__} does not implement process()")
        await self._process_fn(input, run)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, input_model={self.input_model.__name__})"
