"""Echo flow - a small demo flow for trying out the server.

Publishes a ``started`` event, one ``chunk`` event per repetition of the
input text, stores the full echo as an ``echo.txt`` asset, announces the
asset path and finishes with a ``finished`` event.

    curl -X POST localhost:3001/flow -H 'content-type: application/json' \
        -d '{"text": "hello", "repeat": 3}'
"""

from __future__ import annotations

import asyncio
import logging
from typing import Literal, Optional

from pydantic import BaseModel, Field

from ..runtime.flow import Flow
from ..runtime.flow_run import FlowRun

logger = logging.getLogger(__name__)

ECHO_ASSET_NAME = "echo.txt"


class EchoInput(BaseModel):
    """Input of the echo flow."""

    text: str = Field(..., min_length=1, max_length=10_000)
    repeat: int = Field(1, ge=1, le=100)
    delay_seconds: float = Field(0.0, ge=0.0, le=10.0)


class EchoEvent(BaseModel):
    """Events published by the echo flow."""

    type: Literal["started", "chunk", "asset", "finished"]
    index: Optional[int] = None
    text: Optional[str] = None
    path: Optional[str] = None


async def echo(input: EchoInput, run: FlowRun[EchoEvent]) -> None:
    run.publish_event(EchoEvent(type="started"))

    chunks = []
    for index in range(input.repeat):
        if input.delay_seconds:
            await asyncio.sleep(input.delay_seconds)
        chunks.append(input.text)
        run.publish_event(EchoEvent(type="chunk", index=index, text=input.text))

    path = await run.store_asset(
        ECHO_ASSET_NAME,
        "\n".join(chunks).encode("utf-8"),
        "text/plain",
    )
    run.publish_event(EchoEvent(type="asset", path=path))
    logger.info("Echoed %d chunks", input.repeat)

    run.publish_event(EchoEvent(type="finished"))


echo_flow: Flow[EchoInput, EchoEvent] = Flow(
    input_model=EchoInput,
    event_model=EchoEvent,
    process=echo,
    name="echo",
)
