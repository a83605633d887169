import asyncio

from pydantic import BaseModel

from catalog_chatbot.agent.registry import ToolRegistry, ToolSpec


class EchoInput(BaseModel):
    text: str


async def _handler(data: EchoInput) -> str:
    return data.text.upper()


def _registry() -> ToolRegistry:
    registry = ToolRegistry()
    registry.register(
        ToolSpec(
            name="echo",
            description="uppercase",
            args_schema=EchoInput,
            handler=_handler,
        )
    )
    return registry


def test_tool_observer_captures_latency_and_payload() -> None:
    registry = _registry()

    observed = []
    result = asyncio.run(registry.execute("echo", {"text": "hello"}, observer=observed.append))

    assert result == "HELLO"
    assert len(observed) == 1
    assert observed[0].name == "echo"
    assert observed[0].input_payload == {"text": "hello"}
    assert observed[0].output_preview == "HELLO"
    assert observed[0].latency_ms >= 0.0


def test_observer_is_scoped_to_one_call() -> None:
    registry = _registry()
    first, second = [], []

    asyncio.run(registry.execute("echo", {"text": "a"}, observer=first.append))
    asyncio.run(registry.execute("echo", {"text": "b"}, observer=second.append))
    asyncio.run(registry.execute("echo", {"text": "c"}))

    assert [trace.output_preview for trace in first] == ["A"]
    assert [trace.output_preview for trace in second] == ["B"]
