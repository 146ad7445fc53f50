# tests/test_interaction_loop.py

from unittest.mock import AsyncMock, MagicMock

import pytest
from mcp.types import CallToolResult, TextContent

from kai.errors import InferenceError, MalformedResponseError, ToolCallError
from kai.interaction_loop import CONFIRM_PROMPT, InteractionLoop, LocalResponder
from kai.response_classifier import ResponseKind, StructuredResponse
from kai.session_state import SessionState
from kai.tool_client import decode_tool_result


@pytest.fixture
def mock_ui():
    """Provides a mock UIManager."""
    ui = MagicMock()
    ui.append_output = MagicMock()
    ui.prompt_input = AsyncMock()
    return ui

@pytest.fixture
def mock_responder():
    responder = MagicMock()
    responder.ask = AsyncMock(return_value=StructuredResponse(type=ResponseKind.EXPLANATION, content="ok"))
    return responder

@pytest.fixture
def mock_executor():
    return AsyncMock(return_value=(True, "pod/web-1 deleted\n", ""))


def _outputs(ui):
    return [call.args[0] for call in ui.append_output.call_args_list]


# --- Input handling ---

@pytest.mark.asyncio
async def test_blank_line_is_skipped(mock_ui, mock_responder):
    loop = InteractionLoop(mock_ui, mock_responder)
    assert await loop.handle_line("   ") is True
    mock_responder.ask.assert_not_called()

@pytest.mark.asyncio
@pytest.mark.parametrize("line", ["quit", "EXIT", "  Quit  "])
async def test_exit_keywords_close_the_loop(mock_ui, mock_responder, line):
    loop = InteractionLoop(mock_ui, mock_responder)
    assert await loop.handle_line(line) is False
    mock_responder.ask.assert_not_called()

@pytest.mark.asyncio
async def test_exit_keyword_must_match_exactly(mock_ui, mock_responder):
    loop = InteractionLoop(mock_ui, mock_responder)
    assert await loop.handle_line("quit now") is True
    mock_responder.ask.assert_awaited_once()

@pytest.mark.asyncio
async def test_namespace_directive_skips_model_and_feeds_next_prompt(mock_ui, mock_responder):
    loop = InteractionLoop(mock_ui, mock_responder)

    assert await loop.handle_line(":namespace staging") is True
    mock_responder.ask.assert_not_called()
    assert loop.session_state.namespace == "staging"
    assert "Namespace set to 'staging'" in _outputs(mock_ui)

    await loop.handle_line("list pods")
    sent_prompt = mock_responder.ask.call_args.args[0]
    assert "(namespace: staging)" in sent_prompt
    assert sent_prompt.endswith("User Input: list pods (namespace: staging)")

@pytest.mark.asyncio
async def test_empty_namespace_directive_keeps_namespace(mock_ui, mock_responder):
    loop = InteractionLoop(mock_ui, mock_responder, session_state=SessionState(namespace="prod"))
    await loop.handle_line(":namespace")
    assert loop.session_state.namespace == "prod"
    mock_responder.ask.assert_not_called()

def test_prompt_text_shows_namespace(mock_ui, mock_responder):
    loop = InteractionLoop(mock_ui, mock_responder)
    assert loop.prompt_text() == "> "
    loop.session_state.namespace = "dev"
    assert loop.prompt_text() == "[dev] > "

# --- Turns ---

@pytest.mark.asyncio
async def test_command_updates_session_namespace(mock_ui, mock_responder):
    mock_responder.ask.return_value = StructuredResponse(
        type=ResponseKind.COMMAND,
        command="kubectl scale deployment/frontend --replicas=3 --namespace prod",
    )
    loop = InteractionLoop(mock_ui, mock_responder)

    response = await loop.process_turn("scale frontend to 3")

    assert response.command == "kubectl scale deployment/frontend --replicas=3 --namespace prod"
    assert loop.session_state.namespace == "prod"
    outputs = _outputs(mock_ui)
    assert "[Context] Namespace updated to: prod" in outputs
    assert outputs[-2:] == ["Command:", "kubectl scale deployment/frontend --replicas=3 --namespace prod"]

@pytest.mark.asyncio
async def test_explanation_does_not_touch_namespace(mock_ui, mock_responder):
    mock_responder.ask.return_value = StructuredResponse(type=ResponseKind.EXPLANATION, content="use --namespace prod")
    loop = InteractionLoop(mock_ui, mock_responder, session_state=SessionState(namespace="dev"))

    await loop.process_turn("how do namespaces work")

    assert loop.session_state.namespace == "dev"
    assert _outputs(mock_ui) == ["Explanation:", "use --namespace prod"]

@pytest.mark.asyncio
async def test_full_renders_both_parts(mock_ui, mock_responder):
    mock_responder.ask.return_value = StructuredResponse(type=ResponseKind.FULL, command="kubectl get pods", content="Lists all pods.")
    loop = InteractionLoop(mock_ui, mock_responder)

    await loop.process_turn("list pods")

    assert _outputs(mock_ui) == ["Command:", "kubectl get pods", "Explanation:", "Lists all pods."]

@pytest.mark.asyncio
async def test_full_without_command_renders_only_explanation(mock_ui, mock_responder):
    mock_responder.ask.return_value = StructuredResponse(type=ResponseKind.FULL, content="free text answer")
    loop = InteractionLoop(mock_ui, mock_responder)

    await loop.process_turn("hello")

    assert _outputs(mock_ui) == ["Explanation:", "free text answer"]

@pytest.mark.asyncio
async def test_unknown_response_type_from_server_is_reported(mock_ui, mock_responder):
    payload = '{"type": "SUMMARY", "command": "", "content": "hi"}'
    result = CallToolResult(content=[TextContent(type="text", text=payload)])
    mock_responder.ask = AsyncMock(side_effect=lambda prompt: decode_tool_result(result))
    loop = InteractionLoop(mock_ui, mock_responder)

    response = await loop.process_turn("summarize the cluster")

    assert response.type == "SUMMARY"
    mock_ui.append_output.assert_called_once_with("Unexpected response type: SUMMARY", style_class='warning')

@pytest.mark.asyncio
@pytest.mark.parametrize("error", [InferenceError("connection refused"), ToolCallError("ollama request failed")])
async def test_inference_error_aborts_turn(mock_ui, mock_responder, error):
    mock_responder.ask.side_effect = error
    loop = InteractionLoop(mock_ui, mock_responder, session_state=SessionState(namespace="dev"))

    assert await loop.process_turn("list pods") is None
    assert loop.session_state.namespace == "dev"
    mock_ui.append_output.assert_called_once_with(f"AI error: {error}", style_class='error')

@pytest.mark.asyncio
async def test_malformed_response_shows_raw_payload(mock_ui, mock_responder):
    mock_responder.ask.side_effect = MalformedResponseError("bad json", raw="not-json")
    loop = InteractionLoop(mock_ui, mock_responder)

    assert await loop.process_turn("list pods") is None
    assert _outputs(mock_ui) == ["Error parsing response: bad json", "Raw response: not-json"]

# --- Execution confirmation ---

@pytest.mark.asyncio
async def test_confirmed_command_is_executed(mock_ui, mock_responder, mock_executor):
    mock_responder.ask.return_value = StructuredResponse(type=ResponseKind.COMMAND, command="kubectl delete pod web-1 -n qa")
    mock_ui.prompt_input.return_value = " Y "
    loop = InteractionLoop(mock_ui, mock_responder, executor=mock_executor, execution_timeout=7)

    await loop.process_turn("delete web-1")

    mock_ui.prompt_input.assert_awaited_once_with(CONFIRM_PROMPT, style_class='confirm-prompt')
    mock_executor.assert_awaited_once_with("kubectl delete pod web-1 -n qa", timeout=7)
    assert "pod/web-1 deleted" in _outputs(mock_ui)
    assert loop.session_state.namespace == "qa"

@pytest.mark.asyncio
@pytest.mark.parametrize("answer", ["", "n", "yes", "no"])
async def test_anything_but_y_skips_execution(mock_ui, mock_responder, mock_executor, answer):
    mock_responder.ask.return_value = StructuredResponse(type=ResponseKind.COMMAND, command="kubectl get pods")
    mock_ui.prompt_input.return_value = answer
    loop = InteractionLoop(mock_ui, mock_responder, executor=mock_executor)

    await loop.process_turn("list pods")

    mock_executor.assert_not_called()

@pytest.mark.asyncio
async def test_execution_failure_is_reported_not_fatal(mock_ui, mock_responder, mock_executor):
    mock_responder.ask.return_value = StructuredResponse(type=ResponseKind.COMMAND, command="kubectl get pods --namespace nope")
    mock_ui.prompt_input.return_value = "y"
    mock_executor.return_value = (False, "Error from server (NotFound)\n", "exit status 1")
    loop = InteractionLoop(mock_ui, mock_responder, executor=mock_executor)

    await loop.process_turn("list pods")

    outputs = _outputs(mock_ui)
    assert "Error from server (NotFound)" in outputs
    assert "Command error: exit status 1" in outputs

@pytest.mark.asyncio
async def test_no_confirmation_without_executor_or_command(mock_ui, mock_responder, mock_executor):
    loop = InteractionLoop(mock_ui, mock_responder, executor=mock_executor)
    await loop.process_turn("explain pods")
    mock_ui.prompt_input.assert_not_called()

    mock_responder.ask.return_value = StructuredResponse(type=ResponseKind.COMMAND, command="kubectl get pods")
    await InteractionLoop(mock_ui, mock_responder).process_turn("list pods")
    mock_ui.prompt_input.assert_not_called()

# --- run() ---

@pytest.mark.asyncio
async def test_run_stops_on_exit_keyword(mock_ui, mock_responder):
    mock_ui.prompt_input.side_effect = ["", ":namespace dev", "list pods", "exit", "never read"]
    loop = InteractionLoop(mock_ui, mock_responder)

    await loop.run()

    assert mock_ui.prompt_input.await_count == 4
    mock_responder.ask.assert_awaited_once()
    assert mock_ui.prompt_input.call_args_list[2].args[0] == "[dev] > "

@pytest.mark.asyncio
async def test_run_stops_on_end_of_input(mock_ui, mock_responder):
    mock_ui.prompt_input.side_effect = ["list pods", EOFError()]
    loop = InteractionLoop(mock_ui, mock_responder)

    await loop.run()

    mock_responder.ask.assert_awaited_once()

# --- LocalResponder ---

@pytest.mark.asyncio
async def test_local_responder_classifies_gateway_output():
    gateway = MagicMock()
    gateway.generate = AsyncMock(return_value="[FULL]## Command:\nkubectl get pods\n## Explanation:\nLists all pods.\n")

    response = await LocalResponder(gateway).ask("prompt")

    gateway.generate.assert_awaited_once_with("prompt")
    assert response.type == ResponseKind.FULL
    assert response.command == "kubectl get pods"
    assert response.content == "Lists all pods."
