"""
Service layer - LangGraph orchestration of one assistant turn.

Graph structure: agent → (no tool calls → END) | (tools → respond → END)

- agent:   first model call, with the operation catalog bound
- tools:   runs each requested operation sequentially via the ToolAdapter
- respond: follow-up model call carrying the operation results

The whole graph is retried once on the fallback model when a call is
rejected for quota / rate-limit reasons.
"""
from dataclasses import dataclass
from typing import List, Dict, Any, Optional, Sequence, Tuple
from typing_extensions import TypedDict
import asyncio
import json
import logging
import re

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import BaseMessage, HumanMessage, AIMessage, SystemMessage, ToolMessage
from langgraph.graph import StateGraph, END

from config import ModelConfig
from domain.exceptions import (
    ModelCallError, ModelServiceError, ModelUnavailableError, QuotaExhaustedError
)
from domain.models import ChatMessage, ChatResponse, OperationResult
from infrastructure.llm import ChatModelFactory
from services.tools import ToolAdapter, OPERATION_DECLARATIONS

logger = logging.getLogger(__name__)

QUOTA_PATTERN = re.compile(r"Too Many Requests|quota", re.IGNORECASE)
UNAVAILABLE_PATTERN = re.compile(r"not found|was not found|does not have access", re.IGNORECASE)

QUOTA = "quota"
UNAVAILABLE = "unavailable"
OTHER = "other"


@dataclass(frozen=True)
class AssistantSettings:
    """Static assistant configuration, built once at startup."""
    primary_model: str
    fallback_model: str
    system_instruction: str
    declarations: Tuple[Dict[str, Any], ...] = OPERATION_DECLARATIONS
    history_window: int = 10
    timeout_seconds: float = 30.0

    @classmethod
    def from_model_config(cls, config: ModelConfig) -> "AssistantSettings":
        return cls(
            primary_model=config.primary_model,
            fallback_model=config.fallback_model,
            system_instruction=config.system_instruction,
            history_window=config.history_window,
            timeout_seconds=config.timeout_seconds,
        )


class AssistantState(TypedDict, total=False):
    """State object for one pass through the graph."""
    messages: List[BaseMessage]
    user_id: str
    model_id: str
    first_turn: AIMessage
    tool_results: List[OperationResult]
    reply: str


def to_model_messages(messages: Sequence[ChatMessage]) -> List[BaseMessage]:
    """Map transcript roles onto the model's two roles: user, everything else → model."""
    converted: List[BaseMessage] = []
    for message in messages:
        role = (message.role or "user").lower()
        if role == "user":
            converted.append(HumanMessage(content=message.content or ""))
        else:
            converted.append(AIMessage(content=message.content or ""))
    return converted


def message_text(message: BaseMessage) -> str:
    """Plain text of a model reply; Gemini may return a list of content parts."""
    content = message.content
    if isinstance(content, str):
        return content
    parts = []
    for part in content or []:
        if isinstance(part, str):
            parts.append(part)
        elif isinstance(part, dict) and part.get("type") == "text":
            parts.append(part.get("text", ""))
    return "".join(parts)


def _status_of(error: BaseException) -> int:
    """Best-effort HTTP status of a provider exception or anything it wraps."""
    seen = error
    while seen is not None:
        for attr in ("status_code", "code", "status"):
            value = getattr(seen, attr, None)
            if isinstance(value, int) and not isinstance(value, bool):
                return int(value)
        response = getattr(seen, "response", None)
        status = getattr(response, "status_code", None)
        if isinstance(status, int):
            return status
        seen = seen.__cause__
    return 500


def classify_model_error(error: ModelCallError) -> str:
    """Return QUOTA (retry on fallback), UNAVAILABLE (reconfigure) or OTHER."""
    text = str(error)
    if error.status == 429 or QUOTA_PATTERN.search(text):
        return QUOTA
    if error.status in (403, 404) or UNAVAILABLE_PATTERN.search(text):
        return UNAVAILABLE
    return OTHER


class WeatherAssistant:
    """
    Orchestrator for a single chat turn: one model call, at most one
    round of tool execution, one follow-up model call.
    """

    def __init__(
        self,
        settings: AssistantSettings,
        tools: ToolAdapter,
        model_factory: ChatModelFactory
    ):
        self.settings = settings
        self.tools = tools
        self.model_factory = model_factory
        self._models: Dict[str, BaseChatModel] = {}
        self.workflow = self._build_graph()

    def _build_graph(self):
        workflow = StateGraph(AssistantState)

        workflow.add_node("agent", self._agent_node)
        workflow.add_node("tools", self._tools_node)
        workflow.add_node("respond", self._respond_node)

        workflow.set_entry_point("agent")
        workflow.add_conditional_edges(
            "agent",
            self._should_use_tools,
            {
                "tools": "tools",  # Model requested operations
                "done": END        # Direct answer
            }
        )
        workflow.add_edge("tools", "respond")
        workflow.add_edge("respond", END)

        return workflow.compile()

    def _get_model(self, model_id: str) -> BaseChatModel:
        if model_id not in self._models:
            try:
                self._models[model_id] = self.model_factory(model_id)
            except Exception as e:
                raise ModelCallError(model_id, 500, str(e), phase="Model init") from e
        return self._models[model_id]

    def _tool_model(self, model_id: str):
        return self._get_model(model_id).bind_tools(list(self.settings.declarations))

    async def _call_model(self, model, messages: List[BaseMessage], model_id: str, phase: str) -> AIMessage:
        logger.info(f"{phase} on {model_id} with {len(messages)} messages")
        try:
            return await asyncio.wait_for(model.ainvoke(messages), timeout=self.settings.timeout_seconds)
        except asyncio.TimeoutError as e:
            raise ModelCallError(
                model_id, 504, f"timed out after {self.settings.timeout_seconds}s", phase=phase
            ) from e
        except Exception as e:
            raise ModelCallError(model_id, _status_of(e), str(e) or type(e).__name__, phase=phase) from e

    async def _agent_node(self, state: AssistantState) -> Dict[str, Any]:
        """First model call with the operation catalog."""
        model_id = state["model_id"]
        response = await self._call_model(
            self._tool_model(model_id), state["messages"], model_id, phase="Model call"
        )
        update: Dict[str, Any] = {"first_turn": response, "tool_results": []}
        if not response.tool_calls:
            update["reply"] = message_text(response) or "OK"
        return update

    def _should_use_tools(self, state: AssistantState) -> str:
        first_turn = state.get("first_turn")
        if first_turn is not None and first_turn.tool_calls:
            return "tools"
        return "done"

    async def _tools_node(self, state: AssistantState) -> Dict[str, Any]:
        """Execute requested operations one after another, in request order."""
        calls = state["first_turn"].tool_calls
        logger.info(f"Model requested {len(calls)} tool calls: {[c['name'] for c in calls]}")

        results: List[OperationResult] = []
        for call in calls:
            result = await self.tools.dispatch(call["name"], call.get("args"), state["user_id"])
            results.append(result)
        return {"tool_results": results}

    async def _respond_node(self, state: AssistantState) -> Dict[str, Any]:
        """Follow-up model call: history + model's tool-call turn + results."""
        model_id = state["model_id"]
        first_turn = state["first_turn"]

        tool_messages = []
        for index, (call, result) in enumerate(zip(first_turn.tool_calls, state["tool_results"])):
            tool_messages.append(ToolMessage(
                content=json.dumps(result.to_payload(), default=str, ensure_ascii=False),
                tool_call_id=call.get("id") or f"{call['name']}-{index}",
                name=call["name"],
            ))

        follow_up = list(state["messages"]) + [first_turn] + tool_messages
        response = await self._call_model(
            self._tool_model(model_id), follow_up, model_id, phase="Follow-up model call"
        )
        return {"reply": message_text(response) or "OK"}

    def build_history(self, messages: Sequence[ChatMessage]) -> List[BaseMessage]:
        """System instruction + the most recent messages, roles flattened."""
        window = list(messages)[-self.settings.history_window:]
        return [SystemMessage(content=self.settings.system_instruction)] + to_model_messages(window)

    async def _run_with_model(self, model_id: str, history: List[BaseMessage], user_id: str) -> ChatResponse:
        initial_state: AssistantState = {
            "messages": history,
            "user_id": user_id,
            "model_id": model_id,
        }
        result = await self.workflow.ainvoke(initial_state)
        return ChatResponse.from_results(result.get("reply") or "OK", result.get("tool_results", []))

    async def run(self, messages: Sequence[ChatMessage], user_id: str) -> ChatResponse:
        """
        Run one turn on the primary model, retrying once on the fallback
        model when the failure is quota related.

        Raises:
            QuotaExhaustedError: primary rate-limited and fallback failed
            ModelUnavailableError: model id unknown or not accessible
            ModelServiceError: any other model failure
        """
        history = self.build_history(messages)

        try:
            return await self._run_with_model(self.settings.primary_model, history, user_id)
        except ModelCallError as e:
            kind = classify_model_error(e)
            if kind == QUOTA:
                logger.warning(f"Quota hit on {e.model_id}, retrying with {self.settings.fallback_model}")
                try:
                    return await self._run_with_model(self.settings.fallback_model, history, user_id)
                except ModelCallError as e2:
                    logger.error(f"Fallback model failed: {e2}")
                    raise QuotaExhaustedError(detail=str(e2)) from e2
            if kind == UNAVAILABLE:
                logger.error(f"Model unavailable: {e}")
                raise ModelUnavailableError(detail=str(e)) from e
            logger.error(f"Model call failed: {e}")
            raise ModelServiceError(detail=str(e)) from e

    async def ping(self) -> str:
        """Ask the primary model for a trivial reply (diagnostics)."""
        model_id = self.settings.primary_model
        response = await self._call_model(
            self._get_model(model_id), [HumanMessage(content="Say OK")], model_id, phase="Diagnostic call"
        )
        return message_text(response)
