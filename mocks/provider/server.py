"""
Mock OpenAI-compatible summarization provider for local resilience drills.

Point a provider's ``base_url`` at this server and flip its behaviour through
``POST /_control`` to rehearse outages, quota exhaustion and slow upstreams
against a running gateway.
"""

import asyncio
from enum import Enum
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Header
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from shared.logging import get_logger


class MockMode(str, Enum):
    """Behaviour of the chat-completions endpoint."""
    OK = "ok"
    ERROR = "error"
    QUOTA = "quota"
    SLOW = "slow"
    REJECT = "reject"


class ControlRequest(BaseModel):
    mode: MockMode
    delay_seconds: float = 30.0
    retry_after: int = 3600


class ChatMessage(BaseModel):
    role: str
    content: str


class ChatCompletionRequest(BaseModel):
    model: str
    messages: List[ChatMessage]
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None


class MockProviderServer:
    """Mock chat-completions provider implementation."""

    def __init__(self, name: str = "mock-provider"):
        self.name = name
        self.logger = get_logger("mock.provider")
        self.app = FastAPI(title="Mock Summarization Provider", version="1.0.0")

        self.mode = MockMode.OK
        self.delay_seconds = 30.0
        self.retry_after = 3600
        self.calls = 0

        self._setup_routes()

    def _summarize(self, messages: List[ChatMessage]) -> str:
        user_text = next((m.content for m in messages if m.role == "user"), "")
        lines = [line.strip() for line in user_text.splitlines() if line.strip() and not line.endswith(":")]
        lead = lines[0] if lines else "No headlines supplied"
        return f"{self.name} summary: {lead}"

    def _setup_routes(self):
        """Set up mock provider routes."""

        @self.app.get("/")
        async def root():
            return {
                "service": self.name,
                "mode": self.mode.value,
                "calls": self.calls,
            }

        @self.app.post("/_control")
        async def control(body: ControlRequest):
            self.mode = body.mode
            self.delay_seconds = body.delay_seconds
            self.retry_after = body.retry_after
            self.logger.info("Mock provider mode changed", mode=self.mode.value)
            return {"mode": self.mode.value}

        @self.app.post("/chat/completions")
        async def chat_completions(body: ChatCompletionRequest, authorization: Optional[str] = Header(None)):
            self.calls += 1

            if not authorization:
                return JSONResponse(status_code=401, content={"error": {"message": "Missing API key"}})

            if self.mode == MockMode.ERROR:
                return JSONResponse(status_code=503, content={"error": {"message": "Service unavailable"}})

            if self.mode == MockMode.QUOTA:
                return JSONResponse(
                    status_code=429,
                    content={"error": {"message": "Daily quota exceeded"}},
                    headers={"Retry-After": str(self.retry_after)},
                )

            if self.mode == MockMode.REJECT:
                return JSONResponse(status_code=400, content={"error": {"message": "Invalid input"}})

            if self.mode == MockMode.SLOW:
                await asyncio.sleep(self.delay_seconds)

            response: Dict[str, Any] = {
                "id": f"mock-{self.calls}",
                "object": "chat.completion",
                "model": body.model,
                "choices": [
                    {
                        "index": 0,
                        "message": {"role": "assistant", "content": self._summarize(body.messages)},
                        "finish_reason": "stop",
                    }
                ],
            }
            return response


def create_app():
    """Create mock provider application."""
    server = MockProviderServer()
    return server.app


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(create_app(), host="0.0.0.0", port=8090)
