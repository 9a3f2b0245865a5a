# Overview: AI assistant gateway; wraps an opaque text-completion backend with the business snapshot.

from __future__ import annotations

from typing import Callable, Optional

import httpx
from flask import current_app

from ..currency import format_currency, format_percentage
from ..validation import ValidationError
from .context_service import BusinessSnapshot, get_snapshot

MAX_MESSAGE_LENGTH = 4000

# Any callable taking the full prompt and returning the reply text
CompletionClient = Callable[[str], str]


class AssistantUnavailableError(RuntimeError):
    """The completion backend is not configured, unreachable, or returned garbage."""


class HttpCompletionClient:
    """
    POSTs {"prompt": ...} as JSON and reads "text" from the JSON reply.

    The transport argument exists so tests can plug in httpx.MockTransport.
    """

    def __init__(
        self,
        url: str,
        *,
        api_key: str = "",
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.url = url
        self.api_key = api_key
        self.timeout = timeout
        self.transport = transport

    def __call__(self, prompt: str) -> str:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                response = client.post(self.url, json={"prompt": prompt}, headers=headers)
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise AssistantUnavailableError(f"completion request failed: {exc}") from exc

        text = data.get("text") if isinstance(data, dict) else None
        if not isinstance(text, str) or not text.strip():
            raise AssistantUnavailableError("completion response had no text")
        return text.strip()


def client_from_config() -> HttpCompletionClient:
    cfg = current_app.config
    url = cfg.get("AI_COMPLETION_URL") or ""
    if not url:
        raise AssistantUnavailableError("assistant is not configured")
    return HttpCompletionClient(
        url,
        api_key=cfg.get("AI_COMPLETION_API_KEY") or "",
        timeout=float(cfg.get("AI_COMPLETION_TIMEOUT", 30)),
    )


def build_prompt(snapshot: BusinessSnapshot, message: str) -> str:
    lines = [
        "You are a business assistant for a small business. Use the context below.",
        "",
        "Business context:",
        f"- Business: {snapshot.business_name}",
        f"- Currency: {snapshot.currency_code}",
        f"- Labor rate: {format_currency(snapshot.hourly_rate, snapshot.currency_code)} per hour",
        f"- Products: {snapshot.total_products}",
        f"- Inventory items: {snapshot.total_inventory_items}",
        f"- Low stock items: {snapshot.low_stock_items}",
        f"- Average profit margin: {format_percentage(snapshot.avg_margin_percent)}",
        "",
        "Question:",
        message,
    ]
    return "\n".join(lines)


def ask_assistant(
    *,
    business_id: int,
    message: str,
    client: Optional[CompletionClient] = None,
) -> tuple[str, BusinessSnapshot]:
    """Send the user's message plus the current snapshot; returns (reply, snapshot)."""
    message = (message or "").strip()
    if not message:
        raise ValidationError("message is required")
    if len(message) > MAX_MESSAGE_LENGTH:
        raise ValidationError(f"message exceeds max length {MAX_MESSAGE_LENGTH}")

    snapshot = get_snapshot(business_id)
    if client is None:
        client = client_from_config()

    prompt = build_prompt(snapshot, message)
    try:
        reply = client(prompt)
    except AssistantUnavailableError:
        raise
    except Exception as exc:
        # Third-party clients raise whatever they like
        raise AssistantUnavailableError(f"completion client failed: {exc}") from exc

    if not isinstance(reply, str) or not reply.strip():
        raise AssistantUnavailableError("completion client returned no text")
    return reply.strip(), snapshot
