"""
AI Agent runner for Mindloom.

This module handles communication with the configured language model provider
(Ollama, OpenAI-compatible endpoints or Anthropic) and runs the outline agent.
"""

import httpx
import json
import time
from typing import Any, Dict, List, Optional, Sequence, Tuple
import logging

from ..models import ProcessedContent
from ..database import DatabaseManager
from ..config import config
from ..exceptions import AgentError
from .registry import agent_registry, AgentConfig


PROVIDERS = ("ollama", "openai", "claude", "custom")

OPENAI_API_URL = "https://api.openai.com/v1"
ANTHROPIC_API_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_VERSION = "2023-06-01"

# Keys under which models tend to wrap the outline list
_WRAPPER_KEYS = ("nodes", "mindmap", "children")


def strip_code_fences(response: str) -> str:
    """Remove a surrounding Markdown code block (```json ... ```) if present."""
    response = response.strip()
    if response.startswith("```"):
        first_newline = response.find("\n")
        response = response[first_newline + 1:] if first_newline != -1 else response[3:]
    if response.endswith("```"):
        response = response[:-3]
    return response.strip()


def parse_outline_response(response: str) -> List[Any]:
    """
    Decode the model's answer into the raw outline list.

    Args:
        response: Raw response text

    Returns:
        List of raw outline entries (dicts or strings)

    Raises:
        AgentError: If the response holds no JSON outline
    """
    text = strip_code_fences(response)
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        # Models sometimes add prose around the JSON
        starts = [index for index in (text.find("["), text.find("{")) if index != -1]
        if not starts:
            raise AgentError("Model response contains no JSON", details=response[:500])
        start = min(starts)
        end = max(text.rfind("]"), text.rfind("}"))
        try:
            data = json.loads(text[start:end + 1])
        except json.JSONDecodeError as e:
            raise AgentError(f"Failed to parse model response as JSON: {e}",
                             details=response[:500])

    while isinstance(data, dict):
        if "title" in data or "name" in data:
            # A single top-level entry
            return [data]
        wrapped = next((data[key] for key in _WRAPPER_KEYS if isinstance(data.get(key), (list, dict))), None)
        if wrapped is None:
            raise AgentError("Model response holds no outline", details=", ".join(sorted(data)))
        data = wrapped

    if not isinstance(data, list):
        raise AgentError("Model response is not an outline list", details=type(data).__name__)
    return data


class AgentRunner:
    """
    Manages communication with the model provider and runs AI agents.
    """

    def __init__(self, provider: Optional[str] = None, model: Optional[str] = None,
                 host: Optional[str] = None, api_url: Optional[str] = None,
                 api_key: Optional[str] = None, database_manager: Optional[DatabaseManager] = None):
        """
        Initialize the agent runner.

        Args:
            provider: One of ollama, openai, claude, custom (defaults to config value)
            model: The model name to use for inference (defaults to config value)
            host: The Ollama server URL (defaults to config value)
            api_url: Base URL for OpenAI-compatible providers (defaults to config value)
            api_key: API key for hosted providers (defaults to config value)
            database_manager: Optional database manager for call logging
        """
        self.provider = (provider or config.llm_provider).lower()
        if self.provider not in PROVIDERS:
            raise ValueError(f"Unknown LLM provider: {self.provider}")

        self.model = model or config.model_name
        self.host = (host or config.llm_host).rstrip("/")
        self.api_url = (api_url or config.llm_api_url or OPENAI_API_URL).rstrip("/")
        self.api_key = api_key or config.llm_api_key
        self.max_tokens = config.max_tokens
        self.max_content_chars = config.get("content.max_content_chars", 4000)
        self.client = httpx.Client(timeout=config.llm_timeout)
        self.db = database_manager

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.client.close()

    def close(self):
        self.client.close()

    def _post(self, url: str, payload: Dict[str, Any], headers: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        response = self.client.post(url, json=payload, headers=headers or {})
        response.raise_for_status()
        return response.json()

    def _request(self, prompt: str, system_prompt: str) -> str:
        """
        Send one prompt to the configured provider.

        Returns:
            The model's response text
        """
        if self.provider == "ollama":
            payload = {
                "model": self.model,
                "prompt": prompt,
                "stream": False,
                "options": {"num_predict": self.max_tokens}
            }
            if system_prompt:
                payload["system"] = system_prompt
            result = self._post(f"{self.host}/api/generate", payload)
            return result.get("response", "")

        if self.provider == "claude":
            if not self.api_key:
                raise AgentError("No API key configured for provider 'claude'")
            payload = {
                "model": self.model,
                "max_tokens": self.max_tokens,
                "messages": [{"role": "user", "content": prompt}]
            }
            if system_prompt:
                payload["system"] = system_prompt
            result = self._post(ANTHROPIC_API_URL, payload, headers={
                "x-api-key": self.api_key,
                "anthropic-version": ANTHROPIC_VERSION
            })
            return "".join(
                block.get("text", "") for block in result.get("content", [])
                if isinstance(block, dict) and block.get("type", "text") == "text"
            )

        # openai and custom share the chat completions protocol
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})
        headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}
        result = self._post(f"{self.api_url}/chat/completions", {
            "model": self.model,
            "messages": messages,
            "max_tokens": self.max_tokens
        }, headers=headers)
        choices = result.get("choices") or []
        if not choices:
            return ""
        return choices[0].get("message", {}).get("content", "") or ""

    def _call_model(self, prompt: str, agent: AgentConfig, input_data: str = "") -> str:
        """
        Call the model with AI call logging.

        Args:
            prompt: The user prompt
            agent: Agent configuration supplying the system prompt
            input_data: Original input data for logging

        Returns:
            The model's response text

        Raises:
            AgentError: If the request fails
        """
        start_time = time.time()
        success = False
        error_message = None
        raw_response = ""

        try:
            raw_response = self._request(prompt, agent.system_prompt)
            success = True
            return raw_response

        except httpx.RequestError as e:
            error_message = f"Failed to connect to {self.provider}: {e}"
            raise AgentError(error_message)
        except httpx.HTTPStatusError as e:
            error_message = f"{self.provider} request failed: {e}"
            raise AgentError(error_message, details=f"status {e.response.status_code}")
        except AgentError as e:
            error_message = str(e)
            raise
        except (ValueError, KeyError, TypeError) as e:
            error_message = f"Unexpected response from {self.provider}: {e}"
            raise AgentError(error_message)
        finally:
            execution_time_ms = int((time.time() - start_time) * 1000)

            if self.db:
                try:
                    self.db.log_ai_agent_call(
                        agent_name=agent.name,
                        input_data=input_data,
                        system_prompt=agent.system_prompt,
                        user_prompt=prompt,
                        model_name=self.model,
                        raw_response=raw_response,
                        success=success,
                        error_message=error_message,
                        execution_time_ms=execution_time_ms
                    )
                except Exception as log_error:
                    logging.warning(f"Failed to log AI agent call: {log_error}")

    def _format_contents(self, contents: Sequence[ProcessedContent]) -> str:
        budget = self.max_content_chars
        parts = []
        for content in contents:
            text = content.content
            if budget is not None and len(text) > budget:
                text = text[:budget] + " ..."
            tags = ", ".join(content.tags) if content.tags else "none"
            parts.append(f"### {content.source_id}\nTags: {tags}\n{text}".rstrip())
        return "\n\n".join(parts)

    def generate_outline(self, contents: Sequence[ProcessedContent], tags: Sequence[str],
                         category_schema: Sequence[str], tag_weighting: str) -> List[Any]:
        """
        Run the Outline Agent to propose a nested mindmap outline.

        Args:
            contents: Aggregated sources
            tags: Union of all source tags
            category_schema: Categories the top level should use
            tag_weighting: high, medium or low

        Returns:
            The raw outline list as decoded from the model's JSON

        Raises:
            AgentError: If the call fails or the answer is not a JSON outline
        """
        agent = agent_registry.get_agent("outline")
        if not agent:
            raise ValueError("Outline agent not found in registry")

        prompt = f"""Organize these notes into a mindmap outline.

Category schema: {", ".join(category_schema)}
Tag weighting: {tag_weighting}
Available tags: {", ".join(tags) if tags else "none"}

NOTES:
{self._format_contents(contents)}

Remember to output only valid JSON."""

        input_data = json.dumps({
            "sources": [content.source_id for content in contents],
            "tags": list(tags),
            "category_schema": list(category_schema),
            "tag_weighting": tag_weighting
        })

        response = self._call_model(prompt, agent, input_data=input_data)
        outline = parse_outline_response(response)
        logging.info(f"Outline agent returned {len(outline)} top-level entries")
        return outline

    def test_connection(self) -> Tuple[bool, Optional[str]]:
        """
        Check that the configured model answers.

        Returns:
            Tuple of (ok, error message or None)
        """
        agent = agent_registry.get_agent("connection_test")
        if not agent:
            return False, "Connection test agent not found in registry"

        try:
            self._call_model("ping", agent, input_data="ping")
        except AgentError as e:
            logging.error(f"Connection test failed: {e}")
            return False, str(e)

        logging.info(f"Connection to {self.provider} ({self.model}) OK")
        return True, None
