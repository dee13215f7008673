import logging
from typing import Any, Dict, List, Optional

import aiohttp

from ...config import LLMConfig
from ...errors import JudgmentUnavailable
from .prompt_manager import PromptManager

logger = logging.getLogger(__name__)


class LLMClient:
    """Client for the Anthropic Messages API"""

    def __init__(self, config: Optional[LLMConfig] = None, prompt_manager: Optional[PromptManager] = None):
        self.config = config or LLMConfig.from_env()
        if not self.config.api_key:
            raise ValueError("ANTHROPIC_API_KEY environment variable is not set")
        self.prompt_manager = prompt_manager or PromptManager()

    def _headers(self) -> Dict[str, str]:
        return {
            "x-api-key": self.config.api_key,
            "anthropic-version": self.config.api_version,
            "content-type": "application/json",
        }

    async def chat_completion(
        self,
        messages: List[Dict[str, str]],
        system: Optional[str] = None,
        config: Optional[LLMConfig] = None
    ) -> str:
        """
        Make a chat completion API call

        Args:
            messages: List of message dicts with role and content
            system: Optional system prompt
            config: Optional config override for this call

        Returns:
            Generated response text
        """
        cfg = config or self.config
        payload: Dict[str, Any] = {
            "model": cfg.model,
            "max_tokens": cfg.max_tokens,
            "temperature": cfg.temperature,
            "messages": messages,
        }
        if system:
            payload["system"] = system

        logger.debug(f"Sending request to Anthropic API with model {cfg.model}")
        timeout = aiohttp.ClientTimeout(total=cfg.timeout_seconds)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(cfg.base_url, json=payload, headers=self._headers()) as response:
                    if response.status != 200:
                        error_text = await response.text()
                        logger.error(f"Anthropic API error response ({response.status}): {error_text}")
                        raise JudgmentUnavailable(f"Anthropic API error {response.status}")
                    result = await response.json()
        except aiohttp.ClientError as e:
            logger.error(f"Error calling Anthropic API: {e}")
            raise JudgmentUnavailable(f"Error calling Anthropic API: {e}") from e

        try:
            text = "".join(
                block.get("text", "") for block in result["content"] if block.get("type") == "text"
            )
        except (KeyError, TypeError) as e:
            logger.error(f"Failed to extract response text from structure: {result}")
            raise JudgmentUnavailable("Malformed Anthropic API response") from e
        logger.debug(f"Extracted response text: {text}")
        return text.strip()

    async def chat_with_prompt(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        config: Optional[LLMConfig] = None
    ) -> str:
        return await self.chat_completion([{"role": "user", "content": prompt}], system_prompt, config)

    async def chat_with_template(
        self,
        user_template: str,
        user_context: Dict[str, Any],
        system_template: Optional[str] = None,
        system_context: Optional[Dict[str, Any]] = None,
        config: Optional[LLMConfig] = None
    ) -> str:
        """
        Make a chat completion using Jinja2 templates

        Args:
            user_template: Name of the user prompt template file
            user_context: Context variables for the user template
            system_template: Optional name of the system prompt template file
            system_context: Optional context variables for the system template
            config: Optional config override

        Returns:
            Generated response text
        """
        system_prompt = None
        if system_template:
            system_prompt = self.prompt_manager.render_template(system_template, **(system_context or {}))
        user_prompt = self.prompt_manager.render_template(user_template, **user_context)
        return await self.chat_with_prompt(user_prompt, system_prompt, config)
