from __future__ import annotations
import json
import logging
import re
import httpx
from typing import Any, Dict, List, Optional
from .settings import settings

logger = logging.getLogger(__name__)

ChatMessages = List[Dict[str, str]]


class UpstreamError(RuntimeError):
	"""A remote API failed; status_code is what the caller should answer with."""

	def __init__(self, status_code: int, message: str) -> None:
		super().__init__(message)
		self.status_code = status_code
		self.message = message


class LLMResponseError(ValueError):
	"""The model answered, but not in the shape the prompt asked for."""


_FENCE_RE = re.compile(r"^```(?:json)?\n?|```$")


def strip_code_fence(text: str) -> str:
	text = text.strip()
	if text.startswith("```") and text.endswith("```"):
		text = _FENCE_RE.sub("", text).strip()
	return text


def extract_json_object(text: str) -> Dict[str, Any]:
	"""Parse the JSON object out of a model answer.

	Tries the raw text, then a ```json fenced block, then the slice between the
	first "{" and the last "}". Models like to wrap JSON in prose or fences and
	to leave trailing commas, so the last attempt also drops those.
	"""
	candidates = [text.strip()]
	code_block = re.search(r"```(?:json)?\s*([\s\S]*?)\s*```", text)
	if code_block:
		candidates.append(code_block.group(1))
	first = text.find("{")
	last = text.rfind("}")
	if first != -1 and last != -1 and last > first:
		sliced = text[first : last + 1]
		candidates.append(sliced)
		candidates.append(re.sub(r",\s*([}\]])", r"\1", sliced))
	for candidate in candidates:
		try:
			data = json.loads(candidate)
		except ValueError:
			continue
		if isinstance(data, dict):
			return data
	raise LLMResponseError("Model did not return a JSON object")


def upstream_error_message(response: httpx.Response) -> str:
	try:
		data = response.json()
		message = data.get("error", {}).get("message")
		if message:
			return str(message)
	except Exception:
		pass
	return f"Upstream API responded with HTTP {response.status_code}"


class OpenAIClient:
	def __init__(
		self,
		api_key: Optional[str] = None,
		*,
		base_url: Optional[str] = None,
		timeout: Optional[float] = None,
		transport: Optional[httpx.AsyncBaseTransport] = None,
	) -> None:
		self.api_key = api_key or settings.openai_api_key
		if not self.api_key:
			raise ValueError("OPENAI_API_KEY is not configured")
		self.base_url = (base_url or settings.openai_base_url).rstrip("/")
		self._headers = {
			"Authorization": f"Bearer {self.api_key}",
			"Content-Type": "application/json",
		}
		timeout = timeout or settings.http_timeout_seconds
		self._client = httpx.AsyncClient(timeout=timeout, transport=transport)
		self._fallback_client: Optional[httpx.AsyncClient] = None
		self._fallback_enabled = bool(settings.openrouter_api_key)
		self._openrouter_api_key = settings.openrouter_api_key
		self._openrouter_model = settings.openrouter_model
		self._openrouter_base_url = settings.openrouter_base_url
		self._openrouter_headers = {
			"Authorization": f"Bearer {self._openrouter_api_key}" if self._openrouter_api_key else "",
			"Content-Type": "application/json",
			"HTTP-Referer": settings.openrouter_referer,
			"X-Title": settings.openrouter_title,
		}
		if self._fallback_enabled:
			self._fallback_client = httpx.AsyncClient(timeout=timeout, transport=transport)

	async def chat(self, messages: ChatMessages, *, model: Optional[str] = None) -> str:
		payload: Dict[str, Any] = {
			"model": model or settings.openai_compare_model,
			"messages": messages,
		}
		try:
			data = await self._post("/chat/completions", payload)
			return str(data["choices"][0]["message"]["content"]).strip()
		except UpstreamError as err:
			if not self._fallback_enabled:
				raise
			return await self._fallback_chat(messages, err)
		except (KeyError, IndexError, TypeError) as err:
			raise UpstreamError(502, f"Unexpected chat completion response: {err}") from err

	async def generate_image(self, prompt: str, *, model: Optional[str] = None, size: Optional[str] = None) -> str:
		payload: Dict[str, Any] = {
			"model": model or settings.openai_image_model,
			"prompt": prompt,
			"n": 1,
			"size": size or settings.openai_image_size,
		}
		data = await self._post("/images/generations", payload)
		try:
			url = data["data"][0]["url"]
		except (KeyError, IndexError, TypeError):
			url = None
		if not url:
			raise UpstreamError(502, "Invalid response from OpenAI image API")
		return str(url)

	async def _post(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
		try:
			r = await self._client.post(f"{self.base_url}{path}", headers=self._headers, json=payload)
			r.raise_for_status()
		except httpx.HTTPStatusError as http_err:
			logger.error("OpenAI API responded with an error: %s", http_err.response.text)
			raise UpstreamError(http_err.response.status_code, upstream_error_message(http_err.response)) from http_err
		except httpx.RequestError as net_err:
			logger.error("No response received from OpenAI API: %s", net_err)
			raise UpstreamError(502, "No response from OpenAI API.") from net_err
		try:
			return r.json()
		except ValueError as err:
			raise UpstreamError(502, f"Unexpected OpenAI response: {r.text}") from err

	async def aclose(self) -> None:
		await self._client.aclose()
		if self._fallback_client is not None:
			await self._fallback_client.aclose()

	async def _fallback_chat(self, messages: ChatMessages, primary_error: UpstreamError) -> str:
		if not self._fallback_client or not self._openrouter_api_key:
			raise primary_error
		logger.warning("OpenAI call failed (%s); retrying through OpenRouter", primary_error)
		headers = {k: v for k, v in self._openrouter_headers.items() if v}
		payload: Dict[str, Any] = {
			"model": self._openrouter_model,
			"messages": messages,
		}
		try:
			r = await self._fallback_client.post(
				self._openrouter_base_url,
				headers=headers,
				json=payload,
			)
			r.raise_for_status()
			data = r.json()
			return str(data["choices"][0]["message"]["content"]).strip()
		except Exception as fallback_err:
			raise UpstreamError(
				primary_error.status_code,
				f"OpenAI call failed ({primary_error}); fallback via OpenRouter also failed",
			) from fallback_err
