from __future__ import annotations
import logging
import re
from pathlib import Path
from typing import Optional

import httpx

from .llm_client import UpstreamError, upstream_error_message
from .settings import settings

logger = logging.getLogger(__name__)


class ElevenLabsClient:
	def __init__(
		self,
		api_key: Optional[str] = None,
		*,
		voice_id: Optional[str] = None,
		model_id: Optional[str] = None,
		base_url: Optional[str] = None,
		transport: Optional[httpx.AsyncBaseTransport] = None,
	) -> None:
		self.api_key = api_key or settings.elevenlabs_api_key
		if not self.api_key:
			raise ValueError("ELEVENLABS_API_KEY is not configured")
		self.voice_id = voice_id or settings.elevenlabs_voice_id
		self.model_id = model_id or settings.elevenlabs_model_id
		self.base_url = (base_url or settings.elevenlabs_base_url).rstrip("/")
		self._client = httpx.AsyncClient(timeout=settings.http_timeout_seconds, transport=transport)

	async def synthesize(self, text: str) -> bytes:
		headers = {"xi-api-key": self.api_key, "Content-Type": "application/json"}
		payload = {"text": text, "model_id": self.model_id}
		try:
			r = await self._client.post(f"{self.base_url}/text-to-speech/{self.voice_id}", headers=headers, json=payload)
			r.raise_for_status()
		except httpx.HTTPStatusError as http_err:
			logger.error("ElevenLabs responded with an error: %s", http_err.response.text)
			raise UpstreamError(http_err.response.status_code, upstream_error_message(http_err.response)) from http_err
		except httpx.RequestError as net_err:
			logger.error("No response received from ElevenLabs: %s", net_err)
			raise UpstreamError(502, "No response from text-to-speech API.") from net_err
		if not r.content:
			raise UpstreamError(502, "Text-to-speech API returned no audio")
		return r.content

	async def aclose(self) -> None:
		await self._client.aclose()


_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_.-]")


def _safe_component(value: object, fallback: str) -> str:
	cleaned = re.sub(r"\.{2,}", ".", _UNSAFE_CHARS.sub("_", str(value))).strip(".")
	return cleaned or fallback


class AudioStore:
	"""Writes generated audio below media_dir, laid out the way it is served."""

	def __init__(self, root: Optional[str] = None, *, base_url: Optional[str] = None) -> None:
		self.root = Path(root or settings.media_dir)
		self.base_url = (base_url if base_url is not None else settings.media_base_url).rstrip("/")

	def relative_path(self, *, uid: str, language: str, conversation_id: str, index: int) -> str:
		return "/".join(
			[
				"generated",
				_safe_component(uid, "anonymous"),
				_safe_component(language, "xx"),
				_safe_component(conversation_id, "conversation"),
				f"audio-{int(index)}.mp3",
			]
		)

	def save(self, data: bytes, *, uid: str, language: str, conversation_id: str, index: int = 0) -> str:
		rel = self.relative_path(uid=uid, language=language, conversation_id=conversation_id, index=index)
		target = self.root / rel
		target.parent.mkdir(parents=True, exist_ok=True)
		target.write_bytes(data)
		logger.info("Stored %d bytes of audio at %s", len(data), target)
		return f"{self.base_url}/{rel}"
