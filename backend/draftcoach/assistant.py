"""
Writing Assistant
=================

One prompt builder and one collaborator call per operation:

- initialize: first System instruction for a conversation scenario
- feedback: iterative feedback on a draft with a completion verdict
- compare: first draft vs. final draft comparison ("journal data")
- structured_feedback: three-category review of a draft
- romanize: romanization of non-Latin text
- image: illustration for the final draft
- audio: text-to-speech recording of the final draft

Clients are created per call and closed afterwards.
"""

from __future__ import annotations

import json
import logging
import uuid
from typing import Any, Callable, Dict, List, Optional

from .llm_client import ChatMessages, LLMResponseError, OpenAIClient, extract_json_object, strip_code_fence
from .schemas import LANGUAGES, FeedbackResponse, Message
from .settings import settings
from .speech import AudioStore, ElevenLabsClient

logger = logging.getLogger(__name__)


COMPLETION_CRITERIA: List[str] = [
	"The draft should be at least 3 sentences long.",
	"The draft should have clear, coherent sentences that effectively communicate basic ideas.",
	"Basic sentences are grammatically correct with minimal errors.",
]

CLASSIFICATIONS: Dict[str, str] = {
	"On-Track Input": "Completely relevant and meets criteria.",
	"Partially On-Track Input": "Minimal content but relevant.",
	"Off-Track Input": "Irrelevant content.",
	"Completely Irrelevant Input": "Completely off-topic.",
	"Very Short or Fragmented Input": "Incomplete sentences or keywords only.",
	"Empty Input": "No response.",
}

FEEDBACK_GUIDELINES: Dict[str, str] = {
	"On-Track Input": "Encourage and suggest minor improvements.",
	"Partially On-Track Input": "Acknowledge effort and guide to expand.",
	"Off-Track Input": "Gently redirect to the topic.",
	"Completely Irrelevant Input": "Reiterate the task with an example.",
	"Very Short or Fragmented Input": "Encourage turning fragments into sentences.",
	"Empty Input": "Offer a starting point or example.",
}

FEEDBACK_CATEGORIES: List[str] = ["Coherence & Organization", "Content", "Structure"]


def _language_name(language: Optional[str]) -> str:
	return LANGUAGES.get((language or "en").lower(), "English")


def build_initialize_prompt(topic: str, setting: str, language: Optional[str]) -> str:
	return (
		"You are an educational writing assistant guiding beginners through writing exercises.\n"
		"Based on the following topic and setting, generate the first system message instruction.\n"
		f"Write the instruction in {_language_name(language)}, the language the learner is practising.\n\n"
		f"**Topic:** {topic}\n"
		f"**Setting:** {setting}\n\n"
		"Return ONLY a JSON object in this format:\n"
		f'{{"id": "{uuid.uuid4()}", "role": "System", "content": "<instruction_content>"}}'
	)


def build_feedback_prompt(
	draft: str,
	*,
	topic: Optional[str] = None,
	setting: Optional[str] = None,
	language: Optional[str] = None,
	is_first_draft: bool = False,
) -> str:
	criteria = "\n".join(f"{i}. {c}" for i, c in enumerate(COMPLETION_CRITERIA, start=1))
	scenarios = "\n".join(f"- **{name}:** {desc}" for name, desc in CLASSIFICATIONS.items())
	guidelines = "\n".join(f"   - **{name}:** {desc}" for name, desc in FEEDBACK_GUIDELINES.items())
	context = ""
	if topic or setting:
		context = f"**Topic:** {topic or '-'}\n**Setting:** {setting or '-'}\n"
	draft_kind = "first draft" if is_first_draft else "revised draft"
	return (
		"You are an educational writing assistant providing iterative feedback to help learners improve their drafts.\n"
		f"The learner is writing in {_language_name(language)}. This is their {draft_kind}.\n"
		"Based on the user's draft, evaluate it against the following completion criteria and provide clear and actionable feedback.\n\n"
		f"{context}"
		f'**User Draft:**\n"{draft}"\n\n'
		f"**Completion Criteria:**\n{criteria}\n\n"
		f"**User Input Classification Scenarios:**\n{scenarios}\n\n"
		"**Guidelines:**\n"
		"1. **Classify** the user's input into one of the above scenarios.\n"
		"2. **Provide Feedback** based on the classification:\n"
		f"{guidelines}\n"
		"3. **Use Simple Language:** Ensure feedback is easy to understand.\n"
		"4. **Include Examples:** Where applicable, provide examples to illustrate suggestions.\n"
		"5. **Determine Completion:** If all criteria are met, include a statement indicating that all criteria have been satisfied.\n\n"
		"Return ONLY a JSON object with keys: classification (string), feedback (string), allCriteriaMet (boolean)."
	)


def build_compare_messages(initial_draft: str, final_draft: str) -> ChatMessages:
	return [
		{
			"role": "system",
			"content": (
				"You are a friendly AI assistant that compares two versions of a written draft. "
				"Highlight improvements in the final draft compared to the initial draft using *italics*. "
				"Provide a brief explanation for each highlighted improvement. "
				"Use easy-to-understand language suitable for beginners."
			),
		},
		{
			"role": "user",
			"content": (
				"Compare the following two drafts and highlight the improvements in the final draft. "
				"Use *italics* for words or phrases that have been improved. "
				"For each improvement, provide a short explanation.\n\n"
				f'**First Draft:**\n"{initial_draft}"\n\n'
				f'**Revised Draft:**\n"{final_draft}"\n\n'
				"**Response Format:**\n"
				'First Draft:\n"<First Draft>"\n\n'
				'Revised Draft with highlighted improvements:\n"<Revised Draft with improvements>"\n\n'
				"Explanations for Improvements:\n"
				"1. *Improvement 1*: Explanation.\n"
				"2. *Improvement 2*: Explanation."
			),
		},
	]


def build_structured_feedback_messages(draft: str) -> ChatMessages:
	categories = ", ".join(f'"{c}": "Your feedback here with examples."' for c in FEEDBACK_CATEGORIES)
	return [
		{
			"role": "system",
			"content": (
				"You are a friendly writing assistant helping beginner writers improve their drafts. "
				"Provide clear and simple feedback on the following three areas: "
				f"{', '.join(FEEDBACK_CATEGORIES)}. "
				"Use easy-to-understand language suitable for beginners and include examples to help illustrate your suggestions."
			),
		},
		{
			"role": "user",
			"content": (
				"I need help improving my writing. Please review my draft based on the categories below and provide "
				"simple, easy-to-understand feedback. For each category, include one or two actionable steps along "
				"with examples to help me improve my writing.\n\n"
				f'**User Draft:**\n"{draft}"\n\n'
				f'Return ONLY JSON: {{"feedback": {{{categories}}}}}'
			),
		},
	]


def build_image_prompt(final_draft: str) -> str:
	return (
		"Create a vertical (portrait) image that captures the overall mood, theme, and emotional essence "
		f'described by the following text:\n"{final_draft}"\n'
		"Do NOT include any written text in the image. Instead, use visual elements such as color, composition, "
		"and style to evoke the feeling or atmosphere implied by the text. Aim for a design that resonates strongly "
		"with the given themes or emotions, without literal words on the canvas."
	)


def _message_id(value: Any) -> int:
	try:
		return int(value)
	except (TypeError, ValueError):
		return uuid.uuid4().int >> 80


class WritingAssistant:
	def __init__(
		self,
		*,
		llm_factory: Callable[[], OpenAIClient] = OpenAIClient,
		speech_factory: Callable[[], ElevenLabsClient] = ElevenLabsClient,
		audio_store: Optional[AudioStore] = None,
	) -> None:
		self._llm_factory = llm_factory
		self._speech_factory = speech_factory
		self.audio_store = audio_store or AudioStore()

	async def _chat(self, messages: ChatMessages, *, model: str) -> str:
		client = self._llm_factory()
		try:
			return await client.chat(messages, model=model)
		finally:
			await client.aclose()

	async def initialize(self, topic: str, setting: str, language: Optional[str] = None) -> Dict[str, Any]:
		"""Ask for the opening instruction; returns ``{id, role, content}`` with an id always set."""
		text = await self._chat(
			[
				{"role": "system", "content": "You are a helpful assistant."},
				{"role": "user", "content": build_initialize_prompt(topic, setting, language)},
			],
			model=settings.openai_guidance_model,
		)
		data = extract_json_object(strip_code_fence(text))
		content = data.get("content")
		if not isinstance(content, str) or not content.strip():
			raise LLMResponseError("Initial instruction is missing its content")
		return {
			"id": data.get("id") or str(uuid.uuid4()),
			"role": "System",
			"content": content.strip(),
		}

	async def initial_message(self, topic: str, setting: str, language: Optional[str] = None) -> Message:
		data = await self.initialize(topic, setting, language)
		return Message(id=_message_id(data["id"]), role="System", content=data["content"])

	async def feedback(
		self,
		draft: str,
		*,
		topic: Optional[str] = None,
		setting: Optional[str] = None,
		language: Optional[str] = None,
		is_first_draft: bool = False,
	) -> FeedbackResponse:
		prompt = build_feedback_prompt(
			draft, topic=topic, setting=setting, language=language, is_first_draft=is_first_draft
		)
		text = await self._chat(
			[
				{"role": "system", "content": "You are a helpful educational assistant."},
				{"role": "user", "content": prompt},
			],
			model=settings.openai_guidance_model,
		)
		data = extract_json_object(strip_code_fence(text))
		classification = data.get("classification")
		feedback = data.get("feedback")
		all_met = data.get("allCriteriaMet")
		if not isinstance(classification, str) or not isinstance(feedback, str) or not isinstance(all_met, bool):
			logger.error("Feedback response is missing required fields: %s", text)
			raise LLMResponseError("Missing required fields in feedback response.")
		return FeedbackResponse(classification=classification, feedback=feedback, all_criteria_met=all_met)

	async def compare(self, initial_draft: str, final_draft: str) -> str:
		text = strip_code_fence(
			await self._chat(build_compare_messages(initial_draft, final_draft), model=settings.openai_compare_model)
		)
		# The model sometimes wraps its answer in JSON; plain text is the expected case
		try:
			data = json.loads(text)
		except ValueError:
			return text
		if isinstance(data, dict) and isinstance(data.get("draftImprovementData"), str):
			return data["draftImprovementData"]
		return text

	async def structured_feedback(self, draft: str) -> Dict[str, Any]:
		text = strip_code_fence(
			await self._chat(build_structured_feedback_messages(draft), model=settings.openai_compare_model)
		)
		try:
			data = extract_json_object(text)
		except LLMResponseError:
			logger.warning("Structured feedback was not JSON; returning raw text")
			return {"feedback": text}
		if "feedback" not in data:
			return {"feedback": data}
		return data

	async def romanize(self, text: str) -> str:
		return await self._chat(
			[
				{
					"role": "system",
					"content": "You are a highly-skilled AI model capable of romanizing text. Please romanize the following text.",
				},
				{"role": "user", "content": text},
			],
			model=settings.openai_romanize_model,
		)

	async def image(self, final_draft: str) -> str:
		client = self._llm_factory()
		try:
			return await client.generate_image(build_image_prompt(final_draft))
		finally:
			await client.aclose()

	async def audio(
		self,
		text: str,
		language: str,
		conversation_id: str,
		*,
		uid: str = "anonymous",
		index: int = 0,
	) -> str:
		client = self._speech_factory()
		try:
			data = await client.synthesize(text)
		finally:
			await client.aclose()
		return self.audio_store.save(data, uid=uid, language=language, conversation_id=conversation_id, index=index)
