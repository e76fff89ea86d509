from __future__ import annotations
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


Role = Literal["User", "System"]

# Language codes offered in the language selector, with display names
LANGUAGES: Dict[str, str] = {
	"en": "English",
	"ja": "Japanese",
	"it": "Italian",
	"fr": "French",
	"es": "Spanish",
	"zh": "Chinese",
	"ko": "Korean",
}


class WireModel(BaseModel):
	# Wire format keeps the browser client's camelCase names
	model_config = ConfigDict(populate_by_name=True)


class FeedbackItem(BaseModel):
	category: str
	value: str


class Feedback(BaseModel):
	title: str
	items: List[FeedbackItem]


class Message(BaseModel):
	id: int
	role: Role
	content: str
	romanized: Optional[str] = None
	hint: Optional[List[str]] = None
	feedback: Optional[Feedback] = None


class Dialogue(BaseModel):
	id: int
	role: Role
	content: str
	hint: Optional[List[str]] = None


class Conversation(BaseModel):
	id: str
	title: str
	setting: str
	topic: str
	speaker: str
	dialogue: List[Dialogue] = Field(default_factory=list)


class FeedbackResponse(WireModel):
	classification: str
	feedback: str
	all_criteria_met: bool = Field(alias="allCriteriaMet")


class Segment(BaseModel):
	text: str
	highlighted: bool = False


class ParsedSection(BaseModel):
	header: Optional[str] = None
	content: str


class ParsedJournal(WireModel):
	first_draft: str = Field(default="", alias="firstDraft")
	revised_draft: str = Field(default="", alias="revisedDraft")
	explanations: Dict[str, str] = Field(default_factory=dict)


class Highlight(BaseModel):
	text: str
	explanation: str


class JournalView(WireModel):
	sections: List[ParsedSection]
	first_draft: str = Field(default="", alias="firstDraft")
	revised_segments: List[Segment] = Field(default_factory=list, alias="revisedSegments")
	explanations: Dict[str, str] = Field(default_factory=dict)
	highlights: List[Highlight] = Field(default_factory=list)
