"""
Journal Parser
==============

Turns the free-text draft comparison written by the compare model ("journal
data") into structured pieces the client can render:

- the first draft and the revised draft
- the numbered explanations, keyed by the improved phrase
- the revised draft split into plain and highlighted segments

The model is asked to answer in this layout::

	First Draft:
	"..."

	Revised Draft with highlighted improvements:
	"... *improved phrase* ..."

	Explanations for Improvements:
	1. *improved phrase*: why it is better.

Nothing guarantees the model follows it, so every function here degrades to
empty values instead of raising.
"""

from __future__ import annotations

import re
from typing import Dict, List

from .schemas import Highlight, JournalView, ParsedJournal, ParsedSection, Segment


FIRST_DRAFT = "First Draft"
REVISED_DRAFT = "Revised Draft"
EXPLANATIONS = "Explanations for Improvements"

# Header prefix as written by the model -> section name
SECTION_HEADERS: Dict[str, str] = {
	"First Draft:": FIRST_DRAFT,
	"Revised Draft with highlighted improvements:": REVISED_DRAFT,
	"Explanations for Improvements:": EXPLANATIONS,
}

NO_EXPLANATION = "No explanation available"

_FIRST_DRAFT_RE = re.compile(r'First Draft:\s*"([^"]*)"', re.IGNORECASE)
_REVISED_DRAFT_RE = re.compile(r'Revised Draft(?: with highlighted improvements)?:\s*"([^"]*)"', re.IGNORECASE)
_EXPLANATIONS_RE = re.compile(r"Explanations for Improvements:\s*([\s\S]*)", re.IGNORECASE)
_EXPLANATION_LINE_RE = re.compile(r"^\d+\.\s*\*(.+?)\*:\s*(.+)$", re.MULTILINE)
_HIGHLIGHT_RE = re.compile(r"(\*[^*]+\*)")


def parse_explanations(text: str) -> Dict[str, str]:
	"""Collect ``N. *phrase*: explanation`` lines; a repeated phrase keeps the last one."""
	explanations: Dict[str, str] = {}
	for match in _EXPLANATION_LINE_RE.finditer(text or ""):
		explanations[match.group(1).strip()] = match.group(2).strip()
	return explanations


def parse_journal_data(journal_data: str) -> ParsedJournal:
	"""Extract both drafts and the explanations by header matching.

	Drafts are only found when quoted right after their header; a missing
	section yields an empty string (or an empty dict for explanations).
	"""
	journal_data = journal_data or ""
	first = _FIRST_DRAFT_RE.search(journal_data)
	revised = _REVISED_DRAFT_RE.search(journal_data)
	explanations = _EXPLANATIONS_RE.search(journal_data)
	explanations_text = explanations.group(1).strip() if explanations else ""
	return ParsedJournal(
		first_draft=first.group(1).strip() if first else "",
		revised_draft=revised.group(1).strip() if revised else "",
		explanations=parse_explanations(explanations_text),
	)


def _match_header(section: str) -> str | None:
	for prefix in SECTION_HEADERS:
		if section.startswith(prefix):
			return prefix
	return None


def parse_sections(journal_data: str) -> List[ParsedSection]:
	"""Split on blank lines and label each block by its header.

	A header standing alone takes the following block, whatever it is, as its
	content. Blocks without a known header keep ``header=None``, empty ones
	included.
	"""
	sections = [s.strip() for s in (journal_data or "").split("\n\n")]
	parsed: List[ParsedSection] = []
	i = 0
	while i < len(sections):
		section = sections[i]
		prefix = _match_header(section)
		if prefix is None:
			parsed.append(ParsedSection(header=None, content=section))
			i += 1
			continue
		content = section[len(prefix):].strip()
		if not content and i + 1 < len(sections):
			content = sections[i + 1]
			i += 1
		parsed.append(ParsedSection(header=SECTION_HEADERS[prefix], content=content))
		i += 1
	return parsed


def explanations_from_sections(sections: List[ParsedSection]) -> Dict[str, str]:
	for section in sections:
		if section.header == EXPLANATIONS:
			return parse_explanations(section.content)
	return {}


def strip_quotes(text: str) -> str:
	if text.startswith('"'):
		text = text[1:]
	if text.endswith('"'):
		text = text[:-1]
	return text


def split_highlights(text: str) -> List[Segment]:
	"""Split text on ``*phrase*`` markers.

	Highlighted segments come back without their asterisks and trimmed;
	empty plain segments between adjacent markers are dropped.
	"""
	segments: List[Segment] = []
	if not text:
		return segments
	for idx, part in enumerate(_HIGHLIGHT_RE.split(text)):
		# re.split puts captured markers at odd positions
		if idx % 2 == 1:
			segments.append(Segment(text=part[1:-1].strip(), highlighted=True))
		elif part:
			segments.append(Segment(text=part, highlighted=False))
	return segments


def build_journal_view(journal_data: str) -> JournalView:
	sections = parse_sections(journal_data)
	explanations = explanations_from_sections(sections)
	first_draft = ""
	revised_segments: List[Segment] = []
	for section in sections:
		if section.header == FIRST_DRAFT and not first_draft:
			first_draft = strip_quotes(section.content)
		elif section.header == REVISED_DRAFT and not revised_segments:
			revised_segments = split_highlights(strip_quotes(section.content))
	highlights = [
		Highlight(text=s.text, explanation=explanations.get(s.text, NO_EXPLANATION))
		for s in revised_segments
		if s.highlighted
	]
	return JournalView(
		sections=sections,
		first_draft=first_draft,
		revised_segments=revised_segments,
		explanations=explanations,
		highlights=highlights,
	)
