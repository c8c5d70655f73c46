"""Newsflash generation: a deterministic rewriter and an optional chat-completion client."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Literal, Optional, Protocol

import httpx
from pydantic import BaseModel, Field

from newsflash.domain.errors import ValidationError
from newsflash.obs import metrics as obs_metrics
from newsflash.settings import settings

_LOG = logging.getLogger(__name__)


class NewsflashOptions(BaseModel):
	tone: str = "satirical"
	length: Literal["short", "long"] = "short"
	temperature: float = Field(default=0.7, ge=0.0, le=2.0)
	generate: bool = True


class NewsflashGenerator(Protocol):
	async def generate(self, raw_text: str, author_name: str, options: NewsflashOptions) -> str:
		...


_VERB_PAST = {
	"am": "was",
	"are": "were",
	"is": "was",
	"have": "had",
	"has": "had",
	"get": "got",
	"getting": "got",
	"go": "went",
	"going": "went",
	"eat": "ate",
	"eating": "ate",
	"drink": "drank",
	"drinking": "drank",
	"buy": "bought",
	"buying": "bought",
	"start": "started",
	"starting": "started",
	"finish": "finished",
	"finishing": "finished",
	"watch": "watched",
	"watching": "watched",
	"read": "read",
	"reading": "read",
	"play": "played",
	"playing": "played",
	"work": "worked",
	"working": "worked",
}
_VERB_PATTERN = re.compile(r"\b(" + "|".join(sorted(_VERB_PAST, key=len, reverse=True)) + r")(?=\s)")

_CONTRACTIONS = (
	(re.compile(r"\bi'm\b"), "{name} is"),
	(re.compile(r"\bi've\b"), "{name} has"),
	(re.compile(r"\bi'll\b"), "{name} will"),
	(re.compile(r"\bi'd\b"), "{name} would"),
)
_PRONOUNS = (
	(re.compile(r"\bmyself\b"), "{name}"),
	(re.compile(r"\bmy\b"), "{name}'s"),
	(re.compile(r"\bme\b"), "{name}"),
	(re.compile(r"\bi\b"), "{name}"),
)

_PREFIX_RULES = (
	(("just", "finally"), "URGENT:"),
	(("working", "starting"), "DEVELOPING:"),
	(("secret", "surprise"), "EXCLUSIVE:"),
)
_DEFAULT_PREFIX = "BREAKING:"


def headline_prefix(text: str) -> str:
	lowered = text.lower()
	for keywords, prefix in _PREFIX_RULES:
		if any(keyword in lowered for keyword in keywords):
			return prefix
	return _DEFAULT_PREFIX


def _validate(raw_text: str, author_name: str) -> tuple[str, str]:
	text = (raw_text or "").strip()
	name = (author_name or "").strip()
	if not text:
		raise ValidationError("Raw text cannot be empty")
	if len(text) > settings.post_text_max:
		raise ValidationError(f"Raw text cannot exceed {settings.post_text_max} characters")
	if not name:
		raise ValidationError("User name cannot be empty")
	return text, name


def rewrite(raw_text: str, author_name: str) -> str:
	"""Rewrite a first-person update as a third-person headline.

	Identical input always yields identical output.
	"""
	text, name = _validate(raw_text, author_name)
	prefix = headline_prefix(text)
	processed = text.lower()
	processed = _VERB_PATTERN.sub(lambda match: _VERB_PAST[match.group(1)], processed)
	for pattern, replacement in _CONTRACTIONS + _PRONOUNS:
		processed = pattern.sub(lambda _match, r=replacement: r.format(name=name), processed)
	processed = processed[:1].upper() + processed[1:]

	# Later mentions of the full name collapse to the first name.
	first_name = name.split(" ")[0]
	head, sep, tail = processed.partition(name)
	if sep and name in tail:
		processed = head + sep + tail.replace(name, first_name)

	headline = f"{prefix} {processed}"
	if not re.search(r"[.!?]$", headline):
		headline += "."
	return headline


class DeterministicNewsflash:
	async def generate(self, raw_text: str, author_name: str, options: NewsflashOptions) -> str:
		return rewrite(raw_text, author_name)


_SYSTEM_PROMPT = (
	"You are an assistant that writes breaking-news style flashes for a social media app. "
	"Keep it concise, engaging, and formatted like a headline."
)


@dataclass(slots=True)
class ChatCompletionNewsflash:
	"""Calls an OpenAI-compatible chat completion endpoint."""

	http: httpx.AsyncClient
	api_key: str
	url: str = settings.openai_chat_url
	model: str = settings.openai_chat_model

	async def generate(self, raw_text: str, author_name: str, options: NewsflashOptions) -> str:
		text, name = _validate(raw_text, author_name)
		sentences = "2-3 sentences" if options.length == "long" else "1 concise sentence"
		prompt = (
			f"Write a {options.tone.lower()} news flash in {sentences} reporting on the following user "
			"update as if it were breaking news. Avoid hashtags or mentions. End with proper punctuation."
			f"\n\nUser name: {name}\nUser update: {text}"
		)
		response = await self.http.post(
			self.url,
			headers={"Authorization": f"Bearer {self.api_key}"},
			json={
				"model": self.model,
				"temperature": options.temperature,
				"messages": [
					{"role": "system", "content": _SYSTEM_PROMPT},
					{"role": "user", "content": prompt},
				],
			},
		)
		response.raise_for_status()
		choices = response.json().get("choices") or []
		content = (choices[0].get("message") or {}).get("content") if choices else None
		if not content or not content.strip():
			raise ValueError("chat completion response missing content")
		return content.strip()


class GenerationResult(BaseModel):
	text: str
	method: Literal["raw", "remote", "deterministic"]


class NewsflashWriter:
	"""Chooses the generator for a request and falls back to the deterministic rewrite."""

	def __init__(self, remote: Optional[NewsflashGenerator] = None) -> None:
		self.remote = remote
		self.fallback = DeterministicNewsflash()

	async def write(self, raw_text: str, author_name: str, options: Optional[NewsflashOptions] = None) -> GenerationResult:
		opts = options or NewsflashOptions()
		if not opts.generate:
			text, _ = _validate(raw_text, author_name)
			obs_metrics.inc_newsflash_generated("raw")
			return GenerationResult(text=text, method="raw")
		if self.remote is not None:
			try:
				text = await self.remote.generate(raw_text, author_name, opts)
			except ValidationError:
				raise
			except Exception:
				_LOG.warning("newsflash.remote_failed", exc_info=True)
			else:
				obs_metrics.inc_newsflash_generated("remote")
				return GenerationResult(text=text, method="remote")
		text = await self.fallback.generate(raw_text, author_name, opts)
		obs_metrics.inc_newsflash_generated("deterministic")
		return GenerationResult(text=text, method="deterministic")
