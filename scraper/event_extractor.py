"""Extract candidate events from page text with Claude."""
import json
import logging
import re
from typing import Any, Dict, List, Optional

import anthropic

from pipeline.errors import ExtractionError, ExtractionParseError

logger = logging.getLogger(__name__)

EXTRACTION_PROMPT = """You are an event extraction system. Extract EVERY SINGLE event from this NYC events page.

For each event, provide:
- title: The event name
- description: Brief description (2-3 sentences max)
- date: The event date in YYYY-MM-DD format. For multi-day events, use the START date.
- time: FULL date and time, including the MONTH and DAY NUMBER (like "November 9" or "Dec 15") plus the time (like "7:00 PM")
- location: Where it takes place (be specific, include neighborhood or venue name)
- category: ONE of {categories}
- link: URL to event page (if available)
- ticketLink: URL to buy tickets (if available)

Rules for dates:
1. Always use MONTH + DAY format: "November 9", "December 15", "Jan 20".
2. Never use only a day-of-week name like "Saturday" when the page shows the actual date.
3. Never use relative dates like "Today", "Tomorrow" or "This Weekend".
4. If the date appears in a section heading above the event, combine it with the event's time.
5. Skip events that have no specific date unless they are explicitly ongoing or permanent.

Extract every event on the page, not just the first few.

Return ONLY a valid JSON array of events, with no explanatory text:
[{{"title":"...","date":"YYYY-MM-DD","description":"...","time":"...","location":"...","category":"...","link":"...","ticketLink":"..."}}]

Content to parse:
{content}"""

ENRICHMENT_PROMPT = """You are enriching event descriptions for an NYC events app. For each event below, write a compelling 2-3 sentence description using what you know about the artist, band, comedian, theater company, exhibit, or event.

Guidelines:
- For bands/musicians: mention their genre, style, and notable work
- For comedians: mention their comedy style and what they're known for
- For exhibits: describe what's being shown and the artist's significance
- For generic events (food festivals, markets, etc.): describe what attendees can expect
- If you don't know the specific event, write a good description based on the venue and event type
- Do NOT include the event title in the description

Return ONLY a JSON array of objects with "index" (1-based, matching the numbering below) and "description" fields.

Events:

{events}"""

DETAIL_PROMPT = """Extract event details from this event page. Return a JSON object with:
- description: A 2-3 sentence description of the event
- location: The full address or venue with neighborhood (be specific)
- date: The event date in YYYY-MM-DD format. For multi-day events, use the START date.
- time: COMPLETE date and time, including the full date (like "Thursday, October 30" or "November 1") plus the time (like "7:00 PM - 11:00 PM"). Never return a time without its date.

Current data: {current}

The date may appear in headings, metadata or the details section. If the date and time appear separately, combine them into one string.

Return ONLY a JSON object like: {{"description":"...","location":"...","date":"YYYY-MM-DD","time":"..."}}

Page content:
{content}"""


def _load_json(text: str) -> Optional[Any]:
    try:
        return json.loads(text)
    except ValueError:
        return None


def _salvage_truncated_array(text: str, max_attempts: int = 50) -> Optional[List[Any]]:
    """Recover the complete leading objects of an array cut off mid-stream."""
    start = text.find('[')
    if start == -1:
        return None

    body = text[start:]
    end = len(body)
    for _ in range(max_attempts):
        end = body.rfind('}', 0, end)
        if end == -1:
            return None
        parsed = _load_json(body[:end + 1] + ']')
        if isinstance(parsed, list):
            return parsed
    return None


def parse_candidates(text: str) -> List[Dict[str, Any]]:
    """
    Parse the model's reply into candidate event dictionaries.

    Accepts a bare JSON array, an object with an "events" array, or an
    array truncated by the output limit. Items that are not objects are
    dropped.

    Args:
        text: Raw model output

    Returns:
        List of candidate dictionaries (possibly empty)

    Raises:
        ExtractionParseError: If no event list can be recovered
    """
    if not text or not text.strip():
        raise ExtractionParseError("Empty extraction response")

    events = None

    array_match = re.search(r'\[[\s\S]*\]', text)
    if array_match:
        parsed = _load_json(array_match.group(0))
        if isinstance(parsed, list):
            events = parsed

    if events is None:
        object_match = re.search(r'\{[\s\S]*\}', text)
        if object_match:
            parsed = _load_json(object_match.group(0))
            if isinstance(parsed, dict) and isinstance(parsed.get('events'), list):
                events = parsed['events']

    if events is None:
        events = _salvage_truncated_array(text)
        if events is not None:
            logger.warning(f"Recovered {len(events)} events from a truncated response")

    if events is None:
        raise ExtractionParseError(f"No JSON event array found in response: {text[:200]!r}")

    candidates = [event for event in events if isinstance(event, dict)]
    if len(candidates) != len(events):
        logger.warning(f"Dropped {len(events) - len(candidates)} non-object items from extraction output")
    return candidates


def parse_details(text: str) -> Dict[str, Any]:
    """
    Parse a single JSON object from the model's reply.

    Raises:
        ExtractionParseError: If the reply holds no JSON object
    """
    match = re.search(r'\{[\s\S]*\}', text or '')
    parsed = _load_json(match.group(0)) if match else None
    if not isinstance(parsed, dict):
        raise ExtractionParseError(f"No JSON object found in response: {(text or '')[:200]!r}")
    return parsed


class _ClaudeModel:
    """Shared plumbing for single-prompt Claude calls."""

    MAX_TOKENS = 8192

    def __init__(self, api_key: str, model: str = 'claude-haiku-4-5', client: Any = None):
        self.model = model
        self.client = client or anthropic.Anthropic(api_key=api_key)

    def _complete(self, prompt: str, max_tokens: Optional[int] = None) -> str:
        try:
            response = self.client.messages.create(
                model=self.model,
                max_tokens=max_tokens or self.MAX_TOKENS,
                messages=[{'role': 'user', 'content': prompt}],
            )
        except anthropic.APIError as e:
            raise ExtractionError(f"Claude API failed: {e}") from e

        return ''.join(
            block.text for block in response.content
            if getattr(block, 'type', None) == 'text'
        )


class EventExtractor(_ClaudeModel):
    """Turns scraped page text into candidate event records."""

    DETAIL_CONTENT_CHARS = 8000
    DETAIL_MAX_TOKENS = 2048

    def __init__(
        self,
        api_key: str,
        model: str = 'claude-haiku-4-5',
        max_content_chars: int = 200000,
        categories: Optional[List[str]] = None,
        client: Any = None,
    ):
        super().__init__(api_key, model=model, client=client)
        self.max_content_chars = max_content_chars
        self.categories = categories or []

    def extract(self, content: str, source_url: str = '') -> List[Dict[str, Any]]:
        """
        Extract candidate events from page text.

        Args:
            content: Page text; truncated to max_content_chars
            source_url: Source URL, for logging only

        Returns:
            List of candidate dictionaries

        Raises:
            ExtractionError: If the model call fails
            ExtractionParseError: If the reply cannot be parsed
        """
        prompt = EXTRACTION_PROMPT.format(
            categories=', '.join(f'"{category}"' for category in self.categories),
            content=content[:self.max_content_chars],
        )

        logger.info(f"Calling {self.model} for {source_url or 'page'} ({len(content)} characters)")
        text = self._complete(prompt)
        logger.info(f"Extraction response for {source_url or 'page'}: {len(text)} characters")

        return parse_candidates(text)

    def extract_details(self, content: str, current: Dict[str, Any]) -> Dict[str, Any]:
        """
        Read fuller details for one event from its own page.

        Args:
            content: Detail page text; truncated to DETAIL_CONTENT_CHARS
            current: The event's stored document, shown to the model for context

        Returns:
            Dictionary with any of description, location, date and time

        Raises:
            ExtractionError: If the model call fails
            ExtractionParseError: If the reply cannot be parsed
        """
        prompt = DETAIL_PROMPT.format(
            current=json.dumps(current),
            content=content[:self.DETAIL_CONTENT_CHARS],
        )
        return parse_details(self._complete(prompt, max_tokens=self.DETAIL_MAX_TOKENS))


class DescriptionEnricher(_ClaudeModel):
    """Rewrites event descriptions from the model's background knowledge."""

    MAX_TOKENS = 4096

    def enrich(self, events: List[Any]) -> Dict[int, str]:
        """
        Request new descriptions for a batch of events.

        Args:
            events: EventRecords to describe

        Returns:
            Mapping of 0-based batch index to new description

        Raises:
            ExtractionError: If the model call fails
            ExtractionParseError: If the reply cannot be parsed
        """
        listing = '\n\n'.join(
            f"{number}. Title: {event.title}\n"
            f"   Location: {event.location or 'unknown'}\n"
            f"   Time: {event.raw_time or 'unknown'}\n"
            f"   Category: {event.category or 'unknown'}\n"
            f"   Current description: {event.description}"
            for number, event in enumerate(events, start=1)
        )

        text = self._complete(ENRICHMENT_PROMPT.format(events=listing))

        enrichments = {}
        for item in parse_candidates(text):
            index = item.get('index')
            description = item.get('description')
            if isinstance(index, int) and 1 <= index <= len(events) and isinstance(description, str) and description.strip():
                enrichments[index - 1] = description.strip()
        return enrichments
