"""CEO reviewer backed by a hosted LLM.

Talks to an OpenAI-compatible ``/chat/completions`` endpoint with httpx.
The reviewer is called before any database write, so a failed call leaves
no side effects behind.
"""
import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from . import models
from .config import Settings, get_settings
from .exceptions import UpstreamError

logger = logging.getLogger("shelvey-core.reviewer")

APPROVAL_THRESHOLD = 7
WEBSITE_HTML_PROMPT_LIMIT = 4000
WEBSITE_FALLBACK_FEEDBACK_LIMIT = 500
UNPARSEABLE_REVIEW_FEEDBACK = "Unable to parse review. Please try again."

_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")

DELIVERABLE_SYSTEM_PROMPT = (
    "You are a discerning CEO with high standards. Be constructive but thorough in your reviews."
)
WEBSITE_SYSTEM_PROMPT = "You are a CEO reviewing websites. Be constructive and professional."


@dataclass
class ReviewVerdict:
    approved: bool
    feedback: str
    quality_score: Optional[int] = None


def extract_json_object(text: str) -> Optional[dict[str, Any]]:
    """Return the outermost ``{...}`` object embedded in ``text``, if any."""
    match = _JSON_OBJECT.search(text or "")
    if not match:
        return None
    try:
        parsed = json.loads(match.group(0))
    except json.JSONDecodeError:
        return None
    return parsed if isinstance(parsed, dict) else None


def verdict_from_review(review: dict[str, Any], default_feedback: str = "Review completed") -> ReviewVerdict:
    """Approve only when the model approved and scored at or above the threshold."""
    try:
        score = int(review.get("quality_score"))
    except (TypeError, ValueError):
        score = None
    approved = review.get("approved") is True and score is not None and score >= APPROVAL_THRESHOLD
    return ReviewVerdict(
        approved=approved,
        feedback=review.get("feedback") or default_feedback,
        quality_score=score,
    )


def build_deliverable_prompt(deliverable: models.Deliverable) -> str:
    content = json.dumps(deliverable.generated_content, indent=2, default=str)
    return f"""You are the CEO Agent reviewing a {deliverable.deliverable_type} deliverable for a business project.

Deliverable Name: {deliverable.name}
Description: {deliverable.description or 'No description provided'}
Generated Content: {content}

As CEO, evaluate this deliverable on:
1. Quality and professionalism (is it market-ready?)
2. Brand consistency and messaging
3. Strategic alignment with business goals
4. Technical execution

Respond in JSON format only:
{{
  "quality_score": <1-10>,
  "approved": <true/false>,
  "feedback": "<constructive feedback>",
  "strengths": ["<strength 1>", "<strength 2>"],
  "improvements": ["<improvement 1>", "<improvement 2>"]
}}

Only approve if quality_score is {APPROVAL_THRESHOLD} or higher."""


def build_website_prompt(website: models.GeneratedWebsite) -> str:
    html = (website.html_content or "")[:WEBSITE_HTML_PROMPT_LIMIT]
    return f"""Review this website HTML for quality, design, UX, and brand alignment. Respond with JSON: {{ "quality_score": 1-10, "approved": true/false, "feedback": "your feedback" }}

Website Name: {website.name}
HTML (truncated): {html}"""


class CEOReviewer:
    """Automated CEO sign-off using a chat completion model."""

    def __init__(self, settings: Optional[Settings] = None, client: Optional[httpx.Client] = None):
        self.settings = settings or get_settings()
        self._client = client or httpx.Client(
            base_url=self.settings.llm_base_url,
            timeout=self.settings.llm_timeout_seconds,
        )

    def close(self) -> None:
        self._client.close()

    def _complete(self, system_prompt: str, user_prompt: str) -> str:
        """Run one chat completion and return the assistant text."""
        try:
            response = self._client.post(
                "/chat/completions",
                headers={"Authorization": f"Bearer {self.settings.llm_api_key}"},
                json={
                    "model": self.settings.llm_model,
                    "messages": [
                        {"role": "system", "content": system_prompt},
                        {"role": "user", "content": user_prompt},
                    ],
                },
            )
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"LLM review request failed with HTTP {e.response.status_code}")
            raise UpstreamError("Failed to get CEO review from AI") from e
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"LLM review request failed: {e}")
            raise UpstreamError("Failed to get CEO review from AI") from e

        choices = data.get("choices") or [{}]
        return (choices[0].get("message") or {}).get("content") or ""

    def review_deliverable(self, deliverable: models.Deliverable) -> ReviewVerdict:
        text = self._complete(DELIVERABLE_SYSTEM_PROMPT, build_deliverable_prompt(deliverable))
        review = extract_json_object(text)
        if review is None:
            logger.warning(f"Could not parse CEO review for deliverable {deliverable.id}")
            return ReviewVerdict(approved=False, feedback=UNPARSEABLE_REVIEW_FEEDBACK)
        verdict = verdict_from_review(review)
        logger.info(
            f"CEO review of deliverable {deliverable.id}: score={verdict.quality_score} approved={verdict.approved}"
        )
        return verdict

    def review_website(self, website: models.GeneratedWebsite) -> ReviewVerdict:
        text = self._complete(WEBSITE_SYSTEM_PROMPT, build_website_prompt(website))
        review = extract_json_object(text)
        if review is None:
            return ReviewVerdict(approved=False, feedback=text[:WEBSITE_FALLBACK_FEEDBACK_LIMIT] or "Review completed")
        verdict = verdict_from_review(review)
        logger.info(
            f"CEO review of website {website.id}: score={verdict.quality_score} approved={verdict.approved}"
        )
        return verdict

    def synthesize_rejection_feedback(self, website: models.GeneratedWebsite) -> str:
        """Write the rejection reason for a website the CEO turned down."""
        prompt = (
            build_website_prompt(website)
            + "\n\nThe CEO has rejected this website. Explain concisely what must change."
        )
        text = self._complete(WEBSITE_SYSTEM_PROMPT, prompt)
        review = extract_json_object(text)
        if review and review.get("feedback"):
            return str(review["feedback"])
        return text[:WEBSITE_FALLBACK_FEEDBACK_LIMIT] or "Rejected by CEO Agent"
