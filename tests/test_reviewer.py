"""Tests for the LLM-backed CEO reviewer."""
import json

import httpx
import pytest

from conftest import make_reviewer
from shelvey_core.exceptions import UpstreamError
from shelvey_core.reviewer import (
    UNPARSEABLE_REVIEW_FEEDBACK,
    extract_json_object,
    verdict_from_review,
)


class TestParsing:
    def test_extracts_object_from_prose(self):
        text = 'Here is my review:\n{"quality_score": 9, "approved": true}\nThanks!'

        assert extract_json_object(text) == {"quality_score": 9, "approved": True}

    def test_no_object(self):
        assert extract_json_object("Looks fine to me") is None
        assert extract_json_object("{not json}") is None

    @pytest.mark.parametrize("review,approved", [
        ({"quality_score": 7, "approved": True}, True),
        ({"quality_score": 6, "approved": True}, False),
        ({"quality_score": 10, "approved": False}, False),
        ({"quality_score": "8", "approved": True}, True),
        ({"approved": True}, False),
    ])
    def test_threshold(self, review, approved):
        assert verdict_from_review(review).approved is approved

    def test_default_feedback(self):
        assert verdict_from_review({"quality_score": 8, "approved": True}).feedback == "Review completed"


class TestReviewDeliverable:
    def test_sends_prompt_with_credentials(self, make_deliverable):
        requests = []
        reviewer = make_reviewer('{"quality_score": 8, "approved": true, "feedback": "Solid"}', requests=requests)
        deliverable = make_deliverable()

        verdict = reviewer.review_deliverable(deliverable)

        assert verdict.approved is True
        assert verdict.quality_score == 8
        request = requests[0]
        assert request.url.path == "/v1/chat/completions"
        assert request.headers["Authorization"] == "Bearer test-key"
        body = json.loads(request.content)
        assert body["model"] == "test-model"
        assert deliverable.name in body["messages"][1]["content"]

    def test_unparseable_reply_is_not_approved(self, make_deliverable):
        reviewer = make_reviewer("I love it, ship it.")

        verdict = reviewer.review_deliverable(make_deliverable())

        assert verdict.approved is False
        assert verdict.feedback == UNPARSEABLE_REVIEW_FEEDBACK

    def test_http_error_raises_upstream(self, make_deliverable):
        reviewer = make_reviewer("rate limited", status_code=429)

        with pytest.raises(UpstreamError, match="Failed to get CEO review from AI"):
            reviewer.review_deliverable(make_deliverable())

    def test_transport_error_raises_upstream(self, make_deliverable):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        reviewer = make_reviewer(handler=handler)

        with pytest.raises(UpstreamError):
            reviewer.review_deliverable(make_deliverable())


class TestReviewWebsite:
    def test_html_is_truncated_in_prompt(self, make_website):
        requests = []
        reviewer = make_reviewer('{"quality_score": 9, "approved": true, "feedback": "Clean"}', requests=requests)
        website = make_website(html_content="<p>" + "x" * 10000 + "</p>")

        reviewer.review_website(website)

        prompt = json.loads(requests[0].content)["messages"][1]["content"]
        assert "x" * 3997 in prompt
        assert "x" * 4001 not in prompt

    def test_unparseable_reply_becomes_feedback(self, make_website):
        reply = "The layout is cluttered. " * 40
        reviewer = make_reviewer(reply)

        verdict = reviewer.review_website(make_website())

        assert verdict.approved is False
        assert verdict.feedback == reply[:500]
