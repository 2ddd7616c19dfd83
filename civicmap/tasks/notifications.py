"""Non-Celery background tasks: Slack alerts for moderators."""

import logging
import os

import httpx

from civicmap.schemas import VoteResult

logger = logging.getLogger(__name__)


def _post_to_slack(payload: dict, issue_id: str) -> None:
    slack_webhook_url = os.environ.get("SLACK_WEBHOOK_URL")
    if not slack_webhook_url:
        logger.warning("SLACK_WEBHOOK_URL not set, skipping notification")
        return

    try:
        with httpx.Client(timeout=5.0) as client:
            response = client.post(slack_webhook_url, json=payload)
            response.raise_for_status()

        logger.info(
            "Slack notification sent successfully",
            extra={"issue_id": issue_id},
        )

    except httpx.HTTPError:
        logger.exception(
            "Failed to send Slack notification",
            extra={"issue_id": issue_id},
        )


def _blocks(header: str, fields: dict[str, str]) -> dict:
    return {
        "blocks": [
            {
                "type": "header",
                "text": {"type": "plain_text", "text": header},
            },
            {
                "type": "section",
                "fields": [
                    {"type": "mrkdwn", "text": f"*{label}:*\n{value}"}
                    for label, value in fields.items()
                ],
            },
        ]
    }


def notify_issue_reported(issue_id: str, issue_type: str) -> None:
    """Tell moderators a new report is waiting for corroboration.

    This is a FastAPI BackgroundTask (not Celery), run after the response.
    """
    logger.info("Issue reported", extra={"issue_id": issue_id})
    _post_to_slack(
        _blocks("🆕 New Issue Reported", {"Issue": issue_id, "Type": issue_type}),
        issue_id,
    )


def notify_lifecycle_transition(result: VoteResult) -> None:
    """Alert moderators when a vote approved, delisted or resolved an issue."""
    if result.newly_approved:
        header = "✅ Issue Approved by Votes"
    elif result.delisted:
        header = "🚫 Issue Delisted by Downvotes"
    elif result.resolved:
        header = "🏁 Issue Resolved by Removal Votes"
    else:
        return

    _post_to_slack(
        _blocks(header, {
            "Issue": result.issue_id,
            "Votes": f"{result.true_votes} up / {result.false_votes} down / {result.resolve_votes} resolve",
        }),
        result.issue_id,
    )
