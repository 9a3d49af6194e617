import logging

import requests

logger = logging.getLogger(__name__)


def send_message_to_slack(webhook_url: str, text: str) -> bool:
    """Post a message to a Slack webhook. Failures are logged, not raised."""
    if not webhook_url:
        logger.warning("Slack webhook not configured")
        return False

    try:
        response = requests.post(webhook_url, json={'text': text}, timeout=10)
        response.raise_for_status()
    except requests.RequestException as e:
        logger.error(f"Failed to send Slack message: {e}")
        return False

    logger.info("Slack message sent successfully")
    return True
