"""
Slack notifications for status transitions.

`NotificationComposer` turns a transition (status, actor, affected items) into
ready-to-send Slack messages per channel; it does no I/O besides reading the
officer lists and user registry for tags. `SlackNotifier` resolves each
channel's webhook URL from secrets at send time and delivers the messages.
"""
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence

import requests

from core.config import NamedRanges, SlackConfig
from core.secrets import SecretsResolver
from models.purchasing import Item, ProjectContext, TargetUsers
from schemas.statuses import SlackChannel, Status
from services.authorization import UserRegistry
from services.formatting import dedupe, make_list, render_template, truncate_string
from services.sheets import TabularStore
from services.slack import SlackDeliveryError, SlackWebhookClient

logger = logging.getLogger(__name__)

OFFICER_OPT_OUT = "NO"
ITEM_NAME_MAX_CHARS = 45
TOO_MANY_ITEMS_TEXT = (
    "Sorry, there were too many items to list. Open the project sheet to view them instead."
)


@dataclass
class ChannelMessages:
    """Messages bound for one logical channel, in send order."""
    channel: SlackChannel
    messages: List[Dict[str, Any]] = field(default_factory=list)


def _price(value) -> str:
    return f"{value:.2f}" if isinstance(value, (int, float)) else "UNKNOWN"


def format_item_field(item: Item) -> Dict[str, Any]:
    """Slack attachment field describing one item."""
    value = f"${_price(item.total_price)}\n\t ({item.quantity}x @ ${_price(item.unit_price)}/e)"
    if item.supplier or item.product_num:
        value += "\n\t"
    if item.product_num:
        value += f"`#{item.product_num}`"
    if item.supplier:
        value += f" from {item.supplier}"
    if item.requestor_comments:
        value += f"\n Requestor Comment: \n> _{item.requestor_comments}_"
    if item.officer_comments:
        value += f"\n Officer Comment: \n> _{item.officer_comments}_"
    return {"title": truncate_string(item.name, ITEM_NAME_MAX_CHARS), "value": value, "short": True}


class NotificationComposer:
    """Builds Slack messages for a transition."""

    def __init__(
        self,
        store: TabularStore,
        registry: UserRegistry,
        named_ranges: NamedRanges,
        slack: SlackConfig,
    ):
        self.store = store
        self.registry = registry
        self.named_ranges = named_ranges
        self.slack = slack

    def _officer_tags(self) -> List[str]:
        officers = self.store.get_named_range_rows(self.named_ranges.approved_officers)
        opt_outs = self.store.get_named_range_rows(self.named_ranges.notify_approved_officers)

        tags = []
        for index, row in enumerate(officers):
            email = str(row[0]) if row and row[0] is not None else ""
            if not email:
                continue
            opt_row = opt_outs[index] if index < len(opt_outs) else []
            flag = opt_row[0] if opt_row else ""
            if flag == OFFICER_OPT_OUT:
                continue
            tags.append(self.registry.slack_tag(email))
        return [t for t in tags if t]

    def resolve_user_tags(self, status: Status, requestors: Sequence[str]) -> str:
        """Mention string for the status' target users."""
        target = status.slack.target_users
        if target == TargetUsers.CHANNEL:
            return self.slack.broadcast_tag
        if target == TargetUsers.OFFICERS:
            return make_list(self._officer_tags(), "or")
        if target == TargetUsers.REQUESTORS:
            tags = [self.registry.slack_tag(email) for email in dedupe(requestors)]
            return make_list(tags, "")
        return ""

    def build_messages(
        self,
        status: Status,
        actor_name: str,
        requestors: Sequence[str],
        num_marked: int,
        project: ProjectContext,
        tag_users: bool = True,
    ) -> List[str]:
        """Fill in every message template of `status`."""
        templates = status.slack.message_templates
        if not templates:
            return []

        user_tags = self.resolve_user_tags(status, requestors) if tag_users else ""
        values = {
            "emoji": status.slack.emoji,
            "userTags": f"{user_tags}:" if user_tags else "",
            "userFullName": actor_name,
            "numMarked": str(num_marked),
            "projectName": project.name,
            "projectSheetUrl": project.sheet_url,
            "plural": "" if num_marked == 1 else "s",
        }
        return [" ".join(render_template(t, values).split()) for t in templates]

    def build_item_list_action(
        self,
        items: Sequence[Item],
        project: ProjectContext,
        actor_name: str,
        status: Status,
    ) -> Dict[str, Any]:
        """Button whose value is the JSON item-list message, grouped by category."""
        by_category: Dict[str, List[Item]] = {}
        for item in items:
            by_category.setdefault(item.category, []).append(item)

        item_list_message = {
            "response_type": "ephemeral",
            "replace_original": False,
            "text": "Here are all the items that were affected by that action:",
            "attachments": [
                {
                    "author_name": f"{actor_name} - {status.text}",
                    "title": category,
                    "title_link": project.sheet_url,
                    "color": project.color,
                    "fields": [format_item_field(i) for i in category_items],
                    "footer": project.name,
                    "footer_icon": self.slack.icon_url,
                    "mrkdwn_in": ["fields"],
                }
                for category, category_items in by_category.items()
            ],
            "parse": "full",
            "mrkdwn": True,
        }

        value = json.dumps(item_list_message)
        if len(value) > self.slack.attachment_max_chars:
            logger.info(f"Item list for {len(items)} items is {len(value)} chars; sending fallback")
            item_list_message["text"] = TOO_MANY_ITEMS_TEXT
            item_list_message["attachments"] = []
            value = json.dumps(item_list_message)

        return {
            "type": "button",
            "text": "List Items",
            "name": self.slack.item_list_action,
            "value": value,
        }

    def compose(
        self,
        status: Status,
        actor_name: str,
        requestors: Sequence[str],
        items: Sequence[Item],
        project: ProjectContext,
    ) -> List[ChannelMessages]:
        """Messages for every channel of `status`. Only the first channel tags users."""
        composed = []
        for index, channel in enumerate(status.slack.channels):
            texts = self.build_messages(
                status, actor_name, requestors, len(items), project, tag_users=(index == 0)
            )
            if not texts:
                continue
            messages: List[Dict[str, Any]] = [{"text": t} for t in texts]
            messages[-1]["attachments"] = [{
                "callback_id": "itemNotification",
                "fallback": f"<{project.sheet_url}|View Items>",
                "actions": [
                    self.build_item_list_action(items, project, actor_name, status),
                    {"type": "button", "text": "Open Sheet ↗", "url": project.sheet_url},
                ],
                "color": project.color,
            }]
            composed.append(ChannelMessages(channel=channel, messages=messages))
        return composed


class SlackNotifier:
    """Composes and delivers transition notifications."""

    def __init__(
        self,
        composer: NotificationComposer,
        client: SlackWebhookClient,
        secrets: SecretsResolver,
    ):
        self.composer = composer
        self.client = client
        self.secrets = secrets

    def notify(
        self,
        status: Status,
        actor_name: str,
        requestors: Sequence[str],
        items: Sequence[Item],
        project: ProjectContext,
    ) -> int:
        """Send the notification for a transition. Returns the number of messages sent.

        Every channel is attempted; failures are collected and raised together
        as `SlackDeliveryError` afterwards.
        """
        failures = []
        sent = 0
        for bundle in self.composer.compose(status, actor_name, requestors, items, project):
            url = self.secrets.webhook_url(bundle.channel.value)
            if not url:
                logger.error(f"No webhook configured for Slack channel '{bundle.channel.value}'")
                failures.append((bundle.channel.value, "no webhook configured"))
                continue
            try:
                for message in bundle.messages:
                    self.client.send(message, url)
                    sent += 1
            except requests.RequestException as e:
                logger.error(f"Slack delivery to '{bundle.channel.value}' failed: {e}")
                failures.append((bundle.channel.value, str(e)))

        if failures:
            raise SlackDeliveryError(failures)
        logger.info(f"Sent {sent} Slack message(s) for {status.text!r}")
        return sent
