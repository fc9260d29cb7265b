"""Fetching and parsing RSS feeds."""

from __future__ import annotations

import urllib.error
import urllib.request
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field

USER_AGENT = "gator"


@dataclass
class RSSItem:
    title: str = ""
    link: str = ""
    description: str = ""
    pub_date: str = ""


@dataclass
class RSSFeed:
    """The channel of an RSS document and its items."""

    title: str = ""
    link: str = ""
    description: str = ""
    items: list[RSSItem] = field(default_factory=list)


_ITEM_FIELDS = {
    "title": "title",
    "link": "link",
    "description": "description",
    "pubDate": "pub_date",
}
_CHANNEL_FIELDS = ("title", "link", "description")


def _local_name(tag: object) -> str:
    if not isinstance(tag, str):
        return ""
    return tag.rsplit("}", 1)[-1]


def _text(element: ET.Element) -> str:
    """Character data directly inside ``element``, nested elements skipped."""
    return (element.text or "") + "".join(child.tail or "" for child in element)


def _parse_item(element: ET.Element) -> RSSItem:
    item = RSSItem()
    for child in element:
        name = _ITEM_FIELDS.get(_local_name(child.tag))
        if name is not None:
            setattr(item, name, _text(child))
    return item


def parse_feed(data: bytes | str) -> RSSFeed:
    """Parse an RSS document; fields that are missing stay empty."""
    try:
        root = ET.fromstring(data)
    except ET.ParseError as err:
        raise ValueError(f"invalid feed XML: {err}") from err
    feed = RSSFeed()
    for channel in root:
        if _local_name(channel.tag) != "channel":
            continue
        for child in channel:
            name = _local_name(child.tag)
            if name == "item":
                feed.items.append(_parse_item(child))
            elif name in _CHANNEL_FIELDS:
                setattr(feed, name, _text(child))
    return feed


def fetch_feed(url: str) -> RSSFeed:
    """Download ``url`` and parse it as RSS, whatever the response status."""
    request = urllib.request.Request(url, headers={"User-Agent": USER_AGENT})
    try:
        with urllib.request.urlopen(request) as response:
            body = response.read()
    except urllib.error.HTTPError as err:
        with err:
            body = err.read()
    return parse_feed(body)