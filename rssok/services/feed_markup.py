"""RSS markup parsing and serialization.

Converts upstream RSS 2.0 markup into a SourceChannel and a FeedDocument
back into markup, using lxml.
"""

from typing import Optional

from lxml import etree

from rssok.exceptions import ParseError
from rssok.models.schemas import FeedDocument, SourceChannel, SourceItem

ATOM_NS = "http://www.w3.org/2005/Atom"
RSS_MIME_TYPE = "application/rss+xml"
XML_DECLARATION = b'<?xml version="1.0" encoding="UTF-8"?>\n'


def _parser() -> etree.XMLParser:
    return etree.XMLParser(resolve_entities=False, no_network=True, huge_tree=False)


def _child_text(element: etree._Element, tag: str) -> Optional[str]:
    child = element.find(tag)
    if child is None:
        return None
    return child.text or ""


def _first_image_url(item: etree._Element) -> Optional[str]:
    """Return the first declared image URL of an item.

    ``<image><url>`` wins; otherwise the first enclosure with an image type.
    """
    for image in item.findall("image"):
        url = (_child_text(image, "url") or "").strip()
        if url:
            return url

    for enclosure in item.findall("enclosure"):
        if enclosure.get("type", "").lower().startswith("image/"):
            url = enclosure.get("url", "").strip()
            if url:
                return url

    return None


def parse_channel(markup) -> SourceChannel:
    """Parse RSS markup into a SourceChannel.

    Args:
        markup: Feed markup as str or bytes

    Returns:
        SourceChannel with items in document order

    Raises:
        ParseError: If the markup is not well-formed or has no rss/channel
    """
    if isinstance(markup, str):
        markup = markup.encode("utf-8")

    try:
        root = etree.fromstring(markup, parser=_parser())
    except (etree.XMLSyntaxError, ValueError) as e:
        raise ParseError(f"Malformed feed markup: {e}") from e

    if root is None or root.tag != "rss":
        raise ParseError("Feed markup has no <rss> root element")

    channel = root.find("channel")
    if channel is None:
        raise ParseError("Feed markup has no <channel> element")

    items = [
        SourceItem(
            title=_child_text(item, "title"),
            description=_child_text(item, "description"),
            pub_date=_child_text(item, "pubDate"),
            link=_child_text(item, "link"),
            image_url=_first_image_url(item),
        )
        for item in channel.findall("item")
    ]

    return SourceChannel(title=_child_text(channel, "title"), items=items)


def _text_element(parent: etree._Element, tag: str, text: str) -> etree._Element:
    element = etree.SubElement(parent, tag)
    element.text = text
    return element


def build_tree(document: FeedDocument) -> etree._Element:
    """Build the lxml tree for a feed document."""
    channel = document.channel

    rss = etree.Element("rss", nsmap={"atom": ATOM_NS})
    rss.set("version", "2.0")

    channel_el = etree.SubElement(rss, "channel")
    _text_element(channel_el, "title", channel.title)
    _text_element(channel_el, "link", channel.link)
    _text_element(channel_el, "description", channel.description)
    _text_element(channel_el, "pubDate", channel.pub_date)
    _text_element(channel_el, "lastBuildDate", channel.last_build_date)
    etree.SubElement(
        channel_el,
        f"{{{ATOM_NS}}}link",
        rel="self",
        type=RSS_MIME_TYPE,
        href=channel.self_link,
    )

    for item in channel.items:
        item_el = etree.SubElement(channel_el, "item")
        _text_element(item_el, "title", item.title)
        _text_element(item_el, "description", item.description)
        _text_element(item_el, "pubDate", item.pub_date)
        _text_element(item_el, "link", item.link)
        _text_element(item_el, "guid", item.guid)
        if item.enclosure is not None:
            etree.SubElement(
                item_el,
                "enclosure",
                url=item.enclosure.url,
                type=item.enclosure.mime_type,
                length=item.enclosure.length,
            )

    return rss


def serialize_feed(document: FeedDocument) -> bytes:
    """Serialize a feed document to UTF-8 markup with an XML declaration."""
    body = etree.tostring(build_tree(document), encoding="UTF-8", pretty_print=True)
    return XML_DECLARATION + body
