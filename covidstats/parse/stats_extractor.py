"""Extract the statistics counters from the source page.

The page renders one card per indicator inside a common container; the
indicator is identified only by the card's position among its siblings.
:class:`StatLayout` holds that structural path and the field → position
table so both can be tested and swapped when the page is redesigned.

Every field is extracted independently. A missing or unreadable card makes
that field ``None`` and sends one diagnostic event; it never aborts the rest.
"""
import logging
import re
from dataclasses import dataclass, field, replace
from typing import Mapping, Optional

from selectolax.parser import HTMLParser, Node

from covidstats.diagnostics import DiagnosticSink
from covidstats.parse.models import NUMERIC_FIELDS, PartialSample

logger = logging.getLogger(__name__)

DEFAULT_CONTAINER_SELECTOR = (
    "body > section.lastsection.container.box.effect7 > div > div > div > div"
)
DEFAULT_POSITIONS = {
    "primary_count": 2,
    "suspects": 3,
    "recovered": 4,
    "deaths": 5,
}

# Plain digits, or groups of three after a thousands separator ("1 234", "1.234")
_COUNT = re.compile(r"[0-9]+|[0-9]{1,3}(?:[\s.,'][0-9]{3})+")
_SEPARATORS = re.compile(r"[\s.,']")


@dataclass(frozen=True)
class StatLayout:
    """Where each counter lives in the page."""

    container_selector: str = DEFAULT_CONTAINER_SELECTOR
    item_tag: str = "div"
    value_selector: str = "span.big-number.text-black"
    positions: Mapping[str, int] = field(default_factory=lambda: dict(DEFAULT_POSITIONS))

    def __post_init__(self):
        if set(self.positions) != set(NUMERIC_FIELDS):
            raise ValueError(
                f"positions must map exactly {', '.join(NUMERIC_FIELDS)}, got {sorted(self.positions)}"
            )
        if any(index < 1 for index in self.positions.values()):
            raise ValueError("positions are 1-based")

    def selector_for(self, index: int) -> str:
        """CSS equivalent of the lookup, reported in diagnostics."""
        return (
            f"{self.container_selector} > {self.item_tag}:nth-child({index})"
            f" > {self.value_selector}"
        )

    def with_container(self, selector: Optional[str]) -> "StatLayout":
        return replace(self, container_selector=selector) if selector else self


DEFAULT_LAYOUT = StatLayout()


def parse_count(text: Optional[str]) -> Optional[int]:
    """Parse a counter's text. Anything but a plain (grouped) integer is ``None``.

    A separator counts as grouping only when exactly three digits follow it,
    so a decimal such as ``"1.5"`` is rejected instead of read as 15.
    """
    if text is None:
        return None
    stripped = text.strip()
    if not _COUNT.fullmatch(stripped):
        return None
    return int(_SEPARATORS.sub("", stripped))


def _element_children(node: Node) -> list[Node]:
    # Text and comment nodes do not count for :nth-child
    return [
        child
        for child in node.iter(include_text=False)
        if child.tag and not child.tag.startswith(("-", "_", "!"))
    ]


def find_stat_node(parser: HTMLParser, layout: StatLayout, index: int) -> Optional[Node]:
    """Locate the value node of the card at 1-based ``index``, or ``None``."""
    container = parser.css_first(layout.container_selector)
    if container is None:
        return None
    children = _element_children(container)
    if index > len(children):
        return None
    item = children[index - 1]
    if item.tag != layout.item_tag:
        return None
    return item.css_first(layout.value_selector)


def extract_stats(
    html_content: str,
    sink: DiagnosticSink,
    layout: StatLayout = DEFAULT_LAYOUT,
) -> PartialSample:
    """Extract the four counters from the page HTML."""
    parser = HTMLParser(html_content or "")
    values: dict[str, Optional[int]] = {}

    for name in NUMERIC_FIELDS:
        index = layout.positions[name]
        node = find_stat_node(parser, layout, index)

        if node is None:
            sink.capture_event(
                "element null",
                {"field": name, "index": index, "selector": layout.selector_for(index)},
            )
            values[name] = None
            continue

        text = node.text(strip=True)
        value = parse_count(text)
        if value is None:
            sink.capture_event(
                "element not numeric",
                {
                    "field": name,
                    "index": index,
                    "selector": layout.selector_for(index),
                    "text": text[:100],
                },
            )
        values[name] = value

    sample = PartialSample(**values)
    logger.debug(f"Extracted {sample.model_dump()}")
    return sample
