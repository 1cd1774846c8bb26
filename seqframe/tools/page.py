"""
Mock page executors.

An in-memory stand-in for a browser page, enough to exercise diffs and
scope changes:

    get_clickable_elements (query)    -> one line per element
    click_element          (mutation) -> diff on the clicked element, or a
                                         full snapshot of the new URL when
                                         a link navigates away

Real deployments replace these with Playwright, Selenium or in-page
implementations; the dispatcher only sees the Observation they return.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from seqframe.protocol.actions import ActionKind, Observation
from seqframe.protocol.errors import ExecutorFailure

from .base import Executor

if TYPE_CHECKING:
    from seqframe.protocol.state import ExecutionContext


@dataclass
class PageElement:
    selector: str
    tag: str
    text: str
    enabled: bool = True
    href: str | None = None

    @property
    def element_type(self) -> str:
        return "link" if self.tag == "a" else self.tag

    def render(self) -> str:
        attrs = f' id="{self.selector.lstrip("#")}"' if self.selector.startswith("#") else ""
        if self.href is not None:
            attrs += f' href="{self.href}"'
        if not self.enabled:
            attrs += " disabled"
        return f"<{self.tag}{attrs}>{self.text}</{self.tag}>"

    def to_dict(self) -> dict[str, Any]:
        return {
            "selector": self.selector,
            "text": self.text,
            "type": self.element_type,
            "enabled": self.enabled,
        }


def _default_elements() -> list[PageElement]:
    return [
        PageElement(selector="button", tag="button", text="Click me"),
        PageElement(selector="a", tag="a", text="Link", href="#"),
    ]


@dataclass
class MockPage:
    url: str = "about:blank"
    elements: list[PageElement] = field(default_factory=_default_elements)

    def find(self, selector: str) -> PageElement | None:
        return next((e for e in self.elements if e.selector == selector), None)

    def render(self) -> str:
        return "<div>" + "".join(e.render() for e in self.elements) + "</div>"


class GetClickableElements(Executor):
    name = "get_clickable_elements"
    kind = ActionKind.QUERY
    description = "Get all clickable elements on the current page"

    def __init__(self, page: MockPage):
        self.page = page

    @property
    def input_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "type": {"type": "string", "description": "Only return elements of this type"},
            },
            "required": [],
        }

    async def execute(self, payload: dict[str, Any], ctx: ExecutionContext) -> Observation:
        wanted = payload.get("type")
        elements = [
            e for e in self.page.elements if e.enabled and (wanted is None or e.element_type == wanted)
        ]
        lines = [f"{e.element_type} {e.selector}: {e.text}" for e in elements]
        return Observation(
            content="\n".join(lines),
            scope_key=self.page.url,
            data={"elements": [e.to_dict() for e in elements]},
        )


class ClickElement(Executor):
    name = "click_element"
    kind = ActionKind.MUTATION
    description = "Click a specific element on the page"

    def __init__(self, page: MockPage):
        self.page = page

    @property
    def input_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "selector": {"type": "string", "description": "CSS selector of the element"},
            },
            "required": ["selector"],
        }

    async def execute(self, payload: dict[str, Any], ctx: ExecutionContext) -> Observation:
        selector = payload.get("selector", "")
        element = self.page.find(selector)
        if element is None:
            raise ExecutorFailure(f"No element matches '{selector}'", snapshot=self.page.render())
        if not element.enabled:
            raise ExecutorFailure(f"Element '{selector}' is disabled", snapshot=self.page.render())

        if element.href and element.href != "#":
            self.page.url = element.href
            return Observation(content=self.page.render(), scope_key=self.page.url)

        element.text = "Clicked"
        return Observation(
            content=element.render(),
            selector=selector,
            snapshot=self.page.render(),
        )


def page_executors(page: MockPage) -> list[Executor]:
    return [GetClickableElements(page), ClickElement(page)]
