"""Turn a Message into display sections.

Structured replies render in a fixed order: summary, steps, key points,
examples, related topics. Each section is skipped when its field is missing or
empty. The raw content always follows as a trailing plain-text block. Messages
without a structured payload render as that block alone.
"""
import html
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from models import Message

KEY_POINT_MARKER = "→"

SectionKind = Literal["summary", "steps", "keyPoints", "examples", "relatedTopics", "content"]


class RenderedStep(BaseModel):
    number: int
    title: str
    description: str
    details: List[str] = Field(default_factory=list)


class Section(BaseModel):
    kind: SectionKind
    title: Optional[str] = None
    text: Optional[str] = None
    items: List[str] = Field(default_factory=list)
    steps: List[RenderedStep] = Field(default_factory=list)


class RenderedMessage(BaseModel):
    message_id: str
    role: str
    sections: List[Section]


def _content_section(message: Message) -> Section:
    return Section(kind="content", text=message.content)


def render_message(message: Message) -> RenderedMessage:
    structured = message.structured
    if structured is None:
        return RenderedMessage(message_id=message.id, role=message.role, sections=[_content_section(message)])

    sections = []
    if structured.summary:
        sections.append(Section(kind="summary", title="Summary", text=structured.summary))

    if structured.steps:
        steps = [
            RenderedStep(number=i, title=step.title, description=step.description, details=step.details or [])
            for i, step in enumerate(structured.steps, start=1)
        ]
        sections.append(Section(kind="steps", title="Step-by-Step Guide", steps=steps))

    if structured.key_points:
        items = [f"{KEY_POINT_MARKER} {point}" for point in structured.key_points]
        sections.append(Section(kind="keyPoints", title="Key Points", items=items))

    if structured.examples:
        sections.append(Section(kind="examples", title="Examples", items=list(structured.examples)))

    if structured.related_topics:
        sections.append(Section(kind="relatedTopics", title="Related Topics", items=list(structured.related_topics)))

    sections.append(_content_section(message))
    return RenderedMessage(message_id=message.id, role=message.role, sections=sections)


def _section_html(section: Section) -> str:
    esc = html.escape
    if section.kind == "content":
        return f'<div class="content" style="white-space: pre-wrap">{esc(section.text or "")}</div>'

    parts = [f'<section class="{section.kind}"><h4>{esc(section.title or "")}</h4>']
    if section.kind == "summary":
        parts.append(f"<p>{esc(section.text or '')}</p>")
    elif section.kind == "steps":
        parts.append("<ol>")
        for step in section.steps:
            parts.append(f"<li><strong>{esc(step.title)}</strong><p>{esc(step.description)}</p>")
            if step.details:
                parts.append("<ul>" + "".join(f"<li>{esc(d)}</li>" for d in step.details) + "</ul>")
            parts.append("</li>")
        parts.append("</ol>")
    elif section.kind == "relatedTopics":
        parts.append("".join(f'<span class="tag">{esc(item)}</span>' for item in section.items))
    else:
        parts.append("<ul>" + "".join(f"<li>{esc(item)}</li>" for item in section.items) + "</ul>")
    parts.append("</section>")
    return "".join(parts)


def to_html(rendered: RenderedMessage) -> str:
    body = "".join(_section_html(section) for section in rendered.sections)
    return f'<div class="message {rendered.role}" data-id="{html.escape(rendered.message_id)}">{body}</div>'
