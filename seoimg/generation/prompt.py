"""Per-template field schemas, credit costs and webhook payload construction."""

from __future__ import annotations

from typing import Any

from seoimg.sanitize import sanitize_text
from seoimg.schemas.models import GenerationRequest, TemplateType

# Form fields each template carries; all start out as "" (unset).
TEMPLATE_FIELDS: dict[TemplateType, tuple[str, ...]] = {
    TemplateType.BLOG: ("title", "intro", "style", "custom_style", "colour", "custom_colour"),
    TemplateType.INFOGRAPHIC: ("content", "style", "custom_style", "colour", "custom_colour"),
}

REQUIRED_FIELDS: dict[TemplateType, tuple[str, ...]] = {
    TemplateType.BLOG: ("title", "intro"),
    TemplateType.INFOGRAPHIC: ("content",),
}

DEFAULT_COSTS: dict[TemplateType, int] = {
    TemplateType.BLOG: 5,
    TemplateType.INFOGRAPHIC: 10,
}

CUSTOM = "custom"


def empty_fields(template_type: TemplateType) -> dict[str, str]:
    return {name: "" for name in TEMPLATE_FIELDS[template_type]}


def missing_fields(template_type: TemplateType, fields: dict[str, str]) -> list[str]:
    """Required field names that are absent or blank."""
    return [name for name in REQUIRED_FIELDS[template_type] if not (fields.get(name) or "").strip()]


def is_item_valid(item: GenerationRequest) -> bool:
    return not missing_fields(item.template_type, item.fields)


def per_item_cost(template_type: TemplateType, costs: dict[str, int] | None = None) -> int:
    """Credit price for one image; ``costs`` is keyed by template value (see Settings.credit_costs)."""
    if costs and template_type.value in costs:
        return costs[template_type.value]
    return DEFAULT_COSTS[template_type]


def _resolve_choice(fields: dict[str, str], name: str) -> str:
    """Style/colour value; 'custom' defers to the custom_<name> field."""
    value = (fields.get(name) or "").strip()
    if value == CUSTOM:
        value = (fields.get(f"custom_{name}") or "").strip()
    return sanitize_text(value)


def build_image_detail(template_type: TemplateType, fields: dict[str, str]) -> str:
    """
    Free-text prompt sent as ``image_detail``.

    blog:        Blog post title: '<title>', Content: <intro>
    infographic: <content>
    Both get ", Style: <style>" and ", Colour: <colour>" when those are set.
    """
    if template_type is TemplateType.BLOG:
        title = sanitize_text(fields.get("title"))
        intro = sanitize_text(fields.get("intro"))
        detail = f"Blog post title: '{title}', Content: {intro}"
    else:
        detail = sanitize_text(fields.get("content"))

    style = _resolve_choice(fields, "style")
    if style:
        detail += f", Style: {style}"
    colour = _resolve_choice(fields, "colour")
    if colour:
        detail += f", Colour: {colour}"
    return detail


def build_payload(template_type: TemplateType, fields: dict[str, str]) -> dict[str, Any]:
    """JSON body for the webhook POST."""
    return {
        "image_type": template_type.image_type,
        "image_detail": build_image_detail(template_type, fields),
    }


def display_name(item: GenerationRequest) -> str:
    """Human label for an item (title for blogs, content for infographics)."""
    key = "title" if item.template_type is TemplateType.BLOG else "content"
    return item.fields.get(key, "")
