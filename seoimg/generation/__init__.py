"""Webhook payloads, the webhook client and single-image generation."""

from seoimg.generation.client import ImageGenerator, WebhookClient
from seoimg.generation.prompt import build_image_detail, build_payload, is_item_valid, per_item_cost
from seoimg.generation.single import generate_single

__all__ = [
    "ImageGenerator",
    "WebhookClient",
    "build_image_detail",
    "build_payload",
    "generate_single",
    "is_item_valid",
    "per_item_cost",
]
