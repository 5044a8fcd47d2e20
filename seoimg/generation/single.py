"""One-off image generation outside a bulk run."""

from __future__ import annotations

import logging

from seoimg.credits.ledger import CreditLedger
from seoimg.errors import (
    CreditDebitError,
    GenerationCallError,
    InsufficientCreditsError,
    RunActiveError,
    ValidationError,
)
from seoimg.generation.client import ImageGenerator
from seoimg.generation.prompt import build_payload, missing_fields, per_item_cost
from seoimg.notifications.log import NotificationLog
from seoimg.sanitize import sanitize_fields
from seoimg.schemas.models import NotificationKind, TemplateType

logger = logging.getLogger(__name__)

GENERIC_FAILURE = "Failed to generate image. Please try again."
INVALID_FORMAT = "Invalid content format. Please check your input and try again."


def _user_message(error: Exception) -> str:
    text = str(error)
    if not text:
        return GENERIC_FAILURE
    if "JSON" in text:
        return INVALID_FORMAT
    return text


async def generate_single(
    template_type: TemplateType,
    fields: dict[str, str],
    *,
    account_id: str,
    ledger: CreditLedger,
    generator: ImageGenerator,
    notifications: NotificationLog,
    costs: dict[str, int] | None = None,
    bulk_active: bool = False,
) -> str:
    """
    Debit one image's cost, call the webhook and return the base64 image.
    Every refusal or failure is also reported through ``notifications``.
    Credits are not refunded when the webhook call fails.
    """
    template_type = TemplateType(template_type)
    if bulk_active:
        notifications.notify(
            NotificationKind.WARNING,
            "Bulk Processing Active",
            "Please wait for bulk processing to complete before generating single images.",
        )
        raise RunActiveError("Bulk processing is active")

    fields = sanitize_fields(dict(fields))
    missing = missing_fields(template_type, fields)
    if missing:
        message = f"Please fill in: {', '.join(missing)}"
        notifications.notify(NotificationKind.WARNING, "Missing Fields", message)
        raise ValidationError(message)

    cost = per_item_cost(template_type, costs)
    balance = ledger.get_balance(account_id)
    if balance < cost:
        message = (
            f"You need {cost} credits to generate a {template_type.value} image. "
            f"You have {balance} credits remaining."
        )
        notifications.notify(NotificationKind.ERROR, "Insufficient Credits", message)
        raise InsufficientCreditsError(cost, balance, message)

    try:
        if not ledger.debit(account_id, cost, template_type=template_type):
            raise CreditDebitError("Failed to deduct credits. Please try again.")
        image = await generator.generate(build_payload(template_type, fields))
    except (CreditDebitError, GenerationCallError) as e:
        logger.warning("Single %s generation failed: %s", template_type.value, e)
        notifications.notify(
            NotificationKind.ERROR,
            "Generation Failed",
            _user_message(e),
            template_type=template_type,
        )
        raise

    notifications.notify(
        NotificationKind.SUCCESS,
        "Image Generated Successfully!",
        f"Your {template_type.label} is ready for download. {cost} credits used.",
        template_type=template_type,
        image_count=1,
        duration_ms=5000,
    )
    return image
