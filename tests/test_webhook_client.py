"""Tests for the webhook client, using httpx.MockTransport in place of the network."""

import asyncio
import json

import httpx
import pytest

from conftest import WEBHOOK_URL, webhook_transport
from seoimg.errors import GenerationCallError
from seoimg.generation.client import NO_IMAGE_MESSAGE, WebhookClient

PAYLOAD = {"image_type": "Featured Image", "image_detail": "Blog post title: 'T', Content: I"}


def _call(responses, seen=None):
    client = WebhookClient(WEBHOOK_URL, transport=webhook_transport(responses, seen))
    return asyncio.run(client.generate(PAYLOAD))


def test_returns_image_and_posts_json():
    seen: list[httpx.Request] = []
    image = _call([httpx.Response(200, json={"image": "iVBORw0KGgo="})], seen)
    assert image == "iVBORw0KGgo="
    assert len(seen) == 1
    assert seen[0].method == "POST"
    assert str(seen[0].url) == WEBHOOK_URL
    assert json.loads(seen[0].content) == PAYLOAD


def test_http_error_status():
    with pytest.raises(GenerationCallError) as exc:
        _call([httpx.Response(500)])
    assert str(exc.value).startswith("HTTP error! status: 500")
    assert exc.value.status_code == 500


def test_missing_image():
    with pytest.raises(GenerationCallError, match=NO_IMAGE_MESSAGE):
        _call([httpx.Response(200, json={"status": "ok"})])


def test_empty_image():
    with pytest.raises(GenerationCallError, match=NO_IMAGE_MESSAGE):
        _call([httpx.Response(200, json={"image": ""})])


def test_invalid_json():
    with pytest.raises(GenerationCallError, match="Invalid JSON"):
        _call([httpx.Response(200, content=b"<html>oops</html>")])


def test_network_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    client = WebhookClient(WEBHOOK_URL, transport=httpx.MockTransport(handler))
    with pytest.raises(GenerationCallError, match="Network error"):
        asyncio.run(client.generate(PAYLOAD))


def test_timeout():
    def handler(request):
        raise httpx.ReadTimeout("too slow", request=request)

    client = WebhookClient(WEBHOOK_URL, timeout=5, transport=httpx.MockTransport(handler))
    with pytest.raises(GenerationCallError, match="timed out after 5s"):
        asyncio.run(client.generate(PAYLOAD))
