"""Serve the seoimg API (backend.main:app) with uvicorn; port comes from Settings.port / PORT."""

import os

import uvicorn

from seoimg.config import get_settings

if __name__ == "__main__":
    uvicorn.run(
        "backend.main:app",
        host=os.environ.get("SEOIMG_HOST", "0.0.0.0"),
        port=get_settings().port,
        reload=os.environ.get("SEOIMG_ENV", "development") == "development",
    )
