"""SEO image engine: credit-metered blog and infographic image generation via webhook."""

__version__ = "0.1.0"
