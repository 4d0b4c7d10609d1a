"""Exception hierarchy for the sitemap build pipeline."""


class SitemapError(Exception):
    """Base class for all sitemap build errors."""


class ValidationError(SitemapError, ValueError):
    """A URL entry, alternate link or image reference failed validation."""


class SerializationError(SitemapError):
    """The XML writer failed to encode or write the document."""


class ProviderError(SitemapError):
    """The content tree or the cache store failed during a build."""
