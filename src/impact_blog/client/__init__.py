"""Async client for the blog API."""

from impact_blog.client.base import BaseAPIClient
from impact_blog.client.blog import BlogClient, CoverImage
from impact_blog.client.session import AuthSession

__all__ = ["AuthSession", "BaseAPIClient", "BlogClient", "CoverImage"]
