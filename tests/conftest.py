"""Shared fixtures: a blog config rooted in tmp_path."""

from pathlib import Path

import pytest
from blogsync.config import BlogConfig
from fakes import COLLECTION_URL, REMOTE_ROOT


@pytest.fixture
def blog_config(tmp_path: Path) -> BlogConfig:
    return BlogConfig(
        remote_root=REMOTE_ROOT,
        local_root=tmp_path / "blogs",
        collection_url=COLLECTION_URL,
        username="alice",
        password="secret",
    )


@pytest.fixture
def blog_root(blog_config: BlogConfig) -> Path:
    return blog_config.blog_root
