"""Blog configuration loaded from ``config.yaml``.

Loading order: ``--config`` flag → ``BLOGSYNC_CONFIG`` env var → default path.

The file maps each blog's domain to its settings; an optional ``default``
block supplies values shared by every blog::

    default:
      local_root: ~/blogs
      username: alice
    alice.hatenablog.com:
      password: s3cret
    alice.example.org:
      local_root: ~/work/blog
      password: other
      collection_url: https://alice.example.org/atom/entry
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Literal
from urllib.parse import urlsplit

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from blogsync.errors import ConfigError, NotFoundError

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "BLOGSYNC_CONFIG"
DEFAULT_CONFIG_PATH = Path.home() / ".config" / "blogsync" / "config.yaml"
DEFAULT_SECTION = "default"
COLLECTION_URL_TEMPLATE = "https://blog.hatena.ne.jp/{username}/{remote_root}/atom/entry"


class BlogConfig(BaseModel):
    """Settings for one blog, fixed for the duration of a command."""

    model_config = ConfigDict(frozen=True)

    remote_root: str
    local_root: Path
    collection_url: str
    username: str = ""
    password: str = ""
    auth: Literal["basic", "wsse"] = "basic"

    @field_validator("collection_url")
    @classmethod
    def require_http_url(cls, value: str) -> str:
        parts = urlsplit(value)
        if parts.scheme not in ("http", "https") or not parts.netloc:
            raise ValueError(f"collection_url must be an http(s) URL, got {value!r}")
        return value

    @property
    def blog_root(self) -> Path:
        """Absolute directory holding this blog's entry files."""
        return (self.local_root.expanduser() / self.remote_root).resolve()


class Config(BaseModel):
    """All configured blogs, keyed by remote root."""

    model_config = ConfigDict(frozen=True)

    blogs: dict[str, BlogConfig] = Field(default_factory=dict)

    def get(self, remote_root: str) -> BlogConfig:
        """Return the blog named *remote_root*.

        Raises:
            ConfigError: If no such blog is configured.
        """
        try:
            return self.blogs[remote_root]
        except KeyError:
            raise ConfigError(f"Blog not found: {remote_root}") from None

    def reverse_lookup(self, path: Path) -> BlogConfig:
        """Find the blog whose local tree contains *path*.

        When blog roots nest, the deepest (longest) matching root wins.

        Raises:
            NotFoundError: If no configured blog root contains the path.
        """
        target = Path(path).expanduser().resolve()
        best: BlogConfig | None = None
        best_depth = -1
        for blog in self.blogs.values():
            root = blog.blog_root
            if target == root or root in target.parents:
                depth = len(root.parts)
                if depth > best_depth:
                    best, best_depth = blog, depth
        if best is None:
            raise NotFoundError(f"Cannot find blog for {target}")
        logger.debug("Resolved %s to blog %s", target, best.remote_root)
        return best


def resolve_config_path(explicit: Path | None = None) -> Path:
    """Pick the configuration file to read."""
    if explicit is not None:
        return explicit
    env_path = os.environ.get(CONFIG_ENV_VAR, "")
    if env_path:
        return Path(env_path).expanduser()
    return DEFAULT_CONFIG_PATH


def _build_blog(remote_root: str, raw: dict, defaults: dict) -> BlogConfig:
    merged = {**defaults, **raw, "remote_root": remote_root}
    if "local_root" not in merged:
        raise ConfigError(f"Blog {remote_root} has no local_root")
    if not merged.get("collection_url"):
        username = merged.get("username", "")
        if not username:
            raise ConfigError(f"Blog {remote_root} needs either collection_url or username")
        merged["collection_url"] = COLLECTION_URL_TEMPLATE.format(
            username=username, remote_root=remote_root
        )
    try:
        return BlogConfig.model_validate(merged)
    except ValidationError as exc:
        raise ConfigError(f"Invalid settings for blog {remote_root}: {exc}") from exc


def parse_config(data: object) -> Config:
    """Build a Config from an already-parsed YAML document."""
    if data is None:
        return Config()
    if not isinstance(data, dict):
        raise ConfigError("Configuration must be a mapping of blog name to settings")

    defaults = data.get(DEFAULT_SECTION) or {}
    if not isinstance(defaults, dict):
        raise ConfigError("The default section must be a mapping")

    blogs: dict[str, BlogConfig] = {}
    for name, raw in data.items():
        if name == DEFAULT_SECTION:
            continue
        if not isinstance(raw, dict):
            raise ConfigError(f"Settings for blog {name} must be a mapping")
        blogs[str(name)] = _build_blog(str(name), raw, defaults)
    return Config(blogs=blogs)


def load_config(path: Path | None = None) -> Config:
    """Load the blog configuration from disk.

    Raises:
        ConfigError: If the file is missing, unreadable, not valid YAML, or
            describes a blog without the required settings.
    """
    config_path = resolve_config_path(path)
    try:
        text = config_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Cannot read config {config_path}: {exc}") from exc
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {config_path}: {exc}") from exc
    config = parse_config(data)
    logger.debug("Loaded %d blog(s) from %s", len(config.blogs), config_path)
    return config
