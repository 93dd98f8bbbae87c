"""Tests for entry → local path mapping."""

from pathlib import Path

import pytest
from blogsync.errors import FormatError
from blogsync.models import Entry
from blogsync.paths import PathAllocator, local_path, slug_for
from fakes import make_entry


class TestSlugFor:
    def test_from_edit_url(self):
        entry = Entry(edit_url="https://blog.example.com/alice/atom/entry/13574176438046")
        assert slug_for(entry) == "13574176438046"

    def test_trailing_slash_ignored(self):
        entry = Entry(edit_url="https://blog.example.com/atom/entry/42/")
        assert slug_for(entry) == "42"

    def test_custom_path_wins(self):
        entry = Entry(edit_url="https://blog.example.com/atom/entry/42", custom_path="travel/kyoto")
        assert slug_for(entry) == "travel/kyoto"

    def test_custom_path_unsafe_characters(self):
        entry = Entry(custom_path="/notes/what is this?/")
        assert slug_for(entry) == "notes/what-is-this"

    def test_custom_path_parent_segments_dropped(self):
        entry = Entry(custom_path="../../etc/passwd")
        assert slug_for(entry) == "etc/passwd"

    def test_percent_encoded_segment(self):
        entry = Entry(edit_url="https://blog.example.com/atom/entry/caf%C3%A9")
        assert slug_for(entry) == "café"

    def test_no_identity(self):
        with pytest.raises(FormatError):
            slug_for(Entry(title="orphan"))


class TestLocalPath:
    def test_layout(self, blog_config, blog_root):
        path = local_path(blog_config, make_entry(1))
        assert path == blog_root / "1.md"
        assert path.is_absolute()
        assert blog_root == (Path(blog_config.local_root) / "alice.example.com").resolve()

    def test_custom_path_layout(self, blog_config, blog_root):
        path = local_path(blog_config, make_entry(1, custom_path="2024/hello"))
        assert path == blog_root / "2024" / "hello.md"

    def test_pure(self, blog_config):
        entry = make_entry(7)
        assert local_path(blog_config, entry) == local_path(blog_config, entry.model_copy())


class TestPathAllocator:
    def test_no_collisions(self, blog_config, blog_root):
        allocated = PathAllocator(blog_config).allocate([make_entry(1), make_entry(2)])
        assert [p for _, p in allocated] == [blog_root / "1.md", blog_root / "2.md"]

    def test_collision_gets_lowest_suffix(self, blog_config, blog_root):
        entries = [
            make_entry(1, custom_path="same"),
            make_entry(2, custom_path="same"),
            make_entry(3, custom_path="same"),
        ]
        paths = [p for _, p in PathAllocator(blog_config).allocate(entries)]
        assert paths == [blog_root / "same.md", blog_root / "same-1.md", blog_root / "same-2.md"]

    def test_suffix_skips_other_entries_natural_paths(self, blog_config, blog_root):
        entries = [
            make_entry(1, custom_path="same"),
            make_entry(2, custom_path="same"),
            make_entry(3, custom_path="same-1"),
        ]
        paths = [p for _, p in PathAllocator(blog_config).allocate(entries)]
        assert paths == [blog_root / "same.md", blog_root / "same-2.md", blog_root / "same-1.md"]
        assert len(set(paths)) == 3

    def test_deterministic(self, blog_config):
        entries = [make_entry(i, custom_path="dup") for i in range(5)]
        first = PathAllocator(blog_config).allocate(entries)
        second = PathAllocator(blog_config).allocate(entries)
        assert first == second
