"""
Unit tests for lingo_engine.model_registry.

Tests:
- Catalog descriptors
- Parameter-count and byte-size heuristics
- Derived cache is stable and never overrides the catalog
"""
import pytest

from lingo_engine.model_registry import (
    ModelRegistry,
    SizeClass,
    classify_size,
    format_size,
    parse_parameter_count,
)

GB = 1024 ** 3


@pytest.mark.parametrize("model_id, expected", [
    ("qwen2.5:0.5b", 0.5),
    ("llama3.1:70b", 70.0),
    ("mixtral:8x7b", 56.0),
    ("gemma2:9b-instruct-q4", 9.0),
    ("mistral:latest", None),
])
def test_parse_parameter_count(model_id, expected):
    assert parse_parameter_count(model_id) == expected


def test_classify_by_name_thresholds():
    assert classify_size("qwen2.5:1.5b") == SizeClass.SMALL
    assert classify_size("llama3.2:3b") == SizeClass.MEDIUM
    assert classify_size("llama3.1:8b") == SizeClass.LARGE
    assert classify_size("mixtral:8x7b") == SizeClass.LARGE


def test_classify_by_byte_size_when_name_has_no_count():
    assert classify_size("custom:latest", size_bytes=1 * GB) == SizeClass.SMALL
    assert classify_size("custom:latest", size_bytes=3 * GB) == SizeClass.MEDIUM
    assert classify_size("custom:latest", size_bytes=5 * GB) == SizeClass.LARGE


def test_classify_defaults_to_medium():
    assert classify_size("custom:latest") == SizeClass.MEDIUM


def test_name_beats_byte_size():
    assert classify_size("tiny:0.5b", size_bytes=10 * GB) == SizeClass.SMALL


def test_format_size():
    assert format_size(None) is None
    assert format_size(2 * GB) == "2.0GB"
    assert format_size(500 * 1024 ** 2) == "500MB"


class TestModelRegistry:

    def test_catalog_entries(self, catalog):
        registry = ModelRegistry(catalog)
        small = registry.get("small-model")
        assert small.size_class == SizeClass.SMALL
        assert small.keep_alive == "20m"
        assert small.source == "catalog"
        assert registry.static_ids() == ["small-model", "large-model"]

    def test_unknown_model_is_not_guessed(self, catalog):
        registry = ModelRegistry(catalog)
        assert registry.get("qwen2.5:14b") is None
        assert not registry.is_known("qwen2.5:14b")

    def test_register_discovered_derives_keep_alive(self, catalog):
        registry = ModelRegistry(catalog)
        descriptor = registry.register_discovered("qwen2.5:14b", 9 * GB)
        assert descriptor.size_class == SizeClass.LARGE
        assert descriptor.keep_alive == "10m"
        assert descriptor.source == "derived"
        assert registry.get("qwen2.5:14b") is descriptor

    def test_register_discovered_is_stable(self, catalog):
        registry = ModelRegistry(catalog)
        first = registry.register_discovered("custom:latest", 1 * GB)
        second = registry.register_discovered("custom:latest", 50 * GB)
        assert second is first
        assert second.size_class == SizeClass.SMALL

    def test_register_discovered_keeps_catalog_entry(self, catalog):
        registry = ModelRegistry(catalog)
        descriptor = registry.register_discovered("small-model", 50 * GB)
        assert descriptor.source == "catalog"
        assert descriptor.size_class == SizeClass.SMALL

    def test_categories_merge_catalog_and_derived(self, catalog):
        registry = ModelRegistry(catalog)
        registry.register_discovered("qwen2.5:0.5b", 400 * 1024 ** 2)
        categories = registry.categories()
        assert set(categories) == {"small-model", "large-model", "qwen2.5:0.5b"}
        assert categories["qwen2.5:0.5b"]["priority"] == "small"
        assert categories["qwen2.5:0.5b"]["keepAliveTime"] == "30m"
