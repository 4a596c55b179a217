"""Tests for node naming conventions and node id validation."""
from __future__ import annotations

from pathlib import Path

import pytest

from nexus_fleet.config import settings
from nexus_fleet.errors import InvalidNodeId
from nexus_fleet.naming import (
    container_name,
    log_path,
    node_id_from_container,
    node_id_from_schedule_entry,
    schedule_entry_name,
    validate_node_id,
)


class TestDerivedNames:

    def test_container_name_uses_configured_prefix(self):
        assert container_name("abc123") == "nexus-node-abc123"
        assert container_name("abc123", prefix="prover") == "prover-abc123"

    def test_log_path_format(self):
        assert log_path("/var/log/nexus", "abc123") == Path("/var/log/nexus/nexus-abc123.log")
        assert log_path("/logs", "7", log_file_prefix="prover") == Path("/logs/prover-7.log")

    def test_log_path_follows_settings(self, monkeypatch):
        monkeypatch.setattr(settings, "log_file_prefix", "node")
        assert log_path("/logs", "x").name == "node-x.log"

    def test_schedule_entry_name(self):
        assert schedule_entry_name("abc123") == "cleanup-abc123"

    def test_names_are_deterministic(self):
        assert container_name("n1") == container_name("n1")
        assert log_path("/l", "n1") == log_path("/l", "n1")

    @pytest.mark.parametrize("a,b", [
        ("1", "11"),
        ("abc", "ABC"),
        ("node-1", "node_1"),
        ("12345", "123456"),
    ])
    def test_distinct_ids_give_distinct_names(self, a, b):
        assert container_name(a) != container_name(b)
        assert log_path("/l", a) != log_path("/l", b)
        assert schedule_entry_name(a) != schedule_entry_name(b)

    def test_container_name_round_trips_to_node_id(self):
        assert node_id_from_container(container_name("abc-1")) == "abc-1"

    @pytest.mark.parametrize("name", ["nexus-node-", "nexus-node", "other-abc", "nexus-nodeabc"])
    def test_foreign_container_names_are_not_nodes(self, name):
        assert node_id_from_container(name) is None

    def test_schedule_entry_round_trips_to_node_id(self):
        assert node_id_from_schedule_entry("cleanup-42") == "42"
        assert node_id_from_schedule_entry("cleanup-") is None
        assert node_id_from_schedule_entry("backup-42") is None


class TestValidateNodeId:

    @pytest.mark.parametrize("value", ["", "   ", "\t\n", None])
    def test_empty_ids_rejected(self, value):
        with pytest.raises(InvalidNodeId, match="cannot be empty"):
            validate_node_id(value)

    def test_whitespace_is_stripped(self):
        assert validate_node_id("  12345  ") == "12345"

    @pytest.mark.parametrize("strict", [True, False])
    @pytest.mark.parametrize("value", ["../etc/passwd", "a/b", "a\\b", "a\x00b"])
    def test_path_separators_rejected_in_both_modes(self, value, strict):
        with pytest.raises(InvalidNodeId, match="path separators"):
            validate_node_id(value, strict=strict)

    @pytest.mark.parametrize("value", ["abc;rm -rf ~", "a b", "a.b", "$(id)", "-lead", "x" * 65])
    def test_strict_mode_rejects_unsafe_ids(self, value):
        with pytest.raises(InvalidNodeId, match="Invalid node id"):
            validate_node_id(value, strict=True)

    @pytest.mark.parametrize("value", ["a.b", "a b", "abc;echo"])
    def test_permissive_mode_keeps_legacy_ids(self, value):
        assert validate_node_id(value, strict=False) == value

    @pytest.mark.parametrize("value", ["6543210", "node_1", "A-b-C", "x" * 64])
    def test_strict_mode_accepts_tokens(self, value):
        assert validate_node_id(value) == value
