"""Unit tests for kubefed_cli.shared.paths module."""

import os
from pathlib import Path

from kubefed_cli.shared.paths import get_config_path, resolve_kubeconfig_path


class TestGetConfigPath:
    """Tests for get_config_path."""

    def test_under_home(self, monkeypatch, tmp_path):
        monkeypatch.setenv("HOME", str(tmp_path))

        assert get_config_path() == tmp_path / ".kubefed" / "config.yaml"


class TestResolveKubeconfigPath:
    """Tests for resolve_kubeconfig_path."""

    def test_explicit_path_wins(self, monkeypatch, tmp_path):
        monkeypatch.setenv("KUBECONFIG", str(tmp_path / "env-config"))

        assert resolve_kubeconfig_path(tmp_path / "explicit") == tmp_path / "explicit"

    def test_first_kubeconfig_entry(self, monkeypatch, tmp_path):
        first = tmp_path / "first"
        second = tmp_path / "second"
        monkeypatch.setenv("KUBECONFIG", os.pathsep.join([str(first), str(second)]))

        assert resolve_kubeconfig_path() == first

    def test_empty_entries_skipped(self, monkeypatch, tmp_path):
        monkeypatch.setenv("KUBECONFIG", os.pathsep + str(tmp_path / "config"))

        assert resolve_kubeconfig_path() == tmp_path / "config"

    def test_default_location(self, monkeypatch, tmp_path):
        monkeypatch.delenv("KUBECONFIG", raising=False)
        monkeypatch.setenv("HOME", str(tmp_path))

        assert resolve_kubeconfig_path() == Path(tmp_path) / ".kube" / "config"
