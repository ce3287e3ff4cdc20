"""
Shared pytest fixtures for shipwright tests.

This file is automatically loaded by pytest. Fixtures defined here are
available to all test files without explicit imports.
"""

import os as _os
import pathlib as _pathlib
import textwrap as _textwrap
import typing as _typing
import unittest.mock as _mock

import click.testing as _click_testing
import pytest as _pytest

import shipwright.document as doc_model
import shipwright.merge as merge

# =============================================================================
# Environment isolation
# =============================================================================


@_pytest.fixture
def clean_env() -> dict[str, str]:
    """Current environment without any SHIPWRIGHT_* or NO_COLOR variables."""
    return {
        key: value
        for key, value in _os.environ.items()
        if not key.startswith("SHIPWRIGHT_") and key != "NO_COLOR"
    }


@_pytest.fixture
def isolated_env(clean_env: dict[str, str]) -> _typing.Iterator[dict[str, str]]:
    """
    Run the test with SHIPWRIGHT_* variables removed.

    Usage:
        def test_something(isolated_env):
            settings = config.Settings()  # only defaults + shipwright.yaml
    """
    with _mock.patch.dict(_os.environ, clean_env, clear=True):
        yield clean_env


# =============================================================================
# Documents and sources
# =============================================================================


def doc(data: _typing.Any) -> doc_model.Document:
    """Shorthand for building a Document from plain data."""
    return doc_model.from_python(data)


@_pytest.fixture
def base_manifest() -> dict[str, _typing.Any]:
    """A complete, valid service base manifest."""
    return {
        "name": "webapp",
        "image": "registry.example.com/webapp",
        "regions": ["dev-uk", "prod-uk"],
        "metadata": {"team": "platform", "repo": "https://github.com/example/webapp"},
        "resources": {
            "requests": {"cpu": "100m", "memory": "128Mi"},
            "limits": {"cpu": "500m", "memory": "512Mi"},
        },
        "httpPort": 8080,
        "health": {"uri": "/health", "wait": 10},
        "replicaCount": 2,
        "env": {"LOG_LEVEL": "info", "FEATURE_X": "off"},
        "tolerations": [{"key": "dedicated", "value": "web"}],
    }


@_pytest.fixture
def empty_sources() -> list[merge.Source]:
    """One empty source of each kind, in precedence order."""
    return [merge.Source(kind) for kind in merge.PRECEDENCE]


# =============================================================================
# Manifests repository on disk
# =============================================================================


def write_yaml(path: _pathlib.Path, content: str) -> _pathlib.Path:
    """Write dedented YAML content, creating parent directories."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(_textwrap.dedent(content).lstrip(), encoding="utf-8")
    return path


@_pytest.fixture
def manifests_dir(tmp_path: _pathlib.Path) -> _pathlib.Path:
    """
    A manifests repository with one service in two regions.

    Layout:
        global.yml
        regions/dev-uk.yml
        services/webapp/manifest.yml
        services/webapp/dev.yml
        services/webapp/dev-uk.yml
        services/worker/manifest.yml
    """
    root = tmp_path / "manifests"
    write_yaml(
        root / "global.yml",
        """
        env:
          CLUSTER_DNS: cluster.local
        tolerations:
          - key: dedicated
            value: web
          - key: spot
            value: "true"
        """,
    )
    write_yaml(
        root / "regions" / "dev-uk.yml",
        """
        env:
          REGION: dev-uk
        labels:
          region: dev-uk
        """,
    )
    write_yaml(
        root / "services" / "webapp" / "manifest.yml",
        """
        name: webapp
        image: registry.example.com/webapp
        regions:
          - dev-uk
          - prod-uk
        metadata:
          team: platform
        resources:
          requests:
            cpu: 100m
            memory: 128Mi
          limits:
            cpu: 500m
            memory: 512Mi
        httpPort: 8080
        health:
          uri: /health
        replicaCount: 2
        env:
          LOG_LEVEL: info
          FEATURE_X: "off"
        tolerations:
          - key: dedicated
            value: web
        sidecars:
          - name: redis
        """,
    )
    write_yaml(
        root / "services" / "webapp" / "dev.yml",
        """
        env:
          LOG_LEVEL: debug
        resources:
          limits:
            memory: 1Gi
        """,
    )
    write_yaml(
        root / "services" / "webapp" / "dev-uk.yml",
        """
        replicaCount: 1
        sidecars:
          - name: statsd
        """,
    )
    write_yaml(
        root / "services" / "worker" / "manifest.yml",
        """
        name: worker
        regions: [dev-uk]
        metadata:
          team: data
        """,
    )
    return root


# =============================================================================
# CLI
# =============================================================================


@_pytest.fixture
def cli_runner() -> _click_testing.CliRunner:
    """CLI runner with SHIPWRIGHT_* and NO_COLOR removed from its environment."""
    removed: dict[str, str | None] = {
        key: None for key in _os.environ if key.startswith("SHIPWRIGHT_") or key == "NO_COLOR"
    }
    return _click_testing.CliRunner(env=removed)
