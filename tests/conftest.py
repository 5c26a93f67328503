"""Pytest configuration and shared fixtures."""

from pathlib import Path
from typing import Any, Callable

import pytest

from log_enforcer.config import EnforcerConfig, build_config
from log_enforcer.engine import AnalysisCache, LogEnforcer


def write_file(root: Path, relative: str, content: str) -> Path:
    """Create a file (and its parents) under root."""
    path = root / relative
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


@pytest.fixture
def config() -> EnforcerConfig:
    """Default configuration."""
    return build_config()


@pytest.fixture
def make_config() -> Callable[..., EnforcerConfig]:
    """Build a configuration from camelCase or snake_case overrides."""

    def _make(**overrides: Any) -> EnforcerConfig:
        return build_config(overrides)

    return _make


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """Empty project root."""
    root = tmp_path / "project"
    root.mkdir()
    return root


@pytest.fixture
def make_enforcer(project: Path) -> Callable[..., LogEnforcer]:
    """Enforcer rooted at the project fixture, with a disabled cache by default."""

    def _make(config: EnforcerConfig | None = None, cache: AnalysisCache | None = None) -> LogEnforcer:
        return LogEnforcer(
            config or build_config(),
            cache=cache if cache is not None else AnalysisCache.disabled(),
            root=project,
        )

    return _make


@pytest.fixture
def python_with_prints() -> str:
    """Python module with ad-hoc print calls."""
    return '''"""Order processing."""

import json
import sys


def process(order):
    print("processing", order["id"])
    if not order.get("items"):
        print("empty order", file=sys.stderr)
        return None
    return json.dumps(order)
'''


@pytest.fixture
def python_clean() -> str:
    """Python module that already logs properly."""
    return '''import logging

logger = logging.getLogger(__name__)


def process(order):
    logger.info("processing %s", order["id"])
    return order
'''


@pytest.fixture
def javascript_with_console() -> str:
    """CommonJS module with console calls."""
    return """'use strict';

const express = require('express');

function handle(req, res) {
  console.log('request', req.url);
  console.error('failed');
  res.send('ok');
}

module.exports = { handle };
"""


@pytest.fixture
def typescript_with_console() -> str:
    """TypeScript module with console calls and type annotations."""
    return """import { Request } from 'express';

interface User {
  id: string;
}

export function load(req: Request): User {
  console.warn('loading', req.params.id);
  console.debug('details');
  return { id: req.params.id };
}
"""
