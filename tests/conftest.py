"""Shared fixtures for bootstrap tests."""

from __future__ import annotations

import pytest

from claudin_desktop.models import RuntimeMode
from claudin_desktop.paths import PathResolver
from tests.fixtures.extension_bundle import BUNDLE_FILES, write_tree


@pytest.fixture
def home(tmp_path):
    path = tmp_path / "home"
    path.mkdir()
    return path


@pytest.fixture
def config_base(home):
    path = home / ".config"
    path.mkdir()
    return path


@pytest.fixture
def resources(home):
    """Packaged resource directory holding the bundled extension."""
    path = home / "Applications" / "ClaudIn.app" / "Resources"
    path.mkdir(parents=True)
    return path


@pytest.fixture
def paths(home, config_base, resources):
    return PathResolver().resolve(
        RuntimeMode.PACKAGED,
        home,
        config_base,
        cwd=home,
        resource_dir=resources,
    )


@pytest.fixture
def bundle(paths):
    write_tree(paths.extension_source, BUNDLE_FILES)
    return paths.extension_source
