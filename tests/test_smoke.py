"""Smoke test to verify testing infrastructure is working."""

import sys


def test_python_version():
    """Verify Python version meets requirements."""
    assert sys.version_info >= (3, 11), "Python 3.11 or higher required"


def test_package_imports():
    """The core package and the storage API import cleanly."""
    import aura_store
    from services.storage_api.main import app

    assert aura_store.__version__
    assert app.title == "Bible Aura Local Store API"
