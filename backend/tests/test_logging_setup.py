import importlib
import logging

import overpass.cache
import pipeline.orchestrator
from common.logging_setup import setup_logging


def test_importing_pipeline_modules_leaves_root_handlers_alone(monkeypatch):
    root = logging.getLogger()
    monkeypatch.delattr(root, "_mapview_configured", raising=False)
    marker = logging.NullHandler()
    root.addHandler(marker)
    try:
        importlib.reload(overpass.cache)
        importlib.reload(pipeline.orchestrator)
        assert marker in root.handlers
    finally:
        root.removeHandler(marker)


def test_setup_logging_is_idempotent(monkeypatch):
    root = logging.getLogger()
    monkeypatch.delattr(root, "_mapview_configured", raising=False)
    monkeypatch.setattr(root, "handlers", [])
    monkeypatch.setattr(root, "level", root.level)

    setup_logging("debug")
    setup_logging("error")

    assert len(root.handlers) == 1
    assert root.level == logging.DEBUG
