"""Model registry rendering for the gateway."""

from .registry import render_models_document, resolve_default_model, write_models_config

__all__ = ["render_models_document", "resolve_default_model", "write_models_config"]
