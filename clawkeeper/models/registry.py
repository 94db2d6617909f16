"""Model Registry Renderer
Turns a ModelRegistry into the single JSON document the gateway reads at
process start (OPENCLAW_MODELS_CONFIG). The document is not reloaded at
runtime; the gateway must be restarted to pick up a new one.
"""


from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional
import logging
import os
import tempfile

from clawkeeper.config.schema import ModelDefinition, ModelRegistry
from clawkeeper.core.codec import pretty_json_bytes

logger = logging.getLogger(__name__)


def resolve_default_model(registry: ModelRegistry) -> Optional[str]:
    """
    Priority:
      1. explicit default_model_key
      2. first key (sorted) with is_default=True
      3. first key (sorted)
      4. None for an empty registry
    Keys are always walked in sorted order so the result does not depend on
    how the mapping was built.
    """
    if registry.default_model_key is not None:
        return registry.default_model_key

    keys = registry.sorted_keys()
    for k in keys:
        if registry.models[k].is_default:
            return k
    if keys:
        return keys[0]
    return None


def _model_entry(m: ModelDefinition) -> Dict[str, Any]:
    entry: Dict[str, Any] = {
        "type": m.type,
        "modelName": m.model_name,
        "endpoint": m.endpoint,
        "maxTokens": m.max_tokens,
        "temperature": m.temperature,
        "isDefault": m.is_default,
        "extraConfig": dict(m.extra_config) if m.extra_config is not None else None,
    }
    # Sparse encoding: absent fields are left out, never written as null.
    return {k: v for k, v in entry.items() if v is not None}


def render_models_document(registry: ModelRegistry) -> Dict[str, Any]:
    return {
        "models": {k: _model_entry(registry.models[k]) for k in registry.sorted_keys()},
        "defaultModel": resolve_default_model(registry),
    }


def write_models_config(registry: ModelRegistry, path: Path) -> Path:
    """
    Write the rendered document atomically so the gateway never reads a
    half-written file.
    """
    data = pretty_json_bytes(render_models_document(registry))
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(prefix=".models-", suffix=".json", dir=str(path.parent))
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.chmod(tmp, 0o640)
        os.replace(tmp, path)
    except BaseException:
        Path(tmp).unlink(missing_ok=True)
        raise
    logger.info("wrote models config: %s (%d models)", path, len(registry.models))
    return path
