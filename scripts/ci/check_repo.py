"""
CI checks for the repository.
Ensures:
- Design docs exist
- No secrets in source, docs or example configs
- No public bind defaults (0.0.0.0 / ::)
- The example deploy config validates
"""

from __future__ import annotations

import re
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from clawkeeper.config import load_config  # noqa: E402
from clawkeeper.core.errors import ConfigError  # noqa: E402

CANON_DOCS = [
    "DESIGN.md",
    "SPEC_FULL.md",
]

EXAMPLE_CONFIG = ROOT / "configs" / "deploy.example.yaml"

SCAN_DIRS = ["clawkeeper", "apps", "scripts", "configs", "tests"]
SCAN_SUFFIXES = {".py", ".md", ".txt", ".json", ".yaml", ".yml", ".toml", ".ini"}

SECRET_PATTERNS = [
    re.compile(r"(?i)api[_-]?key\s*[:=]\s*['\"][A-Za-z0-9_\-]{16,}['\"]"),
    re.compile(r"(?i)sk-[A-Za-z0-9]{20,}"),
    re.compile(r"(?i)BEGIN\s+PRIVATE\s+KEY"),
    re.compile(r"\bAKIA[A-Z0-9]{16}\b"),
    re.compile(r"(?i)OPENCLAW_S3_SECRET_ACCESS_KEY\s*=\s*[A-Za-z0-9/+]{20,}"),
]

PUBLIC_BIND_PATTERNS = [
    re.compile(r"0\.0\.0\.0"),
    re.compile(r"\[::\]"),
]

# Test fixtures may carry fake secrets to prove redaction works.
SECRET_SCAN_SKIP = {"tests"}

def fail(msg: str) -> None:
    raise SystemExit(f"FAIL: {msg}")

def check_canon_docs_exist() -> None:
    missing = [p for p in CANON_DOCS if not (ROOT / p).exists()]
    if missing:
        fail(f"Missing canonical docs: {missing}")

def iter_repo_text_files(skip: set[str] = frozenset()) -> list[Path]:
    files = []
    for top in SCAN_DIRS:
        if top in skip or not (ROOT / top).is_dir():
            continue
        for p in sorted((ROOT / top).rglob("*")):
            if "__pycache__" in p.parts:
                continue
            if p.is_file() and p.suffix.lower() in SCAN_SUFFIXES:
                files.append(p)
    return files

def _offenders(patterns: list[re.Pattern], skip: set[str] = frozenset()) -> list[str]:
    out: list[str] = []
    for p in iter_repo_text_files(skip):
        text = p.read_text(encoding="utf-8", errors="ignore")
        if any(pat.search(text) for pat in patterns):
            out.append(str(p.relative_to(ROOT)))
    return sorted(set(out))

def check_no_secrets() -> None:
    offenders = _offenders(SECRET_PATTERNS, SECRET_SCAN_SKIP)
    if offenders:
        fail(f"Potential secrets detected in: {offenders}")

def check_no_public_bind_defaults() -> None:
    offenders = _offenders(PUBLIC_BIND_PATTERNS)
    if offenders:
        fail(f"Public bind patterns found (0.0.0.0 / ::). Default must be localhost-only. Files: {offenders}")

def check_example_config_loads() -> None:
    try:
        cfg = load_config(EXAMPLE_CONFIG)
    except ConfigError as e:
        fail(f"{EXAMPLE_CONFIG.relative_to(ROOT)}: {e}")
    if cfg.host not in {"127.0.0.1", "localhost", "::1"}:
        fail(f"example config binds the gateway to {cfg.host}")

def main() -> int:
    check_canon_docs_exist()
    check_no_secrets()
    check_no_public_bind_defaults()
    check_example_config_loads()
    print("OK: repo checks passed")
    return 0

if __name__ == "__main__":
    raise SystemExit(main())
