"""Sandbox policy for the gateway and jobs, plus audit redaction."""

from .engine import PolicyEngine, RiskClass, redact_text

__all__ = [
    "PolicyEngine",
    "RiskClass",
    "redact_text",
]
