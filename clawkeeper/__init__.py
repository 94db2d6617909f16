"""
clawkeeper: configuration-to-jobs compiler and backup/retention engine
for a supervised OpenClaw deployment.
"""

__version__ = "0.3.0"
