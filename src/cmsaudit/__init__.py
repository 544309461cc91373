"""cmsaudit: static analysis and AI-assistant tooling for CMS codebases."""

import logging
from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("cmsaudit")
except PackageNotFoundError:
    __version__ = "0.0.0-dev"

logging.getLogger(__name__).addHandler(logging.NullHandler())

from cmsaudit.engine import AnalysisResult, Finding
from cmsaudit.rules import RuleRegistry

__all__ = ["AnalysisResult", "Finding", "RuleRegistry", "__version__"]
