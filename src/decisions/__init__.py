"""Decision record synthesis, storage, and export."""

from decisions.assembler import assemble
from decisions.errors import (
    AnalysisBusyError,
    AssemblyError,
    ConfigurationError,
    DecisionError,
    EmptyContentError,
    InputError,
    ParseError,
    PersistenceError,
    UpstreamError,
)
from decisions.export import build_export_document, export_all, write_export
from decisions.normalizer import normalize_model_output, strip_code_fence
from decisions.prompt import PROMPT_VERSION, build_prompt
from decisions.repository import DecisionRepository

__all__ = [
    "AnalysisBusyError",
    "AssemblyError",
    "ConfigurationError",
    "DecisionError",
    "DecisionRepository",
    "EmptyContentError",
    "InputError",
    "ParseError",
    "PersistenceError",
    "PROMPT_VERSION",
    "UpstreamError",
    "assemble",
    "build_export_document",
    "build_prompt",
    "export_all",
    "normalize_model_output",
    "strip_code_fence",
    "write_export",
]
