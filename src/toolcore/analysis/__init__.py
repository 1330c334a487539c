"""Code intelligence: symbols, data flow, quality and rule-driven reasoning."""

from .cache import AnalysisCache, content_hash
from .dataflow import FlowEvent, VariableFlow, trace_variable
from .insights import InsightsLedger
from .quality import analyze_quality, categorize_complexity, categorize_score
from .reasoning import (
    classify_error,
    debug_error,
    explain_section,
    optimize_architecture,
    parse_stack_trace,
    solve_problem,
)
from .symbols import JS_FAMILY, ImportRef, Symbol, SymbolTable, build_symbol_table

__all__ = [
    "AnalysisCache",
    "FlowEvent",
    "ImportRef",
    "InsightsLedger",
    "JS_FAMILY",
    "Symbol",
    "SymbolTable",
    "VariableFlow",
    "analyze_quality",
    "build_symbol_table",
    "categorize_complexity",
    "categorize_score",
    "classify_error",
    "content_hash",
    "debug_error",
    "explain_section",
    "optimize_architecture",
    "parse_stack_trace",
    "solve_problem",
    "trace_variable",
]
