"""Expression-tree helpers built on sympy.

Rule text is parsed with ``evaluate=False`` so the tree keeps the operand order
written by the modeller; parameter discovery scans that order and instance
binding is positional, so canonical re-ordering would silently change which
argument lands on which symbol.
"""

from __future__ import annotations

import logging
import re
from typing import Collection, Dict, List, Mapping, Optional

import sympy as sp
from sympy.parsing.sympy_parser import parse_expr

from .entities import CompiledExpression
from .errors import UndefinedSymbolError

logger = logging.getLogger(__name__)

SAFE_FUNCTIONS = {
    "exp": sp.exp,
    "log": sp.log,
    "log10": lambda arg: sp.log(arg, 10),
    "sqrt": sp.sqrt,
    "sin": sp.sin,
    "cos": sp.cos,
    "tan": sp.tan,
    "sinh": sp.sinh,
    "cosh": sp.cosh,
    "tanh": sp.tanh,
    "abs": sp.Abs,
    "min": sp.Min,
    "max": sp.Max,
    "pow": sp.Pow,
    "pi": sp.pi,
}

_IDENTIFIER = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")


def parse(text: str) -> sp.Expr:
    """Parse rule text into an unevaluated expression tree.

    Every bare name that is not one of :data:`SAFE_FUNCTIONS` becomes a plain
    :class:`sympy.Symbol`, so names such as ``beta``, ``gamma`` or ``S`` are
    never captured by sympy's own special functions and singletons.
    """

    source = str(text).replace("^", "**")
    local_dict: Dict[str, object] = {}
    for token in _IDENTIFIER.findall(source):
        local_dict[token] = SAFE_FUNCTIONS.get(token, sp.Symbol(token))
    return parse_expr(source, local_dict=local_dict, evaluate=False)


def symbol_names(expr: Optional[sp.Expr]) -> List[str]:
    """Return symbol names in first-seen pre-order, without duplicates."""

    if expr is None:
        return []
    seen: List[str] = []
    for node in sp.preorder_traversal(expr):
        if isinstance(node, sp.Symbol) and node.name not in seen:
            seen.append(node.name)
    return seen


def clone(expr: sp.Expr) -> sp.Expr:
    """Return a deep copy of *expr*; every composite node is rebuilt."""

    return substitute(expr, {})


def substitute(expr: sp.Expr, symbol_table: Mapping[str, str]) -> sp.Expr:
    """Copy *expr* while renaming symbol references found in *symbol_table*.

    Names missing from the table (unbound names) and numeric literals pass
    through unchanged. The original tree is never touched.
    """

    if isinstance(expr, sp.Symbol):
        target = symbol_table.get(expr.name)
        return sp.Symbol(target) if target is not None else expr
    if not expr.args:
        return expr
    args = [substitute(arg, symbol_table) for arg in expr.args]
    return expr.func(*args, evaluate=False)


def combine(previous: sp.Expr, term: sp.Expr) -> sp.Expr:
    """Join two rate-law terms with a binary, left-associated addition node."""

    return sp.Add(previous, term, evaluate=False)


def render(expr: Optional[sp.Expr]) -> str:
    if expr is None:
        return ""
    return sp.sstr(expr, order="none")


def compile_expression(expr: sp.Expr, scope: Optional[Collection[str]] = None) -> CompiledExpression:
    """Lambdify *expr* into a :class:`CompiledExpression`.

    When *scope* is given every referenced name must belong to it, otherwise
    :class:`UndefinedSymbolError` is raised before anything is evaluated.
    Symbols are renamed to safe placeholders before lambdify because global
    identifiers may contain spaces or dashes.
    """

    free_symbols = sorted(expr.free_symbols, key=lambda s: s.name)
    if scope is not None:
        missing = [sym.name for sym in free_symbols if sym.name not in scope]
        if missing:
            raise UndefinedSymbolError(
                f"Expression '{render(expr)}' references undefined symbols: {', '.join(missing)}"
            )
    placeholders = {sym: sp.Symbol(f"SYM_{idx}") for idx, sym in enumerate(free_symbols)}
    safe_expr = expr.xreplace(placeholders)
    safe_args = [placeholders[sym] for sym in free_symbols]
    func = sp.lambdify(safe_args, safe_expr, modules=["math"])
    tokens = tuple(sym.name for sym in free_symbols)
    logger.debug("compiled %s over %s", render(expr), tokens)
    return CompiledExpression(tokens=tokens, func=func, sympy_expr=expr)


__all__ = [
    "SAFE_FUNCTIONS",
    "clone",
    "combine",
    "compile_expression",
    "parse",
    "render",
    "substitute",
    "symbol_names",
]
