# calculator_manager.py
"""
Glue between a host search field and the expression evaluator.

The host implements SearchField (read and replace the input text); the manager
decides whether the text is a calculation, evaluates it quietly for inline
display, runs committed calculations and walks the history on request.
"""

import logging
import re
from decimal import Decimal
from typing import List, Optional, Protocol, Union

from calculator_config import CalculatorConfig
from expression_evaluator import CalculatorError, ExpressionEvaluator
from result_formatter import clean_input, format_grouped

logger = logging.getLogger(__name__)

OPERATOR_PATTERN = re.compile(r'[+\-*/^%]')
UNIT_PATTERN = re.compile(r'\d+\s*(?:[kmbtseh]|sc|dc|eb)(?:\s|$|[+\-*/^%()])', re.IGNORECASE)
FUNCTION_PATTERN = re.compile(r'(?:sqrt|abs|floor|ceil|round)\s*\(', re.IGNORECASE)
VARIABLE_PATTERN = re.compile(r'ans|\$\w+', re.IGNORECASE)
PAREN_PATTERN = re.compile(r'[()]')
NUMBER_ONLY = re.compile(r'^\s*\d+\.?\d*\s*$')
TRAILING_OPERATOR = re.compile(r'[+\-*/^%]\s*$')
OPEN_FUNCTION_CALL = re.compile(r'(?:sqrt|abs|floor|ceil|round)\s*\([^)]*$', re.IGNORECASE)

# Common item searches that should not be mistaken for calculations
ITEM_SEARCH = re.compile(
    r'sword|pickaxe|axe|shovel|hoe|helmet|chestplate|leggings|boots|diamond|iron|gold|stone|wood|'
    r'bow|arrow|block|ore|ingot|coal|redstone|lapis|emerald|netherite|pearl|eye|blaze|slime|magma|'
    r'prismarine|quartz|obsidian|glowstone|hopper|chest|furnace|crafting|enchant|potion|book|bed',
    re.IGNORECASE,
)


class SearchField(Protocol):
    """The host's input box."""

    def get_text(self) -> str:
        ...

    def set_text(self, text: str) -> None:
        ...


def looks_like_calculation(text: Optional[str]) -> bool:
    """Is this input a calculation or just a regular search?"""
    if text is None or not text.strip():
        return False
    trimmed = text.strip()

    if NUMBER_ONLY.match(trimmed):
        return False

    has_operator = OPERATOR_PATTERN.search(trimmed) is not None
    if ITEM_SEARCH.search(trimmed) and not has_operator:
        return False

    return any((
        has_operator,
        PAREN_PATTERN.search(trimmed),
        FUNCTION_PATTERN.search(trimmed),
        VARIABLE_PATTERN.search(trimmed),
        UNIT_PATTERN.search(trimmed),
    ))


def is_expression_complete(text: Optional[str]) -> bool:
    """False while the user is evidently still typing: trailing operator, open parens or call."""
    if text is None or not text.strip():
        return False
    trimmed = text.strip()

    if TRAILING_OPERATOR.search(trimmed):
        return False

    depth = 0
    for ch in trimmed:
        if ch == '(':
            depth += 1
        elif ch == ')':
            depth -= 1
            if depth < 0:
                return False
    if depth != 0:
        return False

    return OPEN_FUNCTION_CALL.search(trimmed) is None


class CalculatorManager:
    """
    Calculator state for one host session: live results for the search field,
    committed calculations and history navigation.
    """

    def __init__(self, config: Optional[CalculatorConfig] = None,
                 search_field: Optional[SearchField] = None):
        self.config = config or CalculatorConfig()
        self.search_field = search_field
        self.evaluator = ExpressionEvaluator(self.config.internal_precision)
        self.last_search_input = ""
        self.last_formatted_result: Optional[str] = None
        self.history_index = -1

    def update_search(self, text: Optional[str]) -> str:
        """Process new search text; recompute the inline result when it changed."""
        cleaned = clean_input(text)
        if cleaned == self.last_search_input:
            return cleaned

        self.history_index = -1
        self.last_search_input = cleaned
        self.last_formatted_result = None

        if (self.config.show_inline_results
                and looks_like_calculation(cleaned)
                and is_expression_complete(cleaned)):
            self._calculate_for_display(cleaned)
        return cleaned

    def _calculate_for_display(self, text: str) -> None:
        # Live results never surface errors and never touch history
        try:
            result = self.evaluator.evaluate_quiet(text)
        except CalculatorError as e:
            logger.debug(f"Live evaluation of {text!r} failed: {e!r}")
            self.last_formatted_result = None
            return
        self.last_formatted_result = format_grouped(result, self.config.enable_comma_formatting)

    def has_result(self) -> bool:
        return self.last_formatted_result is not None

    def calculate(self, text: str) -> Decimal:
        """Committed calculation: recorded in history, errors propagate to the caller."""
        return self.evaluator.evaluate(clean_input(text))

    # --------------------------
    # History navigation
    # --------------------------

    def history_back(self) -> None:
        """Show the previous (older) history entry in the search field."""
        history = self._navigable_history()
        if not history:
            return
        if self.history_index == -1:
            self.history_index = len(history) - 1
        elif self.history_index > 0:
            self.history_index -= 1
        self._show(history[self.history_index])

    def history_forward(self) -> None:
        """Show the next (newer) entry; stepping past the newest clears the field."""
        history = self._navigable_history()
        if not history or self.history_index == -1:
            return
        if self.history_index < len(history) - 1:
            self.history_index += 1
            self._show(history[self.history_index])
        else:
            self.history_index = -1
            self._show("")

    def _navigable_history(self) -> List[str]:
        if not self.config.enable_history_navigation or self.search_field is None:
            return []
        return self.evaluator.history()

    def _show(self, text: str) -> None:
        index = self.history_index
        self.search_field.set_text(text)
        self.update_search(self.search_field.get_text())
        # new field text must not reset the navigation position
        self.history_index = index

    # --------------------------
    # Pass-throughs
    # --------------------------

    def set_variable(self, name: str, value: Union[str, Decimal, int]) -> Decimal:
        return self.evaluator.set_variable(name, value)

    def history(self) -> List[str]:
        return self.evaluator.history()

    def clear_history(self) -> None:
        self.evaluator.clear_history()
        self.history_index = -1

    def last_answer(self) -> Decimal:
        return self.evaluator.last_answer()

    def describe_variables(self) -> str:
        return self.evaluator.describe_variables()

    def reset(self) -> None:
        """Reset display state (e.g. when the host session ends)."""
        self.last_search_input = ""
        self.last_formatted_result = None
        self.history_index = -1
