# calc_repl.py
"""
Interactive command-line host for the calculator.

Stands in for the in-game chat commands: a bare line is a committed calculation
(recorded in history and shown with a unit suggestion), colon commands inspect
and change calculator state.

Commands:
  :hist                 show calculation history
  :clear                clear calculation history
  :set <var> <expr>     store a variable ($ prefix optional)
  :vars                 list variables
  :help [page]          help; pages: operators, functions, units, variables, examples, config
  :config               show current settings
  :exit / :quit         leave
"""

import argparse
import logging
import os
import sys
from typing import Dict, List, Optional, Tuple

from prompt_toolkit import PromptSession
from prompt_toolkit.completion import WordCompleter
from prompt_toolkit.history import FileHistory

from calculator_config import CalculatorConfig, load_config
from calculator_manager import CalculatorManager
from expression_evaluator import FUNCTIONS, MAX_HISTORY, UNITS, CalculatorError
from result_formatter import format_with_unit_suggestion

logger = logging.getLogger(__name__)

HISTORY_FILE = os.path.expanduser("~/.notenoughcalculator_history")

# :hist prints at most this many of the newest entries
MAX_HISTORY_DISPLAY = 10

_HELP_PAGES: Dict[str, str] = {
    'main': (
        "Calculator help\n"
        "Type an expression to calculate it, e.g. 10m/64 or 2.5k*3.\n"
        "Commands:\n"
        "  :hist                 show calculation history\n"
        "  :clear                clear calculation history\n"
        "  :set <var> <expr>     store a variable\n"
        "  :vars                 list variables\n"
        "  :config               show current settings\n"
        "  :exit                 exit\n"
        "Help pages: :help operators | functions | units | variables | examples | config\n"
    ),
    'operators': (
        "Operators (high -> low precedence):\n"
        "  ^          power (right-assoc: 2^3^2 == 2^(3^2)), integer exponents up to 1000\n"
        "  - +        unary sign\n"
        "  * x / %    multiply, divide, remainder ('x' works as multiply: 10x5, (2+3)x4)\n"
        "  + -        add, subtract\n"
        "Parentheses group: (2+3)*4 -> 20\n"
        "Adding, subtracting and multiplying are exact; division keeps at least 50 digits.\n"
    ),
    'functions': (
        "Functions (one argument each):\n"
        "  sqrt(x)    square root          sqrt(144) -> 12\n"
        "  abs(x)     absolute value       abs(-5) -> 5\n"
        "  floor(x)   round down           floor(2.7) -> 2\n"
        "  ceil(x)    round up             ceil(2.1) -> 3\n"
        "  round(x)   round half up        round(2.5) -> 3\n"
        "Functions combine: sqrt(abs(-16)) + round(2.4) -> 6\n"
    ),
    'units': (
        "Units (written right after a number):\n"
        "  Currency:  k = 1,000   m = 1,000,000   b = 1,000,000,000   t = 1,000,000,000,000\n"
        "  Items:     s = 64 (stack)   e = 160 (enchanted)\n"
        "  Storage:   h = sc = 1,728 (shulker / small chest)   dc = 3,456 (double chest)"
        "   eb = 2,880 (ender chest)\n"
        "Examples: 5k -> 5,000   2.5m -> 2,500,000   3s -> 192   10bx50k -> 500,000,000,000,000\n"
    ),
    'variables': (
        "Variables:\n"
        "  ans        result of the last calculation: 5*5 then ans*2 -> 50\n"
        "  $name      custom variable, set with :set name <expr>\n"
        "Examples:\n"
        "  :set price 2.5m\n"
        "  $price*64\n"
    ),
    'examples': (
        "Examples:\n"
        "  Auction profit:   1.2m*0.98 - 1m\n"
        "  Items to stacks:  1000/64\n"
        "  Bulk buying:      3dc*45\n"
        "  Budget split:     50m/3\n"
        "  With ans:         2.5k*3 then ans/2\n"
    ),
    'config': (
        "Configuration:\n"
        "  Settings are read from notenoughcalculator.json (or $CALCULATOR_CONFIG).\n"
        "  Keys: decimal_precision, show_unit_suggestions, enable_history_navigation,\n"
        "        show_inline_results, enable_comma_formatting\n"
        "  :config shows the current values.\n"
    ),
}


def show_help(page: Optional[str] = None) -> str:
    """Return the help text for `page`, or the main page."""
    if not page:
        return _HELP_PAGES['main']
    return _HELP_PAGES.get(page.lower(), _HELP_PAGES['main'])


def describe_config(config: CalculatorConfig) -> str:
    def yes_no(flag: bool) -> str:
        return "yes" if flag else "no"

    return (
        "Current settings:\n"
        f"  Decimal precision:    {config.decimal_precision} (internal {config.internal_precision})\n"
        f"  Unit suggestions:     {yes_no(config.show_unit_suggestions)}\n"
        f"  Comma formatting:     {yes_no(config.enable_comma_formatting)}\n"
        f"  Inline results:       {yes_no(config.show_inline_results)}\n"
        f"  History navigation:   {yes_no(config.enable_history_navigation)}\n"
        f"  History size:         {MAX_HISTORY} (fixed)"
    )


class REPL:
    """Read-Eval-Print Loop for the calculator."""

    def __init__(self, config: Optional[CalculatorConfig] = None):
        self.config = config or CalculatorConfig()
        self.manager = CalculatorManager(self.config)
        self.history_file = HISTORY_FILE

    def _format(self, value) -> str:
        return format_with_unit_suggestion(value, self.config.show_unit_suggestions,
                                           self.config.enable_comma_formatting)

    @staticmethod
    def _error(e: CalculatorError) -> str:
        return f"Error: {e.message} (at position {e.position})"

    def _run_command(self, cmd: str, args_str: str) -> str:
        """Execute a colon command. Raises EOFError for exit/quit."""
        cmd_lower = cmd.lower()
        if cmd_lower in {'exit', 'quit'}:
            raise EOFError()
        if cmd_lower == 'help':
            return show_help(args_str.strip() or None)
        if cmd_lower == 'hist':
            history = self.manager.history()
            if not history:
                return "No calculations in history"
            shown = min(MAX_HISTORY_DISPLAY, len(history))
            first = len(history) - shown
            lines = ["Calculation history:"]
            lines.extend(f"  {i}. {expr}" for i, expr in enumerate(history[first:], first + 1))
            if len(history) > shown:
                lines.append(f"(showing last {shown} of {len(history)})")
            return "\n".join(lines)
        if cmd_lower == 'clear':
            self.manager.clear_history()
            return "History cleared"
        if cmd_lower == 'vars':
            return self.manager.describe_variables()
        if cmd_lower == 'config':
            return describe_config(self.config)
        if cmd_lower == 'set':
            parts = args_str.split(None, 1)
            if len(parts) < 2:
                return "Usage: :set <var> <expr>"
            name = parts[0].lstrip('$')
            value = self.manager.set_variable(name, parts[1])
            return f"${name.lower()} = {self._format(value)}"
        return f"Unknown command: {cmd}"

    def evaluate_line(self, line: str) -> Tuple[bool, str]:
        """Evaluate a single line (either command or expression). Returns (ok, output)."""
        s = line.strip()
        try:
            if s.startswith(':'):
                parts = s[1:].split(None, 1)
                if not parts:
                    return False, "No command specified. Use :help for available commands."
                return True, self._run_command(parts[0], parts[1] if len(parts) > 1 else '')
            if s.lower() == 'help' or s.lower().startswith('help '):
                return True, show_help(s[4:].strip() or None)
            result = self.manager.calculate(s)
            return True, f"{s} = {self._format(result)}"
        except CalculatorError as e:
            return False, self._error(e)

    def _completer(self) -> WordCompleter:
        words: List[str] = sorted(FUNCTIONS) + sorted(UNITS) + ['ans']
        words += [f"${name}" for name in sorted(self.manager.evaluator.variables)]
        return WordCompleter(words, ignore_case=True)

    def repl_loop(self) -> None:
        print("Calculator. Type :help for help. Ctrl-D or :exit to quit.")
        session = PromptSession(history=FileHistory(self.history_file))
        while True:
            try:
                line = session.prompt('> ', completer=self._completer())
            except KeyboardInterrupt:
                print("^C")
                continue
            except EOFError:
                print("Exiting.")
                break
            if not line.strip():
                continue
            try:
                ok, out = self.evaluate_line(line)
            except EOFError:
                print("Exiting.")
                break
            print(out)


# --------------------------
# Entry point
# --------------------------

def log_level_from_env() -> int:
    """Level named by CALC_LOG_LEVEL; unknown names fall back to WARNING."""
    name = os.getenv("CALC_LOG_LEVEL", "WARNING").upper()
    level = logging.getLevelName(name)
    if not isinstance(level, int):
        logger.warning(f"Unknown CALC_LOG_LEVEL {name!r}, using WARNING")
        return logging.WARNING
    return level


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Interactive calculator with game-economy units.")
    parser.add_argument("--config", help="path to the JSON settings file")
    parser.add_argument("--precision", type=int, help="override decimal_precision")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=log_level_from_env(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    config = load_config(args.config)
    if args.precision is not None:
        config = config.model_copy(update={'decimal_precision': max(args.precision, 0)})
    logger.info(f"Starting calculator with {config!r}")

    REPL(config).repl_loop()
    return 0


if __name__ == '__main__':
    sys.exit(main())
