"""
Security gate for remote module source.

Source is scanned before anything is executed; a single violation rejects
the whole module.
"""
import re
from typing import List, Optional, Sequence, Tuple
from loguru import logger

from agentlet.core.errors import SecurityValidationError

DEFAULT_RULES: Tuple[Tuple[str, str], ...] = (
    ("dynamic code evaluation (eval)", r"\beval\s*\("),
    ("dynamic code evaluation (exec)", r"\bexec\s*\("),
    ("dynamic code evaluation (compile)", r"(?<![\w.])compile\s*\("),
    ("dynamic code evaluation (Function constructor)", r"\bnew\s+Function\s*\("),
    ("dynamic import (__import__)", r"\b__import__\s*\("),
    ("dynamic import (importlib)", r"\bimportlib\b"),
    ("builtins access", r"\b__builtins__\b|\b(?:import|from)\s+builtins\b"),
    ("unsafe HTML injection (innerHTML)", r"\.innerHTML\s*="),
    ("unsafe HTML injection (outerHTML)", r"\.outerHTML\s*="),
    ("unsafe HTML injection (insertAdjacentHTML)", r"\binsertAdjacentHTML\s*\("),
    ("document.write", r"\bdocument\s*\.\s*write(?:ln)?\s*\("),
    ("script tag", r"<\s*/?\s*script\b"),
    ("javascript: URI", r"\bjavascript\s*:"),
    ("data: URI", r"\bdata\s*:\s*[\w.+-]+/[\w.+-]+"),
    ("vbscript: URI", r"\bvbscript\s*:"),
)


class SecurityGate:
    """
    Rejects source containing dangerous constructs.

    Usage:
        gate = SecurityGate()
        gate.validate(source, url)  # raises SecurityValidationError
    """

    def __init__(self, rules: Optional[Sequence[Tuple[str, str]]] = None):
        self._rules = [
            (label, re.compile(pattern, re.IGNORECASE))
            for label, pattern in (rules if rules is not None else DEFAULT_RULES)
        ]

    def find_violations(self, source: str) -> List[str]:
        return [label for label, regex in self._rules if regex.search(source)]

    def validate(self, source: str, origin: str = "<remote>") -> None:
        """
        Raises:
            SecurityValidationError: If any rule matches
        """
        violations = self.find_violations(source)
        if violations:
            logger.warning(f"Rejected module source from {origin}: {', '.join(violations)}")
            raise SecurityValidationError(origin, violations)
        logger.debug(f"Module source from {origin} passed security validation")
