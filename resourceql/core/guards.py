from __future__ import annotations

from typing import Any, Callable, Iterable


class GuardEvaluator:
    """Runs visibility guards for fields and counts.

    A guard is called as ``guard(resource, request)``. Only a literal
    ``False`` hides the value; ``None`` and other falsy results pass, so a
    guard can be a best-effort check that simply returns nothing. Evaluation
    stops at the first rejecting guard.
    """

    def passes_guards(self, guards: Iterable[Callable[..., Any]], resource: Any, request: Any = None) -> bool:
        for guard in guards or ():
            if callable(guard) and guard(resource, request) is False:
                return False
        return True


def passes_guards(guards: Iterable[Callable[..., Any]], resource: Any, request: Any = None) -> bool:
    return GuardEvaluator().passes_guards(guards, resource, request)


__all__ = ['GuardEvaluator', 'passes_guards']
