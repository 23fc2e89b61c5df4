"""Stack outputs: the public result of a successful apply."""

from __future__ import annotations

from typing import Any, Dict

from stackwright.core.errors import NotReadyError
from stackwright.model.references import resolve_value
from stackwright.model.stack import Stack, StackStatus


def exports(stack: Stack) -> Dict[str, Any]:
    """Resolve every declared export of ``stack``.

    Raises:
        NotReadyError: the stack has not been successfully applied, or an
            exported value depends on a resource that is not Created.
    """
    if stack.status is not StackStatus.APPLIED:
        raise NotReadyError(
            f"Outputs of stack '{stack.name}' are not available (status: {stack.status.value})",
            {"stack": stack.name, "status": stack.status.value},
        )

    values: Dict[str, Any] = {}
    for item in stack.exports:
        for ref in item.value.references():
            owner = ref.owner or stack.get(ref.target)
            if owner is None or not owner.is_created:
                raise NotReadyError(
                    f"Export '{item.name}' depends on '{ref.target}', which is not created",
                    {"stack": stack.name, "export": item.name, "resource": ref.target},
                )
        values[item.name] = resolve_value(item.value)
    return values
