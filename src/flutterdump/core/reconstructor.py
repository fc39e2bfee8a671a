"""Recover string values that the VM Service truncated in transit."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from flutterdump.exceptions import RemoteRpcError, UnexpectedResultShape
from flutterdump.models.vm import EvaluationResult, ResolvedString

if TYPE_CHECKING:
    from flutterdump.core.session import Session


def _parse(result: Any) -> EvaluationResult:
    if not isinstance(result, dict):
        raise UnexpectedResultShape(result)
    try:
        return EvaluationResult.model_validate(result)
    except ValidationError as e:
        raise UnexpectedResultShape(result, f"Invalid result ({e.error_count()} errors)") from e


def resolve_string(session: Session, isolate_id: str, result: Any) -> ResolvedString:
    """Return the full string behind an evaluation result.

    Inline values are used when the VM did not truncate them. Otherwise the
    referenced object is fetched once with ``getObject``; if that value is
    still truncated it is returned with ``complete=False`` since there is no
    further level of indirection.

    Args:
        session: Open dump session.
        isolate_id: Isolate owning the referenced object.
        result: Raw ``evaluate`` result (an instance reference or a bare string).

    Returns:
        ResolvedString with the best available value.

    Raises:
        RemoteRpcError: If the evaluation produced an error instance.
        UnexpectedResultShape: If no string value can be recovered.
    """
    log = session.log

    if isinstance(result, str):
        return ResolvedString(value=result, complete=True)

    evaluation = _parse(result)

    # Error instances carry an id too, but never a string worth fetching
    if evaluation.is_error:
        raise RemoteRpcError(evaluation.message or "Evaluation failed", result)

    if evaluation.has_complete_string:
        return ResolvedString(value=evaluation.value_as_string, complete=True)

    if not evaluation.id:
        raise UnexpectedResultShape(result, "Unexpected result shape (no object id)")

    log.info("Result is truncated, fetching full object {}", evaluation.id)
    full = _parse(session.get_object(isolate_id, evaluation.id))

    if full.value_as_string is None:
        raise UnexpectedResultShape(
            full.model_dump(by_alias=True, exclude_none=True),
            "Full object has no string value",
        )

    if full.value_as_string_is_truncated:
        log.warning(
            "Full object string is still truncated, using {} available characters",
            len(full.value_as_string),
        )
        return ResolvedString(value=full.value_as_string, complete=False)

    return ResolvedString(value=full.value_as_string, complete=True)
