"""Pydantic models for Dart VM Service responses."""

from pydantic import BaseModel, ConfigDict, Field


class IsolateRef(BaseModel):
    """Reference to an isolate as reported by ``getVM``."""

    model_config = ConfigDict(extra="allow")

    id: str
    """Isolate identifier used as ``isolateId`` in later calls."""

    name: str = ""
    """Isolate name (``main`` for the Flutter UI isolate)."""


class LibraryRef(BaseModel):
    """Reference to a library loaded in an isolate."""

    model_config = ConfigDict(extra="allow")

    id: str
    uri: str


class EvaluationResult(BaseModel):
    """Instance reference returned by ``evaluate`` or ``getObject``.

    A string value may be truncated by the VM Service; when
    ``value_as_string_is_truncated`` is set or the value is missing, ``id``
    must be used to fetch the full object.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    type: str | None = None
    """VM object type (``@Instance``, ``Instance``, ``@Error``...)."""

    id: str | None = None
    """Remote object id for out-of-band retrieval."""

    value_as_string: str | None = Field(default=None, alias="valueAsString")
    """Inline string value (possibly truncated)."""

    value_as_string_is_truncated: bool | None = Field(
        default=None, alias="valueAsStringIsTruncated"
    )
    """Whether the inline string value was cut by the transport."""

    message: str | None = None
    """Error message for ``@Error`` results."""

    @property
    def is_error(self) -> bool:
        """Check if the result describes an error instance."""
        return self.type in ("@Error", "Error")

    @property
    def has_complete_string(self) -> bool:
        """Check if the inline string can be trusted as-is."""
        return (
            self.value_as_string is not None
            and self.value_as_string_is_truncated is not True
        )


class ResolvedString(BaseModel):
    """String recovered from an evaluation result."""

    value: str
    """Best available string value."""

    complete: bool
    """False when the VM still reported the value as truncated."""
