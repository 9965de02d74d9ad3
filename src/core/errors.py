"""Error taxonomy shared by the core pipeline and its adapters.

Adapters translate library exceptions into these types so the core only has
to reason about pipeline-level failures.
"""

from __future__ import annotations


class PipelineError(Exception):
    """Base class for all pipeline failures."""


class ResolutionError(PipelineError):
    """A source could not be addressed (unknown or not a channel)."""


class FetchError(PipelineError):
    """A page of items could not be retrieved from a source."""


class StorageError(PipelineError):
    """A cursor or hit read/write failed, or a record was invalid."""


class SendError(PipelineError):
    """The outbound transport refused or failed to deliver one message."""


class MarkError(PipelineError):
    """A sent batch could not be marked as delivered."""
