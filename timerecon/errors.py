"""Exception types raised across the reconciliation pipeline."""


class SourceFetchError(RuntimeError):
    """The time-entry source could not be read; fatal for the run."""


class AnnotationError(RuntimeError):
    """Comment and label update were not both confirmed by the issue tracker."""


class CheckpointError(RuntimeError):
    """The checkpoint store is unavailable; the run cannot proceed safely."""


class IssueTrackerError(RuntimeError):
    """The issue tracker answered with a body that could not be read."""
