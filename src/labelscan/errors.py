"""Error taxonomy for the recognition pipeline.

Soft outcomes (illegible text, non-food products) are not errors; they are
returned as normal ``AnalysisResult`` values.
"""


class LabelScanError(Exception):
    """Base class for all labelscan failures."""


class InputError(LabelScanError):
    """The image source is missing or cannot be decoded."""


class EngineError(LabelScanError):
    """The recognition engine failed while configuring or recognizing."""


class CancelledError(LabelScanError):
    """The request was cancelled through its cancellation token.

    Distinct from ``asyncio.CancelledError``: this is raised to the caller
    that owns the token and never interrupts the event loop.
    """
