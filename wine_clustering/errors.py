from __future__ import annotations


class PipelineError(Exception):
    """Base class for failures a pipeline step reports by stage."""


class LoadError(PipelineError):
    """Dataset or model artifact could not be read."""


class FeatureConfigError(PipelineError):
    """Configured feature columns do not match the wine record fields."""


class ArtifactWriteError(PipelineError, OSError):
    """Writing a model artifact to disk failed."""


class ConversionError(PipelineError):
    """A pipeline stage has no ONNX equivalent."""


class ShapeMismatchError(PipelineError):
    """An inference input does not match the graph's declared signature."""


class ParityError(PipelineError):
    """Native and ONNX predictions disagree."""


class FitError(PipelineError):
    """The clustering model could not be fitted to the loaded data."""
