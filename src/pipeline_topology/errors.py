"""Exceptions raised by the topology pipeline."""


class TopologyError(Exception):
    """Base class for pipeline errors."""


class AcquisitionError(TopologyError):
    """The input dataset could not be obtained or parsed as a whole."""


class FeatureParseError(TopologyError, ValueError):
    """A single feature has an unsupported or malformed geometry."""

    def __init__(self, feature_index: int, reason: str):
        super().__init__(f"feature {feature_index}: {reason}")
        self.feature_index = feature_index
        self.reason = reason
