from .capture import CaptureSequencer, FrameSequence, FrameStore, load_frames
from .correspondence import (
    CorrespondenceBuilder,
    CorrespondenceEntry,
    CorrespondenceTable,
    ProjectorCoordinateMap,
)
from .decode import GrayCodeDecoder, compute_shadow_mask
from .errors import CaptureError, ConfigurationError, ProCamError, SequenceAlignmentError
from .graycode import PatternGenerator, PatternSet, binary_to_gray, gray_to_binary
from .schema import SessionConfig

__version__ = "0.1.0"

__all__ = [
    "CaptureError",
    "CaptureSequencer",
    "ConfigurationError",
    "CorrespondenceBuilder",
    "CorrespondenceEntry",
    "CorrespondenceTable",
    "FrameSequence",
    "FrameStore",
    "GrayCodeDecoder",
    "PatternGenerator",
    "PatternSet",
    "ProCamError",
    "ProjectorCoordinateMap",
    "SequenceAlignmentError",
    "SessionConfig",
    "binary_to_gray",
    "compute_shadow_mask",
    "gray_to_binary",
    "load_frames",
]
