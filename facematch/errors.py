"""Exception hierarchy for the face matching pipeline.

"No face detected" is deliberately absent: it is a normal outcome that
switches the comparison to fallback mode.
"""


class FaceMatchError(Exception):
    """Base exception for face matching errors."""
    pass


class ImageNotFoundError(FaceMatchError):
    """Exception raised when an image cannot be read or decoded."""
    pass


class ImageFormatError(ImageNotFoundError):
    """Exception raised when image data has an unusable shape or format."""
    pass


class DetectionError(FaceMatchError):
    """Exception raised when the face detector faults or times out."""
    pass


class ExtractionError(FaceMatchError):
    """Exception raised when a face region cannot be cropped."""
    pass


class ComparisonError(FaceMatchError):
    """Exception raised when two feature vectors cannot be compared."""
    pass
