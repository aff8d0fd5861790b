"""Domain models for synthetic biometric data generation."""

from ffv_gen.models.biometric import (
    FACE_BOX_SIZE,
    FEATURE_VECTOR_SIZE,
    NIL_IMAGE_ID,
    PLACEHOLDER,
    ControlObject,
    FacialFeaturesVector,
)

__all__ = [
    "FACE_BOX_SIZE",
    "FEATURE_VECTOR_SIZE",
    "NIL_IMAGE_ID",
    "PLACEHOLDER",
    "ControlObject",
    "FacialFeaturesVector",
]
