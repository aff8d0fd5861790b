"""Biometric domain models: control objects and facial features vectors."""

from dataclasses import dataclass
from datetime import datetime

# Sentinel image reference meaning "no real source image"
NIL_IMAGE_ID = "00000000-0000-0000-0000-000000000000"

PLACEHOLDER = "-"

FACE_BOX_SIZE = 4
FEATURE_VECTOR_SIZE = 128


@dataclass
class ControlObject:
    """Biometric subject (person) record."""

    id: str
    created_at: datetime
    passport: str  # "DD DD DDDDDD"
    surname: str = PLACEHOLDER
    name: str = PLACEHOLDER
    patronymic: str = PLACEHOLDER
    sex: str = PLACEHOLDER
    birth_date: str = PLACEHOLDER
    phone_number: str = PLACEHOLDER
    email: str = PLACEHOLDER
    address: str = PLACEHOLDER


@dataclass
class FacialFeaturesVector:
    """Facial descriptor owned by exactly one control object."""

    id: str
    control_object_id: str
    face_box: list[int]  # 4 x UInt64
    feature_vector: list[float]  # 128 x Float64 in [-1.0, 1.0)
    image_id: str = NIL_IMAGE_ID
