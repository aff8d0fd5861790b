"""Control object and facial features vector generators."""

from __future__ import annotations

import random
from datetime import datetime

from ffv_gen.generators.base import BaseGenerator
from ffv_gen.models import (
    FACE_BOX_SIZE,
    FEATURE_VECTOR_SIZE,
    NIL_IMAGE_ID,
    PLACEHOLDER,
    ControlObject,
    FacialFeaturesVector,
)

PASSPORT_LENGTH = 12
PASSPORT_SEPARATORS = (2, 5)

UINT64_BITS = 64


class BiometricGenerator(BaseGenerator):
    """Generate synthetic control objects and their facial features vectors.

    Parameters
    ----------
    seed : int | None
        Random seed for reproducibility.
    locale : str
        Faker locale used in ``faker`` identity mode.
    identity_mode : str
        ``placeholder`` fills identity fields with ``"-"``; ``faker``
        generates realistic values.
    rng : random.Random | None
        Shared random source.
    """

    SEXES = ["M", "F"]

    def __init__(
        self,
        seed: int | None = None,
        locale: str = "ru_RU",
        identity_mode: str = "placeholder",
        rng: random.Random | None = None,
    ) -> None:
        super().__init__(seed=seed, locale=locale, rng=rng)
        self.identity_mode = identity_mode

    def generate_passport_number(self) -> str:
        """Generate a masked passport number such as ``"45 07 123456"``."""
        chars = []
        for i in range(PASSPORT_LENGTH):
            if i in PASSPORT_SEPARATORS:
                chars.append(" ")
            else:
                chars.append(str(self.rng.randrange(10)))
        return "".join(chars)

    def generate_face_box(self) -> list[int]:
        """Generate 4 face box coordinates over the full UInt64 range."""
        return [self.rng.getrandbits(UINT64_BITS) for _ in range(FACE_BOX_SIZE)]

    def generate_feature_vector(self) -> list[float]:
        """Generate 128 features, each uniform in [-1.0, 1.0)."""
        return [self.rng.random() * 2.0 - 1.0 for _ in range(FEATURE_VECTOR_SIZE)]

    def generate_control_object(self, now: datetime | None = None) -> ControlObject:
        """Generate a single control object.

        Parameters
        ----------
        now : datetime | None
            Creation timestamp; defaults to the current wall clock as a
            timezone-aware local time.

        Returns
        -------
        ControlObject
            Generated control object.
        """
        cob = ControlObject(
            id=self.uuid(),
            created_at=now or datetime.now().astimezone(),
            passport=self.generate_passport_number(),
        )
        if self.identity_mode == "faker":
            self._fill_identity(cob)
        return cob

    def generate_ffv(self, control_object: ControlObject) -> FacialFeaturesVector:
        """Generate the facial features vector owned by ``control_object``."""
        return FacialFeaturesVector(
            id=self.uuid(),
            control_object_id=control_object.id,
            image_id=NIL_IMAGE_ID,
            face_box=self.generate_face_box(),
            feature_vector=self.generate_feature_vector(),
        )

    def generate_batch(
        self,
        count: int,
        now: datetime | None = None,
    ) -> tuple[list[ControlObject], list[FacialFeaturesVector]]:
        """Generate ``count`` control objects and one FFV for each.

        The i-th FFV references the i-th control object.
        """
        cobs = self.generate_control_objects(count, now)
        return cobs, self.generate_ffvs(cobs)

    def generate_control_objects(self, count: int, now: datetime | None = None) -> list[ControlObject]:
        """Generate ``count`` control objects."""
        return [self.generate_control_object(now) for _ in range(count)]

    def generate_ffvs(self, control_objects: list[ControlObject]) -> list[FacialFeaturesVector]:
        """Generate one FFV per control object, in the same order."""
        return [self.generate_ffv(cob) for cob in control_objects]

    def _fill_identity(self, cob: ControlObject) -> None:
        """Populate identity fields with Faker values matching a random sex."""
        sex = self.rng.choice(self.SEXES)
        gender = "male" if sex == "M" else "female"

        cob.sex = sex
        cob.surname = getattr(self.fake, f"last_name_{gender}")()
        cob.name = getattr(self.fake, f"first_name_{gender}")()
        # Not every locale has patronymics
        middle_name = getattr(self.fake, f"middle_name_{gender}", None)
        cob.patronymic = middle_name() if middle_name else PLACEHOLDER
        cob.birth_date = self.fake.date_of_birth(minimum_age=18, maximum_age=90).isoformat()
        cob.phone_number = self.fake.phone_number()
        cob.email = self.fake.free_email()
        cob.address = self.fake.address().replace("\n", ", ")
