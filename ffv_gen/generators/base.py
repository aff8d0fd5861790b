"""Base generator class for all data generators."""

from __future__ import annotations

import random
import time
import uuid
from abc import ABC

from faker import Faker


class BaseGenerator(ABC):
    """Base class for all data generators.

    Every draw goes through one ``random.Random`` handle owned by the
    generator, so a fixed seed reproduces a run exactly. The Faker instance
    is seeded from the same handle.

    Parameters
    ----------
    seed : int | None
        Random seed. Defaults to the current wall clock in whole seconds.
    locale : str
        Faker locale (default ``ru_RU``).
    rng : random.Random | None
        Pre-built random source; takes precedence over ``seed``.
    """

    def __init__(
        self,
        seed: int | None = None,
        locale: str = "ru_RU",
        rng: random.Random | None = None,
    ) -> None:
        if rng is None:
            self.seed = int(time.time()) if seed is None else seed
            rng = random.Random(self.seed)
        else:
            self.seed = seed
        self.rng = rng
        self.fake = Faker(locale)
        self.fake.seed_instance(self.rng.getrandbits(32))

    def uuid(self) -> str:
        """Return a random UUID4 string drawn from the generator's source."""
        return str(uuid.UUID(int=self.rng.getrandbits(128), version=4))
