"""Synthetic record generators."""

from ffv_gen.generators.base import BaseGenerator
from ffv_gen.generators.biometric import BiometricGenerator

__all__ = ["BaseGenerator", "BiometricGenerator"]
