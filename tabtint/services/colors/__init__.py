"""
TabTint Colors Module

Provides color math, dominant color quantization, validity filtering and
perceptual palette derivation for the color resolution pipeline.
"""

__version__ = "1.0.0"
