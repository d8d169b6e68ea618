"""ccmusic - batch converter from arbitrary audio to ComputerCraft DFPWM."""

__version__ = "0.1.0"
