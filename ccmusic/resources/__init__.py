"""Bundled encoder payload.

The ComputerCraft DFPWM encoder ``.jar`` is placed in this package before
building a distribution; it is shipped as package data and extracted to a
temporary file at run time.
"""
