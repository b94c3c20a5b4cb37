"""
avasim - spin up a local Avalanche network and deploy a custom VM onto it.
"""

__version__ = "0.1.0"
