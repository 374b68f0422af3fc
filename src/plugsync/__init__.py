"""
Smart plug state reconciliation (plugsync).

Keeps a set of network power switches, identified by their configured
label, at an externally requested on/off state. Devices that drop off the
network or change address are rediscovered automatically.
"""

__version__ = "0.1.0"
