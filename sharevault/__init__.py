"""
sharevault package

Share-based custodial vault accounting: many depositors pool one fungible
asset and receive shares redeemable for a proportional slice of the pool.
"""

__version__ = "0.1.0"
