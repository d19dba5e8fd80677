"""
Dreistrom Kernel

Fiscal core for a self-employed person earning through three income streams
(employment, freelance, trade) under German tax rules:
- Gap-free invoice numbering per (stream, fiscal year)
- Exact cent arithmetic with a single HALF_UP rounding rule
- Invoice lifecycle with audit payloads
- VAT return, small-business threshold and summary EU-sales inputs
"""

__version__ = "0.1.0"
