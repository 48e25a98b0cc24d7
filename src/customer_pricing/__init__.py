"""
Customer Pricing Package

Customer-specific price resolution for sales orders and quotes.
Resolves prices using Custom Price → Tier Price → Retail pipeline with a
session cache and a local tier fallback when the pricing authority is down.
"""

__version__ = "1.0.0"
