"""
Core modules for Avatar Catalog.

This package contains the compatibility resolver, the spend aggregator
and the price and selection helpers they build on.
"""
