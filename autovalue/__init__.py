"""
AutoValue - diminished value appraisal backend.

Packages:
- valuation: DV engines, comparable selection, MarketCheck pricing source,
  state law reference data and the valuation API router
"""

__version__ = "0.4.0"
