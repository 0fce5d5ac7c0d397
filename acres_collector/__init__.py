"""acres-collector: courthouse sale comps enriched with cropland statistics"""

__version__ = "0.1.0"
