"""Photo declutter: group similar photos, score quality, pick keepers."""

__version__ = "0.1.0"
