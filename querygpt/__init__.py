"""QueryGPT: natural-language to SQL generation over a tenant schema."""

__version__ = "0.1.0"
