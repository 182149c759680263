"""Vehicle-offer document pipeline: text extraction, structured extraction,
validation, field resolution and reference mapping."""

__version__ = "0.1.0"
