"""formlogic: conditional-rule evaluation and field-hierarchy engine for dynamic forms."""

__version__ = "0.1.0"
