"""
Schema Studio: a form schema designer with undo/redo history, sandboxed
visibility and computed-value expressions, and form validation.
"""

__version__ = "1.0.0"
