"""
Schema-driven forms with change tracking and searchable selection widgets.
"""

__version__ = "1.0.0"
