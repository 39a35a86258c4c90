"""This is the processing submodule.

This module contains the minute-level processing of activity counts: intensity
classification, artifact correction, non-wear detection, day segmentation,
bout detection, day validity and the per-day and per-subject summaries.
"""
