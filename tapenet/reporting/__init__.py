"""Reporting utilities for tapenet."""

from .artifacts import write_manifest
from .metrics import CsvSink, JsonlSink
from .plots import PlotSink
from .summary import write_summary

__all__ = ["CsvSink", "JsonlSink", "PlotSink", "write_manifest", "write_summary"]
