"""
output module - result export
"""

from .result_exporter import ResultExporter

__all__ = ['ResultExporter']
