"""imagecolors.core — Foundation layer.

Contains the colour math, type definitions, configuration and report builder.
This module has NO dependencies on imagecolors.engine or the orchestrator.
Only stdlib, numpy, PIL and loguru are allowed here.
"""
