"""
Building map tools: editing-scene model and the canonical .building.yaml saver.
"""

__version__ = "0.1.0"
