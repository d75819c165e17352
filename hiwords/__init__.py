"""
HiWords
Find known vocabulary in text, inflected forms included
"""

__version__ = "1.0.0"
