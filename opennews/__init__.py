"""OpenNews: a personal news pipeline.

Discovers the day's news from configured sources, collapses duplicate
coverage, groups it into topics scored for one reader and writes cited
long-form articles about those topics on demand.
"""

__all__ = []
