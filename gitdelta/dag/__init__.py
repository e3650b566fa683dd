"""Commit graph storage for gitdelta."""

from .commit_graph import CommitGraph

__all__ = ["CommitGraph"]
