"""Utility functions for the container image analyzer."""

from .digest import digest_from_path, validate_digest
from .glob import glob_match, make_path_matcher

__all__ = ["digest_from_path", "glob_match", "make_path_matcher", "validate_digest"]
