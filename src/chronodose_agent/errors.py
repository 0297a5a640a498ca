"""Exceptions raised while scanning centers."""

from __future__ import annotations


class ScanError(RuntimeError):
    """Base class for failures confined to a single center's scan.

    The scanner converts these into a zero count, they never abort the run.
    """

    @property
    def kind(self) -> str:
        return type(self).__name__


class MalformedUrl(ScanError):
    """The booking URL lacks a center slug or a practice id."""


class MalformedMetadata(ScanError):
    """The booking metadata document is missing required fields."""


class MetadataFetchError(ScanError):
    """The booking metadata document could not be fetched or decoded."""


class ProbeError(ScanError):
    """The availability calendar could not be fetched or decoded."""


class FeedError(RuntimeError):
    """A department snapshot could not be fetched or decoded."""
