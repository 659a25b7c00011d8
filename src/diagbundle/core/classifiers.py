"""Classifier labels and selections.

A classifier is a case-sensitive label ("logs", "config", ...) used to pick the
sources that go into a report. A request is expressed as a ClassifierSelection
made of NamedClassifier values and, optionally, the ALL_CLASSIFIERS sentinel
(spelled "all" on the command line and in configuration).
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from typing import TYPE_CHECKING, Union

if TYPE_CHECKING:
    from diagbundle.core.interfaces import IOfflineReportProvider

ALL_LABEL = "all"


class AllClassifiers:
    """Sentinel classifier matching every label."""

    _instance: AllClassifiers | None = None

    def __new__(cls) -> AllClassifiers:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    @property
    def label(self) -> str:
        return ALL_LABEL

    def __repr__(self) -> str:
        return "ALL_CLASSIFIERS"


ALL_CLASSIFIERS = AllClassifiers()


@dataclass(frozen=True, order=True)
class NamedClassifier:
    """A single, explicitly named classifier."""

    label: str

    def __post_init__(self) -> None:
        if not isinstance(self.label, str):
            raise TypeError(f"classifier label must be a string, got {type(self.label).__name__}")


Classifier = Union[AllClassifiers, NamedClassifier]


def parse_classifier(label: str) -> Classifier:
    """Map a label to a classifier value ("all" -> ALL_CLASSIFIERS).

    Labels are taken verbatim; trimming belongs to whoever parses user input.
    """
    if label == ALL_LABEL:
        return ALL_CLASSIFIERS
    return NamedClassifier(label)


@dataclass(frozen=True)
class ClassifierSelection:
    """The set of classifiers requested for one dump."""

    classifiers: frozenset[Classifier]

    @classmethod
    def of(cls, labels: Iterable[str]) -> ClassifierSelection:
        if isinstance(labels, str):
            labels = [labels]
        return cls(frozenset(parse_classifier(label) for label in labels))

    @classmethod
    def coerce(cls, value: ClassifierSelection | Iterable[str]) -> ClassifierSelection:
        if isinstance(value, ClassifierSelection):
            return value
        return cls.of(value)

    @property
    def includes_all(self) -> bool:
        return ALL_CLASSIFIERS in self.classifiers

    @property
    def labels(self) -> frozenset[str]:
        """Requested labels as strings, the sentinel included as "all"."""
        return frozenset(c.label for c in self.classifiers)

    def matches(self, label: str) -> bool:
        """True when a source registered under label belongs to this selection."""
        if self.includes_all:
            return True
        return label in self.labels

    def matches_any(self, labels: Iterable[str]) -> bool:
        return any(self.matches(label) for label in labels)

    def __contains__(self, label: object) -> bool:
        return label in self.labels

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self.labels))

    def __len__(self) -> int:
        return len(self.classifiers)


class ClassifierIndex:
    """Known classifier labels, for discovery and help output.

    Provider classifiers are read from the providers on every query so the
    index always reflects current registration state.
    """

    def __init__(self) -> None:
        self._providers: list[IOfflineReportProvider] = []
        self._labels: set[str] = set()

    def add_provider(self, provider: IOfflineReportProvider) -> None:
        self._providers.append(provider)

    def add(self, label: str) -> None:
        self._labels.add(label)

    def labels(self) -> list[str]:
        """Sorted union of provider classifiers and directly registered labels."""
        known = set(self._labels)
        for provider in self._providers:
            known.update(provider.get_filter_classifiers())
        return sorted(known)

    def __contains__(self, label: object) -> bool:
        return label in self.labels()

    def __len__(self) -> int:
        return len(self.labels())
