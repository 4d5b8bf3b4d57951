"""Dependency trees over installed OS packages.

The package graph is folded into a tree: each package is expanded at its
first position only and appears as a leaf everywhere else, and a package
that is already an ancestor on the current path becomes a leaf as well.
Dependencies that resolve to no installed package are dropped.
"""

import logging
from dataclasses import asdict, dataclass, field, is_dataclass
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Set

from .packages.models import AnalyzedPackage

logger = logging.getLogger(__name__)

META_COMMON_PACKAGES = "meta-common-packages"


@dataclass
class DependencyNode:
    """A package in the tree, keyed by ``source/name`` where a source is known."""

    name: str
    version: Optional[str] = None
    dependencies: Dict[str, "DependencyNode"] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"name": self.name, "version": self.version}
        if self.dependencies:
            data["dependencies"] = {
                name: node.to_dict() for name, node in self.dependencies.items()
            }
        return data


@dataclass
class DependencyTree:
    """Root of an image's dependency tree."""

    name: str
    version: str
    target_os: Any
    package_format_version: str
    dependencies: Dict[str, DependencyNode] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        target_os = self.target_os
        if is_dataclass(target_os):
            target_os = asdict(target_os)
        return {
            "name": self.name,
            "version": self.version,
            "targetOS": target_os,
            "packageFormatVersion": self.package_format_version,
            "dependencies": {
                name: node.to_dict() for name, node in self.dependencies.items()
            },
        }


class _TreeBuilder:
    """Holds the lookup tables and visited set of one tree construction."""

    def __init__(
        self, packages: List[AnalyzedPackage], skip: Iterable[str] = ()
    ) -> None:
        self.packages = packages
        self.by_name: Dict[str, AnalyzedPackage] = {}
        self.by_virtual_name: Dict[str, AnalyzedPackage] = {}
        for package in packages:
            self.by_name[package.name] = package
            for provided in package.provides:
                self.by_virtual_name[provided] = package
        self.skip: Set[str] = set(skip)
        self.visited: Set[str] = set()

    def lookup(self, name: str) -> Optional[AnalyzedPackage]:
        return self.by_name.get(name) or self.by_virtual_name.get(name)

    def expand(
        self, dep_name: str, ancestors: FrozenSet[str]
    ) -> Optional[DependencyNode]:
        package = self.lookup(dep_name)
        if package is None or package.name in self.skip:
            return None

        full_name = package.full_name
        node = DependencyNode(full_name, package.version)
        if full_name in ancestors or package.name in self.visited:
            return node
        self.visited.add(package.name)

        path = ancestors | {full_name}
        for name in package.deps:
            child = self.expand(name, path)
            if child is not None and child.name not in node.dependencies:
                node.dependencies[child.name] = child
        return node

    def attach(
        self, forest: Dict[str, DependencyNode], package: AnalyzedPackage
    ) -> None:
        node = self.expand(package.name, frozenset())
        if node is not None:
            forest[node.name] = node


def count_dependencies(packages: List[AnalyzedPackage]) -> Dict[str, int]:
    """How often each package appears across the unfolded dependency paths."""
    builder = _TreeBuilder(packages)
    counts: Dict[str, int] = {}

    def visit(dep_name: str, ancestors: FrozenSet[str]) -> None:
        package = builder.lookup(dep_name)
        if package is None or package.name in ancestors:
            return
        counts[package.name] = counts.get(package.name, 0) + 1
        path = ancestors | {package.name}
        for name in package.deps:
            visit(name, path)

    for package in packages:
        visit(package.name, frozenset())
    return counts


def build_dependency_forest(
    packages: List[AnalyzedPackage], skip: Iterable[str] = ()
) -> Dict[str, DependencyNode]:
    """Build the top-level nodes of the tree.

    Manually installed packages come first. Auto-installed packages that no
    earlier expansion reached are added after them, so every package shows
    up somewhere.

    Args:
        packages: Parsed package records; they are not modified
        skip: Package names left out of the expansion entirely

    Returns:
        Mapping of top-level node name to node
    """
    builder = _TreeBuilder(packages, skip)
    forest: Dict[str, DependencyNode] = {}

    for package in packages:
        if not package.auto_installed:
            builder.attach(forest, package)

    for package in packages:
        if package.auto_installed and package.name not in builder.visited:
            builder.attach(forest, package)

    return forest


def build_tree(
    target_image: str,
    package_format: str,
    packages: List[AnalyzedPackage],
    target_os: Any,
    image_name: Optional[str] = None,
    image_tag: Optional[str] = None,
    common_dep_threshold: Optional[int] = None,
) -> DependencyTree:
    """Wrap the dependency forest of an image in a root node.

    The root is named ``docker-image|<image>`` so it is never mistaken for a
    real package. With ``common_dep_threshold`` set, packages appearing on
    more than that many dependency paths are pulled out of the tree and
    listed once under a ``meta-common-packages`` node instead.
    """
    root = DependencyTree(
        name=f"docker-image|{image_name or target_image}",
        version=image_tag or "",
        target_os=target_os,
        package_format_version=f"{package_format}:0.0.1",
    )

    too_frequent: List[str] = []
    if common_dep_threshold is not None:
        counts = count_dependencies(packages)
        too_frequent = [
            name for name, count in counts.items() if count > common_dep_threshold
        ]

    root.dependencies = build_dependency_forest(packages, skip=too_frequent)

    if too_frequent:
        logger.debug(
            f"Grouping {len(too_frequent)} common packages under {META_COMMON_PACKAGES}"
        )
        by_name = {package.name: package for package in packages}
        meta = DependencyNode(META_COMMON_PACKAGES, "meta")
        for name in too_frequent:
            package = by_name[name]
            meta.dependencies[package.full_name] = DependencyNode(
                package.full_name, package.version
            )
        root.dependencies[meta.name] = meta

    return root
