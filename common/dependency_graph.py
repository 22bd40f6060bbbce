"""Order stacks by the exports they produce and require.

A stack may only import an export after every stack producing it has been
applied. The functions below turn a set of :class:`StackSpec` into that
order, or fail before anything is declared.
"""
import os
from itertools import chain
from typing import Iterable, Sequence

from attrs import define, field
from attrs.validators import instance_of, min_len
from aws_lambda_powertools import Logger

import common.constants as constants
from common.errors import CyclicDependency, DuplicateExport, UnresolvedExport

logger = Logger(service="deploy-plan", level=os.getenv("LOG_LEVEL", constants.LOG_LEVEL).upper())


def _export_names(values: Iterable) -> frozenset:
    return frozenset(str(value) for value in values)


@define(slots=True, frozen=True)
class StackSpec:
    name: str = field(validator=[instance_of(str), min_len(1)])
    requires: frozenset = field(factory=frozenset, converter=_export_names)
    produces: frozenset = field(factory=frozenset, converter=_export_names)


def _producers(specs: Sequence[StackSpec]) -> dict[str, str]:
    names = [spec.name for spec in specs]
    duplicates = {name for name in names if names.count(name) > 1}
    if duplicates:
        raise ValueError(f"Stack names must be unique: {', '.join(sorted(duplicates))}")

    producers: dict[str, list[str]] = {}
    for spec in specs:
        for export_name in spec.produces:
            producers.setdefault(export_name, []).append(spec.name)
    for export_name, stacks in producers.items():
        if len(stacks) > 1:
            raise DuplicateExport(export_name, stacks)
    return {export_name: stacks[0] for export_name, stacks in producers.items()}


def _dependency_map(specs: Sequence[StackSpec]) -> dict[str, set[str]]:
    producers = _producers(specs)
    dependencies: dict[str, set[str]] = {}
    for spec in specs:
        dependencies[spec.name] = set()
        for export_name in sorted(spec.requires):
            if export_name not in producers:
                raise UnresolvedExport(spec.name, export_name)
            dependencies[spec.name].add(producers[export_name])
    return dependencies


def dependencies_of(spec: StackSpec, specs: Sequence[StackSpec]) -> list[str]:
    """Names of the stacks ``spec`` must be applied after, in declaration order."""
    dependencies = _dependency_map(specs)[spec.name]
    return [other.name for other in specs if other.name in dependencies]


def resolve_apply_waves(specs: Sequence[StackSpec]) -> list[list[str]]:
    """Group stacks into waves; stacks in the same wave may apply concurrently.

    Raises:
        UnresolvedExport: a required export is produced by no stack.
        DuplicateExport: two stacks produce the same export.
        CyclicDependency: no valid order exists.
    """
    dependencies = _dependency_map(specs)
    applied: set[str] = set()
    pending = [spec.name for spec in specs]
    waves: list[list[str]] = []

    while pending:
        wave = [name for name in pending if dependencies[name] <= applied]
        if not wave:
            raise CyclicDependency(pending)
        waves.append(wave)
        applied.update(wave)
        pending = [name for name in pending if name not in applied]

    logger.debug("Resolved apply waves", waves=waves)
    return waves


def resolve_apply_order(specs: Sequence[StackSpec]) -> list[str]:
    return list(chain.from_iterable(resolve_apply_waves(specs)))


def resolve_teardown_order(specs: Sequence[StackSpec]) -> list[str]:
    """Consumers are torn down before the stacks whose exports they import."""
    return list(reversed(resolve_apply_order(specs)))
