"""Rules checked against a built registry before it is written."""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .config import RegistryConfig
from .errors import ConfigError
from .models import ResolvedItem

logger = logging.getLogger(__name__)

# Packages, not frameworks: depending on one drags the framework into every consumer
FRAMEWORKS = frozenset(
    {
        # svelte
        "svelte",
        "@sveltejs/kit",
        # vue
        "vue",
        "nuxt",
        # react
        "react",
        "react-dom",
        "next",
        "@remix-run/react",
        # angular
        "@angular/core",
        "@angular/common",
        "@angular/forms",
        "@angular/platform-browser",
        "@angular/platform-browser-dynamic",
        "@angular/router",
        # misc
        "@builder.io/qwik",
        "astro",
        "solid-js",
    }
)

LEVELS = ("off", "warn", "error")


@dataclass
class RuleContext:
    items: list[ResolvedItem]
    config: RegistryConfig
    cwd: Path
    options: list[Any] = field(default_factory=list)

    def get_item(self, name: str) -> ResolvedItem | None:
        for item in self.items:
            if item.name == name:
                return item
        return None


@dataclass
class Rule:
    name: str
    description: str
    scope: str  # item, global
    check: Callable[..., list[str]]


@dataclass
class RuleReport:
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


def find_cycle(origin: str, context: RuleContext) -> list[str] | None:
    """Depth first search for a path leading back to ``origin``.

    Returns:
        The chain of item names starting and ending with ``origin``, or None
    """

    def visit(name: str, chain: list[str], visited: set[str]) -> list[str] | None:
        item = context.get_item(name)
        if item is None:
            return None
        for dependency in item.registry_dependencies:
            if dependency == origin:
                return [*chain, dependency]
            if dependency in visited:
                continue
            found = visit(dependency, [*chain, dependency], visited | {dependency})
            if found is not None:
                return found
        return None

    return visit(origin, [origin], {origin})


def _all_registry_dependencies(item: ResolvedItem) -> list[str]:
    """Registry dependencies of the item and of its example, doc and test files."""
    names = list(item.registry_dependencies)
    for file in item.files:
        for name in file.registry_dependencies:
            if name not in names:
                names.append(name)
    return names


def _reaches(start: str, wanted: str, context: RuleContext) -> bool:
    seen: set[str] = set()
    stack = [start]
    while stack:
        item = context.get_item(stack.pop())
        if item is None:
            continue
        for dependency in _all_registry_dependencies(item):
            if dependency == wanted:
                return True
            if dependency not in seen:
                seen.add(dependency)
                stack.append(dependency)
    return False


def is_unused(item: ResolvedItem, context: RuleContext) -> bool:
    """An item nobody can add directly and no listed item depends on."""
    if item.add != "when-needed":
        return False
    return not any(
        other.add != "when-needed" and _reaches(other.name, item.name, context)
        for other in context.items
    )


def _all_dependencies(item: Any) -> list:
    return [*(item.dependencies or []), *(item.dev_dependencies or [])]


def no_unpinned_dependency(item: ResolvedItem, context: RuleContext) -> list[str]:
    return [
        f"{item.name} depends on {dep.name} without a pinned version"
        for dep in _all_dependencies(item)
        if dep.version is None
    ]


def require_registry_dependency_exists(
    item: ResolvedItem, context: RuleContext
) -> list[str]:
    return [
        f"{item.name} depends on {name} which does not exist"
        for name in item.registry_dependencies
        if context.get_item(name) is None
    ]


def max_registry_dependencies(item: ResolvedItem, context: RuleContext) -> list[str]:
    limit = int(context.options[0]) if context.options else 10
    count = len(item.registry_dependencies)
    if count > limit:
        return [f"{item.name} has too many registry dependencies ({count}) limit ({limit})"]
    return []


def no_circular_dependency(item: ResolvedItem, context: RuleContext) -> list[str]:
    chain = find_cycle(item.name, context)
    if chain is None:
        return []
    return [f"There is a circular dependency in {item.name}: {' -> '.join(chain)}"]


def no_unused_item(item: ResolvedItem, context: RuleContext) -> list[str]:
    if is_unused(item, context):
        return [f"{item.name} is unused and will be removed"]
    return []


def no_framework_dependency(item: ResolvedItem, context: RuleContext) -> list[str]:
    return [
        f"{item.name} depends on {dep.name} causing it to be installed when added"
        for dep in _all_dependencies(item)
        if dep.name in FRAMEWORKS
    ]


def require_config_file_exists(context: RuleContext) -> list[str]:
    return [
        f"The {file.name} config file doesn't exist at {context.cwd / file.path}"
        for file in context.config.config_files or []
        if not (context.cwd / file.path).exists()
    ]


def no_config_file_framework_dependency(context: RuleContext) -> list[str]:
    return [
        f"{file.name} depends on {dep.name} causing it to be installed when added"
        for file in context.config.config_files or []
        for dep in _all_dependencies(file)
        if dep.name in FRAMEWORKS
    ]


def no_config_file_unpinned_dependency(context: RuleContext) -> list[str]:
    return [
        f"{file.name} depends on {dep.name} without a pinned version"
        for file in context.config.config_files or []
        for dep in _all_dependencies(file)
        if dep.version is None
    ]


RULES: dict[str, Rule] = {
    rule.name: rule
    for rule in (
        Rule(
            "no-unpinned-dependency",
            "Require all dependencies to have a pinned version.",
            "item",
            no_unpinned_dependency,
        ),
        Rule(
            "require-registry-dependency-exists",
            "Require all registry dependencies to exist.",
            "item",
            require_registry_dependency_exists,
        ),
        Rule(
            "max-registry-dependencies",
            "Limit the number of registry dependencies an item can have.",
            "item",
            max_registry_dependencies,
        ),
        Rule(
            "no-circular-dependency",
            "Disallow circular dependencies.",
            "item",
            no_circular_dependency,
        ),
        Rule(
            "no-unused-item",
            "Disallow items that are not listed and not a dependency of a listed item.",
            "item",
            no_unused_item,
        ),
        Rule(
            "no-framework-dependency",
            "Disallow frameworks (Svelte, Vue, React) as dependencies.",
            "item",
            no_framework_dependency,
        ),
        Rule(
            "require-config-file-exists",
            "Require all of the paths listed in `configFiles` to exist.",
            "global",
            require_config_file_exists,
        ),
        Rule(
            "no-config-file-framework-dependency",
            "Disallow frameworks (Svelte, Vue, React) as dependencies of config files.",
            "global",
            no_config_file_framework_dependency,
        ),
        Rule(
            "no-config-file-unpinned-dependency",
            "Require all dependencies of config files to have a pinned version.",
            "global",
            no_config_file_unpinned_dependency,
        ),
    )
}

DEFAULT_RULES: dict[str, str | list[Any]] = {
    "no-unpinned-dependency": "warn",
    "require-registry-dependency-exists": "error",
    "max-registry-dependencies": ["warn", 10],
    "no-circular-dependency": "error",
    "no-unused-item": "warn",
    "no-framework-dependency": "warn",
    "require-config-file-exists": "error",
    "no-config-file-framework-dependency": "warn",
    "no-config-file-unpinned-dependency": "warn",
}


def parse_level(setting: str | list[Any]) -> tuple[str, list[Any]]:
    """Split ``"warn"`` or ``["warn", 10]`` into level and options."""
    if isinstance(setting, list):
        level, options = setting[0], list(setting[1:])
    else:
        level, options = setting, []
    if level not in LEVELS:
        raise ConfigError(f"Unknown rule level {level!r}, expected one of {LEVELS}")
    return level, options


def run_rules(
    items: list[ResolvedItem],
    config: RegistryConfig,
    cwd: Path,
    rule_config: dict[str, str | list[Any]] | None = None,
) -> RuleReport:
    """Run global rules, then item rules for every item.

    Args:
        items: Resolved items of the registry
        config: Registry config the items came from
        cwd: Registry root
        rule_config: Overrides merged over the default levels

    Returns:
        Messages split by configured level
    """
    settings = {**DEFAULT_RULES, **(rule_config or {})}
    report = RuleReport()

    def record(rule: Rule, level: str, messages: list[str]) -> None:
        target = report.errors if level == "error" else report.warnings
        target.extend(f"{message} ({rule.name})" for message in messages)

    configured = []
    for name, setting in settings.items():
        rule = RULES.get(name)
        if rule is None:
            logger.warning("Ignoring unknown rule %s", name)
            continue
        level, options = parse_level(setting)
        if level != "off":
            configured.append((rule, level, options))

    for rule, level, options in configured:
        if rule.scope == "global":
            context = RuleContext(items=items, config=config, cwd=cwd, options=options)
            record(rule, level, rule.check(context))

    for item in items:
        for rule, level, options in configured:
            if rule.scope == "item":
                context = RuleContext(items=items, config=config, cwd=cwd, options=options)
                record(rule, level, rule.check(item, context))

    return report


def prune_unused(
    items: list[ResolvedItem], config: RegistryConfig, cwd: Path
) -> list[ResolvedItem]:
    """Drop items that would never be installed."""
    context = RuleContext(items=items, config=config, cwd=cwd)
    kept = []
    for item in items:
        if is_unused(item, context):
            logger.info("Removed unused item %s", item.name)
        else:
            kept.append(item)
    return kept
