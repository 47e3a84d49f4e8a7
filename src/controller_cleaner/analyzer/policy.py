"""Annotation policy table and classifier modes."""
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, Optional, Set


class AnnotationEffect(str, Enum):
    """What a recognized annotation means to the classifier."""
    CONTROLLER = "controller"  # Class is a web controller
    DEPRECATED = "deprecated"  # Element is deprecated
    PRESERVE = "preserve"      # Class is framework-bound, never removed as empty


class FieldMode(str, Enum):
    """Which fields qualify as unused-field candidates."""
    FINAL_PRIVATE = "final-private"
    NON_PUBLIC = "non-public"


class ClassMode(str, Enum):
    """Which classes qualify as unused-class candidates."""
    EMPTY = "empty"            # No methods, no fields, no nested types
    NO_METHODS = "no-methods"  # No methods, fields allowed


DEFAULT_RULES: Dict[str, AnnotationEffect] = {
    # Spring MVC controllers
    "Controller": AnnotationEffect.CONTROLLER,
    "RestController": AnnotationEffect.CONTROLLER,
    "org.springframework.stereotype.Controller": AnnotationEffect.CONTROLLER,
    "org.springframework.web.bind.annotation.RestController": AnnotationEffect.CONTROLLER,

    # Deprecation
    "Deprecated": AnnotationEffect.DEPRECATED,
    "java.lang.Deprecated": AnnotationEffect.DEPRECATED,

    # Framework-bound classes: instantiated by reflection, may be legitimately empty
    "Configuration": AnnotationEffect.PRESERVE,
    "Component": AnnotationEffect.PRESERVE,
    "Service": AnnotationEffect.PRESERVE,
    "Repository": AnnotationEffect.PRESERVE,
    "Entity": AnnotationEffect.PRESERVE,
    "SpringBootApplication": AnnotationEffect.PRESERVE,
    "ControllerAdvice": AnnotationEffect.PRESERVE,
    "RestControllerAdvice": AnnotationEffect.PRESERVE,
}


def _normalize(annotation: str) -> str:
    """Strip '@', arguments and whitespace from raw annotation text."""
    name = annotation.strip()
    if name.startswith("@"):
        name = name[1:]
    paren = name.find("(")
    if paren != -1:
        name = name[:paren]
    return "".join(name.split())


@dataclass
class AnnotationPolicy:
    """Policy table mapping annotation names to classification effects.

    Names may be simple (``Controller``) or fully qualified
    (``org.springframework.stereotype.Controller``). Lookups try the
    exact text first and then the simple name, so a qualified rule never
    matches an unrelated annotation that merely shares the simple name.
    """
    rules: Dict[str, AnnotationEffect] = field(default_factory=lambda: dict(DEFAULT_RULES))

    def effect_of(self, annotation: str) -> Optional[AnnotationEffect]:
        """Look up the effect of a single annotation.

        Args:
            annotation: Raw annotation text, e.g. '@RestController' or
                '@org.springframework.web.bind.annotation.RestController'

        Returns:
            The matching effect, or None when the annotation is not recognized
        """
        name = _normalize(annotation)
        if name in self.rules:
            return self.rules[name]
        if "." in name:
            # Qualified usage only matches rules registered under a qualified
            # name or, for the simple form, rules registered by simple name
            simple = name.rsplit(".", 1)[1]
            effect = self.rules.get(simple)
            if effect is not None and not any(
                key.endswith("." + simple) and key != name for key in self.rules
            ):
                return effect
        return None

    def effects(self, annotations: Iterable[str]) -> Set[AnnotationEffect]:
        """Collect the effects of all annotations on one element."""
        found = set()
        for annotation in annotations:
            effect = self.effect_of(annotation)
            if effect is not None:
                found.add(effect)
        return found

    def has_effect(self, annotations: Iterable[str], effect: AnnotationEffect) -> bool:
        return effect in self.effects(annotations)

    def with_rules(self, names: Iterable[str], effect: AnnotationEffect) -> "AnnotationPolicy":
        """Return a copy extended with extra annotation names.

        Args:
            names: Simple or qualified annotation names
            effect: Effect assigned to every name

        Returns:
            New AnnotationPolicy; the receiver is left unchanged
        """
        rules = dict(self.rules)
        for raw in names:
            name = _normalize(raw)
            if name:
                rules[name] = effect
        return AnnotationPolicy(rules=rules)
