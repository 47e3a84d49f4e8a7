"""Symbol classification into removal candidate categories."""
from enum import Enum
from typing import Iterable, Optional

from .model import Symbol, SymbolKind
from .policy import AnnotationEffect, AnnotationPolicy, ClassMode, FieldMode

CANDIDATE_TYPE_KINDS = {'class', 'interface'}


class Category(str, Enum):
    """Removal category; member order is the order a batch is applied in."""
    UNUSED_IMPORT = "unused_import"
    UNUSED_FIELD = "unused_field"
    DEPRECATED_METHOD = "deprecated_method"
    TRANSITIVE_METHOD = "transitive_method"
    EMPTY_CLASS = "empty_class"

    @property
    def label(self) -> str:
        return CATEGORY_LABELS[self]


CATEGORY_LABELS = {
    Category.UNUSED_IMPORT: "unused imports",
    Category.UNUSED_FIELD: "unused fields",
    Category.DEPRECATED_METHOD: "unused deprecated methods",
    Category.TRANSITIVE_METHOD: "transitively unused methods",
    Category.EMPTY_CLASS: "empty classes",
}


def is_java_lang_member(qualified_name: str) -> bool:
    """True for direct java.lang types (java.lang.String), not subpackages."""
    if not qualified_name.startswith("java.lang."):
        return False
    return "." not in qualified_name[len("java.lang."):]


class SymbolClassifier:
    """Pure, side-effect free classification over loaded symbol metadata.

    Rule priority: deprecated controller method, import, field, class.
    """

    def __init__(self, policy: Optional[AnnotationPolicy] = None,
                 field_mode: FieldMode = FieldMode.FINAL_PRIVATE,
                 class_mode: ClassMode = ClassMode.EMPTY,
                 controller_name_fallback: bool = False):
        """Initialize classifier.

        Args:
            policy: Annotation policy table (default rules if None)
            field_mode: Which fields qualify as unused-field candidates
            class_mode: Which classes qualify as unused-class candidates
            controller_name_fallback: Treat classes named '*Controller*' as
                controllers (used when no class carries a controller annotation)
        """
        self.policy = policy or AnnotationPolicy()
        self.field_mode = field_mode
        self.class_mode = class_mode
        self.controller_name_fallback = controller_name_fallback

    def classify(self, symbol: Symbol, containing_class: Optional[Symbol] = None) -> Optional[Category]:
        """Classify a symbol.

        Args:
            symbol: Symbol to classify
            containing_class: Declaring class (needed for methods)

        Returns:
            Candidate category, or None if the symbol is never a candidate
        """
        if symbol.kind == SymbolKind.METHOD:
            if containing_class is not None and self.is_controller(containing_class) and self.is_deprecated(symbol):
                return Category.DEPRECATED_METHOD
            return None
        if symbol.kind == SymbolKind.IMPORT:
            return Category.UNUSED_IMPORT if self.is_import_candidate(symbol) else None
        if symbol.kind == SymbolKind.FIELD:
            return Category.UNUSED_FIELD if self.is_field_candidate(symbol) else None
        if symbol.kind == SymbolKind.CLASS:
            return Category.EMPTY_CLASS if self.is_class_candidate(symbol) else None
        return None

    def is_controller(self, cls: Symbol) -> bool:
        """Controller by annotation, or by name when the fallback is active."""
        if self.policy.has_effect(cls.annotations, AnnotationEffect.CONTROLLER):
            return True
        return self.controller_name_fallback and "Controller" in cls.name

    def is_deprecated(self, symbol: Symbol) -> bool:
        """Deprecated by annotation, javadoc tag, or a name containing 'deprecated'."""
        if self.policy.has_effect(symbol.annotations, AnnotationEffect.DEPRECATED):
            return True
        if symbol.has_doc_deprecated_tag:
            return True
        return "deprecated" in symbol.name.lower()

    def is_import_candidate(self, symbol: Symbol) -> bool:
        return not symbol.is_wildcard

    def is_always_unused_import(self, symbol: Symbol) -> bool:
        """java.lang types are implicitly imported, so an explicit import is dead."""
        return not symbol.is_static_import and is_java_lang_member(symbol.qualified_name)

    def is_field_candidate(self, symbol: Symbol) -> bool:
        if symbol.annotations:
            return False
        if symbol.has_modifier('public') or symbol.has_modifier('static'):
            return False
        if self.field_mode == FieldMode.FINAL_PRIVATE:
            return symbol.has_modifier('final') and symbol.has_modifier('private')
        return True

    def is_class_candidate(self, symbol: Symbol) -> bool:
        if symbol.type_kind not in CANDIDATE_TYPE_KINDS:
            return False
        # Controllers are never removed through the empty-class path
        if "Controller" in symbol.name:
            return False
        effects = self.policy.effects(symbol.annotations)
        if AnnotationEffect.CONTROLLER in effects or AnnotationEffect.PRESERVE in effects:
            return False
        if symbol.method_count != 0:
            return False
        if self.class_mode == ClassMode.EMPTY:
            return symbol.field_count == 0 and symbol.nested_class_count == 0
        return True


def any_annotated_controller(classes: Iterable[Symbol], policy: AnnotationPolicy) -> bool:
    return any(policy.has_effect(cls.annotations, AnnotationEffect.CONTROLLER) for cls in classes)
