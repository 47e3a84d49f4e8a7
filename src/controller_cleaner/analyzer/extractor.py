"""Symbol, call and name-usage extraction from parsed Java syntax trees."""
import re
from dataclasses import dataclass, replace
from typing import Dict, List, Optional, Tuple
from tree_sitter import Node, Tree

from ..config import MARKER_TEXT
from .model import CallSite, FileModel, NameUsage, Symbol, SymbolId, SymbolKind

COMMENT_TYPES = {'line_comment', 'block_comment', 'comment'}

# Javadoc cross-references that name a type: {@link Foo}, @see Foo, @throws FooException
DOC_LINK_PATTERN = re.compile(r'(?:\{@link(?:plain)?|@see|@throws|@exception)\s+([\w$.#]+)')
DOC_DEPRECATED_PATTERN = re.compile(r'@deprecated\b')


def node_text(node: Node, source_code: bytes) -> str:
    return source_code[node.start_byte:node.end_byte].decode('utf-8', errors='replace')


def same_node(a: Optional[Node], b: Optional[Node]) -> bool:
    if a is None or b is None:
        return False
    return (a.start_byte, a.end_byte, a.type) == (b.start_byte, b.end_byte, b.type)


def doc_comment_node(node: Node, source_code: bytes) -> Optional[Node]:
    """Find the javadoc block attached to a declaration.

    Line comments between the javadoc and the declaration are skipped;
    any other block comment ends the search.

    Args:
        node: Declaration node (class, method, field)
        source_code: Source bytes the node was parsed from

    Returns:
        The '/** ... */' comment node, or None
    """
    prev = node.prev_sibling
    while prev is not None and prev.type in COMMENT_TYPES:
        text = node_text(prev, source_code)
        if text.startswith('/**'):
            return prev
        if not text.startswith('//'):
            return None
        prev = prev.prev_sibling
    return None


@dataclass(frozen=True)
class _Scope:
    """Lexical position of a node during the walk."""
    class_id: Optional[SymbolId] = None
    class_name: str = ""  # Qualified name of the innermost named type
    method_id: Optional[SymbolId] = None
    in_interface: bool = False
    anonymous: bool = False  # Inside an anonymous class body


class JavaSymbolExtractor:
    """Extract declared symbols, call sites and name usages from Java trees.

    Declaration names are never recorded as usages, and package/import
    statements contribute no usages, so a usage list only holds real uses.
    """

    TYPE_DECLARATIONS = {
        'class_declaration': 'class',
        'interface_declaration': 'interface',
        'enum_declaration': 'enum',
        'record_declaration': 'record',
        'annotation_type_declaration': 'annotation',
    }
    CONSTRUCTOR_DECLARATIONS = {'constructor_declaration', 'compact_constructor_declaration'}
    FIELD_DECLARATIONS = {'field_declaration', 'constant_declaration'}

    def __init__(self, marker_text: str = MARKER_TEXT):
        """Initialize extractor.

        Args:
            marker_text: Sentinel comment that marks a file for scoped cleanup
        """
        self.marker_text = marker_text

    def extract(self, tree: Tree, source_code: bytes, file_path: str,
                nodes: Optional[Dict[SymbolId, Node]] = None) -> FileModel:
        """Walk a syntax tree and build the file model.

        Args:
            tree: Parsed tree-sitter Tree
            source_code: Source bytes the tree was parsed from
            file_path: Project-relative file path used in identities
            nodes: Optional dict filled with identity -> declaration node,
                used by the remover to locate byte ranges

        Returns:
            FileModel with symbols, calls and usages
        """
        root = tree.root_node
        model = FileModel(
            file_path=file_path,
            is_marked=self.is_marked(tree, source_code),
            has_errors=root.has_error,
        )
        if nodes is None:
            nodes = {}

        # Explicit stack: deep expression chains would overflow recursion
        stack: List[Tuple[Node, _Scope]] = [(child, _Scope()) for child in reversed(root.children)]
        while stack:
            node, scope = stack.pop()
            children = self._visit(node, scope, source_code, model, nodes)
            stack.extend(reversed(children))

        return model

    def is_marked(self, tree: Tree, source_code: bytes) -> bool:
        """Check whether the first syntactic element is the sentinel comment."""
        root = tree.root_node
        if root.child_count == 0:
            return False
        first = root.children[0]
        return first.type in COMMENT_TYPES and self.marker_text in node_text(first, source_code)

    def _visit(self, node: Node, scope: _Scope, source: bytes, model: FileModel,
               nodes: Dict[SymbolId, Node]) -> List[Tuple[Node, _Scope]]:
        """Handle one node and return the (child, scope) pairs to descend into."""
        node_type = node.type

        if node_type == 'package_declaration':
            model.package = self._package_name(node, source)
            return []
        if node_type == 'import_declaration':
            self._add_import(node, source, model, nodes)
            return []
        if node_type in self.TYPE_DECLARATIONS:
            return self._visit_type(node, scope, source, model, nodes)
        if node_type == 'method_declaration':
            return self._visit_method(node, scope, source, model, nodes)
        if node_type in self.CONSTRUCTOR_DECLARATIONS:
            return self._visit_constructor(node, scope, source, model)
        if node_type in self.FIELD_DECLARATIONS:
            return self._visit_field(node, scope, source, model, nodes)
        if node_type == 'method_invocation':
            return self._visit_invocation(node, scope, source, model)
        if node_type == 'method_reference':
            return self._visit_method_reference(node, scope, source, model)
        if node_type in COMMENT_TYPES:
            self._add_doc_usages(node, scope, source, model)
            return []
        if node_type == 'identifier':
            self._add_usage(model, node_text(node, source), 'identifier', node, scope)
            return []
        if node_type == 'type_identifier':
            self._add_usage(model, node_text(node, source), 'type', node, scope)
            return []
        if node_type == 'class_body':
            # Type declarations push their own body members, so this is anonymous
            return [(child, replace(scope, anonymous=True)) for child in node.children]

        return [(child, scope) for child in node.children]

    # === DECLARATIONS ===

    def _visit_type(self, node, scope, source, model, nodes):
        name_node = node.child_by_field_name('name')
        if name_node is None:
            return [(child, scope) for child in node.children]

        name = node_text(name_node, source)
        if scope.class_name:
            qualified_name = f"{scope.class_name}.{name}"
        elif model.package:
            qualified_name = f"{model.package}.{name}"
        else:
            qualified_name = name

        type_kind = self.TYPE_DECLARATIONS[node.type]
        body = node.child_by_field_name('body')
        members = self._members(body)
        modifiers, annotations = self._modifiers(node, source)

        symbol = Symbol(
            kind=SymbolKind.CLASS,
            name=name,
            qualified_name=qualified_name,
            file_path=model.file_path,
            line=node.start_point[0] + 1,
            containing_class=scope.class_id,
            modifiers=modifiers,
            annotations=annotations,
            has_doc_deprecated_tag=self._has_deprecated_doc(node, source),
            type_kind=type_kind,
            method_count=sum(
                1 for m in members
                if m.type == 'method_declaration' or m.type in self.CONSTRUCTOR_DECLARATIONS
            ),
            field_count=sum(
                len(m.children_by_field_name('declarator'))
                for m in members if m.type in self.FIELD_DECLARATIONS
            ),
            nested_class_count=sum(1 for m in members if m.type in self.TYPE_DECLARATIONS),
            supertypes=self._supertypes(node, source),
        )
        model.symbols.append(symbol)
        nodes.setdefault(symbol.identity, node)

        inner = _Scope(
            class_id=symbol.identity,
            class_name=qualified_name,
            in_interface=type_kind in ('interface', 'annotation'),
        )

        descend = []
        for child in node.children:
            if same_node(child, name_node):
                continue
            if same_node(child, body):
                descend.extend((member, inner) for member in child.children)
            else:
                # Annotations and supertypes belong to the enclosing scope
                descend.append((child, scope))
        return descend

    def _visit_method(self, node, scope, source, model, nodes):
        name_node = node.child_by_field_name('name')
        if scope.class_id is None or scope.anonymous or name_node is None:
            return self._children_except(node, name_node, scope)

        name = node_text(name_node, source)
        signature, arity, varargs = self._parameters(node.child_by_field_name('parameters'), source)
        modifiers, annotations = self._modifiers(node, source)

        symbol = Symbol(
            kind=SymbolKind.METHOD,
            name=name,
            qualified_name=f"{scope.class_name}.{name}",
            file_path=model.file_path,
            line=node.start_point[0] + 1,
            containing_class=scope.class_id,
            modifiers=modifiers,
            annotations=annotations,
            has_doc_deprecated_tag=self._has_deprecated_doc(node, source),
            signature=signature,
            arity=arity,
            varargs=varargs,
            in_interface=scope.in_interface,
        )
        model.symbols.append(symbol)
        nodes.setdefault(symbol.identity, node)

        return self._children_except(node, name_node, replace(scope, method_id=symbol.identity))

    def _visit_constructor(self, node, scope, source, model):
        name_node = node.child_by_field_name('name')
        if scope.class_id is None or scope.anonymous:
            return self._children_except(node, name_node, scope)

        # Constructors are never removal candidates but still own their call sites
        signature, _, _ = self._parameters(node.child_by_field_name('parameters'), source)
        constructor_id = SymbolId(SymbolKind.METHOD, model.file_path, f"{scope.class_name}.<init>", signature)
        return self._children_except(node, name_node, replace(scope, method_id=constructor_id))

    def _visit_field(self, node, scope, source, model, nodes):
        field_scope = replace(scope, method_id=None)
        declares_symbols = scope.class_id is not None and not scope.anonymous

        modifiers, annotations = self._modifiers(node, source)
        if node.type == 'constant_declaration' or scope.in_interface:
            # Interface constants are implicitly public static final
            modifiers = tuple(dict.fromkeys(modifiers + ('public', 'static', 'final')))
        has_doc_tag = self._has_deprecated_doc(node, source)

        descend = []
        for child in node.children:
            if child.type != 'variable_declarator':
                descend.append((child, field_scope))
                continue

            name_node = child.child_by_field_name('name')
            if declares_symbols and name_node is not None:
                name = node_text(name_node, source)
                symbol = Symbol(
                    kind=SymbolKind.FIELD,
                    name=name,
                    qualified_name=f"{scope.class_name}.{name}",
                    file_path=model.file_path,
                    line=child.start_point[0] + 1,
                    containing_class=scope.class_id,
                    modifiers=modifiers,
                    annotations=annotations,
                    has_doc_deprecated_tag=has_doc_tag,
                )
                model.symbols.append(symbol)
                nodes.setdefault(symbol.identity, child)
            descend.extend(self._children_except(child, name_node, field_scope))
        return descend

    def _add_import(self, node, source, model, nodes):
        is_static = any(child.type == 'static' for child in node.children)
        is_wildcard = any(child.type == 'asterisk' for child in node.children)
        path_node = next(
            (child for child in node.named_children if child.type in ('scoped_identifier', 'identifier')),
            None,
        )
        if path_node is None:
            return

        path = "".join(node_text(path_node, source).split())
        symbol = Symbol(
            kind=SymbolKind.IMPORT,
            name='*' if is_wildcard else path.rsplit('.', 1)[-1],
            qualified_name=f"{path}.*" if is_wildcard else path,
            file_path=model.file_path,
            line=node.start_point[0] + 1,
            signature='static' if is_static else '',
            is_wildcard=is_wildcard,
            is_static_import=is_static,
        )
        model.symbols.append(symbol)
        nodes.setdefault(symbol.identity, node)

    # === USES ===

    def _visit_invocation(self, node, scope, source, model):
        name_node = node.child_by_field_name('name')
        object_node = node.child_by_field_name('object')
        arguments = node.child_by_field_name('arguments')

        if name_node is not None:
            name = node_text(name_node, source)
            receiver = None
            if object_node is not None:
                receiver = "".join(node_text(object_node, source).split())
            model.calls.append(CallSite(
                file_path=model.file_path,
                line=node.start_point[0] + 1,
                name=name,
                arity=self._argument_count(arguments),
                receiver=receiver,
                enclosing_method=scope.method_id,
                enclosing_class=scope.class_id,
            ))
            self._add_usage(model, name, 'call', name_node, scope)

        return self._children_except(node, name_node, scope)

    def _visit_method_reference(self, node, scope, source, model):
        target = None
        after_separator = False
        for child in node.children:
            if child.type == '::':
                after_separator = True
            elif after_separator and child.type == 'identifier':
                target = child

        if target is not None:
            self._add_usage(model, node_text(target, source), 'method_ref', target, scope)
        return self._children_except(node, target, scope)

    def _add_doc_usages(self, node, scope, source, model):
        text = node_text(node, source)
        if not text.startswith('/**'):
            return

        first_line = node.start_point[0] + 1
        for match in DOC_LINK_PATTERN.finditer(text):
            target = match.group(1).split('#', 1)[0]
            # Qualified links do not need an import
            if not target or '.' in target:
                continue
            model.usages.append(NameUsage(
                name=target,
                kind='doc',
                line=first_line + text.count('\n', 0, match.start()),
                enclosing_method=scope.method_id,
                enclosing_class=scope.class_id,
            ))

    def _add_usage(self, model, name, kind, node, scope):
        model.usages.append(NameUsage(
            name=name,
            kind=kind,
            line=node.start_point[0] + 1,
            enclosing_method=scope.method_id,
            enclosing_class=scope.class_id,
        ))

    # === HELPERS ===

    def _children_except(self, node, excluded, scope):
        return [(child, scope) for child in node.children if not same_node(child, excluded)]

    def _members(self, body: Optional[Node]) -> List[Node]:
        if body is None:
            return []
        members = []
        for child in body.named_children:
            if child.type == 'enum_body_declarations':
                members.extend(child.named_children)
            else:
                members.append(child)
        return members

    def _modifiers(self, node: Node, source: bytes) -> Tuple[Tuple[str, ...], Tuple[str, ...]]:
        """Split the modifiers node into keyword modifiers and annotation names."""
        modifiers = []
        annotations = []
        for child in node.children:
            if child.type != 'modifiers':
                continue
            for item in child.children:
                if item.type in ('marker_annotation', 'annotation'):
                    name_node = item.child_by_field_name('name')
                    if name_node is not None:
                        annotations.append("".join(node_text(name_node, source).split()))
                elif not item.is_named:
                    modifiers.append(item.type)
        return tuple(modifiers), tuple(annotations)

    def _has_deprecated_doc(self, node: Node, source: bytes) -> bool:
        doc = doc_comment_node(node, source)
        return doc is not None and DOC_DEPRECATED_PATTERN.search(node_text(doc, source)) is not None

    def _parameters(self, params: Optional[Node], source: bytes) -> Tuple[str, int, bool]:
        """Build the '(T1,T2)' signature, arity and varargs flag."""
        if params is None:
            return "()", 0, False

        types = []
        varargs = False
        for child in params.named_children:
            if child.type == 'formal_parameter':
                type_node = child.child_by_field_name('type')
                types.append(self._compact(type_node, source) if type_node is not None else '?')
            elif child.type == 'spread_parameter':
                type_node = next(
                    (c for c in child.named_children
                     if c.type not in ('modifiers', 'variable_declarator') and c.type not in COMMENT_TYPES),
                    None,
                )
                types.append((self._compact(type_node, source) if type_node is not None else '?') + '...')
                varargs = True
        return "(" + ",".join(types) + ")", len(types), varargs

    def _argument_count(self, arguments: Optional[Node]) -> int:
        if arguments is None:
            return 0
        return sum(1 for child in arguments.named_children if child.type not in COMMENT_TYPES)

    def _supertypes(self, node: Node, source: bytes) -> Tuple[str, ...]:
        names = []
        for child in node.children:
            if child.type == 'superclass':
                type_nodes = child.named_children
            elif child.type in ('super_interfaces', 'extends_interfaces'):
                type_nodes = []
                for item in child.named_children:
                    if item.type == 'type_list':
                        type_nodes.extend(item.named_children)
                    else:
                        type_nodes.append(item)
            else:
                continue
            for type_node in type_nodes:
                name = self._type_simple_name(type_node, source)
                if name:
                    names.append(name)
        return tuple(names)

    def _type_simple_name(self, node: Node, source: bytes) -> Optional[str]:
        if node.type == 'type_identifier':
            return node_text(node, source)
        if node.type == 'scoped_type_identifier':
            parts = [c for c in node.named_children if c.type == 'type_identifier']
            return node_text(parts[-1], source) if parts else None
        if node.type == 'generic_type':
            for child in node.named_children:
                if child.type in ('type_identifier', 'scoped_type_identifier'):
                    return self._type_simple_name(child, source)
        return None

    def _package_name(self, node: Node, source: bytes) -> str:
        for child in node.named_children:
            if child.type in ('scoped_identifier', 'identifier'):
                return "".join(node_text(child, source).split())
        return ""

    @staticmethod
    def _compact(node: Node, source: bytes) -> str:
        return "".join(node_text(node, source).split())
