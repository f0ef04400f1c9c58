"""
Declaration collection and function lowering.

Two stages turn the tree-sitter ASTs of a package into the def-use graph of
closecheck.ir.nodes:

1. ``collect_type_names`` / ``collect_signatures`` fill the package Scope:
   declared types (struct/interface/other), struct fields, method sets and
   package-level function signatures. Names are collected for every loaded
   package before any signature is resolved, so signatures may refer to
   types of other loaded packages.

2. ``FunctionBuilder`` lowers one function body in document order. Local
   names are rebound on every assignment (SSA style, no phi nodes) and
   follow Go block scoping: blocks, statement headers and case clauses each
   open a scope, so a `:=` inside them shadows without replacing the outer
   binding. Each structured statement opens new basic blocks. Static types come from
   parameter declarations and from the signatures collected in stage 1;
   anything unresolvable is typed OPAQUE.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Iterable, Optional

from tree_sitter import Node as TSNode

from closecheck.context import FileContext, get_line_col, get_source_span
from closecheck.ir.nodes import (
    BasicBlock,
    Call,
    CallCommon,
    Const,
    Copy,
    Defer,
    Extract,
    FreeVar,
    Function,
    Go,
    MakeClosure,
    Operation,
    Parameter,
    Position,
    Return,
    Store,
    Value,
    add_edge,
)
from closecheck.ir.types import (
    BOOL,
    NIL,
    OPAQUE,
    Basic,
    Named,
    Pointer,
    Signature,
    Tuple,
    Type,
    deref,
    named_of,
)

if TYPE_CHECKING:
    from closecheck.loader import Package, Program

logger = logging.getLogger(__name__)

_TYPE_NODES = frozenset(
    {
        "type_identifier",
        "qualified_type",
        "pointer_type",
        "struct_type",
        "interface_type",
        "array_type",
        "implicit_length_array_type",
        "slice_type",
        "map_type",
        "channel_type",
        "function_type",
        "generic_type",
        "parenthesized_type",
        "negated_type",
        "type_arguments",
        "field_identifier",
        "package_identifier",
        "label_name",
    }
)

_IGNORED_STATEMENTS = frozenset(
    {
        "comment",
        "const_declaration",
        "type_declaration",
        "empty_statement",
        "break_statement",
        "continue_statement",
        "goto_statement",
        "fallthrough_statement",
    }
)

_LITERALS = frozenset(
    {
        "int_literal",
        "float_literal",
        "imaginary_literal",
        "rune_literal",
        "interpreted_string_literal",
        "raw_string_literal",
        "true",
        "false",
        "iota",
    }
)

_CASE_NODES = frozenset({"expression_case", "default_case", "type_case", "communication_case"})


def _strip_parens(node: TSNode) -> TSNode:
    while node.type == "parenthesized_expression" and node.named_child_count:
        node = node.named_children[0]
    return node


def _is_statement(node: TSNode) -> bool:
    t = node.type
    return (
        t.endswith("_statement")
        or t.endswith("_declaration")
        or t in ("block", "statement_list")
        or t in _CASE_NODES
    )


# ---------------------------------------------------------------------------
# Types and signatures
# ---------------------------------------------------------------------------


class TypeResolver:
    """Resolve type expressions of one file against the loaded packages."""

    def __init__(self, ctx: FileContext, package: "Package", program: "Program") -> None:
        self.ctx = ctx
        self.package = package
        self.program = program

    def text(self, node: TSNode) -> str:
        return get_source_span(self.ctx, node)

    def resolve(self, node: Optional[TSNode]) -> Type:
        if node is None:
            return OPAQUE
        t = node.type
        if t == "pointer_type" and node.named_child_count:
            return Pointer(self.resolve(node.named_children[-1]))
        if t == "parenthesized_type" and node.named_child_count:
            return self.resolve(node.named_children[0])
        if t == "generic_type":
            return self.resolve(node.child_by_field_name("type"))
        if t == "type_identifier":
            name = self.text(node)
            return self.package.scope.types.get(name) or Basic(name)
        if t == "qualified_type":
            pkg_node = node.child_by_field_name("package")
            name_node = node.child_by_field_name("name")
            if pkg_node is not None and name_node is not None:
                named = self.qualified(self.text(pkg_node), self.text(name_node))
                if named is not None:
                    return named
        return Basic(self.text(node))

    def qualified(self, local: str, name: str) -> Optional[Named]:
        import_path = self.ctx.imports.get(local)
        if import_path is None:
            return None
        dep = self.program.package(import_path)
        if dep is None:
            return None
        return dep.scope.lookup(name)

    def _expand(self, params: Optional[TSNode]) -> list[tuple[Optional[str], Type]]:
        """Expand a parameter_list into (name, type) pairs, one per name."""
        out: list[tuple[Optional[str], Type]] = []
        if params is None:
            return out
        for decl in params.named_children:
            if decl.type not in ("parameter_declaration", "variadic_parameter_declaration"):
                continue
            typ = self.resolve(decl.child_by_field_name("type"))
            if decl.type == "variadic_parameter_declaration":
                typ = Basic("..." + repr(typ))
            names = decl.children_by_field_name("name")
            if not names:
                out.append((None, typ))
            for name in names:
                out.append((self.text(name), typ))
        return out

    def parameters(self, params: Optional[TSNode]) -> list[tuple[Optional[str], Type]]:
        return self._expand(params)

    def results(self, result: Optional[TSNode]) -> list[tuple[Optional[str], Type]]:
        if result is None:
            return []
        if result.type == "parameter_list":
            return self._expand(result)
        return [(None, self.resolve(result))]

    def signature(self, node: TSNode) -> Signature:
        """Signature of a function/method declaration, method elem or func literal."""
        params = self.parameters(node.child_by_field_name("parameters"))
        results = self.results(node.child_by_field_name("result"))
        return Signature(
            params=tuple(t for _, t in params),
            results=tuple(t for _, t in results),
        )


def _type_specs(decl: TSNode) -> Iterable[TSNode]:
    for child in decl.named_children:
        if child.type in ("type_spec", "type_alias"):
            yield child
        elif child.named_child_count and child.type not in _TYPE_NODES:
            yield from _type_specs(child)


def collect_type_names(package: "Package") -> None:
    """First pass: register every declared type name of the package."""
    for ctx in package.files:
        for node in ctx.root_node.children:
            if node.type != "type_declaration":
                continue
            for spec in _type_specs(node):
                if spec.type != "type_spec":
                    continue
                name_node = spec.child_by_field_name("name")
                type_node = spec.child_by_field_name("type")
                if name_node is None:
                    continue
                kind = "other"
                if type_node is not None and type_node.type == "struct_type":
                    kind = "struct"
                elif type_node is not None and type_node.type == "interface_type":
                    kind = "interface"
                name = get_source_span(ctx, name_node)
                package.scope.types[name] = Named(package.path, name, kind)


def _receiver_type_name(resolver: TypeResolver, receiver: Optional[TSNode]) -> Optional[str]:
    if receiver is None:
        return None
    for decl in receiver.named_children:
        if decl.type != "parameter_declaration":
            continue
        node = decl.child_by_field_name("type")
        while node is not None and node.type in ("pointer_type", "parenthesized_type"):
            node = node.named_children[-1] if node.named_child_count else None
        if node is not None and node.type == "generic_type":
            node = node.child_by_field_name("type")
        if node is not None:
            return resolver.text(node)
    return None


def _collect_members(resolver: TypeResolver, named: Named, type_node: TSNode) -> None:
    if type_node.type == "struct_type":
        for field_list in type_node.named_children:
            for field_decl in field_list.named_children:
                if field_decl.type != "field_declaration":
                    continue
                ftype = resolver.resolve(field_decl.child_by_field_name("type"))
                for name in field_decl.children_by_field_name("name"):
                    named.fields[resolver.text(name)] = ftype
    elif type_node.type == "interface_type":
        for elem in type_node.named_children:
            if elem.type in ("method_elem", "method_spec"):
                name_node = elem.child_by_field_name("name")
                if name_node is not None:
                    named.methods[resolver.text(name_node)] = resolver.signature(elem)


def collect_signatures(package: "Package", program: "Program") -> None:
    """Second pass: struct fields, method sets, aliases and function signatures."""
    scope = package.scope
    for ctx in package.files:
        resolver = TypeResolver(ctx, package, program)
        for node in ctx.root_node.children:
            if node.type == "type_declaration":
                for spec in _type_specs(node):
                    name_node = spec.child_by_field_name("name")
                    type_node = spec.child_by_field_name("type")
                    if name_node is None or type_node is None:
                        continue
                    name = resolver.text(name_node)
                    if spec.type == "type_alias":
                        target = resolver.resolve(type_node)
                        if isinstance(target, Named):
                            scope.types[name] = target
                        continue
                    named = scope.types.get(name)
                    if named is not None and named.package_path == package.path:
                        _collect_members(resolver, named, type_node)
            elif node.type == "function_declaration":
                name_node = node.child_by_field_name("name")
                if name_node is not None:
                    scope.funcs[resolver.text(name_node)] = resolver.signature(node)
            elif node.type == "method_declaration":
                name_node = node.child_by_field_name("name")
                recv_name = _receiver_type_name(resolver, node.child_by_field_name("receiver"))
                named = scope.types.get(recv_name) if recv_name else None
                if named is not None and name_node is not None:
                    named.methods[resolver.text(name_node)] = resolver.signature(node)


# ---------------------------------------------------------------------------
# Function lowering
# ---------------------------------------------------------------------------


class FunctionBuilder:
    """Lower one function (or func literal) body into ``fn``."""

    def __init__(
        self,
        fn: Function,
        resolver: TypeResolver,
        outer: Optional["FunctionBuilder"] = None,
    ) -> None:
        self.fn = fn
        self.resolver = resolver
        self.ctx = resolver.ctx
        self.outer = outer
        # innermost last; scopes[0] holds parameters, named results and captures
        self.scopes: list[dict[str, Value]] = [{}]
        self.captured: list[Value] = []
        self.result_names: list[str] = []
        self.block: BasicBlock = fn.new_block("entry")

    # -- helpers ------------------------------------------------------------

    def _pos(self, node: Optional[TSNode]) -> Optional[Position]:
        if node is None:
            return None
        line, col = get_line_col(node)
        return Position(self.ctx.filename, line, col)

    def _text(self, node: TSNode) -> str:
        return get_source_span(self.ctx, node)

    def _emit(self, instr):
        self.block.append(instr)
        return instr

    def _jump_to(self, comment: str, *sources: BasicBlock) -> BasicBlock:
        target = self.fn.new_block(comment)
        for src in sources:
            add_edge(src, target)
        self.block = target
        return target

    def _push_scope(self) -> None:
        self.scopes.append({})

    def _pop_scope(self) -> None:
        self.scopes.pop()

    def _scope_of(self, name: str) -> Optional[dict[str, Value]]:
        for scope in reversed(self.scopes):
            if name in scope:
                return scope
        return None

    def lookup(self, name: str) -> Optional[Value]:
        """Find a local, innermost scope first, capturing it from the enclosing function if needed."""
        scope = self._scope_of(name)
        if scope is not None:
            return scope[name]
        if self.outer is None:
            return None
        outer_value = self.outer.lookup(name)
        if outer_value is None:
            return None
        fv = FreeVar(name, outer_value.type, outer_value)
        self.fn.free_vars.append(fv)
        self.captured.append(outer_value)
        self.scopes[0][name] = fv
        return fv

    def _is_package(self, name: str) -> bool:
        return name in self.ctx.imports and self.lookup(name) is None

    # -- entry point --------------------------------------------------------

    def build(
        self,
        params: Optional[TSNode],
        result: Optional[TSNode],
        body: Optional[TSNode],
        receiver: Optional[TSNode] = None,
    ) -> Function:
        for plist in (receiver, params):
            for name, typ in self.resolver.parameters(plist):
                if name is None or name == "_":
                    continue
                param = Parameter(name, typ, self.fn.pos)
                self.fn.params.append(param)
                self.scopes[0][name] = param
        for name, typ in self.resolver.results(result):
            if name is not None and name != "_":
                self.result_names.append(name)
                self.scopes[0][name] = Const(name, typ)
        if body is not None:
            self._stmt(body)
        return self.fn

    # -- statements ---------------------------------------------------------

    def _lower_any(self, node: TSNode) -> None:
        t = node.type
        if t in _IGNORED_STATEMENTS or t in _TYPE_NODES:
            return
        if t == "expression_list":
            for child in node.named_children:
                self._lower_any(child)
        elif _is_statement(node):
            self._stmt(node)
        else:
            self._expr(node)

    def _stmt(self, node: TSNode) -> None:
        t = node.type
        if t in _IGNORED_STATEMENTS:
            return
        if t in ("block", "statement_list"):
            self._push_scope()
            for child in node.named_children:
                self._stmt(child)
            self._pop_scope()
        elif t in ("short_var_declaration", "assignment_statement"):
            op_node = node.child_by_field_name("operator")
            operator = self._text(op_node) if op_node is not None else ":="
            self._assign(
                self._list(node.child_by_field_name("left")),
                self._list(node.child_by_field_name("right")),
                operator,
            )
        elif t == "var_declaration":
            self._var_declaration(node)
        elif t == "expression_statement":
            for child in node.named_children:
                self._expr(child)
        elif t in ("defer_statement", "go_statement"):
            self._defer_or_go(node)
        elif t == "return_statement":
            self._return(node)
        elif t in ("if_statement", "for_statement", "expression_switch_statement", "type_switch_statement", "select_statement"):
            # names declared in the statement header are local to the statement
            self._push_scope()
            if t == "if_statement":
                self._if(node)
            elif t == "for_statement":
                self._for(node)
            else:
                self._switch(node)
            self._pop_scope()
        else:
            # labeled, inc/dec, send statements and case bodies
            for child in node.named_children:
                self._lower_any(child)

    def _list(self, node: Optional[TSNode]) -> list[TSNode]:
        if node is None:
            return []
        if node.type == "expression_list":
            return [c for c in node.named_children if c.type != "comment"]
        return [node]

    def _var_declaration(self, node: TSNode) -> None:
        specs = [c for c in node.named_children if c.type == "var_spec"]
        for child in node.named_children:
            if child.type == "var_spec_list":
                specs.extend(c for c in child.named_children if c.type == "var_spec")
        for spec in specs:
            names = spec.children_by_field_name("name")
            values = self._list(spec.child_by_field_name("value"))
            if values:
                self._assign(names, values, ":=")
                continue
            typ = self.resolver.resolve(spec.child_by_field_name("type"))
            for name in names:
                self.scopes[-1][self._text(name)] = Const(self._text(name), typ)

    def _assign(self, lhs: list[TSNode], rhs: list[TSNode], operator: str) -> None:
        if operator not in ("=", ":="):
            for left, right in zip(lhs, rhs):
                current = self._expr(left)
                value = self._emit(
                    Operation(operator.rstrip("="), [current, self._expr(right)], current.type, self._pos(left))
                )
                self._bind(left, value)
            return

        declare = operator == ":="
        if len(rhs) == 1 and len(lhs) > 1:
            right = _strip_parens(rhs[0])
            if right.type == "call_expression":
                call = self._expr(right)
                if not isinstance(call.type, Tuple) or len(call.type) != len(lhs):
                    call.type = Tuple((OPAQUE,) * len(lhs))
                for index, left in enumerate(lhs):
                    if self._is_blank(left):
                        continue
                    self._bind(left, self._emit(Extract(call, index, call.type.items[index])), declare)
            else:
                # comma-ok forms: v, ok := m[k] / x.(T) / <-ch
                value = self._expr(right)
                self._bind(lhs[0], value, declare)
                for left in lhs[1:]:
                    self._bind(left, Const("ok", BOOL), declare)
            return

        values = [self._expr(right) for right in rhs]
        for left, right, value in zip(lhs, rhs, values):
            right = _strip_parens(right)
            if (
                right.type == "identifier"
                and _strip_parens(left).type == "identifier"
                and not self._is_blank(left)
                and not isinstance(value, Const)
            ):
                value = self._emit(Copy(self._text(left), value, self._pos(left)))
            self._bind(left, value, declare)

    def _is_blank(self, node: TSNode) -> bool:
        return self._text(_strip_parens(node)) == "_"

    def _bind(self, left: TSNode, value: Value, declare: bool = False) -> None:
        """
        Bind ``value`` to an assignment target.

        ``:=`` and ``var`` declare in the innermost scope; ``=`` rebinds the
        name in the scope that declared it. Assigning to a name no enclosing
        function declares (a package-level variable) is a Store.
        """
        left = _strip_parens(left)
        if left.type in ("identifier", "blank_identifier"):
            name = self._text(left)
            if name == "_":
                return
            if declare:
                self.scopes[-1][name] = value
                return
            scope = self._scope_of(name)
            if scope is None and self.lookup(name) is not None:
                # captured from the enclosing function
                scope = self.scopes[0]
            if scope is not None:
                scope[name] = value
            else:
                self._emit(Store(name, value, None, self._pos(left)))
            return
        base: Optional[Value] = None
        if left.type in ("selector_expression", "index_expression", "unary_expression"):
            operand = left.child_by_field_name("operand")
            if operand is not None:
                base = self._expr(operand)
            index = left.child_by_field_name("index")
            if index is not None:
                self._expr(index)
        self._emit(Store(self._text(left), value, base, self._pos(left)))

    def _defer_or_go(self, node: TSNode) -> None:
        exprs = [c for c in node.named_children if c.type != "comment"]
        if not exprs:
            return
        call = _strip_parens(exprs[0])
        if call.type != "call_expression":
            self._expr(call)
            return
        common, _ = self._call_common(call)
        if node.type == "defer_statement":
            self._emit(Defer(common, self._pos(node)))
        else:
            self._emit(Go(common, self._pos(node)))

    def _return(self, node: TSNode) -> None:
        results: list[Value] = []
        for child in node.named_children:
            if child.type == "expression_list":
                results.extend(self._expr(c) for c in self._list(child))
            elif child.type != "comment":
                results.append(self._expr(child))
        if not results and self.result_names:
            named = (self.lookup(name) for name in self.result_names)
            results = [value for value in named if value is not None]
        self._emit(Return(results, self._pos(node)))
        self.block = self.fn.new_block("unreachable")

    def _if(self, node: TSNode) -> None:
        init = node.child_by_field_name("initializer")
        if init is not None:
            self._lower_any(init)
        cond = node.child_by_field_name("condition")
        if cond is not None:
            self._expr(cond)
        head = self.block

        self._jump_to("if.then", head)
        consequence = node.child_by_field_name("consequence")
        if consequence is not None:
            self._stmt(consequence)
        exits = [self.block]

        alternative = node.child_by_field_name("alternative")
        if alternative is not None:
            self._jump_to("if.else", head)
            self._stmt(alternative)
            exits.append(self.block)
        else:
            exits.append(head)
        self._jump_to("if.done", *exits)

    def _for(self, node: TSNode) -> None:
        body = node.child_by_field_name("body")
        update: Optional[TSNode] = None
        for child in node.named_children:
            if child.type in ("block", "comment"):
                continue
            if child.type == "for_clause":
                init = child.child_by_field_name("initializer")
                if init is not None:
                    self._lower_any(init)
                cond = child.child_by_field_name("condition")
                if cond is not None:
                    self._expr(cond)
                update = child.child_by_field_name("update")
            elif child.type == "range_clause":
                right = child.child_by_field_name("right")
                source = self._expr(right) if right is not None else Const("range", OPAQUE)
                declare = any(c.type == ":=" for c in child.children)
                for left in self._list(child.child_by_field_name("left")):
                    if not self._is_blank(left):
                        item = self._emit(Operation("range", [source], OPAQUE, self._pos(left)))
                        self._bind(left, item, declare)
            else:
                self._expr(child)
        head = self.block
        loop = self._jump_to("for.body", head)
        if body is not None:
            self._stmt(body)
        if update is not None:
            self._lower_any(update)
        add_edge(self.block, loop)
        self._jump_to("for.done", head)

    def _switch(self, node: TSNode) -> None:
        init = node.child_by_field_name("initializer")
        if init is not None:
            self._lower_any(init)
        value = node.child_by_field_name("value")
        subject = self._expr(value) if value is not None else None
        alias = node.child_by_field_name("alias")
        if alias is not None and subject is not None:
            for left in self._list(alias):
                self._bind(left, self._emit(Operation("typeswitch", [subject], OPAQUE, self._pos(left))), declare=True)
        head = self.block
        exits: list[BasicBlock] = [head]
        for child in node.named_children:
            if child.type not in _CASE_NODES:
                continue
            self._jump_to(child.type, head)
            self._push_scope()
            for part in child.named_children:
                self._lower_any(part)
            self._pop_scope()
            exits.append(self.block)
        self._jump_to("switch.done", *exits)

    # -- expressions --------------------------------------------------------

    def _expr(self, node: TSNode) -> Value:
        node = _strip_parens(node)
        t = node.type
        if t in ("identifier", "blank_identifier"):
            return self._identifier(node)
        if t == "nil":
            return Const("nil", NIL)
        if t in _LITERALS:
            return Const(self._text(node), BOOL if t in ("true", "false") else OPAQUE)
        if t == "call_expression":
            common, result = self._call_common(node)
            args = node.child_by_field_name("arguments")
            return self._emit(Call(common, result, self._pos(args or node)))
        if t == "selector_expression":
            return self._selector(node)
        if t == "func_literal":
            return self._closure(node)
        if t == "composite_literal":
            typ = self.resolver.resolve(node.child_by_field_name("type"))
            body = node.child_by_field_name("body")
            elems = list(self._literal_elements(body)) if body is not None else []
            return self._emit(Operation("composite", elems, typ, self._pos(node)))
        if t == "unary_expression":
            operand_node = node.child_by_field_name("operand")
            op_node = node.child_by_field_name("operator")
            operand = self._expr(operand_node) if operand_node is not None else Const("?", OPAQUE)
            op = self._text(op_node) if op_node is not None else "?"
            typ: Optional[Type] = operand.type
            if op == "&" and operand.type is not None:
                typ = Pointer(operand.type)
            elif op == "*":
                typ = deref(operand.type)
            return self._emit(Operation(op, [operand], typ, self._pos(node)))
        if t in _TYPE_NODES:
            return Const(self._text(node), self.resolver.resolve(node))
        args = [self._expr(c) for c in node.named_children if c.type not in _TYPE_NODES and c.type != "comment"]
        return self._emit(Operation(t, args, OPAQUE, self._pos(node)))

    def _identifier(self, node: TSNode) -> Value:
        name = self._text(node)
        value = self.lookup(name)
        if value is not None:
            return value
        sig = self.resolver.package.scope.funcs.get(name)
        return Const(name, sig if sig is not None else OPAQUE)

    def _selector(self, node: TSNode) -> Value:
        operand = node.child_by_field_name("operand")
        field_node = node.child_by_field_name("field")
        field = self._text(field_node) if field_node is not None else "?"
        if operand is not None and operand.type == "identifier" and self._is_package(self._text(operand)):
            return Const(self._text(node), OPAQUE)
        base = self._expr(operand) if operand is not None else Const("?", OPAQUE)
        named = named_of(base.type)
        typ: Type = OPAQUE
        if named is not None:
            typ = named.fields.get(field) or named.methods.get(field) or OPAQUE
        return self._emit(Operation("field", [base], typ, self._pos(node)))

    def _literal_elements(self, node: TSNode) -> Iterable[Value]:
        for child in node.named_children:
            if child.type in ("literal_value", "literal_element", "keyed_element"):
                yield from self._literal_elements(child)
            elif child.type not in ("comment", "field_identifier"):
                yield self._expr(child)

    def _closure(self, node: TSNode) -> Value:
        sig = self.resolver.signature(node)
        index = len(self.fn.anon_funcs) + 1
        child_fn = Function(
            f"{self.fn.name}${index}",
            sig,
            filename=self.fn.filename,
            pos=self._pos(node),
            parent=self.fn,
        )
        self.fn.anon_funcs.append(child_fn)
        builder = FunctionBuilder(child_fn, self.resolver, outer=self)
        builder.build(
            node.child_by_field_name("parameters"),
            node.child_by_field_name("result"),
            node.child_by_field_name("body"),
        )
        if builder.captured:
            return self._emit(MakeClosure(child_fn, builder.captured, self._pos(node)))
        return child_fn

    def _call_common(self, node: TSNode) -> tuple[CallCommon, Optional[Type]]:
        fn_node = node.child_by_field_name("function")
        args_node = node.child_by_field_name("arguments")
        fn_node = _strip_parens(fn_node) if fn_node is not None else None

        receiver: Optional[Value] = None
        func: Optional[Value] = None
        sig: Optional[Signature] = None
        invoke = False
        callee = ""

        if fn_node is not None and fn_node.type == "selector_expression":
            operand = fn_node.child_by_field_name("operand")
            field_node = fn_node.child_by_field_name("field")
            callee = self._text(field_node) if field_node is not None else ""
            if operand is not None and operand.type == "identifier" and self._is_package(self._text(operand)):
                dep = self.resolver.program.package(self.ctx.imports[self._text(operand)])
                if dep is not None:
                    sig = dep.scope.funcs.get(callee)
            elif operand is not None:
                receiver = self._expr(operand)
                named = named_of(receiver.type)
                if named is not None:
                    sig = named.methods.get(callee)
                    invoke = named.is_interface
        elif fn_node is not None and fn_node.type == "identifier":
            callee = self._text(fn_node)
            local = self.lookup(callee)
            if local is not None:
                func = local
                if isinstance(local.type, Signature):
                    sig = local.type
            else:
                sig = self.resolver.package.scope.funcs.get(callee)
        elif fn_node is not None:
            func = self._expr(fn_node)
            callee = func.name
            if isinstance(func.type, Signature):
                sig = func.type

        args: list[Value] = []
        if args_node is not None:
            for arg in args_node.named_children:
                if arg.type in _TYPE_NODES or arg.type == "comment":
                    continue
                args.append(self._expr(arg))

        common = CallCommon(callee, args, receiver=receiver, invoke=invoke, func=func, signature=sig)
        result: Optional[Type] = sig.result_type() if sig is not None else OPAQUE
        return common, result


def _function_name(resolver: TypeResolver, node: TSNode) -> str:
    name_node = node.child_by_field_name("name")
    name = resolver.text(name_node) if name_node is not None else "?"
    if node.type == "method_declaration":
        receiver = node.child_by_field_name("receiver")
        recv_name = _receiver_type_name(resolver, receiver)
        if recv_name:
            pointer = receiver is not None and "*" in resolver.text(receiver)
            return f"({'*' if pointer else ''}{recv_name}).{name}"
    return name


def build_package(package: "Package", program: "Program") -> list[Function]:
    """Lower every function and method body of the package."""
    functions: list[Function] = []
    for ctx in package.files:
        resolver = TypeResolver(ctx, package, program)
        for node in ctx.root_node.children:
            if node.type not in ("function_declaration", "method_declaration"):
                continue
            body = node.child_by_field_name("body")
            if body is None:
                continue
            line, col = get_line_col(node)
            fn = Function(
                _function_name(resolver, node),
                resolver.signature(node),
                filename=ctx.filename,
                pos=Position(ctx.filename, line, col),
            )
            try:
                FunctionBuilder(fn, resolver).build(
                    node.child_by_field_name("parameters"),
                    node.child_by_field_name("result"),
                    body,
                    receiver=node.child_by_field_name("receiver"),
                )
            except Exception:  # pragma: no cover
                logger.exception("Failed to lower %s in %s", fn.name, ctx.path)
                continue
            functions.append(fn)
    logger.debug("Lowered %d function(s) in package %s", len(functions), package.path)
    return functions
