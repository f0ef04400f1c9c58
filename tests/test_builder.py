"""Tests for declaration collection and lowering of Go functions."""

from pathlib import Path

import pytest

from closecheck.ir.nodes import (
    Call,
    Copy,
    Defer,
    Extract,
    FreeVar,
    MakeClosure,
    Parameter,
    Return,
    Store,
)
from closecheck.ir.types import OPAQUE, Named, Pointer, Tuple, named_of
from closecheck.loader import load_program

TESTDATA = Path(__file__).parent / "testdata"
SPANNER = "cloud.google.com/go/spanner"

HEADER = """package demo

import (
	"context"

	"cloud.google.com/go/spanner"
)

"""


def _lower(tmp_path, body: str):
    src = tmp_path / "demo.go"
    src.write_text(HEADER + body)
    program = load_program([src], [TESTDATA])
    package = program.targets[0]
    return program, {fn.name: fn for fn in package.functions}


def _instrs(fn, kind):
    return [i for i in fn.instructions() if isinstance(i, kind)]


def test_spanner_declarations_are_collected():
    program = load_program([TESTDATA / "src" / "a" / "transactions.go"], [TESTDATA])
    spanner = program.package(SPANNER)
    client = spanner.scope.types["Client"]
    assert client.kind == "struct"
    sig = client.methods["BatchReadOnlyTransaction"]
    first, second = sig.results
    assert named_of(first) is spanner.scope.types["BatchReadOnlyTransaction"]
    assert "StrongRead" in spanner.scope.funcs


def test_parameters_are_typed(tmp_path):
    program, fns = _lower(tmp_path, "func f(ctx context.Context, client *spanner.Client) {}\n")
    params = fns["f"].params
    assert [p.name for p in params] == ["ctx", "client"]
    assert params[1].type == Pointer(program.package(SPANNER).scope.types["Client"])


def test_method_call_result_type_and_defer(tmp_path):
    program, fns = _lower(
        tmp_path,
        "func f(client *spanner.Client) {\n"
        "\ttxn := client.ReadOnlyTransaction()\n"
        "\tdefer txn.Close()\n"
        "}\n",
    )
    fn = fns["f"]
    (call,) = _instrs(fn, Call)
    assert call.common.callee == "ReadOnlyTransaction"
    assert call.common.receiver is fn.params[0]
    assert named_of(call.type) is program.package(SPANNER).scope.types["ReadOnlyTransaction"]
    (defer,) = _instrs(fn, Defer)
    assert defer.common.method_name == "Close"
    assert defer in call.referrers


def test_call_position_is_the_open_paren(tmp_path):
    _, fns = _lower(
        tmp_path,
        "func f(client *spanner.Client) {\n"
        "\ttxn := client.ReadOnlyTransaction()\n"
        "\t_ = txn\n"
        "}\n",
    )
    (call,) = _instrs(fns["f"], Call)
    line = HEADER.count("\n") + 2
    assert call.pos.line == line
    assert call.pos.column == len("\ttxn := client.ReadOnlyTransaction") + 1


def test_blank_assignment_adds_no_use(tmp_path):
    _, fns = _lower(
        tmp_path,
        "func f(client *spanner.Client) {\n"
        "\ttxn := client.ReadOnlyTransaction()\n"
        "\t_ = txn\n"
        "}\n",
    )
    (call,) = _instrs(fns["f"], Call)
    assert call.referrers == []


def test_tuple_call_is_extracted(tmp_path):
    _, fns = _lower(
        tmp_path,
        "func f(ctx context.Context, client *spanner.Client) error {\n"
        "\ttxn, err := client.BatchReadOnlyTransaction(ctx, spanner.StrongRead())\n"
        "\tif err != nil {\n"
        "\t\treturn err\n"
        "\t}\n"
        "\ttxn.Close()\n"
        "\treturn nil\n"
        "}\n",
    )
    fn = fns["f"]
    extracts = _instrs(fn, Extract)
    assert [e.index for e in extracts] == [0, 1]
    batch = extracts[0].tuple
    assert isinstance(batch.type, Tuple)
    assert batch.common.callee == "BatchReadOnlyTransaction"
    close = [c for c in _instrs(fn, Call) if c.common.callee == "Close"]
    assert close[0].common.receiver is extracts[0]
    assert len(fn.blocks) > 1


def test_unknown_call_in_tuple_assignment_gets_opaque_tuple(tmp_path):
    _, fns = _lower(
        tmp_path,
        "func f() {\n"
        "\ta, b, c := mystery()\n"
        "\t_, _, _ = a, b, c\n"
        "}\n",
    )
    (call,) = _instrs(fns["f"], Call)
    assert call.type == Tuple((OPAQUE, OPAQUE, OPAQUE))
    assert len(_instrs(fns["f"], Extract)) == 3


def test_plain_reassignment_is_a_copy(tmp_path):
    _, fns = _lower(
        tmp_path,
        "func f(client *spanner.Client) {\n"
        "\ttxn := client.ReadOnlyTransaction()\n"
        "\tt := txn\n"
        "\tdefer t.Close()\n"
        "}\n",
    )
    fn = fns["f"]
    (copy,) = _instrs(fn, Copy)
    (call,) = _instrs(fn, Call)
    assert copy.source is call
    assert call.referrers == [copy]
    (defer,) = _instrs(fn, Defer)
    assert defer.common.receiver is copy


def test_field_assignment_is_a_store(tmp_path):
    _, fns = _lower(
        tmp_path,
        "type holder struct {\n"
        "\ttxn *spanner.ReadOnlyTransaction\n"
        "}\n"
        "\n"
        "func f(h *holder, client *spanner.Client) {\n"
        "\th.txn = client.ReadOnlyTransaction()\n"
        "}\n",
    )
    fn = fns["f"]
    (store,) = _instrs(fn, Store)
    assert store.target == "h.txn"
    assert isinstance(store.value, Call)
    assert store.base is fn.params[0]


def test_struct_field_types_are_resolved(tmp_path):
    program, fns = _lower(
        tmp_path,
        "type holder struct {\n"
        "\tclient *spanner.Client\n"
        "}\n"
        "\n"
        "func (h *holder) open() {\n"
        "\ttxn := h.client.ReadOnlyTransaction()\n"
        "\t_ = txn\n"
        "}\n",
    )
    fn = fns["(*holder).open"]
    calls = _instrs(fn, Call)
    assert named_of(calls[0].type) is program.package(SPANNER).scope.types["ReadOnlyTransaction"]


def test_closure_captures_are_bindings(tmp_path):
    _, fns = _lower(
        tmp_path,
        "func f(client *spanner.Client) {\n"
        "\ttxn := client.ReadOnlyTransaction()\n"
        "\tdefer func() {\n"
        "\t\ttxn.Close()\n"
        "\t}()\n"
        "}\n",
    )
    fn = fns["f"]
    call = _instrs(fn, Call)[0]
    (closure,) = _instrs(fn, MakeClosure)
    assert closure.bindings == [call]
    assert call.referrers == [closure]
    (inner,) = fn.anon_funcs
    assert inner.parent is fn
    (free,) = inner.free_vars
    assert isinstance(free, FreeVar) and free.outer is call
    (close,) = _instrs(inner, Call)
    assert close.common.receiver is free


def test_func_literal_without_captures_is_a_function_value(tmp_path):
    _, fns = _lower(
        tmp_path,
        "func f(ctx context.Context, client *spanner.Client) {\n"
        "\tclient.ReadWriteTransaction(ctx, func(ctx context.Context, txn *spanner.ReadWriteTransaction) error {\n"
        "\t\treturn nil\n"
        "\t})\n"
        "}\n",
    )
    fn = fns["f"]
    assert _instrs(fn, MakeClosure) == []
    (inner,) = fn.anon_funcs
    assert [p.name for p in inner.params] == ["ctx", "txn"]
    (call,) = _instrs(fn, Call)
    assert call.common.args[1] is inner


def test_interface_method_call_is_invoke(tmp_path):
    _, fns = _lower(
        tmp_path,
        "type reader interface {\n"
        "\tSingle() *spanner.ReadOnlyTransaction\n"
        "}\n"
        "\n"
        "func f(r reader) {\n"
        "\ttxn := r.Single()\n"
        "\t_ = txn\n"
        "}\n",
    )
    (call,) = _instrs(fns["f"], Call)
    assert call.common.invoke
    assert call.common.callee == "Single"
    assert isinstance(named_of(call.type), Named)


def test_return_results(tmp_path):
    _, fns = _lower(
        tmp_path,
        "func f(ctx context.Context, txn *spanner.ReadOnlyTransaction) (*spanner.RowIterator, error) {\n"
        "\titer := txn.Query(ctx, spanner.Statement{SQL: \"SELECT 1\"})\n"
        "\treturn iter, nil\n"
        "}\n",
    )
    fn = fns["f"]
    (ret,) = _instrs(fn, Return)
    (query,) = [c for c in _instrs(fn, Call) if c.common.callee == "Query"]
    assert ret.results[0] is query
    assert ret in query.referrers


def test_bare_return_uses_named_results(tmp_path):
    _, fns = _lower(
        tmp_path,
        "func f(ctx context.Context, txn *spanner.ReadOnlyTransaction) (iter *spanner.RowIterator) {\n"
        "\titer = txn.Query(ctx, spanner.Statement{})\n"
        "\treturn\n"
        "}\n",
    )
    fn = fns["f"]
    (ret,) = _instrs(fn, Return)
    (query,) = _instrs(fn, Call)
    assert ret.results == [query]


def test_local_function_signature_types_calls(tmp_path):
    program, fns = _lower(
        tmp_path,
        "func open(ctx context.Context, txn *spanner.ReadOnlyTransaction) *spanner.RowIterator {\n"
        "\treturn txn.Query(ctx, spanner.Statement{})\n"
        "}\n"
        "\n"
        "func f(ctx context.Context, txn *spanner.ReadOnlyTransaction) {\n"
        "\titer := open(ctx, txn)\n"
        "\tdefer iter.Stop()\n"
        "}\n",
    )
    (call,) = _instrs(fns["f"], Call)
    assert call.common.callee == "open"
    assert named_of(call.type) is program.package(SPANNER).scope.types["RowIterator"]


@pytest.mark.parametrize(
    "stmt",
    [
        "for i := 0; i < 3; i++ {\n\t\tdefer txn.Close()\n\t}",
        "switch {\n\tcase txn != nil:\n\t\tdefer txn.Close()\n\t}",
        "if txn != nil {\n\t\tdefer txn.Close()\n\t} else {\n\t\ttxn.Close()\n\t}",
    ],
)
def test_defer_inside_nested_blocks_is_found(tmp_path, stmt):
    _, fns = _lower(
        tmp_path,
        "func f(client *spanner.Client) {\n"
        "\ttxn := client.ReadOnlyTransaction()\n"
        f"\t{stmt}\n"
        "}\n",
    )
    fn = fns["f"]
    call = _instrs(fn, Call)[0]
    assert any(isinstance(ref, Defer) for ref in call.referrers)
    assert len(fn.blocks) > 1
    assert any(b.succs for b in fn.blocks)


def test_parameters_are_not_instructions(tmp_path):
    _, fns = _lower(tmp_path, "func f(txn *spanner.ReadOnlyTransaction) {\n\tdefer txn.Close()\n}\n")
    fn = fns["f"]
    assert all(not isinstance(i, Parameter) for i in fn.instructions())


def test_shadowed_name_in_block_does_not_capture_outer_defer(tmp_path):
    _, fns = _lower(
        tmp_path,
        "func f(client *spanner.Client, cond bool) {\n"
        "\ttxn := client.ReadOnlyTransaction()\n"
        "\tif cond {\n"
        "\t\ttxn := client.ReadOnlyTransaction()\n"
        "\t\t_ = txn\n"
        "\t}\n"
        "\tdefer txn.Close()\n"
        "}\n",
    )
    outer, inner = [c for c in _instrs(fns["f"], Call) if c.common.callee == "ReadOnlyTransaction"]
    (defer,) = _instrs(fns["f"], Defer)
    assert defer.common.receiver is outer
    assert inner.referrers == []


def test_if_header_declaration_is_local_to_the_statement(tmp_path):
    _, fns = _lower(
        tmp_path,
        "func f(client *spanner.Client) {\n"
        "\ttxn := client.ReadOnlyTransaction()\n"
        "\tif txn := client.ReadOnlyTransaction(); txn != nil {\n"
        "\t}\n"
        "\tdefer txn.Close()\n"
        "}\n",
    )
    outer, header = [c for c in _instrs(fns["f"], Call) if c.common.callee == "ReadOnlyTransaction"]
    (defer,) = _instrs(fns["f"], Defer)
    assert defer.common.receiver is outer
    assert defer not in header.referrers


def test_assignment_in_block_rebinds_the_declaring_scope(tmp_path):
    _, fns = _lower(
        tmp_path,
        "func f(client *spanner.Client, cond bool) {\n"
        "\ttxn := client.ReadOnlyTransaction()\n"
        "\tif cond {\n"
        "\t\ttxn = client.ReadOnlyTransaction()\n"
        "\t}\n"
        "\tdefer txn.Close()\n"
        "}\n",
    )
    first, second = [c for c in _instrs(fns["f"], Call) if c.common.callee == "ReadOnlyTransaction"]
    (defer,) = _instrs(fns["f"], Defer)
    assert defer.common.receiver is second
    assert first.referrers == []


def test_case_clause_declarations_do_not_leak(tmp_path):
    _, fns = _lower(
        tmp_path,
        "func f(ctx context.Context, txn *spanner.ReadOnlyTransaction, mode int) {\n"
        "\titer := txn.Query(ctx, spanner.Statement{})\n"
        "\tswitch mode {\n"
        "\tcase 1:\n"
        "\t\titer := txn.Query(ctx, spanner.Statement{})\n"
        "\t\t_ = iter\n"
        "\t}\n"
        "\tdefer iter.Stop()\n"
        "}\n",
    )
    outer, inner = [c for c in _instrs(fns["f"], Call) if c.common.callee == "Query"]
    (defer,) = _instrs(fns["f"], Defer)
    assert defer.common.receiver is outer
    assert inner.referrers == []


def test_package_variable_assignment_is_a_store(tmp_path):
    _, fns = _lower(
        tmp_path,
        "var shared *spanner.ReadOnlyTransaction\n"
        "\n"
        "func f(client *spanner.Client) {\n"
        "\tshared = client.ReadOnlyTransaction()\n"
        "}\n",
    )
    (store,) = _instrs(fns["f"], Store)
    assert store.target == "shared"
    assert store.base is None
    assert isinstance(store.value, Call)
