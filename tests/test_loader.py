"""Tests for grouping files into packages and resolving imports."""

from pathlib import Path

from closecheck.loader import (
    BUNDLED_STUBS,
    import_path_for,
    infer_source_roots,
    load_program,
)

TESTDATA = Path(__file__).parent / "testdata"
SPANNER = "cloud.google.com/go/spanner"


def test_import_path_under_source_root():
    directory = TESTDATA / "src" / "cloud.google.com" / "go" / "spanner"
    assert import_path_for(directory, [TESTDATA]) == SPANNER


def test_import_path_outside_source_root(tmp_path):
    assert import_path_for(tmp_path, [TESTDATA]) == tmp_path.name


def test_infer_source_roots():
    files = [TESTDATA / "src" / "a" / "transactions.go", TESTDATA / "src" / "lookalike" / "lookalike.go"]
    assert infer_source_roots(files) == [TESTDATA.resolve()]


def test_infer_source_roots_without_src(tmp_path):
    assert infer_source_roots([tmp_path / "main.go"]) == []


def test_targets_and_imports_are_loaded():
    program = load_program(sorted((TESTDATA / "src" / "a").glob("*.go")), [TESTDATA])
    (target,) = program.targets
    assert target.path == "a"
    assert target.name == "a"
    assert len(target.files) == 6
    spanner = program.package(SPANNER)
    assert spanner is not None
    assert spanner not in program.targets
    # declarations only, imported bodies are never lowered
    assert spanner.functions == []
    assert target.functions


def test_source_roots_are_inferred_from_targets():
    program = load_program([TESTDATA / "src" / "a" / "transactions.go"])
    spanner = program.package(SPANNER)
    assert spanner is not None
    assert all(not Path(f).is_relative_to(BUNDLED_STUBS) for f in spanner.filenames)


def test_bundled_stubs_are_the_fallback(tmp_path):
    src = tmp_path / "main.go"
    src.write_text('package main\n\nimport "cloud.google.com/go/spanner"\n\nvar _ *spanner.Client\n')
    program = load_program([src])
    spanner = program.package(SPANNER)
    assert spanner is not None
    assert all(Path(f).is_relative_to(BUNDLED_STUBS) for f in spanner.filenames)
    assert "RowIterator" in spanner.scope.types


def test_missing_import_is_tolerated(tmp_path):
    src = tmp_path / "main.go"
    src.write_text('package main\n\nimport "example.com/nowhere"\n\nfunc main() { nowhere.Do() }\n')
    program = load_program([src])
    assert program.package("example.com/nowhere") is None
    assert [fn.name for fn in program.targets[0].functions] == ["main"]


def test_external_test_package_is_separate(tmp_path):
    (tmp_path / "store.go").write_text("package store\n\nfunc Open() {}\n")
    (tmp_path / "store_test.go").write_text("package store_test\n\nfunc TestOpen() {}\n")
    program = load_program(sorted(tmp_path.glob("*.go")))
    paths = sorted(p.path for p in program.targets)
    assert paths == [tmp_path.name, f"{tmp_path.name}_test"]


def test_package_file_lookup():
    target = load_program([TESTDATA / "src" / "nospanner" / "nospanner.go"]).targets[0]
    filename = target.filenames[0]
    assert target.file(filename) is target.files[0]
    assert target.file("missing.go") is None


def test_imports_of_imported_packages_are_loaded():
    program = load_program([TESTDATA / "src" / "repocaller" / "caller.go"], [TESTDATA])
    (target,) = program.targets
    assert set(target.files[0].imports.values()) == {"context", "example.com/repo"}
    repo = program.package("example.com/repo")
    assert repo is not None and repo.functions == []
    assert program.package(SPANNER) is not None
    assert "Rows" in repo.scope.funcs


def test_external_test_package_detected_regardless_of_order(tmp_path):
    (tmp_path / "store.go").write_text("package store\n\nfunc Open() {}\n")
    (tmp_path / "store_test.go").write_text("package store_test\n\nfunc TestOpen() {}\n")
    program = load_program([tmp_path / "store_test.go", tmp_path / "store.go"])
    assert sorted(p.path for p in program.targets) == [tmp_path.name, f"{tmp_path.name}_test"]


def test_test_package_name_in_another_directory_is_not_external(tmp_path):
    (tmp_path / "store").mkdir()
    (tmp_path / "other").mkdir()
    (tmp_path / "store" / "store.go").write_text("package store\n\nfunc Open() {}\n")
    (tmp_path / "other" / "x.go").write_text("package store_test\n\nfunc TestOpen() {}\n")
    program = load_program([tmp_path / "store" / "store.go", tmp_path / "other" / "x.go"])
    assert sorted(p.path for p in program.targets) == ["other", "store"]
