import pytest

from autodev.engine.errors import PathCollisionError
from autodev.engine.file_tree import FileTreeBuilder, all_paths, find_node, flatten_files
from autodev.engine.models import GeneratedDirectory, GeneratedFile, make_directory, make_file


def _project() -> GeneratedDirectory:
    return make_directory("app", [
        make_file("app/package.json", "{}"),
        make_directory("app/src", [make_file("app/src/index.ts", "old")]),
    ])


def test_emit_into_empty_tree() -> None:
    result = FileTreeBuilder().emit_files((), [_project()])

    assert all_paths(result.files) == [
        "app", "app/package.json", "app/src", "app/src/index.ts",
    ]
    assert result.added == ["app/package.json", "app/src/index.ts"]
    assert result.overwritten == []


def test_directories_merge_recursively() -> None:
    builder = FileTreeBuilder()
    tree = builder.emit_files((), [_project()]).files
    extra = make_directory("app", [
        make_directory("app/src", [make_file("app/src/api.ts", "api")]),
        make_file("app/REVIEW.md", "ok"),
    ])

    result = builder.emit_files(tree, [extra])

    assert len(result.files) == 1
    assert all_paths(result.files) == [
        "app", "app/package.json", "app/src", "app/src/index.ts",
        "app/src/api.ts", "app/REVIEW.md",
    ]
    assert result.added == ["app/src/api.ts", "app/REVIEW.md"]


def test_file_overwrite_keeps_position_and_is_reported() -> None:
    builder = FileTreeBuilder()
    tree = builder.emit_files((), [_project()]).files
    update = make_directory("app", [
        make_directory("app/src", [make_file("app/src/index.ts", "new")]),
    ])

    result = builder.emit_files(tree, [update])

    assert result.overwritten == ["app/src/index.ts"]
    assert result.added == []
    node = find_node(result.files, "app/src/index.ts")
    assert isinstance(node, GeneratedFile)
    assert node.content == "new"
    assert all_paths(result.files) == all_paths(tree)


def test_type_conflict_raises_and_leaves_tree_unchanged() -> None:
    builder = FileTreeBuilder()
    tree = builder.emit_files((), [_project()]).files
    clash = make_directory("app", [make_directory("app/package.json", [])])

    with pytest.raises(PathCollisionError) as excinfo:
        builder.emit_files(tree, [clash])

    assert excinfo.value.path == "app/package.json"
    assert excinfo.value.existing_type == "file"
    assert excinfo.value.new_type == "directory"
    assert find_node(tree, "app/package.json").type == "file"


def test_duplicate_paths_inside_one_emission_follow_policy() -> None:
    node = make_directory("app", [
        make_file("app/a.txt", "1"),
        make_file("app/a.txt", "2"),
    ])
    result = FileTreeBuilder().emit_files((), [node])

    assert [f.content for f in flatten_files(result.files)] == ["2"]
    assert result.overwritten == ["app/a.txt"]
    paths = all_paths(result.files)
    assert len(paths) == len(set(paths))


def test_mismatched_path_is_rejected() -> None:
    bad = GeneratedDirectory(name="app", path="app", children=(
        GeneratedFile(name="x.ts", path="elsewhere/x.ts"),
    ))
    with pytest.raises(ValueError, match="does not match"):
        FileTreeBuilder().emit_files((), [bad])


def test_emission_is_deterministic() -> None:
    builder = FileTreeBuilder()
    first = builder.emit_files((), [_project()])
    second = builder.emit_files((), [_project()])
    assert first.files == second.files
