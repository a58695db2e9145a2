from pathlib import Path

import pytest

from helpers import try_symlink


@pytest.fixture(autouse=True)
def isolated_config(tmp_path: Path, monkeypatch):
    config_home = tmp_path / "config-home"
    monkeypatch.setenv("XDG_CONFIG_HOME", str(config_home))
    monkeypatch.setenv("APPDATA", str(config_home))
    return config_home / "dirarchiver"

@pytest.fixture
def source_tree(tmp_path: Path) -> Path:
    """
    src/
      root.txt
      nested/{nested.txt, root.txt, skip.txt}
      cache/cache.txt
      nested/cache/nested-cache.txt
      deep/level-0/.../level-39/deep.txt
    """
    src = tmp_path / "src"
    nested = src / "nested"
    nested.mkdir(parents=True)

    (src / "root.txt").write_text("root")
    (nested / "nested.txt").write_text("nested")
    (nested / "root.txt").write_text("nested-root")
    (nested / "skip.txt").write_text("skip")

    (src / "cache").mkdir()
    (nested / "cache").mkdir()
    (src / "cache" / "cache.txt").write_text("cache")
    (nested / "cache" / "nested-cache.txt").write_text("nested-cache")

    cursor = src / "deep"
    for i in range(40):
        cursor = cursor / f"level-{i}"
    cursor.mkdir(parents=True)
    (cursor / "deep.txt").write_text("deep")
    return src

@pytest.fixture
def linked_tree(source_tree: Path, tmp_path: Path):
    """
    Adds to source_tree: a link to an external file, a link to an external
    directory, and a link back to the source root. Skips when links are unsupported.
    """
    external_file = tmp_path / "external.txt"
    external_file.write_text("external")
    external_dir = tmp_path / "external-dir"
    external_dir.mkdir()
    (external_dir / "external.txt").write_text("external-dir")

    ok = try_symlink(external_file, source_tree / "external-link.txt")
    ok = ok and try_symlink(external_dir, source_tree / "linked-external", target_is_directory=True)
    ok = ok and try_symlink(source_tree, source_tree / "loop", target_is_directory=True)
    if not ok:
        pytest.skip("symlinks are not supported here")
    return source_tree
