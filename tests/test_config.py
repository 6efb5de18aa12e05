from __future__ import annotations

from pathlib import Path

from swornkit.config import DEFAULT_INCLUDES, Config, load_config


def test_config_defaults() -> None:
    """Test that Config has correct default values."""
    cfg = Config()
    assert cfg.include == DEFAULT_INCLUDES
    assert cfg.exclude == []
    assert cfg.respect_gitignore is True
    assert cfg.meta_root is None
    assert cfg.roots == []
    assert cfg.package_id == "campaign"
    assert cfg.file_debounce_ms == 0
    assert cfg.build_debounce_ms == 100
    assert cfg.log_level == "WARNING"


def test_default_includes_are_not_shared() -> None:
    cfg = Config()
    cfg.include.append("**/*.txt")
    assert "**/*.txt" not in Config().include


def test_load_config_missing_file(tmp_path: Path) -> None:
    assert load_config(tmp_path) == Config()


def test_load_config_empty_file(tmp_path: Path) -> None:
    (tmp_path / "swornkit.toml").write_text("", encoding="utf-8")
    assert load_config(tmp_path) == Config()


def test_load_config_custom_values(tmp_path: Path) -> None:
    """Test loading config with custom values."""
    (tmp_path / "swornkit.toml").write_text(
        """[swornkit]
include = ["**/*.md"]
exclude = ["drafts/**"]
respect_gitignore = false
meta_root = "/homebrew/"
roots = ["campaign", "/"]
package_id = "starforged_campaign"
file_debounce_ms = 50
build_debounce_ms = 250
log_level = "debug"
""",
        encoding="utf-8",
    )

    cfg = load_config(tmp_path)
    assert cfg.include == ["**/*.md"]
    assert cfg.exclude == ["drafts/**"]
    assert cfg.respect_gitignore is False
    assert cfg.meta_root == "homebrew"
    assert cfg.roots == ["campaign"]
    assert cfg.package_id == "starforged_campaign"
    assert cfg.file_debounce_ms == 50
    assert cfg.build_debounce_ms == 250
    assert cfg.log_level == "DEBUG"


def test_load_config_tolerates_bad_values(tmp_path: Path) -> None:
    (tmp_path / ".swornkit.toml").write_text(
        """[swornkit]
include = "not a list"
meta_root = "   "
package_id = ""
file_debounce_ms = "soon"
build_debounce_ms = -5
log_level = "LOUD"
""",
        encoding="utf-8",
    )

    cfg = load_config(tmp_path)
    assert cfg.include == DEFAULT_INCLUDES
    assert cfg.meta_root is None
    assert cfg.package_id == "campaign"
    assert cfg.file_debounce_ms == 0
    assert cfg.build_debounce_ms == 0
    assert cfg.log_level == "WARNING"


def test_dot_config_takes_precedence(tmp_path: Path) -> None:
    (tmp_path / ".swornkit.toml").write_text(
        '[swornkit]\npackage_id = "dot"\n', encoding="utf-8"
    )
    (tmp_path / "swornkit.toml").write_text(
        '[swornkit]\npackage_id = "plain"\n', encoding="utf-8"
    )
    assert load_config(tmp_path).package_id == "dot"


def test_tool_section_in_dedicated_file(tmp_path: Path) -> None:
    (tmp_path / "swornkit.toml").write_text(
        '[tool.swornkit]\npackage_id = "tool"\n', encoding="utf-8"
    )
    assert load_config(tmp_path).package_id == "tool"


def test_pyproject_requires_tool_section(tmp_path: Path) -> None:
    (tmp_path / "pyproject.toml").write_text(
        '[swornkit]\npackage_id = "ignored"\n\n[tool.swornkit]\nmeta_root = "hb"\n',
        encoding="utf-8",
    )
    cfg = load_config(tmp_path)
    assert cfg.package_id == "campaign"
    assert cfg.meta_root == "hb"
